"""Scraping operation API endpoints."""

from datetime import datetime

from fastapi import APIRouter, Depends, Query, Request

from api.dependencies import get_service
from api.responses import ok, pagination, request_meta
from crawlers.core.service import ScrapingService
from models.base import as_utc
from schemas.operation import (
    OperationBatchCreate,
    OperationComplete,
    OperationCreate,
    OperationFail,
    OperationUpdate,
)
from storage.operation_store import OperationFilters

router = APIRouter(prefix="/scraping-operations", tags=["scraping-operations"])


@router.get("")
async def list_operations(
    service: ScrapingService = Depends(get_service),
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    status: str | None = Query(None),
    seller: str | None = Query(None),
    type: str | None = Query(None),
    category: str | None = Query(None),
    start_date: datetime | None = Query(None, alias="startDate"),
    end_date: datetime | None = Query(None, alias="endDate"),
    sort_by: str = Query("createdAt", alias="sortBy"),
    sort_order: str = Query("desc", alias="sortOrder", pattern="^(asc|desc)$"),
    search: str | None = Query(None),
):
    """List operations with filters, sorting and pagination."""
    filters = OperationFilters(
        status=status,
        seller=seller,
        type=type,
        category=category,
        start_date=as_utc(start_date),
        end_date=as_utc(end_date),
        search=search,
    )
    items, total = await service.operations.find(filters, page, limit, sort_by, sort_order)

    return ok(
        [operation.to_dict(include_payload=False) for operation in items],
        "Scraping operations fetched",
        pagination=pagination(page, limit, total),
    )


@router.get("/stats")
async def operation_stats(
    service: ScrapingService = Depends(get_service),
    seller: str | None = Query(None),
    start_date: datetime | None = Query(None, alias="startDate"),
    end_date: datetime | None = Query(None, alias="endDate"),
):
    """Per-status and per-seller aggregates plus recent operations."""
    filters = OperationFilters(
        seller=seller, start_date=as_utc(start_date), end_date=as_utc(end_date)
    )
    return ok(await service.get_stats(filters), "Statistics fetched")


@router.post("", status_code=201)
async def create_operation(
    body: OperationCreate,
    request: Request,
    service: ScrapingService = Depends(get_service),
):
    """Submit a new scraping operation."""
    operation = await service.submit(body.to_payload(), request_meta(request))
    return ok(operation.to_dict(), "Scraping operation created successfully")


@router.post("/batch")
async def create_operations_batch(
    body: OperationBatchCreate,
    request: Request,
    service: ScrapingService = Depends(get_service),
):
    """Submit several operations; each item succeeds or fails on its own."""
    results = await service.submit_many(body.operations, request_meta(request))
    created = sum(1 for item in results if item["success"])
    return ok(
        results,
        f"Created {created} of {len(results)} scraping operations",
        summary={"total": len(results), "created": created, "failed": len(results) - created},
    )


@router.get("/{operation_id}")
async def get_operation(operation_id: str, service: ScrapingService = Depends(get_service)):
    operation = await service.operations.get(operation_id)
    return ok(operation.to_dict(), "Scraping operation fetched")


@router.put("/{operation_id}")
async def update_operation(
    operation_id: str,
    body: OperationUpdate,
    service: ScrapingService = Depends(get_service),
):
    """Update notes, tags, progress or error fields."""
    changes = body.model_dump(by_alias=True, exclude_unset=True)
    operation = await service.update_operation(operation_id, changes)
    return ok(operation.to_dict(), "Operation updated successfully")


@router.post("/{operation_id}/start")
async def start_operation(operation_id: str, service: ScrapingService = Depends(get_service)):
    operation = await service.start(operation_id)
    return ok(operation.to_dict(), "Operation started successfully")


@router.post("/{operation_id}/complete")
async def complete_operation(
    operation_id: str,
    body: OperationComplete,
    service: ScrapingService = Depends(get_service),
):
    operation = await service.complete(
        operation_id, body.scraped_data, body.total_products, body.data_file
    )
    return ok(operation.to_dict(), "Operation completed successfully")


@router.post("/{operation_id}/fail")
async def fail_operation(
    operation_id: str,
    body: OperationFail,
    service: ScrapingService = Depends(get_service),
):
    operation = await service.fail(operation_id, body.error_message, body.error_details)
    return ok(operation.to_dict(), "Operation marked as failed")


@router.post("/{operation_id}/retry")
async def retry_operation(operation_id: str, service: ScrapingService = Depends(get_service)):
    operation = await service.retry(operation_id)
    return ok(operation.to_dict(), "Operation queued for retry")


@router.post("/{operation_id}/cancel")
async def cancel_operation(operation_id: str, service: ScrapingService = Depends(get_service)):
    operation = await service.cancel(operation_id)
    return ok(operation.to_dict(), "Operation cancelled")


@router.delete("/{operation_id}")
async def delete_operation(operation_id: str, service: ScrapingService = Depends(get_service)):
    await service.delete_operation(operation_id)
    return ok(message="Operation deleted successfully")


@router.get("/{operation_id}/data")
async def get_operation_data(operation_id: str, service: ScrapingService = Depends(get_service)):
    """Scraped result: inline data first, then the result file."""
    data = await service.get_operation_data(operation_id)
    return ok(data, "Scraped data fetched")
