"""Scrape log API endpoints."""

from datetime import datetime

from fastapi import APIRouter, Depends, Query

from api.dependencies import get_service
from api.responses import ok, pagination
from crawlers.core.service import ScrapingService
from models.base import as_utc
from schemas.scrape_log import ScrapeLogWrite
from storage.log_store import LogFilters

router = APIRouter(prefix="/scrape-logs", tags=["scrape-logs"])


@router.post("", status_code=201)
async def create_log(body: ScrapeLogWrite, service: ScrapingService = Depends(get_service)):
    log = await service.logs.create(body.to_payload())
    return ok(log.to_dict(), "Scrape log created successfully")


@router.get("")
async def list_logs(
    service: ScrapingService = Depends(get_service),
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    platform: str | None = Query(None),
    type: str | None = Query(None),
    status: str | None = Query(None),
    category: str | None = Query(None),
    start_date: datetime | None = Query(None, alias="startDate"),
    end_date: datetime | None = Query(None, alias="endDate"),
    search: str | None = Query(None),
    sort_by: str = Query("createdAt", alias="sortBy"),
    sort_order: str = Query("desc", alias="sortOrder", pattern="^(asc|desc)$"),
    include_details: bool = Query(True, alias="includeDetails"),
):
    """List scrape logs, optionally with per-operation product statistics."""
    filters = LogFilters(
        platform=platform,
        type=type,
        status=status,
        category=category,
        start_date=as_utc(start_date),
        end_date=as_utc(end_date),
        search=search,
    )
    items, total = await service.logs.list(
        filters, page, limit, sort_by, sort_order, include_details
    )
    return ok(items, "Scrape logs fetched", pagination=pagination(page, limit, total))


@router.get("/stats")
async def log_stats(
    service: ScrapingService = Depends(get_service),
    start_date: datetime | None = Query(None, alias="startDate"),
    end_date: datetime | None = Query(None, alias="endDate"),
    platform: str | None = Query(None),
):
    """Status counts, success rate and daily chart series."""
    stats = await service.logs.stats(as_utc(start_date), as_utc(end_date), platform)
    return ok(stats, "Scrape log statistics fetched")


@router.get("/stats/comprehensive")
async def log_comprehensive_stats(
    service: ScrapingService = Depends(get_service),
    start_date: datetime | None = Query(None, alias="startDate"),
    end_date: datetime | None = Query(None, alias="endDate"),
    platform: str | None = Query(None),
    type: str | None = Query(None),
):
    stats = await service.logs.comprehensive_stats(
        as_utc(start_date), as_utc(end_date), platform, type
    )
    return ok(stats, "Comprehensive statistics fetched")


@router.get("/{log_id}")
async def get_log(log_id: str, service: ScrapingService = Depends(get_service)):
    log = await service.logs.get(log_id)
    return ok(log.to_dict(), "Scrape log fetched")


@router.get("/{log_id}/report")
async def log_report(log_id: str, service: ScrapingService = Depends(get_service)):
    """Log details with the linked operation and its product summary."""
    report = await service.logs.report(log_id)
    return ok(report, "Scrape log report generated")


@router.put("/{log_id}")
async def replace_log(
    log_id: str,
    body: ScrapeLogWrite,
    service: ScrapingService = Depends(get_service),
):
    log = await service.logs.update(log_id, body.to_payload(), partial=False)
    return ok(log.to_dict(), "Scrape log updated successfully")


@router.patch("/{log_id}")
async def patch_log(
    log_id: str,
    body: ScrapeLogWrite,
    service: ScrapingService = Depends(get_service),
):
    log = await service.logs.update(log_id, body.to_payload(), partial=True)
    return ok(log.to_dict(), "Scrape log updated successfully")
