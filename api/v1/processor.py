"""Job processor control API endpoints."""

from fastapi import APIRouter, Depends

from api.dependencies import get_service
from api.responses import ok
from crawlers.core.service import ScrapingService
from schemas.processor import CleanupRequest, IntervalUpdate

router = APIRouter(prefix="/job-processor", tags=["job-processor"])


@router.get("/status")
async def processor_status(service: ScrapingService = Depends(get_service)):
    return ok(await service.processor.get_status(), "Processor status fetched")


@router.post("/start")
async def start_processor(service: ScrapingService = Depends(get_service)):
    service.processor.start()
    return ok(message="Job processor started successfully")


@router.post("/stop")
async def stop_processor(service: ScrapingService = Depends(get_service)):
    service.processor.stop()
    return ok(message="Job processor stopped successfully")


@router.post("/trigger")
async def trigger_processing(service: ScrapingService = Depends(get_service)):
    summary = await service.processor.trigger_processing()
    return ok(summary, "Processing triggered successfully")


@router.post("/retry-failed")
async def retry_failed(service: ScrapingService = Depends(get_service)):
    results = await service.processor.retry_failed_operations()
    return ok(results, f"Retried {len(results)} failed operations")


@router.post("/cleanup")
async def cleanup(
    body: CleanupRequest | None = None,
    service: ScrapingService = Depends(get_service),
):
    days_old = body.days_old if body is not None else None
    deleted_ids = await service.processor.cleanup_old_operations(days_old)
    return ok(deleted_ids, f"Cleaned up {len(deleted_ids)} old operations")


@router.put("/interval")
async def update_interval(body: IntervalUpdate, service: ScrapingService = Depends(get_service)):
    service.processor.set_interval(body.interval_ms)
    return ok(
        {"processingIntervalMs": service.processor.processing_interval_ms},
        f"Processing interval updated to {body.interval_ms}ms",
    )
