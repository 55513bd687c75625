"""API router aggregation."""

from fastapi import APIRouter

from api.v1.operations import router as operations_router
from api.v1.logs import router as logs_router
from api.v1.processor import router as processor_router

router = APIRouter(prefix="/api")

router.include_router(operations_router)
router.include_router(logs_router)
router.include_router(processor_router)
