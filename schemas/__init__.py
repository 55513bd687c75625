"""Pydantic request schemas package."""

from schemas.operation import (
    OperationConfig,
    OperationCreate,
    OperationBatchCreate,
    OperationUpdate,
    ProgressUpdate,
    OperationComplete,
    OperationFail,
)
from schemas.scrape_log import ScrapeLogWrite
from schemas.processor import IntervalUpdate, CleanupRequest

__all__ = [
    "OperationConfig",
    "OperationCreate",
    "OperationBatchCreate",
    "OperationUpdate",
    "ProgressUpdate",
    "OperationComplete",
    "OperationFail",
    "ScrapeLogWrite",
    "IntervalUpdate",
    "CleanupRequest",
]
