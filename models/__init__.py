"""
Database models package for Scrape Hub.
"""

from .base import (
    ACTIVE_STATUSES,
    CLEANUP_STATUSES,
    Base,
    BaseModel,
    OperationStatus,
    OperationType,
    Seller,
)
from .scraping_operation import ScrapingOperation, compute_duration, compute_percentage
from .scrape_logs import ScrapeLog

__all__ = [
    "ACTIVE_STATUSES",
    "CLEANUP_STATUSES",
    "Base",
    "BaseModel",
    "OperationStatus",
    "OperationType",
    "Seller",
    "ScrapingOperation",
    "ScrapeLog",
    "compute_duration",
    "compute_percentage"
]
