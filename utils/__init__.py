"""
Utilities package for Scrape Hub.
"""

from .logging import (
    get_logger,
    setup_logging,
    log_operation_start,
    log_operation_success,
    log_operation_error,
    log_processor_metrics
)

__all__ = [
    "get_logger",
    "setup_logging",
    "log_operation_start",
    "log_operation_success",
    "log_operation_error",
    "log_processor_metrics"
]
