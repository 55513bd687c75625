"""
Storage package for database connections, operation/log stores and result files.
"""

from .connection import (
    DatabaseManager,
    db_manager,
    get_async_db_session,
    init_db,
    close_db
)
from .operation_store import OperationStore, OperationFilters
from .log_store import LogStore, LogFilters
from .result_files import ResultFileStore, result_filename

__all__ = [
    "DatabaseManager",
    "db_manager",
    "get_async_db_session",
    "init_db",
    "close_db",
    "OperationStore",
    "OperationFilters",
    "LogStore",
    "LogFilters",
    "ResultFileStore",
    "result_filename"
]
