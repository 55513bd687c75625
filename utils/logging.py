"""
Logging configuration and utilities for Scrape Hub.
"""

import json
import logging
import logging.handlers
import sys
from datetime import datetime
from pathlib import Path
from typing import Any, Dict

from config.settings import settings


class JsonFormatter(logging.Formatter):
    """JSON 형태로 로그를 포맷하는 커스텀 포맷터"""

    def format(self, record: logging.LogRecord) -> str:
        """로그 레코드를 JSON 형태로 변환"""
        log_entry = {
            "timestamp": datetime.fromtimestamp(record.created).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
            "process_id": record.process,
            "thread_id": record.thread,
        }

        # 예외 정보가 있는 경우 추가
        if record.exc_info:
            log_entry["exception"] = self.formatException(record.exc_info)

        # 추가 필드가 있는 경우 포함
        if hasattr(record, "extra_fields"):
            log_entry.update(record.extra_fields)

        # 트레이스 정보 포함 (설정에 따라)
        if settings.logging.include_trace and hasattr(record, "trace_id"):
            log_entry["trace_id"] = record.trace_id

        return json.dumps(log_entry, ensure_ascii=False, default=str)


class ScraperLogger:
    """스크래핑 시스템 전용 로거 설정 및 관리"""

    def __init__(self):
        self._loggers: Dict[str, logging.Logger] = {}
        self._setup_root_logger()

    def _setup_root_logger(self) -> None:
        """루트 로거 설정"""
        root_logger = logging.getLogger()
        root_logger.setLevel(getattr(logging, settings.logging.level.upper()))

        # 기존 핸들러 제거
        for handler in root_logger.handlers[:]:
            root_logger.removeHandler(handler)

        console_handler = logging.StreamHandler(sys.stdout)
        console_handler.setLevel(logging.DEBUG)

        if settings.logging.json_logging:
            console_handler.setFormatter(JsonFormatter())
        else:
            console_handler.setFormatter(logging.Formatter(settings.logging.format))

        root_logger.addHandler(console_handler)

        if settings.logging.file_path:
            self._add_file_handler(root_logger)

    def _add_file_handler(self, logger: logging.Logger) -> None:
        """로테이션 파일 핸들러 추가"""
        log_file = Path(settings.logging.file_path)
        log_file.parent.mkdir(parents=True, exist_ok=True)

        file_handler = logging.handlers.RotatingFileHandler(
            log_file,
            maxBytes=settings.logging.max_file_size,
            backupCount=settings.logging.backup_count,
            encoding='utf-8'
        )
        file_handler.setLevel(logging.DEBUG)

        if settings.logging.json_logging:
            file_handler.setFormatter(JsonFormatter())
        else:
            file_handler.setFormatter(logging.Formatter(settings.logging.format))

        logger.addHandler(file_handler)

    def get_logger(self, name: str) -> logging.Logger:
        """특정 이름의 로거 반환"""
        if name not in self._loggers:
            self._loggers[name] = logging.getLogger(name)

        return self._loggers[name]

    def _emit(self, logger: logging.Logger, level: int, message: str,
              extra_fields: Dict[str, Any], exc_info=None) -> None:
        """extra_fields를 포함한 레코드 기록"""
        if not logger.isEnabledFor(level):
            return

        record = logger.makeRecord(
            logger.name, level, __file__, 0, message, (), exc_info
        )
        record.extra_fields = extra_fields
        logger.handle(record)

    def log_operation_start(self, logger: logging.Logger, operation: Dict[str, Any]) -> None:
        """작업 시작 로그"""
        extra_fields = {
            "event_type": "operation_start",
            "operation_id": operation.get("id"),
            "seller": operation.get("seller"),
            "type": operation.get("type"),
            "url": operation.get("url"),
            "retry_count": operation.get("retry_count", 0)
        }
        self._emit(
            logger, logging.INFO,
            f"Started scraping operation: {operation.get('id', 'unknown')}",
            extra_fields
        )

    def log_operation_success(self, logger: logging.Logger, operation_id: str,
                              total_products: int, execution_time: float) -> None:
        """작업 성공 로그"""
        extra_fields = {
            "event_type": "operation_success",
            "operation_id": operation_id,
            "total_products": total_products,
            "execution_time": execution_time
        }
        self._emit(
            logger, logging.INFO,
            f"Successfully completed scraping operation: {operation_id}",
            extra_fields
        )

    def log_operation_error(self, logger: logging.Logger, operation_id: str,
                            error: Exception, retry_count: int) -> None:
        """작업 에러 로그"""
        extra_fields = {
            "event_type": "operation_error",
            "operation_id": operation_id,
            "error_type": type(error).__name__,
            "error_code": getattr(error, "code", None),
            "error_message": str(error),
            "retry_count": retry_count
        }
        self._emit(
            logger, logging.ERROR,
            f"Scraping operation failed: {operation_id} - {error}",
            extra_fields,
            exc_info=(type(error), error, error.__traceback__)
        )

    def log_processor_metrics(self, logger: logging.Logger, metrics: Dict[str, Any]) -> None:
        """프로세서 패스 메트릭 로그"""
        extra_fields = {
            "event_type": "processor_metrics",
            **metrics
        }
        self._emit(logger, logging.INFO, "Processing pass finished", extra_fields)


# 전역 로거 인스턴스
scraper_logger = ScraperLogger()


def get_logger(name: str) -> logging.Logger:
    """로거 획득 함수"""
    return scraper_logger.get_logger(name)


def setup_logging() -> None:
    """로깅 시스템 초기화"""
    global scraper_logger
    scraper_logger = ScraperLogger()

    logger = get_logger(__name__)
    logger.info("Logging system initialized")


# 편의 함수들
def log_operation_start(operation: Dict[str, Any]) -> None:
    """작업 시작 로그 (편의 함수)"""
    logger = get_logger("scraper.operation")
    scraper_logger.log_operation_start(logger, operation)


def log_operation_success(operation_id: str, total_products: int, execution_time: float) -> None:
    """작업 성공 로그 (편의 함수)"""
    logger = get_logger("scraper.operation")
    scraper_logger.log_operation_success(logger, operation_id, total_products, execution_time)


def log_operation_error(operation_id: str, error: Exception, retry_count: int) -> None:
    """작업 에러 로그 (편의 함수)"""
    logger = get_logger("scraper.operation")
    scraper_logger.log_operation_error(logger, operation_id, error, retry_count)


def log_processor_metrics(metrics: Dict[str, Any]) -> None:
    """프로세서 메트릭 로그 (편의 함수)"""
    logger = get_logger("scraper.processor")
    scraper_logger.log_processor_metrics(logger, metrics)
