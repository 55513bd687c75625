"""
Error hierarchy shared by the stores, the execution engine and the HTTP API.
"""

import traceback
from typing import Any, Dict, Optional

from models.base import isoformat, utc_now


class ScrapeHubError(Exception):
    """모든 도메인 에러의 기본 클래스"""

    code = "INTERNAL_ERROR"
    http_status = 500

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> Dict[str, Any]:
        """API 응답용 에러 정보"""
        return {
            "code": self.code,
            "message": self.message,
            "details": self.details,
        }


class ValidationError(ScrapeHubError):
    """입력 검증 실패"""
    code = "VALIDATION_ERROR"
    http_status = 400


class ConflictError(ScrapeHubError):
    """상태 전이 전제 조건 위반"""
    code = "CONFLICT"
    http_status = 400


class InvalidTransitionError(ConflictError):
    """현재 상태에서 허용되지 않는 전이"""
    code = "INVALID_TRANSITION"

    def __init__(self, operation_id: str, current: str, action: str, expected: str):
        super().__init__(
            f"Cannot {action} operation {operation_id}: status is '{current}', expected '{expected}'",
            {"operationId": operation_id, "currentStatus": current, "expectedStatus": expected}
        )
        self.current = current


class RetryLimitExceededError(ConflictError):
    """재시도 한도 초과"""
    code = "RETRY_LIMIT_EXCEEDED"

    def __init__(self, operation_id: str, retry_count: int, max_retries: int):
        super().__init__(
            f"Operation {operation_id} has reached its retry limit ({retry_count}/{max_retries})",
            {"operationId": operation_id, "retryCount": retry_count, "maxRetries": max_retries}
        )


class DuplicateOperationError(ConflictError):
    """같은 URL에 대한 활성 작업이 이미 존재"""
    code = "DUPLICATE_OPERATION"
    http_status = 409

    def __init__(self, url: str, existing_id: str, existing_status: str):
        super().__init__(
            f"An active operation already exists for URL: {url}",
            {"url": url, "existingOperationId": existing_id, "existingStatus": existing_status}
        )


class ProcessorNotRunningError(ConflictError):
    """프로세서가 실행 중이 아님"""
    code = "PROCESSOR_NOT_RUNNING"

    def __init__(self):
        super().__init__("Job processor is not running")


class NotFoundError(ScrapeHubError):
    """대상 리소스 없음"""
    code = "NOT_FOUND"
    http_status = 404


class OperationNotFoundError(NotFoundError):
    """작업 없음"""

    def __init__(self, operation_id: str):
        super().__init__(
            f"Scraping operation not found: {operation_id}",
            {"operationId": operation_id}
        )


class ExecutionError(ScrapeHubError):
    """실행 단계 실패의 기본 클래스"""
    code = "EXECUTION_FAILED"
    http_status = 500

    def error_details(self) -> Dict[str, Any]:
        """작업의 errorDetails 필드에 기록할 정보"""
        return error_details(self)


class AdapterNotFoundError(ExecutionError):
    """판매처에 대한 스크래퍼 없음"""
    code = "ADAPTER_NOT_FOUND"

    def __init__(self, seller: str, tried: Optional[list] = None):
        super().__init__(
            f"No scraper adapter available for seller: {seller}",
            {"seller": seller, "candidates": tried or []}
        )
        self.seller = seller


class FetchError(ExecutionError):
    """페이지 수집 실패 (네트워크, HTTP 상태, 렌더링)"""
    code = "FETCH_FAILED"
    http_status = 502


class FetchTimeoutError(FetchError):
    """수집 타임아웃"""
    code = "FETCH_TIMEOUT"
    http_status = 504


class ExtractionError(ExecutionError):
    """스크래퍼 추출 로직 실패"""
    code = "EXTRACTION_FAILED"


class PersistenceError(ScrapeHubError):
    """저장소 읽기/쓰기 실패"""
    code = "PERSISTENCE_ERROR"
    http_status = 500


def error_details(error: BaseException) -> Dict[str, Any]:
    """예외를 {stack, name, timestamp} 형태로 변환"""
    stack = "".join(
        traceback.format_exception(type(error), error, error.__traceback__)
    )
    return {
        "stack": stack,
        "name": type(error).__name__,
        "timestamp": isoformat(utc_now()),
    }
