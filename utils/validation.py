"""
Input validation utilities for scraping operation submissions.

This module checks URLs, sellers, operation types and per-operation fetch
configuration before anything reaches the operation store.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional
from urllib.parse import urlparse

from config.settings import (
    MAX_TIMEOUT_MS,
    MAX_WAIT_TIME_MS,
    MIN_TIMEOUT_MS,
    MIN_WAIT_TIME_MS,
)
from crawlers.core.exceptions import ValidationError
from models.base import SELLER_VALUES, OperationStatus, OperationType
from models.scraping_operation import (
    DEFAULT_MAX_RETRIES,
    DEFAULT_TIMEOUT_MS,
    DEFAULT_WAIT_TIME_MS,
)


@dataclass
class ValidationResult:
    """검증 결과"""
    is_valid: bool = True
    errors: List[Dict[str, str]] = field(default_factory=list)

    def add_error(self, field_name: str, message: str):
        self.errors.append({"field": field_name, "message": message})
        self.is_valid = False

    def raise_if_invalid(self, message: str = "Validation failed"):
        if not self.is_valid:
            raise ValidationError(message, {"errors": self.errors})


class URLValidator:
    """URL 검증"""

    def validate_url(self, url: Any, result: ValidationResult, field_name: str = "url") -> Optional[str]:
        """http(s) URL 형식 검증"""
        if not isinstance(url, str) or not url.strip():
            result.add_error(field_name, "URL is required")
            return None

        url = url.strip()
        try:
            parsed = urlparse(url)
        except ValueError as e:
            result.add_error(field_name, f"URL parsing error: {e}")
            return None

        # 스킴 검증
        if parsed.scheme not in ("http", "https"):
            result.add_error(field_name, f"Invalid URL scheme: {parsed.scheme or 'none'}")
            return None

        if not parsed.netloc:
            result.add_error(field_name, "URL has no host")
            return None

        return url


class OperationConfigValidator:
    """작업별 수집 설정 검증"""

    def validate_config(self, config: Optional[Dict[str, Any]], result: ValidationResult) -> Dict[str, Any]:
        """usePuppeteer / timeout / waitTime 검증 후 기본값 적용"""
        config = config or {}
        if not isinstance(config, dict):
            result.add_error("config", "config must be an object")
            config = {}

        use_browser = config.get("usePuppeteer", config.get("use_browser", True))
        if not isinstance(use_browser, bool):
            result.add_error("config.usePuppeteer", "usePuppeteer must be a boolean")
            use_browser = True

        timeout = self._bounded_int(
            config.get("timeout", DEFAULT_TIMEOUT_MS),
            "config.timeout", MIN_TIMEOUT_MS, MAX_TIMEOUT_MS, result
        )
        wait_time = self._bounded_int(
            config.get("waitTime", config.get("wait_time", DEFAULT_WAIT_TIME_MS)),
            "config.waitTime", MIN_WAIT_TIME_MS, MAX_WAIT_TIME_MS, result
        )

        return {"use_browser": use_browser, "timeout": timeout, "wait_time": wait_time}

    @staticmethod
    def _bounded_int(value: Any, field_name: str, minimum: int, maximum: int,
                     result: ValidationResult) -> Optional[int]:
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            result.add_error(field_name, f"{field_name} must be a number")
            return None

        if not minimum <= value <= maximum:
            result.add_error(field_name, f"{field_name} must be between {minimum} and {maximum}")
            return None

        return int(value)


class OperationPayloadValidator:
    """작업 생성 요청 검증"""

    def __init__(self):
        self.url_validator = URLValidator()
        self.config_validator = OperationConfigValidator()

    def validate(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        """요청 검증 후 저장 가능한 필드 딕셔너리 반환

        Raises:
            ValidationError: 하나 이상의 필드가 잘못된 경우 (details.errors에 항목별 사유)
        """
        result = ValidationResult()

        url = self.url_validator.validate_url(payload.get("url"), result)

        seller = payload.get("seller")
        if seller not in SELLER_VALUES:
            result.add_error("seller", f"Unknown seller: {seller}")

        op_type = payload.get("type") or OperationType.PRODUCT.value
        if op_type not in {t.value for t in OperationType}:
            result.add_error("type", "type must be one of: product, category")

        config = self.config_validator.validate_config(payload.get("config"), result)

        tags = payload.get("tags") or []
        if not isinstance(tags, list) or not all(isinstance(tag, str) for tag in tags):
            result.add_error("tags", "tags must be a list of strings")

        max_retries = payload.get("maxRetries", DEFAULT_MAX_RETRIES)
        if isinstance(max_retries, bool) or not isinstance(max_retries, int) or max_retries < 0:
            result.add_error("maxRetries", "maxRetries must be a non-negative integer")

        result.raise_if_invalid()

        return {
            "url": url,
            "seller": seller,
            "type": op_type,
            "category": payload.get("category"),
            "notes": payload.get("notes"),
            "tags": tags,
            "max_retries": max_retries,
            **config,
        }


class ScrapeLogPayloadValidator:
    """스크래핑 로그 생성/수정 요청 검증"""

    REQUIRED = ("platform", "type", "url", "status")
    FIELDS = ("when", "platform", "type", "url", "category", "status", "action", "operationId")

    def __init__(self):
        self.url_validator = URLValidator()

    def validate(self, payload: Dict[str, Any], partial: bool = False) -> Dict[str, Any]:
        """partial=True이면 수정 요청 (최소 한 필드 필요)"""
        result = ValidationResult()
        values = {key: payload[key] for key in self.FIELDS if key in payload}

        if partial and not values:
            result.add_error("body", "at least one field must be provided")

        if not partial:
            for key in self.REQUIRED:
                if values.get(key) in (None, ""):
                    result.add_error(key, f"{key} is required")

        if "url" in values and values["url"] is not None:
            self.url_validator.validate_url(values["url"], result)

        if values.get("type") is not None and values["type"] not in {t.value for t in OperationType}:
            result.add_error("type", "type must be one of: product, category")

        if values.get("status") is not None and values["status"] not in {s.value for s in OperationStatus}:
            result.add_error("status", f"Unknown status: {values['status']}")

        result.raise_if_invalid()
        return values


# 전역 인스턴스
operation_validator = OperationPayloadValidator()
log_validator = ScrapeLogPayloadValidator()


# 편의 함수들
def validate_operation_payload(payload: Dict[str, Any]) -> Dict[str, Any]:
    """작업 생성 요청 검증 (편의 함수)"""
    return operation_validator.validate(payload)


def is_valid_url(url: Any) -> bool:
    """URL 형식 확인 (편의 함수)"""
    result = ValidationResult()
    return URLValidator().validate_url(url, result) is not None


def validate_log_payload(payload: Dict[str, Any], partial: bool = False) -> Dict[str, Any]:
    """스크래핑 로그 요청 검증 (편의 함수)"""
    return log_validator.validate(payload, partial)
