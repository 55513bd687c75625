"""
Scraping operation model: one unit of scraping work and its lifecycle state.
"""

from datetime import datetime
from typing import Any, Dict, List, Optional

from sqlalchemy import Boolean, DateTime, Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from .base import (
    ACTIVE_STATUSES,
    Base,
    BaseModel,
    JSONType,
    OperationStatus,
    as_utc,
    isoformat,
)


DEFAULT_MAX_RETRIES = 3
DEFAULT_TIMEOUT_MS = 30000
DEFAULT_WAIT_TIME_MS = 3000


def compute_duration(start_time: Optional[datetime], end_time: Optional[datetime]) -> int:
    """시작/종료 시각으로 소요 시간(ms) 계산, 둘 중 하나라도 없으면 0"""
    start_time = as_utc(start_time)
    end_time = as_utc(end_time)
    if start_time is None or end_time is None:
        return 0
    return int(round((end_time - start_time).total_seconds() * 1000))


def compute_percentage(current: int, total: int) -> int:
    """진행률 계산 (total이 0이면 0, .5는 올림)"""
    if total > 0:
        return (current * 200 + total) // (total * 2)
    return 0


class ScrapingOperation(Base, BaseModel):
    """스크래핑 작업 모델"""

    __tablename__ = "scraping_operations"

    # 대상 정보
    url: Mapped[str] = mapped_column(Text, nullable=False)
    seller: Mapped[str] = mapped_column(String(50), nullable=False)
    type: Mapped[str] = mapped_column(String(20), nullable=False)
    category: Mapped[Optional[str]] = mapped_column(String(200))

    # 상태
    status: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default=OperationStatus.PENDING.value,
        comment="pending, in_progress, success, failed, cancelled"
    )

    # 시간 정보
    attempt_time: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))
    start_time: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))
    end_time: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))
    duration: Mapped[int] = mapped_column(Integer, default=0, comment="소요 시간 (밀리초)")

    # 결과 집계
    total_products: Mapped[int] = mapped_column(Integer, default=0)
    scraped_products: Mapped[int] = mapped_column(Integer, default=0)
    failed_products: Mapped[int] = mapped_column(Integer, default=0)
    progress_current: Mapped[int] = mapped_column(Integer, default=0)
    progress_total: Mapped[int] = mapped_column(Integer, default=0)
    progress_percentage: Mapped[int] = mapped_column(Integer, default=0)

    # 실패 정보
    error_message: Mapped[Optional[str]] = mapped_column(Text)
    error_details: Mapped[Optional[dict]] = mapped_column(JSONType)
    retry_count: Mapped[int] = mapped_column(Integer, default=0)
    max_retries: Mapped[int] = mapped_column(Integer, default=DEFAULT_MAX_RETRIES)

    # 수집 설정
    use_browser: Mapped[bool] = mapped_column(Boolean, default=True)
    timeout: Mapped[int] = mapped_column(Integer, default=DEFAULT_TIMEOUT_MS)
    wait_time: Mapped[int] = mapped_column(Integer, default=DEFAULT_WAIT_TIME_MS)

    # 결과 데이터
    scraped_data: Mapped[Optional[Any]] = mapped_column(JSONType)
    data_file: Mapped[Optional[str]] = mapped_column(Text)

    # 부가 정보
    notes: Mapped[Optional[str]] = mapped_column(Text)
    tags: Mapped[List[str]] = mapped_column(JSONType, default=list)

    # 요청 메타데이터
    ip_address: Mapped[Optional[str]] = mapped_column(String(64))
    user_agent: Mapped[Optional[str]] = mapped_column(Text)
    request_headers: Mapped[Optional[dict]] = mapped_column(JSONType)

    # 인덱스
    __table_args__ = (
        Index('idx_scraping_operations_url', 'url'),
        Index('idx_scraping_operations_status', 'status'),
        Index('idx_scraping_operations_seller', 'seller'),
        Index('idx_scraping_operations_status_attempt', 'status', 'attempt_time'),
        Index('idx_scraping_operations_created_at', 'created_at'),
    )

    @property
    def is_active(self) -> bool:
        """pending 또는 in_progress 여부"""
        return self.status in ACTIVE_STATUSES

    @property
    def retries_exhausted(self) -> bool:
        """재시도 한도 소진 여부 (failed의 종료 하위 상태)"""
        return (
            self.status == OperationStatus.FAILED.value
            and (self.retry_count or 0) >= (self.max_retries or 0)
        )

    @property
    def is_terminal(self) -> bool:
        """종료 상태 여부"""
        if self.status in (OperationStatus.SUCCESS.value, OperationStatus.CANCELLED.value):
            return True
        return self.retries_exhausted

    def to_dict(self, include_payload: bool = True) -> Dict[str, Any]:
        """API 응답용 camelCase 딕셔너리"""
        data = {
            "id": self.id,
            "url": self.url,
            "seller": self.seller,
            "type": self.type,
            "category": self.category,
            "status": self.status,
            "attemptTime": isoformat(self.attempt_time),
            "startTime": isoformat(self.start_time),
            "endTime": isoformat(self.end_time),
            "duration": self.duration or 0,
            "totalProducts": self.total_products or 0,
            "scrapedProducts": self.scraped_products or 0,
            "failedProducts": self.failed_products or 0,
            "progress": {
                "current": self.progress_current or 0,
                "total": self.progress_total or 0,
                "percentage": self.progress_percentage or 0,
            },
            "errorMessage": self.error_message,
            "retryCount": self.retry_count or 0,
            "maxRetries": self.max_retries,
            "retriesExhausted": self.retries_exhausted,
            "config": {
                "usePuppeteer": self.use_browser,
                "timeout": self.timeout,
                "waitTime": self.wait_time,
            },
            "dataFile": self.data_file,
            "notes": self.notes,
            "tags": list(self.tags or []),
            "ipAddress": self.ip_address,
            "userAgent": self.user_agent,
            "createdAt": isoformat(self.created_at),
            "updatedAt": isoformat(self.updated_at),
        }

        if include_payload:
            data["scrapedData"] = self.scraped_data
            data["errorDetails"] = self.error_details

        return data

    def __repr__(self) -> str:
        return f"<ScrapingOperation(id={self.id}, seller={self.seller}, status={self.status})>"
