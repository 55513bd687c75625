"""
Scrape log model: append-only audit trail of operation status transitions.
"""

from datetime import datetime
from typing import Any, Dict, Optional

from sqlalchemy import DateTime, Index, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base, BaseModel, OperationStatus, isoformat, utc_now


class ScrapeLog(Base, BaseModel):
    """스크래핑 로그 모델"""

    __tablename__ = "scrape_logs"

    when: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utc_now
    )

    platform: Mapped[str] = mapped_column(String(50), nullable=False)
    type: Mapped[str] = mapped_column(String(20), nullable=False)
    url: Mapped[str] = mapped_column(Text, nullable=False)
    category: Mapped[Optional[str]] = mapped_column(String(200))

    status: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default=OperationStatus.PENDING.value
    )
    action: Mapped[str] = mapped_column(String(100), nullable=False, default="Manual")

    # 작업에 대한 약한 참조 (FK 없음)
    operation_id: Mapped[Optional[str]] = mapped_column(String(36))

    # 인덱스
    __table_args__ = (
        Index('idx_scrape_logs_when', 'when'),
        Index('idx_scrape_logs_platform', 'platform'),
        Index('idx_scrape_logs_status', 'status'),
        Index('idx_scrape_logs_operation_id', 'operation_id'),
    )

    def to_dict(self) -> Dict[str, Any]:
        """API 응답용 camelCase 딕셔너리"""
        return {
            "id": self.id,
            "when": isoformat(self.when),
            "platform": self.platform,
            "type": self.type,
            "url": self.url,
            "category": self.category,
            "status": self.status,
            "action": self.action,
            "operationId": self.operation_id,
            "createdAt": isoformat(self.created_at),
            "updatedAt": isoformat(self.updated_at),
        }

    def __repr__(self) -> str:
        return f"<ScrapeLog(operation_id={self.operation_id}, status={self.status}, when={self.when})>"
