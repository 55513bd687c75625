"""
Base model classes and enums for the Scrape Hub operation store.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Optional
from uuid import uuid4

from sqlalchemy import JSON, DateTime, String
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, declarative_base, mapped_column


class Seller(str, Enum):
    """지원하는 판매처 식별자"""
    AMAZON = "amazon"
    FLIPKART = "flipkart"
    TATACLIQ = "tatacliq"
    MYNTRA = "myntra"
    JIOMART = "jiomart"
    AJIO = "ajio"
    CHROMA = "chroma"
    VIJAYSALES = "vijaysales"
    NYKAA = "nykaa"
    ONE_MG = "1mg"
    PHARMEASY = "pharmeasy"
    NETMEDS = "netmeds"
    BLINKIT = "blinkit"
    SWIGGY_INSTAMART = "swiggy-instamart"
    ZEPTO = "zepto"
    BIGBASKET = "bigbasket"
    PEPPERFRY = "pepperfry"
    HOMECENTRE = "homecentre"
    SHOPPERSSTOP = "shoppersstop"
    URBANIC = "urbanic"
    IKEA = "ikea"
    BIBA = "biba"
    LIFESTYLESTORES = "lifestylestores"
    MEDPLUSMART = "medplusmart"
    TRUEMEDS = "truemeds"
    APOLLOPHARMACY = "apollopharmacy"
    WELLNESSFOREVER = "wellnessforever"
    DMART = "dmart"
    LICIOUS = "licious"


class OperationType(str, Enum):
    """수집 작업 타입"""
    PRODUCT = "product"         # 단일 상품 페이지
    CATEGORY = "category"       # 카테고리(목록) 페이지


class OperationStatus(str, Enum):
    """작업 상태"""
    PENDING = "pending"             # 대기 중
    IN_PROGRESS = "in_progress"     # 실행 중
    SUCCESS = "success"             # 완료
    FAILED = "failed"               # 실패 (재시도 가능)
    CANCELLED = "cancelled"         # 관리자 취소


# URL당 하나만 존재할 수 있는 비종료 상태
ACTIVE_STATUSES = (OperationStatus.PENDING.value, OperationStatus.IN_PROGRESS.value)

# 정리(cleanup) 대상 상태
CLEANUP_STATUSES = (OperationStatus.SUCCESS.value, OperationStatus.FAILED.value)

SELLER_VALUES = frozenset(seller.value for seller in Seller)


def utc_now() -> datetime:
    """현재 UTC 시각"""
    return datetime.now(timezone.utc)


def as_utc(value: Optional[datetime]) -> Optional[datetime]:
    """naive datetime을 UTC aware datetime으로 변환"""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def isoformat(value: Optional[datetime]) -> Optional[str]:
    """API 응답용 ISO 8601 문자열 (밀리초, Z 접미사)"""
    value = as_utc(value)
    if value is None:
        return None
    return value.strftime("%Y-%m-%dT%H:%M:%S.") + f"{value.microsecond // 1000:03d}Z"


# PostgreSQL에서는 JSONB, 그 외(SQLite)에서는 일반 JSON
JSONType = JSON().with_variant(JSONB(), "postgresql")


Base = declarative_base()


class BaseModel:
    """공통 기본 모델 믹스인"""

    id: Mapped[str] = mapped_column(
        String(36),
        primary_key=True,
        default=lambda: str(uuid4())
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utc_now
    )

    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utc_now,
        onupdate=utc_now
    )
