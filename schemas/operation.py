"""Pydantic schemas for scraping operation requests."""

from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """camelCase JSON 필드를 받는 기본 스키마"""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_payload(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_unset=True)


class OperationConfig(CamelModel):
    """Per-operation fetch configuration."""

    use_puppeteer: Optional[bool] = None
    timeout: Optional[int] = None
    wait_time: Optional[int] = None


class OperationCreate(CamelModel):
    """Operation submission body."""

    url: str
    seller: str
    type: Optional[str] = None
    category: Optional[str] = None
    config: Optional[OperationConfig] = None
    notes: Optional[str] = None
    tags: Optional[list[str]] = None
    max_retries: Optional[int] = None


class OperationBatchCreate(BaseModel):
    """Batch submission body; items are validated one by one."""

    operations: list[dict[str, Any]] = Field(min_length=1, max_length=100)


class ProgressUpdate(BaseModel):
    current: int = Field(ge=0)
    total: int = Field(ge=0)


class OperationUpdate(CamelModel):
    """Operation update body."""

    status: Optional[str] = None
    progress: Optional[ProgressUpdate] = None
    error_message: Optional[str] = None
    error_details: Optional[Any] = None
    notes: Optional[str] = None
    tags: Optional[list[str]] = None


class OperationComplete(CamelModel):
    """Manual completion body."""

    scraped_data: Optional[Any] = None
    total_products: Optional[int] = Field(default=None, ge=0)
    data_file: Optional[str] = None


class OperationFail(CamelModel):
    """Manual failure body."""

    error_message: Optional[str] = None
    error_details: Optional[dict[str, Any]] = None
