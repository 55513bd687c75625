"""Pydantic schemas for job processor control requests."""

from pydantic import Field

from schemas.operation import CamelModel


class IntervalUpdate(CamelModel):
    interval_ms: int


class CleanupRequest(CamelModel):
    days_old: int = Field(default=30, ge=0)
