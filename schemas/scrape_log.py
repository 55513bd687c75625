"""Pydantic schemas for scrape log requests."""

from datetime import datetime
from typing import Optional

from schemas.operation import CamelModel


class ScrapeLogWrite(CamelModel):
    """Scrape log create/update body.

    Required fields are checked by the log validator so that every missing
    field is reported at once.
    """

    when: Optional[datetime] = None
    platform: Optional[str] = None
    type: Optional[str] = None
    url: Optional[str] = None
    category: Optional[str] = None
    status: Optional[str] = None
    action: Optional[str] = None
    operation_id: Optional[str] = None
