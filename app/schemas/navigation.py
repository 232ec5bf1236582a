from datetime import datetime
from typing import Any

from pydantic import BaseModel


class NavigationStateIn(BaseModel):
    page: str
    section: str | None = None
    filters: dict[str, Any] = {}


class NavigationStateOut(BaseModel):
    version: int
    page: str
    section: str | None = None
    filters: dict[str, Any] = {}
    updated_at: datetime | None = None
