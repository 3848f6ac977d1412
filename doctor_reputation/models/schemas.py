from __future__ import annotations

from enum import Enum
from typing import Any

from pydantic import BaseModel, Field


class LookupMode(str, Enum):
    SEARCH = "search"
    SPECIALITY = "speciality"
    REPORT = "report"


# --- Requests ---


class LookupRequest(BaseModel):
    mode: LookupMode
    source: str | None = None
    query: str | None = None
    identifier: str | None = None
    review_limit: int | None = Field(default=None, ge=1)


# --- Responses ---


class LookupResponse(BaseModel):
    success: bool
    source: str | None = None
    results: list[dict[str, Any]] | None = None
    report: dict[str, Any] | None = None
    cached: bool = False
    error_kind: str | None = None
    message: str | None = None
    cause: str | None = None


class SourceInfo(BaseModel):
    identifier: str
    name: str
    priority: int
    active: bool
    capabilities: list[str]


class SourcesResponse(BaseModel):
    sources: list[SourceInfo]
