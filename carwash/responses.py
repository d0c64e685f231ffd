from __future__ import annotations

import math
from datetime import UTC, datetime
from typing import Any, Generic, TypeVar

from pydantic import BaseModel, Field

T = TypeVar("T")


def _now() -> datetime:
    return datetime.now(UTC)


class Envelope(BaseModel, Generic[T]):
    """Success wrapper returned by every endpoint."""

    success: bool = True
    message: str = "Success"
    data: T | None = None
    timestamp: datetime = Field(default_factory=_now)


class ErrorEnvelope(BaseModel):
    success: bool = False
    error: str
    details: list[str] | str | None = None
    retry_after: int | None = None
    path: str | None = None
    timestamp: datetime = Field(default_factory=_now)


class Pagination(BaseModel):
    page: int
    limit: int
    total: int
    total_pages: int

    @classmethod
    def build(cls, page: int, limit: int, total: int) -> Pagination:
        return cls(
            page=page,
            limit=limit,
            total=total,
            total_pages=math.ceil(total / limit) if limit else 0,
        )


class Page(BaseModel, Generic[T]):
    items: list[T]
    pagination: Pagination


def ok(data: Any = None, message: str = "Success") -> Envelope:
    return Envelope(data=data, message=message)
