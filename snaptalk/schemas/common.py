"""Shared response envelope and nested user schemas."""
from __future__ import annotations

import math
from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict


class Envelope(BaseModel):
    """Uniform success wrapper returned by every endpoint."""

    success: bool = True
    message: str | None = None


class ErrorEnvelope(Envelope):
    success: bool = False
    errors: list[dict[str, str]] | None = None


class Pagination(BaseModel):
    current: int
    pages: int
    total: int

    @classmethod
    def build(cls, *, page: int, limit: int, total: int) -> "Pagination":
        return cls(current=page, pages=math.ceil(total / limit) if limit else 0, total=total)


class UserSummary(BaseModel):
    """Public projection of a user embedded in posts, messages and friend lists."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    username: str
    display_name: str | None = None
    avatar_url: str | None = None
    bio: str | None = None
    is_online: bool = False
    last_seen_at: datetime | None = None


__all__ = ["Envelope", "ErrorEnvelope", "Pagination", "UserSummary"]
