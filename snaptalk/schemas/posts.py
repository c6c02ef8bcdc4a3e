"""Pydantic schemas for post resources."""
from __future__ import annotations

from datetime import datetime
from typing import Literal
from uuid import UUID

from pydantic import BaseModel, Field, field_validator

from .common import Envelope, Pagination, UserSummary

Privacy = Literal["public", "friends", "private"]


class MediaItem(BaseModel):
    url: str
    media_type: Literal["image", "video"]


class LikeEntry(BaseModel):
    user: UserSummary
    created_at: datetime


class CommentResponse(BaseModel):
    id: UUID
    user: UserSummary
    content: str
    created_at: datetime


class PostResponse(BaseModel):
    """Serialized representation of a persisted post."""

    id: UUID
    author: UserSummary
    content: str | None = None
    privacy: Privacy
    media: list[MediaItem] = Field(default_factory=list)
    tagged_users: list[UserSummary] = Field(default_factory=list)
    likes: list[LikeEntry] = Field(default_factory=list)
    like_count: int = 0
    comments: list[CommentResponse] = Field(default_factory=list)
    comment_count: int = 0
    viewer_has_liked: bool = False
    created_at: datetime
    updated_at: datetime | None = None


class PostEnvelope(Envelope):
    post: PostResponse


class PostListResponse(Envelope):
    """Envelope used when returning a page of posts."""

    posts: list[PostResponse]
    pagination: Pagination


class LikeToggleResponse(Envelope):
    liked: bool
    likes: list[LikeEntry]
    like_count: int


class CommentCreate(BaseModel):
    content: str = Field(..., max_length=500)

    @field_validator("content")
    @classmethod
    def _not_blank(cls, value: str) -> str:
        text = value.strip()
        if not text:
            raise ValueError("Comment content is required")
        return text


class CommentEnvelope(Envelope):
    comment: CommentResponse
    comment_count: int


__all__ = [
    "Privacy",
    "MediaItem",
    "LikeEntry",
    "CommentResponse",
    "PostResponse",
    "PostEnvelope",
    "PostListResponse",
    "LikeToggleResponse",
    "CommentCreate",
    "CommentEnvelope",
]
