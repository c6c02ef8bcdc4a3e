"""Schemas for friend requests and friend listings."""
from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel

from .common import Envelope, UserSummary


class FriendListResponse(Envelope):
    friends: list[UserSummary]


class FriendRequestEntry(BaseModel):
    user: UserSummary
    created_at: datetime


class FriendRequestsResponse(Envelope):
    received: list[FriendRequestEntry]
    sent: list[FriendRequestEntry]


class FriendSuggestionsResponse(Envelope):
    suggestions: list[UserSummary]


__all__ = [
    "FriendListResponse",
    "FriendRequestEntry",
    "FriendRequestsResponse",
    "FriendSuggestionsResponse",
]
