"""Schemas used by messaging endpoints and socket payloads."""
from __future__ import annotations

from datetime import datetime
from typing import Literal
from uuid import UUID

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator

from .common import Envelope, Pagination, UserSummary

MessageType = Literal["text", "image", "video", "file"]


class MessageSendRequest(BaseModel):
    """Payload accepted by both the REST send endpoint and the socket ``sendMessage`` event."""

    model_config = ConfigDict(populate_by_name=True)

    receiver: UUID = Field(..., validation_alias=AliasChoices("receiver", "receiverId", "receiver_id"))
    content: str = Field(..., max_length=1000)
    message_type: MessageType = Field("text", validation_alias=AliasChoices("message_type", "messageType"))
    file_url: str | None = Field(None, max_length=1024, validation_alias=AliasChoices("file_url", "fileUrl"))
    client_id: str | None = Field(
        None,
        max_length=64,
        validation_alias=AliasChoices("client_id", "clientId"),
        description="Sender-chosen id; resending the same id returns the stored message",
    )

    @field_validator("content")
    @classmethod
    def _not_blank(cls, value: str) -> str:
        text = value.strip()
        if not text:
            raise ValueError("Message content is required")
        return text


class MessageResponse(BaseModel):
    id: UUID
    sender: UserSummary
    receiver: UserSummary
    content: str
    message_type: str
    file_url: str | None = None
    client_id: str | None = None
    is_read: bool
    read_at: datetime | None = None
    created_at: datetime


class MessageEnvelope(Envelope):
    data: MessageResponse


class MessageHistoryResponse(Envelope):
    messages: list[MessageResponse]
    pagination: Pagination


class ConversationSummary(BaseModel):
    user: UserSummary
    last_message: MessageResponse
    unread_count: int


class ConversationListResponse(Envelope):
    conversations: list[ConversationSummary]


class UnreadCountResponse(Envelope):
    unread_count: int


__all__ = [
    "MessageType",
    "MessageSendRequest",
    "MessageResponse",
    "MessageEnvelope",
    "MessageHistoryResponse",
    "ConversationSummary",
    "ConversationListResponse",
    "UnreadCountResponse",
]
