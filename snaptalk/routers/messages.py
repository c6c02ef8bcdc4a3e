"""Direct messaging API routes."""
from __future__ import annotations

from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from ..database import get_session
from ..models import Message, User
from ..schemas import (
    ConversationListResponse,
    ConversationSummary,
    Envelope,
    MessageEnvelope,
    MessageHistoryResponse,
    MessageResponse,
    MessageSendRequest,
    Pagination,
    UnreadCountResponse,
    UserSummary,
)
from ..services import (
    count_unread,
    delete_message,
    get_conversation,
    get_current_user,
    list_conversations,
    mark_message_read,
    push_message_deleted,
    push_new_message,
    send_direct_message,
)

router = APIRouter(prefix="/messages", tags=["messages"])


def to_message_response(message: Message) -> MessageResponse:
    return MessageResponse(
        id=message.id,
        sender=UserSummary.model_validate(message.sender),
        receiver=UserSummary.model_validate(message.receiver),
        content=message.content,
        message_type=message.message_type,
        file_url=message.file_url,
        client_id=message.client_id,
        is_read=message.is_read,
        read_at=message.read_at,
        created_at=message.created_at,
    )


@router.post("", response_model=MessageEnvelope, status_code=status.HTTP_201_CREATED)
async def send_message_endpoint(
    payload: MessageSendRequest,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_session),
) -> MessageEnvelope:
    message, created = send_direct_message(db, sender_id=current_user.id, payload=payload)
    response = to_message_response(message)
    if created:
        await push_new_message(response.model_dump(mode="json"))
    return MessageEnvelope(message="Message sent successfully", data=response)


@router.get("/conversations", response_model=ConversationListResponse)
async def conversations_endpoint(
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_session),
) -> ConversationListResponse:
    rows = list_conversations(db, user_id=current_user.id)
    return ConversationListResponse(
        conversations=[
            ConversationSummary(
                user=UserSummary.model_validate(row.user),
                last_message=to_message_response(row.last_message),
                unread_count=row.unread_count,
            )
            for row in rows
        ]
    )


@router.get("/unread/count", response_model=UnreadCountResponse)
async def unread_count_endpoint(
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_session),
) -> UnreadCountResponse:
    return UnreadCountResponse(unread_count=count_unread(db, user_id=current_user.id))


@router.get("/{user_id}", response_model=MessageHistoryResponse)
async def conversation_endpoint(
    user_id: UUID,
    page: int = Query(1, ge=1),
    limit: int = Query(50, ge=1, le=100),
    after: Optional[UUID] = Query(None, description="Only return messages newer than this message id"),
    mark_read: bool = Query(True),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_session),
) -> MessageHistoryResponse:
    messages, total = get_conversation(
        db,
        user_id=current_user.id,
        other_id=user_id,
        page=page,
        limit=limit,
        after=after,
        mark_read=mark_read,
    )
    return MessageHistoryResponse(
        messages=[to_message_response(message) for message in messages],
        pagination=Pagination.build(page=1 if after else page, limit=limit, total=total),
    )


@router.put("/{message_id}/read", response_model=MessageEnvelope)
async def mark_read_endpoint(
    message_id: UUID,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_session),
) -> MessageEnvelope:
    message = mark_message_read(db, message_id=message_id, user_id=current_user.id)
    return MessageEnvelope(message="Message marked as read", data=to_message_response(message))


@router.delete("/{message_id}", response_model=Envelope)
async def delete_message_endpoint(
    message_id: UUID,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_session),
) -> Envelope:
    message = delete_message(db, message_id=message_id, user_id=current_user.id)
    await push_message_deleted(message_id=message_id, sender_id=message.sender_id, receiver_id=message.receiver_id)
    return Envelope(message="Message deleted successfully")


__all__ = ["router", "to_message_response"]
