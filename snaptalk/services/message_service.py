"""Direct messaging services backed by SQLAlchemy.

Both the REST endpoint and the socket ``sendMessage`` event persist through
:func:`send_direct_message`; socket pushes only announce rows written here.
"""
from __future__ import annotations

import logging
from typing import NamedTuple
from uuid import UUID

from fastapi import HTTPException, status
from sqlalchemy import and_, case, func, or_, select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session, aliased, selectinload

from ..models import Message, User
from ..models.base import utcnow
from ..schemas import MessageSendRequest
from .friendship_service import require_friendship

logger = logging.getLogger(__name__)

_MESSAGE_LOAD_OPTIONS = (selectinload(Message.sender), selectinload(Message.receiver))


class ConversationRow(NamedTuple):
    user: User
    last_message: Message
    unread_count: int


def _pair_clause(user_id: UUID, other_id: UUID):
    return or_(
        and_(Message.sender_id == user_id, Message.receiver_id == other_id),
        and_(Message.sender_id == other_id, Message.receiver_id == user_id),
    )


def _load_message(db: Session, message_id: UUID) -> Message | None:
    stmt = select(Message).where(Message.id == message_id).options(*_MESSAGE_LOAD_OPTIONS)
    return db.scalar(stmt)


def _find_by_client_id(db: Session, sender_id: UUID, client_id: str) -> Message | None:
    stmt = (
        select(Message)
        .where(Message.sender_id == sender_id, Message.client_id == client_id)
        .options(*_MESSAGE_LOAD_OPTIONS)
    )
    return db.scalar(stmt)


def send_direct_message(db: Session, *, sender_id: UUID, payload: MessageSendRequest) -> tuple[Message, bool]:
    """Persist a direct message; returns ``(message, created)``.

    A repeated ``client_id`` from the same sender returns the stored message
    with ``created`` false instead of writing a duplicate.
    """

    if payload.receiver == sender_id:
        if db.get(User, sender_id) is None:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")
    else:
        require_friendship(db, user_id=sender_id, friend_id=payload.receiver)

    if payload.client_id:
        existing = _find_by_client_id(db, sender_id, payload.client_id)
        if existing is not None:
            return existing, False

    message = Message(
        sender_id=sender_id,
        receiver_id=payload.receiver,
        content=payload.content,
        message_type=payload.message_type,
        file_url=payload.file_url,
        client_id=payload.client_id,
    )

    try:
        db.add(message)
        db.commit()
    except IntegrityError as exc:
        db.rollback()
        if payload.client_id:
            existing = _find_by_client_id(db, sender_id, payload.client_id)
            if existing is not None:
                return existing, False
        logger.exception("Failed to persist message from %s", sender_id)
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Failed to send message") from exc
    except SQLAlchemyError as exc:
        db.rollback()
        logger.exception("Failed to persist message from %s", sender_id)
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Failed to send message") from exc

    logger.info("Message %s sent %s -> %s", message.id, sender_id, payload.receiver)
    return _load_message(db, message.id) or message, True


def list_conversations(db: Session, *, user_id: UUID) -> list[ConversationRow]:
    """Latest message and unread count per counterparty, most recent first."""

    other_id = case((Message.sender_id == user_id, Message.receiver_id), else_=Message.sender_id)
    ranked = (
        select(
            Message.seq.label("message_seq"),
            other_id.label("other_id"),
            func.row_number()
            .over(partition_by=other_id, order_by=(Message.created_at.desc(), Message.seq.desc()))
            .label("position"),
        )
        .where(or_(Message.sender_id == user_id, Message.receiver_id == user_id))
        .subquery()
    )
    unread = (
        select(Message.sender_id.label("other_id"), func.count(Message.id).label("unread_count"))
        .where(Message.receiver_id == user_id, Message.is_read.is_(False))
        .group_by(Message.sender_id)
        .subquery()
    )
    counterparty = aliased(User)

    stmt = (
        select(Message, counterparty, func.coalesce(unread.c.unread_count, 0))
        .join(ranked, ranked.c.message_seq == Message.seq)
        .join(counterparty, counterparty.id == ranked.c.other_id)
        .outerjoin(unread, unread.c.other_id == ranked.c.other_id)
        .where(ranked.c.position == 1)
        .options(*_MESSAGE_LOAD_OPTIONS)
        .order_by(Message.created_at.desc(), Message.seq.desc())
    )
    return [
        ConversationRow(user=user, last_message=message, unread_count=int(count or 0))
        for message, user, count in db.execute(stmt).all()
    ]


def mark_conversation_read(db: Session, *, user_id: UUID, other_id: UUID) -> int:
    """Mark every unread message ``other_id`` sent to ``user_id`` as read."""

    stmt = (
        update(Message)
        .where(Message.sender_id == other_id, Message.receiver_id == user_id, Message.is_read.is_(False))
        .values(is_read=True, read_at=utcnow())
        .execution_options(synchronize_session=False)
    )
    try:
        result = db.execute(stmt)
        db.commit()
    except SQLAlchemyError as exc:
        db.rollback()
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Failed to mark messages read") from exc
    return result.rowcount or 0


def get_conversation(
    db: Session,
    *,
    user_id: UUID,
    other_id: UUID,
    page: int = 1,
    limit: int = 50,
    after: UUID | None = None,
    mark_read: bool = True,
) -> tuple[list[Message], int]:
    """Return one page of the conversation, oldest first, and the matching total.

    Pages count back from the newest message. With ``after`` only messages
    newer than that message are returned, starting from the oldest of them.
    """

    if db.get(User, other_id) is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")

    if mark_read:
        mark_conversation_read(db, user_id=user_id, other_id=other_id)

    stmt = select(Message).where(_pair_clause(user_id, other_id))
    if after is not None:
        anchor = db.scalar(select(Message).where(Message.id == after))
        if anchor is None or anchor.other_party(user_id) != other_id or user_id not in (anchor.sender_id, anchor.receiver_id):
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Message not found")
        stmt = stmt.where(Message.seq > anchor.seq)

    total = db.scalar(select(func.count()).select_from(stmt.subquery())) or 0
    stmt = stmt.options(*_MESSAGE_LOAD_OPTIONS).execution_options(populate_existing=True)

    if after is not None:
        rows = db.scalars(stmt.order_by(Message.created_at.asc(), Message.seq.asc()).limit(limit))
        return list(rows), int(total)

    rows = db.scalars(
        stmt.order_by(Message.created_at.desc(), Message.seq.desc()).offset((page - 1) * limit).limit(limit)
    )
    return list(reversed(list(rows))), int(total)


def mark_message_read(db: Session, *, message_id: UUID, user_id: UUID) -> Message:
    message = _load_message(db, message_id)
    if message is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Message not found")
    if message.receiver_id != user_id:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Not authorized")
    if message.is_read:
        return message

    message.is_read = True
    message.read_at = utcnow()
    try:
        db.commit()
    except SQLAlchemyError as exc:
        db.rollback()
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Failed to mark message read") from exc
    return message


def delete_message(db: Session, *, message_id: UUID, user_id: UUID) -> Message:
    """Hard-delete a message sent by ``user_id``; returns the detached row."""

    message = db.scalar(select(Message).where(Message.id == message_id))
    if message is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Message not found")
    if message.sender_id != user_id:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="You can only delete your own messages")

    try:
        db.delete(message)
        db.commit()
    except SQLAlchemyError as exc:
        db.rollback()
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Failed to delete message") from exc

    logger.info("Message %s deleted by %s", message_id, user_id)
    return message


def count_unread(db: Session, *, user_id: UUID) -> int:
    stmt = select(func.count(Message.id)).where(Message.receiver_id == user_id, Message.is_read.is_(False))
    return int(db.scalar(stmt) or 0)


__all__ = [
    "ConversationRow",
    "send_direct_message",
    "list_conversations",
    "mark_conversation_read",
    "get_conversation",
    "mark_message_read",
    "delete_message",
    "count_unread",
]
