"""Business logic for friend requests and friendships.

Relationship state is kept in pair-keyed rows: a ``FriendRequest`` exists only
while a request is pending and a ``Friendship`` exists once it is accepted.
Every transition touches both rows inside one commit, so a pair can never be
pending and friends at the same time.
"""
from __future__ import annotations

import logging
from typing import Any, cast
from uuid import UUID

from fastapi import HTTPException, status
from sqlalchemy import and_, case, or_, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session, selectinload

from ..models import FriendRequest, Friendship, User, ordered_pair

logger = logging.getLogger(__name__)

SUGGESTION_LIMIT = 5


def _existing_friendship(db: Session, user_id: UUID, friend_id: UUID) -> Friendship | None:
    first, second = ordered_pair(user_id, friend_id)
    stmt = select(Friendship).where(and_(Friendship.user_a_id == first, Friendship.user_b_id == second))
    return db.scalars(stmt).first()


def _pending_request(db: Session, sender_id: UUID, recipient_id: UUID) -> FriendRequest | None:
    stmt = select(FriendRequest).where(FriendRequest.sender_id == sender_id, FriendRequest.recipient_id == recipient_id)
    return db.scalars(stmt).first()


def _get_user_or_404(db: Session, user_id: UUID) -> User:
    user = db.get(User, user_id)
    if user is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")
    return user


def _commit(db: Session, failure_detail: str) -> None:
    try:
        db.commit()
    except IntegrityError as exc:
        # Lost a race against a concurrent request touching the same pair.
        db.rollback()
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Friendship state changed, please retry") from exc
    except SQLAlchemyError as exc:
        db.rollback()
        logger.exception("Friendship transition failed")
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=failure_detail) from exc


def friend_ids_query(user_id: UUID):
    """Select statement yielding the ids of every friend of ``user_id``."""

    other = case((Friendship.user_a_id == user_id, Friendship.user_b_id), else_=Friendship.user_a_id)
    return select(other).where(or_(Friendship.user_a_id == user_id, Friendship.user_b_id == user_id))


def are_friends(db: Session, user_id: UUID, other_id: UUID) -> bool:
    if user_id == other_id:
        return False
    return _existing_friendship(db, user_id, other_id) is not None


def list_friends(db: Session, *, user_id: UUID) -> list[User]:
    stmt = (
        select(Friendship)
        .where(or_(Friendship.user_a_id == user_id, Friendship.user_b_id == user_id))
        .options(selectinload(Friendship.user_a), selectinload(Friendship.user_b))
        .order_by(Friendship.created_at.asc())
    )
    return [friendship.other(user_id) for friendship in db.scalars(stmt)]


def list_friend_requests(db: Session, *, user_id: UUID) -> tuple[list[FriendRequest], list[FriendRequest]]:
    """Return ``(received, sent)`` pending requests, oldest first."""

    received_stmt = (
        select(FriendRequest)
        .where(FriendRequest.recipient_id == user_id)
        .options(selectinload(FriendRequest.sender))
        .order_by(FriendRequest.created_at.asc())
    )
    sent_stmt = (
        select(FriendRequest)
        .where(FriendRequest.sender_id == user_id)
        .options(selectinload(FriendRequest.recipient))
        .order_by(FriendRequest.created_at.asc())
    )
    return list(db.scalars(received_stmt)), list(db.scalars(sent_stmt))


def send_friend_request(db: Session, *, sender_id: UUID, recipient_id: UUID) -> FriendRequest:
    if recipient_id == sender_id:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="You cannot send a friend request to yourself")

    _get_user_or_404(db, recipient_id)

    if _existing_friendship(db, sender_id, recipient_id):
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="You are already friends with this user")
    if _pending_request(db, sender_id, recipient_id):
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Friend request already sent")
    if _pending_request(db, recipient_id, sender_id):
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="This user has already sent you a friend request")

    request = FriendRequest(sender_id=sender_id, recipient_id=recipient_id)
    db.add(request)
    _commit(db, "Failed to send friend request")
    db.refresh(request)
    logger.info("Friend request %s -> %s", sender_id, recipient_id)
    return request


def accept_friend_request(db: Session, *, recipient_id: UUID, sender_id: UUID) -> Friendship:
    """Accept the pending request ``sender_id`` sent to ``recipient_id``."""

    _get_user_or_404(db, sender_id)
    request = _pending_request(db, sender_id, recipient_id)
    if request is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="No friend request found from this user")

    user_a_id, user_b_id = ordered_pair(sender_id, recipient_id)
    friendship = Friendship(user_a_id=user_a_id, user_b_id=user_b_id)
    db.delete(request)
    db.add(friendship)
    _commit(db, "Failed to accept friend request")
    db.refresh(friendship)
    logger.info("Friendship created between %s and %s", sender_id, recipient_id)
    return friendship


def decline_friend_request(db: Session, *, recipient_id: UUID, sender_id: UUID) -> None:
    _get_user_or_404(db, sender_id)
    request = _pending_request(db, sender_id, recipient_id)
    if request is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="No friend request found from this user")
    db.delete(request)
    _commit(db, "Failed to decline friend request")


def cancel_friend_request(db: Session, *, sender_id: UUID, recipient_id: UUID) -> None:
    _get_user_or_404(db, recipient_id)
    request = _pending_request(db, sender_id, recipient_id)
    if request is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="No pending friend request to this user")
    db.delete(request)
    _commit(db, "Failed to cancel friend request")


def remove_friend(db: Session, *, user_id: UUID, friend_id: UUID) -> None:
    _get_user_or_404(db, friend_id)
    friendship = _existing_friendship(db, user_id, friend_id)
    if friendship is None:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="You are not friends with this user")
    db.delete(friendship)
    _commit(db, "Failed to remove friend")


def list_suggestions(db: Session, *, user_id: UUID, limit: int = SUGGESTION_LIMIT) -> list[User]:
    """Users unrelated to ``user_id``: not self, not friends, no pending request either way."""

    excluded: set[Any] = {user_id}
    excluded.update(db.scalars(friend_ids_query(user_id)))
    excluded.update(db.scalars(select(FriendRequest.recipient_id).where(FriendRequest.sender_id == user_id)))
    excluded.update(db.scalars(select(FriendRequest.sender_id).where(FriendRequest.recipient_id == user_id)))

    stmt = select(User).where(User.id.not_in(list(excluded))).order_by(User.created_at.desc()).limit(limit)
    return list(db.scalars(stmt))


def require_friendship(db: Session, *, user_id: UUID, friend_id: UUID) -> User:
    """Return the friend record or raise when the pair is not befriended."""

    friend = _get_user_or_404(db, friend_id)
    if not are_friends(db, user_id, cast(UUID, friend.id)):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="You can only send messages to friends")
    return friend


__all__ = [
    "are_friends",
    "friend_ids_query",
    "list_friends",
    "list_friend_requests",
    "send_friend_request",
    "accept_friend_request",
    "decline_friend_request",
    "cancel_friend_request",
    "remove_friend",
    "list_suggestions",
    "require_friendship",
]
