"""Persisted online flag and last-seen bookkeeping."""
from __future__ import annotations

import logging
from uuid import UUID

from fastapi import HTTPException, status
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..models import User
from ..models.base import utcnow

logger = logging.getLogger(__name__)


def set_presence(db: Session, *, user_id: UUID, online: bool) -> User | None:
    """Flip ``is_online`` and stamp ``last_seen_at``; returns ``None`` for unknown users."""

    user = db.get(User, user_id)
    if user is None:
        return None

    user.is_online = online
    user.last_seen_at = utcnow()
    try:
        db.commit()
    except SQLAlchemyError as exc:
        db.rollback()
        logger.exception("Failed to update presence for %s", user_id)
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Failed to update presence") from exc

    logger.debug("User %s is now %s", user_id, "online" if online else "offline")
    return user


__all__ = ["set_presence"]
