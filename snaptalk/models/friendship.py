"""ORM model representing a mutual friendship between two users."""
from __future__ import annotations

import uuid

from sqlalchemy import CheckConstraint, Column, DateTime, ForeignKey, UniqueConstraint
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from snaptalk.database import Base
from .base import utcnow


def ordered_pair(a: uuid.UUID, b: uuid.UUID) -> tuple[uuid.UUID, uuid.UUID]:
    """Return the canonical (smaller, larger) ordering used to key a pair."""

    return (a, b) if str(a) < str(b) else (b, a)


class Friendship(Base):
    """One row per unordered pair; both users see each other as friends through it."""

    __tablename__ = "friendships"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    user_a_id = Column(UUID(as_uuid=True), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    user_b_id = Column(UUID(as_uuid=True), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    created_at = Column(DateTime(timezone=True), default=utcnow, server_default=func.now(), nullable=False)

    user_a = relationship("User", foreign_keys=[user_a_id], back_populates="friendships_a")
    user_b = relationship("User", foreign_keys=[user_b_id], back_populates="friendships_b")

    __table_args__ = (
        UniqueConstraint("user_a_id", "user_b_id", name="uq_friendship_pair"),
        CheckConstraint("user_a_id <> user_b_id", name="ck_friendship_distinct"),
    )

    def other(self, user_id: uuid.UUID):
        """Return the friend on the opposite side of ``user_id``."""

        return self.user_b if self.user_a_id == user_id else self.user_a


__all__ = ["Friendship", "ordered_pair"]
