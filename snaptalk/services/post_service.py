"""Business logic for posts, likes and comments."""
from __future__ import annotations

import logging
from typing import Sequence
from uuid import UUID

from fastapi import HTTPException, UploadFile, status
from fastapi.concurrency import run_in_threadpool
from sqlalchemy import and_, func, or_, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session, selectinload

from ..config import get_settings
from ..models import PRIVACY_LEVELS, Post, PostComment, PostLike, User
from .friendship_service import are_friends, friend_ids_query
from .storage_service import (
    MediaUploadError,
    StorageConfigurationError,
    StoredMedia,
    media_type_for,
    release_media,
    upload_media,
)

logger = logging.getLogger(__name__)

MAX_CONTENT_LENGTH = 2000
FRIEND_VISIBLE = ("public", "friends")

_POST_LOAD_OPTIONS = (
    selectinload(Post.author),
    selectinload(Post.tagged_users),
    selectinload(Post.likes).selectinload(PostLike.user),
    selectinload(Post.comments).selectinload(PostComment.user),
)


def _file_size(file: UploadFile) -> int:
    handle = file.file
    handle.seek(0, 2)
    size = handle.tell()
    handle.seek(0)
    return size


def _validate_uploads(files: Sequence[UploadFile]) -> None:
    settings = get_settings()
    if len(files) > settings.media_max_files:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Too many files. Maximum {settings.media_max_files} files per post.",
        )
    for file in files:
        if media_type_for(file.content_type) is None:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Please upload only images or videos")
        if _file_size(file) > settings.media_max_file_bytes:
            limit_mb = settings.media_max_file_bytes // (1024 * 1024)
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail=f"File too large. Maximum size is {limit_mb}MB.",
            )


async def _upload_all(files: Sequence[UploadFile], *, author_id: UUID) -> list[StoredMedia]:
    """Upload every file or none: a failure releases whatever was already stored."""

    stored: list[StoredMedia] = []
    try:
        for file in files:
            stored.append(await upload_media(file, folder=f"posts/{author_id}"))
    except StorageConfigurationError as exc:
        await run_in_threadpool(release_media, [item.key for item in stored])
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(exc)) from exc
    except MediaUploadError as exc:
        released = await run_in_threadpool(release_media, [item.key for item in stored])
        logger.warning("Post upload aborted after %d file(s); released %d", len(stored), released)
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    return stored


def _visible_levels(db: Session, *, viewer_id: UUID, author_id: UUID) -> tuple[str, ...]:
    if viewer_id == author_id:
        return PRIVACY_LEVELS
    if are_friends(db, viewer_id, author_id):
        return FRIEND_VISIBLE
    return ("public",)


def can_view(db: Session, post: Post, viewer_id: UUID) -> bool:
    return post.privacy in _visible_levels(db, viewer_id=viewer_id, author_id=post.user_id)


def _get_post_or_404(db: Session, post_id: UUID) -> Post:
    post = db.scalar(select(Post).where(Post.id == post_id).options(*_POST_LOAD_OPTIONS))
    if post is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Post not found")
    return post


def get_visible_post(db: Session, *, post_id: UUID, viewer_id: UUID) -> Post:
    """Return the post when ``viewer_id`` may see it; invisible posts look missing."""

    post = _get_post_or_404(db, post_id)
    if not can_view(db, post, viewer_id):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Post not found")
    return post


def _load_tagged_users(db: Session, user_ids: Sequence[UUID]) -> list[User]:
    unique_ids = list(dict.fromkeys(user_ids))
    if not unique_ids:
        return []
    users = list(db.scalars(select(User).where(User.id.in_(unique_ids))))
    if len(users) != len(unique_ids):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Tagged user not found")
    return sorted(users, key=lambda user: user.username)


async def create_post(
    db: Session,
    *,
    author_id: UUID,
    content: str | None,
    privacy: str = "friends",
    files: Sequence[UploadFile] = (),
    tagged_user_ids: Sequence[UUID] = (),
) -> Post:
    """Validate, upload media and persist a new post."""

    text = (content or "").strip()
    if len(text) > MAX_CONTENT_LENGTH:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Post content cannot exceed {MAX_CONTENT_LENGTH} characters",
        )
    if privacy not in PRIVACY_LEVELS:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Privacy must be public, friends or private")

    uploads = [file for file in files if file is not None and file.filename]
    if not text and not uploads:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Post must have content or media")
    _validate_uploads(uploads)
    tagged = _load_tagged_users(db, tagged_user_ids)

    stored = await _upload_all(uploads, author_id=author_id)

    post = Post(
        user_id=author_id,
        content=text or None,
        privacy=privacy,
        media=[item.as_record() for item in stored],
        tagged_users=tagged,
    )
    try:
        db.add(post)
        db.commit()
    except SQLAlchemyError as exc:
        db.rollback()
        await run_in_threadpool(release_media, [item.key for item in stored])
        logger.exception("Failed to persist post for %s", author_id)
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Failed to create post") from exc

    logger.info("Post %s created by %s with %d media item(s)", post.id, author_id, len(stored))
    return _get_post_or_404(db, post.id)


def _page(db: Session, stmt, *, page: int, limit: int) -> tuple[list[Post], int]:
    total = db.scalar(select(func.count()).select_from(stmt.subquery())) or 0
    rows = db.scalars(
        stmt.options(*_POST_LOAD_OPTIONS)
        .order_by(Post.created_at.desc(), Post.id.desc())
        .offset((page - 1) * limit)
        .limit(limit)
    )
    return list(rows), int(total)


def list_feed(db: Session, *, viewer_id: UUID, page: int = 1, limit: int = 10) -> tuple[list[Post], int]:
    """Viewer's own posts plus friends' public and friends-only posts, newest first."""

    stmt = select(Post).where(
        or_(
            Post.user_id == viewer_id,
            and_(Post.user_id.in_(friend_ids_query(viewer_id)), Post.privacy.in_(FRIEND_VISIBLE)),
        )
    )
    return _page(db, stmt, page=page, limit=limit)


def list_user_posts(
    db: Session,
    *,
    viewer_id: UUID,
    author_id: UUID,
    page: int = 1,
    limit: int = 10,
) -> tuple[list[Post], int]:
    if db.get(User, author_id) is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")

    levels = _visible_levels(db, viewer_id=viewer_id, author_id=author_id)
    stmt = select(Post).where(Post.user_id == author_id, Post.privacy.in_(levels))
    return _page(db, stmt, page=page, limit=limit)


def toggle_like(db: Session, *, post_id: UUID, user_id: UUID) -> tuple[Post, bool]:
    """Flip the viewer's like on a post; returns the post and whether it is now liked."""

    post = get_visible_post(db, post_id=post_id, viewer_id=user_id)
    existing = next((like for like in post.likes if like.user_id == user_id), None)
    if existing is not None:
        post.likes.remove(existing)
        liked = False
    else:
        post.likes.append(PostLike(user_id=user_id))
        liked = True

    try:
        db.commit()
    except IntegrityError as exc:
        db.rollback()
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Like state changed, please retry") from exc
    except SQLAlchemyError as exc:
        db.rollback()
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Failed to update like") from exc

    return post, liked


def add_comment(db: Session, *, post_id: UUID, user_id: UUID, content: str) -> tuple[PostComment, int]:
    post = get_visible_post(db, post_id=post_id, viewer_id=user_id)
    comment = PostComment(user_id=user_id, content=content)
    post.comments.append(comment)

    try:
        db.commit()
    except SQLAlchemyError as exc:
        db.rollback()
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Failed to add comment") from exc

    db.refresh(comment)
    return comment, len(post.comments)


async def delete_post(db: Session, *, post_id: UUID, requester_id: UUID) -> None:
    """Delete a post owned by ``requester_id`` and release its stored media."""

    post = db.get(Post, post_id)
    if post is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Post not found")
    if post.user_id != requester_id:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Not authorized to delete this post")

    keys = [item.get("key") for item in (post.media or []) if item.get("key")]
    try:
        db.delete(post)
        db.commit()
    except SQLAlchemyError as exc:
        db.rollback()
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Failed to delete post") from exc

    if keys:
        await run_in_threadpool(release_media, keys)
    logger.info("Post %s deleted by %s", post_id, requester_id)


__all__ = [
    "MAX_CONTENT_LENGTH",
    "can_view",
    "get_visible_post",
    "create_post",
    "list_feed",
    "list_user_posts",
    "toggle_like",
    "add_comment",
    "delete_post",
]
