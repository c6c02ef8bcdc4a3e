"""Post, like and comment API routes."""
from __future__ import annotations

from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, File, Form, Query, UploadFile, status
from sqlalchemy.orm import Session

from ..database import get_session
from ..models import Post, PostComment, PostLike, User
from ..schemas import (
    CommentCreate,
    CommentEnvelope,
    CommentResponse,
    Envelope,
    LikeEntry,
    LikeToggleResponse,
    MediaItem,
    Pagination,
    PostEnvelope,
    PostListResponse,
    PostResponse,
    UserSummary,
)
from ..services import (
    add_comment,
    create_post,
    delete_post,
    get_current_user,
    get_visible_post,
    list_feed,
    list_user_posts,
    toggle_like,
)

router = APIRouter(prefix="/posts", tags=["posts"])


def _to_like_entry(like: PostLike) -> LikeEntry:
    return LikeEntry(user=UserSummary.model_validate(like.user), created_at=like.created_at)


def _to_comment_response(comment: PostComment) -> CommentResponse:
    return CommentResponse(
        id=comment.id,
        user=UserSummary.model_validate(comment.user),
        content=comment.content,
        created_at=comment.created_at,
    )


def _to_post_response(post: Post, viewer_id: UUID) -> PostResponse:
    likes = list(post.likes)
    comments = list(post.comments)
    return PostResponse(
        id=post.id,
        author=UserSummary.model_validate(post.author),
        content=post.content,
        privacy=post.privacy,
        media=[MediaItem(url=item["url"], media_type=item["media_type"]) for item in (post.media or [])],
        tagged_users=[UserSummary.model_validate(user) for user in post.tagged_users],
        likes=[_to_like_entry(like) for like in likes],
        like_count=len(likes),
        comments=[_to_comment_response(comment) for comment in comments],
        comment_count=len(comments),
        viewer_has_liked=any(like.user_id == viewer_id for like in likes),
        created_at=post.created_at,
        updated_at=post.updated_at,
    )


@router.post("", response_model=PostEnvelope, status_code=status.HTTP_201_CREATED)
async def create_post_endpoint(
    content: Optional[str] = Form(None),
    privacy: str = Form("friends"),
    tagged_users: Optional[List[UUID]] = Form(None),
    media: Optional[List[UploadFile]] = File(None),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_session),
) -> PostEnvelope:
    post = await create_post(
        db,
        author_id=current_user.id,
        content=content,
        privacy=privacy,
        files=media or [],
        tagged_user_ids=tagged_users or [],
    )
    return PostEnvelope(message="Post created successfully", post=_to_post_response(post, current_user.id))


@router.get("/feed", response_model=PostListResponse)
async def feed_endpoint(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=50),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_session),
) -> PostListResponse:
    posts, total = list_feed(db, viewer_id=current_user.id, page=page, limit=limit)
    return PostListResponse(
        posts=[_to_post_response(post, current_user.id) for post in posts],
        pagination=Pagination.build(page=page, limit=limit, total=total),
    )


@router.get("/user/{user_id}", response_model=PostListResponse)
async def user_posts_endpoint(
    user_id: UUID,
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=50),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_session),
) -> PostListResponse:
    posts, total = list_user_posts(db, viewer_id=current_user.id, author_id=user_id, page=page, limit=limit)
    return PostListResponse(
        posts=[_to_post_response(post, current_user.id) for post in posts],
        pagination=Pagination.build(page=page, limit=limit, total=total),
    )


@router.get("/{post_id}", response_model=PostEnvelope)
async def get_post_endpoint(
    post_id: UUID,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_session),
) -> PostEnvelope:
    post = get_visible_post(db, post_id=post_id, viewer_id=current_user.id)
    return PostEnvelope(post=_to_post_response(post, current_user.id))


@router.post("/{post_id}/like", response_model=LikeToggleResponse)
async def like_post_endpoint(
    post_id: UUID,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_session),
) -> LikeToggleResponse:
    post, liked = toggle_like(db, post_id=post_id, user_id=current_user.id)
    likes = [_to_like_entry(like) for like in post.likes]
    return LikeToggleResponse(
        message="Post liked" if liked else "Post unliked",
        liked=liked,
        likes=likes,
        like_count=len(likes),
    )


@router.post("/{post_id}/comment", response_model=CommentEnvelope, status_code=status.HTTP_201_CREATED)
async def comment_post_endpoint(
    post_id: UUID,
    payload: CommentCreate,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_session),
) -> CommentEnvelope:
    comment, count = add_comment(db, post_id=post_id, user_id=current_user.id, content=payload.content)
    return CommentEnvelope(
        message="Comment added successfully",
        comment=_to_comment_response(comment),
        comment_count=count,
    )


@router.delete("/{post_id}", response_model=Envelope)
async def delete_post_endpoint(
    post_id: UUID,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_session),
) -> Envelope:
    await delete_post(db, post_id=post_id, requester_id=current_user.id)
    return Envelope(message="Post deleted successfully")


__all__ = ["router"]
