"""Friend request and friendship routes."""
from __future__ import annotations

from uuid import UUID

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from ..database import get_session
from ..models import FriendRequest, User
from ..schemas import (
    Envelope,
    FriendListResponse,
    FriendRequestEntry,
    FriendRequestsResponse,
    FriendSuggestionsResponse,
    UserSummary,
)
from ..services import (
    accept_friend_request,
    cancel_friend_request,
    decline_friend_request,
    get_current_user,
    list_friend_requests,
    list_friends,
    list_suggestions,
    remove_friend,
    send_friend_request,
)

router = APIRouter(prefix="/friends", tags=["friends"])


def _request_entry(request: FriendRequest, counterparty: User) -> FriendRequestEntry:
    return FriendRequestEntry(user=UserSummary.model_validate(counterparty), created_at=request.created_at)


@router.get("", response_model=FriendListResponse)
async def friends_endpoint(
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_session),
) -> FriendListResponse:
    friends = list_friends(db, user_id=current_user.id)
    return FriendListResponse(friends=[UserSummary.model_validate(friend) for friend in friends])


@router.get("/requests", response_model=FriendRequestsResponse)
async def friend_requests_endpoint(
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_session),
) -> FriendRequestsResponse:
    received, sent = list_friend_requests(db, user_id=current_user.id)
    return FriendRequestsResponse(
        received=[_request_entry(item, item.sender) for item in received],
        sent=[_request_entry(item, item.recipient) for item in sent],
    )


@router.get("/suggestions", response_model=FriendSuggestionsResponse)
async def friend_suggestions_endpoint(
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_session),
) -> FriendSuggestionsResponse:
    suggestions = list_suggestions(db, user_id=current_user.id)
    return FriendSuggestionsResponse(suggestions=[UserSummary.model_validate(user) for user in suggestions])


@router.post("/request/{user_id}", response_model=Envelope, status_code=status.HTTP_201_CREATED)
async def send_request_endpoint(
    user_id: UUID,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_session),
) -> Envelope:
    send_friend_request(db, sender_id=current_user.id, recipient_id=user_id)
    return Envelope(message="Friend request sent")


@router.delete("/request/{user_id}", response_model=Envelope)
async def cancel_request_endpoint(
    user_id: UUID,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_session),
) -> Envelope:
    cancel_friend_request(db, sender_id=current_user.id, recipient_id=user_id)
    return Envelope(message="Friend request cancelled")


@router.post("/accept/{user_id}", response_model=Envelope)
async def accept_request_endpoint(
    user_id: UUID,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_session),
) -> Envelope:
    accept_friend_request(db, recipient_id=current_user.id, sender_id=user_id)
    return Envelope(message="Friend request accepted")


@router.post("/decline/{user_id}", response_model=Envelope)
async def decline_request_endpoint(
    user_id: UUID,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_session),
) -> Envelope:
    decline_friend_request(db, recipient_id=current_user.id, sender_id=user_id)
    return Envelope(message="Friend request declined")


@router.delete("/{user_id}", response_model=Envelope)
async def remove_friend_endpoint(
    user_id: UUID,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_session),
) -> Envelope:
    remove_friend(db, user_id=current_user.id, friend_id=user_id)
    return Envelope(message="Friend removed")


__all__ = ["router"]
