"""Convenience exports for schema layer."""
from .auth import AuthResponse, LoginRequest, MeResponse, RegisterRequest, UserResponse
from .common import Envelope, ErrorEnvelope, Pagination, UserSummary
from .friends import FriendListResponse, FriendRequestEntry, FriendRequestsResponse, FriendSuggestionsResponse
from .messages import (
    ConversationListResponse,
    ConversationSummary,
    MessageEnvelope,
    MessageHistoryResponse,
    MessageResponse,
    MessageSendRequest,
    UnreadCountResponse,
)
from .posts import (
    CommentCreate,
    CommentEnvelope,
    CommentResponse,
    LikeEntry,
    LikeToggleResponse,
    MediaItem,
    PostEnvelope,
    PostListResponse,
    PostResponse,
)

__all__ = [
    "AuthResponse",
    "LoginRequest",
    "MeResponse",
    "RegisterRequest",
    "UserResponse",
    "Envelope",
    "ErrorEnvelope",
    "Pagination",
    "UserSummary",
    "FriendListResponse",
    "FriendRequestEntry",
    "FriendRequestsResponse",
    "FriendSuggestionsResponse",
    "ConversationListResponse",
    "ConversationSummary",
    "MessageEnvelope",
    "MessageHistoryResponse",
    "MessageResponse",
    "MessageSendRequest",
    "UnreadCountResponse",
    "CommentCreate",
    "CommentEnvelope",
    "CommentResponse",
    "LikeEntry",
    "LikeToggleResponse",
    "MediaItem",
    "PostEnvelope",
    "PostListResponse",
    "PostResponse",
]
