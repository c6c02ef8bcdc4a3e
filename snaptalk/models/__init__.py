"""Convenience exports for ORM models."""
from .associations import post_tags
from .friend_request import FriendRequest
from .friendship import Friendship, ordered_pair
from .message import Message
from .post import PRIVACY_LEVELS, Post, PostComment, PostLike
from .user import User

__all__ = [
    "FriendRequest",
    "Friendship",
    "ordered_pair",
    "Message",
    "PRIVACY_LEVELS",
    "Post",
    "PostComment",
    "PostLike",
    "post_tags",
    "User",
]
