"""Convenience exports for service layer."""
from .auth_service import (
    authenticate_user,
    create_access_token,
    decode_access_token,
    get_current_user,
    register_user,
    resolve_token_user,
)
from .friendship_service import (
    accept_friend_request,
    are_friends,
    cancel_friend_request,
    decline_friend_request,
    list_friend_requests,
    list_friends,
    list_suggestions,
    remove_friend,
    require_friendship,
    send_friend_request,
)
from .message_service import (
    ConversationRow,
    count_unread,
    delete_message,
    get_conversation,
    list_conversations,
    mark_message_read,
    send_direct_message,
)
from .post_service import (
    add_comment,
    create_post,
    delete_post,
    get_visible_post,
    list_feed,
    list_user_posts,
    toggle_like,
)
from .presence_service import set_presence
from .realtime import ConnectionRegistry, connection_registry, push_message_deleted, push_new_message

__all__ = [
    "authenticate_user",
    "create_access_token",
    "decode_access_token",
    "get_current_user",
    "register_user",
    "resolve_token_user",
    "accept_friend_request",
    "are_friends",
    "cancel_friend_request",
    "decline_friend_request",
    "list_friend_requests",
    "list_friends",
    "list_suggestions",
    "remove_friend",
    "require_friendship",
    "send_friend_request",
    "ConversationRow",
    "count_unread",
    "delete_message",
    "get_conversation",
    "list_conversations",
    "mark_message_read",
    "send_direct_message",
    "add_comment",
    "create_post",
    "delete_post",
    "get_visible_post",
    "list_feed",
    "list_user_posts",
    "toggle_like",
    "set_presence",
    "ConnectionRegistry",
    "connection_registry",
    "push_message_deleted",
    "push_new_message",
]
