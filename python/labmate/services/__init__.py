"""Business logic services.

Services are called by route handlers and orchestrate database and
completion-provider operations.
"""

from labmate.services.bootstrap import ensure_user_and_profile
from labmate.services.chats import delete_chat, get_chat, list_chats, list_messages
from labmate.services.profiles import get_profile

__all__ = [
    "ensure_user_and_profile",
    "get_chat",
    "list_chats",
    "list_messages",
    "delete_chat",
    "get_profile",
]
