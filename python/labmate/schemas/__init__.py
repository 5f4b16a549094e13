"""Pydantic schemas for request/response models.

All schemas are re-exported here for convenient imports.
"""

from labmate.schemas.chat import (
    ChatListResponse,
    ChatOut,
    MessageListResponse,
    MessageOut,
    PageInfo,
    RelayRequest,
    RelayResponse,
    TurnIn,
    truncate_title,
)
from labmate.schemas.profile import ProfileOut

__all__ = [
    "ChatOut",
    "ChatListResponse",
    "MessageOut",
    "MessageListResponse",
    "PageInfo",
    "ProfileOut",
    "RelayRequest",
    "RelayResponse",
    "TurnIn",
    "truncate_title",
]
