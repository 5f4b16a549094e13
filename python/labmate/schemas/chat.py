"""Chat, message and relay Pydantic schemas.

The relay body keeps the camelCase field names the web client sends
(chatId); everything else is snake_case.
"""

from datetime import datetime
from typing import Literal
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, model_validator

# Valid message roles - must match DB constraint
MESSAGE_ROLES = Literal["user", "assistant"]

TITLE_MAX_CHARS = 50
TITLE_ELLIPSIS = "..."
DEFAULT_CHAT_TITLE = "New Research Chat"


def truncate_title(content: str, max_chars: int = TITLE_MAX_CHARS) -> str:
    """Cut content to max_chars, appending "..." only when something was cut."""
    if len(content) > max_chars:
        return content[:max_chars] + TITLE_ELLIPSIS
    return content


# =============================================================================
# Response Schemas
# =============================================================================


class ChatOut(BaseModel):
    """A chat as listed in the sidebar."""

    id: UUID
    title: str
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class MessageOut(BaseModel):
    """A persisted turn. Messages are immutable and ordered by created_at."""

    id: UUID
    chat_id: UUID
    role: str
    content: str
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class PageInfo(BaseModel):
    """Pagination information for list responses."""

    next_cursor: str | None = None


class ChatListResponse(BaseModel):
    data: list[ChatOut]
    page: PageInfo


class MessageListResponse(BaseModel):
    data: list[MessageOut]
    page: PageInfo


# =============================================================================
# Relay Schemas
# =============================================================================


class TurnIn(BaseModel):
    """One transcript turn as sent by the client. Extra keys are ignored."""

    role: MESSAGE_ROLES
    content: str


class RelayRequest(BaseModel):
    """Body of POST /chat-with-ai.

    - messages: visible transcript, newest user turn last (at least one)
    - chatId: existing chat to append to; omitted for a new chat
    - title: title for a new chat; ignored when chatId is given
    """

    messages: list[TurnIn] = Field(min_length=1)
    chat_id: UUID | None = Field(default=None, alias="chatId")
    title: str | None = None

    model_config = ConfigDict(populate_by_name=True)

    @model_validator(mode="after")
    def last_turn_is_user(self) -> "RelayRequest":
        last = self.messages[-1]
        if last.role != "user":
            raise ValueError("the last message must be a user turn")
        if not last.content.strip():
            raise ValueError("the last message must not be blank")
        return self

    @property
    def newest_user_content(self) -> str:
        return self.messages[-1].content

    def derive_title(self) -> str:
        """Title for a chat created by this request.

        Supplied title if non-blank, else the first user message cut to 50
        characters, else "New Research Chat".
        """
        if self.title and self.title.strip():
            return self.title
        for turn in self.messages:
            if turn.role == "user" and turn.content.strip():
                return truncate_title(turn.content)
        return DEFAULT_CHAT_TITLE


class RelayResponse(BaseModel):
    """Success body of POST /chat-with-ai."""

    response: str
    chat_id: UUID = Field(serialization_alias="chatId")
