"""Conversation list controller: the sidebar of chats and the profile header."""

import math
from datetime import datetime, timedelta, timezone

from labmate.client.api import ApiClient, ApiClientError
from labmate.client.identity import AuthUser
from labmate.client.transcript import TranscriptController
from labmate.logging import get_logger
from labmate.schemas.chat import ChatOut
from labmate.schemas.profile import ProfileOut

logger = get_logger(__name__)

_DAY = timedelta(days=1)


def format_relative_date(ts: datetime, now: datetime | None = None) -> str:
    """Human-readable age of a chat.

    Whole-day difference, rounded up: 1 → "Today", 2 → "Yesterday",
    up to 7 → "N days ago", otherwise the locale's date. Naive datetimes
    are taken as UTC.
    """
    if ts.tzinfo is None:
        ts = ts.replace(tzinfo=timezone.utc)
    now = now or datetime.now(timezone.utc)
    if now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)

    days = max(1, math.ceil(abs(now - ts) / _DAY))
    if days == 1:
        return "Today"
    if days == 2:
        return "Yesterday"
    if days <= 7:
        return f"{days} days ago"
    return ts.strftime("%x")


class ConversationListController:
    def __init__(self, api: ApiClient, transcript: TranscriptController):
        self._api = api
        self._transcript = transcript
        self.chats: list[ChatOut] = []
        self.selected_chat_id: str | None = None
        self.profile: ProfileOut | None = None
        transcript.on_new_chat = self.chat_created

    async def refresh(self) -> list[ChatOut]:
        chats = await self._api.list_chats()
        self.chats = sorted(chats, key=lambda c: c.updated_at, reverse=True)
        return self.chats

    async def load_profile(self, user: AuthUser) -> ProfileOut:
        """Fetch the caller's profile, falling back to the session email when none exists."""
        try:
            self.profile = await self._api.get_profile()
        except ApiClientError as e:
            if e.status != 404:
                raise
            logger.info("profile.missing", user_id=user.id)
            self.profile = ProfileOut(user_id=user.id, email=user.email)
        return self.profile

    async def select(self, chat_id: str) -> None:
        messages = await self._api.list_messages(chat_id)
        self.selected_chat_id = chat_id
        self._transcript.load(chat_id, messages)

    def new_chat(self) -> None:
        self.selected_chat_id = None
        self._transcript.reset()

    def chat_created(self, chat_id: str, title: str) -> None:
        """A relay call created a chat: select it and put it at the top of the list."""
        now = datetime.now(timezone.utc)
        self.chats = [c for c in self.chats if str(c.id) != chat_id]
        self.chats.insert(0, ChatOut(id=chat_id, title=title, created_at=now, updated_at=now))
        self.selected_chat_id = chat_id
        logger.info("chat.created", chat_id=chat_id)

    async def delete(self, chat_id: str) -> None:
        await self._api.delete_chat(chat_id)
        self.chats = [c for c in self.chats if str(c.id) != chat_id]
        if self.selected_chat_id == chat_id:
            self.new_chat()
