"""Chat and message read/delete service layer.

All operations:
- Enforce owner-only access
- Use E_CHAT_NOT_FOUND for both missing and foreign chats (prevent probing)
- Support cursor-based pagination

Chats list newest activity first (updated_at DESC, id DESC); messages list
in transcript order (created_at ASC, id ASC).
"""

import base64
import json
from datetime import datetime
from uuid import UUID

from sqlalchemy import and_, delete, or_, select
from sqlalchemy.orm import Session

from labmate.db.models import Chat, Message
from labmate.db.session import transaction
from labmate.errors import ApiErrorCode, InvalidRequestError, NotFoundError
from labmate.logging import get_logger
from labmate.schemas.chat import ChatOut, MessageOut, PageInfo

logger = get_logger(__name__)

DEFAULT_LIMIT = 50
MIN_LIMIT = 1
MAX_LIMIT = 100


# =============================================================================
# Cursor Encoding/Decoding
# =============================================================================


def encode_cursor(at: datetime, id: UUID) -> str:
    """Encode a (timestamp, id) keyset cursor as base64url JSON without padding."""
    payload = {"at": at.isoformat(), "id": str(id)}
    json_bytes = json.dumps(payload).encode("utf-8")
    return base64.urlsafe_b64encode(json_bytes).decode("ascii").rstrip("=")


def decode_cursor(cursor: str) -> tuple[datetime, UUID]:
    """Decode a keyset cursor.

    Raises:
        InvalidRequestError: If cursor is malformed or unparseable.
    """
    try:
        padding = 4 - len(cursor) % 4
        if padding != 4:
            cursor += "=" * padding

        payload = json.loads(base64.urlsafe_b64decode(cursor).decode("utf-8"))
        return datetime.fromisoformat(payload["at"]), UUID(payload["id"])
    except (ValueError, KeyError, TypeError):
        raise InvalidRequestError(message="Invalid cursor") from None


def clamp_limit(limit: int) -> int:
    """Clamp limit to valid range [MIN_LIMIT, MAX_LIMIT]."""
    return min(max(limit, MIN_LIMIT), MAX_LIMIT)


# =============================================================================
# Helper Functions
# =============================================================================


def get_chat_for_viewer_or_404(db: Session, viewer_id: UUID, chat_id: UUID) -> Chat:
    """Load chat and verify ownership.

    Raises:
        NotFoundError(E_CHAT_NOT_FOUND): If the chat doesn't exist OR the
            viewer is not the owner.
    """
    chat = db.get(Chat, chat_id)
    if chat is None or chat.user_id != viewer_id:
        raise NotFoundError(ApiErrorCode.E_CHAT_NOT_FOUND, "Chat not found")
    return chat


# =============================================================================
# Service Functions
# =============================================================================


def get_chat(db: Session, viewer_id: UUID, chat_id: UUID) -> ChatOut:
    return ChatOut.model_validate(get_chat_for_viewer_or_404(db, viewer_id, chat_id))


def list_chats(
    db: Session,
    viewer_id: UUID,
    limit: int = DEFAULT_LIMIT,
    cursor: str | None = None,
) -> tuple[list[ChatOut], PageInfo]:
    """List chats owned by the viewer, most recently active first.

    Raises:
        InvalidRequestError: If cursor is malformed.
    """
    limit = clamp_limit(limit)

    stmt = select(Chat).where(Chat.user_id == viewer_id)
    if cursor:
        cursor_at, cursor_id = decode_cursor(cursor)
        # Keyset for DESC ordering: (updated_at, id) < (cursor_at, cursor_id)
        stmt = stmt.where(
            or_(
                Chat.updated_at < cursor_at,
                and_(Chat.updated_at == cursor_at, Chat.id < cursor_id),
            )
        )
    stmt = stmt.order_by(Chat.updated_at.desc(), Chat.id.desc()).limit(limit + 1)

    rows = list(db.scalars(stmt))
    has_more = len(rows) > limit
    rows = rows[:limit]

    chats = [ChatOut.model_validate(row) for row in rows]

    next_cursor = None
    if has_more and rows:
        next_cursor = encode_cursor(rows[-1].updated_at, rows[-1].id)

    return chats, PageInfo(next_cursor=next_cursor)


def delete_chat(db: Session, viewer_id: UUID, chat_id: UUID) -> None:
    """Delete a chat. Messages go with it via FK CASCADE.

    Raises:
        NotFoundError(E_CHAT_NOT_FOUND): If chat doesn't exist or viewer is not the owner.
    """
    get_chat_for_viewer_or_404(db, viewer_id, chat_id)

    with transaction(db):
        db.execute(delete(Message).where(Message.chat_id == chat_id))
        db.execute(delete(Chat).where(Chat.id == chat_id, Chat.user_id == viewer_id))

    logger.info("chat.deleted", chat_id=str(chat_id))


def list_messages(
    db: Session,
    viewer_id: UUID,
    chat_id: UUID,
    limit: int = DEFAULT_LIMIT,
    cursor: str | None = None,
) -> tuple[list[MessageOut], PageInfo]:
    """List messages in a chat in transcript order.

    Raises:
        NotFoundError(E_CHAT_NOT_FOUND): If chat doesn't exist or viewer is not the owner.
        InvalidRequestError: If cursor is malformed.
    """
    get_chat_for_viewer_or_404(db, viewer_id, chat_id)

    limit = clamp_limit(limit)

    stmt = select(Message).where(Message.chat_id == chat_id)
    if cursor:
        cursor_at, cursor_id = decode_cursor(cursor)
        # Keyset for ASC ordering: (created_at, id) > (cursor_at, cursor_id)
        stmt = stmt.where(
            or_(
                Message.created_at > cursor_at,
                and_(Message.created_at == cursor_at, Message.id > cursor_id),
            )
        )
    stmt = stmt.order_by(Message.created_at.asc(), Message.id.asc()).limit(limit + 1)

    rows = list(db.scalars(stmt))
    has_more = len(rows) > limit
    rows = rows[:limit]

    messages = [MessageOut.model_validate(row) for row in rows]

    next_cursor = None
    if has_more and rows:
        next_cursor = encode_cursor(rows[-1].created_at, rows[-1].id)

    return messages, PageInfo(next_cursor=next_cursor)
