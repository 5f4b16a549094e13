"""Message relay: one user turn in, one persisted assistant reply out.

Flow for POST /chat-with-ai:

1. Preconditions: provider key configured, prompt within size limits.
2. Render [system, *transcript] and call the completion provider under
   the server budget. No DB transaction is open during this call.
3. In one transaction: create the chat when no chatId was given (or load
   the caller's chat), insert the newest user turn, then the assistant
   reply, then advance chat.updated_at.
4. Return {response, chatId}.

A failure at any step leaves no partial turn behind: provider failures
happen before any write, and a failed write rolls back the whole
transaction including a freshly created chat.

Error mapping:
- missing AIML_API_KEY → E_CONFIGURATION (500)
- prompt too large → E_PROMPT_TOO_LARGE (400)
- LLMError TIMEOUT → E_TIMEOUT (408)
- LLMError INVALID_RESPONSE → E_UPSTREAM_INVALID_RESPONSE (502)
- any other LLMError → E_UPSTREAM_UNAVAILABLE (502)
- write failure or chat not visible to caller → E_PERSISTENCE (500)
"""

from datetime import timedelta
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session
from starlette.concurrency import run_in_threadpool

from labmate.config import Settings
from labmate.db.models import Chat, Message, MessageRole, utcnow
from labmate.db.session import transaction
from labmate.errors import ApiError, ApiErrorCode, InvalidRequestError, PersistenceError
from labmate.logging import get_logger, set_chat_id
from labmate.schemas.chat import RelayRequest, RelayResponse
from labmate.services.llm import (
    CompletionClient,
    LLMError,
    LLMErrorClass,
    LLMRequest,
    PromptTooLargeError,
    Turn,
    render_prompt,
    validate_prompt_size,
)
from labmate.services.redact import hash_text, safe_kv

logger = get_logger(__name__)

CREATE_CHAT_FAILED = "Failed to create chat"
SAVE_USER_MESSAGE_FAILED = "Failed to save user message"
SAVE_ASSISTANT_MESSAGE_FAILED = "Failed to save AI response"

# Minimum gap that keeps the assistant row strictly after the user row
_ORDERING_EPSILON = timedelta(microseconds=1)


def _llm_error_to_api_error(error: LLMError, timeout_s: float) -> ApiError:
    if error.error_class == LLMErrorClass.TIMEOUT:
        return ApiError(
            ApiErrorCode.E_TIMEOUT,
            "Request timeout",
            f"AI service did not respond within {timeout_s:g} seconds",
        )
    if error.error_class == LLMErrorClass.INVALID_RESPONSE:
        return ApiError(ApiErrorCode.E_UPSTREAM_INVALID_RESPONSE, "Invalid AI response", error.message)
    if error.status_code is not None:
        details = f"AI/ML API error: {error.status_code}"
    else:
        details = error.message
    return ApiError(ApiErrorCode.E_UPSTREAM_UNAVAILABLE, "AI service unavailable", details)


def persist_turn(
    db: Session,
    viewer_id: UUID,
    chat_id: UUID | None,
    title: str,
    user_content: str,
    assistant_content: str,
) -> UUID:
    """Write one (user, assistant) pair atomically and return the chat id.

    Args:
        chat_id: Existing chat to append to, or None to create one with title.

    Raises:
        PersistenceError: On any write failure, or if chat_id is not a chat
            owned by the viewer. Nothing is left behind in either case.
    """
    stage = CREATE_CHAT_FAILED if chat_id is None else SAVE_USER_MESSAGE_FAILED

    try:
        with transaction(db):
            if chat_id is None:
                chat = Chat(user_id=viewer_id, title=title)
                db.add(chat)
                db.flush()
            else:
                chat = db.scalar(select(Chat).where(Chat.id == chat_id, Chat.user_id == viewer_id))
                if chat is None:
                    logger.warning("relay.chat_not_visible", chat_id=str(chat_id))
                    raise PersistenceError(SAVE_USER_MESSAGE_FAILED)

            stage = SAVE_USER_MESSAGE_FAILED
            user_at = utcnow()
            db.add(
                Message(
                    chat_id=chat.id,
                    role=MessageRole.user.value,
                    content=user_content,
                    created_at=user_at,
                )
            )
            db.flush()

            stage = SAVE_ASSISTANT_MESSAGE_FAILED
            assistant_at = max(utcnow(), user_at + _ORDERING_EPSILON)
            db.add(
                Message(
                    chat_id=chat.id,
                    role=MessageRole.assistant.value,
                    content=assistant_content,
                    created_at=assistant_at,
                )
            )
            db.flush()

            chat.updated_at = assistant_at
    except SQLAlchemyError as e:
        logger.error("relay.persist.failed", stage=stage, error_type=type(e).__name__)
        raise PersistenceError(stage) from e

    return chat.id


async def relay_message(
    db: Session,
    viewer_id: UUID,
    request: RelayRequest,
    completion: CompletionClient,
    settings: Settings,
) -> RelayResponse:
    """Run one relay turn end to end.

    Raises:
        ApiError: See module docstring for the mapping.
    """
    if not settings.aiml_api_key:
        logger.error("relay.misconfigured", missing="AIML_API_KEY")
        raise ApiError(
            ApiErrorCode.E_CONFIGURATION, "Internal server error", "AI/ML API key not configured"
        )

    user_content = request.newest_user_content
    turns = render_prompt(Turn(role=m.role, content=m.content) for m in request.messages)
    try:
        validate_prompt_size(turns)
    except PromptTooLargeError as e:
        raise InvalidRequestError(ApiErrorCode.E_PROMPT_TOO_LARGE, "Prompt too large", str(e)) from e

    if request.chat_id is not None:
        set_chat_id(str(request.chat_id))

    logger.info(
        "relay.turn.started",
        **safe_kv(
            message_count=len(request.messages),
            user_chars=len(user_content),
            user_sha256=hash_text(user_content),
            new_chat=request.chat_id is None,
        ),
    )

    llm_request = LLMRequest(
        model_name=settings.completion_model,
        messages=turns,
        max_tokens=settings.completion_max_tokens,
        temperature=settings.completion_temperature,
    )
    try:
        llm_response = await completion.generate(llm_request, api_key=settings.aiml_api_key)
    except LLMError as e:
        logger.warning("relay.turn.failed", error_class=e.error_class.value)
        raise _llm_error_to_api_error(e, completion.timeout_s) from e

    chat_id = await run_in_threadpool(
        persist_turn,
        db,
        viewer_id,
        request.chat_id,
        request.derive_title(),
        user_content,
        llm_response.text,
    )
    set_chat_id(str(chat_id))

    logger.info(
        "relay.turn.finished",
        **safe_kv(response_chars=len(llm_response.text), new_chat=request.chat_id is None),
    )
    return RelayResponse(response=llm_response.text, chat_id=chat_id)
