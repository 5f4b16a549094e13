"""Chat transcript controller.

Holds the visible turns of the active chat and drives one relay call at a
time. A submitted turn goes through an explicit two-phase transition:

    tentative  the user turn is appended before the relay call
    confirm    the reply arrived: append it and adopt the chat id
    revert     the call failed: remove exactly the tentative turn

Reverting removes the tentative turn by identity, so a load() or reset()
that happened while the call was in flight is never undone.
"""

from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime, timezone

from labmate.client.api import ApiClient, ApiClientError, ApiErrorKind
from labmate.client.export import ExportedPdf, render_transcript_pdf
from labmate.logging import get_logger
from labmate.schemas.chat import MessageOut, truncate_title

logger = get_logger(__name__)

TIMEOUT_MESSAGE = "Request timed out. Please check your connection and try again."
INVALID_RESPONSE_MESSAGE = "Received invalid response from AI service. Please try again."
SEND_FAILED_MESSAGE = "Failed to send message. Please try again."

NewChatListener = Callable[[str, str], None]


@dataclass(frozen=True)
class QuickPrompt:
    title: str
    prompt: str


QUICK_PROMPTS: tuple[QuickPrompt, ...] = (
    QuickPrompt(
        "Design Experiment",
        "Help me design an experiment to test the hypothesis that [describe your hypothesis]. "
        "Include methodology, controls, and statistical considerations.",
    ),
    QuickPrompt(
        "Literature Analysis",
        "Analyze the current literature on [research topic] and identify key research gaps "
        "that could be addressed in future studies.",
    ),
    QuickPrompt(
        "Generate Hypotheses",
        "Based on the following data/observations: [describe your data], generate testable "
        "hypotheses that could explain these findings.",
    ),
    QuickPrompt(
        "Interpret Data",
        "Help me interpret these research results: [paste your data/results]. Explain the "
        "significance and suggest follow-up analyses.",
    ),
    QuickPrompt(
        "Grant Writing",
        "Help me draft a research proposal for [funding agency] focusing on [research area]. "
        "Include objectives, methodology, and expected outcomes.",
    ),
)


@dataclass(eq=False)
class TranscriptTurn:
    role: str
    content: str
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def to_wire(self) -> dict[str, str]:
        return {"role": self.role, "content": self.content}


def _error_message(error: ApiClientError) -> str:
    if error.kind == ApiErrorKind.TIMEOUT:
        return TIMEOUT_MESSAGE
    if error.kind == ApiErrorKind.INVALID_RESPONSE:
        return INVALID_RESPONSE_MESSAGE
    return SEND_FAILED_MESSAGE


class TranscriptController:
    def __init__(self, api: ApiClient, on_new_chat: NewChatListener | None = None):
        self._api = api
        self.on_new_chat = on_new_chat
        self.turns: list[TranscriptTurn] = []
        self.chat_id: str | None = None
        self.error: str | None = None
        self.is_sending = False

    # -------------------------------------------------------------------------
    # State replacement
    # -------------------------------------------------------------------------

    def load(self, chat_id: str, messages: list[MessageOut]) -> None:
        """Replace the held transcript with a persisted chat."""
        self.chat_id = chat_id
        self.turns = [
            TranscriptTurn(role=m.role, content=m.content, timestamp=m.created_at)
            for m in messages
        ]
        self.error = None

    def reset(self) -> None:
        self.chat_id = None
        self.turns = []
        self.error = None

    # -------------------------------------------------------------------------
    # Sending
    # -------------------------------------------------------------------------

    def _tentative(self, content: str) -> TranscriptTurn:
        turn = TranscriptTurn(role="user", content=content)
        self.turns.append(turn)
        self.error = None
        return turn

    def _revert(self, turn: TranscriptTurn, message: str) -> None:
        self.turns = [t for t in self.turns if t is not turn]
        self.error = message

    def _confirm(self, reply: str, chat_id: str, title: str, was_new: bool) -> TranscriptTurn:
        assistant = TranscriptTurn(role="assistant", content=reply)
        self.turns.append(assistant)
        self.chat_id = chat_id
        if was_new and self.on_new_chat is not None:
            self.on_new_chat(chat_id, title)
        return assistant

    async def submit(self, content: str) -> TranscriptTurn | None:
        """Send one user turn. Returns the assistant turn, or None.

        None means nothing was sent (blank content or a turn already in
        flight) or the call failed; on failure self.error holds the message
        to show.
        """
        if not content.strip() or self.is_sending:
            return None

        history = [t.to_wire() for t in self.turns]
        pending = self._tentative(content)
        chat_id = self.chat_id
        title = truncate_title(content)
        self.is_sending = True
        try:
            reply = await self._api.send_turn(
                [*history, pending.to_wire()],
                chat_id=chat_id,
                title=title,
            )
        except ApiClientError as e:
            logger.warning("transcript.send.failed", kind=e.kind.value, status=e.status)
            self._revert(pending, _error_message(e))
            return None
        finally:
            self.is_sending = False

        if self.chat_id != chat_id or not any(t is pending for t in self.turns):
            # The view switched chats while the call was in flight
            logger.info("transcript.reply.discarded", chat_id=reply.chat_id)
            return None

        return self._confirm(reply.response, reply.chat_id, title, was_new=chat_id is None)

    def export_pdf(self, generated_on: datetime | None = None) -> ExportedPdf:
        """Render the held transcript. Raises EmptyTranscriptError when empty."""
        return render_transcript_pdf(self.turns, generated_on=generated_on)
