"""PDF export of a chat transcript (reportlab).

Layout on A4, all distances in mm:
- title "AI Research Assistant Conversation" (Helvetica-Bold 18)
- "Generated on: <date>" (Helvetica 10)
- per turn a bold 12pt "User:" / "AI Assistant:" header, then the body
  wrapped to the page width minus both margins at 10pt
- 7mm line height, one blank line between turns
- a new page starts whenever the cursor would pass the bottom margin
"""

from collections.abc import Iterable
from dataclasses import dataclass
from datetime import date, datetime
from io import BytesIO
from typing import Protocol

from reportlab.lib.pagesizes import A4
from reportlab.lib.units import mm
from reportlab.lib.utils import simpleSplit
from reportlab.pdfgen import canvas

from labmate.logging import get_logger

logger = get_logger(__name__)

PDF_TITLE = "AI Research Assistant Conversation"
MARGIN = 20 * mm
LINE_HEIGHT = 7 * mm
ROLE_LABELS = {"user": "User:", "assistant": "AI Assistant:"}


class EmptyTranscriptError(Exception):
    def __init__(self, message: str = "No conversation to export"):
        self.message = message
        super().__init__(message)


class ExportableTurn(Protocol):
    role: str
    content: str


@dataclass(frozen=True)
class ExportedPdf:
    filename: str
    content: bytes
    page_count: int


def export_filename(on: date) -> str:
    return f"research-chat-{on.strftime('%Y-%m-%d')}.pdf"


class _PageWriter:
    """Top-down text cursor over a reportlab canvas."""

    def __init__(self, c: canvas.Canvas):
        self.c = c
        self.width, self.height = A4
        self.y = self.height - MARGIN
        self.pages = 1

    @property
    def text_width(self) -> float:
        return self.width - 2 * MARGIN

    def ensure_room(self, font: str, size: float) -> None:
        if self.y < MARGIN:
            self.c.showPage()
            self.pages += 1
            self.y = self.height - MARGIN
        self.c.setFont(font, size)

    def line(self, text: str, font: str, size: float, advance: float = LINE_HEIGHT) -> None:
        self.ensure_room(font, size)
        self.c.drawString(MARGIN, self.y, text)
        self.y -= advance

    def paragraph(self, text: str, font: str, size: float) -> None:
        for raw_line in text.splitlines() or [""]:
            for wrapped in simpleSplit(raw_line, font, size, self.text_width) or [""]:
                self.line(wrapped, font, size)


def render_transcript_pdf(
    turns: Iterable[ExportableTurn],
    generated_on: datetime | None = None,
) -> ExportedPdf:
    """Render turns into a PDF document.

    Raises:
        EmptyTranscriptError: If there are no turns.
    """
    turns = list(turns)
    if not turns:
        raise EmptyTranscriptError()

    generated_on = generated_on or datetime.now()
    buffer = BytesIO()
    c = canvas.Canvas(buffer, pagesize=A4)
    c.setTitle(PDF_TITLE)
    writer = _PageWriter(c)

    writer.line(PDF_TITLE, "Helvetica-Bold", 18, advance=10 * mm)
    writer.line(f"Generated on: {generated_on.strftime('%x')}", "Helvetica", 10, advance=15 * mm)

    for turn in turns:
        writer.line(ROLE_LABELS.get(turn.role, f"{turn.role}:"), "Helvetica-Bold", 12)
        writer.paragraph(turn.content, "Helvetica", 10)
        writer.y -= LINE_HEIGHT

    c.showPage()
    c.save()

    logger.info("transcript.exported", turn_count=len(turns), page_count=writer.pages)
    return ExportedPdf(
        filename=export_filename(generated_on.date()),
        content=buffer.getvalue(),
        page_count=writer.pages,
    )
