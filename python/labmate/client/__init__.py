"""Client-side controllers for the research assistant.

The controllers hold view state and talk to the Labmate API and to
Supabase Auth; rendering is left to the caller.
"""

from labmate.client.api import ApiClient, ApiClientError, ApiErrorKind, RelayReply
from labmate.client.app import LabmateClient, create_client
from labmate.client.conversations import ConversationListController, format_relative_date
from labmate.client.export import EmptyTranscriptError, ExportedPdf, render_transcript_pdf
from labmate.client.identity import AuthSession, AuthUser, IdentityClient, IdentityError
from labmate.client.session import (
    AuthEvent,
    FileSessionStorage,
    MemorySessionStorage,
    SessionController,
    SignInForm,
    SignUpForm,
    Subscription,
)
from labmate.client.transcript import QUICK_PROMPTS, TranscriptController, TranscriptTurn

__all__ = [
    "ApiClient",
    "ApiClientError",
    "ApiErrorKind",
    "AuthEvent",
    "AuthSession",
    "AuthUser",
    "ConversationListController",
    "EmptyTranscriptError",
    "ExportedPdf",
    "FileSessionStorage",
    "IdentityClient",
    "IdentityError",
    "LabmateClient",
    "MemorySessionStorage",
    "QUICK_PROMPTS",
    "RelayReply",
    "SessionController",
    "SignInForm",
    "SignUpForm",
    "Subscription",
    "TranscriptController",
    "TranscriptTurn",
    "create_client",
    "format_relative_date",
    "render_transcript_pdf",
]
