"""Shared type definitions for the completion layer.

- Turn: Provider-agnostic conversation turn
- LLMRequest: Request to a completion adapter
- LLMUsage: Token usage from provider response
- LLMResponse: Complete response from a non-streaming call
"""

from dataclasses import dataclass
from typing import Literal


@dataclass(frozen=True)
class Turn:
    """Provider-agnostic conversation turn.

    Attributes:
        role: One of "system", "user", or "assistant"
        content: The text content of the turn
    """

    role: Literal["system", "user", "assistant"]
    content: str


@dataclass(frozen=True)
class LLMUsage:
    """Token usage from provider response. Any field may be missing."""

    prompt_tokens: int | None
    completion_tokens: int | None
    total_tokens: int | None


@dataclass(frozen=True)
class LLMRequest:
    """Request to a completion adapter.

    Attributes:
        model_name: The model identifier (e.g., "openai/gpt-5-2025-08-07")
        messages: List of Turn objects, system turn first
        max_tokens: Maximum tokens in the completion
        temperature: Sampling temperature, None uses provider default
    """

    model_name: str
    messages: list[Turn]
    max_tokens: int
    temperature: float | None = None


@dataclass(frozen=True)
class LLMResponse:
    """Complete response from a non-streaming call.

    Attributes:
        text: The generated text content, never blank
        usage: Token usage information (None if provider doesn't return it)
        provider_request_id: Provider's request ID for debugging (may be None)
    """

    text: str
    usage: LLMUsage | None
    provider_request_id: str | None
