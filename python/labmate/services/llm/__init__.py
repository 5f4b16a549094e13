"""Completion layer for the OpenAI-compatible research model.

Usage:
    from labmate.services.llm import CompletionClient, LLMRequest, Turn

    adapter = OpenAICompatibleAdapter(httpx_client, settings.completions_url)
    client = CompletionClient(adapter, timeout_s=settings.completion_timeout_s)
    response = await client.generate(
        LLMRequest(model_name="openai/gpt-5-2025-08-07",
                   messages=render_prompt(turns), max_tokens=2048),
        api_key="...",
    )
"""

from labmate.services.llm.adapter import LLMAdapter
from labmate.services.llm.client import CompletionClient
from labmate.services.llm.errors import LLMError, LLMErrorClass, classify_provider_error
from labmate.services.llm.openai_adapter import OpenAICompatibleAdapter
from labmate.services.llm.prompt import (
    SYSTEM_PROMPT,
    PromptTooLargeError,
    render_prompt,
    validate_prompt_size,
)
from labmate.services.llm.types import LLMRequest, LLMResponse, LLMUsage, Turn

__all__ = [
    "Turn",
    "LLMRequest",
    "LLMResponse",
    "LLMUsage",
    "LLMAdapter",
    "OpenAICompatibleAdapter",
    "CompletionClient",
    "LLMError",
    "LLMErrorClass",
    "classify_provider_error",
    "render_prompt",
    "validate_prompt_size",
    "PromptTooLargeError",
    "SYSTEM_PROMPT",
]
