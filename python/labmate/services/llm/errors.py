"""Completion error classification and normalization.

Error classes:
- E_LLM_INVALID_KEY: Authentication failure (401/403)
- E_LLM_RATE_LIMIT: Rate limit exceeded (429)
- E_LLM_CONTEXT_TOO_LARGE: Context length exceeded
- E_LLM_TIMEOUT: Request exceeded the server budget
- E_LLM_PROVIDER_DOWN: Provider unavailable (other non-2xx, network error)
- E_LLM_INVALID_RESPONSE: 2xx with no usable completion text
- E_MODEL_NOT_AVAILABLE: Model not found or disabled
"""

from enum import Enum


class LLMErrorClass(str, Enum):
    """Normalized completion error classifications."""

    INVALID_KEY = "E_LLM_INVALID_KEY"
    RATE_LIMIT = "E_LLM_RATE_LIMIT"
    CONTEXT_TOO_LARGE = "E_LLM_CONTEXT_TOO_LARGE"
    TIMEOUT = "E_LLM_TIMEOUT"
    PROVIDER_DOWN = "E_LLM_PROVIDER_DOWN"
    INVALID_RESPONSE = "E_LLM_INVALID_RESPONSE"
    MODEL_NOT_AVAILABLE = "E_MODEL_NOT_AVAILABLE"


class LLMError(Exception):
    """Exception for completion-related errors.

    Attributes:
        error_class: The normalized error classification
        message: Human-readable error message
        provider: The provider that returned the error (if known)
        status_code: Provider HTTP status for non-2xx responses
    """

    def __init__(
        self,
        error_class: LLMErrorClass,
        message: str,
        provider: str | None = None,
        status_code: int | None = None,
    ):
        self.error_class = error_class
        self.message = message
        self.provider = provider
        self.status_code = status_code
        super().__init__(message)


def classify_provider_error(status_code: int | None, json_body: dict | None) -> LLMErrorClass:
    """Classify an OpenAI-compatible error response.

    - 401 or 403 → INVALID_KEY
    - 429 → RATE_LIMIT
    - 404 → MODEL_NOT_AVAILABLE
    - 400 + error.code == "context_length_exceeded" → CONTEXT_TOO_LARGE
    - 400 + "maximum context length" in message → CONTEXT_TOO_LARGE
    - everything else → PROVIDER_DOWN
    """
    if status_code is None:
        return LLMErrorClass.PROVIDER_DOWN

    if status_code in (401, 403):
        return LLMErrorClass.INVALID_KEY

    if status_code == 429:
        return LLMErrorClass.RATE_LIMIT

    if status_code == 404:
        return LLMErrorClass.MODEL_NOT_AVAILABLE

    if status_code == 400 and json_body:
        error = json_body.get("error")
        if isinstance(error, dict):
            error_code = error.get("code") or ""
            error_message = (error.get("message") or "").lower()
            if error_code == "context_length_exceeded":
                return LLMErrorClass.CONTEXT_TOO_LARGE
            if "maximum context length" in error_message:
                return LLMErrorClass.CONTEXT_TOO_LARGE

    return LLMErrorClass.PROVIDER_DOWN
