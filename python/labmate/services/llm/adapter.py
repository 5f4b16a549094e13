"""Abstract base class for completion adapters.

- Async adapters with httpx.AsyncClient
- No retries inside adapters
- No DB access
- No logging of request/response bodies
- Raw HTTP errors bubble up to the completion client for classification
"""

from abc import ABC, abstractmethod

import httpx

from labmate.services.llm.types import LLMRequest, LLMResponse


class LLMAdapter(ABC):
    """Abstract base class for completion provider adapters."""

    name: str = "unknown"

    def __init__(self, client: httpx.AsyncClient):
        """Initialize adapter with shared HTTP client.

        Args:
            client: Shared httpx.AsyncClient for connection pooling.
        """
        self._client = client

    @abstractmethod
    async def generate(
        self,
        req: LLMRequest,
        *,
        api_key: str,
        timeout_s: float,
    ) -> LLMResponse:
        """Non-streaming generation. Returns the complete response.

        Raises:
            httpx.HTTPStatusError: On non-2xx HTTP response.
            httpx.TimeoutException: On request timeout.
            httpx.NetworkError: On network failure.
            LLMError: INVALID_RESPONSE when the body carries no usable text.
        """
