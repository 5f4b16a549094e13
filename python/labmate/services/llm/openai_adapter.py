"""OpenAI-compatible chat-completions adapter (AI/ML API).

- Endpoint: POST {AIML_API_BASE_URL}/chat/completions
- Headers: Authorization: Bearer <key>, Content-Type: application/json

Request body:
{
  "model": "openai/gpt-5-2025-08-07",
  "messages": [
    {"role": "system", "content": "..."},
    {"role": "user", "content": "..."},
    {"role": "assistant", "content": "..."}
  ],
  "max_completion_tokens": 2048,
  "stream": false,
  "temperature": 0.7
}

Response - extract:
- text = choices[0].message.content (must be a non-blank string)
- usage = direct mapping
- provider_request_id = response header x-request-id or body id
"""

import httpx

from labmate.services.llm.adapter import LLMAdapter
from labmate.services.llm.errors import LLMError, LLMErrorClass
from labmate.services.llm.types import LLMRequest, LLMResponse, LLMUsage, Turn


class OpenAICompatibleAdapter(LLMAdapter):
    """Adapter for any endpoint speaking the OpenAI chat-completions dialect."""

    name = "aimlapi"

    def __init__(self, client: httpx.AsyncClient, completions_url: str):
        super().__init__(client)
        self._completions_url = completions_url

    async def generate(
        self,
        req: LLMRequest,
        *,
        api_key: str,
        timeout_s: float,
    ) -> LLMResponse:
        """Non-streaming chat completion."""
        response = await self._client.post(
            self._completions_url,
            headers=self._build_headers(api_key),
            json=self._build_request_body(req),
            timeout=httpx.Timeout(timeout_s, connect=min(10.0, timeout_s)),
        )
        response.raise_for_status()

        try:
            data = response.json()
        except ValueError as e:
            raise LLMError(
                LLMErrorClass.INVALID_RESPONSE, "Invalid AI response format", provider=self.name
            ) from e

        return self._parse_response(data, response.headers)

    def _build_headers(self, api_key: str) -> dict[str, str]:
        return {
            "Authorization": f"Bearer {api_key}",
            "Content-Type": "application/json",
        }

    def _build_request_body(self, req: LLMRequest) -> dict:
        body: dict = {
            "model": req.model_name,
            "messages": [self._turn_to_message(turn) for turn in req.messages],
            "max_completion_tokens": req.max_tokens,
            "stream": False,
        }
        if req.temperature is not None:
            body["temperature"] = req.temperature
        return body

    def _turn_to_message(self, turn: Turn) -> dict[str, str]:
        return {"role": turn.role, "content": turn.content}

    def _parse_response(self, data: object, headers: httpx.Headers) -> LLMResponse:
        """Parse a non-streaming response.

        Raises:
            LLMError: INVALID_RESPONSE if choices/message are missing or the
                content is empty after trimming.
        """
        choices = data.get("choices") if isinstance(data, dict) else None
        if not isinstance(choices, list) or not choices or not isinstance(choices[0], dict):
            raise LLMError(
                LLMErrorClass.INVALID_RESPONSE, "Invalid AI response format", provider=self.name
            )

        message = choices[0].get("message")
        if not isinstance(message, dict):
            raise LLMError(
                LLMErrorClass.INVALID_RESPONSE, "Invalid AI response format", provider=self.name
            )

        text = message.get("content")
        if not isinstance(text, str) or not text.strip():
            raise LLMError(LLMErrorClass.INVALID_RESPONSE, "Empty AI response", provider=self.name)

        usage = None
        usage_data = data.get("usage")
        if isinstance(usage_data, dict):
            usage = LLMUsage(
                prompt_tokens=usage_data.get("prompt_tokens"),
                completion_tokens=usage_data.get("completion_tokens"),
                total_tokens=usage_data.get("total_tokens"),
            )

        provider_request_id = headers.get("x-request-id") or data.get("id")

        return LLMResponse(
            text=text,
            usage=usage,
            provider_request_id=provider_request_id,
        )
