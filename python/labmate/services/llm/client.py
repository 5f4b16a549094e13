"""Completion client: timeout budget, error normalization and observability.

Wraps one adapter call in an asyncio.wait_for race against the server
budget. When the budget expires the in-flight httpx request is cancelled
and an LLMError(TIMEOUT) is raised; the provider may still finish the
completion on its side, but nothing is persisted.

Emits llm.request.started / llm.request.finished / llm.request.failed
through safe_kv so prompt text and keys never reach the logs.

Error handling:
- asyncio budget expiry or httpx timeout → E_LLM_TIMEOUT
- Provider non-2xx → classified by classify_provider_error
- Network failure → E_LLM_PROVIDER_DOWN
- Unusable 2xx body → E_LLM_INVALID_RESPONSE (raised by the adapter)
"""

import asyncio
import time

import httpx

from labmate.config import DEFAULT_COMPLETION_TIMEOUT_S
from labmate.logging import get_logger
from labmate.services.llm.adapter import LLMAdapter
from labmate.services.llm.errors import LLMError, LLMErrorClass, classify_provider_error
from labmate.services.llm.types import LLMRequest, LLMResponse
from labmate.services.redact import safe_kv

logger = get_logger(__name__)


class CompletionClient:
    """Runs completion requests through one adapter under a time budget."""

    def __init__(self, adapter: LLMAdapter, *, timeout_s: float = DEFAULT_COMPLETION_TIMEOUT_S):
        self._adapter = adapter
        self._timeout_s = timeout_s

    @property
    def timeout_s(self) -> float:
        return self._timeout_s

    async def generate(self, req: LLMRequest, api_key: str) -> LLMResponse:
        """Non-streaming generation with a hard deadline.

        Raises:
            LLMError: With normalized error class on failure.
        """
        provider = self._adapter.name
        base = {"provider": provider, "model_name": req.model_name}

        logger.info(
            "llm.request.started",
            **safe_kv(
                **base,
                message_count=len(req.messages),
                message_chars=sum(len(m.content) for m in req.messages),
                timeout_s=self._timeout_s,
            ),
        )
        start = time.monotonic()

        try:
            response = await asyncio.wait_for(
                self._adapter.generate(req, api_key=api_key, timeout_s=self._timeout_s),
                timeout=self._timeout_s,
            )
        except (asyncio.TimeoutError, httpx.TimeoutException) as e:
            self._log_failure(base, LLMErrorClass.TIMEOUT, start)
            raise LLMError(LLMErrorClass.TIMEOUT, "Request timeout", provider=provider) from e

        except httpx.HTTPStatusError as e:
            json_body = _safe_parse_json(e.response)
            error_class = classify_provider_error(e.response.status_code, json_body)
            self._log_failure(
                base,
                error_class,
                start,
                status_code=e.response.status_code,
                provider_request_id=e.response.headers.get("x-request-id"),
            )
            raise LLMError(
                error_class,
                f"Provider returned HTTP {e.response.status_code}",
                provider=provider,
                status_code=e.response.status_code,
            ) from e

        except httpx.HTTPError as e:
            self._log_failure(base, LLMErrorClass.PROVIDER_DOWN, start)
            raise LLMError(LLMErrorClass.PROVIDER_DOWN, "Network error", provider=provider) from e

        except LLMError as e:
            self._log_failure(base, e.error_class, start)
            raise

        usage = response.usage
        logger.info(
            "llm.request.finished",
            **safe_kv(
                **base,
                outcome="success",
                latency_ms=_elapsed_ms(start),
                tokens_input=usage.prompt_tokens if usage else None,
                tokens_output=usage.completion_tokens if usage else None,
                response_chars=len(response.text),
                provider_request_id=response.provider_request_id,
            ),
        )
        return response

    def _log_failure(
        self, base: dict, error_class: LLMErrorClass, start: float, **extra: object
    ) -> None:
        logger.error(
            "llm.request.failed",
            **safe_kv(
                **base,
                outcome="error",
                error_class=error_class.value,
                latency_ms=_elapsed_ms(start),
                **extra,
            ),
        )


def _elapsed_ms(start: float) -> int:
    return int((time.monotonic() - start) * 1000)


def _safe_parse_json(response: httpx.Response) -> dict | None:
    try:
        data = response.json()
    except ValueError:
        return None
    return data if isinstance(data, dict) else None
