"""Async client for the Labmate API.

send_turn races the relay call against the client budget with
asyncio.wait_for; everything else uses the httpx client's own timeout.
"""

import asyncio
from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum
from typing import Any

import httpx
from pydantic import ValidationError

from labmate.logging import get_logger
from labmate.schemas.chat import ChatOut, MessageOut
from labmate.schemas.profile import ProfileOut

logger = get_logger(__name__)

DEFAULT_CLIENT_TIMEOUT_S = 30.0


class ApiErrorKind(str, Enum):
    TIMEOUT = "timeout"
    TRANSPORT = "transport"
    INVALID_RESPONSE = "invalid_response"
    SERVER = "server"


class ApiClientError(Exception):
    """A failed API call.

    Attributes:
        kind: What went wrong, independent of the endpoint
        message: Human-readable summary
        status: HTTP status, when a response arrived
        code: Server error code (E_...), when the body carried one
        details: Server detail string, when the body carried one
    """

    def __init__(
        self,
        kind: ApiErrorKind,
        message: str,
        status: int | None = None,
        code: str | None = None,
        details: str | None = None,
    ):
        self.kind = kind
        self.message = message
        self.status = status
        self.code = code
        self.details = details
        super().__init__(message)


@dataclass(frozen=True)
class RelayReply:
    response: str
    chat_id: str


class ApiClient:
    def __init__(
        self,
        base_url: str,
        token_provider: Callable[[], str | None],
        http: httpx.AsyncClient,
        timeout_s: float = DEFAULT_CLIENT_TIMEOUT_S,
    ):
        self.base_url = base_url.rstrip("/")
        self._token_provider = token_provider
        self._http = http
        self.timeout_s = timeout_s

    async def _request(self, method: str, path: str, **kwargs: Any) -> httpx.Response:
        headers = dict(kwargs.pop("headers", None) or {})
        token = self._token_provider()
        if token:
            headers["Authorization"] = f"Bearer {token}"

        try:
            response = await self._http.request(
                method, f"{self.base_url}{path}", headers=headers, **kwargs
            )
        except httpx.TimeoutException as e:
            raise ApiClientError(ApiErrorKind.TIMEOUT, "Request timeout") from e
        except httpx.HTTPError as e:
            raise ApiClientError(ApiErrorKind.TRANSPORT, f"Network error: {type(e).__name__}") from e

        if response.status_code >= 400:
            raise _server_error(response)
        return response

    async def _get_json(self, path: str, params: dict[str, Any] | None = None) -> Any:
        response = await self._request("GET", path, params=params)
        try:
            return response.json()
        except ValueError as e:
            raise ApiClientError(
                ApiErrorKind.INVALID_RESPONSE, "Invalid response from server", response.status_code
            ) from e

    async def _get_all_pages(self, path: str, limit: int = 100) -> list[dict[str, Any]]:
        items: list[dict[str, Any]] = []
        cursor: str | None = None
        while True:
            params: dict[str, Any] = {"limit": limit}
            if cursor:
                params["cursor"] = cursor
            body = await self._get_json(path, params=params)
            if not isinstance(body, dict) or not isinstance(body.get("data"), list):
                raise ApiClientError(ApiErrorKind.INVALID_RESPONSE, "Invalid response from server")
            items.extend(body["data"])
            cursor = (body.get("page") or {}).get("next_cursor")
            if not cursor:
                return items

    # -------------------------------------------------------------------------
    # Relay
    # -------------------------------------------------------------------------

    async def send_turn(
        self,
        messages: list[dict[str, str]],
        chat_id: str | None = None,
        title: str | None = None,
    ) -> RelayReply:
        """POST /chat-with-ai under the client budget.

        Raises:
            ApiClientError: TIMEOUT when the budget expires (the request is
                cancelled), INVALID_RESPONSE when the body has no reply text,
                SERVER / TRANSPORT otherwise.
        """
        payload: dict[str, Any] = {"messages": messages}
        if chat_id:
            payload["chatId"] = chat_id
        if title:
            payload["title"] = title

        try:
            response = await asyncio.wait_for(
                self._request("POST", "/chat-with-ai", json=payload),
                timeout=self.timeout_s,
            )
        except asyncio.TimeoutError as e:
            logger.warning("relay.client.timeout", timeout_s=self.timeout_s)
            raise ApiClientError(ApiErrorKind.TIMEOUT, "Request timeout") from e

        try:
            data = response.json()
        except ValueError:
            data = None

        reply = data.get("response") if isinstance(data, dict) else None
        reply_chat_id = data.get("chatId") if isinstance(data, dict) else None
        if not isinstance(reply, str) or not reply or not isinstance(reply_chat_id, str):
            raise ApiClientError(
                ApiErrorKind.INVALID_RESPONSE,
                "Invalid response from AI service",
                response.status_code,
            )
        return RelayReply(response=reply, chat_id=reply_chat_id)

    # -------------------------------------------------------------------------
    # Chats, messages, profile
    # -------------------------------------------------------------------------

    async def list_chats(self) -> list[ChatOut]:
        """All of the caller's chats, most recently active first."""
        return _parse_all(ChatOut, await self._get_all_pages("/chats"))

    async def list_messages(self, chat_id: str) -> list[MessageOut]:
        """All messages of one chat, oldest first."""
        return _parse_all(MessageOut, await self._get_all_pages(f"/chats/{chat_id}/messages"))

    async def delete_chat(self, chat_id: str) -> None:
        await self._request("DELETE", f"/chats/{chat_id}")

    async def get_profile(self) -> ProfileOut:
        body = await self._get_json("/me")
        try:
            return ProfileOut.model_validate(body["data"])
        except (ValidationError, KeyError, TypeError) as e:
            raise ApiClientError(ApiErrorKind.INVALID_RESPONSE, "Invalid response from server") from e


def _parse_all(model, items: list[dict[str, Any]]) -> list:
    try:
        return [model.model_validate(item) for item in items]
    except ValidationError as e:
        raise ApiClientError(ApiErrorKind.INVALID_RESPONSE, "Invalid response from server") from e


def _server_error(response: httpx.Response) -> ApiClientError:
    try:
        body = response.json()
    except ValueError:
        body = None

    if isinstance(body, dict) and isinstance(body.get("error"), str):
        return ApiClientError(
            ApiErrorKind.SERVER,
            body["error"],
            status=response.status_code,
            code=body.get("code"),
            details=body.get("details"),
        )
    return ApiClientError(
        ApiErrorKind.SERVER, f"Server returned HTTP {response.status_code}", response.status_code
    )
