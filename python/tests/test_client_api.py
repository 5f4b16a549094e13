"""Tests for the async API client against a respx-mocked Labmate API."""

import asyncio
import json

import httpx
import pytest
import respx

from labmate.client.api import ApiClient, ApiClientError, ApiErrorKind

BASE_URL = "http://labmate.test"
CHAT_ID = "3f2504e0-4f89-11d3-9a0c-0305e82c3301"


def chat_json(n: int) -> dict:
    return {
        "id": f"00000000-0000-0000-0000-{n:012d}",
        "title": f"chat {n}",
        "created_at": "2026-01-01T00:00:00Z",
        "updated_at": f"2026-01-{n + 1:02d}T00:00:00Z",
    }


@pytest.fixture
def api():
    return ApiClient(BASE_URL, lambda: "token-1", httpx.AsyncClient(), timeout_s=30.0)


class TestSendTurn:
    @pytest.mark.asyncio
    @respx.mock
    async def test_success(self, api):
        route = respx.post(f"{BASE_URL}/chat-with-ai").respond(
            200, json={"response": "Answer", "chatId": CHAT_ID}
        )

        reply = await api.send_turn([{"role": "user", "content": "Q"}], title="Q")

        assert reply.response == "Answer"
        assert reply.chat_id == CHAT_ID
        request = route.calls.last.request
        assert request.headers["Authorization"] == "Bearer token-1"
        assert json.loads(request.content) == {
            "messages": [{"role": "user", "content": "Q"}],
            "title": "Q",
        }

    @pytest.mark.asyncio
    @respx.mock
    async def test_existing_chat_id_sent(self, api):
        route = respx.post(f"{BASE_URL}/chat-with-ai").respond(
            200, json={"response": "A", "chatId": CHAT_ID}
        )

        await api.send_turn([{"role": "user", "content": "Q"}], chat_id=CHAT_ID)

        assert json.loads(route.calls.last.request.content)["chatId"] == CHAT_ID

    @pytest.mark.asyncio
    async def test_budget_expiry_is_timeout(self):
        async def slow(request):
            await asyncio.sleep(5)
            return httpx.Response(200, json={"response": "late", "chatId": CHAT_ID})

        transport = httpx.MockTransport(slow)
        api = ApiClient(BASE_URL, lambda: "t", httpx.AsyncClient(transport=transport), timeout_s=0.05)

        with pytest.raises(ApiClientError) as exc_info:
            await api.send_turn([{"role": "user", "content": "Q"}])

        assert exc_info.value.kind == ApiErrorKind.TIMEOUT

    @pytest.mark.asyncio
    @respx.mock
    @pytest.mark.parametrize(
        "body",
        [{"chatId": CHAT_ID}, {"response": "", "chatId": CHAT_ID}, {"response": "A"}, ["A"]],
    )
    async def test_malformed_reply_is_invalid_response(self, api, body):
        respx.post(f"{BASE_URL}/chat-with-ai").respond(200, json=body)

        with pytest.raises(ApiClientError) as exc_info:
            await api.send_turn([{"role": "user", "content": "Q"}])

        assert exc_info.value.kind == ApiErrorKind.INVALID_RESPONSE

    @pytest.mark.asyncio
    @respx.mock
    async def test_server_error_keeps_body_fields(self, api):
        respx.post(f"{BASE_URL}/chat-with-ai").respond(
            502,
            json={
                "error": "AI service unavailable",
                "details": "AI/ML API error: 503",
                "code": "E_UPSTREAM_UNAVAILABLE",
            },
        )

        with pytest.raises(ApiClientError) as exc_info:
            await api.send_turn([{"role": "user", "content": "Q"}])

        error = exc_info.value
        assert error.kind == ApiErrorKind.SERVER
        assert error.status == 502
        assert error.message == "AI service unavailable"
        assert error.details == "AI/ML API error: 503"
        assert error.code == "E_UPSTREAM_UNAVAILABLE"

    @pytest.mark.asyncio
    @respx.mock
    async def test_connection_failure_is_transport(self, api):
        respx.post(f"{BASE_URL}/chat-with-ai").mock(side_effect=httpx.ConnectError("refused"))

        with pytest.raises(ApiClientError) as exc_info:
            await api.send_turn([{"role": "user", "content": "Q"}])

        assert exc_info.value.kind == ApiErrorKind.TRANSPORT


class TestListing:
    @pytest.mark.asyncio
    @respx.mock
    async def test_list_chats_follows_cursor(self, api):
        route = respx.get(f"{BASE_URL}/chats").mock(
            side_effect=[
                httpx.Response(
                    200, json={"data": [chat_json(2), chat_json(1)], "page": {"next_cursor": "c1"}}
                ),
                httpx.Response(200, json={"data": [chat_json(0)], "page": {"next_cursor": None}}),
            ]
        )

        chats = await api.list_chats()

        assert [c.title for c in chats] == ["chat 2", "chat 1", "chat 0"]
        assert route.calls[1].request.url.params["cursor"] == "c1"

    @pytest.mark.asyncio
    @respx.mock
    async def test_list_messages(self, api):
        respx.get(f"{BASE_URL}/chats/{CHAT_ID}/messages").respond(
            200,
            json={
                "data": [
                    {
                        "id": "00000000-0000-0000-0000-000000000001",
                        "chat_id": CHAT_ID,
                        "role": "user",
                        "content": "Q",
                        "created_at": "2026-01-01T00:00:00Z",
                    }
                ],
                "page": {"next_cursor": None},
            },
        )

        messages = await api.list_messages(CHAT_ID)

        assert [m.content for m in messages] == ["Q"]

    @pytest.mark.asyncio
    @respx.mock
    async def test_delete_chat(self, api):
        route = respx.delete(f"{BASE_URL}/chats/{CHAT_ID}").respond(204)

        await api.delete_chat(CHAT_ID)

        assert route.called

    @pytest.mark.asyncio
    @respx.mock
    async def test_profile_not_found(self, api):
        respx.get(f"{BASE_URL}/me").respond(
            404, json={"error": "Profile not found", "code": "E_NOT_FOUND"}
        )

        with pytest.raises(ApiClientError) as exc_info:
            await api.get_profile()

        assert exc_info.value.status == 404

    @pytest.mark.asyncio
    async def test_no_token_sends_no_authorization(self):
        seen = []

        def handler(request):
            seen.append(request.headers.get("Authorization"))
            return httpx.Response(200, json={"data": [], "page": {"next_cursor": None}})

        api = ApiClient(BASE_URL, lambda: None, httpx.AsyncClient(transport=httpx.MockTransport(handler)))

        assert await api.list_chats() == []
        assert seen == [None]
