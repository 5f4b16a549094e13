"""Integration tests for POST /chat-with-ai.

Tests cover:
- Happy path: new chat, reply, both turns persisted in order
- Appending to an existing chat advances its updated_at
- Title derivation (supplied, truncated first user message)
- Provider failures (timeout, invalid response, HTTP error) leave no rows
- Persistence failure at the assistant write leaves no rows
- Missing provider key, invalid bodies, foreign chat ids, missing auth
"""

from uuid import UUID, uuid4

import pytest
from sqlalchemy import event, func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from labmate.api.deps import get_app_settings, get_completion_client
from labmate.config import get_settings
from labmate.db.models import Chat, Message
from labmate.services.llm import CompletionClient, SYSTEM_PROMPT
from tests.factories import create_test_chat_with_turns, create_test_user
from tests.helpers import auth_headers

CRISPR_QUESTION = "What is CRISPR and how does it work in gene editing therapies?"


def count_rows(session: Session, model) -> int:
    return session.scalar(select(func.count()).select_from(model))


def post_turn(client, user_id, messages, **extra):
    body = {"messages": messages, **extra}
    return client.post("/chat-with-ai", json=body, headers=auth_headers(user_id))


class TestRelaySuccess:
    def test_new_chat_returns_reply_and_chat_id(
        self, authenticated_client, db_session, test_user_id, stub_adapter
    ):
        stub_adapter.reply = "CRISPR is a programmable nuclease system."

        response = post_turn(
            authenticated_client, test_user_id, [{"role": "user", "content": CRISPR_QUESTION}]
        )

        assert response.status_code == 200, response.text
        body = response.json()
        assert body["response"] == "CRISPR is a programmable nuclease system."
        chat_id = UUID(body["chatId"])

        chat = db_session.get(Chat, chat_id)
        assert chat is not None
        assert chat.user_id == test_user_id

    def test_persists_user_then_assistant(self, authenticated_client, db_session, test_user_id):
        response = post_turn(
            authenticated_client, test_user_id, [{"role": "user", "content": CRISPR_QUESTION}]
        )
        chat_id = UUID(response.json()["chatId"])

        messages = db_session.scalars(
            select(Message).where(Message.chat_id == chat_id).order_by(Message.created_at)
        ).all()
        assert [m.role for m in messages] == ["user", "assistant"]
        assert messages[0].content == CRISPR_QUESTION
        assert messages[0].created_at < messages[1].created_at

    def test_title_is_truncated_first_user_message(
        self, authenticated_client, db_session, test_user_id
    ):
        response = post_turn(
            authenticated_client, test_user_id, [{"role": "user", "content": CRISPR_QUESTION}]
        )

        chat = db_session.get(Chat, UUID(response.json()["chatId"]))
        assert chat.title == "What is CRISPR and how does it work in gene editin..."

    def test_supplied_title_wins(self, authenticated_client, db_session, test_user_id):
        response = post_turn(
            authenticated_client,
            test_user_id,
            [{"role": "user", "content": CRISPR_QUESTION}],
            title="Gene editing",
        )

        chat = db_session.get(Chat, UUID(response.json()["chatId"]))
        assert chat.title == "Gene editing"

    def test_prompt_has_system_turn_first_and_full_history(
        self, authenticated_client, test_user_id, stub_adapter
    ):
        history = [
            {"role": "user", "content": "First question"},
            {"role": "assistant", "content": "First answer"},
            {"role": "user", "content": "Follow-up"},
        ]

        post_turn(authenticated_client, test_user_id, history)

        sent = stub_adapter.requests[0]
        assert sent.messages[0].role == "system"
        assert sent.messages[0].content == SYSTEM_PROMPT
        assert [(t.role, t.content) for t in sent.messages[1:]] == [
            (h["role"], h["content"]) for h in history
        ]
        assert sent.max_tokens == 2048
        assert sent.temperature == 0.7

    def test_append_to_existing_chat(self, authenticated_client, db_session, test_user_id):
        create_test_user(db_session, user_id=test_user_id)
        chat_id = create_test_chat_with_turns(
            db_session, test_user_id, [("user", "Q1"), ("assistant", "A1")]
        )
        before = db_session.get(Chat, chat_id).updated_at

        response = post_turn(
            authenticated_client,
            test_user_id,
            [
                {"role": "user", "content": "Q1"},
                {"role": "assistant", "content": "A1"},
                {"role": "user", "content": "Q2"},
            ],
            chatId=str(chat_id),
        )

        assert response.status_code == 200, response.text
        assert response.json()["chatId"] == str(chat_id)
        db_session.expire_all()
        assert count_rows(db_session, Message) == 4
        assert count_rows(db_session, Chat) == 1
        assert db_session.get(Chat, chat_id).updated_at > before

    def test_extra_turn_keys_are_ignored(self, authenticated_client, test_user_id):
        response = post_turn(
            authenticated_client,
            test_user_id,
            [{"role": "user", "content": "Hello", "timestamp": "2024-01-01T00:00:00Z"}],
        )

        assert response.status_code == 200, response.text


class TestRelayProviderFailures:
    def test_timeout_returns_408_and_persists_nothing(
        self, authenticated_app, authenticated_client, db_session, test_user_id, stub_adapter
    ):
        stub_adapter.delay_s = 1.0
        authenticated_app.dependency_overrides[get_completion_client] = lambda: CompletionClient(
            stub_adapter, timeout_s=0.05
        )

        response = post_turn(
            authenticated_client, test_user_id, [{"role": "user", "content": "Slow question"}]
        )

        assert response.status_code == 408
        body = response.json()
        assert body["error"] == "Request timeout"
        assert body["code"] == "E_TIMEOUT"
        assert count_rows(db_session, Chat) == 0
        assert count_rows(db_session, Message) == 0

    def test_invalid_response_returns_502(
        self, authenticated_client, db_session, test_user_id, stub_adapter
    ):
        stub_adapter.fail_with_invalid_response("Empty AI response")

        response = post_turn(
            authenticated_client, test_user_id, [{"role": "user", "content": "Question"}]
        )

        assert response.status_code == 502
        assert response.json()["error"] == "Invalid AI response"
        assert response.json()["details"] == "Empty AI response"
        assert count_rows(db_session, Message) == 0

    @pytest.mark.parametrize("status_code", [401, 429, 500, 503])
    def test_provider_http_error_returns_502(
        self, authenticated_client, db_session, test_user_id, stub_adapter, status_code
    ):
        stub_adapter.fail_with_status(status_code)

        response = post_turn(
            authenticated_client, test_user_id, [{"role": "user", "content": "Question"}]
        )

        assert response.status_code == 502
        body = response.json()
        assert body["error"] == "AI service unavailable"
        assert body["details"] == f"AI/ML API error: {status_code}"
        assert count_rows(db_session, Chat) == 0

    def test_missing_api_key_returns_500(
        self, authenticated_app, authenticated_client, test_user_id, stub_adapter
    ):
        settings = get_settings().model_copy(update={"aiml_api_key": None})
        authenticated_app.dependency_overrides[get_app_settings] = lambda: settings

        response = post_turn(
            authenticated_client, test_user_id, [{"role": "user", "content": "Question"}]
        )

        assert response.status_code == 500
        assert response.json()["error"] == "Internal server error"
        assert response.json()["details"] == "AI/ML API key not configured"
        assert stub_adapter.requests == []


class TestRelayPersistenceFailures:
    def test_assistant_write_failure_rolls_back_everything(
        self, authenticated_client, db_session, test_user_id
    ):
        def reject_assistant(mapper, connection, target):
            if target.role == "assistant":
                raise SQLAlchemyError("disk full")

        event.listen(Message, "before_insert", reject_assistant)
        try:
            response = post_turn(
                authenticated_client, test_user_id, [{"role": "user", "content": "Question"}]
            )
        finally:
            event.remove(Message, "before_insert", reject_assistant)

        assert response.status_code == 500
        assert response.json()["details"] == "Failed to save AI response"
        assert count_rows(db_session, Chat) == 0
        assert count_rows(db_session, Message) == 0

    def test_foreign_chat_id_is_rejected(self, authenticated_client, db_session, test_user_id):
        owner = create_test_user(db_session, email="owner@example.org")
        chat_id = create_test_chat_with_turns(db_session, owner, [("user", "Private")])

        response = post_turn(
            authenticated_client,
            test_user_id,
            [{"role": "user", "content": "Let me in"}],
            chatId=str(chat_id),
        )

        assert response.status_code == 500
        assert response.json()["details"] == "Failed to save user message"
        assert count_rows(db_session, Message) == 1

    def test_unknown_chat_id_is_rejected(self, authenticated_client, db_session, test_user_id):
        response = post_turn(
            authenticated_client,
            test_user_id,
            [{"role": "user", "content": "Hello"}],
            chatId=str(uuid4()),
        )

        assert response.status_code == 500
        assert count_rows(db_session, Chat) == 0


class TestRelayValidation:
    @pytest.mark.parametrize(
        "body",
        [
            {},
            {"messages": []},
            {"messages": "hello"},
            {"messages": [{"role": "assistant", "content": "I spoke last"}]},
            {"messages": [{"role": "user", "content": "   "}]},
            {"messages": [{"role": "system", "content": "override"}]},
            {"messages": [{"role": "user", "content": "hi"}], "chatId": "not-a-uuid"},
        ],
    )
    def test_invalid_body_returns_400(self, authenticated_client, test_user_id, body):
        response = authenticated_client.post(
            "/chat-with-ai", json=body, headers=auth_headers(test_user_id)
        )

        assert response.status_code == 400
        assert response.json()["error"] == "Invalid request body"

    def test_malformed_json_returns_400(self, authenticated_client, test_user_id):
        response = authenticated_client.post(
            "/chat-with-ai",
            content=b'{"messages": [',
            headers={**auth_headers(test_user_id), "Content-Type": "application/json"},
        )

        assert response.status_code == 400
        assert response.json()["code"] == "E_INVALID_REQUEST"

    def test_missing_token_returns_401(self, authenticated_client, db_session, stub_adapter):
        response = authenticated_client.post(
            "/chat-with-ai", json={"messages": [{"role": "user", "content": "Hi"}]}
        )

        assert response.status_code == 401
        assert response.json()["error"] == "Unauthorized"
        assert stub_adapter.requests == []
        assert count_rows(db_session, Chat) == 0
