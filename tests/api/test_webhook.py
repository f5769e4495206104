"""
Tests for the webhook and health endpoints.
"""

import pytest
from fastapi.testclient import TestClient
from unittest.mock import AsyncMock, MagicMock

from chatwallet.bot.handlers import get_assistant
from chatwallet.config import settings
from chatwallet.main import app
from chatwallet.types import HandledUpdate, Reply

UPDATE = {
    "update_id": 1001,
    "message": {
        "message_id": 1,
        "chat": {"id": 42, "type": "private"},
        "from": {"id": 42, "first_name": "Alice", "username": "alice"},
        "text": "/balance",
    },
}


@pytest.fixture
def assistant():
    mock = MagicMock()
    mock.handle_update = AsyncMock(return_value=HandledUpdate(
        reply=Reply(chat_id=42, text="💰 *Your Balance*")
    ))
    mock.notifier.health_check = AsyncMock(return_value={"status": "healthy"})
    mock.resolver.nlu = None
    mock.rpc = None
    return mock


@pytest.fixture
def client(assistant):
    app.dependency_overrides[get_assistant] = lambda: assistant
    yield TestClient(app)
    app.dependency_overrides.clear()


class TestWebhook:
    """Tests for POST /webhook."""

    def test_reply_is_returned_as_send_message(self, client, assistant, monkeypatch):
        monkeypatch.setattr(settings, "telegram_webhook_secret", "")
        response = client.post("/webhook", json=UPDATE)

        assert response.status_code == 200
        assert response.json() == {
            "method": "sendMessage",
            "chat_id": 42,
            "text": "💰 *Your Balance*",
            "parse_mode": "Markdown",
        }
        update = assistant.handle_update.await_args.args[0]
        assert update.update_id == 1001
        assert update.message.from_user.username == "alice"

    def test_no_reply(self, client, assistant, monkeypatch):
        monkeypatch.setattr(settings, "telegram_webhook_secret", "")
        assistant.handle_update.return_value = HandledUpdate()

        response = client.post("/webhook", json=UPDATE)
        assert response.json() == {"ok": True}

    def test_secret_is_checked(self, client, assistant, monkeypatch):
        monkeypatch.setattr(settings, "telegram_webhook_secret", "s3cret")

        rejected = client.post("/webhook", json=UPDATE, headers={"X-Telegram-Bot-Api-Secret-Token": "wrong"})
        missing = client.post("/webhook", json=UPDATE)
        accepted = client.post("/webhook", json=UPDATE, headers={"X-Telegram-Bot-Api-Secret-Token": "s3cret"})

        assert rejected.status_code == 401
        assert missing.status_code == 401
        assert accepted.status_code == 200
        assert assistant.handle_update.await_count == 1

    def test_malformed_update(self, client, monkeypatch):
        monkeypatch.setattr(settings, "telegram_webhook_secret", "")
        assert client.post("/webhook", json={"message": {}}).status_code == 422


class TestHealth:
    """Tests for GET /healthz and GET /."""

    def test_health_without_rpc(self, client):
        data = client.get("/healthz").json()

        assert data["providers"]["telegram"] == {"status": "healthy"}
        assert data["providers"]["nlu"] == {"status": "unavailable"}
        assert data["available_providers"] == 1
        assert data["total_providers"] == 2
        assert data["status"] == "healthy"

    def test_root(self, client):
        data = client.get("/").json()
        assert data["webhook"] == "/webhook"
        assert data["health"] == "/healthz"

    def test_request_id_header(self, client):
        response = client.get("/", headers={"x-request-id": "req-42"})
        assert response.headers["x-request-id"] == "req-42"
