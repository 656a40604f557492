"""
End-to-End Tests for the assistant HTTP API

Exercises the FastAPI app with the service dependency swapped for one backed
by a scripted provider client:
- Chat turns, caching and session follow-ups
- Session read / delete with ownership checks
- Error mapping to HTTP statuses
- Admin cache endpoints
"""

import pytest
import sys
import os

from fastapi.testclient import TestClient

# Add project root to path
project_root = os.path.abspath(os.path.join(os.path.dirname(__file__), "../.."))
sys.path.insert(0, os.path.join(project_root, "ai_learning_assistant", "src"))
sys.path.insert(0, os.path.join(project_root, "backend"))

from main import app, get_service

from ai_learning_assistant.collaborators import InMemoryAchievementsStore, InMemoryProgressStore
from ai_learning_assistant.config import AI_MODELS
from ai_learning_assistant.context_aggregator import ContextAggregator
from ai_learning_assistant.models import Tier
from ai_learning_assistant.service import AssistantService

ALICE = {"X-User-Id": "alice", "X-User-Tier": "free"}
BOB = {"X-User-Id": "bob", "X-User-Tier": "premium"}


class TestChatAPI:
    """Test suite for the chat endpoints."""

    @pytest.fixture
    def service(self, fake_client, settings):
        aggregator = ContextAggregator(InMemoryProgressStore(), InMemoryAchievementsStore())
        return AssistantService(aggregator=aggregator, client=fake_client, settings=settings)

    @pytest.fixture
    def client(self, service):
        app.dependency_overrides[get_service] = lambda: service
        yield TestClient(app)
        app.dependency_overrides.clear()

    def chat(self, client, message, headers=ALICE, **fields):
        return client.post("/api/ai-assistant/chat", json={"message": message, **fields}, headers=headers)

    def test_health(self, client):
        response = client.get("/")

        assert response.status_code == 200
        assert response.json()["status"] == "ok"
        assert response.json()["ai_configured"] is True

    def test_missing_identity(self, client):
        response = client.post("/api/ai-assistant/chat", json={"message": "привет"})

        assert response.status_code == 401
        assert response.json()["detail"]["code"] == "NOT_AUTHENTICATED"

    def test_chat_turn(self, client, fake_client):
        response = self.chat(client, "что такое переменная?", requestType="question", day=2, languageId="python")

        assert response.status_code == 200
        body = response.json()
        assert body["message"] == fake_client.default_reply
        assert body["cached"] is False
        assert body["usedFallback"] is False
        assert body["tier"] == "free"
        assert body["model"] == AI_MODELS[Tier.FREE].model
        assert body["sessionId"].startswith("session_")

    def test_repeat_is_cached(self, client, fake_client):
        payload = {"requestType": "question", "day": 2, "languageId": "python"}
        self.chat(client, "что такое переменная?", **payload)
        second = self.chat(client, "Что такое переменная?", **payload)

        assert second.json()["cached"] is True
        assert len(fake_client.calls) == 1

    def test_filtered_message(self, client, fake_client):
        response = self.chat(client, "привет дурак как дела")

        assert response.status_code == 400
        error = response.json()["error"]
        assert error["code"] == "CONTENT_FILTERED"
        assert error["userMessage"]
        assert error["blocked"] == ["дурак"]
        assert fake_client.calls == []

    def test_invalid_request_type(self, client):
        response = self.chat(client, "привет", requestType="homework")

        assert response.status_code == 400
        assert response.json()["error"]["code"] == "INVALID_REQUEST_TYPE"

    def test_empty_message(self, client):
        response = self.chat(client, "   ")

        assert response.status_code == 400
        assert response.json()["error"]["code"] == "EMPTY_MESSAGE"

    def test_day_out_of_range(self, client):
        response = self.chat(client, "привет", day=91)

        assert response.status_code == 422

    def test_provider_failure(self, client, fake_client, provider_error):
        fake_client.outcomes[AI_MODELS[Tier.FREE].model] = provider_error

        response = self.chat(client, "что такое переменная?")

        assert response.status_code == 503
        error = response.json()["error"]
        assert error["code"] == "AI_UNAVAILABLE"
        assert error["retryable"] is True
        assert "502" not in error["userMessage"]

    def test_premium_fallback(self, client, fake_client, provider_error):
        fake_client.outcomes[AI_MODELS[Tier.PREMIUM].model] = provider_error

        body = self.chat(client, "что такое переменная?", headers=BOB).json()

        assert body["usedFallback"] is True
        assert body["tier"] == "premium"
        assert body["model"] == AI_MODELS[Tier.FREE].model

    def test_session_read_and_delete(self, client):
        session_id = self.chat(client, "что такое переменная?").json()["sessionId"]
        self.chat(client, "а константа?", sessionId=session_id)

        info = client.get("/api/ai-assistant/chat", params={"sessionId": session_id}, headers=ALICE)
        assert info.status_code == 200
        assert info.json()["messageCount"] == 4
        assert [m["role"] for m in info.json()["messages"]] == ["user", "assistant", "user", "assistant"]

        deleted = client.delete("/api/ai-assistant/chat", params={"sessionId": session_id}, headers=ALICE)
        assert deleted.json() == {"success": True, "message": "История очищена"}

        gone = client.get("/api/ai-assistant/chat", params={"sessionId": session_id}, headers=ALICE)
        assert gone.status_code == 404
        assert gone.json()["error"]["code"] == "SESSION_NOT_FOUND"

        follow_up = self.chat(client, "ещё вопрос", sessionId=session_id)
        assert follow_up.status_code == 404

    def test_foreign_session_not_visible(self, client):
        session_id = self.chat(client, "что такое переменная?").json()["sessionId"]

        assert client.get("/api/ai-assistant/chat", params={"sessionId": session_id}, headers=BOB).status_code == 404
        assert client.delete("/api/ai-assistant/chat", params={"sessionId": session_id}, headers=BOB).status_code == 404
        assert self.chat(client, "покажи", headers=BOB, sessionId=session_id).status_code == 404
        assert client.get("/api/ai-assistant/chat", params={"sessionId": session_id}, headers=ALICE).status_code == 200

    def test_missing_session_id(self, client):
        response = client.get("/api/ai-assistant/chat", headers=ALICE)

        assert response.status_code == 400
        assert response.json()["detail"]["code"] == "MISSING_SESSION_ID"

    def test_delete_all_sessions(self, client):
        self.chat(client, "вопрос один")
        self.chat(client, "вопрос два")
        self.chat(client, "вопрос три", headers=BOB)

        response = client.delete("/api/ai-assistant/sessions", headers=ALICE)

        assert response.json() == {"success": True, "deleted": 2}

    def test_welcome(self, client):
        response = client.get("/api/ai-assistant/welcome", headers=ALICE)

        assert response.status_code == 200
        assert response.json()["day"] == 1
        assert "**День 1**" in response.json()["message"]


class TestAdminAPI:
    """Test suite for the admin cache endpoints."""

    @pytest.fixture
    def service(self, fake_client, settings):
        aggregator = ContextAggregator(InMemoryProgressStore(), InMemoryAchievementsStore())
        return AssistantService(aggregator=aggregator, client=fake_client, settings=settings)

    @pytest.fixture
    def client(self, service, monkeypatch):
        monkeypatch.setenv("ADMIN_SECRET", "s3cret")
        app.dependency_overrides[get_service] = lambda: service
        yield TestClient(app)
        app.dependency_overrides.clear()

    def test_requires_secret(self, client):
        assert client.post("/api/admin/clear-cache").status_code == 403
        assert client.post("/api/admin/clear-cache", headers={"X-Admin-Secret": "wrong"}).status_code == 403

    def test_disabled_without_secret(self, client, monkeypatch):
        monkeypatch.delenv("ADMIN_SECRET")

        assert client.get("/api/admin/cache-stats", headers={"X-Admin-Secret": "s3cret"}).status_code == 403

    def test_clear_one_day(self, client, service):
        for day in (2, 3):
            service.aggregator.progress.set_active_day("alice", day)
            client.post("/api/ai-assistant/chat", json={"message": "что такое переменная?"}, headers=ALICE)

        response = client.post(
            "/api/admin/clear-cache",
            json={"languageId": "python", "day": 2},
            headers={"X-Admin-Secret": "s3cret"},
        )

        body = response.json()
        assert body["success"] is True
        assert body["scope"] == "python:day2"
        assert body["removed"] == 1
        assert body["stats"]["size"] == 1

    def test_clear_everything(self, client):
        client.post("/api/ai-assistant/chat", json={"message": "что такое цикл?"}, headers=ALICE)

        body = client.post("/api/admin/clear-cache", headers={"X-Admin-Secret": "s3cret"}).json()

        assert body["scope"] == "all"
        assert body["removed"] == 1
        assert body["stats"]["size"] == 0

    def test_cache_stats(self, client):
        client.post("/api/ai-assistant/chat", json={"message": "что такое цикл?"}, headers=ALICE)

        body = client.get("/api/admin/cache-stats", headers={"X-Admin-Secret": "s3cret"}).json()

        assert body["cache"]["size"] == 1
        assert body["sessions"]["total_sessions"] == 1
