"""Tests for chatgpz/ui/app.py: HTTP API."""

from datetime import datetime, timedelta

import httpx
import pytest
from fastapi.testclient import TestClient

from chatgpz import __version__
from chatgpz.auth import SESSION_COOKIE
from chatgpz.providers.base import ModelInfo
from chatgpz.skills import BUILT_IN_SKILLS
from chatgpz.storage import ChatStore, Session
from chatgpz.ui.app import create_app

from fakes import FakeProvider, content, tool_call


@pytest.fixture
def provider():
    return FakeProvider(models=[ModelInfo(id="llama3:8b", family="llama", parameter_size="8B")])


@pytest.fixture
def store():
    store = ChatStore("sqlite://")
    yield store
    store.close()


@pytest.fixture
def client(settings, provider, store, transport):
    app = create_app(
        settings,
        provider=provider,
        store=store,
        http_client=httpx.AsyncClient(transport=httpx.MockTransport(transport)),
    )
    with TestClient(app) as client:
        yield client


# ──────────────────────────────────────────────
# /api/chat
# ──────────────────────────────────────────────

class TestChat:

    def test_streams_tool_markers_and_answer(self, client, provider):
        provider.rounds = [
            [tool_call("calculator", expression="15 * 7")],
            [content("15 * 7 = 105.")],
        ]
        response = client.post("/api/chat", json={
            "model": "test-model",
            "messages": [{"role": "user", "content": "What's 15 * 7?"}],
        })
        assert response.status_code == 200
        assert response.headers["content-type"].startswith("text/plain")
        assert response.text == (
            '\n\n<!--TOOL_START:calculator:{"expression": "15 * 7"}-->15 * 7 = 105<!--TOOL_END-->'
            "15 * 7 = 105."
        )
        assert provider.stream_calls[0]["model"] == "test-model"

    def test_tools_can_be_disabled(self, client, provider):
        provider.rounds = [[content("plain")]]
        response = client.post("/api/chat", json={
            "model": "m", "enableTools": False,
            "messages": [{"role": "user", "content": "hi"}],
        })
        assert response.text == "plain"
        assert provider.stream_calls[0]["tools"] is None

    @pytest.mark.parametrize("body", [
        {"messages": [{"role": "user", "content": "hi"}]},
        {"model": "m"},
        {"model": "m", "messages": []},
        {"model": ["m"], "messages": [{"role": "user", "content": "hi"}]},
    ])
    def test_missing_fields(self, client, body):
        response = client.post("/api/chat", json=body)
        assert response.status_code == 400
        assert response.json() == {"error": "Model and messages are required"}

    def test_bad_message(self, client):
        response = client.post("/api/chat", json={"model": "m", "messages": [{"role": "robot", "content": "x"}]})
        assert response.status_code == 400
        assert "invalid role" in response.json()["error"]

    def test_not_json(self, client):
        response = client.post("/api/chat", content=b"nope", headers={"content-type": "application/json"})
        assert response.status_code == 400


class TestTitle:

    def test_title(self, client, provider):
        provider.reply = '"Python Debugging Help"'
        response = client.post("/api/chat/title", json={"messages": [{"role": "user", "content": "help"}]})
        assert response.json() == {"title": "Python Debugging Help"}
        assert provider.chat_calls[0]["model"] == "test-model"

    def test_failure_still_returns_title(self, client, provider):
        provider.reply = RuntimeError("offline")
        response = client.post("/api/chat/title", json={"messages": [{"role": "user", "content": "help"}]})
        assert response.status_code == 200
        assert response.json() == {"title": "New Chat", "error": "offline"}

    def test_messages_required(self, client):
        response = client.post("/api/chat/title", json={"messages": []})
        assert response.status_code == 400
        assert response.json() == {"error": "Messages array is required"}

    def test_model_must_be_text(self, client):
        response = client.post("/api/chat/title", json={"messages": [{"role": "user", "content": "hi"}], "model": 3})
        assert response.status_code == 400


# ──────────────────────────────────────────────
# /api/chats
# ──────────────────────────────────────────────

class TestChats:

    def _save(self, client, content, chat_id=None, role="user"):
        body = {"messages": [{"role": role, "content": content}]}
        if chat_id:
            body["chatId"] = chat_id
        return client.post("/api/chats", json=body)

    def test_save_and_list(self, client):
        first = self._save(client, "Hello there").json()
        chat_id = first["chatId"]
        assert first["message"]["content"] == "Hello there"
        self._save(client, "General Kenobi", chat_id=chat_id, role="assistant")

        chats = client.get("/api/chats").json()
        assert len(chats) == 1
        assert chats[0]["title"] == "Hello there"
        assert [m["role"] for m in chats[0]["messages"]] == ["user", "assistant"]
        assert client.get(f"/api/chats/{chat_id}").json()["id"] == chat_id

    @pytest.mark.parametrize("body,error", [
        ({"messages": []}, "Messages are required"),
        ({}, "Messages are required"),
        ({"messages": [{"role": "user"}]}, "Invalid message format"),
        ({"messages": [{"content": "x"}]}, "Invalid message format"),
        ({"messages": [{"role": "user", "content": ["hi"]}]}, "Invalid message format"),
        ({"messages": [{"role": "user", "content": {"text": "hi"}}]}, "Invalid message format"),
        ({"messages": [{"role": "robot", "content": "hi"}]}, "Invalid message format"),
        ({"messages": ["hi"]}, "Invalid message format"),
        ({"messages": [{"role": "user", "content": "hi"}], "chatId": {"id": 1}}, "Invalid chat id"),
    ])
    def test_save_validation(self, client, body, error):
        response = client.post("/api/chats", json=body)
        assert response.status_code == 400
        assert response.json() == {"error": error}

    def test_save_to_unknown_chat(self, client):
        assert self._save(client, "hi", chat_id="missing").status_code == 404

    def test_get_missing(self, client):
        response = client.get("/api/chats/missing")
        assert response.status_code == 404
        assert response.json() == {"error": "Chat not found"}

    def test_patch(self, client):
        chat_id = self._save(client, "Hello").json()["chatId"]
        chat = client.patch(f"/api/chats/{chat_id}", json={"title": "Renamed", "pinned": True}).json()
        assert chat["title"] == "Renamed"
        assert chat["pinned"] is True
        assert client.patch("/api/chats/missing", json={"title": "x"}).status_code == 404

    def test_delete(self, client):
        chat_id = self._save(client, "Hello").json()["chatId"]
        assert client.delete(f"/api/chats/{chat_id}").json() == {"success": True}
        assert client.get(f"/api/chats/{chat_id}").status_code == 404
        assert client.delete(f"/api/chats/{chat_id}").status_code == 404

    def test_generate_title(self, client, provider, store):
        chat_id = self._save(client, "How do I bake bread?").json()["chatId"]
        provider.reply = "Title: Bread Baking Basics"
        assert client.post(f"/api/chats/{chat_id}/generate-title").json() == {"title": "Bread Baking Basics"}
        assert store.get_chat(chat_id, "local")["title"] == "Bread Baking Basics"

    def test_generate_title_failure_keeps_title(self, client, provider, store):
        chat_id = self._save(client, "How do I bake bread?").json()["chatId"]
        provider.reply = RuntimeError("offline")
        assert client.post(f"/api/chats/{chat_id}/generate-title").json()["title"] == "New Chat"
        assert store.get_chat(chat_id, "local")["title"] == "How do I bake bread?"

    def test_generate_title_without_messages(self, client, store):
        chat_id = store.create_chat("local", "Empty")
        response = client.post(f"/api/chats/{chat_id}/generate-title")
        assert response.json() == {"error": "No messages to generate title from"}


# ──────────────────────────────────────────────
# Models, tools, status
# ──────────────────────────────────────────────

class TestModels:

    def test_list_is_cached(self, client, provider):
        first = client.get("/api/models").json()
        client.get("/api/models")
        assert first["models"][0]["id"] == "llama3:8b"
        assert first["models"][0]["family"] == "llama"
        assert provider.list_calls == 1

        client.get("/api/models", params={"refresh": "true"})
        assert provider.list_calls == 2

    def test_pull_and_delete_invalidate(self, client, provider):
        client.get("/api/models")
        assert client.post("/api/models/pull", json={"name": "qwen3:4b"}).json() == {"success": True, "model": "qwen3:4b"}
        client.get("/api/models")
        assert provider.list_calls == 2

        assert client.delete("/api/models/library/qwen3:4b").json()["model"] == "library/qwen3:4b"
        client.get("/api/models")
        assert provider.list_calls == 3
        assert provider.pulled == ["qwen3:4b"]
        assert provider.deleted == ["library/qwen3:4b"]

    def test_pull_requires_name(self, client):
        response = client.post("/api/models/pull", json={})
        assert response.status_code == 400


class TestInfo:

    def test_tools(self, client):
        tools = client.get("/api/tools").json()["tools"]
        assert [t["function"]["name"] for t in tools] == list(BUILT_IN_SKILLS)

    def test_status(self, client):
        status = client.get("/api/status").json()
        assert status["version"] == __version__
        assert status["ollama"]["reachable"] is True
        assert status["model"] == "test-model"
        assert "calculator" in status["tools"]
        assert 0 <= status["memory"] <= 100


# ──────────────────────────────────────────────
# Auth
# ──────────────────────────────────────────────

class TestAuth:

    @pytest.fixture
    def secured(self, client, settings, store):
        settings.auth_enabled = True
        with store.SessionLocal() as db:
            db.add(Session(id="good", user_id="alice", expires_at=datetime.utcnow() + timedelta(hours=1)))
            db.commit()
        return client

    def test_missing_cookie(self, secured):
        response = secured.get("/api/chats")
        assert response.status_code == 401
        assert response.json() == {"detail": "Not authenticated"}

    def test_bad_cookie(self, secured):
        secured.cookies.set(SESSION_COOKIE, "forged")
        response = secured.get("/api/chats")
        assert response.status_code == 401
        assert response.json() == {"detail": "Session expired or invalid"}

    def test_valid_session_scopes_chats(self, secured, store):
        store.create_chat("bob", "Not yours")
        mine = store.create_chat("alice", "Mine")
        secured.cookies.set(SESSION_COOKIE, "good")
        chats = secured.get("/api/chats").json()
        assert [c["id"] for c in chats] == [mine]

    def test_local_user_when_disabled(self, client, store):
        store.create_chat("local", "Local chat")
        assert [c["title"] for c in client.get("/api/chats").json()] == ["Local chat"]
