"""Tests for chatgpz/storage/: chat persistence over SQLite."""

from datetime import datetime, timedelta

import pytest
from sqlalchemy import func, select

from chatgpz.storage import ChatStore
from chatgpz.storage.chats import initial_title
from chatgpz.storage.models import ChatMessage, Session


@pytest.fixture
def store():
    store = ChatStore("sqlite://")
    store.init_db()
    yield store
    store.close()


def _message_count(store):
    with store.SessionLocal() as db:
        return db.scalar(select(func.count()).select_from(ChatMessage))


# ──────────────────────────────────────────────
# Chats
# ──────────────────────────────────────────────

class TestChats:

    def test_create_and_get(self, store):
        chat_id = store.create_chat("alice", "Trip planning")
        chat = store.get_chat(chat_id, "alice")
        assert chat["id"] == chat_id
        assert chat["title"] == "Trip planning"
        assert chat["pinned"] is False
        assert chat["messages"] == []

    def test_other_user_cannot_see_chat(self, store):
        chat_id = store.create_chat("alice", "Private")
        assert store.get_chat(chat_id, "bob") is None
        assert store.list_chats("bob") == []

    def test_list_pinned_first_then_recent(self, store):
        old = store.create_chat("alice", "old")
        pinned = store.create_chat("alice", "pinned")
        recent = store.create_chat("alice", "recent")
        store.set_pinned(pinned, True)
        store.append_message(recent, "user", "bump")
        store.append_message(old, "user", "bump again")

        assert [c["title"] for c in store.list_chats("alice")] == ["pinned", "old", "recent"]

    def test_rename_and_pin(self, store):
        chat_id = store.create_chat("alice", "a")
        assert store.rename_chat(chat_id, "b") is True
        assert store.set_pinned(chat_id, True) is True
        chat = store.get_chat(chat_id, "alice")
        assert chat["title"] == "b"
        assert chat["pinned"] is True

    def test_update_missing(self, store):
        assert store.rename_chat("nope", "x") is False
        assert store.set_pinned("nope", True) is False
        assert store.delete_chat("nope") is False

    def test_delete_removes_messages(self, store):
        chat_id = store.create_chat("alice", "doomed")
        store.append_message(chat_id, "user", "one")
        store.append_message(chat_id, "assistant", "two")
        assert _message_count(store) == 2

        assert store.delete_chat(chat_id) is True
        assert store.get_chat(chat_id, "alice") is None
        assert _message_count(store) == 0


# ──────────────────────────────────────────────
# Messages
# ──────────────────────────────────────────────

class TestMessages:

    def test_messages_in_insertion_order(self, store):
        chat_id = store.create_chat("alice", "c")
        for i in range(5):
            store.append_message(chat_id, "user" if i % 2 == 0 else "assistant", f"m{i}")
        chat = store.get_chat(chat_id, "alice")
        assert [m["content"] for m in chat["messages"]] == ["m0", "m1", "m2", "m3", "m4"]
        assert chat["messages"][0]["chat_id"] == chat_id

    def test_append_to_missing_chat(self, store):
        with pytest.raises(KeyError):
            store.append_message("missing", "user", "hi")

    def test_save_creates_chat(self, store):
        saved = store.save_message("alice", "user", "Can you help me plan a week in Japan?")
        chat = store.get_chat(saved["chatId"], "alice")
        assert chat["title"] == "Can you help me plan a week in..."
        assert saved["message"]["content"] == "Can you help me plan a week in Japan?"

    def test_save_into_existing_chat(self, store):
        chat_id = store.create_chat("alice", "c")
        saved = store.save_message("alice", "assistant", "reply", chat_id=chat_id)
        assert saved["chatId"] == chat_id
        assert len(store.get_chat(chat_id, "alice")["messages"]) == 1

    def test_save_into_foreign_chat(self, store):
        chat_id = store.create_chat("alice", "c")
        assert store.save_message("bob", "user", "sneaky", chat_id=chat_id) is None
        assert store.get_chat(chat_id, "alice")["messages"] == []

    @pytest.mark.parametrize("content,title", [
        ("Short question", "Short question"),
        ("x" * 30, "x" * 30),
        ("x" * 31, "x" * 30 + "..."),
        ("   ", "New Chat"),
    ])
    def test_initial_title(self, content, title):
        assert initial_title(content) == title


# ──────────────────────────────────────────────
# Sessions
# ──────────────────────────────────────────────

class TestSessions:

    def _add(self, store, session_id, expires_in, active=True):
        with store.SessionLocal() as db:
            db.add(Session(id=session_id, user_id="alice",
                           expires_at=datetime.utcnow() + expires_in, is_active=active))
            db.commit()

    def test_active_session(self, store):
        self._add(store, "s1", timedelta(hours=1))
        assert store.get_session_user("s1") == "alice"

    def test_expired_or_inactive(self, store):
        self._add(store, "old", timedelta(hours=-1))
        self._add(store, "off", timedelta(hours=1), active=False)
        assert store.get_session_user("old") is None
        assert store.get_session_user("off") is None
        assert store.get_session_user("missing") is None
