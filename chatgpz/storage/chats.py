"""
Chat store - conversations and their messages, scoped to one user id.

Synchronous SQLAlchemy; FastAPI runs the plain `def` endpoints that call it
in its threadpool.
"""

import logging
from datetime import datetime
from typing import Dict, List, Optional

from sqlalchemy import select

from .models import Base, Chat, ChatMessage, Session, make_engine, make_session_factory, model_to_dict

logger = logging.getLogger("chatgpz.storage")

TITLE_CHARS = 30


def initial_title(content: str) -> str:
    """Title for a new chat: the first message, cut at 30 characters."""
    content = (content or "").strip()
    if len(content) > TITLE_CHARS:
        return content[:TITLE_CHARS] + "..."
    return content or "New Chat"


def _chat_dict(chat: Chat, with_messages: bool = True) -> Dict:
    data = model_to_dict(chat)
    if with_messages:
        data["messages"] = [model_to_dict(m) for m in chat.messages]
    return data


class ChatStore:
    """CRUD over chats and messages."""

    def __init__(self, url: str):
        self.url = url
        self.engine = make_engine(url)
        self.SessionLocal = make_session_factory(self.engine)

    def init_db(self):
        """Create tables if they don't exist."""
        Base.metadata.create_all(self.engine)
        logger.debug(f"Chat store ready at {self.engine.url!r}")

    def close(self):
        self.engine.dispose()

    # === Chats ===

    def list_chats(self, user_id: str) -> List[Dict]:
        with self.SessionLocal() as db:
            chats = db.scalars(
                select(Chat)
                .where(Chat.user_id == user_id)
                .order_by(Chat.pinned.desc(), Chat.updated_at.desc())
            ).all()
            return [_chat_dict(c) for c in chats]

    def create_chat(self, user_id: str, title: str) -> str:
        with self.SessionLocal() as db:
            chat = Chat(user_id=user_id, title=title or "New Chat")
            db.add(chat)
            db.commit()
            logger.info(f"Created chat {chat.id} for user {user_id}")
            return chat.id

    def get_chat(self, chat_id: str, user_id: str) -> Optional[Dict]:
        """Fetch a chat with its messages, or None if it is missing or not owned by user_id."""
        with self.SessionLocal() as db:
            chat = db.scalars(
                select(Chat).where(Chat.id == chat_id, Chat.user_id == user_id)
            ).first()
            return _chat_dict(chat) if chat else None

    def rename_chat(self, chat_id: str, title: str) -> bool:
        return self._update(chat_id, title=title)

    def set_pinned(self, chat_id: str, pinned: bool) -> bool:
        return self._update(chat_id, pinned=bool(pinned))

    def _update(self, chat_id: str, **fields) -> bool:
        with self.SessionLocal() as db:
            chat = db.get(Chat, chat_id)
            if chat is None:
                return False
            for key, value in fields.items():
                setattr(chat, key, value)
            db.commit()
            return True

    def delete_chat(self, chat_id: str) -> bool:
        """Delete a chat and all of its messages."""
        with self.SessionLocal() as db:
            chat = db.get(Chat, chat_id)
            if chat is None:
                return False
            db.delete(chat)
            db.commit()
            logger.info(f"Deleted chat {chat_id}")
            return True

    # === Messages ===

    def append_message(self, chat_id: str, role: str, content: str) -> Dict:
        with self.SessionLocal() as db:
            chat = db.get(Chat, chat_id)
            if chat is None:
                raise KeyError(chat_id)
            message = ChatMessage(chat_id=chat_id, role=role, content=content)
            db.add(message)
            chat.updated_at = datetime.utcnow()
            db.commit()
            return model_to_dict(message)

    def save_message(self, user_id: str, role: str, content: str,
                     chat_id: Optional[str] = None) -> Optional[Dict]:
        """
        Persist one message, creating the chat on first use.

        Returns:
            {"message": ..., "chatId": ...}, or None if chat_id belongs to someone else
        """
        if chat_id:
            if self.get_chat(chat_id, user_id) is None:
                return None
        else:
            chat_id = self.create_chat(user_id, initial_title(content))
        message = self.append_message(chat_id, role, content)
        return {"message": message, "chatId": chat_id}

    # === Sessions ===

    def get_session_user(self, session_id: str) -> Optional[str]:
        """User id for an active, unexpired session."""
        with self.SessionLocal() as db:
            session = db.get(Session, session_id)
            if session is None or not session.is_active:
                return None
            if session.expires_at and session.expires_at < datetime.utcnow():
                return None
            return session.user_id
