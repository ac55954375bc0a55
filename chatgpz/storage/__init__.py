"""Chat persistence."""

from .chats import ChatStore, initial_title
from .models import Base, Chat, ChatMessage, Session

__all__ = ["ChatStore", "initial_title", "Base", "Chat", "ChatMessage", "Session"]
