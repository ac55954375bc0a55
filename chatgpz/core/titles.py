"""Short conversation titles from a single non-streaming model call."""

import logging
import re
from dataclasses import dataclass
from typing import List, Optional, Union

from ..providers.base import BaseProvider, Message
from .tool_parser import strip_tool_syntax

logger = logging.getLogger("chatgpz.titles")

DEFAULT_TITLE = "New Chat"
MAX_WORDS = 6
MAX_LENGTH = 60
FALLBACK_WORDS = 5
MESSAGE_CHARS = 300

TITLE_PROMPT = """Your task is to generate a SHORT title (3-6 words) for a conversation.

Rules:
- Output ONLY the title, nothing else
- No quotes, no "Title:" prefix, no explanation
- Maximum 6 words
- Be descriptive but concise
- Examples of good titles:
  - "Weather Comparison Three Cities"
  - "Python Debugging Help"
  - "Recipe for Chocolate Cake"
  - "React Component Tutorial\""""

_THINK_BLOCK = re.compile(r'<think>[\s\S]*?</think>', re.IGNORECASE)
_THINK_TAG = re.compile(r'</?think>', re.IGNORECASE)
_TITLE_LABEL = re.compile(r'^(?:title\s*:\s*)+', re.IGNORECASE)
_QUOTES = "\"'`“”‘’"
_TRAILING = ".,;:!?" + _QUOTES


@dataclass
class TitleResult:
    title: str
    error: Optional[str] = None


def clean_title(raw: str) -> str:
    """Normalise raw model output into a short title. Applying it twice changes nothing."""
    text = _THINK_TAG.sub("", _THINK_BLOCK.sub("", raw or "")).strip()
    text = text.split("\n", 1)[0] if text else ""

    previous = None
    while text != previous:
        previous = text
        text = text.strip().strip(_QUOTES).strip()
        text = _TITLE_LABEL.sub("", text)

    text = text.rstrip(_TRAILING + " \t")
    words = text.split()[:MAX_WORDS]
    return " ".join(words).rstrip(_TRAILING + " \t").strip().strip(_QUOTES).strip()


def fallback_title(messages: List[Message]) -> str:
    first_user = next((m.content for m in messages if m.role == "user" and m.content), "")
    words = re.sub(r'[?!.,]', "", first_user).split()[:FALLBACK_WORDS]
    return " ".join(words) or DEFAULT_TITLE


def format_conversation(messages: List[Message]) -> str:
    """User and assistant turns as a labelled excerpt; tool-call syntax is dropped from replies."""
    parts = []
    for msg in messages:
        if msg.role not in ("user", "assistant"):
            continue
        content = msg.content or ""
        if msg.role == "assistant":
            content = strip_tool_syntax(content)
        if len(content) > MESSAGE_CHARS:
            content = content[:MESSAGE_CHARS] + "..."
        label = "User" if msg.role == "user" else "Assistant"
        parts.append(f"{label}: {content}")
    return "\n\n".join(parts)


def _as_messages(messages: List[Union[Message, dict]]) -> List[Message]:
    out = []
    for m in messages:
        if isinstance(m, Message):
            out.append(m)
        elif isinstance(m, dict):
            out.append(Message(role=str(m.get("role", "")), content=str(m.get("content") or "")))
    return out


class TitleSummarizer:
    """Generates chat titles. Never raises: failures fall back to "New Chat"."""

    def __init__(self, provider: BaseProvider, title_model: Optional[str] = None):
        self.provider = provider
        self.title_model = title_model

    async def generate(self, messages: List[Union[Message, dict]], model: Optional[str] = None) -> TitleResult:
        model = self.title_model or model
        try:
            history = _as_messages(messages)
            if not model:
                raise ValueError("No model configured for title generation")
            prompt = [
                Message(role="system", content=TITLE_PROMPT),
                Message(role="user", content=f"Conversation:\n\n{format_conversation(history)}\n\nGenerate a 3-6 word title:"),
            ]
            raw = await self.provider.chat(model, prompt, options={"temperature": 0.3, "num_predict": 50})
            logger.debug(f"Raw title from {model}: {raw!r}")

            title = clean_title(raw)
            if not title or len(title) > MAX_LENGTH:
                title = fallback_title(history)
            return TitleResult(title=title)
        except Exception as e:
            logger.warning(f"Title generation failed: {e}")
            return TitleResult(title=DEFAULT_TITLE, error=str(e) or e.__class__.__name__)
