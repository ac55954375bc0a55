"""Scripted stand-ins shared by the test modules."""

import asyncio
from typing import List, Optional

from chatgpz.providers.base import BaseProvider, ChatChunk, Message, ModelInfo, ToolInvocation


def content(text: str) -> ChatChunk:
    return ChatChunk(content=text)


def thinking(text: str) -> ChatChunk:
    return ChatChunk(thinking=text)


def tool_call(name: str, **arguments) -> ChatChunk:
    return ChatChunk(tool_calls=[ToolInvocation(name=name, arguments=arguments)])


class FakeProvider(BaseProvider):
    """
    Provider that replays scripted rounds.

    Each entry of ``rounds`` is a list of ChatChunks (one model call) or an
    exception to raise from that call. Once the script runs out every call
    answers "Done.".
    """

    name = "fake"
    supports_tools = True

    def __init__(self, rounds: Optional[list] = None, reply: str = "", models: Optional[List[ModelInfo]] = None):
        self.rounds = list(rounds or [])
        self.reply = reply
        self.models = models or []
        self.stream_calls = []
        self.chat_calls = []
        self.list_calls = 0
        self.pulled = []
        self.deleted = []
        self.closed_streams = 0

    async def chat_stream(self, model, messages, tools=None, options=None, think=None):
        self.stream_calls.append({"model": model, "messages": list(messages), "tools": tools})
        script = self.rounds.pop(0) if self.rounds else [content("Done.")]
        try:
            if isinstance(script, BaseException):
                raise script
            for chunk in script:
                await asyncio.sleep(0)
                yield chunk
        finally:
            self.closed_streams += 1

    async def chat(self, model, messages, options=None):
        self.chat_calls.append({"model": model, "messages": list(messages), "options": options})
        if isinstance(self.reply, BaseException):
            raise self.reply
        return self.reply

    async def list_models(self):
        self.list_calls += 1
        return list(self.models)

    async def pull_model(self, name):
        self.pulled.append(name)

    async def delete_model(self, name):
        self.deleted.append(name)


def collect(agen) -> List[str]:
    """Drain an async generator of strings from synchronous test code."""
    async def _drain():
        return [piece async for piece in agen]
    return asyncio.run(_drain())


def last_user(messages: List[Message]) -> Message:
    return [m for m in messages if m.role == "user"][-1]
