"""Ollama provider with native tool calling and thinking support."""

import logging
import time
from typing import AsyncIterator, List, Optional

import httpx
import ollama

from ..core.errors import ModelRuntimeError, ToolsUnsupported
from .base import BaseProvider, ChatChunk, Message, ModelInfo, ToolInvocation

logger = logging.getLogger("chatgpz.ollama")


def _get(obj, key: str, default=None):
    """Read a field from an SDK object or a plain dict."""
    if isinstance(obj, dict):
        return obj.get(key, default)
    return getattr(obj, key, default)


def _wrap_error(exc: Exception) -> ModelRuntimeError:
    message = str(getattr(exc, "error", "") or exc) or exc.__class__.__name__
    if "does not support tools" in message.lower():
        return ToolsUnsupported(message)
    return ModelRuntimeError(message)


class OllamaProvider(BaseProvider):
    """Ollama runtime reached over its HTTP API."""

    name = "ollama"
    supports_streaming = True
    supports_tools = True

    # Reasoning models can think for minutes before the first token
    def __init__(self, base_url: str = "http://127.0.0.1:11434", timeout: float = 600.0, headers: dict = None):
        self.base_url = base_url
        self.headers = headers
        self.client = ollama.AsyncClient(
            host=self.base_url,
            timeout=httpx.Timeout(timeout, connect=30.0),
            headers=self.headers,
        )
        logger.info(f"Ollama client initialised for {self.base_url}")

    @staticmethod
    def _parse_tool_calls(raw_calls) -> List[ToolInvocation]:
        calls = []
        for call in raw_calls or []:
            func = _get(call, "function")
            if func is None:
                continue
            name = _get(func, "name", "") or ""
            args = _get(func, "arguments", {}) or {}
            if not isinstance(args, dict):
                args = dict(args) if hasattr(args, "keys") else {}
            if name:
                calls.append(ToolInvocation(name=name, arguments=args))
        return calls

    def _to_chunk(self, raw) -> ChatChunk:
        msg = _get(raw, "message")
        if msg is None:
            return ChatChunk(done=bool(_get(raw, "done", False)))
        return ChatChunk(
            content=_get(msg, "content", "") or "",
            thinking=_get(msg, "thinking", "") or "",
            tool_calls=self._parse_tool_calls(_get(msg, "tool_calls")),
            done=bool(_get(raw, "done", False)),
        )

    async def chat_stream(
        self,
        model: str,
        messages: List[Message],
        tools: Optional[List[dict]] = None,
        options: Optional[dict] = None,
        think: Optional[bool] = None,
    ) -> AsyncIterator[ChatChunk]:
        kwargs = {
            "model": model,
            "messages": [m.to_dict() if isinstance(m, Message) else m for m in messages],
            "stream": True,
        }
        if tools:
            kwargs["tools"] = tools
        if options:
            kwargs["options"] = options
        if think is not None:
            kwargs["think"] = think

        try:
            stream = await self.client.chat(**kwargs)
        except (ollama.ResponseError, httpx.HTTPError, ConnectionError) as e:
            raise _wrap_error(e) from e

        try:
            async for raw in stream:
                yield self._to_chunk(raw)
        except (ollama.ResponseError, httpx.HTTPError, ConnectionError) as e:
            raise _wrap_error(e) from e
        finally:
            aclose = getattr(stream, "aclose", None)
            if aclose is not None:
                await aclose()

    async def chat(self, model: str, messages: List[Message], options: Optional[dict] = None) -> str:
        kwargs = {
            "model": model,
            "messages": [m.to_dict() if isinstance(m, Message) else m for m in messages],
            "stream": False,
        }
        if options:
            kwargs["options"] = options
        try:
            response = await self.client.chat(**kwargs)
        except (ollama.ResponseError, httpx.HTTPError, ConnectionError) as e:
            raise _wrap_error(e) from e
        return _get(_get(response, "message"), "content", "") or ""

    async def list_models(self) -> List[ModelInfo]:
        try:
            response = await self.client.list()
        except (ollama.ResponseError, httpx.HTTPError, ConnectionError) as e:
            raise _wrap_error(e) from e

        models = []
        for m in _get(response, "models", []) or []:
            details = _get(m, "details") or {}
            models.append(ModelInfo(
                id=_get(m, "model") or _get(m, "name", ""),
                size=_get(m, "size"),
                family=_get(details, "family"),
                parameter_size=_get(details, "parameter_size"),
                quantization=_get(details, "quantization_level"),
            ))
        return models

    async def pull_model(self, name: str) -> None:
        logger.info(f"Pulling model {name}")
        try:
            await self.client.pull(model=name)
        except (ollama.ResponseError, httpx.HTTPError, ConnectionError) as e:
            raise _wrap_error(e) from e

    async def delete_model(self, name: str) -> None:
        logger.info(f"Deleting model {name}")
        try:
            await self.client.delete(model=name)
        except (ollama.ResponseError, httpx.HTTPError, ConnectionError) as e:
            raise _wrap_error(e) from e

    async def is_configured(self) -> bool:
        try:
            await self.client.list()
            return True
        except (ollama.ResponseError, httpx.HTTPError, ConnectionError):
            return False


class ModelCache:
    """Read-mostly cache of installed models.

    Safe to serve stale data; call invalidate() after pulling or deleting.
    """

    def __init__(self, provider: BaseProvider, ttl: float = 60.0):
        self.provider = provider
        self.ttl = ttl
        self._models: Optional[List[ModelInfo]] = None
        self._fetched_at = 0.0

    async def get(self, refresh: bool = False) -> List[ModelInfo]:
        fresh = self._models is not None and (time.monotonic() - self._fetched_at) < self.ttl
        if fresh and not refresh:
            return self._models
        self._models = await self.provider.list_models()
        self._fetched_at = time.monotonic()
        logger.debug(f"Model cache refreshed: {len(self._models)} models")
        return self._models

    def invalidate(self):
        self._models = None
        self._fetched_at = 0.0
