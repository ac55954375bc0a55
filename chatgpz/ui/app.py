"""
ChatGPZ web API - streaming chat, titles, chat history and model management
"""

import logging
from contextlib import asynccontextmanager
from dataclasses import asdict
from typing import Optional

import httpx
import psutil
from fastapi import Depends, FastAPI, Request
from fastapi.responses import JSONResponse, StreamingResponse
from starlette.concurrency import run_in_threadpool

from .. import __version__
from ..auth.dependencies import get_current_user
from ..config import Settings, get_settings
from ..core.agent import Agent
from ..core.errors import InvalidInput, ModelRuntimeError
from ..core.titles import TitleSummarizer
from ..core.tool_executor import SkillContext
from ..core.transcript import ROLES, normalize_history
from ..providers import BaseProvider, ModelCache, OllamaProvider
from ..skills import build_registry
from ..storage import ChatStore

logger = logging.getLogger("chatgpz.api")


def _error(message: str, status: int) -> JSONResponse:
    return JSONResponse({"error": message}, status_code=status)


async def _read_json(request: Request) -> dict:
    try:
        body = await request.json()
    except ValueError:
        raise InvalidInput("Request body must be JSON")
    if not isinstance(body, dict):
        raise InvalidInput("Request body must be a JSON object")
    return body


def create_app(
    settings: Optional[Settings] = None,
    provider: Optional[BaseProvider] = None,
    store: Optional[ChatStore] = None,
    http_client: Optional[httpx.AsyncClient] = None,
) -> FastAPI:
    """
    Create the FastAPI application.

    Anything not passed in (provider, store, HTTP client) is created in the
    lifespan from settings and closed again on shutdown.
    """
    settings = settings or get_settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        owned_client = http_client is None
        app.state.settings = settings
        app.state.http = http_client or httpx.AsyncClient(
            limits=httpx.Limits(max_connections=20, max_keepalive_connections=10),
        )
        app.state.provider = provider or OllamaProvider(base_url=settings.ollama_host)
        app.state.model_cache = ModelCache(app.state.provider, ttl=settings.model_cache_ttl)
        app.state.registry = build_registry(SkillContext(settings=settings, http=app.state.http))
        app.state.titles = TitleSummarizer(app.state.provider, title_model=settings.title_model)
        app.state.store = store or ChatStore(settings.database_url())
        app.state.store.init_db()
        logger.info(f"ChatGPZ {__version__} ready (ollama={settings.ollama_host}, tools={len(app.state.registry.names())})")
        try:
            yield
        finally:
            if owned_client:
                await app.state.http.aclose()
            if store is None:
                app.state.store.close()

    app = FastAPI(title="ChatGPZ", description="Self-hosted chat over Ollama", version=__version__, lifespan=lifespan)

    @app.exception_handler(InvalidInput)
    async def invalid_input_handler(request: Request, exc: InvalidInput):
        return _error(str(exc), 400)

    # ============== Chat ==============

    @app.post("/api/chat")
    async def chat(request: Request, user: dict = Depends(get_current_user)):
        """Stream a reply, running tools as the model asks for them."""
        body = await _read_json(request)
        model = body.get("model")
        if not isinstance(model, str) or not model or not body.get("messages"):
            raise InvalidInput("Model and messages are required")
        history = normalize_history(body["messages"])
        enable_tools = body.get("enableTools", True) is not False

        agent = Agent(
            app.state.provider,
            app.state.registry,
            max_iterations=app.state.settings.max_tool_iterations,
        )

        async def generate():
            try:
                async for piece in agent.run(history, model, enable_tools, is_disconnected=request.is_disconnected):
                    yield piece
            except ModelRuntimeError as e:
                logger.error(f"Chat stream aborted ({model}): {e}")
                raise

        return StreamingResponse(generate(), media_type="text/plain; charset=utf-8")

    @app.post("/api/chat/title")
    async def chat_title(request: Request, user: dict = Depends(get_current_user)):
        """Generate a short title for a conversation."""
        body = await _read_json(request)
        messages = body.get("messages")
        if not isinstance(messages, list) or not messages:
            raise InvalidInput("Messages array is required")
        model = body.get("model")
        if model is not None and not isinstance(model, str):
            raise InvalidInput("Model must be a string")
        result = await app.state.titles.generate(messages, model=model or app.state.settings.model)
        response = {"title": result.title}
        if result.error:
            response["error"] = result.error
        return response

    # ============== Chat History API ==============

    @app.get("/api/chats")
    def list_chats(user: dict = Depends(get_current_user)):
        """List the user's chats with their messages, pinned first."""
        return app.state.store.list_chats(user["id"])

    @app.get("/api/chats/{chat_id}")
    def get_chat(chat_id: str, user: dict = Depends(get_current_user)):
        chat = app.state.store.get_chat(chat_id, user["id"])
        if not chat:
            return _error("Chat not found", 404)
        return chat

    @app.post("/api/chats")
    async def save_chat_message(request: Request, user: dict = Depends(get_current_user)):
        """Save the last message of a conversation, creating the chat if needed."""
        body = await _read_json(request)
        messages = body.get("messages")
        if not isinstance(messages, list) or not messages:
            raise InvalidInput("Messages are required")
        last = messages[-1]
        if (not isinstance(last, dict) or last.get("role") not in ROLES
                or not isinstance(last.get("content"), str) or not last["content"]):
            raise InvalidInput("Invalid message format")
        chat_id = body.get("chatId")
        if chat_id is not None and not isinstance(chat_id, str):
            raise InvalidInput("Invalid chat id")

        saved = await run_in_threadpool(
            app.state.store.save_message, user["id"], last["role"], last["content"], chat_id,
        )
        if saved is None:
            return _error("Chat not found", 404)
        return saved

    @app.patch("/api/chats/{chat_id}")
    async def update_chat(chat_id: str, request: Request, user: dict = Depends(get_current_user)):
        """Rename and/or pin a chat."""
        body = await _read_json(request)
        store = app.state.store
        if await run_in_threadpool(store.get_chat, chat_id, user["id"]) is None:
            return _error("Chat not found", 404)

        if isinstance(body.get("title"), str):
            await run_in_threadpool(store.rename_chat, chat_id, body["title"])
        if isinstance(body.get("pinned"), bool):
            await run_in_threadpool(store.set_pinned, chat_id, body["pinned"])
        return await run_in_threadpool(store.get_chat, chat_id, user["id"])

    @app.delete("/api/chats/{chat_id}")
    def delete_chat(chat_id: str, user: dict = Depends(get_current_user)):
        """Delete a chat and its messages."""
        store = app.state.store
        if store.get_chat(chat_id, user["id"]) is None:
            return _error("Chat not found", 404)
        store.delete_chat(chat_id)
        return {"success": True}

    @app.post("/api/chats/{chat_id}/generate-title")
    async def generate_chat_title(chat_id: str, user: dict = Depends(get_current_user)):
        """Generate and store a title for a saved chat."""
        store = app.state.store
        chat = await run_in_threadpool(store.get_chat, chat_id, user["id"])
        if chat is None:
            return _error("Chat not found", 404)
        if not chat["messages"]:
            return {"error": "No messages to generate title from"}

        result = await app.state.titles.generate(chat["messages"], model=app.state.settings.model)
        response = {"title": result.title}
        if result.error:
            response["error"] = result.error
        else:
            await run_in_threadpool(store.rename_chat, chat_id, result.title)
        return response

    # ============== Models ==============

    @app.get("/api/models")
    async def list_models(refresh: bool = False):
        """Installed models (cached)."""
        try:
            models = await app.state.model_cache.get(refresh=refresh)
        except ModelRuntimeError as e:
            return JSONResponse({"models": [], "error": str(e)}, status_code=502)
        return {"models": [asdict(m) for m in models]}

    @app.post("/api/models/pull")
    async def pull_model(request: Request, user: dict = Depends(get_current_user)):
        body = await _read_json(request)
        name = body.get("name") or body.get("model")
        if not isinstance(name, str) or not name:
            raise InvalidInput("Model name is required")
        try:
            await app.state.provider.pull_model(name)
        except ModelRuntimeError as e:
            return _error(str(e), 502)
        finally:
            app.state.model_cache.invalidate()
        return {"success": True, "model": name}

    @app.delete("/api/models/{name:path}")
    async def delete_model(name: str, user: dict = Depends(get_current_user)):
        try:
            await app.state.provider.delete_model(name)
        except ModelRuntimeError as e:
            return _error(str(e), 502)
        finally:
            app.state.model_cache.invalidate()
        return {"success": True, "model": name}

    # ============== Tools & Status ==============

    @app.get("/api/tools")
    def list_tools():
        """Tool schemas offered to the model."""
        return {"tools": app.state.registry.schemas()}

    @app.get("/api/status")
    async def get_status():
        """Runtime reachability plus basic host load."""
        return {
            "version": __version__,
            "ollama": {
                "host": app.state.settings.ollama_host,
                "reachable": await app.state.provider.is_configured(),
            },
            "model": app.state.settings.model,
            "tools": app.state.registry.names(),
            "cpu": round(psutil.cpu_percent(interval=None)),
            "memory": round(psutil.virtual_memory().percent),
        }

    return app


def run_server(host: str = "127.0.0.1", port: int = 8080, settings: Optional[Settings] = None):
    """Run the web server."""
    import uvicorn
    app = create_app(settings)
    uvicorn.run(app, host=host, port=port, log_config=None)
