"""Shared fixtures."""

import asyncio

import httpx
import pytest

from chatgpz.config import Settings
from chatgpz.core.tool_executor import SkillContext
from chatgpz.skills import build_registry


# ──────────────────────────────────────────────
# Settings & skill context
# ──────────────────────────────────────────────

@pytest.fixture
def allowed_dir(tmp_path):
    path = tmp_path / "workspace"
    path.mkdir()
    return path


@pytest.fixture
def settings(allowed_dir):
    return Settings(
        model="test-model",
        allowed_paths=[str(allowed_dir)],
        image_api_url="",
        max_tool_iterations=10,
    )


class RecordingTransport:
    """httpx.MockTransport wrapper that keeps every request it saw."""

    def __init__(self, handler=None):
        self.requests = []
        self.handler = handler or (lambda request: httpx.Response(404))

    def __call__(self, request):
        self.requests.append(request)
        return self.handler(request)


@pytest.fixture
def transport():
    return RecordingTransport()


@pytest.fixture
def make_context(settings, transport):
    """Build a SkillContext whose HTTP client is served by `transport`."""
    def _make(**overrides):
        s = settings
        for key, value in overrides.items():
            setattr(s, key, value)
        http = httpx.AsyncClient(transport=httpx.MockTransport(transport))
        return SkillContext(settings=s, http=http)
    return _make


@pytest.fixture
def context(make_context):
    return make_context()


@pytest.fixture
def registry(context):
    return build_registry(context)


@pytest.fixture
def run():
    """Run a coroutine to completion from a sync test."""
    return asyncio.run
