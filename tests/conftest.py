"""Pytest configuration and fixtures."""

import os
from typing import Any, Callable, Dict, Optional

import httpx
import pytest

# Set test environment
os.environ.setdefault("APP_ENV", "test")
os.environ.setdefault("DEBUG", "true")

from countly_fake import SERVER_URL, CountlyRecorder  # noqa: E402
from countly_mcp.infra.config import Settings  # noqa: E402
from countly_mcp.main import build_pipeline  # noqa: E402
from countly_mcp.services.tool_policy import build_tools_config  # noqa: E402


@pytest.fixture
def settings():
    """Settings pointing at the fake backend with every category fully enabled."""
    return Settings(server_url=SERVER_URL, app_env="test")


@pytest.fixture
def recorder():
    return CountlyRecorder()


@pytest.fixture
def make_pipeline(recorder):
    """Build a pipeline wired to the recorder; env defaults to empty so os.environ never leaks in."""
    def _make(
        settings: Optional[Settings] = None,
        env: Optional[Dict[str, str]] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        **permissions: str,
    ):
        settings = settings or Settings(server_url=SERVER_URL, app_env="test")
        pipeline = build_pipeline(settings, env=env or {}, transport=transport or recorder.transport)
        if permissions:
            default = permissions.pop("default", None)
            pipeline.tools_config = build_tools_config(default=default, overrides=permissions)
        return pipeline
    return _make


@pytest.fixture
def pipeline(make_pipeline):
    return make_pipeline()


@pytest.fixture
def invoke(pipeline) -> Callable:
    """Invoke a tool with a session token, the way the HTTP transport does."""
    async def _invoke(name: str, arguments: Optional[Dict[str, Any]] = None, token: str = "session-token"):
        return await pipeline.invoke(name, arguments or {}, session_token=token)
    return _invoke
