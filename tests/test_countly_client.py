"""Tests for the request-scoped Countly HTTP client."""

import json

import httpx
import pytest

from countly_fake import SERVER_URL, CountlyRecorder
from countly_mcp.adapters.countly_client import CountlyClient
from countly_mcp.infra.auth import CredentialSource
from countly_mcp.infra.error_handler import UpstreamError
from countly_mcp.models.context import InvocationContext


@pytest.fixture
def ctx():
    return InvocationContext(
        request_id="req-1",
        tool_name="ping",
        auth_token="secret-token",
        credential_source=CredentialSource.SESSION,
        server_url=SERVER_URL,
        timeout_seconds=5.0,
    )


class TestCountlyClient:
    @pytest.mark.asyncio
    async def test_sends_token_header_and_drops_none_params(self, ctx):
        recorder = CountlyRecorder()

        async with CountlyClient.for_invocation(ctx, transport=recorder.transport) as client:
            await client.get("/o", params={"app_id": "a1", "period": None})

        request = recorder.requests[0]
        assert request.headers["countly-token"] == "secret-token"
        assert dict(request.url.params) == {"app_id": "a1"}
        assert str(request.url).startswith(SERVER_URL)

    @pytest.mark.asyncio
    async def test_returns_text_for_non_json(self, ctx):
        recorder = CountlyRecorder({"/o/ping": httpx.Response(200, text="pong")})

        async with CountlyClient.for_invocation(ctx, transport=recorder.transport) as client:
            assert await client.get("/o/ping") == "pong"

    @pytest.mark.asyncio
    async def test_error_status_raises_upstream_error(self, ctx):
        recorder = CountlyRecorder({"/o/ping": httpx.Response(403, json={"result": "No permission"})})

        async with CountlyClient.for_invocation(ctx, transport=recorder.transport) as client:
            with pytest.raises(UpstreamError) as exc_info:
                await client.get("/o/ping", context="Failed to ping server")

        assert exc_info.value.status_code == 403
        assert exc_info.value.message.startswith("Failed to ping server: HTTP 403 error: No permission")
        assert isinstance(exc_info.value.__cause__, httpx.HTTPStatusError)

    @pytest.mark.asyncio
    async def test_network_error_raises_upstream_error(self, ctx):
        def backend(request):
            raise httpx.ConnectError("refused", request=request)

        async with CountlyClient.for_invocation(ctx, transport=httpx.MockTransport(backend)) as client:
            with pytest.raises(UpstreamError) as exc_info:
                await client.get("/o/ping")

        assert exc_info.value.status_code is None
        assert "No response from server" in exc_info.value.message
        assert isinstance(exc_info.value.__cause__, httpx.ConnectError)

    @pytest.mark.asyncio
    async def test_post_sends_json_body(self, ctx):
        recorder = CountlyRecorder()

        async with CountlyClient.for_invocation(ctx, transport=recorder.transport) as client:
            await client.post("/i/app_users/create", params={"app_id": "a1"}, json={"k": "v"})

        request = recorder.requests[0]
        assert request.method == "POST"
        assert json.loads(request.content) == {"k": "v"}

    @pytest.mark.asyncio
    async def test_missing_server_url(self, ctx):
        client = CountlyClient("", "tok", 5.0, transport=CountlyRecorder().transport)
        async with client:
            with pytest.raises(UpstreamError) as exc_info:
                await client.get("/o/ping")
        assert "COUNTLY_SERVER_URL" in exc_info.value.message

    @pytest.mark.asyncio
    async def test_closed_client_cannot_be_used(self, ctx):
        client = CountlyClient.for_invocation(ctx)
        assert not client.is_open
        with pytest.raises(RuntimeError):
            await client.get("/o/ping")

    @pytest.mark.asyncio
    async def test_client_closes_on_exit(self, ctx):
        async with CountlyClient.for_invocation(ctx, transport=CountlyRecorder().transport) as client:
            assert client.is_open
        assert not client.is_open


def test_context_repr_hides_token(ctx):
    assert "secret-token" not in repr(ctx)
