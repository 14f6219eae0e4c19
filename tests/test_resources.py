"""Tests for the countly:// app resources."""

import json

import httpx
import pytest

from countly_fake import CountlyRecorder, route_by_host
from countly_mcp.infra.error_handler import (
    MissingCredentialError,
    TenantResolutionError,
    ToolValidationError,
    UpstreamError,
)


EVENTS_PAYLOAD = {
    "events": {
        "purchase": {"name": "Purchase", "count": 12, "segments": {"plan": ["pro"]}},
        "signup": {},
    }
}


class TestListResources:
    @pytest.mark.asyncio
    async def test_three_resources_per_app(self, pipeline, recorder):
        resources = await pipeline.list_resources(session_token="tok")

        uris = [resource.uri for resource in resources]
        assert uris == [
            "countly://app/app-1/config",
            "countly://app/app-1/events",
            "countly://app/app-1/overview",
            "countly://app/app-2/config",
            "countly://app/app-2/events",
            "countly://app/app-2/overview",
        ]
        assert resources[0].name == "Shop Configuration"
        assert recorder.tokens() == ["tok"]

    @pytest.mark.asyncio
    async def test_wire_shape(self, pipeline):
        wire = (await pipeline.list_resources(session_token="tok"))[2].to_wire()

        assert wire["mimeType"] == "application/json"
        assert wire["annotations"] == {"audience": ["user", "assistant"], "priority": 1.0}

    @pytest.mark.asyncio
    async def test_requires_credential(self, pipeline, recorder):
        with pytest.raises(MissingCredentialError):
            await pipeline.list_resources()
        assert recorder.requests == []

    @pytest.mark.asyncio
    async def test_directory_failure_propagates(self, make_pipeline):
        recorder = CountlyRecorder({"/o/apps/mine": httpx.Response(401, json={"result": "User does not exist"})})
        pipeline = make_pipeline(transport=recorder.transport)

        with pytest.raises(UpstreamError):
            await pipeline.list_resources(session_token="bad")

    @pytest.mark.asyncio
    async def test_listing_uses_the_calling_server(self, make_pipeline):
        backends = {
            "a.example.com": CountlyRecorder({"/o/apps/mine": [{"_id": "a1", "name": "Alpha"}]}),
            "b.example.com": CountlyRecorder({"/o/apps/mine": [{"_id": "b1", "name": "Beta"}]}),
        }
        pipeline = make_pipeline(transport=route_by_host(backends))

        first = await pipeline.list_resources(session_token="tok", server_url="https://a.example.com")
        second = await pipeline.list_resources(session_token="tok", server_url="https://b.example.com")

        assert {resource.uri.split("/")[3] for resource in first} == {"a1"}
        assert {resource.uri.split("/")[3] for resource in second} == {"b1"}


class TestReadResource:
    @pytest.mark.asyncio
    async def test_config_comes_from_directory(self, pipeline, recorder):
        content = await pipeline.read_resource("countly://app/app-1/config", session_token="tok")

        body = json.loads(content.text)
        assert content.uri == "countly://app/app-1/config"
        assert content.mime_type == "application/json"
        assert body["id"] == "app-1"
        assert body["name"] == "Shop"
        assert body["key"] == "k1"
        assert recorder.paths() == ["/o/apps/mine"]

    @pytest.mark.asyncio
    async def test_events(self, make_pipeline):
        recorder = CountlyRecorder({"/o": EVENTS_PAYLOAD})
        pipeline = make_pipeline(transport=recorder.transport)

        content = await pipeline.read_resource("countly://app/app-1/events", session_token="tok")

        body = json.loads(content.text)
        assert body["total"] == 2
        assert body["events"][0] == {
            "key": "purchase",
            "name": "Purchase",
            "description": "",
            "count": 12,
            "segments": {"plan": ["pro"]},
            "duration": None,
            "sum": None,
        }
        assert body["events"][1]["name"] == "signup"
        request = recorder.last("/o")
        assert request.url.params["method"] == "get_events"
        assert request.url.params["app_id"] == "app-1"

    @pytest.mark.asyncio
    async def test_events_failure_degrades(self, make_pipeline):
        recorder = CountlyRecorder({"/o": httpx.Response(400, json={"result": "Invalid method"})})
        pipeline = make_pipeline(transport=recorder.transport)

        body = json.loads((await pipeline.read_resource("countly://app/app-1/events", session_token="tok")).text)

        assert body["events"] == []
        assert "Events plugin may not be enabled" in body["error"]

    @pytest.mark.asyncio
    async def test_overview(self, make_pipeline):
        recorder = CountlyRecorder({"/o/analytics/dashboard": {"total_users": 40, "new_users": 5}})
        pipeline = make_pipeline(transport=recorder.transport)

        body = json.loads((await pipeline.read_resource("countly://app/app-2/overview", session_token="tok")).text)

        assert body["period"] == "30days"
        assert body["summary"]["total_users"] == 40
        assert body["summary"]["crashes"] == 0
        assert "error" not in body
        assert recorder.last("/o/analytics/dashboard").url.params["period"] == "30days"

    @pytest.mark.asyncio
    async def test_overview_failure_degrades(self, make_pipeline):
        recorder = CountlyRecorder({"/o/analytics/dashboard": httpx.Response(500, text="boom")})
        pipeline = make_pipeline(transport=recorder.transport)

        body = json.loads((await pipeline.read_resource("countly://app/app-2/overview", session_token="tok")).text)

        assert body["error"] == "Could not fetch analytics overview"
        assert body["summary"]["total_users"] == 0

    @pytest.mark.asyncio
    @pytest.mark.parametrize("uri", ["https://example.com", "countly://app/app-1", "countly://app/a/b/c"])
    async def test_invalid_uri(self, pipeline, recorder, uri):
        with pytest.raises(ToolValidationError) as exc_info:
            await pipeline.read_resource(uri, session_token="tok")

        assert exc_info.value.message == f"Invalid resource URI: {uri}"
        assert recorder.requests == []

    @pytest.mark.asyncio
    async def test_unknown_resource_type(self, pipeline, recorder):
        with pytest.raises(ToolValidationError) as exc_info:
            await pipeline.read_resource("countly://app/app-1/crashes", session_token="tok")

        assert exc_info.value.message == "Unknown resource type: crashes"
        assert recorder.requests == []

    @pytest.mark.asyncio
    async def test_app_not_visible(self, pipeline):
        with pytest.raises(TenantResolutionError) as exc_info:
            await pipeline.read_resource("countly://app/app-9/config", session_token="tok")
        assert exc_info.value.message == "App not found: app-9"
