"""Tests for installed plugin detection."""

import pytest

from countly_fake import SERVER_URL, CountlyRecorder
from countly_mcp.adapters.countly_client import CountlyClient
from countly_mcp.services.plugin_directory import PluginDirectory, parse_plugins_response


class FakeClock:
    def __init__(self, now: float = 0.0):
        self.now = now

    def __call__(self) -> float:
        return self.now


class TestParsePluginsResponse:
    def test_list_of_names(self):
        assert parse_plugins_response(["crashes", "views"]) == frozenset({"crashes", "views"})

    def test_list_of_records(self):
        data = [
            {"code": "crashes", "enabled": True},
            {"name": "views"},
            {"code": "alerts", "enabled": False},
        ]
        assert parse_plugins_response(data) == frozenset({"crashes", "views"})

    def test_enabled_mapping(self):
        assert parse_plugins_response({"dbviewer": True, "alerts": False}) == frozenset({"dbviewer"})

    def test_unexpected_shape(self):
        assert parse_plugins_response("crashes") == frozenset()


class TestPluginDirectory:
    @pytest.mark.asyncio
    async def test_snapshot_reused_until_expired(self):
        clock = FakeClock()
        directory = PluginDirectory(ttl_seconds=60, clock=clock)
        recorder = CountlyRecorder({"/o/system/plugins": ["crashes"]})

        async with CountlyClient(SERVER_URL, "tok", 5.0, transport=recorder.transport) as client:
            assert await directory.get_installed(client) == frozenset({"crashes"})
            clock.now += 30
            await directory.get_installed(client)
            assert recorder.paths() == ["/o/system/plugins"]

            recorder.routes["/o/system/plugins"] = ["crashes", "views"]
            clock.now += 31
            assert await directory.get_installed(client) == frozenset({"crashes", "views"})

        assert directory.current() == frozenset({"crashes", "views"})
        assert len(recorder.requests) == 2

    def test_clear(self):
        directory = PluginDirectory(clock=FakeClock())
        directory.refresh(frozenset({"views"}))
        assert not directory.is_expired()

        directory.clear()
        assert directory.is_expired()
        assert directory.current() == frozenset()
