"""Tests for the static tool registry and dispatch table."""

import pytest

from countly_fake import PLUGINS_PAYLOAD
from countly_mcp.infra.error_handler import UnknownToolError
from countly_mcp.services.app_cache import AppCache
from countly_mcp.services.plugin_directory import PluginDirectory
from countly_mcp.services.tenant_scope import TenantCaches
from countly_mcp.services.tool_policy import build_tools_config
from countly_mcp.services.tool_registry import ToolRegistry
from countly_mcp.tools import ALL_TOOL_METADATA, BaseTools, ToolMetadata, ToolServices, get_all_tool_metadata
from countly_mcp.tools.base import tool
from countly_mcp.tools.core import CORE_TOOL_METADATA


@pytest.fixture
def services():
    return ToolServices(app_caches=TenantCaches(AppCache), plugin_caches=TenantCaches(PluginDirectory))


@pytest.fixture
def registry(services):
    return ToolRegistry(get_all_tool_metadata(), services)


ALL_PLUGINS = frozenset(PLUGINS_PAYLOAD)


class TestToolRegistry:
    def test_registers_every_tool_once(self, registry):
        names = [definition.name for definition in registry.definitions()]
        assert len(names) == len(set(names))
        assert len(names) == sum(len(meta.handlers) for meta in ALL_TOOL_METADATA)

    def test_unknown_name(self, registry):
        assert "no_such_tool" not in registry
        with pytest.raises(UnknownToolError) as exc_info:
            registry.get_entry("no_such_tool")
        assert exc_info.value.message == "Unknown tool: no_such_tool"

    def test_instances_are_created_once(self, registry, services):
        first = registry.get_instance("core")
        assert registry.get_instance("core") is first
        assert first.services is services

    def test_duplicate_tool_name_rejected(self, services):
        class Other(BaseTools):
            async def ping(self, ctx, args):
                return None

        clash = ToolMetadata(
            instance_key="other",
            tool_class=Other,
            handlers={"ping": "ping"},
            definitions=[tool("ping", "duplicate")],
        )
        with pytest.raises(ValueError, match="registered by both"):
            ToolRegistry([CORE_TOOL_METADATA, clash], services)

    def test_duplicate_instance_key_rejected(self, services):
        with pytest.raises(ValueError, match="Duplicate tool instance key"):
            ToolRegistry([CORE_TOOL_METADATA, CORE_TOOL_METADATA], services)

    def test_missing_handler_method_rejected(self, services):
        broken = ToolMetadata(
            instance_key="broken",
            tool_class=BaseTools,
            handlers={"nothing": "nothing"},
            definitions=[],
        )
        with pytest.raises(ValueError, match="no handler method"):
            ToolRegistry([broken], services)


class TestDispatchTable:
    def test_full_access_with_all_plugins(self, registry):
        table = registry.build_dispatch_table(build_tools_config(), ALL_PLUGINS)
        assert len(table) == len(registry.definitions())

    def test_maps_stay_aligned(self, registry):
        table = registry.build_dispatch_table(build_tools_config(default="R"), ALL_PLUGINS)
        assert set(table.handlers) == set(table.instances)
        assert table.names() == list(table.handlers)
        assert "create_app" not in table
        assert "list_apps" in table

    def test_unknown_plugins_exclude_gated_tools(self, registry):
        table = registry.build_dispatch_table(build_tools_config())
        assert "list_apps" in table
        assert "view_crash" not in table
        assert "query_database" not in table

    def test_lookup_returns_bound_method(self, registry):
        table = registry.build_dispatch_table(build_tools_config(), ALL_PLUGINS)
        handler = table.lookup("list_apps")
        assert handler.__self__ is registry.get_instance("apps")
        assert handler.__name__ == "list_apps"

    def test_lookup_of_excluded_tool_raises(self, registry):
        table = registry.build_dispatch_table(build_tools_config(default="R"), ALL_PLUGINS)
        with pytest.raises(UnknownToolError):
            table.lookup("delete_app")

    def test_tables_are_memoized_per_plugin_set(self, registry):
        config = build_tools_config()
        first = registry.build_dispatch_table(config, frozenset({"views"}))
        assert registry.build_dispatch_table(config, {"views"}) is first
        assert registry.build_dispatch_table(config, frozenset({"crashes"})) is not first

    def test_new_config_rebuilds(self, registry):
        first = registry.build_dispatch_table(build_tools_config(), ALL_PLUGINS)
        second = registry.build_dispatch_table(build_tools_config(default="R"), ALL_PLUGINS)
        assert second is not first
        assert len(second) < len(first)

    def test_shared_instances_across_tables(self, registry):
        full = registry.build_dispatch_table(build_tools_config(), ALL_PLUGINS)
        read_only = registry.build_dispatch_table(build_tools_config(default="R"), ALL_PLUGINS)
        assert full.lookup("list_apps").__self__ is read_only.lookup("list_apps").__self__

    def test_plugins_that_gate_nothing_share_a_table(self, registry):
        config = build_tools_config()
        first = registry.build_dispatch_table(config, frozenset({"views"}))
        assert registry.build_dispatch_table(config, frozenset({"views", "push", "star-rating"})) is first

    def test_table_memo_is_bounded(self, services):
        registry = ToolRegistry(get_all_tool_metadata(), services, max_tables=2)
        config = build_tools_config()

        first = registry.build_dispatch_table(config, frozenset({"views"}))
        registry.build_dispatch_table(config, frozenset({"crashes"}))
        registry.build_dispatch_table(config, frozenset({"funnels"}))

        assert len(registry._tables) == 2
        assert registry.build_dispatch_table(config, frozenset({"views"})) is not first
