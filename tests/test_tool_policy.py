"""Tests for CRUD permission parsing and plugin gating."""

import pytest

from countly_mcp.infra.config import load_settings
from countly_mcp.models.tool import ToolDefinition
from countly_mcp.services.tool_policy import (
    ALL_OPERATIONS,
    NO_OPERATIONS,
    TOOL_CATEGORIES,
    TOOL_INDEX,
    AccessDecision,
    C,
    D,
    R,
    U,
    build_tools_config,
    check_tool_access,
    describe_denial,
    filter_tools,
    filter_tools_by_plugins,
    get_categories_requiring_plugin_check,
    get_config_summary,
    get_plugin_requirements,
    is_category_available,
    is_tool_allowed,
    load_tools_config,
    parse_crud_permissions,
)
from countly_mcp.tools import get_all_tool_definitions


class TestParseCrudPermissions:
    @pytest.mark.parametrize("value", ["CRUD", "crud", "ALL", "all", "*", " CRUD "])
    def test_all_keywords(self, value):
        assert parse_crud_permissions(value) == ALL_OPERATIONS

    @pytest.mark.parametrize("value", ["NONE", "none", " None "])
    def test_none_keyword(self, value):
        assert parse_crud_permissions(value) == NO_OPERATIONS

    def test_letters_in_any_order_and_case(self):
        assert parse_crud_permissions("rC") == frozenset({C, R})
        assert parse_crud_permissions("DU") == frozenset({U, D})

    def test_other_characters_are_ignored(self):
        assert parse_crud_permissions("R,X-D") == frozenset({R, D})
        assert parse_crud_permissions("XYZ") == NO_OPERATIONS

    def test_empty_uses_default(self):
        assert parse_crud_permissions(None) == ALL_OPERATIONS
        assert parse_crud_permissions("", NO_OPERATIONS) == NO_OPERATIONS
        assert parse_crud_permissions("   ", frozenset({R})) == frozenset({R})


class TestBuildToolsConfig:
    def test_default_is_full_access(self):
        config = build_tools_config()
        assert all(ops == ALL_OPERATIONS for ops in config.permissions.values())
        assert set(config.permissions) == set(TOOL_CATEGORIES)

    def test_global_default_and_override(self):
        config = build_tools_config(default="R", overrides={"APPS": "CR", "database": "NONE"})

        assert config.allowed_operations("analytics") == frozenset({R})
        assert config.allowed_operations("apps") == frozenset({C, R})
        assert config.allowed_operations("database") == NO_OPERATIONS

    def test_unknown_category_override_is_ignored(self):
        config = build_tools_config(overrides={"nonexistent": "R"})
        assert "nonexistent" not in config.permissions

    def test_config_is_immutable(self):
        config = build_tools_config()
        with pytest.raises(TypeError):
            config.permissions["apps"] = NO_OPERATIONS

    def test_load_from_environment(self):
        settings = load_settings(
            {
                "COUNTLY_TOOLS_ALL": "R",
                "COUNTLY_TOOLS_APPS": "CRUD",
                "COUNTLY_TOOLS_ALLOW_UNCLASSIFIED": "false",
            }
        )
        config = load_tools_config(settings)

        assert config.allowed_operations("crashes") == frozenset({R})
        assert config.allowed_operations("apps") == ALL_OPERATIONS
        assert config.allow_unclassified is False


class TestToolAccess:
    def test_read_only_config(self):
        config = build_tools_config(default="R")

        assert is_tool_allowed("list_apps", config)
        assert not is_tool_allowed("create_app", config)
        assert not is_tool_allowed("update_app", config)
        assert not is_tool_allowed("delete_app", config)

    def test_unclassified_tools(self):
        assert is_tool_allowed("brand_new_tool", build_tools_config())
        assert not is_tool_allowed("brand_new_tool", build_tools_config(allow_unclassified=False))
        assert (
            check_tool_access("brand_new_tool", build_tools_config(allow_unclassified=False))
            is AccessDecision.UNCLASSIFIED_DENIED
        )

    def test_permission_checked_before_plugins(self):
        config = build_tools_config(overrides={"crashes": "R"})
        decision = check_tool_access("resolve_crash", config, installed_plugins=frozenset())
        assert decision is AccessDecision.DENIED_BY_PERMISSION

    def test_plugin_gating(self):
        config = build_tools_config()

        assert check_tool_access("list_crash_groups", config) is AccessDecision.ALLOWED
        assert (
            check_tool_access("list_crash_groups", config, installed_plugins=["views"])
            is AccessDecision.PLUGIN_UNAVAILABLE
        )
        assert check_tool_access("list_crash_groups", config, installed_plugins=["crashes"]).allowed
        # Core categories never depend on plugins
        assert check_tool_access("ping", config, installed_plugins=[]).allowed

    def test_category_availability(self):
        assert is_category_available("apps", [])
        assert is_category_available("database", ["dbviewer"])
        assert not is_category_available("database", ["views"])
        assert not is_category_available("no_such_category", ["dbviewer"])

    def test_denial_reasons(self):
        config = build_tools_config(default="R")
        reason = describe_denial("create_app", check_tool_access("create_app", config))
        assert "operation 'C'" in reason
        assert "COUNTLY_TOOLS_APPS" in reason

        reason = describe_denial("view_crash", AccessDecision.PLUGIN_UNAVAILABLE)
        assert "'crashes' plugin" in reason


class TestCategoryTable:
    def test_every_registered_tool_is_classified(self):
        names = {definition.name for definition in get_all_tool_definitions()}
        assert names == set(TOOL_INDEX)

    def test_plugin_requirements(self):
        assert get_plugin_requirements() == {
            "crashes": "crashes",
            "alerts": "alerts",
            "views": "views",
            "database": "dbviewer",
            "drill": "drill",
            "user_profiles": "users",
            "cohorts": "cohorts",
            "funnels": "funnels",
            "formulas": "formulas",
            "live": "concurrent_users",
        }
        assert set(get_categories_requiring_plugin_check()) == {
            "crashes", "alerts", "views", "database", "drill",
            "user_profiles", "cohorts", "funnels", "formulas", "live",
        }

    def test_operations_match_tool_intent(self):
        assert TOOL_INDEX["reset_app"][1] is D
        assert TOOL_INDEX["resolve_crash"][1] is U
        assert TOOL_INDEX["create_alert"][1] is C
        assert TOOL_INDEX["edit_app_user"][1] is U
        assert TOOL_INDEX["run_formula"][1] is R
        assert TOOL_INDEX["add_user_note"][1] is C

    def test_funnels_override_is_recognized(self):
        config = build_tools_config(default="CRUD", overrides={"funnels": "R"})
        assert is_tool_allowed("get_funnel_data", config)
        assert not is_tool_allowed("create_funnel", config)


class TestFilterTools:
    @pytest.fixture
    def tools(self):
        return [
            ToolDefinition(name=name, description=name)
            for name in ("list_apps", "create_app", "view_crash", "get_views_table")
        ]

    def test_filter_preserves_order(self, tools):
        config = build_tools_config(default="R")
        assert [t.name for t in filter_tools(tools, config)] == ["list_apps", "view_crash", "get_views_table"]

    def test_filter_by_plugins(self, tools):
        config = build_tools_config()
        filtered = filter_tools_by_plugins(tools, config, ["views"])
        assert [t.name for t in filtered] == ["list_apps", "create_app", "get_views_table"]


def test_config_summary():
    summary = get_config_summary(build_tools_config(default="R", overrides={"apps": "NONE", "crashes": "CRUD"}))

    assert "apps: DISABLED" in summary
    assert "analytics: R" in summary
    assert "crashes: ALL (requires plugin: crashes)" in summary
