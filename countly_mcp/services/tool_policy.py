"""Tool policy: CRUD permissions per category and plugin availability.

Every tool belongs to one category and requires one CRUD operation. A tool
is invocable only when its category's permission set contains that
operation AND, for categories that are not available by default, the
backend reports the required plugin as installed.

Environment variables (read by ``load_tools_config``):
    COUNTLY_TOOLS_ALL=CRUD            default for every category
    COUNTLY_TOOLS_APPS=CR             override for one category
    COUNTLY_TOOLS_DATABASE=NONE       disable a category
    COUNTLY_TOOLS_ALLOW_UNCLASSIFIED  false to deny tools missing from the registry
"""

import logging
from dataclasses import dataclass
from enum import Enum
from types import MappingProxyType
from typing import Dict, FrozenSet, Iterable, List, Mapping, Optional, Protocol, Sequence, Tuple, TypeVar

from countly_mcp.infra.config import Settings

logger = logging.getLogger(__name__)


class CrudOperation(str, Enum):
    CREATE = "C"
    READ = "R"
    UPDATE = "U"
    DELETE = "D"


C = CrudOperation.CREATE
R = CrudOperation.READ
U = CrudOperation.UPDATE
D = CrudOperation.DELETE

ALL_OPERATIONS: FrozenSet[CrudOperation] = frozenset(CrudOperation)
NO_OPERATIONS: FrozenSet[CrudOperation] = frozenset()


@dataclass(frozen=True)
class ToolCategory:
    """A group of tools sharing one permission scope and plugin dependency."""
    name: str
    operations: Mapping[str, CrudOperation]
    requires_plugin: Optional[str] = None
    available_by_default: bool = True


def _category(
    name: str,
    operations: Dict[str, CrudOperation],
    requires_plugin: Optional[str] = None,
) -> ToolCategory:
    return ToolCategory(
        name=name,
        operations=MappingProxyType(operations),
        requires_plugin=requires_plugin,
        available_by_default=requires_plugin is None,
    )


TOOL_CATEGORIES: Mapping[str, ToolCategory] = MappingProxyType({
    category.name: category
    for category in (
        _category("core", {
            "ping": R,
            "get_version": R,
            "get_plugins": R,
            "search": R,
            "fetch": R,
        }),
        _category("apps", {
            "list_apps": R,
            "get_app_by_name": R,
            "create_app": C,
            "update_app": U,
            "delete_app": D,
            "reset_app": D,
        }),
        _category("analytics", {
            "get_analytics_data": R,
            "get_dashboard_data": R,
            "get_events_data": R,
            "get_events_overview": R,
            "get_top_events": R,
            "get_slipping_away_users": R,
            "get_session_frequency": R,
            "get_user_loyalty": R,
            "get_session_durations": R,
        }),
        _category("crashes", {
            "list_crash_groups": R,
            "get_crash_statistics": R,
            "view_crash": R,
            "add_crash_comment": C,
            "edit_crash_comment": U,
            "delete_crash_comment": D,
            "resolve_crash": U,
            "unresolve_crash": U,
            "hide_crash": U,
            "show_crash": U,
        }, requires_plugin="crashes"),
        _category("notes", {
            "list_notes": R,
            "create_note": C,
            "delete_note": D,
        }),
        _category("events", {
            "create_event": C,
        }),
        _category("alerts", {
            "list_alerts": R,
            "create_alert": C,  # also updates an existing alert
            "delete_alert": D,
        }, requires_plugin="alerts"),
        _category("views", {
            "get_views_table": R,
            "get_view_segments": R,
            "get_views_data": R,
        }, requires_plugin="views"),
        _category("database", {
            "query_database": R,
            "list_databases": R,
            "get_document": R,
            "aggregate_collection": R,
            "get_collection_indexes": R,
            "get_db_statistics": R,
        }, requires_plugin="dbviewer"),
        _category("dashboard_users", {
            "get_all_dashboard_users": R,
        }),
        _category("app_users", {
            "create_app_user": C,
            "edit_app_user": U,
            "delete_app_user": D,
            "export_app_users": R,
        }),
        _category("drill", {
            "get_segmentation_meta": R,
            "run_segmentation_query": R,
            "list_drill_bookmarks": R,
            "create_drill_bookmark": C,
            "delete_drill_bookmark": D,
        }, requires_plugin="drill"),
        _category("user_profiles", {
            "query_user_profiles": R,
            "breakdown_user_profiles": R,
            "get_user_profile_details": R,
            "add_user_note": C,
        }, requires_plugin="users"),
        _category("cohorts", {
            "list_cohorts": R,
            "get_cohort": R,
            "create_cohort": C,
            "update_cohort": U,
            "delete_cohort": D,
        }, requires_plugin="cohorts"),
        _category("funnels", {
            "list_funnels": R,
            "get_funnel": R,
            "get_funnel_data": R,
            "get_funnel_step_users": R,
            "get_funnel_dropoff_users": R,
            "create_funnel": C,
            "update_funnel": U,
            "delete_funnel": D,
        }, requires_plugin="funnels"),
        _category("formulas", {
            "run_formula": R,
            "list_formulas": R,
            "delete_formula": D,
        }, requires_plugin="formulas"),
        _category("live", {
            "get_live_users": R,
            "get_live_metrics": R,
            "get_live_last_hour": R,
            "get_live_last_day": R,
            "get_live_last_30_days": R,
            "get_live_overall": R,
        }, requires_plugin="concurrent_users"),
    )
})


def _build_tool_index(categories: Mapping[str, ToolCategory]) -> Mapping[str, Tuple[ToolCategory, CrudOperation]]:
    index: Dict[str, Tuple[ToolCategory, CrudOperation]] = {}
    for category in categories.values():
        for tool_name, operation in category.operations.items():
            if tool_name in index:
                raise ValueError(
                    f"Tool '{tool_name}' is registered in both "
                    f"'{index[tool_name][0].name}' and '{category.name}'"
                )
            index[tool_name] = (category, operation)
    return MappingProxyType(index)


# tool name -> (category, required operation)
TOOL_INDEX = _build_tool_index(TOOL_CATEGORIES)


@dataclass(frozen=True)
class ToolsConfig:
    """Immutable permission config: category -> allowed CRUD operations."""
    permissions: Mapping[str, FrozenSet[CrudOperation]]
    allow_unclassified: bool = True

    def allowed_operations(self, category: str) -> FrozenSet[CrudOperation]:
        return self.permissions.get(category, NO_OPERATIONS)


class AccessDecision(str, Enum):
    ALLOWED = "allowed"
    DENIED_BY_PERMISSION = "denied_by_permission"
    PLUGIN_UNAVAILABLE = "plugin_unavailable"
    UNCLASSIFIED_DENIED = "unclassified_denied"

    @property
    def allowed(self) -> bool:
        return self is AccessDecision.ALLOWED


def parse_crud_permissions(
    value: Optional[str],
    default: FrozenSet[CrudOperation] = ALL_OPERATIONS,
) -> FrozenSet[CrudOperation]:
    """
    Parse a CRUD permission string.

    "CRUD", "ALL" and "*" grant everything, "NONE" grants nothing, an empty
    or missing value yields ``default``. Otherwise every C/R/U/D letter
    present (case-insensitive) is granted and other characters are ignored.

    Args:
        value: Raw permission string, e.g. "CR"
        default: Result for an empty or missing value (all operations for
            the global default, nothing for a per-category override)

    Returns:
        Frozen set of CrudOperation
    """
    if value is None:
        return default

    normalized = value.strip().upper()
    if not normalized:
        return default
    if normalized in ("ALL", "*", "CRUD"):
        return ALL_OPERATIONS
    if normalized == "NONE":
        return NO_OPERATIONS

    return frozenset(op for op in CrudOperation if op.value in normalized)


def build_tools_config(
    default: Optional[str] = None,
    overrides: Optional[Mapping[str, str]] = None,
    allow_unclassified: bool = True,
) -> ToolsConfig:
    """
    Build the permission config once.

    Every category starts at the parsed global default, then a
    per-category override replaces it when present. Override keys are
    category names, case-insensitive; unknown categories are logged and
    ignored.
    """
    default_permissions = parse_crud_permissions(default, ALL_OPERATIONS)
    permissions: Dict[str, FrozenSet[CrudOperation]] = {
        category: default_permissions for category in TOOL_CATEGORIES
    }

    for key, raw in (overrides or {}).items():
        category = key.lower()
        if category not in TOOL_CATEGORIES:
            logger.warning("Ignoring permission override for unknown category", extra={"category": key})
            continue
        permissions[category] = parse_crud_permissions(raw, NO_OPERATIONS)

    return ToolsConfig(permissions=MappingProxyType(permissions), allow_unclassified=allow_unclassified)


def load_tools_config(settings: Settings) -> ToolsConfig:
    """Build the permission config from loaded Settings."""
    return build_tools_config(
        default=settings.tools_default,
        overrides=settings.tools_overrides,
        allow_unclassified=settings.allow_unclassified_tools,
    )


def get_tool_category(tool_name: str) -> Optional[Tuple[ToolCategory, CrudOperation]]:
    return TOOL_INDEX.get(tool_name)


def is_tool_allowed(tool_name: str, config: ToolsConfig) -> bool:
    """
    Check the CRUD permission for a tool.

    A tool missing from the registry is allowed unless the config denies
    unclassified tools.
    """
    entry = TOOL_INDEX.get(tool_name)
    if entry is None:
        return config.allow_unclassified
    category, operation = entry
    return operation in config.allowed_operations(category.name)


def requires_plugin_check(category: str) -> bool:
    category_config = TOOL_CATEGORIES.get(category)
    return category_config is not None and not category_config.available_by_default


def get_required_plugin(category: str) -> Optional[str]:
    category_config = TOOL_CATEGORIES.get(category)
    return category_config.requires_plugin if category_config else None


def is_category_available(category: str, installed_plugins: Iterable[str]) -> bool:
    """
    Check plugin availability for a category.

    Categories available by default need no check; the others need their
    plugin in ``installed_plugins``. Unknown categories are unavailable.
    """
    category_config = TOOL_CATEGORIES.get(category)
    if category_config is None:
        return False
    if category_config.available_by_default:
        return True
    if not category_config.requires_plugin:
        return False
    return category_config.requires_plugin in set(installed_plugins)


def check_tool_access(
    tool_name: str,
    config: ToolsConfig,
    installed_plugins: Optional[Iterable[str]] = None,
) -> AccessDecision:
    """
    Decide whether a tool may be invoked.

    The CRUD check runs first and needs no backend data. The plugin check
    only runs when ``installed_plugins`` is given; pass None to evaluate
    permissions alone.
    """
    entry = TOOL_INDEX.get(tool_name)
    if entry is None:
        return AccessDecision.ALLOWED if config.allow_unclassified else AccessDecision.UNCLASSIFIED_DENIED

    category, operation = entry
    if operation not in config.allowed_operations(category.name):
        return AccessDecision.DENIED_BY_PERMISSION

    if installed_plugins is not None and not is_category_available(category.name, installed_plugins):
        return AccessDecision.PLUGIN_UNAVAILABLE

    return AccessDecision.ALLOWED


def describe_denial(tool_name: str, decision: AccessDecision) -> str:
    """Human-readable reason for a denied decision."""
    entry = TOOL_INDEX.get(tool_name)
    if decision is AccessDecision.UNCLASSIFIED_DENIED or entry is None:
        return "tool is not classified and unclassified tools are disabled (COUNTLY_TOOLS_ALLOW_UNCLASSIFIED)"
    category, operation = entry
    if decision is AccessDecision.DENIED_BY_PERMISSION:
        return (
            f"operation '{operation.value}' is not permitted for category '{category.name}' "
            f"(set COUNTLY_TOOLS_{category.name.upper()} or COUNTLY_TOOLS_ALL)"
        )
    return f"category '{category.name}' requires the '{category.requires_plugin}' plugin, which is not installed"


class _Named(Protocol):
    name: str


T = TypeVar("T", bound=_Named)


def filter_tools(tools: Sequence[T], config: ToolsConfig) -> List[T]:
    """Keep the tools allowed by CRUD permissions, preserving order."""
    return [tool for tool in tools if is_tool_allowed(tool.name, config)]


def filter_tools_by_plugins(
    tools: Sequence[T],
    config: ToolsConfig,
    installed_plugins: Iterable[str],
) -> List[T]:
    """Keep the tools allowed by CRUD permissions and plugin availability, preserving order."""
    plugins = frozenset(installed_plugins)
    return [tool for tool in tools if check_tool_access(tool.name, config, plugins).allowed]


def get_config_summary(config: ToolsConfig) -> str:
    """Human-readable summary of the permission config."""
    lines = ["Tools Configuration:"]
    for category, operations in config.permissions.items():
        ops = "".join(op.value for op in CrudOperation if op in operations)
        if not ops:
            status = "DISABLED"
        elif operations == ALL_OPERATIONS:
            status = "ALL"
        else:
            status = ops
        plugin = get_required_plugin(category)
        suffix = f" (requires plugin: {plugin})" if plugin else ""
        lines.append(f"  {category}: {status}{suffix}")
    if not config.allow_unclassified:
        lines.append("  unclassified tools: DENIED")
    return "\n".join(lines)


def get_categories_requiring_plugin_check() -> List[str]:
    return [name for name, category in TOOL_CATEGORIES.items() if not category.available_by_default]


def get_plugin_requirements() -> Dict[str, str]:
    return {
        name: category.requires_plugin
        for name, category in TOOL_CATEGORIES.items()
        if category.requires_plugin
    }
