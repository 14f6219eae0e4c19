"""Tool handler categories and their routing metadata."""

from typing import List

from countly_mcp.models.tool import ToolDefinition
from countly_mcp.tools.alerts import ALERT_TOOL_METADATA
from countly_mcp.tools.analytics import ANALYTICS_TOOL_METADATA
from countly_mcp.tools.app_users import APP_USER_TOOL_METADATA
from countly_mcp.tools.apps import APP_TOOL_METADATA
from countly_mcp.tools.base import BaseTools, ToolContext, ToolMetadata, ToolServices
from countly_mcp.tools.cohorts import COHORT_TOOL_METADATA
from countly_mcp.tools.core import CORE_TOOL_METADATA
from countly_mcp.tools.crashes import CRASH_TOOL_METADATA
from countly_mcp.tools.dashboard_users import DASHBOARD_USER_TOOL_METADATA
from countly_mcp.tools.database import DATABASE_TOOL_METADATA
from countly_mcp.tools.drill import DRILL_TOOL_METADATA
from countly_mcp.tools.events import EVENT_TOOL_METADATA
from countly_mcp.tools.formulas import FORMULA_TOOL_METADATA
from countly_mcp.tools.funnels import FUNNEL_TOOL_METADATA
from countly_mcp.tools.live import LIVE_TOOL_METADATA
from countly_mcp.tools.notes import NOTE_TOOL_METADATA
from countly_mcp.tools.user_profiles import USER_PROFILE_TOOL_METADATA
from countly_mcp.tools.views import VIEW_TOOL_METADATA


ALL_TOOL_METADATA = (
    CORE_TOOL_METADATA,
    APP_TOOL_METADATA,
    ANALYTICS_TOOL_METADATA,
    CRASH_TOOL_METADATA,
    NOTE_TOOL_METADATA,
    EVENT_TOOL_METADATA,
    ALERT_TOOL_METADATA,
    VIEW_TOOL_METADATA,
    DATABASE_TOOL_METADATA,
    DASHBOARD_USER_TOOL_METADATA,
    APP_USER_TOOL_METADATA,
    DRILL_TOOL_METADATA,
    USER_PROFILE_TOOL_METADATA,
    COHORT_TOOL_METADATA,
    FUNNEL_TOOL_METADATA,
    FORMULA_TOOL_METADATA,
    LIVE_TOOL_METADATA,
)


def get_all_tool_metadata() -> List[ToolMetadata]:
    return list(ALL_TOOL_METADATA)


def get_all_tool_definitions() -> List[ToolDefinition]:
    return [definition for meta in ALL_TOOL_METADATA for definition in meta.definitions]


__all__ = [
    "ALL_TOOL_METADATA",
    "BaseTools",
    "ToolContext",
    "ToolMetadata",
    "ToolServices",
    "get_all_tool_definitions",
    "get_all_tool_metadata",
]
