"""Live tools: concurrent user counts (requires the concurrent_users plugin)."""

import json
from dataclasses import dataclass
from typing import Any, Dict, List

from countly_mcp.models.tool import ToolResult
from countly_mcp.tools.base import BaseTools, ToolContext, ToolMetadata, tool


@dataclass(frozen=True)
class LiveView:
    tool_name: str
    mode: int
    description: str
    title: str
    notes: List[str]
    failure: str


LIVE_VIEWS = (
    LiveView(
        "get_live_users", 0,
        "Get current online user count and new user count for this moment.",
        "Live users for app {app_id}",
        ["**Current Moment:**", "- Online Users: Currently active users",
         "- New Users Online: First-time users currently active"],
        "Failed to get live users",
    ),
    LiveView(
        "get_live_metrics", 1,
        "Get breakdown by countries, devices and carriers for users currently online.",
        "Live user metrics for app {app_id}",
        ["**Breakdown:**", "- Countries: Geographic distribution of online users",
         "- Devices: Device types being used", "- Carriers: Mobile carrier distribution"],
        "Failed to get live metrics",
    ),
    LiveView(
        "get_live_last_hour", 2,
        "Get online user and new user count data for the last hour, one data point per minute.",
        "Live user data for last hour - app {app_id}",
        ["**Time Range:** Last 60 minutes", "**Resolution:** 1 data point per minute"],
        "Failed to get live data for last hour",
    ),
    LiveView(
        "get_live_last_day", 3,
        "Get online user and new user count for the last day, one data point per hour.",
        "Live user data for last day - app {app_id}",
        ["**Time Range:** Last 24 hours", "**Resolution:** 1 data point per hour"],
        "Failed to get live data for last day",
    ),
    LiveView(
        "get_live_last_30_days", 4,
        "Get online user and new user count for the last 30 days, one data point per day.",
        "Live user data for last 30 days - app {app_id}",
        ["**Time Range:** Last 30 days", "**Resolution:** 1 data point per day"],
        "Failed to get live data for last 30 days",
    ),
    LiveView(
        "get_live_overall", 5,
        "Get maximum values for online user count and new user count (peak concurrent usage).",
        "Live user overall statistics for app {app_id}",
        ["**Peak Records:**", "- Max Online Users: Highest concurrent user count ever recorded",
         "- Max New Users: Highest concurrent new user count ever recorded"],
        "Failed to get live overall data",
    ),
)

LIVE_VIEWS_BY_TOOL = {view.tool_name: view for view in LIVE_VIEWS}

LIVE_TOOL_DEFINITIONS = [tool(view.tool_name, view.description, app_scoped=True) for view in LIVE_VIEWS]


class LiveTools(BaseTools):
    """All live tools hit ``method=concurrent`` and differ only by mode."""

    async def _concurrent(self, ctx: ToolContext, args: Dict[str, Any], view: LiveView) -> ToolResult:
        app_id = await ctx.resolve_app_id(args)
        data = await ctx.client.get(
            "/o",
            params={"app_id": app_id, "method": "concurrent", "mode": view.mode, "r_apps": json.dumps([app_id])},
            context=view.failure,
        )
        title = "\n".join([view.title.format(app_id=app_id) + ":", "", *view.notes, "", "**Results**"])
        return ToolResult.with_data(title, data)

    async def get_live_users(self, ctx: ToolContext, args: Dict[str, Any]) -> ToolResult:
        return await self._concurrent(ctx, args, LIVE_VIEWS_BY_TOOL["get_live_users"])

    async def get_live_metrics(self, ctx: ToolContext, args: Dict[str, Any]) -> ToolResult:
        return await self._concurrent(ctx, args, LIVE_VIEWS_BY_TOOL["get_live_metrics"])

    async def get_live_last_hour(self, ctx: ToolContext, args: Dict[str, Any]) -> ToolResult:
        return await self._concurrent(ctx, args, LIVE_VIEWS_BY_TOOL["get_live_last_hour"])

    async def get_live_last_day(self, ctx: ToolContext, args: Dict[str, Any]) -> ToolResult:
        return await self._concurrent(ctx, args, LIVE_VIEWS_BY_TOOL["get_live_last_day"])

    async def get_live_last_30_days(self, ctx: ToolContext, args: Dict[str, Any]) -> ToolResult:
        return await self._concurrent(ctx, args, LIVE_VIEWS_BY_TOOL["get_live_last_30_days"])

    async def get_live_overall(self, ctx: ToolContext, args: Dict[str, Any]) -> ToolResult:
        return await self._concurrent(ctx, args, LIVE_VIEWS_BY_TOOL["get_live_overall"])


LIVE_TOOL_METADATA = ToolMetadata(
    instance_key="live",
    tool_class=LiveTools,
    handlers={view.tool_name: view.tool_name for view in LIVE_VIEWS},
    definitions=LIVE_TOOL_DEFINITIONS,
)
