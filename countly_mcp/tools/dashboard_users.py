"""Dashboard user tools."""

from typing import Any, Dict

from countly_mcp.models.tool import ToolResult
from countly_mcp.tools.base import BaseTools, ToolContext, ToolMetadata, tool


DASHBOARD_USER_TOOL_DEFINITIONS = [
    tool(
        "get_all_dashboard_users",
        "Get a list of all dashboard users (admin/management users who access the Countly dashboard)",
    ),
]


class DashboardUserTools(BaseTools):
    async def get_all_dashboard_users(self, ctx: ToolContext, args: Dict[str, Any]) -> ToolResult:
        data = await ctx.client.get("/o/users/all", context="Failed to list dashboard users")
        return ToolResult.with_data("All dashboard users", data)


DASHBOARD_USER_TOOL_METADATA = ToolMetadata(
    instance_key="dashboard_users",
    tool_class=DashboardUserTools,
    handlers={"get_all_dashboard_users": "get_all_dashboard_users"},
    definitions=DASHBOARD_USER_TOOL_DEFINITIONS,
)
