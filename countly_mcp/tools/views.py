"""View analytics tools (requires the views plugin)."""

import json
from typing import Any, Dict

from countly_mcp.infra.validation import dump_json_param, parse_numeric_param
from countly_mcp.models.tool import ToolResult
from countly_mcp.tools.base import BaseTools, ToolContext, ToolMetadata, period_property, tool


DEFAULT_VISIBLE_COLUMNS = ["u", "n", "t", "s", "e", "d", "b", "br", "uvc"]

VIEW_TOOL_DEFINITIONS = [
    tool(
        "get_views_table",
        "Get list of views and totals for each view in the application",
        {
            "period": period_property(),
            "skip": {"type": "number", "description": "Number of records to skip for pagination", "default": 0},
            "limit": {"type": "number", "description": "Maximum number of records to return", "default": 10},
            "visibleColumns": {
                "type": "array",
                "items": {"type": "string"},
                "description": "Column codes to display",
                "default": DEFAULT_VISIBLE_COLUMNS,
            },
        },
        app_scoped=True,
    ),
    tool(
        "get_view_segments",
        "Get available segments for views in the application",
        {"period": period_property()},
        app_scoped=True,
    ),
    tool(
        "get_views_data",
        "Get data breakdown by time for selected views with optional segment filtering",
        {
            "period": period_property(),
            "selectedViews": {
                "type": "string",
                "description": 'JSON array of {"view": <view id>, "action": ""} objects',
                "default": "[]",
            },
            "segment": {"type": "string", "description": "Optional segment key to filter by", "default": ""},
            "segmentVal": {"type": "string", "description": "Optional segment value to filter by", "default": ""},
        },
        app_scoped=True,
    ),
]


def _count(data: Any, key: str) -> int:
    items = data.get(key, data) if isinstance(data, dict) else data
    return len(items) if isinstance(items, (list, dict)) else 0


class ViewTools(BaseTools):
    async def get_views_table(self, ctx: ToolContext, args: Dict[str, Any]) -> ToolResult:
        app_id = await ctx.resolve_app_id(args)
        skip = int(parse_numeric_param(args.get("skip", 0), "skip", minimum=0))
        limit = int(parse_numeric_param(args.get("limit", 10), "limit", minimum=1))
        columns = args.get("visibleColumns") or DEFAULT_VISIBLE_COLUMNS
        data = await ctx.client.get(
            "/o",
            params={
                "app_id": app_id,
                "method": "views",
                "action": "getTable",
                "period": args.get("period") or "30days",
                "iDisplayStart": skip,
                "iDisplayLength": limit,
                "visibleColumns": json.dumps(columns),
            },
            context="Failed to get views table",
        )
        rows = data.get("aaData") if isinstance(data, dict) else None
        count = len(rows) if isinstance(rows, list) else 0
        return ToolResult.with_data(f"Found {count} view(s) for app {app_id}", data)

    async def get_view_segments(self, ctx: ToolContext, args: Dict[str, Any]) -> ToolResult:
        app_id = await ctx.resolve_app_id(args)
        data = await ctx.client.get(
            "/o",
            params={"app_id": app_id, "method": "get_view_segments", "period": args.get("period") or "30days"},
            context="Failed to get view segments",
        )
        return ToolResult.with_data(f"Found {_count(data, 'segments')} segment(s) for views in app {app_id}", data)

    async def get_views_data(self, ctx: ToolContext, args: Dict[str, Any]) -> ToolResult:
        app_id = await ctx.resolve_app_id(args)
        data = await ctx.client.get(
            "/o",
            params={
                "app_id": app_id,
                "method": "views",
                "period": args.get("period") or "30days",
                "selectedViews": dump_json_param(args.get("selectedViews") or "[]", "selectedViews"),
                "segment": args.get("segment") or "",
                "segmentVal": args.get("segmentVal") or "",
            },
            context="Failed to get views data",
        )
        return ToolResult.with_data(f"Views data for app {app_id}", data)


VIEW_TOOL_METADATA = ToolMetadata(
    instance_key="views",
    tool_class=ViewTools,
    handlers={
        "get_views_table": "get_views_table",
        "get_view_segments": "get_view_segments",
        "get_views_data": "get_views_data",
    },
    definitions=VIEW_TOOL_DEFINITIONS,
)
