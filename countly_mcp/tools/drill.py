"""Drill tools: ad-hoc segmentation queries and bookmarks (requires the drill plugin)."""

from typing import Any, Dict, List

from countly_mcp.infra.validation import dump_json_array_param, dump_json_param, validate_required_params
from countly_mcp.models.tool import ToolResult
from countly_mcp.tools.base import PERIOD_DESCRIPTION, BaseTools, ToolContext, ToolMetadata, tool


BUCKETS = ["hourly", "daily", "weekly", "monthly"]
SESSION_EVENT = "[CLY]_session"

TYPE_NAMES = {"d": "date", "n": "number", "s": "string", "l": "list"}

DRILL_TOOL_DEFINITIONS = [
    tool(
        "get_segmentation_meta",
        'Get all user properties and event segments with their types for drill queries. '
        'User properties must be prepended with "up." in queries. Types: d=date, n=number, s=string, l=list',
        {
            "event": {
                "type": "string",
                "description": "Optional event key to get event segments metadata in addition to user properties",
            },
        },
        app_scoped=True,
    ),
    tool(
        "run_segmentation_query",
        "Run a drill segmentation query with MongoDB query object. "
        "Can optionally break down by projection key (segment or user property)",
        {
            "event": {
                "type": "string",
                "description": "Event key to query (optional - if not provided, queries all sessions/users)",
            },
            "query_object": {
                "type": "string",
                "description": 'MongoDB query object as JSON string (e.g. \'{"up.country":"US"}\' or \'{}\'). '
                               'Use "up." prefix for user properties',
            },
            "period": {"type": "string", "description": PERIOD_DESCRIPTION},
            "bucket": {"type": "string", "description": "Time bucket granularity", "enum": BUCKETS},
            "projection_key": {
                "type": "string",
                "description": 'Optional segment or user property to break down by, as a JSON array string '
                               'like \'["av"]\' or \'["up.country"]\'',
            },
        },
        app_scoped=True,
    ),
    tool(
        "list_drill_bookmarks",
        "List all existing drill bookmarks for a specific event",
        {
            "event_key": {
                "type": "string",
                "description": 'Event key to list bookmarks for (e.g. "[CLY]_session" for sessions)',
            },
            "namespace": {"type": "string", "description": 'Namespace for bookmarks (default: "drill")'},
            "app_level": {"type": "string", "description": 'App level filter (default: "1")'},
        },
        app_scoped=True,
    ),
    tool(
        "create_drill_bookmark",
        "Create a new drill bookmark to save a query for later reuse",
        {
            "event_key": {"type": "string", "description": "Event key for the bookmark"},
            "name": {"type": "string", "description": "Name of the bookmark"},
            "query_obj": {"type": "string", "description": "MongoDB query object as JSON string"},
            "query_text": {"type": "string", "description": "Human-readable query description (optional)"},
            "by_val": {"type": "string", "description": 'Breakdown values as JSON array string, default: "[]"'},
            "by_val_text": {"type": "string", "description": "Human-readable breakdown description (optional)"},
            "desc": {"type": "string", "description": "Description of the bookmark (optional)"},
            "global": {"type": "boolean", "description": "Whether bookmark is visible to all users, default: false"},
            "namespace": {"type": "string", "description": 'Namespace for bookmark (default: "drill")'},
            "visualization": {
                "type": "string",
                "description": 'Visualization type (e.g. "timeSeries", "table"), default: "timeSeries"',
            },
        },
        required=["event_key", "name"],
        app_scoped=True,
    ),
    tool(
        "delete_drill_bookmark",
        "Delete a drill bookmark",
        {"bookmark_id": {"type": "string", "description": "ID of the bookmark to delete"}},
        required=["bookmark_id"],
        app_scoped=True,
    ),
]


def _describe_types(title: str, prefix: str, types: Dict[str, Any]) -> List[str]:
    lines = [title]
    for key, type_code in types.items():
        lines.append(f"  - {prefix}{key}: {TYPE_NAMES.get(type_code, type_code)}")
    lines.append("")
    return lines


class DrillTools(BaseTools):
    async def get_segmentation_meta(self, ctx: ToolContext, args: Dict[str, Any]) -> ToolResult:
        app_id = await ctx.resolve_app_id(args)
        event = args.get("event")
        data = await ctx.client.get(
            "/o",
            params={"app_id": app_id, "method": "segmentation_meta", "event": event or None},
            context="Failed to get segmentation metadata",
        )

        lines = ["Segmentation metadata:", ""]
        if isinstance(data, dict):
            if isinstance(data.get("up"), dict):
                lines += _describe_types('**User Properties** (prepend "up." in queries):', "up.", data["up"])
            if event and isinstance(data.get("sg"), dict):
                lines += _describe_types(f'**Event Segments for "{event}"**:', "", data["sg"])
            lines.append("**Type Legend:**")
            lines += [f"  - {code} = {name}" for code, name in TYPE_NAMES.items()]
        return ToolResult.text("\n".join(lines))

    async def run_segmentation_query(self, ctx: ToolContext, args: Dict[str, Any]) -> ToolResult:
        app_id = await ctx.resolve_app_id(args)
        event = args.get("event")
        query = dump_json_param(args.get("query_object") or "{}", "query_object")
        period = args.get("period") or "30days"
        bucket = args.get("bucket") or "daily"
        projection = args.get("projection_key")
        if projection:
            projection = dump_json_array_param(projection, "projection_key")

        data = await ctx.client.get(
            "/o",
            params={
                "app_id": app_id,
                "method": "segmentation",
                "queryObject": query,
                "period": period,
                "bucket": bucket,
                "event": event or None,
                "projectionKey": projection or None,
            },
            context="Failed to run segmentation query",
        )

        details = [
            "**Query Details:**",
            f"  - Event: {event or 'All sessions/users'}",
            f"  - Query: {query}",
            f"  - Period: {period}",
            f"  - Bucket: {bucket}",
        ]
        if projection:
            details.append(f"  - Breakdown by: {projection}")
        return ToolResult.with_data("Segmentation query results:\n\n" + "\n".join(details) + "\n\n**Results**", data)

    async def list_drill_bookmarks(self, ctx: ToolContext, args: Dict[str, Any]) -> ToolResult:
        app_id = await ctx.resolve_app_id(args)
        event_key = args.get("event_key") or SESSION_EVENT
        namespace = args.get("namespace") or "drill"
        data = await ctx.client.get(
            "/o",
            params={
                "app_id": app_id,
                "method": "drill_bookmarks",
                "event_key": event_key,
                "namespace": namespace,
                "app_level": args.get("app_level") or "1",
            },
            context="Failed to list drill bookmarks",
        )
        header = f"Drill bookmarks:\n\n**Event Key:** {event_key}\n**Namespace:** {namespace}\n"
        if data == []:
            return ToolResult.text(header + "\nNo bookmarks found.")
        if isinstance(data, list):
            header += f"\n**Bookmarks ({len(data)})**"
        return ToolResult.with_data(header, data)

    async def create_drill_bookmark(self, ctx: ToolContext, args: Dict[str, Any]) -> ToolResult:
        validate_required_params(args, ["event_key", "name"])
        app_id = await ctx.resolve_app_id(args)
        data = await ctx.client.get(
            "/i/drill/add_bookmark",
            params={
                "app_id": app_id,
                "event_key": args["event_key"],
                "name": args["name"],
                "query_obj": dump_json_param(args.get("query_obj") or "{}", "query_obj"),
                "query_text": args.get("query_text") or "",
                "by_val": dump_json_array_param(args.get("by_val") or "[]", "by_val"),
                "by_val_text": args.get("by_val_text") or "",
                "desc": args.get("desc") or "",
                "global": "true" if args.get("global") is True else "false",
                "namespace": args.get("namespace") or "drill",
                "visualization": args.get("visualization") or "timeSeries",
            },
            context="Failed to create drill bookmark",
        )
        return ToolResult.with_data("Drill bookmark created", data)

    async def delete_drill_bookmark(self, ctx: ToolContext, args: Dict[str, Any]) -> ToolResult:
        validate_required_params(args, ["bookmark_id"])
        app_id = await ctx.resolve_app_id(args)
        data = await ctx.client.get(
            "/i/drill/delete_bookmark",
            params={"app_id": app_id, "bookmark_id": args["bookmark_id"]},
            context="Failed to delete drill bookmark",
        )
        return ToolResult.with_data("Drill bookmark deleted", data)


DRILL_TOOL_METADATA = ToolMetadata(
    instance_key="drill",
    tool_class=DrillTools,
    handlers={name: name for name in (
        "get_segmentation_meta",
        "run_segmentation_query",
        "list_drill_bookmarks",
        "create_drill_bookmark",
        "delete_drill_bookmark",
    )},
    definitions=DRILL_TOOL_DEFINITIONS,
)
