"""Crash analytics tools (requires the crashes plugin)."""

import json
from typing import Any, Dict

from countly_mcp.infra.validation import parse_numeric_param, validate_required_params
from countly_mcp.models.tool import ToolResult
from countly_mcp.tools.base import BaseTools, ToolContext, ToolMetadata, period_property, tool


def _crash_id(action: str) -> Dict[str, Any]:
    return {"crash_id": {"type": "string", "description": f"Crash ID to {action}"}}


CRASH_TOOL_DEFINITIONS = [
    tool(
        "list_crash_groups",
        "List crash groups for an app with optional filtering",
        {
            "period": period_property(),
            "query": {"type": "string", "description": "Optional MongoDB query as JSON string for filtering", "default": "{}"},
            "skip": {"type": "number", "description": "Number of records to skip for pagination", "default": 0},
            "limit": {"type": "number", "description": "Maximum number of records to return", "default": 10},
        },
        app_scoped=True,
    ),
    tool(
        "get_crash_statistics",
        "Get overall crash statistics and graph data for an app",
        {"period": period_property()},
        app_scoped=True,
    ),
    tool(
        "view_crash",
        "View data for specific crash group",
        {**_crash_id("view"), "period": period_property()},
        required=["crash_id"],
        app_scoped=True,
    ),
    tool(
        "add_crash_comment",
        "Add a comment to a crash group",
        {**_crash_id("comment on"), "comment": {"type": "string", "description": "Comment text to add"}},
        required=["crash_id", "comment"],
        app_scoped=True,
    ),
    tool(
        "edit_crash_comment",
        "Edit an existing comment on a crash group",
        {
            "crash_id": {"type": "string", "description": "Crash ID containing the comment"},
            "comment_id": {"type": "string", "description": "ID of the comment to edit"},
            "comment": {"type": "string", "description": "New comment text"},
        },
        required=["crash_id", "comment_id", "comment"],
        app_scoped=True,
    ),
    tool(
        "delete_crash_comment",
        "Delete a comment from a crash group",
        {
            "crash_id": {"type": "string", "description": "Crash ID containing the comment"},
            "comment_id": {"type": "string", "description": "ID of the comment to delete"},
        },
        required=["crash_id", "comment_id"],
        app_scoped=True,
    ),
    tool("resolve_crash", "Mark a crash group as resolved", _crash_id("resolve"), required=["crash_id"], app_scoped=True),
    tool("unresolve_crash", "Mark a crash group as unresolved", _crash_id("unresolve"), required=["crash_id"], app_scoped=True),
    tool("hide_crash", "Hide a crash group from view", _crash_id("hide"), required=["crash_id"], app_scoped=True),
    tool("show_crash", "Show a hidden crash group", _crash_id("show"), required=["crash_id"], app_scoped=True),
]


class CrashTools(BaseTools):
    async def _write(self, ctx: ToolContext, action: str, app_id: str, payload: Dict[str, Any]) -> Any:
        return await ctx.client.get(
            f"/i/crashes/{action}",
            params={"app_id": app_id, "args": json.dumps(payload)},
            context=f"Failed to {action.replace('_', ' ')} crash",
        )

    async def _set_state(self, ctx: ToolContext, args: Dict[str, Any], action: str, past: str) -> ToolResult:
        validate_required_params(args, ["crash_id"])
        app_id = await ctx.resolve_app_id(args)
        crash_id = args["crash_id"]
        data = await self._write(ctx, action, app_id, {"crash_id": crash_id})
        return ToolResult.with_data(f"Crash {crash_id} {past} successfully", data)

    async def list_crash_groups(self, ctx: ToolContext, args: Dict[str, Any]) -> ToolResult:
        app_id = await ctx.resolve_app_id(args)
        skip = int(parse_numeric_param(args.get("skip", 0), "skip", minimum=0))
        limit = int(parse_numeric_param(args.get("limit", 10), "limit", minimum=1))
        data = await ctx.client.get(
            "/o",
            params={
                "app_id": app_id,
                "method": "crashes",
                "period": args.get("period") or "30days",
                "query": args.get("query") or "{}",
                "iDisplayStart": skip,
                "iDisplayLength": limit,
            },
            context="Failed to list crash groups",
        )
        return ToolResult.with_data(f"Crash groups for app {app_id}", data)

    async def get_crash_statistics(self, ctx: ToolContext, args: Dict[str, Any]) -> ToolResult:
        app_id = await ctx.resolve_app_id(args)
        data = await ctx.client.get(
            "/o",
            params={"app_id": app_id, "method": "crashes", "graph": 1, "period": args.get("period") or "30days"},
            context="Failed to get crash statistics",
        )
        return ToolResult.with_data(f"Crash statistics for app {app_id}", data)

    async def view_crash(self, ctx: ToolContext, args: Dict[str, Any]) -> ToolResult:
        validate_required_params(args, ["crash_id"])
        app_id = await ctx.resolve_app_id(args)
        crash_id = args["crash_id"]
        data = await ctx.client.get(
            "/o",
            params={
                "app_id": app_id,
                "method": "crashes",
                "group": crash_id,
                "period": args.get("period") or "30days",
            },
            context="Failed to view crash",
        )
        return ToolResult.with_data(f"Crash group with id {crash_id} data", data)

    async def add_crash_comment(self, ctx: ToolContext, args: Dict[str, Any]) -> ToolResult:
        validate_required_params(args, ["crash_id", "comment"])
        app_id = await ctx.resolve_app_id(args)
        crash_id = args["crash_id"]
        data = await self._write(
            ctx, "add_comment", app_id, {"text": args["comment"], "crash_id": crash_id, "app_id": app_id}
        )
        return ToolResult.with_data(f"Comment added to crash {crash_id}", data)

    async def edit_crash_comment(self, ctx: ToolContext, args: Dict[str, Any]) -> ToolResult:
        validate_required_params(args, ["crash_id", "comment_id", "comment"])
        app_id = await ctx.resolve_app_id(args)
        crash_id, comment_id = args["crash_id"], args["comment_id"]
        data = await self._write(
            ctx,
            "edit_comment",
            app_id,
            {"text": args["comment"], "crash_id": crash_id, "comment_id": comment_id, "app_id": app_id},
        )
        return ToolResult.with_data(f"Comment {comment_id} edited on crash {crash_id}", data)

    async def delete_crash_comment(self, ctx: ToolContext, args: Dict[str, Any]) -> ToolResult:
        validate_required_params(args, ["crash_id", "comment_id"])
        app_id = await ctx.resolve_app_id(args)
        crash_id, comment_id = args["crash_id"], args["comment_id"]
        data = await self._write(
            ctx, "delete_comment", app_id, {"comment_id": comment_id, "crash_id": crash_id, "app_id": app_id}
        )
        return ToolResult.with_data(f"Comment {comment_id} deleted from crash {crash_id}", data)

    async def resolve_crash(self, ctx: ToolContext, args: Dict[str, Any]) -> ToolResult:
        return await self._set_state(ctx, args, "resolve", "resolved")

    async def unresolve_crash(self, ctx: ToolContext, args: Dict[str, Any]) -> ToolResult:
        return await self._set_state(ctx, args, "unresolve", "unresolved")

    async def hide_crash(self, ctx: ToolContext, args: Dict[str, Any]) -> ToolResult:
        return await self._set_state(ctx, args, "hide", "hidden")

    async def show_crash(self, ctx: ToolContext, args: Dict[str, Any]) -> ToolResult:
        return await self._set_state(ctx, args, "show", "shown")


CRASH_TOOL_METADATA = ToolMetadata(
    instance_key="crashes",
    tool_class=CrashTools,
    handlers={name: name for name in (
        "list_crash_groups",
        "get_crash_statistics",
        "view_crash",
        "add_crash_comment",
        "edit_crash_comment",
        "delete_crash_comment",
        "resolve_crash",
        "unresolve_crash",
        "hide_crash",
        "show_crash",
    )},
    definitions=CRASH_TOOL_DEFINITIONS,
)
