"""App user tools: end users tracked by Countly."""

from typing import Any, Dict

from countly_mcp.infra.error_handler import ToolValidationError
from countly_mcp.infra.validation import dump_json_param, validate_required_params
from countly_mcp.models.tool import ToolResult
from countly_mcp.tools.base import BaseTools, ToolContext, ToolMetadata, tool


EXPORT_TYPES = ["json", "csv"]

APP_USER_TOOL_DEFINITIONS = [
    tool(
        "create_app_user",
        "Create a new app user (end-user of your application being tracked by Countly)",
        {"user_data": {"type": "string", "description": "JSON string containing user data"}},
        required=["user_data"],
        app_scoped=True,
    ),
    tool(
        "edit_app_user",
        "Update app users (end-users of your application) matching a query",
        {
            "query": {
                "type": "string",
                "description": 'MongoDB query as JSON string selecting the users, e.g. \'{"uid":"1"}\'',
            },
            "update": {
                "type": "string",
                "description": 'MongoDB update as JSON string, e.g. \'{"$set":{"name":"John"}}\'',
            },
            "force": {"type": "boolean", "description": "Update even if multiple users match", "default": False},
        },
        required=["query", "update"],
        app_scoped=True,
    ),
    tool(
        "delete_app_user",
        "Delete an app user (end-user of your application)",
        {
            "uid": {"type": "string", "description": "User ID to delete"},
            "force": {"type": "boolean", "description": "Force delete if multiple users match", "default": False},
        },
        required=["uid"],
        app_scoped=True,
    ),
    tool(
        "export_app_users",
        "Export all data for app users (end-users of your application)",
        {"export_type": {"type": "string", "enum": EXPORT_TYPES, "description": "Export format", "default": "json"}},
        app_scoped=True,
    ),
]


class AppUserTools(BaseTools):
    async def create_app_user(self, ctx: ToolContext, args: Dict[str, Any]) -> ToolResult:
        validate_required_params(args, ["user_data"])
        app_id = await ctx.resolve_app_id(args)
        data = await ctx.client.post(
            "/i/app_users/create",
            params={"app_id": app_id, "user_data": dump_json_param(args["user_data"], "user_data")},
            context="Failed to create app user",
        )
        return ToolResult.with_data(f"User created for app {app_id}", data)

    async def edit_app_user(self, ctx: ToolContext, args: Dict[str, Any]) -> ToolResult:
        validate_required_params(args, ["query", "update"])
        app_id = await ctx.resolve_app_id(args)
        data = await ctx.client.post(
            "/i/app_users/update",
            params={
                "app_id": app_id,
                "query": dump_json_param(args["query"], "query"),
                "update": dump_json_param(args["update"], "update"),
                "force": bool(args.get("force", False)),
            },
            context="Failed to update app user",
        )
        return ToolResult.with_data(f"Users updated in app {app_id}", data)

    async def delete_app_user(self, ctx: ToolContext, args: Dict[str, Any]) -> ToolResult:
        validate_required_params(args, ["uid"])
        app_id = await ctx.resolve_app_id(args)
        uid = args["uid"]
        data = await ctx.client.post(
            "/i/app_users/delete",
            params={"app_id": app_id, "uid": uid, "force": bool(args.get("force", False))},
            context="Failed to delete app user",
        )
        return ToolResult.with_data(f"User {uid} deleted from app {app_id}", data)

    async def export_app_users(self, ctx: ToolContext, args: Dict[str, Any]) -> ToolResult:
        app_id = await ctx.resolve_app_id(args)
        export_type = args.get("export_type") or "json"
        if export_type not in EXPORT_TYPES:
            raise ToolValidationError(f"Unknown export_type: {export_type}. Use one of: {', '.join(EXPORT_TYPES)}")
        data = await ctx.client.get(
            "/i/app_users/export",
            params={"app_id": app_id, "export_type": export_type},
            context="Failed to export app users",
        )
        return ToolResult.with_data(f"Users export for app {app_id} ({export_type})", data)


APP_USER_TOOL_METADATA = ToolMetadata(
    instance_key="app_users",
    tool_class=AppUserTools,
    handlers={
        "create_app_user": "create_app_user",
        "edit_app_user": "edit_app_user",
        "delete_app_user": "delete_app_user",
        "export_app_users": "export_app_users",
    },
    definitions=APP_USER_TOOL_DEFINITIONS,
)
