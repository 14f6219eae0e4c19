"""App management tools."""

import json
from typing import Any, Dict

from countly_mcp.infra.error_handler import TenantResolutionError, format_known_names
from countly_mcp.infra.validation import validate_required_params
from countly_mcp.models.tool import ToolResult
from countly_mcp.tools.base import BaseTools, ToolContext, ToolMetadata, tool


_APP_FIELDS = ("name", "country", "timezone", "category")

APP_TOOL_DEFINITIONS = [
    tool("list_apps", "List all available applications with their names and IDs"),
    tool(
        "get_app_by_name",
        "Get app information by app name",
        {"app_name": {"type": "string", "description": "Application name"}},
        required=["app_name"],
    ),
    tool(
        "create_app",
        "Create a new app in Countly (requires global admin privileges)",
        {
            "name": {"type": "string", "description": "Application name"},
            "country": {"type": "string", "description": 'Country code (e.g., "US")'},
            "timezone": {"type": "string", "description": 'Timezone (e.g., "America/New_York")'},
            "category": {"type": "string", "description": "App category (optional)"},
        },
        required=["name"],
    ),
    tool(
        "update_app",
        "Update an existing app in Countly",
        {
            "name": {"type": "string", "description": "New application name (optional)"},
            "country": {"type": "string", "description": "Country code (optional)"},
            "timezone": {"type": "string", "description": "Timezone (optional)"},
            "category": {"type": "string", "description": "App category (optional)"},
        },
        app_scoped=True,
    ),
    tool("delete_app", "Delete an app from Countly (requires global admin privileges)", app_scoped=True),
    tool("reset_app", "Reset all data for an app (requires global admin privileges)", app_scoped=True),
]


def _pick_app_fields(args: Dict[str, Any]) -> Dict[str, Any]:
    return {field: args[field] for field in _APP_FIELDS if args.get(field)}


class AppTools(BaseTools):
    async def list_apps(self, ctx: ToolContext, args: Dict[str, Any]) -> ToolResult:
        apps = await ctx.get_apps()
        lines = "\n".join(f"- {app.name} (ID: {app.id})" for app in apps)
        return ToolResult.text(f"Available applications:\n{lines}")

    async def get_app_by_name(self, ctx: ToolContext, args: Dict[str, Any]) -> ToolResult:
        """Case-insensitive lookup, unlike app_name resolution elsewhere."""
        validate_required_params(args, ["app_name"])
        wanted = str(args["app_name"]).lower()
        apps = await ctx.get_apps()
        app = next((a for a in apps if a.name.lower() == wanted), None)
        if app is None:
            raise TenantResolutionError(
                f'App with name "{args["app_name"]}" not found. '
                f"Available apps: {format_known_names(a.name for a in apps)}"
            )
        return ToolResult.with_data("App information", app.model_dump(by_alias=True))

    async def create_app(self, ctx: ToolContext, args: Dict[str, Any]) -> ToolResult:
        validate_required_params(args, ["name"])
        data = await ctx.client.get(
            "/i/apps/create",
            params={"args": json.dumps(_pick_app_fields(args))},
            context="Failed to create app",
        )
        # New app must show up in name resolution
        ctx.app_cache.clear()
        return ToolResult.with_data("App created successfully", data)

    async def update_app(self, ctx: ToolContext, args: Dict[str, Any]) -> ToolResult:
        app_id = await ctx.resolve_app_id(args)
        update = _pick_app_fields(args)
        update["app_id"] = app_id
        data = await ctx.client.get(
            "/i/apps/update",
            params={"app_id": app_id, "args": json.dumps(update)},
            context="Failed to update app",
        )
        ctx.app_cache.clear()
        return ToolResult.with_data("App updated successfully", data)

    async def delete_app(self, ctx: ToolContext, args: Dict[str, Any]) -> ToolResult:
        app_id = await ctx.resolve_app_id(args)
        data = await ctx.client.get(
            "/i/apps/delete",
            params={"args": json.dumps({"app_id": app_id})},
            context="Failed to delete app",
        )
        ctx.app_cache.clear()
        return ToolResult.with_data("App deleted successfully", data)

    async def reset_app(self, ctx: ToolContext, args: Dict[str, Any]) -> ToolResult:
        app_id = await ctx.resolve_app_id(args)
        data = await ctx.client.get(
            "/i/apps/reset",
            params={"args": json.dumps({"app_id": app_id, "period": "reset"})},
            context="Failed to reset app",
        )
        return ToolResult.with_data("App reset successfully", data)


APP_TOOL_METADATA = ToolMetadata(
    instance_key="apps",
    tool_class=AppTools,
    handlers={
        "list_apps": "list_apps",
        "get_app_by_name": "get_app_by_name",
        "create_app": "create_app",
        "update_app": "update_app",
        "delete_app": "delete_app",
        "reset_app": "reset_app",
    },
    definitions=APP_TOOL_DEFINITIONS,
)
