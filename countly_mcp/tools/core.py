"""Core tools: server health, version, plugins, and app search."""

from typing import Any, Dict

from countly_mcp.infra.validation import validate_required_params
from countly_mcp.models.tool import ToolResult
from countly_mcp.tools.base import BaseTools, ToolContext, ToolMetadata, tool


CORE_TOOL_DEFINITIONS = [
    tool("ping", "Check if Countly server is healthy and reachable"),
    tool("get_version", "Check what version of Countly is running on the server"),
    tool("get_plugins", "Check what plugins are enabled on the Countly server"),
    tool(
        "search",
        "Search for relevant content in Countly data sources",
        {"query": {"type": "string", "description": "Search query string"}},
        required=["query"],
    ),
    tool(
        "fetch",
        "Retrieve the full contents of a specific document or data item",
        {"id": {"type": "string", "description": "Unique identifier for the document or data item"}},
        required=["id"],
    ),
]


class CoreTools(BaseTools):
    async def ping(self, ctx: ToolContext, args: Dict[str, Any]) -> ToolResult:
        data = await ctx.client.get("/o/ping", context="Failed to ping server")
        return ToolResult.with_data("Server ping response", data)

    async def get_version(self, ctx: ToolContext, args: Dict[str, Any]) -> ToolResult:
        data = await ctx.client.get("/o/system/version", context="Failed to get server version")
        return ToolResult.with_data("Server version", data)

    async def get_plugins(self, ctx: ToolContext, args: Dict[str, Any]) -> ToolResult:
        data = await ctx.client.get("/o/system/plugins", context="Failed to get server plugins")
        return ToolResult.with_data("Enabled plugins", data)

    async def search(self, ctx: ToolContext, args: Dict[str, Any]) -> ToolResult:
        """Case-insensitive substring match over app names."""
        validate_required_params(args, ["query"])
        query = str(args["query"])
        needle = query.lower()
        apps = await ctx.get_apps()
        matches = [app.model_dump(by_alias=True) for app in apps if needle in app.name.lower()]
        return ToolResult.with_data(f'Search results for "{query}"', {"apps": matches})

    async def fetch(self, ctx: ToolContext, args: Dict[str, Any]) -> ToolResult:
        validate_required_params(args, ["id"])
        item_id = str(args["id"])
        apps = await ctx.get_apps()
        app = next((a for a in apps if a.id == item_id), None)
        if app is None:
            return ToolResult.text(f'Document with ID "{item_id}" not found')
        return ToolResult.with_data(f"Document {item_id}", app.model_dump(by_alias=True))


CORE_TOOL_METADATA = ToolMetadata(
    instance_key="core",
    tool_class=CoreTools,
    handlers={
        "ping": "ping",
        "get_version": "get_version",
        "get_plugins": "get_plugins",
        "search": "search",
        "fetch": "fetch",
    },
    definitions=CORE_TOOL_DEFINITIONS,
)
