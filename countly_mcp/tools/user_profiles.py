"""User profile tools (requires the users plugin)."""

from typing import Any, Dict

from countly_mcp.infra.validation import dump_json_array_param, dump_json_param, validate_required_params
from countly_mcp.models.tool import ToolResult
from countly_mcp.tools.base import BaseTools, ToolContext, ToolMetadata, tool


QUERY_PROPERTY = {
    "type": "string",
    "description": 'MongoDB query object as JSON string (e.g. \'{"country":"US"}\' or \'{}\'). '
                   'Do NOT use the "up." prefix here',
}

USER_PROFILE_TOOL_DEFINITIONS = [
    tool(
        "query_user_profiles",
        "Query user profiles using a MongoDB query. Check get_segmentation_meta for available "
        'user properties (without the "up." prefix here)',
        {"query": QUERY_PROPERTY},
        app_scoped=True,
    ),
    tool(
        "breakdown_user_profiles",
        "Break down user counts by specific properties (e.g. country, app version)",
        {
            "query": QUERY_PROPERTY,
            "projection_key": {
                "type": "string",
                "description": 'JSON array of property keys to break down by (e.g. \'["av"]\' or \'["country"]\')',
            },
        },
        required=["projection_key"],
        app_scoped=True,
    ),
    tool(
        "get_user_profile_details",
        "Get detailed information about a specific user by their UID",
        {"uid": {"type": "string", "description": "User ID (UID) to get details for"}},
        required=["uid"],
        app_scoped=True,
    ),
    tool(
        "add_user_note",
        "Add or update a note on a specific user profile",
        {
            "user_id": {"type": "string", "description": "User ID to add note to"},
            "note": {"type": "string", "description": "Note text to add"},
        },
        required=["user_id", "note"],
        app_scoped=True,
    ),
]


class UserProfileTools(BaseTools):
    async def _user_details(self, ctx: ToolContext, app_id: str, context: str, **params: Any) -> Any:
        return await ctx.client.get(
            "/o",
            params={"app_id": app_id, "method": "user_details", **params},
            context=context,
        )

    async def query_user_profiles(self, ctx: ToolContext, args: Dict[str, Any]) -> ToolResult:
        app_id = await ctx.resolve_app_id(args)
        query = dump_json_param(args.get("query") or "{}", "query")
        data = await self._user_details(ctx, app_id, "Failed to query user profiles", query=query)
        return ToolResult.with_data(f"User profiles query results:\n\n**Query:** {query}\n\n**Results**", data)

    async def breakdown_user_profiles(self, ctx: ToolContext, args: Dict[str, Any]) -> ToolResult:
        validate_required_params(args, ["projection_key"])
        app_id = await ctx.resolve_app_id(args)
        query = dump_json_param(args.get("query") or "{}", "query")
        projection = dump_json_array_param(args["projection_key"], "projection_key")
        data = await self._user_details(
            ctx, app_id, "Failed to breakdown user profiles", query=query, projectionKey=projection
        )
        return ToolResult.with_data(
            f"User profiles breakdown:\n\n**Query:** {query}\n**Breakdown by:** {projection}\n\n**Results**", data
        )

    async def get_user_profile_details(self, ctx: ToolContext, args: Dict[str, Any]) -> ToolResult:
        validate_required_params(args, ["uid"])
        app_id = await ctx.resolve_app_id(args)
        uid = args["uid"]
        data = await self._user_details(ctx, app_id, "Failed to get user profile details", uid=uid)
        return ToolResult.with_data(f"User profile details:\n\n**UID:** {uid}\n\n**Details**", data)

    async def add_user_note(self, ctx: ToolContext, args: Dict[str, Any]) -> ToolResult:
        validate_required_params(args, ["user_id", "note"])
        app_id = await ctx.resolve_app_id(args)
        data = await ctx.client.get(
            "/usernote/edit",
            params={"app_id": app_id, "user_id": args["user_id"], "note": args["note"]},
            context="Failed to add user note",
        )
        return ToolResult.with_data("User note added", data)


USER_PROFILE_TOOL_METADATA = ToolMetadata(
    instance_key="user_profiles",
    tool_class=UserProfileTools,
    handlers={name: name for name in (
        "query_user_profiles",
        "breakdown_user_profiles",
        "get_user_profile_details",
        "add_user_note",
    )},
    definitions=USER_PROFILE_TOOL_DEFINITIONS,
)
