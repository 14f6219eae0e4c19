"""Event definition tools."""

import json
from typing import Any, Dict

from countly_mcp.infra.validation import validate_required_params
from countly_mcp.models.tool import ToolResult
from countly_mcp.tools.base import BaseTools, ToolContext, ToolMetadata, tool


EVENT_TOOL_DEFINITIONS = [
    tool(
        "create_event",
        "Create/configure an event definition with display name and description",
        {
            "key": {"type": "string", "description": "Event key/name"},
            "name": {"type": "string", "description": "Display name for the event"},
            "description": {"type": "string", "description": "Description for the event"},
            "category": {"type": "string", "description": "Optional event category"},
            "segments": {
                "type": "array",
                "description": "Array of segment definitions",
                "items": {
                    "type": "object",
                    "properties": {
                        "name": {"type": "string", "description": "Segment name/key"},
                        "type": {
                            "type": "string",
                            "description": "Segment type (s=string, n=number, b=boolean, l=list, d=date in millisecond timestamp)",
                        },
                        "required": {"type": "boolean", "description": "Whether segment is required"},
                        "description": {"type": "string", "description": "Segment description"},
                    },
                },
            },
        },
        required=["key", "name"],
        app_scoped=True,
    ),
]


class EventTools(BaseTools):
    async def create_event(self, ctx: ToolContext, args: Dict[str, Any]) -> ToolResult:
        validate_required_params(args, ["key", "name"])
        app_id = await ctx.resolve_app_id(args)
        event = {
            "key": args["key"],
            "name": args["name"],
            "description": args.get("description") or "",
            "category": args.get("category") or None,
            "isEditMode": False,
            "segments": args.get("segments") or [],
        }
        data = await ctx.client.get(
            "/i/data-manager/event",
            params={"app_id": app_id, "event": json.dumps(event)},
            context="Failed to execute request to /i/data-manager/event",
        )
        return ToolResult.with_data(
            f'Event definition created for "{args["name"]}" ({args["key"]}) in app {app_id}', data
        )


EVENT_TOOL_METADATA = ToolMetadata(
    instance_key="events",
    tool_class=EventTools,
    handlers={"create_event": "create_event"},
    definitions=EVENT_TOOL_DEFINITIONS,
)
