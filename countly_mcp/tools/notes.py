"""Notes tools: dashboard annotations."""

import json
import time
from typing import Any, Callable, Dict, List

from countly_mcp.infra.error_handler import ToolValidationError
from countly_mcp.infra.validation import parse_numeric_param, validate_required_params
from countly_mcp.models.tool import ToolResult
from countly_mcp.tools.base import BaseTools, ToolContext, ToolMetadata, period_property, tool


NOTE_COLORS = {
    "turquoise": 1,
    "yellow": 2,
    "orange": 3,
    "pink": 4,
    "blue": 5,
}

# Values below this are treated as seconds and converted to milliseconds
_SECONDS_THRESHOLD = 10_000_000_000

_DAY_MS = 24 * 60 * 60 * 1000
_PERIOD_SPANS_MS = {
    "month": 30 * _DAY_MS,
    "30days": 30 * _DAY_MS,
    "60days": 60 * _DAY_MS,
    "7days": 7 * _DAY_MS,
    "yesterday": _DAY_MS,
    "hour": 60 * 60 * 1000,
}


NOTE_TOOL_DEFINITIONS = [
    tool(
        "create_note",
        "Create a new note",
        {
            "note": {"type": "string", "description": "Note content text"},
            "ts": {"type": "number", "description": "Timestamp for the note (Unix timestamp in seconds)"},
            "noteType": {"type": "string", "description": 'Note type (e.g., "public", "private")'},
            "color": {"type": "string", "description": "Note color", "enum": list(NOTE_COLORS)},
            "category": {
                "type": "string",
                "description": 'Optional category (e.g., "sessionHomeWidget" to display on session dashboard graph)',
            },
            "emails": {
                "type": "array",
                "items": {"type": "string"},
                "description": "Optional array of email addresses",
            },
        },
        required=["note", "ts", "noteType", "color"],
        app_scoped=True,
    ),
    tool(
        "list_notes",
        "List all notes for an application within a time period",
        {"period": period_property()},
        app_scoped=True,
    ),
    tool(
        "delete_note",
        "Delete a note",
        {"note_id": {"type": "string", "description": "Note ID to delete"}},
        required=["note_id"],
    ),
]


def to_milliseconds(ts: float) -> int:
    return int(ts * 1000) if ts < _SECONDS_THRESHOLD else int(ts)


def period_to_range(period: str, now_ms: Callable[[], int] = lambda: int(time.time() * 1000)) -> str:
    """
    Convert a named period to an explicit "[start,end]" millisecond range.

    Ranges already in bracket form pass through unchanged; unrecognized
    names collapse to an empty range ending now.
    """
    if period.startswith("["):
        return period
    end = now_ms()
    start = end - _PERIOD_SPANS_MS.get(period, 0)
    return f"[{start},{end}]"


def _count_notes(data: Any) -> int:
    notes = data.get("notes", data) if isinstance(data, dict) else data
    if isinstance(notes, (list, dict)):
        return len(notes)
    return 0


class NoteTools(BaseTools):
    async def create_note(self, ctx: ToolContext, args: Dict[str, Any]) -> ToolResult:
        validate_required_params(args, ["note", "ts", "noteType", "color"])
        app_id = await ctx.resolve_app_id(args)
        ts = parse_numeric_param(args["ts"], "ts", minimum=0)
        color = str(args["color"]).lower()
        if color not in NOTE_COLORS:
            raise ToolValidationError(f"Invalid note color: {args['color']}. Use one of: {', '.join(NOTE_COLORS)}")

        emails: List[str] = args.get("emails") or []
        note_args = {
            "app_id": app_id,
            "note": args["note"],
            "ts": to_milliseconds(ts),
            "noteType": args["noteType"],
            "emails": emails,
            "color": NOTE_COLORS[color],
            "category": args.get("category") or None,
        }
        data = await ctx.client.get(
            "/i/notes/save",
            params={"args": json.dumps(note_args)},
            context="Failed to create note",
        )
        return ToolResult.with_data(f"Note created for app {app_id}", data)

    async def list_notes(self, ctx: ToolContext, args: Dict[str, Any]) -> ToolResult:
        app_id = await ctx.resolve_app_id(args)
        period = period_to_range(str(args.get("period") or "30days"))
        data = await ctx.client.get(
            "/o",
            params={
                "app_id": app_id,
                "method": "notes",
                "notes_apps": json.dumps([app_id]),
                "period": period,
            },
            context="Failed to list notes",
        )
        return ToolResult.with_data(f"Found {_count_notes(data)} note(s) for app {app_id}", data)

    async def delete_note(self, ctx: ToolContext, args: Dict[str, Any]) -> ToolResult:
        validate_required_params(args, ["note_id"])
        note_id = args["note_id"]
        data = await ctx.client.get(
            "/i/notes/delete",
            params={"note_id": note_id},
            context="Failed to delete note",
        )
        return ToolResult.with_data(f"Note {note_id} deleted", data)


NOTE_TOOL_METADATA = ToolMetadata(
    instance_key="notes",
    tool_class=NoteTools,
    handlers={
        "create_note": "create_note",
        "list_notes": "list_notes",
        "delete_note": "delete_note",
    },
    definitions=NOTE_TOOL_DEFINITIONS,
)
