"""Cohort tools: behavioral user groups (requires the cohorts plugin)."""

import json
from typing import Any, Dict

from countly_mcp.infra.validation import (
    dump_json_array_param,
    dump_json_param,
    parse_numeric_param,
    validate_required_params,
)
from countly_mcp.models.tool import ToolResult
from countly_mcp.tools.base import BaseTools, ToolContext, ToolMetadata, tool


COHORT_TYPES = ["auto", "manual"]
VISIBILITIES = ["global", "private"]

STEPS_DESCRIPTION = (
    'JSON string array of behavioral steps. Each step has: type ("did" or "didnot"), event '
    '(e.g. "[CLY]_session"), times (JSON string like "{\\"$gte\\":1}"), period (e.g. "7days", '
    '"0days" for all time), query (MongoDB filter JSON string), queryText, group (step group '
    'number from 0) and conj ("and" or "or")'
)

SHARED_EMAILS_PROPERTY = {
    "type": "array",
    "items": {"type": "string"},
    "description": "Array of email addresses to share edit access with",
}

COHORT_TOOL_DEFINITIONS = [
    tool(
        "list_cohorts",
        "List all user cohorts with filtering and pagination. Cohorts are groups of users "
        "based on behavior or manually created segments.",
        {
            "type": {
                "type": "string",
                "enum": COHORT_TYPES,
                "description": "Filter by cohort type (auto for behavioral, manual for manually created)",
            },
            "skip": {"type": "number", "description": "Number of records to skip for pagination", "default": 0},
            "limit": {"type": "number", "description": "Maximum number of records to return", "default": 10},
        },
        app_scoped=True,
    ),
    tool(
        "get_cohort",
        "Get detailed information about a specific cohort including its configuration, "
        "user count, and current state.",
        {"cohort_id": {"type": "string", "description": "Cohort ID to retrieve"}},
        required=["cohort_id"],
        app_scoped=True,
    ),
    tool(
        "create_cohort",
        "Create a new behavioral cohort based on user actions and properties.",
        {
            "name": {"type": "string", "description": "Cohort name"},
            "description": {"type": "string", "description": "Cohort description"},
            "visibility": {
                "type": "string",
                "enum": VISIBILITIES,
                "description": "Cohort visibility (global = visible to all, private = only to creator)",
                "default": "global",
            },
            "steps": {"type": "string", "description": STEPS_DESCRIPTION},
            "user_segmentation": {
                "type": "string",
                "description": 'Optional JSON string with user property filters: {"query": {...}, "queryText": "..."}',
            },
            "shared_email_edit": {**SHARED_EMAILS_PROPERTY, "default": []},
        },
        required=["name", "steps"],
        app_scoped=True,
    ),
    tool(
        "update_cohort",
        "Update an existing cohort configuration including name, description, steps, and sharing settings.",
        {
            "cohort_id": {"type": "string", "description": "Cohort ID to update"},
            "name": {"type": "string", "description": "New cohort name"},
            "description": {"type": "string", "description": "New cohort description"},
            "visibility": {"type": "string", "enum": VISIBILITIES, "description": "Cohort visibility"},
            "steps": {"type": "string", "description": "JSON string array of behavioral steps (as in create_cohort)"},
            "user_segmentation": {"type": "string", "description": "JSON string with user property filters"},
            "shared_email_edit": SHARED_EMAILS_PROPERTY,
        },
        required=["cohort_id"],
        app_scoped=True,
    ),
    tool(
        "delete_cohort",
        "Delete a cohort. This action cannot be undone.",
        {"cohort_id": {"type": "string", "description": "Cohort ID to delete"}},
        required=["cohort_id"],
        app_scoped=True,
    ),
]

# Fields of the stored cohort sent back unchanged on edit
PRESERVED_FIELDS = ("owner_id", "creator", "created_at", "stateChanged", "creatorMember")


class CohortTools(BaseTools):
    async def _get(self, ctx: ToolContext, app_id: str, cohort_id: str, context: str) -> Any:
        return await ctx.client.get(
            "/o",
            params={"app_id": app_id, "method": "get_cohort", "cohort": cohort_id},
            context=context,
        )

    async def list_cohorts(self, ctx: ToolContext, args: Dict[str, Any]) -> ToolResult:
        app_id = await ctx.resolve_app_id(args)
        skip = int(parse_numeric_param(args.get("skip", 0), "skip", minimum=0))
        limit = int(parse_numeric_param(args.get("limit", 10), "limit", minimum=1))
        data = await ctx.client.get(
            "/o",
            params={
                "app_id": app_id,
                "method": "get_cohorts",
                "outputFormat": "full",
                "iDisplayStart": skip,
                "iDisplayLength": limit,
                "ready": "true",
                "sEcho": "0",
                "type": args.get("type") or None,
            },
            context="Failed to list cohorts",
        )
        return ToolResult.with_data(f"Cohorts for app {app_id}", data)

    async def get_cohort(self, ctx: ToolContext, args: Dict[str, Any]) -> ToolResult:
        validate_required_params(args, ["cohort_id"])
        app_id = await ctx.resolve_app_id(args)
        data = await self._get(ctx, app_id, args["cohort_id"], "Failed to get cohort")
        return ToolResult.with_data(f"Cohort {args['cohort_id']}", data)

    async def create_cohort(self, ctx: ToolContext, args: Dict[str, Any]) -> ToolResult:
        validate_required_params(args, ["name", "steps"])
        app_id = await ctx.resolve_app_id(args)
        params: Dict[str, Any] = {
            "app_id": app_id,
            "cohort_name": args["name"],
            "name": args["name"],
            "visibility": args.get("visibility") or "global",
            "steps": dump_json_array_param(args["steps"], "steps"),
            "shared_email_edit": json.dumps(args.get("shared_email_edit") or []),
            "cohort_desc": args.get("description") or None,
        }
        if args.get("user_segmentation"):
            params["user_segmentation"] = dump_json_param(args["user_segmentation"], "user_segmentation")

        data = await ctx.client.get("/i/cohorts/add", params=params, context="Failed to create cohort")
        return ToolResult.with_data("Cohort created", data)

    async def update_cohort(self, ctx: ToolContext, args: Dict[str, Any]) -> ToolResult:
        """Edit a cohort; omitted fields keep their stored values."""
        validate_required_params(args, ["cohort_id"])
        app_id = await ctx.resolve_app_id(args)
        cohort_id = args["cohort_id"]

        steps = dump_json_array_param(args["steps"], "steps") if args.get("steps") else None
        segmentation = None
        if args.get("user_segmentation"):
            segmentation = dump_json_param(args["user_segmentation"], "user_segmentation")

        existing = await self._get(ctx, app_id, cohort_id, "Failed to get existing cohort")
        if not isinstance(existing, dict):
            existing = {}

        name = args.get("name") or existing.get("name")
        params: Dict[str, Any] = {
            "_id": cohort_id,
            "cohort_id": cohort_id,
            "app_id": app_id,
            "name": name,
            "cohort_name": name,
            "type": existing.get("type") or "auto",
            "steps": steps or json.dumps(existing.get("steps") or []),
            "shared_email_edit": json.dumps(
                args["shared_email_edit"] if args.get("shared_email_edit") is not None
                else existing.get("shared_email_edit") or []
            ),
            "state": existing.get("state") or "live",
            "result": existing.get("result") or "0",
            "cohort_desc": args["description"] if "description" in args else existing.get("cohort_desc") or None,
            "visibility": args.get("visibility") or existing.get("visibility"),
        }
        for field in PRESERVED_FIELDS:
            params[field] = existing.get(field)
        if segmentation is not None:
            params["user_segmentation"] = segmentation
        elif existing.get("user_segmentation"):
            params["user_segmentation"] = json.dumps(existing["user_segmentation"])

        data = await ctx.client.get("/i/cohorts/edit", params=params, context="Failed to update cohort")
        return ToolResult.with_data(f"Cohort {cohort_id} updated", data)

    async def delete_cohort(self, ctx: ToolContext, args: Dict[str, Any]) -> ToolResult:
        validate_required_params(args, ["cohort_id"])
        app_id = await ctx.resolve_app_id(args)
        data = await ctx.client.get(
            "/i/cohorts/delete",
            params={"app_id": app_id, "cohort_id": args["cohort_id"], "ack": "0"},
            context="Failed to delete cohort",
        )
        return ToolResult.with_data(f"Cohort {args['cohort_id']} deleted", data)


COHORT_TOOL_METADATA = ToolMetadata(
    instance_key="cohorts",
    tool_class=CohortTools,
    handlers={name: name for name in (
        "list_cohorts",
        "get_cohort",
        "create_cohort",
        "update_cohort",
        "delete_cohort",
    )},
    definitions=COHORT_TOOL_DEFINITIONS,
)
