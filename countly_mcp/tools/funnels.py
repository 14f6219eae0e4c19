"""Funnel tools: step conversion analysis (requires the funnels plugin)."""

import json
from typing import Any, Dict, List

from countly_mcp.infra.error_handler import ToolValidationError
from countly_mcp.infra.validation import dump_json_param, parse_numeric_param, validate_required_params
from countly_mcp.models.tool import ToolResult
from countly_mcp.tools.base import BaseTools, ToolContext, ToolMetadata, period_property, tool


FUNNEL_TYPES = ["session-independent", "same-session"]

FUNNEL_PROPERTY = {"type": "string", "description": "Funnel ID"}
FILTER_PROPERTY = {
    "type": "string",
    "description": "MongoDB filter on user properties as JSON string",
    "default": "{}",
}
STRING_LIST = {"type": "array", "items": {"type": "string"}}
STEP_GROUPS_PROPERTY = {
    "type": "array",
    "items": {
        "type": "object",
        "properties": {
            "c": {"type": "string", "enum": ["and", "or"]},
            "g": {"type": "number"},
        },
    },
    "description": "Per-step group settings: conjunction c and group number g",
}


def _funnel_fields(required: bool) -> Dict[str, Any]:
    return {
        "name": {"type": "string", "description": "Funnel name"},
        "description": {"type": "string", "description": "Funnel description"},
        "type": {
            "type": "string",
            "enum": FUNNEL_TYPES,
            "description": "Whether steps must happen within one session",
            **({"default": "session-independent"} if required else {}),
        },
        "steps": {**STRING_LIST, "description": "Ordered event keys, one per step"},
        "queries": {**STRING_LIST, "description": "Per-step MongoDB filters as JSON strings"},
        "query_texts": {**STRING_LIST, "description": "Per-step human-readable filter descriptions"},
        "step_groups": STEP_GROUPS_PROPERTY,
    }


FUNNEL_TOOL_DEFINITIONS = [
    tool(
        "list_funnels",
        "List all funnels with pagination",
        {
            "skip": {"type": "number", "description": "Number of records to skip for pagination", "default": 0},
            "limit": {"type": "number", "description": "Maximum number of records to return", "default": 10},
        },
        app_scoped=True,
    ),
    tool(
        "get_funnel",
        "Get the configuration of a funnel",
        {"funnel_id": FUNNEL_PROPERTY},
        required=["funnel_id"],
        app_scoped=True,
    ),
    tool(
        "get_funnel_data",
        "Get conversion data for each step of a funnel",
        {"funnel_id": FUNNEL_PROPERTY, "period": period_property(), "filter": FILTER_PROPERTY},
        required=["funnel_id"],
        app_scoped=True,
    ),
    tool(
        "get_funnel_step_users",
        "Get the users who reached a given funnel step",
        {
            "funnel_id": FUNNEL_PROPERTY,
            "step": {"type": "number", "description": "Step index"},
            "period": period_property(),
            "filter": FILTER_PROPERTY,
        },
        required=["funnel_id", "step"],
        app_scoped=True,
    ),
    tool(
        "get_funnel_dropoff_users",
        "Get the users who reached one funnel step but not the next one",
        {
            "funnel_id": FUNNEL_PROPERTY,
            "from_step": {"type": "number", "description": "Step the users reached"},
            "to_step": {"type": "number", "description": "Step the users did not reach"},
            "period": period_property(),
            "filter": FILTER_PROPERTY,
        },
        required=["funnel_id", "from_step", "to_step"],
        app_scoped=True,
    ),
    tool(
        "create_funnel",
        "Create a funnel from an ordered list of events",
        _funnel_fields(required=True),
        required=["name", "steps"],
        app_scoped=True,
    ),
    tool(
        "update_funnel",
        "Update a funnel; omitted fields keep their stored values",
        {"funnel_id": FUNNEL_PROPERTY, **_funnel_fields(required=False)},
        required=["funnel_id"],
        app_scoped=True,
    ),
    tool(
        "delete_funnel",
        "Delete a funnel. This action cannot be undone.",
        {"funnel_id": FUNNEL_PROPERTY},
        required=["funnel_id"],
        app_scoped=True,
    ),
]


def _step_number(value: Any, name: str) -> int:
    return int(parse_numeric_param(value, name, minimum=0))


class FunnelTools(BaseTools):
    async def _get(self, ctx: ToolContext, app_id: str, funnel_id: str, context: str) -> Any:
        return await ctx.client.get(
            "/o",
            params={"app_id": app_id, "method": "get_funnel", "funnel": funnel_id},
            context=context,
        )

    async def _funnel_data(self, ctx: ToolContext, args: Dict[str, Any], context: str, **extra: Any) -> Any:
        app_id = await ctx.resolve_app_id(args)
        return await ctx.client.get(
            "/o",
            params={
                "app_id": app_id,
                "method": "funnel",
                "funnel": args["funnel_id"],
                "period": args.get("period") or "30days",
                "filter": dump_json_param(args.get("filter") or "{}", "filter"),
                **extra,
            },
            context=context,
        )

    async def list_funnels(self, ctx: ToolContext, args: Dict[str, Any]) -> ToolResult:
        app_id = await ctx.resolve_app_id(args)
        skip = int(parse_numeric_param(args.get("skip", 0), "skip", minimum=0))
        limit = int(parse_numeric_param(args.get("limit", 10), "limit", minimum=1))
        data = await ctx.client.get(
            "/o",
            params={
                "app_id": app_id,
                "method": "get_funnels",
                "outputFormat": "full",
                "iDisplayStart": skip,
                "iDisplayLength": limit,
                "ready": "true",
                "selectedDynamicCols[]": "result",
                "sEcho": "0",
            },
            context="Failed to list funnels",
        )
        return ToolResult.with_data(f"Funnels for app {app_id}", data)

    async def get_funnel(self, ctx: ToolContext, args: Dict[str, Any]) -> ToolResult:
        validate_required_params(args, ["funnel_id"])
        app_id = await ctx.resolve_app_id(args)
        data = await self._get(ctx, app_id, args["funnel_id"], "Failed to get funnel")
        return ToolResult.with_data(f"Funnel {args['funnel_id']}", data)

    async def get_funnel_data(self, ctx: ToolContext, args: Dict[str, Any]) -> ToolResult:
        validate_required_params(args, ["funnel_id"])
        data = await self._funnel_data(ctx, args, "Failed to get funnel data")
        return ToolResult.with_data(f"Funnel {args['funnel_id']} data", data)

    async def get_funnel_step_users(self, ctx: ToolContext, args: Dict[str, Any]) -> ToolResult:
        validate_required_params(args, ["funnel_id", "step"])
        step = _step_number(args["step"], "step")
        data = await self._funnel_data(ctx, args, "Failed to get funnel step users", users_for_step=str(step))
        return ToolResult.with_data(f"Users at step {step} of funnel {args['funnel_id']}", data)

    async def get_funnel_dropoff_users(self, ctx: ToolContext, args: Dict[str, Any]) -> ToolResult:
        validate_required_params(args, ["funnel_id", "from_step", "to_step"])
        from_step = _step_number(args["from_step"], "from_step")
        to_step = _step_number(args["to_step"], "to_step")
        data = await self._funnel_data(
            ctx, args, "Failed to get funnel dropoff users", users_between_steps=f"{from_step}|{to_step}"
        )
        return ToolResult.with_data(
            f"Users dropping off between steps {from_step} and {to_step} of funnel {args['funnel_id']}", data
        )

    async def create_funnel(self, ctx: ToolContext, args: Dict[str, Any]) -> ToolResult:
        validate_required_params(args, ["name", "steps"])
        steps: List[str] = args["steps"]
        if not isinstance(steps, list) or not steps:
            raise ToolValidationError("Parameter steps must be a non-empty array of event keys")

        queries = args.get("queries") or ["{}"] * len(steps)
        query_texts = args.get("query_texts") or [""] * len(steps)
        step_groups = args.get("step_groups") or [{"c": "and", "g": i} for i in range(len(steps))]
        if not len(queries) == len(query_texts) == len(step_groups) == len(steps):
            raise ToolValidationError("steps, queries, query_texts, and step_groups arrays must have the same length")

        app_id = await ctx.resolve_app_id(args)
        data = await ctx.client.get(
            "/i/funnels/add",
            params={
                "app_id": app_id,
                "funnel_name": args["name"],
                "funnel_desc": args.get("description") or "",
                "funnel_type": args.get("type") or "session-independent",
                "steps": json.dumps(steps),
                "queries": json.dumps(queries),
                "queryTexts": json.dumps(query_texts),
                "stepGroups": json.dumps(step_groups),
            },
            context="Failed to create funnel",
        )
        return ToolResult.with_data("Funnel created", data)

    async def update_funnel(self, ctx: ToolContext, args: Dict[str, Any]) -> ToolResult:
        validate_required_params(args, ["funnel_id"])
        app_id = await ctx.resolve_app_id(args)
        funnel_id = args["funnel_id"]
        existing = await self._get(ctx, app_id, funnel_id, "Failed to get existing funnel")
        if not isinstance(existing, dict):
            existing = {}

        def pick(arg: str, stored: str) -> str:
            value = args[arg] if args.get(arg) is not None else existing.get(stored) or []
            return json.dumps(value)

        funnel = {
            "app_id": app_id,
            "funnel_name": args.get("name") or existing.get("funnel_name"),
            "funnel_desc": args["description"] if "description" in args else existing.get("funnel_desc") or "",
            "funnel_type": args.get("type") or existing.get("funnel_type"),
            "steps": pick("steps", "steps"),
            "queries": pick("queries", "queries"),
            "queryTexts": pick("query_texts", "queryTexts"),
            "stepGroups": pick("step_groups", "stepGroups"),
        }
        data = await ctx.client.get(
            "/i/funnels/edit",
            params={"app_id": app_id, "funnel_map": json.dumps({funnel_id: funnel})},
            context="Failed to update funnel",
        )
        return ToolResult.with_data(f"Funnel {funnel_id} updated", data)

    async def delete_funnel(self, ctx: ToolContext, args: Dict[str, Any]) -> ToolResult:
        validate_required_params(args, ["funnel_id"])
        app_id = await ctx.resolve_app_id(args)
        data = await ctx.client.get(
            "/i/funnels/delete",
            params={"app_id": app_id, "funnel_id": args["funnel_id"]},
            context="Failed to delete funnel",
        )
        return ToolResult.with_data(f"Funnel {args['funnel_id']} deleted", data)


FUNNEL_TOOL_METADATA = ToolMetadata(
    instance_key="funnels",
    tool_class=FunnelTools,
    handlers={name: name for name in (
        "list_funnels",
        "get_funnel",
        "get_funnel_data",
        "get_funnel_step_users",
        "get_funnel_dropoff_users",
        "create_funnel",
        "update_funnel",
        "delete_funnel",
    )},
    definitions=FUNNEL_TOOL_DEFINITIONS,
)
