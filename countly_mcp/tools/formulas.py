"""Formula tools: calculated metrics (requires the formulas plugin)."""

from typing import Any, Dict

from countly_mcp.infra.validation import (
    dump_json_array_param,
    dump_json_param,
    parse_numeric_param,
    validate_required_params,
)
from countly_mcp.models.tool import ToolResult
from countly_mcp.tools.base import BaseTools, ToolContext, ToolMetadata, tool


FORMATS = ["float", "integer", "percentage"]
MODES = ["unsaved", "saved"]

FORMULA_TOOL_DEFINITIONS = [
    tool(
        "run_formula",
        "Run a formula calculation on number properties using mathematical equations. Formulas can "
        "combine metrics like sessions, events and users with filters and segments.",
        {
            "formula": {
                "type": "string",
                "description": "Formula definition as JSON string: an array of formula objects with variables. "
                               'Example: [{"id":0,"variables":[{"id":0,"symbol":"A",'
                               '"selectedFunction":"number-of-sessions","ex":{"_do":"numberOf","_args":["sessions"]}}]}]',
            },
            "period": {"type": "string", "description": 'Time period for calculation. Defaults to "30days".'},
            "bucket": {
                "type": "string",
                "description": 'Time bucket breakdown as JSON array, e.g. ["daily"] or ["single"]. Defaults to ["single"].',
            },
            "format": {"type": "string", "enum": FORMATS, "description": 'Result format type. Defaults to "float".'},
            "dplaces": {"type": "number", "description": "Number of decimal places for the result. Defaults to 2."},
            "unit": {"type": "string", "description": 'Unit of measurement for the result (e.g. "%", "$", "ms")'},
            "previous": {"type": "boolean", "description": "Include previous period for comparison. Defaults to true."},
            "allow_longtask": {
                "type": "boolean",
                "description": "Allow running longer than the web server timeout. Defaults to false.",
            },
            "mode": {"type": "string", "enum": MODES, "description": 'Whether to save the formula. Defaults to "unsaved".'},
            "report_name": {"type": "string", "description": "Report name if the task runs as a long task"},
            "formulaMeta": {
                "type": "string",
                "description": 'Formula metadata as JSON string when mode is "saved" '
                               "(name, description, key, visibility, format, dplaces, unit, sharedEmailEdit)",
            },
        },
        required=["formula"],
        app_scoped=True,
    ),
    tool(
        "list_formulas",
        "List all saved formulas for an application.",
        app_scoped=True,
    ),
    tool(
        "delete_formula",
        "Delete a saved formula by its ID.",
        {"formula_id": {"type": "string", "description": "The ID of the formula to delete"}},
        required=["formula_id"],
        app_scoped=True,
    ),
]


class FormulaTools(BaseTools):
    async def run_formula(self, ctx: ToolContext, args: Dict[str, Any]) -> ToolResult:
        validate_required_params(args, ["formula"])
        app_id = await ctx.resolve_app_id(args)
        period = args.get("period") or "30days"
        params: Dict[str, Any] = {
            "app_id": app_id,
            "method": "calculated_metrics",
            "allow_longtask": bool(args.get("allow_longtask", False)),
            "previous": bool(args.get("previous", True)),
            "period": period,
            "period_local": period,
            "bucket": dump_json_array_param(args.get("bucket") or '["single"]', "bucket"),
            "mode": args.get("mode") or "unsaved",
            "formula": dump_json_param(args["formula"], "formula"),
            "format": args.get("format") or "float",
            "dplaces": int(parse_numeric_param(args.get("dplaces", 2), "dplaces", minimum=0)),
            "unit": args.get("unit") or "",
            "report_name": args.get("report_name") or None,
        }
        if args.get("formulaMeta"):
            params["formulaMeta"] = dump_json_param(args["formulaMeta"], "formulaMeta")

        data = await ctx.client.get("/o", params=params, context="Failed to run formula")

        summary = "\n".join([
            f"Formula calculation results for app {app_id}:",
            "",
            "**Configuration:**",
            f"- Period: {period}",
            f"- Format: {params['format']}",
            f"- Decimal Places: {params['dplaces']}",
            f"- Unit: {params['unit'] or '(none)'}",
            f"- Bucket: {params['bucket']}",
            f"- Mode: {params['mode']}",
            "",
            "**Results**",
        ])
        return ToolResult.with_data(summary, data)

    async def list_formulas(self, ctx: ToolContext, args: Dict[str, Any]) -> ToolResult:
        app_id = await ctx.resolve_app_id(args)
        data = await ctx.client.get(
            "/o/calculated_metrics/metrics",
            params={"app_id": app_id},
            context="Failed to list formulas",
        )
        if data == []:
            return ToolResult.text(f"Saved formulas for app {app_id}:\n\nNo saved formulas found.")
        title = f"Saved formulas for app {app_id}"
        if isinstance(data, list):
            title += f" ({len(data)} formula(s))"
        return ToolResult.with_data(title, data)

    async def delete_formula(self, ctx: ToolContext, args: Dict[str, Any]) -> ToolResult:
        validate_required_params(args, ["formula_id"])
        app_id = await ctx.resolve_app_id(args)
        formula_id = args["formula_id"]
        data = await ctx.client.get(
            "/i/calculated_metrics/delete",
            params={"app_id": app_id, "id": formula_id},
            context="Failed to delete formula",
        )
        return ToolResult.with_data(f"Formula {formula_id} deleted successfully for app {app_id}", data)


FORMULA_TOOL_METADATA = ToolMetadata(
    instance_key="formulas",
    tool_class=FormulaTools,
    handlers={name: name for name in ("run_formula", "list_formulas", "delete_formula")},
    definitions=FORMULA_TOOL_DEFINITIONS,
)
