"""Alert tools (requires the alerts plugin)."""

from typing import Any, Dict

from countly_mcp.infra.validation import dump_json_param, validate_required_params
from countly_mcp.models.tool import ToolResult
from countly_mcp.tools.base import BaseTools, ToolContext, ToolMetadata, tool


ALERT_DATA_TYPES = [
    "crashes", "sessions", "users", "events", "views", "cohorts", "dataPoints",
    "nps", "onlineUsers", "profile_groups", "rating", "revenue", "survey",
]

ALERT_CONFIG_SCHEMA: Dict[str, Any] = {
    "type": "object",
    "description": "Alert configuration object",
    "properties": {
        "_id": {"type": ["string", "null"], "description": "Alert ID for updates, null for new alerts"},
        "alertName": {"type": "string", "description": "Name of the alert"},
        "alertDataType": {"type": "string", "enum": ALERT_DATA_TYPES, "description": "Type of data to monitor"},
        "alertDataSubType": {
            "type": "string",
            "description": 'Specific metric to monitor, e.g. "# of crashes/errors", "# of sessions", "count"',
        },
        "alertDataSubType2": {
            "type": ["string", "null"],
            "description": "Additional subtype ID (event key, view ID, cohort ID, widget ID) when applicable",
        },
        "compareType": {
            "type": ["string", "null"],
            "enum": ["increased", "decreased", "more", "less", None],
            "description": "Comparison operator; null for metrics without comparison",
        },
        "period": {
            "type": ["string", "null"],
            "enum": ["daily", "monthly", "hourly", None],
            "description": "Time period for comparison",
        },
        "compareValue": {"type": ["string", "null"], "description": "Threshold value or percentage"},
        "compareValue2": {"type": ["string", "null"], "description": "Minutes for onlineUsers type \"t\""},
        "selectedApps": {"type": "array", "items": {"type": "string"}, "description": "App IDs to monitor"},
        "filterKey": {"type": ["string", "null"], "description": "Optional filter key"},
        "filterValue": {"type": ["string", "array", "null"], "description": "Optional filter value"},
        "alertBy": {"type": "string", "enum": ["email", "hook"], "description": "Delivery method"},
        "enabled": {"type": "boolean", "description": "Whether the alert is active"},
        "compareDescribe": {"type": "string", "description": "Human-readable description of the condition"},
        "alertValues": {
            "type": "array",
            "items": {"type": "string"},
            "minItems": 1,
            "description": "Recipient email addresses, or webhook URLs when alertBy is \"hook\"",
        },
        "allGroups": {"type": "array", "items": {"type": "string"}, "description": "Optional user group IDs to notify"},
    },
    "required": [
        "alertName", "alertDataType", "alertDataSubType", "selectedApps",
        "alertBy", "enabled", "compareDescribe", "alertValues",
    ],
}


ALERT_TOOL_DEFINITIONS = [
    tool(
        "create_alert",
        "Create or update an alert configuration. Supports crashes, sessions, users, events, views and more.",
        {"alert_config": ALERT_CONFIG_SCHEMA},
        required=["alert_config"],
        app_scoped=True,
    ),
    tool(
        "delete_alert",
        "Delete an alert",
        {"alert_id": {"type": "string", "description": "Alert ID to delete"}},
        required=["alert_id"],
        app_scoped=True,
    ),
    tool("list_alerts", "List all alerts for an application", app_scoped=True),
]


class AlertTools(BaseTools):
    async def create_alert(self, ctx: ToolContext, args: Dict[str, Any]) -> ToolResult:
        validate_required_params(args, ["alert_config"])
        app_id = await ctx.resolve_app_id(args)
        data = await ctx.client.get(
            "/i/alert/save",
            params={"app_id": app_id, "alert_config": dump_json_param(args["alert_config"], "alert_config")},
            context="Failed to save alert",
        )
        return ToolResult.with_data(f"Alert created/updated for app {app_id}", data)

    async def delete_alert(self, ctx: ToolContext, args: Dict[str, Any]) -> ToolResult:
        validate_required_params(args, ["alert_id"])
        app_id = await ctx.resolve_app_id(args)
        alert_id = args["alert_id"]
        data = await ctx.client.get(
            "/i/alert/delete",
            params={"app_id": app_id, "alertID": alert_id},
            context="Failed to delete alert",
        )
        return ToolResult.with_data(f"Alert {alert_id} deleted from app {app_id}", data)

    async def list_alerts(self, ctx: ToolContext, args: Dict[str, Any]) -> ToolResult:
        app_id = await ctx.resolve_app_id(args)
        data = await ctx.client.get("/o/alert/list", params={"app_id": app_id}, context="Failed to list alerts")
        return ToolResult.with_data(f"Alerts for app {app_id}", data)


ALERT_TOOL_METADATA = ToolMetadata(
    instance_key="alerts",
    tool_class=AlertTools,
    handlers={
        "create_alert": "create_alert",
        "delete_alert": "delete_alert",
        "list_alerts": "list_alerts",
    },
    definitions=ALERT_TOOL_DEFINITIONS,
)
