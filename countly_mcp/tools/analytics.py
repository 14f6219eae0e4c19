"""Analytics tools: sessions, events, loyalty and duration breakdowns."""

import json
from typing import Any, Dict, Sequence

from countly_mcp.infra.validation import parse_numeric_param, validate_required_params
from countly_mcp.models.tool import ToolResult
from countly_mcp.tools.base import BaseTools, ToolContext, ToolMetadata, period_property, tool


ANALYTICS_METHODS = [
    "locations", "sessions", "users", "carriers", "devices", "device_details",
    "app_versions", "cities", "get_events", "browser", "consents", "density",
    "langs", "logs", "sdks", "sources", "systemlogs", "times-of-day",
    "ab-testing", "get_cohorts", "live", "get_funnels", "retention", "user_details",
]

SLIPPING_PERIODS = [7, 14, 30, 60, 90]

FREQUENCY_BUCKETS = [
    "f=0: First session",
    "f=1: Every 1-24 hours",
    "f=2: Every 1 day",
    "f=3: Every 2 days",
    "f=4: Every 3 days",
    "f=5: Every 4 days",
    "f=6: Every 5 days",
    "f=7: Every 6 days",
    "f=8: Every 7 days",
    "f=9: Every 8-14 days",
    "f=10: Every 15-30 days",
    "f=11: Every 30+ days",
]

LOYALTY_BUCKETS = [
    "1 session", "2 sessions", "3-5 sessions", "6-9 sessions", "10-19 sessions",
    "20-49 sessions", "50-99 sessions", "100-499 sessions", "500+ sessions",
]

DURATION_BUCKETS = [
    "0-10 seconds", "11-30 seconds", "31-60 seconds", "1-3 minutes",
    "3-10 minutes", "10-30 minutes", "30-60 minutes", "Over 1 hour",
]


ANALYTICS_TOOL_DEFINITIONS = [
    tool(
        "get_analytics_data",
        "Get analytics data using the main /o endpoint with various methods (sessions, users, locations, etc.)",
        {
            "method": {"type": "string", "enum": ANALYTICS_METHODS, "description": "Data retrieval method"},
            "period": period_property(),
            "event": {"type": "string", "description": "Event key for event-specific methods"},
            "segmentation": {"type": "string", "description": "Segmentation parameter for events"},
        },
        required=["method"],
        app_scoped=True,
    ),
    tool("get_dashboard_data", "Get aggregated dashboard data for an app", {"period": period_property()}, app_scoped=True),
    tool(
        "get_events_data",
        "Get events analytics data",
        {
            "period": period_property(),
            "event": {"type": "string", "description": "Specific event key to filter by"},
        },
        app_scoped=True,
    ),
    tool(
        "get_events_overview",
        "Get overview of events data with total counts and segments",
        {"period": period_property()},
        app_scoped=True,
    ),
    tool(
        "get_top_events",
        "Get the most frequently occurring events",
        {
            "period": period_property(),
            "limit": {"type": "number", "description": "Number of top events to retrieve", "default": 10},
        },
        app_scoped=True,
    ),
    tool(
        "get_slipping_away_users",
        "Get users who are slipping away based on inactivity period",
        {
            "period": {
                "type": "number",
                "enum": SLIPPING_PERIODS,
                "description": "Time period to check for (days)",
                "default": 7,
            },
            "limit": {"type": "number", "description": "Maximum number of users to return", "default": 50},
            "skip": {"type": "number", "description": "Number of users to skip for pagination", "default": 0},
        },
        app_scoped=True,
    ),
    tool(
        "get_session_frequency",
        "Get session frequency distribution showing how many sessions fall into different time buckets",
        {"period": period_property()},
        app_scoped=True,
    ),
    tool(
        "get_user_loyalty",
        "Get user loyalty data showing how many sessions users have had, divided into loyalty buckets",
        {
            "query": {
                "type": "string",
                "description": "Optional MongoDB query as JSON string to filter users. Defaults to '{}' (all users).",
            },
        },
        app_scoped=True,
    ),
    tool(
        "get_session_durations",
        "Get session duration distribution showing how long user sessions lasted",
        {"period": period_property()},
        app_scoped=True,
    ),
]


def _bucket_report(title: str, heading: str, buckets: Sequence[str], data: Any) -> ToolResult:
    lines = [f"{title}:", "", f"**{heading}:**"]
    lines.extend(f"- {bucket}" for bucket in buckets)
    lines.extend(["", "**Results:**", json.dumps(data, indent=2, default=str)])
    return ToolResult.text("\n".join(lines))


class AnalyticsTools(BaseTools):
    async def get_analytics_data(self, ctx: ToolContext, args: Dict[str, Any]) -> ToolResult:
        validate_required_params(args, ["method"])
        app_id = await ctx.resolve_app_id(args)
        method = args["method"]
        data = await ctx.client.get(
            "/o",
            params={
                "app_id": app_id,
                "method": method,
                "period": args.get("period"),
                "event": args.get("event"),
                "segmentation": args.get("segmentation"),
            },
            context="Failed to execute request to /o",
        )
        return ToolResult.with_data(f"Analytics data for {method}", data)

    async def get_dashboard_data(self, ctx: ToolContext, args: Dict[str, Any]) -> ToolResult:
        app_id = await ctx.resolve_app_id(args)
        data = await ctx.client.get(
            "/o/analytics/dashboard",
            params={"app_id": app_id, "period": args.get("period")},
            context="Failed to execute request to /o/analytics/dashboard",
        )
        return ToolResult.with_data(f"Dashboard data for app {app_id}", data)

    async def get_events_data(self, ctx: ToolContext, args: Dict[str, Any]) -> ToolResult:
        app_id = await ctx.resolve_app_id(args)
        data = await ctx.client.get(
            "/o/analytics/events",
            params={"app_id": app_id, "period": args.get("period"), "event": args.get("event")},
            context="Failed to execute request to /o/analytics/events",
        )
        return ToolResult.with_data(f"Events data for app {app_id}", data)

    async def get_events_overview(self, ctx: ToolContext, args: Dict[str, Any]) -> ToolResult:
        app_id = await ctx.resolve_app_id(args)
        data = await ctx.client.get(
            "/o/analytics/events/overview",
            params={"app_id": app_id, "period": args.get("period")},
            context="Failed to execute request to /o/analytics/events/overview",
        )
        return ToolResult.with_data(f"Events overview for app {app_id}", data)

    async def get_top_events(self, ctx: ToolContext, args: Dict[str, Any]) -> ToolResult:
        app_id = await ctx.resolve_app_id(args)
        limit = int(parse_numeric_param(args.get("limit", 10), "limit", minimum=1))
        data = await ctx.client.get(
            "/o/analytics/events/top",
            params={"app_id": app_id, "limit": limit, "period": args.get("period")},
            context="Failed to execute request to /o/analytics/events/top",
        )
        return ToolResult.with_data(f"Top {limit} events for app {app_id}", data)

    async def get_slipping_away_users(self, ctx: ToolContext, args: Dict[str, Any]) -> ToolResult:
        app_id = await ctx.resolve_app_id(args)
        period = int(parse_numeric_param(args.get("period", 7), "period", minimum=1))
        limit = int(parse_numeric_param(args.get("limit", 50), "limit", minimum=1))
        skip = int(parse_numeric_param(args.get("skip", 0), "skip", minimum=0))
        data = await ctx.client.get(
            "/o/slipping",
            params={"app_id": app_id, "period": period, "limit": limit, "skip": skip},
            context="Failed to execute request to /o/slipping",
        )
        return ToolResult.with_data(f"Slipping away users for app {app_id} ({period} days)", data)

    async def get_session_frequency(self, ctx: ToolContext, args: Dict[str, Any]) -> ToolResult:
        app_id = await ctx.resolve_app_id(args)
        period = args.get("period") or "30days"
        data = await ctx.client.get(
            "/o/analytics/frequency",
            params={"app_id": app_id, "period": period},
            context="Failed to get session frequency",
        )
        return _bucket_report(
            f"Session frequency distribution for app {app_id} ({period})",
            "Frequency Buckets",
            FREQUENCY_BUCKETS,
            data,
        )

    async def get_user_loyalty(self, ctx: ToolContext, args: Dict[str, Any]) -> ToolResult:
        app_id = await ctx.resolve_app_id(args)
        data = await ctx.client.get(
            "/o/app_users/loyalty",
            params={"app_id": app_id, "query": args.get("query") or "{}"},
            context="Failed to get user loyalty data",
        )
        return _bucket_report(
            f"User loyalty data for app {app_id}",
            "Loyalty Buckets (Session Counts)",
            [f"Bucket {i}: {label}" for i, label in enumerate(LOYALTY_BUCKETS)],
            data,
        )

    async def get_session_durations(self, ctx: ToolContext, args: Dict[str, Any]) -> ToolResult:
        app_id = await ctx.resolve_app_id(args)
        period = args.get("period") or "30days"
        data = await ctx.client.get(
            "/o/analytics/durations",
            params={"app_id": app_id, "period": period},
            context="Failed to get session durations",
        )
        return _bucket_report(
            f"Session duration distribution for app {app_id} ({period})",
            "Duration Buckets",
            [f"Bucket {i}: {label}" for i, label in enumerate(DURATION_BUCKETS)],
            data,
        )


ANALYTICS_TOOL_METADATA = ToolMetadata(
    instance_key="analytics",
    tool_class=AnalyticsTools,
    handlers={name: name for name in (
        "get_analytics_data",
        "get_dashboard_data",
        "get_events_data",
        "get_events_overview",
        "get_top_events",
        "get_slipping_away_users",
        "get_session_frequency",
        "get_user_loyalty",
        "get_session_durations",
    )},
    definitions=ANALYTICS_TOOL_DEFINITIONS,
)
