"""Read-only ``countly://`` resources giving a model context about an app.

Each app exposes three resources::

    countly://app/{app_id}/config    app settings from the directory
    countly://app/{app_id}/events    event keys and their segments
    countly://app/{app_id}/overview  30-day dashboard summary

Events and overview degrade to an empty payload with an ``error`` field when
Countly rejects the request, so a missing plugin never fails a read.
"""

import json
import logging
import re
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from countly_mcp.infra.error_handler import TenantResolutionError, ToolValidationError, UpstreamError
from countly_mcp.models.app import CountlyApp
from countly_mcp.models.prompt import ResourceContent, ResourceDefinition
from countly_mcp.tools.base import ToolContext

logger = logging.getLogger(__name__)

RESOURCE_URI = re.compile(r"^countly://app/([^/]+)/([^/]+)$")
OVERVIEW_PERIOD = "30days"


def _resource_definitions(app: CountlyApp) -> List[ResourceDefinition]:
    return [
        ResourceDefinition(
            uri=f"countly://app/{app.id}/config",
            name=f"{app.name} Configuration",
            title=f"{app.name} - App Configuration",
            description=f"Application settings, metadata, and configuration for {app.name}",
            annotations={"audience": ["user", "assistant"], "priority": 0.8},
        ),
        ResourceDefinition(
            uri=f"countly://app/{app.id}/events",
            name=f"{app.name} Events",
            title=f"{app.name} - Event Definitions",
            description=f"List of all configured events and their schemas for {app.name}",
            annotations={"audience": ["assistant"], "priority": 0.9},
        ),
        ResourceDefinition(
            uri=f"countly://app/{app.id}/overview",
            name=f"{app.name} Overview",
            title=f"{app.name} - Analytics Overview",
            description="Current analytics overview including user counts, sessions, and key metrics",
            annotations={"audience": ["user", "assistant"], "priority": 1.0},
        ),
    ]


async def list_resources(ctx: ToolContext, app_id: Optional[str] = None) -> List[ResourceDefinition]:
    """List resources for every app the credential can see, or only ``app_id``."""
    apps = await ctx.get_apps()
    resources: List[ResourceDefinition] = []
    for app in apps:
        if app_id is None or app.id == app_id:
            resources.extend(_resource_definitions(app))
    return resources


def _app_config(app: CountlyApp) -> Dict[str, Any]:
    return {
        "id": app.id,
        "name": app.name,
        "key": app.key,
        "category": app.category,
        "timezone": app.timezone,
        "created_at": app.created_at,
        "settings": {
            "description": "App configuration and metadata",
            "note": "This resource provides read-only access to app settings",
        },
    }


async def _app_events(ctx: ToolContext, app_id: str) -> Dict[str, Any]:
    try:
        data = await ctx.client.get(
            "/o",
            params={"app_id": app_id, "method": "get_events"},
            context="Failed to fetch events",
        )
    except UpstreamError as e:
        logger.warning("Events resource unavailable", extra={"app_id": app_id, "error": e.message})
        return {
            "app_id": app_id,
            "events": [],
            "total": 0,
            "error": "Could not fetch events. Events plugin may not be enabled.",
            "description": "Event definitions and schemas for this application",
        }

    events = data.get("events", data) if isinstance(data, dict) else {}
    if not isinstance(events, dict):
        events = {}
    described = []
    for key, value in events.items():
        value = value if isinstance(value, dict) else {}
        described.append({
            "key": key,
            "name": value.get("name") or key,
            "description": value.get("description") or "",
            "count": value.get("count") or 0,
            "segments": value.get("segments") or {},
            "duration": value.get("duration"),
            "sum": value.get("sum"),
        })
    return {
        "app_id": app_id,
        "events": described,
        "total": len(described),
        "description": "Complete list of events tracked in this application",
    }


async def _app_overview(ctx: ToolContext, app_id: str) -> Dict[str, Any]:
    last_updated = datetime.now(timezone.utc).isoformat()
    try:
        data = await ctx.client.get(
            "/o/analytics/dashboard",
            params={"app_id": app_id, "period": OVERVIEW_PERIOD},
            context="Failed to fetch dashboard",
        )
    except UpstreamError as e:
        logger.warning("Overview resource unavailable", extra={"app_id": app_id, "error": e.message})
        return {
            "app_id": app_id,
            "period": OVERVIEW_PERIOD,
            "summary": {
                "total_users": 0,
                "new_users": 0,
                "total_sessions": 0,
                "total_events": 0,
                "crashes": 0,
                "description": "Could not fetch overview data",
            },
            "error": "Could not fetch analytics overview",
            "last_updated": last_updated,
        }

    data = data if isinstance(data, dict) else {}
    summary = {field: data.get(field) or 0 for field in (
        "total_users", "new_users", "total_sessions", "total_events", "crashes",
    )}
    summary["description"] = "30-day analytics overview with key metrics"
    return {"app_id": app_id, "period": OVERVIEW_PERIOD, "summary": summary, "last_updated": last_updated}


async def read_resource(ctx: ToolContext, uri: str) -> ResourceContent:
    """
    Read one resource.

    Raises:
        ToolValidationError: Malformed URI or unknown resource type
        TenantResolutionError: App is not visible to the credential
        UpstreamError: The app directory could not be fetched
    """
    match = RESOURCE_URI.match(uri)
    if not match:
        raise ToolValidationError(f"Invalid resource URI: {uri}")
    app_id, resource_type = match.groups()
    if resource_type not in ("config", "events", "overview"):
        raise ToolValidationError(f"Unknown resource type: {resource_type}")

    apps = await ctx.get_apps()
    app = next((candidate for candidate in apps if candidate.id == app_id), None)
    if app is None:
        raise TenantResolutionError(f"App not found: {app_id}")

    if resource_type == "config":
        content = _app_config(app)
    elif resource_type == "events":
        content = await _app_events(ctx, app_id)
    else:
        content = await _app_overview(ctx, app_id)

    return ResourceContent(uri=uri, text=json.dumps(content, indent=2, default=str))
