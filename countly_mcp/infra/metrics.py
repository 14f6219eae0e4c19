"""Prometheus metrics export."""

from prometheus_client import Counter, Histogram, generate_latest, CONTENT_TYPE_LATEST
from fastapi import Response

# Tool metrics
tool_calls_total = Counter(
    "tool_calls_total",
    "Total tool calls",
    ["tool_name", "status"],  # status: success, error category name
)

tool_call_duration = Histogram(
    "tool_call_duration_seconds",
    "Tool call duration in seconds",
    ["tool_name"],
)

# Outbound Countly API metrics
upstream_requests_total = Counter(
    "upstream_requests_total",
    "Total requests sent to the Countly server",
    ["method", "status"],  # status: HTTP status code or "network_error"
)

# Cache metrics
app_cache_refreshes_total = Counter(
    "app_cache_refreshes_total",
    "Total refreshes of the app directory cache",
)

plugin_cache_refreshes_total = Counter(
    "plugin_cache_refreshes_total",
    "Total refreshes of the installed plugin cache",
)


def get_metrics_response() -> Response:
    """Get Prometheus metrics as HTTP response."""
    return Response(
        content=generate_latest(),
        media_type=CONTENT_TYPE_LATEST,
    )
