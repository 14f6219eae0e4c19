"""Shared building blocks for tool handler classes."""

from dataclasses import dataclass
from typing import Any, Dict, List, Mapping, Optional, Sequence, Type

from countly_mcp.adapters.countly_client import CountlyClient
from countly_mcp.models.app import CountlyApp
from countly_mcp.models.context import InvocationContext
from countly_mcp.models.tool import ToolDefinition
from countly_mcp.services.app_cache import AppCache, load_apps, resolve_app_id
from countly_mcp.services.plugin_directory import PluginDirectory
from countly_mcp.services.tenant_scope import TenantCaches


PERIOD_DESCRIPTION = (
    'Time period for data. Possible values: "month", "60days", "30days", "7days", '
    '"yesterday", "hour", or custom range as [startMilliseconds,endMilliseconds]'
)


@dataclass(frozen=True)
class ToolServices:
    """Process-wide collaborators shared by every handler instance.

    Directory caches are partitioned per tenant (server and credential).
    """
    app_caches: TenantCaches[AppCache]
    plugin_caches: TenantCaches[PluginDirectory]

    def app_cache_for(self, invocation: InvocationContext) -> AppCache:
        return self.app_caches.for_invocation(invocation)

    def plugins_for(self, invocation: InvocationContext) -> PluginDirectory:
        return self.plugin_caches.for_invocation(invocation)


@dataclass(frozen=True)
class ToolContext:
    """Everything a handler needs for one invocation."""
    invocation: InvocationContext
    client: CountlyClient
    services: ToolServices

    @property
    def app_cache(self) -> AppCache:
        return self.services.app_cache_for(self.invocation)

    async def get_apps(self) -> List[CountlyApp]:
        return await load_apps(self.app_cache, self.client)

    async def resolve_app_id(self, args: Mapping[str, Any]) -> str:
        return await resolve_app_id(self.app_cache, self.client, dict(args))


class BaseTools:
    """Base class for a category's handlers.

    One instance per category is created by the registry and reused for
    every call; per-call state arrives through ``ToolContext``.
    """

    def __init__(self, services: ToolServices):
        self.services = services


@dataclass(frozen=True)
class ToolMetadata:
    """Declarative routing data for one tool category."""
    instance_key: str
    tool_class: Type[BaseTools]
    handlers: Mapping[str, str]  # tool name -> method name
    definitions: Sequence[ToolDefinition]


def tool(
    name: str,
    description: str,
    properties: Optional[Dict[str, Any]] = None,
    required: Optional[List[str]] = None,
    app_scoped: bool = False,
) -> ToolDefinition:
    """
    Build a ToolDefinition.

    When ``app_scoped`` is set, ``app_id``/``app_name`` are added and the
    schema requires one of them on top of ``required``.
    """
    props: Dict[str, Any] = {}
    if app_scoped:
        props["app_id"] = {"type": "string", "description": "Application ID (optional if app_name is provided)"}
        props["app_name"] = {"type": "string", "description": "Application name (alternative to app_id)"}
    props.update(properties or {})

    schema: Dict[str, Any] = {"type": "object", "properties": props}
    required = list(required or [])
    if app_scoped:
        schema["anyOf"] = [
            {"required": ["app_id", *required]},
            {"required": ["app_name", *required]},
        ]
    else:
        schema["required"] = required

    return ToolDefinition(name=name, description=description, input_schema=schema)


def period_property(default: str = "30days") -> Dict[str, Any]:
    return {"type": "string", "description": PERIOD_DESCRIPTION, "default": default}
