"""Dispatch table builder: maps permitted tool names to handler methods."""

import logging
from collections import OrderedDict
from dataclasses import dataclass
from types import MappingProxyType
from typing import Awaitable, Callable, Dict, FrozenSet, List, Mapping, Optional, Sequence

from countly_mcp.infra.error_handler import UnknownToolError
from countly_mcp.models.tool import ToolDefinition, ToolResult
from countly_mcp.services.tool_policy import ToolsConfig, check_tool_access, get_plugin_requirements
from countly_mcp.tools.base import BaseTools, ToolContext, ToolMetadata, ToolServices

logger = logging.getLogger(__name__)

ToolHandler = Callable[[ToolContext, Dict], Awaitable[ToolResult]]

DEFAULT_MAX_TABLES = 32


@dataclass(frozen=True)
class DispatchEntry:
    """tool name -> (instance key, method name)."""
    tool_name: str
    instance_key: str
    method_name: str


class DispatchTable:
    """Permitted tools for one (config, plugin snapshot) pair.

    Holds two aligned maps: tool name -> method name and tool name ->
    instance key. Both always have the same key set.
    """

    def __init__(self, entries: Sequence[DispatchEntry], instances: Mapping[str, BaseTools]):
        self.handlers: Mapping[str, str] = MappingProxyType({e.tool_name: e.method_name for e in entries})
        self.instances: Mapping[str, str] = MappingProxyType({e.tool_name: e.instance_key for e in entries})
        self._objects = instances

    def __contains__(self, tool_name: str) -> bool:
        return tool_name in self.handlers

    def __len__(self) -> int:
        return len(self.handlers)

    def names(self) -> List[str]:
        return list(self.handlers)

    def lookup(self, tool_name: str) -> ToolHandler:
        """
        Return the bound handler method for a tool.

        Raises:
            UnknownToolError: If the name is not in this table
        """
        method_name = self.handlers.get(tool_name)
        if method_name is None:
            raise UnknownToolError(tool_name)
        return getattr(self._objects[self.instances[tool_name]], method_name)


class ToolRegistry:
    """
    Static registry of every tool handler, built once at startup.

    Handler instances are created lazily, one per instance key, with the
    shared ToolServices, and reused for the life of the process. Permitted
    dispatch tables are memoized per (config, gating plugins installed), in
    a bounded LRU.
    """

    def __init__(
        self,
        metadata: Sequence[ToolMetadata],
        services: ToolServices,
        max_tables: int = DEFAULT_MAX_TABLES,
    ):
        self.services = services
        self.max_tables = max_tables
        self._gating_plugins = frozenset(get_plugin_requirements().values())
        self._metadata: Dict[str, ToolMetadata] = {}
        self._entries: Dict[str, DispatchEntry] = {}
        self._definitions: List[ToolDefinition] = []
        self._instances: Dict[str, BaseTools] = {}
        self._tables: "OrderedDict[Optional[FrozenSet[str]], DispatchTable]" = OrderedDict()
        self._tables_config: Optional[ToolsConfig] = None

        for meta in metadata:
            if meta.instance_key in self._metadata:
                raise ValueError(f"Duplicate tool instance key: {meta.instance_key}")
            self._metadata[meta.instance_key] = meta
            for tool_name, method_name in meta.handlers.items():
                if tool_name in self._entries:
                    raise ValueError(
                        f"Tool '{tool_name}' is registered by both "
                        f"'{self._entries[tool_name].instance_key}' and '{meta.instance_key}'"
                    )
                if not callable(getattr(meta.tool_class, method_name, None)):
                    raise ValueError(f"{meta.tool_class.__name__} has no handler method '{method_name}'")
                self._entries[tool_name] = DispatchEntry(tool_name, meta.instance_key, method_name)
            self._definitions.extend(meta.definitions)

    def __contains__(self, tool_name: str) -> bool:
        return tool_name in self._entries

    def definitions(self) -> List[ToolDefinition]:
        """Every registered tool definition, in registration order."""
        return list(self._definitions)

    def get_entry(self, tool_name: str) -> DispatchEntry:
        """
        Raises:
            UnknownToolError: If no category registers the tool
        """
        entry = self._entries.get(tool_name)
        if entry is None:
            raise UnknownToolError(tool_name)
        return entry

    def get_instance(self, instance_key: str) -> BaseTools:
        instance = self._instances.get(instance_key)
        if instance is None:
            instance = self._metadata[instance_key].tool_class(self.services)
            self._instances[instance_key] = instance
            logger.debug("Created tool handler instance", extra={"instance_key": instance_key})
        return instance

    def build_dispatch_table(
        self,
        config: ToolsConfig,
        installed_plugins: Optional[FrozenSet[str]] = None,
    ) -> DispatchTable:
        """
        Build (or reuse) the table of currently invocable tools.

        Args:
            config: Immutable permission config
            installed_plugins: Installed backend plugins, or None when unknown.
                With None, plugin-gated tools are left out.

        Returns:
            DispatchTable restricted to permitted tools
        """
        # Plugins that gate no category never change the table
        plugins = None
        if installed_plugins is not None:
            plugins = frozenset(installed_plugins) & self._gating_plugins
        if config is not self._tables_config:
            # Tables are only valid for the config they were built from
            self._tables = OrderedDict()
            self._tables_config = config
        table = self._tables.get(plugins)
        if table is not None:
            self._tables.move_to_end(plugins)
            return table

        effective_plugins = plugins if plugins is not None else frozenset()
        entries = [
            entry for name, entry in self._entries.items()
            if check_tool_access(name, config, effective_plugins).allowed
        ]
        instances = {entry.instance_key: self.get_instance(entry.instance_key) for entry in entries}
        table = DispatchTable(entries, instances)
        self._tables[plugins] = table
        if len(self._tables) > self.max_tables:
            self._tables.popitem(last=False)
        logger.debug(
            "Dispatch table built",
            extra={"tool_count": len(table), "plugins": sorted(effective_plugins)},
        )
        return table
