"""Installed-plugin detection for plugin-gated tool categories."""

import logging
import time
from dataclasses import dataclass
from typing import Any, Callable, FrozenSet, List

from countly_mcp.adapters.countly_client import CountlyClient
from countly_mcp.infra.metrics import plugin_cache_refreshes_total

logger = logging.getLogger(__name__)


def parse_plugins_response(data: Any) -> FrozenSet[str]:
    """
    Normalize the /o/system/plugins payload to a set of enabled plugin names.

    Accepts a list of names, a list of ``{"code"|"name": ..., "enabled": ...}``
    records, or a ``{name: enabled}`` mapping.
    """
    names: List[str] = []
    if isinstance(data, dict):
        names = [str(name) for name, enabled in data.items() if enabled]
    elif isinstance(data, list):
        for item in data:
            if isinstance(item, str):
                names.append(item)
            elif isinstance(item, dict):
                name = item.get("code") or item.get("name")
                if name and item.get("enabled", True):
                    names.append(str(name))
    return frozenset(names)


@dataclass(frozen=True)
class _Snapshot:
    plugins: FrozenSet[str]
    expires_at: float


class PluginDirectory:
    """
    Short-lived cache of the plugins installed on the Countly server.

    Refreshed from /o/system/plugins whenever it is stale at read time;
    the snapshot is swapped in one assignment.
    """

    def __init__(self, ttl_seconds: float = 60.0, clock: Callable[[], float] = time.monotonic):
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._snapshot = _Snapshot(plugins=frozenset(), expires_at=float("-inf"))

    def is_expired(self) -> bool:
        return self._clock() > self._snapshot.expires_at

    def refresh(self, plugins: FrozenSet[str]) -> None:
        self._snapshot = _Snapshot(plugins=frozenset(plugins), expires_at=self._clock() + self.ttl_seconds)
        plugin_cache_refreshes_total.inc()

    def current(self) -> FrozenSet[str]:
        return self._snapshot.plugins

    def clear(self) -> None:
        self._snapshot = _Snapshot(plugins=frozenset(), expires_at=float("-inf"))

    async def get_installed(self, client: CountlyClient) -> FrozenSet[str]:
        """
        Return installed plugin names, fetching them if the snapshot is stale.

        Raises:
            UpstreamError: If the plugin list cannot be fetched
        """
        if not self.is_expired():
            return self._snapshot.plugins

        data = await client.get("/o/system/plugins", context="Failed to get server plugins")
        plugins = parse_plugins_response(data)
        self.refresh(plugins)
        logger.info("Plugin list refreshed", extra={"plugins": sorted(plugins)})
        return plugins
