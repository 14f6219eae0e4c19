"""App directory cache: resolves app names to stable app ids."""

import logging
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple

from countly_mcp.adapters.countly_client import CountlyClient
from countly_mcp.infra.error_handler import TenantResolutionError, format_known_names
from countly_mcp.infra.metrics import app_cache_refreshes_total
from countly_mcp.models.app import CountlyApp

logger = logging.getLogger(__name__)

DEFAULT_CACHE_TTL = 300.0  # 5 minutes


@dataclass(frozen=True)
class _Snapshot:
    apps: Tuple[CountlyApp, ...]
    expires_at: float


class AppCache:
    """
    TTL cache of the apps visible to the current credential.

    The app list and its expiry live in one immutable snapshot that is
    replaced by a single assignment, so concurrent refreshes can both
    complete without a lock; the last one wins.
    """

    def __init__(self, ttl_seconds: float = DEFAULT_CACHE_TTL, clock: Callable[[], float] = time.monotonic):
        """
        Args:
            ttl_seconds: How long a refreshed snapshot stays valid
            clock: Monotonic time source in seconds (injectable for tests)
        """
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._snapshot = _Snapshot(apps=(), expires_at=float("-inf"))

    def is_expired(self) -> bool:
        return self._clock() > self._snapshot.expires_at

    def refresh(self, apps: Sequence[CountlyApp]) -> None:
        """Replace the cached apps and reset the shared expiry to now + TTL."""
        unique: Dict[str, CountlyApp] = {}
        for app in apps:
            unique.setdefault(app.id, app)
        self._snapshot = _Snapshot(apps=tuple(unique.values()), expires_at=self._clock() + self.ttl_seconds)
        app_cache_refreshes_total.inc()

    def get_all(self) -> List[CountlyApp]:
        return list(self._snapshot.apps)

    def find_by_id(self, app_id: str) -> Optional[CountlyApp]:
        return next((app for app in self._snapshot.apps if app.id == app_id), None)

    def find_by_name(self, name: str) -> Optional[CountlyApp]:
        return next((app for app in self._snapshot.apps if app.name == name), None)

    def resolve_app_name(self, name: str) -> str:
        """
        Resolve an app name to its id.

        Raises:
            TenantResolutionError: Listing every known app name
        """
        return resolve_app_identifier(app_name=name, apps=self._snapshot.apps)

    def resolve(self, app_id: Optional[str] = None, app_name: Optional[str] = None) -> str:
        """Resolve against the current snapshot without refreshing it."""
        return resolve_app_identifier(app_id=app_id, app_name=app_name, apps=self._snapshot.apps)

    def clear(self) -> None:
        self._snapshot = _Snapshot(apps=(), expires_at=float("-inf"))

    def size(self) -> int:
        return len(self._snapshot.apps)


def resolve_app_identifier(
    app_id: Optional[str] = None,
    app_name: Optional[str] = None,
    apps: Sequence[CountlyApp] = (),
) -> str:
    """
    Resolve app_id or app_name to an app id.

    An explicit app_id is returned as-is without checking membership.

    Args:
        app_id: App id supplied by the caller
        app_name: App display name supplied by the caller
        apps: Current directory snapshot

    Returns:
        The app id

    Raises:
        TenantResolutionError: If neither is given or the name is unknown
    """
    if app_id:
        return app_id

    if app_name:
        for app in apps:
            if app.name == app_name:
                return app.id
        raise TenantResolutionError(
            f"App not found: {app_name}\n"
            f"Available apps: {format_known_names(app.name for app in apps)}"
        )

    raise TenantResolutionError(
        "Either app_id or app_name must be provided.\n"
        'Example: { "app_id": "abc123" } or { "app_name": "MyApp" }'
    )


def parse_apps_response(data: Any) -> List[CountlyApp]:
    """
    Normalize the /o/apps/mine payload to a list of apps.

    Accepts a bare list, ``{"admin_of": {id: app}}`` or ``{"apps": [...]}``;
    anything else yields an empty list.
    """
    raw: List[Any]
    if isinstance(data, list):
        raw = data
    elif isinstance(data, dict) and isinstance(data.get("admin_of"), dict):
        raw = list(data["admin_of"].values())
    elif isinstance(data, dict) and isinstance(data.get("apps"), list):
        raw = data["apps"]
    else:
        raw = []

    apps = []
    for item in raw:
        if isinstance(item, dict) and item.get("_id") and item.get("name") is not None:
            apps.append(CountlyApp.model_validate({**item, "_id": str(item["_id"]), "name": str(item["name"])}))
        else:
            logger.debug("Skipping malformed app record", extra={"record_type": type(item).__name__})
    return apps


async def load_apps(cache: AppCache, client: CountlyClient) -> List[CountlyApp]:
    """
    Return the cached apps, fetching /o/apps/mine first if the cache is stale.

    Raises:
        UpstreamError: If the fetch fails (the stale snapshot is left untouched)
    """
    if not cache.is_expired():
        return cache.get_all()

    data = await client.get("/o/apps/mine", context="Failed to list apps")
    apps = parse_apps_response(data)
    cache.refresh(apps)
    logger.info("App cache refreshed", extra={"app_count": cache.size()})
    return cache.get_all()


async def resolve_app_id(cache: AppCache, client: CountlyClient, args: Dict[str, Any]) -> str:
    """Resolve ``app_id``/``app_name`` from tool arguments, refreshing the cache once if stale."""
    app_id = args.get("app_id")
    app_name = args.get("app_name")
    if app_id or not app_name:
        # No round trip for an explicit id or a usage error
        return resolve_app_identifier(app_id=app_id, app_name=app_name)
    apps = await load_apps(cache, client)
    return resolve_app_identifier(app_name=app_name, apps=apps)
