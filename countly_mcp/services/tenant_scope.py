"""Per-tenant partitioning of directory caches.

A tenant is one Countly server reached with one credential. Caches are
looked up by ``(server_url, sha256(token))`` so a snapshot fetched for one
tenant is never read by another, and the raw token is never kept as a key.
"""

import hashlib
import logging
from collections import OrderedDict
from typing import Callable, Generic, Tuple, TypeVar

from countly_mcp.infra.config import DEFAULT_MAX_TENANTS
from countly_mcp.models.context import InvocationContext

logger = logging.getLogger(__name__)

TenantKey = Tuple[str, str]
T = TypeVar("T")


def tenant_key(invocation: InvocationContext) -> TenantKey:
    digest = hashlib.sha256(invocation.auth_token.encode("utf-8")).hexdigest()
    return invocation.server_url, digest


class TenantCaches(Generic[T]):
    """
    Bounded LRU map from tenant to its own cache object.

    Lookups never await, so a get-or-create is atomic on the event loop.
    """

    def __init__(self, factory: Callable[[], T], max_tenants: int = DEFAULT_MAX_TENANTS):
        """
        Args:
            factory: Builds an empty cache for a newly seen tenant
            max_tenants: Least recently used tenants beyond this are dropped
        """
        if max_tenants < 1:
            raise ValueError("max_tenants must be at least 1")
        self._factory = factory
        self.max_tenants = max_tenants
        self._entries: "OrderedDict[TenantKey, T]" = OrderedDict()

    def for_invocation(self, invocation: InvocationContext) -> T:
        key = tenant_key(invocation)
        entry = self._entries.get(key)
        if entry is not None:
            self._entries.move_to_end(key)
            return entry

        entry = self._factory()
        self._entries[key] = entry
        if len(self._entries) > self.max_tenants:
            (server_url, _), _ = self._entries.popitem(last=False)
            logger.debug("Evicted tenant cache", extra={"server_url": server_url})
        return entry

    def clear(self) -> None:
        self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)
