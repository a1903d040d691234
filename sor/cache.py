"""Cache of prepared paths.

Path discovery and path limits only depend on the token pair, the swap
type, the pool filter and the timestamp the pools were priced at (plus the
pool set itself, which the owner handles by clearing the cache when the
snapshot changes). Entries are evicted least recently used first.
"""

from __future__ import annotations

from collections import OrderedDict
from typing import TYPE_CHECKING, NamedTuple

import structlog

from sor.constants import DEFAULT_MAX_POOLS
from sor.pools.base import PoolFilter, SwapType

if TYPE_CHECKING:
    from sor.core import PreparedPaths

logger = structlog.get_logger()

DEFAULT_MAX_ENTRIES = 256


class RouteCacheKey(NamedTuple):
    """Everything prepared paths depend on, besides the pool set."""

    token_in: str
    token_out: str
    swap_type: SwapType
    timestamp: int
    pool_filter: PoolFilter = PoolFilter.ALL
    max_pools: int = DEFAULT_MAX_POOLS
    disabled_tokens: frozenset[str] = frozenset()
    allow_add_remove: bool = False


class RouteCache:
    """LRU cache of prepared paths keyed by RouteCacheKey.

    Usage:
        cache = RouteCache()
        prepared = cache.get(key)
        if prepared is None:
            prepared = prepare_paths(...)
            cache.put(key, prepared)
    """

    def __init__(self, max_entries: int = DEFAULT_MAX_ENTRIES) -> None:
        if max_entries < 1:
            raise ValueError(f"max_entries must be >= 1, got {max_entries}")
        self._max_entries = max_entries
        self._entries: OrderedDict[RouteCacheKey, PreparedPaths] = OrderedDict()
        self.hits = 0
        self.misses = 0

    def get(self, key: RouteCacheKey) -> PreparedPaths | None:
        """Cached entry for ``key``, or None."""
        entry = self._entries.get(key)
        if entry is None:
            self.misses += 1
            return None
        self._entries.move_to_end(key)
        self.hits += 1
        return entry

    def put(self, key: RouteCacheKey, prepared: PreparedPaths) -> None:
        """Store an entry, evicting the least recently used one when full."""
        self._entries[key] = prepared
        self._entries.move_to_end(key)
        while len(self._entries) > self._max_entries:
            evicted, _ = self._entries.popitem(last=False)
            logger.debug(
                "route_cache_evicted", token_in=evicted.token_in, token_out=evicted.token_out
            )

    def clear(self) -> None:
        """Drop every entry."""
        if self._entries:
            logger.debug("route_cache_cleared", entries=len(self._entries))
        self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: object) -> bool:
        return key in self._entries


__all__ = ["RouteCache", "RouteCacheKey"]
