"""
TTL Cache
=========

Small key/value cache with per-entry expiry and an injectable clock,
backed by ``cachetools.TTLCache``.

    cache = TTLCache(ttl=60)
    cache.put("schema", schema)
    cache.get("schema")          # -> schema until 60s have passed

A ttl of 0 disables caching: put() is a no-op and get() always misses.
"""

import time
from typing import Any, Callable, Hashable, Optional

import cachetools
import structlog

log = structlog.get_logger()


class TTLCache:
    """Expiring cache. Not shared between instances, no background eviction."""

    def __init__(
        self,
        ttl: float = 0,
        clock: Optional[Callable[[], float]] = None,
        maxsize: int = 128,
    ):
        if ttl < 0:
            raise ValueError(f"ttl must be >= 0, got {ttl}")
        self.ttl = ttl
        self._entries = cachetools.TTLCache(
            maxsize=maxsize,
            ttl=ttl,
            timer=clock or time.monotonic,
        )

    @property
    def enabled(self) -> bool:
        return self.ttl > 0

    def get(self, key: Hashable) -> Optional[Any]:
        self._entries.expire()
        value = self._entries.get(key)
        if value is None:
            log.debug(f"Cache miss: {key}")
        return value

    def put(self, key: Hashable, value: Any) -> None:
        if not self.enabled:
            return
        self._entries[key] = value

    def invalidate(self, key: Hashable) -> None:
        self._entries.pop(key, None)

    def clear(self) -> None:
        self._entries.clear()

    def __len__(self) -> int:
        self._entries.expire()
        return len(self._entries)
