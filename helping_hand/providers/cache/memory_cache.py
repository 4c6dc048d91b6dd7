"""Process-local adapter response cache on ``cachetools.TTLCache``.

Values are tuples of :class:`ProviderPlace` records, which are frozen, so
a cached response can be handed to several sessions without copying.
"""

from __future__ import annotations

from typing import Any

import structlog
from cachetools import TTLCache

from helping_hand.interfaces.cache_provider import ICacheProvider

logger = structlog.get_logger(logger_name=__name__)


class MemoryCacheProvider(ICacheProvider):
    """Bounded TTL cache with hit/miss counters.

    Parameters
    ----------
    max_size:
        Entries kept before the least recently used is evicted.
    ttl:
        Seconds an entry stays valid.  ``TTLCache`` has one TTL for the
        whole cache, so the per-call ``ttl`` of :meth:`set` is ignored.
    """

    def __init__(self, max_size: int = 512, ttl: float = 300) -> None:
        self._cache: TTLCache[str, Any] = TTLCache(maxsize=max_size, ttl=ttl)
        self._hits = 0
        self._misses = 0

    async def get(self, key: str) -> Any | None:
        value = self._cache.get(key)
        if value is None:
            self._misses += 1
        else:
            self._hits += 1
        logger.debug("cache_lookup", key=key, hit=value is not None)
        return value

    async def set(self, key: str, value: Any, ttl: int | None = None) -> None:
        self._cache[key] = value

    async def delete(self, key: str) -> None:
        self._cache.pop(key, None)

    async def exists(self, key: str) -> bool:
        return key in self._cache

    def stats(self) -> dict[str, int]:
        """Counters since construction or the last :meth:`clear`."""
        return {"entries": len(self._cache), "hits": self._hits, "misses": self._misses}

    def clear(self) -> None:
        self._cache.clear()
        self._hits = self._misses = 0

    def __len__(self) -> int:
        return len(self._cache)
