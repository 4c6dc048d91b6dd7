"""Contract for the adapter response cache.

The fan-out coordinator keys cached responses by
``provider:term:lat:lon:radius`` so a repeated search at the same spot
skips the network.  Only successful responses are stored.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any


class ICacheProvider(ABC):
    """Async key-value store with expiry.

    Async so that a shared backend (e.g. Redis) can be dropped in without
    changing the coordinator.
    """

    @abstractmethod
    async def get(self, key: str) -> Any | None:
        """Cached value for *key*; ``None`` when absent or expired."""

    @abstractmethod
    async def set(self, key: str, value: Any, ttl: int | None = None) -> None:
        """Store *value*; *ttl* in seconds, ``None`` for the backend default."""

    @abstractmethod
    async def delete(self, key: str) -> None:
        """Drop *key* if present."""

    @abstractmethod
    async def exists(self, key: str) -> bool:
        """Whether *key* holds an unexpired value."""
