"""Test doubles shared across unit tests."""

from __future__ import annotations

import asyncio
from typing import Any

from helping_hand.interfaces.place_search_provider import IPlaceSearchProvider
from helping_hand.models.place import Coordinate, ProviderPlace


class FakePlaceProvider(IPlaceSearchProvider):
    """Scriptable place-search adapter.

    ``results`` maps a lowercased term to the records returned for it
    (``"*"`` matches any term).  ``error`` is raised on every call, and
    ``delay`` seconds are slept before answering.
    """

    def __init__(
        self,
        name: str,
        results: dict[str, list[ProviderPlace]] | None = None,
        error: Exception | None = None,
        delay: float = 0.0,
        available: bool = True,
        timeout_seconds: float | None = None,
    ) -> None:
        self._name = name
        self._results = results or {}
        self._error = error
        self._delay = delay
        self._available = available
        self.timeout_seconds = timeout_seconds
        self.calls: list[tuple[str, Coordinate, float]] = []
        self.cancelled = 0

    async def search(
        self, term: str, center: Coordinate, radius_meters: float
    ) -> list[ProviderPlace]:
        self.calls.append((term, center, radius_meters))
        try:
            if self._delay:
                await asyncio.sleep(self._delay)
        except asyncio.CancelledError:
            self.cancelled += 1
            raise
        if self._error is not None:
            raise self._error
        return list(self._results.get(term.lower(), self._results.get("*", [])))

    def get_provider_name(self) -> str:
        return self._name

    def is_available(self) -> bool:
        return self._available


def raw_place(
    name: str | None,
    latitude: float = 37.7750,
    longitude: float = -122.4190,
    provider: str = "fake",
    **fields: Any,
) -> ProviderPlace:
    return ProviderPlace(
        provider_name=provider,
        name=name,
        latitude=latitude,
        longitude=longitude,
        **fields,
    )


