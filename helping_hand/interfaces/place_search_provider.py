"""Abstract base class for place-search providers (adapters).

Every external place-search backend -- a local index, Google Places,
OpenStreetMap Overpass -- is wrapped behind this one contract so the
fan-out coordinator can query them uniformly and concurrently.
"""

from __future__ import annotations

from abc import ABC, abstractmethod

from helping_hand.models.place import Coordinate, ProviderPlace


class IPlaceSearchProvider(ABC):
    """Contract for one place-search backend.

    Implementations return raw :class:`ProviderPlace` records; mapping to
    canonical places and categories is the normalizer's job, not theirs.
    """

    # Per-call timeout used by the fan-out coordinator.  ``None`` means
    # "use the configured default".
    timeout_seconds: float | None = None

    @abstractmethod
    async def search(
        self,
        term: str,
        center: Coordinate,
        radius_meters: float,
    ) -> list[ProviderPlace]:
        """Search for places matching *term* within *radius_meters* of *center*.

        Parameters
        ----------
        term:
            One search term (the coordinator calls once per term).
        center:
            Search centre (the session anchor).
        radius_meters:
            Search radius chosen by the location policy.

        Returns
        -------
        list[ProviderPlace]
            Zero or more raw records, in the backend's relevance order.

        Raises
        ------
        helping_hand.utils.errors.ProviderError
            If the backend call fails.  The coordinator absorbs it.
        """

    @abstractmethod
    def get_provider_name(self) -> str:
        """Return a short identifier, e.g. ``"google_places"``."""

    @abstractmethod
    def is_available(self) -> bool:
        """Return ``True`` if the provider is configured and may be queried."""
