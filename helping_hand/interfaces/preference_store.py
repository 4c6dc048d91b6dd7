"""Abstract base class for the user preference store.

The preference store is the only state shared between concurrent search
sessions and out-of-band interaction feedback.  Implementations must
serialize all writes (single-writer discipline) and must hand readers
whole records, never a half-applied update.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from datetime import datetime

from helping_hand.models.place import Category, Coordinate
from helping_hand.models.preference import (
    InteractionEvent,
    PreferenceRecord,
    PreferenceSnapshot,
)


class IPreferenceStore(ABC):
    """Contract for durable per-category affinity storage.

    All operations are async so a file- or network-backed store does not
    block the event loop.  Failures are raised as
    :class:`~helping_hand.utils.errors.PreferenceStoreError`.
    """

    @abstractmethod
    async def initialize(self) -> None:
        """Create storage if needed and seed all categories at 5.0 / 0."""

    @abstractmethod
    async def get(self, category: Category) -> PreferenceRecord:
        """Return the current record for *category*."""

    @abstractmethod
    async def snapshot(self) -> PreferenceSnapshot:
        """Return a consistent view of all nine records."""

    @abstractmethod
    async def record_interaction(
        self, category: Category, now: datetime | None = None
    ) -> PreferenceRecord:
        """Boost *category*, decay every other category, and persist.

        Returns
        -------
        PreferenceRecord
            The updated record for *category*.
        """

    @abstractmethod
    async def record_event(self, event: InteractionEvent) -> PreferenceRecord:
        """Append *event* to the interaction history and apply its update."""

    @abstractmethod
    async def location_familiarity(self, coordinate: Coordinate) -> float:
        """Return 0.0–1.0: how often the user has interacted near *coordinate*."""

    @abstractmethod
    async def reset(self) -> None:
        """Drop all learned state and re-seed every category at defaults."""

    @abstractmethod
    def get_provider_name(self) -> str:
        """Return a human-readable identifier for this store."""
