"""Shared pytest fixtures for the helping-hand test suite."""

from __future__ import annotations

from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Callable

import pytest
import pytest_asyncio

from helping_hand.models.place import Category, Coordinate, Place
from helping_hand.models.preference import PreferenceSnapshot
from helping_hand.models.search import Anchor, LocationQuality
from helping_hand.providers.preference.sqlite_preference_store import SQLitePreferenceStore

SF = Coordinate(latitude=37.7749, longitude=-122.4194)


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def project_root() -> Path:
    """Return the project root directory."""
    return Path(__file__).parent.parent


@pytest.fixture
def sf() -> Coordinate:
    return SF


@pytest.fixture
def anchor() -> Anchor:
    """A fresh, accurate fix in San Francisco."""
    return Anchor(
        coordinate=SF,
        accuracy_meters=20.0,
        fix_age_seconds=2.0,
        is_fallback=False,
        quality=LocationQuality.HIGH,
    )


@pytest.fixture
def make_place() -> Callable[..., Place]:
    """Factory for canonical places with sensible defaults."""

    def _make(
        name: str = "Place",
        category: Category = Category.SERVICES,
        latitude: float = 37.7750,
        longitude: float = -122.4190,
        distance_meters: float | None = 100.0,
        **fields: Any,
    ) -> Place:
        return Place(
            name=name,
            coordinate=Coordinate(latitude=latitude, longitude=longitude),
            category=category,
            distance_meters=distance_meters,
            source_adapter=fields.pop("source_adapter", "fake"),
            **fields,
        )

    return _make


@pytest.fixture
def neutral_snapshot() -> PreferenceSnapshot:
    return PreferenceSnapshot.neutral(is_default=False)


@pytest.fixture
def fixed_now() -> datetime:
    """Wednesday 2024-05-15 08:30 UTC (inside the morning food/coffee windows)."""
    return datetime(2024, 5, 15, 8, 30, tzinfo=timezone.utc)  # noqa: UP017


@pytest_asyncio.fixture
async def preference_store(tmp_path: Path) -> SQLitePreferenceStore:
    """Create and initialize a store with a temp DB."""
    store = SQLitePreferenceStore(db_path=tmp_path / "preferences.db")
    await store.initialize()
    return store
