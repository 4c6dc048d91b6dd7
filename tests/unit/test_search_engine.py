"""Tests for HybridSearchEngine: the full search session end to end."""

from __future__ import annotations

import asyncio
import sqlite3
from datetime import datetime
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from helping_hand.interfaces.preference_store import IPreferenceStore
from helping_hand.models.place import Category, Coordinate, Place
from helping_hand.models.preference import InteractionKind, PreferenceSnapshot
from helping_hand.models.search import OutcomeStatus, PositionFix, SearchDirective
from helping_hand.models.session import SessionState
from helping_hand.pipeline.orchestrator import HybridSearchEngine
from helping_hand.providers.preference.sqlite_preference_store import SQLitePreferenceStore
from helping_hand.utils.errors import DirectiveError, PreferenceStoreError, ProviderError
from tests.helpers import FakePlaceProvider, raw_place

HERE = Coordinate(latitude=37.7749, longitude=-122.4194)
FIX = PositionFix(coordinate=HERE, accuracy_meters=30.0, fix_age_seconds=2.0)


def _engine(providers, store) -> HybridSearchEngine:
    return HybridSearchEngine(providers=providers, preference_store=store)


class TestRunSearch:
    @pytest.mark.asyncio
    async def test_results_are_normalized_deduplicated_and_ranked(
        self, preference_store: SQLitePreferenceStore, fixed_now: datetime
    ) -> None:
        local = FakePlaceProvider(
            "local_index",
            {"coffee": [raw_place("Joe's Coffee", 37.7760, -122.4194, "local_index")]},
        )
        google = FakePlaceProvider(
            "google_places",
            {
                "coffee": [
                    raw_place(
                        "Joes Coffee",
                        37.7763,
                        -122.4194,
                        "google_places",
                        rating=4.6,
                        types=("cafe",),
                    ),
                    raw_place("Hardware Hut", 37.7850, -122.4194, "google_places"),
                ]
            },
        )
        engine = _engine([local, google], preference_store)

        outcome = await engine.run_search(
            SearchDirective(primary_term="coffee"), FIX, now=fixed_now
        )

        assert outcome.status == OutcomeStatus.RESULTS
        assert [p.name for p in outcome.places] == ["Joes Coffee", "Hardware Hut"]
        top = outcome.places[0]
        assert top.category == Category.COFFEE
        assert top.rating == 4.6
        assert top.distance_meters == pytest.approx(155.7, abs=1.0)
        assert outcome.total_calls == 2
        assert outcome.failed_calls == 0
        assert outcome.radius_meters == 5000.0
        assert outcome.anchor.is_fallback is False
        assert engine.registry.get(outcome.generation).state == SessionState.DELIVERED

    @pytest.mark.asyncio
    async def test_all_empty_is_an_empty_success(
        self, preference_store: SQLitePreferenceStore
    ) -> None:
        engine = _engine(
            [FakePlaceProvider("a", {}), FakePlaceProvider("b", {})], preference_store
        )
        outcome = await engine.run_search(
            SearchDirective(primary_term="coffee", alternative_terms=("cafe",)), FIX
        )
        assert outcome.status == OutcomeStatus.EMPTY
        assert outcome.is_empty
        assert outcome.total_calls == 4
        assert outcome.failed_calls == 0

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "directive",
        [
            SearchDirective(primary_term="", alternative_terms=()),
            SearchDirective(primary_term="   ", alternative_terms=("", "  ")),
        ],
    )
    async def test_empty_directive_is_rejected(
        self, preference_store: SQLitePreferenceStore, directive: SearchDirective
    ) -> None:
        provider = FakePlaceProvider("a", {"*": [raw_place("X")]})
        engine = _engine([provider], preference_store)
        with pytest.raises(DirectiveError):
            await engine.run_search(directive, FIX)
        assert provider.calls == []
        assert engine.registry.latest_generation == 0

    @pytest.mark.asyncio
    async def test_category_hint_does_not_relabel_unclassified_places(
        self, preference_store: SQLitePreferenceStore
    ) -> None:
        provider = FakePlaceProvider(
            "a",
            {
                "*": [
                    raw_place("Dr. Lee", types=("point_of_interest",)),
                    raw_place("Peet's Coffee"),
                ]
            },
        )
        engine = _engine([provider], preference_store)

        outcome = await engine.run_search(
            SearchDirective(primary_term="clinic", category_hint=Category.HEALTH), FIX
        )

        categories = {p.name: p.category for p in outcome.places}
        assert categories == {"Dr. Lee": Category.SERVICES, "Peet's Coffee": Category.COFFEE}

    @pytest.mark.asyncio
    async def test_failed_adapters_are_counted_not_raised(
        self, preference_store: SQLitePreferenceStore
    ) -> None:
        good = FakePlaceProvider("good", {"*": [raw_place("Survivor")]})
        bad = FakePlaceProvider("bad", error=ProviderError("HTTP 500", provider_name="bad"))
        engine = _engine([good, bad], preference_store)

        outcome = await engine.run_search(SearchDirective(primary_term="pizza"), FIX)

        assert outcome.status == OutcomeStatus.RESULTS
        assert [p.name for p in outcome.places] == ["Survivor"]
        assert outcome.failed_calls == 1

    @pytest.mark.asyncio
    async def test_every_adapter_failing_is_empty(
        self, preference_store: SQLitePreferenceStore
    ) -> None:
        bad = FakePlaceProvider("bad", error=ProviderError("down"))
        outcome = await _engine([bad], preference_store).run_search(
            SearchDirective(primary_term="pizza"), FIX
        )
        assert outcome.status == OutcomeStatus.EMPTY
        assert outcome.failed_calls == outcome.total_calls == 1

    @pytest.mark.asyncio
    async def test_no_fix_uses_fallback_anchor(
        self, preference_store: SQLitePreferenceStore
    ) -> None:
        provider = FakePlaceProvider("a", {"*": []})
        engine = _engine([provider], preference_store)
        with patch.object(
            preference_store, "location_familiarity", new=AsyncMock(return_value=0.9)
        ) as familiarity:
            outcome = await engine.run_search(SearchDirective(primary_term="tacos"), None)

        assert outcome.anchor.is_fallback is True
        assert outcome.radius_meters == pytest.approx(15000.0)
        assert provider.calls[0][1] == outcome.anchor.coordinate
        familiarity.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_learned_preference_changes_order(
        self, preference_store: SQLitePreferenceStore, fixed_now: datetime
    ) -> None:
        provider = FakePlaceProvider(
            "a",
            {
                "*": [
                    raw_place("Tasty Diner", 37.7752, -122.4194, types=("restaurant",)),
                    raw_place("Bean Bar", 37.7752, -122.4194, types=("cafe",)),
                ]
            },
        )
        engine = _engine([provider], preference_store)
        directive = SearchDirective(primary_term="breakfast")

        before = await engine.run_search(directive, FIX, now=fixed_now)
        assert [p.name for p in before.places] == ["Bean Bar", "Tasty Diner"]

        for _ in range(3):
            await preference_store.record_interaction(Category.FOOD)
        after = await engine.run_search(directive, FIX, now=fixed_now)
        assert [p.name for p in after.places] == ["Tasty Diner", "Bean Bar"]
        assert any("Food places" in reason for reason in after.recommendations[0].reasoning_factors)


class TestDegradedStore:
    @pytest.mark.asyncio
    async def test_store_failure_ranks_with_neutral_preferences(self) -> None:
        store = MagicMock(spec=IPreferenceStore)
        store.snapshot = AsyncMock(side_effect=PreferenceStoreError("disk gone"))
        store.location_familiarity = AsyncMock(side_effect=PreferenceStoreError("disk gone"))
        store.get_provider_name.return_value = "broken"
        provider = FakePlaceProvider("a", {"*": [raw_place("Still Here")]})

        outcome = await _engine([provider], store).run_search(
            SearchDirective(primary_term="coffee"), FIX
        )

        assert outcome.status == OutcomeStatus.RESULTS
        assert [p.name for p in outcome.places] == ["Still Here"]

    @pytest.mark.asyncio
    async def test_preferences_falls_back_to_neutral(self) -> None:
        store = MagicMock(spec=IPreferenceStore)
        store.snapshot = AsyncMock(side_effect=PreferenceStoreError())
        store.get_provider_name.return_value = "broken"
        snapshot = await _engine([], store).preferences()
        assert snapshot.is_default is True
        assert all(r.affinity_score == 5.0 for r in snapshot.records.values())

    @pytest.mark.asyncio
    async def test_unreadable_stored_score_does_not_fail_search(self, tmp_path) -> None:
        path = tmp_path / "prefs.db"
        conn = sqlite3.connect(path)
        conn.execute(
            "CREATE TABLE preferences (category TEXT PRIMARY KEY, affinity_score REAL NOT NULL, "
            "last_updated TEXT NOT NULL, interaction_count INTEGER NOT NULL DEFAULT 0)"
        )
        conn.execute("INSERT INTO preferences VALUES ('Food', 'oops', '2024-05-15T08:30:00', 1)")
        conn.commit()
        conn.close()
        engine = _engine(
            [FakePlaceProvider("a", {"*": [raw_place("Bean Bar", types=("cafe",))]})],
            SQLitePreferenceStore(db_path=path),
        )

        outcome = await engine.run_search(SearchDirective(primary_term="coffee"), FIX)

        assert outcome.status == OutcomeStatus.RESULTS
        assert [p.name for p in outcome.places] == ["Bean Bar"]
        assert (await engine.preferences()).affinity(Category.FOOD) == 5.0


class TestSupersession:
    @pytest.mark.asyncio
    async def test_newer_query_supersedes_in_flight_one(
        self, preference_store: SQLitePreferenceStore
    ) -> None:
        provider = FakePlaceProvider(
            "slow",
            {"coffee": [raw_place("Old Result")], "tacos": [raw_place("New Result")]},
            delay=0.3,
        )
        engine = _engine([provider], preference_store)

        first = asyncio.create_task(
            engine.run_search(SearchDirective(primary_term="coffee"), FIX)
        )
        await asyncio.sleep(0.05)
        second = await engine.run_search(SearchDirective(primary_term="tacos"), FIX)
        first_outcome = await first

        assert first_outcome.status == OutcomeStatus.SUPERSEDED
        assert first_outcome.recommendations == ()
        assert second.status == OutcomeStatus.RESULTS
        assert [p.name for p in second.places] == ["New Result"]
        assert second.generation > first_outcome.generation
        assert provider.cancelled == 1

    @pytest.mark.asyncio
    async def test_supersession_after_join_is_caught_at_merge_boundary(
        self, preference_store: SQLitePreferenceStore
    ) -> None:
        provider = FakePlaceProvider("fast", {"*": [raw_place("Result")]})
        engine = _engine([provider], preference_store)
        real_snapshot = preference_store.snapshot
        gate = asyncio.Event()

        async def slow_snapshot() -> PreferenceSnapshot:
            await gate.wait()
            return await real_snapshot()

        with patch.object(preference_store, "snapshot", new=slow_snapshot):
            first = asyncio.create_task(
                engine.run_search(SearchDirective(primary_term="coffee"), FIX)
            )
            await asyncio.sleep(0.05)
            # Joined, waiting on the store: still live, so a new query supersedes it.
            assert engine.registry.current.state == SessionState.AWAITING
            await engine.registry.begin(
                SearchDirective(primary_term="tea"), engine.registry.current.anchor, 1000.0
            )
            gate.set()
            outcome = await first

        assert outcome.status == OutcomeStatus.SUPERSEDED
        assert engine.registry.get(outcome.generation).state == SessionState.SUPERSEDED


class TestRecordInteraction:
    @pytest.mark.asyncio
    async def test_updates_store_and_history(
        self,
        preference_store: SQLitePreferenceStore,
        make_place,
        fixed_now: datetime,
    ) -> None:
        engine = _engine([], preference_store)
        place: Place = make_place("Blue Bottle", Category.COFFEE, 37.7749, -122.4194)

        record = await engine.record_interaction(
            place, kind=InteractionKind.DIRECTIONS, query="coffee", now=fixed_now
        )

        assert record.category == Category.COFFEE
        assert record.affinity_score == 5.5
        assert (await preference_store.get(Category.FOOD)).affinity_score == 4.9
        assert await preference_store.location_familiarity(HERE) == pytest.approx(1 / 50)

    @pytest.mark.asyncio
    async def test_store_errors_propagate(self, make_place) -> None:
        store = MagicMock(spec=IPreferenceStore)
        store.record_event = AsyncMock(side_effect=PreferenceStoreError("read-only"))
        with pytest.raises(PreferenceStoreError):
            await _engine([], store).record_interaction(make_place("X"))
