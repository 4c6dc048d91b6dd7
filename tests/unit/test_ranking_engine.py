"""Unit tests for RankingEngine: score formula, ordering, and reasoning."""

from __future__ import annotations

import random
from datetime import datetime, timezone
from typing import Callable

import pytest

from helping_hand.models.place import Category, Place
from helping_hand.models.preference import PreferenceRecord, PreferenceSnapshot
from helping_hand.models.ranking import RankingContext, RankingWeights
from helping_hand.models.search import Anchor
from helping_hand.services.ranking_engine import RankingEngine, part_of_day, weights_from_config


def _ctx(anchor: Anchor, hour: int, familiarity: float = 0.0) -> RankingContext:
    moment = datetime(2024, 5, 15, hour, 0, tzinfo=timezone.utc)  # noqa: UP017
    return RankingContext.at(moment, anchor, familiarity)


def _snapshot_with(category: Category, score: float, count: int = 3) -> PreferenceSnapshot:
    snap = PreferenceSnapshot.neutral(is_default=False)
    records = dict(snap.records)
    records[category] = PreferenceRecord(
        category=category, affinity_score=score, interaction_count=count
    )
    return PreferenceSnapshot(records=records)


@pytest.fixture()
def engine() -> RankingEngine:
    return RankingEngine()


class TestTimeOfDay:
    @pytest.mark.parametrize(
        ("category", "hour", "expected"),
        [
            (Category.FOOD, 7, 15.0),
            (Category.FOOD, 10, 15.0),
            (Category.FOOD, 11, 5.0),
            (Category.FOOD, 13, 15.0),
            (Category.FOOD, 21, 15.0),
            (Category.FOOD, 23, 5.0),
            (Category.COFFEE, 6, 15.0),
            (Category.COFFEE, 12, 5.0),
            (Category.COFFEE, 15, 15.0),
            (Category.SHOPPING, 10, 15.0),
            (Category.SHOPPING, 19, 15.0),
            (Category.SHOPPING, 20, 0.0),
            (Category.HEALTH, 3, 7.5),
            (Category.SERVICES, 12, 7.5),
        ],
    )
    def test_windows(
        self, engine: RankingEngine, category: Category, hour: int, expected: float
    ) -> None:
        assert engine.time_of_day_score(category, hour) == expected

    @pytest.mark.parametrize(
        ("hour", "label"),
        [(6, "morning"), (11, "morning"), (12, "afternoon"), (17, "evening"), (2, "late hours")],
    )
    def test_part_of_day(self, hour: int, label: str) -> None:
        assert part_of_day(hour) == label


class TestScore:
    def test_formula(
        self,
        engine: RankingEngine,
        anchor: Anchor,
        neutral_snapshot: PreferenceSnapshot,
        make_place: Callable[..., Place],
    ) -> None:
        place = make_place("Diner", Category.FOOD, distance_meters=300.0, rating=4.0)
        # 50 base + 5*30 pref + (20 - 1) distance + 15 time + 4*3 rating
        assert engine.score(place, _ctx(anchor, 8), neutral_snapshot) == pytest.approx(246.0)

    def test_unknown_distance_and_rating_add_nothing(
        self,
        engine: RankingEngine,
        anchor: Anchor,
        neutral_snapshot: PreferenceSnapshot,
        make_place: Callable[..., Place],
    ) -> None:
        place = make_place("Bank", Category.SERVICES, distance_meters=None)
        assert engine.score(place, _ctx(anchor, 8), neutral_snapshot) == pytest.approx(207.5)

    @pytest.mark.parametrize(("distance", "points"), [(0.0, 20.0), (3000.0, 10.0), (6000.0, 0.0),
                                                      (50000.0, 0.0)])
    def test_distance_points(self, engine: RankingEngine, distance: float, points: float) -> None:
        assert engine.distance_score(distance) == pytest.approx(points)

    def test_custom_weights(
        self,
        anchor: Anchor,
        neutral_snapshot: PreferenceSnapshot,
        make_place: Callable[..., Place],
    ) -> None:
        engine = RankingEngine(RankingWeights(base=0.0, preference=1.0, rating=0.0))
        place = make_place("Clinic", Category.HEALTH, distance_meters=None, rating=5.0)
        assert engine.score(place, _ctx(anchor, 8), neutral_snapshot) == pytest.approx(12.5)

    def test_weights_from_config(self) -> None:
        weights = weights_from_config({"ranking": {"base": 10.0, "rating": 1.5}})
        assert weights.base == 10.0
        assert weights.rating == 1.5
        assert weights.preference == 30.0
        assert weights_from_config({}) == RankingWeights()


class TestOrdering:
    def test_preference_lifts_category(
        self, engine: RankingEngine, anchor: Anchor, make_place: Callable[..., Place]
    ) -> None:
        coffee = make_place("Coffee Spot", Category.COFFEE, distance_meters=900.0)
        food = make_place("Food Spot", Category.FOOD, distance_meters=100.0)
        prefs = _snapshot_with(Category.COFFEE, 9.0)
        ranked = engine.rank([food, coffee], _ctx(anchor, 8), prefs)
        assert [p.name for p in ranked] == ["Coffee Spot", "Food Spot"]

    def test_equal_scores_order_by_distance_unknown_last(
        self,
        anchor: Anchor,
        neutral_snapshot: PreferenceSnapshot,
        make_place: Callable[..., Place],
    ) -> None:
        flat = RankingEngine(RankingWeights(distance_max_points=0.0))
        unknown = make_place("Unknown", Category.SERVICES, distance_meters=None)
        far = make_place("Far", Category.SERVICES, distance_meters=900.0)
        near = make_place("Near", Category.SERVICES, distance_meters=10.0)
        ranked = flat.rank([unknown, far, near], _ctx(anchor, 8), neutral_snapshot)
        assert [p.name for p in ranked] == ["Near", "Far", "Unknown"]

    def test_equal_scores_and_distance_order_by_casefolded_name(
        self,
        engine: RankingEngine,
        anchor: Anchor,
        neutral_snapshot: PreferenceSnapshot,
        make_place: Callable[..., Place],
    ) -> None:
        names = ["delta", "Charlie", "bravo", "Alpha"]
        places = [make_place(n, Category.SERVICES, distance_meters=100.0) for n in names]
        ranked = engine.rank(places, _ctx(anchor, 8), neutral_snapshot)
        assert [p.name for p in ranked] == ["Alpha", "bravo", "Charlie", "delta"]

    def test_deterministic_under_input_permutation(
        self,
        engine: RankingEngine,
        anchor: Anchor,
        neutral_snapshot: PreferenceSnapshot,
        make_place: Callable[..., Place],
    ) -> None:
        places = [
            make_place(f"Place {i % 4}", list(Category)[i % 9], distance_meters=float(i * 137 % 900))
            for i in range(20)
        ]
        expected = engine.rank(places, _ctx(anchor, 13), neutral_snapshot)
        rng = random.Random(7)
        for _ in range(5):
            shuffled = places[:]
            rng.shuffle(shuffled)
            assert engine.rank(shuffled, _ctx(anchor, 13), neutral_snapshot) == expected

    def test_empty_input(
        self, engine: RankingEngine, anchor: Anchor, neutral_snapshot: PreferenceSnapshot
    ) -> None:
        assert engine.rank([], _ctx(anchor, 8), neutral_snapshot) == []


class TestRecommendations:
    def test_reasoning_factors(
        self, engine: RankingEngine, anchor: Anchor, make_place: Callable[..., Place]
    ) -> None:
        place = make_place("Blue Bottle", Category.COFFEE, distance_meters=350.0, rating=4.7)
        prefs = _snapshot_with(Category.COFFEE, 7.0)
        [rec] = engine.recommend([place], _ctx(anchor, 8, familiarity=0.6), prefs)
        assert rec.place == place
        assert rec.reasoning_factors == (
            "You frequently visit Coffee places",
            "Near places you often visit",
            "Very close to your location (350m)",
            "Perfect for morning",
            "Highly rated (4.7)",
        )

    def test_walking_distance_and_well_rated(
        self,
        engine: RankingEngine,
        anchor: Anchor,
        neutral_snapshot: PreferenceSnapshot,
        make_place: Callable[..., Place],
    ) -> None:
        place = make_place("Market", Category.SHOPPING, distance_meters=800.0, rating=4.2)
        [rec] = engine.recommend([place], _ctx(anchor, 18), neutral_snapshot)
        assert rec.reasoning_factors == (
            "Walking distance (800m)",
            "Perfect for evening",
            "Well rated (4.2)",
        )

    def test_fallback_reason(
        self,
        engine: RankingEngine,
        anchor: Anchor,
        neutral_snapshot: PreferenceSnapshot,
        make_place: Callable[..., Place],
    ) -> None:
        place = make_place("Bank", Category.SERVICES, distance_meters=5000.0)
        [rec] = engine.recommend([place], _ctx(anchor, 2), neutral_snapshot)
        assert rec.reasoning_factors == ("Matches your preferences",)

    def test_scores_match_rank_order(
        self,
        engine: RankingEngine,
        anchor: Anchor,
        neutral_snapshot: PreferenceSnapshot,
        make_place: Callable[..., Place],
    ) -> None:
        places = [
            make_place("A", Category.FOOD, distance_meters=2000.0),
            make_place("B", Category.COFFEE, distance_meters=100.0, rating=4.9),
            make_place("C", Category.HEALTH),
        ]
        recs = engine.recommend(places, _ctx(anchor, 8), neutral_snapshot)
        assert [r.place for r in recs] == engine.rank(places, _ctx(anchor, 8), neutral_snapshot)
        assert [r.score for r in recs] == sorted((r.score for r in recs), reverse=True)
