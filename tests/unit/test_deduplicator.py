"""Unit tests for the cross-adapter Deduplicator."""

from __future__ import annotations

from typing import Callable

import pytest

from helping_hand.models.place import Category, Place
from helping_hand.services.deduplicator import DedupConfig, Deduplicator

X, Y = 37.7750, -122.4190


@pytest.fixture()
def dedup() -> Deduplicator:
    return Deduplicator()


class TestDuplicateRelation:
    def test_spelling_variants_from_two_adapters_merge(
        self, dedup: Deduplicator, make_place: Callable[..., Place]
    ) -> None:
        a = make_place("Joe's Coffee", Category.COFFEE, X, Y, source_adapter="local_index")
        b = make_place("Joes Coffee", Category.COFFEE, X + 0.0003, Y, source_adapter="google_places")
        result = dedup.deduplicate([a, b])
        assert len(result) == 1

    def test_name_distance_three_is_not_duplicate(
        self, dedup: Deduplicator, make_place: Callable[..., Place]
    ) -> None:
        a = make_place("Cafe Roma", latitude=X, longitude=Y)
        b = make_place("Cafe Rxxx", latitude=X, longitude=Y)
        assert dedup.is_duplicate(a, b) is False

    def test_name_comparison_ignores_case(
        self, dedup: Deduplicator, make_place: Callable[..., Place]
    ) -> None:
        a = make_place("PEET'S COFFEE", latitude=X, longitude=Y)
        b = make_place("peet's coffee", latitude=X, longitude=Y)
        assert dedup.is_duplicate(a, b) is True

    def test_far_apart_same_name_is_not_duplicate(
        self, dedup: Deduplicator, make_place: Callable[..., Place]
    ) -> None:
        a = make_place("Starbucks", latitude=X, longitude=Y)
        b = make_place("Starbucks", latitude=X + 0.002, longitude=Y)
        assert dedup.deduplicate([a, b]) == [a, b]

    def test_tolerance_is_inclusive(
        self, dedup: Deduplicator, make_place: Callable[..., Place]
    ) -> None:
        a = make_place("Shell", latitude=X, longitude=Y)
        b = make_place("Shell", latitude=X + 0.001, longitude=Y - 0.001)
        assert dedup.is_duplicate(a, b) is True

    def test_custom_thresholds(self, make_place: Callable[..., Place]) -> None:
        strict = Deduplicator(DedupConfig(max_name_distance=1, coordinate_tolerance=0.0001))
        a = make_place("Joe's Coffee", latitude=X, longitude=Y)
        b = make_place("Joes Coffee", latitude=X, longitude=Y)
        assert strict.is_duplicate(a, b) is False


class TestRepresentative:
    def test_most_complete_member_wins(
        self, dedup: Deduplicator, make_place: Callable[..., Place]
    ) -> None:
        sparse = make_place("Joe's Coffee", latitude=X, longitude=Y)
        rich = make_place(
            "Joes Coffee", latitude=X, longitude=Y, rating=4.5, phone="555", address="1 Main"
        )
        assert dedup.deduplicate([sparse, rich]) == [rich]

    def test_tie_keeps_first_encountered(
        self, dedup: Deduplicator, make_place: Callable[..., Place]
    ) -> None:
        first = make_place("Joe's Coffee", latitude=X, longitude=Y, rating=4.0)
        second = make_place("Joes Coffee", latitude=X, longitude=Y, phone="555")
        assert dedup.deduplicate([first, second]) == [first]

    def test_chained_duplicates_form_one_cluster(
        self, dedup: Deduplicator, make_place: Callable[..., Place]
    ) -> None:
        # a~b and b~c, but a and c are 0.0012 deg apart: still one cluster.
        a = make_place("Corner Deli", latitude=X, longitude=Y)
        b = make_place("Corner Deli", latitude=X + 0.0006, longitude=Y)
        c = make_place("Corner Deli", latitude=X + 0.0012, longitude=Y)
        assert dedup.is_duplicate(a, c) is False
        assert dedup.deduplicate([a, b, c]) == [a]

    def test_output_keeps_encounter_order(
        self, dedup: Deduplicator, make_place: Callable[..., Place]
    ) -> None:
        one = make_place("Alpha", latitude=X, longitude=Y)
        two = make_place("Bravo Books", latitude=X + 0.01, longitude=Y)
        two_dup = make_place("Bravo Book", latitude=X + 0.01, longitude=Y, rating=4.0)
        three = make_place("Charlie", latitude=X + 0.02, longitude=Y)
        assert dedup.deduplicate([one, two, three, two_dup]) == [one, three, two_dup]


class TestEdgeCases:
    def test_empty_and_single(self, dedup: Deduplicator, make_place: Callable[..., Place]) -> None:
        assert dedup.deduplicate([]) == []
        single = make_place("Only")
        assert dedup.deduplicate([single]) == [single]

    def test_idempotent(self, dedup: Deduplicator, make_place: Callable[..., Place]) -> None:
        places = [
            make_place("Joe's Coffee", latitude=X, longitude=Y),
            make_place("Joes Coffee", latitude=X + 0.0003, longitude=Y, rating=4.2),
            make_place("Joe Coffee", latitude=X + 0.0005, longitude=Y),
            make_place("Tartine", latitude=X + 0.005, longitude=Y),
            make_place("Tartine Bakery", latitude=X + 0.005, longitude=Y),
        ]
        once = dedup.deduplicate(places)
        assert dedup.deduplicate(once) == once

    def test_from_config(self) -> None:
        cfg = DedupConfig.from_config(
            {"dedup": {"max_name_distance": 2, "coordinate_tolerance_degrees": 0.0005}}
        )
        assert cfg == DedupConfig(max_name_distance=2, coordinate_tolerance=0.0005)
