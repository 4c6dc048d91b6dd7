"""Cross-adapter duplicate removal.

Two adapters (or two terms of the same search) often return the same
physical place under slightly different spellings.  Two places are
duplicates when

  * their names are within ``max_name_distance`` edits of each other
    (case-insensitive Levenshtein, strictly below the threshold), and
  * their coordinates differ by at most ``coordinate_tolerance`` degrees
    on each axis.

The relation is not transitive, so clusters are the connected components
of the pairwise graph (union-find over all O(n^2) pairs).  Each cluster
keeps the member with the most complete attribute set; ties go to the
first one encountered.  Representatives come out in encounter order, and
running the result through again changes nothing.
"""

from __future__ import annotations

from dataclasses import dataclass

import structlog

from helping_hand.models.place import Place
from helping_hand.utils.geo import within_degrees
from helping_hand.utils.logging import get_logger
from helping_hand.utils.text_normalizer import name_edit_distance


@dataclass(frozen=True)
class DedupConfig:
    max_name_distance: int = 3
    coordinate_tolerance: float = 0.001

    @classmethod
    def from_config(cls, config: dict) -> DedupConfig:
        section = config.get("dedup", {})
        return cls(
            max_name_distance=int(section.get("max_name_distance", 3)),
            coordinate_tolerance=float(section.get("coordinate_tolerance_degrees", 0.001)),
        )


class _DisjointSet:
    def __init__(self, size: int) -> None:
        self._parent = list(range(size))

    def find(self, i: int) -> int:
        while self._parent[i] != i:
            self._parent[i] = self._parent[self._parent[i]]
            i = self._parent[i]
        return i

    def union(self, a: int, b: int) -> None:
        root_a, root_b = self.find(a), self.find(b)
        if root_a != root_b:
            # Lower index stays root so roots follow encounter order.
            if root_b < root_a:
                root_a, root_b = root_b, root_a
            self._parent[root_b] = root_a


class Deduplicator:
    """Collapse near-identical places from different adapters."""

    def __init__(self, config: DedupConfig | None = None) -> None:
        self._config = config or DedupConfig()
        self._logger: structlog.BoundLogger = get_logger(__name__)

    def is_duplicate(self, a: Place, b: Place) -> bool:
        if not within_degrees(
            a.coordinate.latitude,
            a.coordinate.longitude,
            b.coordinate.latitude,
            b.coordinate.longitude,
            self._config.coordinate_tolerance,
        ):
            return False
        return name_edit_distance(a.name, b.name) < self._config.max_name_distance

    def deduplicate(self, places: list[Place]) -> list[Place]:
        """Return one representative per duplicate cluster, in encounter order."""
        count = len(places)
        if count < 2:
            return list(places)

        groups = _DisjointSet(count)
        for i in range(count):
            for j in range(i + 1, count):
                if self.is_duplicate(places[i], places[j]):
                    groups.union(i, j)

        best: dict[int, int] = {}
        for index, place in enumerate(places):
            root = groups.find(index)
            current = best.get(root)
            # Strictly greater keeps the first encountered on ties.
            if current is None or place.completeness > places[current].completeness:
                best[root] = index

        result = [places[index] for index in sorted(best.values())]
        if len(result) < count:
            self._logger.debug(
                "duplicates_removed",
                input_count=count,
                output_count=len(result),
            )
        return result
