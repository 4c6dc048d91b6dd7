"""On-device place index backed by a JSON file or injected records.

Plays the role of the platform's local map search: no network, no key,
always available once it has records.  Matching is fuzzy (rapidfuzz) on
the place name and its type tags, and results are limited to the search
radius around the anchor.

File format (``data/local_places.json``)::

    [
      {"id": "p1", "name": "Blue Bottle Coffee", "latitude": 37.78,
       "longitude": -122.41, "types": ["cafe"], "rating": 4.6,
       "address": "66 Mint St", "phone": null, "is_open": true},
      ...
    ]

A top-level ``{"places": [...]}`` wrapper is accepted too.
"""

from __future__ import annotations

import asyncio
import json
from pathlib import Path
from typing import Any, Iterable

from helping_hand.interfaces.place_search_provider import IPlaceSearchProvider
from helping_hand.models.place import Coordinate, ProviderPlace
from helping_hand.utils.errors import ProviderError, ProviderUnavailableError
from helping_hand.utils.geo import haversine_meters
from helping_hand.utils.logging import get_logger
from helping_hand.utils.text_normalizer import term_match_score

_PROVIDER_NAME = "local_index"
_DEFAULT_MIN_MATCH = 0.8
_DEFAULT_MAX_RESULTS = 20


class LocalIndexPlaceProvider(IPlaceSearchProvider):
    """Fuzzy search over an in-memory list of places.

    Parameters
    ----------
    records:
        Pre-built records.  When given, *index_path* is ignored.
    index_path:
        JSON file loaded lazily on the first search.
    min_match_score:
        Minimum 0.0-1.0 term similarity against the name or any type tag.
    max_results:
        Cap on returned records, nearest first.
    """

    timeout_seconds = 2.0

    def __init__(
        self,
        records: Iterable[ProviderPlace] | None = None,
        index_path: str | Path | None = None,
        min_match_score: float = _DEFAULT_MIN_MATCH,
        max_results: int = _DEFAULT_MAX_RESULTS,
    ) -> None:
        self._records: list[ProviderPlace] | None = (
            list(records) if records is not None else None
        )
        self._index_path = Path(index_path) if index_path else None
        self._min_match_score = min_match_score
        self._max_results = max_results
        self._logger = get_logger(__name__)

    # ------------------------------------------------------------------
    # IPlaceSearchProvider implementation
    # ------------------------------------------------------------------

    async def search(
        self,
        term: str,
        center: Coordinate,
        radius_meters: float,
    ) -> list[ProviderPlace]:
        records = await self._ensure_loaded()

        scored: list[tuple[float, ProviderPlace]] = []
        for record in records:
            if self._match(term, record) < self._min_match_score:
                continue
            distance = haversine_meters(
                center.latitude, center.longitude, record.latitude, record.longitude
            )
            if distance > radius_meters:
                continue
            scored.append((distance, record))

        scored.sort(key=lambda pair: pair[0])
        results = [
            record.model_copy(update={"distance_meters": distance})
            for distance, record in scored[: self._max_results]
        ]
        self._logger.debug(
            "local_index_search_complete",
            term=term,
            radius_meters=radius_meters,
            result_count=len(results),
        )
        return results

    def get_provider_name(self) -> str:
        return _PROVIDER_NAME

    def is_available(self) -> bool:
        if self._records is not None:
            return True
        return self._index_path is not None and self._index_path.is_file()

    # ------------------------------------------------------------------
    # Private helpers
    # ------------------------------------------------------------------

    def _match(self, term: str, record: ProviderPlace) -> float:
        candidates = [record.name or ""]
        candidates.extend(tag.replace("_", " ") for tag in record.types)
        return max(term_match_score(term, text) for text in candidates)

    async def _ensure_loaded(self) -> list[ProviderPlace]:
        if self._records is not None:
            return self._records
        if self._index_path is None or not self._index_path.is_file():
            raise ProviderUnavailableError(
                message="Local place index has no records",
                provider_name=_PROVIDER_NAME,
            )
        self._records = await asyncio.to_thread(self._load_file, self._index_path)
        self._logger.info(
            "local_index_loaded",
            path=str(self._index_path),
            record_count=len(self._records),
        )
        return self._records

    @staticmethod
    def _load_file(path: Path) -> list[ProviderPlace]:
        try:
            raw = json.loads(path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as exc:
            raise ProviderError(
                message=f"Cannot read local place index {path}: {exc}",
                provider_name=_PROVIDER_NAME,
            ) from exc

        items: list[dict[str, Any]] = raw.get("places", []) if isinstance(raw, dict) else raw
        records: list[ProviderPlace] = []
        for index, item in enumerate(items):
            try:
                records.append(
                    ProviderPlace(
                        provider_name=_PROVIDER_NAME,
                        external_id=str(item.get("id", index)),
                        name=item.get("name"),
                        latitude=float(item["latitude"]),
                        longitude=float(item["longitude"]),
                        types=tuple(item.get("types") or ()),
                        address=item.get("address"),
                        phone=item.get("phone"),
                        rating=item.get("rating"),
                        is_open=item.get("is_open"),
                    )
                )
            except (KeyError, TypeError, ValueError) as exc:
                raise ProviderError(
                    message=f"Malformed local index entry #{index}: {exc}",
                    provider_name=_PROVIDER_NAME,
                ) from exc
        return records
