"""OpenStreetMap Overpass API adapter.

Builds an ``around`` query for nodes and ways near the anchor.  Terms that
name a well-known kind of place ("coffee", "pharmacy") become OSM tag
filters; any other term becomes a case-insensitive ``name`` regex.

    [out:json][timeout:8];
    (
      node["amenity"="cafe"](around:5000,37.77490,-122.41940);
      way["amenity"="cafe"](around:5000,37.77490,-122.41940);
    );
    out center 40;

Ways come back with a ``center`` instead of ``lat``/``lon``.  Each element
is mapped to a :class:`ProviderPlace` whose ``types`` are its OSM tag values
(``shop`` before ``amenity`` before the rest) for the normalizer.
"""

from __future__ import annotations

import asyncio
import re
from typing import Any

import httpx

from helping_hand.interfaces.place_search_provider import IPlaceSearchProvider
from helping_hand.models.place import Coordinate, ProviderPlace
from helping_hand.utils.errors import ProviderError, RateLimitError
from helping_hand.utils.logging import get_logger

_PROVIDER_NAME = "overpass"
_DEFAULT_URL = "https://overpass-api.de/api/interpreter"
_USER_AGENT = "helping-hand/0.1.0"
_QUERY_TIMEOUT = 8
_MAX_RESULTS = 40
_MAX_RETRIES = 2
_RETRY_BACKOFF = 0.5  # seconds, multiplied by the attempt number
_RETRY_STATUSES = frozenset({429, 502, 503, 504})

# Search term -> OSM tag filters (any one matching is enough).
TERM_TO_OSM_FILTERS: dict[str, tuple[str, ...]] = {
    "restaurant": ('["amenity"~"^(restaurant|fast_food)$"]',),
    "food": ('["amenity"~"^(restaurant|fast_food|food_court)$"]',),
    "coffee": ('["amenity"="cafe"]', '["cuisine"~"coffee"]'),
    "cafe": ('["amenity"="cafe"]',),
    "gas": ('["amenity"="fuel"]',),
    "fuel": ('["amenity"="fuel"]',),
    "grocery": ('["shop"~"^(supermarket|convenience|greengrocer)$"]',),
    "supermarket": ('["shop"="supermarket"]',),
    "pharmacy": ('["amenity"="pharmacy"]',),
    "hospital": ('["amenity"="hospital"]',),
    "medical": ('["amenity"~"^(hospital|clinic|doctors)$"]',),
    "bank": ('["amenity"="bank"]',),
    "atm": ('["amenity"="atm"]',),
    "electronics": ('["shop"~"^(electronics|computer|mobile_phone)$"]',),
}

# Tag keys whose values become type tags, most specific first.
_TYPE_TAG_KEYS = ("shop", "amenity", "cuisine", "tourism", "leisure", "healthcare")

_UNSAFE_TERM_CHARS = re.compile(r"[^\w\s'&-]", re.UNICODE)


def searchable_name(term: str) -> str:
    """*term* stripped of characters that would break the name regex."""
    return _UNSAFE_TERM_CHARS.sub("", term).strip()


def build_overpass_query(
    term: str,
    center: Coordinate,
    radius_meters: float,
    max_results: int = _MAX_RESULTS,
    timeout: int = _QUERY_TIMEOUT,
) -> str:
    """Return the Overpass QL for one term around *center*."""
    filters = TERM_TO_OSM_FILTERS.get(term.strip().lower())
    if filters is None:
        safe = searchable_name(term)
        if not safe:
            raise ValueError(f"no searchable characters in term {term!r}")
        filters = (f'["name"~"{safe}",i]',)

    around = f"(around:{radius_meters:.0f},{center.latitude:.5f},{center.longitude:.5f})"
    parts: list[str] = []
    for tag_filter in filters:
        parts.append(f"node{tag_filter}{around};")
        parts.append(f"way{tag_filter}{around};")
    body = "".join(parts)
    return f"[out:json][timeout:{timeout}];({body});out center {max_results};"


class OverpassPlaceProvider(IPlaceSearchProvider):
    """Place search backed by a public Overpass API instance.

    Parameters
    ----------
    http_client:
        Injected ``httpx.AsyncClient``; created and owned here when omitted.
    url:
        Overpass interpreter endpoint.
    enabled:
        Lets configuration switch the adapter off without unregistering it.
    max_results:
        ``out`` limit sent with every query.
    """

    timeout_seconds = 10.0

    def __init__(
        self,
        http_client: httpx.AsyncClient | None = None,
        url: str = _DEFAULT_URL,
        enabled: bool = True,
        max_results: int = _MAX_RESULTS,
    ) -> None:
        self._url = url
        self._enabled = enabled
        self._max_results = max_results
        self._owns_client = http_client is None
        self._http = http_client or httpx.AsyncClient()
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
        if term.strip().lower() not in TERM_TO_OSM_FILTERS and not searchable_name(term):
            # An empty name regex would match every named element in range.
            self._logger.debug("overpass_term_unsearchable", term=term)
            return []
        query = build_overpass_query(term, center, radius_meters, self._max_results)
        payload = await self._post(query)

        places = [
            place
            for place in (self._element_to_place(el) for el in payload.get("elements") or [])
            if place is not None
        ]
        self._logger.info(
            "overpass_search_complete",
            term=term,
            radius_meters=radius_meters,
            result_count=len(places),
        )
        return places

    def get_provider_name(self) -> str:
        return _PROVIDER_NAME

    def is_available(self) -> bool:
        return self._enabled and bool(self._url)

    async def close(self) -> None:
        """Close the HTTP client if this provider created it."""
        if self._owns_client:
            await self._http.aclose()

    # ------------------------------------------------------------------
    # Private helpers
    # ------------------------------------------------------------------

    async def _post(self, query: str) -> dict[str, Any]:
        """POST *query*, retrying briefly on throttling and gateway errors."""
        headers = {"User-Agent": _USER_AGENT, "Accept": "application/json"}
        last_status = 0
        for attempt in range(1, _MAX_RETRIES + 1):
            try:
                response = await self._http.post(self._url, data={"data": query}, headers=headers)
            except httpx.HTTPError as exc:
                raise ProviderError(
                    message=f"Overpass request failed: {exc}",
                    provider_name=_PROVIDER_NAME,
                ) from exc

            if response.status_code in _RETRY_STATUSES:
                last_status = response.status_code
                self._logger.warning(
                    "overpass_retryable_status",
                    status=response.status_code,
                    attempt=attempt,
                )
                if attempt < _MAX_RETRIES:
                    await asyncio.sleep(_RETRY_BACKOFF * attempt)
                continue

            if response.status_code != 200:
                raise ProviderError(
                    message=f"HTTP {response.status_code} from Overpass",
                    provider_name=_PROVIDER_NAME,
                )
            try:
                return response.json()
            except ValueError as exc:
                raise ProviderError(
                    message=f"Undecodable Overpass response: {exc}",
                    provider_name=_PROVIDER_NAME,
                ) from exc

        if last_status == 429:
            raise RateLimitError(
                message="Overpass rate limit exceeded",
                provider_name=_PROVIDER_NAME,
            )
        raise ProviderError(
            message=f"Overpass unavailable (HTTP {last_status})",
            provider_name=_PROVIDER_NAME,
        )

    @staticmethod
    def _element_to_place(el: dict[str, Any]) -> ProviderPlace | None:
        tags = el.get("tags") or {}
        lat, lon = el.get("lat"), el.get("lon")
        if lat is None or lon is None:
            center = el.get("center") or {}
            lat, lon = center.get("lat"), center.get("lon")
        if lat is None or lon is None:
            return None

        types: list[str] = []
        for key in _TYPE_TAG_KEYS:
            for value in str(tags.get(key, "")).split(";"):
                value = value.strip()
                if value and value not in types:
                    types.append(value)

        street = " ".join(
            part for part in (tags.get("addr:housenumber"), tags.get("addr:street")) if part
        )
        return ProviderPlace(
            provider_name=_PROVIDER_NAME,
            external_id=f"osm:{el.get('type', 'node')}:{el.get('id')}",
            name=tags.get("name") or tags.get("brand"),
            latitude=float(lat),
            longitude=float(lon),
            types=tuple(types),
            address=street or None,
            phone=tags.get("phone") or tags.get("contact:phone"),
        )
