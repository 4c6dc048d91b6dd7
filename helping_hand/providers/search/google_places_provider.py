"""Google Places "Nearby Search" adapter.

Issues ``GET {base_url}/nearbysearch/json`` with ``location=lat,lng``,
``radius`` and ``key``.  Well-known terms ("coffee", "gas", "pharmacy")
are sent as a Places ``type`` filter; anything else is sent as a free-text
``keyword``.

The API reports logical failures in a ``status`` field of a 200 response.
``OK`` and ``ZERO_RESULTS`` are success; ``OVER_QUERY_LIMIT`` becomes
:class:`RateLimitError`; every other status becomes :class:`ProviderError`.
"""

from __future__ import annotations

from typing import Any

import httpx

from helping_hand.interfaces.place_search_provider import IPlaceSearchProvider
from helping_hand.models.place import Coordinate, ProviderPlace
from helping_hand.utils.errors import (
    ProviderError,
    ProviderUnavailableError,
    RateLimitError,
)
from helping_hand.utils.logging import get_logger

_PROVIDER_NAME = "google_places"
_DEFAULT_BASE_URL = "https://maps.googleapis.com/maps/api/place"
# Places API caps nearby search at 50 km.
_MAX_RADIUS_METERS = 50_000

# Search term -> Places API ``type`` filter.
TERM_TO_PLACE_TYPE: dict[str, str] = {
    "restaurant": "restaurant",
    "food": "restaurant",
    "gas": "gas_station",
    "fuel": "gas_station",
    "coffee": "cafe",
    "cafe": "cafe",
    "grocery": "grocery_or_supermarket",
    "supermarket": "grocery_or_supermarket",
    "hospital": "hospital",
    "medical": "hospital",
    "pharmacy": "pharmacy",
    "bank": "bank",
    "atm": "bank",
    "apple store": "electronics_store",
    "electronics": "electronics_store",
}

_SUCCESS_STATUSES = frozenset({"OK", "ZERO_RESULTS"})


class GooglePlacesProvider(IPlaceSearchProvider):
    """Place search backed by the Google Places web service.

    Parameters
    ----------
    api_key:
        Places API key.  Empty means "not configured".
    http_client:
        Injected ``httpx.AsyncClient`` for connection pooling and tests.
        When omitted the provider creates and owns its own client.
    base_url:
        Places API root, overridable for proxies and tests.
    """

    timeout_seconds = 8.0

    def __init__(
        self,
        api_key: str,
        http_client: httpx.AsyncClient | None = None,
        base_url: str = _DEFAULT_BASE_URL,
    ) -> None:
        self._api_key = api_key
        self._base_url = base_url.rstrip("/")
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
        if not self._api_key:
            raise ProviderUnavailableError(
                message="GOOGLE_PLACES_API_KEY is not configured",
                provider_name=_PROVIDER_NAME,
            )

        params = self.build_params(term, center, radius_meters)
        url = f"{self._base_url}/nearbysearch/json"
        try:
            response = await self._http.get(url, params={**params, "key": self._api_key})
            response.raise_for_status()
            payload = response.json()
        except httpx.HTTPStatusError as exc:
            if exc.response.status_code == 429:
                raise RateLimitError(
                    message="HTTP 429 from Places API",
                    provider_name=_PROVIDER_NAME,
                ) from exc
            raise ProviderError(
                message=f"HTTP {exc.response.status_code} from Places API",
                provider_name=_PROVIDER_NAME,
            ) from exc
        except httpx.HTTPError as exc:
            raise ProviderError(
                message=f"Places API request failed: {exc}",
                provider_name=_PROVIDER_NAME,
            ) from exc
        except ValueError as exc:
            raise ProviderError(
                message=f"Undecodable Places API response: {exc}",
                provider_name=_PROVIDER_NAME,
            ) from exc

        status = payload.get("status", "")
        if status == "OVER_QUERY_LIMIT":
            raise RateLimitError(
                message=payload.get("error_message") or status,
                provider_name=_PROVIDER_NAME,
            )
        if status not in _SUCCESS_STATUSES:
            raise ProviderError(
                message=f"{status}: {payload.get('error_message', 'unknown error')}",
                provider_name=_PROVIDER_NAME,
            )

        places = [
            place
            for place in (self._to_provider_place(item) for item in payload.get("results", []))
            if place is not None
        ]
        self._logger.info(
            "google_places_search_complete",
            term=term,
            status=status,
            result_count=len(places),
        )
        return places

    def get_provider_name(self) -> str:
        return _PROVIDER_NAME

    def is_available(self) -> bool:
        return bool(self._api_key)

    async def close(self) -> None:
        """Close the HTTP client if this provider created it."""
        if self._owns_client:
            await self._http.aclose()

    # ------------------------------------------------------------------
    # Request / response mapping
    # ------------------------------------------------------------------

    @staticmethod
    def build_params(term: str, center: Coordinate, radius_meters: float) -> dict[str, str]:
        """Query parameters (minus the key) for one nearby search."""
        params = {
            "location": f"{center.latitude},{center.longitude}",
            "radius": str(int(min(radius_meters, _MAX_RADIUS_METERS))),
        }
        place_type = TERM_TO_PLACE_TYPE.get(term.strip().lower())
        if place_type:
            params["type"] = place_type
        else:
            params["keyword"] = term.strip()
        return params

    @staticmethod
    def _to_provider_place(item: dict[str, Any]) -> ProviderPlace | None:
        location = (item.get("geometry") or {}).get("location") or {}
        lat, lng = location.get("lat"), location.get("lng")
        if lat is None or lng is None:
            return None
        opening_hours = item.get("opening_hours") or {}
        return ProviderPlace(
            provider_name=_PROVIDER_NAME,
            external_id=item.get("place_id"),
            name=item.get("name"),
            latitude=float(lat),
            longitude=float(lng),
            types=tuple(item.get("types") or ()),
            address=item.get("vicinity") or item.get("formatted_address"),
            phone=item.get("formatted_phone_number"),
            rating=item.get("rating"),
            is_open=opening_hours.get("open_now"),
        )
