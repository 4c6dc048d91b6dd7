"""Core place entities: categories, coordinates, raw and canonical places.

Every adapter returns :class:`ProviderPlace` records in whatever shape its
backend allows; the Result Normalizer
(``helping_hand/services/normalizer.py``) turns them into
canonical :class:`Place` objects that the rest of the engine consumes
read-only.

All models are frozen Pydantic v2 models.
"""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field

from helping_hand.utils.geo import format_distance


class Category(str, Enum):  # noqa: UP042 (StrEnum is 3.11+)
    """Closed set of place categories.

    Every :class:`Place` carries exactly one.  Raw provider types that do
    not resolve to anything more specific fall back to ``SERVICES``.
    The preference store keeps one affinity record per member.
    """

    FOOD = "Food"
    COFFEE = "Coffee"
    SHOPPING = "Shopping"
    ELECTRONICS = "Electronics"
    GROCERY = "Grocery"
    HEALTH = "Health"
    SERVICES = "Services"
    ENTERTAINMENT = "Entertainment"
    TRANSPORTATION = "Transportation"


class Coordinate(BaseModel):
    """A WGS84 latitude/longitude pair."""

    model_config = ConfigDict(frozen=True)

    latitude: float = Field(ge=-90.0, le=90.0)
    longitude: float = Field(ge=-180.0, le=180.0)


class ProviderPlace(BaseModel):
    """A raw record from one adapter, before normalization.

    ``types`` holds the backend's native type tags in the backend's own
    order (Google ``types``, OSM tag values, MapKit POI category names,
    local-index tags).  The normalizer walks them in that order, so an
    adapter should put its most specific tag first.
    """

    model_config = ConfigDict(frozen=True)

    provider_name: str
    external_id: str | None = None
    name: str | None = None
    latitude: float
    longitude: float
    types: tuple[str, ...] = ()
    distance_meters: float | None = None
    address: str | None = None
    phone: str | None = None
    rating: float | None = None
    is_open: bool | None = None


class Place(BaseModel):
    """Canonical, immutable place entity produced by the normalizer."""

    model_config = ConfigDict(frozen=True)

    name: str
    coordinate: Coordinate
    category: Category
    distance_meters: float | None = None    # From the session anchor
    address: str | None = None
    phone: str | None = None
    rating: float | None = Field(default=None, ge=0.0, le=5.0)
    is_open: bool | None = None
    source_adapter: str

    @property
    def completeness(self) -> int:
        """Number of optional contact/quality attributes that are present."""
        return sum(
            value is not None for value in (self.rating, self.phone, self.address)
        )

    @property
    def formatted_distance(self) -> str | None:
        if self.distance_meters is None:
            return None
        return format_distance(self.distance_meters)


class PlaceRecommendation(BaseModel):
    """A ranked place together with its score and human-readable reasons."""

    model_config = ConfigDict(frozen=True)

    place: Place
    score: float
    reasoning_factors: tuple[str, ...] = ()
