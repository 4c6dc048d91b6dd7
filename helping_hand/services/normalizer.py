"""Result normalizer: raw adapter records -> canonical places.

Every adapter speaks its own vocabulary (Google ``types``, OSM tag values,
MapKit POI category names, local-index tags).  This service maps them all
onto the closed :class:`~helping_hand.models.place.Category` set with one
priority-ordered rule table, fills in the distance from the session anchor
when the adapter did not supply one, and sanitises the remaining fields.

Category resolution
-------------------
Rules are checked in order and the first hit wins:

  1. Name rules -- word-boundary regexes over the lowercased place name.
     A brand is a stronger signal than a generic tag: "Starbucks" is
     Coffee even when Google tags it ``store``.
  2. Type rules -- the place's type tags are walked in the adapter's
     order; the first tag present in ``TYPE_CATEGORIES`` decides.
  3. Default -- ``Category.SERVICES``, whatever the directive hinted.

MapKit-style names ("MKPOICategoryFoodMarket") are reduced to snake_case
tags ("food_market") before the lookup, so one table serves every backend.
"""

from __future__ import annotations

import math
import re
from dataclasses import dataclass
from typing import Iterable

import structlog
from pydantic import ValidationError

from helping_hand.models.place import Category, Coordinate, Place, ProviderPlace
from helping_hand.models.search import Anchor
from helping_hand.utils.geo import haversine_meters
from helping_hand.utils.logging import get_logger
from helping_hand.utils.text_normalizer import normalize_place_name

UNKNOWN_PLACE_NAME = "Unknown Place"

_MAPKIT_PREFIX = "MKPOICategory"
_CAMEL_BOUNDARY = re.compile(r"(?<=[a-z0-9])(?=[A-Z])")


@dataclass(frozen=True)
class CategoryRule:
    """One name rule: a compiled pattern and the category it implies."""

    pattern: re.Pattern[str]
    category: Category


def _name_rule(keywords: Iterable[str], category: Category) -> CategoryRule:
    alternatives = "|".join(re.escape(k) for k in keywords)
    return CategoryRule(re.compile(rf"\b(?:{alternatives})\b"), category)


# ORDERING MATTERS: the first matching rule wins.
NAME_RULES: tuple[CategoryRule, ...] = (
    CategoryRule(re.compile(r"\bapple\b.*\b(?:store|retail)\b"), Category.ELECTRONICS),
    _name_rule(("best buy", "micro center"), Category.ELECTRONICS),
    _name_rule(("starbucks", "coffee", "espresso"), Category.COFFEE),
    _name_rule(
        ("grocery", "supermarket", "walmart", "target", "kroger", "whole foods", "trader joe"),
        Category.GROCERY,
    ),
)

TYPE_CATEGORIES: dict[str, Category] = {
    # Food
    "restaurant": Category.FOOD,
    "meal_takeaway": Category.FOOD,
    "meal_delivery": Category.FOOD,
    "fast_food": Category.FOOD,
    "food_court": Category.FOOD,
    "bakery": Category.FOOD,
    "food": Category.FOOD,
    # Coffee
    "cafe": Category.COFFEE,
    "coffee_shop": Category.COFFEE,
    "coffee": Category.COFFEE,
    # Grocery
    "grocery_or_supermarket": Category.GROCERY,
    "supermarket": Category.GROCERY,
    "grocery": Category.GROCERY,
    "convenience": Category.GROCERY,
    "greengrocer": Category.GROCERY,
    "food_market": Category.GROCERY,
    # Electronics
    "electronics_store": Category.ELECTRONICS,
    "electronics": Category.ELECTRONICS,
    "computer": Category.ELECTRONICS,
    "mobile_phone": Category.ELECTRONICS,
    # Shopping
    "shopping_mall": Category.SHOPPING,
    "clothing_store": Category.SHOPPING,
    "shoe_store": Category.SHOPPING,
    "department_store": Category.SHOPPING,
    "store": Category.SHOPPING,
    "mall": Category.SHOPPING,
    "clothes": Category.SHOPPING,
    "shoes": Category.SHOPPING,
    # Health
    "hospital": Category.HEALTH,
    "pharmacy": Category.HEALTH,
    "drugstore": Category.HEALTH,
    "chemist": Category.HEALTH,
    "doctor": Category.HEALTH,
    "doctors": Category.HEALTH,
    "clinic": Category.HEALTH,
    "dentist": Category.HEALTH,
    "health": Category.HEALTH,
    # Transportation
    "gas_station": Category.TRANSPORTATION,
    "fuel": Category.TRANSPORTATION,
    "car_repair": Category.TRANSPORTATION,
    "car_dealer": Category.TRANSPORTATION,
    "charging_station": Category.TRANSPORTATION,
    "parking": Category.TRANSPORTATION,
    "transit_station": Category.TRANSPORTATION,
    "public_transport": Category.TRANSPORTATION,
    # Entertainment
    "movie_theater": Category.ENTERTAINMENT,
    "cinema": Category.ENTERTAINMENT,
    "theatre": Category.ENTERTAINMENT,
    "amusement_park": Category.ENTERTAINMENT,
    "zoo": Category.ENTERTAINMENT,
    "night_club": Category.ENTERTAINMENT,
    "nightclub": Category.ENTERTAINMENT,
    "bowling_alley": Category.ENTERTAINMENT,
}


def canonical_type_tag(tag: str) -> str:
    """Reduce any backend's type tag to a lowercase snake_case key."""
    tag = tag.strip()
    if tag.startswith(_MAPKIT_PREFIX):
        tag = _CAMEL_BOUNDARY.sub("_", tag[len(_MAPKIT_PREFIX):])
    return tag.lower().replace(" ", "_").replace("-", "_")


def resolve_category(name: str | None, types: Iterable[str] = ()) -> Category:
    """Resolve a place's category from its name and type tags."""
    lowered = (name or "").lower()
    for rule in NAME_RULES:
        if rule.pattern.search(lowered):
            return rule.category
    for tag in types:
        category = TYPE_CATEGORIES.get(canonical_type_tag(tag))
        if category is not None:
            return category
    return Category.SERVICES


class ResultNormalizer:
    """Stateless mapping from :class:`ProviderPlace` to :class:`Place`."""

    def __init__(self) -> None:
        self._logger: structlog.BoundLogger = get_logger(__name__)

    def normalize(self, raw: ProviderPlace, anchor: Anchor) -> Place:
        """Normalize one raw record relative to the session *anchor*.

        Raises
        ------
        pydantic.ValidationError
            If the raw coordinates are outside WGS84 bounds.
        """
        name = normalize_place_name(raw.name) or UNKNOWN_PLACE_NAME
        coordinate = Coordinate(latitude=raw.latitude, longitude=raw.longitude)

        distance = raw.distance_meters
        if distance is None or not math.isfinite(distance) or distance < 0:
            distance = haversine_meters(
                anchor.latitude, anchor.longitude, coordinate.latitude, coordinate.longitude
            )

        return Place(
            name=name,
            coordinate=coordinate,
            category=resolve_category(raw.name, raw.types),
            distance_meters=distance,
            address=normalize_place_name(raw.address) or None,
            phone=(raw.phone or "").strip() or None,
            rating=self._clamp_rating(raw.rating),
            is_open=raw.is_open,
            source_adapter=raw.provider_name,
        )

    def normalize_all(self, raws: Iterable[ProviderPlace], anchor: Anchor) -> list[Place]:
        """Normalize records in order, dropping any with invalid coordinates."""
        places: list[Place] = []
        for raw in raws:
            try:
                places.append(self.normalize(raw, anchor))
            except ValidationError as exc:
                self._logger.warning(
                    "place_dropped_invalid",
                    provider=raw.provider_name,
                    name=raw.name,
                    error=str(exc),
                )
        return places

    @staticmethod
    def _clamp_rating(rating: float | None) -> float | None:
        if rating is None or not math.isfinite(rating):
            return None
        return min(5.0, max(0.0, rating))
