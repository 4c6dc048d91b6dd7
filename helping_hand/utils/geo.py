"""Small spherical-geometry helpers shared by providers and services."""

from __future__ import annotations

import math

_EARTH_RADIUS_M = 6_371_000.0


def haversine_meters(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """Great-circle distance in metres between two (lat, lon) points."""
    phi1, phi2 = math.radians(lat1), math.radians(lat2)
    dphi = phi2 - phi1
    dlmb = math.radians(lon2 - lon1)
    x = math.sin(dphi / 2) ** 2 + math.cos(phi1) * math.cos(phi2) * math.sin(dlmb / 2) ** 2
    return 2.0 * _EARTH_RADIUS_M * math.asin(min(1.0, math.sqrt(x)))


def within_degrees(
    lat1: float, lon1: float, lat2: float, lon2: float, tolerance: float
) -> bool:
    """Return ``True`` if both axes differ by at most *tolerance* degrees."""
    # Small epsilon so 0.001 apart still counts as "within 0.001".
    return abs(lat1 - lat2) <= tolerance + 1e-12 and abs(lon1 - lon2) <= tolerance + 1e-12


def format_distance(meters: float) -> str:
    """Render a distance as ``"350m"`` below a kilometre, ``"1.2km"`` above."""
    if meters < 1000:
        return f"{int(meters)}m"
    return f"{meters / 1000:.1f}km"
