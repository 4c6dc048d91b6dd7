"""Place-search adapter implementations.

LocalIndexPlaceProvider needs no network and is always registered.
GooglePlacesProvider requires an API key; OverpassPlaceProvider queries
public OpenStreetMap data and can be disabled in configuration.  The
fan-out coordinator queries every available adapter concurrently.
"""

from helping_hand.providers.search.google_places_provider import GooglePlacesProvider
from helping_hand.providers.search.local_index_provider import LocalIndexPlaceProvider
from helping_hand.providers.search.overpass_provider import OverpassPlaceProvider

__all__ = ["GooglePlacesProvider", "LocalIndexPlaceProvider", "OverpassPlaceProvider"]
