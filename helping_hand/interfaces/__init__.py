"""Public interface definitions for all external collaborators.

Every place-search backend, the preference store and the response cache
are accessed exclusively through the abstract base classes defined here.
Concrete adapters live in ``helping_hand/providers/`` and are wired in
``helping_hand/main.py``; tests inject fakes or mocks instead.

CONCRETE PROVIDER MAP:
    Interface               →  Concrete implementations
    ──────────────────────────────────────────────────────
    IPlaceSearchProvider    →  LocalIndexPlaceProvider, GooglePlacesProvider,
                               OverpassPlaceProvider
    IPreferenceStore        →  SQLitePreferenceStore
    ICacheProvider          →  MemoryCacheProvider
"""

from helping_hand.interfaces.cache_provider import ICacheProvider
from helping_hand.interfaces.place_search_provider import IPlaceSearchProvider
from helping_hand.interfaces.preference_store import IPreferenceStore

__all__ = [
    "ICacheProvider",
    "IPlaceSearchProvider",
    "IPreferenceStore",
]
