"""Preference store implementations.

SQLitePreferenceStore persists category affinities and the interaction
history to a local database file.
"""

from helping_hand.providers.preference.sqlite_preference_store import SQLitePreferenceStore

__all__ = ["SQLitePreferenceStore"]
