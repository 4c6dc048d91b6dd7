"""Deployment settings read by pydantic-settings.

Each field maps to the upper-cased environment variable of the same name
(``google_places_api_key`` -> ``GOOGLE_PLACES_API_KEY``); a ``.env`` file
in the working directory is consulted when the variable is unset.
Algorithm tunables are not here; they live in ``config/config.yaml``.
"""

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8")

    # Place adapters.  An empty key leaves Google Places unregistered.
    google_places_api_key: str = ""
    google_places_base_url: str = "https://maps.googleapis.com/maps/api/place"
    overpass_url: str = "https://overpass-api.de/api/interpreter"
    overpass_enabled: bool = True
    local_index_path: str = "data/local_places.json"

    # Fan-out and response cache
    provider_timeout_seconds: float = 8.0
    max_concurrent_provider_calls: int = 8
    search_cache_ttl: int = 300
    search_cache_max_size: int = 512

    # Used when the device has no usable fix
    fallback_latitude: float = 37.7749
    fallback_longitude: float = -122.4194
    fallback_accuracy_meters: float = 5000.0
    location_staleness_seconds: float = 120.0

    preference_db_path: str = "data/preferences.db"

    app_env: str = "development"
    log_level: str = "INFO"

    def get_available_place_providers(self) -> list[str]:
        """Names of the adapters this deployment can build, in fan-out order."""
        names = ["local_index"]
        if self.google_places_api_key:
            names.append("google_places")
        if self.overpass_enabled and self.overpass_url:
            names.append("overpass")
        return names
