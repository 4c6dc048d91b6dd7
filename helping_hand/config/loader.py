"""Assemble the runtime configuration dictionary.

Two layers, the second winning on conflicts:

* ``config/config.yaml`` holds the tunables (radius steps, dedup
  thresholds, ranking weights, per-adapter timeouts).
* :class:`Settings` holds deployment values read from the environment
  and ``.env``: API keys, fallback anchor, database path, log level.

Nested mappings are merged key by key, so an environment value for
``location.staleness_seconds`` leaves ``location.radius_steps`` intact.
"""

from pathlib import Path
from typing import Any

import yaml

from helping_hand.config.settings import Settings
from helping_hand.utils.errors import ConfigurationError


def load_config(path: str = "config/config.yaml", settings: Settings | None = None) -> dict:
    """Return the merged configuration.

    A missing YAML file is not an error; the result then carries only the
    settings-derived sections.  An unparsable one raises
    :class:`ConfigurationError`.
    """
    config = _read_yaml(Path(path))
    _deep_merge(config, _env_overrides(settings or Settings()))
    return config


def _read_yaml(path: Path) -> dict[str, Any]:
    if not path.exists():
        return {}
    try:
        loaded = yaml.safe_load(path.read_text(encoding="utf-8"))
    except yaml.YAMLError as exc:
        raise ConfigurationError(f"Cannot parse {path}: {exc}") from exc
    if loaded is None:
        return {}
    if not isinstance(loaded, dict):
        raise ConfigurationError(f"{path} must contain a mapping at the top level")
    return loaded


def _env_overrides(settings: Settings) -> dict[str, Any]:
    fallback = {
        "latitude": settings.fallback_latitude,
        "longitude": settings.fallback_longitude,
        "accuracy_meters": settings.fallback_accuracy_meters,
    }
    return {
        "app": {"env": settings.app_env},
        "providers": {
            "available": settings.get_available_place_providers(),
            "timeout_seconds": settings.provider_timeout_seconds,
            "max_concurrent_calls": settings.max_concurrent_provider_calls,
        },
        "cache": {"ttl": settings.search_cache_ttl, "max_size": settings.search_cache_max_size},
        "location": {
            "fallback": fallback,
            "staleness_seconds": settings.location_staleness_seconds,
        },
        "preferences": {"db_path": settings.preference_db_path},
        "logging": {"level": settings.log_level},
    }


def _deep_merge(base: dict, overrides: dict) -> None:
    """Merge *overrides* into *base* in place; non-mapping values replace."""
    for key, value in overrides.items():
        current = base.get(key)
        if isinstance(current, dict) and isinstance(value, dict):
            _deep_merge(current, value)
        else:
            base[key] = value
