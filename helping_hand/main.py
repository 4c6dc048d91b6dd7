"""Composition root for the hybrid place search engine.

Wires providers, services and the pipeline together via dependency
injection.  Loads configuration from ``.env`` and ``config/config.yaml``
and configures structured logging.

``build_engine`` returns the wired components for embedding the engine in
a host application; ``run_search`` is a one-shot helper for scripting.
"""

from __future__ import annotations

from typing import Any

import httpx
import structlog

from helping_hand.config.loader import load_config
from helping_hand.config.settings import Settings
from helping_hand.interfaces.place_search_provider import IPlaceSearchProvider
from helping_hand.models.search import PositionFix, SearchDirective, SearchOutcome
from helping_hand.pipeline.fan_out import FanOutCoordinator
from helping_hand.pipeline.orchestrator import HybridSearchEngine
from helping_hand.pipeline.session_registry import SessionRegistry
from helping_hand.providers.cache.memory_cache import MemoryCacheProvider
from helping_hand.providers.preference.sqlite_preference_store import SQLitePreferenceStore
from helping_hand.providers.search.google_places_provider import GooglePlacesProvider
from helping_hand.providers.search.local_index_provider import LocalIndexPlaceProvider
from helping_hand.providers.search.overpass_provider import OverpassPlaceProvider
from helping_hand.services.deduplicator import DedupConfig, Deduplicator
from helping_hand.services.location_policy import LocationPolicyConfig, LocationQualityPolicy
from helping_hand.services.normalizer import ResultNormalizer
from helping_hand.services.ranking_engine import RankingEngine, weights_from_config
from helping_hand.utils.errors import ConfigurationError
from helping_hand.utils.logging import configure_logging, get_logger

_logger: structlog.BoundLogger = get_logger(__name__)


def _build_providers(
    app_settings: Settings,
    config: dict[str, Any],
    http_client: httpx.AsyncClient,
) -> list[IPlaceSearchProvider]:
    """Instantiate the enabled place-search adapters in priority order."""
    enabled = config.get("providers", {}).get("available", ["local_index"])
    local_cfg = config.get("local_index", {})
    overpass_cfg = config.get("overpass", {})

    providers: list[IPlaceSearchProvider] = []
    if "local_index" in enabled:
        providers.append(
            LocalIndexPlaceProvider(
                index_path=app_settings.local_index_path,
                min_match_score=float(local_cfg.get("min_match_score", 0.8)),
                max_results=int(local_cfg.get("max_results", 20)),
            )
        )
    if "google_places" in enabled:
        providers.append(
            GooglePlacesProvider(
                api_key=app_settings.google_places_api_key,
                http_client=http_client,
                base_url=app_settings.google_places_base_url,
            )
        )
    if "overpass" in enabled:
        providers.append(
            OverpassPlaceProvider(
                http_client=http_client,
                url=app_settings.overpass_url,
                enabled=app_settings.overpass_enabled,
                max_results=int(overpass_cfg.get("max_results", 40)),
            )
        )
    return providers


def build_engine(
    custom_settings: Settings | None = None,
    config_path: str = "config/config.yaml",
    http_client: httpx.AsyncClient | None = None,
) -> dict[str, Any]:
    """Construct the search engine and its collaborators.

    Parameters
    ----------
    custom_settings:
        Application settings.  A fresh ``Settings()`` when omitted.
    config_path:
        YAML file with the static defaults.
    http_client:
        Shared client for the HTTP adapters; created when omitted.

    Returns
    -------
    dict
        Components keyed by role: ``engine``, ``preference_store``,
        ``cache``, ``providers``, ``http_client``, ``settings``, ``config``.

    Raises
    ------
    ConfigurationError
        If the configuration values cannot be turned into components.
    """
    s = custom_settings or Settings()
    config = load_config(config_path, settings=s)

    configure_logging(
        log_level=s.log_level,
        json_output=(s.app_env == "production"),
    )

    client = http_client or httpx.AsyncClient(timeout=s.provider_timeout_seconds)
    providers_cfg = config.get("providers", {})
    cache_cfg = config.get("cache", {})

    try:
        location_policy = LocationQualityPolicy(LocationPolicyConfig.from_config(config))
        deduplicator = Deduplicator(DedupConfig.from_config(config))
        ranking_engine = RankingEngine(weights_from_config(config))
        cache_ttl = int(cache_cfg.get("ttl", s.search_cache_ttl))
        cache = MemoryCacheProvider(
            max_size=int(cache_cfg.get("max_size", s.search_cache_max_size)),
            ttl=cache_ttl,
        )
        providers = _build_providers(s, config, client)
    except (KeyError, TypeError, ValueError) as exc:
        raise ConfigurationError(message=f"Invalid configuration: {exc}") from exc

    registry = SessionRegistry()
    coordinator = FanOutCoordinator(
        registry,
        default_timeout=float(providers_cfg.get("timeout_seconds", s.provider_timeout_seconds)),
        max_concurrent_calls=int(
            providers_cfg.get("max_concurrent_calls", s.max_concurrent_provider_calls)
        ),
        cache=cache,
        cache_ttl=cache_ttl,
    )
    preference_store = SQLitePreferenceStore(
        db_path=config.get("preferences", {}).get("db_path", s.preference_db_path)
    )

    engine = HybridSearchEngine(
        providers=providers,
        preference_store=preference_store,
        location_policy=location_policy,
        normalizer=ResultNormalizer(),
        deduplicator=deduplicator,
        ranking_engine=ranking_engine,
        registry=registry,
        coordinator=coordinator,
    )

    _logger.info(
        "engine_built",
        app_env=s.app_env,
        providers=[p.get_provider_name() for p in providers],
        preference_db=str(preference_store.get_provider_name()),
    )
    return {
        "engine": engine,
        "preference_store": preference_store,
        "cache": cache,
        "providers": providers,
        "http_client": client,
        "settings": s,
        "config": config,
    }


async def run_search(
    directive: SearchDirective,
    fix: PositionFix | None = None,
    custom_settings: Settings | None = None,
) -> SearchOutcome:
    """Build an engine, run one search, and release its resources."""
    components = build_engine(custom_settings)
    client: httpx.AsyncClient = components["http_client"]
    try:
        await components["preference_store"].initialize()
        return await components["engine"].run_search(directive, fix)
    finally:
        await client.aclose()
