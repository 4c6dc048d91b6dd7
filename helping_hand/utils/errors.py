"""Exception hierarchy for the place search engine.

Every application error derives from :class:`HelpingHandError`, which
optionally names the external service involved ("google_places",
"overpass", "sqlite_preferences") so log lines and handlers can tell
adapters apart.

    HelpingHandError
    +-- DirectiveError              request cannot drive a search
    +-- ProviderError               one adapter call failed
    |   +-- ProviderUnavailableError    adapter not configured or unreachable
    |   +-- RateLimitError              provider quota exhausted
    +-- PreferenceStoreError        preference database unreadable/unwritable
    +-- ConfigurationError          bad configuration at build time

Only :class:`DirectiveError` reaches a ``run_search`` caller.  The fan-out
coordinator turns adapter errors into empty contributions, and the search
engine ranks with neutral affinities when the preference store fails.
"""


class HelpingHandError(Exception):
    """Base class.  ``str(exc)`` reads ``[provider] message`` when a provider is set."""

    default_message = "Place search failed"

    def __init__(self, message: str | None = None, provider_name: str | None = None) -> None:
        self._message = message or self.default_message
        self._provider_name = provider_name
        super().__init__(self._message)

    @property
    def message(self) -> str:
        return self._message

    @property
    def provider_name(self) -> str | None:
        return self._provider_name

    def __str__(self) -> str:
        if self._provider_name:
            return f"[{self._provider_name}] {self._message}"
        return self._message


class DirectiveError(HelpingHandError):
    """The search directive has no usable search term."""

    default_message = "Search directive is malformed"


class ProviderError(HelpingHandError):
    """A place-search adapter call failed.

    Covers transport errors, non-success HTTP statuses, undecodable bodies
    and API-level error statuses.
    """

    default_message = "Place search provider call failed"


class ProviderUnavailableError(ProviderError):
    default_message = "Place search provider is unavailable"


class RateLimitError(ProviderError):
    default_message = "Rate limit exceeded"


class PreferenceStoreError(HelpingHandError):
    """The preference database could not be read or written."""

    default_message = "Preference store is unavailable"


class ConfigurationError(HelpingHandError):
    default_message = "Invalid or missing configuration"
