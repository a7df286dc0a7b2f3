class GeocodingError(Exception):
    """Base class for geocoding failures."""


class QueueFullError(GeocodingError):
    """The provider's request queue is at capacity; the request was not queued."""

    def __init__(self, provider, queue_length, retry_after):
        self.provider = provider
        self.queue_length = queue_length
        self.retry_after = retry_after
        super().__init__(f"Geocoding queue for {provider} is full ({queue_length} pending). Try again later.")


class ProviderTransientError(GeocodingError):
    """A single provider call failed (network, HTTP status or unreadable payload)."""

    def __init__(self, provider, message):
        self.provider = provider
        super().__init__(f"{provider}: {message}")


class ProviderNotConfiguredError(GeocodingError):
    def __init__(self, provider):
        self.provider = provider
        super().__init__(f"{provider} API key is not configured")


class GeocodeNotFoundError(GeocodingError):
    def __init__(self, provider, city):
        self.provider = provider
        self.city = city
        super().__init__(f"No results found for {city} from {provider}")


class AllProvidersExhausted(GeocodingError):
    """Every configured provider failed or found nothing. Recovered by the static fallback."""


class StorageUnavailableError(GeocodingError):
    """The persistent key-value store cannot be used."""


class StorageFullError(StorageUnavailableError):
    """The persistent key-value store rejected a write for lack of space."""
