"""
Runtime configuration for the geocode resolver.

Everything is read from the environment once, at import time. A provider whose
API key is missing is simply left out of the chain.
"""
import os


def _env_bool(name, default):
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


# Provider credentials
AMAP_API_KEY = os.getenv("AMAP_API_KEY")
MAPQUEST_API_KEY = os.getenv("MAPQUEST_API_KEY")
NOMINATIM_ENABLED = _env_bool("NOMINATIM_ENABLED", True)
NOMINATIM_USER_AGENT = os.getenv("NOMINATIM_USER_AGENT", "TravelTracker/1.0")

# Outbound HTTP
REQUEST_TIMEOUT = float(os.getenv("REQUEST_TIMEOUT", "10"))

# Request queue (per provider)
QUEUE_MIN_INTERVAL = float(os.getenv("QUEUE_MIN_INTERVAL", "0.5"))
QUEUE_MAX_SIZE = int(os.getenv("QUEUE_MAX_SIZE", "100"))

# Persistent cache
DATABASE_URL = os.getenv("DB_URL", "sqlite:///geocode_cache.sqlite")
CACHE_TTL_SECONDS = int(os.getenv("CACHE_TTL_SECONDS", str(7 * 24 * 3600)))
CACHE_MAX_ENTRIES = int(os.getenv("CACHE_MAX_ENTRIES", "0")) or None

# Batch geocoding of travel points
BATCH_SIZE = int(os.getenv("BATCH_SIZE", "5"))
BATCH_DELAY = float(os.getenv("BATCH_DELAY", "0.2"))

LOG_DIR = os.getenv("LOG_DIR", os.path.join(os.getcwd(), "logs"))
