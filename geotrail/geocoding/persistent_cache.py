"""
Persistent geocode cache with TTL expiry.

The cache is an optimization only: when the store is missing or failing,
every operation logs and behaves as a miss / no-op instead of raising.
"""
from dataclasses import dataclass
from typing import Optional
import logging
import time

from pydantic import ValidationError

from geotrail.config import CACHE_TTL_SECONDS
from geotrail.geocoding.errors import StorageFullError, StorageUnavailableError
from geotrail.geocoding.storage import KeyValueStore
from geotrail.models.geocode import CacheEntry, GeocodeResult, normalize_city_key

logger = logging.getLogger(__name__)

CACHE_KEY_PREFIX = "geocode_cache_"


@dataclass(frozen=True)
class CacheStats:
    total: int = 0
    expired: int = 0
    valid: int = 0
    approx_size_bytes: int = 0


class PersistentCache:
    def __init__(self, store: Optional[KeyValueStore], default_ttl: float = CACHE_TTL_SECONDS, clock=time.time):
        self.store = store
        self.default_ttl = default_ttl
        self.clock = clock

    @staticmethod
    def storage_key(city_name: str) -> str:
        return f"{CACHE_KEY_PREFIX}{normalize_city_key(city_name)}"

    def get(self, city_name: str) -> Optional[GeocodeResult]:
        """Return the cached result, or None when missing, unreadable or expired."""
        if not city_name or self.store is None:
            return None

        key = self.storage_key(city_name)
        try:
            raw = self.store.get(key)
        except StorageUnavailableError as e:
            logger.warning(f"Error retrieving geocode data from cache: {e}")
            return None
        if raw is None:
            return None

        entry = self._parse(raw)
        now = self.clock()
        if entry is None or entry.is_expired(now):
            self._discard(key)
            logger.info(f"Removed {'unreadable' if entry is None else 'expired'} cache for {city_name}")
            return None

        logger.debug(f"Using cached geocode data for {city_name}, cached {round((now - entry.timestamp) / 60)} minutes ago")
        return entry.data

    def put(self, city_name: str, result: GeocodeResult, ttl: Optional[float] = None) -> None:
        if not city_name or result is None or self.store is None:
            return
        if not result.cacheable:
            logger.debug(f"Not caching {result.source.value} coordinates for {city_name}")
            return

        ttl = self.default_ttl if ttl is None else ttl
        now = self.clock()
        key = self.storage_key(city_name)
        payload = CacheEntry(key=key, timestamp=now, expires_at=now + ttl, data=result).model_dump_json(by_alias=True)

        try:
            self.store.set(key, payload)
        except StorageFullError as e:
            logger.warning(f"Geocode cache is full ({e}), removing expired entries and retrying")
            self.sweep_expired()
            try:
                self.store.set(key, payload)
            except StorageUnavailableError as retry_error:
                logger.warning(f"Giving up caching geocode data for {city_name}: {retry_error}")
                return
        except StorageUnavailableError as e:
            logger.warning(f"Error saving geocode data to cache: {e}")
            return

        logger.info(f"Cached geocode data for {city_name}, expires in {ttl / 86400:.1f} days")

    def remove(self, city_name: str) -> None:
        if not city_name or self.store is None:
            return
        self._discard(self.storage_key(city_name))

    def sweep_expired(self) -> int:
        """Remove every expired or unreadable entry. Returns the number removed."""
        if self.store is None:
            return 0

        removed = 0
        now = self.clock()
        try:
            for key in self.store.keys(CACHE_KEY_PREFIX):
                raw = self.store.get(key)
                if raw is None:
                    continue
                entry = self._parse(raw)
                if entry is None or entry.is_expired(now):
                    self.store.remove(key)
                    removed += 1
        except StorageUnavailableError as e:
            logger.warning(f"Error cleaning up expired cache: {e}")

        if removed > 0:
            logger.info(f"Cleaned up {removed} expired geocode cache entries")
        return removed

    def stats(self) -> CacheStats:
        if self.store is None:
            return CacheStats()

        total = expired = valid = size = 0
        now = self.clock()
        try:
            for key in self.store.keys(CACHE_KEY_PREFIX):
                raw = self.store.get(key)
                if raw is None:
                    continue
                total += 1
                # Approximate size in bytes (2 bytes per character)
                size += len(raw) * 2
                entry = self._parse(raw)
                if entry is None or entry.is_expired(now):
                    expired += 1
                else:
                    valid += 1
        except StorageUnavailableError as e:
            logger.warning(f"Error getting geocode cache stats: {e}")
            return CacheStats()

        return CacheStats(total=total, expired=expired, valid=valid, approx_size_bytes=size)

    def _parse(self, raw: str) -> Optional[CacheEntry]:
        try:
            return CacheEntry.model_validate_json(raw)
        except ValidationError:
            return None

    def _discard(self, key: str) -> None:
        try:
            self.store.remove(key)
        except StorageUnavailableError as e:
            logger.warning(f"Error removing geocode data from cache: {e}")
