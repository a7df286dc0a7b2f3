"""
Geocode resolver: turns a city name into coordinates, whatever it takes.

Lookup order is in-memory cache, persistent cache, then each configured
provider in turn (each behind its own rate-limited queue), then the built-in
city table, and finally a fixed default point. Not finding a city is never an
error; a ``default`` result tells the caller the coordinate is only a guess.
"""
import asyncio
import logging
import time
from typing import Dict, Iterable, List, Optional, Tuple

from geotrail.config import BATCH_DELAY, BATCH_SIZE, QUEUE_MAX_SIZE, QUEUE_MIN_INTERVAL
from geotrail.geocoding.city_coordinates import default_result, local_result
from geotrail.geocoding.errors import (
    AllProvidersExhausted,
    GeocodeNotFoundError,
    GeocodingError,
    ProviderNotConfiguredError,
    ProviderTransientError,
)
from geotrail.geocoding.memory_cache import InMemoryCache
from geotrail.geocoding.outcomes import NOT_FOUND, TRANSIENT, Diagnostic, ProviderOutcome, Resolution
from geotrail.geocoding.persistent_cache import PersistentCache
from geotrail.geocoding.providers import GeocodingProvider
from geotrail.geocoding.request_queue import RequestQueue
from geotrail.models.geocode import CityQuery, GeocodeResult
from geotrail.models.travel import TravelPoint

logger = logging.getLogger(__name__)


class GeocodeResolver:
    def __init__(
        self,
        providers: Optional[Iterable[GeocodingProvider]] = None,
        memory_cache: Optional[InMemoryCache] = None,
        persistent_cache: Optional[PersistentCache] = None,
        min_interval: float = QUEUE_MIN_INTERVAL,
        max_queue_size: int = QUEUE_MAX_SIZE,
        batch_size: int = BATCH_SIZE,
        batch_delay: float = BATCH_DELAY,
    ):
        self.providers: List[GeocodingProvider] = list(providers or [])
        self.memory_cache = memory_cache if memory_cache is not None else InMemoryCache()
        self.persistent_cache = persistent_cache if persistent_cache is not None else PersistentCache(None)
        self.batch_size = max(1, batch_size)
        self.batch_delay = batch_delay
        self.queues: Dict[str, RequestQueue] = {
            provider.name: RequestQueue(
                provider.name,
                self._make_handler(provider),
                min_interval=min_interval,
                max_queue_size=max_queue_size,
            )
            for provider in self.providers
        }

        active = [provider.name for provider in self.active_providers]
        logger.info(f"Geocode resolver ready with providers: {', '.join(active) if active else 'none (built-in table only)'}")

    @property
    def active_providers(self) -> List[GeocodingProvider]:
        return [provider for provider in self.providers if provider.is_configured]

    async def resolve(self, city_name: str, force_refresh: bool = False, priority: bool = False) -> GeocodeResult:
        """Best-effort coordinates for ``city_name``. Raises only for a blank name or a full queue."""
        resolution = await self.resolve_detailed(city_name, force_refresh=force_refresh, priority=priority)
        return resolution.result

    async def resolve_detailed(self, city_name: str, force_refresh: bool = False, priority: bool = False) -> Resolution:
        query = CityQuery.from_name(city_name, force_refresh=force_refresh)

        if not force_refresh:
            cached = self._cached(query)
            if cached is not None:
                return Resolution(result=cached.as_cached(), from_cache=True)

            pending = self.memory_cache.get_pending(query.key)
            if pending is not None:
                logger.debug(f"Joining in-flight geocoding of {query.name}")
                return await asyncio.shield(pending)

        task = asyncio.ensure_future(self._resolve_uncached(query, priority))
        self._track_pending(query.key, task)
        return await asyncio.shield(task)

    async def resolve_with(
        self, provider_name: str, city_name: str, force_refresh: bool = False, priority: bool = False
    ) -> GeocodeResult:
        """
        Geocode through one named provider only, without any fallback.

        Cached results are still used unless ``force_refresh`` is set.
        Raises ProviderNotConfiguredError, GeocodeNotFoundError,
        ProviderTransientError or QueueFullError.
        """
        provider = next((p for p in self.providers if p.name == provider_name), None)
        if provider is None or not provider.is_configured:
            raise ProviderNotConfiguredError(provider_name)

        query = CityQuery.from_name(city_name, force_refresh=force_refresh)
        pending_key = f"{provider.name}:{query.key}"
        if not force_refresh:
            cached = self._cached(query)
            if cached is not None:
                return cached.as_cached()

            pending = self.memory_cache.get_pending(pending_key)
            if pending is not None:
                logger.debug(f"Joining in-flight {provider.name} geocoding of {query.name}")
                return await asyncio.shield(pending)

        task = asyncio.ensure_future(self._lookup_with(provider, query, priority))
        self._track_pending(pending_key, task)
        return await asyncio.shield(task)

    async def geocode_travel_points(
        self, points: Iterable[TravelPoint], resolved: Optional[Dict[str, GeocodeResult]] = None
    ) -> Dict[str, GeocodeResult]:
        """
        Resolve the cities of ``points`` in small batches.

        Cities within a batch are resolved concurrently; batches run one after
        another with ``batch_delay`` between them. Cities already present in
        ``resolved`` are skipped, so calling this again with the previous
        return value only looks up what is new.
        """
        results = dict(resolved or {})
        cities: List[str] = []
        for point in points:
            city = (point.city or "").strip()
            if not city or city in cities or isinstance(results.get(city), GeocodeResult):
                continue
            cities.append(city)

        if not cities:
            logger.info("All travel points already have coordinates")
            return results

        start_time = time.time()
        batches = [cities[i:i + self.batch_size] for i in range(0, len(cities), self.batch_size)]
        logger.info(f"Geocoding {len(cities)} cities in {len(batches)} batches of up to {self.batch_size}")

        done = 0
        failed = 0
        for index, batch in enumerate(batches):
            if index > 0 and self.batch_delay > 0:
                await asyncio.sleep(self.batch_delay)

            tasks = [asyncio.ensure_future(self._resolve_city(city)) for city in batch]
            for finished in asyncio.as_completed(tasks):
                city, result = await finished
                done += 1
                if result is None:
                    failed += 1
                else:
                    results[city] = result
            logger.info(f"Geocoding progress: {done}/{len(cities)} ({done / len(cities) * 100:.1f}%)")

        duration = time.time() - start_time
        logger.info(f"Batch geocoding completed in {duration:.2f} seconds: {done - failed} resolved, {failed} failed")
        return results

    def invalidate(self, city_name: str) -> None:
        query = CityQuery.from_name(city_name)
        self.memory_cache.remove(query.key)
        self.persistent_cache.remove(query.name)
        logger.info(f"Removed cached coordinates for {query.name}")

    def queue_lengths(self) -> Dict[str, int]:
        return {name: queue.get_queue_length() for name, queue in self.queues.items()}

    def close(self) -> None:
        for queue in self.queues.values():
            queue.close()
        for provider in self.providers:
            provider.close()

    def _make_handler(self, provider: GeocodingProvider):
        async def handler(query: CityQuery) -> Optional[GeocodeResult]:
            # requests is blocking; keep the event loop free while it runs
            return await asyncio.to_thread(provider.geocode, query.name)
        return handler

    def _track_pending(self, key: str, task: asyncio.Task) -> None:
        # Registered before the first await so concurrent callers find it
        self.memory_cache.set_pending(key, task)
        task.add_done_callback(lambda done: self.memory_cache.clear_pending(key, done))

    async def _lookup_with(self, provider: GeocodingProvider, query: CityQuery, priority: bool) -> GeocodeResult:
        result = await self.queues[provider.name].enqueue(query, priority=priority)
        if result is None:
            raise GeocodeNotFoundError(provider.name, query.name)
        self._store(query, result)
        return result

    def _cached(self, query: CityQuery) -> Optional[GeocodeResult]:
        result = self.memory_cache.get(query.key)
        if result is not None:
            logger.debug(f"Using in-memory coordinates for {query.name}")
            return result

        result = self.persistent_cache.get(query.name)
        if result is not None:
            self.memory_cache.put(query.key, result)
            return result
        return None

    def _store(self, query: CityQuery, result: GeocodeResult) -> None:
        if not result.cacheable:
            return
        self.memory_cache.put(query.key, result)
        self.persistent_cache.put(query.name, result)

    async def _resolve_uncached(self, query: CityQuery, priority: bool) -> Resolution:
        diagnostics: List[Diagnostic] = []
        try:
            result = await self._walk_providers(query, priority, diagnostics)
        except AllProvidersExhausted:
            result = self._fallback(query)
        self._store(query, result)
        return Resolution(result=result, diagnostics=diagnostics)

    async def _walk_providers(self, query: CityQuery, priority: bool, diagnostics: List[Diagnostic]) -> GeocodeResult:
        for provider in self.active_providers:
            outcome = await self._attempt(provider, query, priority)
            if outcome.ok:
                return outcome.result
            diagnostics.append(outcome.diagnostic)
        raise AllProvidersExhausted(query.name)

    async def _attempt(self, provider: GeocodingProvider, query: CityQuery, priority: bool) -> ProviderOutcome:
        # QueueFullError is backpressure for the caller, let it through
        future = self.queues[provider.name].enqueue(query, priority=priority)
        try:
            result = await future
        except ProviderTransientError as e:
            logger.warning(f"Geocoding {query.name} with {provider.name} failed: {e}")
            return ProviderOutcome(diagnostic=Diagnostic(provider.name, TRANSIENT, str(e)))
        except Exception as e:
            logger.error(f"Unexpected error geocoding {query.name} with {provider.name}: {e}")
            return ProviderOutcome(diagnostic=Diagnostic(provider.name, TRANSIENT, str(e)))

        if result is None:
            return ProviderOutcome(diagnostic=Diagnostic(provider.name, NOT_FOUND))
        return ProviderOutcome(result=result)

    def _fallback(self, query: CityQuery) -> GeocodeResult:
        result = local_result(query.name)
        if result is not None:
            logger.info(f"Found local coordinates for {query.name}: {result.coordinate.to_location_string()}")
            return result
        logger.warning(f"No coordinates found for {query.name}, using default location")
        return default_result()

    async def _resolve_city(self, city: str) -> Tuple[str, Optional[GeocodeResult]]:
        try:
            return city, await self.resolve(city)
        except (GeocodingError, ValueError) as e:
            logger.error(f"Error geocoding {city}: {e}")
            return city, None
