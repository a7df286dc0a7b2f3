from fastapi import FastAPI, HTTPException, Depends, BackgroundTasks
from fastapi.responses import JSONResponse
from contextlib import asynccontextmanager
from dataclasses import asdict
import logging
from typing import Optional, List

from geotrail.config import CACHE_MAX_ENTRIES
from geotrail.db.database import create_tables
from geotrail.geocoding.errors import (
    GeocodeNotFoundError,
    ProviderNotConfiguredError,
    ProviderTransientError,
    QueueFullError,
)
from geotrail.geocoding.geometry import calculate_bounds, calculate_center
from geotrail.geocoding.persistent_cache import PersistentCache
from geotrail.geocoding.providers import build_providers
from geotrail.geocoding.resolver import GeocodeResolver
from geotrail.geocoding.storage import SqlKeyValueStore
from geotrail.logging_config import setup_logging
from geotrail.models.geocode import GeocodeResult, GeocodeSource
from geotrail.models.travel import TravelPoint

logger = logging.getLogger(__name__)

INFO_BY_SOURCE = {
    GeocodeSource.CACHE: "OK (cached)",
    GeocodeSource.AMAP: "OK (AMap)",
    GeocodeSource.OPENSTREETMAP: "OK (OpenStreetMap)",
    GeocodeSource.MAPQUEST: "OK (MapQuest)",
    GeocodeSource.LOCAL_DB: "OK (Local DB)",
    GeocodeSource.DEFAULT: "Using default coordinates",
}

_resolver: Optional[GeocodeResolver] = None


def build_resolver():
    # The persistent cache is optional; run without it if the database is unusable
    try:
        create_tables()
        store = SqlKeyValueStore(max_entries=CACHE_MAX_ENTRIES)
    except Exception as e:
        logger.warning(f"Persistent geocode cache unavailable, continuing without it: {e}")
        store = None
    return GeocodeResolver(providers=build_providers(), persistent_cache=PersistentCache(store))


def get_resolver():
    global _resolver
    if _resolver is None:
        _resolver = build_resolver()
    return _resolver


@asynccontextmanager
async def lifespan(app: FastAPI):
    setup_logging()
    yield
    if _resolver is not None:
        _resolver.close()


app = FastAPI(
    title="Geotrail Geocoding API",
    description="Geocoding proxy for the travel trajectory map: city names in, coordinates out",
    version="1.0.0",
    lifespan=lifespan,
)


def _geocode_payload(city, result: GeocodeResult):
    geocode = {"location": result.coordinate.to_location_string(), "city": city}
    address = result.address
    if address is not None:
        if address.formatted_address:
            geocode["formatted_address"] = address.formatted_address
        if address.province:
            geocode["province"] = address.province
        if address.district:
            geocode["district"] = address.district
    return {
        "status": "1",
        "info": INFO_BY_SOURCE[result.source],
        "source": result.source.value,
        "geocodes": [geocode],
    }


def _rate_limited(e: QueueFullError):
    return JSONResponse(
        status_code=429,
        content={
            "status": "0",
            "info": "Rate limit exceeded",
            "error": str(e),
            "queueLength": e.queue_length,
            "retryAfter": e.retry_after,
        },
        headers={"Retry-After": str(e.retry_after)},
    )


def _city_required():
    return JSONResponse(status_code=400, content={"error": "City parameter is required"})


@app.get("/")
def read_root():
    return {"message": "Welcome to the Geotrail Geocoding API"}


@app.get("/geocode")
async def geocode(
    city: Optional[str] = None,
    refresh: bool = False,
    resolver: GeocodeResolver = Depends(get_resolver),
):
    """Geocode a city through the full provider chain, falling back to built-in coordinates."""
    if not city or not city.strip():
        return _city_required()

    logger.info(f"Geocoding city: {city}{' (forced refresh)' if refresh else ''}")
    try:
        result = await resolver.resolve(city, force_refresh=refresh)
    except QueueFullError as e:
        return _rate_limited(e)
    except Exception as e:
        logger.error(f"All geocoding methods failed for {city}: {str(e)}")
        return JSONResponse(
            status_code=500,
            content={"status": "0", "info": "All geocoding methods failed", "error": str(e)},
        )

    return _geocode_payload(city.strip(), result)


@app.get("/amap-geocode")
async def amap_geocode(
    city: Optional[str] = None,
    refresh: bool = False,
    priority: Optional[str] = None,
    resolver: GeocodeResolver = Depends(get_resolver),
):
    """
    Geocode a city with AMap only, no fallback.

    ``priority=high`` moves the request ahead of normal ones in AMap's queue.
    """
    if not city or not city.strip():
        return _city_required()

    high_priority = (priority or "").strip().lower() in ("high", "true", "1", "yes")
    logger.info(f"AMap geocoding city: {city}{' (forced refresh)' if refresh else ''}{' (high priority)' if high_priority else ''}")
    try:
        result = await resolver.resolve_with("amap", city, force_refresh=refresh, priority=high_priority)
    except QueueFullError as e:
        return _rate_limited(e)
    except (ProviderNotConfiguredError, GeocodeNotFoundError, ProviderTransientError) as e:
        logger.error(f"AMap geocoding error for {city}: {str(e)}")
        return JSONResponse(
            status_code=500,
            content={"status": "0", "info": "AMap geocoding error", "error": str(e)},
        )

    return _geocode_payload(city.strip(), result)


@app.post("/geocode/batch")
async def geocode_batch(points: List[TravelPoint], resolver: GeocodeResolver = Depends(get_resolver)):
    """Geocode every city of a trip and return the points in date order with map center and bounds."""
    try:
        resolved = await resolver.geocode_travel_points(points)
    except Exception as e:
        logger.error(f"Error geocoding travel points: {str(e)}")
        raise HTTPException(status_code=500, detail=str(e))

    result = []
    coordinates = []
    for point in sorted(points, key=lambda p: p.date):
        item = point.model_dump(by_alias=True, exclude_none=True)
        geocoded = resolved.get(point.city.strip())
        if geocoded is not None:
            item["coordinates"] = {"lat": geocoded.lat, "lng": geocoded.lng}
            item["source"] = geocoded.source.value
            coordinates.append(geocoded.coordinate)
        result.append(item)

    center = calculate_center(coordinates)
    return {
        "points": result,
        "center": {"lat": center.lat, "lng": center.lng},
        "bounds": calculate_bounds(coordinates),
    }


@app.get("/cache/stats")
def get_cache_stats(resolver: GeocodeResolver = Depends(get_resolver)):
    return {
        "persistent": asdict(resolver.persistent_cache.stats()),
        "memory_entries": len(resolver.memory_cache),
        "queues": resolver.queue_lengths(),
    }


@app.post("/cache/sweep")
async def sweep_cache(background_tasks: BackgroundTasks, resolver: GeocodeResolver = Depends(get_resolver)):
    """Remove expired entries from the persistent cache in the background."""
    background_tasks.add_task(resolver.persistent_cache.sweep_expired)
    return {
        "message": "Expired geocode cache cleanup started",
        "status": "processing",
    }


@app.delete("/cache/{city}")
def invalidate_city(city: str, resolver: GeocodeResolver = Depends(get_resolver)):
    try:
        resolver.invalidate(city)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return {"message": f"Removed cached coordinates for {city.strip()}"}
