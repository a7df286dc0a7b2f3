import requests
import logging
from abc import ABC, abstractmethod
from typing import Optional, Dict, Any, List

from pydantic import ValidationError

from geotrail.config import (
    AMAP_API_KEY,
    MAPQUEST_API_KEY,
    NOMINATIM_ENABLED,
    NOMINATIM_USER_AGENT,
    REQUEST_TIMEOUT,
)
from geotrail.geocoding.errors import ProviderTransientError
from geotrail.models.geocode import AddressDetail, GeoCoordinate, GeocodeResult, GeocodeSource

# Constants
AMAP_GEOCODE_URL = "https://restapi.amap.com/v3/geocode/geo"
NOMINATIM_SEARCH_URL = "https://nominatim.openstreetmap.org/search"
MAPQUEST_GEOCODE_URL = "https://www.mapquestapi.com/geocoding/v1/address"
ACCEPT_LANGUAGE = "zh-CN,en-US"

# Get logger
logger = logging.getLogger(__name__)


def _text(value):
    # AMap sends [] instead of "" for empty address fields
    if isinstance(value, str) and value.strip():
        return value.strip()
    return None


class GeocodingProvider(ABC):
    """
    One external geocoding service.

    ``geocode`` returns a result, returns None when the service answered but
    knows no such place, and raises ``ProviderTransientError`` for everything
    else (network failure, non-200 status, error payloads, bad coordinates).
    Providers never retry; the resolver moves on to the next one.
    """

    name = "provider"
    source: GeocodeSource

    def __init__(self, session: Optional[requests.Session] = None, timeout: float = REQUEST_TIMEOUT):
        self.session = session or requests.Session()
        self.timeout = timeout

    @property
    def is_configured(self) -> bool:
        return True

    @abstractmethod
    def geocode(self, city_name: str) -> Optional[GeocodeResult]:
        pass

    def close(self) -> None:
        self.session.close()

    def _get_json(self, url: str, params: Dict[str, Any], headers: Optional[Dict[str, str]] = None) -> Any:
        try:
            response = self.session.get(url, params=params, headers=headers, timeout=self.timeout)
        except requests.RequestException as e:
            raise ProviderTransientError(self.name, f"network error: {e}") from e

        if response.status_code != 200:
            raise ProviderTransientError(self.name, f"HTTP error {response.status_code}")

        try:
            return response.json()
        except ValueError as e:
            raise ProviderTransientError(self.name, "response is not valid JSON") from e

    def _build_result(self, lng, lat, address: Optional[AddressDetail] = None) -> GeocodeResult:
        try:
            coordinate = GeoCoordinate(lng=float(lng), lat=float(lat))
        except (TypeError, ValueError, ValidationError) as e:
            raise ProviderTransientError(self.name, f"malformed coordinates ({lng}, {lat})") from e
        return GeocodeResult(coordinate=coordinate, source=self.source, address=address)


class AmapProvider(GeocodingProvider):
    name = "amap"
    source = GeocodeSource.AMAP

    def __init__(self, api_key: Optional[str] = AMAP_API_KEY, **kwargs):
        super().__init__(**kwargs)
        self.api_key = api_key

    @property
    def is_configured(self):
        return bool(self.api_key)

    def geocode(self, city_name):
        data = self._get_json(
            AMAP_GEOCODE_URL,
            params={"address": city_name, "output": "json", "key": self.api_key},
        )
        if not isinstance(data, dict):
            raise ProviderTransientError(self.name, "unexpected response shape")
        if data.get("status") != "1":
            raise ProviderTransientError(self.name, f"API error: {data.get('info', 'unknown')}")

        geocodes = data.get("geocodes") or []
        if not geocodes:
            logger.info(f"AMap found no results for {city_name}")
            return None

        first = geocodes[0]
        location = first.get("location")
        if not isinstance(location, str) or "," not in location:
            raise ProviderTransientError(self.name, f"malformed location {location!r}")
        lng, lat = location.split(",", 1)

        province = _text(first.get("province"))
        city = _text(first.get("city"))
        district = _text(first.get("district"))
        formatted = _text(first.get("formatted_address")) or " ".join(p for p in (province, city, district) if p) or None
        address = AddressDetail(province=province, city=city, district=district, formatted_address=formatted)

        result = self._build_result(lng, lat, address)
        logger.info(f"Found coordinates for {city_name} using AMap: {location}")
        return result


class NominatimProvider(GeocodingProvider):
    name = "openstreetmap"
    source = GeocodeSource.OPENSTREETMAP

    def __init__(self, user_agent: str = NOMINATIM_USER_AGENT, enabled: bool = NOMINATIM_ENABLED, **kwargs):
        super().__init__(**kwargs)
        self.user_agent = user_agent
        self.enabled = enabled

    @property
    def is_configured(self):
        return self.enabled

    def geocode(self, city_name):
        data = self._get_json(
            NOMINATIM_SEARCH_URL,
            params={"q": city_name, "format": "json", "limit": 1, "addressdetails": 1},
            headers={"User-Agent": self.user_agent, "Accept-Language": ACCEPT_LANGUAGE},
        )
        if not isinstance(data, list):
            raise ProviderTransientError(self.name, "unexpected response shape")
        if not data:
            logger.info(f"OpenStreetMap found no results for {city_name}")
            return None

        hit = data[0]
        details = hit.get("address") or {}
        address = AddressDetail(
            province=details.get("state") or details.get("province"),
            city=details.get("city") or details.get("town") or details.get("village"),
            district=details.get("city_district") or details.get("district") or details.get("county"),
            formatted_address=hit.get("display_name"),
        )

        result = self._build_result(hit.get("lon"), hit.get("lat"), address)
        logger.info(f"Found coordinates for {city_name} using OpenStreetMap: {result.coordinate.to_location_string()}")
        return result


class MapQuestProvider(GeocodingProvider):
    name = "mapquest"
    source = GeocodeSource.MAPQUEST

    def __init__(self, api_key: Optional[str] = MAPQUEST_API_KEY, **kwargs):
        super().__init__(**kwargs)
        self.api_key = api_key

    @property
    def is_configured(self):
        return bool(self.api_key)

    def geocode(self, city_name):
        data = self._get_json(
            MAPQUEST_GEOCODE_URL,
            params={"key": self.api_key, "location": city_name},
        )
        if not isinstance(data, dict):
            raise ProviderTransientError(self.name, "unexpected response shape")

        status_code = (data.get("info") or {}).get("statuscode", 0)
        if status_code != 0:
            raise ProviderTransientError(self.name, f"API error status {status_code}")

        results = data.get("results") or []
        locations = (results[0].get("locations") or []) if results else []
        if not locations:
            logger.info(f"MapQuest found no results for {city_name}")
            return None

        location = locations[0]
        lat_lng = location.get("latLng") or {}
        address = AddressDetail(
            province=location.get("adminArea3") or None,
            city=location.get("adminArea5") or None,
            district=location.get("adminArea4") or None,
            formatted_address=location.get("street") or None,
        )

        result = self._build_result(lat_lng.get("lng"), lat_lng.get("lat"), address)
        logger.info(f"Found coordinates for {city_name} using MapQuest: {result.coordinate.to_location_string()}")
        return result


def build_providers() -> List[GeocodingProvider]:
    """All providers in priority order, configured from the environment."""
    return [AmapProvider(), NominatimProvider(), MapQuestProvider()]
