import re
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

# Han, kana and hangul blocks. Names containing any of these are keyed exactly.
CJK_PATTERN = re.compile(r"[\u3040-\u30ff\u3400-\u4dbf\u4e00-\u9fff\uac00-\ud7af\uf900-\ufaff]")


def normalize_city_key(city_name: str) -> str:
    """Cache key for a city name: trimmed, and case-folded unless it is CJK."""
    name = city_name.strip()
    if CJK_PATTERN.search(name):
        return name
    return name.casefold()


class GeocodeSource(str, Enum):
    AMAP = "amap"
    OPENSTREETMAP = "openstreetmap"
    MAPQUEST = "mapquest"
    LOCAL_DB = "local_db"
    DEFAULT = "default"
    CACHE = "cache"


class GeoCoordinate(BaseModel):
    model_config = ConfigDict(frozen=True)

    lng: float = Field(ge=-180, le=180)
    lat: float = Field(ge=-90, le=90)

    @classmethod
    def from_location_string(cls, location: str) -> "GeoCoordinate":
        """Parse the ``"lng,lat"`` form used by AMap and by our own responses."""
        lng, lat = location.split(",")
        return cls(lng=float(lng), lat=float(lat))

    def to_location_string(self) -> str:
        return f"{self.lng},{self.lat}"


class AddressDetail(BaseModel):
    model_config = ConfigDict(frozen=True)

    province: Optional[str] = None
    city: Optional[str] = None
    district: Optional[str] = None
    formatted_address: Optional[str] = None


class GeocodeResult(BaseModel):
    model_config = ConfigDict(frozen=True)

    coordinate: GeoCoordinate
    source: GeocodeSource
    address: Optional[AddressDetail] = None

    @property
    def lat(self) -> float:
        return self.coordinate.lat

    @property
    def lng(self) -> float:
        return self.coordinate.lng

    @property
    def cacheable(self) -> bool:
        # Default coordinates are a guess, keep them out of the caches so the
        # city is looked up again next time.
        return self.source != GeocodeSource.DEFAULT

    def as_cached(self) -> "GeocodeResult":
        return self.model_copy(update={"source": GeocodeSource.CACHE})


class CityQuery(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str
    key: str
    force_refresh: bool = False

    @classmethod
    def from_name(cls, city_name: str, force_refresh: bool = False) -> "CityQuery":
        if city_name is None or not city_name.strip():
            raise ValueError("City name must not be empty")
        return cls(name=city_name.strip(), key=normalize_city_key(city_name), force_refresh=force_refresh)


class CacheEntry(BaseModel):
    """One persisted geocode, serialized as ``{timestamp, expiresAt, data}``."""

    model_config = ConfigDict(populate_by_name=True)

    key: str = Field(default="", exclude=True)
    timestamp: float
    expires_at: float = Field(alias="expiresAt")
    data: GeocodeResult

    def is_expired(self, now: float) -> bool:
        return now > self.expires_at
