"""
Built-in coordinates for common cities, used when every provider has failed.

The table is a tuple so that the containment match below always walks it in
the same order: the first entry that contains, or is contained by, the query
wins. Entries are ``(name, lng, lat)``.
"""
import logging
from typing import Optional

from geotrail.models.geocode import GeoCoordinate, GeocodeResult, GeocodeSource

logger = logging.getLogger(__name__)

CITY_COORDINATES = (
    # China
    ("北京", 116.407526, 39.90403),
    ("上海", 121.473701, 31.230416),
    ("广州", 113.264385, 23.129112),
    ("深圳", 114.057868, 22.543099),
    ("杭州", 120.15507, 30.274085),
    ("南京", 118.796877, 32.060255),
    ("成都", 104.065735, 30.659462),
    ("重庆", 106.551556, 29.563009),
    ("武汉", 114.305393, 30.593099),
    ("西安", 108.940175, 34.341568),
    ("苏州", 120.585316, 31.298886),
    ("天津", 117.200983, 39.084158),
    ("厦门", 118.089425, 24.479834),
    ("青岛", 120.382639, 36.067082),
    ("大连", 121.614682, 38.914003),
    ("郑州", 113.6253, 34.7466),
    ("长沙", 112.9388, 28.2282),
    ("沈阳", 123.4315, 41.8057),
    ("哈尔滨", 126.5340, 45.8038),
    ("济南", 117.1201, 36.6512),
    ("常州", 119.9741, 31.8112),
    ("无锡", 120.2883, 31.5689),
    ("香港", 114.1694, 22.3193),
    ("昆明", 102.7183, 25.0389),
    ("曲靖", 103.7961, 25.4901),
    ("合肥", 117.2272, 31.8206),
    ("泰安", 117.0874, 36.1941),
    ("台北", 121.5654, 25.0330),
    # International, Chinese names
    ("纽约", -74.0060, 40.7128),
    ("伦敦", -0.1278, 51.5074),
    ("东京", 139.6503, 35.6762),
    ("巴黎", 2.3522, 48.8566),
    ("新加坡", 103.8198, 1.3521),
    ("悉尼", 151.2093, -33.8688),
    ("洛杉矶", -118.2437, 34.0522),
    ("多伦多", -79.3832, 43.6532),
    ("柏林", 13.4050, 52.5200),
    ("莫斯科", 37.6173, 55.7558),
    ("迪拜", 55.2708, 25.2048),
    ("曼谷", 100.5018, 13.7563),
    ("首尔", 126.9780, 37.5665),
    ("吉隆坡", 101.6869, 3.1390),
    ("阿姆斯特丹", 4.9041, 52.3676),
    ("马德里", -3.7038, 40.4168),
    ("罗马", 12.4964, 41.9028),
    ("开罗", 31.2357, 30.0444),
    # International
    ("Tokyo", 139.6917, 35.6895),
    ("New York", -74.0060, 40.7128),
    ("London", -0.1278, 51.5074),
    ("Paris", 2.3522, 48.8566),
    ("Sydney", 151.2093, -33.8688),
    ("Singapore", 103.8198, 1.3521),
    ("Seoul", 126.9780, 37.5665),
    ("Hong Kong", 114.1694, 22.3193),
    ("Bangkok", 100.5018, 13.7563),
    ("Dubai", 55.2708, 25.2048),
    ("Los Angeles", -118.2437, 34.0522),
    ("Berlin", 13.4050, 52.5200),
    ("Rome", 12.4964, 41.9028),
    ("Toronto", -79.3832, 43.6532),
    ("Moscow", 37.6173, 55.7558),
)

# Tiananmen, Beijing. Returned when nothing else matches.
DEFAULT_COORDINATE = GeoCoordinate(lng=116.397428, lat=39.90923)


def find_city_coordinate(city_name: str) -> Optional[GeoCoordinate]:
    """Exact match, then case-insensitive match, then containment match."""
    name = city_name.strip()
    if not name:
        return None

    for known, lng, lat in CITY_COORDINATES:
        if known == name:
            return GeoCoordinate(lng=lng, lat=lat)

    folded = name.casefold()
    for known, lng, lat in CITY_COORDINATES:
        if known.casefold() == folded:
            return GeoCoordinate(lng=lng, lat=lat)

    for known, lng, lat in CITY_COORDINATES:
        known_folded = known.casefold()
        if known_folded in folded or folded in known_folded:
            logger.debug(f"Fuzzy matched '{city_name}' to built-in city '{known}'")
            return GeoCoordinate(lng=lng, lat=lat)

    return None


def local_result(city_name: str) -> Optional[GeocodeResult]:
    coordinate = find_city_coordinate(city_name)
    if coordinate is None:
        return None
    return GeocodeResult(coordinate=coordinate, source=GeocodeSource.LOCAL_DB)


def default_result() -> GeocodeResult:
    return GeocodeResult(coordinate=DEFAULT_COORDINATE, source=GeocodeSource.DEFAULT)
