from typing import Dict, Iterable, List

from geotrail.models.geocode import GeoCoordinate

# Map views used when there is nothing to show
WORLD_CENTER = GeoCoordinate(lng=0, lat=20)
WORLD_BOUNDS = {"north": 85.0, "south": -85.0, "east": 180.0, "west": -180.0}


def calculate_center(coordinates: Iterable[GeoCoordinate]) -> GeoCoordinate:
    """Average of the given coordinates, or a world view when there are none."""
    coords: List[GeoCoordinate] = list(coordinates)
    if not coords:
        return WORLD_CENTER
    if len(coords) == 1:
        return coords[0]
    return GeoCoordinate(
        lng=sum(c.lng for c in coords) / len(coords),
        lat=sum(c.lat for c in coords) / len(coords),
    )


def calculate_bounds(coordinates: Iterable[GeoCoordinate], padding: float = 5.0) -> Dict[str, float]:
    """Bounding box of the coordinates, padded by ``padding`` degrees on each side and clipped to the world view."""
    coords = list(coordinates)
    if not coords:
        return dict(WORLD_BOUNDS)

    return {
        "north": min(max(c.lat for c in coords) + padding, WORLD_BOUNDS["north"]),
        "south": max(min(c.lat for c in coords) - padding, WORLD_BOUNDS["south"]),
        "east": min(max(c.lng for c in coords) + padding, WORLD_BOUNDS["east"]),
        "west": max(min(c.lng for c in coords) - padding, WORLD_BOUNDS["west"]),
    }
