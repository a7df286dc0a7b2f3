import json
import logging
from typing import Any, Dict, List, Optional

from pydantic import ValidationError

from geotrail.models.geocode import GeocodeResult
from geotrail.models.travel import TravelPoint

logger = logging.getLogger(__name__)

REQUIRED_FIELDS = ("city", "date", "transport")


class MalformedImportData(ValueError):
    """The imported trip file is not a list of travel point records."""


def parse_travel_points(data: Any) -> List[TravelPoint]:
    """
    Build travel points from a decoded JSON array (or the JSON text itself).

    Only the presence of city, date and transport is checked.
    """
    if isinstance(data, (str, bytes)):
        try:
            data = json.loads(data)
        except ValueError as e:
            raise MalformedImportData(f"Trip data is not valid JSON: {e}") from e

    if not isinstance(data, list):
        raise MalformedImportData("Trip data must be a JSON array of travel points")

    points = []
    for index, record in enumerate(data):
        if not isinstance(record, dict) or any(field not in record for field in REQUIRED_FIELDS):
            raise MalformedImportData(f"Record {index} must contain {', '.join(REQUIRED_FIELDS)}")
        try:
            points.append(TravelPoint.model_validate(record))
        except ValidationError as e:
            raise MalformedImportData(f"Record {index} is invalid: {e.errors()}") from e

    logger.info(f"Imported {len(points)} travel points")
    return points


def load_travel_points(path: str) -> List[TravelPoint]:
    with open(path, encoding="utf-8") as f:
        return parse_travel_points(f.read())


def export_travel_points(
    points: List[TravelPoint], path: str, resolved: Optional[Dict[str, GeocodeResult]] = None
) -> None:
    """Write points as a JSON array, adding lat/lng/source for cities found in ``resolved``."""
    resolved = resolved or {}
    records = []
    for point in points:
        record = point.model_dump(by_alias=True, exclude_none=True)
        result = resolved.get(point.city.strip())
        if result is not None:
            record["lat"] = result.lat
            record["lng"] = result.lng
            record["source"] = result.source.value
        records.append(record)

    with open(path, "w", encoding="utf-8") as f:
        json.dump(records, f, ensure_ascii=False, indent=2)
    logger.info(f"Exported {len(records)} travel points to {path}")
