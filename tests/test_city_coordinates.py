import pytest

from geotrail.geocoding.city_coordinates import (
    CITY_COORDINATES,
    DEFAULT_COORDINATE,
    default_result,
    find_city_coordinate,
    local_result,
)
from geotrail.models.geocode import GeocodeSource


def test_exact_match():
    coordinate = find_city_coordinate("北京")
    assert coordinate.lng == pytest.approx(116.4, abs=0.1)
    assert coordinate.lat == pytest.approx(39.9, abs=0.1)


def test_case_insensitive_match_for_latin_names():
    assert find_city_coordinate("paris") == find_city_coordinate("Paris")
    assert find_city_coordinate("NEW YORK").lat == pytest.approx(40.7128)


def test_containment_match_in_both_directions():
    # query contains a known city
    assert find_city_coordinate("北京市") == find_city_coordinate("北京")
    # query is contained in a known city
    assert find_city_coordinate("Angeles") == find_city_coordinate("Los Angeles")


def test_containment_match_takes_first_table_entry():
    # "o" is contained in several names; the first in table order wins every time
    first = next(name for name, _, _ in CITY_COORDINATES if "o" in name.casefold())
    assert find_city_coordinate("o") == find_city_coordinate(first)


def test_unknown_and_blank_names():
    assert find_city_coordinate("Nonexistent City XYZ") is None
    assert find_city_coordinate("  ") is None
    assert local_result("Nonexistent City XYZ") is None


def test_table_names_are_unique():
    names = [name for name, _, _ in CITY_COORDINATES]
    assert len(names) == len(set(names))


def test_result_sources():
    assert local_result("上海").source == GeocodeSource.LOCAL_DB
    result = default_result()
    assert result.source == GeocodeSource.DEFAULT
    assert result.coordinate == DEFAULT_COORDINATE
    assert result.coordinate.to_location_string() == "116.397428,39.90923"
