import json

import pytest

from geotrail.geocoding.city_coordinates import local_result
from geotrail.trips.loader import (
    MalformedImportData,
    export_travel_points,
    load_travel_points,
    parse_travel_points,
)

TRIP = [
    {"city": "北京", "date": "2025-03-01", "transport": ["plane"]},
    {"city": "上海", "date": "2025-03-05", "transport": ["train", "other"], "customTransport": "ferry", "notes": "外滩"},
]


def test_parse_accepts_json_text_and_lists():
    from_text = parse_travel_points(json.dumps(TRIP))
    from_list = parse_travel_points(TRIP)
    assert from_text == from_list
    assert from_list[1].custom_transport == "ferry"
    assert from_list[1].transport == ["train", "other"]


@pytest.mark.parametrize(
    "data",
    [
        "{not json",
        json.dumps({"city": "北京"}),
        [{"city": "北京", "date": "2025-03-01"}],
        ["北京"],
        [{"city": "北京", "date": "2025-03-01", "transport": "plane"}],
    ],
)
def test_malformed_data_is_rejected(data):
    with pytest.raises(MalformedImportData):
        parse_travel_points(data)


def test_load_and_export(tmp_path):
    source = tmp_path / "trip.json"
    source.write_text(json.dumps(TRIP, ensure_ascii=False), encoding="utf-8")
    points = load_travel_points(str(source))

    target = tmp_path / "out.json"
    export_travel_points(points, str(target), {"北京": local_result("北京")})

    text = target.read_text(encoding="utf-8")
    assert "北京" in text
    records = json.loads(text)
    assert records[0]["source"] == "local_db"
    assert records[0]["lng"] == pytest.approx(116.4, abs=0.1)
    assert "lat" not in records[1]
    assert records[1]["customTransport"] == "ferry"
