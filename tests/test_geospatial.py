import math

import pytest

from schoolroute.models.domain import GeoPoint
from schoolroute.services.geospatial import (
    bearing_degrees,
    decode_polyline,
    distance_meters,
    encode_polyline,
    nearest_point_on_polyline,
    nearest_point_on_segments,
)

GOOGLE_SAMPLE = "_p~iF~ps|U_ulLnnqC_mqNvxq`@"
GOOGLE_POINTS = [GeoPoint(38.5, -120.2), GeoPoint(40.7, -120.95), GeoPoint(43.252, -126.453)]


def test_distance_is_symmetric_and_zero_on_identity():
    pairs = [
        (GeoPoint(21.5, 39.2), GeoPoint(21.55, 39.25)),
        (GeoPoint(-33.87, 151.21), GeoPoint(51.5, -0.12)),
        (GeoPoint(0.0, 179.9), GeoPoint(0.0, -179.9)),
    ]
    for a, b in pairs:
        assert distance_meters(a, b) == distance_meters(b, a)
        assert distance_meters(a, a) == 0.0


def test_one_degree_of_latitude():
    assert distance_meters(GeoPoint(0.0, 0.0), GeoPoint(1.0, 0.0)) == pytest.approx(111_194.93, abs=0.5)


def test_bearing_cardinal_directions():
    origin = GeoPoint(0.0, 0.0)
    assert bearing_degrees(origin, GeoPoint(1.0, 0.0)) == pytest.approx(0.0)
    assert bearing_degrees(origin, GeoPoint(0.0, 1.0)) == pytest.approx(90.0)
    assert bearing_degrees(origin, GeoPoint(-1.0, 0.0)) == pytest.approx(180.0)


def test_nearest_vertex_picks_closest_vertex():
    line = [GeoPoint(0.0, lng) for lng in (0.0, 1.0, 2.0, 3.0)]
    nearest = nearest_point_on_polyline(GeoPoint(0.1, 2.1), line)
    assert nearest.index == 2
    assert nearest.point == GeoPoint(0.0, 2.0)
    assert nearest.distance_meters == distance_meters(GeoPoint(0.1, 2.1), GeoPoint(0.0, 2.0))


def test_nearest_on_empty_polyline_is_infinite():
    for finder in (nearest_point_on_polyline, nearest_point_on_segments):
        nearest = finder(GeoPoint(0.0, 0.0), [])
        assert nearest.point is None
        assert math.isinf(nearest.distance_meters)


def test_segment_projection_finds_point_between_vertices():
    line = [GeoPoint(0.0, 0.0), GeoPoint(0.0, 10.0)]
    sample = GeoPoint(0.01, 5.0)

    nearest = nearest_point_on_segments(sample, line)

    assert nearest.point.lat == pytest.approx(0.0, abs=1e-6)
    assert nearest.point.lng == pytest.approx(5.0, abs=1e-6)
    assert nearest.distance_meters == pytest.approx(distance_meters(sample, GeoPoint(0.0, 5.0)), rel=1e-3)
    assert nearest.index == 0
    # The vertex-only match is far off on the same sparse line.
    assert nearest_point_on_polyline(sample, line).distance_meters > 500_000


def test_segment_projection_with_single_vertex():
    nearest = nearest_point_on_segments(GeoPoint(0.0, 0.01), [GeoPoint(0.0, 0.0)])
    assert nearest.point == GeoPoint(0.0, 0.0)
    assert nearest.index == 0


def test_decode_known_polyline():
    decoded = decode_polyline(GOOGLE_SAMPLE)
    assert len(decoded) == 3
    for got, expected in zip(decoded, GOOGLE_POINTS):
        assert got.lat == pytest.approx(expected.lat)
        assert got.lng == pytest.approx(expected.lng)


def test_encode_known_polyline():
    assert encode_polyline(GOOGLE_POINTS) == GOOGLE_SAMPLE


def test_decode_rejects_truncated_input():
    with pytest.raises(ValueError):
        decode_polyline("_p~iF")


def test_geopoint_checked_rejects_bad_coordinates():
    from schoolroute.errors import InvalidInputError

    assert GeoPoint.checked("21.5", 39) == GeoPoint(21.5, 39.0)
    for lat, lng in [(91, 0), (0, -181), (float("nan"), 0), ("north", 0), (None, 1)]:
        with pytest.raises(InvalidInputError):
            GeoPoint.checked(lat, lng)
