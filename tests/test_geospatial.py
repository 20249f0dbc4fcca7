import math

import pytest

from conftest import make_stop
from farrier_route.config import settings
from farrier_route.models.domain import Coordinates
from farrier_route.services.geospatial import (
    bounding_region,
    destination_url,
    haversine_km,
    route_distance_km,
    route_url,
)

POINTS = [
    (45.0, 9.0),
    (45.01, 9.0),
    (45.5, 9.5),
    (-33.86, 151.21),
    (51.5074, -0.1278),
    (0.0, 179.9),
    (0.0, -179.9),
]


def test_haversine_is_symmetric():
    for lat1, lon1 in POINTS:
        for lat2, lon2 in POINTS:
            assert haversine_km(lat1, lon1, lat2, lon2) == pytest.approx(haversine_km(lat2, lon2, lat1, lon1))


def test_haversine_identity_is_zero():
    for lat, lon in POINTS:
        assert haversine_km(lat, lon, lat, lon) == 0.0


def test_haversine_known_distances():
    # 0.01 degree of latitude is ~1.11 km
    assert haversine_km(45.0, 9.0, 45.01, 9.0) == pytest.approx(1.112, abs=0.001)
    # across the antimeridian the short way round
    assert haversine_km(0.0, 179.9, 0.0, -179.9) == pytest.approx(22.24, abs=0.01)


def test_haversine_propagates_nan():
    assert math.isnan(haversine_km(float("nan"), 9.0, 45.0, 9.0))


def test_route_distance_skips_legs_without_coordinates():
    stops = [make_stop("A", 45.0, 9.0), make_stop("B"), make_stop("C", 45.01, 9.0)]
    assert route_distance_km(stops) == 0.0

    stops = [make_stop("A", 45.0, 9.0), make_stop("C", 45.01, 9.0), make_stop("B")]
    assert route_distance_km(stops) == pytest.approx(1.112, abs=0.001)


def test_destination_url():
    assert destination_url(Coordinates(45.5, 9.25)) == (
        "https://www.google.com/maps/dir/?api=1&destination=45.5,9.25&travelmode=driving"
    )


def test_route_url_joins_waypoints_with_pipe():
    url = route_url(
        [Coordinates(45.0, 9.0), Coordinates(45.01, 9.0), Coordinates(45.5, 9.5)],
        origin=Coordinates(44.9, 8.9),
    )
    assert url == (
        "https://www.google.com/maps/dir/?api=1&origin=44.9,8.9&destination=45.5,9.5"
        "&waypoints=45.0,9.0|45.01,9.0&travelmode=driving"
    )


def test_route_url_requires_a_point():
    with pytest.raises(ValueError):
        route_url([])


def test_bounding_region_defaults_without_coordinates():
    region = bounding_region([make_stop("A")])
    assert (region.latitude, region.longitude) == settings.default_region_center
    assert region.latitude_delta == settings.default_region_delta


def test_bounding_region_single_point():
    region = bounding_region([make_stop("A", 45.2, 9.1), make_stop("B")])
    assert (region.latitude, region.longitude) == (45.2, 9.1)
    assert region.latitude_delta == settings.single_stop_region_delta


def test_bounding_region_covers_all_points():
    region = bounding_region([make_stop("A", 45.0, 9.0), make_stop("B", 46.0, 10.0)])
    assert region.latitude == pytest.approx(45.5)
    assert region.longitude == pytest.approx(9.5)
    assert region.latitude_delta >= 1.0
    assert region.longitude_delta >= 1.0
