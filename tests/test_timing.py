from datetime import datetime, timedelta, timezone

import pytest

from conftest import make_stop
from farrier_route.models.domain import Coordinates
from farrier_route.services.geospatial import haversine_km
from farrier_route.services.routing.timing import annotate_times

START = datetime(2025, 3, 10, 8, 0, tzinfo=timezone.utc)


def test_linear_model():
    stops = [
        make_stop("A", 45.0, 9.0, horses=2),
        make_stop("B", 45.1, 9.0, horses=1),
    ]
    route = annotate_times(stops, START)

    first, second = route.stops
    assert first.estimated_arrival == START
    assert first.distance_from_prev_km == 0.0
    assert first.estimated_departure == START + timedelta(minutes=90)

    leg = haversine_km(45.0, 9.0, 45.1, 9.0)
    assert second.distance_from_prev_km == pytest.approx(leg)
    assert second.estimated_arrival == first.estimated_departure + timedelta(minutes=leg)
    assert second.estimated_departure == second.estimated_arrival + timedelta(minutes=45)
    assert route.total_estimated_minutes == pytest.approx(90 + 45 + leg)
    assert route.total_distance_km == pytest.approx(leg)
    assert not route.approximate


def test_custom_rates():
    stops = [make_stop("A", 45.0, 9.0), make_stop("B", 45.1, 9.0)]
    route = annotate_times(stops, START, work_minutes_per_horse=30, travel_minutes_per_km=2.0)
    leg = haversine_km(45.0, 9.0, 45.1, 9.0)
    assert route.total_estimated_minutes == pytest.approx(60 + 2 * leg)


def test_times_are_monotonic():
    stops = [
        make_stop("A", 45.0, 9.0, horses=3),
        make_stop("B"),
        make_stop("C", 45.3, 9.2, horses=2),
        make_stop("D", 45.3, 9.2),
    ]
    route = annotate_times(stops, START)
    for previous, current in zip(route.stops, route.stops[1:]):
        assert current.estimated_departure >= current.estimated_arrival >= previous.estimated_departure


def test_missing_coordinates_leave_distance_undefined():
    stops = [make_stop("A", 45.0, 9.0), make_stop("B")]
    route = annotate_times(stops, START)
    assert route.stops[1].distance_from_prev_km is None
    assert route.stops[1].travel_minutes == 0.0
    assert route.stops[1].estimated_arrival == route.stops[0].estimated_departure
    assert route.stops[1].approximate
    assert route.approximate


def test_first_stop_without_coordinates():
    route = annotate_times([make_stop("A"), make_stop("B", 45.0, 9.0)], START)
    assert route.stops[0].distance_from_prev_km is None
    assert route.stops[1].distance_from_prev_km is None


def test_origin_distance_is_reported_without_delaying_start():
    route = annotate_times([make_stop("A", 45.1, 9.0)], START, origin=Coordinates(45.0, 9.0))
    assert route.stops[0].estimated_arrival == START
    assert route.stops[0].distance_from_prev_km == pytest.approx(haversine_km(45.0, 9.0, 45.1, 9.0))


def test_empty_route():
    route = annotate_times([], START)
    assert route.stops == []
    assert route.total_estimated_minutes == 0
