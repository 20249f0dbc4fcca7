from datetime import date, datetime, timezone

import pytest

from farrier_route.models.domain import Coordinates, Stop
from farrier_route.services.scheduling.suggestions import suggest_optimal_dates

HOME = Coordinates(45.0, 9.0)


def _booking(stop_id, day, lat=None, lon=None):
    return Stop(
        stop_id=stop_id,
        customer_name=stop_id,
        address="",
        city="",
        coordinates=Coordinates(lat, lon) if lat is not None else None,
        phone=None,
        scheduled_at=datetime(day.year, day.month, day.day, 10, 0, tzinfo=timezone.utc),
        horse_count=1,
        sequence_index=None,
        status="confirmed",
    )


def test_days_are_ranked_by_nearest_booking():
    first = date(2025, 3, 10)
    booked = [
        _booking("near", date(2025, 3, 11), 45.01, 9.0),  # ~1 km
        _booking("mid", date(2025, 3, 12), 45.07, 9.0),  # ~8 km
        _booking("far", date(2025, 3, 13), 45.15, 9.0),  # ~17 km
        _booking("away", date(2025, 3, 14), 46.0, 9.0),  # ~111 km
    ]

    suggestions = suggest_optimal_dates([HOME], booked, first, days_range=5)

    assert [(s.day.day, s.score) for s in suggestions] == [(11, 95), (12, 85), (13, 70), (10, 50), (14, 50)]
    assert suggestions[0].reason == "1 appointment(s) nearby (avg 1.1km)"
    assert suggestions[3].reason == "No appointments on this day"


def test_ungeocoded_bookings_are_ignored():
    day = date(2025, 3, 10)
    suggestions = suggest_optimal_dates([HOME], [_booking("x", day)], day, days_range=1)
    assert suggestions[0].score == 50
    assert suggestions[0].reason == "No appointments on this day"


def test_any_customer_location_counts():
    day = date(2025, 3, 10)
    booked = [_booking("b", day, 46.0, 10.0)]
    suggestions = suggest_optimal_dates([HOME, Coordinates(46.01, 10.0)], booked, day, days_range=1)
    assert suggestions[0].score == 95


def test_invalid_arguments():
    with pytest.raises(ValueError):
        suggest_optimal_dates([], [], date(2025, 3, 10))
    with pytest.raises(ValueError):
        suggest_optimal_dates([HOME], [], date(2025, 3, 10), days_range=0)
