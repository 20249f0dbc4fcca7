import asyncio
from datetime import datetime, timezone

import pytest

from conftest import appointment_row, make_stop
from farrier_route.models.domain import Coordinates
from farrier_route.services.routing.errors import MutationWriteFailure, StopNotFound
from farrier_route.services.routing.mutations import (
    RouteView,
    snap_to_quarter_hour,
    timeline_drop_to_timestamp,
)


def _at(hour, minute, second=0):
    return datetime(2025, 3, 10, hour, minute, second, tzinfo=timezone.utc)


@pytest.mark.parametrize(
    "given, expected",
    [
        (_at(8, 0), _at(8, 0)),
        (_at(8, 7), _at(8, 0)),
        (_at(8, 7, 30), _at(8, 15)),
        (_at(8, 8), _at(8, 15)),
        (_at(9, 52, 29), _at(9, 45)),
    ],
)
def test_snap_to_quarter_hour(given, expected):
    assert snap_to_quarter_hour(given) == expected


def test_timeline_drop():
    assert timeline_drop_to_timestamp(_at(10, 0), 40) == _at(10, 30)
    assert timeline_drop_to_timestamp(_at(10, 0), -85) == _at(9, 0)
    assert timeline_drop_to_timestamp(_at(10, 0), 0) == _at(10, 0)
    # dragging past either end stays on the same day
    assert timeline_drop_to_timestamp(_at(7, 0), -5000) == _at(0, 0)
    assert timeline_drop_to_timestamp(_at(20, 0), 5000) == _at(23, 45)


def _stored(fake_store, *ids):
    fake_store.tables["appointments"] = [appointment_row(stop_id) for stop_id in ids]


def test_mark_completed_is_idempotent(fake_store, session):
    _stored(fake_store, "A", "B")
    view = RouteView(session, [make_stop("A", 45.0, 9.0), make_stop("B", 45.1, 9.1)])

    assert asyncio.run(view.mark_completed("A")) is True
    assert asyncio.run(view.mark_completed("A")) is False

    assert [stop.stop_id for stop in view.stops] == ["B"]
    assert fake_store.updates == [("appointments", "A", {"status": "completed"})]


def test_mark_completed_keeps_stop_in_full_day_view(fake_store, session):
    _stored(fake_store, "A", "B")
    view = RouteView(session, [make_stop("A", 45.0, 9.0), make_stop("B", 45.1, 9.1)], keep_completed=True)

    asyncio.run(view.mark_completed("A"))

    assert [stop.status for stop in view.stops] == ["completed", "confirmed"]
    assert [stop.stop_id for stop in view.active_stops] == ["B"]
    assert view.next_stop().stop_id == "B"


def test_mark_completed_rolls_back_on_write_failure(fake_store, session):
    _stored(fake_store, "A", "B")
    fake_store.failures.add(("appointments", "update"))
    view = RouteView(session, [make_stop("A", 45.0, 9.0), make_stop("B", 45.1, 9.1)])

    with pytest.raises(MutationWriteFailure):
        asyncio.run(view.mark_completed("A"))

    assert [stop.stop_id for stop in view.stops] == ["A", "B"]
    assert view.stops[0].status == "confirmed"
    # a retry is still possible after the failure
    fake_store.failures.clear()
    assert asyncio.run(view.mark_completed("A")) is True


def test_mark_completed_unknown_stop(fake_store, session):
    view = RouteView(session, [make_stop("A", 45.0, 9.0)])
    with pytest.raises(StopNotFound):
        asyncio.run(view.mark_completed("Z"))


def test_completion_recomputes_region(fake_store, session):
    _stored(fake_store, "A", "B")
    view = RouteView(session, [make_stop("A", 40.0, 5.0), make_stop("B", 45.0, 9.0)])
    asyncio.run(view.mark_completed("A"))
    region = view.region
    assert (region.latitude, region.longitude) == (45.0, 9.0)


def test_reschedule_snaps_and_persists(fake_store, session):
    _stored(fake_store, "A", "B")
    view = RouteView(session, [make_stop("A", 45.0, 9.0), make_stop("B", 45.1, 9.1, hour=9)])

    moved = asyncio.run(view.reschedule("B", _at(7, 53)))

    assert moved.scheduled_at == _at(8, 0)
    # order is not changed by a reschedule
    assert [stop.stop_id for stop in view.stops] == ["A", "B"]
    assert fake_store.updates == [("appointments", "B", {"proposed_date": "2025-03-10T08:00:00+00:00"})]


def test_reschedule_rolls_back_on_write_failure(fake_store, session):
    _stored(fake_store, "A")
    fake_store.failures.add(("appointments", "update"))
    view = RouteView(session, [make_stop("A", 45.0, 9.0, hour=9)])

    with pytest.raises(MutationWriteFailure):
        asyncio.run(view.reschedule("A", _at(11, 0)))

    assert view.stops[0].scheduled_at == _at(9, 0)


def test_optimize_locally_keeps_visited_stops_first(fake_store, session):
    _stored(fake_store, "DONE", "FAR", "NEAR", "MID")
    stops = [
        make_stop("DONE", 45.0, 9.0, status="completed"),
        make_stop("FAR", 45.5, 9.5),
        make_stop("NEAR", 45.01, 9.0),
        make_stop("MID", 45.1, 9.1),
    ]
    view = RouteView(session, stops, keep_completed=True)

    ordered = view.optimize_locally(Coordinates(45.0, 9.0))

    assert [stop.stop_id for stop in ordered] == ["DONE", "NEAR", "MID", "FAR"]
    assert [stop.sequence_index for stop in ordered] == [1, 2, 3, 4]
    assert fake_store.updates == []


def _reorder_view(session):
    stops = [
        make_stop("DONE", 45.0, 9.0, status="completed", sequence=1),
        make_stop("FAR", 45.5, 9.5, sequence=2),
        make_stop("NEAR", 45.01, 9.0, sequence=3),
        make_stop("MID", 45.1, 9.1, sequence=4),
    ]
    return RouteView(session, stops, keep_completed=True)


def test_reorder_persists_changed_sequence_only(fake_store, session):
    _stored(fake_store, "DONE", "FAR", "NEAR", "MID")
    view = _reorder_view(session)

    ordered = asyncio.run(view.reorder(Coordinates(45.0, 9.0)))

    assert [stop.stop_id for stop in ordered] == ["DONE", "NEAR", "MID", "FAR"]
    assert [(stop_id, payload) for _, stop_id, payload in fake_store.updates] == [
        ("NEAR", {"sequence_order": 2}),
        ("MID", {"sequence_order": 3}),
        ("FAR", {"sequence_order": 4}),
    ]


def test_reorder_restores_written_sequence_on_failure(fake_store, session):
    _stored(fake_store, "DONE", "FAR", "NEAR", "MID")
    fake_store.failing_ids.add("MID")
    view = _reorder_view(session)

    with pytest.raises(MutationWriteFailure):
        asyncio.run(view.reorder(Coordinates(45.0, 9.0)))

    assert [stop.stop_id for stop in view.stops] == ["DONE", "FAR", "NEAR", "MID"]
    assert [stop.sequence_index for stop in view.stops] == [1, 2, 3, 4]
    assert [(stop_id, payload) for _, stop_id, payload in fake_store.updates] == [
        ("NEAR", {"sequence_order": 2}),
        ("NEAR", {"sequence_order": 3}),
    ]
    stored = {row["id"]: row["sequence_order"] for row in fake_store.tables["appointments"]}
    assert stored["NEAR"] == 3


def test_drag_moves_stop_along_timeline(fake_store, session):
    _stored(fake_store, "A")
    view = RouteView(session, [make_stop("A", 45.0, 9.0, hour=10)])

    moved = asyncio.run(view.drag("A", 40))

    assert moved.scheduled_at == _at(10, 30)
    assert fake_store.updates == [("appointments", "A", {"proposed_date": "2025-03-10T10:30:00+00:00"})]


def test_estimate_covers_active_stops_only(session):
    view = RouteView(
        session,
        [make_stop("DONE", 45.0, 9.0, status="completed"), make_stop("A", 45.1, 9.0, horses=2)],
        keep_completed=True,
    )
    route = view.estimate(_at(8, 0))
    assert [annotated.stop.stop_id for annotated in route.stops] == ["A"]
    assert route.total_estimated_minutes == 90
