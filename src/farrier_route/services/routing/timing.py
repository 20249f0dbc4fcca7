"""Arrival/departure estimation for an ordered list of stops."""

from __future__ import annotations

from datetime import datetime, timedelta
from typing import Sequence

from ...config import settings
from ...models.domain import Coordinates, Stop
from ..geospatial import distance_between
from .models import AnnotatedStop, DayRoute


def annotate_times(
    ordered_stops: Sequence[Stop],
    start_time: datetime,
    work_minutes_per_horse: float | None = None,
    travel_minutes_per_km: float | None = None,
    *,
    origin: Coordinates | None = None,
) -> DayRoute:
    """Linear time model: travel at a flat minutes-per-km rate, fixed work per horse.

    The first stop arrives at ``start_time``. Its distance is measured from
    ``origin`` when one is given, otherwise it is 0 (None if the stop has no
    coordinates) and no travel time is added. A later leg with a missing
    endpoint has an undefined distance, adds no travel time and marks the
    estimate approximate.
    """
    per_horse = settings.work_minutes_per_horse if work_minutes_per_horse is None else work_minutes_per_horse
    per_km = settings.travel_minutes_per_km if travel_minutes_per_km is None else travel_minutes_per_km

    annotated: list[AnnotatedStop] = []
    total_minutes = 0.0
    total_distance = 0.0
    route_approximate = False
    departure = start_time

    for sequence, stop in enumerate(ordered_stops, start=1):
        approximate = False
        if sequence == 1:
            arrival = start_time
            travel = 0.0
            if origin is not None:
                distance = distance_between(origin, stop.coordinates)
                approximate = distance is None
            else:
                distance = 0.0 if stop.coordinates is not None else None
        else:
            distance = distance_between(ordered_stops[sequence - 2].coordinates, stop.coordinates)
            if distance is None:
                travel = 0.0
                approximate = True
            else:
                travel = distance * per_km
            arrival = departure + timedelta(minutes=travel)

        work = stop.horse_count * per_horse
        departure = arrival + timedelta(minutes=work)
        total_minutes += travel + work
        if distance is not None:
            total_distance += distance
        route_approximate = route_approximate or approximate

        annotated.append(
            AnnotatedStop(
                stop=stop,
                sequence=sequence,
                distance_from_prev_km=distance,
                travel_minutes=travel,
                work_minutes=work,
                estimated_arrival=arrival,
                estimated_departure=departure,
                approximate=approximate,
            )
        )

    return DayRoute(
        stops=annotated,
        total_estimated_minutes=total_minutes,
        total_distance_km=total_distance,
        approximate=route_approximate,
    )
