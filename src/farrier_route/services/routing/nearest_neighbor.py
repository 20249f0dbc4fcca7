"""Greedy nearest-neighbor visiting order.

This is a heuristic: it builds a short tour cheaply and deterministically by
always driving to the closest unvisited stop. It makes no optimality claim.
"""

from __future__ import annotations

from typing import Sequence

from ...models.domain import Coordinates, Stop
from ..geospatial import distance_between

# Candidates closer than this (km) are treated as equidistant.
DISTANCE_TIE_TOLERANCE_KM = 1e-9


def _is_better(
    distance: float,
    candidate: tuple[int, Stop],
    best_distance: float,
    best: tuple[int, Stop],
) -> bool:
    if distance < best_distance - DISTANCE_TIE_TOLERANCE_KM:
        return True
    if abs(distance - best_distance) <= DISTANCE_TIE_TOLERANCE_KM:
        index, stop = candidate
        best_index, best_stop = best
        return (stop.scheduled_at, index) < (best_stop.scheduled_at, best_index)
    return False


def order_by_proximity(stops: Sequence[Stop], anchor: Coordinates | None = None) -> list[Stop]:
    """Order stops by repeatedly visiting the nearest unvisited geocoded stop.

    Args:
        stops: Stops to order. Inputs of two or fewer are returned unchanged.
        anchor: Starting position (the farrier's home). Without it the first
            geocoded stop is the start and is visited first.

    Returns:
        A permutation of ``stops``. Stops lacking coordinates are appended at
        the end in their original relative order.
    """
    if len(stops) <= 2:
        return list(stops)

    remaining = [(index, stop) for index, stop in enumerate(stops) if stop.coordinates is not None]
    unlocated = [stop for stop in stops if stop.coordinates is None]
    if not remaining:
        return list(stops)

    ordered: list[Stop] = []
    if anchor is None:
        _, first = remaining.pop(0)
        ordered.append(first)
        current = first.coordinates
    else:
        current = anchor

    while remaining:
        best_position = 0
        best_distance = distance_between(current, remaining[0][1].coordinates)
        for position in range(1, len(remaining)):
            distance = distance_between(current, remaining[position][1].coordinates)
            if _is_better(distance, remaining[position], best_distance, remaining[best_position]):
                best_position, best_distance = position, distance
        _, nearest = remaining.pop(best_position)
        ordered.append(nearest)
        current = nearest.coordinates

    return ordered + unlocated
