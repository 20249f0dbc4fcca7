"""Routing orchestration service."""

from __future__ import annotations

import logging
from datetime import date, datetime, time

from ...config import settings
from ...data.appointments_repository import (
    load_farrier_profile,
    load_stops_for_day,
    load_stops_in_range,
    resolve_timezone,
)
from ...models.domain import Coordinates, SessionContext, Stop
from ...schemas.routing import (
    ClusterResponse,
    DateSuggestionModel,
    DayRouteResponse,
    MapRegionModel,
    OptimizeRouteResponse,
    ReorderResponse,
    RouteStopModel,
    RouteStrategy,
    StopMutationResponse,
)
from ..geospatial import bounding_region, destination_url, route_distance_km, route_url
from ..outputs.routing_formatter import annotated_stop_to_json, optimized_route_to_json
from ..scheduling.suggestions import suggest_optimal_dates
from .clustering import cluster_by_distance
from .errors import LoadFailure
from .models import DayRoute
from .mutations import RouteView
from .nearest_neighbor import order_by_proximity
from .optimizer import optimize_route
from .timing import annotate_times

logger = logging.getLogger(__name__)


def default_start_time(session: SessionContext, day: date) -> datetime:
    hours, minutes = (int(part) for part in settings.day_start.split(":"))
    return datetime.combine(day, time(hours, minutes), tzinfo=resolve_timezone(session))


async def _home_base(farrier_id: str) -> Coordinates | None:
    try:
        profile = await load_farrier_profile(farrier_id)
    except LoadFailure as exc:
        # The anchor is optional; the first geocoded stop starts the tour instead
        logger.warning(f"No home base for farrier {farrier_id}, ordering from first stop: {exc}")
        return None
    return profile.home


async def plan_day(
    session: SessionContext,
    farrier_id: str,
    day: date,
    *,
    strategy: RouteStrategy = "stored",
    start_time: datetime | None = None,
    include_completed: bool = False,
) -> tuple[list[Stop], DayRoute, Coordinates | None]:
    """Load, order and time the day's stops.

    Completed stops (when included) are returned separately and never
    reordered; only the active stops go through ordering and estimation.
    """
    order_by = "schedule" if strategy == "schedule" else "sequence"
    stops = await load_stops_for_day(session, farrier_id, day, include_completed=include_completed, order_by=order_by)

    visited = [stop for stop in stops if stop.is_completed]
    active = [stop for stop in stops if not stop.is_completed]
    anchor = None
    if strategy == "proximity" and len(active) > 2:
        anchor = await _home_base(farrier_id)
        active = order_by_proximity(active, anchor)

    route = annotate_times(active, start_time or default_start_time(session, day), origin=anchor)
    return visited, route, anchor


def _day_route_response(
    farrier_id: str,
    day: date,
    strategy: RouteStrategy,
    start_time: datetime,
    route: DayRoute,
    origin: Coordinates | None,
    visited: list[Stop],
) -> DayRouteResponse:
    located = [item.stop.coordinates for item in route.stops if item.stop.coordinates is not None]
    next_located = next((item.stop.coordinates for item in route.stops if item.stop.coordinates is not None), None)
    return DayRouteResponse(
        farrier_id=farrier_id,
        date=day,
        strategy=strategy,
        start_time=start_time,
        stop_count=route.stop_count,
        total_estimated_minutes=route.total_estimated_minutes,
        total_distance_km=route.total_distance_km,
        approximate=route.approximate,
        region=MapRegionModel(**_region_dict(item.stop for item in route.stops)),
        route_url=route_url(located, origin=origin) if located else None,
        next_stop_url=destination_url(next_located) if next_located else None,
        stops=[RouteStopModel(**annotated_stop_to_json(item)) for item in route.stops],
        completed_stop_ids=[stop.stop_id for stop in visited],
    )


def _region_dict(stops) -> dict:
    region = bounding_region(stops)
    return {
        "latitude": region.latitude,
        "longitude": region.longitude,
        "latitude_delta": region.latitude_delta,
        "longitude_delta": region.longitude_delta,
    }


async def get_day_route(
    session: SessionContext,
    farrier_id: str,
    day: date,
    *,
    strategy: RouteStrategy = "stored",
    start_time: datetime | None = None,
    include_completed: bool = False,
) -> tuple[DayRouteResponse, DayRoute]:
    start = start_time or default_start_time(session, day)
    visited, route, anchor = await plan_day(
        session, farrier_id, day, strategy=strategy, start_time=start, include_completed=include_completed
    )
    return _day_route_response(farrier_id, day, strategy, start, route, anchor, visited), route


async def optimize_day(session: SessionContext, farrier_id: str, day: date) -> OptimizeRouteResponse:
    result = await optimize_route(farrier_id, day, session=session)
    return OptimizeRouteResponse(**optimized_route_to_json(result))


async def _load_view(session: SessionContext, farrier_id: str, day: date, *, keep_completed: bool = False) -> RouteView:
    stops = await load_stops_for_day(session, farrier_id, day, include_completed=True)
    return RouteView(session, stops, keep_completed=keep_completed)


def _mutation_response(view: RouteView, stop_id: str, changed: bool, scheduled_at: datetime | None = None) -> StopMutationResponse:
    upcoming = view.next_stop()
    return StopMutationResponse(
        stop_id=stop_id,
        changed=changed,
        scheduled_at=scheduled_at,
        remaining_stop_ids=[stop.stop_id for stop in view.active_stops],
        next_stop_id=upcoming.stop_id if upcoming else None,
        region=MapRegionModel(**_region_dict(view.active_stops)),
    )


async def complete_stop(session: SessionContext, farrier_id: str, day: date, stop_id: str) -> StopMutationResponse:
    view = await _load_view(session, farrier_id, day)
    changed = await view.mark_completed(stop_id)
    return _mutation_response(view, stop_id, changed)


async def reschedule_stop(
    session: SessionContext,
    farrier_id: str,
    day: date,
    stop_id: str,
    new_time: datetime | None = None,
    *,
    offset_px: float | None = None,
) -> StopMutationResponse:
    """Move a stop to ``new_time``, or by ``offset_px`` on the day timeline."""
    if (new_time is None) == (offset_px is None):
        raise ValueError("Provide exactly one of new_time or offset_px")
    view = await _load_view(session, farrier_id, day)
    if offset_px is not None:
        updated = await view.drag(stop_id, offset_px)
    else:
        if new_time.tzinfo is None:
            new_time = new_time.replace(tzinfo=resolve_timezone(session))
        updated = await view.reschedule(stop_id, new_time)
    return _mutation_response(view, stop_id, True, updated.scheduled_at)


async def reorder_day(
    session: SessionContext,
    farrier_id: str,
    day: date,
    *,
    start_time: datetime | None = None,
) -> ReorderResponse:
    """Reorder the remaining stops by proximity from home and persist the new sequence."""
    view = await _load_view(session, farrier_id, day, keep_completed=True)
    distance_before = route_distance_km(view.active_stops)
    anchor = await _home_base(farrier_id)
    await view.reorder(anchor)

    start = start_time or default_start_time(session, day)
    route = view.estimate(start, origin=anchor)
    visited = [stop for stop in view.stops if stop.is_completed]
    logger.info(f"Reordered {route.stop_count} stops for farrier {farrier_id} on {day.isoformat()}")
    return ReorderResponse(
        distance_before_km=distance_before,
        distance_after_km=route_distance_km(view.active_stops),
        route=_day_route_response(farrier_id, day, "proximity", start, route, anchor, visited),
    )


async def cluster_day(session: SessionContext, farrier_id: str, day: date, max_distance_km: float) -> ClusterResponse:
    stops = await load_stops_for_day(session, farrier_id, day)
    groups = cluster_by_distance(stops, max_distance_km)
    return ClusterResponse(
        clusters=[[stop.stop_id for stop in group] for group in groups],
        unlocated_stop_ids=[stop.stop_id for stop in stops if stop.coordinates is None],
    )


async def suggest_dates(
    session: SessionContext,
    farrier_id: str,
    customer_locations: list[Coordinates],
    target_day: date,
    days_range: int,
) -> list[DateSuggestionModel]:
    booked = await load_stops_in_range(session, farrier_id, target_day, days_range)
    suggestions = suggest_optimal_dates(customer_locations, booked, target_day, days_range)
    return [DateSuggestionModel(date=item.day, score=item.score, reason=item.reason) for item in suggestions]
