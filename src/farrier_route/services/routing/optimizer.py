"""Enhanced (LLM-backed) route optimization with its fallback policy.

Outcomes, in the order they are checked:

1. no appointments on the day: empty route with a message;
2. appointments but none geocoded: identity order, work time only;
3. optimizer not configured: deterministic fallback schedule, travel ignored;
4. otherwise the external service is called. Any failure after the attempt
   is raised as OptimizerCallFailure and never replaced by the fallback.
"""

from __future__ import annotations

import logging
import math
import re
from datetime import date, datetime, timedelta
from typing import Any, Sequence
from urllib.parse import quote_plus

from ...config import settings
from ...data.appointments_repository import load_farrier_profile, load_stops_for_day
from ...models.domain import FarrierProfile, SessionContext, Stop
from ..geospatial import destination_url
from .errors import MalformedOptimizerResponse
from .models import OptimizedRoute, OptimizedStep
from .optimizer_client import RouteOptimizerClient

logger = logging.getLogger(__name__)

# The optimizer plans over accepted as well as confirmed appointments.
OPTIMIZER_STATUSES = ("confirmed", "accepted")
NO_APPOINTMENTS_MESSAGE = "No confirmed appointments for this date"
NO_LOCATIONS_MESSAGE = "Appointments found but missing location data"
_CLOCK_PATTERN = re.compile(r"^([01]?\d|2[0-3]):[0-5]\d$")


def _work_minutes(stop: Stop) -> int:
    return stop.horse_count * settings.work_minutes_per_horse


def _maps_url_for(stop: Stop) -> str:
    if stop.coordinates is not None:
        return destination_url(stop.coordinates)
    return f"https://www.google.com/maps/search/?api=1&query={quote_plus(stop.full_address or stop.customer_name)}"


def _enrich(step: OptimizedStep, stop: Stop) -> OptimizedStep:
    step.appointment_id = stop.stop_id
    step.customer_name = stop.customer_name
    step.customer_address = stop.full_address
    step.horse_count = stop.horse_count
    return step


def fallback_route(stops: Sequence[Stop]) -> OptimizedRoute:
    """Schedule used when the optimizer is unavailable.

    Keeps the input order and places stops at fixed intervals from the day
    start. Travel time is ignored: without the external call there is no
    distance model worth trusting here.
    """
    day_start = datetime.strptime(settings.day_start, "%H:%M")
    interval = timedelta(hours=settings.fallback_interval_hours)
    steps = []
    for index, stop in enumerate(stops):
        slot = (day_start + interval * index).strftime("%H:%M")
        steps.append(
            _enrich(
                OptimizedStep(
                    appointment_index=index,
                    departure_time=slot,
                    arrival_time=slot,
                    work_duration_minutes=_work_minutes(stop),
                    maps_url=_maps_url_for(stop),
                ),
                stop,
            )
        )
    return OptimizedRoute(
        order=list(range(len(stops))),
        total_estimated_minutes=sum(_work_minutes(stop) for stop in stops),
        steps=steps,
        source="fallback",
    )


def _require_int(value: Any, label: str) -> int:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise MalformedOptimizerResponse(f"{label} must be an integer, got {value!r}")
    if isinstance(value, float) and not value.is_integer():
        raise MalformedOptimizerResponse(f"{label} must be an integer, got {value!r}")
    return int(value)


def _require_number(value: Any, label: str) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)) or not math.isfinite(value) or value < 0:
        raise MalformedOptimizerResponse(f"{label} must be a non-negative number, got {value!r}")
    return value


def _require_minutes(value: Any) -> int:
    minutes = _require_int(value, "work_duration_minutes")
    if minutes < 0:
        raise MalformedOptimizerResponse(f"work_duration_minutes must be non-negative, got {value!r}")
    return minutes


def _require_clock(value: Any, label: str) -> str:
    if not isinstance(value, str) or not _CLOCK_PATTERN.match(value.strip()):
        raise MalformedOptimizerResponse(f"{label} must be HH:MM, got {value!r}")
    hours, minutes = value.strip().split(":")
    return f"{int(hours):02d}:{minutes}"


def parse_optimizer_response(
    payload: Any,
    stops: Sequence[Stop],
    geocoded_indices: Sequence[int],
) -> OptimizedRoute:
    """Validate an optimizer answer over the geocoded subset and remap it to ``stops``.

    The answer is indexed 0..len(geocoded_indices)-1. Nothing is applied
    unless the whole answer is valid.
    """
    if not isinstance(payload, dict):
        raise MalformedOptimizerResponse("Optimizer response is not a JSON object")
    subset_size = len(geocoded_indices)

    raw_order = payload.get("order")
    if not isinstance(raw_order, list):
        raise MalformedOptimizerResponse("Optimizer response is missing 'order'")
    order = [_require_int(value, "order entry") for value in raw_order]
    if sorted(order) != list(range(subset_size)):
        raise MalformedOptimizerResponse(
            f"'order' is not a permutation of 0..{subset_size - 1}: {order}"
        )

    if "total_estimated_minutes" not in payload:
        raise MalformedOptimizerResponse("Optimizer response is missing 'total_estimated_minutes'")
    total = _require_number(payload["total_estimated_minutes"], "total_estimated_minutes")

    raw_steps = payload.get("steps")
    if not isinstance(raw_steps, list):
        raise MalformedOptimizerResponse("Optimizer response is missing 'steps'")

    steps: list[OptimizedStep] = []
    seen: set[int] = set()
    for raw_step in raw_steps:
        if not isinstance(raw_step, dict):
            raise MalformedOptimizerResponse("Optimizer step is not an object")
        subset_index = _require_int(raw_step.get("appointment_index"), "appointment_index")
        if not 0 <= subset_index < subset_size or subset_index in seen:
            raise MalformedOptimizerResponse(f"Invalid or repeated appointment_index {subset_index}")
        seen.add(subset_index)
        original_index = geocoded_indices[subset_index]
        stop = stops[original_index]
        maps_url = raw_step.get("maps_url")
        steps.append(
            _enrich(
                OptimizedStep(
                    appointment_index=original_index,
                    departure_time=_require_clock(raw_step.get("departure_time"), "departure_time"),
                    arrival_time=_require_clock(raw_step.get("arrival_time"), "arrival_time"),
                    work_duration_minutes=_require_minutes(raw_step.get("work_duration_minutes")),
                    maps_url=maps_url if isinstance(maps_url, str) and maps_url else _maps_url_for(stop),
                ),
                stop,
            )
        )

    if seen != set(order) or len(steps) != len(order):
        raise MalformedOptimizerResponse(
            f"'steps' cover indices {sorted(seen)}, expected one step per entry of 'order'"
        )

    message = payload.get("message")
    skipped = len(stops) - subset_size
    if skipped and not message:
        message = f"{skipped} appointment(s) without location data were left out"

    return OptimizedRoute(
        order=[geocoded_indices[index] for index in order],
        total_estimated_minutes=total,
        steps=steps,
        message=message if isinstance(message, str) else None,
        source="llm",
    )


async def optimize_stops(
    farrier: FarrierProfile,
    stops: Sequence[Stop],
    *,
    client: RouteOptimizerClient | None = None,
) -> OptimizedRoute:
    """Apply the optimization policy to an already loaded stop list."""
    if not stops:
        return OptimizedRoute(order=[], total_estimated_minutes=0, steps=[], message=NO_APPOINTMENTS_MESSAGE, source="empty")

    geocoded_indices = [index for index, stop in enumerate(stops) if stop.coordinates is not None]
    if not geocoded_indices:
        return OptimizedRoute(
            order=list(range(len(stops))),
            total_estimated_minutes=len(stops) * settings.work_minutes_per_horse,
            steps=[],
            message=NO_LOCATIONS_MESSAGE,
            source="unlocated",
        )

    if client is None:
        if not settings.optimizer_configured:
            logger.info("Optimizer not configured, using fallback schedule")
            return fallback_route(stops)
        client = RouteOptimizerClient()

    subset = [stops[index] for index in geocoded_indices]
    payload = await client.propose_route(farrier, subset)
    result = parse_optimizer_response(payload, stops, geocoded_indices)
    logger.info(f"Optimizer proposed order {result.order} ({result.total_estimated_minutes} min)")
    return result


async def optimize_route(
    farrier_id: str,
    day: date,
    *,
    session: SessionContext | None = None,
    client: RouteOptimizerClient | None = None,
) -> OptimizedRoute:
    """Load the farrier's day and return an optimized visiting order.

    Raises:
        LoadFailure: farrier or appointments could not be loaded.
        OptimizerCallFailure: the external call was attempted and failed.
    """
    session = session or SessionContext(user_id=farrier_id)
    farrier = await load_farrier_profile(farrier_id)
    stops = await load_stops_for_day(session, farrier_id, day, order_by="schedule", statuses=OPTIMIZER_STATUSES)
    return await optimize_stops(farrier, stops, client=client)
