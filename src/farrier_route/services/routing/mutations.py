"""User actions that mutate a day route: completion, rescheduling, manual reordering."""

from __future__ import annotations

import logging
import math
from datetime import datetime, timedelta
from typing import Iterable

from ...data.appointments_repository import update_appointment
from ...models.domain import Coordinates, SessionContext, Stop
from ..geospatial import MapRegion, bounding_region
from .errors import MutationWriteFailure, StopNotFound
from .models import DayRoute
from .nearest_neighbor import order_by_proximity
from .timing import annotate_times

logger = logging.getLogger(__name__)

SNAP_MINUTES = 15
# Day timeline geometry: pixels per hour and the hour drawn at the top.
TIMELINE_HOUR_HEIGHT = 80
TIMELINE_FIRST_HOUR = 6


def _round_half_up(value: float) -> int:
    return math.floor(value + 0.5)


def snap_to_quarter_hour(timestamp: datetime) -> datetime:
    """Round to the nearest quarter hour; exact midpoints round up."""
    midnight = timestamp.replace(hour=0, minute=0, second=0, microsecond=0)
    elapsed = (timestamp - midnight).total_seconds() / 60
    return midnight + timedelta(minutes=SNAP_MINUTES * _round_half_up(elapsed / SNAP_MINUTES))


def timeline_drop_to_timestamp(
    original: datetime,
    offset_px: float,
    hour_height: float = TIMELINE_HOUR_HEIGHT,
    first_hour: int = TIMELINE_FIRST_HOUR,
) -> datetime:
    """Convert a vertical drag on the day timeline into a snapped timestamp on the same day."""
    if hour_height <= 0:
        raise ValueError("hour_height must be positive")
    quarter = hour_height / 4
    initial_top = (original.hour - first_hour) * hour_height + (original.minute / 60) * hour_height
    snapped_top = _round_half_up((initial_top + offset_px) / quarter) * quarter
    minutes = first_hour * 60 + round(snapped_top / hour_height * 60)
    minutes = max(0, min(minutes, 24 * 60 - SNAP_MINUTES))
    midnight = original.replace(hour=0, minute=0, second=0, microsecond=0)
    return midnight + timedelta(minutes=minutes)


class RouteView:
    """In-memory stop list owned by one route view for its lifetime.

    Writes are applied optimistically and rolled back when the store rejects
    them, so the view never shows a state that was not persisted.
    """

    def __init__(self, session: SessionContext, stops: Iterable[Stop], *, keep_completed: bool = False) -> None:
        self.session = session
        self.keep_completed = keep_completed
        self._stops: list[Stop] = list(stops)
        self._completed_ids: set[str] = {stop.stop_id for stop in self._stops if stop.is_completed}

    @property
    def stops(self) -> list[Stop]:
        return list(self._stops)

    @property
    def active_stops(self) -> list[Stop]:
        return [stop for stop in self._stops if not stop.is_completed]

    @property
    def region(self) -> MapRegion:
        return bounding_region(self.active_stops)

    def _position(self, stop_id: str) -> int:
        for position, stop in enumerate(self._stops):
            if stop.stop_id == stop_id:
                return position
        raise StopNotFound(stop_id)

    def get(self, stop_id: str) -> Stop:
        return self._stops[self._position(stop_id)]

    def next_stop(self) -> Stop | None:
        return next(iter(self.active_stops), None)

    async def mark_completed(self, stop_id: str) -> bool:
        """Mark a stop completed. Returns False when it already was."""
        if stop_id in self._completed_ids:
            logger.debug(f"Stop {stop_id} already completed, nothing to do")
            return False
        position = self._position(stop_id)
        snapshot = list(self._stops)

        if self.keep_completed:
            self._stops[position] = self._stops[position].copy(status="completed")
        else:
            del self._stops[position]
        self._completed_ids.add(stop_id)

        try:
            await update_appointment(self.session, stop_id, {"status": "completed"})
        except MutationWriteFailure:
            self._stops = snapshot
            self._completed_ids.discard(stop_id)
            raise
        return True

    async def reschedule(self, stop_id: str, new_timestamp: datetime) -> Stop:
        """Move a stop to ``new_timestamp`` snapped to the quarter hour.

        The visiting order is left alone; reordering only happens through an
        explicit optimization.
        """
        position = self._position(stop_id)
        previous = self._stops[position]
        snapped = snap_to_quarter_hour(new_timestamp)
        self._stops[position] = previous.copy(scheduled_at=snapped)
        try:
            await update_appointment(self.session, stop_id, {"proposed_date": snapped.isoformat()})
        except MutationWriteFailure:
            self._stops[position] = previous
            raise
        return self._stops[position]

    def optimize_locally(self, anchor: Coordinates | None = None) -> list[Stop]:
        """Reorder the remaining stops by proximity; completed stops stay in front as visited."""
        visited = [stop for stop in self._stops if stop.is_completed]
        reordered = visited + order_by_proximity(self.active_stops, anchor)
        self._stops = [stop.copy(sequence_index=index) for index, stop in enumerate(reordered, start=1)]
        return self.stops

    async def reorder(self, anchor: Coordinates | None = None) -> list[Stop]:
        """Reorder by proximity and persist every changed ``sequence_order``.

        On a failed write the in-memory order is restored and the sequence
        values already written are put back, so the store keeps the old order.
        """
        snapshot = list(self._stops)
        previous = {stop.stop_id: stop.sequence_index for stop in snapshot}
        self.optimize_locally(anchor)

        written: list[str] = []
        try:
            for stop in self._stops:
                if stop.sequence_index == previous[stop.stop_id]:
                    continue
                await update_appointment(self.session, stop.stop_id, {"sequence_order": stop.sequence_index})
                written.append(stop.stop_id)
        except MutationWriteFailure:
            self._stops = snapshot
            await self._restore_sequence(written, previous)
            raise
        return self.stops

    async def _restore_sequence(self, stop_ids: list[str], previous: dict[str, int | None]) -> None:
        for stop_id in stop_ids:
            try:
                await update_appointment(self.session, stop_id, {"sequence_order": previous[stop_id]})
            except MutationWriteFailure as exc:
                # The original failure is re-raised by the caller
                logger.error(f"Could not restore sequence_order of stop {stop_id}: {exc}")

    async def drag(self, stop_id: str, offset_px: float) -> Stop:
        """Reschedule a stop dragged ``offset_px`` pixels on the day timeline."""
        current = self.get(stop_id)
        return await self.reschedule(stop_id, timeline_drop_to_timestamp(current.scheduled_at, offset_px))

    def estimate(self, start_time: datetime, origin: Coordinates | None = None) -> DayRoute:
        return annotate_times(self.active_stops, start_time, origin=origin)
