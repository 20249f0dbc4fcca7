"""Data access helpers for loading and updating a farrier's appointments."""

from __future__ import annotations

import asyncio
import logging
import math
from datetime import date, datetime, time, timedelta
from typing import Any, Iterable, Literal, Optional, Sequence
from zoneinfo import ZoneInfo

from ..config import settings
from ..db.supabase import get_supabase_client
from ..models.domain import (
    ACTIVE_STATUSES,
    STOP_STATUSES,
    Coordinates,
    FarrierProfile,
    SessionContext,
    Stop,
)
from ..services.routing.errors import LoadFailure, MutationWriteFailure

logger = logging.getLogger(__name__)

StopOrder = Literal["sequence", "schedule"]

APPOINTMENT_COLUMNS = (
    "id, proposed_date, num_horses, sequence_order, status, "
    "customer:customer_id(full_name, address, city, latitude, longitude, phone)"
)


def _coerce_float(value: Any) -> Optional[float]:
    if value is None or value == "":
        return None
    try:
        number = float(str(value).replace(",", "")) if isinstance(value, str) else float(value)
    except (TypeError, ValueError):
        return None
    return number if math.isfinite(number) else None


def _coerce_coordinates(customer: dict) -> Optional[Coordinates]:
    lat = _coerce_float(customer.get("latitude"))
    lon = _coerce_float(customer.get("longitude"))
    if lat is None or lon is None:
        return None
    if not (-90.0 <= lat <= 90.0 and -180.0 <= lon <= 180.0):
        logger.warning(f"Ignoring out-of-range coordinates ({lat}, {lon})")
        return None
    # a zero on either axis is what an un-geocoded customer record holds
    if lat == 0.0 or lon == 0.0:
        return None
    return Coordinates(lat, lon)


def _parse_timestamp(value: Any, tz: ZoneInfo) -> datetime:
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, str) and value.strip():
        text = value.strip()
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        parsed = datetime.fromisoformat(text)
    else:
        raise ValueError(f"missing timestamp: {value!r}")
    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=tz)
    return parsed.astimezone(tz)


def _coerce_optional_str(value: Any) -> Optional[str]:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def resolve_timezone(session: SessionContext | None = None) -> ZoneInfo:
    return ZoneInfo((session.timezone if session and session.timezone else None) or settings.timezone)


def parse_stop_row(row: dict, tz: ZoneInfo | None = None) -> Stop:
    """Validate one joined appointment row and build a Stop.

    Missing optional fields (phone, coordinates, sequence) become None; rows
    whose id, timestamp, status or horse count cannot be parsed raise
    LoadFailure.
    """
    tz = tz or ZoneInfo(settings.timezone)
    if not isinstance(row, dict):
        raise LoadFailure(f"Unexpected appointment row shape: {type(row).__name__}")

    appointment_id = _coerce_optional_str(row.get("id"))
    if appointment_id is None:
        raise LoadFailure("Appointment row without id")

    customer = row.get("customer") or {}
    if isinstance(customer, list):
        # PostgREST returns a list when the relationship is not detected as to-one
        customer = customer[0] if customer else {}
    if not isinstance(customer, dict):
        raise LoadFailure(f"Appointment {appointment_id}: unexpected customer shape")

    try:
        scheduled_at = _parse_timestamp(row.get("proposed_date"), tz)
    except ValueError as exc:
        raise LoadFailure(f"Appointment {appointment_id}: invalid proposed_date") from exc

    status = _coerce_optional_str(row.get("status"))
    if status not in STOP_STATUSES:
        raise LoadFailure(f"Appointment {appointment_id}: unknown status {status!r}")

    raw_horses = row.get("num_horses")
    if raw_horses is None:
        horse_count = 1
    else:
        try:
            if isinstance(raw_horses, float) and not raw_horses.is_integer():
                raise ValueError(raw_horses)
            horse_count = int(raw_horses)
        except (TypeError, ValueError) as exc:
            raise LoadFailure(f"Appointment {appointment_id}: invalid num_horses {raw_horses!r}") from exc
        if horse_count < 1:
            raise LoadFailure(f"Appointment {appointment_id}: invalid num_horses {raw_horses!r}")

    raw_sequence = row.get("sequence_order")
    try:
        sequence_index = int(raw_sequence) if raw_sequence is not None else None
    except (TypeError, ValueError):
        logger.warning(f"Appointment {appointment_id}: ignoring invalid sequence_order {raw_sequence!r}")
        sequence_index = None

    return Stop(
        stop_id=appointment_id,
        customer_name=_coerce_optional_str(customer.get("full_name")) or "Unknown",
        address=_coerce_optional_str(customer.get("address")) or "",
        city=_coerce_optional_str(customer.get("city")) or "",
        coordinates=_coerce_coordinates(customer),
        phone=_coerce_optional_str(customer.get("phone")),
        scheduled_at=scheduled_at,
        horse_count=horse_count,
        sequence_index=sequence_index,
        status=status,
    )


def day_window(day: date, tz: ZoneInfo) -> tuple[datetime, datetime]:
    """Half-open [day 00:00, next day 00:00) in the given timezone."""
    start = datetime.combine(day, time.min, tzinfo=tz)
    end = datetime.combine(day + timedelta(days=1), time.min, tzinfo=tz)
    return start, end


def _sort_stops(stops: list[Stop], order_by: StopOrder) -> list[Stop]:
    if order_by == "schedule":
        return sorted(stops, key=lambda stop: stop.scheduled_at)
    # Stops never sequenced go after sequenced ones, by schedule
    return sorted(
        stops,
        key=lambda stop: (stop.sequence_index is None, stop.sequence_index or 0, stop.scheduled_at),
    )


def _fetch_appointment_rows(
    farrier_id: str,
    start: datetime,
    end: datetime,
    statuses: Sequence[str],
    order_by: StopOrder,
) -> list[dict]:
    supabase = get_supabase_client()
    if not supabase:
        raise LoadFailure("Appointment store is not configured")

    query = (
        supabase.table("appointments")
        .select(APPOINTMENT_COLUMNS)
        .eq("farrier_id", farrier_id)
        .gte("proposed_date", start.isoformat())
        .lt("proposed_date", end.isoformat())
        .in_("status", list(statuses))
    )
    if order_by == "sequence":
        query = query.order("sequence_order").order("proposed_date")
    else:
        query = query.order("proposed_date")

    try:
        response = query.execute()
    except Exception as exc:
        logger.warning(f"Failed to load appointments for farrier {farrier_id}: {exc}")
        raise LoadFailure(f"Failed to load appointments: {exc}") from exc
    data = response.data if response is not None else None
    if data is None:
        return []
    if not isinstance(data, list):
        raise LoadFailure("Appointment query returned an unexpected payload")
    return data


async def load_stops_for_day(
    session: SessionContext,
    farrier_id: str,
    day: date,
    *,
    include_completed: bool = False,
    order_by: StopOrder = "sequence",
    statuses: Iterable[str] | None = None,
) -> list[Stop]:
    """Load a farrier's stops for one day.

    Args:
        session: Caller context; its timezone defines the day boundaries.
        farrier_id: Farrier whose appointments are loaded.
        day: Calendar day to load.
        include_completed: Also return completed stops (full-day view).
        order_by: "sequence" for the stored visiting order, "schedule" for appointment time.
        statuses: Override the status filter entirely.

    Returns:
        Stops in the requested order; an empty list when nothing is booked.

    Raises:
        LoadFailure: store unreachable, query rejected, or a row failed validation.
    """
    tz = resolve_timezone(session)
    start, end = day_window(day, tz)
    wanted = list(statuses) if statuses is not None else list(ACTIVE_STATUSES)
    if include_completed and "completed" not in wanted:
        wanted.append("completed")

    rows = await asyncio.to_thread(_fetch_appointment_rows, farrier_id, start, end, wanted, order_by)
    stops = [parse_stop_row(row, tz) for row in rows]
    logger.info(f"Loaded {len(stops)} stops for farrier {farrier_id} on {day.isoformat()}")
    return _sort_stops(stops, order_by)


async def load_stops_in_range(
    session: SessionContext,
    farrier_id: str,
    first_day: date,
    days: int,
    *,
    statuses: Iterable[str] = ("accepted", "confirmed", "in_progress"),
) -> list[Stop]:
    """Load booked stops over ``days`` consecutive days, in schedule order."""
    if days < 1:
        raise ValueError("days must be at least 1")
    tz = resolve_timezone(session)
    start, _ = day_window(first_day, tz)
    _, end = day_window(first_day + timedelta(days=days - 1), tz)
    rows = await asyncio.to_thread(_fetch_appointment_rows, farrier_id, start, end, list(statuses), "schedule")
    return _sort_stops([parse_stop_row(row, tz) for row in rows], "schedule")


def _fetch_farrier_row(farrier_id: str) -> dict | None:
    supabase = get_supabase_client()
    if not supabase:
        raise LoadFailure("Appointment store is not configured")
    try:
        response = (
            supabase.table("profiles")
            .select("id, full_name, address, city, latitude, longitude")
            .eq("id", farrier_id)
            .eq("role", "farrier")
            .limit(1)
            .execute()
        )
    except Exception as exc:
        logger.warning(f"Failed to load farrier profile {farrier_id}: {exc}")
        raise LoadFailure(f"Failed to load farrier profile: {exc}") from exc
    rows = response.data or []
    return rows[0] if rows else None


async def load_farrier_profile(farrier_id: str) -> FarrierProfile:
    """Load the farrier's profile and home base. Raises LoadFailure when not found."""
    row = await asyncio.to_thread(_fetch_farrier_row, farrier_id)
    if row is None:
        raise LoadFailure(f"Farrier '{farrier_id}' not found")
    return FarrierProfile(
        farrier_id=str(row.get("id") or farrier_id),
        full_name=_coerce_optional_str(row.get("full_name")) or "Unknown",
        address=_coerce_optional_str(row.get("address")),
        city=_coerce_optional_str(row.get("city")),
        home=_coerce_coordinates(row),
    )


def _write_appointment_fields(appointment_id: str, fields: dict[str, Any]) -> None:
    supabase = get_supabase_client()
    if not supabase:
        raise MutationWriteFailure("Appointment store is not configured")
    try:
        response = supabase.table("appointments").update(fields).eq("id", appointment_id).execute()
    except Exception as exc:
        logger.error(f"Failed to update appointment {appointment_id}: {exc}")
        raise MutationWriteFailure(f"Failed to update appointment {appointment_id}: {exc}") from exc
    if response is not None and response.data == []:
        raise MutationWriteFailure(f"Appointment {appointment_id} was not updated")


async def update_appointment(session: SessionContext, appointment_id: str, fields: dict[str, Any]) -> None:
    """Persist a partial appointment update. Raises MutationWriteFailure."""
    logger.info(f"User {session.user_id} updating appointment {appointment_id}: {sorted(fields)}")
    await asyncio.to_thread(_write_appointment_fields, appointment_id, fields)
