"""Domain models for appointments, farriers and request sessions."""

from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import datetime
from typing import Literal, Optional

StopStatus = Literal[
    "proposed",
    "accepted",
    "confirmed",
    "in_progress",
    "completed",
    "declined",
    "cancelled",
]

STOP_STATUSES: frozenset[str] = frozenset(
    {"proposed", "accepted", "confirmed", "in_progress", "completed", "declined", "cancelled"}
)
# Statuses that take part in a day's active route.
ACTIVE_STATUSES: tuple[str, ...] = ("confirmed", "in_progress")


@dataclass(frozen=True, slots=True)
class Coordinates:
    latitude: float
    longitude: float

    def as_tuple(self) -> tuple[float, float]:
        return (self.latitude, self.longitude)


@dataclass(slots=True)
class Stop:
    """One appointment to visit on a given day."""

    stop_id: str
    customer_name: str
    address: str
    city: str
    coordinates: Optional[Coordinates]
    phone: Optional[str]
    scheduled_at: datetime
    horse_count: int
    sequence_index: Optional[int]
    status: StopStatus

    @property
    def is_geocoded(self) -> bool:
        return self.coordinates is not None

    @property
    def is_completed(self) -> bool:
        return self.status == "completed"

    @property
    def full_address(self) -> str:
        return ", ".join(part for part in (self.address, self.city) if part)

    def copy(self, **changes) -> "Stop":
        return replace(self, **changes)


@dataclass(slots=True)
class FarrierProfile:
    """Farrier record with the home base used as route anchor."""

    farrier_id: str
    full_name: str
    address: Optional[str]
    city: Optional[str]
    home: Optional[Coordinates]


@dataclass(frozen=True, slots=True)
class SessionContext:
    """Caller identity and locale, passed explicitly instead of held globally."""

    user_id: str
    role: str = "farrier"
    locale: str = "it"
    timezone: Optional[str] = None
