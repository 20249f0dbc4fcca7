"""Routing domain models."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Literal, Optional

from ...models.domain import Stop

OptimizationSource = Literal["llm", "fallback", "empty", "unlocated"]


@dataclass(slots=True)
class AnnotatedStop:
    stop: Stop
    sequence: int
    distance_from_prev_km: Optional[float]
    travel_minutes: float
    work_minutes: float
    estimated_arrival: datetime
    estimated_departure: datetime
    approximate: bool = False


@dataclass(slots=True)
class DayRoute:
    stops: List[AnnotatedStop]
    total_estimated_minutes: float
    total_distance_km: float
    approximate: bool = False

    @property
    def stop_count(self) -> int:
        return len(self.stops)


@dataclass(slots=True)
class OptimizedStep:
    appointment_index: int
    departure_time: str
    arrival_time: str
    work_duration_minutes: int
    maps_url: str
    appointment_id: Optional[str] = None
    customer_name: Optional[str] = None
    customer_address: Optional[str] = None
    horse_count: Optional[int] = None


@dataclass(slots=True)
class OptimizedRoute:
    order: List[int]
    total_estimated_minutes: float
    steps: List[OptimizedStep] = field(default_factory=list)
    message: Optional[str] = None
    source: OptimizationSource = "llm"
