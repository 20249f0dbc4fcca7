"""Score candidate days for a new appointment by proximity to existing bookings."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, timedelta
from typing import Sequence

from ...models.domain import Coordinates, Stop
from ..geospatial import distance_between

EMPTY_DAY_SCORE = 50
# (upper bound in km, score) checked in order; anything farther scores EMPTY_DAY_SCORE.
PROXIMITY_SCORES: tuple[tuple[float, int], ...] = ((5.0, 95), (10.0, 85), (20.0, 70))


@dataclass(frozen=True, slots=True)
class DateSuggestion:
    day: date
    score: int
    reason: str


def _score_for(min_distance_km: float) -> int:
    for limit, score in PROXIMITY_SCORES:
        if min_distance_km < limit:
            return score
    return EMPTY_DAY_SCORE


def suggest_optimal_dates(
    customer_points: Sequence[Coordinates],
    booked: Sequence[Stop],
    target_day: date,
    days_range: int = 7,
) -> list[DateSuggestion]:
    """Rank ``days_range`` days starting at ``target_day``.

    A day scores higher the closer its nearest booked stop is to any of the
    customer's locations. Ungeocoded bookings are ignored. Ties keep date order.
    """
    if not customer_points:
        raise ValueError("At least one customer location is required.")
    if days_range < 1:
        raise ValueError("days_range must be at least 1.")

    suggestions: list[DateSuggestion] = []
    for offset in range(days_range):
        day = target_day + timedelta(days=offset)
        on_day = [stop for stop in booked if stop.scheduled_at.date() == day and stop.coordinates is not None]
        if not on_day:
            suggestions.append(DateSuggestion(day, EMPTY_DAY_SCORE, "No appointments on this day"))
            continue

        distances = [distance_between(point, stop.coordinates) for point in customer_points for stop in on_day]
        average = sum(distances) / len(distances)
        suggestions.append(
            DateSuggestion(
                day,
                _score_for(min(distances)),
                f"{len(on_day)} appointment(s) nearby (avg {average:.1f}km)",
            )
        )

    return sorted(suggestions, key=lambda suggestion: suggestion.score, reverse=True)
