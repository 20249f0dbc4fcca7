"""Serializers for routing outputs."""

from __future__ import annotations

import csv
import io
from dataclasses import asdict

from ..geospatial import destination_url
from ..routing.models import AnnotatedStop, DayRoute, OptimizedRoute


def annotated_stop_to_json(item: AnnotatedStop) -> dict:
    stop = item.stop
    coordinates = stop.coordinates
    return {
        "stop_id": stop.stop_id,
        "sequence": item.sequence,
        "customer_name": stop.customer_name,
        "address": stop.address,
        "city": stop.city,
        "latitude": coordinates.latitude if coordinates else None,
        "longitude": coordinates.longitude if coordinates else None,
        "phone": stop.phone,
        "scheduled_at": stop.scheduled_at,
        "horse_count": stop.horse_count,
        "status": stop.status,
        "sequence_index": stop.sequence_index,
        "distance_from_prev_km": item.distance_from_prev_km,
        "travel_minutes": item.travel_minutes,
        "work_minutes": item.work_minutes,
        "estimated_arrival": item.estimated_arrival,
        "estimated_departure": item.estimated_departure,
        "approximate": item.approximate,
        "maps_url": destination_url(coordinates) if coordinates else None,
    }


def optimized_route_to_json(result: OptimizedRoute) -> dict:
    """Wire shape of the optimizer response; ``horse_count`` travels as ``num_horses``."""
    steps = []
    for step in result.steps:
        payload = asdict(step)
        payload["num_horses"] = payload.pop("horse_count")
        steps.append(payload)
    return {
        "order": list(result.order),
        "total_estimated_minutes": result.total_estimated_minutes,
        "steps": steps,
        "message": result.message,
        "source": result.source,
    }


def day_route_to_csv(route: DayRoute) -> str:
    buffer = io.StringIO()
    fieldnames = [
        "sequence",
        "stop_id",
        "customer_name",
        "address",
        "city",
        "phone",
        "horse_count",
        "status",
        "distance_from_prev_km",
        "estimated_arrival",
        "estimated_departure",
        "approximate",
    ]
    writer = csv.DictWriter(buffer, fieldnames=fieldnames)
    writer.writeheader()
    for item in route.stops:
        stop = item.stop
        writer.writerow(
            {
                "sequence": item.sequence,
                "stop_id": stop.stop_id,
                "customer_name": stop.customer_name,
                "address": stop.address,
                "city": stop.city,
                "phone": stop.phone or "",
                "horse_count": stop.horse_count,
                "status": stop.status,
                "distance_from_prev_km": "" if item.distance_from_prev_km is None else f"{item.distance_from_prev_km:.2f}",
                "estimated_arrival": item.estimated_arrival.strftime("%H:%M"),
                "estimated_departure": item.estimated_departure.strftime("%H:%M"),
                "approximate": "yes" if item.approximate else "",
            }
        )
    return buffer.getvalue()
