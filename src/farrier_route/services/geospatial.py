"""Geospatial helper functions."""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Iterable, Sequence

from shapely.geometry import MultiPoint

from ..config import settings
from ..models.domain import Coordinates, Stop

EARTH_RADIUS_KM = 6371.0
MAPS_DIRECTIONS_URL = "https://www.google.com/maps/dir/?api=1"
# Padding applied around the stops' bounding box so markers are not on the edge.
REGION_PADDING_FACTOR = 1.2


def haversine_km(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """Compute distance between two coordinates using the Haversine formula.

    NaN inputs propagate to a NaN result; callers validate coordinates first.
    """

    phi1, phi2 = math.radians(lat1), math.radians(lat2)
    d_phi = math.radians(lat2 - lat1)
    d_lambda = math.radians(lon2 - lon1)

    a = math.sin(d_phi / 2) ** 2 + math.cos(phi1) * math.cos(phi2) * math.sin(d_lambda / 2) ** 2
    c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))
    return EARTH_RADIUS_KM * c


def distance_between(a: Coordinates | None, b: Coordinates | None) -> float | None:
    """Distance in km, or None when either point is missing."""
    if a is None or b is None:
        return None
    return haversine_km(a.latitude, a.longitude, b.latitude, b.longitude)


def route_distance_km(stops: Sequence[Stop]) -> float:
    """Sum of consecutive legs; legs with a missing endpoint are skipped."""
    total = 0.0
    for previous, current in zip(stops, stops[1:]):
        leg = distance_between(previous.coordinates, current.coordinates)
        if leg is not None:
            total += leg
    return total


def _format_point(point: Coordinates) -> str:
    return f"{point.latitude},{point.longitude}"


def destination_url(point: Coordinates) -> str:
    """Google Maps driving directions to a single destination."""
    return f"{MAPS_DIRECTIONS_URL}&destination={_format_point(point)}&travelmode=driving"


def route_url(points: Sequence[Coordinates], origin: Coordinates | None = None) -> str:
    """Google Maps directions through every point; intermediate stops become waypoints."""
    if not points:
        raise ValueError("At least one point is required to build a route URL.")
    *waypoints, destination = points
    url = f"{MAPS_DIRECTIONS_URL}"
    if origin is not None:
        url += f"&origin={_format_point(origin)}"
    url += f"&destination={_format_point(destination)}"
    if waypoints:
        url += "&waypoints=" + "|".join(_format_point(point) for point in waypoints)
    return url + "&travelmode=driving"


@dataclass(frozen=True, slots=True)
class MapRegion:
    latitude: float
    longitude: float
    latitude_delta: float
    longitude_delta: float


def bounding_region(stops: Iterable[Stop]) -> MapRegion:
    """Map region covering the geocoded stops.

    Falls back to the configured default region when nothing is geocoded; a
    single stop is centered with a fixed zoom.
    """
    points = [stop.coordinates for stop in stops if stop.coordinates is not None]
    if not points:
        lat, lon = settings.default_region_center
        delta = settings.default_region_delta
        return MapRegion(lat, lon, delta, delta)
    if len(points) == 1:
        delta = settings.single_stop_region_delta
        return MapRegion(points[0].latitude, points[0].longitude, delta, delta)

    # shapely works in (x, y) = (lon, lat)
    min_lon, min_lat, max_lon, max_lat = MultiPoint([(p.longitude, p.latitude) for p in points]).bounds
    return MapRegion(
        latitude=(min_lat + max_lat) / 2,
        longitude=(min_lon + max_lon) / 2,
        latitude_delta=max((max_lat - min_lat) * REGION_PADDING_FACTOR, settings.single_stop_region_delta),
        longitude_delta=max((max_lon - min_lon) * REGION_PADDING_FACTOR, settings.single_stop_region_delta),
    )
