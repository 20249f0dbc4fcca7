"""Proximity grouping of stops."""

from __future__ import annotations

from typing import Sequence

import numpy as np
from sklearn.cluster import AgglomerativeClustering

from ...models.domain import Stop
from ..geospatial import haversine_km

DEFAULT_CLUSTER_DISTANCE_KM = 20.0


def distance_matrix_km(stops: Sequence[Stop]) -> np.ndarray:
    """Symmetric haversine matrix; every stop must be geocoded."""
    size = len(stops)
    matrix = np.zeros((size, size), dtype=float)
    for i in range(size):
        a = stops[i].coordinates
        for j in range(i + 1, size):
            b = stops[j].coordinates
            matrix[i, j] = matrix[j, i] = haversine_km(a.latitude, a.longitude, b.latitude, b.longitude)
    return matrix


def cluster_by_distance(
    stops: Sequence[Stop],
    max_distance_km: float = DEFAULT_CLUSTER_DISTANCE_KM,
) -> list[list[Stop]]:
    """Group geocoded stops so that each one is within ``max_distance_km`` of some other member.

    Single-linkage: chains of close stops end up in one group even when the
    ends of the chain are far apart. Stops without coordinates are skipped.
    Groups are ordered by their first member's input position and keep input
    order internally.
    """
    if max_distance_km < 0:
        raise ValueError("max_distance_km must be non-negative")
    located = [stop for stop in stops if stop.coordinates is not None]
    if len(located) < 2:
        return [[stop] for stop in located]

    model = AgglomerativeClustering(
        n_clusters=None,
        metric="precomputed",
        linkage="single",
        # sklearn merges strictly below the threshold; stops exactly at the limit belong together
        distance_threshold=float(np.nextafter(max_distance_km, np.inf)),
    )
    labels = model.fit_predict(distance_matrix_km(located))

    groups: dict[int, list[Stop]] = {}
    for label, stop in zip(labels, located):
        groups.setdefault(int(label), []).append(stop)
    return list(groups.values())
