"""Failures raised by the day-route pipeline.

None of these are fatal: the worst outcome is a route left in its original
order or a load the user has to retry.
"""

from __future__ import annotations


class RouteError(Exception):
    """Base class for day-route failures."""


class LoadFailure(RouteError):
    """The store was unreachable, rejected the query, or returned rows we cannot parse."""


class OptimizerCallFailure(RouteError):
    """The enhanced optimizer was attempted and did not produce a usable answer."""


class MalformedOptimizerResponse(OptimizerCallFailure):
    """The optimizer answered with JSON that is missing fields or holds an invalid order."""


class MutationWriteFailure(RouteError):
    """A status or timestamp update was not persisted by the store."""


class StopNotFound(RouteError, LookupError):
    def __init__(self, stop_id: str) -> None:
        super().__init__(f"Stop '{stop_id}' is not part of this route")
        self.stop_id = stop_id
