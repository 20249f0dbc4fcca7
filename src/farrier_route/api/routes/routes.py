"""Day route endpoints."""

from __future__ import annotations

import logging
from datetime import date, datetime

from fastapi import APIRouter, Depends, HTTPException, Query, Response, status

from ...models.domain import Coordinates, SessionContext
from ...schemas.routing import (
    ClusterRequest,
    ClusterResponse,
    DateSuggestionModel,
    DayRouteResponse,
    OptimizeRouteRequest,
    OptimizeRouteResponse,
    ReorderRequest,
    ReorderResponse,
    RescheduleRequest,
    RouteStrategy,
    StopMutationRequest,
    StopMutationResponse,
    SuggestDatesRequest,
)
from ...services.outputs.routing_formatter import day_route_to_csv
from ...services.routing import service as routing_service
from ...services.routing.errors import (
    LoadFailure,
    MutationWriteFailure,
    OptimizerCallFailure,
    StopNotFound,
)
from ..dependencies import get_session

router = APIRouter(prefix="/routes", tags=["routes"])
logger = logging.getLogger(__name__)


def _http_error(exc: Exception) -> HTTPException:
    """Translate pipeline failures into HTTP errors."""
    if isinstance(exc, StopNotFound):
        return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc))
    if isinstance(exc, LoadFailure):
        return HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=f"Failed to load route: {exc}")
    if isinstance(exc, OptimizerCallFailure):
        return HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail=f"Failed to optimize route: {exc}. The route keeps its current order.",
        )
    if isinstance(exc, MutationWriteFailure):
        return HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=f"Update not saved: {exc}")
    if isinstance(exc, ValueError):
        return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc))
    logger.exception(f"Unexpected routing error: {exc}")
    return HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=f"Routing failed: {exc}")


@router.get("/day", response_model=DayRouteResponse, status_code=status.HTTP_200_OK)
async def day_route(
    farrier_id: str = Query(..., min_length=1),
    day: date = Query(..., alias="date"),
    strategy: RouteStrategy = Query(default="stored"),
    start_time: datetime | None = Query(default=None),
    include_completed: bool = Query(default=False),
    session: SessionContext = Depends(get_session),
) -> DayRouteResponse:
    try:
        response, _ = await routing_service.get_day_route(
            session,
            farrier_id,
            day,
            strategy=strategy,
            start_time=start_time,
            include_completed=include_completed,
        )
        return response
    except Exception as exc:
        raise _http_error(exc) from exc


@router.get("/day.csv", status_code=status.HTTP_200_OK)
async def day_route_sheet(
    farrier_id: str = Query(..., min_length=1),
    day: date = Query(..., alias="date"),
    strategy: RouteStrategy = Query(default="stored"),
    start_time: datetime | None = Query(default=None),
    session: SessionContext = Depends(get_session),
) -> Response:
    try:
        _, route = await routing_service.get_day_route(
            session, farrier_id, day, strategy=strategy, start_time=start_time
        )
    except Exception as exc:
        raise _http_error(exc) from exc
    return Response(
        content=day_route_to_csv(route),
        media_type="text/csv",
        headers={"Content-Disposition": f'attachment; filename="route_{day.isoformat()}.csv"'},
    )


@router.post("/optimize", response_model=OptimizeRouteResponse, response_model_exclude_none=True)
async def optimize(
    payload: OptimizeRouteRequest,
    session: SessionContext = Depends(get_session),
) -> OptimizeRouteResponse:
    try:
        return await routing_service.optimize_day(session, payload.farrier_id, payload.date)
    except Exception as exc:
        raise _http_error(exc) from exc


@router.post("/stops/{stop_id}/complete", response_model=StopMutationResponse)
async def complete_stop(
    stop_id: str,
    payload: StopMutationRequest,
    session: SessionContext = Depends(get_session),
) -> StopMutationResponse:
    try:
        return await routing_service.complete_stop(session, payload.farrier_id, payload.date, stop_id)
    except Exception as exc:
        raise _http_error(exc) from exc


@router.post("/stops/{stop_id}/reschedule", response_model=StopMutationResponse)
async def reschedule_stop(
    stop_id: str,
    payload: RescheduleRequest,
    session: SessionContext = Depends(get_session),
) -> StopMutationResponse:
    try:
        return await routing_service.reschedule_stop(
            session, payload.farrier_id, payload.date, stop_id, payload.new_time, offset_px=payload.offset_px
        )
    except Exception as exc:
        raise _http_error(exc) from exc


@router.post("/reorder", response_model=ReorderResponse)
async def reorder(payload: ReorderRequest, session: SessionContext = Depends(get_session)) -> ReorderResponse:
    try:
        return await routing_service.reorder_day(
            session, payload.farrier_id, payload.date, start_time=payload.start_time
        )
    except Exception as exc:
        raise _http_error(exc) from exc


@router.post("/clusters", response_model=ClusterResponse)
async def clusters(payload: ClusterRequest, session: SessionContext = Depends(get_session)) -> ClusterResponse:
    try:
        return await routing_service.cluster_day(session, payload.farrier_id, payload.date, payload.max_distance_km)
    except Exception as exc:
        raise _http_error(exc) from exc


@router.post("/suggest-dates", response_model=list[DateSuggestionModel])
async def suggest_dates(
    payload: SuggestDatesRequest,
    session: SessionContext = Depends(get_session),
) -> list[DateSuggestionModel]:
    locations = [Coordinates(point.latitude, point.longitude) for point in payload.customer_locations]
    try:
        return await routing_service.suggest_dates(
            session, payload.farrier_id, locations, payload.target_date, payload.days_range
        )
    except Exception as exc:
        raise _http_error(exc) from exc
