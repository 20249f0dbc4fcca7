"""Routing request/response schemas."""

from __future__ import annotations

from datetime import date, datetime
from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator

RouteStrategy = Literal["stored", "schedule", "proximity"]


class CoordinatesModel(BaseModel):
    latitude: float = Field(..., ge=-90, le=90)
    longitude: float = Field(..., ge=-180, le=180)


class MapRegionModel(BaseModel):
    latitude: float
    longitude: float
    latitude_delta: float
    longitude_delta: float


class RouteStopModel(BaseModel):
    stop_id: str
    sequence: int
    customer_name: str
    address: str
    city: str
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    phone: Optional[str] = None
    scheduled_at: datetime
    horse_count: int
    status: str
    sequence_index: Optional[int] = None
    distance_from_prev_km: Optional[float] = None
    travel_minutes: float
    work_minutes: float
    estimated_arrival: datetime
    estimated_departure: datetime
    approximate: bool = False
    maps_url: Optional[str] = None


class DayRouteResponse(BaseModel):
    farrier_id: str
    date: date
    strategy: RouteStrategy
    start_time: datetime
    stop_count: int
    total_estimated_minutes: float
    total_distance_km: float
    approximate: bool
    region: MapRegionModel
    route_url: Optional[str] = Field(default=None, description="Maps link through every geocoded active stop.")
    next_stop_url: Optional[str] = Field(default=None, description="Maps link to the next stop to visit.")
    stops: List[RouteStopModel]
    completed_stop_ids: List[str] = Field(default_factory=list)


class OptimizeRouteRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    farrier_id: str = Field(..., alias="farrierId", min_length=1)
    date: date


class OptimizedStepModel(BaseModel):
    appointment_index: int
    departure_time: str
    arrival_time: str
    work_duration_minutes: int
    maps_url: str
    appointment_id: Optional[str] = None
    customer_name: Optional[str] = None
    customer_address: Optional[str] = None
    num_horses: Optional[int] = None


class OptimizeRouteResponse(BaseModel):
    order: List[int]
    total_estimated_minutes: float
    steps: List[OptimizedStepModel]
    message: Optional[str] = None
    source: str


class StopMutationRequest(BaseModel):
    farrier_id: str = Field(..., min_length=1)
    date: date


class RescheduleRequest(StopMutationRequest):
    new_time: Optional[datetime] = Field(default=None, description="Dropped time; snapped to the nearest quarter hour.")
    offset_px: Optional[float] = Field(default=None, description="Vertical drag on the day timeline, in pixels.")

    @model_validator(mode="after")
    def _one_target(self) -> "RescheduleRequest":
        if (self.new_time is None) == (self.offset_px is None):
            raise ValueError("Provide exactly one of new_time or offset_px")
        return self


class StopMutationResponse(BaseModel):
    stop_id: str
    changed: bool
    scheduled_at: Optional[datetime] = None
    remaining_stop_ids: List[str]
    next_stop_id: Optional[str] = None
    region: MapRegionModel


class ReorderRequest(StopMutationRequest):
    start_time: Optional[datetime] = None


class ReorderResponse(BaseModel):
    distance_before_km: float
    distance_after_km: float
    route: DayRouteResponse


class ClusterRequest(BaseModel):
    farrier_id: str = Field(..., min_length=1)
    date: date
    max_distance_km: float = Field(default=20.0, ge=0)


class ClusterResponse(BaseModel):
    clusters: List[List[str]]
    unlocated_stop_ids: List[str]


class SuggestDatesRequest(BaseModel):
    farrier_id: str = Field(..., min_length=1)
    customer_locations: List[CoordinatesModel] = Field(..., min_length=1)
    target_date: date
    days_range: int = Field(default=7, ge=1, le=60)


class DateSuggestionModel(BaseModel):
    date: date
    score: int
    reason: str
