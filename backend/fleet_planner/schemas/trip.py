"""
Trip schemas.
"""

from datetime import datetime
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, Field, model_validator

from fleet_planner.models.trip import TripStatus
from fleet_planner.schemas.delivery import DeliveryResponse


class TripDeliveryItem(BaseModel):
    """A delivery requested for a new trip at a given position."""

    delivery_id: UUID
    sequence_order: int = Field(..., ge=1)
    estimated_arrival: Optional[datetime] = None


class TripCreate(BaseModel):
    """Schema for creating a trip with its deliveries."""

    name: str = Field(..., min_length=1, max_length=255)
    vehicle_id: UUID
    planned_start_time: datetime
    planned_end_time: Optional[datetime] = None
    deliveries: list[TripDeliveryItem] = Field(..., min_length=1)

    @model_validator(mode="after")
    def validate_times(self):
        """Validate that the trip ends after it starts."""
        if self.planned_end_time and self.planned_end_time <= self.planned_start_time:
            raise ValueError("planned_end_time must be after planned_start_time")
        return self


class TripDeliveriesReplace(BaseModel):
    """New ordered delivery set for a trip; an empty list clears it."""

    delivery_ids: list[UUID]


class TripStatusUpdate(BaseModel):
    status: TripStatus


class CapacityCheckRequest(BaseModel):
    """Preview whether a delivery set fits a vehicle."""

    vehicle_id: UUID
    delivery_ids: list[UUID]


class CapacityCheckResponse(BaseModel):
    ok: bool
    exceeded: Optional[str] = None
    total_weight: float
    total_volume: float
    capacity_weight: float
    capacity_volume: float


class TripAssignmentResponse(BaseModel):
    """Assignment row of a trip."""

    id: UUID
    delivery_id: UUID
    sequence_order: int
    estimated_arrival: Optional[datetime]
    actual_arrival: Optional[datetime]

    class Config:
        from_attributes = True


class TripResponse(BaseModel):
    """Trip response."""

    id: UUID
    name: str
    vehicle_id: UUID
    planned_start_time: datetime
    planned_end_time: Optional[datetime]
    total_weight: float
    total_volume: float
    status: TripStatus
    created_by: Optional[UUID]
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class TripWithAssignmentsResponse(TripResponse):
    """Trip with its assignment rows, as returned by write endpoints."""

    assignments: list[TripAssignmentResponse]


class TripSummaryResponse(TripResponse):
    """Trip list entry."""

    vehicle_name: Optional[str] = None
    vehicle_license_plate: Optional[str] = None
    delivery_count: int = 0


class TripListResponse(BaseModel):
    items: list[TripSummaryResponse]
    total: int
    page: int
    size: int


class TripStopResponse(DeliveryResponse):
    """Delivery within a trip, with its position."""

    sequence_order: int
    estimated_arrival: Optional[datetime]
    actual_arrival: Optional[datetime]


class TripDetailResponse(TripResponse):
    """Trip with its deliveries in sequence order."""

    vehicle_name: Optional[str] = None
    vehicle_license_plate: Optional[str] = None
    deliveries: list[TripStopResponse]
