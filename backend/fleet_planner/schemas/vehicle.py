"""
Vehicle schemas.
"""
from datetime import datetime
from decimal import Decimal
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, Field, field_validator, model_validator

from fleet_planner.models.vehicle import VehicleStatus
from fleet_planner.schemas.validators import (
    LatitudeOptional,
    LongitudeOptional,
    NonNegativeFloat,
    coordinates_paired,
    reject_null,
)


class VehicleBase(BaseModel):
    """Base vehicle schema."""
    name: str = Field(..., description="Vehicle name", min_length=1, max_length=100)
    license_plate: str = Field(..., description="License plate number", min_length=1, max_length=20)
    capacity_weight: NonNegativeFloat
    capacity_volume: NonNegativeFloat
    current_latitude: LatitudeOptional = None
    current_longitude: LongitudeOptional = None
    start_location: Optional[str] = Field(None, max_length=500, description="Depot or start address")

    @model_validator(mode="after")
    def validate_current_coordinates(self):
        """Validate that both coordinates are provided or neither."""
        if not coordinates_paired(self.current_latitude, self.current_longitude):
            raise ValueError("Both current_latitude and current_longitude must be provided together")
        return self


class VehicleCreate(VehicleBase):
    """Schema for creating a vehicle."""
    status: VehicleStatus = Field(default=VehicleStatus.AVAILABLE)


class VehicleUpdate(BaseModel):
    """Schema for updating a vehicle."""
    name: Optional[str] = Field(None, min_length=1, max_length=100)
    license_plate: Optional[str] = Field(None, min_length=1, max_length=20)
    capacity_weight: Optional[float] = Field(None, ge=0)
    capacity_volume: Optional[float] = Field(None, ge=0)
    current_latitude: LatitudeOptional = None
    current_longitude: LongitudeOptional = None
    start_location: Optional[str] = Field(None, max_length=500)
    status: Optional[VehicleStatus] = None

    @field_validator("name", "license_plate", "capacity_weight", "capacity_volume")
    @classmethod
    def validate_not_null(cls, v):
        return reject_null(v)

    @model_validator(mode="after")
    def validate_current_coordinates(self):
        if not coordinates_paired(self.current_latitude, self.current_longitude):
            raise ValueError("Both current_latitude and current_longitude must be provided together")
        return self


class VehicleResponse(BaseModel):
    """Schema for vehicle response."""
    id: UUID
    name: str
    license_plate: str
    capacity_weight: float
    capacity_volume: float
    current_latitude: Optional[Decimal]
    current_longitude: Optional[Decimal]
    start_location: Optional[str]
    status: VehicleStatus
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class VehicleListResponse(BaseModel):
    """Schema for vehicle list response."""
    items: list[VehicleResponse]
    total: int
    page: int
    size: int
