"""
Delivery schemas.
"""

from datetime import date, datetime
from decimal import Decimal
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, Field, field_validator, model_validator

from fleet_planner.models.delivery import DeliveryStatus
from fleet_planner.schemas.validators import (
    LatitudeOptional,
    LongitudeOptional,
    NonNegativeFloat,
    PhoneNumber,
    coordinates_paired,
    reject_null,
)


class DeliveryCreate(BaseModel):
    """Schema for creating a delivery."""

    customer_name: str = Field(..., min_length=1, max_length=255)
    customer_phone: PhoneNumber = None
    delivery_address: str = Field(..., min_length=1)
    latitude: LatitudeOptional = None
    longitude: LongitudeOptional = None
    scheduled_date: date
    weight: NonNegativeFloat = 0.0
    volume: NonNegativeFloat = 0.0
    notes: Optional[str] = None

    @model_validator(mode="after")
    def validate_coordinates(self):
        """Validate that both coordinates are provided or neither."""
        if not coordinates_paired(self.latitude, self.longitude):
            raise ValueError("Both latitude and longitude must be provided together")
        return self


class DeliveryUpdate(BaseModel):
    """Schema for editing a delivery. Status changes use the status endpoint."""

    customer_name: Optional[str] = Field(None, min_length=1, max_length=255)
    customer_phone: PhoneNumber = None
    delivery_address: Optional[str] = Field(None, min_length=1)
    latitude: LatitudeOptional = None
    longitude: LongitudeOptional = None
    scheduled_date: Optional[date] = None
    weight: Optional[float] = Field(None, ge=0)
    volume: Optional[float] = Field(None, ge=0)
    notes: Optional[str] = None

    @field_validator("customer_name", "delivery_address", "scheduled_date", "weight", "volume")
    @classmethod
    def validate_not_null(cls, v):
        return reject_null(v)

    @model_validator(mode="after")
    def validate_coordinates(self):
        if not coordinates_paired(self.latitude, self.longitude):
            raise ValueError("Both latitude and longitude must be provided together")
        return self


class DeliveryStatusUpdate(BaseModel):
    """External delivery event: in_transit, delivered or failed."""

    status: DeliveryStatus


class DeliveryResponse(BaseModel):
    """Delivery response."""

    id: UUID
    customer_name: str
    customer_phone: Optional[str]
    delivery_address: str
    latitude: Optional[Decimal]
    longitude: Optional[Decimal]
    has_location: bool
    scheduled_date: date
    weight: float
    volume: float
    status: DeliveryStatus
    notes: Optional[str]
    created_by: Optional[UUID]
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class DeliveryListResponse(BaseModel):
    """Delivery list response."""

    items: list[DeliveryResponse]
    total: int
    page: int
    size: int
