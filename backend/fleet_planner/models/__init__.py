"""
Database models.
"""
from fleet_planner.models.base import TimestampMixin, UUIDMixin
from fleet_planner.models.user import User, UserRole
from fleet_planner.models.vehicle import Vehicle, VehicleStatus
from fleet_planner.models.delivery import Delivery, DeliveryStatus
from fleet_planner.models.trip import (
    ACTIVE_TRIP_STATUSES,
    Trip,
    TripAssignment,
    TripStatus,
)

__all__ = [
    "TimestampMixin",
    "UUIDMixin",
    "User",
    "UserRole",
    "Vehicle",
    "VehicleStatus",
    "Delivery",
    "DeliveryStatus",
    "Trip",
    "TripAssignment",
    "TripStatus",
    "ACTIVE_TRIP_STATUSES",
]
