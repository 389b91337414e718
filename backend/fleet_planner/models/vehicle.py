"""
Vehicle model for the delivery fleet.
"""
import enum
from decimal import Decimal
from typing import Optional

from sqlalchemy import Float, Numeric, String
from sqlalchemy.orm import Mapped, mapped_column, validates

from fleet_planner.core.database import Base
from fleet_planner.models.base import TimestampMixin, UUIDMixin, enum_type


class VehicleStatus(str, enum.Enum):
    """Vehicle availability."""
    AVAILABLE = "available"
    IN_USE = "in_use"
    MAINTENANCE = "maintenance"
    INACTIVE = "inactive"


class Vehicle(Base, UUIDMixin, TimestampMixin):
    """
    Delivery vehicle with weight and volume capacity.
    """

    __tablename__ = "vehicles"

    # Identification
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    license_plate: Mapped[str] = mapped_column(
        String(20),
        unique=True,
        nullable=False,
    )

    # Capacity constraints
    capacity_weight: Mapped[float] = mapped_column(Float, nullable=False)
    capacity_volume: Mapped[float] = mapped_column(Float, nullable=False)

    # Last known position
    current_latitude: Mapped[Optional[Decimal]] = mapped_column(
        Numeric(9, 6),
        nullable=True,
    )
    current_longitude: Mapped[Optional[Decimal]] = mapped_column(
        Numeric(9, 6),
        nullable=True,
    )
    start_location: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)

    status: Mapped[VehicleStatus] = mapped_column(
        enum_type(VehicleStatus, "vehicle_status"),
        default=VehicleStatus.AVAILABLE,
        nullable=False,
        index=True,
    )

    def __repr__(self) -> str:
        return f"<Vehicle {self.name} ({self.license_plate})>"

    @validates("capacity_weight", "capacity_volume")
    def validate_capacity(self, key: str, value: float) -> float:
        if value is None or value < 0:
            raise ValueError(f"{key} must be non-negative")
        return value

    @property
    def current_location(self) -> Optional[tuple[float, float]]:
        """Get current position as (lat, lon) tuple, if known."""
        if self.current_latitude is None or self.current_longitude is None:
            return None
        return (float(self.current_latitude), float(self.current_longitude))
