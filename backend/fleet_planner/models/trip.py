"""
Trip models: a vehicle run and its ordered delivery assignments.
"""
import enum
import uuid
from datetime import datetime
from typing import Optional

from sqlalchemy import (
    DateTime, Float, ForeignKey, Integer, String, UniqueConstraint, Uuid,
)
from sqlalchemy.orm import Mapped, mapped_column, validates

from fleet_planner.core.database import Base
from fleet_planner.models.base import TimestampMixin, UUIDMixin, enum_type


class TripStatus(str, enum.Enum):
    """Trip lifecycle status."""
    PLANNED = "planned"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


ACTIVE_TRIP_STATUSES = (TripStatus.PLANNED, TripStatus.IN_PROGRESS)


class Trip(Base, UUIDMixin, TimestampMixin):
    """
    A scheduled run of one vehicle.

    total_weight and total_volume are written by the assignment engine and
    equal the sums over the trip's assignments at the time of that write.
    """

    __tablename__ = "trips"

    name: Mapped[str] = mapped_column(String(255), nullable=False)
    vehicle_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("vehicles.id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
    )

    planned_start_time: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
    )
    planned_end_time: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )

    total_weight: Mapped[float] = mapped_column(Float, default=0.0, nullable=False)
    total_volume: Mapped[float] = mapped_column(Float, default=0.0, nullable=False)

    status: Mapped[TripStatus] = mapped_column(
        enum_type(TripStatus, "trip_status"),
        default=TripStatus.PLANNED,
        nullable=False,
        index=True,
    )

    created_by: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid,
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
    )

    def __repr__(self) -> str:
        return f"<Trip {self.name} ({self.status.value})>"

    @property
    def is_active(self) -> bool:
        return self.status in ACTIVE_TRIP_STATUSES


class TripAssignment(Base, UUIDMixin, TimestampMixin):
    """
    Binding of one delivery to one trip at a sequence position.
    """

    __tablename__ = "trip_deliveries"
    __table_args__ = (
        UniqueConstraint("trip_id", "delivery_id", name="uq_trip_deliveries_trip_delivery"),
    )

    trip_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("trips.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    delivery_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("deliveries.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    sequence_order: Mapped[int] = mapped_column(Integer, nullable=False)
    estimated_arrival: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )
    actual_arrival: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )

    def __repr__(self) -> str:
        return f"<TripAssignment trip={self.trip_id} #{self.sequence_order}>"

    @validates("sequence_order")
    def validate_sequence_order(self, key: str, value: int) -> int:
        if value is None or value < 1:
            raise ValueError("sequence_order must be >= 1")
        return value
