"""
Delivery order model.
"""
import enum
import uuid
from datetime import date
from decimal import Decimal
from typing import Optional

from sqlalchemy import Date, Float, ForeignKey, Numeric, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column, validates

from fleet_planner.core.database import Base
from fleet_planner.models.base import TimestampMixin, UUIDMixin, enum_type


class DeliveryStatus(str, enum.Enum):
    """Delivery lifecycle status."""
    PENDING = "pending"
    ASSIGNED = "assigned"
    IN_TRANSIT = "in_transit"
    DELIVERED = "delivered"
    FAILED = "failed"


class Delivery(Base, UUIDMixin, TimestampMixin):
    """
    A parcel to be delivered to one customer address.

    Latitude and longitude are an optional pair; a delivery without a
    position is valid and simply cannot be shown on a map.
    """

    __tablename__ = "deliveries"

    # Customer
    customer_name: Mapped[str] = mapped_column(String(255), nullable=False)
    customer_phone: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    delivery_address: Mapped[str] = mapped_column(Text, nullable=False)
    latitude: Mapped[Optional[Decimal]] = mapped_column(Numeric(9, 6), nullable=True)
    longitude: Mapped[Optional[Decimal]] = mapped_column(Numeric(9, 6), nullable=True)

    scheduled_date: Mapped[date] = mapped_column(Date, nullable=False, index=True)

    # Load
    weight: Mapped[float] = mapped_column(Float, default=0.0, nullable=False)
    volume: Mapped[float] = mapped_column(Float, default=0.0, nullable=False)

    status: Mapped[DeliveryStatus] = mapped_column(
        enum_type(DeliveryStatus, "delivery_status"),
        default=DeliveryStatus.PENDING,
        nullable=False,
        index=True,
    )
    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    created_by: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid,
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
    )

    def __repr__(self) -> str:
        return f"<Delivery {self.customer_name} ({self.status.value})>"

    @validates("weight", "volume")
    def validate_load(self, key: str, value: float) -> float:
        if value is None or value < 0:
            raise ValueError(f"{key} must be non-negative")
        return value

    @property
    def has_location(self) -> bool:
        return self.latitude is not None and self.longitude is not None
