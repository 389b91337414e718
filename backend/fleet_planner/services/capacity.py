"""
Vehicle capacity evaluation.

Pure aggregate-and-compare over a candidate delivery set. Touches no
storage, so it is safe to call outside a transaction (capacity preview)
as well as inside the assignment engine.
"""
import uuid
from dataclasses import dataclass
from typing import Optional, Sequence

from fleet_planner.core.exceptions import (
    CapacityExceededException,
    DeliveryNotAssignableException,
)
from fleet_planner.models.delivery import Delivery, DeliveryStatus
from fleet_planner.models.vehicle import Vehicle

# Deliveries that have left the depot or reached the customer
NON_ASSIGNABLE_STATUSES = frozenset({DeliveryStatus.DELIVERED, DeliveryStatus.IN_TRANSIT})


@dataclass(frozen=True)
class VehicleCapacity:
    weight: float
    volume: float

    @classmethod
    def from_vehicle(cls, vehicle: Vehicle) -> "VehicleCapacity":
        return cls(weight=float(vehicle.capacity_weight), volume=float(vehicle.capacity_volume))


@dataclass(frozen=True)
class CandidateDelivery:
    id: uuid.UUID
    weight: float
    volume: float
    status: DeliveryStatus

    @classmethod
    def from_delivery(cls, delivery: Delivery) -> "CandidateDelivery":
        return cls(
            id=delivery.id,
            weight=float(delivery.weight),
            volume=float(delivery.volume),
            status=DeliveryStatus(delivery.status),
        )


@dataclass(frozen=True)
class CapacityVerdict:
    """
    Aggregate load of a candidate set and whether it fits.

    ``exceeded`` names the first violated dimension (weight before
    volume) when ``ok`` is False.
    """
    ok: bool
    total_weight: float
    total_volume: float
    exceeded: Optional[str] = None


def assess(capacity: VehicleCapacity, candidates: Sequence[CandidateDelivery]) -> CapacityVerdict:
    """
    Compute the verdict for a candidate set without raising on overload.

    Candidates already in transit or delivered are still rejected with
    DeliveryNotAssignableException, naming the first one in order.
    """
    for candidate in candidates:
        if candidate.status in NON_ASSIGNABLE_STATUSES:
            raise DeliveryNotAssignableException(str(candidate.id), candidate.status.value)

    total_weight = float(sum(c.weight for c in candidates))
    total_volume = float(sum(c.volume for c in candidates))

    exceeded = None
    if total_weight > capacity.weight:
        exceeded = "weight"
    elif total_volume > capacity.volume:
        exceeded = "volume"

    return CapacityVerdict(
        ok=exceeded is None,
        total_weight=total_weight,
        total_volume=total_volume,
        exceeded=exceeded,
    )


def evaluate(capacity: VehicleCapacity, candidates: Sequence[CandidateDelivery]) -> CapacityVerdict:
    """
    Check that a delivery set may be loaded onto a vehicle.

    Raises DeliveryNotAssignableException for the first candidate already
    in transit or delivered, then CapacityExceededException if the summed
    weight (checked first) or volume exceeds the vehicle capacity. A total
    equal to the capacity is accepted.
    """
    verdict = assess(capacity, candidates)
    if verdict.exceeded == "weight":
        raise CapacityExceededException("weight", verdict.total_weight, capacity.weight)
    if verdict.exceeded == "volume":
        raise CapacityExceededException("volume", verdict.total_volume, capacity.volume)
    return verdict
