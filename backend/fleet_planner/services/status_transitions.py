"""
Status transition rules for deliveries, vehicles and trips.

The guards here only decide: each returns the status the caller should
persist (or None when nothing changes) and raises
InvalidTransitionException for moves the state machines forbid. Writes
go through TripStore so every change lands in the caller's transaction.
"""
from typing import Optional

from fleet_planner.core.exceptions import InvalidTransitionException
from fleet_planner.models.delivery import Delivery, DeliveryStatus
from fleet_planner.models.trip import ACTIVE_TRIP_STATUSES, Trip, TripStatus
from fleet_planner.models.vehicle import Vehicle, VehicleStatus

DELIVERY_TRANSITIONS: dict[DeliveryStatus, frozenset[DeliveryStatus]] = {
    DeliveryStatus.PENDING: frozenset({DeliveryStatus.ASSIGNED}),
    DeliveryStatus.ASSIGNED: frozenset({DeliveryStatus.PENDING, DeliveryStatus.IN_TRANSIT}),
    DeliveryStatus.IN_TRANSIT: frozenset({DeliveryStatus.DELIVERED, DeliveryStatus.FAILED}),
    DeliveryStatus.DELIVERED: frozenset(),
    DeliveryStatus.FAILED: frozenset(),
}

# Trip side effects only; maintenance and inactive are set by operators
VEHICLE_TRANSITIONS: dict[VehicleStatus, frozenset[VehicleStatus]] = {
    VehicleStatus.AVAILABLE: frozenset({VehicleStatus.IN_USE}),
    VehicleStatus.IN_USE: frozenset({VehicleStatus.AVAILABLE}),
    VehicleStatus.MAINTENANCE: frozenset(),
    VehicleStatus.INACTIVE: frozenset(),
}

TRIP_TRANSITIONS: dict[TripStatus, frozenset[TripStatus]] = {
    TripStatus.PLANNED: frozenset({TripStatus.IN_PROGRESS, TripStatus.CANCELLED}),
    TripStatus.IN_PROGRESS: frozenset({TripStatus.COMPLETED, TripStatus.CANCELLED}),
    TripStatus.COMPLETED: frozenset(),
    TripStatus.CANCELLED: frozenset(),
}

# Delivery moves an operator may report from outside the engine
EXTERNAL_DELIVERY_EVENTS = frozenset({
    DeliveryStatus.IN_TRANSIT,
    DeliveryStatus.DELIVERED,
    DeliveryStatus.FAILED,
})


def can_transition(table: dict, from_status, to_status) -> bool:
    return to_status in table.get(from_status, frozenset())


def transition_delivery(delivery: Delivery, to_status: DeliveryStatus) -> DeliveryStatus:
    """Validate a delivery move and return the status to persist."""
    from_status = DeliveryStatus(delivery.status)
    if not can_transition(DELIVERY_TRANSITIONS, from_status, to_status):
        raise InvalidTransitionException("delivery", from_status.value, to_status.value)
    return to_status


def transition_trip(trip: Trip, to_status: TripStatus) -> TripStatus:
    """Validate a trip move and return the status to persist."""
    from_status = TripStatus(trip.status)
    if not can_transition(TRIP_TRANSITIONS, from_status, to_status):
        raise InvalidTransitionException("trip", from_status.value, to_status.value)
    return to_status


def claim_vehicle(vehicle: Vehicle) -> Optional[VehicleStatus]:
    """
    Vehicle status for a vehicle taking on a new active trip.

    A vehicle already in use stays in use, since it may serve several active
    trips. Vehicles under maintenance or retired cannot be claimed.
    """
    current = VehicleStatus(vehicle.status)
    if current == VehicleStatus.IN_USE:
        return None
    if not can_transition(VEHICLE_TRANSITIONS, current, VehicleStatus.IN_USE):
        raise InvalidTransitionException("vehicle", current.value, VehicleStatus.IN_USE.value)
    return VehicleStatus.IN_USE


def release_vehicle(vehicle: Vehicle, has_other_active_trips: bool) -> Optional[VehicleStatus]:
    """
    Vehicle status once one of its trips stops being active.

    Only in_use is ever changed, and only when no other active trip still
    needs the vehicle. Any other status is left as the operator set it.
    """
    if has_other_active_trips:
        return None
    if VehicleStatus(vehicle.status) != VehicleStatus.IN_USE:
        return None
    return VehicleStatus.AVAILABLE


def reset_delivery_if_assigned(delivery: Delivery) -> Optional[DeliveryStatus]:
    """
    Status for a delivery leaving a trip.

    Assigned deliveries go back to pending. Deliveries moved on by external
    events (in transit, delivered, failed) keep their status.
    """
    if DeliveryStatus(delivery.status) != DeliveryStatus.ASSIGNED:
        return None
    return DeliveryStatus.PENDING


def ensure_trip_deletable(trip: Trip) -> None:
    """Only active trips may be deleted; completed and cancelled trips are history."""
    current = TripStatus(trip.status)
    if current not in ACTIVE_TRIP_STATUSES:
        raise InvalidTransitionException("trip", current.value, "deleted")


def ensure_external_delivery_event(delivery: Delivery, to_status: DeliveryStatus) -> DeliveryStatus:
    """
    Validate a status change reported from outside the engine.

    Assignment and un-assignment belong to the engine, so only the moves
    into in_transit, delivered and failed are accepted here.
    """
    if to_status not in EXTERNAL_DELIVERY_EVENTS:
        raise InvalidTransitionException(
            "delivery", DeliveryStatus(delivery.status).value, to_status.value
        )
    return transition_delivery(delivery, to_status)
