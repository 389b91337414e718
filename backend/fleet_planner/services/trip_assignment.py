"""
Trip assignment engine.

Binds deliveries to trips while keeping three things consistent inside one
transaction per operation:
- the aggregate load of a trip never exceeds its vehicle's capacity
- delivery, trip and vehicle statuses follow their state machines
- sequence positions within a trip are exactly 1..N

Authorization happens before the engine is called; every operation takes
the caller's ActorContext only to record who made the change.
"""
import logging
import uuid
from contextlib import asynccontextmanager
from dataclasses import dataclass
from datetime import datetime
from typing import Optional, Sequence

from sqlalchemy.ext.asyncio import AsyncSession

from fleet_planner.core.database import unit_of_work
from fleet_planner.core.exceptions import (
    AppException,
    CapacityExceededException,
    DeliveryNotFoundException,
    TripNotEditableException,
    TripNotFoundException,
    ValidationException,
    VehicleNotFoundException,
)
from fleet_planner.core.metrics import (
    TRIP_DELIVERIES,
    record_capacity_rejection,
    record_trip_operation,
)
from fleet_planner.core.security import ActorContext
from fleet_planner.core.sentry import add_breadcrumb
from fleet_planner.models.delivery import Delivery, DeliveryStatus
from fleet_planner.models.trip import Trip, TripAssignment, TripStatus
from fleet_planner.models.vehicle import Vehicle
from fleet_planner.services import status_transitions as authority
from fleet_planner.services.capacity import (
    CandidateDelivery,
    CapacityVerdict,
    VehicleCapacity,
    evaluate,
)
from fleet_planner.services.trip_store import TripStore

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class StopAssignment:
    """One delivery requested for a new trip, at a caller-chosen position."""
    delivery_id: uuid.UUID
    sequence_order: int
    estimated_arrival: Optional[datetime] = None


@dataclass
class TripAssignmentResult:
    trip: Trip
    assignments: list[TripAssignment]


@asynccontextmanager
async def _track(operation: str, actor: ActorContext):
    """Count the operation outcome and leave a breadcrumb for error reports."""
    add_breadcrumb(
        f"{operation} by {actor.user_id}",
        category="trip_engine",
        data={"role": actor.role.value},
    )
    try:
        yield
    except AppException as e:
        if isinstance(e, CapacityExceededException):
            record_capacity_rejection(e.kind)
        record_trip_operation(operation, e.error_code)
        logger.info(f"{operation} rejected: {e.error_code} {e.message}")
        raise
    except Exception:
        record_trip_operation(operation, "error")
        raise
    record_trip_operation(operation, "ok")


def _validate_stops(stops: Sequence[StopAssignment]) -> None:
    if not stops:
        raise ValidationException("A trip needs at least one delivery")

    ids = [s.delivery_id for s in stops]
    if len(set(ids)) != len(ids):
        raise ValidationException(
            "Duplicate delivery in trip",
            details={"delivery_ids": [str(i) for i in ids]},
        )

    orders = sorted(s.sequence_order for s in stops)
    if orders != list(range(1, len(stops) + 1)):
        raise ValidationException(
            "sequence_order values must be exactly 1..N without gaps or repeats",
            details={"sequence_orders": [s.sequence_order for s in stops]},
        )


def require_all_deliveries(
    delivery_ids: Sequence[uuid.UUID],
    loaded: dict[uuid.UUID, Delivery],
) -> list[Delivery]:
    """Deliveries in caller order; the first missing id raises."""
    deliveries = []
    for delivery_id in delivery_ids:
        delivery = loaded.get(delivery_id)
        if delivery is None:
            raise DeliveryNotFoundException(str(delivery_id))
        deliveries.append(delivery)
    return deliveries


def _check_capacity(vehicle: Vehicle, deliveries: Sequence[Delivery]) -> CapacityVerdict:
    return evaluate(
        VehicleCapacity.from_vehicle(vehicle),
        [CandidateDelivery.from_delivery(d) for d in deliveries],
    )


class TripAssignmentEngine:
    """
    Orchestrates capacity checks, status transitions and storage.

    Each public method is one unit of work: it commits on success and
    leaves every entity untouched on any failure.
    """

    def __init__(self, db: AsyncSession):
        self.db = db
        self.store = TripStore(db)

    async def create_trip(
        self,
        actor: ActorContext,
        name: str,
        vehicle_id: uuid.UUID,
        planned_start_time: datetime,
        planned_end_time: Optional[datetime],
        deliveries: Sequence[StopAssignment],
    ) -> TripAssignmentResult:
        """Create a trip for a vehicle carrying the given deliveries."""
        async with _track("create_trip", actor), unit_of_work(self.db):
            _validate_stops(deliveries)

            vehicle = await self.store.get_vehicle(vehicle_id, for_update=True)
            if vehicle is None:
                raise VehicleNotFoundException(str(vehicle_id))

            ids = [s.delivery_id for s in deliveries]
            loaded = require_all_deliveries(ids, await self.store.get_deliveries_by_ids(ids, for_update=True))

            verdict = _check_capacity(vehicle, loaded)

            # Decide every status change before writing anything
            for delivery in loaded:
                authority.transition_delivery(delivery, DeliveryStatus.ASSIGNED)
            vehicle_status = authority.claim_vehicle(vehicle)

            trip = await self.store.insert_trip(
                name=name,
                vehicle_id=vehicle.id,
                planned_start_time=planned_start_time,
                planned_end_time=planned_end_time,
                total_weight=verdict.total_weight,
                total_volume=verdict.total_volume,
                created_by=actor.user_id,
            )
            assignments = await self.store.insert_assignments(
                trip.id,
                [(s.delivery_id, s.sequence_order, s.estimated_arrival) for s in deliveries],
            )

            for delivery in loaded:
                await self.store.update_delivery_status(delivery, DeliveryStatus.ASSIGNED)
            if vehicle_status is not None:
                await self.store.update_vehicle_status(vehicle, vehicle_status)

        TRIP_DELIVERIES.observe(len(assignments))
        logger.info(
            f"Created trip {trip.id} on vehicle {vehicle.id} with {len(assignments)} deliveries "
            f"({verdict.total_weight}kg, {verdict.total_volume}m3)"
        )
        return TripAssignmentResult(
            trip=trip,
            assignments=sorted(assignments, key=lambda a: a.sequence_order),
        )

    async def replace_assignments(
        self,
        actor: ActorContext,
        trip_id: uuid.UUID,
        delivery_ids: Sequence[uuid.UUID],
    ) -> TripAssignmentResult:
        """
        Replace a trip's delivery set with ``delivery_ids`` in that order.

        Removed deliveries go back to pending, added ones become assigned,
        and retained ones keep their status. The whole new set is checked
        against the vehicle capacity and renumbered 1..N.
        """
        async with _track("replace_assignments", actor), unit_of_work(self.db):
            trip = await self.store.get_trip(trip_id, for_update=True)
            if trip is None:
                raise TripNotFoundException(str(trip_id))

            vehicle = await self.store.get_vehicle(trip.vehicle_id, for_update=True)
            if vehicle is None:
                raise VehicleNotFoundException(str(trip.vehicle_id))

            if not trip.is_active:
                raise TripNotEditableException(str(trip.id), trip.status.value)

            new_ids = list(delivery_ids)
            if len(set(new_ids)) != len(new_ids):
                raise ValidationException(
                    "Duplicate delivery in trip",
                    details={"delivery_ids": [str(i) for i in new_ids]},
                )

            current = await self.store.get_assignments(trip.id)
            current_ids = {a.delivery_id for a in current}
            arrivals = {a.delivery_id: a.estimated_arrival for a in current}
            removed_ids = current_ids - set(new_ids)
            added_ids = [i for i in new_ids if i not in current_ids]

            loaded = await self.store.get_deliveries_by_ids(
                set(new_ids) | removed_ids, for_update=True
            )

            for delivery_id in removed_ids:
                removed = loaded.get(delivery_id)
                if removed is None:
                    continue
                reset_to = authority.reset_delivery_if_assigned(removed)
                if reset_to is not None:
                    await self.store.update_delivery_status(removed, reset_to)

            new_set = require_all_deliveries(new_ids, loaded)
            verdict = _check_capacity(vehicle, new_set)

            added = [loaded[i] for i in added_ids]
            for delivery in added:
                authority.transition_delivery(delivery, DeliveryStatus.ASSIGNED)

            await self.store.delete_assignments(trip.id)
            assignments = await self.store.insert_assignments(
                trip.id,
                [(d_id, position, arrivals.get(d_id)) for position, d_id in enumerate(new_ids, start=1)],
            )
            await self.store.update_trip_totals(trip, verdict.total_weight, verdict.total_volume)

            for delivery in added:
                await self.store.update_delivery_status(delivery, DeliveryStatus.ASSIGNED)

        TRIP_DELIVERIES.observe(len(assignments))
        logger.info(
            f"Replaced deliveries of trip {trip.id}: "
            f"{len(added_ids)} added, {len(removed_ids)} removed, {len(assignments)} total"
        )
        return TripAssignmentResult(trip=trip, assignments=assignments)

    async def delete_trip(self, actor: ActorContext, trip_id: uuid.UUID) -> None:
        """Delete an active trip, releasing its deliveries and possibly its vehicle."""
        async with _track("delete_trip", actor), unit_of_work(self.db):
            trip = await self.store.get_trip(trip_id, for_update=True)
            if trip is None:
                raise TripNotFoundException(str(trip_id))
            authority.ensure_trip_deletable(trip)

            vehicle_id = trip.vehicle_id
            await self._reset_assigned_deliveries(trip.id)

            await self.store.delete_assignments(trip.id)
            await self.store.delete_trip(trip)

            await self._release_vehicle(vehicle_id, exclude_trip_id=trip_id)

        logger.info(f"Deleted trip {trip_id}")

    async def update_trip_status(
        self,
        actor: ActorContext,
        trip_id: uuid.UUID,
        status: TripStatus,
    ) -> Trip:
        """
        Move a trip through its lifecycle.

        Completing or cancelling sends deliveries that were never picked up
        back to pending, so they can be planned again; the assignment rows
        stay as history. Both free the vehicle when no other active trip
        needs it.
        """
        async with _track("update_trip_status", actor), unit_of_work(self.db):
            trip = await self.store.get_trip(trip_id, for_update=True)
            if trip is None:
                raise TripNotFoundException(str(trip_id))

            new_status = authority.transition_trip(trip, status)

            await self.store.update_trip_status(trip, new_status)

            if new_status in (TripStatus.COMPLETED, TripStatus.CANCELLED):
                await self._reset_assigned_deliveries(trip.id)
                await self._release_vehicle(trip.vehicle_id, exclude_trip_id=trip.id)

        logger.info(f"Trip {trip.id} moved to {trip.status.value}")
        return trip

    async def _reset_assigned_deliveries(self, trip_id: uuid.UUID) -> None:
        assignments = await self.store.get_assignments(trip_id)
        loaded = await self.store.get_deliveries_by_ids(
            [a.delivery_id for a in assignments], for_update=True
        )
        for delivery in loaded.values():
            reset_to = authority.reset_delivery_if_assigned(delivery)
            if reset_to is not None:
                await self.store.update_delivery_status(delivery, reset_to)

    async def _release_vehicle(self, vehicle_id: uuid.UUID, exclude_trip_id: uuid.UUID) -> None:
        vehicle = await self.store.get_vehicle(vehicle_id, for_update=True)
        if vehicle is None:
            return
        others = await self.store.get_active_trips_for_vehicle(vehicle.id, exclude_trip_id=exclude_trip_id)
        release_to = authority.release_vehicle(vehicle, has_other_active_trips=bool(others))
        if release_to is not None:
            await self.store.update_vehicle_status(vehicle, release_to)
