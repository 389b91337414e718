"""
Persistence operations used by the trip assignment engine.

TripStore is bound to the caller's AsyncSession and never commits: the
caller decides the transaction boundary (see core.database.unit_of_work).
"""
import uuid
from datetime import datetime
from typing import Iterable, Optional, Sequence

from sqlalchemy import delete, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from fleet_planner.models.delivery import Delivery, DeliveryStatus
from fleet_planner.models.trip import ACTIVE_TRIP_STATUSES, Trip, TripAssignment, TripStatus
from fleet_planner.models.vehicle import Vehicle, VehicleStatus


class TripStore:
    """Entity access for trips, their assignments, vehicles and deliveries."""

    def __init__(self, db: AsyncSession):
        self.db = db

    # ---------- reads ----------

    async def get_vehicle(self, vehicle_id: uuid.UUID, for_update: bool = False) -> Optional[Vehicle]:
        query = select(Vehicle).where(Vehicle.id == vehicle_id)
        if for_update:
            query = query.with_for_update()
        result = await self.db.execute(query)
        return result.scalar_one_or_none()

    async def get_trip(self, trip_id: uuid.UUID, for_update: bool = False) -> Optional[Trip]:
        query = select(Trip).where(Trip.id == trip_id)
        if for_update:
            query = query.with_for_update()
        result = await self.db.execute(query)
        return result.scalar_one_or_none()

    async def get_deliveries_by_ids(
        self,
        delivery_ids: Iterable[uuid.UUID],
        for_update: bool = False,
    ) -> dict[uuid.UUID, Delivery]:
        """Load deliveries keyed by id; missing ids are simply absent."""
        ids = list(delivery_ids)
        if not ids:
            return {}
        query = select(Delivery).where(Delivery.id.in_(ids))
        if for_update:
            query = query.with_for_update()
        result = await self.db.execute(query)
        return {d.id: d for d in result.scalars().all()}

    async def get_assignments(self, trip_id: uuid.UUID) -> list[TripAssignment]:
        """Assignments of a trip in sequence order."""
        result = await self.db.execute(
            select(TripAssignment)
            .where(TripAssignment.trip_id == trip_id)
            .order_by(TripAssignment.sequence_order)
        )
        return list(result.scalars().all())

    async def get_active_trips_for_vehicle(
        self,
        vehicle_id: uuid.UUID,
        exclude_trip_id: Optional[uuid.UUID] = None,
    ) -> list[Trip]:
        query = select(Trip).where(
            Trip.vehicle_id == vehicle_id,
            Trip.status.in_(ACTIVE_TRIP_STATUSES),
        )
        if exclude_trip_id is not None:
            query = query.where(Trip.id != exclude_trip_id)
        result = await self.db.execute(query)
        return list(result.scalars().all())

    async def get_active_trip_ids_for_delivery(self, delivery_id: uuid.UUID) -> list[uuid.UUID]:
        result = await self.db.execute(
            select(Trip.id)
            .join(TripAssignment, TripAssignment.trip_id == Trip.id)
            .where(
                TripAssignment.delivery_id == delivery_id,
                Trip.status.in_(ACTIVE_TRIP_STATUSES),
            )
        )
        return list(result.scalars().all())

    async def count_assignments(self, trip_ids: Sequence[uuid.UUID]) -> dict[uuid.UUID, int]:
        """Number of assignments per trip; trips without any are absent."""
        if not trip_ids:
            return {}
        result = await self.db.execute(
            select(TripAssignment.trip_id, func.count(TripAssignment.id))
            .where(TripAssignment.trip_id.in_(trip_ids))
            .group_by(TripAssignment.trip_id)
        )
        return {trip_id: count for trip_id, count in result.all()}

    async def get_trip_deliveries(self, trip_id: uuid.UUID) -> list[tuple[TripAssignment, Delivery]]:
        """Assignments joined with their deliveries, in sequence order."""
        result = await self.db.execute(
            select(TripAssignment, Delivery)
            .join(Delivery, Delivery.id == TripAssignment.delivery_id)
            .where(TripAssignment.trip_id == trip_id)
            .order_by(TripAssignment.sequence_order)
        )
        return [(assignment, delivery) for assignment, delivery in result.all()]

    # ---------- writes ----------

    async def insert_trip(
        self,
        name: str,
        vehicle_id: uuid.UUID,
        planned_start_time: datetime,
        planned_end_time: Optional[datetime],
        total_weight: float,
        total_volume: float,
        created_by: Optional[uuid.UUID],
    ) -> Trip:
        trip = Trip(
            name=name,
            vehicle_id=vehicle_id,
            planned_start_time=planned_start_time,
            planned_end_time=planned_end_time,
            total_weight=total_weight,
            total_volume=total_volume,
            created_by=created_by,
        )
        self.db.add(trip)
        await self.db.flush()
        return trip

    async def insert_assignments(
        self,
        trip_id: uuid.UUID,
        rows: Sequence[tuple[uuid.UUID, int, Optional[datetime]]],
    ) -> list[TripAssignment]:
        """Insert (delivery_id, sequence_order, estimated_arrival) rows for a trip."""
        assignments = [
            TripAssignment(
                trip_id=trip_id,
                delivery_id=delivery_id,
                sequence_order=sequence_order,
                estimated_arrival=estimated_arrival,
            )
            for delivery_id, sequence_order, estimated_arrival in rows
        ]
        self.db.add_all(assignments)
        await self.db.flush()
        return assignments

    async def delete_assignments(self, trip_id: uuid.UUID) -> None:
        """Remove every assignment row of a trip."""
        await self.db.execute(
            delete(TripAssignment).where(TripAssignment.trip_id == trip_id)
        )

    async def delete_assignments_for_delivery(self, delivery_id: uuid.UUID) -> None:
        await self.db.execute(
            delete(TripAssignment).where(TripAssignment.delivery_id == delivery_id)
        )

    async def delete_trip(self, trip: Trip) -> None:
        await self.db.delete(trip)
        await self.db.flush()

    async def update_delivery_status(self, delivery: Delivery, status: DeliveryStatus) -> None:
        delivery.status = status
        await self.db.flush()

    async def update_vehicle_status(self, vehicle: Vehicle, status: VehicleStatus) -> None:
        vehicle.status = status
        await self.db.flush()

    async def update_trip_status(self, trip: Trip, status: TripStatus) -> None:
        trip.status = status
        await self.db.flush()

    async def update_trip_totals(self, trip: Trip, total_weight: float, total_volume: float) -> None:
        trip.total_weight = total_weight
        trip.total_volume = total_volume
        await self.db.flush()
