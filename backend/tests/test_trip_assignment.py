"""
Tests for the trip assignment engine.

Every failing operation must leave the database exactly as it was, so the
failure cases re-read entities from the store after the call.
"""
from datetime import timedelta
from uuid import uuid4

import pytest
from sqlalchemy import func, select

from fleet_planner.core.exceptions import (
    CapacityExceededException,
    DeliveryNotAssignableException,
    DeliveryNotFoundException,
    InvalidTransitionException,
    TripNotEditableException,
    TripNotFoundException,
    ValidationException,
    VehicleNotFoundException,
)
from fleet_planner.models import DeliveryStatus, Trip, TripAssignment, TripStatus, VehicleStatus
from fleet_planner.services.trip_assignment import StopAssignment, TripAssignmentEngine
from fleet_planner.services.trip_store import TripStore


def stops(*deliveries):
    return [StopAssignment(delivery_id=d.id, sequence_order=i) for i, d in enumerate(deliveries, start=1)]


async def count_trips(db) -> int:
    return await db.scalar(select(func.count(Trip.id)))


async def assignment_rows(db, trip_id):
    return [(a.delivery_id, a.sequence_order) for a in await TripStore(db).get_assignments(trip_id)]


async def reload(db, *entities):
    for entity in entities:
        await db.refresh(entity)


@pytest.fixture
def engine(db_session):
    return TripAssignmentEngine(db_session)


async def _create(engine, planner, vehicle, trip_start, deliveries, name="Morning run"):
    return await engine.create_trip(
        planner,
        name=name,
        vehicle_id=vehicle.id,
        planned_start_time=trip_start,
        planned_end_time=trip_start + timedelta(hours=8),
        deliveries=stops(*deliveries),
    )


class TestCreateTrip:

    @pytest.mark.asyncio
    async def test_within_capacity(self, engine, planner, make_vehicle, make_delivery, trip_start):
        vehicle = await make_vehicle(capacity_weight=1000.0, capacity_volume=10.0)
        deliveries = [
            await make_delivery(weight=100.1, volume=0.3),
            await make_delivery(weight=200.2, volume=0.3),
            await make_delivery(weight=300.3, volume=0.4),
        ]

        result = await _create(engine, planner, vehicle, trip_start, deliveries)

        assert result.trip.status == TripStatus.PLANNED
        assert result.trip.total_weight == pytest.approx(600.6, abs=1e-6)
        assert result.trip.total_volume == pytest.approx(1.0, abs=1e-6)
        assert result.trip.created_by == planner.user_id
        assert [a.delivery_id for a in result.assignments] == [d.id for d in deliveries]
        assert all(d.status == DeliveryStatus.ASSIGNED for d in deliveries)
        assert vehicle.status == VehicleStatus.IN_USE

    @pytest.mark.asyncio
    async def test_preserves_caller_sequence(self, engine, planner, vehicle, make_delivery, trip_start):
        first, second = await make_delivery(), await make_delivery()

        result = await engine.create_trip(
            planner,
            name="Reordered",
            vehicle_id=vehicle.id,
            planned_start_time=trip_start,
            planned_end_time=None,
            deliveries=[
                StopAssignment(delivery_id=first.id, sequence_order=2),
                StopAssignment(delivery_id=second.id, sequence_order=1, estimated_arrival=trip_start),
            ],
        )

        rows = await assignment_rows(engine.db, result.trip.id)
        assert rows == [(second.id, 1), (first.id, 2)]
        assert result.assignments[0].estimated_arrival == trip_start

    @pytest.mark.asyncio
    async def test_exact_capacity_accepted(self, engine, planner, make_vehicle, make_delivery, trip_start):
        vehicle = await make_vehicle(capacity_weight=50.0, capacity_volume=1.0)
        deliveries = [await make_delivery(weight=20.0, volume=0.5), await make_delivery(weight=30.0, volume=0.5)]

        result = await _create(engine, planner, vehicle, trip_start, deliveries)

        assert result.trip.total_weight == 50.0
        assert result.trip.total_volume == 1.0

    @pytest.mark.asyncio
    async def test_over_capacity_persists_nothing(
        self, engine, db_session, planner, make_vehicle, make_delivery, trip_start
    ):
        vehicle = await make_vehicle(capacity_weight=50.0)
        d1, d2 = await make_delivery(weight=40.0), await make_delivery(weight=20.0)

        with pytest.raises(CapacityExceededException) as exc_info:
            await _create(engine, planner, vehicle, trip_start, [d1, d2])

        assert exc_info.value.kind == "weight"
        assert exc_info.value.total == pytest.approx(60.0)
        assert exc_info.value.capacity == 50.0

        await reload(db_session, vehicle, d1, d2)
        assert await count_trips(db_session) == 0
        assert d1.status == DeliveryStatus.PENDING
        assert d2.status == DeliveryStatus.PENDING
        assert vehicle.status == VehicleStatus.AVAILABLE

    @pytest.mark.asyncio
    async def test_rejects_delivery_in_transit(self, engine, db_session, planner, vehicle, make_delivery, trip_start):
        moving = await make_delivery(status=DeliveryStatus.IN_TRANSIT)
        moving_id = moving.id

        with pytest.raises(DeliveryNotAssignableException) as exc_info:
            await _create(engine, planner, vehicle, trip_start, [moving])

        assert isinstance(exc_info.value, ValidationException)
        assert exc_info.value.details["delivery_id"] == str(moving_id)
        assert await count_trips(db_session) == 0

    @pytest.mark.asyncio
    async def test_missing_delivery_names_first(self, engine, db_session, planner, vehicle, make_delivery, trip_start):
        existing = await make_delivery()
        first_missing, second_missing = uuid4(), uuid4()

        with pytest.raises(DeliveryNotFoundException) as exc_info:
            await engine.create_trip(
                planner,
                name="Ghost stops",
                vehicle_id=vehicle.id,
                planned_start_time=trip_start,
                planned_end_time=None,
                deliveries=[
                    StopAssignment(delivery_id=existing.id, sequence_order=1),
                    StopAssignment(delivery_id=first_missing, sequence_order=2),
                    StopAssignment(delivery_id=second_missing, sequence_order=3),
                ],
            )

        assert exc_info.value.details == {"delivery_id": str(first_missing)}
        await reload(db_session, existing)
        assert existing.status == DeliveryStatus.PENDING

    @pytest.mark.asyncio
    async def test_missing_vehicle(self, engine, planner, make_delivery, trip_start):
        delivery = await make_delivery()
        with pytest.raises(VehicleNotFoundException):
            await engine.create_trip(
                planner,
                name="No truck",
                vehicle_id=uuid4(),
                planned_start_time=trip_start,
                planned_end_time=None,
                deliveries=stops(delivery),
            )

    @pytest.mark.asyncio
    async def test_sequence_must_be_dense(self, engine, planner, vehicle, make_delivery, trip_start):
        d1, d2 = await make_delivery(), await make_delivery()
        with pytest.raises(ValidationException):
            await engine.create_trip(
                planner,
                name="Gap",
                vehicle_id=vehicle.id,
                planned_start_time=trip_start,
                planned_end_time=None,
                deliveries=[
                    StopAssignment(delivery_id=d1.id, sequence_order=1),
                    StopAssignment(delivery_id=d2.id, sequence_order=3),
                ],
            )

    @pytest.mark.asyncio
    async def test_duplicate_delivery_rejected(self, engine, planner, vehicle, make_delivery, trip_start):
        delivery = await make_delivery()
        with pytest.raises(ValidationException):
            await engine.create_trip(
                planner,
                name="Twice",
                vehicle_id=vehicle.id,
                planned_start_time=trip_start,
                planned_end_time=None,
                deliveries=[
                    StopAssignment(delivery_id=delivery.id, sequence_order=1),
                    StopAssignment(delivery_id=delivery.id, sequence_order=2),
                ],
            )

    @pytest.mark.asyncio
    async def test_delivery_on_another_trip(self, engine, db_session, planner, make_vehicle, make_delivery, trip_start):
        shared = await make_delivery()
        await _create(engine, planner, await make_vehicle(), trip_start, [shared])
        other_vehicle = await make_vehicle()

        with pytest.raises(InvalidTransitionException):
            await _create(engine, planner, other_vehicle, trip_start, [shared], name="Second")

        await reload(db_session, other_vehicle)
        assert await count_trips(db_session) == 1
        assert other_vehicle.status == VehicleStatus.AVAILABLE

    @pytest.mark.asyncio
    async def test_vehicle_in_maintenance(self, engine, db_session, planner, make_vehicle, make_delivery, trip_start):
        vehicle = await make_vehicle(status=VehicleStatus.MAINTENANCE)
        delivery = await make_delivery()

        with pytest.raises(InvalidTransitionException):
            await _create(engine, planner, vehicle, trip_start, [delivery])

        await reload(db_session, delivery)
        assert delivery.status == DeliveryStatus.PENDING
        assert await count_trips(db_session) == 0

    @pytest.mark.asyncio
    async def test_vehicle_already_in_use(self, engine, planner, vehicle, make_delivery, trip_start):
        await _create(engine, planner, vehicle, trip_start, [await make_delivery()])
        await _create(engine, planner, vehicle, trip_start + timedelta(days=1), [await make_delivery()], name="Next day")

        assert vehicle.status == VehicleStatus.IN_USE


class TestReplaceAssignments:

    @pytest.mark.asyncio
    async def test_same_ids_twice_is_idempotent(self, engine, planner, vehicle, make_delivery, trip_start):
        d1, d2 = await make_delivery(), await make_delivery()
        trip = (await _create(engine, planner, vehicle, trip_start, [d1, d2])).trip

        first = await engine.replace_assignments(planner, trip.id, [d1.id, d2.id])
        first_rows = [(a.delivery_id, a.sequence_order) for a in first.assignments]
        second = await engine.replace_assignments(planner, trip.id, [d1.id, d2.id])

        assert [(a.delivery_id, a.sequence_order) for a in second.assignments] == first_rows
        assert await assignment_rows(engine.db, trip.id) == [(d1.id, 1), (d2.id, 2)]
        assert d1.status == DeliveryStatus.ASSIGNED
        assert d2.status == DeliveryStatus.ASSIGNED

    @pytest.mark.asyncio
    async def test_capacity_violation_leaves_trip_unchanged(
        self, engine, db_session, planner, make_vehicle, make_delivery, trip_start
    ):
        vehicle = await make_vehicle(capacity_weight=50.0)
        d1, d2 = await make_delivery(weight=40.0), await make_delivery(weight=20.0)
        trip = (await _create(engine, planner, vehicle, trip_start, [d1])).trip
        trip_id, d1_id, d2_id = trip.id, d1.id, d2.id

        with pytest.raises(CapacityExceededException) as exc_info:
            await engine.replace_assignments(planner, trip_id, [d1_id, d2_id])

        assert exc_info.value.total == pytest.approx(60.0)
        assert exc_info.value.capacity == 50.0

        await reload(db_session, trip, d1, d2)
        assert await assignment_rows(db_session, trip_id) == [(d1_id, 1)]
        assert d2.status == DeliveryStatus.PENDING
        assert d1.status == DeliveryStatus.ASSIGNED
        assert trip.total_weight == 40.0

    @pytest.mark.asyncio
    async def test_failed_replace_restores_removed_deliveries(
        self, engine, db_session, planner, make_vehicle, make_delivery, trip_start
    ):
        vehicle = await make_vehicle(capacity_weight=50.0)
        kept, dropped, heavy = (
            await make_delivery(weight=30.0),
            await make_delivery(weight=10.0),
            await make_delivery(weight=30.0),
        )
        trip = (await _create(engine, planner, vehicle, trip_start, [kept, dropped])).trip
        trip_id, kept_id, dropped_id = trip.id, kept.id, dropped.id

        with pytest.raises(CapacityExceededException):
            await engine.replace_assignments(planner, trip_id, [kept_id, heavy.id])

        await reload(db_session, dropped, heavy)
        assert dropped.status == DeliveryStatus.ASSIGNED
        assert heavy.status == DeliveryStatus.PENDING
        assert await assignment_rows(db_session, trip_id) == [(kept_id, 1), (dropped_id, 2)]

    @pytest.mark.asyncio
    async def test_renumbers_in_caller_order(self, engine, planner, vehicle, make_delivery, trip_start):
        d1, d2, d3 = (
            await make_delivery(weight=1.0),
            await make_delivery(weight=2.0),
            await make_delivery(weight=4.0),
        )
        trip = (await _create(engine, planner, vehicle, trip_start, [d1, d2, d3])).trip

        result = await engine.replace_assignments(planner, trip.id, [d3.id, d1.id])

        assert [(a.delivery_id, a.sequence_order) for a in result.assignments] == [(d3.id, 1), (d1.id, 2)]
        assert await assignment_rows(engine.db, trip.id) == [(d3.id, 1), (d1.id, 2)]
        assert result.trip.total_weight == pytest.approx(5.0)
        assert d2.status == DeliveryStatus.PENDING
        assert d1.status == DeliveryStatus.ASSIGNED
        assert d3.status == DeliveryStatus.ASSIGNED

    @pytest.mark.asyncio
    async def test_adds_new_delivery(self, engine, planner, vehicle, make_delivery, trip_start):
        d1, added = await make_delivery(), await make_delivery()
        trip = (await _create(engine, planner, vehicle, trip_start, [d1])).trip

        await engine.replace_assignments(planner, trip.id, [added.id, d1.id])

        assert added.status == DeliveryStatus.ASSIGNED
        assert await assignment_rows(engine.db, trip.id) == [(added.id, 1), (d1.id, 2)]

    @pytest.mark.asyncio
    async def test_keeps_estimated_arrival_of_retained(self, engine, planner, vehicle, make_delivery, trip_start):
        d1, d2 = await make_delivery(), await make_delivery()
        eta = trip_start + timedelta(hours=2)
        trip = (await engine.create_trip(
            planner,
            name="With ETA",
            vehicle_id=vehicle.id,
            planned_start_time=trip_start,
            planned_end_time=None,
            deliveries=[
                StopAssignment(delivery_id=d1.id, sequence_order=1, estimated_arrival=eta),
                StopAssignment(delivery_id=d2.id, sequence_order=2),
            ],
        )).trip

        result = await engine.replace_assignments(planner, trip.id, [d2.id, d1.id])

        by_delivery = {a.delivery_id: a for a in result.assignments}
        # SQLite drops tzinfo on round trip
        assert by_delivery[d1.id].estimated_arrival.replace(tzinfo=None) == eta.replace(tzinfo=None)
        assert by_delivery[d2.id].estimated_arrival is None

    @pytest.mark.asyncio
    async def test_empty_list_clears_trip(self, engine, planner, vehicle, make_delivery, trip_start):
        d1 = await make_delivery(weight=12.0)
        trip = (await _create(engine, planner, vehicle, trip_start, [d1])).trip

        result = await engine.replace_assignments(planner, trip.id, [])

        assert result.assignments == []
        assert result.trip.total_weight == 0.0
        assert d1.status == DeliveryStatus.PENDING

    @pytest.mark.asyncio
    async def test_retained_delivery_in_transit_blocks_replace(
        self, engine, db_session, planner, vehicle, make_delivery, trip_start
    ):
        d1, d2 = await make_delivery(), await make_delivery()
        trip = (await _create(engine, planner, vehicle, trip_start, [d1])).trip
        d1.status = DeliveryStatus.IN_TRANSIT
        await db_session.commit()

        with pytest.raises(DeliveryNotAssignableException):
            await engine.replace_assignments(planner, trip.id, [d1.id, d2.id])

    @pytest.mark.asyncio
    async def test_terminal_trip_not_editable(self, engine, planner, vehicle, make_delivery, trip_start):
        d1, d2 = await make_delivery(), await make_delivery()
        trip = (await _create(engine, planner, vehicle, trip_start, [d1])).trip
        await engine.update_trip_status(planner, trip.id, TripStatus.CANCELLED)

        with pytest.raises(TripNotEditableException):
            await engine.replace_assignments(planner, trip.id, [d2.id])

    @pytest.mark.asyncio
    async def test_unknown_trip(self, engine, planner):
        with pytest.raises(TripNotFoundException):
            await engine.replace_assignments(planner, uuid4(), [])

    @pytest.mark.asyncio
    async def test_unknown_delivery(self, engine, planner, vehicle, make_delivery, trip_start):
        d1 = await make_delivery()
        trip = (await _create(engine, planner, vehicle, trip_start, [d1])).trip
        missing = uuid4()

        with pytest.raises(DeliveryNotFoundException) as exc_info:
            await engine.replace_assignments(planner, trip.id, [d1.id, missing])

        assert exc_info.value.details == {"delivery_id": str(missing)}


class TestDeleteTrip:

    @pytest.mark.asyncio
    async def test_create_then_delete_restores_state(
        self, engine, db_session, planner, vehicle, make_delivery, trip_start
    ):
        deliveries = [await make_delivery(), await make_delivery()]
        trip = (await _create(engine, planner, vehicle, trip_start, deliveries)).trip
        trip_id = trip.id

        await engine.delete_trip(planner, trip_id)

        assert await count_trips(db_session) == 0
        remaining = await db_session.scalar(
            select(func.count(TripAssignment.id)).where(TripAssignment.trip_id == trip_id)
        )
        assert remaining == 0
        assert all(d.status == DeliveryStatus.PENDING for d in deliveries)
        assert vehicle.status == VehicleStatus.AVAILABLE

    @pytest.mark.asyncio
    async def test_vehicle_kept_by_other_active_trip(self, engine, planner, vehicle, make_delivery, trip_start):
        first = (await _create(engine, planner, vehicle, trip_start, [await make_delivery()])).trip
        await _create(engine, planner, vehicle, trip_start, [await make_delivery()], name="Other")

        await engine.delete_trip(planner, first.id)

        assert vehicle.status == VehicleStatus.IN_USE

    @pytest.mark.asyncio
    async def test_does_not_downgrade_moving_delivery(
        self, engine, db_session, planner, vehicle, make_delivery, trip_start
    ):
        moving, waiting = await make_delivery(), await make_delivery()
        trip = (await _create(engine, planner, vehicle, trip_start, [moving, waiting])).trip
        moving.status = DeliveryStatus.IN_TRANSIT
        await db_session.commit()

        await engine.delete_trip(planner, trip.id)

        assert moving.status == DeliveryStatus.IN_TRANSIT
        assert waiting.status == DeliveryStatus.PENDING

    @pytest.mark.asyncio
    async def test_operator_vehicle_status_survives(self, engine, db_session, planner, vehicle, make_delivery, trip_start):
        trip = (await _create(engine, planner, vehicle, trip_start, [await make_delivery()])).trip
        vehicle.status = VehicleStatus.MAINTENANCE
        await db_session.commit()

        await engine.delete_trip(planner, trip.id)

        assert vehicle.status == VehicleStatus.MAINTENANCE

    @pytest.mark.asyncio
    async def test_unknown_trip_changes_nothing(self, engine, db_session, planner, vehicle, make_delivery, trip_start):
        await _create(engine, planner, vehicle, trip_start, [await make_delivery()])

        with pytest.raises(TripNotFoundException):
            await engine.delete_trip(planner, uuid4())

        await reload(db_session, vehicle)
        assert await count_trips(db_session) == 1
        assert vehicle.status == VehicleStatus.IN_USE

    @pytest.mark.asyncio
    async def test_completed_trip_cannot_be_deleted(self, engine, db_session, planner, vehicle, make_delivery, trip_start):
        trip = (await _create(engine, planner, vehicle, trip_start, [await make_delivery()])).trip
        trip_id = trip.id
        await engine.update_trip_status(planner, trip_id, TripStatus.IN_PROGRESS)
        await engine.update_trip_status(planner, trip_id, TripStatus.COMPLETED)

        with pytest.raises(InvalidTransitionException):
            await engine.delete_trip(planner, trip_id)

        assert await count_trips(db_session) == 1


class TestUpdateTripStatus:

    @pytest.mark.asyncio
    async def test_complete_frees_vehicle(self, engine, planner, vehicle, make_delivery, trip_start):
        trip = (await _create(engine, planner, vehicle, trip_start, [await make_delivery()])).trip

        await engine.update_trip_status(planner, trip.id, TripStatus.IN_PROGRESS)
        assert vehicle.status == VehicleStatus.IN_USE

        updated = await engine.update_trip_status(planner, trip.id, TripStatus.COMPLETED)

        assert updated.status == TripStatus.COMPLETED
        assert vehicle.status == VehicleStatus.AVAILABLE

    @pytest.mark.asyncio
    async def test_complete_returns_unvisited_deliveries_to_pending(
        self, engine, db_session, planner, vehicle, make_delivery, trip_start
    ):
        visited, skipped = await make_delivery(), await make_delivery()
        trip = (await _create(engine, planner, vehicle, trip_start, [visited, skipped])).trip
        await engine.update_trip_status(planner, trip.id, TripStatus.IN_PROGRESS)
        visited.status = DeliveryStatus.IN_TRANSIT
        await db_session.commit()

        await engine.update_trip_status(planner, trip.id, TripStatus.COMPLETED)

        assert visited.status == DeliveryStatus.IN_TRANSIT
        assert skipped.status == DeliveryStatus.PENDING
        assert await assignment_rows(engine.db, trip.id) == [(visited.id, 1), (skipped.id, 2)]

        replanned = await _create(engine, planner, vehicle, trip_start, [skipped], name="Second run")
        assert replanned.trip.status == TripStatus.PLANNED
        assert skipped.status == DeliveryStatus.ASSIGNED

    @pytest.mark.asyncio
    async def test_cancel_resets_deliveries_and_keeps_history(
        self, engine, planner, vehicle, make_delivery, trip_start
    ):
        d1, d2 = await make_delivery(), await make_delivery()
        trip = (await _create(engine, planner, vehicle, trip_start, [d1, d2])).trip

        await engine.update_trip_status(planner, trip.id, TripStatus.CANCELLED)

        assert d1.status == DeliveryStatus.PENDING
        assert d2.status == DeliveryStatus.PENDING
        assert vehicle.status == VehicleStatus.AVAILABLE
        assert await assignment_rows(engine.db, trip.id) == [(d1.id, 1), (d2.id, 2)]

    @pytest.mark.asyncio
    async def test_illegal_transition(self, engine, db_session, planner, vehicle, make_delivery, trip_start):
        trip = (await _create(engine, planner, vehicle, trip_start, [await make_delivery()])).trip
        trip_id = trip.id

        with pytest.raises(InvalidTransitionException) as exc_info:
            await engine.update_trip_status(planner, trip_id, TripStatus.COMPLETED)

        assert exc_info.value.details == {"entity": "trip", "from": "planned", "to": "completed"}
        await reload(db_session, trip)
        assert trip.status == TripStatus.PLANNED
