"""
Trip API routes.

Every write goes through TripAssignmentEngine; these handlers only map
HTTP to engine calls and never touch assignment rows themselves.
"""
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query
from sqlalchemy import Select, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from fleet_planner.core.access_policy import Action, require_permission
from fleet_planner.core.database import get_db
from fleet_planner.core.exceptions import TripNotFoundException, VehicleNotFoundException
from fleet_planner.core.security import ActorContext
from fleet_planner.models.trip import Trip, TripStatus
from fleet_planner.models.vehicle import Vehicle
from fleet_planner.schemas.delivery import DeliveryResponse
from fleet_planner.schemas.trip import (
    CapacityCheckRequest,
    CapacityCheckResponse,
    TripAssignmentResponse,
    TripCreate,
    TripDeliveriesReplace,
    TripDetailResponse,
    TripListResponse,
    TripResponse,
    TripStatusUpdate,
    TripStopResponse,
    TripSummaryResponse,
    TripWithAssignmentsResponse,
)
from fleet_planner.services.capacity import CandidateDelivery, VehicleCapacity, assess
from fleet_planner.services.trip_assignment import (
    StopAssignment,
    TripAssignmentEngine,
    TripAssignmentResult,
    require_all_deliveries,
)
from fleet_planner.services.trip_store import TripStore

router = APIRouter(prefix="/trips", tags=["trips"])


def _with_assignments(result: TripAssignmentResult) -> TripWithAssignmentsResponse:
    return TripWithAssignmentsResponse(
        **TripResponse.model_validate(result.trip).model_dump(),
        assignments=[TripAssignmentResponse.model_validate(a) for a in result.assignments],
    )


def _filter_trips(query: Select, status: Optional[TripStatus], vehicle_id: Optional[UUID]) -> Select:
    if status is not None:
        query = query.where(Trip.status == status)
    if vehicle_id is not None:
        query = query.where(Trip.vehicle_id == vehicle_id)
    return query


@router.get("", response_model=TripListResponse)
async def list_trips(
    page: int = Query(1, ge=1),
    size: int = Query(20, ge=1, le=100),
    status: Optional[TripStatus] = Query(None),
    vehicle_id: Optional[UUID] = Query(None),
    db: AsyncSession = Depends(get_db),
    _: ActorContext = Depends(require_permission(Action.READ)),
) -> TripListResponse:
    """List trips, latest start first, with vehicle and delivery count."""
    total = await db.scalar(
        _filter_trips(select(func.count(Trip.id)), status, vehicle_id)
    )

    query = _filter_trips(
        select(Trip, Vehicle.name, Vehicle.license_plate)
        .join(Vehicle, Vehicle.id == Trip.vehicle_id, isouter=True),
        status,
        vehicle_id,
    )
    query = query.order_by(Trip.planned_start_time.desc()).offset((page - 1) * size).limit(size)
    rows = (await db.execute(query)).all()

    counts = await TripStore(db).count_assignments([trip.id for trip, _, _ in rows])

    items = [
        TripSummaryResponse(
            **TripResponse.model_validate(trip).model_dump(),
            vehicle_name=vehicle_name,
            vehicle_license_plate=license_plate,
            delivery_count=counts.get(trip.id, 0),
        )
        for trip, vehicle_name, license_plate in rows
    ]
    return TripListResponse(items=items, total=total or 0, page=page, size=size)


@router.post("/capacity-check", response_model=CapacityCheckResponse)
async def check_capacity(
    data: CapacityCheckRequest,
    db: AsyncSession = Depends(get_db),
    _: ActorContext = Depends(require_permission(Action.READ)),
) -> CapacityCheckResponse:
    """
    Preview whether a delivery set fits a vehicle.

    Nothing is written. Unknown ids answer 404 and deliveries already in
    transit or delivered answer 400, exactly as trip creation would.
    """
    store = TripStore(db)
    vehicle = await store.get_vehicle(data.vehicle_id)
    if vehicle is None:
        raise VehicleNotFoundException(str(data.vehicle_id))

    deliveries = require_all_deliveries(
        data.delivery_ids, await store.get_deliveries_by_ids(data.delivery_ids)
    )
    capacity = VehicleCapacity.from_vehicle(vehicle)
    verdict = assess(capacity, [CandidateDelivery.from_delivery(d) for d in deliveries])

    return CapacityCheckResponse(
        ok=verdict.ok,
        exceeded=verdict.exceeded,
        total_weight=verdict.total_weight,
        total_volume=verdict.total_volume,
        capacity_weight=capacity.weight,
        capacity_volume=capacity.volume,
    )


@router.get("/{trip_id}", response_model=TripDetailResponse)
async def get_trip(
    trip_id: UUID,
    db: AsyncSession = Depends(get_db),
    _: ActorContext = Depends(require_permission(Action.READ)),
) -> TripDetailResponse:
    """Get a trip with its deliveries in sequence order."""
    store = TripStore(db)
    trip = await store.get_trip(trip_id)
    if trip is None:
        raise TripNotFoundException(str(trip_id))

    vehicle = await store.get_vehicle(trip.vehicle_id)
    stops = [
        TripStopResponse(
            **DeliveryResponse.model_validate(delivery).model_dump(),
            sequence_order=assignment.sequence_order,
            estimated_arrival=assignment.estimated_arrival,
            actual_arrival=assignment.actual_arrival,
        )
        for assignment, delivery in await store.get_trip_deliveries(trip.id)
    ]

    return TripDetailResponse(
        **TripResponse.model_validate(trip).model_dump(),
        vehicle_name=vehicle.name if vehicle else None,
        vehicle_license_plate=vehicle.license_plate if vehicle else None,
        deliveries=stops,
    )


@router.post("", response_model=TripWithAssignmentsResponse, status_code=201)
async def create_trip(
    data: TripCreate,
    db: AsyncSession = Depends(get_db),
    actor: ActorContext = Depends(require_permission(Action.CREATE_TRIP)),
) -> TripWithAssignmentsResponse:
    """Create a trip on a vehicle with an ordered set of deliveries."""
    result = await TripAssignmentEngine(db).create_trip(
        actor,
        name=data.name,
        vehicle_id=data.vehicle_id,
        planned_start_time=data.planned_start_time,
        planned_end_time=data.planned_end_time,
        deliveries=[
            StopAssignment(
                delivery_id=item.delivery_id,
                sequence_order=item.sequence_order,
                estimated_arrival=item.estimated_arrival,
            )
            for item in data.deliveries
        ],
    )
    return _with_assignments(result)


@router.put("/{trip_id}/deliveries", response_model=TripWithAssignmentsResponse)
async def replace_trip_deliveries(
    trip_id: UUID,
    data: TripDeliveriesReplace,
    db: AsyncSession = Depends(get_db),
    actor: ActorContext = Depends(require_permission(Action.ASSIGN_DELIVERIES)),
) -> TripWithAssignmentsResponse:
    """Replace the trip's deliveries; positions follow the given order."""
    result = await TripAssignmentEngine(db).replace_assignments(actor, trip_id, data.delivery_ids)
    return _with_assignments(result)


@router.patch("/{trip_id}/status", response_model=TripResponse)
async def update_trip_status(
    trip_id: UUID,
    data: TripStatusUpdate,
    db: AsyncSession = Depends(get_db),
    actor: ActorContext = Depends(require_permission(Action.UPDATE_TRIP)),
) -> TripResponse:
    """Start, complete or cancel a trip."""
    trip = await TripAssignmentEngine(db).update_trip_status(actor, trip_id, data.status)
    return TripResponse.model_validate(trip)


@router.delete("/{trip_id}", status_code=204)
async def delete_trip(
    trip_id: UUID,
    db: AsyncSession = Depends(get_db),
    actor: ActorContext = Depends(require_permission(Action.DELETE_TRIP)),
) -> None:
    """Delete a planned or in-progress trip and release its deliveries."""
    await TripAssignmentEngine(db).delete_trip(actor, trip_id)
