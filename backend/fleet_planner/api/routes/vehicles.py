"""
Vehicle API routes.
"""
import logging
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from fleet_planner.core.access_policy import Action, require_permission
from fleet_planner.core.database import get_db, unit_of_work
from fleet_planner.core.exceptions import (
    CapacityExceededException,
    ConflictException,
    DuplicateLicensePlateException,
    ResourceInUseException,
    ValidationException,
    VehicleNotFoundException,
)
from fleet_planner.core.security import ActorContext
from fleet_planner.models.trip import Trip
from fleet_planner.models.vehicle import Vehicle, VehicleStatus
from fleet_planner.schemas.vehicle import (
    VehicleCreate,
    VehicleListResponse,
    VehicleResponse,
    VehicleUpdate,
)
from fleet_planner.services.trip_store import TripStore

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/vehicles", tags=["vehicles"])


async def _ensure_unique_plate(db: AsyncSession, license_plate: str, exclude_id: Optional[UUID] = None) -> None:
    query = select(Vehicle.id).where(Vehicle.license_plate == license_plate)
    if exclude_id is not None:
        query = query.where(Vehicle.id != exclude_id)
    if await db.scalar(query):
        raise DuplicateLicensePlateException(license_plate)


async def _ensure_capacity_covers_active_trips(store: TripStore, vehicle: Vehicle, update_data: dict) -> None:
    active_trips = await store.get_active_trips_for_vehicle(vehicle.id)
    for kind in ("weight", "volume"):
        capacity = update_data.get(f"capacity_{kind}")
        if capacity is None or not active_trips:
            continue
        heaviest = max(getattr(trip, f"total_{kind}") for trip in active_trips)
        if heaviest > capacity:
            raise CapacityExceededException(kind, heaviest, capacity)


@router.get("", response_model=VehicleListResponse)
async def list_vehicles(
    page: int = Query(1, ge=1),
    size: int = Query(20, ge=1, le=100),
    status: Optional[VehicleStatus] = Query(None),
    search: Optional[str] = Query(None, description="Search by name or license plate"),
    db: AsyncSession = Depends(get_db),
    _: ActorContext = Depends(require_permission(Action.READ)),
) -> VehicleListResponse:
    """Get list of vehicles with pagination."""
    query = select(Vehicle)

    if status is not None:
        query = query.where(Vehicle.status == status)

    if search:
        query = query.where(
            (Vehicle.name.ilike(f"%{search}%")) |
            (Vehicle.license_plate.ilike(f"%{search}%"))
        )

    total = await db.scalar(select(func.count()).select_from(query.subquery()))

    query = query.order_by(Vehicle.name).offset((page - 1) * size).limit(size)
    result = await db.execute(query)

    return VehicleListResponse(
        items=[VehicleResponse.model_validate(v) for v in result.scalars().all()],
        total=total or 0,
        page=page,
        size=size,
    )


@router.get("/{vehicle_id}", response_model=VehicleResponse)
async def get_vehicle(
    vehicle_id: UUID,
    db: AsyncSession = Depends(get_db),
    _: ActorContext = Depends(require_permission(Action.READ)),
) -> VehicleResponse:
    """Get vehicle by ID."""
    vehicle = await TripStore(db).get_vehicle(vehicle_id)
    if not vehicle:
        raise VehicleNotFoundException(str(vehicle_id))

    return VehicleResponse.model_validate(vehicle)


@router.post("", response_model=VehicleResponse, status_code=201)
async def create_vehicle(
    data: VehicleCreate,
    db: AsyncSession = Depends(get_db),
    _: ActorContext = Depends(require_permission(Action.CREATE_VEHICLE)),
) -> VehicleResponse:
    """Create a new vehicle."""
    if data.status == VehicleStatus.IN_USE:
        raise ValidationException("A new vehicle cannot start in use")

    async with unit_of_work(db):
        await _ensure_unique_plate(db, data.license_plate)
        vehicle = Vehicle(**data.model_dump())
        db.add(vehicle)

    logger.info(f"Created vehicle {vehicle.id} ({vehicle.license_plate})")
    return VehicleResponse.model_validate(vehicle)


@router.put("/{vehicle_id}", response_model=VehicleResponse)
async def update_vehicle(
    vehicle_id: UUID,
    data: VehicleUpdate,
    db: AsyncSession = Depends(get_db),
    _: ActorContext = Depends(require_permission(Action.UPDATE_VEHICLE)),
) -> VehicleResponse:
    """
    Update a vehicle.

    Operators may move a vehicle between available, maintenance and
    inactive. in_use is managed by trips, so it can be neither set here
    nor left while an active trip still needs the vehicle.
    """
    store = TripStore(db)
    update_data = data.model_dump(exclude_unset=True)
    new_status = update_data.pop("status", None)

    async with unit_of_work(db):
        vehicle = await store.get_vehicle(vehicle_id, for_update=True)
        if not vehicle:
            raise VehicleNotFoundException(str(vehicle_id))

        if "license_plate" in update_data:
            await _ensure_unique_plate(db, update_data["license_plate"], exclude_id=vehicle_id)

        await _ensure_capacity_covers_active_trips(store, vehicle, update_data)

        for field, value in update_data.items():
            setattr(vehicle, field, value)

        if new_status is not None and new_status != vehicle.status:
            if new_status == VehicleStatus.IN_USE:
                raise ValidationException("Vehicle status in_use is set by trips")
            if await store.get_active_trips_for_vehicle(vehicle.id):
                raise ResourceInUseException("Vehicle", str(vehicle.id))
            await store.update_vehicle_status(vehicle, new_status)

    return VehicleResponse.model_validate(vehicle)


@router.delete("/{vehicle_id}", status_code=204)
async def delete_vehicle(
    vehicle_id: UUID,
    db: AsyncSession = Depends(get_db),
    _: ActorContext = Depends(require_permission(Action.DELETE_VEHICLE)),
) -> None:
    """
    Delete a vehicle.

    Vehicles bound to an active trip cannot be deleted. Vehicles that only
    carry completed or cancelled trips keep that history; retire them by
    setting the status to inactive.
    """
    store = TripStore(db)
    async with unit_of_work(db):
        vehicle = await store.get_vehicle(vehicle_id, for_update=True)
        if not vehicle:
            raise VehicleNotFoundException(str(vehicle_id))

        if await store.get_active_trips_for_vehicle(vehicle.id):
            raise ResourceInUseException("Vehicle", str(vehicle.id))

        if await db.scalar(select(func.count(Trip.id)).where(Trip.vehicle_id == vehicle.id)):
            raise ConflictException(
                "Vehicle has trip history; set its status to inactive instead",
                details={"vehicle_id": str(vehicle.id)},
            )

        await db.delete(vehicle)

    logger.info(f"Deleted vehicle {vehicle_id}")
