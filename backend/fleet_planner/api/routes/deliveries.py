"""
Delivery API routes.
"""
import logging
from datetime import date
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from fleet_planner.core.access_policy import Action, require_permission
from fleet_planner.core.database import get_db, unit_of_work
from fleet_planner.core.exceptions import DeliveryNotFoundException, ResourceInUseException
from fleet_planner.core.security import ActorContext
from fleet_planner.models.delivery import Delivery, DeliveryStatus
from fleet_planner.schemas.delivery import (
    DeliveryCreate,
    DeliveryListResponse,
    DeliveryResponse,
    DeliveryStatusUpdate,
    DeliveryUpdate,
)
from fleet_planner.services.status_transitions import ensure_external_delivery_event
from fleet_planner.services.trip_store import TripStore

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/deliveries", tags=["deliveries"])


async def _get_delivery(store: TripStore, delivery_id: UUID) -> Delivery:
    found = await store.get_deliveries_by_ids([delivery_id], for_update=True)
    delivery = found.get(delivery_id)
    if delivery is None:
        raise DeliveryNotFoundException(str(delivery_id))
    return delivery


@router.get("", response_model=DeliveryListResponse)
async def list_deliveries(
    page: int = Query(1, ge=1),
    size: int = Query(50, ge=1, le=200),
    status: Optional[DeliveryStatus] = Query(None),
    scheduled_date: Optional[date] = Query(None),
    search: Optional[str] = Query(None, description="Search by customer or address"),
    db: AsyncSession = Depends(get_db),
    _: ActorContext = Depends(require_permission(Action.READ)),
) -> DeliveryListResponse:
    """Get deliveries ordered by scheduled date."""
    query = select(Delivery)

    if status is not None:
        query = query.where(Delivery.status == status)
    if scheduled_date is not None:
        query = query.where(Delivery.scheduled_date == scheduled_date)
    if search:
        query = query.where(
            (Delivery.customer_name.ilike(f"%{search}%")) |
            (Delivery.delivery_address.ilike(f"%{search}%"))
        )

    total = await db.scalar(select(func.count()).select_from(query.subquery()))

    query = query.order_by(Delivery.scheduled_date, Delivery.created_at).offset((page - 1) * size).limit(size)
    result = await db.execute(query)

    return DeliveryListResponse(
        items=[DeliveryResponse.model_validate(d) for d in result.scalars().all()],
        total=total or 0,
        page=page,
        size=size,
    )


@router.get("/{delivery_id}", response_model=DeliveryResponse)
async def get_delivery(
    delivery_id: UUID,
    db: AsyncSession = Depends(get_db),
    _: ActorContext = Depends(require_permission(Action.READ)),
) -> DeliveryResponse:
    """Get delivery by ID."""
    found = await TripStore(db).get_deliveries_by_ids([delivery_id])
    if delivery_id not in found:
        raise DeliveryNotFoundException(str(delivery_id))
    return DeliveryResponse.model_validate(found[delivery_id])


@router.post("", response_model=DeliveryResponse, status_code=201)
async def create_delivery(
    data: DeliveryCreate,
    db: AsyncSession = Depends(get_db),
    actor: ActorContext = Depends(require_permission(Action.CREATE_DELIVERY)),
) -> DeliveryResponse:
    """Create a pending delivery."""
    async with unit_of_work(db):
        delivery = Delivery(**data.model_dump(), created_by=actor.user_id)
        db.add(delivery)

    logger.info(f"Created delivery {delivery.id} for {delivery.scheduled_date}")
    return DeliveryResponse.model_validate(delivery)


@router.put("/{delivery_id}", response_model=DeliveryResponse)
async def update_delivery(
    delivery_id: UUID,
    data: DeliveryUpdate,
    db: AsyncSession = Depends(get_db),
    _: ActorContext = Depends(require_permission(Action.UPDATE_DELIVERY)),
) -> DeliveryResponse:
    """
    Edit delivery details.

    Status is not editable here; external events use the status endpoint
    and assignment is owned by trips. Weight and volume are frozen while an
    active trip carries the delivery.
    """
    store = TripStore(db)
    update_data = data.model_dump(exclude_unset=True)

    async with unit_of_work(db):
        delivery = await _get_delivery(store, delivery_id)

        load_changed = any(
            field in update_data and update_data[field] != getattr(delivery, field)
            for field in ("weight", "volume")
        )
        if load_changed and await store.get_active_trip_ids_for_delivery(delivery.id):
            raise ResourceInUseException("Delivery", str(delivery.id))

        for field, value in update_data.items():
            setattr(delivery, field, value)

    return DeliveryResponse.model_validate(delivery)


@router.patch("/{delivery_id}/status", response_model=DeliveryResponse)
async def update_delivery_status(
    delivery_id: UUID,
    data: DeliveryStatusUpdate,
    db: AsyncSession = Depends(get_db),
    actor: ActorContext = Depends(require_permission(Action.UPDATE_DELIVERY)),
) -> DeliveryResponse:
    """
    Record a delivery event: picked up (in_transit), delivered or failed.
    """
    store = TripStore(db)
    async with unit_of_work(db):
        delivery = await _get_delivery(store, delivery_id)
        new_status = ensure_external_delivery_event(delivery, data.status)
        await store.update_delivery_status(delivery, new_status)

    logger.info(f"Delivery {delivery_id} moved to {new_status.value} by {actor.user_id}")
    return DeliveryResponse.model_validate(delivery)


@router.delete("/{delivery_id}", status_code=204)
async def delete_delivery(
    delivery_id: UUID,
    db: AsyncSession = Depends(get_db),
    _: ActorContext = Depends(require_permission(Action.DELETE_DELIVERY)),
) -> None:
    """
    Delete a delivery.

    Refused while an active trip carries it. Assignment rows held by
    completed or cancelled trips are removed together with the delivery.
    """
    store = TripStore(db)
    async with unit_of_work(db):
        delivery = await _get_delivery(store, delivery_id)

        if await store.get_active_trip_ids_for_delivery(delivery.id):
            raise ResourceInUseException("Delivery", str(delivery.id))

        await store.delete_assignments_for_delivery(delivery.id)
        await db.delete(delivery)

    logger.info(f"Deleted delivery {delivery_id}")
