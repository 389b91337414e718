"""
User management endpoints (admin only).
"""
import logging
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from fleet_planner.core.access_policy import Action, require_permission
from fleet_planner.core.database import get_db, unit_of_work
from fleet_planner.core.exceptions import UserNotFoundException, ValidationException
from fleet_planner.core.security import ActorContext, get_user_by_id
from fleet_planner.models.user import User, UserRole
from fleet_planner.schemas.auth import (
    UserActiveUpdate,
    UserListResponse,
    UserResponse,
    UserRoleUpdate,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/users", tags=["users"])


async def _ensure_not_last_admin(db: AsyncSession, user: User) -> None:
    """Refuse to demote or deactivate the only remaining active admin."""
    if user.role != UserRole.ADMIN or not user.is_active:
        return
    others = await db.scalar(
        select(func.count(User.id)).where(
            User.role == UserRole.ADMIN,
            User.is_active.is_(True),
            User.id != user.id,
        )
    )
    if not others:
        raise ValidationException(
            "Cannot remove the last active admin",
            details={"user_id": str(user.id)},
        )


@router.get("", response_model=UserListResponse)
async def list_users(
    page: int = Query(1, ge=1),
    size: int = Query(20, ge=1, le=100),
    role: Optional[UserRole] = Query(None),
    is_active: Optional[bool] = Query(None),
    search: Optional[str] = Query(None, description="Search by email or name"),
    db: AsyncSession = Depends(get_db),
    _: ActorContext = Depends(require_permission(Action.MANAGE_USERS)),
) -> UserListResponse:
    """List all users."""
    query = select(User)

    if role:
        query = query.where(User.role == role)
    if is_active is not None:
        query = query.where(User.is_active == is_active)
    if search:
        search_filter = f"%{search}%"
        query = query.where(
            (User.email.ilike(search_filter)) |
            (User.full_name.ilike(search_filter))
        )

    total = await db.scalar(select(func.count()).select_from(query.subquery()))

    query = query.order_by(User.created_at.desc()).offset((page - 1) * size).limit(size)
    result = await db.execute(query)

    return UserListResponse(
        items=[UserResponse.model_validate(u) for u in result.scalars().all()],
        total=total or 0,
        page=page,
        size=size,
    )


@router.patch("/{user_id}/role", response_model=UserResponse)
async def update_user_role(
    user_id: UUID,
    data: UserRoleUpdate,
    db: AsyncSession = Depends(get_db),
    actor: ActorContext = Depends(require_permission(Action.MANAGE_USERS)),
) -> UserResponse:
    """Change a user's role."""
    async with unit_of_work(db):
        user = await get_user_by_id(db, user_id)
        if not user:
            raise UserNotFoundException(str(user_id))

        if data.role != UserRole.ADMIN:
            await _ensure_not_last_admin(db, user)
        user.role = data.role

    logger.info(f"User {user_id} role set to {data.role.value} by {actor.user_id}")
    return UserResponse.model_validate(user)


@router.patch("/{user_id}/active", response_model=UserResponse)
async def update_user_active(
    user_id: UUID,
    data: UserActiveUpdate,
    db: AsyncSession = Depends(get_db),
    actor: ActorContext = Depends(require_permission(Action.MANAGE_USERS)),
) -> UserResponse:
    """Activate or deactivate a user. Deactivation revokes the refresh token."""
    async with unit_of_work(db):
        user = await get_user_by_id(db, user_id)
        if not user:
            raise UserNotFoundException(str(user_id))

        if not data.is_active:
            await _ensure_not_last_admin(db, user)
            user.refresh_token = None
        user.is_active = data.is_active

    logger.info(f"User {user_id} active={data.is_active} by {actor.user_id}")
    return UserResponse.model_validate(user)
