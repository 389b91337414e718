"""
Role-based access policy.

Every route that mutates state declares the action it performs; the gate
checks the caller's role against a static matrix before any engine or
store call runs. The trip assignment engine itself performs no
authorization.
"""

import enum
import logging
from typing import Any, Optional

from fastapi import Depends

from fleet_planner.core.exceptions import AuthorizationException
from fleet_planner.core.security import ActorContext, get_actor
from fleet_planner.models.user import UserRole

logger = logging.getLogger(__name__)


class Action(str, enum.Enum):
    """Operations subject to authorization."""

    READ = "read"
    CREATE_DELIVERY = "create_delivery"
    UPDATE_DELIVERY = "update_delivery"
    DELETE_DELIVERY = "delete_delivery"
    CREATE_VEHICLE = "create_vehicle"
    UPDATE_VEHICLE = "update_vehicle"
    DELETE_VEHICLE = "delete_vehicle"
    CREATE_TRIP = "create_trip"
    UPDATE_TRIP = "update_trip"
    DELETE_TRIP = "delete_trip"
    ASSIGN_DELIVERIES = "assign_deliveries"
    MANAGE_USERS = "manage_users"


class Decision(str, enum.Enum):
    ALLOW = "allow"
    DENY = "deny"


_TRIP_ACTIONS = frozenset({
    Action.CREATE_TRIP,
    Action.UPDATE_TRIP,
    Action.DELETE_TRIP,
    Action.ASSIGN_DELIVERIES,
})

POLICY: dict[UserRole, frozenset[Action]] = {
    UserRole.VIEWER: frozenset({Action.READ}),
    UserRole.DELIVERY_CREATOR: frozenset({
        Action.READ,
        Action.CREATE_DELIVERY,
        Action.UPDATE_DELIVERY,
        Action.DELETE_DELIVERY,
    }),
    UserRole.TRIP_PLANNER: frozenset({
        Action.READ,
        Action.UPDATE_DELIVERY,
        Action.UPDATE_VEHICLE,
    }) | _TRIP_ACTIONS,
    UserRole.ADMIN: frozenset(Action),
}


def authorize(actor: ActorContext, action: Action, resource: Optional[Any] = None) -> Decision:
    """
    Decide whether an actor may perform an action.

    ``resource`` is accepted for per-object rules; the current matrix is
    purely role based and ignores it.
    """
    allowed = POLICY.get(actor.role, frozenset())
    return Decision.ALLOW if action in allowed else Decision.DENY


def require_permission(action: Action):
    """Dependency factory that rejects callers whose role may not perform ``action``."""

    async def permission_checker(
        actor: ActorContext = Depends(get_actor),
    ) -> ActorContext:
        if authorize(actor, action) is Decision.DENY:
            logger.info(f"Denied {action.value} for role {actor.role.value}")
            raise AuthorizationException(
                details={"action": action.value, "role": actor.role.value},
            )
        return actor

    return permission_checker
