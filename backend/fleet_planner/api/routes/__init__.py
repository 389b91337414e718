"""
API routes module.
"""

from fastapi import APIRouter

from fleet_planner.api.routes import (
    auth,
    deliveries,
    health,
    trips,
    users,
    vehicles,
)

# Main API router (mounted at /api/v1)
api_router = APIRouter()

api_router.include_router(health.router)
api_router.include_router(auth.router)
api_router.include_router(users.router)
api_router.include_router(deliveries.router)
api_router.include_router(vehicles.router)
api_router.include_router(trips.router)
