"""
Health check endpoints.
"""
from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from fleet_planner.core.config import settings
from fleet_planner.core.database import check_db_connection, get_db, get_pool_status
from fleet_planner.core.metrics import update_db_pool_metrics

router = APIRouter(tags=["health"])


@router.get("/health")
async def health_check() -> dict:
    """Basic health check."""
    return {"status": "healthy", "version": settings.APP_VERSION}


@router.get("/health/detailed")
async def detailed_health_check(
    db: AsyncSession = Depends(get_db),
) -> dict:
    """Detailed health check including the database and its connection pool."""
    database_ok = await check_db_connection(db)
    pool = await get_pool_status()
    update_db_pool_metrics(active=pool["checked_out"], idle=pool["checked_in"])

    return {
        "status": "healthy" if database_ok else "degraded",
        "checks": {
            "api": "healthy",
            "database": "healthy" if database_ok else "unhealthy",
        },
        "pool": pool,
    }
