"""
Prometheus metrics for observability.

Exposes metrics for:
- HTTP request latency and counts
- Trip engine operations and capacity rejections
- Database connection pool usage
"""

import time

from prometheus_client import (
    CONTENT_TYPE_LATEST,
    REGISTRY,
    Counter,
    Gauge,
    Histogram,
    Info,
    generate_latest,
)
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

from fleet_planner.core.config import settings

# ============================================================
# HTTP Metrics
# ============================================================

HTTP_REQUEST_DURATION = Histogram(
    "http_request_duration_seconds",
    "HTTP request duration in seconds",
    ["method", "endpoint", "status_code"],
    buckets=[0.01, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0],
)

HTTP_REQUEST_TOTAL = Counter(
    "http_requests_total",
    "Total HTTP requests",
    ["method", "endpoint", "status_code"],
)

HTTP_REQUEST_IN_PROGRESS = Gauge(
    "http_requests_in_progress",
    "HTTP requests currently in progress",
    ["method", "endpoint"],
)


# ============================================================
# Trip Engine Metrics
# ============================================================

TRIP_OPERATIONS = Counter(
    "trip_operations_total",
    "Trip assignment engine operations",
    ["operation", "outcome"],
)

CAPACITY_REJECTIONS = Counter(
    "trip_capacity_rejections_total",
    "Assignments rejected because a vehicle capacity was exceeded",
    ["kind"],
)

TRIP_DELIVERIES = Histogram(
    "trip_deliveries_count",
    "Number of deliveries bound to a trip after an engine write",
    buckets=[0, 1, 2, 5, 10, 20, 50, 100],
)


# ============================================================
# Database Metrics
# ============================================================

DB_CONNECTIONS_ACTIVE = Gauge(
    "db_connections_active",
    "Active database connections",
)

DB_CONNECTIONS_IDLE = Gauge(
    "db_connections_idle",
    "Idle database connections",
)


# ============================================================
# Application Info
# ============================================================

APP_INFO = Info(
    "app",
    "Application information",
)
APP_INFO.info(
    {
        "name": settings.APP_NAME,
        "version": settings.APP_VERSION,
        "environment": settings.ENVIRONMENT,
    }
)


# ============================================================
# Middleware
# ============================================================


class PrometheusMiddleware(BaseHTTPMiddleware):
    """
    Middleware to collect HTTP request metrics.

    Tracks:
    - Request duration
    - Request count by endpoint and status
    - In-progress requests
    """

    async def dispatch(self, request: Request, call_next) -> Response:
        if request.url.path == settings.METRICS_PATH:
            return await call_next(request)

        method = request.method
        endpoint = self._normalize_path(request.url.path)

        HTTP_REQUEST_IN_PROGRESS.labels(method=method, endpoint=endpoint).inc()

        start_time = time.perf_counter()
        try:
            response = await call_next(request)
            status_code = str(response.status_code)
        except Exception:
            status_code = "500"
            raise
        finally:
            duration = time.perf_counter() - start_time

            HTTP_REQUEST_DURATION.labels(
                method=method,
                endpoint=endpoint,
                status_code=status_code,
            ).observe(duration)

            HTTP_REQUEST_TOTAL.labels(
                method=method,
                endpoint=endpoint,
                status_code=status_code,
            ).inc()

            HTTP_REQUEST_IN_PROGRESS.labels(method=method, endpoint=endpoint).dec()

        return response

    def _normalize_path(self, path: str) -> str:
        """
        Normalize path by replacing dynamic segments with placeholders.

        /api/v1/trips/8c0f...-.../deliveries -> /api/v1/trips/{id}/deliveries
        """
        normalized = ["{id}" if _is_id(part) else part for part in path.split("/") if part]
        return "/" + "/".join(normalized) if normalized else "/"


def _is_id(part: str) -> bool:
    """Check if a path segment is a UUID or numeric ID."""
    if len(part) == 36 and part.count("-") == 4:
        return True
    return part.isdigit()


# ============================================================
# Helper Functions
# ============================================================


def record_trip_operation(operation: str, outcome: str) -> None:
    """Count one engine operation by its outcome (ok or the error code)."""
    TRIP_OPERATIONS.labels(operation=operation, outcome=outcome).inc()


def record_capacity_rejection(kind: str) -> None:
    """Count a capacity rejection by dimension (weight or volume)."""
    CAPACITY_REJECTIONS.labels(kind=kind).inc()


def update_db_pool_metrics(active: int, idle: int):
    """Update database connection pool metrics."""
    DB_CONNECTIONS_ACTIVE.set(active)
    DB_CONNECTIONS_IDLE.set(idle)


# ============================================================
# Metrics Endpoint
# ============================================================


async def metrics_endpoint(request: Request) -> Response:
    """
    Prometheus metrics endpoint.

    Returns metrics in Prometheus text format.
    """
    return Response(
        content=generate_latest(REGISTRY),
        media_type=CONTENT_TYPE_LATEST,
    )
