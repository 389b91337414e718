"""
Rate limiting configuration for API endpoints.

Uses slowapi for request throttling based on client IP or user ID.
"""

import re

from fastapi import Request
from slowapi import Limiter
from slowapi.errors import RateLimitExceeded
from slowapi.util import get_remote_address
from starlette.responses import JSONResponse

from fleet_planner.core.config import settings


def get_rate_limit_key(request: Request) -> str:
    """
    Get rate limit key from request.

    Uses authenticated user ID if available, otherwise client IP.
    """
    user = getattr(request.state, "user", None)
    if user:
        return f"user:{user.id}"

    return get_remote_address(request)


limiter = Limiter(
    key_func=get_rate_limit_key,
    default_limits=["200/minute"],
    storage_uri=settings.RATE_LIMIT_STORAGE_URI,
    strategy="fixed-window",
    enabled=settings.RATE_LIMIT_ENABLED,
)


class RateLimits:
    """Rate limit presets for different endpoint types."""

    # Auth endpoints - strict limits to prevent brute force
    AUTH_LOGIN = "5/minute"
    AUTH_REGISTER = "3/minute"
    AUTH_REFRESH = "10/minute"

    DEFAULT = "200/minute"


def rate_limit_exceeded_handler(request: Request, exc: RateLimitExceeded) -> JSONResponse:
    """
    Custom handler for rate limit exceeded errors.

    Returns a JSON response with retry information.
    """
    retry_after = 60
    if exc.detail:
        match = re.search(r"(\d+)\s*second", str(exc.detail))
        if match:
            retry_after = int(match.group(1))

    return JSONResponse(
        status_code=429,
        content={
            "error": {
                "code": "RATE_LIMIT_EXCEEDED",
                "message": f"Rate limit exceeded: {exc.detail}" if exc.detail else "Too many requests",
                "status_code": 429,
                "request_id": getattr(request.state, "request_id", None),
                "details": {"retry_after_seconds": retry_after},
            }
        },
        headers={"Retry-After": str(retry_after)},
    )


def setup_rate_limiting(app) -> None:
    """
    Configure rate limiting for the FastAPI application.

    Args:
        app: FastAPI application instance
    """
    app.state.limiter = limiter
    app.add_exception_handler(RateLimitExceeded, rate_limit_exceeded_handler)
