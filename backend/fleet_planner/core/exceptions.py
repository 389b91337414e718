"""
Standardized exception handling for API-first design.

Provides consistent error responses across all endpoints with:
- Unique error codes for client-side handling
- Request tracking via request_id
- Detailed error messages with context
- HTTP status code alignment
"""
import logging
from datetime import datetime
from typing import Any, Dict, Optional
from uuid import uuid4

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse
from pydantic import BaseModel

logger = logging.getLogger(__name__)


class ErrorDetail(BaseModel):
    """Standardized error response format."""
    code: str
    message: str
    status_code: int
    timestamp: str
    request_id: Optional[str] = None
    details: Optional[Dict[str, Any]] = None


class ErrorResponse(BaseModel):
    """Wrapper for error responses."""
    error: ErrorDetail


# =============================================================================
# Base Exception Classes
# =============================================================================

class AppException(Exception):
    """Base exception for all application errors."""

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    error_code: str = "INTERNAL_ERROR"
    message: str = "An unexpected error occurred"

    def __init__(
        self,
        message: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
        error_code: Optional[str] = None,
    ):
        self.message = message or self.message
        self.details = details
        if error_code:
            self.error_code = error_code
        super().__init__(self.message)

    def to_response(self, request_id: Optional[str] = None) -> ErrorResponse:
        """Convert exception to standardized error response."""
        return ErrorResponse(
            error=ErrorDetail(
                code=self.error_code,
                message=self.message,
                status_code=self.status_code,
                timestamp=datetime.utcnow().isoformat() + "Z",
                request_id=request_id,
                details=self.details,
            )
        )


# =============================================================================
# Client Errors (4xx)
# =============================================================================

class ValidationException(AppException):
    """Invalid input data."""
    status_code = status.HTTP_400_BAD_REQUEST
    error_code = "VALIDATION_ERROR"
    message = "Invalid input data"


class AuthenticationException(AppException):
    """Authentication failed."""
    status_code = status.HTTP_401_UNAUTHORIZED
    error_code = "AUTHENTICATION_FAILED"
    message = "Authentication required"


class AuthorizationException(AppException):
    """User lacks permission."""
    status_code = status.HTTP_403_FORBIDDEN
    error_code = "PERMISSION_DENIED"
    message = "You do not have permission to perform this action"


class NotFoundException(AppException):
    """Resource not found."""
    status_code = status.HTTP_404_NOT_FOUND
    error_code = "NOT_FOUND"
    message = "Resource not found"


class ConflictException(AppException):
    """Resource conflict (duplicate, state conflict)."""
    status_code = status.HTTP_409_CONFLICT
    error_code = "CONFLICT"
    message = "Resource conflict"


class RateLimitException(AppException):
    """Rate limit exceeded."""
    status_code = status.HTTP_429_TOO_MANY_REQUESTS
    error_code = "RATE_LIMIT_EXCEEDED"
    message = "Rate limit exceeded. Please retry later."


# =============================================================================
# Domain-Specific Exceptions
# =============================================================================

class VehicleNotFoundException(NotFoundException):
    """Vehicle not found."""
    error_code = "VEHICLE_NOT_FOUND"
    message = "Vehicle not found"

    def __init__(self, vehicle_id: str):
        super().__init__(
            message=f"Vehicle with ID '{vehicle_id}' not found",
            details={"vehicle_id": str(vehicle_id)}
        )


class DeliveryNotFoundException(NotFoundException):
    """Delivery not found."""
    error_code = "DELIVERY_NOT_FOUND"
    message = "Delivery not found"

    def __init__(self, delivery_id: str):
        super().__init__(
            message=f"Delivery with ID '{delivery_id}' not found",
            details={"delivery_id": str(delivery_id)}
        )


class TripNotFoundException(NotFoundException):
    """Trip not found."""
    error_code = "TRIP_NOT_FOUND"
    message = "Trip not found"

    def __init__(self, trip_id: str):
        super().__init__(
            message=f"Trip with ID '{trip_id}' not found",
            details={"trip_id": str(trip_id)}
        )


class UserNotFoundException(NotFoundException):
    """User not found."""
    error_code = "USER_NOT_FOUND"
    message = "User not found"

    def __init__(self, user_id: str):
        super().__init__(
            message=f"User with ID '{user_id}' not found",
            details={"user_id": str(user_id)}
        )


class DeliveryNotAssignableException(ValidationException):
    """Delivery is already moving or delivered and cannot join a trip."""
    error_code = "DELIVERY_NOT_ASSIGNABLE"

    def __init__(self, delivery_id: str, status: str):
        super().__init__(
            message=f"Delivery {delivery_id} is already {status}",
            details={"delivery_id": str(delivery_id), "status": status}
        )


class TripNotEditableException(ValidationException):
    """Trip is in a terminal state and its deliveries are frozen."""
    error_code = "TRIP_NOT_EDITABLE"

    def __init__(self, trip_id: str, status: str):
        super().__init__(
            message=f"Trip {trip_id} is {status}; its deliveries cannot be changed",
            details={"trip_id": str(trip_id), "status": status}
        )


class CapacityExceededException(AppException):
    """Aggregate weight or volume exceeds the vehicle capacity."""
    status_code = status.HTTP_422_UNPROCESSABLE_CONTENT
    error_code = "CAPACITY_EXCEEDED"
    message = "Vehicle capacity exceeded"

    def __init__(self, kind: str, total: float, capacity: float):
        self.kind = kind
        self.total = total
        self.capacity = capacity
        super().__init__(
            message=f"Total {kind} exceeds vehicle capacity: {total} > {capacity}",
            details={"kind": kind, "total": total, "capacity": capacity}
        )


class InvalidTransitionException(ConflictException):
    """Status change not permitted by the entity's state machine."""
    error_code = "INVALID_TRANSITION"
    message = "Invalid status transition"

    def __init__(self, entity: str, from_status: str, to_status: str):
        self.entity = entity
        self.from_status = from_status
        self.to_status = to_status
        super().__init__(
            message=f"Cannot move {entity} from '{from_status}' to '{to_status}'",
            details={"entity": entity, "from": from_status, "to": to_status}
        )


class ConcurrencyConflictException(ConflictException):
    """Concurrent transaction conflict reported by the database."""
    error_code = "CONCURRENCY_CONFLICT"
    message = "The operation conflicted with a concurrent update. Please retry."


class ResourceInUseException(ConflictException):
    """Resource is still referenced by an active trip."""
    error_code = "RESOURCE_IN_USE"

    def __init__(self, resource_type: str, resource_id: str):
        super().__init__(
            message=f"{resource_type} '{resource_id}' is referenced by an active trip",
            details={"resource_type": resource_type, "resource_id": str(resource_id)}
        )


class DuplicateLicensePlateException(ConflictException):
    """Duplicate vehicle license plate."""
    error_code = "DUPLICATE_LICENSE_PLATE"

    def __init__(self, license_plate: str):
        super().__init__(
            message=f"Vehicle with license plate '{license_plate}' already exists",
            details={"license_plate": license_plate}
        )


class DuplicateEmailException(ConflictException):
    """Duplicate user email."""
    error_code = "DUPLICATE_EMAIL"

    def __init__(self, email: str):
        super().__init__(
            message=f"Email '{email}' is already registered",
            details={"email": email}
        )


# =============================================================================
# Configuration Exception
# =============================================================================

class ConfigurationException(AppException):
    """Configuration error - should fail at startup."""
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    error_code = "CONFIGURATION_ERROR"
    message = "Application configuration error"


# =============================================================================
# Exception Handler Registration
# =============================================================================

def get_request_id(request: Request) -> str:
    """Extract or generate request ID."""
    return getattr(request.state, "request_id", None) or str(uuid4())


async def app_exception_handler(request: Request, exc: AppException) -> JSONResponse:
    """Handle all application exceptions with standardized format."""
    request_id = get_request_id(request)
    response = exc.to_response(request_id=request_id)

    return JSONResponse(
        status_code=exc.status_code,
        content=response.model_dump(),
        headers={"X-Request-ID": request_id},
    )


async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Handle unexpected exceptions."""
    request_id = get_request_id(request)

    logger.exception(f"Unhandled exception: {exc}", extra={"request_id": request_id})

    error = ErrorResponse(
        error=ErrorDetail(
            code="INTERNAL_ERROR",
            message="An unexpected error occurred",
            status_code=500,
            timestamp=datetime.utcnow().isoformat() + "Z",
            request_id=request_id,
        )
    )

    return JSONResponse(
        status_code=500,
        content=error.model_dump(),
        headers={"X-Request-ID": request_id},
    )


def register_exception_handlers(app: FastAPI) -> None:
    """Register all exception handlers with the FastAPI app."""
    app.add_exception_handler(AppException, app_exception_handler)
    app.add_exception_handler(Exception, generic_exception_handler)
