"""
Shared Pydantic validators for common data types.
"""

from decimal import Decimal, InvalidOperation
from typing import Annotated, Any

from pydantic import BeforeValidator, Field


def _to_decimal(v: Any, label: str) -> Decimal:
    try:
        return Decimal(str(v))
    except (InvalidOperation, ValueError):
        raise ValueError(f"Invalid {label} value: {v}")


def validate_latitude_optional(v: Any) -> Decimal | None:
    """
    Validate an optional latitude.

    Latitude must be between -90 and 90 degrees.
    """
    if v is None:
        return None
    lat = _to_decimal(v, "latitude")
    if lat < Decimal("-90") or lat > Decimal("90"):
        raise ValueError(f"Latitude must be between -90 and 90, got {lat}")
    return lat


def validate_longitude_optional(v: Any) -> Decimal | None:
    """
    Validate an optional longitude.

    Longitude must be between -180 and 180 degrees.
    """
    if v is None:
        return None
    lon = _to_decimal(v, "longitude")
    if lon < Decimal("-180") or lon > Decimal("180"):
        raise ValueError(f"Longitude must be between -180 and 180, got {lon}")
    return lon


def validate_phone(v: Any) -> str | None:
    """
    Validate phone number format.

    Accepts formats like:
    - +998901234567
    - +7 (999) 123-45-67
    - 998901234567
    """
    if v is None or v == "":
        return None

    phone = str(v).strip()
    cleaned = "".join(c for c in phone if c.isdigit() or c == "+")

    if len(cleaned) < 9:
        raise ValueError(f"Phone number too short: {phone}")
    if len(cleaned) > 15:
        raise ValueError(f"Phone number too long: {phone}")

    return phone


def reject_null(v: Any) -> Any:
    """Reject an explicit null for a field whose column cannot be empty."""
    if v is None:
        raise ValueError("Field cannot be null")
    return v


def coordinates_paired(latitude: Any, longitude: Any) -> bool:
    """Both coordinates are given or neither is."""
    return (latitude is None) == (longitude is None)


LatitudeOptional = Annotated[
    Decimal | None,
    BeforeValidator(validate_latitude_optional),
    Field(default=None, description="Optional latitude in degrees"),
]

LongitudeOptional = Annotated[
    Decimal | None,
    BeforeValidator(validate_longitude_optional),
    Field(default=None, description="Optional longitude in degrees"),
]

NonNegativeFloat = Annotated[
    float,
    Field(ge=0, description="Non-negative quantity"),
]

PhoneNumber = Annotated[
    str | None,
    BeforeValidator(validate_phone),
    Field(default=None, max_length=20, description="Phone number"),
]
