"""
Security utilities for authentication.

Uses bcrypt directly instead of passlib (deprecated/unmaintained).
"""

import secrets
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Optional
from uuid import UUID

import bcrypt
from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from fleet_planner.core.config import settings
from fleet_planner.core.database import get_db
from fleet_planner.core.exceptions import AuthenticationException, AuthorizationException
from fleet_planner.core.logging import user_id_var
from fleet_planner.core.sentry import set_user_context
from fleet_planner.models.user import User, UserRole

security_scheme = HTTPBearer(auto_error=False)


@dataclass(frozen=True)
class ActorContext:
    """The authenticated caller, handed explicitly to engine operations."""

    user_id: UUID
    role: UserRole

    @classmethod
    def from_user(cls, user: User) -> "ActorContext":
        return cls(user_id=user.id, role=user.role)


# ============== Password Utilities ==============


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """Verify a password against its hash using bcrypt."""
    password_bytes = plain_password.encode("utf-8")
    hash_bytes = hashed_password.encode("utf-8")
    return bcrypt.checkpw(password_bytes, hash_bytes)


def get_password_hash(password: str) -> str:
    """Generate password hash using bcrypt."""
    password_bytes = password.encode("utf-8")
    salt = bcrypt.gensalt(rounds=12)
    hashed = bcrypt.hashpw(password_bytes, salt)
    return hashed.decode("utf-8")


# ============== Token Utilities ==============


def create_access_token(user_id: UUID, role: UserRole, expires_delta: Optional[timedelta] = None) -> str:
    """Create JWT access token."""
    if expires_delta:
        expire = datetime.utcnow() + expires_delta
    else:
        expire = datetime.utcnow() + timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)

    to_encode = {
        "sub": str(user_id),
        "role": role.value,
        "exp": expire,
        "type": "access",
    }

    return jwt.encode(to_encode, settings.SECRET_KEY, algorithm=settings.ALGORITHM)


def create_refresh_token(user_id: UUID) -> str:
    """Create refresh token with longer expiration."""
    expire = datetime.utcnow() + timedelta(days=settings.REFRESH_TOKEN_EXPIRE_DAYS)

    to_encode = {
        "sub": str(user_id),
        "exp": expire,
        "type": "refresh",
        "jti": secrets.token_hex(16),  # unique token id
    }

    return jwt.encode(to_encode, settings.SECRET_KEY, algorithm=settings.ALGORITHM)


def decode_token(token: str) -> Optional[dict]:
    """Decode and validate JWT token."""
    try:
        return jwt.decode(token, settings.SECRET_KEY, algorithms=[settings.ALGORITHM])
    except JWTError:
        return None


def subject_of(payload: Optional[dict], token_type: str) -> Optional[UUID]:
    """Return the user id a token payload refers to, if it is of the given type."""
    if payload is None or payload.get("type") != token_type:
        return None
    try:
        return UUID(payload.get("sub", ""))
    except ValueError:
        return None


# ============== Dependencies ==============


async def get_current_user(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security_scheme),
    db: AsyncSession = Depends(get_db),
) -> User:
    """Get current authenticated user from JWT token."""
    if credentials is None:
        raise AuthenticationException()

    user_id = subject_of(decode_token(credentials.credentials), "access")
    if user_id is None:
        raise AuthenticationException("Could not validate credentials")

    user = await get_user_by_id(db, user_id)
    if user is None:
        raise AuthenticationException("Could not validate credentials")

    if not user.is_active:
        raise AuthorizationException("User account is deactivated")

    request.state.user = user
    user_id_var.set(str(user.id))
    set_user_context(str(user.id), user.role.value)

    return user


async def get_actor(current_user: User = Depends(get_current_user)) -> ActorContext:
    """Actor context for the authenticated caller."""
    return ActorContext.from_user(current_user)


# ============== Utility Functions ==============


async def authenticate_user(
    db: AsyncSession,
    email: str,
    password: str,
) -> Optional[User]:
    """Authenticate user by email and password."""
    user = await get_user_by_email(db, email)

    if user is None:
        return None

    if not verify_password(password, user.hashed_password):
        return None

    return user


async def get_user_by_email(db: AsyncSession, email: str) -> Optional[User]:
    """Get user by email."""
    result = await db.execute(select(User).where(User.email == email))
    return result.scalar_one_or_none()


async def get_user_by_id(db: AsyncSession, user_id: UUID) -> Optional[User]:
    """Get user by ID."""
    result = await db.execute(select(User).where(User.id == user_id))
    return result.scalar_one_or_none()
