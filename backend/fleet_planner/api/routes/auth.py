"""
Authentication endpoints.
"""
import logging

from fastapi import APIRouter, Depends, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from fleet_planner.core.database import get_db, unit_of_work
from fleet_planner.core.exceptions import (
    AuthenticationException,
    AuthorizationException,
    DuplicateEmailException,
)
from fleet_planner.core.rate_limit import RateLimits, limiter
from fleet_planner.core.security import (
    authenticate_user,
    create_access_token,
    create_refresh_token,
    decode_token,
    get_current_user,
    get_password_hash,
    get_user_by_email,
    get_user_by_id,
    subject_of,
)
from fleet_planner.models.user import User, UserRole
from fleet_planner.schemas.auth import (
    LoginRequest,
    LoginResponse,
    RefreshTokenRequest,
    RegisterRequest,
    RegisterResponse,
    Token,
    UserResponse,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["Authentication"])


# ============== Public Endpoints ==============

@router.post("/register", response_model=RegisterResponse, status_code=status.HTTP_201_CREATED)
@limiter.limit(RateLimits.AUTH_REGISTER)
async def register(
    request: Request,
    data: RegisterRequest,
    db: AsyncSession = Depends(get_db),
):
    """
    Register a new user account.

    Self-registered users start as viewers; an admin grants other roles.
    """
    async with unit_of_work(db):
        if await get_user_by_email(db, data.email):
            raise DuplicateEmailException(data.email)

        user = User(
            email=data.email,
            hashed_password=get_password_hash(data.password),
            full_name=data.full_name,
            role=UserRole.VIEWER,
            is_active=True,
        )
        db.add(user)

    logger.info(f"Registered user {user.id}")
    return RegisterResponse(user=UserResponse.model_validate(user))


@router.post("/login", response_model=LoginResponse)
@limiter.limit(RateLimits.AUTH_LOGIN)
async def login(
    request: Request,
    data: LoginRequest,
    db: AsyncSession = Depends(get_db),
):
    """
    Login with email and password.

    Returns access and refresh tokens.
    """
    async with unit_of_work(db):
        user = await authenticate_user(db, data.email, data.password)
        if not user:
            raise AuthenticationException("Incorrect email or password")

        if not user.is_active:
            raise AuthorizationException("User account is deactivated")

        access_token = create_access_token(user.id, user.role)
        refresh_token = create_refresh_token(user.id)
        user.refresh_token = refresh_token

    return LoginResponse(
        access_token=access_token,
        refresh_token=refresh_token,
        user=UserResponse.model_validate(user),
    )


@router.post("/refresh", response_model=Token)
@limiter.limit(RateLimits.AUTH_REFRESH)
async def refresh_token(
    request: Request,
    data: RefreshTokenRequest,
    db: AsyncSession = Depends(get_db),
):
    """
    Exchange a refresh token for a new token pair.

    The stored refresh token is rotated, so each one can be used once.
    """
    user_id = subject_of(decode_token(data.refresh_token), "refresh")
    if user_id is None:
        raise AuthenticationException("Invalid refresh token")

    async with unit_of_work(db):
        user = await get_user_by_id(db, user_id)
        if not user:
            raise AuthenticationException("Invalid refresh token")

        if not user.is_active:
            raise AuthorizationException("User account is deactivated")

        if user.refresh_token != data.refresh_token:
            raise AuthenticationException("Refresh token has been revoked")

        access_token = create_access_token(user.id, user.role)
        new_refresh_token = create_refresh_token(user.id)
        user.refresh_token = new_refresh_token

    return Token(access_token=access_token, refresh_token=new_refresh_token)


@router.post("/logout", status_code=status.HTTP_204_NO_CONTENT)
async def logout(
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """
    Logout current user (invalidate refresh token).
    """
    async with unit_of_work(db):
        current_user.refresh_token = None
    return None


@router.get("/me", response_model=UserResponse)
async def get_me(
    current_user: User = Depends(get_current_user),
):
    """
    Get current user profile.
    """
    return UserResponse.model_validate(current_user)
