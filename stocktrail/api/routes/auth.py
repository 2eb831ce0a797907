"""
Authentication API Routes for StockTrail.

Handles:
- Login (access token, or a first-login token for Inactive accounts)
- First-login password change
- Current user retrieval
"""

from datetime import timedelta
from typing import Optional

from fastapi import APIRouter, Depends
from loguru import logger

from stocktrail.api.dependencies import (
    Settings,
    get_client_ip,
    get_current_user,
    get_identity_service,
    get_settings,
    oauth2_scheme,
)
from stocktrail.api.schemas import (
    ErrorResponse,
    FirstLoginRequest,
    LoginRequest,
    LoginResponse,
    UserProfile,
)
from stocktrail.errors import AuthenticationError
from stocktrail.identity import AuthStatus, IdentityService
from stocktrail.security import SCOPE_FIRST_LOGIN, create_access_token, decode_access_token
from stocktrail.storage.models import User

router = APIRouter(tags=["auth"])


def to_profile(user: User) -> UserProfile:
    return UserProfile(
        id=user.id,
        full_name=user.full_name,
        email=user.email,
        role_id=user.role.role_id,
        role=user.role.value,
        status=user.status.value,
    )


def issue_access_token(user: User, settings: Settings) -> str:
    return create_access_token(
        data={"sub": str(user.id)},
        secret_key=settings.secret_key,
        expires_delta=timedelta(minutes=settings.access_token_expire_minutes),
    )


@router.post(
    "/login",
    response_model=LoginResponse,
    response_model_exclude_none=True,
    responses={401: {"model": ErrorResponse, "description": "Invalid credentials"}},
)
async def login(
    body: LoginRequest,
    identity: IdentityService = Depends(get_identity_service),
    settings: Settings = Depends(get_settings),
    client_ip: str = Depends(get_client_ip),
):
    """
    Verify credentials.

    Inactive accounts receive a short-lived first-login token instead of an
    access token and must set a permanent password first.
    """
    result = await identity.authenticate(body.email, body.password)

    if result.status == AuthStatus.REJECTED:
        logger.warning(f"Failed login for {body.email} from {client_ip}")
        raise AuthenticationError("Invalid credentials")

    user = result.user
    if result.status == AuthStatus.FIRST_LOGIN_REQUIRED:
        logger.info(f"First login pending for user {user.id}")
        token = create_access_token(
            data={"sub": str(user.id)},
            secret_key=settings.secret_key,
            expires_delta=timedelta(minutes=settings.first_login_token_expire_minutes),
            scope=SCOPE_FIRST_LOGIN,
        )
        return LoginResponse(
            message="First time login: Please update your password.",
            require_password_change=True,
            user_id=user.id,
            first_login_token=token,
        )

    logger.info(f"User {user.id} logged in from {client_ip}")
    return LoginResponse(
        user=to_profile(user),
        access_token=issue_access_token(user, settings),
    )


@router.post(
    "/auth/first-login",
    response_model=LoginResponse,
    response_model_exclude_none=True,
    responses={
        401: {"model": ErrorResponse},
        404: {"model": ErrorResponse},
        409: {"model": ErrorResponse, "description": "Account already activated"},
    },
)
async def first_login(
    body: FirstLoginRequest,
    token: Optional[str] = Depends(oauth2_scheme),
    identity: IdentityService = Depends(get_identity_service),
    settings: Settings = Depends(get_settings),
):
    """Set the permanent password of an Inactive account and sign it in."""
    user_id = (
        decode_access_token(token, settings.secret_key, scope=SCOPE_FIRST_LOGIN)
        if token
        else None
    )
    if user_id is None:
        raise AuthenticationError("First-login token missing or expired")

    user = await identity.complete_first_login(user_id, body.new_password)
    return LoginResponse(
        message="Password updated!",
        user=to_profile(user),
        access_token=issue_access_token(user, settings),
    )


@router.get("/auth/me", response_model=UserProfile)
async def read_users_me(current_user: User = Depends(get_current_user)):
    """Get current user profile."""
    return to_profile(current_user)
