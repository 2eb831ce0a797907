"""
User management and system settings routes.

Account creation and removal, and committee/unit/type definitions, are
restricted to Superadmins; listing accounts is open to Admins too.
"""

from fastapi import APIRouter, Depends, Path
from loguru import logger

from stocktrail.api.dependencies import (
    get_current_user,
    get_identity_service,
    get_reference_service,
)
from stocktrail.api.schemas import (
    ActionResponse,
    DefinitionCreate,
    DefinitionResponse,
    ErrorResponse,
    UserCreate,
    UserResponse,
)
from stocktrail.identity import IdentityService
from stocktrail.inventory import REFERENCE_KINDS, ReferenceService
from stocktrail.storage.models import User

users_router = APIRouter(prefix="/users", tags=["users"])
settings_router = APIRouter(prefix="/settings", tags=["settings"])

KIND_PATTERN = "^(committees|units|types)$"


# =============================================================================
# Users
# =============================================================================

@users_router.get("", response_model=list[UserResponse], responses={403: {"model": ErrorResponse}})
async def list_users(
    current_user: User = Depends(get_current_user),
    identity: IdentityService = Depends(get_identity_service),
):
    return [
        UserResponse(
            id=u.id,
            name=u.full_name,
            email=u.email,
            role_id=u.role_id,
            role=u.role.value,
            status=u.status.value,
            last_login=u.last_login_at,
        )
        for u in await identity.list_users(current_user)
    ]


@users_router.post(
    "",
    response_model=ActionResponse,
    responses={
        400: {"model": ErrorResponse},
        403: {"model": ErrorResponse},
        409: {"model": ErrorResponse, "description": "Email already registered"},
    },
)
async def add_user(
    body: UserCreate,
    current_user: User = Depends(get_current_user),
    identity: IdentityService = Depends(get_identity_service),
):
    """Create an Inactive account; the user sets a password on first login."""
    await identity.create_user(
        current_user,
        name=body.name,
        email=body.email,
        role=body.role,
        temp_password=body.password,
    )
    return ActionResponse(message="User added successfully")


@users_router.delete(
    "/{user_id}",
    response_model=ActionResponse,
    responses={403: {"model": ErrorResponse}, 404: {"model": ErrorResponse}},
)
async def remove_user(
    user_id: int,
    current_user: User = Depends(get_current_user),
    identity: IdentityService = Depends(get_identity_service),
):
    """Soft delete: the account is marked Removed and can no longer sign in."""
    changed = await identity.soft_delete_user(current_user, user_id)
    if not changed:
        return ActionResponse(message="User already removed.")
    return ActionResponse(message="User removed (soft delete).")


# =============================================================================
# Settings (committees, units, types)
# =============================================================================

@settings_router.post(
    "/{kind}",
    response_model=DefinitionResponse,
    responses={400: {"model": ErrorResponse}, 403: {"model": ErrorResponse}},
)
async def add_definition(
    body: DefinitionCreate,
    kind: str = Path(..., pattern=KIND_PATTERN),
    current_user: User = Depends(get_current_user),
    references: ReferenceService = Depends(get_reference_service),
):
    option = await references.create(current_user, kind, body.name, body.classification)
    logger.info(f"Definition {kind}/{option.value} added")
    return DefinitionResponse(message=f"{REFERENCE_KINDS[kind][1]} Added", id=option.value)


@settings_router.delete(
    "/{kind}/{row_id}",
    response_model=ActionResponse,
    responses={
        400: {"model": ErrorResponse, "description": "Still referenced"},
        403: {"model": ErrorResponse},
        404: {"model": ErrorResponse},
    },
)
async def delete_definition(
    row_id: int,
    kind: str = Path(..., pattern=KIND_PATTERN),
    current_user: User = Depends(get_current_user),
    references: ReferenceService = Depends(get_reference_service),
):
    await references.delete(current_user, kind, row_id)
    return ActionResponse(message=f"{REFERENCE_KINDS[kind][1]} Deleted")
