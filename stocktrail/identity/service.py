"""
Identity & Access Service

Authenticates credentials, tracks account activation and enforces the
Superadmin-only account management operations.
"""

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Optional

from loguru import logger
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from stocktrail.activity import ActivityRecorder
from stocktrail.errors import (
    ConflictError,
    ForbiddenError,
    NotFoundError,
    StateConflictError,
    ValidationError,
)
from stocktrail.security import get_password_hash, verify_password
from stocktrail.storage.models import ActionType, Role, User, UserStatus
from stocktrail.storage.unit_of_work import atomic


class AuthStatus(str, Enum):
    """Outcome of a credential check."""
    ACTIVATED_LOGIN = "ACTIVATED_LOGIN"
    FIRST_LOGIN_REQUIRED = "FIRST_LOGIN_REQUIRED"
    REJECTED = "REJECTED"


@dataclass
class AuthResult:
    status: AuthStatus
    user: Optional[User] = None


@dataclass
class UserView:
    """Account as listed in settings."""

    id: int
    full_name: str
    email: str
    role: Role
    status: UserStatus
    last_login_at: Optional[datetime] = None

    @classmethod
    def from_model(cls, user: User) -> "UserView":
        return cls(
            id=user.id,
            full_name=user.full_name,
            email=user.email,
            role=user.role,
            status=user.status,
            last_login_at=user.last_login_at,
        )

    @property
    def role_id(self) -> int:
        return self.role.role_id


class IdentityService:
    """
    Account life cycle: Inactive (temporary password) -> Active -> Removed.

    Usage:
        service = IdentityService(session)
        result = await service.authenticate("ana@committee.org", "secret")
        if result.status == AuthStatus.FIRST_LOGIN_REQUIRED:
            await service.complete_first_login(result.user.id, "new-secret")
    """

    def __init__(self, session: AsyncSession):
        self.session = session
        self.recorder = ActivityRecorder(session)

    async def get_user(self, user_id: int) -> User:
        user = await self.session.get(User, user_id)
        if user is None:
            raise NotFoundError("User", user_id)
        return user

    async def authenticate(self, email: str, password: str) -> AuthResult:
        """
        Verify credentials.

        Inactive accounts pass with FIRST_LOGIN_REQUIRED and are not stamped;
        the caller must follow up with complete_first_login. Unknown email,
        wrong password and removed accounts are indistinguishable.
        """
        stmt = select(User).where(User.email == email)
        user = (await self.session.execute(stmt)).scalar_one_or_none()

        if user is None or not verify_password(password, user.password_hash):
            return AuthResult(status=AuthStatus.REJECTED)

        if user.status == UserStatus.REMOVED:
            return AuthResult(status=AuthStatus.REJECTED)

        if user.status == UserStatus.INACTIVE:
            return AuthResult(status=AuthStatus.FIRST_LOGIN_REQUIRED, user=user)

        async with atomic(self.session, "authenticate"):
            user.last_login_at = datetime.utcnow()

        return AuthResult(status=AuthStatus.ACTIVATED_LOGIN, user=user)

    async def complete_first_login(self, user_id: int, new_password: str) -> User:
        """Set the permanent password and activate the account."""
        if not new_password:
            raise ValidationError("Missing data", detail="newPassword is required")

        async with atomic(self.session, "complete_first_login"):
            user = await self.get_user(user_id)
            if user.status != UserStatus.INACTIVE:
                raise StateConflictError("Account is already activated.")

            user.password_hash = get_password_hash(new_password)
            user.status = UserStatus.ACTIVE
            user.last_login_at = datetime.utcnow()

            await self.recorder.notify(
                f"User Activated: {user.full_name} has set their password and joined."
            )

        logger.info(f"User {user.id} activated")
        return user

    async def create_user(
        self,
        creator: User,
        name: str,
        email: str,
        role,
        temp_password: str,
    ) -> User:
        """Create an Inactive account with a temporary password. Superadmin only."""
        if creator.role != Role.SUPERADMIN:
            raise ForbiddenError("Access Denied. Only Superadmins can add users.")
        if not name or not email or not temp_password:
            raise ValidationError("Missing required fields")

        try:
            target_role = Role.parse(role)
        except ValueError:
            target_role = Role.USER

        async with atomic(self.session, "create_user"):
            existing = (
                await self.session.execute(select(User.id).where(User.email == email))
            ).scalar_one_or_none()
            if existing is not None:
                raise StateConflictError(f"Email {email} is already registered.")

            user = User(
                full_name=name.strip(),
                email=email,
                password_hash=get_password_hash(temp_password),
                role=target_role,
                status=UserStatus.INACTIVE,
                last_login_at=None,
            )
            self.session.add(user)
            await self.session.flush()

            await self.recorder.log(
                ActionType.ADD,
                f"Added user: {user.full_name} ({target_role.value})",
                creator.id,
            )
            await self.recorder.notify(
                f'System Alert: New user "{user.full_name}" ({target_role.value}) has been added.'
            )

        logger.info(f"User {user.id} created by {creator.id} with role {target_role.value}")
        return user

    async def soft_delete_user(self, requestor: User, user_id: int) -> bool:
        """
        Mark an account Removed. Superadmin only.

        Returns:
            True if the status changed, False if it was already Removed
        """
        if requestor.role != Role.SUPERADMIN:
            raise ForbiddenError("Access Denied. Only Superadmins can remove users.")

        async with atomic(self.session, "soft_delete_user"):
            target = await self.get_user(user_id)
            if target.status == UserStatus.REMOVED:
                return False

            target.status = UserStatus.REMOVED
            await self.recorder.log(
                ActionType.REMOVE,
                f"Removed user: {target.full_name}",
                requestor.id,
            )
            await self.recorder.notify(
                f'System Alert: User "{target.full_name}" was marked as Removed.'
            )

        logger.info(f"User {user_id} removed by {requestor.id}")
        return True

    async def list_users(self, actor: User) -> list[UserView]:
        """All accounts, including removed ones. Admin/Superadmin only."""
        if not actor.role.is_staff:
            raise ForbiddenError()
        rows = (await self.session.execute(select(User).order_by(User.id))).scalars().all()
        return [UserView.from_model(u) for u in rows]

    async def resolve_viewer(self, caller: User, user_id: int) -> User:
        """
        Resolve the user whose perspective a listing is rendered from.

        Users may only view as themselves; staff may view as anyone.
        """
        target = await self.get_user(user_id)
        if target.id != caller.id and not caller.role.is_staff:
            raise ForbiddenError()
        return target

    async def bootstrap_superadmin(self, name: str, email: str, password: str) -> Optional[User]:
        """Create an Active Superadmin if none exists yet."""
        existing = (
            await self.session.execute(
                select(User.id).where(User.role == Role.SUPERADMIN).limit(1)
            )
        ).scalar_one_or_none()
        if existing is not None:
            return None

        async with atomic(self.session, "bootstrap_superadmin"):
            taken = (
                await self.session.execute(select(User.id).where(User.email == email))
            ).scalar_one_or_none()
            if taken is not None:
                raise ConflictError(f"Email {email} is already registered.")

            user = User(
                full_name=name,
                email=email,
                password_hash=get_password_hash(password),
                role=Role.SUPERADMIN,
                status=UserStatus.ACTIVE,
            )
            self.session.add(user)

        logger.info(f"Bootstrapped Superadmin {email}")
        return user
