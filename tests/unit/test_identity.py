"""
Unit tests for identity and access.
"""

import pytest
from sqlalchemy import func, select

from stocktrail.errors import ForbiddenError, NotFoundError, StateConflictError, ValidationError
from stocktrail.identity import AuthStatus, IdentityService
from stocktrail.security import (
    SCOPE_ACCESS,
    SCOPE_FIRST_LOGIN,
    create_access_token,
    decode_access_token,
    get_password_hash,
    verify_password,
)
from stocktrail.storage.models import ActionType, ActivityLogEntry, Role, UserStatus

from tests.conftest import ADMIN_EMAIL, MEMBER_EMAIL, PASSWORD

pytestmark = pytest.mark.asyncio


class TestSecurity:

    def test_password_hash_round_trip(self):
        hashed = get_password_hash("s3cret")

        assert hashed != "s3cret"
        assert verify_password("s3cret", hashed)
        assert not verify_password("wrong", hashed)
        assert not verify_password("s3cret", "not-a-bcrypt-hash")

    def test_overlong_password_is_a_validation_error(self):
        with pytest.raises(ValidationError):
            get_password_hash("p" * 80)
        # 72 bytes of multi-byte characters is still over the limit
        with pytest.raises(ValidationError):
            get_password_hash("\u00e9" * 37)

        assert verify_password("p" * 72, get_password_hash("p" * 72))
        assert not verify_password("p" * 80, get_password_hash("p" * 72))

    def test_token_scope_is_enforced(self):
        token = create_access_token({"sub": "7"}, "k", scope=SCOPE_FIRST_LOGIN)

        assert decode_access_token(token, "k", scope=SCOPE_FIRST_LOGIN) == 7
        assert decode_access_token(token, "k", scope=SCOPE_ACCESS) is None
        assert decode_access_token(token, "other-key", scope=SCOPE_FIRST_LOGIN) is None

    @pytest.mark.parametrize("value, expected", [
        ("admin", Role.ADMIN),
        ("Superadmin", Role.SUPERADMIN),
        (3, Role.USER),
        ("2", Role.ADMIN),
    ])
    def test_role_parse(self, value, expected):
        assert Role.parse(value) == expected

    @pytest.mark.parametrize("value", ["janitor", 9])
    def test_role_parse_rejects_unknown(self, value):
        with pytest.raises(ValueError):
            Role.parse(value)


class TestAuthenticate:

    async def test_active_login_stamps_last_login(self, db_session, users):
        result = await IdentityService(db_session).authenticate(ADMIN_EMAIL, PASSWORD)

        assert result.status == AuthStatus.ACTIVATED_LOGIN
        assert result.user.last_login_at is not None

    async def test_wrong_password_and_unknown_email_look_the_same(self, db_session, users):
        identity = IdentityService(db_session)

        bad_password = await identity.authenticate(ADMIN_EMAIL, "nope")
        unknown = await identity.authenticate("ghost@committee.org", PASSWORD)

        assert bad_password.status == unknown.status == AuthStatus.REJECTED
        assert bad_password.user is None and unknown.user is None

    async def test_inactive_account_requires_first_login(self, db_session, users):
        identity = IdentityService(db_session)
        created = await identity.create_user(users["superadmin"], "New Hire", "new@committee.org", "User", "temp")

        result = await identity.authenticate("new@committee.org", "temp")

        assert result.status == AuthStatus.FIRST_LOGIN_REQUIRED
        assert result.user.id == created.id
        assert result.user.last_login_at is None

    async def test_removed_account_is_rejected(self, db_session, users):
        identity = IdentityService(db_session)
        await identity.soft_delete_user(users["superadmin"], users["user"].id)

        result = await identity.authenticate(MEMBER_EMAIL, PASSWORD)

        assert result.status == AuthStatus.REJECTED


class TestFirstLogin:

    async def test_activation_happens_once(self, db_session, users):
        identity = IdentityService(db_session)
        created = await identity.create_user(users["superadmin"], "Lee", "lee@committee.org", "Admin", "temp")

        activated = await identity.complete_first_login(created.id, "permanent")

        assert activated.status == UserStatus.ACTIVE
        assert activated.last_login_at is not None
        assert verify_password("permanent", activated.password_hash)

        with pytest.raises(StateConflictError):
            await identity.complete_first_login(created.id, "again")

    async def test_requires_new_password(self, db_session, users):
        with pytest.raises(ValidationError):
            await IdentityService(db_session).complete_first_login(users["user"].id, "")

    async def test_unknown_user(self, db_session, users):
        with pytest.raises(NotFoundError):
            await IdentityService(db_session).complete_first_login(404, "pw")


class TestUserManagement:

    async def test_only_superadmin_creates_users(self, db_session, users):
        with pytest.raises(ForbiddenError):
            await IdentityService(db_session).create_user(
                users["admin"], "Sneaky", "sneaky@committee.org", "Superadmin", "temp"
            )

    async def test_overlong_temporary_password(self, db_session, users):
        identity = IdentityService(db_session)

        with pytest.raises(ValidationError):
            await identity.create_user(users["superadmin"], "Long", "long@committee.org", "User", "p" * 80)

        assert "long@committee.org" not in {u.email for u in await identity.list_users(users["admin"])}

    async def test_unknown_role_falls_back_to_user(self, db_session, users):
        created = await IdentityService(db_session).create_user(
            users["superadmin"], "Vic", "vic@committee.org", "wizard", "temp"
        )

        assert created.role == Role.USER
        assert created.status == UserStatus.INACTIVE

    async def test_duplicate_email_conflicts(self, db_session, users):
        with pytest.raises(StateConflictError):
            await IdentityService(db_session).create_user(
                users["superadmin"], "Twin", ADMIN_EMAIL, "User", "temp"
            )

    async def test_soft_delete_is_idempotent(self, db_session, users):
        identity = IdentityService(db_session)
        target = users["user"].id

        assert await identity.soft_delete_user(users["superadmin"], target) is True
        assert await identity.soft_delete_user(users["superadmin"], target) is False

        removed_logs = (
            await db_session.execute(
                select(func.count(ActivityLogEntry.id)).where(
                    ActivityLogEntry.action_type == ActionType.REMOVE
                )
            )
        ).scalar_one()
        assert removed_logs == 1
        assert (await identity.get_user(target)).status == UserStatus.REMOVED

    async def test_admin_cannot_remove_users(self, db_session, users):
        identity = IdentityService(db_session)

        with pytest.raises(ForbiddenError):
            await identity.soft_delete_user(users["admin"], users["user"].id)

        assert (await identity.get_user(users["user"].id)).status == UserStatus.ACTIVE

    async def test_list_users_is_staff_only(self, db_session, users):
        identity = IdentityService(db_session)

        listed = await identity.list_users(users["admin"])

        assert {u.email for u in listed} >= {ADMIN_EMAIL, MEMBER_EMAIL}
        assert {u.role_id for u in listed} == {1, 2, 3}
        with pytest.raises(ForbiddenError):
            await identity.list_users(users["user"])


class TestResolveViewer:

    async def test_user_may_only_view_self(self, db_session, users):
        identity = IdentityService(db_session)

        assert (await identity.resolve_viewer(users["user"], users["user"].id)).id == users["user"].id
        with pytest.raises(ForbiddenError):
            await identity.resolve_viewer(users["user"], users["admin"].id)

    async def test_staff_may_view_as_anyone(self, db_session, users):
        viewer = await IdentityService(db_session).resolve_viewer(users["admin"], users["user"].id)

        assert viewer.role == Role.USER

    async def test_unknown_viewer(self, db_session, users):
        with pytest.raises(NotFoundError):
            await IdentityService(db_session).resolve_viewer(users["admin"], 999)

    async def test_bootstrap_is_skipped_when_superadmin_exists(self, db_session, users):
        created = await IdentityService(db_session).bootstrap_superadmin(
            "Second Root", "root2@committee.org", "pw"
        )

        assert created is None
