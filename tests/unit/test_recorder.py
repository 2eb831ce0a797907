"""
Unit tests for the activity and notification recorder.
"""

import pytest
from sqlalchemy import func, select

from stocktrail.activity import ActivityRecorder
from stocktrail.errors import NotFoundError
from stocktrail.storage.models import ActionType, ActivityLogEntry, Committee
from stocktrail.storage.unit_of_work import atomic

pytestmark = pytest.mark.asyncio


class TestWriteSide:

    async def test_failed_notification_does_not_abort_operation(self, db_session, users):
        recorder = ActivityRecorder(db_session)

        async with atomic(db_session, "test"):
            db_session.add(Committee(name="Events"))
            await recorder.log(ActionType.ADD, "Added committee: Events", users["admin"].id)
            # No item 9999: the foreign key check fails inside the savepoint
            result = await recorder.notify("orphan", item_id=9999)

        assert result is None
        committees = (await db_session.execute(select(Committee.name))).scalars().all()
        assert "Events" in committees
        assert [n.message for n in await recorder.all_notifications(users["admin"])].count("orphan") == 0

    async def test_log_rolls_back_with_the_operation(self, db_session, users):
        recorder = ActivityRecorder(db_session)
        before = (await db_session.execute(select(func.count(ActivityLogEntry.id)))).scalar_one()

        with pytest.raises(RuntimeError):
            async with atomic(db_session, "test"):
                await recorder.log(ActionType.ADD, "never committed", users["admin"].id)
                raise RuntimeError("boom")

        after = (await db_session.execute(select(func.count(ActivityLogEntry.id)))).scalar_one()
        assert after == before


class TestVisibility:

    async def test_users_see_only_their_own_history(self, db_session, users):
        recorder = ActivityRecorder(db_session)
        async with atomic(db_session, "test"):
            await recorder.log(ActionType.REQUEST, "member entry", users["user"].id)
            await recorder.log(ActionType.BORROW, "admin entry", users["admin"].id)

        member_view = await recorder.history(users["user"])
        admin_view = await recorder.history(users["admin"])

        assert [e.details for e in member_view] == ["member entry"]
        assert member_view[0].actor_name == "Mia Member"
        assert {"member entry", "admin entry"} <= {e.details for e in admin_view}
        assert admin_view[0].details == "admin entry"

    async def test_recent_activity_is_limited(self, db_session, users):
        recorder = ActivityRecorder(db_session)
        async with atomic(db_session, "test"):
            for n in range(8):
                await recorder.log(ActionType.MODIFY, f"entry {n}", users["admin"].id)

        recent = await recorder.recent_activity(users["superadmin"])

        assert [e.details for e in recent] == ["entry 7", "entry 6", "entry 5", "entry 4", "entry 3"]

    async def test_targeted_and_broadcast_notifications(self, db_session, users):
        recorder = ActivityRecorder(db_session)
        async with atomic(db_session, "test"):
            await recorder.notify("for the member", target_user_id=users["user"].id)
            await recorder.notify("for staff")

        member_inbox = [n.message for n in await recorder.all_notifications(users["user"])]
        staff_inbox = [n.message for n in await recorder.all_notifications(users["admin"])]

        assert member_inbox == ["for the member"]
        assert "for staff" in staff_inbox
        assert "for the member" not in staff_inbox

    async def test_notification_feed_is_capped_at_ten(self, db_session, users):
        recorder = ActivityRecorder(db_session)
        async with atomic(db_session, "test"):
            for n in range(12):
                await recorder.notify(f"note {n}", target_user_id=users["user"].id)

        assert len(await recorder.notifications(users["user"])) == 10
        assert len(await recorder.all_notifications(users["user"])) == 12


class TestMarkRead:

    async def test_mark_all_read_counts_visible_unread(self, db_session, users):
        recorder = ActivityRecorder(db_session)
        async with atomic(db_session, "test"):
            await recorder.notify("one", target_user_id=users["user"].id)
            await recorder.notify("two", target_user_id=users["user"].id)
            await recorder.notify("staff only")

        assert await recorder.mark_all_read(users["user"]) == 2
        assert await recorder.mark_all_read(users["user"]) == 0
        assert all(n.is_read for n in await recorder.all_notifications(users["user"]))
        staff = await recorder.all_notifications(users["admin"])
        assert not next(n for n in staff if n.message == "staff only").is_read

    async def test_mark_read_requires_visibility(self, db_session, users):
        recorder = ActivityRecorder(db_session)
        async with atomic(db_session, "test"):
            staff_note = await recorder.notify("staff only")
            member_note = await recorder.notify("mine", target_user_id=users["user"].id)

        with pytest.raises(NotFoundError):
            await recorder.mark_read(users["user"], staff_note.id)

        await recorder.mark_read(users["user"], member_note.id)
        inbox = await recorder.notifications(users["user"])
        assert inbox[0].is_read is True
