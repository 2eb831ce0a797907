"""
Activity & Notification Recorder

Appends audit trail entries and notifications for every mutating
operation, and serves the role-filtered read side of both.

Log entries are written in the caller's transaction: if the entry cannot be
written the business change rolls back with it. Notifications are advisory
and are written inside a SAVEPOINT so a failed insert never aborts the
surrounding operation.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from loguru import logger
from sqlalchemy import select, update, delete
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from stocktrail.errors import NotFoundError
from stocktrail.storage.models import (
    ActionType,
    ActivityLogEntry,
    Notification,
    Role,
    User,
)
from stocktrail.storage.unit_of_work import atomic


@dataclass
class LogView:
    """Activity log entry as shown to a viewer."""

    id: int
    action_type: ActionType
    details: str
    action_date: datetime
    actor_user_id: Optional[int] = None
    actor_name: Optional[str] = None


@dataclass
class NotificationView:
    """Notification as shown to a viewer."""

    id: int
    message: str
    is_read: bool
    created_at: datetime
    item_id: Optional[int] = None


class ActivityRecorder:
    """Audit trail and notification writer/reader bound to one session."""

    def __init__(self, session: AsyncSession):
        self.session = session

    # -------------------------------------------------------------------------
    # Write side
    # -------------------------------------------------------------------------

    async def log(
        self,
        action_type: ActionType,
        details: str,
        actor_user_id: Optional[int],
    ) -> ActivityLogEntry:
        """Append an audit entry in the current transaction."""
        entry = ActivityLogEntry(
            action_type=action_type,
            details=details,
            action_date=datetime.utcnow(),
            actor_user_id=actor_user_id,
        )
        self.session.add(entry)
        await self.session.flush()
        return entry

    async def notify(
        self,
        message: str,
        item_id: Optional[int] = None,
        target_user_id: Optional[int] = None,
    ) -> Optional[Notification]:
        """
        Insert a notification; failures are logged and swallowed.

        Args:
            message: Text shown to the recipient
            item_id: Related item, if any
            target_user_id: Recipient, or None to broadcast to Admin/Superadmin

        Returns:
            The notification, or None if it could not be written
        """
        try:
            async with self.session.begin_nested():
                notification = Notification(
                    item_id=item_id,
                    message=message,
                    is_read=False,
                    created_at=datetime.utcnow(),
                    target_user_id=target_user_id,
                )
                self.session.add(notification)
            return notification
        except SQLAlchemyError as e:
            logger.error(f"Notification not recorded ({message!r}): {type(e).__name__}: {e}")
            return None

    async def discard_item_notifications(self, item_id: int) -> None:
        """Delete notifications tied to an item; best effort."""
        try:
            async with self.session.begin_nested():
                await self.session.execute(
                    delete(Notification).where(Notification.item_id == item_id)
                )
        except SQLAlchemyError as e:
            logger.error(f"Could not delete notifications for item {item_id}: {e}")

    # -------------------------------------------------------------------------
    # Read side
    # -------------------------------------------------------------------------

    @staticmethod
    def _log_visibility(viewer: User):
        # Users see their own entries, staff see everything
        if viewer.role == Role.USER:
            return ActivityLogEntry.actor_user_id == viewer.id
        return None

    @staticmethod
    def _notification_visibility(viewer: User):
        if viewer.role == Role.USER:
            return Notification.target_user_id == viewer.id
        return Notification.target_user_id.is_(None)

    async def history(self, viewer: User, limit: Optional[int] = None) -> list[LogView]:
        """Role-filtered activity log, newest first."""
        stmt = (
            select(ActivityLogEntry, User.full_name)
            .outerjoin(User, ActivityLogEntry.actor_user_id == User.id)
            .order_by(ActivityLogEntry.action_date.desc(), ActivityLogEntry.id.desc())
        )
        condition = self._log_visibility(viewer)
        if condition is not None:
            stmt = stmt.where(condition)
        if limit:
            stmt = stmt.limit(limit)

        rows = (await self.session.execute(stmt)).all()
        return [
            LogView(
                id=entry.id,
                action_type=entry.action_type,
                details=entry.details,
                action_date=entry.action_date,
                actor_user_id=entry.actor_user_id,
                actor_name=actor_name,
            )
            for entry, actor_name in rows
        ]

    async def recent_activity(self, viewer: User, limit: int = 5) -> list[LogView]:
        """Dashboard feed."""
        return await self.history(viewer, limit=limit)

    async def notifications(self, viewer: User, limit: Optional[int] = 10) -> list[NotificationView]:
        """Role-filtered notifications, newest first."""
        stmt = (
            select(Notification)
            .where(self._notification_visibility(viewer))
            .order_by(Notification.created_at.desc(), Notification.id.desc())
        )
        if limit:
            stmt = stmt.limit(limit)

        rows = (await self.session.execute(stmt)).scalars().all()
        return [
            NotificationView(
                id=n.id,
                message=n.message,
                is_read=bool(n.is_read),
                created_at=n.created_at,
                item_id=n.item_id,
            )
            for n in rows
        ]

    async def all_notifications(self, viewer: User) -> list[NotificationView]:
        return await self.notifications(viewer, limit=None)

    async def mark_all_read(self, viewer: User) -> int:
        """Flip every unread notification visible to the viewer. Returns rows affected."""
        async with atomic(self.session, "mark_all_read"):
            result = await self.session.execute(
                update(Notification)
                .where(self._notification_visibility(viewer), Notification.is_read.is_(False))
                .values(is_read=True)
            )
        logger.info(f"Marked {result.rowcount} notifications read for user {viewer.id}")
        return result.rowcount

    async def mark_read(self, viewer: User, notification_id: int) -> None:
        """Mark one notification read; it must be visible to the viewer."""
        async with atomic(self.session, "mark_read"):
            stmt = select(Notification).where(
                Notification.id == notification_id,
                self._notification_visibility(viewer),
            )
            notification = (await self.session.execute(stmt)).scalar_one_or_none()
            if notification is None:
                raise NotFoundError("Notification", notification_id)
            notification.is_read = True
