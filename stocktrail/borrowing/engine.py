"""
Borrowing Engine

Life cycle of a borrow transaction:

    create --(User)--> Pending --approve--> Approved (Borrowed/Overdue) --return--> Returned
           \\                   \\--reject---> Rejected
            \\--(Admin)--> Approved

A record's quantity stays reserved until it is returned or rejected. Every
transition is committed together with its activity log entry and its
notification.
"""

from dataclasses import dataclass
from datetime import date
from typing import Callable, Optional

from loguru import logger
from sqlalchemy import case, select
from sqlalchemy.ext.asyncio import AsyncSession

from stocktrail.activity import ActivityRecorder
from stocktrail.borrowing.status import BorrowStatus, derive_status
from stocktrail.errors import (
    ForbiddenError,
    InsufficientStockError,
    NotFoundError,
    StateConflictError,
    ValidationError,
)
from stocktrail.inventory.ledger import InventoryLedger, available_quantity, ensure_references
from stocktrail.storage.models import (
    ActionType,
    ApprovalStatus,
    BorrowingRecord,
    Committee,
    Item,
    Role,
    User,
)
from stocktrail.storage.unit_of_work import atomic

DELETED_ITEM_LABEL = "(deleted item)"


@dataclass
class BorrowingView:
    """Borrowing record with joined names and derived status."""

    id: int
    item_id: Optional[int]
    code: Optional[str]
    name: Optional[str]
    borrower: str
    committee_id: Optional[int]
    committee: Optional[str]
    quantity: int
    date_borrowed: date
    expected_return_date: date
    date_returned: Optional[date]
    approval_status: ApprovalStatus
    status: BorrowStatus
    requested_by_user_id: int


@dataclass
class BorrowOutcome:
    """Result of creating a borrowing record."""

    record_id: int
    approval_status: ApprovalStatus
    message: str


class BorrowingEngine:
    """
    Borrow state machine bound to one request session.

    Usage:
        engine = BorrowingEngine(session)
        outcome = await engine.create(member, item_id=1, borrower_name="Ana",
                                      committee_id=None, quantity=2,
                                      date_borrowed=date.today(),
                                      expected_return_date=date.today())
        await engine.approve(admin, outcome.record_id)
    """

    def __init__(self, session: AsyncSession, clock: Callable[[], date] = date.today):
        self.session = session
        self.clock = clock
        self.recorder = ActivityRecorder(session)

    # -------------------------------------------------------------------------
    # Reads
    # -------------------------------------------------------------------------

    async def list_records(self) -> list[BorrowingView]:
        """All records, Pending first, then most recently borrowed."""
        pending_first = case((BorrowingRecord.approval_status == ApprovalStatus.PENDING, 0), else_=1)
        stmt = (
            select(BorrowingRecord, Item.code, Item.name, Committee.name)
            .outerjoin(Item, BorrowingRecord.item_id == Item.id)
            .outerjoin(Committee, BorrowingRecord.committee_id == Committee.id)
            .order_by(
                pending_first,
                BorrowingRecord.date_borrowed.desc(),
                BorrowingRecord.id.desc(),
            )
        )
        rows = (await self.session.execute(stmt)).all()
        today = self.clock()
        return [
            BorrowingView(
                id=record.id,
                item_id=record.item_id,
                code=code,
                name=name,
                borrower=record.borrower_name,
                committee_id=record.committee_id,
                committee=committee,
                quantity=record.quantity,
                date_borrowed=record.date_borrowed,
                expected_return_date=record.expected_return_date,
                date_returned=record.date_returned,
                approval_status=record.approval_status,
                status=derive_status(
                    record.approval_status,
                    record.date_returned,
                    record.expected_return_date,
                    today,
                ),
                requested_by_user_id=record.requested_by_user_id,
            )
            for record, code, name, committee in rows
        ]

    async def get_status(self, record_id: int) -> BorrowStatus:
        record = await self.session.get(BorrowingRecord, record_id)
        if record is None:
            raise NotFoundError("Transaction", record_id)
        return derive_status(
            record.approval_status,
            record.date_returned,
            record.expected_return_date,
            self.clock(),
        )

    # -------------------------------------------------------------------------
    # Transitions
    # -------------------------------------------------------------------------

    async def create(
        self,
        actor: User,
        item_id: Optional[int],
        borrower_name: Optional[str],
        committee_id: Optional[int],
        quantity,
        date_borrowed: Optional[date],
        expected_return_date: Optional[date],
    ) -> BorrowOutcome:
        """
        Reserve a quantity of an item.

        Users create Pending requests; Admins and Superadmins borrow directly.
        The availability check runs in the same transaction as the insert,
        with the item row locked.
        """
        if not item_id or not borrower_name or not str(borrower_name).strip() or not quantity:
            raise ValidationError("Missing fields")
        try:
            quantity = int(quantity)
        except (TypeError, ValueError):
            raise ValidationError("Invalid quantity", detail="quantity must be an integer")
        if quantity < 1:
            raise ValidationError("Invalid quantity", detail="quantity must be at least 1")

        date_borrowed = date_borrowed or self.clock()
        if expected_return_date is None:
            raise ValidationError("Missing fields", detail="expectedReturn is required")
        if expected_return_date < date_borrowed:
            raise ValidationError("Expected return date cannot be before the borrow date.")

        if actor.role == Role.USER:
            approval, action = ApprovalStatus.PENDING, ActionType.REQUEST
        else:
            approval, action = ApprovalStatus.APPROVED, ActionType.BORROW
        borrower = str(borrower_name).strip()

        async with atomic(self.session, "create_borrowing"):
            item = await self.session.get(Item, item_id, with_for_update=True)
            if item is None:
                raise NotFoundError("Item", item_id)

            await ensure_references(self.session, committee_id=committee_id)
            unavailable = await InventoryLedger(self.session).reserved_quantity(item.id)
            available = available_quantity(item.total_quantity, unavailable)
            if quantity > available:
                raise InsufficientStockError(available)

            record = BorrowingRecord(
                item_id=item.id,
                borrower_name=borrower,
                committee_id=committee_id,
                quantity=quantity,
                date_borrowed=date_borrowed,
                expected_return_date=expected_return_date,
                approval_status=approval,
                requested_by_user_id=actor.id,
            )
            self.session.add(record)
            await self.session.flush()

            if approval == ApprovalStatus.PENDING:
                details = f"{borrower} requested {quantity}x {item.name}"
                notice = f"Request: {borrower} needs {quantity}x {item.name}. Review needed."
                message = "Request submitted!"
            else:
                details = f"{borrower} borrowed {quantity}x {item.name}"
                notice = f"Borrowing: {borrower} took {quantity}x {item.name}."
                message = "Item borrowed."

            await self.recorder.log(action, details, actor.id)
            await self.recorder.notify(notice, item_id=item.id)

        logger.info(f"Borrowing {record.id} created by user {actor.id} ({approval.value})")
        return BorrowOutcome(record_id=record.id, approval_status=approval, message=message)

    async def _load_for_transition(self, record_id: int):
        record = await self.session.get(BorrowingRecord, record_id, with_for_update=True)
        if record is None:
            raise NotFoundError("Transaction", record_id)
        item = await self.session.get(Item, record.item_id) if record.item_id else None
        item_name = item.name if item is not None else DELETED_ITEM_LABEL
        return record, item_name

    async def _decide(self, actor: User, record_id: int, decision: ApprovalStatus) -> None:
        if not actor.role.is_staff:
            raise ForbiddenError()

        approving = decision == ApprovalStatus.APPROVED
        verb = "approve" if approving else "reject"

        async with atomic(self.session, f"{verb}_borrowing"):
            record, item_name = await self._load_for_transition(record_id)
            if record.approval_status != ApprovalStatus.PENDING:
                raise StateConflictError(
                    f"Only pending requests can be {verb}d; this one is "
                    f"{record.approval_status.value}."
                )

            record.approval_status = decision
            await self.session.flush()

            if approving:
                await self.recorder.log(
                    ActionType.APPROVE,
                    f"Approved request for {record.quantity}x {item_name}",
                    actor.id,
                )
                await self.recorder.notify(
                    f"Your request for {record.quantity}x {item_name} has been APPROVED. "
                    f"You may pick it up.",
                    target_user_id=record.requested_by_user_id,
                )
            else:
                await self.recorder.log(
                    ActionType.REJECT,
                    f"Rejected request for {record.quantity}x {item_name}",
                    actor.id,
                )
                await self.recorder.notify(
                    f"Your request for {record.quantity}x {item_name} was REJECTED.",
                    target_user_id=record.requested_by_user_id,
                )

        logger.info(f"Borrowing {record_id} {verb}d by user {actor.id}")

    async def approve(self, actor: User, record_id: int) -> None:
        """Pending -> Approved; the requester is notified."""
        await self._decide(actor, record_id, ApprovalStatus.APPROVED)

    async def reject(self, actor: User, record_id: int) -> None:
        """Pending -> Rejected; the reserved quantity is released."""
        await self._decide(actor, record_id, ApprovalStatus.REJECTED)

    async def mark_returned(self, actor: User, record_id: int) -> bool:
        """
        Approved -> Returned, dated today.

        Returns:
            True if the record was returned now, False if it was already returned
        """
        if not actor.role.is_staff:
            raise ForbiddenError()

        async with atomic(self.session, "return_borrowing"):
            record, item_name = await self._load_for_transition(record_id)
            if record.approval_status != ApprovalStatus.APPROVED:
                raise StateConflictError(
                    f"Only approved borrowings can be returned; this one is "
                    f"{record.approval_status.value}."
                )
            if record.date_returned is not None:
                return False

            record.date_returned = self.clock()
            await self.session.flush()

            await self.recorder.log(
                ActionType.RETURN,
                f"{record.borrower_name} returned {record.quantity}x {item_name}",
                actor.id,
            )
            await self.recorder.notify(
                f"Return Alert: {record.borrower_name} returned {record.quantity}x {item_name}.",
                item_id=record.item_id,
            )

        logger.info(f"Borrowing {record_id} returned by user {actor.id}")
        return True
