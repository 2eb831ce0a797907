"""
Inventory Ledger

Owns item records and their quantity arithmetic:
- Add-or-restock with case-insensitive name matching
- Sequential, never-reused item codes (ITM-0001, ITM-0002, ...)
- Edit, delete-if-unborrowed, threshold management
- Derived borrowed/available quantities shared with the Borrowing Engine

Design Decisions:
1. Available quantity is never stored; it is computed from open borrowing
   records on every read.
2. Each mutation runs in one transaction together with its activity log
   entry, so a change is never visible without its audit record.
"""

import re
from dataclasses import dataclass
from typing import Optional

from loguru import logger
from sqlalchemy import and_, case, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from stocktrail.activity import ActivityRecorder
from stocktrail.errors import ConflictError, ForbiddenError, NotFoundError, ValidationError
from stocktrail.storage.models import (
    ActionType,
    ApprovalStatus,
    BorrowingRecord,
    Classification,
    CodeSequence,
    Committee,
    Item,
    ItemType,
    Role,
    Unit,
    User,
)
from stocktrail.storage.unit_of_work import atomic

CODE_PREFIX = "ITM"
CODE_PATTERN = re.compile(rf"^{CODE_PREFIX}-(\d+)$")


def format_item_code(number: int) -> str:
    """Render the code for a sequence number, e.g. 7 -> ITM-0007."""
    return f"{CODE_PREFIX}-{number:04d}"


def parse_item_code(code: Optional[str]) -> Optional[int]:
    """Numeric suffix of an item code, or None if the code is not sequential."""
    if not code:
        return None
    match = CODE_PATTERN.match(code)
    return int(match.group(1)) if match else None


def available_quantity(total_quantity: int, borrowed_quantity: int) -> int:
    """Units on hand: total minus reserved, clamped at zero."""
    return max(0, (total_quantity or 0) - (borrowed_quantity or 0))


def open_reservation_condition():
    """Borrowing records that still hold stock: unreturned and not rejected."""
    return and_(
        BorrowingRecord.date_returned.is_(None),
        BorrowingRecord.approval_status != ApprovalStatus.REJECTED,
    )


def reserved_quantity_expr():
    """SUM of reserved quantity across joined borrowing rows."""
    return func.coalesce(
        func.sum(case((open_reservation_condition(), BorrowingRecord.quantity), else_=0)),
        0,
    )


@dataclass
class ItemView:
    """Item with joined reference names and derived quantities."""

    id: int
    code: str
    name: str
    committee_id: Optional[int]
    committee: Optional[str]
    type_id: Optional[int]
    type: Optional[str]
    classification: Optional[Classification]
    unit_id: Optional[int]
    unit: Optional[str]
    total_quantity: int
    borrowed_quantity: int
    location: Optional[str]
    threshold: Optional[int]

    @property
    def available_quantity(self) -> int:
        return available_quantity(self.total_quantity, self.borrowed_quantity)


@dataclass
class StockChange:
    """Outcome of add_or_restock."""

    item_id: int
    created: bool
    message: str
    code: Optional[str] = None
    total_quantity: int = 0


@dataclass
class LowStockItem:
    id: int
    name: str
    quantity: int
    type_name: str
    threshold: Optional[int]


@dataclass
class ThresholdItem:
    id: int
    name: str
    category: Optional[str]
    threshold: Optional[int]


def _require_staff(actor: User) -> None:
    if actor.role not in (Role.SUPERADMIN, Role.ADMIN):
        raise ForbiddenError()


def _parse_quantity(value, field_name: str = "quantity", minimum: int = 0) -> int:
    try:
        quantity = int(value)
    except (TypeError, ValueError):
        raise ValidationError(f"Invalid {field_name}", detail=f"{field_name} must be an integer")
    if quantity < minimum:
        raise ValidationError(f"Invalid {field_name}", detail=f"{field_name} must be at least {minimum}")
    return quantity


async def ensure_references(
    session: AsyncSession,
    committee_id: Optional[int] = None,
    type_id: Optional[int] = None,
    unit_id: Optional[int] = None,
) -> None:
    """Reject ids that point at no committee, type or unit; None is allowed."""
    for model, value, field_name in (
        (Committee, committee_id, "committeeID"),
        (ItemType, type_id, "typeID"),
        (Unit, unit_id, "unitID"),
    ):
        if value is not None and await session.get(model, value) is None:
            raise ValidationError(f"Unknown {field_name}", detail=f"No row with id {value}")


class InventoryLedger:
    """
    Item CRUD bound to one request session.

    Usage:
        ledger = InventoryLedger(session)
        change = await ledger.add_or_restock(admin, "Stapler", committee_id=1,
                                             type_id=2, quantity=10, unit_id=1,
                                             location="Cabinet A")
        items = await ledger.list_items()
    """

    def __init__(self, session: AsyncSession, default_threshold: int = 5):
        self.session = session
        self.default_threshold = default_threshold
        self.recorder = ActivityRecorder(session)

    # -------------------------------------------------------------------------
    # Reads
    # -------------------------------------------------------------------------

    def _items_query(self):
        borrowed = reserved_quantity_expr().label("borrowed_qty")
        return (
            select(
                Item,
                Committee.name,
                ItemType.name,
                ItemType.classification,
                Unit.name,
                borrowed,
            )
            .outerjoin(Committee, Item.committee_id == Committee.id)
            .outerjoin(ItemType, Item.type_id == ItemType.id)
            .outerjoin(Unit, Item.unit_id == Unit.id)
            .outerjoin(BorrowingRecord, BorrowingRecord.item_id == Item.id)
            .group_by(Item.id, Committee.name, ItemType.name, ItemType.classification, Unit.name)
            .order_by(Item.id.asc())
        )

    @staticmethod
    def _to_view(row) -> ItemView:
        item, committee, type_name, classification, unit, borrowed = row
        return ItemView(
            id=item.id,
            code=item.code,
            name=item.name,
            committee_id=item.committee_id,
            committee=committee,
            type_id=item.type_id,
            type=type_name,
            classification=classification,
            unit_id=item.unit_id,
            unit=unit,
            total_quantity=item.total_quantity,
            borrowed_quantity=int(borrowed or 0),
            location=item.location,
            threshold=item.threshold,
        )

    async def list_items(self) -> list[ItemView]:
        """All items with committee/type/unit names and borrowed/available quantities."""
        rows = (await self.session.execute(self._items_query())).all()
        return [self._to_view(row) for row in rows]

    async def get_item(self, item_id: int) -> ItemView:
        row = (
            await self.session.execute(self._items_query().where(Item.id == item_id))
        ).first()
        if row is None:
            raise NotFoundError("Item", item_id)
        return self._to_view(row)

    async def reserved_quantity(self, item_id: int) -> int:
        """Quantity currently held by open borrowing records of an item."""
        stmt = select(
            func.coalesce(func.sum(BorrowingRecord.quantity), 0)
        ).where(BorrowingRecord.item_id == item_id, open_reservation_condition())
        return int((await self.session.execute(stmt)).scalar_one())

    async def low_stock(self) -> list[LowStockItem]:
        """Consumables at or below their threshold (NULL threshold counts as 0)."""
        stmt = (
            select(Item.id, Item.name, Item.total_quantity, ItemType.name, Item.threshold)
            .join(ItemType, Item.type_id == ItemType.id)
            .where(
                ItemType.classification == Classification.CONSUMABLE,
                Item.total_quantity <= func.coalesce(Item.threshold, 0),
            )
            .order_by(Item.name.asc())
        )
        rows = (await self.session.execute(stmt)).all()
        return [
            LowStockItem(id=r[0], name=r[1], quantity=r[2], type_name=r[3], threshold=r[4])
            for r in rows
        ]

    async def threshold_items(self) -> list[ThresholdItem]:
        """Consumable items and their alert thresholds."""
        stmt = (
            select(Item.id, Item.name, ItemType.name, Item.threshold)
            .join(ItemType, Item.type_id == ItemType.id)
            .where(ItemType.classification == Classification.CONSUMABLE)
            .order_by(Item.name.asc())
        )
        rows = (await self.session.execute(stmt)).all()
        return [ThresholdItem(id=r[0], name=r[1], category=r[2], threshold=r[3]) for r in rows]

    async def stats(self) -> dict:
        """Dashboard counters."""
        total_items = (await self.session.execute(select(func.count(Item.id)))).scalar_one()
        borrowed = (
            await self.session.execute(
                select(func.count(BorrowingRecord.id)).where(BorrowingRecord.date_returned.is_(None))
            )
        ).scalar_one()
        return {"total_items": total_items or 0, "borrowed_items": borrowed or 0}

    # -------------------------------------------------------------------------
    # Writes
    # -------------------------------------------------------------------------

    async def _next_code(self) -> str:
        """
        Issue the next item code.

        Takes the larger of the persisted high-water mark and the highest
        existing suffix, so codes stay unique after deletions and after rows
        inserted outside the ledger.
        """
        sequence = await self.session.get(CodeSequence, CODE_PREFIX, with_for_update=True)
        if sequence is None:
            sequence = CodeSequence(name=CODE_PREFIX, last_value=0)
            self.session.add(sequence)

        codes = (
            await self.session.execute(select(Item.code).where(Item.code.like(f"{CODE_PREFIX}-%")))
        ).scalars().all()
        highest_existing = max((parse_item_code(c) or 0 for c in codes), default=0)

        sequence.last_value = max(sequence.last_value or 0, highest_existing) + 1
        return format_item_code(sequence.last_value)

    async def add_or_restock(
        self,
        actor: User,
        name: Optional[str],
        committee_id: Optional[int],
        type_id: Optional[int],
        quantity,
        unit_id: Optional[int],
        location: Optional[str],
    ) -> StockChange:
        """
        Add stock by name.

        An existing item whose name matches case-insensitively is restocked
        (MODIFY); otherwise a new item is created with the next code (ADD).
        """
        _require_staff(actor)
        if not name or not str(name).strip() or quantity in (None, ""):
            raise ValidationError("Missing required fields")

        qty_to_add = _parse_quantity(quantity, minimum=1)
        clean_name = str(name).strip()

        async with atomic(self.session, "add_or_restock"):
            stmt = (
                select(Item)
                .where(func.lower(Item.name) == clean_name.lower())
                .with_for_update()
            )
            match = (await self.session.execute(stmt)).scalar_one_or_none()

            if match is not None:
                match.total_quantity = match.total_quantity + qty_to_add
                await self.session.flush()

                await self.recorder.log(
                    ActionType.MODIFY,
                    f'Stock Added: {qty_to_add} to existing "{match.name}" ({match.code}). '
                    f"New Total: {match.total_quantity}",
                    actor.id,
                )
                await self.recorder.notify(
                    f'Stock Added: {qty_to_add} units added to "{match.name}".',
                    item_id=match.id,
                )
                change = StockChange(
                    item_id=match.id,
                    created=False,
                    message=f'Item "{match.name}" exists. Qty updated to {match.total_quantity}.',
                    total_quantity=match.total_quantity,
                )
            else:
                await ensure_references(self.session, committee_id, type_id, unit_id)
                code = await self._next_code()
                item = Item(
                    code=code,
                    name=clean_name,
                    committee_id=committee_id,
                    type_id=type_id,
                    unit_id=unit_id,
                    total_quantity=qty_to_add,
                    location=location,
                    threshold=self.default_threshold,
                )
                self.session.add(item)
                await self.session.flush()

                await self.recorder.log(
                    ActionType.ADD,
                    f"Added new item: {clean_name} ({code})",
                    actor.id,
                )
                await self.recorder.notify(
                    f"New Item: {clean_name} ({qty_to_add} units) was added.",
                    item_id=item.id,
                )
                change = StockChange(
                    item_id=item.id,
                    created=True,
                    message="New item added successfully",
                    code=code,
                    total_quantity=qty_to_add,
                )

        logger.info(f"add_or_restock by user {actor.id}: {change.message}")
        return change

    async def update(
        self,
        actor: User,
        item_id: int,
        name: Optional[str],
        committee_id: Optional[int],
        type_id: Optional[int],
        quantity,
        unit_id: Optional[int],
        location: Optional[str],
    ) -> None:
        """Overwrite an item's editable fields in place."""
        _require_staff(actor)
        if not name or not str(name).strip():
            raise ValidationError("Missing required fields", detail="itemName is required")
        new_quantity = _parse_quantity(quantity)
        clean_name = str(name).strip()

        async with atomic(self.session, "update_item"):
            item = await self.session.get(Item, item_id, with_for_update=True)
            if item is None:
                raise NotFoundError("Item", item_id)

            clash = (
                await self.session.execute(
                    select(Item.id).where(
                        func.lower(Item.name) == clean_name.lower(),
                        Item.id != item_id,
                    )
                )
            ).scalar_one_or_none()
            if clash is not None:
                raise ConflictError(f'Another item is already named "{clean_name}".')
            await ensure_references(self.session, committee_id, type_id, unit_id)

            item.name = clean_name
            item.committee_id = committee_id
            item.type_id = type_id
            item.total_quantity = new_quantity
            item.unit_id = unit_id
            item.location = location
            await self.session.flush()

            await self.recorder.log(ActionType.MODIFY, f"Updated item: {clean_name}", actor.id)
            await self.recorder.notify(
                f'Inventory Update: details for "{clean_name}" were modified.',
                item_id=item.id,
            )

        logger.info(f"Item {item_id} updated by user {actor.id}")

    async def delete(self, actor: User, item_id: int) -> None:
        """
        Delete an item that has no unreturned borrowing record.

        The borrow check and the delete share one transaction so a borrow
        cannot be created in between.
        """
        _require_staff(actor)

        async with atomic(self.session, "delete_item"):
            item = await self.session.get(Item, item_id, with_for_update=True)
            if item is None:
                raise NotFoundError("Item", item_id)

            # Any unreturned record blocks, rejected requests included
            active = (
                await self.session.execute(
                    select(func.count(BorrowingRecord.id)).where(
                        BorrowingRecord.item_id == item_id,
                        BorrowingRecord.date_returned.is_(None),
                    )
                )
            ).scalar_one()
            if active:
                raise ConflictError("Cannot delete item currently being borrowed.")

            item_name = item.name
            await self.recorder.discard_item_notifications(item_id)

            # Closed records stay as history without the item
            await self.session.execute(
                update(BorrowingRecord)
                .where(BorrowingRecord.item_id == item_id)
                .values(item_id=None)
            )
            await self.session.delete(item)
            await self.session.flush()

            await self.recorder.log(ActionType.REMOVE, f"Removed item: {item_name}", actor.id)
            await self.recorder.notify(f'Inventory Alert: Item "{item_name}" was removed.')

        logger.info(f"Item {item_id} deleted by user {actor.id}")

    async def update_threshold(self, actor: User, item_id: int, value) -> None:
        """Set the low-stock threshold. Superadmin only."""
        if actor.role != Role.SUPERADMIN:
            raise ForbiddenError("Access Denied. Only Superadmins can change thresholds.")
        threshold = _parse_quantity(value, field_name="threshold")

        async with atomic(self.session, "update_threshold"):
            item = await self.session.get(Item, item_id)
            if item is None:
                raise NotFoundError("Item", item_id)
            item.threshold = threshold
