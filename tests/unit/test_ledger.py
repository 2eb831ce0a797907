"""
Unit tests for the inventory ledger and reference data.
"""

from datetime import date, timedelta

import pytest
from sqlalchemy import func, select

from stocktrail.borrowing import BorrowingEngine
from stocktrail.errors import ConflictError, ForbiddenError, NotFoundError, ValidationError
from stocktrail.inventory import (
    InventoryLedger,
    ReferenceService,
    available_quantity,
    format_item_code,
    parse_item_code,
)
from stocktrail.storage.models import ActionType, ActivityLogEntry, Item, Notification

pytestmark = pytest.mark.asyncio


async def add(ledger, actor, refs, name, quantity, consumable=False):
    return await ledger.add_or_restock(
        actor,
        name=name,
        committee_id=refs["committee_id"],
        type_id=refs["consumable_type_id" if consumable else "asset_type_id"],
        quantity=quantity,
        unit_id=refs["unit_id"],
        location="Cabinet A",
    )


async def count_logs(session, action_type=None):
    stmt = select(func.count(ActivityLogEntry.id))
    if action_type is not None:
        stmt = stmt.where(ActivityLogEntry.action_type == action_type)
    return (await session.execute(stmt)).scalar_one()


class TestQuantityHelpers:

    def test_available_never_negative(self):
        assert available_quantity(5, 3) == 2
        assert available_quantity(2, 5) == 0
        assert available_quantity(0, 0) == 0

    def test_code_format_round_trip(self):
        assert format_item_code(7) == "ITM-0007"
        assert parse_item_code("ITM-0042") == 42
        assert parse_item_code("LEGACY-1") is None
        assert parse_item_code(None) is None


class TestAddOrRestock:

    async def test_new_item_gets_code_and_default_threshold(self, db_session, users, references):
        ledger = InventoryLedger(db_session)

        change = await add(ledger, users["admin"], references, "Projector", 2)

        assert change.created is True
        assert change.code == "ITM-0001"
        assert change.message == "New item added successfully"
        item = await ledger.get_item(change.item_id)
        assert item.threshold == 5
        assert item.available_quantity == 2
        assert await count_logs(db_session, ActionType.ADD) >= 1

    async def test_case_insensitive_name_restocks(self, db_session, users, references):
        ledger = InventoryLedger(db_session)
        first = await add(ledger, users["admin"], references, "Stapler", 5)

        second = await add(ledger, users["admin"], references, "  stapler ", 3)

        assert second.created is False
        assert second.item_id == first.item_id
        assert second.message == 'Item "Stapler" exists. Qty updated to 8.'
        items = await ledger.list_items()
        assert [(i.name, i.total_quantity) for i in items] == [("Stapler", 8)]
        assert await count_logs(db_session, ActionType.MODIFY) == 1

    async def test_codes_increase_across_deletions(self, db_session, users, references):
        ledger = InventoryLedger(db_session)
        a = await add(ledger, users["admin"], references, "Chair", 1)
        b = await add(ledger, users["admin"], references, "Table", 1)

        await ledger.delete(users["admin"], b.item_id)
        c = await add(ledger, users["admin"], references, "Lamp", 1)

        assert [a.code, b.code, c.code] == ["ITM-0001", "ITM-0002", "ITM-0003"]

    async def test_user_role_is_forbidden_without_side_effects(self, db_session, users, references):
        ledger = InventoryLedger(db_session)
        logs_before = await count_logs(db_session)

        with pytest.raises(ForbiddenError):
            await add(ledger, users["user"], references, "Marker", 10)

        assert await ledger.list_items() == []
        assert await count_logs(db_session) == logs_before

    @pytest.mark.parametrize("name, quantity", [("", 3), ("Tape", None), ("Tape", 0), ("Tape", "lots")])
    async def test_rejects_missing_or_invalid_fields(self, db_session, users, references, name, quantity):
        ledger = InventoryLedger(db_session)

        with pytest.raises(ValidationError):
            await add(ledger, users["admin"], references, name, quantity)


class TestUpdateAndDelete:

    async def test_update_overwrites_fields(self, db_session, users, references):
        ledger = InventoryLedger(db_session)
        change = await add(ledger, users["admin"], references, "Extension Cord", 4)

        await ledger.update(
            users["admin"],
            change.item_id,
            name="Extension Cord 5m",
            committee_id=references["committee_id"],
            type_id=references["asset_type_id"],
            quantity=6,
            unit_id=references["unit_id"],
            location="Storage Room",
        )

        item = await ledger.get_item(change.item_id)
        assert (item.name, item.total_quantity, item.location) == ("Extension Cord 5m", 6, "Storage Room")

    async def test_update_rejects_name_of_another_item(self, db_session, users, references):
        ledger = InventoryLedger(db_session)
        await add(ledger, users["admin"], references, "Mic", 1)
        other = await add(ledger, users["admin"], references, "Speaker", 1)

        with pytest.raises(ConflictError):
            await ledger.update(users["admin"], other.item_id, "MIC", None, None, 1, None, None)

    async def test_update_unknown_item(self, db_session, users):
        with pytest.raises(NotFoundError):
            await InventoryLedger(db_session).update(users["admin"], 999, "Ghost", None, None, 1, None, None)

    async def test_delete_blocked_while_borrowed(self, db_session, users, references):
        ledger = InventoryLedger(db_session)
        change = await add(ledger, users["admin"], references, "Camera", 2)
        engine = BorrowingEngine(db_session)
        await engine.create(
            users["admin"], change.item_id, "Ana", None, 1, date.today(), date.today() + timedelta(days=3)
        )

        with pytest.raises(ConflictError, match="currently being borrowed"):
            await ledger.delete(users["admin"], change.item_id)

        item = await ledger.get_item(change.item_id)
        assert item.borrowed_quantity == 1
        assert item.available_quantity == 1

    async def test_delete_blocked_by_rejected_request(self, db_session, users, references):
        ledger = InventoryLedger(db_session)
        change = await add(ledger, users["admin"], references, "Easel", 2)
        engine = BorrowingEngine(db_session)
        request = await engine.create(
            users["user"], change.item_id, "Ana", None, 1, date.today(), date.today()
        )
        await engine.reject(users["admin"], request.record_id)

        with pytest.raises(ConflictError, match="currently being borrowed"):
            await ledger.delete(users["admin"], change.item_id)

        assert (await ledger.get_item(change.item_id)).available_quantity == 2

    @pytest.mark.parametrize("field", ["committee_id", "type_id", "unit_id"])
    async def test_unknown_reference_is_rejected(self, db_session, users, references, field):
        ledger = InventoryLedger(db_session)
        fields = dict(
            name="Ladder",
            committee_id=references["committee_id"],
            type_id=references["asset_type_id"],
            quantity=1,
            unit_id=references["unit_id"],
            location=None,
        )
        fields[field] = 9999

        with pytest.raises(ValidationError):
            await ledger.add_or_restock(users["admin"], **fields)

        change = await add(ledger, users["admin"], references, "Ladder", 1)
        with pytest.raises(ValidationError):
            await ledger.update(users["admin"], change.item_id, **fields)
        assert (await ledger.get_item(change.item_id)).name == "Ladder"

    async def test_delete_after_return_keeps_history(self, db_session, users, references):
        ledger = InventoryLedger(db_session)
        change = await add(ledger, users["admin"], references, "Tripod", 1)
        engine = BorrowingEngine(db_session)
        outcome = await engine.create(
            users["admin"], change.item_id, "Ana", None, 1, date.today(), date.today()
        )
        await engine.mark_returned(users["admin"], outcome.record_id)

        await ledger.delete(users["admin"], change.item_id)

        records = await engine.list_records()
        assert len(records) == 1
        assert records[0].item_id is None
        remaining = (
            await db_session.execute(
                select(func.count(Notification.id)).where(Notification.item_id == change.item_id)
            )
        ).scalar_one()
        assert remaining == 0
        assert (await db_session.get(Item, change.item_id)) is None

    async def test_delete_unknown_item(self, db_session, users):
        with pytest.raises(NotFoundError):
            await InventoryLedger(db_session).delete(users["admin"], 12345)


class TestThresholds:

    async def test_low_stock_lists_consumables_at_or_below_threshold(self, db_session, users, references):
        ledger = InventoryLedger(db_session)
        await add(ledger, users["admin"], references, "Paper", 5, consumable=True)
        await add(ledger, users["admin"], references, "Pens", 20, consumable=True)
        await add(ledger, users["admin"], references, "Laptop", 1)

        low = await ledger.low_stock()

        assert [i.name for i in low] == ["Paper"]
        assert low[0].type_name == "Office Supplies"

    async def test_threshold_update_is_superadmin_only(self, db_session, users, references):
        ledger = InventoryLedger(db_session)
        change = await add(ledger, users["admin"], references, "Glue", 3, consumable=True)

        with pytest.raises(ForbiddenError):
            await ledger.update_threshold(users["admin"], change.item_id, 1)

        await ledger.update_threshold(users["superadmin"], change.item_id, 1)

        items = await ledger.threshold_items()
        assert [(i.name, i.threshold) for i in items] == [("Glue", 1)]
        assert await ledger.low_stock() == []

    async def test_stats_counts_items_and_open_borrowings(self, db_session, users, references):
        ledger = InventoryLedger(db_session)
        change = await add(ledger, users["admin"], references, "Whiteboard", 2)
        await BorrowingEngine(db_session).create(
            users["admin"], change.item_id, "Ben", None, 1, date.today(), date.today()
        )

        assert await ledger.stats() == {"total_items": 1, "borrowed_items": 1}


class TestReferenceService:

    async def test_create_and_list_options(self, db_session, users, references):
        service = ReferenceService(db_session)

        option = await service.create(users["superadmin"], "committees", "Finance")

        options = await service.options()
        assert option.label == "Finance"
        assert "Finance" in [o.label for o in options["committees"]]
        assert await service.type_names() == ["Equipment", "Office Supplies"]

    async def test_types_carry_classification(self, db_session, users):
        service = ReferenceService(db_session)

        await service.create(users["superadmin"], "types", "Cleaning", "Consumable")

        with pytest.raises(ValidationError):
            await service.create(users["superadmin"], "types", "Food", "Edible")

    async def test_duplicate_name_conflicts(self, db_session, users, references):
        with pytest.raises(ConflictError):
            await ReferenceService(db_session).create(users["superadmin"], "units", "pcs")

    async def test_admin_cannot_modify_settings(self, db_session, users):
        with pytest.raises(ForbiddenError):
            await ReferenceService(db_session).create(users["admin"], "units", "box")

    async def test_delete_referenced_definition_conflicts(self, db_session, users, references):
        ledger = InventoryLedger(db_session)
        await add(ledger, users["admin"], references, "Banner", 1)
        service = ReferenceService(db_session)

        with pytest.raises(ConflictError, match="currently being used"):
            await service.delete(users["superadmin"], "committees", references["committee_id"])

        options = await service.options()
        assert [o.value for o in options["committees"]] == [references["committee_id"]]

    async def test_delete_unused_definition(self, db_session, users, references):
        service = ReferenceService(db_session)
        option = await service.create(users["superadmin"], "units", "box")

        await service.delete(users["superadmin"], "units", option.value)

        assert "box" not in [o.label for o in (await service.options())["units"]]
