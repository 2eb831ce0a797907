"""
Storage Module for StockTrail

Relational schema and the transaction boundary:
- SQLAlchemy ORM models for items, borrowing, users and the audit trail
- atomic() unit of work mapping driver failures to StoreError
"""

from stocktrail.storage.models import (
    Base,
    Role,
    UserStatus,
    Classification,
    ApprovalStatus,
    ActionType,
    User,
    Committee,
    ItemType,
    Unit,
    Item,
    CodeSequence,
    BorrowingRecord,
    ActivityLogEntry,
    Notification,
)
from stocktrail.storage.unit_of_work import atomic

__all__ = [
    # Models
    "Base",
    "Role",
    "UserStatus",
    "Classification",
    "ApprovalStatus",
    "ActionType",
    "User",
    "Committee",
    "ItemType",
    "Unit",
    "Item",
    "CodeSequence",
    "BorrowingRecord",
    "ActivityLogEntry",
    "Notification",
    # Transactions
    "atomic",
]
