"""Borrowing state machine and derived status."""

from stocktrail.borrowing.engine import BorrowingEngine, BorrowingView, BorrowOutcome
from stocktrail.borrowing.status import BorrowStatus, derive_status

__all__ = [
    "BorrowingEngine",
    "BorrowingView",
    "BorrowOutcome",
    "BorrowStatus",
    "derive_status",
]
