"""
Derived borrowing status.

The displayed status is never stored. It is a pure function of the
persisted approval state, the return date and the calendar date.
"""

from datetime import date
from enum import Enum
from typing import Optional

from stocktrail.storage.models import ApprovalStatus


class BorrowStatus(str, Enum):
    """Status shown for a borrowing record."""
    PENDING = "Pending"
    REJECTED = "Rejected"
    RETURNED = "Returned"
    OVERDUE = "Overdue"
    BORROWED = "Borrowed"


def derive_status(
    approval_status: ApprovalStatus,
    date_returned: Optional[date],
    expected_return_date: Optional[date],
    today: Optional[date] = None,
) -> BorrowStatus:
    """
    Compute the display status of a borrowing record.

    Precedence: Rejected, Pending, Returned, Overdue, Borrowed.
    """
    today = today or date.today()

    if approval_status == ApprovalStatus.REJECTED:
        return BorrowStatus.REJECTED
    if approval_status == ApprovalStatus.PENDING:
        return BorrowStatus.PENDING
    if date_returned is not None:
        return BorrowStatus.RETURNED
    if expected_return_date is not None and expected_return_date < today:
        return BorrowStatus.OVERDUE
    return BorrowStatus.BORROWED
