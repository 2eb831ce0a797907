"""
Unit tests for derived borrowing status.
"""

from datetime import date

import pytest

from stocktrail.borrowing import BorrowStatus, derive_status
from stocktrail.storage.models import ApprovalStatus

TODAY = date(2025, 3, 10)


class TestDeriveStatus:
    """Precedence: Rejected > Pending > Returned > Overdue > Borrowed."""

    def test_rejected_wins_over_everything(self):
        status = derive_status(ApprovalStatus.REJECTED, None, date(2025, 1, 1), TODAY)
        assert status == BorrowStatus.REJECTED

    def test_pending_is_never_overdue(self):
        status = derive_status(ApprovalStatus.PENDING, None, date(2025, 1, 1), TODAY)
        assert status == BorrowStatus.PENDING

    def test_returned_after_due_date_is_returned(self):
        status = derive_status(ApprovalStatus.APPROVED, date(2025, 3, 9), date(2025, 3, 1), TODAY)
        assert status == BorrowStatus.RETURNED

    def test_past_due_is_overdue(self):
        status = derive_status(ApprovalStatus.APPROVED, None, date(2025, 3, 9), TODAY)
        assert status == BorrowStatus.OVERDUE

    @pytest.mark.parametrize("expected", [TODAY, date(2025, 4, 1)])
    def test_due_today_or_later_is_borrowed(self, expected):
        status = derive_status(ApprovalStatus.APPROVED, None, expected, TODAY)
        assert status == BorrowStatus.BORROWED

    def test_defaults_to_current_date(self):
        status = derive_status(ApprovalStatus.APPROVED, None, date(2000, 1, 1))
        assert status == BorrowStatus.OVERDUE
