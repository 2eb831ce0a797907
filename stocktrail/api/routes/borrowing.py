"""
Borrowing API Routes

Borrow requests and their approve / reject / return transitions.
"""

from fastapi import APIRouter, Depends
from loguru import logger

from stocktrail.api.dependencies import get_borrowing_engine, get_current_user
from stocktrail.api.schemas import (
    ActionResponse,
    BorrowCreate,
    BorrowingResponse,
    ErrorResponse,
)
from stocktrail.borrowing import BorrowingEngine, BorrowingView
from stocktrail.storage.models import User

router = APIRouter(prefix="/borrowing", tags=["borrowing"])

TRANSITION_ERRORS = {
    403: {"model": ErrorResponse},
    404: {"model": ErrorResponse},
    409: {"model": ErrorResponse, "description": "Not allowed from the current state"},
}


def to_borrowing_response(record: BorrowingView) -> BorrowingResponse:
    return BorrowingResponse(
        id=record.id,
        item_id=record.item_id,
        code=record.code,
        name=record.name,
        borrower=record.borrower,
        committee=record.committee,
        qty=record.quantity,
        date_borrowed=record.date_borrowed,
        date_expected=record.expected_return_date,
        date_returned=record.date_returned,
        approval_status=record.approval_status.value,
        status=record.status.value,
    )


@router.get("", response_model=list[BorrowingResponse])
async def list_borrowing(
    current_user: User = Depends(get_current_user),
    engine: BorrowingEngine = Depends(get_borrowing_engine),
):
    """All transactions; pending requests first, then newest."""
    return [to_borrowing_response(r) for r in await engine.list_records()]


@router.post(
    "",
    response_model=ActionResponse,
    responses={
        400: {"model": ErrorResponse, "description": "Missing fields or insufficient stock"},
        404: {"model": ErrorResponse},
    },
)
async def create_borrowing(
    body: BorrowCreate,
    current_user: User = Depends(get_current_user),
    engine: BorrowingEngine = Depends(get_borrowing_engine),
):
    """Users submit a request; Admins and Superadmins borrow directly."""
    logger.info(f"Borrow of item {body.item_id} x{body.quantity} by user {current_user.id}")
    outcome = await engine.create(
        current_user,
        item_id=body.item_id,
        borrower_name=body.borrower_name,
        committee_id=body.committee_id,
        quantity=body.quantity,
        date_borrowed=body.date_borrowed,
        expected_return_date=body.expected_return,
    )
    return ActionResponse(message=outcome.message)


@router.put("/approve/{record_id}", response_model=ActionResponse, responses=TRANSITION_ERRORS)
async def approve_borrowing(
    record_id: int,
    current_user: User = Depends(get_current_user),
    engine: BorrowingEngine = Depends(get_borrowing_engine),
):
    await engine.approve(current_user, record_id)
    return ActionResponse(message="Request approved.")


@router.put("/reject/{record_id}", response_model=ActionResponse, responses=TRANSITION_ERRORS)
async def reject_borrowing(
    record_id: int,
    current_user: User = Depends(get_current_user),
    engine: BorrowingEngine = Depends(get_borrowing_engine),
):
    await engine.reject(current_user, record_id)
    return ActionResponse(message="Request rejected.")


@router.put("/return/{record_id}", response_model=ActionResponse, responses=TRANSITION_ERRORS)
async def return_borrowing(
    record_id: int,
    current_user: User = Depends(get_current_user),
    engine: BorrowingEngine = Depends(get_borrowing_engine),
):
    returned = await engine.mark_returned(current_user, record_id)
    return ActionResponse(
        message="Item returned successfully" if returned else "Item was already returned."
    )
