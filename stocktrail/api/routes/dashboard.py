"""
Dashboard API Routes

Counters, low-stock consumables and the recent activity feed.
"""

from fastapi import APIRouter, Depends

from stocktrail.activity import ActivityRecorder
from stocktrail.api.dependencies import (
    get_activity_recorder,
    get_current_user,
    get_identity_service,
    get_inventory_ledger,
)
from stocktrail.api.schemas import (
    ActivityResponse,
    ErrorResponse,
    LowStockResponse,
    StatsResponse,
)
from stocktrail.identity import IdentityService
from stocktrail.inventory import InventoryLedger
from stocktrail.storage.models import User

router = APIRouter(prefix="/dashboard", tags=["dashboard"])


@router.get("/stats", response_model=StatsResponse)
async def get_stats(
    current_user: User = Depends(get_current_user),
    ledger: InventoryLedger = Depends(get_inventory_ledger),
):
    """Number of items and of unreturned borrowing records."""
    stats = await ledger.stats()
    return StatsResponse(
        total_items=stats["total_items"],
        borrowed_items=stats["borrowed_items"],
    )


@router.get("/low-stock", response_model=list[LowStockResponse])
async def get_low_stock(
    current_user: User = Depends(get_current_user),
    ledger: InventoryLedger = Depends(get_inventory_ledger),
):
    return [
        LowStockResponse(
            id=item.id,
            name=item.name,
            quantity=item.quantity,
            type_name=item.type_name,
            threshold=item.threshold,
        )
        for item in await ledger.low_stock()
    ]


@router.get(
    "/activity/{user_id}",
    response_model=list[ActivityResponse],
    responses={403: {"model": ErrorResponse}, 404: {"model": ErrorResponse}},
)
async def get_recent_activity(
    user_id: int,
    current_user: User = Depends(get_current_user),
    identity: IdentityService = Depends(get_identity_service),
    recorder: ActivityRecorder = Depends(get_activity_recorder),
):
    """Five most recent log entries visible to the viewer."""
    viewer = await identity.resolve_viewer(current_user, user_id)
    return [
        ActivityResponse(
            title=entry.action_type.value,
            description=entry.details,
            timestamp=entry.action_date,
        )
        for entry in await recorder.recent_activity(viewer)
    ]
