"""
Inventory API Routes

Item listing, add-or-restock, edit, delete, reference dropdowns and
low-stock thresholds.
"""

from fastapi import APIRouter, Depends
from loguru import logger

from stocktrail.api.dependencies import (
    get_current_user,
    get_inventory_ledger,
    get_reference_service,
)
from stocktrail.api.schemas import (
    ActionResponse,
    ErrorResponse,
    ItemCreateResponse,
    ItemResponse,
    ItemWrite,
    OptionResponse,
    ReferencesResponse,
    ThresholdItemResponse,
    ThresholdUpdate,
)
from stocktrail.inventory import InventoryLedger, ItemView, ReferenceService
from stocktrail.storage.models import User

router = APIRouter(prefix="/inventory", tags=["inventory"])


def to_item_response(item: ItemView) -> ItemResponse:
    return ItemResponse(
        id=item.id,
        code=item.code,
        name=item.name,
        committee=item.committee,
        committee_id=item.committee_id,
        type=item.type,
        classification=item.classification.value if item.classification else None,
        type_id=item.type_id,
        total_qty=item.total_quantity,
        unit=item.unit,
        unit_id=item.unit_id,
        location=item.location,
        threshold=item.threshold,
        borrowed_qty=item.borrowed_quantity,
        available_qty=item.available_quantity,
    )


# =============================================================================
# Reads
# =============================================================================

@router.get("", response_model=list[ItemResponse])
async def list_inventory(
    current_user: User = Depends(get_current_user),
    ledger: InventoryLedger = Depends(get_inventory_ledger),
):
    """All items with borrowed and available quantities."""
    return [to_item_response(item) for item in await ledger.list_items()]


@router.get("/references", response_model=ReferencesResponse)
async def get_references(
    current_user: User = Depends(get_current_user),
    references: ReferenceService = Depends(get_reference_service),
):
    """Committee, type and unit dropdown options."""
    options = await references.options()
    return ReferencesResponse(
        **{
            kind: [OptionResponse(value=o.value, label=o.label) for o in rows]
            for kind, rows in options.items()
        }
    )


@router.get("/types-list", response_model=list[str])
async def get_types_list(
    current_user: User = Depends(get_current_user),
    references: ReferenceService = Depends(get_reference_service),
):
    return await references.type_names()


@router.get("/items", response_model=list[ThresholdItemResponse])
async def get_threshold_items(
    current_user: User = Depends(get_current_user),
    ledger: InventoryLedger = Depends(get_inventory_ledger),
):
    """Consumables and their low-stock thresholds."""
    return [
        ThresholdItemResponse(id=i.id, name=i.name, category=i.category, threshold=i.threshold)
        for i in await ledger.threshold_items()
    ]


@router.get(
    "/{item_id}",
    response_model=ItemResponse,
    responses={404: {"model": ErrorResponse}},
)
async def get_item(
    item_id: int,
    current_user: User = Depends(get_current_user),
    ledger: InventoryLedger = Depends(get_inventory_ledger),
):
    return to_item_response(await ledger.get_item(item_id))


# =============================================================================
# Writes
# =============================================================================

@router.post(
    "",
    response_model=ItemCreateResponse,
    response_model_exclude_none=True,
    responses={
        400: {"model": ErrorResponse, "description": "Missing fields"},
        403: {"model": ErrorResponse},
    },
)
async def add_item(
    body: ItemWrite,
    current_user: User = Depends(get_current_user),
    ledger: InventoryLedger = Depends(get_inventory_ledger),
):
    """Add a new item, or restock an existing one with the same name."""
    logger.info(f"Add/restock '{body.item_name}' requested by user {current_user.id}")
    change = await ledger.add_or_restock(
        current_user,
        name=body.item_name,
        committee_id=body.committee_id,
        type_id=body.type_id,
        quantity=body.quantity,
        unit_id=body.unit_id,
        location=body.location,
    )
    return ItemCreateResponse(message=change.message, code=change.code)


@router.put(
    "/items/{item_id}/threshold",
    response_model=ActionResponse,
    responses={403: {"model": ErrorResponse}, 404: {"model": ErrorResponse}},
)
async def update_threshold(
    item_id: int,
    body: ThresholdUpdate,
    current_user: User = Depends(get_current_user),
    ledger: InventoryLedger = Depends(get_inventory_ledger),
):
    await ledger.update_threshold(current_user, item_id, body.threshold)
    return ActionResponse(message="Threshold updated")


@router.put(
    "/{item_id}",
    response_model=ActionResponse,
    responses={
        400: {"model": ErrorResponse},
        403: {"model": ErrorResponse},
        404: {"model": ErrorResponse},
    },
)
async def update_item(
    item_id: int,
    body: ItemWrite,
    current_user: User = Depends(get_current_user),
    ledger: InventoryLedger = Depends(get_inventory_ledger),
):
    await ledger.update(
        current_user,
        item_id,
        name=body.item_name,
        committee_id=body.committee_id,
        type_id=body.type_id,
        quantity=body.quantity,
        unit_id=body.unit_id,
        location=body.location,
    )
    return ActionResponse(message="Item updated successfully")


@router.delete(
    "/{item_id}",
    response_model=ActionResponse,
    responses={
        400: {"model": ErrorResponse, "description": "Item is currently borrowed"},
        403: {"model": ErrorResponse},
        404: {"model": ErrorResponse},
    },
)
async def delete_item(
    item_id: int,
    current_user: User = Depends(get_current_user),
    ledger: InventoryLedger = Depends(get_inventory_ledger),
):
    await ledger.delete(current_user, item_id)
    return ActionResponse(message="Item deleted successfully")
