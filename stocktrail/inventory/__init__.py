"""
Inventory Module for StockTrail

Item records, quantity arithmetic and the reference data they point at:
- Add-or-restock with sequential item codes
- Derived borrowed/available quantities
- Low-stock thresholds for consumables
- Committees, types and units
"""

from stocktrail.inventory.ledger import (
    InventoryLedger,
    ItemView,
    StockChange,
    LowStockItem,
    ThresholdItem,
    available_quantity,
    ensure_references,
    format_item_code,
    parse_item_code,
)
from stocktrail.inventory.references import (
    ReferenceService,
    Option,
    REFERENCE_KINDS,
)

__all__ = [
    # Ledger
    "InventoryLedger",
    "ItemView",
    "StockChange",
    "LowStockItem",
    "ThresholdItem",
    "available_quantity",
    "ensure_references",
    "format_item_code",
    "parse_item_code",
    # Reference data
    "ReferenceService",
    "Option",
    "REFERENCE_KINDS",
]
