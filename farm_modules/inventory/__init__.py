"""
Inventory Module (``farm_modules.inventory``).

Catalog items, per-site balances with moving weighted-average cost, the
append-only movement journal, and the InventoryMover that applies event
quantities inside the posting unit of work.
"""

from farm_modules.inventory.helpers import (
    effective_reorder_point,
    is_below_reorder_point,
    weighted_average_cost,
)
from farm_modules.inventory.orm import InventoryItem, InventoryMovement, SiteInventory
from farm_modules.inventory.service import InventoryMover

__all__ = [
    "InventoryItem",
    "InventoryMovement",
    "InventoryMover",
    "SiteInventory",
    "effective_reorder_point",
    "is_below_reorder_point",
    "weighted_average_cost",
]
