"""
Inventory Pure Functions (``farm_modules.inventory.helpers``).

Responsibility
--------------
Stateless costing and reorder calculations used by the InventoryMover.

Architecture
------------
Layer: **Modules** -- pure helper functions.  No I/O, no session, no clock.

Invariants
----------
- All numeric inputs and outputs are ``Decimal``.
- A reorder point of zero or ``None`` disables the reorder alert.
"""

from __future__ import annotations

from decimal import Decimal

from farm_kernel.domain.values import ZERO


def weighted_average_cost(
    current_quantity: Decimal,
    current_average: Decimal,
    received_quantity: Decimal,
    unit_cost: Decimal,
) -> Decimal:
    """
    Moving weighted average after a receipt.

    ``(q * avg + rq * uc) / (q + rq)``.  When the current quantity is zero
    or negative there is no cost basis worth averaging against, so the
    average resets to the receipt's unit cost.

    Raises:
        ValueError: If ``received_quantity`` is not positive.
    """
    if received_quantity <= ZERO:
        raise ValueError(f"received_quantity must be positive, got {received_quantity}")
    if current_quantity <= ZERO:
        return unit_cost
    return (current_quantity * current_average + received_quantity * unit_cost) / (
        current_quantity + received_quantity
    )


def effective_reorder_point(
    site_reorder_point: Decimal | None,
    item_reorder_point: Decimal | None,
) -> Decimal:
    """Site threshold, else the catalog threshold, else zero."""
    if site_reorder_point:
        return site_reorder_point
    if item_reorder_point:
        return item_reorder_point
    return ZERO


def is_below_reorder_point(quantity: Decimal, reorder_point: Decimal) -> bool:
    """True iff ``quantity <= reorder_point`` and the point is enabled (> 0)."""
    return reorder_point > ZERO and quantity <= reorder_point
