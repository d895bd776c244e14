"""
DTOs -- Immutable data transfer objects for the posting pipeline.

Responsibility:
    Defines the line and movement specifications that flow from the
    document adapters into the LedgerWriter and the InventoryMover, and
    the enumerations shared across layers.

Architecture position:
    Kernel > Domain -- pure, zero I/O.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from enum import Enum
from uuid import UUID

from farm_kernel.domain.values import ZERO


class ControlAccountKind(str, Enum):
    """
    Logical account roles resolved from a tenant's chart of accounts.

    The first five are the classic control accounts; the rest are the farm
    roles that event postings debit and credit.
    """

    AR = "AR"
    AP = "AP"
    CASH = "CASH"
    DEFAULT_INCOME = "DEFAULT_INCOME"
    DEFAULT_EXPENSE = "DEFAULT_EXPENSE"
    INVENTORY = "INVENTORY"
    FEED_EXPENSE = "FEED_EXPENSE"
    MEDICAL_EXPENSE = "MEDICAL_EXPENSE"
    LABOR_EXPENSE = "LABOR_EXPENSE"
    REPAIR_EXPENSE = "REPAIR_EXPENSE"
    SALES = "SALES"
    COGS = "COGS"
    LIVESTOCK = "LIVESTOCK"
    INVENTORY_ADJUSTMENT = "INVENTORY_ADJUSTMENT"


class EntityType(str, Enum):
    """Sub-ledger attribution for a ledger entry."""

    VENDOR = "VENDOR"
    CUSTOMER = "CUSTOMER"
    SITE = "SITE"
    ANIMAL_GROUP = "ANIMAL_GROUP"
    INVENTORY_ITEM = "INVENTORY_ITEM"


class MovementType(str, Enum):
    """Inventory movement direction."""

    IN = "in"
    OUT = "out"
    ADJUSTMENT = "adjustment"


@dataclass(frozen=True)
class LedgerLineSpec:
    """
    One requested ledger line.

    Exactly one of ``debit``/``credit`` is expected to be positive; the
    LedgerWriter validates that, so adapters may build lines freely and
    rely on a single validation point.
    """

    account_id: UUID
    debit: Decimal = ZERO
    credit: Decimal = ZERO
    entity_type: EntityType | None = None
    entity_id: str | None = None
    memo: str | None = None

    @classmethod
    def debit_line(
        cls,
        account_id: UUID,
        amount: Decimal,
        memo: str | None = None,
        entity_type: EntityType | None = None,
        entity_id: str | None = None,
    ) -> LedgerLineSpec:
        return cls(
            account_id=account_id,
            debit=amount,
            credit=ZERO,
            entity_type=entity_type,
            entity_id=entity_id,
            memo=memo,
        )

    @classmethod
    def credit_line(
        cls,
        account_id: UUID,
        amount: Decimal,
        memo: str | None = None,
        entity_type: EntityType | None = None,
        entity_id: str | None = None,
    ) -> LedgerLineSpec:
        return cls(
            account_id=account_id,
            debit=ZERO,
            credit=amount,
            entity_type=entity_type,
            entity_id=entity_id,
            memo=memo,
        )


@dataclass(frozen=True)
class MovementSpec:
    """
    One requested inventory movement.

    ``quantity_delta`` is signed: negative for consumption, positive for
    receipt.  ``site_id`` overrides the document's site (transfers).
    """

    item_id: UUID
    quantity_delta: Decimal
    movement_type: MovementType
    unit_cost: Decimal | None = None
    site_id: str | None = None
    related_site_id: str | None = None
