"""
Module: farm_modules.inventory.orm
Responsibility: SQLAlchemy persistence for the inventory catalog, per-site
    balances and the append-only movement journal.
Architecture position: Modules > Inventory > ORM.  Inherits from TrackedBase
    (farm_kernel.db.base).  Sites are opaque strings owned by the caller, so
    ``site_id`` columns carry no foreign key.

Invariants enforced:
    - Quantities and costs are Decimal (Numeric(38,9)), never float.
    - One SiteInventory row per (tenant, site, item)
      (uq_site_inventory_item).
    - SiteInventory.quantity is the signed sum of its movements.
    - InventoryItem.total_quantity is the sum of its SiteInventory rows.
    - InventoryMovement rows are never updated or deleted; a reversal is a
      new ``adjustment`` row pointing back through ``reverses_movement_id``.
"""

from datetime import datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy import Boolean, ForeignKey, Index, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from farm_kernel.db.base import TrackedBase, UUIDString
from farm_kernel.domain.values import ZERO


# =============================================================================
# InventoryItem
# =============================================================================


class InventoryItem(TrackedBase):
    """
    Tenant-global catalog item (a feed ration, a vaccine, fence posts ...).

    ``reorder_point`` is the default threshold for every site that does not
    set its own.
    """

    __tablename__ = "inventory_items"

    __table_args__ = (
        Index("idx_inventory_item_tenant", "tenant_id"),
        Index("idx_inventory_item_category", "tenant_id", "category"),
    )

    tenant_id: Mapped[str] = mapped_column(String(64), nullable=False)
    sku: Mapped[str | None] = mapped_column(String(64), nullable=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    category: Mapped[str | None] = mapped_column(String(50), nullable=True)
    unit: Mapped[str | None] = mapped_column(String(20), nullable=True)
    total_quantity: Mapped[Decimal] = mapped_column(default=ZERO, nullable=False)
    average_cost: Mapped[Decimal] = mapped_column(default=ZERO, nullable=False)
    last_purchase_price: Mapped[Decimal | None] = mapped_column(nullable=True)
    reorder_point: Mapped[Decimal | None] = mapped_column(nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    def __repr__(self) -> str:
        return f"<InventoryItem {self.name}: {self.total_quantity}>"


# =============================================================================
# SiteInventory
# =============================================================================


class SiteInventory(TrackedBase):
    """
    On-hand balance of one item at one site.

    Created on the first movement; ``is_below_reorder_point`` is recomputed
    after every movement.
    """

    __tablename__ = "site_inventory"

    __table_args__ = (
        UniqueConstraint(
            "tenant_id", "site_id", "item_id", name="uq_site_inventory_item"
        ),
        Index("idx_site_inventory_site", "tenant_id", "site_id"),
        Index("idx_site_inventory_reorder", "tenant_id", "is_below_reorder_point"),
    )

    tenant_id: Mapped[str] = mapped_column(String(64), nullable=False)
    site_id: Mapped[str] = mapped_column(String(64), nullable=False)
    item_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("inventory_items.id"), nullable=False
    )
    quantity: Mapped[Decimal] = mapped_column(default=ZERO, nullable=False)
    average_cost: Mapped[Decimal] = mapped_column(default=ZERO, nullable=False)

    # Site overrides of the catalog thresholds
    reorder_point: Mapped[Decimal | None] = mapped_column(nullable=True)
    reorder_quantity: Mapped[Decimal | None] = mapped_column(nullable=True)

    is_below_reorder_point: Mapped[bool] = mapped_column(
        Boolean, default=False, nullable=False
    )
    last_movement_at: Mapped[datetime | None] = mapped_column(nullable=True)
    last_movement_type: Mapped[str | None] = mapped_column(String(20), nullable=True)

    item: Mapped[InventoryItem] = relationship()

    def __repr__(self) -> str:
        return f"<SiteInventory {self.site_id}/{self.item_id}: {self.quantity}>"


# =============================================================================
# InventoryMovement
# =============================================================================


class InventoryMovement(TrackedBase):
    """
    One immutable stock movement.

    ``quantity`` is signed.  ``balance_after`` is the site quantity right
    after the movement, which makes the site history auditable without
    replaying it.
    """

    __tablename__ = "inventory_movements"

    __table_args__ = (
        Index("idx_inventory_movement_item", "tenant_id", "site_id", "item_id"),
        Index("idx_inventory_movement_event", "tenant_id", "event_id"),
    )

    tenant_id: Mapped[str] = mapped_column(String(64), nullable=False)
    site_id: Mapped[str] = mapped_column(String(64), nullable=False)
    item_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("inventory_items.id"), nullable=False
    )
    movement_type: Mapped[str] = mapped_column(String(20), nullable=False)
    quantity: Mapped[Decimal] = mapped_column(nullable=False)
    unit_cost: Mapped[Decimal | None] = mapped_column(nullable=True)
    total_cost: Mapped[Decimal | None] = mapped_column(nullable=True)
    balance_after: Mapped[Decimal] = mapped_column(nullable=False)
    occurred_at: Mapped[datetime] = mapped_column(nullable=False)

    # Originating document (any postable source, not only events)
    event_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    event_type: Mapped[str | None] = mapped_column(String(30), nullable=True)

    # Other end of a transfer
    related_site_id: Mapped[str | None] = mapped_column(String(64), nullable=True)

    reverses_movement_id: Mapped[UUID | None] = mapped_column(
        UUIDString(), ForeignKey("inventory_movements.id"), nullable=True
    )

    def __repr__(self) -> str:
        return (
            f"<InventoryMovement {self.movement_type} {self.quantity} "
            f"@ {self.site_id}>"
        )
