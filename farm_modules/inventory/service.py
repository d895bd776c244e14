"""
Inventory Mover (``farm_modules.inventory.service``).

Responsibility
--------------
Applies signed quantity deltas to per-site inventory with moving
weighted-average costing, appends one immutable movement row per change,
keeps the catalog item's totals in step and flags reorder breaches.

Architecture
------------
Layer: **Modules** -- stateful service.  Called by the DocumentPoster inside
the same unit of work as the ledger write; flush-only, never commits.

Invariants
----------
- SiteInventory.quantity is the signed sum of its movements.
- InventoryItem.total_quantity is the sum across its sites.
- Only receipts move the site average cost.  A receipt is an ``in``
  movement, or a positive ``adjustment``, that carries a unit cost.
- The catalog average and ``last_purchase_price`` follow external receipts
  only; transfer legs (``related_site_id``) and reversals leave them alone.
  ``last_purchase_price`` is set by ``in`` movements alone.
- Movements are append-only; reversal writes an opposite ``adjustment``.

Failure Modes
-------------
- ``InventoryItemNotFoundError`` for an unknown item.
- ``InvalidAmountError`` for a zero delta, a delta whose sign contradicts
  the movement type, or a negative unit cost.
- ``InsufficientInventoryError`` when the result would be negative and the
  policy is ``reject``; raised before anything changes.

Usage::

    mover = InventoryMover(session, policy, clock)
    movement = mover.apply_movement(
        tenant_id="t1", site_id="north-pasture", item_id=hay.id,
        quantity_delta=Decimal("-12"), movement_type=MovementType.OUT,
        event_id=str(event.id), event_type="feeding",
    )
"""

from datetime import datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from farm_kernel.domain.clock import Clock
from farm_kernel.domain.dtos import MovementType
from farm_kernel.domain.policy import NegativeInventoryPolicy, PostingPolicy
from farm_kernel.domain.values import ZERO, to_decimal, to_non_negative
from farm_kernel.exceptions import (
    InsufficientInventoryError,
    InvalidAmountError,
    InventoryItemNotFoundError,
)
from farm_kernel.logging_config import get_logger
from farm_kernel.services.base import BaseService
from farm_modules.inventory.helpers import (
    effective_reorder_point,
    is_below_reorder_point,
    weighted_average_cost,
)
from farm_modules.inventory.orm import InventoryItem, InventoryMovement, SiteInventory

logger = get_logger("modules.inventory.service")


class InventoryMover(BaseService[InventoryMovement]):
    """
    Per-site inventory balances with weighted-average costing.

    Contract
    --------
    Every public write method either applies one complete movement (site
    balance, item totals, movement row) or raises without changing
    anything.

    Non-goals
    ---------
    - Does NOT post to the ledger; the DocumentPoster pairs movements with
      the ledger write.
    - Does NOT commit.
    """

    def __init__(
        self,
        session: Session,
        policy: PostingPolicy | None = None,
        clock: Clock | None = None,
    ):
        super().__init__(session, clock)
        self.policy = policy or PostingPolicy()

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def get_item(self, tenant_id: str, item_id: UUID, lock: bool = False) -> InventoryItem:
        stmt = select(InventoryItem).where(
            InventoryItem.id == item_id, InventoryItem.tenant_id == tenant_id
        )
        if lock:
            stmt = stmt.with_for_update()
        item = self.session.execute(stmt).scalar_one_or_none()
        if item is None:
            raise InventoryItemNotFoundError(str(item_id))
        return item

    def get_site_inventory(
        self, tenant_id: str, site_id: str, item_id: UUID, lock: bool = False
    ) -> SiteInventory | None:
        stmt = select(SiteInventory).where(
            SiteInventory.tenant_id == tenant_id,
            SiteInventory.site_id == site_id,
            SiteInventory.item_id == item_id,
        )
        if lock:
            stmt = stmt.with_for_update()
        return self.session.execute(stmt).scalar_one_or_none()

    def movements_for_event(self, tenant_id: str, event_id: str) -> list[InventoryMovement]:
        """Every movement recorded against ``event_id``, reversals included."""
        return list(
            self.session.scalars(
                select(InventoryMovement)
                .where(
                    InventoryMovement.tenant_id == tenant_id,
                    InventoryMovement.event_id == str(event_id),
                )
                .order_by(InventoryMovement.occurred_at, InventoryMovement.created_at)
            )
        )

    def current_unit_cost(self, tenant_id: str, site_id: str, item_id: UUID) -> Decimal:
        """Site average cost, falling back to the catalog average."""
        site_inventory = self.get_site_inventory(tenant_id, site_id, item_id)
        if site_inventory is not None and site_inventory.average_cost:
            return site_inventory.average_cost
        return self.get_item(tenant_id, item_id).average_cost or ZERO

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def apply_movement(
        self,
        tenant_id: str,
        site_id: str,
        item_id: UUID,
        quantity_delta: Decimal,
        movement_type: MovementType,
        unit_cost: Decimal | None = None,
        event_id: str | None = None,
        event_type: str | None = None,
        related_site_id: str | None = None,
        occurred_at: datetime | None = None,
        actor_id: str | None = None,
        reverses_movement_id: UUID | None = None,
    ) -> InventoryMovement:
        """
        Apply one signed quantity change at one site.

        Preconditions:
            - ``quantity_delta`` is non-zero; positive for ``in``, negative
              for ``out``, either sign for ``adjustment``.
            - ``unit_cost``, when given, is non-negative.

        Postconditions:
            - Site quantity changed by ``quantity_delta``; average cost
              recomputed on receipts.
            - Exactly one InventoryMovement appended.
            - Item ``total_quantity`` equals the sum across sites.
        """
        movement_type = MovementType(movement_type)
        delta = to_decimal(quantity_delta, "quantity_delta")
        if delta == ZERO:
            raise InvalidAmountError("quantity_delta", quantity_delta)
        if movement_type == MovementType.IN and delta < ZERO:
            raise InvalidAmountError("quantity_delta", quantity_delta)
        if movement_type == MovementType.OUT and delta > ZERO:
            raise InvalidAmountError("quantity_delta", quantity_delta)
        cost = to_non_negative(unit_cost, "unit_cost") if unit_cost is not None else None

        item = self.get_item(tenant_id, item_id, lock=True)
        site_inventory = self._lock_site_inventory(tenant_id, site_id, item, actor_id)

        before = site_inventory.quantity or ZERO
        after = before + delta
        if (
            delta < ZERO
            and after < ZERO
            and self.policy.negative_inventory == NegativeInventoryPolicy.REJECT
        ):
            logger.warning(
                "inventory_movement_rejected",
                extra={
                    "site_id": site_id,
                    "item_id": str(item_id),
                    "on_hand": str(before),
                    "quantity_delta": str(delta),
                },
            )
            raise InsufficientInventoryError(site_id, str(item_id), str(before), str(-delta))

        is_receipt = delta > ZERO and cost is not None and movement_type in (
            MovementType.IN,
            MovementType.ADJUSTMENT,
        )
        # Catalog cost follows external receipts only: no transfer legs, no reversals
        is_external = reverses_movement_id is None and related_site_id is None
        if is_receipt and after > ZERO:
            site_inventory.average_cost = weighted_average_cost(
                before, site_inventory.average_cost or ZERO, delta, cost
            )
            if is_external:
                item.average_cost = weighted_average_cost(
                    item.total_quantity or ZERO, item.average_cost or ZERO, delta, cost
                )
        if is_receipt and is_external and movement_type == MovementType.IN:
            item.last_purchase_price = cost

        when = occurred_at or self.clock.now()
        site_inventory.quantity = after
        site_inventory.last_movement_at = when
        site_inventory.last_movement_type = movement_type.value
        self._refresh_reorder_flag(site_inventory, item)

        movement_cost = cost if cost is not None else (site_inventory.average_cost or ZERO)
        movement = InventoryMovement(
            tenant_id=tenant_id,
            site_id=site_id,
            item_id=item.id,
            movement_type=movement_type.value,
            quantity=delta,
            unit_cost=movement_cost,
            total_cost=abs(delta) * movement_cost,
            balance_after=after,
            occurred_at=when,
            event_id=str(event_id) if event_id is not None else None,
            event_type=event_type,
            related_site_id=related_site_id,
            reverses_movement_id=reverses_movement_id,
            created_by=actor_id,
        )
        self.session.add(movement)
        self.session.flush()

        item.total_quantity = self.session.execute(
            select(func.coalesce(func.sum(SiteInventory.quantity), 0)).where(
                SiteInventory.tenant_id == tenant_id,
                SiteInventory.item_id == item.id,
            )
        ).scalar_one()
        self.session.flush()

        logger.info(
            "inventory_movement_applied",
            extra={
                "site_id": site_id,
                "item_id": str(item.id),
                "movement_type": movement_type.value,
                "quantity_delta": str(delta),
                "balance_after": str(after),
                "average_cost": str(site_inventory.average_cost),
                "event_id": movement.event_id,
            },
        )
        return movement

    def reverse_movement(
        self,
        movement: InventoryMovement,
        actor_id: str | None = None,
        occurred_at: datetime | None = None,
    ) -> InventoryMovement:
        """
        Cancel ``movement`` with an opposite ``adjustment`` at its unit cost.

        The original row is left untouched.
        """
        return self.apply_movement(
            tenant_id=movement.tenant_id,
            site_id=movement.site_id,
            item_id=movement.item_id,
            quantity_delta=-movement.quantity,
            movement_type=MovementType.ADJUSTMENT,
            unit_cost=movement.unit_cost,
            event_id=movement.event_id,
            event_type=movement.event_type,
            related_site_id=movement.related_site_id,
            occurred_at=occurred_at,
            actor_id=actor_id,
            reverses_movement_id=movement.id,
        )

    def reverse_event_movements(
        self, tenant_id: str, event_id: str, actor_id: str | None = None
    ) -> list[InventoryMovement]:
        """Reverse every not-yet-reversed movement of ``event_id``."""
        movements = self.movements_for_event(tenant_id, event_id)
        reversed_ids = {m.reverses_movement_id for m in movements if m.reverses_movement_id}
        originals = [
            m
            for m in movements
            if m.reverses_movement_id is None and m.id not in reversed_ids
        ]
        return [self.reverse_movement(m, actor_id=actor_id) for m in originals]

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _lock_site_inventory(
        self,
        tenant_id: str,
        site_id: str,
        item: InventoryItem,
        actor_id: str | None,
    ) -> SiteInventory:
        site_inventory = self.get_site_inventory(tenant_id, site_id, item.id, lock=True)
        if site_inventory is not None:
            return site_inventory

        # First movement at this site; a concurrent creator may win the insert
        savepoint = self.session.begin_nested()
        try:
            site_inventory = SiteInventory(
                tenant_id=tenant_id,
                site_id=site_id,
                item_id=item.id,
                quantity=ZERO,
                average_cost=ZERO,
                is_below_reorder_point=False,
                created_by=actor_id,
            )
            self.session.add(site_inventory)
            self.session.flush()
            savepoint.commit()
        except IntegrityError:
            savepoint.rollback()
            logger.debug(
                "site_inventory_race_retry",
                extra={"site_id": site_id, "item_id": str(item.id)},
            )
            site_inventory = self.get_site_inventory(tenant_id, site_id, item.id, lock=True)
            if site_inventory is None:
                # The violation was not the site/item key
                raise
        return site_inventory

    def _refresh_reorder_flag(self, site_inventory: SiteInventory, item: InventoryItem) -> None:
        reorder_point = effective_reorder_point(
            site_inventory.reorder_point, item.reorder_point
        )
        flagged = is_below_reorder_point(site_inventory.quantity, reorder_point)
        if flagged != site_inventory.is_below_reorder_point:
            logger.info(
                "reorder_flag_changed",
                extra={
                    "site_id": site_inventory.site_id,
                    "item_id": str(item.id),
                    "quantity": str(site_inventory.quantity),
                    "reorder_point": str(reorder_point),
                    "is_below_reorder_point": flagged,
                },
            )
        site_inventory.is_below_reorder_point = flagged
