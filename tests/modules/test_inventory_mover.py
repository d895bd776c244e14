"""
Tests for InventoryMover.

Tests cover:
- Receipts and weighted-average costing
- Consumption and movement rows
- Item totals across sites
- Reorder flag set and cleared
- Negative stock under allow/reject policies
- Movement validation
- Event reversal
"""

from dataclasses import replace
from decimal import Decimal
from uuid import uuid4

import pytest

from farm_kernel.domain.dtos import MovementType
from farm_kernel.domain.policy import NegativeInventoryPolicy
from farm_kernel.exceptions import (
    InsufficientInventoryError,
    InvalidAmountError,
    InventoryItemNotFoundError,
)
from farm_modules.inventory.orm import InventoryMovement
from farm_modules.inventory.service import InventoryMover

NORTH = "site-north"
SOUTH = "site-south"


@pytest.fixture
def hay(create_item):
    return create_item("Hay bales")


@pytest.fixture
def receive(inventory_mover, tenant_id):
    def _receive(item, quantity, unit_cost, site_id=NORTH, mover=None):
        return (mover or inventory_mover).apply_movement(
            tenant_id=tenant_id,
            site_id=site_id,
            item_id=item.id,
            quantity_delta=Decimal(str(quantity)),
            movement_type=MovementType.IN,
            unit_cost=Decimal(str(unit_cost)),
        )

    return _receive


@pytest.fixture
def consume(inventory_mover, tenant_id):
    def _consume(item, quantity, site_id=NORTH, mover=None, event_id=None):
        return (mover or inventory_mover).apply_movement(
            tenant_id=tenant_id,
            site_id=site_id,
            item_id=item.id,
            quantity_delta=-Decimal(str(quantity)),
            movement_type=MovementType.OUT,
            event_id=event_id,
            event_type="feeding" if event_id else None,
        )

    return _consume


class TestReceipts:

    def test_first_receipt_sets_cost(self, receive, inventory_mover, tenant_id, hay):
        receive(hay, 10, "2.00")

        site = inventory_mover.get_site_inventory(tenant_id, NORTH, hay.id)
        assert site.quantity == Decimal("10")
        assert site.average_cost == Decimal("2.00")
        assert hay.average_cost == Decimal("2.00")
        assert hay.last_purchase_price == Decimal("2.00")

    def test_second_receipt_averages(self, receive, inventory_mover, tenant_id, hay):
        receive(hay, 10, "2.00")
        receive(hay, 10, "4.00")

        site = inventory_mover.get_site_inventory(tenant_id, NORTH, hay.id)
        assert site.quantity == Decimal("20")
        assert site.average_cost == Decimal("3")
        assert inventory_mover.current_unit_cost(tenant_id, NORTH, hay.id) == Decimal("3")

    def test_receipt_into_negative_stock_resets_cost(self, receive, consume, inventory_mover, tenant_id, hay):
        receive(hay, 5, "2.00")
        consume(hay, 8)
        receive(hay, 10, "6.00")

        site = inventory_mover.get_site_inventory(tenant_id, NORTH, hay.id)
        assert site.quantity == Decimal("7")
        assert site.average_cost == Decimal("6.00")

    def test_movement_row_recorded(self, receive, hay):
        movement = receive(hay, 4, "2.50")

        assert movement.movement_type == "in"
        assert movement.quantity == Decimal("4")
        assert movement.total_cost == Decimal("10.00")
        assert movement.balance_after == Decimal("4")


class TestConsumption:

    def test_consumption_keeps_average(self, receive, consume, inventory_mover, tenant_id, hay):
        receive(hay, 10, "3.00")
        movement = consume(hay, 4)

        site = inventory_mover.get_site_inventory(tenant_id, NORTH, hay.id)
        assert site.quantity == Decimal("6")
        assert site.average_cost == Decimal("3.00")
        assert movement.unit_cost == Decimal("3.00")
        assert movement.total_cost == Decimal("12.00")
        assert site.last_movement_type == "out"

    def test_item_total_spans_sites(self, receive, consume, hay):
        receive(hay, 10, "2.00", site_id=NORTH)
        receive(hay, 6, "2.00", site_id=SOUTH)
        consume(hay, 3, site_id=SOUTH)

        assert hay.total_quantity == Decimal("13")

    def test_negative_stock_allowed_by_default(self, consume, inventory_mover, tenant_id, hay):
        consume(hay, 2)

        assert inventory_mover.get_site_inventory(tenant_id, NORTH, hay.id).quantity == Decimal("-2")

    def test_negative_stock_rejected_by_policy(
        self, session, policy, deterministic_clock, receive, consume, inventory_mover, tenant_id, hay
    ):
        strict = InventoryMover(
            session,
            replace(policy, negative_inventory=NegativeInventoryPolicy.REJECT),
            deterministic_clock,
        )
        receive(hay, 5, "2.00")

        with pytest.raises(InsufficientInventoryError) as exc_info:
            consume(hay, 6, mover=strict)

        assert Decimal(exc_info.value.on_hand) == Decimal("5")
        assert inventory_mover.get_site_inventory(tenant_id, NORTH, hay.id).quantity == Decimal("5")
        assert session.query(InventoryMovement).count() == 1


class TestReorderFlag:

    def test_flag_set_and_cleared(self, create_item, receive, consume, inventory_mover, tenant_id):
        feed = create_item("Mineral tubs", reorder_point=Decimal("10"))
        receive(feed, 15, "8.00")
        site = inventory_mover.get_site_inventory(tenant_id, NORTH, feed.id)
        assert site.is_below_reorder_point is False

        consume(feed, 5)
        assert site.is_below_reorder_point is True

        receive(feed, 20, "8.00")
        assert site.is_below_reorder_point is False

    def test_site_point_overrides_item_point(self, create_item, receive, consume, inventory_mover, tenant_id, session):
        feed = create_item("Mineral tubs", reorder_point=Decimal("10"))
        receive(feed, 15, "8.00")
        site = inventory_mover.get_site_inventory(tenant_id, NORTH, feed.id)
        site.reorder_point = Decimal("2")
        session.flush()

        consume(feed, 5)

        assert site.is_below_reorder_point is False

    def test_no_point_never_flags(self, consume, inventory_mover, tenant_id, hay):
        consume(hay, 1)
        assert inventory_mover.get_site_inventory(tenant_id, NORTH, hay.id).is_below_reorder_point is False


class TestMovementValidation:

    def test_zero_delta_rejected(self, inventory_mover, tenant_id, hay):
        with pytest.raises(InvalidAmountError):
            inventory_mover.apply_movement(tenant_id, NORTH, hay.id, Decimal("0"), MovementType.ADJUSTMENT)

    def test_in_with_negative_delta_rejected(self, inventory_mover, tenant_id, hay):
        with pytest.raises(InvalidAmountError):
            inventory_mover.apply_movement(tenant_id, NORTH, hay.id, Decimal("-1"), MovementType.IN)

    def test_out_with_positive_delta_rejected(self, inventory_mover, tenant_id, hay):
        with pytest.raises(InvalidAmountError):
            inventory_mover.apply_movement(tenant_id, NORTH, hay.id, Decimal("1"), MovementType.OUT)

    def test_negative_unit_cost_rejected(self, inventory_mover, tenant_id, hay):
        with pytest.raises(InvalidAmountError):
            inventory_mover.apply_movement(
                tenant_id, NORTH, hay.id, Decimal("1"), MovementType.IN, unit_cost=Decimal("-2")
            )

    def test_unknown_item(self, inventory_mover, tenant_id):
        with pytest.raises(InventoryItemNotFoundError):
            inventory_mover.apply_movement(tenant_id, NORTH, uuid4(), Decimal("1"), MovementType.IN)


class TestEventReversal:

    def test_reverse_event_movements(self, receive, consume, inventory_mover, tenant_id, hay):
        receive(hay, 10, "2.00")
        consume(hay, 4, event_id="evt-1")

        reversals = inventory_mover.reverse_event_movements(tenant_id, "evt-1")

        assert len(reversals) == 1
        assert reversals[0].movement_type == "adjustment"
        assert reversals[0].quantity == Decimal("4")
        assert inventory_mover.get_site_inventory(tenant_id, NORTH, hay.id).quantity == Decimal("10")
        assert len(inventory_mover.movements_for_event(tenant_id, "evt-1")) == 2

    def test_reversal_is_not_repeated(self, receive, consume, inventory_mover, tenant_id, hay):
        receive(hay, 10, "2.00")
        consume(hay, 4, event_id="evt-1")
        inventory_mover.reverse_event_movements(tenant_id, "evt-1")

        assert inventory_mover.reverse_event_movements(tenant_id, "evt-1") == []
        assert inventory_mover.get_site_inventory(tenant_id, NORTH, hay.id).quantity == Decimal("10")

    def test_reversal_keeps_catalog_cost(self, receive, consume, inventory_mover, tenant_id, hay):
        receive(hay, 10, "5.00")
        receive(hay, 10, "3.00")
        consume(hay, 4, event_id="evt-1")

        inventory_mover.reverse_event_movements(tenant_id, "evt-1")

        assert hay.last_purchase_price == Decimal("3.00")
        assert hay.average_cost == Decimal("4")
        assert inventory_mover.get_site_inventory(tenant_id, NORTH, hay.id).average_cost == Decimal("4")


class TestTransfers:

    def _transfer(self, inventory_mover, tenant_id, item, quantity, from_site, to_site):
        cost = inventory_mover.current_unit_cost(tenant_id, from_site, item.id)
        inventory_mover.apply_movement(
            tenant_id, from_site, item.id, -Decimal(quantity), MovementType.OUT,
            unit_cost=cost, event_id="evt-move", related_site_id=to_site,
        )
        inventory_mover.apply_movement(
            tenant_id, to_site, item.id, Decimal(quantity), MovementType.IN,
            unit_cost=cost, event_id="evt-move", related_site_id=from_site,
        )

    def test_transfer_keeps_catalog_cost(self, receive, inventory_mover, tenant_id, hay):
        receive(hay, 10, "4.00", site_id=SOUTH)
        receive(hay, 10, "2.00", site_id=NORTH)
        assert hay.average_cost == Decimal("3")

        self._transfer(inventory_mover, tenant_id, hay, "5", SOUTH, NORTH)

        assert hay.average_cost == Decimal("3")
        assert hay.last_purchase_price == Decimal("2.00")
        assert hay.total_quantity == Decimal("20")
        north = inventory_mover.get_site_inventory(tenant_id, NORTH, hay.id)
        assert north.quantity == Decimal("15")
        assert abs(north.average_cost * 15 - Decimal("40")) < Decimal("0.0001")

    def test_transfer_reversal_keeps_catalog_cost(self, receive, inventory_mover, tenant_id, hay):
        receive(hay, 10, "4.00", site_id=SOUTH)
        receive(hay, 10, "2.00", site_id=NORTH)
        self._transfer(inventory_mover, tenant_id, hay, "5", SOUTH, NORTH)

        inventory_mover.reverse_event_movements(tenant_id, "evt-move")

        assert hay.average_cost == Decimal("3")
        assert hay.last_purchase_price == Decimal("2.00")
        assert inventory_mover.get_site_inventory(tenant_id, SOUTH, hay.id).quantity == Decimal("10")
