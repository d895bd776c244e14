"""
Farm event posting: ledger effect by event type plus inventory movements.

Tests cover:
- Feeding expensed or capitalized per policy, at site average cost
- Purchases for cash or on account, stocking inventory
- Sales with revenue and cost of goods sold
- Labor, maintenance and treatment costs
- Transfers move stock between sites with no ledger transaction
- Count adjustments valued at cost
- Reversal restores stock and cancels the event
- Unknown types, missing sites and negative stock refuse
"""

from decimal import Decimal
from uuid import uuid4

import pytest

from farm_kernel.domain.dtos import MovementType
from farm_kernel.domain.policy import FeedCostingMode, NegativeInventoryPolicy
from farm_kernel.exceptions import (
    DocumentNotFoundError,
    DocumentStateError,
    InsufficientInventoryError,
    UnknownDocumentTypeError,
)
from farm_kernel.models.ledger import LedgerTransaction
from farm_modules.events.orm import EventStatus, EventType, ItemDirection, PaymentMethod
from farm_modules.inventory.orm import InventoryMovement
from farm_services import DocumentType, PostingStatus

NORTH = "site-north"
SOUTH = "site-south"

USED = ItemDirection.USED.value
RECEIVED = ItemDirection.RECEIVED.value
ADJUSTED = ItemDirection.ADJUSTED.value


def _entries(selector, tenant_id, transaction_id):
    view = selector.get_transaction(tenant_id, transaction_id)
    return [(e.account_code, e.debit, e.credit) for e in view.entries]


def _on_hand(inventory_mover, tenant_id, item, site_id=NORTH):
    return inventory_mover.get_site_inventory(tenant_id, site_id, item.id).quantity


@pytest.fixture
def hay(create_item, inventory_mover, tenant_id):
    """Ten bales on hand at the north site, at 5.00 each."""
    item = create_item("Hay bales")
    inventory_mover.apply_movement(
        tenant_id, NORTH, item.id, Decimal("10"), MovementType.IN, unit_cost=Decimal("5.00")
    )
    return item


# =============================================================================
# Consumption
# =============================================================================


class TestFeeding:

    def test_feed_expensed_at_average_cost(
        self, poster, create_event, hay, selector, inventory_mover, tenant_id, actor_id
    ):
        event = create_event(EventType.FEEDING.value, items=[(hay, USED, 4, None)])

        result = poster.post(DocumentType.EVENT, tenant_id, event.id, actor_id)

        assert result.status == PostingStatus.POSTED
        assert event.status == EventStatus.POSTED.value
        assert _entries(selector, tenant_id, result.ledger_transaction_id) == [
            ("6000", Decimal("20.00"), Decimal("0")),
            ("1200", Decimal("0"), Decimal("20.00")),
        ]
        assert _on_hand(inventory_mover, tenant_id, hay) == Decimal("6")

    def test_feed_capitalized_into_livestock(
        self, make_poster, create_event, hay, selector, tenant_id, actor_id
    ):
        poster = make_poster(feed_costing_mode=FeedCostingMode.CAPITALIZE)
        event = create_event(EventType.FEEDING.value, items=[(hay, USED, 4, None)])

        result = poster.post(DocumentType.EVENT, tenant_id, event.id, actor_id)

        assert _entries(selector, tenant_id, result.ledger_transaction_id) == [
            ("1300", Decimal("20.00"), Decimal("0")),
            ("1200", Decimal("0"), Decimal("20.00")),
        ]

    def test_movement_tagged_with_event(
        self, poster, create_event, hay, inventory_mover, tenant_id, actor_id
    ):
        event = create_event(EventType.FEEDING.value, items=[(hay, USED, 4, None)])

        result = poster.post(DocumentType.EVENT, tenant_id, event.id, actor_id)

        assert len(result.movements) == 1
        movement = result.movements[0]
        assert movement.event_id == str(event.id)
        assert movement.event_type == "feeding"
        assert movement.quantity == Decimal("-4")
        assert inventory_mover.movements_for_event(tenant_id, str(event.id)) == [movement]

    def test_treatment_costs_items_used(self, poster, create_event, create_item, inventory_mover, selector, tenant_id, actor_id):
        vaccine = create_item("Vaccine doses")
        inventory_mover.apply_movement(
            tenant_id, NORTH, vaccine.id, Decimal("20"), MovementType.IN, unit_cost=Decimal("3.00")
        )
        event = create_event(EventType.TREATMENT.value, items=[(vaccine, USED, 5, None)])

        result = poster.post(DocumentType.EVENT, tenant_id, event.id, actor_id)

        assert _entries(selector, tenant_id, result.ledger_transaction_id) == [
            ("6100", Decimal("15.00"), Decimal("0")),
            ("1200", Decimal("0"), Decimal("15.00")),
        ]


# =============================================================================
# Trade
# =============================================================================


class TestPurchase:

    def test_cash_purchase_stocks_inventory(
        self, poster, create_event, create_item, inventory_mover, selector, tenant_id, actor_id
    ):
        feed = create_item("Cattle cubes")
        event = create_event(EventType.PURCHASE.value, items=[(feed, RECEIVED, 10, "5.00")])

        result = poster.post(DocumentType.EVENT, tenant_id, event.id, actor_id)

        assert _entries(selector, tenant_id, result.ledger_transaction_id) == [
            ("1200", Decimal("50.00"), Decimal("0")),
            ("1000", Decimal("0"), Decimal("50.00")),
        ]
        site = inventory_mover.get_site_inventory(tenant_id, NORTH, feed.id)
        assert site.quantity == Decimal("10")
        assert site.average_cost == Decimal("5.00")

    def test_purchase_on_account_credits_payables(
        self, poster, create_event, create_item, selector, tenant_id, actor_id
    ):
        feed = create_item("Cattle cubes")
        event = create_event(
            EventType.PURCHASE.value,
            items=[(feed, RECEIVED, 10, "5.00")],
            payment_method=PaymentMethod.ACCOUNT.value,
            vendor_id="vendor-feedmill",
        )

        result = poster.post(DocumentType.EVENT, tenant_id, event.id, actor_id)

        entries = selector.get_transaction(tenant_id, result.ledger_transaction_id).entries
        assert [(e.account_code, e.credit) for e in entries if e.credit] == [("2000", Decimal("50.00"))]
        assert (entries[1].entity_type, entries[1].entity_id) == ("VENDOR", "vendor-feedmill")

    def test_explicit_total_cost_wins(self, poster, create_event, create_item, selector, tenant_id, actor_id):
        feed = create_item("Cattle cubes")
        event = create_event(
            EventType.PURCHASE.value,
            items=[(feed, RECEIVED, 10, "5.00")],
            total_cost=Decimal("47.50"),
        )

        result = poster.post(DocumentType.EVENT, tenant_id, event.id, actor_id)

        view = selector.get_transaction(tenant_id, result.ledger_transaction_id)
        assert view.total_debits == Decimal("47.50")


class TestSale:

    def test_sale_on_account_with_cost_of_goods(
        self, poster, create_event, hay, selector, inventory_mover, tenant_id, actor_id
    ):
        event = create_event(
            EventType.SALE.value,
            items=[(hay, USED, 2, None)],
            total_revenue=Decimal("300.00"),
            payment_method=PaymentMethod.ACCOUNT.value,
            customer_id="cust-neighbor",
        )

        result = poster.post(DocumentType.EVENT, tenant_id, event.id, actor_id)

        assert _entries(selector, tenant_id, result.ledger_transaction_id) == [
            ("1100", Decimal("300.00"), Decimal("0")),
            ("4000", Decimal("0"), Decimal("300.00")),
            ("5000", Decimal("10.00"), Decimal("0")),
            ("1200", Decimal("0"), Decimal("10.00")),
        ]
        receivable = selector.get_transaction(tenant_id, result.ledger_transaction_id).entries[0]
        assert receivable.entity_type == "CUSTOMER"
        assert _on_hand(inventory_mover, tenant_id, hay) == Decimal("8")

    def test_cash_sale_without_items(self, poster, create_event, selector, tenant_id, actor_id):
        event = create_event(EventType.SALE.value, total_revenue=Decimal("120.00"))

        result = poster.post(DocumentType.EVENT, tenant_id, event.id, actor_id)

        assert _entries(selector, tenant_id, result.ledger_transaction_id) == [
            ("1000", Decimal("120.00"), Decimal("0")),
            ("4000", Decimal("0"), Decimal("120.00")),
        ]


# =============================================================================
# Operating costs
# =============================================================================


class TestOperatingCosts:

    def test_labor_hours_times_rate(self, poster, create_event, selector, tenant_id, actor_id):
        event = create_event(
            EventType.LABOR.value, labor_hours=Decimal("8"), labor_rate=Decimal("15.00")
        )

        result = poster.post(DocumentType.EVENT, tenant_id, event.id, actor_id)

        assert _entries(selector, tenant_id, result.ledger_transaction_id) == [
            ("6200", Decimal("120.00"), Decimal("0")),
            ("1000", Decimal("0"), Decimal("120.00")),
        ]

    def test_labor_falls_back_to_total_cost(self, poster, create_event, selector, tenant_id, actor_id):
        event = create_event(EventType.LABOR.value, total_cost=Decimal("90.00"))

        result = poster.post(DocumentType.EVENT, tenant_id, event.id, actor_id)

        view = selector.get_transaction(tenant_id, result.ledger_transaction_id)
        assert view.total_debits == Decimal("90.00")

    def test_maintenance(self, poster, create_event, selector, tenant_id, actor_id):
        event = create_event(EventType.MAINTENANCE.value, total_cost=Decimal("75.00"))

        result = poster.post(DocumentType.EVENT, tenant_id, event.id, actor_id)

        assert _entries(selector, tenant_id, result.ledger_transaction_id) == [
            ("6300", Decimal("75.00"), Decimal("0")),
            ("1000", Decimal("0"), Decimal("75.00")),
        ]

    def test_zero_cost_event_posts_without_transaction(self, poster, create_event, session, tenant_id, actor_id):
        event = create_event(EventType.MAINTENANCE.value)

        result = poster.post(DocumentType.EVENT, tenant_id, event.id, actor_id)

        assert result.ledger_transaction_id is None
        assert event.status == EventStatus.POSTED.value
        assert session.query(LedgerTransaction).count() == 0


# =============================================================================
# Stock-only events
# =============================================================================


class TestTransfer:

    def test_transfer_moves_stock_only(
        self, poster, create_event, hay, session, inventory_mover, tenant_id, actor_id
    ):
        event = create_event(
            EventType.TRANSFER.value, items=[(hay, USED, 4, None)], to_site_id=SOUTH
        )

        result = poster.post(DocumentType.EVENT, tenant_id, event.id, actor_id)

        assert result.ledger_transaction_id is None
        assert session.query(LedgerTransaction).count() == 0
        assert _on_hand(inventory_mover, tenant_id, hay, NORTH) == Decimal("6")
        south = inventory_mover.get_site_inventory(tenant_id, SOUTH, hay.id)
        assert south.quantity == Decimal("4")
        assert south.average_cost == Decimal("5.00")
        assert hay.total_quantity == Decimal("10")
        assert [m.related_site_id for m in result.movements] == [SOUTH, NORTH]

    def test_transfer_needs_destination(self, poster, create_event, hay, tenant_id, actor_id):
        event = create_event(EventType.TRANSFER.value, items=[(hay, USED, 4, None)])

        with pytest.raises(DocumentStateError, match="destination"):
            poster.post(DocumentType.EVENT, tenant_id, event.id, actor_id)

    def test_transfer_reversal_returns_stock(
        self, poster, create_event, hay, inventory_mover, tenant_id, actor_id
    ):
        event = create_event(
            EventType.TRANSFER.value, items=[(hay, USED, 4, None)], to_site_id=SOUTH
        )
        poster.post(DocumentType.EVENT, tenant_id, event.id, actor_id)

        result = poster.reverse(DocumentType.EVENT, tenant_id, event.id, "Wrong pasture", actor_id)

        assert result.ledger_transaction_id is None
        assert event.status == EventStatus.CANCELLED.value
        assert _on_hand(inventory_mover, tenant_id, hay, NORTH) == Decimal("10")
        assert _on_hand(inventory_mover, tenant_id, hay, SOUTH) == Decimal("0")


class TestAdjustment:

    def test_shrinkage_booked_as_loss(
        self, poster, create_event, hay, selector, inventory_mover, tenant_id, actor_id
    ):
        event = create_event(EventType.ADJUSTMENT.value, items=[(hay, ADJUSTED, -2, None)])

        result = poster.post(DocumentType.EVENT, tenant_id, event.id, actor_id)

        assert _entries(selector, tenant_id, result.ledger_transaction_id) == [
            ("6500", Decimal("10.00"), Decimal("0")),
            ("1200", Decimal("0"), Decimal("10.00")),
        ]
        assert _on_hand(inventory_mover, tenant_id, hay) == Decimal("8")

    def test_count_gain_booked_to_inventory(self, poster, create_event, hay, selector, tenant_id, actor_id):
        event = create_event(EventType.ADJUSTMENT.value, items=[(hay, ADJUSTED, 3, None)])

        result = poster.post(DocumentType.EVENT, tenant_id, event.id, actor_id)

        assert _entries(selector, tenant_id, result.ledger_transaction_id) == [
            ("1200", Decimal("15.00"), Decimal("0")),
            ("6500", Decimal("0"), Decimal("15.00")),
        ]


# =============================================================================
# Reversal
# =============================================================================


class TestEventReversal:

    def test_reversal_restores_stock_and_ledger(
        self, poster, create_event, hay, selector, inventory_mover, tenant_id, actor_id, chart
    ):
        event = create_event(EventType.FEEDING.value, items=[(hay, USED, 4, None)])
        poster.post(DocumentType.EVENT, tenant_id, event.id, actor_id)

        result = poster.reverse(DocumentType.EVENT, tenant_id, event.id, "Logged twice", actor_id)

        assert result.status == PostingStatus.REVERSED
        assert event.status == EventStatus.CANCELLED.value
        assert _on_hand(inventory_mover, tenant_id, hay) == Decimal("10")
        assert selector.account_balance(tenant_id, chart["6000"].id) == Decimal("0")
        assert [m.movement_type for m in result.movements] == ["adjustment"]

    def test_cancelled_event_cannot_be_reposted(self, poster, create_event, hay, tenant_id, actor_id):
        event = create_event(EventType.FEEDING.value, items=[(hay, USED, 4, None)])
        poster.post(DocumentType.EVENT, tenant_id, event.id, actor_id)
        poster.reverse(DocumentType.EVENT, tenant_id, event.id, "Logged twice", actor_id)

        with pytest.raises(DocumentStateError, match="cannot be posted again"):
            poster.post(DocumentType.EVENT, tenant_id, event.id, actor_id)
        assert event.status == EventStatus.CANCELLED.value


# =============================================================================
# Refusals
# =============================================================================


class TestEventRefusals:

    def test_unknown_event_type(self, poster, create_event, tenant_id, actor_id):
        event = create_event("roundup")

        with pytest.raises(UnknownDocumentTypeError):
            poster.post(DocumentType.EVENT, tenant_id, event.id, actor_id)

    def test_items_need_a_site(self, poster, create_event, hay, tenant_id, actor_id):
        event = create_event(EventType.FEEDING.value, items=[(hay, USED, 1, None)], site_id=None)

        with pytest.raises(DocumentStateError, match="need a site"):
            poster.post(DocumentType.EVENT, tenant_id, event.id, actor_id)

    def test_unknown_event(self, poster, tenant_id, actor_id):
        with pytest.raises(DocumentNotFoundError):
            poster.post(DocumentType.EVENT, tenant_id, uuid4(), actor_id)

    def test_negative_stock_rejected_rolls_back(
        self, make_poster, create_event, hay, session, inventory_mover, tenant_id, actor_id
    ):
        strict = make_poster(negative_inventory=NegativeInventoryPolicy.REJECT)
        event = create_event(EventType.FEEDING.value, items=[(hay, USED, 12, None)])

        with pytest.raises(InsufficientInventoryError):
            with session.begin_nested():
                strict.post(DocumentType.EVENT, tenant_id, event.id, actor_id)

        assert session.query(LedgerTransaction).count() == 0
        assert session.query(InventoryMovement).count() == 1
        assert _on_hand(inventory_mover, tenant_id, hay) == Decimal("10")
        session.refresh(event)
        assert event.status == EventStatus.COMPLETED.value
