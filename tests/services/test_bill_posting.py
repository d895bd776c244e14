"""
Bill posting through the DocumentPoster.

Tests cover:
- Dr each line's expense account, Cr A/P for the total
- Vendor sub-ledger tagging on the A/P line
- PENDING bills post; POSTED bills are already posted
- A line without an account refuses and writes nothing
- Void restores balances
"""

from decimal import Decimal

import pytest

from farm_kernel.exceptions import DocumentStateError, MissingLineAccountError
from farm_kernel.models.ledger import LedgerEntry, LedgerTransaction
from farm_modules.ap.orm import BillStatus
from farm_services import DocumentType, PostingStatus


class TestBillPosting:

    def test_feed_and_fuel_bill(self, poster, create_bill, selector, tenant_id, actor_id):
        bill = create_bill([("100.00", "6000"), ("50.00", "6400")])

        result = poster.post(DocumentType.BILL, tenant_id, bill.id, actor_id)

        assert result.status == PostingStatus.POSTED
        assert bill.status == BillStatus.POSTED.value
        assert bill.total == Decimal("150.00")
        view = selector.get_transaction(tenant_id, result.ledger_transaction_id)
        assert [(e.account_code, e.debit, e.credit) for e in view.entries] == [
            ("6000", Decimal("100.00"), Decimal("0")),
            ("2000", Decimal("0"), Decimal("150.00")),
            ("6400", Decimal("50.00"), Decimal("0")),
        ]

    def test_payable_tagged_with_vendor(self, poster, create_bill, selector, tenant_id, actor_id):
        bill = create_bill([("80.00", "6300")], vendor_id="vendor-co-op")

        result = poster.post(DocumentType.BILL, tenant_id, bill.id, actor_id)

        view = selector.get_transaction(tenant_id, result.ledger_transaction_id)
        payable = [e for e in view.entries if e.account_code == "2000"]
        assert [(e.entity_type, e.entity_id) for e in payable] == [("VENDOR", "vendor-co-op")]

    def test_balances_after_bill(self, poster, create_bill, selector, tenant_id, actor_id, chart):
        bill = create_bill([("100.00", "6000"), ("50.00", "6400")])
        poster.post(DocumentType.BILL, tenant_id, bill.id, actor_id)

        assert selector.account_balance(tenant_id, chart["2000"].id) == Decimal("-150.00")
        assert selector.account_balance(tenant_id, chart["6400"].id) == Decimal("50.00")
        assert selector.trial_balance(tenant_id).is_balanced()

    def test_pending_bill_posts(self, poster, create_bill, tenant_id, actor_id):
        bill = create_bill([("20.00", "6900")], status=BillStatus.PENDING.value)

        result = poster.post(DocumentType.BILL, tenant_id, bill.id, actor_id)

        assert result.status == PostingStatus.POSTED
        assert bill.status == BillStatus.POSTED.value

    def test_repost_is_already_posted(self, poster, create_bill, session, tenant_id, actor_id):
        bill = create_bill([("20.00", "6900")])
        poster.post(DocumentType.BILL, tenant_id, bill.id, actor_id)

        assert poster.post(DocumentType.BILL, tenant_id, bill.id, actor_id).already_posted
        assert session.query(LedgerTransaction).count() == 1


class TestBillPreconditions:

    def test_missing_line_account_writes_nothing(self, poster, create_bill, session, tenant_id, actor_id):
        bill = create_bill([("100.00", "6000"), ("50.00", None)])

        with pytest.raises(MissingLineAccountError) as exc_info:
            poster.post(DocumentType.BILL, tenant_id, bill.id, actor_id)

        assert exc_info.value.code == "MISSING_LINE_ACCOUNT"
        assert exc_info.value.line_number == 2
        assert bill.status == BillStatus.DRAFT.value
        assert bill.ledger_transaction_id is None
        assert session.query(LedgerTransaction).count() == 0
        assert session.query(LedgerEntry).count() == 0

    def test_paid_bill_cannot_be_posted(self, poster, create_bill, tenant_id, actor_id):
        bill = create_bill([("10.00", "6000")], status=BillStatus.PAID.value)

        with pytest.raises(DocumentStateError):
            poster.post(DocumentType.BILL, tenant_id, bill.id, actor_id)


class TestBillVoid:

    def test_void_restores_balances(self, poster, create_bill, selector, tenant_id, actor_id):
        bill = create_bill([("100.00", "6000"), ("50.00", "6400")])
        poster.post(DocumentType.BILL, tenant_id, bill.id, actor_id)

        result = poster.reverse(DocumentType.BILL, tenant_id, bill.id, "Entered against wrong vendor", actor_id)

        assert result.status == PostingStatus.REVERSED
        assert bill.status == BillStatus.VOID.value
        assert all(row.balance == 0 for row in selector.account_balances(tenant_id))
