"""
farm_services.adapters -- One PostableDocument adapter per source document type.

Responsibility:
    Binds each ``farm_modules`` document to its posting profile, status
    machine, inventory movements and payment allocation.  ``ADAPTERS`` is
    the registry the DocumentPoster dispatches through.

Architecture position:
    Services -- adapters.  Imports module ORM models and profiles; never
    imported by ``farm_kernel`` or ``farm_modules``.

Invariants enforced:
    - Payments never exceed the target's open balance (within tolerance).
    - A check's amount equals its bill payments plus expense lines; a
      receipt's allocations never exceed its amount.
    - A paid invoice or bill cannot be voided.
"""

from __future__ import annotations

from datetime import date
from decimal import Decimal
from typing import Any, Mapping
from uuid import UUID

from farm_kernel.domain.dtos import EntityType, LedgerLineSpec, MovementSpec, MovementType
from farm_kernel.domain.posting_profile import PostingProfile
from farm_kernel.domain.values import ZERO, to_decimal, within_tolerance
from farm_kernel.exceptions import (
    DocumentNotFoundError,
    DocumentStateError,
    InvalidAmountError,
    LedgerValidationError,
    MissingLineAccountError,
    PaymentAllocationError,
    UnknownDocumentTypeError,
)
from farm_kernel.logging_config import get_logger
from farm_modules.ap.orm import Bill, BillStatus, Check, CheckStatus
from farm_modules.ap.profiles import BILL_POSTED, CHECK_POSTED
from farm_modules.ar.orm import Invoice, InvoiceStatus, Receipt, ReceiptStatus
from farm_modules.ar.profiles import INVOICE_SENT, RECEIPT_POSTED
from farm_modules.events.orm import (
    EventStatus,
    EventType,
    FarmEvent,
    FarmEventItem,
    ItemDirection,
    PaymentMethod,
)
from farm_modules.events.profiles import EVENT_PROFILES
from farm_modules.gl.orm import JournalEntry, JournalEntryLine, JournalEntryStatus
from farm_modules.gl.profiles import JOURNAL_ENTRY_POSTED
from farm_services.postable import DocumentType, PostableDocument, StatusTransition

logger = get_logger("services.adapters")


# =============================================================================
# Payment allocation
# =============================================================================


def _apply_payment(target: Any, amount: Decimal, tolerance: Decimal, partial: str, paid: str) -> None:
    target.amount_paid = (target.amount_paid or ZERO) + amount
    target.balance = target.total - target.amount_paid
    target.status = paid if target.balance <= tolerance else partial
    logger.info(
        "payment_applied",
        extra={
            "target_id": str(target.id),
            "amount": str(amount),
            "balance": str(target.balance),
            "status": target.status,
        },
    )


def _unapply_payment(target: Any, amount: Decimal, tolerance: Decimal, partial: str, open_: str) -> None:
    target.amount_paid = (target.amount_paid or ZERO) - amount
    target.balance = target.total - target.amount_paid
    target.status = open_ if target.amount_paid <= tolerance else partial
    logger.info(
        "payment_unapplied",
        extra={
            "target_id": str(target.id),
            "amount": str(amount),
            "balance": str(target.balance),
            "status": target.status,
        },
    )


class _PaymentDocument(PostableDocument):
    """
    Shared allocation logic of checks (paying bills) and receipts
    (settling invoices).
    """

    payments_attr: str
    target_attr: str
    target_adapter: type[PostableDocument]
    payable_statuses: frozenset[str]

    def _collect_targets(self) -> list[tuple[Any, Decimal]]:
        totals: dict[UUID, Decimal] = {}
        for number, payment in enumerate(getattr(self.document, self.payments_attr), start=1):
            amount = to_decimal(payment.amount, f"{self.payments_attr}[{number}].amount")
            if amount <= ZERO:
                raise InvalidAmountError(f"{self.payments_attr}[{number}].amount", payment.amount)
            target_id = getattr(payment, self.target_attr)
            totals[target_id] = totals.get(target_id, ZERO) + amount

        tolerance = self.context.policy.balance_tolerance
        targets = []
        # Lock targets in a stable order
        for target_id in sorted(totals, key=str):
            amount = totals[target_id]
            try:
                target = self.target_adapter.load(
                    self.context.session, self.tenant_id, target_id
                )
            except DocumentNotFoundError:
                raise PaymentAllocationError(
                    str(target_id), f"{self.target_adapter.document_type.value} not found"
                ) from None
            if target.status not in self.payable_statuses:
                raise PaymentAllocationError(
                    str(target_id), f"status is {target.status}"
                )
            if amount - (target.balance or ZERO) >= tolerance:
                raise PaymentAllocationError(
                    str(target_id),
                    f"payment {amount} exceeds open balance {target.balance}",
                )
            targets.append((target, amount))
        return targets

    def _payments_to_reverse(self) -> list[tuple[Any, Decimal]]:
        totals: dict[UUID, Decimal] = {}
        for payment in getattr(self.document, self.payments_attr):
            target_id = getattr(payment, self.target_attr)
            totals[target_id] = totals.get(target_id, ZERO) + to_decimal(payment.amount)
        return [
            (self.target_adapter.load(self.context.session, self.tenant_id, target_id), amount)
            for target_id, amount in sorted(totals.items(), key=lambda kv: str(kv[0]))
        ]

    def apply_side_effects(self) -> None:
        for target, amount in self._targets:
            _apply_payment(
                target,
                amount,
                self.context.policy.balance_tolerance,
                partial="PARTIAL",
                paid="PAID",
            )

    def reverse_side_effects(self, actor_id, reversal_transaction_id) -> None:
        today = self.context.clock.today()
        for target, amount in self._payments_to_reverse():
            _unapply_payment(
                target,
                amount,
                self.context.policy.balance_tolerance,
                partial="PARTIAL",
                open_=self._open_status(target, today),
            )

    def _open_status(self, target: Any, today: date) -> str:
        """Status of an unpaid target: OVERDUE past its due date, else posted."""
        if target.due_date is not None and target.due_date < today:
            return "OVERDUE"
        return self.target_adapter.transition.posted


# =============================================================================
# Accounts receivable
# =============================================================================


class InvoiceDocument(PostableDocument):
    """Invoice send: Dr A/R, Cr revenue per line."""

    document_type = DocumentType.INVOICE
    model = Invoice
    key_prefix = "invoice"
    transition = StatusTransition(
        postable=frozenset({InvoiceStatus.DRAFT.value}),
        posted=InvoiceStatus.SENT.value,
        reversible=frozenset(
            {
                InvoiceStatus.SENT.value,
                InvoiceStatus.PARTIAL.value,
                InvoiceStatus.PAID.value,
                InvoiceStatus.OVERDUE.value,
            }
        ),
        reversed=InvoiceStatus.VOID.value,
    )

    def account_mapping(self) -> PostingProfile:
        return INVOICE_SENT

    def prepare(self) -> None:
        if not self.document.lines:
            raise LedgerValidationError("invoice has no line items")
        self.document.recalculate_totals()

    def transaction_date(self) -> date:
        return self.document.invoice_date

    def description(self) -> str:
        return f"Invoice {self.document.invoice_number}"

    def party(self):
        if self.document.customer_id:
            return (EntityType.CUSTOMER, self.document.customer_id)
        return None

    def check_reversible(self) -> None:
        _refuse_void_when_paid(self)


class ReceiptDocument(_PaymentDocument):
    """Receipt post: Dr deposit account, Cr A/R and income."""

    document_type = DocumentType.RECEIPT
    model = Receipt
    key_prefix = "receipt"
    transition = StatusTransition(
        postable=frozenset({ReceiptStatus.PENDING.value}),
        posted=ReceiptStatus.POSTED.value,
        reversible=frozenset({ReceiptStatus.POSTED.value, ReceiptStatus.DEPOSITED.value}),
        reversed=ReceiptStatus.VOID.value,
    )
    payments_attr = "invoice_payments"
    target_attr = "invoice_id"
    target_adapter = InvoiceDocument
    payable_statuses = frozenset(
        {InvoiceStatus.SENT.value, InvoiceStatus.PARTIAL.value, InvoiceStatus.OVERDUE.value}
    )

    def account_mapping(self) -> PostingProfile:
        return RECEIPT_POSTED

    def prepare(self) -> None:
        receipt = self.document
        self._targets = self._collect_targets()
        applied = sum((amount for _, amount in self._targets), ZERO)
        applied += sum(
            (to_decimal(line.amount, "income_lines.amount") for line in receipt.income_lines),
            ZERO,
        )
        amount = to_decimal(receipt.amount, "amount")
        if amount < ZERO:
            raise InvalidAmountError("amount", receipt.amount)
        if amount == ZERO:
            receipt.amount = amount = applied
        if applied - amount >= self.context.policy.balance_tolerance:
            raise PaymentAllocationError(
                str(receipt.id), f"allocations {applied} exceed receipt amount {amount}"
            )
        if amount == ZERO:
            raise LedgerValidationError("receipt has no amount or allocations")
        self.derived["unapplied_amount"] = max(amount - applied, ZERO)

    def transaction_date(self) -> date:
        return self.document.receipt_date

    def description(self) -> str:
        return f"Receipt {self.document.receipt_number}"

    def party(self):
        if self.document.customer_id:
            return (EntityType.CUSTOMER, self.document.customer_id)
        return None

    def bank_account_id(self) -> UUID | None:
        return self.document.deposit_account_id


# =============================================================================
# Accounts payable
# =============================================================================


class BillDocument(PostableDocument):
    """Bill post: Dr expense per line, Cr A/P."""

    document_type = DocumentType.BILL
    model = Bill
    key_prefix = "bill"
    transition = StatusTransition(
        postable=frozenset({BillStatus.DRAFT.value, BillStatus.PENDING.value}),
        posted=BillStatus.POSTED.value,
        reversible=frozenset(
            {
                BillStatus.POSTED.value,
                BillStatus.PARTIAL.value,
                BillStatus.PAID.value,
                BillStatus.OVERDUE.value,
            }
        ),
        reversed=BillStatus.VOID.value,
    )

    def account_mapping(self) -> PostingProfile:
        return BILL_POSTED

    def prepare(self) -> None:
        if not self.document.lines:
            raise LedgerValidationError("bill has no line items")
        self.document.recalculate_totals()

    def transaction_date(self) -> date:
        return self.document.bill_date

    def description(self) -> str:
        return f"Bill {self.document.bill_number}"

    def party(self):
        if self.document.vendor_id:
            return (EntityType.VENDOR, self.document.vendor_id)
        return None

    def check_reversible(self) -> None:
        _refuse_void_when_paid(self)


class CheckDocument(_PaymentDocument):
    """Check post: Dr A/P and direct expenses, Cr bank."""

    document_type = DocumentType.CHECK
    model = Check
    key_prefix = "check"
    transition = StatusTransition(
        postable=frozenset({CheckStatus.DRAFT.value}),
        posted=CheckStatus.POSTED.value,
        reversible=frozenset(
            {CheckStatus.POSTED.value, CheckStatus.PRINTED.value, CheckStatus.CLEARED.value}
        ),
        reversed=CheckStatus.VOID.value,
    )
    payments_attr = "bill_payments"
    target_attr = "bill_id"
    target_adapter = BillDocument
    payable_statuses = frozenset(
        {BillStatus.POSTED.value, BillStatus.PARTIAL.value, BillStatus.OVERDUE.value}
    )

    def account_mapping(self) -> PostingProfile:
        return CHECK_POSTED

    def prepare(self) -> None:
        check = self.document
        self._targets = self._collect_targets()
        allocated = sum((amount for _, amount in self._targets), ZERO)
        allocated += sum(
            (to_decimal(line.amount, "expense_lines.amount") for line in check.expense_lines),
            ZERO,
        )
        if allocated <= ZERO:
            raise LedgerValidationError("check has no bill payments or expense lines")
        amount = to_decimal(check.amount, "amount")
        if amount == ZERO:
            check.amount = allocated
        elif not within_tolerance(amount, allocated, self.context.policy.balance_tolerance):
            raise PaymentAllocationError(
                str(check.id), f"check amount {amount} does not match allocations {allocated}"
            )

    def transaction_date(self) -> date:
        return self.document.check_date

    def description(self) -> str:
        return f"Check {self.document.check_number}"

    def party(self):
        if self.document.vendor_id:
            return (EntityType.VENDOR, self.document.vendor_id)
        return None

    def bank_account_id(self) -> UUID | None:
        return self.document.bank_account_id


def _refuse_void_when_paid(adapter: PostableDocument) -> None:
    document = adapter.document
    if (document.amount_paid or ZERO) > ZERO:
        raise DocumentStateError(
            adapter.document_type.value,
            str(document.id),
            document.status,
            "void",
            "payments have been applied; void the payments first",
        )


# =============================================================================
# General ledger
# =============================================================================


class JournalEntryDocument(PostableDocument):
    """Journal entry post: lines as authored."""

    document_type = DocumentType.JOURNAL_ENTRY
    model = JournalEntry
    key_prefix = "je"
    transition = StatusTransition(
        postable=frozenset({JournalEntryStatus.DRAFT.value}),
        posted=JournalEntryStatus.POSTED.value,
        reversible=frozenset({JournalEntryStatus.POSTED.value}),
        reversed=JournalEntryStatus.REVERSED.value,
    )

    def account_mapping(self) -> PostingProfile:
        return JOURNAL_ENTRY_POSTED

    def prepare(self) -> None:
        entry = self.document
        if not entry.lines:
            raise LedgerValidationError("journal entry has no lines")
        for number, line in enumerate(entry.lines, start=1):
            if line.account_id is None:
                raise MissingLineAccountError(
                    self.document_type.value, str(entry.id), line.line_number or number
                )
            account = self.context.directory.get_account(self.tenant_id, line.account_id)
            line.account_code = account.code
            line.account_name = account.name

    def authored_lines(self) -> list[LedgerLineSpec]:
        return [
            LedgerLineSpec(
                account_id=line.account_id,
                debit=to_decimal(line.debit, f"lines[{line.line_number}].debit"),
                credit=to_decimal(line.credit, f"lines[{line.line_number}].credit"),
                memo=line.memo,
            )
            for line in self.document.lines
        ]

    def transaction_date(self) -> date:
        return self.document.entry_date

    def description(self) -> str:
        entry = self.document
        if entry.description:
            return f"Journal entry {entry.entry_number}: {entry.description}"
        return f"Journal entry {entry.entry_number}"

    def reverse_side_effects(self, actor_id, reversal_transaction_id) -> None:
        """Record the reversal as its own, already posted, journal entry."""
        original = self.document
        session = self.context.session
        now = self.context.clock.now()
        mirror = JournalEntry.create(
            session,
            tenant_id=original.tenant_id,
            entry_date=self.context.clock.today(),
            description=f"Reversal of {original.entry_number}",
            site_id=original.site_id,
            created_by=actor_id,
        )
        for line in original.lines:
            mirror.lines.append(
                JournalEntryLine(
                    line_number=line.line_number,
                    account_id=line.account_id,
                    account_code=line.account_code,
                    account_name=line.account_name,
                    debit=line.credit,
                    credit=line.debit,
                    memo=line.memo,
                    created_by=actor_id,
                )
            )
        mirror.status = JournalEntryStatus.POSTED.value
        mirror.ledger_transaction_id = reversal_transaction_id
        mirror.posted_at = now
        mirror.posted_by = actor_id
        mirror.reverses_entry_id = original.id
        session.flush()
        original.reversed_by_entry_id = mirror.id


# =============================================================================
# Farm events
# =============================================================================


class EventDocument(PostableDocument):
    """Farm event: profile by event type, plus inventory movements."""

    document_type = DocumentType.EVENT
    model = FarmEvent
    key_prefix = "event"
    transition = StatusTransition(
        postable=frozenset(
            {EventStatus.DRAFT.value, EventStatus.PENDING.value, EventStatus.COMPLETED.value}
        ),
        posted=EventStatus.POSTED.value,
        reversible=frozenset({EventStatus.POSTED.value}),
        reversed=EventStatus.CANCELLED.value,
    )

    @property
    def event_type(self) -> EventType:
        try:
            return EventType(self.document.type)
        except ValueError:
            raise UnknownDocumentTypeError(f"event:{self.document.type}") from None

    def account_mapping(self) -> PostingProfile:
        return EVENT_PROFILES[self.event_type]

    def prepare(self) -> None:
        event = self.document
        event_type = self.event_type
        if event.items and not event.site_id:
            raise DocumentStateError(
                "event", str(event.id), event.status, "post", "inventory events need a site"
            )
        if event_type == EventType.TRANSFER and not event.to_site_id:
            raise DocumentStateError(
                "event", str(event.id), event.status, "post", "transfers need a destination site"
            )
        for number, item in enumerate(event.items, start=1):
            quantity = to_decimal(item.quantity, f"items[{number}].quantity")
            direction = ItemDirection(item.direction)
            if quantity == ZERO or (direction != ItemDirection.ADJUSTED and quantity < ZERO):
                raise InvalidAmountError(f"items[{number}].quantity", item.quantity)

        used = event.items_by_direction(ItemDirection.USED)
        received = event.items_by_direction(ItemDirection.RECEIVED)

        if event.total_cost is not None:
            total_cost = to_decimal(event.total_cost, "total_cost")
        else:
            total_cost = sum((self._item_cost(i) for i in used + received), ZERO)

        hours = to_decimal(event.labor_hours, "labor_hours")
        rate = to_decimal(event.labor_rate, "labor_rate")
        labor_amount = hours * rate if hours > ZERO and rate > ZERO else total_cost

        adjustment_value = sum(
            (self._signed_item_value(i) for i in event.items_by_direction(ItemDirection.ADJUSTED)),
            ZERO,
        )

        self.derived.update(
            total_cost=total_cost,
            total_revenue=to_decimal(event.total_revenue, "total_revenue"),
            cost_of_items_sold=sum((self._item_cost(i) for i in used), ZERO),
            labor_amount=labor_amount,
            adjustment_gain=max(adjustment_value, ZERO),
            adjustment_loss=max(-adjustment_value, ZERO),
        )

    def _unit_cost(self, item: FarmEventItem) -> Decimal:
        if item.unit_cost is not None:
            return to_decimal(item.unit_cost, "unit_cost")
        return self.context.inventory.current_unit_cost(
            self.tenant_id, self.document.site_id, item.item_id
        )

    def _item_cost(self, item: FarmEventItem) -> Decimal:
        if item.total_cost is not None:
            return to_decimal(item.total_cost, "total_cost")
        return abs(to_decimal(item.quantity)) * self._unit_cost(item)

    def _signed_item_value(self, item: FarmEventItem) -> Decimal:
        return to_decimal(item.quantity) * self._unit_cost(item)

    def movements(self) -> list[MovementSpec]:
        event = self.document
        specs: list[MovementSpec] = []
        if self.event_type == EventType.TRANSFER:
            for item in event.items:
                quantity = abs(to_decimal(item.quantity))
                cost = self._unit_cost(item)
                specs.append(
                    MovementSpec(
                        item_id=item.item_id,
                        quantity_delta=-quantity,
                        movement_type=MovementType.OUT,
                        unit_cost=cost,
                        related_site_id=event.to_site_id,
                    )
                )
                specs.append(
                    MovementSpec(
                        item_id=item.item_id,
                        quantity_delta=quantity,
                        movement_type=MovementType.IN,
                        unit_cost=cost,
                        site_id=event.to_site_id,
                        related_site_id=event.site_id,
                    )
                )
            return specs

        for item in event.items:
            quantity = to_decimal(item.quantity)
            unit_cost = to_decimal(item.unit_cost) if item.unit_cost is not None else None
            direction = ItemDirection(item.direction)
            if direction == ItemDirection.USED:
                specs.append(MovementSpec(item.item_id, -quantity, MovementType.OUT, unit_cost))
            elif direction == ItemDirection.RECEIVED:
                specs.append(MovementSpec(item.item_id, quantity, MovementType.IN, unit_cost))
            else:
                specs.append(
                    MovementSpec(item.item_id, quantity, MovementType.ADJUSTMENT, unit_cost)
                )
        return specs

    def transaction_date(self) -> date:
        return self.document.event_date

    def description(self) -> str:
        event = self.document
        if event.description:
            return f"{event.type.capitalize()} event: {event.description}"
        return f"{event.type.capitalize()} event"

    def party(self):
        event = self.document
        if event.customer_id:
            return (EntityType.CUSTOMER, event.customer_id)
        if event.vendor_id:
            return (EntityType.VENDOR, event.vendor_id)
        return None

    def settles_in_cash(self) -> bool:
        return (self.document.payment_method or PaymentMethod.CASH.value) == PaymentMethod.CASH.value


ADAPTERS: Mapping[DocumentType, type[PostableDocument]] = {
    DocumentType.INVOICE: InvoiceDocument,
    DocumentType.BILL: BillDocument,
    DocumentType.CHECK: CheckDocument,
    DocumentType.RECEIPT: ReceiptDocument,
    DocumentType.JOURNAL_ENTRY: JournalEntryDocument,
    DocumentType.EVENT: EventDocument,
}


def adapter_for(document_type: DocumentType | str) -> type[PostableDocument]:
    """Look up the adapter class, raising UnknownDocumentTypeError."""
    try:
        return ADAPTERS[DocumentType(document_type)]
    except ValueError:
        raise UnknownDocumentTypeError(str(document_type)) from None
