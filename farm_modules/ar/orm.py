"""
Accounts Receivable ORM Models (``farm_modules.ar.orm``).

Responsibility
--------------
Persistence for customer invoices and the receipts that pay them.

Architecture position
---------------------
**Modules layer** -- persistence.  Imports from ``farm_kernel.db.base`` and
``farm_modules._document``.  MUST NOT be imported by ``farm_kernel``.

Invariants
----------
- ``balance == total - amount_paid`` after every posting and allocation.
- Line items carry their own ``account_id``; posting rejects a line
  without one.
"""

from datetime import date
from decimal import Decimal
from enum import Enum
from uuid import UUID

from sqlalchemy import ForeignKey, Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from farm_kernel.db.base import TrackedBase, UUIDString
from farm_kernel.domain.values import ZERO, quantize_money
from farm_modules._document import PostedDocumentMixin


class InvoiceStatus(str, Enum):
    DRAFT = "DRAFT"
    SENT = "SENT"
    PARTIAL = "PARTIAL"
    PAID = "PAID"
    OVERDUE = "OVERDUE"
    VOID = "VOID"


class ReceiptStatus(str, Enum):
    PENDING = "PENDING"
    POSTED = "POSTED"
    DEPOSITED = "DEPOSITED"
    VOID = "VOID"


# ---------------------------------------------------------------------------
# 1. Invoice
# ---------------------------------------------------------------------------


class Invoice(PostedDocumentMixin, TrackedBase):
    """
    Customer invoice.  Sending it posts Dr A/R, Cr each line's account.

    Guarantees:
        - tax_rate is a percentage (8.25 means 8.25%).
        - recalculate_totals() derives subtotal, tax, total and balance from
          the lines.
    """

    __tablename__ = "invoices"

    __table_args__ = (Index("idx_invoice_customer", "tenant_id", "customer_id"),)

    invoice_number: Mapped[str] = mapped_column(String(50), nullable=False)
    customer_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    invoice_date: Mapped[date] = mapped_column(nullable=False)
    due_date: Mapped[date | None] = mapped_column(nullable=True)
    subtotal: Mapped[Decimal] = mapped_column(default=ZERO)
    tax_rate: Mapped[Decimal] = mapped_column(default=ZERO)
    tax_amount: Mapped[Decimal] = mapped_column(default=ZERO)
    total: Mapped[Decimal] = mapped_column(default=ZERO)
    amount_paid: Mapped[Decimal] = mapped_column(default=ZERO)
    balance: Mapped[Decimal] = mapped_column(default=ZERO)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    lines: Mapped[list["InvoiceLine"]] = relationship(
        back_populates="invoice",
        cascade="all, delete-orphan",
        order_by="InvoiceLine.line_number",
    )

    def recalculate_totals(self) -> None:
        self.subtotal = sum((line.line_amount for line in self.lines), ZERO)
        self.tax_amount = quantize_money(self.subtotal * (self.tax_rate or ZERO) / 100)
        self.total = self.subtotal + self.tax_amount
        self.balance = self.total - (self.amount_paid or ZERO)

    def __repr__(self) -> str:
        return f"<Invoice {self.invoice_number} {self.status} {self.total}>"


class InvoiceLine(TrackedBase):
    __tablename__ = "invoice_lines"

    invoice_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("invoices.id"), nullable=False, index=True
    )
    line_number: Mapped[int] = mapped_column(Integer, nullable=False)
    description: Mapped[str | None] = mapped_column(String(500), nullable=True)
    quantity: Mapped[Decimal] = mapped_column(default=Decimal("1"))
    unit_price: Mapped[Decimal] = mapped_column(default=ZERO)
    # Explicit amount wins over quantity * unit_price
    amount: Mapped[Decimal | None] = mapped_column(nullable=True)
    account_id: Mapped[UUID | None] = mapped_column(
        UUIDString(), ForeignKey("accounts.id"), nullable=True
    )

    invoice: Mapped[Invoice] = relationship(back_populates="lines")

    @property
    def line_amount(self) -> Decimal:
        if self.amount is not None:
            return self.amount
        return quantize_money((self.quantity or ZERO) * (self.unit_price or ZERO))


# ---------------------------------------------------------------------------
# 2. Receipt
# ---------------------------------------------------------------------------


class Receipt(PostedDocumentMixin, TrackedBase):
    """
    Money received.  Posting debits the deposit account and credits A/R for
    each invoice payment and the income account of each income line; any
    remainder of ``amount`` lands in default income.
    """

    __tablename__ = "receipts"

    receipt_number: Mapped[str] = mapped_column(String(50), nullable=False)
    customer_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    receipt_date: Mapped[date] = mapped_column(nullable=False)
    amount: Mapped[Decimal] = mapped_column(default=ZERO)
    payment_method: Mapped[str | None] = mapped_column(String(20), nullable=True)
    reference: Mapped[str | None] = mapped_column(String(100), nullable=True)
    deposit_account_id: Mapped[UUID | None] = mapped_column(
        UUIDString(), ForeignKey("accounts.id"), nullable=True
    )

    invoice_payments: Mapped[list["ReceiptInvoicePayment"]] = relationship(
        back_populates="receipt", cascade="all, delete-orphan"
    )
    income_lines: Mapped[list["ReceiptIncomeLine"]] = relationship(
        back_populates="receipt",
        cascade="all, delete-orphan",
        order_by="ReceiptIncomeLine.line_number",
    )

    def __repr__(self) -> str:
        return f"<Receipt {self.receipt_number} {self.status} {self.amount}>"


class ReceiptInvoicePayment(TrackedBase):
    __tablename__ = "receipt_invoice_payments"

    receipt_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("receipts.id"), nullable=False, index=True
    )
    invoice_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("invoices.id"), nullable=False
    )
    amount: Mapped[Decimal] = mapped_column(nullable=False)

    receipt: Mapped[Receipt] = relationship(back_populates="invoice_payments")
    invoice: Mapped[Invoice] = relationship()


class ReceiptIncomeLine(TrackedBase):
    __tablename__ = "receipt_income_lines"

    receipt_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("receipts.id"), nullable=False, index=True
    )
    line_number: Mapped[int] = mapped_column(Integer, nullable=False)
    account_id: Mapped[UUID | None] = mapped_column(
        UUIDString(), ForeignKey("accounts.id"), nullable=True
    )
    description: Mapped[str | None] = mapped_column(String(500), nullable=True)
    amount: Mapped[Decimal] = mapped_column(nullable=False)

    receipt: Mapped[Receipt] = relationship(back_populates="income_lines")
