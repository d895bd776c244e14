"""
Accounts Payable ORM Models (``farm_modules.ap.orm``).

Responsibility
--------------
Persistence for vendor bills and the checks that pay them.

Architecture position
---------------------
**Modules layer** -- persistence.  Imports from ``farm_kernel.db.base`` and
``farm_modules._document``.  MUST NOT be imported by ``farm_kernel``.

Invariants
----------
- ``balance == total - amount_paid`` after every posting and allocation.
- A check pays bills (through CheckBillPayment) and/or expenses directly
  (through CheckExpenseLine); its ``amount`` is the sum of both.
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


class BillStatus(str, Enum):
    DRAFT = "DRAFT"
    PENDING = "PENDING"
    POSTED = "POSTED"
    PARTIAL = "PARTIAL"
    PAID = "PAID"
    OVERDUE = "OVERDUE"
    VOID = "VOID"


class CheckStatus(str, Enum):
    DRAFT = "DRAFT"
    POSTED = "POSTED"
    PRINTED = "PRINTED"
    CLEARED = "CLEARED"
    VOID = "VOID"


# ---------------------------------------------------------------------------
# 1. Bill
# ---------------------------------------------------------------------------


class Bill(PostedDocumentMixin, TrackedBase):
    """
    Vendor bill.  Posting debits each line's expense/COGS account and
    credits A/P for the total.
    """

    __tablename__ = "bills"

    __table_args__ = (Index("idx_bill_vendor", "tenant_id", "vendor_id"),)

    bill_number: Mapped[str] = mapped_column(String(50), nullable=False)
    vendor_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    bill_date: Mapped[date] = mapped_column(nullable=False)
    due_date: Mapped[date | None] = mapped_column(nullable=True)
    subtotal: Mapped[Decimal] = mapped_column(default=ZERO)
    tax_rate: Mapped[Decimal] = mapped_column(default=ZERO)
    tax_amount: Mapped[Decimal] = mapped_column(default=ZERO)
    total: Mapped[Decimal] = mapped_column(default=ZERO)
    amount_paid: Mapped[Decimal] = mapped_column(default=ZERO)
    balance: Mapped[Decimal] = mapped_column(default=ZERO)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    lines: Mapped[list["BillLine"]] = relationship(
        back_populates="bill",
        cascade="all, delete-orphan",
        order_by="BillLine.line_number",
    )

    def recalculate_totals(self) -> None:
        self.subtotal = sum((line.line_amount for line in self.lines), ZERO)
        self.tax_amount = quantize_money(self.subtotal * (self.tax_rate or ZERO) / 100)
        self.total = self.subtotal + self.tax_amount
        self.balance = self.total - (self.amount_paid or ZERO)

    def __repr__(self) -> str:
        return f"<Bill {self.bill_number} {self.status} {self.total}>"


class BillLine(TrackedBase):
    __tablename__ = "bill_lines"

    bill_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("bills.id"), nullable=False, index=True
    )
    line_number: Mapped[int] = mapped_column(Integer, nullable=False)
    description: Mapped[str | None] = mapped_column(String(500), nullable=True)
    quantity: Mapped[Decimal] = mapped_column(default=Decimal("1"))
    unit_price: Mapped[Decimal] = mapped_column(default=ZERO)
    amount: Mapped[Decimal | None] = mapped_column(nullable=True)
    account_id: Mapped[UUID | None] = mapped_column(
        UUIDString(), ForeignKey("accounts.id"), nullable=True
    )

    bill: Mapped[Bill] = relationship(back_populates="lines")

    @property
    def line_amount(self) -> Decimal:
        if self.amount is not None:
            return self.amount
        return quantize_money((self.quantity or ZERO) * (self.unit_price or ZERO))


# ---------------------------------------------------------------------------
# 2. Check
# ---------------------------------------------------------------------------


class Check(PostedDocumentMixin, TrackedBase):
    """
    Check written against a bank account.  Posting debits A/P for each bill
    payment and each expense line's account, and credits the bank account
    (or the CASH control account when none is set).
    """

    __tablename__ = "checks"

    check_number: Mapped[str] = mapped_column(String(50), nullable=False)
    vendor_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    payee: Mapped[str | None] = mapped_column(String(255), nullable=True)
    check_date: Mapped[date] = mapped_column(nullable=False)
    amount: Mapped[Decimal] = mapped_column(default=ZERO)
    memo: Mapped[str | None] = mapped_column(Text, nullable=True)
    bank_account_id: Mapped[UUID | None] = mapped_column(
        UUIDString(), ForeignKey("accounts.id"), nullable=True
    )

    bill_payments: Mapped[list["CheckBillPayment"]] = relationship(
        back_populates="check", cascade="all, delete-orphan"
    )
    expense_lines: Mapped[list["CheckExpenseLine"]] = relationship(
        back_populates="check",
        cascade="all, delete-orphan",
        order_by="CheckExpenseLine.line_number",
    )

    def __repr__(self) -> str:
        return f"<Check {self.check_number} {self.status} {self.amount}>"


class CheckBillPayment(TrackedBase):
    __tablename__ = "check_bill_payments"

    check_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("checks.id"), nullable=False, index=True
    )
    bill_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("bills.id"), nullable=False
    )
    amount: Mapped[Decimal] = mapped_column(nullable=False)

    check: Mapped[Check] = relationship(back_populates="bill_payments")
    bill: Mapped[Bill] = relationship()


class CheckExpenseLine(TrackedBase):
    __tablename__ = "check_expense_lines"

    check_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("checks.id"), nullable=False, index=True
    )
    line_number: Mapped[int] = mapped_column(Integer, nullable=False)
    account_id: Mapped[UUID | None] = mapped_column(
        UUIDString(), ForeignKey("accounts.id"), nullable=True
    )
    description: Mapped[str | None] = mapped_column(String(500), nullable=True)
    amount: Mapped[Decimal] = mapped_column(nullable=False)

    check: Mapped[Check] = relationship(back_populates="expense_lines")
