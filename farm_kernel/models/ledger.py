"""
Module: farm_kernel.models.ledger
Responsibility: ORM persistence for ledger transactions and ledger entries --
    the single source of financial truth in this system.
Architecture position: Kernel > Models.  May import from db/base.py only.
    MUST NOT import from services/, selectors/ or outer layers.

Invariants enforced:
    - Exactly one LedgerTransaction per (tenant_id, idempotency_key)
      (UNIQUE constraint uq_ledger_txn_idempotency).
    - Σdebit == Σcredit per transaction within tolerance (checked by the
      LedgerWriter before insert; exposed here via is_balanced).
    - Every entry has exactly one positive side (checked by the writer).
    - Entries are never updated.  A transaction is mutated only to flip its
      status to REVERSED and link its reversal.

Failure modes:
    - IntegrityError on duplicate (tenant_id, idempotency_key); the writer
      translates it into an already-posted result.
"""

from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from uuid import UUID

from sqlalchemy import ForeignKey, Index, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from farm_kernel.db.base import TrackedBase, UUIDString
from farm_kernel.domain.values import ZERO


class LedgerTransactionStatus(str, Enum):
    """Lifecycle status of a ledger transaction: POSTED -> REVERSED."""

    POSTED = "POSTED"
    REVERSED = "REVERSED"


class LedgerTransaction(TrackedBase):
    """
    Header for one balanced posting.

    ``source_type``/``source_id`` point back at the originating document
    (invoice, bill, check, receipt, journal_entry, event) or, for a
    compensating transaction, at the transaction it reverses.
    """

    __tablename__ = "ledger_transactions"

    __table_args__ = (
        UniqueConstraint(
            "tenant_id", "idempotency_key", name="uq_ledger_txn_idempotency"
        ),
        Index("idx_ledger_txn_source", "tenant_id", "source_type", "source_id"),
        Index("idx_ledger_txn_date", "tenant_id", "transaction_date"),
    )

    tenant_id: Mapped[str] = mapped_column(String(64), nullable=False)

    site_id: Mapped[str | None] = mapped_column(String(64), nullable=True)

    source_type: Mapped[str] = mapped_column(String(30), nullable=False)

    source_id: Mapped[str] = mapped_column(String(64), nullable=False)

    transaction_date: Mapped[date] = mapped_column(nullable=False)

    description: Mapped[str | None] = mapped_column(Text, nullable=True)

    status: Mapped[LedgerTransactionStatus] = mapped_column(
        String(10),
        nullable=False,
        default=LedgerTransactionStatus.POSTED,
    )

    idempotency_key: Mapped[str] = mapped_column(String(255), nullable=False)

    # Reversal back-links
    reverses_transaction_id: Mapped[UUID | None] = mapped_column(
        UUIDString(),
        ForeignKey("ledger_transactions.id"),
        nullable=True,
    )

    reversed_by_transaction_id: Mapped[UUID | None] = mapped_column(
        UUIDString(),
        ForeignKey("ledger_transactions.id"),
        nullable=True,
    )

    reversal_reason: Mapped[str | None] = mapped_column(Text, nullable=True)

    posted_at: Mapped[datetime] = mapped_column(nullable=False)

    posted_by: Mapped[str | None] = mapped_column(String(128), nullable=True)

    # Advisory per-request lock token (e.g. "api-<uuid>")
    locker_id: Mapped[str | None] = mapped_column(String(64), nullable=True)

    entries: Mapped[list["LedgerEntry"]] = relationship(
        back_populates="transaction",
        cascade="all, delete-orphan",
        order_by="LedgerEntry.line_number",
        lazy="selectin",
    )

    def __repr__(self) -> str:
        return (
            f"<LedgerTransaction {self.id} {self.source_type}:{self.source_id} "
            f"{self.status}>"
        )

    @property
    def is_posted(self) -> bool:
        return self.status == LedgerTransactionStatus.POSTED

    @property
    def is_reversed(self) -> bool:
        return self.status == LedgerTransactionStatus.REVERSED

    @property
    def total_debits(self) -> Decimal:
        return sum((e.debit for e in self.entries), ZERO)

    @property
    def total_credits(self) -> Decimal:
        return sum((e.credit for e in self.entries), ZERO)

    def is_balanced(self, tolerance: Decimal = Decimal("0.01")) -> bool:
        return abs(self.total_debits - self.total_credits) < tolerance


class LedgerEntry(TrackedBase):
    """
    One line of a ledger transaction.

    Exactly one of debit/credit is positive.  ``entity_type``/``entity_id``
    attribute the line to a vendor, customer, site, animal group or
    inventory item for sub-ledger reporting.
    """

    __tablename__ = "ledger_entries"

    __table_args__ = (
        Index("idx_ledger_entry_txn", "transaction_id"),
        Index("idx_ledger_entry_account", "tenant_id", "account_id"),
    )

    transaction_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("ledger_transactions.id"),
        nullable=False,
    )

    tenant_id: Mapped[str] = mapped_column(String(64), nullable=False)

    line_number: Mapped[int] = mapped_column(Integer, nullable=False)

    account_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("accounts.id"),
        nullable=False,
    )

    # Denormalized for reporting
    account_code: Mapped[str] = mapped_column(String(50), nullable=False)

    occurred_at: Mapped[date] = mapped_column(nullable=False)

    debit: Mapped[Decimal] = mapped_column(nullable=False, default=ZERO)

    credit: Mapped[Decimal] = mapped_column(nullable=False, default=ZERO)

    entity_type: Mapped[str | None] = mapped_column(String(20), nullable=True)

    entity_id: Mapped[str | None] = mapped_column(String(64), nullable=True)

    memo: Mapped[str | None] = mapped_column(Text, nullable=True)

    transaction: Mapped[LedgerTransaction] = relationship(back_populates="entries")

    def __repr__(self) -> str:
        return (
            f"<LedgerEntry {self.line_number} {self.account_code} "
            f"Dr {self.debit} Cr {self.credit}>"
        )
