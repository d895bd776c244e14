"""
General Ledger ORM Models (``farm_modules.gl.orm``).

Responsibility
--------------
Persistence for user-authored journal entries.  A journal entry is a draft
until posted; posting copies its lines verbatim into a LedgerTransaction.

Architecture position
---------------------
**Modules layer** -- persistence.  MUST NOT be imported by ``farm_kernel``.

Invariants
----------
- ``entry_number`` is tenant-sequential (JE-00001, JE-00002 ...), allocated
  from a locked counter by ``SequenceService`` when the entry is created.
- DRAFT -> POSTED -> REVERSED.  Only DRAFT entries may be edited or deleted.
"""

from datetime import date
from decimal import Decimal
from enum import Enum
from uuid import UUID

from sqlalchemy import ForeignKey, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, Session, mapped_column, relationship

from farm_kernel.db.base import TrackedBase, UUIDString
from farm_kernel.domain.values import ZERO
from farm_kernel.services.sequence_service import SequenceService, format_entry_number
from farm_modules._document import PostedDocumentMixin


class JournalEntryStatus(str, Enum):
    DRAFT = "DRAFT"
    POSTED = "POSTED"
    REVERSED = "REVERSED"


class JournalEntry(PostedDocumentMixin, TrackedBase):
    """User-authored journal entry with an explicit debit/credit line list."""

    __tablename__ = "journal_entries"

    __table_args__ = (
        UniqueConstraint("tenant_id", "entry_number", name="uq_journal_entry_number"),
    )

    entry_number: Mapped[str] = mapped_column(String(20), nullable=False)
    entry_date: Mapped[date] = mapped_column(nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)

    # Reversal back-links between entries
    reverses_entry_id: Mapped[UUID | None] = mapped_column(
        UUIDString(), ForeignKey("journal_entries.id"), nullable=True
    )
    reversed_by_entry_id: Mapped[UUID | None] = mapped_column(
        UUIDString(), ForeignKey("journal_entries.id"), nullable=True
    )

    lines: Mapped[list["JournalEntryLine"]] = relationship(
        back_populates="entry",
        cascade="all, delete-orphan",
        order_by="JournalEntryLine.line_number",
    )

    @classmethod
    def create(
        cls,
        session: Session,
        tenant_id: str,
        entry_date: date,
        description: str | None = None,
        site_id: str | None = None,
        created_by: str | None = None,
    ) -> "JournalEntry":
        """New DRAFT entry with the tenant's next entry number."""
        sequence = SequenceService(session)
        number = sequence.next_value(SequenceService.journal_entry_sequence(tenant_id))
        entry = cls(
            tenant_id=tenant_id,
            site_id=site_id,
            status=JournalEntryStatus.DRAFT.value,
            entry_number=format_entry_number(number),
            entry_date=entry_date,
            description=description,
            created_by=created_by,
        )
        session.add(entry)
        return entry

    @property
    def total_debits(self) -> Decimal:
        return sum((line.debit or ZERO for line in self.lines), ZERO)

    @property
    def total_credits(self) -> Decimal:
        return sum((line.credit or ZERO for line in self.lines), ZERO)

    def is_balanced(self, tolerance: Decimal = Decimal("0.01")) -> bool:
        return abs(self.total_debits - self.total_credits) < tolerance

    def __repr__(self) -> str:
        return f"<JournalEntry {self.entry_number} {self.status}>"


class JournalEntryLine(TrackedBase):
    __tablename__ = "journal_entry_lines"

    entry_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("journal_entries.id"), nullable=False, index=True
    )
    line_number: Mapped[int] = mapped_column(Integer, nullable=False)
    account_id: Mapped[UUID | None] = mapped_column(
        UUIDString(), ForeignKey("accounts.id"), nullable=True
    )
    # Denormalized at posting time
    account_code: Mapped[str | None] = mapped_column(String(50), nullable=True)
    account_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    debit: Mapped[Decimal] = mapped_column(default=ZERO)
    credit: Mapped[Decimal] = mapped_column(default=ZERO)
    memo: Mapped[str | None] = mapped_column(Text, nullable=True)

    entry: Mapped[JournalEntry] = relationship(back_populates="lines")
