"""
Module: farm_kernel.services.sequence_service
Responsibility: Transactional, strictly monotonic counters for tenant-sequential
    document numbers (journal entries are numbered JE-00001, JE-00002, ...).
Architecture position: Kernel > Services.  Flush only; the caller's session
    scope owns the commit.

Invariants enforced:
    - Numbers come from a locked counter row, never from MAX(number) + 1.
    - A rolled-back transaction returns its number: under normal operation
      no values are skipped.
"""

from sqlalchemy import BigInteger, String, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Mapped, Session, mapped_column

from farm_kernel.db.base import Base
from farm_kernel.logging_config import get_logger

logger = get_logger("services.sequence")


class SequenceCounter(Base):
    """
    Sequence counter table.

    Each row represents a named sequence with its current value.
    Row-level locking ensures monotonicity under concurrency.
    """

    __tablename__ = "sequence_counters"

    # Sequence name (e.g., "journal_entry:<tenant_id>")
    name: Mapped[str] = mapped_column(
        String(100),
        nullable=False,
        unique=True,
    )

    current_value: Mapped[int] = mapped_column(
        BigInteger,
        nullable=False,
        default=0,
    )


class SequenceService:
    """
    Service for generating transactional sequence numbers.

    Contract:
        Accepts a sequence name and returns the next strictly-monotonic
        integer value.  The increment is only committed when the caller's
        transaction commits.

    Usage:
        with session_scope() as session:
            number = SequenceService(session).next_value(
                SequenceService.journal_entry_sequence(tenant_id)
            )
    """

    JOURNAL_ENTRY = "journal_entry"

    def __init__(self, session: Session):
        self._session = session

    @classmethod
    def journal_entry_sequence(cls, tenant_id: str) -> str:
        """Per-tenant sequence name for journal entry numbers."""
        return f"{cls.JOURNAL_ENTRY}:{tenant_id}"

    def next_value(self, sequence_name: str) -> int:
        """
        Get the next value for a named sequence (always > 0).

        Locks the counter row (creating it on first use), increments it and
        returns the new value.
        """
        counter = self._session.execute(
            select(SequenceCounter)
            .where(SequenceCounter.name == sequence_name)
            .with_for_update()
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()

        if counter is None:
            # First use of this sequence; a concurrent creator may win the
            # insert, so isolate it in a savepoint and retry the locked read.
            savepoint = self._session.begin_nested()
            try:
                counter = SequenceCounter(name=sequence_name, current_value=1)
                self._session.add(counter)
                self._session.flush()
                savepoint.commit()
                logger.debug(
                    "sequence_allocated",
                    extra={"sequence_name": sequence_name, "value": 1},
                )
                return 1
            except IntegrityError:
                logger.debug(
                    "sequence_counter_race_retry",
                    extra={"sequence_name": sequence_name},
                )
                savepoint.rollback()
                counter = self._session.execute(
                    select(SequenceCounter)
                    .where(SequenceCounter.name == sequence_name)
                    .with_for_update()
                    .execution_options(populate_existing=True)
                ).scalar_one()

        counter.current_value += 1
        self._session.flush()
        logger.debug(
            "sequence_allocated",
            extra={"sequence_name": sequence_name, "value": counter.current_value},
        )
        return counter.current_value

    def current_value(self, sequence_name: str) -> int | None:
        """Current value of a sequence without incrementing, or None."""
        counter = self._session.execute(
            select(SequenceCounter).where(SequenceCounter.name == sequence_name)
        ).scalar_one_or_none()

        return counter.current_value if counter else None


def format_entry_number(value: int, prefix: str = "JE") -> str:
    """Format a sequence value as a document number: 1 -> 'JE-00001'."""
    return f"{prefix}-{value:05d}"
