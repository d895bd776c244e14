"""
LedgerWriter -- atomic, idempotent double-entry persistence.

Responsibility:
    Validates a set of LedgerLineSpecs, persists one LedgerTransaction plus
    its LedgerEntry rows, and keeps each account's materialized
    ``current_balance`` in step.  Also writes compensating (mirror-image)
    transactions for reversals.

Architecture position:
    Kernel > Services.  Called by the DocumentPoster and directly by the
    ``/posting/transactions/{id}/reverse`` route.  Delegates account checks
    to the AccountDirectory.

Invariants enforced:
    - Every line has exactly one positive side and no negative side.
    - Σdebit == Σcredit within the policy's balance tolerance.
    - Exactly one transaction per (tenant, idempotency_key): checked with a
      locked read, then claimed by the unique constraint inside a
      savepoint so a concurrent loser rolls back only its own insert.
    - Entries are never edited.  Reversal writes new, swapped entries and
      only flips the original's status and back-link.
    - ``current_balance`` changes in the same unit of work as the entries.

Failure modes:
    - LedgerValidationError / UnbalancedEntryError / InvalidAmountError:
      rejected before any write.
    - AccountNotFoundError / AccountInactiveError: a line targets a bad
      account.
    - DuplicatePostingError: key already claimed, strict policy only.
    - TransactionNotFoundError / AlreadyReversedError /
      ReversalReasonRequiredError: reversal preconditions.
    - Any other storage error propagates; the caller's session scope rolls
      the whole unit back.

Non-goals:
    - Does NOT commit.  The caller owns the transaction boundary.
    - Does NOT know about source documents; it only records their
      ``source_type``/``source_id``.
"""

import time
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from enum import Enum
from typing import Sequence
from uuid import UUID

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from farm_kernel.domain.clock import Clock
from farm_kernel.domain.dtos import EntityType, LedgerLineSpec
from farm_kernel.domain.policy import DuplicatePolicy, PostingPolicy
from farm_kernel.domain.values import ZERO, to_decimal, within_tolerance
from farm_kernel.exceptions import (
    AlreadyReversedError,
    DuplicatePostingError,
    InvalidAmountError,
    LedgerValidationError,
    ReversalReasonRequiredError,
    TransactionNotFoundError,
    UnbalancedEntryError,
)
from farm_kernel.logging_config import get_logger
from farm_kernel.models.account import Account
from farm_kernel.models.ledger import (
    LedgerEntry,
    LedgerTransaction,
    LedgerTransactionStatus,
)
from farm_kernel.services.account_directory import AccountDirectory
from farm_kernel.services.base import BaseService
from farm_kernel.utils.idempotency import reversal_idempotency_key

logger = get_logger("services.ledger_writer")

REVERSAL_SOURCE_TYPE = "reversal"


class LedgerWriteStatus(str, Enum):
    """Outcome of a ledger write."""

    POSTED = "posted"
    ALREADY_POSTED = "already_posted"


@dataclass(frozen=True)
class LedgerWriteResult:
    """
    Result of LedgerWriter.post_transaction() / reverse_transaction().

    ``transaction`` is the newly written transaction, or the one that
    already held the idempotency key.
    """

    status: LedgerWriteStatus
    transaction: LedgerTransaction

    @classmethod
    def posted(cls, transaction: LedgerTransaction) -> "LedgerWriteResult":
        return cls(status=LedgerWriteStatus.POSTED, transaction=transaction)

    @classmethod
    def already_posted(cls, transaction: LedgerTransaction) -> "LedgerWriteResult":
        return cls(status=LedgerWriteStatus.ALREADY_POSTED, transaction=transaction)

    @property
    def transaction_id(self) -> UUID:
        return self.transaction.id

    @property
    def is_new(self) -> bool:
        return self.status == LedgerWriteStatus.POSTED


@dataclass(frozen=True)
class _ValidatedLine:
    line_number: int
    account: Account
    debit: Decimal
    credit: Decimal
    spec: LedgerLineSpec


class LedgerWriter(BaseService[LedgerTransaction]):
    """
    Service for atomic, idempotent ledger posting.

    Contract:
        post_transaction() either writes a complete balanced transaction or
        raises before touching the database.  A duplicate key yields
        ALREADY_POSTED (absorb policy) with nothing written.

    Usage:
        writer = LedgerWriter(session, policy, clock)
        result = writer.post_transaction(
            tenant_id="t1", site_id=None, source_type="bill",
            source_id=str(bill.id), idempotency_key=f"bill-{bill.id}",
            transaction_date=bill.bill_date, description="Bill B-17",
            lines=lines, actor_id="user-1",
        )
    """

    def __init__(
        self,
        session: Session,
        policy: PostingPolicy | None = None,
        clock: Clock | None = None,
        directory: AccountDirectory | None = None,
    ):
        super().__init__(session, clock)
        self.policy = policy or PostingPolicy()
        self.directory = directory or AccountDirectory(session, self.policy)

    # ------------------------------------------------------------------
    # Posting
    # ------------------------------------------------------------------

    def post_transaction(
        self,
        tenant_id: str,
        site_id: str | None,
        source_type: str,
        source_id: str,
        idempotency_key: str,
        transaction_date: date,
        description: str | None,
        lines: Sequence[LedgerLineSpec],
        actor_id: str | None,
        locker_id: str | None = None,
        reverses: LedgerTransaction | None = None,
    ) -> LedgerWriteResult:
        """
        Persist one balanced transaction, exactly once per idempotency key.

        Preconditions:
            - ``lines`` is non-empty and balanced within tolerance.
            - Every line has exactly one positive side.
            - Every account exists for the tenant and is active.

        Postconditions:
            - POSTED: header and entries flushed, balances updated.
            - ALREADY_POSTED: nothing written.

        Raises:
            LedgerValidationError, UnbalancedEntryError, InvalidAmountError,
            AccountNotFoundError, AccountInactiveError, DuplicatePostingError.
        """
        t0 = time.monotonic()
        logger.info(
            "ledger_write_started",
            extra={
                "tenant_id": tenant_id,
                "source_type": source_type,
                "source_id": source_id,
                "idempotency_key": idempotency_key,
                "line_count": len(lines),
                "locker_id": locker_id,
            },
        )

        validated = self._validate_lines(tenant_id, lines)

        existing = self._get_existing(tenant_id, idempotency_key)
        if existing is not None:
            return self._duplicate(tenant_id, idempotency_key, existing)

        savepoint = self.session.begin_nested()
        try:
            transaction = self._insert(
                tenant_id=tenant_id,
                site_id=site_id,
                source_type=source_type,
                source_id=source_id,
                idempotency_key=idempotency_key,
                transaction_date=transaction_date,
                description=description,
                validated=validated,
                actor_id=actor_id,
                locker_id=locker_id,
                reverses=reverses,
            )
            savepoint.commit()
        except IntegrityError:
            savepoint.rollback()
            logger.warning(
                "concurrent_insert_conflict",
                extra={"tenant_id": tenant_id, "idempotency_key": idempotency_key},
            )
            existing = self._get_existing(tenant_id, idempotency_key)
            if existing is None:
                # The violation was not the idempotency key
                raise
            return self._duplicate(tenant_id, idempotency_key, existing)

        self._apply_balances(validated)

        duration_ms = round((time.monotonic() - t0) * 1000, 2)
        logger.info(
            "ledger_write_completed",
            extra={
                "tenant_id": tenant_id,
                "transaction_id": str(transaction.id),
                "idempotency_key": idempotency_key,
                "entry_count": len(validated),
                "duration_ms": duration_ms,
            },
        )
        return LedgerWriteResult.posted(transaction)

    def _validate_lines(
        self, tenant_id: str, lines: Sequence[LedgerLineSpec]
    ) -> list[_ValidatedLine]:
        if not lines:
            raise LedgerValidationError("at least one line is required")

        validated: list[_ValidatedLine] = []
        for number, spec in enumerate(lines, start=1):
            debit = to_decimal(spec.debit, f"lines[{number}].debit")
            credit = to_decimal(spec.credit, f"lines[{number}].credit")
            if debit < ZERO:
                raise InvalidAmountError(f"lines[{number}].debit", spec.debit)
            if credit < ZERO:
                raise InvalidAmountError(f"lines[{number}].credit", spec.credit)
            if debit > ZERO and credit > ZERO:
                raise LedgerValidationError("both debit and credit are set", number)
            if debit == ZERO and credit == ZERO:
                raise LedgerValidationError("neither debit nor credit is set", number)
            account = self.directory.get_account(tenant_id, spec.account_id)
            validated.append(_ValidatedLine(number, account, debit, credit, spec))

        total_debits = sum((v.debit for v in validated), ZERO)
        total_credits = sum((v.credit for v in validated), ZERO)
        balanced = within_tolerance(
            total_debits, total_credits, self.policy.balance_tolerance
        )
        logger.info(
            "balance_validated",
            extra={
                "sum_debit": str(total_debits),
                "sum_credit": str(total_credits),
                "balanced": balanced,
            },
        )
        if not balanced:
            logger.warning(
                "unbalanced_entry",
                extra={"imbalance": str(total_debits - total_credits)},
            )
            raise UnbalancedEntryError(
                str(total_debits),
                str(total_credits),
                str(self.policy.balance_tolerance),
            )
        return validated

    def _get_existing(
        self, tenant_id: str, idempotency_key: str
    ) -> LedgerTransaction | None:
        return self.session.execute(
            select(LedgerTransaction)
            .where(
                LedgerTransaction.tenant_id == tenant_id,
                LedgerTransaction.idempotency_key == idempotency_key,
            )
            .with_for_update()
        ).scalar_one_or_none()

    def _duplicate(
        self,
        tenant_id: str,
        idempotency_key: str,
        existing: LedgerTransaction,
    ) -> LedgerWriteResult:
        if self.policy.duplicate_policy == DuplicatePolicy.STRICT:
            raise DuplicatePostingError(tenant_id, idempotency_key, str(existing.id))
        logger.info(
            "ledger_write_idempotent",
            extra={
                "tenant_id": tenant_id,
                "idempotency_key": idempotency_key,
                "transaction_id": str(existing.id),
            },
        )
        return LedgerWriteResult.already_posted(existing)

    def _insert(
        self,
        *,
        tenant_id: str,
        site_id: str | None,
        source_type: str,
        source_id: str,
        idempotency_key: str,
        transaction_date: date,
        description: str | None,
        validated: list[_ValidatedLine],
        actor_id: str | None,
        locker_id: str | None,
        reverses: LedgerTransaction | None,
    ) -> LedgerTransaction:
        transaction = LedgerTransaction(
            tenant_id=tenant_id,
            site_id=site_id,
            source_type=source_type,
            source_id=source_id,
            transaction_date=transaction_date,
            description=description,
            status=LedgerTransactionStatus.POSTED,
            idempotency_key=idempotency_key,
            reverses_transaction_id=reverses.id if reverses is not None else None,
            posted_at=self.clock.now(),
            posted_by=actor_id,
            locker_id=locker_id,
            created_by=actor_id,
        )
        for line in validated:
            spec = line.spec
            transaction.entries.append(
                LedgerEntry(
                    tenant_id=tenant_id,
                    line_number=line.line_number,
                    account_id=line.account.id,
                    account_code=line.account.code,
                    occurred_at=transaction_date,
                    debit=line.debit,
                    credit=line.credit,
                    entity_type=spec.entity_type.value if spec.entity_type else None,
                    entity_id=spec.entity_id,
                    memo=spec.memo,
                    created_by=actor_id,
                )
            )
        self.session.add(transaction)
        self.session.flush()
        return transaction

    def _apply_balances(self, validated: list[_ValidatedLine]) -> None:
        deltas: dict[UUID, Decimal] = {}
        for line in validated:
            deltas[line.account.id] = (
                deltas.get(line.account.id, ZERO) + line.debit - line.credit
            )
        # In-database increment so concurrent writers cannot lose an update
        for account_id, delta in sorted(deltas.items(), key=lambda kv: str(kv[0])):
            self.session.execute(
                update(Account)
                .where(Account.id == account_id)
                .values(current_balance=Account.current_balance + delta)
                .execution_options(synchronize_session="fetch")
            )
        self.session.flush()

    # ------------------------------------------------------------------
    # Reversal
    # ------------------------------------------------------------------

    def reverse_transaction(
        self,
        tenant_id: str,
        transaction_id: UUID,
        reason: str | None,
        actor_id: str | None,
        reversal_date: date | None = None,
        locker_id: str | None = None,
    ) -> LedgerWriteResult:
        """
        Write the mirror image of a posted transaction.

        The reversal carries every original line with debit and credit
        swapped, uses source type ``reversal`` and the key
        ``reversal-<transaction id>``.  The original flips to REVERSED and
        both back-links are set.

        Raises:
            ReversalReasonRequiredError: blank ``reason``.
            TransactionNotFoundError: unknown id for the tenant.
            AlreadyReversedError: the transaction is already reversed.
        """
        if not reason or not reason.strip():
            raise ReversalReasonRequiredError(str(transaction_id))

        original = self.session.execute(
            select(LedgerTransaction)
            .where(
                LedgerTransaction.id == transaction_id,
                LedgerTransaction.tenant_id == tenant_id,
            )
            .with_for_update()
        ).scalar_one_or_none()
        if original is None:
            raise TransactionNotFoundError(str(transaction_id))
        if original.is_reversed or original.reversed_by_transaction_id is not None:
            raise AlreadyReversedError("ledger_transaction", str(transaction_id))

        mirror = [
            LedgerLineSpec(
                account_id=entry.account_id,
                debit=entry.credit,
                credit=entry.debit,
                entity_type=EntityType(entry.entity_type) if entry.entity_type else None,
                entity_id=entry.entity_id,
                memo=entry.memo,
            )
            for entry in original.entries
        ]
        result = self.post_transaction(
            tenant_id=tenant_id,
            site_id=original.site_id,
            source_type=REVERSAL_SOURCE_TYPE,
            source_id=str(original.id),
            idempotency_key=reversal_idempotency_key(original.id),
            transaction_date=reversal_date or self.clock.today(),
            description=f"Reversal of {original.source_type} {original.source_id}: {reason}",
            lines=mirror,
            actor_id=actor_id,
            locker_id=locker_id,
            reverses=original,
        )

        reversal = result.transaction
        reversal.reversal_reason = reason
        original.status = LedgerTransactionStatus.REVERSED
        original.reversed_by_transaction_id = reversal.id
        original.reversal_reason = reason
        self.session.flush()

        logger.info(
            "ledger_transaction_reversed",
            extra={
                "tenant_id": tenant_id,
                "transaction_id": str(original.id),
                "reversal_transaction_id": str(reversal.id),
                "reason": reason,
            },
        )
        return result

