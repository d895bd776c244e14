"""
Module: farm_kernel.selectors.ledger_selector
Responsibility: Read-only ledger queries: per-account balances as of a date,
    the trial balance, and transaction lookups with their entries.
Architecture position: Kernel > Selectors.  May import from models/ and
    selectors/base.py.

Invariants enforced:
    - Balances here are derived from LedgerEntry rows at query time and are
      independent of the cached ``Account.current_balance``.  The two agree
      whenever every write went through the LedgerWriter.
    - Both POSTED and REVERSED transactions count.  A reversed posting and
      its reversal net to zero, so the ledger stays additive.

Failure modes:
    - TransactionNotFoundError from get_transaction() for an unknown id.
    - Zero balances (not errors) for accounts with no entries.
"""

from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from farm_kernel.domain.values import ZERO
from farm_kernel.exceptions import TransactionNotFoundError
from farm_kernel.models.account import Account
from farm_kernel.models.ledger import (
    LedgerEntry,
    LedgerTransaction,
    LedgerTransactionStatus,
)
from farm_kernel.selectors.base import BaseSelector


@dataclass(frozen=True)
class AccountBalance:
    """Aggregated activity for one account."""

    account_id: UUID
    account_code: str
    account_name: str
    account_type: str
    debit_total: Decimal
    credit_total: Decimal

    @property
    def balance(self) -> Decimal:
        """Net balance (debits - credits)."""
        return self.debit_total - self.credit_total


@dataclass(frozen=True)
class TrialBalance:
    """Trial balance rows plus their column totals."""

    as_of_date: date | None
    rows: tuple[AccountBalance, ...]

    @property
    def total_debits(self) -> Decimal:
        return sum((r.debit_total for r in self.rows), ZERO)

    @property
    def total_credits(self) -> Decimal:
        return sum((r.credit_total for r in self.rows), ZERO)

    def is_balanced(self, tolerance: Decimal = Decimal("0.01")) -> bool:
        return abs(self.total_debits - self.total_credits) < tolerance


@dataclass(frozen=True)
class TransactionPage:
    """One page of transactions plus the unpaged match count."""

    transactions: tuple["LedgerTransactionView", ...]
    total: int
    limit: int
    offset: int


@dataclass(frozen=True)
class LedgerEntryView:
    line_number: int
    account_id: UUID
    account_code: str
    debit: Decimal
    credit: Decimal
    entity_type: str | None
    entity_id: str | None
    memo: str | None


@dataclass(frozen=True)
class LedgerTransactionView:
    """A ledger transaction header with its entries, detached from the session."""

    id: UUID
    tenant_id: str
    site_id: str | None
    source_type: str
    source_id: str
    transaction_date: date
    description: str | None
    status: str
    idempotency_key: str
    reverses_transaction_id: UUID | None
    reversed_by_transaction_id: UUID | None
    reversal_reason: str | None
    posted_at: datetime
    posted_by: str | None
    entries: tuple[LedgerEntryView, ...] = field(default=())

    @property
    def total_debits(self) -> Decimal:
        return sum((e.debit for e in self.entries), ZERO)

    @property
    def total_credits(self) -> Decimal:
        return sum((e.credit for e in self.entries), ZERO)

    @classmethod
    def from_model(cls, txn: LedgerTransaction) -> "LedgerTransactionView":
        return cls(
            id=txn.id,
            tenant_id=txn.tenant_id,
            site_id=txn.site_id,
            source_type=txn.source_type,
            source_id=txn.source_id,
            transaction_date=txn.transaction_date,
            description=txn.description,
            status=str(txn.status.value if hasattr(txn.status, "value") else txn.status),
            idempotency_key=txn.idempotency_key,
            reverses_transaction_id=txn.reverses_transaction_id,
            reversed_by_transaction_id=txn.reversed_by_transaction_id,
            reversal_reason=txn.reversal_reason,
            posted_at=txn.posted_at,
            posted_by=txn.posted_by,
            entries=tuple(
                LedgerEntryView(
                    line_number=e.line_number,
                    account_id=e.account_id,
                    account_code=e.account_code,
                    debit=e.debit,
                    credit=e.credit,
                    entity_type=e.entity_type,
                    entity_id=e.entity_id,
                    memo=e.memo,
                )
                for e in txn.entries
            ),
        )


class LedgerSelector(BaseSelector[LedgerEntry]):
    """
    Selector for ledger reads.

    Contract:
        Every balance is aggregated from LedgerEntry rows joined to their
        transaction, optionally cut off at ``transaction_date <= as_of_date``.
    """

    def __init__(self, session: Session):
        super().__init__(session)

    def account_balances(
        self,
        tenant_id: str,
        as_of_date: date | None = None,
        include_zero: bool = False,
    ) -> list[AccountBalance]:
        """
        Σdebit, Σcredit and balance for each of the tenant's accounts.

        Accounts without activity are omitted unless ``include_zero``.
        Rows are ordered by account code.
        """
        totals = (
            select(
                LedgerEntry.account_id.label("account_id"),
                func.sum(LedgerEntry.debit).label("debit_total"),
                func.sum(LedgerEntry.credit).label("credit_total"),
            )
            .join(LedgerTransaction, LedgerEntry.transaction_id == LedgerTransaction.id)
            .where(LedgerTransaction.tenant_id == tenant_id)
        )
        if as_of_date is not None:
            totals = totals.where(LedgerTransaction.transaction_date <= as_of_date)
        totals = totals.group_by(LedgerEntry.account_id).subquery()

        stmt = (
            select(
                Account.id,
                Account.code,
                Account.name,
                Account.account_type,
                totals.c.debit_total,
                totals.c.credit_total,
            )
            .outerjoin(totals, totals.c.account_id == Account.id)
            .where(Account.tenant_id == tenant_id)
            .order_by(Account.code)
        )

        balances: list[AccountBalance] = []
        for account_id, code, name, account_type, debit_total, credit_total in (
            self.session.execute(stmt).all()
        ):
            if debit_total is None and not include_zero:
                continue
            balances.append(
                AccountBalance(
                    account_id=account_id,
                    account_code=code,
                    account_name=name,
                    account_type=str(account_type),
                    debit_total=Decimal(str(debit_total or ZERO)),
                    credit_total=Decimal(str(credit_total or ZERO)),
                )
            )
        return balances

    def account_balance(
        self, tenant_id: str, account_id: UUID, as_of_date: date | None = None
    ) -> Decimal:
        """Net Σdebit - Σcredit for one account."""
        for row in self.account_balances(tenant_id, as_of_date):
            if row.account_id == account_id:
                return row.balance
        return ZERO

    def trial_balance(
        self, tenant_id: str, as_of_date: date | None = None
    ) -> TrialBalance:
        return TrialBalance(
            as_of_date=as_of_date,
            rows=tuple(self.account_balances(tenant_id, as_of_date)),
        )

    def get_transaction(
        self, tenant_id: str, transaction_id: UUID
    ) -> LedgerTransactionView:
        """
        Load a transaction and its entries.

        Raises:
            TransactionNotFoundError: unknown id for the tenant.
        """
        txn = self.session.execute(
            select(LedgerTransaction).where(
                LedgerTransaction.id == transaction_id,
                LedgerTransaction.tenant_id == tenant_id,
            )
        ).scalar_one_or_none()
        if txn is None:
            raise TransactionNotFoundError(str(transaction_id))
        return LedgerTransactionView.from_model(txn)

    def list_transactions(
        self,
        tenant_id: str,
        limit: int = 50,
        offset: int = 0,
        status: LedgerTransactionStatus | str | None = None,
    ) -> TransactionPage:
        """
        The tenant's transactions, newest posting first.

        ``total`` counts every match of the filter, ignoring the page.
        """
        conditions = [LedgerTransaction.tenant_id == tenant_id]
        if status is not None:
            conditions.append(
                LedgerTransaction.status == LedgerTransactionStatus(status).value
            )

        total = self.session.scalar(
            select(func.count()).select_from(LedgerTransaction).where(*conditions)
        )
        rows = self.session.scalars(
            select(LedgerTransaction)
            .where(*conditions)
            .order_by(
                LedgerTransaction.posted_at.desc(),
                LedgerTransaction.transaction_date.desc(),
                LedgerTransaction.id,
            )
            .limit(limit)
            .offset(offset)
        )
        return TransactionPage(
            transactions=tuple(LedgerTransactionView.from_model(txn) for txn in rows),
            total=total or 0,
            limit=limit,
            offset=offset,
        )

    def entries_for_source(
        self, tenant_id: str, source_type: str, source_id: str
    ) -> list[LedgerTransactionView]:
        """All transactions recorded against one source document, oldest first."""
        rows = self.session.scalars(
            select(LedgerTransaction)
            .where(
                LedgerTransaction.tenant_id == tenant_id,
                LedgerTransaction.source_type == source_type,
                LedgerTransaction.source_id == source_id,
            )
            .order_by(LedgerTransaction.posted_at)
        )
        return [LedgerTransactionView.from_model(txn) for txn in rows]
