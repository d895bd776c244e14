"""
Module: farm_kernel.services.account_directory
Responsibility: Resolve a tenant's chart of accounts and locate control
    accounts (A/R, A/P, cash/bank, default income/expense and the farm
    roles) in free-form, tenant-defined charts.
Architecture position: Kernel > Services.  Leaf component: the LedgerWriter,
    the document adapters and the API all consume it; it depends on nothing
    above the models.

Invariants enforced:
    - Resolution is deterministic.  Candidates within a step are ordered by
      account code, so two CASH accounts always resolve the same way.
    - A tenant designation wins over every heuristic.
    - Only active accounts are ever returned.
    - Under ``strict_control_accounts`` an ambiguous step (more than one
      candidate, no designation) is rejected rather than guessed.

Failure modes:
    - find_control_account() returns None when nothing qualifies; callers
      that need the account use require_control_account(), which raises
      ControlAccountNotFoundError with an actionable message.
    - AmbiguousControlAccountError in strict mode.
    - AccountNotFoundError / AccountInactiveError from get_account().
"""

import re
from decimal import Decimal
from typing import Iterable, Sequence
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from farm_kernel.domain.dtos import ControlAccountKind
from farm_kernel.domain.policy import ChartAccountDef, ControlAccountRule, PostingPolicy
from farm_kernel.domain.values import ZERO
from farm_kernel.exceptions import (
    AccountInactiveError,
    AccountNotFoundError,
    AmbiguousControlAccountError,
    ControlAccountNotFoundError,
)
from farm_kernel.logging_config import get_logger
from farm_kernel.models.account import (
    Account,
    AccountType,
    ControlAccountDesignation,
    normal_balance_for,
)
from farm_kernel.models.ledger import LedgerEntry
from farm_kernel.services.base import BaseService

logger = get_logger("services.account_directory")


def _ordered(accounts: Iterable[Account]) -> list[Account]:
    return sorted(accounts, key=lambda a: a.code)


def resolve_control_account(
    accounts: Sequence[Account],
    rule: ControlAccountRule,
    designated_account_id: UUID | None = None,
    strict: bool = False,
) -> Account | None:
    """
    Pick the control account for ``rule`` out of ``accounts``.

    Pure strategy function: no session, no logging, so it can be tested and
    reasoned about in isolation.  Steps, first hit wins:

    1. the designated account, if it is among the active accounts
    2. subtype match, one subtype at a time in rule order (case-insensitive)
    3. regex match on code or name, one pattern at a time (case-insensitive)
    4. first active account of each fallback type, in rule order

    Raises:
        AmbiguousControlAccountError: ``strict`` is set and the winning
            step produced more than one candidate.
    """
    active = _ordered(a for a in accounts if a.is_active)

    if designated_account_id is not None:
        for account in active:
            if account.id == designated_account_id:
                return account

    steps: list[list[Account]] = []
    for subtype in rule.subtypes:
        wanted = subtype.casefold()
        steps.append(
            [a for a in active if a.subtype and a.subtype.casefold() == wanted]
        )
    for pattern in rule.patterns:
        regex = re.compile(pattern, re.IGNORECASE)
        steps.append(
            [a for a in active if regex.search(a.code) or regex.search(a.name)]
        )
    for account_type in rule.fallback_types:
        steps.append([a for a in active if a.account_type == account_type])

    for candidates in steps:
        if not candidates:
            continue
        if strict and len(candidates) > 1:
            tenant_id = candidates[0].tenant_id
            raise AmbiguousControlAccountError(
                tenant_id, rule.kind.value, [a.code for a in candidates]
            )
        return candidates[0]
    return None


class AccountDirectory(BaseService[Account]):
    """
    Chart-of-accounts lookups and control-account resolution for one session.

    Contract:
        Read-mostly.  The only writes are seeding a chart, recording a
        designation and rebuilding the materialized balances; all of them
        flush and leave the commit to the caller.

    Usage:
        directory = AccountDirectory(session, policy)
        ap = directory.require_control_account(tenant_id, ControlAccountKind.AP)
    """

    def __init__(self, session: Session, policy: PostingPolicy | None = None):
        super().__init__(session)
        self.policy = policy or PostingPolicy()
        # Per-session cache of each tenant's chart; postings resolve several
        # kinds against the same chart.
        self._charts: dict[str, list[Account]] = {}

    # ------------------------------------------------------------------
    # Lookups
    # ------------------------------------------------------------------

    def list_accounts(self, tenant_id: str, active_only: bool = True) -> list[Account]:
        stmt = select(Account).where(Account.tenant_id == tenant_id)
        if active_only:
            stmt = stmt.where(Account.is_active.is_(True))
        return list(self.session.scalars(stmt.order_by(Account.code)))

    def get_account(self, tenant_id: str, account_id: UUID) -> Account:
        """
        Load an account that a posting line references.

        Raises:
            AccountNotFoundError: unknown id for the tenant.
            AccountInactiveError: the account is deactivated.
        """
        account = self.session.get(Account, account_id)
        if account is None or account.tenant_id != tenant_id:
            raise AccountNotFoundError(str(account_id))
        if not account.is_active:
            raise AccountInactiveError(str(account_id))
        return account

    def get_by_code(self, tenant_id: str, code: str) -> Account | None:
        return self.session.execute(
            select(Account).where(Account.tenant_id == tenant_id, Account.code == code)
        ).scalar_one_or_none()

    # ------------------------------------------------------------------
    # Control accounts
    # ------------------------------------------------------------------

    def _chart(self, tenant_id: str) -> list[Account]:
        if tenant_id not in self._charts:
            self._charts[tenant_id] = self.list_accounts(tenant_id)
        return self._charts[tenant_id]

    def _designation(self, tenant_id: str, kind: ControlAccountKind) -> UUID | None:
        return self.session.execute(
            select(ControlAccountDesignation.account_id).where(
                ControlAccountDesignation.tenant_id == tenant_id,
                ControlAccountDesignation.kind == kind.value,
            )
        ).scalar_one_or_none()

    def find_control_account(
        self,
        tenant_id: str,
        kind: ControlAccountKind,
        rule: ControlAccountRule | None = None,
    ) -> Account | None:
        """
        Resolve ``kind`` for the tenant, or None when no candidate exists.

        ``rule`` overrides the policy's rule for this call, which is how a
        caller injects a different priority order.
        """
        rule = rule or self.policy.rule_for(kind)
        account = resolve_control_account(
            self._chart(tenant_id),
            rule,
            designated_account_id=self._designation(tenant_id, kind),
            strict=self.policy.strict_control_accounts,
        )
        if account is None:
            logger.info(
                "control_account_unresolved",
                extra={"tenant_id": tenant_id, "kind": kind.value},
            )
        else:
            logger.debug(
                "control_account_resolved",
                extra={
                    "tenant_id": tenant_id,
                    "kind": kind.value,
                    "account_code": account.code,
                },
            )
        return account

    def require_control_account(
        self, tenant_id: str, kind: ControlAccountKind
    ) -> Account:
        """
        Resolve ``kind`` or refuse to post.

        Raises:
            ControlAccountNotFoundError: "No <label> account found; set one
                up first".
        """
        account = self.find_control_account(tenant_id, kind)
        if account is None:
            raise ControlAccountNotFoundError(
                tenant_id, kind.value, self.policy.rule_for(kind).label
            )
        return account

    def designate_control_account(
        self,
        tenant_id: str,
        kind: ControlAccountKind,
        account_code: str,
        actor_id: str | None = None,
    ) -> ControlAccountDesignation:
        """Record the tenant's chosen account for ``kind`` (replaces any earlier choice)."""
        account = self.get_by_code(tenant_id, account_code)
        if account is None:
            raise AccountNotFoundError(account_code)
        if not account.is_active:
            raise AccountInactiveError(str(account.id))

        designation = self.session.execute(
            select(ControlAccountDesignation).where(
                ControlAccountDesignation.tenant_id == tenant_id,
                ControlAccountDesignation.kind == kind.value,
            )
        ).scalar_one_or_none()
        if designation is None:
            designation = ControlAccountDesignation(
                tenant_id=tenant_id,
                kind=kind.value,
                account_id=account.id,
                created_by=actor_id,
            )
            self.session.add(designation)
        else:
            designation.account_id = account.id
        self.session.flush()

        logger.info(
            "control_account_designated",
            extra={
                "tenant_id": tenant_id,
                "kind": kind.value,
                "account_code": account_code,
            },
        )
        return designation

    # ------------------------------------------------------------------
    # Chart maintenance
    # ------------------------------------------------------------------

    def seed_chart_of_accounts(
        self,
        tenant_id: str,
        chart: Sequence[ChartAccountDef] | None = None,
    ) -> list[Account]:
        """
        Create the default chart of accounts for a new tenant.

        Does nothing (returns []) when the tenant already has any account.
        Seeded accounts are marked ``is_system``.
        """
        chart = self.policy.chart_of_accounts if chart is None else chart
        existing = self.session.execute(
            select(func.count(Account.id)).where(Account.tenant_id == tenant_id)
        ).scalar_one()
        if existing:
            logger.info(
                "chart_seed_skipped",
                extra={"tenant_id": tenant_id, "existing_accounts": existing},
            )
            return []

        accounts = [
            Account(
                tenant_id=tenant_id,
                code=spec.code,
                name=spec.name,
                account_type=AccountType(spec.account_type),
                normal_balance=normal_balance_for(spec.account_type),
                subtype=spec.subtype,
                is_system=True,
            )
            for spec in chart
        ]
        self.session.add_all(accounts)
        self.session.flush()
        self._charts.pop(tenant_id, None)

        logger.info(
            "chart_of_accounts_seeded",
            extra={"tenant_id": tenant_id, "account_count": len(accounts)},
        )
        return accounts

    def rebuild_balances(self, tenant_id: str) -> dict[str, Decimal]:
        """
        Recompute every account's ``current_balance`` from its entries.

        Returns the rebuilt balances keyed by account code.
        """
        totals = dict(
            self.session.execute(
                select(
                    LedgerEntry.account_id,
                    func.coalesce(func.sum(LedgerEntry.debit), 0)
                    - func.coalesce(func.sum(LedgerEntry.credit), 0),
                )
                .where(LedgerEntry.tenant_id == tenant_id)
                .group_by(LedgerEntry.account_id)
            ).all()
        )
        rebuilt: dict[str, Decimal] = {}
        for account in self.list_accounts(tenant_id, active_only=False):
            balance = Decimal(str(totals.get(account.id, ZERO)))
            if account.current_balance != balance:
                logger.warning(
                    "account_balance_drift_corrected",
                    extra={
                        "account_code": account.code,
                        "cached": str(account.current_balance),
                        "computed": str(balance),
                    },
                )
            account.current_balance = balance
            rebuilt[account.code] = balance
        self.session.flush()
        return rebuilt
