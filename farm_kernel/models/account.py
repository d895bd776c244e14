"""
Module: farm_kernel.models.account
Responsibility: ORM persistence for the tenant chart of accounts and the
    tenant's control-account designations.
Architecture position: Kernel > Models.  May import from db/base.py only.

Invariants enforced:
    - (tenant_id, code) is unique.
    - normal_balance is derived from account_type (ASSET/EXPENSE/COGS are
      debit-normal, everything else credit-normal).
    - current_balance is a materialized Σdebit - Σcredit over the account's
      ledger entries.  Only the LedgerWriter changes it, inside the same
      atomic unit that writes the entries.

Failure modes:
    - AccountNotFoundError when a posting references a non-existent account.
    - AccountInactiveError when a posting targets an inactive account.
"""

from decimal import Decimal
from uuid import UUID
from enum import Enum

from sqlalchemy import Boolean, ForeignKey, Index, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from farm_kernel.db.base import TrackedBase, UUIDString
from farm_kernel.domain.values import ZERO


class AccountType(str, Enum):
    """Types of accounts in the chart of accounts."""

    ASSET = "ASSET"
    LIABILITY = "LIABILITY"
    EQUITY = "EQUITY"
    INCOME = "INCOME"
    EXPENSE = "EXPENSE"
    COGS = "COGS"


class NormalBalance(str, Enum):
    """Normal balance side for an account."""

    DEBIT = "DEBIT"
    CREDIT = "CREDIT"


_DEBIT_NORMAL_TYPES = frozenset(
    {AccountType.ASSET, AccountType.EXPENSE, AccountType.COGS}
)


def normal_balance_for(account_type: AccountType | str) -> NormalBalance:
    """Derive the normal balance side from the account type."""
    if AccountType(account_type) in _DEBIT_NORMAL_TYPES:
        return NormalBalance.DEBIT
    return NormalBalance.CREDIT


class Account(TrackedBase):
    """
    Chart of Accounts entry for one tenant.

    ``subtype`` is a free-form classifier (AR, AP, CASH, BANK, INVENTORY,
    FEED ...) used by the AccountDirectory to discover control accounts.
    System accounts (``is_system``) are seeded at onboarding and are never
    deleted.
    """

    __tablename__ = "accounts"

    __table_args__ = (
        UniqueConstraint("tenant_id", "code", name="uq_account_tenant_code"),
        Index("idx_account_tenant_type", "tenant_id", "account_type"),
        Index("idx_account_tenant_active", "tenant_id", "is_active"),
    )

    tenant_id: Mapped[str] = mapped_column(String(64), nullable=False)

    # Human-readable account code, unique per tenant
    code: Mapped[str] = mapped_column(String(50), nullable=False)

    name: Mapped[str] = mapped_column(String(255), nullable=False)

    account_type: Mapped[AccountType] = mapped_column(String(20), nullable=False)

    # Control-account classifier (case-insensitive match)
    subtype: Mapped[str | None] = mapped_column(String(50), nullable=True)

    normal_balance: Mapped[NormalBalance] = mapped_column(String(10), nullable=False)

    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    is_system: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    # Materialized Σdebit - Σcredit
    current_balance: Mapped[Decimal] = mapped_column(default=ZERO, nullable=False)

    def __init__(self, **kwargs):
        if "normal_balance" not in kwargs and "account_type" in kwargs:
            kwargs["normal_balance"] = normal_balance_for(kwargs["account_type"])
        kwargs.setdefault("current_balance", ZERO)
        kwargs.setdefault("is_active", True)
        kwargs.setdefault("is_system", False)
        super().__init__(**kwargs)

    def __repr__(self) -> str:
        return f"<Account {self.code}: {self.name}>"


class ControlAccountDesignation(TrackedBase):
    """
    Tenant-designated account for a control-account kind.

    A designation takes precedence over every heuristic, which is how a
    tenant with two cash accounts says which one checks and receipts use.
    """

    __tablename__ = "control_account_designations"

    __table_args__ = (
        UniqueConstraint("tenant_id", "kind", name="uq_control_designation_kind"),
    )

    tenant_id: Mapped[str] = mapped_column(String(64), nullable=False)

    # ControlAccountKind value
    kind: Mapped[str] = mapped_column(String(40), nullable=False)

    account_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("accounts.id"),
        nullable=False,
    )
