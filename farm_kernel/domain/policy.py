"""
Posting policy -- the configurable decisions of the posting core.

Responsibility:
    Holds the knobs that the rest of the kernel consults instead of
    hard-coding behavior: balance tolerance, what a duplicate idempotency
    key means, whether stock may go negative, how ambiguous charts of
    accounts are resolved, and the control-account resolution rules.

Architecture position:
    Kernel > Domain -- pure, zero I/O.  ``farm_config`` builds a
    PostingPolicy from YAML; the kernel never reads configuration files.

Invariants enforced:
    - All tolerances are Decimal and strictly positive.
    - Every ControlAccountKind has a resolution rule.

Failure modes:
    - ValueError at construction if any constraint is violated.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum
from types import MappingProxyType
from typing import Mapping

from farm_kernel.domain.dtos import ControlAccountKind
from farm_kernel.logging_config import get_logger

logger = get_logger("domain.policy")


class DuplicatePolicy(str, Enum):
    """What the LedgerWriter does when an idempotency key is already claimed."""

    ABSORB = "absorb"  # return the existing transaction
    STRICT = "strict"  # raise DuplicatePostingError


class NegativeInventoryPolicy(str, Enum):
    """Whether a movement may take on-hand quantity below zero."""

    ALLOW = "allow"
    REJECT = "reject"


class FeedCostingMode(str, Enum):
    """Where the cost of feed consumed by livestock lands."""

    EXPENSE = "expense"  # Dr feed expense
    CAPITALIZE = "capitalize"  # Dr livestock asset


@dataclass(frozen=True)
class ControlAccountRule:
    """
    How one control-account kind is located in a free-form chart.

    Resolution order: tenant designation, then each subtype in order
    (case-insensitive), then each regex pattern against code and name
    (case-insensitive), then the first account of each fallback type.
    """

    kind: ControlAccountKind
    label: str
    subtypes: tuple[str, ...] = ()
    patterns: tuple[str, ...] = ()
    fallback_types: tuple[str, ...] = ()

    def __post_init__(self):
        if not self.label.strip():
            raise ValueError(f"Control account rule {self.kind} needs a label")
        if not (self.subtypes or self.patterns or self.fallback_types):
            raise ValueError(
                f"Control account rule {self.kind} has no subtypes, patterns "
                "or fallback types"
            )
        for pattern in self.patterns:
            try:
                re.compile(pattern)
            except re.error as exc:
                raise ValueError(
                    f"Invalid pattern {pattern!r} for {self.kind}: {exc}"
                ) from exc


def _rule(kind, label, subtypes=(), patterns=(), fallback_types=()) -> ControlAccountRule:
    return ControlAccountRule(
        kind=kind,
        label=label,
        subtypes=tuple(subtypes),
        patterns=tuple(patterns),
        fallback_types=tuple(fallback_types),
    )


K = ControlAccountKind

DEFAULT_CONTROL_ACCOUNT_RULES: Mapping[ControlAccountKind, ControlAccountRule] = (
    MappingProxyType(
        {
            K.AR: _rule(K.AR, "Accounts Receivable", ("AR",), ("receivable",)),
            K.AP: _rule(K.AP, "Accounts Payable", ("AP",), ("payable",)),
            K.CASH: _rule(K.CASH, "Cash or Bank", ("CASH", "BANK")),
            K.DEFAULT_INCOME: _rule(
                K.DEFAULT_INCOME, "Income", fallback_types=("INCOME",)
            ),
            K.DEFAULT_EXPENSE: _rule(
                K.DEFAULT_EXPENSE, "Expense", fallback_types=("EXPENSE",)
            ),
            K.INVENTORY: _rule(
                K.INVENTORY, "Inventory", ("INVENTORY",), (r"inventory$",)
            ),
            K.FEED_EXPENSE: _rule(
                K.FEED_EXPENSE, "Feed Expense", ("FEED", "FEED_EXPENSE"), (r"feed.*expense",)
            ),
            K.MEDICAL_EXPENSE: _rule(
                K.MEDICAL_EXPENSE,
                "Medical Expense",
                ("MEDICAL", "MEDICAL_EXPENSE"),
                (r"medical", r"veterinary"),
            ),
            K.LABOR_EXPENSE: _rule(
                K.LABOR_EXPENSE, "Labor Expense", ("LABOR", "LABOR_EXPENSE"), (r"labou?r", r"wages")
            ),
            K.REPAIR_EXPENSE: _rule(
                K.REPAIR_EXPENSE,
                "Repairs & Maintenance",
                ("REPAIRS", "REPAIR_EXPENSE"),
                (r"repair", r"maintenance"),
            ),
            K.SALES: _rule(K.SALES, "Sales Revenue", ("SALES",), (r"sales",), ("INCOME",)),
            K.COGS: _rule(K.COGS, "Cost of Goods Sold", ("COGS",), (r"cost of goods",), ("COGS",)),
            K.LIVESTOCK: _rule(K.LIVESTOCK, "Livestock", ("LIVESTOCK",), (r"livestock",)),
            K.INVENTORY_ADJUSTMENT: _rule(
                K.INVENTORY_ADJUSTMENT,
                "Inventory Adjustment",
                ("INVENTORY_ADJUSTMENT",),
                (r"inventory adjustment",),
            ),
        }
    )
)


@dataclass(frozen=True)
class ChartAccountDef:
    """One account of a seed chart of accounts."""

    code: str
    name: str
    account_type: str
    subtype: str | None = None


@dataclass(frozen=True)
class PostingPolicy:
    """
    Configuration for the posting core.

    Defaults reproduce the long-standing behavior: absorb duplicates,
    allow negative stock, first deterministic match for control accounts.
    Override at instantiation or load from YAML via ``farm_config``:

        policy = PostingPolicy(negative_inventory=NegativeInventoryPolicy.REJECT)
    """

    balance_tolerance: Decimal = Decimal("0.01")
    duplicate_policy: DuplicatePolicy = DuplicatePolicy.ABSORB
    negative_inventory: NegativeInventoryPolicy = NegativeInventoryPolicy.ALLOW
    strict_control_accounts: bool = False
    feed_costing_mode: FeedCostingMode = FeedCostingMode.EXPENSE
    control_accounts: Mapping[ControlAccountKind, ControlAccountRule] = field(
        default_factory=lambda: DEFAULT_CONTROL_ACCOUNT_RULES
    )
    chart_of_accounts: tuple[ChartAccountDef, ...] = ()

    def __post_init__(self):
        if self.balance_tolerance <= 0:
            raise ValueError("balance_tolerance must be positive")
        missing = [k.value for k in ControlAccountKind if k not in self.control_accounts]
        if missing:
            raise ValueError(f"No control account rule for: {', '.join(missing)}")
        codes = [a.code for a in self.chart_of_accounts]
        if len(codes) != len(set(codes)):
            raise ValueError("chart_of_accounts contains duplicate codes")
        logger.debug(
            "posting_policy_initialized",
            extra={
                "balance_tolerance": str(self.balance_tolerance),
                "duplicate_policy": self.duplicate_policy.value,
                "negative_inventory": self.negative_inventory.value,
                "strict_control_accounts": self.strict_control_accounts,
                "feed_costing_mode": self.feed_costing_mode.value,
                "chart_account_count": len(self.chart_of_accounts),
            },
        )

    def rule_for(self, kind: ControlAccountKind) -> ControlAccountRule:
        return self.control_accounts[kind]
