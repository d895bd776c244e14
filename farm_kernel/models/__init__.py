"""Persistence models for the farm kernel."""

from farm_kernel.models.account import (
    Account,
    AccountType,
    ControlAccountDesignation,
    NormalBalance,
    normal_balance_for,
)
from farm_kernel.models.ledger import (
    LedgerEntry,
    LedgerTransaction,
    LedgerTransactionStatus,
)

__all__ = [
    "Account",
    "AccountType",
    "ControlAccountDesignation",
    "LedgerEntry",
    "LedgerTransaction",
    "LedgerTransactionStatus",
    "NormalBalance",
    "normal_balance_for",
]
