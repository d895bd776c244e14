"""Read-only selectors for the farm kernel (query side)."""

from farm_kernel.selectors.ledger_selector import (
    AccountBalance,
    LedgerEntryView,
    LedgerSelector,
    LedgerTransactionView,
    TrialBalance,
)

__all__ = [
    "AccountBalance",
    "LedgerEntryView",
    "LedgerSelector",
    "LedgerTransactionView",
    "TrialBalance",
]
