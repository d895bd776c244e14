"""
Farm Kernel - double-entry posting core for farm and ranch operations.

This package provides:
- Chart-of-accounts and ledger persistence (LedgerTransaction / LedgerEntry)
- Control-account resolution for free-form tenant charts of accounts
- Atomic, idempotent ledger writes with compensating reversal
- Structured logging and the typed exception hierarchy shared by all layers
"""

__version__ = "0.1.0"
