"""Services for the farm kernel (write side)."""

from farm_kernel.services.account_directory import (
    AccountDirectory,
    resolve_control_account,
)
from farm_kernel.services.ledger_writer import (
    LedgerWriteResult,
    LedgerWriter,
    LedgerWriteStatus,
)
from farm_kernel.services.sequence_service import SequenceService

__all__ = [
    "AccountDirectory",
    "LedgerWriteResult",
    "LedgerWriteStatus",
    "LedgerWriter",
    "SequenceService",
    "resolve_control_account",
]
