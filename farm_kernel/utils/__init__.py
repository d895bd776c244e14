"""Utility modules for the farm kernel."""

from farm_kernel.utils.idempotency import (
    document_idempotency_key,
    parse_idempotency_key,
    reversal_idempotency_key,
)

__all__ = [
    "document_idempotency_key",
    "parse_idempotency_key",
    "reversal_idempotency_key",
]
