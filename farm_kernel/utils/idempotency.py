"""
Idempotency key generation utilities.

Idempotency keys ensure that the same source document always produces the
same ledger transaction, even under retries and concurrent requests.  The
key is stored on LedgerTransaction with a (tenant_id, idempotency_key)
unique constraint; the first writer claims it and every later attempt
observes the existing transaction.
"""

from uuid import UUID

REVERSAL_PREFIX = "reversal"


def document_idempotency_key(key_prefix: str, document_id: UUID | str) -> str:
    """
    Generate the idempotency key for posting a source document.

    Format: <prefix>-<document_id>

    The tenant is not part of the key; uniqueness is enforced per tenant by
    the database constraint.

    Example:
        >>> document_idempotency_key("invoice", uuid)
        "invoice-550e8400-e29b-41d4-a716-446655440000"
    """
    if not key_prefix:
        raise ValueError("Idempotency key prefix must be non-empty")
    return f"{key_prefix}-{document_id}"


def reversal_idempotency_key(transaction_id: UUID | str) -> str:
    """Idempotency key for the compensating transaction of ``transaction_id``."""
    return f"{REVERSAL_PREFIX}-{transaction_id}"


def parse_idempotency_key(key: str) -> tuple[str, str]:
    """
    Parse an idempotency key into (prefix, document_id).

    Raises:
        ValueError: If key format is invalid.
    """
    prefix, sep, document_id = key.partition("-")
    if not sep or not prefix or not document_id:
        raise ValueError(f"Invalid idempotency key format: {key}")
    return prefix, document_id
