"""
Typed Exception Hierarchy for the farm posting core.

Every error raised by the kernel, the modules and the posting orchestrator is
a FarmLedgerError subclass.  Callers catch by type, never by message text.
Each class carries:

  1. a ``code`` class attribute (machine-readable, API-safe)
  2. an ``http_status`` class attribute used by the HTTP adapter
  3. structured attributes describing the failure

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

    FarmLedgerError (base)
    |
    +-- PostingValidationError                      (400, nothing written)
    |   +-- LedgerValidationError
    |   +-- UnbalancedEntryError
    |   +-- InvalidAmountError
    |   +-- UnknownDocumentTypeError
    |   +-- ReversalReasonRequiredError
    |
    +-- PreconditionError                           (400, nothing written)
    |   +-- DocumentStateError
    |   +-- AlreadyReversedError
    |   +-- ControlAccountNotFoundError
    |   +-- AmbiguousControlAccountError
    |   +-- MissingLineAccountError
    |   +-- AccountInactiveError
    |   +-- InsufficientInventoryError
    |   +-- PaymentAllocationError
    |
    +-- NotFoundError                               (404)
    |   +-- DocumentNotFoundError
    |   +-- AccountNotFoundError
    |   +-- TransactionNotFoundError
    |   +-- InventoryItemNotFoundError
    |
    +-- DuplicatePostingError                       (strict duplicate policy only)

Storage failures are not wrapped: SQLAlchemy errors propagate to
``session_scope()``, which rolls the whole unit back, and the HTTP adapter
reports them as 500.

===============================================================================
ERROR CODES - QUICK REFERENCE
===============================================================================

Category      | Code                         | When Raised
--------------|------------------------------|----------------------------------------
Validation    | INVALID_LEDGER_LINES         | Empty lines, both/neither side set
              | UNBALANCED_ENTRY             | Debits != credits beyond tolerance
              | INVALID_AMOUNT               | Negative or non-numeric amount
              | UNKNOWN_DOCUMENT_TYPE        | No postable adapter for the type
              | REVERSAL_REASON_REQUIRED     | Reverse/void without a reason
--------------|------------------------------|----------------------------------------
Precondition  | INVALID_DOCUMENT_STATE       | Document not in a postable state
              | ALREADY_REVERSED             | Transaction or document reversed
              | CONTROL_ACCOUNT_NOT_FOUND    | No A/R, A/P, cash ... account
              | AMBIGUOUS_CONTROL_ACCOUNT    | Several candidates, strict mode
              | MISSING_LINE_ACCOUNT         | Line item has no account assigned
              | ACCOUNT_INACTIVE             | Posting to a deactivated account
              | INSUFFICIENT_INVENTORY       | Negative stock under reject policy
              | PAYMENT_ALLOCATION_FAILED    | Payment exceeds or targets bad doc
--------------|------------------------------|----------------------------------------
Not found     | DOCUMENT_NOT_FOUND           | Source document does not exist
              | ACCOUNT_NOT_FOUND            | Account id unknown for tenant
              | TRANSACTION_NOT_FOUND        | Ledger transaction id unknown
              | INVENTORY_ITEM_NOT_FOUND     | Catalog item unknown for tenant
--------------|------------------------------|----------------------------------------
Duplicate     | DUPLICATE_POSTING            | Idempotency key already claimed

===============================================================================
HANDLING PATTERNS
===============================================================================

Already-posted documents are not errors under the default ``absorb``
duplicate policy: the poster returns a result whose status is
``ALREADY_POSTED``.  Only the ``strict`` policy raises DuplicatePostingError.

    try:
        result = poster.post(DocumentType.BILL, tenant_id, bill_id, actor_id)
    except MissingLineAccountError as e:
        return {"code": e.code, "line": e.line_number}
"""


class FarmLedgerError(Exception):
    """
    Base exception for all posting core errors.

    All subclasses carry a ``code`` class attribute for machine-readable
    identification and an ``http_status`` for the HTTP adapter.
    """

    code: str = "FARM_LEDGER_ERROR"
    http_status: int = 400


# Validation errors


class PostingValidationError(FarmLedgerError):
    """Base exception for malformed posting input."""

    code: str = "VALIDATION_ERROR"


class LedgerValidationError(PostingValidationError):
    """Ledger lines are malformed (empty, both sides set, neither side set)."""

    code: str = "INVALID_LEDGER_LINES"

    def __init__(self, reason: str, line_number: int | None = None):
        self.reason = reason
        self.line_number = line_number
        if line_number is None:
            super().__init__(f"Invalid ledger lines: {reason}")
        else:
            super().__init__(f"Invalid ledger line {line_number}: {reason}")


class UnbalancedEntryError(PostingValidationError):
    """Debits do not equal credits within tolerance."""

    code: str = "UNBALANCED_ENTRY"

    def __init__(self, debits: str, credits: str, tolerance: str):
        self.debits = debits
        self.credits = credits
        self.tolerance = tolerance
        super().__init__(
            f"Unbalanced entry: debits={debits}, credits={credits} "
            f"(tolerance {tolerance})"
        )


class InvalidAmountError(PostingValidationError):
    """An amount or quantity is negative, missing or not numeric."""

    code: str = "INVALID_AMOUNT"

    def __init__(self, field: str, value: object):
        self.field = field
        self.value = str(value)
        super().__init__(f"Invalid amount for {field}: {value!r}")


class UnknownDocumentTypeError(PostingValidationError):
    """No postable adapter is registered for the document type."""

    code: str = "UNKNOWN_DOCUMENT_TYPE"

    def __init__(self, document_type: str):
        self.document_type = document_type
        super().__init__(f"Unknown document type: {document_type}")


class ReversalReasonRequiredError(PostingValidationError):
    """Reversals and voids must state a reason."""

    code: str = "REVERSAL_REASON_REQUIRED"

    def __init__(self, entity_id: str):
        self.entity_id = entity_id
        super().__init__(f"A reason is required to reverse {entity_id}")


# Precondition errors


class PreconditionError(FarmLedgerError):
    """Base exception for state that forbids posting or reversal."""

    code: str = "PRECONDITION_FAILED"


class DocumentStateError(PreconditionError):
    """Source document is not in a state that allows the action."""

    code: str = "INVALID_DOCUMENT_STATE"

    def __init__(
        self,
        document_type: str,
        document_id: str,
        status: str,
        action: str,
        detail: str | None = None,
    ):
        self.document_type = document_type
        self.document_id = document_id
        self.status = status
        self.action = action
        msg = f"Cannot {action} {document_type} {document_id}: status is {status}"
        if detail:
            msg = f"{msg} ({detail})"
        super().__init__(msg)


class AlreadyReversedError(PreconditionError):
    """Transaction or document has already been reversed."""

    code: str = "ALREADY_REVERSED"

    def __init__(self, entity_type: str, entity_id: str):
        self.entity_type = entity_type
        self.entity_id = entity_id
        super().__init__(f"{entity_type} {entity_id} has already been reversed")


class ControlAccountNotFoundError(PreconditionError):
    """No account could be resolved for a control-account kind."""

    code: str = "CONTROL_ACCOUNT_NOT_FOUND"

    def __init__(self, tenant_id: str, kind: str, label: str):
        self.tenant_id = tenant_id
        self.kind = kind
        self.label = label
        super().__init__(f"No {label} account found; set one up first")


class AmbiguousControlAccountError(PreconditionError):
    """Several accounts qualify for a control-account kind and none is designated."""

    code: str = "AMBIGUOUS_CONTROL_ACCOUNT"

    def __init__(self, tenant_id: str, kind: str, candidates: list[str]):
        self.tenant_id = tenant_id
        self.kind = kind
        self.candidates = candidates
        super().__init__(
            f"Several accounts qualify as {kind} ({', '.join(candidates)}); "
            "designate one before posting"
        )


class MissingLineAccountError(PreconditionError):
    """A line item that needs an account mapping has none."""

    code: str = "MISSING_LINE_ACCOUNT"

    def __init__(self, document_type: str, document_id: str, line_number: int):
        self.document_type = document_type
        self.document_id = document_id
        self.line_number = line_number
        super().__init__(f"Assign an account to line {line_number}")


class AccountInactiveError(PreconditionError):
    """Account is not active for posting."""

    code: str = "ACCOUNT_INACTIVE"

    def __init__(self, account_id: str):
        self.account_id = account_id
        super().__init__(f"Account is inactive: {account_id}")


class InsufficientInventoryError(PreconditionError):
    """Movement would take stock negative while negative stock is rejected."""

    code: str = "INSUFFICIENT_INVENTORY"

    def __init__(self, site_id: str, item_id: str, on_hand: str, requested: str):
        self.site_id = site_id
        self.item_id = item_id
        self.on_hand = on_hand
        self.requested = requested
        super().__init__(
            f"Insufficient inventory for item {item_id} at site {site_id}: "
            f"on hand {on_hand}, requested {requested}"
        )


class PaymentAllocationError(PreconditionError):
    """A payment cannot be applied to the referenced document."""

    code: str = "PAYMENT_ALLOCATION_FAILED"

    def __init__(self, document_id: str, reason: str):
        self.document_id = document_id
        self.reason = reason
        super().__init__(f"Cannot apply payment to {document_id}: {reason}")


# Not-found errors


class NotFoundError(FarmLedgerError):
    """Base exception for missing entities."""

    code: str = "NOT_FOUND"
    http_status: int = 404


class DocumentNotFoundError(NotFoundError):
    """Source document was not found for the tenant."""

    code: str = "DOCUMENT_NOT_FOUND"

    def __init__(self, document_type: str, document_id: str):
        self.document_type = document_type
        self.document_id = document_id
        super().__init__(f"{document_type} not found: {document_id}")


class AccountNotFoundError(NotFoundError):
    """Account was not found."""

    code: str = "ACCOUNT_NOT_FOUND"

    def __init__(self, account_id: str):
        self.account_id = account_id
        super().__init__(f"Account not found: {account_id}")


class TransactionNotFoundError(NotFoundError):
    """Ledger transaction was not found."""

    code: str = "TRANSACTION_NOT_FOUND"

    def __init__(self, transaction_id: str):
        self.transaction_id = transaction_id
        super().__init__(f"Ledger transaction not found: {transaction_id}")


class InventoryItemNotFoundError(NotFoundError):
    """Inventory catalog item was not found."""

    code: str = "INVENTORY_ITEM_NOT_FOUND"

    def __init__(self, item_id: str):
        self.item_id = item_id
        super().__init__(f"Inventory item not found: {item_id}")


# Duplicate posting


class DuplicatePostingError(FarmLedgerError):
    """
    Idempotency key already claimed by an existing transaction.

    Raised only under the ``strict`` duplicate policy; the default policy
    absorbs the collision and reports the existing transaction.
    """

    code: str = "DUPLICATE_POSTING"

    def __init__(self, tenant_id: str, idempotency_key: str, transaction_id: str):
        self.tenant_id = tenant_id
        self.idempotency_key = idempotency_key
        self.transaction_id = transaction_id
        super().__init__(
            f"Already posted: key {idempotency_key} belongs to transaction "
            f"{transaction_id}"
        )
