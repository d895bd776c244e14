"""
farm_services.document_poster -- Post and reverse source documents.

Responsibility:
    The orchestrator.  For a source document it checks the posting
    preconditions, builds the ledger lines from the document's profile,
    writes the ledger transaction, applies the inventory movements and
    payment allocations, and writes the posting status back onto the
    document.  Reversal runs the same steps backwards with a compensating
    transaction.

Architecture position:
    Services -- the only place ``farm_kernel`` writers, the inventory mover
    and the module documents meet.  Dispatch is by DocumentType through
    ``farm_services.adapters.ADAPTERS``; there is no per-type branching
    here.

Invariants enforced:
    - All-or-nothing: every step flushes into the caller's session and
      nothing is committed here.  Any failure propagates to the caller's
      ``session_scope()``, which rolls the whole attempt back.
    - Exactly once: the document row is locked, an already-posted document
      yields ALREADY_POSTED, and the ledger idempotency key
      (``<type>-<id>``) absorbs a concurrent duplicate.
    - Every precondition (status, line accounts, control accounts, payment
      targets) is checked before the first write.

Failure modes:
    - DocumentNotFoundError: unknown id for the tenant.
    - DocumentStateError: status does not allow the action.
    - AlreadyReversedError, ReversalReasonRequiredError: reversal
      preconditions.
    - Anything raised by the adapters, the LedgerWriter or the
      InventoryMover.

Usage:
    with session_scope() as session:
        poster = DocumentPoster(session, policy)
        result = poster.post(DocumentType.INVOICE, "t1", invoice_id, "user-1")
        result.already_posted   # False on the first call, True afterwards
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any
from uuid import UUID

from sqlalchemy.orm import Session

from farm_kernel.domain.clock import Clock, SystemClock
from farm_kernel.domain.policy import PostingPolicy
from farm_kernel.exceptions import (
    AlreadyReversedError,
    DocumentStateError,
    ReversalReasonRequiredError,
)
from farm_kernel.logging_config import LogContext, get_logger
from farm_kernel.services.account_directory import AccountDirectory
from farm_kernel.services.ledger_writer import LedgerWriter
from farm_modules.inventory.orm import InventoryMovement
from farm_modules.inventory.service import InventoryMover
from farm_services.adapters import adapter_for
from farm_services.postable import DocumentType, PostableDocument, PostingContext

logger = get_logger("services.document_poster")


class PostingStatus(str, Enum):
    POSTED = "posted"
    ALREADY_POSTED = "already_posted"
    REVERSED = "reversed"


@dataclass(frozen=True)
class PostingResult:
    """
    Outcome of DocumentPoster.post() / reverse().

    ``ledger_transaction_id`` is the posting's transaction (None for a
    financially empty document); for a reversal it is the compensating
    transaction.
    """

    status: PostingStatus
    document_type: DocumentType
    document: Any
    ledger_transaction_id: UUID | None
    movements: tuple[InventoryMovement, ...] = field(default_factory=tuple)

    @property
    def already_posted(self) -> bool:
        return self.status == PostingStatus.ALREADY_POSTED


class DocumentPoster:
    """
    Posts and reverses every kind of source document.

    Contract:
        post() and reverse() either complete every effect or raise, leaving
        the session to be rolled back by its owner.

    Non-goals:
        - Does NOT commit or roll back.
        - Does NOT re-check tenant ownership beyond filtering by tenant.
    """

    def __init__(
        self,
        session: Session,
        policy: PostingPolicy | None = None,
        clock: Clock | None = None,
    ):
        self.session = session
        self.policy = policy or PostingPolicy()
        self.clock = clock or SystemClock()
        self.directory = AccountDirectory(session, self.policy)
        self.writer = LedgerWriter(session, self.policy, self.clock, self.directory)
        self.inventory = InventoryMover(session, self.policy, self.clock)
        self.context = PostingContext(
            session=session,
            policy=self.policy,
            directory=self.directory,
            inventory=self.inventory,
            clock=self.clock,
        )

    def _adapter(
        self, document_type: DocumentType | str, tenant_id: str, document_id: UUID
    ) -> PostableDocument:
        adapter_cls = adapter_for(document_type)
        document = adapter_cls.load(self.session, tenant_id, document_id)
        return adapter_cls(document, self.context)

    # ------------------------------------------------------------------
    # Posting
    # ------------------------------------------------------------------

    def post(
        self,
        document_type: DocumentType | str,
        tenant_id: str,
        document_id: UUID,
        actor_id: str | None,
        locker_id: str | None = None,
    ) -> PostingResult:
        """
        Post one source document.

        Returns ALREADY_POSTED, writing nothing, when the document already
        carries its posting.  A document in its reversed status raises
        DocumentStateError instead.

        Raises:
            DocumentNotFoundError, DocumentStateError, MissingLineAccountError,
            ControlAccountNotFoundError, PaymentAllocationError,
            InsufficientInventoryError, LedgerValidationError ...
        """
        t0 = time.monotonic()
        adapter = self._adapter(document_type, tenant_id, document_id)
        doc_type = adapter.document_type
        document = adapter.document
        transition = adapter.status_transition()

        with LogContext.bind(
            tenant_id=tenant_id,
            actor_id=actor_id,
            document_type=doc_type.value,
            document_id=str(document_id),
        ):
            if document.status == transition.reversed:
                raise DocumentStateError(
                    doc_type.value,
                    str(document_id),
                    document.status,
                    "post",
                    "a reversed document cannot be posted again",
                )

            if adapter.is_already_posted():
                logger.info(
                    "document_already_posted",
                    extra={
                        "status": document.status,
                        "ledger_transaction_id": _str(document.ledger_transaction_id),
                    },
                )
                return PostingResult(
                    status=PostingStatus.ALREADY_POSTED,
                    document_type=doc_type,
                    document=document,
                    ledger_transaction_id=document.ledger_transaction_id,
                )

            if document.status not in transition.postable:
                raise DocumentStateError(
                    doc_type.value,
                    str(document_id),
                    document.status,
                    "post",
                    f"only {', '.join(sorted(transition.postable))} documents can be posted",
                )

            adapter.prepare()
            profile = adapter.account_mapping()
            lines = adapter.lines() if profile.is_financial else []

            transaction_id = None
            if lines:
                write = self.writer.post_transaction(
                    tenant_id=tenant_id,
                    site_id=adapter.site_id,
                    source_type=doc_type.value,
                    source_id=str(document_id),
                    idempotency_key=adapter.idempotency_key,
                    transaction_date=adapter.transaction_date(),
                    description=adapter.description(),
                    lines=lines,
                    actor_id=actor_id,
                    locker_id=locker_id,
                )
                transaction_id = write.transaction_id
                if not write.is_new:
                    # The key was claimed without the write-back; relink only
                    adapter.mark_posted(transaction_id, actor_id, self.clock.now())
                    self.session.flush()
                    logger.warning(
                        "document_relinked_to_existing_transaction",
                        extra={"ledger_transaction_id": str(transaction_id)},
                    )
                    return PostingResult(
                        status=PostingStatus.ALREADY_POSTED,
                        document_type=doc_type,
                        document=document,
                        ledger_transaction_id=transaction_id,
                    )

            movements = tuple(
                self.inventory.apply_movement(
                    tenant_id=tenant_id,
                    site_id=spec.site_id or adapter.site_id,
                    item_id=spec.item_id,
                    quantity_delta=spec.quantity_delta,
                    movement_type=spec.movement_type,
                    unit_cost=spec.unit_cost,
                    event_id=str(document_id),
                    event_type=profile.trigger if doc_type == DocumentType.EVENT else doc_type.value,
                    related_site_id=spec.related_site_id,
                    actor_id=actor_id,
                )
                for spec in adapter.movements()
            )

            adapter.apply_side_effects()
            adapter.mark_posted(transaction_id, actor_id, self.clock.now())
            self.session.flush()

            logger.info(
                "document_posted",
                extra={
                    "profile": profile.name,
                    "ledger_transaction_id": _str(transaction_id),
                    "line_count": len(lines),
                    "movement_count": len(movements),
                    "status": document.status,
                    "locker_id": locker_id,
                    "duration_ms": round((time.monotonic() - t0) * 1000, 2),
                },
            )
            return PostingResult(
                status=PostingStatus.POSTED,
                document_type=doc_type,
                document=document,
                ledger_transaction_id=transaction_id,
                movements=movements,
            )

    # ------------------------------------------------------------------
    # Reversal
    # ------------------------------------------------------------------

    def reverse(
        self,
        document_type: DocumentType | str,
        tenant_id: str,
        document_id: UUID,
        reason: str | None,
        actor_id: str | None,
        locker_id: str | None = None,
    ) -> PostingResult:
        """
        Reverse (void) a posted document with a compensating transaction.

        Mirrors the ledger transaction, reverses the document's inventory
        movements, undoes payment allocations and moves the document to its
        reversed status (VOID, REVERSED or cancelled).

        Raises:
            ReversalReasonRequiredError: blank ``reason``.
            AlreadyReversedError: the document is already reversed.
            DocumentStateError: the document is not posted, or is a paid
                invoice or bill.
        """
        if not reason or not reason.strip():
            raise ReversalReasonRequiredError(str(document_id))

        adapter = self._adapter(document_type, tenant_id, document_id)
        doc_type = adapter.document_type
        document = adapter.document
        transition = adapter.status_transition()

        with LogContext.bind(
            tenant_id=tenant_id,
            actor_id=actor_id,
            document_type=doc_type.value,
            document_id=str(document_id),
        ):
            if document.status == transition.reversed:
                raise AlreadyReversedError(doc_type.value, str(document_id))
            if document.status not in transition.reversible or not adapter.is_already_posted():
                raise DocumentStateError(
                    doc_type.value,
                    str(document_id),
                    document.status,
                    "reverse",
                    "only posted documents can be reversed",
                )
            adapter.check_reversible()

            reversal_id = None
            if document.ledger_transaction_id is not None:
                write = self.writer.reverse_transaction(
                    tenant_id=tenant_id,
                    transaction_id=document.ledger_transaction_id,
                    reason=reason,
                    actor_id=actor_id,
                    locker_id=locker_id,
                )
                reversal_id = write.transaction_id

            movements = tuple(
                self.inventory.reverse_event_movements(tenant_id, str(document_id), actor_id)
            )
            adapter.reverse_side_effects(actor_id, reversal_id)
            adapter.mark_reversed(actor_id, reason, self.clock.now())
            self.session.flush()

            logger.info(
                "document_reversed",
                extra={
                    "ledger_transaction_id": _str(document.ledger_transaction_id),
                    "reversal_transaction_id": _str(reversal_id),
                    "movement_count": len(movements),
                    "status": document.status,
                    "reason": reason,
                },
            )
            return PostingResult(
                status=PostingStatus.REVERSED,
                document_type=doc_type,
                document=document,
                ledger_transaction_id=reversal_id,
                movements=movements,
            )


def _str(value: object) -> str | None:
    return str(value) if value is not None else None
