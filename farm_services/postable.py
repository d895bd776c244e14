"""
farm_services.postable -- The PostableDocument interface and profile evaluation.

Responsibility:
    Defines what the DocumentPoster needs from every source document type:
    its posting profile (``account_mapping``), the ledger lines that
    profile yields (``lines``), its status machine (``status_transition``),
    its inventory movements and its payment side effects.  Also holds the
    one generic routine that turns a PostingProfile into LedgerLineSpecs,
    so the per-type debit/credit tables stay data.

Architecture position:
    Services -- adapters over ``farm_modules`` documents.  Concrete
    adapters live in ``farm_services.adapters``.

Invariants enforced:
    - Zero figures produce no lines.
    - Lines on the same control account and side merge into one line;
      LINE_ACCOUNT lines stay one per line item, in item order.
    - A line item without an account raises MissingLineAccountError
      before anything is written.
    - A/R and A/P lines carry the document's customer or vendor as their
      sub-ledger entity.

Failure modes:
    - MissingLineAccountError, InvalidAmountError,
      ControlAccountNotFoundError, AmbiguousControlAccountError: raised
      while building lines, i.e. before the ledger write.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Any, ClassVar, Iterable
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from farm_kernel.domain.clock import Clock
from farm_kernel.domain.dtos import (
    ControlAccountKind,
    EntityType,
    LedgerLineSpec,
    MovementSpec,
)
from farm_kernel.domain.policy import FeedCostingMode, PostingPolicy
from farm_kernel.domain.posting_profile import (
    AccountRole,
    DocumentRole,
    LedgerEffect,
    PostingProfile,
)
from farm_kernel.domain.values import ZERO, to_decimal
from farm_kernel.exceptions import (
    DocumentNotFoundError,
    InvalidAmountError,
    MissingLineAccountError,
)
from farm_kernel.services.account_directory import AccountDirectory
from farm_kernel.utils.idempotency import document_idempotency_key
from farm_modules.inventory.service import InventoryMover


class DocumentType(str, Enum):
    """Every source document the poster accepts."""

    INVOICE = "invoice"
    BILL = "bill"
    CHECK = "check"
    RECEIPT = "receipt"
    JOURNAL_ENTRY = "journal_entry"
    EVENT = "event"


@dataclass(frozen=True)
class StatusTransition:
    """
    The posting state machine of one document type.

    ``postable`` statuses may be posted; posting writes ``posted``.
    ``reversible`` statuses may be reversed; reversal writes ``reversed``.
    """

    postable: frozenset[str]
    posted: str
    reversible: frozenset[str]
    reversed: str


@dataclass(frozen=True)
class PostingContext:
    """Services shared by every adapter within one posting call."""

    session: Session
    policy: PostingPolicy
    directory: AccountDirectory
    inventory: InventoryMover
    clock: Clock


_PARTY_KINDS = {
    ControlAccountKind.AR: EntityType.CUSTOMER,
    ControlAccountKind.AP: EntityType.VENDOR,
}


class PostableDocument(ABC):
    """
    Adapter between one source document and the DocumentPoster.

    Subclasses declare the ORM ``model``, the idempotency ``key_prefix``
    and the ``transition``, and implement ``account_mapping``.  Everything
    else has a default that subclasses override where their document
    differs.
    """

    document_type: ClassVar[DocumentType]
    model: ClassVar[type]
    key_prefix: ClassVar[str]
    transition: ClassVar[StatusTransition]

    def __init__(self, document: Any, context: PostingContext):
        self.document = document
        self.context = context
        # Figures computed in prepare(), looked up before document attributes
        self.derived: dict[str, Decimal] = {}

    # ------------------------------------------------------------------
    # Loading
    # ------------------------------------------------------------------

    @classmethod
    def load(
        cls, session: Session, tenant_id: str, document_id: UUID, lock: bool = True
    ) -> Any:
        """Load the document for the tenant, row-locked by default."""
        stmt = select(cls.model).where(
            cls.model.id == document_id, cls.model.tenant_id == tenant_id
        )
        if lock:
            stmt = stmt.with_for_update()
        document = session.execute(stmt).scalar_one_or_none()
        if document is None:
            raise DocumentNotFoundError(cls.document_type.value, str(document_id))
        return document

    # ------------------------------------------------------------------
    # The PostableDocument interface
    # ------------------------------------------------------------------

    @abstractmethod
    def account_mapping(self) -> PostingProfile:
        """The posting profile that applies to this document."""

    def status_transition(self) -> StatusTransition:
        return self.transition

    def lines(self) -> list[LedgerLineSpec]:
        """Ledger lines for this document, built from its profile."""
        profile = self.account_mapping()
        if profile.as_authored:
            return self.authored_lines()
        return self._profile_lines(profile)

    def movements(self) -> list[MovementSpec]:
        return []

    def prepare(self) -> None:
        """Derive totals and check document-specific preconditions."""

    def apply_side_effects(self) -> None:
        """Effects on other documents (payment allocation)."""

    def check_reversible(self) -> None:
        """Document-specific reversal preconditions."""

    def reverse_side_effects(
        self, actor_id: str | None, reversal_transaction_id: UUID | None
    ) -> None:
        """Undo ``apply_side_effects``."""

    # ------------------------------------------------------------------
    # Document facts
    # ------------------------------------------------------------------

    @property
    def tenant_id(self) -> str:
        return self.document.tenant_id

    @property
    def site_id(self) -> str | None:
        return self.document.site_id

    @property
    def document_id(self) -> UUID:
        return self.document.id

    @property
    def idempotency_key(self) -> str:
        return document_idempotency_key(self.key_prefix, self.document.id)

    @abstractmethod
    def transaction_date(self) -> date:
        """Date the ledger transaction is booked on."""

    def description(self) -> str:
        return f"{self.document_type.value} {self.document.id}"

    def party(self) -> tuple[EntityType, str] | None:
        """Customer or vendor of the document, for A/R and A/P lines."""
        return None

    def bank_account_id(self) -> UUID | None:
        return None

    def settles_in_cash(self) -> bool:
        return False

    def figure(self, name: str, source: Any = None) -> Decimal:
        """Value of the named figure on ``source`` (default: the document)."""
        if source is None and name in self.derived:
            return self.derived[name]
        target = self.document if source is None else source
        return to_decimal(getattr(target, name), name)

    def authored_lines(self) -> list[LedgerLineSpec]:
        raise NotImplementedError(f"{type(self).__name__} has no authored lines")

    # ------------------------------------------------------------------
    # Status write-back
    # ------------------------------------------------------------------

    def is_already_posted(self) -> bool:
        document = self.document
        if document.ledger_transaction_id is not None:
            return True
        return document.status == self.transition.posted and document.posted_at is not None

    def mark_posted(
        self, transaction_id: UUID | None, actor_id: str | None, when: datetime
    ) -> None:
        self.document.status = self.transition.posted
        self.document.ledger_transaction_id = transaction_id
        self.document.posted_at = when
        self.document.posted_by = actor_id

    def mark_reversed(self, actor_id: str | None, reason: str, when: datetime) -> None:
        self.document.status = self.transition.reversed
        self.document.reversed_at = when
        self.document.reversed_by = actor_id
        self.document.reversal_reason = reason

    # ------------------------------------------------------------------
    # Profile evaluation
    # ------------------------------------------------------------------

    def _profile_lines(self, profile: PostingProfile) -> list[LedgerLineSpec]:
        ordered: list[LedgerLineSpec | tuple] = []
        merged: dict[tuple, list] = {}

        for effect in profile.effects:
            for source, line_number in self._sources(effect):
                field = effect.amount if effect.per_line is None else (
                    f"{effect.per_line}[{line_number}].{effect.amount}"
                )
                amount = self.figure(effect.amount, source)
                if amount < ZERO:
                    raise InvalidAmountError(field, amount)
                if amount == ZERO:
                    continue
                for side, role in (("debit", effect.debit), ("credit", effect.credit)):
                    if role == DocumentRole.LINE_ACCOUNT:
                        ordered.append(self._line_item_line(side, source, line_number, amount))
                        continue
                    account_id, entity = self._resolve_role(role, effect)
                    key = (account_id, side, entity)
                    if key in merged:
                        merged[key][0] += amount
                    else:
                        merged[key] = [amount, effect.memo]
                        ordered.append(key)

        lines: list[LedgerLineSpec] = []
        for item in ordered:
            if isinstance(item, LedgerLineSpec):
                lines.append(item)
                continue
            account_id, side, entity = item
            amount, memo = merged[item]
            lines.append(self._spec(side, account_id, amount, memo, entity))
        return lines

    def _sources(self, effect: LedgerEffect) -> Iterable[tuple[Any, int | None]]:
        if effect.per_line is None:
            return [(None, None)]
        items = getattr(self.document, effect.per_line)
        return [
            (item, getattr(item, "line_number", None) or index)
            for index, item in enumerate(items, start=1)
        ]

    def _line_item_line(
        self, side: str, item: Any, line_number: int, amount: Decimal
    ) -> LedgerLineSpec:
        if item.account_id is None:
            raise MissingLineAccountError(
                self.document_type.value, str(self.document.id), line_number
            )
        return self._spec(side, item.account_id, amount, getattr(item, "description", None))

    def _resolve_role(
        self, role: AccountRole, effect: LedgerEffect
    ) -> tuple[UUID, tuple[EntityType, str] | None]:
        directory = self.context.directory
        if role == DocumentRole.BANK_ACCOUNT:
            bank_id = self.bank_account_id()
            if bank_id is not None:
                return bank_id, None
            kind = ControlAccountKind.CASH
        elif role == DocumentRole.SETTLEMENT:
            kind = ControlAccountKind.CASH if self.settles_in_cash() else effect.on_account
        elif role == DocumentRole.FEED_COST:
            kind = (
                ControlAccountKind.LIVESTOCK
                if self.context.policy.feed_costing_mode == FeedCostingMode.CAPITALIZE
                else ControlAccountKind.FEED_EXPENSE
            )
        else:
            kind = ControlAccountKind(role)

        account = directory.require_control_account(self.tenant_id, kind)
        entity = None
        party = self.party()
        if party is not None and _PARTY_KINDS.get(kind) == party[0]:
            entity = party
        return account.id, entity

    @staticmethod
    def _spec(
        side: str,
        account_id: UUID,
        amount: Decimal,
        memo: str | None,
        entity: tuple[EntityType, str] | None = None,
    ) -> LedgerLineSpec:
        entity_type, entity_id = entity if entity is not None else (None, None)
        build = LedgerLineSpec.debit_line if side == "debit" else LedgerLineSpec.credit_line
        return build(
            account_id, amount, memo=memo, entity_type=entity_type, entity_id=entity_id
        )
