"""
Posting profiles -- the debit/credit mapping of each source document, as data.

Responsibility:
    Declares which account role is debited and which is credited for each
    figure a document contributes.  Every module's ``profiles.py`` builds
    its table out of these types; the document adapters evaluate them.
    Nothing here touches the database.

Architecture position:
    Kernel > Domain -- pure, zero I/O.

Roles:
    A role is either a ControlAccountKind (resolved through the
    AccountDirectory) or one of the document-resolved roles:

    LINE_ACCOUNT   the account assigned to the line item itself
    BANK_ACCOUNT   the document's own bank/deposit account, else CASH
    SETTLEMENT     CASH when the document was paid in cash, else the
                   effect's ``on_account`` kind (AP for purchases, AR for
                   sales)
    FEED_COST      FEED_EXPENSE, or LIVESTOCK when feed is capitalized
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from farm_kernel.domain.dtos import ControlAccountKind


class DocumentRole(str, Enum):
    """Roles resolved from the document rather than the chart."""

    LINE_ACCOUNT = "LINE_ACCOUNT"
    BANK_ACCOUNT = "BANK_ACCOUNT"
    SETTLEMENT = "SETTLEMENT"
    FEED_COST = "FEED_COST"


AccountRole = ControlAccountKind | DocumentRole


@dataclass(frozen=True)
class LedgerEffect:
    """
    One debit/credit pair driven by one figure of a document.

    ``amount`` names the figure (``total``, ``tax_amount``, ``total_cost``
    ...).  When ``per_line`` names a line collection, the effect is applied
    once per line item, using the item's amount and, for LINE_ACCOUNT, the
    item's account.  Zero figures produce no lines.
    """

    debit: AccountRole
    credit: AccountRole
    amount: str
    per_line: str | None = None
    on_account: ControlAccountKind | None = None
    memo: str | None = None

    def __post_init__(self):
        roles = (self.debit, self.credit)
        if DocumentRole.SETTLEMENT in roles and self.on_account is None:
            raise ValueError("SETTLEMENT effects need an on_account kind")
        if DocumentRole.LINE_ACCOUNT in roles and self.per_line is None:
            raise ValueError("LINE_ACCOUNT effects must be applied per line")

    @property
    def roles(self) -> tuple[AccountRole, AccountRole]:
        return (self.debit, self.credit)


@dataclass(frozen=True)
class PostingProfile:
    """
    The full mapping for one document type (and, for events, one event type).

    ``as_authored`` profiles take their lines verbatim from the document
    (journal entries) and carry no effects.
    """

    name: str
    document_type: str
    trigger: str
    effects: tuple[LedgerEffect, ...] = ()
    as_authored: bool = False
    description: str = ""

    def __post_init__(self):
        if self.as_authored and self.effects:
            raise ValueError(f"{self.name}: as-authored profiles carry no effects")

    @property
    def is_financial(self) -> bool:
        return self.as_authored or bool(self.effects)
