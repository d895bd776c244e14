"""
Postable document columns (``farm_modules._document``).

Responsibility
--------------
The columns every postable source document shares: tenant and site
ownership, the posting write-back (``ledger_transaction_id``,
``posted_at``, ``posted_by``) and the reversal write-back.

Architecture position
---------------------
**Modules layer** -- persistence mixin mixed into each module's ORM
documents alongside ``TrackedBase``.
"""

from datetime import datetime
from uuid import UUID

from sqlalchemy import ForeignKey, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from farm_kernel.db.base import UUIDString


class PostedDocumentMixin:
    """
    Posting and reversal bookkeeping for a source document.

    ``ledger_transaction_id`` stays set after a reversal; the reversal's own
    transaction is reached through the ledger back-links.
    """

    tenant_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    site_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    status: Mapped[str] = mapped_column(String(20), nullable=False)

    ledger_transaction_id: Mapped[UUID | None] = mapped_column(
        UUIDString(), ForeignKey("ledger_transactions.id"), nullable=True
    )
    posted_at: Mapped[datetime | None] = mapped_column(nullable=True)
    posted_by: Mapped[str | None] = mapped_column(String(128), nullable=True)

    reversed_at: Mapped[datetime | None] = mapped_column(nullable=True)
    reversed_by: Mapped[str | None] = mapped_column(String(128), nullable=True)
    reversal_reason: Mapped[str | None] = mapped_column(Text, nullable=True)

    @property
    def is_posted(self) -> bool:
        return self.ledger_transaction_id is not None or self.posted_at is not None
