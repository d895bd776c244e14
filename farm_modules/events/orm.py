"""
Module: farm_modules.events.orm
Responsibility: Persistence for farm operational events (feedings,
    treatments, purchases, sales, labor ...) and the inventory items each
    event uses, receives or adjusts.
Architecture position: Modules > Events > ORM.

Invariants enforced:
    - ``type`` is one of EventType; ``status`` is one of EventStatus.
    - Each FarmEventItem has a ``direction``: ``used`` items leave the
      event's site, ``received`` items arrive (at ``to_site_id`` for a
      transfer), ``adjusted`` items carry a signed quantity.
"""

from datetime import date
from decimal import Decimal
from enum import Enum
from uuid import UUID

from sqlalchemy import ForeignKey, Index, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from farm_kernel.db.base import TrackedBase, UUIDString
from farm_modules._document import PostedDocumentMixin


class EventType(str, Enum):
    FEEDING = "feeding"
    TREATMENT = "treatment"
    PURCHASE = "purchase"
    SALE = "sale"
    TRANSFER = "transfer"
    ADJUSTMENT = "adjustment"
    MAINTENANCE = "maintenance"
    LABOR = "labor"
    BREEDING = "breeding"
    BIRTH = "birth"
    DEATH = "death"
    HARVEST = "harvest"
    CUSTOM = "custom"


class EventStatus(str, Enum):
    DRAFT = "draft"
    PENDING = "pending"
    COMPLETED = "completed"
    POSTED = "posted"
    CANCELLED = "cancelled"


class PaymentMethod(str, Enum):
    CASH = "cash"
    ACCOUNT = "account"


class ItemDirection(str, Enum):
    USED = "used"
    RECEIVED = "received"
    ADJUSTED = "adjusted"


class FarmEvent(PostedDocumentMixin, TrackedBase):
    """
    One farm event.  Only some types carry a financial effect; the rest
    are posted for their inventory effect alone, or for the record.
    """

    __tablename__ = "farm_events"

    __table_args__ = (
        Index("idx_farm_event_site", "tenant_id", "site_id"),
        Index("idx_farm_event_type", "tenant_id", "type"),
    )

    type: Mapped[str] = mapped_column(String(20), nullable=False)
    event_date: Mapped[date] = mapped_column(nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)

    total_cost: Mapped[Decimal | None] = mapped_column(nullable=True)
    total_revenue: Mapped[Decimal | None] = mapped_column(nullable=True)
    labor_hours: Mapped[Decimal | None] = mapped_column(nullable=True)
    labor_rate: Mapped[Decimal | None] = mapped_column(nullable=True)
    payment_method: Mapped[str] = mapped_column(
        String(20), default=PaymentMethod.CASH.value, nullable=False
    )

    vendor_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    customer_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    animal_group_id: Mapped[str | None] = mapped_column(String(64), nullable=True)

    # Destination of a transfer
    to_site_id: Mapped[str | None] = mapped_column(String(64), nullable=True)

    items: Mapped[list["FarmEventItem"]] = relationship(
        back_populates="event", cascade="all, delete-orphan"
    )

    def items_by_direction(self, direction: ItemDirection) -> list["FarmEventItem"]:
        return [i for i in self.items if i.direction == direction.value]

    def __repr__(self) -> str:
        return f"<FarmEvent {self.type} {self.event_date} {self.status}>"


class FarmEventItem(TrackedBase):
    __tablename__ = "farm_event_items"

    event_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("farm_events.id"), nullable=False, index=True
    )
    item_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("inventory_items.id"), nullable=False
    )
    direction: Mapped[str] = mapped_column(String(20), nullable=False)
    quantity: Mapped[Decimal] = mapped_column(nullable=False)
    unit_cost: Mapped[Decimal | None] = mapped_column(nullable=True)
    total_cost: Mapped[Decimal | None] = mapped_column(nullable=True)

    event: Mapped[FarmEvent] = relationship(back_populates="items")
