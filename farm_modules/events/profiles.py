"""
Farm Event posting profiles.

One profile per event type.  Figures named by the effects are derived by
the event adapter:

    total_cost            event.total_cost, else the sum of the event's
                          item costs (at site average cost when unpriced)
    total_revenue         event.total_revenue
    cost_of_items_sold    cost of the items a sale takes out of stock
    labor_amount          hours x rate, else total_cost
    adjustment_gain       net value added by an inventory adjustment
    adjustment_loss       net value removed by an inventory adjustment

Profiles with no effects (transfer, breeding, birth, death, harvest,
custom) post no ledger lines; their inventory effects still apply.
"""

from types import MappingProxyType
from typing import Mapping

from farm_kernel.domain.dtos import ControlAccountKind
from farm_kernel.domain.posting_profile import DocumentRole, LedgerEffect, PostingProfile
from farm_modules.events.orm import EventType

MODULE_NAME = "events"

K = ControlAccountKind
R = DocumentRole


def _event_profile(event_type: EventType, name: str, *effects: LedgerEffect, description=""):
    return PostingProfile(
        name=name,
        document_type="event",
        trigger=event_type.value,
        effects=tuple(effects),
        description=description,
    )


# --- Consumption ------------------------------------------------------------

FEEDING = _event_profile(
    EventType.FEEDING,
    "EventFeeding",
    LedgerEffect(debit=R.FEED_COST, credit=K.INVENTORY, amount="total_cost"),
    description="Feed consumed: expensed, or capitalized into livestock",
)

TREATMENT = _event_profile(
    EventType.TREATMENT,
    "EventTreatment",
    LedgerEffect(debit=K.MEDICAL_EXPENSE, credit=K.INVENTORY, amount="total_cost"),
    description="Medicine and supplies used on animals",
)


# --- Trade ------------------------------------------------------------------

PURCHASE = _event_profile(
    EventType.PURCHASE,
    "EventPurchase",
    LedgerEffect(
        debit=K.INVENTORY, credit=R.SETTLEMENT, amount="total_cost", on_account=K.AP
    ),
    description="Stock bought for cash or on account",
)

SALE = _event_profile(
    EventType.SALE,
    "EventSale",
    LedgerEffect(
        debit=R.SETTLEMENT, credit=K.SALES, amount="total_revenue", on_account=K.AR
    ),
    LedgerEffect(debit=K.COGS, credit=K.INVENTORY, amount="cost_of_items_sold"),
    description="Goods sold for cash or on account, with their cost",
)


# --- Operating costs --------------------------------------------------------

LABOR = _event_profile(
    EventType.LABOR,
    "EventLabor",
    LedgerEffect(debit=K.LABOR_EXPENSE, credit=K.CASH, amount="labor_amount"),
    description="Wages paid",
)

MAINTENANCE = _event_profile(
    EventType.MAINTENANCE,
    "EventMaintenance",
    LedgerEffect(debit=K.REPAIR_EXPENSE, credit=K.CASH, amount="total_cost"),
    description="Repairs and maintenance paid",
)


# --- Stock corrections ------------------------------------------------------

ADJUSTMENT = _event_profile(
    EventType.ADJUSTMENT,
    "EventAdjustment",
    LedgerEffect(debit=K.INVENTORY, credit=K.INVENTORY_ADJUSTMENT, amount="adjustment_gain"),
    LedgerEffect(debit=K.INVENTORY_ADJUSTMENT, credit=K.INVENTORY, amount="adjustment_loss"),
    description="Count corrections valued at cost",
)


# --- Non-financial ----------------------------------------------------------

TRANSFER = _event_profile(EventType.TRANSFER, "EventTransfer")
BREEDING = _event_profile(EventType.BREEDING, "EventBreeding")
BIRTH = _event_profile(EventType.BIRTH, "EventBirth")
DEATH = _event_profile(EventType.DEATH, "EventDeath")
HARVEST = _event_profile(EventType.HARVEST, "EventHarvest")
CUSTOM = _event_profile(EventType.CUSTOM, "EventCustom")


_ALL_PROFILES = (
    FEEDING,
    TREATMENT,
    PURCHASE,
    SALE,
    LABOR,
    MAINTENANCE,
    ADJUSTMENT,
    TRANSFER,
    BREEDING,
    BIRTH,
    DEATH,
    HARVEST,
    CUSTOM,
)

EVENT_PROFILES: Mapping[EventType, PostingProfile] = MappingProxyType(
    {EventType(p.trigger): p for p in _ALL_PROFILES}
)
