"""
Farm Events Module (``farm_modules.events``).

Operational events and the per-event-type posting profiles.  An event can
carry a ledger effect, an inventory effect, both, or neither.
"""

from farm_modules.events.orm import (
    EventStatus,
    EventType,
    FarmEvent,
    FarmEventItem,
    ItemDirection,
    PaymentMethod,
)
from farm_modules.events.profiles import EVENT_PROFILES

__all__ = [
    "EVENT_PROFILES",
    "EventStatus",
    "EventType",
    "FarmEvent",
    "FarmEventItem",
    "ItemDirection",
    "PaymentMethod",
]
