"""
Pure domain layer.

Data transfer objects, value helpers and the injectable clock.  Nothing in
this package touches the ORM, the database or the wall clock.
"""

from farm_kernel.domain.clock import Clock, DeterministicClock, SystemClock
from farm_kernel.domain.dtos import (
    ControlAccountKind,
    EntityType,
    LedgerLineSpec,
    MovementSpec,
    MovementType,
)
from farm_kernel.domain.values import ZERO, quantize_money, to_decimal

__all__ = [
    "Clock",
    "ControlAccountKind",
    "DeterministicClock",
    "EntityType",
    "LedgerLineSpec",
    "MovementSpec",
    "MovementType",
    "SystemClock",
    "ZERO",
    "quantize_money",
    "to_decimal",
]
