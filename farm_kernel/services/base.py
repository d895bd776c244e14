"""
Module: farm_kernel.services.base
Responsibility: Abstract base class for kernel and module services that
    mutate state.
Architecture position: Kernel > Services.

Invariants enforced:
    - Flush-only: services call ``session.flush()`` and never
      ``session.commit()`` or ``session.rollback()``.  The caller owns the
      transaction boundary, which is what lets the DocumentPoster run the
      ledger write, the inventory movements and the document status
      write-back as one atomic unit.
"""

from abc import ABC
from typing import Generic, TypeVar

from sqlalchemy.orm import Session

from farm_kernel.db.base import Base
from farm_kernel.domain.clock import Clock, SystemClock

ModelType = TypeVar("ModelType", bound=Base)


class BaseService(ABC, Generic[ModelType]):
    """
    Abstract base class for all services.

    Contract:
        Accepts a SQLAlchemy ``Session`` from the caller and uses
        ``session.flush()`` to persist changes within the active
        transaction.  An optional Clock is injected for every timestamp
        the service records.
    """

    def __init__(self, session: Session, clock: Clock | None = None):
        self.session = session
        self.clock = clock or SystemClock()
