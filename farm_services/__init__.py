"""
farm_services -- Posting orchestration over the kernel and the modules.

Responsibility:
    Turns source documents into ledger transactions and inventory
    movements.  This is the only layer that imports both ``farm_kernel``
    services and ``farm_modules`` documents.

Architecture position:
    Services.

        farm_services/ -> farm_modules/  (allowed)
        farm_services/ -> farm_kernel/   (allowed)
        farm_modules/  -> farm_services/ (FORBIDDEN)
        farm_kernel/   -> farm_services/ (FORBIDDEN)
"""

from farm_services.adapters import ADAPTERS, adapter_for
from farm_services.document_poster import DocumentPoster, PostingResult, PostingStatus
from farm_services.postable import (
    DocumentType,
    PostableDocument,
    PostingContext,
    StatusTransition,
)

__all__ = [
    "ADAPTERS",
    "DocumentPoster",
    "DocumentType",
    "PostableDocument",
    "PostingContext",
    "PostingResult",
    "PostingStatus",
    "StatusTransition",
    "adapter_for",
]
