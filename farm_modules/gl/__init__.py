"""
General Ledger Module (``farm_modules.gl``).

User-authored journal entries, numbered per tenant and posted as authored.
"""

from farm_modules.gl.orm import JournalEntry, JournalEntryLine, JournalEntryStatus
from farm_modules.gl.profiles import GL_PROFILES, JOURNAL_ENTRY_POSTED

__all__ = [
    "GL_PROFILES",
    "JOURNAL_ENTRY_POSTED",
    "JournalEntry",
    "JournalEntryLine",
    "JournalEntryStatus",
]
