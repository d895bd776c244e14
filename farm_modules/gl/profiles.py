"""
General Ledger posting profiles.

Profiles:
    JournalEntryPosted -- lines copied as authored
"""

from farm_kernel.domain.posting_profile import PostingProfile

MODULE_NAME = "gl"

JOURNAL_ENTRY_POSTED = PostingProfile(
    name="JournalEntryPosted",
    document_type="journal_entry",
    trigger="post",
    as_authored=True,
    description="Posts a user-authored journal entry verbatim",
)

GL_PROFILES = {JOURNAL_ENTRY_POSTED.name: JOURNAL_ENTRY_POSTED}
