"""
farm_api -- HTTP adapter over the posting core.

The routes translate requests into DocumentPoster, LedgerWriter and
LedgerSelector calls and exceptions into the ``{success, message, code}``
envelope.  No posting logic lives here.
"""

__version__ = "0.1.0"
