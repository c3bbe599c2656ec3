"""
Reconciliation Exceptions
"""

from feedgate.core.exceptions.base import FeedgateError


class ReconciliationError(FeedgateError):
    """
    Raised when the record store fails during reconciliation or ingestion.

    An object that is already recorded is never an error; it is skipped.
    """
    pass
