"""
Task Queue Exceptions

All exceptions related to the serializing task queue.
"""

from feedgate.core.exceptions.base import FeedgateError


class QueueError(FeedgateError):
    """Base exception for task queue errors."""
    pass


class GivenUpError(QueueError):
    """
    Raised to a caller whose task was dead-lettered.

    The task failed QUEUE_MAX_ATTEMPTS times. The last failure is chained
    as __cause__ and summarized in details.
    """
    pass
