"""
Cache-Related Exceptions

All exceptions related to the object cache and its persistent stores.
"""

from feedgate.core.exceptions.base import FeedgateError


class CacheError(FeedgateError):
    """Base exception for cache-related errors."""
    pass


class CacheConnectionError(CacheError):
    """
    Raised when unable to connect to the persistent store (Redis).

    Common causes:
    - Redis server is down
    - Incorrect host/port configuration
    - Authentication failure
    """
    pass


class CacheKeyError(CacheError):
    """
    Raised when a persistent store operation fails.

    Common causes:
    - Operation timeout
    - Filesystem permission or disk-full errors
    """
    pass


class CacheCorruptionError(CacheError):
    """Raised when a persisted entry cannot be decoded into an object."""
    pass
