"""
Exception Module

Structured exception hierarchy for the feedgate client gateway.

Module Structure:
-----------------
- **base.py**: FeedgateError base class + ConfigurationError, NotReadyError
- **remote.py**: Remote API failures (transport, credential expiry, throttling, permanent)
- **credentials.py**: Credential loading and refresh failures
- **queue.py**: Task queue terminal outcomes
- **cache.py**: Object cache and persistent store failures
- **reconciliation.py**: Record store failures during reconciliation
"""

from feedgate.core.exceptions.base import ConfigurationError, FeedgateError, NotReadyError
from feedgate.core.exceptions.cache import (
    CacheConnectionError,
    CacheCorruptionError,
    CacheError,
    CacheKeyError,
)
from feedgate.core.exceptions.credentials import (
    CredentialError,
    MissingCredentialError,
    RefreshFailedError,
)
from feedgate.core.exceptions.queue import GivenUpError, QueueError
from feedgate.core.exceptions.reconciliation import ReconciliationError
from feedgate.core.exceptions.remote import (
    CredentialExpiredError,
    PermanentError,
    RateLimitedError,
    RemoteCallError,
    TransientTransportError,
)

__all__ = [
    # Base
    "FeedgateError",
    "ConfigurationError",
    "NotReadyError",
    # Remote
    "RemoteCallError",
    "TransientTransportError",
    "CredentialExpiredError",
    "RateLimitedError",
    "PermanentError",
    # Credentials
    "CredentialError",
    "MissingCredentialError",
    "RefreshFailedError",
    # Queue
    "QueueError",
    "GivenUpError",
    # Cache
    "CacheError",
    "CacheConnectionError",
    "CacheKeyError",
    "CacheCorruptionError",
    # Reconciliation
    "ReconciliationError",
]
