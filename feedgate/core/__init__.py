"""
Core Module

Foundational components: configuration, logging, exceptions and events.
"""

from .exceptions import (
    CredentialExpiredError,
    FeedgateError,
    GivenUpError,
    NotReadyError,
    PermanentError,
    RateLimitedError,
    RefreshFailedError,
    TransientTransportError,
)
from .logging import (
    clear_operation_id,
    get_logger,
    get_operation_id,
    log_stage,
    set_operation_id,
    setup_logging,
)

__all__ = [
    "setup_logging",
    "get_logger",
    "set_operation_id",
    "get_operation_id",
    "clear_operation_id",
    "log_stage",
    "FeedgateError",
    "NotReadyError",
    "TransientTransportError",
    "CredentialExpiredError",
    "RateLimitedError",
    "PermanentError",
    "RefreshFailedError",
    "GivenUpError",
]
