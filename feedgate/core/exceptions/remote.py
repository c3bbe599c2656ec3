"""
Remote Call Exceptions

Failures raised by the remote object store. The authentication guard
handles CredentialExpiredError and RateLimitedError; the other two always
reach the caller.
"""

from feedgate.core.exceptions.base import FeedgateError


class RemoteCallError(FeedgateError):
    """Base exception for remote API failures."""

    def __init__(self, message: str, status_code: int | None = None, **kwargs):
        super().__init__(message, **kwargs)
        self.status_code = status_code
        if status_code is not None:
            self.details.setdefault("status_code", status_code)


class TransientTransportError(RemoteCallError):
    """
    Raised on network failures and 5xx responses.

    Propagated to the caller unless the operation was submitted through the
    task queue, which retries it with backoff.
    """
    pass


class CredentialExpiredError(RemoteCallError):
    """
    Raised when the access token is expired or rejected (HTTP 401).

    Handled by one refresh-and-retry in the authentication guard.
    """
    pass


class RateLimitedError(RemoteCallError):
    """
    Raised when the platform throttles the caller (HTTP 429).

    Handled by one cooldown-and-retry in the authentication guard.
    """
    pass


class PermanentError(RemoteCallError):
    """
    Raised for any other remote failure (4xx other than 401/429, malformed payloads).

    Never retried automatically.
    """
    pass
