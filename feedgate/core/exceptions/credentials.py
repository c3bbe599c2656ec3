"""
Credential Exceptions

All exceptions related to loading and refreshing the shared credential.
"""

from feedgate.core.exceptions.base import FeedgateError


class CredentialError(FeedgateError):
    """Base exception for credential errors."""
    pass


class MissingCredentialError(CredentialError):
    """
    Raised when the credential store holds no token for the identity.

    Common causes:
    - Account never authorized
    - Credential store wiped
    """
    pass


class RefreshFailedError(CredentialError):
    """
    Raised when exchanging the refresh token fails.

    Common causes:
    - Refresh token revoked or already rotated
    - Token endpoint unreachable after retries
    - Credential store rejected the new pair
    """
    pass
