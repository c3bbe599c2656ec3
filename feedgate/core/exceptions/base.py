"""
Base Exception Class

This module contains ONLY the base exception class that all other exceptions inherit from.
All specialized exceptions are in their respective themed modules.
"""

from typing import Any


class FeedgateError(Exception):
    """
    Base exception for all gateway errors.

    All custom exceptions inherit from this class to enable:
    - Consistent error handling
    - Operation ID correlation
    - Structured error logging

    Attributes:
        message: Error message
        operation_id: Operation ID for correlation (if available)
        details: Additional error details (dict)

    Example:
        raise RateLimitedError(
            "Remote API throttled the request",
            details={"status_code": 429, "endpoint": "/tweets/search/recent"},
        )
    """

    def __init__(
        self, message: str, operation_id: str | None = None, details: dict[str, Any] | None = None
    ):
        self.message = message
        self.operation_id = operation_id
        self.details = (details or {}).copy()
        super().__init__(self.message)

    def to_dict(self) -> dict[str, Any]:
        """
        Convert exception to dictionary for logging.

        Returns:
            Dict with error_type, message, operation_id, and details
        """
        return {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "operation_id": self.operation_id,
            "details": self.details,
        }

    def with_suggestion(self, suggestion: str) -> "FeedgateError":
        """Add a suggestion to help operators fix the error. Returns self."""
        self.details["suggestion"] = suggestion
        return self

    def with_context(self, **context) -> "FeedgateError":
        """Add additional context to the error details. Returns self."""
        self.details.update(context)
        return self

    def __repr__(self) -> str:
        details_str = f", details={self.details}" if self.details else ""
        operation_str = f", operation_id='{self.operation_id}'" if self.operation_id else ""
        return f"{self.__class__.__name__}(message='{self.message}'{operation_str}{details_str})"

    @classmethod
    def from_exception(
        cls,
        exc: BaseException,
        message: str | None = None,
        operation_id: str | None = None,
        **details
    ) -> "FeedgateError":
        """
        Create an error from another exception.

        Useful for wrapping third-party exceptions with additional context.

        Example:
            >>> try:
            ...     await client.post(token_url, data=form)
            ... except httpx.HTTPError as e:
            ...     raise RefreshFailedError.from_exception(e, identity="bot") from e
        """
        error_message = message or str(exc)
        error_details = {
            "original_error": exc.__class__.__name__,
            "original_message": str(exc),
            **details
        }
        return cls(error_message, operation_id=operation_id, details=error_details)


class ConfigurationError(FeedgateError):
    """Raised when configuration is invalid or missing."""
    pass


class NotReadyError(FeedgateError):
    """Raised when an operation needs the session profile before start() has completed."""
    pass
