"""chimpsub exceptions."""

from __future__ import annotations


class ChimpSubError(Exception):
    """Base exception for chimpsub."""

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        raw_response: str | None = None,
    ):
        self.message = message
        self.status_code = status_code
        self.raw_response = raw_response
        super().__init__(self.message)


class InvalidOptionError(ChimpSubError):
    """Raised when a subscription option has an unsupported value."""


class RequestConstructionError(ChimpSubError):
    """Raised when the request body cannot be serialized."""


class SubscriptionCancelledError(ChimpSubError):
    """Raised when the caller cancels or the deadline expires."""

    def __init__(self, message: str = "Subscription cancelled"):
        super().__init__(message)


class RetryableError(ChimpSubError):
    """Base for failures that the retry loop tries again."""


class TransportError(RetryableError):
    """Raised when the remote host cannot be reached."""


class RemoteError(RetryableError):
    """Raised on a non-200 status or a negative subscribe result."""


class MalformedResponseError(RetryableError):
    """Raised when a 200 response body cannot be decoded."""
