"""Broker exceptions.

Every exception carries the HTTP status used by the request boundary
to build the ``{"error": ...}`` envelope.
"""


class BrokerError(Exception):
    """Base class for errors reported back to the caller."""

    status: int = 500

    def __init__(self, message: str, status: int = None):
        super().__init__(message)
        self.message = message
        if status is not None:
            self.status = status

    def __str__(self) -> str:
        return self.message


class ValidationError(BrokerError):
    """A required field is missing, empty or malformed."""

    status = 400


class AuthError(BrokerError):
    """Unknown or expired session, or a credential rejected upstream."""

    status = 401


class UpstreamError(BrokerError):
    """The third-party API could not be reached."""

    status = 502


class InternalError(BrokerError):
    """Unexpected fault while handling a request."""

    status = 500
