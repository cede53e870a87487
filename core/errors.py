from __future__ import annotations


class BaseError(Exception):
    def __init__(self, message: str, original: Exception | None = None):
        super().__init__(message)
        self.original = original


class UnsupportedVenueError(BaseError):
    """Raised when no protocol adapter exists for a venue."""


class TransportError(BaseError):
    """Websocket connect/receive failure."""


class TransportClosedError(TransportError):
    """Raised when the venue closes the websocket."""


class MalformedMessageError(BaseError):
    """Raised when an inbound payload cannot be decoded."""


class ValidationError(BaseError):
    """Raised when canonical data validation fails."""
