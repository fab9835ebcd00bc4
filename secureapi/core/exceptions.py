"""Core exceptions for SecureAPI.

Every error carries the HTTP status the API layer renders it with, so the
transport never has to guess how a failure should surface.
"""

from typing import Optional


class SecureAPIError(Exception):
    """Base exception for all SecureAPI errors."""

    status_code: int = 500

    def __init__(self, message: str, details: Optional[dict] = None):
        """Initialize the exception."""
        self.message = message
        self.details = details or {}
        super().__init__(self.message)

    def to_dict(self) -> dict:
        """Render the error as a JSON-ready body."""
        return {"error": self.message, **self.details}


class MethodNotAllowedError(SecureAPIError):
    """Raised when an endpoint is called with the wrong HTTP verb."""

    status_code = 405


class MalformedRequestError(SecureAPIError):
    """Raised when the upload payload is missing or cannot be decoded."""

    status_code = 400


class PayloadTooLargeError(MalformedRequestError):
    """Raised when the upload exceeds the configured size limit."""

    status_code = 413


class ArchiveFormatError(SecureAPIError):
    """Raised when the archive container itself is corrupt or unreadable."""

    status_code = 400


class EntryDecodeError(SecureAPIError):
    """Raised when a single archive entry is not decodable as text.

    The transcoder recovers from this locally by copying the entry verbatim.
    """

    status_code = 422

    def __init__(self, entry_name: str, reason: str):
        super().__init__(
            f"Entry '{entry_name}' is not text: {reason}",
            details={"entry": entry_name},
        )
        self.entry_name = entry_name
        self.reason = reason


class QuotaExceededError(SecureAPIError):
    """Raised when a client has used up its scans for the current window."""

    status_code = 429

    def __init__(self, count: int, limit: int):
        super().__init__(
            "You have reached your free scan limit. Please upgrade to Pro.",
            details={"limit": limit, "remainingScans": max(limit - count, 0)},
        )
        self.count = count
        self.limit = limit


class QuotaStoreError(SecureAPIError):
    """Raised when the usage counter store cannot be reached."""

    status_code = 503


class ConfigurationError(SecureAPIError):
    """Raised when configuration or the pattern table is invalid."""

    pass
