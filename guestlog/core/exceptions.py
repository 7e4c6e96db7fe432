"""
Error Taxonomy

Every failure the customer ledger can report to a caller. The request
boundary in guestlog.main translates each kind into an HTTP response:

    ValidationError     -> 400
    AuthorizationError  -> 401
    StorageError        -> 503
"""

from typing import Optional


class GuestlogError(Exception):
    """Base class for errors surfaced to API callers."""

    status_code: int = 500
    error: str = "Internal Server Error"

    def __init__(self, message: str, detail: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.detail = detail

    def to_dict(self) -> dict:
        """Convert to the standard error body."""
        return {
            "success": False,
            "error": self.error,
            "detail": self.message if self.detail is None else self.detail,
        }


class ValidationError(GuestlogError):
    """Malformed customer input (bad phone number, empty name, bad date)."""

    status_code = 400
    error = "Validation Error"


class AuthorizationError(GuestlogError):
    """Missing or invalid admin credential."""

    status_code = 401
    error = "Unauthorized"


class StorageError(GuestlogError):
    """The backing store failed to read or write."""

    status_code = 503
    error = "Storage Unavailable"
