"""
Core module initialization.
Exports configuration, logging and error types.
"""

from guestlog.core.config import get_settings, setup_logging, Settings, EnvironmentMode
from guestlog.core.exceptions import (
    GuestlogError,
    ValidationError,
    AuthorizationError,
    StorageError,
)

__all__ = [
    "get_settings",
    "setup_logging",
    "Settings",
    "EnvironmentMode",
    "GuestlogError",
    "ValidationError",
    "AuthorizationError",
    "StorageError",
]
