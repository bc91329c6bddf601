"""
Core module for Session Store.

This module contains configuration and exceptions shared by every backend.
"""

from session_store.core.config import Settings, get_settings
from session_store.core.exceptions import (
    ErrorCode,
    InvalidConfigurationError,
    LockError,
    LockRenewalError,
    SerializationError,
    SessionStoreException,
    SessionUsageError,
    StorageError,
)

__all__ = [
    # Config
    "Settings",
    "get_settings",
    # Exceptions
    "ErrorCode",
    "SessionStoreException",
    "SessionUsageError",
    "LockError",
    "LockRenewalError",
    "StorageError",
    "SerializationError",
    "InvalidConfigurationError",
]
