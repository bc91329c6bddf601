"""
Custom exceptions for Session Store.

This module provides a hierarchy of custom exceptions for the session store.
All exceptions inherit from SessionStoreException and include error codes for
consistent error handling and logging.

Taxonomy:
- SessionUsageError: an operation was invoked in a state that violates its
  precondition (caller bug, never retried)
- LockError / LockRenewalError: acquiring, renewing or releasing a lease failed
- StorageError / SerializationError: reading, writing or encoding a record failed

Timeouts and cancellation are deliberately NOT part of this hierarchy:
asyncio.TimeoutError and asyncio.CancelledError propagate unchanged.
"""

from enum import Enum
from typing import Any


# =============================================================================
# Error Codes Enum
# =============================================================================


class ErrorCode(str, Enum):
    """
    Error codes for Session Store exceptions.

    These codes provide a consistent way to identify error types
    across backends and in logging.
    """

    SESSION_STORE_ERROR = "SESSION_STORE_ERROR"
    USAGE_ERROR = "USAGE_ERROR"
    LOCK_ERROR = "LOCK_ERROR"
    LOCK_RENEWAL_ERROR = "LOCK_RENEWAL_ERROR"
    STORAGE_ERROR = "STORAGE_ERROR"
    SERIALIZATION_ERROR = "SERIALIZATION_ERROR"
    CONFIGURATION_ERROR = "CONFIGURATION_ERROR"


# =============================================================================
# Base Exception
# =============================================================================


class SessionStoreException(Exception):
    """
    Base exception for all Session Store errors.

    Attributes:
        message: Human-readable error message.
        error_code: Machine-readable error code from ErrorCode enum.
    """

    def __init__(
        self,
        message: str,
        error_code: str = ErrorCode.SESSION_STORE_ERROR,
        **kwargs: Any,
    ) -> None:
        """
        Initialize the exception.

        Args:
            message: Human-readable error message.
            error_code: Machine-readable error code.
            **kwargs: Additional attributes to set on the exception.
        """
        super().__init__(message)
        self.message = message
        self.error_code = error_code

        for key, value in kwargs.items():
            setattr(self, key, value)


# =============================================================================
# SessionUsageError
# =============================================================================


class SessionUsageError(SessionStoreException, RuntimeError):
    """
    Exception for programming errors against a session handle.

    Raised when an operation is invoked before its required state has been
    reached, e.g. set() before open(), get() before read(), or releasing
    a Lock twice. Never retried.
    """

    def __init__(
        self,
        message: str,
        error_code: str = ErrorCode.USAGE_ERROR,
        **kwargs: Any,
    ) -> None:
        super().__init__(message, error_code, **kwargs)


# =============================================================================
# LockError
# =============================================================================


class LockError(SessionStoreException):
    """
    Exception for keyed mutex failures.

    Raised when a lease cannot be acquired or released, e.g. because the
    backing service is unreachable.

    Attributes:
        key: The mutex key (session id) involved, if known.
    """

    def __init__(
        self,
        message: str,
        key: str | None = None,
        error_code: str = ErrorCode.LOCK_ERROR,
        **kwargs: Any,
    ) -> None:
        """
        Initialize the lock error.

        Args:
            message: Human-readable error message.
            key: The mutex key involved (optional).
            error_code: Machine-readable error code.
            **kwargs: Additional attributes.
        """
        super().__init__(message, error_code, **kwargs)
        self.key = key


class LockRenewalError(LockError):
    """
    Exception for a lease that could not be renewed or was lost.

    Recorded by the background renewal task and raised on the next
    operation performed under the affected Lock.
    """

    def __init__(
        self,
        message: str,
        key: str | None = None,
        error_code: str = ErrorCode.LOCK_RENEWAL_ERROR,
        **kwargs: Any,
    ) -> None:
        super().__init__(message, key, error_code, **kwargs)


# =============================================================================
# StorageError
# =============================================================================


class StorageError(SessionStoreException):
    """
    Exception for session storage failures.

    Raised when a record cannot be read, written or deleted. No partial
    write is assumed to have succeeded.

    Attributes:
        session_id: ID of the affected session (if known).
    """

    def __init__(
        self,
        message: str,
        session_id: str | None = None,
        error_code: str = ErrorCode.STORAGE_ERROR,
        **kwargs: Any,
    ) -> None:
        """
        Initialize the storage error.

        Args:
            message: Human-readable error message.
            session_id: ID of the affected session (optional).
            error_code: Machine-readable error code.
            **kwargs: Additional attributes.
        """
        super().__init__(message, error_code, **kwargs)
        self.session_id = session_id


class SerializationError(StorageError):
    """
    Exception for records that cannot be encoded or decoded.

    A storage-layer failure: callers must not treat an undecodable record
    as an empty session.
    """

    def __init__(
        self,
        message: str,
        session_id: str | None = None,
        error_code: str = ErrorCode.SERIALIZATION_ERROR,
        **kwargs: Any,
    ) -> None:
        super().__init__(message, session_id, error_code, **kwargs)


# =============================================================================
# InvalidConfigurationError
# =============================================================================


class InvalidConfigurationError(SessionStoreException, ValueError):
    """
    Exception for component configurations that are unsafe or unusable.

    Attributes:
        field: Name of the offending setting (if known).
        value: The rejected value.
    """

    def __init__(
        self,
        message: str,
        field: str | None = None,
        value: Any = None,
        error_code: str = ErrorCode.CONFIGURATION_ERROR,
        **kwargs: Any,
    ) -> None:
        super().__init__(message, error_code, **kwargs)
        self.field = field
        self.value = value
