"""
Unit tests for session_store/core/exceptions.py - exception hierarchy.
"""

import pytest


class TestExceptionHierarchy:
    """Every custom exception derives from SessionStoreException."""

    @pytest.mark.parametrize(
        "name",
        [
            "SessionUsageError",
            "LockError",
            "LockRenewalError",
            "StorageError",
            "SerializationError",
            "InvalidConfigurationError",
        ],
    )
    def test_inherits_from_base(self, name):
        from session_store.core import exceptions

        assert issubclass(getattr(exceptions, name), exceptions.SessionStoreException)

    def test_renewal_error_is_a_lock_error(self):
        from session_store.core.exceptions import LockError, LockRenewalError

        assert issubclass(LockRenewalError, LockError)

    def test_serialization_error_is_a_storage_error(self):
        from session_store.core.exceptions import SerializationError, StorageError

        assert issubclass(SerializationError, StorageError)

    def test_usage_error_is_a_runtime_error(self):
        from session_store.core.exceptions import SessionUsageError

        assert issubclass(SessionUsageError, RuntimeError)

    def test_storage_error_is_not_a_lock_error(self):
        from session_store.core.exceptions import LockError, StorageError

        assert not issubclass(StorageError, LockError)


class TestExceptionAttributes:
    """Exceptions carry error codes and context attributes."""

    def test_base_exception_defaults(self):
        from session_store.core.exceptions import ErrorCode, SessionStoreException

        error = SessionStoreException("boom")

        assert str(error) == "boom"
        assert error.message == "boom"
        assert error.error_code == ErrorCode.SESSION_STORE_ERROR

    def test_extra_kwargs_become_attributes(self):
        from session_store.core.exceptions import SessionStoreException

        error = SessionStoreException("boom", backend="redis")

        assert error.backend == "redis"

    def test_lock_error_carries_key(self):
        from session_store.core.exceptions import ErrorCode, LockError

        error = LockError("cannot lock", key="abc")

        assert error.key == "abc"
        assert error.error_code == ErrorCode.LOCK_ERROR

    def test_renewal_error_code(self):
        from session_store.core.exceptions import ErrorCode, LockRenewalError

        error = LockRenewalError("lost", key="abc")

        assert error.key == "abc"
        assert error.error_code == ErrorCode.LOCK_RENEWAL_ERROR

    def test_storage_error_carries_session_id(self):
        from session_store.core.exceptions import ErrorCode, SerializationError

        error = SerializationError("bad bytes", session_id="abc")

        assert error.session_id == "abc"
        assert error.error_code == ErrorCode.SERIALIZATION_ERROR

    def test_configuration_error_carries_field(self):
        from session_store.core.exceptions import InvalidConfigurationError

        error = InvalidConfigurationError("too short", field="length", value=8)

        assert error.field == "length"
        assert error.value == 8
        assert isinstance(error, ValueError)
