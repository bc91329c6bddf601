"""
Keyed Mutex and Lock

A KeyedMutex grants exclusive ownership of a key (a session id) to at most
one holder at a time. Ownership is represented by a Lock, which must be
released exactly once.

Lease renewal:
    Backends whose leases expire (e.g. Redis) pass a renew callback when
    creating the Lock. The Lock then owns a background task that renews the
    lease every renew_interval seconds (half the lease TTL). The task lives
    exactly as long as the Lock: release() cancels it. A failed renewal, or
    a renewal that finds the lease gone, is recorded on the Lock and raised
    by raise_if_lost() on the next operation performed under it.

The in-process LocalKeyedMutex has no TTL and no renewal.
"""

import asyncio
import secrets
import time
from functools import partial
from typing import Awaitable, Callable, Optional, Protocol, runtime_checkable

from session_store.core.exceptions import (
    InvalidConfigurationError,
    LockError,
    LockRenewalError,
    SessionUsageError,
)
from session_store.observability.logging import get_logger, redact_session_id
from session_store.observability.metrics import (
    record_lock_acquired,
    record_lock_renewal_failure,
)

logger = get_logger(__name__)

TOKEN_BYTES = 16


def generate_lock_token() -> str:
    """Return a fresh, unpredictable lease token."""
    return secrets.token_urlsafe(TOKEN_BYTES)


# =============================================================================
# Lock
# =============================================================================


class Lock:
    """
    Exclusive ownership of one key, granted by a KeyedMutex.

    Args:
        key: The key this lock protects.
        token: Unique token identifying this grant.
        release: Coroutine function freeing the underlying lease.
        renew: Optional coroutine function extending the lease. Returns False
            if the lease no longer belongs to this token.
        renew_interval: Seconds between renewals (required with renew).
        backend: Backend name used for metrics.
    """

    def __init__(
        self,
        key: str,
        token: str,
        release: Callable[[], Awaitable[None]],
        renew: Optional[Callable[[], Awaitable[bool]]] = None,
        renew_interval: Optional[float] = None,
        backend: str = "local",
    ) -> None:
        self._key = key
        self._token = token
        self._release = release
        self._renew = renew
        self._renew_interval = renew_interval
        self._backend = backend
        self._released = False
        self._renewal_error: Optional[LockRenewalError] = None
        self._renewal_task: Optional[asyncio.Task[None]] = None

        if renew is not None:
            if renew_interval is None or renew_interval <= 0:
                raise InvalidConfigurationError(
                    "A positive renew_interval is required when a renew callback is given",
                    field="renew_interval",
                    value=renew_interval,
                )
            self._renewal_task = asyncio.get_running_loop().create_task(
                self._renew_loop()
            )

    def __repr__(self) -> str:
        state = "released" if self._released else "held"
        return f"<Lock key={redact_session_id(self._key)!r} {state}>"

    @property
    def key(self) -> str:
        return self._key

    @property
    def token(self) -> str:
        return self._token

    @property
    def is_released(self) -> bool:
        return self._released

    @property
    def is_lost(self) -> bool:
        """True if a renewal failed; operations under this lock are unsafe."""
        return self._renewal_error is not None

    def raise_if_lost(self) -> None:
        """
        Fail fast if the lease behind this lock can no longer be trusted.

        Raises:
            SessionUsageError: If the lock was already released.
            LockRenewalError: If the background renewal failed.
        """
        if self._released:
            raise SessionUsageError("The lock has already been released")
        if self._renewal_error is not None:
            raise self._renewal_error

    async def release(self) -> None:
        """
        Release the lease and stop its renewal task.

        Raises:
            SessionUsageError: If called more than once.
            LockError: If the backend fails to release the lease.
        """
        if self._released:
            raise SessionUsageError("The lock has already been released")

        self._released = True

        if self._renewal_task is not None:
            self._renewal_task.cancel()
            self._renewal_task = None

        try:
            await self._release()
        except LockError:
            raise
        except Exception as e:
            raise LockError(
                f"Couldn't release lock for session '{redact_session_id(self._key)}': {e}",
                key=self._key,
            ) from e

        logger.debug("lock released", session_id=self._key, backend=self._backend)

    async def _renew_loop(self) -> None:
        assert self._renew is not None
        assert self._renew_interval is not None

        while True:
            await asyncio.sleep(self._renew_interval)

            try:
                renewed = await self._renew()
            except Exception as e:
                error = LockRenewalError(
                    f"Couldn't renew lock for session '{redact_session_id(self._key)}': {e}",
                    key=self._key,
                )
                error.__cause__ = e
                self._fail_renewal(error)
                return

            if not renewed:
                self._fail_renewal(
                    LockRenewalError(
                        f"Lock for session '{redact_session_id(self._key)}' "
                        "expired before it could be renewed",
                        key=self._key,
                    )
                )
                return

    def _fail_renewal(self, error: LockRenewalError) -> None:
        self._renewal_error = error
        record_lock_renewal_failure(self._backend)
        logger.error(
            "lock renewal failed",
            session_id=self._key,
            backend=self._backend,
            error=error.message,
        )


# =============================================================================
# KeyedMutex Protocol
# =============================================================================


@runtime_checkable
class KeyedMutex(Protocol):
    """Grants exclusive, releasable locks per key."""

    async def acquire(self, key: str) -> Lock:
        """Suspend until no other holder owns key, then return its Lock."""
        ...


# =============================================================================
# LocalKeyedMutex
# =============================================================================


class _MutexEntry:
    __slots__ = ("lock", "refs")

    def __init__(self) -> None:
        self.lock = asyncio.Lock()
        self.refs = 0


class LocalKeyedMutex:
    """
    In-process keyed mutex built on one asyncio.Lock per key.

    Waiters are woken in FIFO order. Entries are dropped once no holder or
    waiter remains, so memory use is bounded by the number of keys in use.

    Note: This implementation only excludes holders within one process.
    For multi-process deployments, use RedisKeyedMutex.
    """

    backend_name = "local"

    def __init__(self) -> None:
        self._entries: dict[str, _MutexEntry] = {}

    def is_locked(self, key: str) -> bool:
        entry = self._entries.get(key)
        return entry is not None and entry.lock.locked()

    async def acquire(self, key: str) -> Lock:
        started = time.monotonic()

        entry = self._entries.get(key)
        if entry is None:
            entry = self._entries[key] = _MutexEntry()
        entry.refs += 1

        try:
            await entry.lock.acquire()
        except BaseException:
            entry.refs -= 1
            self._discard(key, entry)
            raise

        waited = time.monotonic() - started
        record_lock_acquired(self.backend_name, waited)
        logger.debug(
            "lock acquired",
            session_id=key,
            backend=self.backend_name,
            wait_seconds=round(waited, 4),
        )

        return Lock(
            key,
            generate_lock_token(),
            partial(self._release, key, entry),
            backend=self.backend_name,
        )

    async def _release(self, key: str, entry: _MutexEntry) -> None:
        entry.lock.release()
        entry.refs -= 1
        self._discard(key, entry)

    def _discard(self, key: str, entry: _MutexEntry) -> None:
        if entry.refs == 0 and self._entries.get(key) is entry:
            del self._entries[key]
