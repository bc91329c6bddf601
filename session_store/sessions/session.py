"""
Session Handle

A Session is the per-request handle on one session identifier. It composes
a SessionIdGenerator, a KeyedMutex and a SessionStorage into a lifecycle:

    Unopened --read()--> Read --open()--> Locked --save()/unlock()--> Read
        ^                                    |
        +------ destroy() / emptied save ----+   (identity cleared)

Invariants:
- LOCKED implies READ.
- lock_count > 0 <=> LOCKED <=> a Lock is held.
- An emptied session that is no longer locked has no identity (id is None).

Concurrency:
- Across handles (and processes, with a remote backend) the KeyedMutex is
  the only synchronization point.
- Within a handle every asynchronous operation runs under a per-handle
  asyncio.Lock, so concurrent tasks sharing one handle never interleave
  field updates or issue overlapping I/O.
- open() is reentrant on the same handle: only the outermost
  save()/unlock()/destroy() releases the Lock.

Synchronous accessors and mutators never suspend, so they are atomic under
cooperative scheduling and do not take the per-handle lock. The mutators
set() and unset() refuse to run while an asynchronous operation holds it,
so a write never persists a record other than the one the handle reports.
"""

import asyncio
import copy
import enum
from typing import Optional

from session_store.core.exceptions import SessionUsageError
from session_store.observability.logging import get_logger
from session_store.observability.metrics import record_session_regenerated
from session_store.sessions.id_generator import SessionIdGenerator
from session_store.sessions.mutex import KeyedMutex, Lock
from session_store.sessions.serializer import SessionRecord, SessionValue
from session_store.sessions.storage import SessionStorage

logger = get_logger(__name__)


class SessionStatus(enum.Flag):
    """Status bits of a session handle."""

    NONE = 0
    READ = enum.auto()
    LOCKED = enum.auto()


class Session:
    """
    Per-request session handle.

    Created by SessionFactory; not meant to be constructed with an
    unvalidated client id.

    Args:
        mutex: KeyedMutex granting exclusive access per session id.
        storage: SessionStorage persisting records.
        id_generator: Generator for fresh identifiers.
        session_id: Validated client-presented id, or None.
    """

    def __init__(
        self,
        mutex: KeyedMutex,
        storage: SessionStorage,
        id_generator: SessionIdGenerator,
        session_id: Optional[str] = None,
    ) -> None:
        self._mutex = mutex
        self._storage = storage
        self._id_generator = id_generator

        self._id: Optional[str] = session_id
        self._data: SessionRecord = {}
        # Last state known to be persisted; restored by unlock()
        self._persisted: SessionRecord = {}
        self._status = SessionStatus.NONE
        self._lock: Optional[Lock] = None
        self._lock_count = 0

        self._serial = asyncio.Lock()

    def __repr__(self) -> str:
        return (
            f"<Session read={self.is_read()} locked={self.is_locked()} "
            f"depth={self._lock_count}>"
        )

    # =========================================================================
    # State Accessors
    # =========================================================================

    def get_id(self) -> Optional[str]:
        """Session identifier, or None if the session has no identity."""
        return self._id

    def is_read(self) -> bool:
        return bool(self._status & SessionStatus.READ)

    def is_locked(self) -> bool:
        return bool(self._status & SessionStatus.LOCKED)

    @property
    def lock_count(self) -> int:
        """Reentrancy depth of open() calls not yet balanced."""
        return self._lock_count

    def is_empty(self) -> bool:
        """
        Raises:
            SessionUsageError: If the session has not been read.
        """
        self._assert_read()
        return not self._data

    # =========================================================================
    # Data Access
    # =========================================================================

    def get_data(self) -> SessionRecord:
        """
        Return a copy of the session data.

        Raises:
            SessionUsageError: If the session has not been read.
        """
        self._assert_read()
        return dict(self._data)

    def has(self, key: str) -> bool:
        self._assert_read()
        return key in self._data

    def get(self, key: str, default: SessionValue = None) -> SessionValue:
        self._assert_read()
        return self._data.get(key, default)

    def set(self, key: str, value: SessionValue) -> None:
        """
        Set a value in memory; persisted by save().

        Raises:
            SessionUsageError: If the session has not been locked, or an
                asynchronous operation on this handle is still running.
            LockRenewalError: If the lease behind the lock was lost.
        """
        self._assert_mutable()
        self._data[key] = value

    def unset(self, key: str) -> None:
        """
        Remove a value in memory; persisted by save().

        Raises:
            SessionUsageError: If the session has not been locked, or an
                asynchronous operation on this handle is still running.
            LockRenewalError: If the lease behind the lock was lost.
        """
        self._assert_mutable()
        self._data.pop(key, None)

    # =========================================================================
    # Lifecycle Operations
    # =========================================================================

    async def read(self) -> "Session":
        """
        Load the session data without locking.

        A no-op on data while the session is locked, so in-memory edits
        made under the lock are kept.
        """
        async with self._serial:
            if self._id is not None and not self.is_locked():
                data = await self._storage.read(self._id)
                self._data = data
                self._persisted = copy.deepcopy(data)

            self._status |= SessionStatus.READ
            return self

    async def open(self) -> "Session":
        """
        Lock the session for writing, creating an identity if needed.

        Reentrant: a handle that is already locked only increments its
        lock count. A cancelled or timed-out open() leaves the handle in
        its prior state with no lock held.

        Raises:
            LockError: If the lock cannot be acquired.
            StorageError: If the session data cannot be loaded.
        """
        async with self._serial:
            if not self.is_locked():
                if self._id is None:
                    session_id = self._id_generator.generate()
                    lock = await self._mutex.acquire(session_id)
                    data: SessionRecord = {}
                else:
                    session_id = self._id
                    lock = await self._mutex.acquire(session_id)
                    try:
                        data = await self._storage.read(session_id)
                    except BaseException:
                        await lock.release()
                        raise

                self._id = session_id
                self._lock = lock
                self._data = data
                self._persisted = copy.deepcopy(data)
                self._status = SessionStatus.READ | SessionStatus.LOCKED
                logger.debug("session opened", session_id=session_id)

            self._lock_count += 1
            return self

    async def lock(self) -> "Session":
        """Alias of open()."""
        return await self.open()

    async def save(self) -> None:
        """
        Persist the session data; the outermost call also releases the lock.

        Raises:
            SessionUsageError: If the session has not been locked.
            LockRenewalError: If the lease behind the lock was lost.
            StorageError: If the data cannot be written.
        """
        async with self._serial:
            session_id = self._id
            await self._write_and_release()
            logger.debug("session saved", session_id=session_id)

    async def destroy(self) -> None:
        """
        Empty and persist the session; the outermost call releases the lock
        and clears the identity.

        Raises:
            SessionUsageError: If the session has not been locked.
        """
        async with self._serial:
            self._assert_locked()
            self._lock.raise_if_lost()
            self._data = {}
            await self._write_and_release()
            logger.debug("session destroyed")

    async def unlock(self) -> None:
        """
        Release the lock without persisting.

        The outermost call discards in-memory modifications, restoring the
        last persisted data. Nested calls only decrement the lock count.

        Raises:
            SessionUsageError: If the session has not been locked.
        """
        async with self._serial:
            self._assert_locked()

            if self._lock_count == 1:
                self._data = copy.deepcopy(self._persisted)
                await self._release()
            else:
                self._lock_count -= 1

    async def unlock_all(self) -> None:
        """
        Force-release the lock regardless of nesting depth.

        Safety net for the owner of the handle at the end of a request;
        unsaved modifications are discarded. Does nothing if not locked.
        """
        async with self._serial:
            if not self.is_locked():
                return

            self._data = copy.deepcopy(self._persisted)
            await self._release()

    async def regenerate(self) -> str:
        """
        Move the session data to a fresh identifier.

        The new id is locked before anything is written, and the old lock is
        released only after the data is safe under the new id, so the
        session is never unprotected.

        Returns:
            The new session identifier.

        Raises:
            SessionUsageError: If the session has not been locked.
            LockRenewalError: If the lease behind the current lock was lost.
            LockError: If the new lock cannot be acquired.
            StorageError: If the data cannot be moved.
        """
        async with self._serial:
            self._assert_locked()
            self._lock.raise_if_lost()

            old_id = self._id
            old_lock = self._lock
            new_id = self._id_generator.generate()
            new_lock = await self._mutex.acquire(new_id)

            record = copy.deepcopy(self._data)
            try:
                await self._storage.write(new_id, record)
                await self._storage.write(old_id, {})
            except BaseException:
                await new_lock.release()
                raise

            self._id = new_id
            self._lock = new_lock
            self._data = record
            self._persisted = copy.deepcopy(record)

            record_session_regenerated()
            logger.debug("session regenerated", session_id=new_id)

            await old_lock.release()
            return new_id

    # =========================================================================
    # Internals (caller holds self._serial)
    # =========================================================================

    async def _write_and_release(self) -> None:
        self._assert_locked()
        self._lock.raise_if_lost()

        record = copy.deepcopy(self._data)
        await self._storage.write(self._id, record)
        # The handle reflects exactly what was written
        self._data = record
        self._persisted = copy.deepcopy(record)

        if self._lock_count == 1:
            await self._release()
        else:
            self._lock_count -= 1

    async def _release(self) -> None:
        """Release the held lock and reset lock state in one step."""
        lock = self._lock

        self._lock = None
        self._lock_count = 0
        self._status &= ~SessionStatus.LOCKED

        if not self._data:
            self._id = None

        await lock.release()

    def _assert_read(self) -> None:
        if not self.is_read():
            raise SessionUsageError("The session has not been read")

    def _assert_locked(self) -> None:
        if not self.is_locked():
            raise SessionUsageError("The session has not been locked")

    def _assert_mutable(self) -> None:
        self._assert_locked()
        if self._serial.locked():
            raise SessionUsageError(
                "The session cannot be modified while another operation on it is running"
            )
        self._lock.raise_if_lost()
