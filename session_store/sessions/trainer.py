"""
Session Trainer - test helper for code that uses sessions.

Bundles a predictable id generator ("a", "b", ..., "z", "aa", ...) with a
recording backend that counts reads, writes and lock acquisitions per
session id, so tests can assert on how a handler used its session.

Do not use this in production: ids are guessable.

Example:
    >>> trainer = SessionTrainer()
    >>> await trainer.given_session("a", {"foo": 42})
    >>> session = trainer.factory.create("a")
    >>> await session.open()
    >>> session.set("baz", 1)
    >>> await session.save()
    >>> await trainer.get_added_keys("a")
    ['baz']
"""

import re
from typing import Optional

from session_store.sessions.factory import SessionFactory
from session_store.sessions.mutex import Lock, LocalKeyedMutex
from session_store.sessions.serializer import SessionRecord
from session_store.sessions.storage import LocalSessionStorage, SessionStorage

_SEQUENTIAL_ID = re.compile(r"[a-z]+")


class SequentialSessionIdGenerator:
    """Generates "a", "b", ..., "z", "aa", "ab", ... in order."""

    def __init__(self) -> None:
        self._counter = 0

    def generate(self) -> str:
        self._counter += 1
        n = self._counter
        chars = []
        while n > 0:
            n, remainder = divmod(n - 1, 26)
            chars.append(chr(ord("a") + remainder))
        return "".join(reversed(chars))

    def validate(self, session_id: str) -> bool:
        return isinstance(session_id, str) and _SEQUENTIAL_ID.fullmatch(session_id) is not None


class RecordingSessionBackend:
    """
    KeyedMutex and SessionStorage in one object, recording every call.

    Args:
        storage: Storage to delegate to.
    """

    def __init__(self, storage: SessionStorage) -> None:
        self._mutex = LocalKeyedMutex()
        self._storage = storage

        self._locked: set[str] = set()
        self._read_counts: dict[str, int] = {}
        self._write_counts: dict[str, int] = {}
        self._lock_counts: dict[str, int] = {}
        self._first_read_keys: dict[str, list[str]] = {}

    def is_locked(self, session_id: str) -> bool:
        return session_id in self._locked

    def get_lock_count(self, session_id: str) -> int:
        return self._lock_counts.get(session_id, 0)

    def get_read_count(self, session_id: str) -> int:
        return self._read_counts.get(session_id, 0)

    def get_write_count(self, session_id: str) -> int:
        return self._write_counts.get(session_id, 0)

    def get_first_read_keys(self, session_id: str) -> Optional[list[str]]:
        return self._first_read_keys.get(session_id)

    async def acquire(self, key: str) -> Lock:
        self._lock_counts[key] = self._lock_counts.get(key, 0) + 1

        inner = await self._mutex.acquire(key)
        self._locked.add(key)

        async def release() -> None:
            await inner.release()
            self._locked.discard(key)

        return Lock(key, inner.token, release)

    async def read(self, session_id: str) -> SessionRecord:
        self._read_counts[session_id] = self._read_counts.get(session_id, 0) + 1

        record = await self._storage.read(session_id)
        self._first_read_keys.setdefault(session_id, list(record))
        return record

    async def write(self, session_id: str, record: SessionRecord) -> None:
        self._write_counts[session_id] = self._write_counts.get(session_id, 0) + 1
        await self._storage.write(session_id, record)


class SessionTrainer:
    """Factory plus inspection helpers for testing session consumers."""

    def __init__(self) -> None:
        self._backing_storage = LocalSessionStorage()
        self._id_generator = SequentialSessionIdGenerator()
        self._backend = RecordingSessionBackend(self._backing_storage)
        self._factory = SessionFactory(self._backend, self._backend, self._id_generator)

    @property
    def factory(self) -> SessionFactory:
        return self._factory

    async def given_session(self, session_id: str, data: SessionRecord) -> None:
        """Seed the backing storage without touching any counter."""
        await self._backing_storage.write(session_id, data)

    async def get_data(self, session_id: str) -> SessionRecord:
        """Current stored data, bypassing the counters and the sliding expiry."""
        return self._backing_storage.peek(session_id)

    async def get_added_keys(self, session_id: str) -> list[str]:
        first_read_keys = self._backend.get_first_read_keys(session_id)
        if first_read_keys is None:
            return []  # no read, no modification

        current_keys = self._backing_storage.peek(session_id)
        return [key for key in current_keys if key not in first_read_keys]

    async def get_removed_keys(self, session_id: str) -> list[str]:
        first_read_keys = self._backend.get_first_read_keys(session_id)
        if first_read_keys is None:
            return []

        current_keys = self._backing_storage.peek(session_id)
        return [key for key in first_read_keys if key not in current_keys]

    def get_read_count(self, session_id: str) -> int:
        return self._backend.get_read_count(session_id)

    def get_write_count(self, session_id: str) -> int:
        return self._backend.get_write_count(session_id)

    def get_lock_count(self, session_id: str) -> int:
        return self._backend.get_lock_count(session_id)

    def is_locked(self, session_id: str) -> bool:
        return self._backend.is_locked(session_id)
