"""
Session Storage

SessionStorage reads and writes serialized session records with a TTL.

Contract shared by every implementation:
- read(id) returns {} if no entry exists or it has expired. Reading a
  non-empty record refreshes its expiry to the full lifetime (sliding
  expiration). Writes do not slide: they set the fixed lifetime.
- write(id, {}) deletes the entry.
- Backend and serialization failures raise StorageError (SerializationError
  for undecodable records); they are never turned into an empty record.
"""

import time
from typing import Callable, Optional, Protocol, runtime_checkable

from session_store.core.config import get_settings
from session_store.core.exceptions import StorageError
from session_store.observability.logging import get_logger, redact_session_id
from session_store.observability.metrics import record_storage_operation
from session_store.sessions.serializer import (
    CompressingJsonSerializer,
    SessionRecord,
    Serializer,
)

logger = get_logger(__name__)


@runtime_checkable
class SessionStorage(Protocol):
    """Durable read/write of session records."""

    async def read(self, session_id: str) -> SessionRecord:
        ...

    async def write(self, session_id: str, record: SessionRecord) -> None:
        ...


class LocalSessionStorage:
    """
    In-process session storage, mainly for development and tests.

    Records are kept serialized, so every read returns an independent copy
    and the stored format is identical to the Redis backend's.

    Note: Not shared between processes. Pair with LocalKeyedMutex.

    Args:
        serializer: Record serializer. Defaults to CompressingJsonSerializer.
        session_lifetime_seconds: Record TTL. Defaults to settings value.
        clock: Monotonic clock returning seconds (injectable for tests).
    """

    backend_name = "local"

    def __init__(
        self,
        serializer: Optional[Serializer] = None,
        session_lifetime_seconds: Optional[int] = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._serializer: Serializer = serializer or CompressingJsonSerializer()
        self._lifetime: int = (
            session_lifetime_seconds
            if session_lifetime_seconds is not None
            else get_settings().session_lifetime_seconds
        )
        self._clock = clock
        # session id -> (serialized record, expiry deadline)
        self._entries: dict[str, tuple[bytes, float]] = {}

    def __len__(self) -> int:
        return len(self._entries)

    async def read(self, session_id: str) -> SessionRecord:
        entry = self._entries.get(session_id)

        if entry is None:
            record_storage_operation(self.backend_name, "read", "miss")
            return {}

        data, expires_at = entry
        now = self._clock()

        if expires_at <= now:
            del self._entries[session_id]
            record_storage_operation(self.backend_name, "read", "miss")
            return {}

        try:
            record = self._serializer.unserialize(data)
        except StorageError as e:
            record_storage_operation(self.backend_name, "read", "error")
            e.session_id = session_id
            raise

        self._entries[session_id] = (data, now + self._lifetime)
        record_storage_operation(self.backend_name, "read", "hit")
        return record

    def peek(self, session_id: str) -> SessionRecord:
        """Decode the stored record without refreshing its expiry."""
        entry = self._entries.get(session_id)
        if entry is None or entry[1] <= self._clock():
            return {}

        try:
            return self._serializer.unserialize(entry[0])
        except StorageError as e:
            e.session_id = session_id
            raise

    async def write(self, session_id: str, record: SessionRecord) -> None:
        if not record:
            self._entries.pop(session_id, None)
            record_storage_operation(self.backend_name, "delete", "ok")
            return

        try:
            data = self._serializer.serialize(record)
        except StorageError as e:
            record_storage_operation(self.backend_name, "write", "error")
            logger.warning(
                "couldn't serialize session record",
                session_id=session_id,
                error=str(e),
            )
            e.session_id = session_id
            raise

        self._entries[session_id] = (data, self._clock() + self._lifetime)
        record_storage_operation(self.backend_name, "write", "ok")

    def purge_expired(self) -> int:
        """
        Drop every expired entry.

        Returns:
            Number of entries removed.
        """
        now = self._clock()
        expired = [sid for sid, (_, expires_at) in self._entries.items() if expires_at <= now]
        for sid in expired:
            del self._entries[sid]

        if expired:
            logger.debug("purged expired sessions", count=len(expired))
        return len(expired)

    def __repr__(self) -> str:
        ids = ", ".join(repr(redact_session_id(sid)) for sid in list(self._entries)[:3])
        return f"<LocalSessionStorage entries={len(self._entries)} [{ids}]>"
