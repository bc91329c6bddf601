"""
Redis Session Storage

Stores serialized session records under <prefix><session id> with a TTL.

Pattern: Repository pattern with Redis storage
Pattern: Dependency injection for Redis client

The client must be created with decode_responses=False: records are binary
(one flag byte followed by a possibly deflated payload).
"""

from typing import Optional

from redis.asyncio import Redis

from session_store.core.config import get_settings
from session_store.core.exceptions import SerializationError, StorageError
from session_store.observability.logging import get_logger, redact_session_id
from session_store.observability.metrics import record_storage_operation
from session_store.sessions.serializer import (
    CompressingJsonSerializer,
    SessionRecord,
    Serializer,
)

logger = get_logger(__name__)


class RedisSessionStorage:
    """
    Redis-based session storage.

    Attributes:
        _redis: The Redis client instance.
        _key_prefix: Prefix for Redis keys.
        _lifetime: Record TTL in seconds.

    Example:
        >>> import redis.asyncio as redis
        >>> client = redis.from_url("redis://localhost:6379")
        >>> storage = RedisSessionStorage(redis_client=client)
        >>> await storage.write(session_id, {"user": 42})
        >>> await storage.read(session_id)
        {'user': 42}
    """

    backend_name = "redis"

    def __init__(
        self,
        redis_client: Redis,
        serializer: Optional[Serializer] = None,
        session_lifetime_seconds: Optional[int] = None,
        key_prefix: Optional[str] = None,
    ) -> None:
        """
        Initialize RedisSessionStorage with Redis client.

        Args:
            redis_client: Async Redis client instance.
            serializer: Record serializer. Defaults to CompressingJsonSerializer.
            session_lifetime_seconds: Record TTL. Defaults to
                settings.session_lifetime_seconds.
            key_prefix: Prefix for all session keys in Redis. Defaults to
                settings.session_key_prefix.
        """
        settings = get_settings()

        self._redis: Redis = redis_client
        self._serializer: Serializer = serializer or CompressingJsonSerializer()
        self._lifetime: int = (
            session_lifetime_seconds
            if session_lifetime_seconds is not None
            else settings.session_lifetime_seconds
        )
        self._key_prefix: str = key_prefix if key_prefix is not None else settings.session_key_prefix

    def _make_key(self, session_id: str) -> str:
        return f"{self._key_prefix}{session_id}"

    async def write(self, session_id: str, record: SessionRecord) -> None:
        """
        Persist a record with the configured TTL, or delete it when empty.

        Raises:
            SerializationError: If the record cannot be encoded.
            StorageError: If the Redis operation fails.
        """
        key = self._make_key(session_id)
        redacted = redact_session_id(session_id)

        if not record:
            try:
                await self._redis.delete(key)
            except Exception as e:
                record_storage_operation(self.backend_name, "delete", "error")
                raise StorageError(
                    f"Couldn't delete session '{redacted}': {e}", session_id=session_id
                ) from e

            record_storage_operation(self.backend_name, "delete", "ok")
            return

        try:
            data = self._serializer.serialize(record)
        except SerializationError as e:
            record_storage_operation(self.backend_name, "write", "error")
            raise SerializationError(
                f"Couldn't serialize data for session '{redacted}': {e.message}",
                session_id=session_id,
            ) from e

        try:
            await self._redis.set(key, data, ex=self._lifetime)
        except Exception as e:
            record_storage_operation(self.backend_name, "write", "error")
            logger.warning("session write failed", session_id=session_id, error=str(e))
            raise StorageError(
                f"Couldn't persist data for session '{redacted}': {e}", session_id=session_id
            ) from e

        record_storage_operation(self.backend_name, "write", "ok")

    async def read(self, session_id: str) -> SessionRecord:
        """
        Load a record and slide its expiry.

        Returns:
            The stored record, or {} if it does not exist.

        Raises:
            SerializationError: If the stored bytes cannot be decoded.
            StorageError: If a Redis operation fails.
        """
        key = self._make_key(session_id)
        redacted = redact_session_id(session_id)

        try:
            result = await self._redis.get(key)
        except Exception as e:
            record_storage_operation(self.backend_name, "read", "error")
            logger.warning("session read failed", session_id=session_id, error=str(e))
            raise StorageError(
                f"Couldn't read data for session '{redacted}': {e}", session_id=session_id
            ) from e

        if result is None:
            record_storage_operation(self.backend_name, "read", "miss")
            return {}

        if isinstance(result, str):
            record_storage_operation(self.backend_name, "read", "error")
            raise StorageError(
                f"Couldn't read data for session '{redacted}': "
                "the Redis client must be created with decode_responses=False",
                session_id=session_id,
            )

        try:
            record = self._serializer.unserialize(result)
        except SerializationError as e:
            record_storage_operation(self.backend_name, "read", "error")
            raise SerializationError(
                f"Couldn't read data for session '{redacted}': {e.message}",
                session_id=session_id,
            ) from e

        try:
            await self._redis.expire(key, self._lifetime)
        except Exception as e:
            record_storage_operation(self.backend_name, "read", "error")
            raise StorageError(
                f"Couldn't renew expiry for session '{redacted}': {e}", session_id=session_id
            ) from e

        record_storage_operation(self.backend_name, "read", "hit")
        return record
