"""
Session Factory

SessionFactory turns a client-presented identifier into a Session handle,
once per inbound request. Identifiers that fail validation are treated as
"no identity": a fresh id is minted lazily on the first open().

build_session_factory() wires the mutex and storage backends selected by
Settings.storage_backend.
"""

from typing import Optional

import redis.asyncio as redis
from redis.asyncio import Redis

from session_store.core.config import Settings, get_settings
from session_store.observability.logging import get_logger
from session_store.sessions.id_generator import (
    Base64UrlSessionIdGenerator,
    SessionIdGenerator,
)
from session_store.sessions.mutex import KeyedMutex, LocalKeyedMutex
from session_store.sessions.redis_mutex import RedisKeyedMutex
from session_store.sessions.redis_storage import RedisSessionStorage
from session_store.sessions.serializer import CompressingJsonSerializer
from session_store.sessions.session import Session
from session_store.sessions.storage import LocalSessionStorage, SessionStorage

logger = get_logger(__name__)


class SessionFactory:
    """
    Creates Session handles bound to a shared mutex and storage.

    Args:
        mutex: KeyedMutex shared by every handle of this factory.
        storage: SessionStorage shared by every handle of this factory.
        id_generator: Identifier generator. Defaults to
            Base64UrlSessionIdGenerator with settings.session_id_length.
    """

    def __init__(
        self,
        mutex: KeyedMutex,
        storage: SessionStorage,
        id_generator: Optional[SessionIdGenerator] = None,
    ) -> None:
        self._mutex = mutex
        self._storage = storage
        self._id_generator = id_generator or Base64UrlSessionIdGenerator(
            get_settings().session_id_length
        )

    @property
    def mutex(self) -> KeyedMutex:
        return self._mutex

    @property
    def storage(self) -> SessionStorage:
        return self._storage

    @property
    def id_generator(self) -> SessionIdGenerator:
        return self._id_generator

    def create(self, client_id: Optional[str]) -> Session:
        """
        Create a handle for one request.

        Args:
            client_id: Identifier presented by the client (e.g. a cookie
                value), or None.

        Returns:
            A Session bound to client_id if it is valid, otherwise a Session
            without identity. The session is neither read nor locked.
        """
        if client_id is not None and not self._id_generator.validate(client_id):
            logger.debug("discarding invalid client session id")
            client_id = None

        return Session(self._mutex, self._storage, self._id_generator, client_id)


# =============================================================================
# Settings-driven Wiring
# =============================================================================


def create_redis_client(settings: Optional[Settings] = None) -> Redis:
    """
    Create an async Redis client for session records and locks.

    decode_responses is disabled: session records are binary.

    Args:
        settings: Settings to use. Defaults to get_settings().

    Returns:
        Redis client with a bounded connection pool
    """
    settings = settings or get_settings()

    return redis.from_url(
        settings.redis_url,
        decode_responses=False,
        max_connections=settings.redis_pool_size,
    )


def build_session_factory(
    settings: Optional[Settings] = None,
    redis_client: Optional[Redis] = None,
) -> SessionFactory:
    """
    Build a SessionFactory for the configured backend.

    Args:
        settings: Settings to use. Defaults to get_settings().
        redis_client: Client for the redis backend. Created from
            settings.redis_url when omitted.

    Returns:
        SessionFactory with matching mutex and storage
    """
    settings = settings or get_settings()

    serializer = CompressingJsonSerializer(
        threshold=settings.compression_threshold,
        level=settings.compression_level,
    )
    id_generator = Base64UrlSessionIdGenerator(settings.session_id_length)

    mutex: KeyedMutex
    storage: SessionStorage

    if settings.storage_backend == "redis":
        client = redis_client if redis_client is not None else create_redis_client(settings)
        mutex = RedisKeyedMutex(
            redis_client=client,
            key_prefix=settings.lock_key_prefix,
            lock_ttl_seconds=settings.lock_ttl_seconds,
            retry_min_seconds=settings.lock_retry_min_seconds,
            retry_max_seconds=settings.lock_retry_max_seconds,
        )
        storage = RedisSessionStorage(
            redis_client=client,
            serializer=serializer,
            session_lifetime_seconds=settings.session_lifetime_seconds,
            key_prefix=settings.session_key_prefix,
        )
    else:
        mutex = LocalKeyedMutex()
        storage = LocalSessionStorage(
            serializer=serializer,
            session_lifetime_seconds=settings.session_lifetime_seconds,
        )

    logger.info(
        "session factory configured",
        backend=settings.storage_backend,
        session_lifetime_seconds=settings.session_lifetime_seconds,
    )

    return SessionFactory(mutex, storage, id_generator)
