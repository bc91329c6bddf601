"""
Sessions Package

Concurrency-safe session handles over pluggable locking and storage:

- id_generator: session identifier generation and validation
- serializer: record encoding (one flag byte + optionally deflated JSON)
- mutex / redis_mutex: keyed mutexes and renewable leases
- storage / redis_storage: record persistence with sliding TTL
- session: the per-request Session state machine
- factory: SessionFactory and settings-driven wiring
- trainer: SessionTrainer test helper
"""

from session_store.sessions.factory import (
    SessionFactory,
    build_session_factory,
    create_redis_client,
)
from session_store.sessions.id_generator import (
    Base64UrlSessionIdGenerator,
    SessionIdGenerator,
)
from session_store.sessions.mutex import KeyedMutex, LocalKeyedMutex, Lock
from session_store.sessions.redis_mutex import RedisKeyedMutex
from session_store.sessions.redis_storage import RedisSessionStorage
from session_store.sessions.serializer import (
    CompressingJsonSerializer,
    SessionRecord,
    SessionValue,
    Serializer,
)
from session_store.sessions.session import Session, SessionStatus
from session_store.sessions.storage import LocalSessionStorage, SessionStorage
from session_store.sessions.trainer import SessionTrainer

__all__ = [
    "Session",
    "SessionStatus",
    "SessionFactory",
    "build_session_factory",
    "create_redis_client",
    "SessionIdGenerator",
    "Base64UrlSessionIdGenerator",
    "Serializer",
    "CompressingJsonSerializer",
    "SessionRecord",
    "SessionValue",
    "KeyedMutex",
    "Lock",
    "LocalKeyedMutex",
    "RedisKeyedMutex",
    "SessionStorage",
    "LocalSessionStorage",
    "RedisSessionStorage",
    "SessionTrainer",
]
