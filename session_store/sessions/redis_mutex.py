"""
Redis Keyed Mutex

Lease-based mutual exclusion across processes sharing one Redis instance.

- acquire: SET <prefix><key> <token> NX PX <ttl>, retried with jittered
  exponential back-off until it succeeds. A holder that dies without
  releasing only blocks others until its lease TTL runs out.
- renew: compare-and-PEXPIRE, only if the key still holds our token.
- release: compare-and-DEL, only if the key still holds our token.

The compare-and-* steps run as Lua scripts so they are atomic on the server.
Renewal is driven by the returned Lock every TTL / 2 (see mutex.Lock).
"""

import asyncio
import random
import time
from functools import partial
from typing import Optional

from redis.asyncio import Redis

from session_store.core.config import get_settings
from session_store.core.exceptions import LockError
from session_store.observability.logging import get_logger, redact_session_id
from session_store.observability.metrics import record_lock_acquired
from session_store.sessions.mutex import Lock, generate_lock_token

logger = get_logger(__name__)


# =============================================================================
# Lua Scripts
# =============================================================================

RELEASE_SCRIPT = """
if redis.call('get', KEYS[1]) == ARGV[1] then
    return redis.call('del', KEYS[1])
end
return 0
"""

RENEW_SCRIPT = """
if redis.call('get', KEYS[1]) == ARGV[1] then
    return redis.call('pexpire', KEYS[1], ARGV[2])
end
return 0
"""


# =============================================================================
# RedisKeyedMutex
# =============================================================================


class RedisKeyedMutex:
    """
    KeyedMutex backed by Redis leases.

    Args:
        redis_client: Async Redis client instance.
        key_prefix: Prefix for lease keys. Defaults to settings.lock_key_prefix.
        lock_ttl_seconds: Lease TTL. Defaults to settings.lock_ttl_seconds.
        retry_min_seconds: First back-off between attempts.
        retry_max_seconds: Back-off cap.

    Example:
        >>> mutex = RedisKeyedMutex(redis_client=client)
        >>> lock = await mutex.acquire(session_id)
        >>> try:
        ...     ...
        ... finally:
        ...     await lock.release()
    """

    backend_name = "redis"

    def __init__(
        self,
        redis_client: Redis,
        key_prefix: Optional[str] = None,
        lock_ttl_seconds: Optional[float] = None,
        retry_min_seconds: Optional[float] = None,
        retry_max_seconds: Optional[float] = None,
    ) -> None:
        settings = get_settings()

        self._redis: Redis = redis_client
        self._key_prefix: str = key_prefix if key_prefix is not None else settings.lock_key_prefix
        self._ttl_seconds: float = (
            lock_ttl_seconds if lock_ttl_seconds is not None else settings.lock_ttl_seconds
        )
        self._retry_min_seconds: float = (
            retry_min_seconds if retry_min_seconds is not None else settings.lock_retry_min_seconds
        )
        self._retry_max_seconds: float = (
            retry_max_seconds if retry_max_seconds is not None else settings.lock_retry_max_seconds
        )

    @property
    def ttl_seconds(self) -> float:
        return self._ttl_seconds

    @property
    def _ttl_ms(self) -> int:
        return max(int(self._ttl_seconds * 1000), 1)

    def _make_key(self, key: str) -> str:
        return f"{self._key_prefix}{key}"

    async def acquire(self, key: str) -> Lock:
        """
        Acquire the lease for key, suspending until it is free.

        Cancellation (e.g. asyncio.wait_for timing out) propagates unchanged.

        Raises:
            LockError: If Redis cannot be reached.
        """
        redis_key = self._make_key(key)
        token = generate_lock_token()
        started = time.monotonic()
        delay = self._retry_min_seconds

        while True:
            try:
                acquired = await self._redis.set(redis_key, token, nx=True, px=self._ttl_ms)
            except Exception as e:
                raise LockError(
                    f"Couldn't acquire lock for session '{redact_session_id(key)}': {e}",
                    key=key,
                ) from e

            if acquired:
                break

            await asyncio.sleep(delay * random.uniform(0.5, 1.0))
            delay = min(delay * 2, self._retry_max_seconds)

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
            token,
            partial(self._release, key, redis_key, token),
            renew=partial(self._renew, redis_key, token),
            renew_interval=self._ttl_seconds / 2,
            backend=self.backend_name,
        )

    async def _release(self, key: str, redis_key: str, token: str) -> None:
        deleted = await self._redis.eval(RELEASE_SCRIPT, 1, redis_key, token)

        if not deleted:
            logger.warning(
                "lock lease had already expired on release",
                session_id=key,
                backend=self.backend_name,
            )

    async def _renew(self, redis_key: str, token: str) -> bool:
        renewed = await self._redis.eval(RENEW_SCRIPT, 1, redis_key, token, self._ttl_ms)
        return bool(renewed)
