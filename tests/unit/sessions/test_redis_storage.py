"""
Tests for RedisSessionStorage

Pattern: FakeRepository - fakeredis stands in for the server
"""

from unittest.mock import AsyncMock

import pytest
import pytest_asyncio


@pytest_asyncio.fixture
async def redis_storage(fake_redis):
    from session_store.sessions.redis_storage import RedisSessionStorage

    return RedisSessionStorage(
        redis_client=fake_redis,
        session_lifetime_seconds=60,
        key_prefix="test-session:",
    )


class TestRedisSessionStorageWrite:
    @pytest.mark.asyncio
    async def test_write_stores_serialized_record(self, redis_storage, fake_redis) -> None:
        await redis_storage.write("abc", {"foo": "bar"})

        assert await fake_redis.get("test-session:abc") == b'\x00{"foo":"bar"}'

    @pytest.mark.asyncio
    async def test_write_sets_lifetime(self, redis_storage, fake_redis) -> None:
        await redis_storage.write("abc", {"foo": "bar"})

        ttl = await fake_redis.ttl("test-session:abc")
        assert 0 < ttl <= 60

    @pytest.mark.asyncio
    async def test_empty_record_deletes_key(self, redis_storage, fake_redis) -> None:
        await redis_storage.write("abc", {"foo": "bar"})
        await redis_storage.write("abc", {})

        assert await fake_redis.exists("test-session:abc") == 0

    @pytest.mark.asyncio
    async def test_unserializable_record_raises(self, redis_storage, fake_redis) -> None:
        from session_store.core.exceptions import SerializationError

        with pytest.raises(SerializationError) as exc_info:
            await redis_storage.write("abc", {"bad": object()})

        assert exc_info.value.session_id == "abc"
        assert await fake_redis.exists("test-session:abc") == 0

    @pytest.mark.asyncio
    async def test_connection_failure_raises_storage_error(self) -> None:
        from session_store.core.exceptions import StorageError
        from session_store.sessions.redis_storage import RedisSessionStorage

        broken = AsyncMock()
        broken.set.side_effect = ConnectionError("refused")
        storage = RedisSessionStorage(redis_client=broken, session_lifetime_seconds=60)

        with pytest.raises(StorageError) as exc_info:
            await storage.write("abc", {"foo": "bar"})

        assert isinstance(exc_info.value.__cause__, ConnectionError)

    @pytest.mark.asyncio
    async def test_delete_failure_raises_storage_error(self) -> None:
        from session_store.core.exceptions import StorageError
        from session_store.sessions.redis_storage import RedisSessionStorage

        broken = AsyncMock()
        broken.delete.side_effect = ConnectionError("refused")
        storage = RedisSessionStorage(redis_client=broken, session_lifetime_seconds=60)

        with pytest.raises(StorageError):
            await storage.write("abc", {})


class TestRedisSessionStorageRead:
    @pytest.mark.asyncio
    async def test_read_missing_returns_empty(self, redis_storage) -> None:
        assert await redis_storage.read("abc") == {}

    @pytest.mark.asyncio
    async def test_read_returns_written_record(self, redis_storage) -> None:
        record = {"user": {"id": 7}, "blob": "x" * 1000}
        await redis_storage.write("abc", record)

        assert await redis_storage.read("abc") == record

    @pytest.mark.asyncio
    async def test_read_slides_expiry(self, redis_storage, fake_redis) -> None:
        await redis_storage.write("abc", {"foo": "bar"})
        await fake_redis.expire("test-session:abc", 5)

        await redis_storage.read("abc")

        assert await fake_redis.ttl("test-session:abc") > 5

    @pytest.mark.asyncio
    async def test_corrupt_bytes_raise_serialization_error(self, redis_storage, fake_redis) -> None:
        from session_store.core.exceptions import SerializationError

        await fake_redis.set("test-session:abc", b"\x01garbage")

        with pytest.raises(SerializationError) as exc_info:
            await redis_storage.read("abc")

        assert exc_info.value.session_id == "abc"

    @pytest.mark.asyncio
    async def test_decoded_responses_are_rejected(self) -> None:
        from session_store.core.exceptions import StorageError
        from session_store.sessions.redis_storage import RedisSessionStorage

        client = AsyncMock()
        client.get.return_value = '\x00{"foo":"bar"}'
        storage = RedisSessionStorage(redis_client=client, session_lifetime_seconds=60)

        with pytest.raises(StorageError, match="decode_responses"):
            await storage.read("abc")

    @pytest.mark.asyncio
    async def test_connection_failure_raises_storage_error(self) -> None:
        from session_store.core.exceptions import StorageError
        from session_store.sessions.redis_storage import RedisSessionStorage

        broken = AsyncMock()
        broken.get.side_effect = ConnectionError("refused")
        storage = RedisSessionStorage(redis_client=broken, session_lifetime_seconds=60)

        with pytest.raises(StorageError) as exc_info:
            await storage.read("abc")

        assert isinstance(exc_info.value.__cause__, ConnectionError)
        assert exc_info.value.error_code == "STORAGE_ERROR"

    @pytest.mark.asyncio
    async def test_error_message_does_not_contain_full_id(self) -> None:
        from session_store.core.exceptions import StorageError
        from session_store.sessions.redis_storage import RedisSessionStorage

        broken = AsyncMock()
        broken.get.side_effect = ConnectionError("refused")
        storage = RedisSessionStorage(redis_client=broken, session_lifetime_seconds=60)
        session_id = "abcdefghijklmnopqrstuvwxyz0123456789"

        with pytest.raises(StorageError) as exc_info:
            await storage.read(session_id)

        assert session_id not in exc_info.value.message

    @pytest.mark.asyncio
    async def test_satisfies_protocol(self, redis_storage) -> None:
        from session_store.sessions.storage import SessionStorage

        assert isinstance(redis_storage, SessionStorage)
