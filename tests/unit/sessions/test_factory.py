"""
Tests for SessionFactory and settings-driven wiring
"""

import pytest


class TestSessionFactoryCreate:
    def test_create_with_valid_id_binds_it(self, session_factory, id_generator) -> None:
        session_id = id_generator.generate()

        session = session_factory.create(session_id)

        assert session.get_id() == session_id
        assert not session.is_read()
        assert not session.is_locked()

    @pytest.mark.parametrize("client_id", ["", "forged", "a" * 47, "a" * 47 + "="])
    def test_create_with_invalid_id_discards_it(self, session_factory, client_id) -> None:
        session = session_factory.create(client_id)

        assert session.get_id() is None

    def test_create_without_id(self, session_factory) -> None:
        assert session_factory.create(None).get_id() is None

    def test_handles_are_independent(self, session_factory, id_generator) -> None:
        session_id = id_generator.generate()

        assert session_factory.create(session_id) is not session_factory.create(session_id)

    def test_default_generator_uses_settings_length(self, local_mutex, local_storage, monkeypatch) -> None:
        from session_store.core.config import get_settings
        from session_store.sessions.factory import SessionFactory

        monkeypatch.setenv("SESSION_STORE_SESSION_ID_LENGTH", "32")
        get_settings.cache_clear()

        factory = SessionFactory(local_mutex, local_storage)

        assert factory.id_generator.length == 32

    @pytest.mark.asyncio
    async def test_forged_id_never_reaches_storage(self, session_factory) -> None:
        session = session_factory.create("../../etc/passwd")

        await session.open()

        assert session.get_id() != "../../etc/passwd"
        assert session_factory.id_generator.validate(session.get_id())
        await session.unlock()


class TestBuildSessionFactory:
    def test_local_backend(self) -> None:
        from session_store.core.config import Settings
        from session_store.sessions.factory import build_session_factory
        from session_store.sessions.mutex import LocalKeyedMutex
        from session_store.sessions.storage import LocalSessionStorage

        factory = build_session_factory(Settings(storage_backend="local"))

        assert isinstance(factory.mutex, LocalKeyedMutex)
        assert isinstance(factory.storage, LocalSessionStorage)
        assert factory.id_generator.length == 48

    def test_defaults_to_environment_settings(self, monkeypatch) -> None:
        from session_store.sessions.factory import build_session_factory
        from session_store.sessions.storage import LocalSessionStorage

        monkeypatch.setenv("SESSION_STORE_SESSION_LIFETIME_SECONDS", "120")

        factory = build_session_factory()

        assert isinstance(factory.storage, LocalSessionStorage)
        assert factory.storage._lifetime == 120

    @pytest.mark.asyncio
    async def test_redis_backend(self, fake_redis) -> None:
        from session_store.core.config import Settings
        from session_store.sessions.factory import build_session_factory
        from session_store.sessions.redis_mutex import RedisKeyedMutex
        from session_store.sessions.redis_storage import RedisSessionStorage

        settings = Settings(storage_backend="redis", lock_ttl_seconds=1.0)

        factory = build_session_factory(settings, redis_client=fake_redis)

        assert isinstance(factory.mutex, RedisKeyedMutex)
        assert isinstance(factory.storage, RedisSessionStorage)
        assert factory.mutex.ttl_seconds == 1.0

    @pytest.mark.asyncio
    @pytest.mark.integration
    async def test_redis_backend_shares_sessions_across_factories(self, fake_redis) -> None:
        from session_store.core.config import Settings
        from session_store.sessions.factory import build_session_factory

        settings = Settings(storage_backend="redis", lock_ttl_seconds=1.0)
        first = build_session_factory(settings, redis_client=fake_redis)
        second = build_session_factory(settings, redis_client=fake_redis)

        writer = first.create(None)
        await writer.open()
        writer.set("cart", ["apple", "pear"])
        await writer.save()
        session_id = writer.get_id()

        assert await fake_redis.exists(f"session:{session_id}") == 1
        assert await fake_redis.exists(f"session-lock:{session_id}") == 0

        reader = second.create(session_id)
        await reader.open()
        assert reader.get("cart") == ["apple", "pear"]
        await reader.destroy()

        assert await fake_redis.exists(f"session:{session_id}") == 0

    @pytest.mark.asyncio
    async def test_create_redis_client_uses_settings(self) -> None:
        from session_store.core.config import Settings
        from session_store.sessions.factory import create_redis_client

        settings = Settings(redis_url="redis://example.invalid:6380/2", redis_pool_size=5)

        client = create_redis_client(settings)
        try:
            kwargs = client.connection_pool.connection_kwargs
            assert kwargs["host"] == "example.invalid"
            assert kwargs["port"] == 6380
            assert kwargs["db"] == 2
            assert kwargs.get("decode_responses", False) is False
            assert client.connection_pool.max_connections == 5
        finally:
            await client.aclose()
