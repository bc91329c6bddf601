"""
Pytest configuration and shared fixtures.

This configuration sets up:
- Import path for the session_store package
- Test markers for categorization
- Fake Redis (fakeredis, with Lua support) for Redis-backed components
- Local mutex/storage/factory fixtures for the Session state machine
"""

import sys
from pathlib import Path

import fakeredis.aioredis
import pytest
import pytest_asyncio

# Add project root to Python path for imports
PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT))


# =============================================================================
# Test Markers
# =============================================================================


def pytest_configure(config):
    """Register custom markers for test categorization."""
    config.addinivalue_line("markers", "unit: Unit tests for individual components")
    config.addinivalue_line("markers", "integration: Tests spanning several components")
    config.addinivalue_line("markers", "slow: Tests that wait on real timers")


# =============================================================================
# Settings Isolation
# =============================================================================


@pytest.fixture(autouse=True)
def clear_settings_cache():
    """Ensure every test sees settings built from its own environment."""
    from session_store.core.config import get_settings

    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


# =============================================================================
# FakeRedis Fixture
# =============================================================================


@pytest_asyncio.fixture
async def fake_redis():
    """
    Provide a fake Redis client for testing.

    decode_responses stays False: session records are binary.
    """
    redis = fakeredis.aioredis.FakeRedis()
    yield redis
    await redis.aclose()


# =============================================================================
# Session Component Fixtures
# =============================================================================


@pytest.fixture
def id_generator():
    from session_store.sessions.id_generator import Base64UrlSessionIdGenerator

    return Base64UrlSessionIdGenerator()


@pytest.fixture
def local_mutex():
    from session_store.sessions.mutex import LocalKeyedMutex

    return LocalKeyedMutex()


@pytest.fixture
def local_storage():
    from session_store.sessions.storage import LocalSessionStorage

    return LocalSessionStorage(session_lifetime_seconds=3600)


@pytest.fixture
def session_factory(local_mutex, local_storage, id_generator):
    from session_store.sessions.factory import SessionFactory

    return SessionFactory(local_mutex, local_storage, id_generator)
