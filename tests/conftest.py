"""
Shared test configuration and fixtures for the account service tests.

Provides the fake Redis client, PostgreSQL database setup for repository tests,
and prebuilt account collaborators wired with cheap hashing parameters.
"""

import os
import uuid
import pytest
import pytest_asyncio
import fakeredis.aioredis
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine, async_sessionmaker

from aur.im.accounts.image.avatar import AvatarResolver
from aur.im.accounts.model.base import Base
from aur.im.accounts.security.accounts import AccountService
from aur.im.accounts.security.jwt import TokenCodec
from aur.im.accounts.security.password import HashParameters
from aur.im.accounts.store.rate import (
    CAPTCHA_COLLECTION,
    REQUEST_COUNT_COLLECTION,
    RateCounter,
)
from aur.im.accounts.store.sessions import SessionStore
from tests.test_helpers import InMemoryUserRepository

TEST_TOKEN_SECRET = "test-secret-0123456789abcdefghijklmnopqrstuvwxyz"

# Minimum Argon2id costs; production parameters are covered in the password tests.
FAST_HASH_PARAMETERS = HashParameters(time_cost=1, memory_cost=8, parallelism=1)


# Test database configuration
TEST_DB_HOST = os.getenv("TEST_DB_HOST", "postgres")
TEST_DB_PORT = os.getenv("TEST_DB_PORT", "5432")
TEST_DB_USER = os.getenv("TEST_DB_USER", "postgres")
TEST_DB_PASSWORD = os.getenv("TEST_DB_PASSWORD", "password")

# Admin URL for database creation/deletion (connects to postgres database)
ADMIN_DATABASE_URL = f"postgresql+asyncpg://{TEST_DB_USER}:{TEST_DB_PASSWORD}@{TEST_DB_HOST}:{TEST_DB_PORT}/postgres"


async def check_postgres_available():
    """Check if PostgreSQL is available for testing."""
    try:
        admin_engine = create_async_engine(ADMIN_DATABASE_URL, echo=False)
        async with admin_engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
        await admin_engine.dispose()
        return True
    except Exception:
        return False


@pytest_asyncio.fixture(scope="function")
async def test_database():
    """Create and clean up a uniquely named test database for each test function."""
    if not await check_postgres_available():
        pytest.skip("PostgreSQL database not available for testing")

    unique_db_name = f"accounts_test_{uuid.uuid4().hex[:8]}"
    unique_db_url = (
        f"postgresql+asyncpg://{TEST_DB_USER}:{TEST_DB_PASSWORD}@"
        f"{TEST_DB_HOST}:{TEST_DB_PORT}/{unique_db_name}"
    )

    admin_engine = create_async_engine(
        ADMIN_DATABASE_URL, echo=False, isolation_level="AUTOCOMMIT"
    )

    try:
        async with admin_engine.connect() as conn:
            await conn.execute(text(f"CREATE DATABASE {unique_db_name}"))

        yield unique_db_url

    finally:
        async with admin_engine.connect() as conn:
            await conn.execute(text(f"DROP DATABASE IF EXISTS {unique_db_name}"))
        await admin_engine.dispose()


@pytest_asyncio.fixture(scope="function")
async def engine(test_database):
    """Create async SQLAlchemy engine for testing with PostgreSQL."""
    engine = create_async_engine(test_database, echo=False)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest_asyncio.fixture(scope="function")
async def session_maker(engine):
    """Async session factory bound to the test database."""
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture
async def fake_redis_client():
    """Provide fake Redis client for unit tests."""
    client = fakeredis.aioredis.FakeRedis(decode_responses=False)
    yield client
    await client.flushall()
    await client.aclose()


@pytest.fixture
def token_codec():
    return TokenCodec(TEST_TOKEN_SECRET)


@pytest.fixture
def session_store(fake_redis_client):
    return SessionStore(fake_redis_client)


@pytest.fixture
def captcha_counter(fake_redis_client):
    return RateCounter(fake_redis_client, CAPTCHA_COLLECTION)


@pytest.fixture
def request_counter(fake_redis_client):
    return RateCounter(fake_redis_client, REQUEST_COUNT_COLLECTION)


@pytest.fixture
def user_repository():
    return InMemoryUserRepository()


@pytest.fixture
def account_service(user_repository, session_store, token_codec):
    return AccountService(
        user_repository, session_store, token_codec, FAST_HASH_PARAMETERS
    )


@pytest.fixture
def avatar_resolver(tmp_path):
    return AvatarResolver(tmp_path / "avatars")
