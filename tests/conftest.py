"""
Shared test configuration and fixtures for userdb tests.

Provides PostgreSQL database setup, lifecycle manager construction and
environment isolation used across the test files.
"""

import os
import uuid
import pytest
import pytest_asyncio
from sqlalchemy import text
from sqlalchemy.ext.asyncio import create_async_engine

from social.graze.userdb.database.lifecycle import (
    DatabaseLifecycleManager,
    create_database_engine,
)


# Test database configuration
TEST_DB_HOST = os.getenv("TEST_DB_HOST", "postgres")
TEST_DB_PORT = os.getenv("TEST_DB_PORT", "5432")
TEST_DB_USER = os.getenv("TEST_DB_USER", "postgres")
TEST_DB_PASSWORD = os.getenv("TEST_DB_PASSWORD", "password")

# Admin URL for database creation/deletion (connects to postgres database)
ADMIN_DATABASE_URL = f"postgresql+asyncpg://{TEST_DB_USER}:{TEST_DB_PASSWORD}@{TEST_DB_HOST}:{TEST_DB_PORT}/postgres"

SETTINGS_ENVIRONMENT = [
    "VAULT_ADDR",
    "VAULT_ROLE_ID",
    "VAULT_SECRET_ID",
    "VAULT_SECRET_PATH",
    "DB_USER",
    "DB_PASSWORD",
    "DB_HOST",
    "DB_PORT",
    "DB_NAME",
    "DB_POOL_MAX",
    "PORT",
    "METRICS_BACKEND",
    "SENTRY_DSN",
    "DEBUG",
    "SHUTDOWN_TIMEOUT",
    "VAULT_TIMEOUT",
    "DB_POOL_IDLE_TIMEOUT",
    "DB_POOL_ACQUIRE_TIMEOUT",
    "TELEGRAF_HOST",
    "TELEGRAF_PORT",
    "STATSD_PREFIX",
    "LOGGING_CONFIG_FILE",
]


@pytest.fixture(autouse=True)
def clean_environment(monkeypatch):
    """Keep the host environment from leaking into Settings."""
    for name in SETTINGS_ENVIRONMENT:
        monkeypatch.delenv(name, raising=False)


async def check_postgres_available():
    """Check if PostgreSQL is available for testing."""
    try:
        admin_engine = create_async_engine(
            ADMIN_DATABASE_URL, echo=False, connect_args={"timeout": 2}
        )
        async with admin_engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
        await admin_engine.dispose()
        return True
    except Exception:
        return False


@pytest_asyncio.fixture(scope="function")
async def test_database():
    """Create and clean up test database for each test function."""
    if not await check_postgres_available():
        pytest.skip("PostgreSQL database not available for testing")

    # Use a unique database name for each test to avoid conflicts
    unique_db_name = f"userdb_test_{uuid.uuid4().hex[:8]}"
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
    """Create the bounded pool against the test database. The schema is left to the lifecycle manager."""
    engine = create_database_engine(
        test_database, max_connections=5, idle_timeout=30, acquire_timeout=5
    )

    yield engine

    await engine.dispose()


@pytest_asyncio.fixture(scope="function")
async def lifecycle(engine):
    """Lifecycle manager with the schema already bootstrapped."""
    manager = DatabaseLifecycleManager(engine, acquire_timeout=5)
    await manager.initialize()
    return manager
