"""Database pool ownership, schema bootstrap and user storage.

The ``DatabaseLifecycleManager`` is handed an ``AsyncEngine`` at construction and owns it from then on. Schema
bootstrap is create-if-absent so it can run on every start. Storage failures are mapped onto a small taxonomy:
unique-constraint violations become ``ConflictError`` and everything else becomes ``StorageError``.
"""

import asyncio
import logging
from typing import List, Union

from sqlalchemy import text
from sqlalchemy.engine import URL
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from social.graze.userdb.model.base import Base
from social.graze.userdb.model.health import HealthStatus, PoolState
from social.graze.userdb.model.users import User, insert_user_stmt, list_users_stmt

logger = logging.getLogger(__name__)

UNIQUE_VIOLATION = "23505"

STORAGE_EXCEPTIONS = (SQLAlchemyError, OSError, asyncio.TimeoutError)


class DatabaseError(Exception):
    """Base class for storage layer failures."""


class SchemaInitError(DatabaseError):
    """The users schema could not be created. Fatal at startup."""


class ConflictError(DatabaseError):
    """A username or email is already taken."""


class StorageError(DatabaseError):
    """Any other storage failure, including connection acquisition timeouts."""


def create_database_engine(
    url: Union[str, URL],
    max_connections: int = 20,
    idle_timeout: float = 30.0,
    acquire_timeout: float = 2.0,
) -> AsyncEngine:
    """Build the bounded connection pool.

    The pool never grows past ``max_connections``; callers beyond that wait up to ``acquire_timeout`` seconds for a
    connection and then fail. Opening a new connection is bounded by the same timeout.
    """
    return create_async_engine(
        url,
        pool_size=max_connections,
        max_overflow=0,
        pool_timeout=acquire_timeout,
        pool_recycle=idle_timeout,
        pool_pre_ping=True,
        connect_args={"timeout": acquire_timeout},
    )


def is_unique_violation(error: IntegrityError) -> bool:
    orig = error.orig
    for candidate in (orig, getattr(orig, "__cause__", None)):
        sqlstate = getattr(candidate, "sqlstate", None) or getattr(
            candidate, "pgcode", None
        )
        if isinstance(sqlstate, str):
            return sqlstate == UNIQUE_VIOLATION
    return "unique" in str(orig).lower()


class DatabaseLifecycleManager:
    """
    Owns the connection pool and exposes the storage operations used by the HTTP layer.

    The manager starts in ``PoolState.CONSTRUCTING``. ``initialize`` moves it through ``INITIALIZING`` to ``READY``,
    or back to ``CONSTRUCTING`` when schema bootstrap fails, in which case the caller must abort startup. Health
    probes report ``READY`` or ``DEGRADED`` without changing the stored state.
    """

    def __init__(self, engine: AsyncEngine, acquire_timeout: float = 2.0) -> None:
        self.engine = engine
        self.acquire_timeout = acquire_timeout
        self.session_maker = async_sessionmaker(
            engine, class_=AsyncSession, expire_on_commit=False
        )
        self._state = PoolState.CONSTRUCTING

    @property
    def state(self) -> PoolState:
        return self._state

    async def initialize(self) -> None:
        """Create the users table and its unique constraints if they do not exist.

        Raises:
            SchemaInitError: If the schema could not be created
        """
        self._state = PoolState.INITIALIZING
        try:
            async with self.engine.begin() as conn:
                await conn.run_sync(Base.metadata.create_all, checkfirst=True)
        except Exception as e:
            self._state = PoolState.CONSTRUCTING
            logger.error("Failed to initialize database: %s", type(e).__name__)
            raise SchemaInitError("Failed to initialize database schema") from e

        self._state = PoolState.READY
        logger.info("Database initialized successfully")

    async def _ping(self) -> None:
        async with self.engine.connect() as conn:
            await conn.execute(text("SELECT 1"))

    async def check_connection(self) -> bool:
        """Run a trivial round-trip query. Returns False on any error or timeout and never raises."""
        try:
            await asyncio.wait_for(self._ping(), timeout=self.acquire_timeout)
        except Exception as e:
            logger.debug("Database connection check failed: %s", type(e).__name__)
            return False
        return True

    async def health(self) -> HealthStatus:
        healthy = await self.check_connection()
        state = self._state
        if state == PoolState.READY and not healthy:
            state = PoolState.DEGRADED
        return HealthStatus(healthy=healthy, state=state)

    def _require_ready(self) -> None:
        if self._state != PoolState.READY:
            raise StorageError("Database has not been initialized")

    async def create_user(self, username: str, email: str) -> User:
        """Insert a user and return the stored row with its generated id and timestamp.

        Raises:
            ConflictError: If the username or email is already taken
            StorageError: On any other storage failure
        """
        self._require_ready()
        try:
            async with self.session_maker() as database_session:
                async with database_session.begin():
                    user = (
                        await database_session.scalars(
                            insert_user_stmt(username, email)
                        )
                    ).one()
        except IntegrityError as e:
            if is_unique_violation(e):
                raise ConflictError(
                    "User already exists with this username or email"
                ) from e
            raise StorageError("Failed to create user") from e
        except STORAGE_EXCEPTIONS as e:
            raise StorageError("Failed to create user") from e
        return user

    async def list_users(self) -> List[User]:
        """Return all users, most recently created first.

        Raises:
            StorageError: On any storage failure
        """
        self._require_ready()
        try:
            async with self.session_maker() as database_session:
                users = (await database_session.scalars(list_users_stmt())).all()
        except STORAGE_EXCEPTIONS as e:
            raise StorageError("Failed to list users") from e
        return list(users)

    async def dispose(self) -> None:
        await self.engine.dispose()
