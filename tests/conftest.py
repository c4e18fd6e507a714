"""Pytest configuration and fixtures for taskpool.

DB-dependent tests run the real repositories against an in-memory SQLite
database (aiosqlite). The pysqlite transaction handling is replaced with
explicit BEGIN so SAVEPOINT works, and foreign keys are switched on so
ON DELETE CASCADE behaves as on Postgres.
"""

import pytest
from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

import taskpool.infrastructure.persistence.models  # noqa: F401  (registers tables)
from taskpool.core.composition import Services, build_services
from taskpool.infrastructure.persistence.database import Base


@pytest.fixture
async def db_engine():
    """Fresh in-memory database with every table created from the models."""
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )

    @event.listens_for(engine.sync_engine, "connect")
    def _on_connect(dbapi_connection, _connection_record) -> None:
        # Let SQLAlchemy emit BEGIN itself (needed for SAVEPOINT).
        dbapi_connection.isolation_level = None
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    @event.listens_for(engine.sync_engine, "begin")
    def _on_begin(conn) -> None:
        conn.exec_driver_sql("BEGIN")

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
async def db_session(db_engine) -> AsyncSession:
    """Session for repository/integration tests. Rolls back after test."""
    session_factory = async_sessionmaker(
        bind=db_engine, expire_on_commit=False, autoflush=False
    )
    async with session_factory() as session:
        yield session
        await session.rollback()


@pytest.fixture
def services(db_session) -> Services:
    """Lifecycle, registry and engine sharing the test session."""
    return build_services(db_session)
