from typing import Any

from sqlalchemy.ext.asyncio import (
    create_async_engine,
    AsyncEngine,
    async_sessionmaker,
    AsyncAttrs,
)
from sqlalchemy import event
from sqlalchemy.orm import DeclarativeBase

from app.core.config import database_logger, settings

ASYNC_SQLALCHEMY_DATABASE_URL = settings.DATABASE_URL


def _engine_options(url: str) -> dict[str, Any]:
    """
    Build engine keyword arguments for the given database URL.

    SQLite (used for local runs and the test-suite) does not accept queue pool
    sizing arguments, so those are only applied to server databases.

    Args:
        url (str): The async database URL.

    Returns:
        dict[str, Any]: Keyword arguments for ``create_async_engine``.
    """
    options: dict[str, Any] = {"echo": settings.DEBUG}
    if url.startswith("sqlite"):
        return options
    options.update(
        pool_size=20,  # Increase pool size for concurrent connections
        max_overflow=30,  # Allow overflow connections
        pool_pre_ping=True,  # Validate connections before use
        pool_recycle=3600,  # Recycle connections every hour
    )
    return options


async_engine: AsyncEngine = create_async_engine(
    ASYNC_SQLALCHEMY_DATABASE_URL,
    **_engine_options(ASYNC_SQLALCHEMY_DATABASE_URL),
)


def enable_sqlite_savepoints(engine: AsyncEngine) -> None:
    """
    Let SQLite honour BEGIN and SAVEPOINT as issued by SQLAlchemy.

    The sqlite3 driver manages transactions itself and silently breaks
    nested transactions; disabling that and emitting BEGIN explicitly is
    required for ``session.begin_nested()`` to work.
    """

    @event.listens_for(engine.sync_engine, "connect")
    def _do_connect(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine.sync_engine, "begin")
    def _do_begin(conn):
        conn.exec_driver_sql("BEGIN")


if ASYNC_SQLALCHEMY_DATABASE_URL.startswith("sqlite"):
    enable_sqlite_savepoints(async_engine)


AsyncSessionLocal = async_sessionmaker(
    bind=async_engine,
    autoflush=False,
    expire_on_commit=False,
    autobegin=True,  # Automatically begin transactions
)


# Base class for declarative_base
class Base(AsyncAttrs, DeclarativeBase):
    pass


async def init_db() -> None:
    """
    Initializes the database by creating all the tables defined in the metadata.

    Returns:
        None
    """
    # Register every model on the metadata before create_all
    import app.core.db.models  # noqa: F401
    import app.apps.workspaces.db.models  # noqa: F401

    async with async_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    database_logger.info("Database tables created")


async def dispose_db() -> None:
    """
    Dispose the database connection.
    This function is responsible for disposing the database connection by calling the `dispose()` method of the `async_engine` object.

    Returns:
        None
    """
    await async_engine.dispose()
    database_logger.info("Database engine disposed")
