"""Engine, session factory and declarative base shared by every app."""

from app.core.db.config import (
    async_engine,
    AsyncSessionLocal,
    Base,
    dispose_db,
    enable_sqlite_savepoints,
    init_db,
)

__all__ = [
    "async_engine",
    "AsyncSessionLocal",
    "Base",
    "dispose_db",
    "enable_sqlite_savepoints",
    "init_db",
]
