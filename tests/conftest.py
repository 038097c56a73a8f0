"""
Pytest configuration and core fixtures.

Tests run against an in-memory SQLite database created from the model
metadata. Every test gets its own outer transaction that is rolled back at
the end, so fixtures and application code can commit freely.
"""

import os
from contextlib import asynccontextmanager
from datetime import timedelta
from typing import Any, AsyncGenerator
from uuid import uuid4

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine
from sqlalchemy.pool import StaticPool


def pytest_configure(config):
    """Point the application at a throwaway database before it is imported."""
    os.environ["ENVIRONMENT"] = "test"
    os.environ.setdefault("TEST_DATABASE_URL", "sqlite+aiosqlite:///:memory:")
    os.environ["DATABASE_URL"] = os.environ["TEST_DATABASE_URL"]
    os.environ["ENABLE_SCHEDULER"] = "false"
    os.environ["ENABLE_MESSAGING"] = "false"


def create_test_access_token(user) -> str:
    """Create a test access token for a user."""
    from app.core.utils import create_jwt_token

    return create_jwt_token(
        data={
            "sub": str(user.id),
            "email": user.email,
            "type": "access",
        },
        expires_delta=timedelta(minutes=15),
    )


@pytest.fixture
def auth_for():
    """Build the Authorization header for a user."""

    def _headers(user) -> dict[str, str]:
        return {"Authorization": f"Bearer {create_test_access_token(user)}"}

    return _headers


class RecordingPublisher:
    """Stands in for the broker publisher and keeps every event it is given."""

    def __init__(self):
        self.events: list[tuple[str, dict[str, Any]]] = []
        self.fail = False

    async def __call__(
        self,
        queue_name: str,
        event: dict[str, Any],
        headers: dict[str, Any] | None = None,
    ) -> None:
        if self.fail:
            raise ConnectionError("broker unavailable")
        self.events.append((queue_name, event))

    def on(self, queue_name: str) -> list[dict[str, Any]]:
        return [event for queue, event in self.events if queue == queue_name]

    def actions(self) -> list[str]:
        return [event["action"] for event in self.on("workspace_activity")]


@pytest.fixture(autouse=True)
def publisher():
    """Capture activity, notification and email events instead of publishing them."""
    from app.core.services import register_publisher, reset_publisher

    recorder = RecordingPublisher()
    register_publisher(recorder)
    try:
        yield recorder
    finally:
        reset_publisher()


@pytest.fixture
async def db_session() -> AsyncGenerator[AsyncSession, None]:
    """Provide a session inside an outer transaction that is rolled back.

    Strategy:
    1. Create the schema on a single shared in-memory connection
    2. Start an outer transaction and bind the session to it, joining in
       savepoint mode so ``session.commit()`` only releases a savepoint
    3. Route ``session.begin()`` to ``begin_nested()`` so router and
       reaper code can open their usual transactions
    4. Roll the outer transaction back after the test
    """
    from app.core.config import settings
    from app.core.db import Base
    from app.core.db.config import enable_sqlite_savepoints

    import app.core.db.models  # noqa: F401
    import app.apps.workspaces.db.models  # noqa: F401

    engine = create_async_engine(
        settings.TEST_DATABASE_URL,
        echo=False,
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    enable_sqlite_savepoints(engine)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    connection = await engine.connect()
    outer_transaction = await connection.begin()

    session = AsyncSession(
        bind=connection,
        expire_on_commit=False,
        autobegin=True,
        join_transaction_mode="create_savepoint",
    )

    def _patched_begin():
        return session.begin_nested()

    session.begin = _patched_begin  # type: ignore[method-assign]

    try:
        yield session
    finally:
        await session.close()
        await outer_transaction.rollback()
        await connection.close()
        await engine.dispose()


class BoundSessionFactory:
    """Mimics ``AsyncSessionLocal`` for background code, handing out the test session."""

    def __init__(self, session: AsyncSession):
        self._session = session

    @asynccontextmanager
    async def _plain(self):
        yield self._session

    @asynccontextmanager
    async def _transaction(self):
        async with self._session.begin():
            yield self._session

    def __call__(self):
        return self._plain()

    def begin(self):
        return self._transaction()


@pytest.fixture
def session_factory(db_session: AsyncSession) -> BoundSessionFactory:
    return BoundSessionFactory(db_session)


@pytest.fixture
def app():
    """Create FastAPI application for testing."""
    from app.main import app as fastapi_app

    return fastapi_app


@pytest.fixture
async def client(app, db_session: AsyncSession) -> AsyncGenerator[AsyncClient, None]:
    """Provide async HTTP client that shares the test session with the app."""
    from app.core.dependencies import get_async_session

    async def override_get_session():
        yield db_session

    app.dependency_overrides[get_async_session] = override_get_session

    try:
        async with AsyncClient(
            transport=ASGITransport(app=app),
            base_url="http://test",
        ) as ac:
            yield ac
    finally:
        app.dependency_overrides.pop(get_async_session, None)


# ============================================================================
# Users
# ============================================================================


@pytest.fixture
def make_user(db_session: AsyncSession):
    """Factory creating users with unique emails."""
    from app.core.db.models import User

    async def _make(
        email: str | None = None,
        full_name: str | None = None,
        is_active: bool = True,
    ) -> User:
        user = User(
            id=uuid4(),
            email=email or f"user-{uuid4().hex[:10]}@example.com",
            full_name=full_name,
            email_verified=True,
            is_active=is_active,
        )
        db_session.add(user)
        await db_session.flush()
        return user

    return _make


@pytest.fixture
async def owner(make_user):
    return await make_user(email="owner@example.com", full_name="Olive Owner")


@pytest.fixture
async def admin_user(make_user):
    return await make_user(email="admin@example.com", full_name="Ada Admin")


@pytest.fixture
async def member_user(make_user):
    return await make_user(email="member@example.com", full_name="Max Member")


@pytest.fixture
async def outsider(make_user):
    return await make_user(email="outsider@example.com", full_name="Otto Outsider")


# ============================================================================
# Workspaces
# ============================================================================


@pytest.fixture
async def workspace(db_session: AsyncSession, owner):
    """Active workspace owned by ``owner`` with no other members."""
    from app.apps.workspaces.services import workspace_service

    return await workspace_service.create_workspace(
        db_session,
        owner,
        "Design Team",
        description="Where the designs live",
        max_members=5,
        commit_self=False,
    )


@pytest.fixture
async def staffed_workspace(db_session: AsyncSession, workspace, admin_user, member_user):
    """``workspace`` with one admin and one member."""
    from app.apps.workspaces.services import membership_service
    from app.core.enums import MemberRole

    await membership_service.add_member(
        db_session,
        workspace,
        admin_user.id,
        role=MemberRole.ADMIN,
        invited_by_id=workspace.owner_id,
        commit_self=False,
    )
    await membership_service.add_member(
        db_session,
        workspace,
        member_user.id,
        role=MemberRole.MEMBER,
        invited_by_id=workspace.owner_id,
        commit_self=False,
    )
    return workspace
