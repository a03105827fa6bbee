"""
Test fixtures for the Ledger API test suite.

This module provides shared fixtures used across all test files:

  - db_engine / session_factory: Fresh SQLite database for each test
  - publisher / processor: A recording event publisher and the transaction
    processor wired to the test database
  - client: Async HTTP test client (unauthenticated)
  - user_headers / admin_headers: Authorization headers for a USER and an
    ADMIN created through the real signup/login flow
  - authenticated_client / admin_client: The client with those headers set

Key design decisions:
  - Each test gets its own SQLite FILE under pytest's tmp_path rather than
    an in-memory database. In-memory SQLite shares one connection between
    all sessions, which would let one request's rollback discard another
    request's uncommitted work — exactly the interleaving the concurrency
    tests need to exercise for real.
  - httpx's ASGITransport does not run the application lifespan, so the
    fixtures put the session factory and processor on app.state themselves,
    the same handles the lifespan would create.
"""

import os

os.environ.setdefault("SECRET_KEY", "test-secret-key-not-for-production")
# Most tests send far more than 10 requests; test_rate_limit.py enables it
os.environ.setdefault("RATE_LIMIT_ENABLED", "false")

import pytest
import pytest_asyncio
from httpx import AsyncClient, ASGITransport
from sqlalchemy import update
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker

from app import models  # noqa: F401
from app.database import Base
from app.main import app
from app.models.user import User, UserRole
from app.services.account_locks import AccountLocks
from app.services.event_publisher import PublishResult
from app.services.transaction_service import TransactionProcessor


class RecordingPublisher:
    """Publisher double that remembers every transaction it was given."""

    def __init__(self):
        self.published = []

    async def publish(self, transaction):
        self.published.append(transaction)
        return PublishResult(ok=True, event_id=f"evt-{len(self.published)}")


class FailingPublisher:
    """Publisher double whose event bus is always unreachable."""

    def __init__(self):
        self.attempts = 0

    async def publish(self, transaction):
        self.attempts += 1
        return PublishResult(ok=False, error="event bus unreachable")


@pytest_asyncio.fixture
async def db_engine(tmp_path):
    """Create a fresh async engine with all tables for each test."""
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'ledger-test.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(db_engine):
    return async_sessionmaker(db_engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture
async def db_session(session_factory):
    """A session for arranging and inspecting data directly."""
    async with session_factory() as session:
        yield session


@pytest.fixture
def publisher():
    return RecordingPublisher()


@pytest.fixture
def failing_publisher():
    return FailingPublisher()


@pytest.fixture
def account_locks():
    return AccountLocks()


@pytest.fixture
def processor(session_factory, publisher, account_locks):
    return TransactionProcessor(
        session_factory=session_factory,
        publisher=publisher,
        locks=account_locks,
    )


@pytest_asyncio.fixture
async def client(session_factory, processor, account_locks):
    """
    Async HTTP test client with the test handles installed on app.state.
    """
    app.state.session_factory = session_factory
    app.state.account_locks = account_locks
    app.state.transaction_processor = processor

    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as ac:
        yield ac


async def _signup(client, email, password):
    response = await client.post(
        "/auth/signup",
        json={"email": email, "password": password},
    )
    assert response.status_code == 201, f"Signup failed: {response.text}"
    return response.json()


@pytest_asyncio.fixture
async def user_headers(client):
    """Authorization header for a freshly signed-up USER."""
    body = await _signup(client, "user@example.com", "UserPass123!")
    return {"Authorization": f"Bearer {body['token']}"}


@pytest_asyncio.fixture
async def admin_headers(client, session_factory):
    """
    Authorization header for an ADMIN.

    Signs up normally, then promotes the user directly in the database —
    admins are provisioned by an operator, never self-service.
    """
    body = await _signup(client, "admin@example.com", "AdminPass123!")

    async with session_factory() as session:
        await session.execute(
            update(User)
            .where(User.email == "admin@example.com")
            .values(role=UserRole.ADMIN)
        )
        await session.commit()

    login = await client.post(
        "/auth/login",
        json={"email": "admin@example.com", "password": "AdminPass123!"},
    )
    assert login.status_code == 200
    return {"Authorization": f"Bearer {login.json()['token']}"}


@pytest_asyncio.fixture
async def authenticated_client(client, user_headers):
    client.headers.update(user_headers)
    return client


@pytest_asyncio.fixture
async def admin_client(client, admin_headers):
    client.headers.update(admin_headers)
    return client
