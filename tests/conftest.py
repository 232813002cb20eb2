"""Test configuration and fixtures.

Test setup with a fresh in-memory database per test:
1. Environment comes from .env.test and is loaded before the app is imported
2. Each test gets its own SQLite engine (StaticPool keeps one shared connection)
3. The schema is created for every test, so tests are fully isolated
4. FastAPI endpoints share the test's session through a dependency override

Set TEST_DATABASE_URL to run against another database (e.g. PostgreSQL).
"""

import os
from collections.abc import AsyncGenerator
from pathlib import Path

from dotenv import load_dotenv

# Load test environment variables before the settings object is created
test_env_path = Path(__file__).parent.parent / ".env.test"
load_dotenv(test_env_path, override=True)

import pytest_asyncio  # noqa: E402
from httpx import ASGITransport, AsyncClient  # noqa: E402
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, create_async_engine  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

from src.database.base import Base  # noqa: E402
from src.database.dependencies import get_db_session  # noqa: E402
from src.features.company.models import Company  # noqa: E402
from src.features.user.models import User, UserRole, UserStatus  # noqa: E402
from src.main import app  # noqa: E402

API = "/api"
TEST_PASSWORD = "TestPass123"


# Database Setup - Function Scope (Fresh Schema Per Test)


@pytest_asyncio.fixture
async def db_engine() -> AsyncGenerator[AsyncEngine]:
    """Create a database engine and schema for one test."""
    test_db_url = os.getenv("TEST_DATABASE_URL", "sqlite+aiosqlite:///:memory:")

    if test_db_url.startswith("sqlite"):
        engine = create_async_engine(
            test_db_url,
            echo=False,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )
    else:
        engine = create_async_engine(test_db_url, echo=False)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)

    await engine.dispose()


@pytest_asyncio.fixture
async def session(db_engine: AsyncEngine) -> AsyncGenerator[AsyncSession]:
    """Create a database session per test.

    Endpoints may commit; the whole database is discarded after the test.
    """
    async_session = AsyncSession(bind=db_engine, expire_on_commit=False)
    try:
        yield async_session
    finally:
        await async_session.close()


# FastAPI Client & Dependency Overrides


@pytest_asyncio.fixture(autouse=True)
async def override_get_db_session(session: AsyncSession):
    """Override the database session dependency with the test session."""

    async def _get_test_session():
        yield session

    app.dependency_overrides[get_db_session] = _get_test_session
    yield
    app.dependency_overrides.clear()


@pytest_asyncio.fixture
async def client() -> AsyncGenerator[AsyncClient]:
    """Create an async HTTP test client.

    The client keeps cookies between requests like a browser does, so a
    login followed by other calls is authenticated. It starts signed out.
    """
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac


# Test Data Factories


@pytest_asyncio.fixture
async def make_user(session: AsyncSession):
    """Factory fixture to create test users, each in its own company.

    Usage:
        user = await make_user()                             # defaults
        admin = await make_user(role=UserRole.ADMIN)         # admin
        locked = await make_user(status=UserStatus.LOCKED)   # locked user
    """
    counter = 0

    async def _factory(
        email=None,
        name="Test User",
        password=TEST_PASSWORD,
        role=UserRole.VIEWER,
        status=UserStatus.ACTIVE,
        company=None,
        **kwargs,
    ) -> User:
        nonlocal counter
        counter += 1

        if email is None:
            email = f"testuser{counter}@example.com"
        if company is None:
            company = Company(name=f"Company {counter}", email=f"company{counter}@example.com")
            session.add(company)

        user = User(
            company=company,
            email=email,
            name=name,
            hashed_password=User.hash_password(password),
            role=role.value,
            status=status.value,
            **kwargs,
        )

        session.add(user)
        await session.flush()
        return user

    yield _factory


@pytest_asyncio.fixture
async def logged_in_client(client: AsyncClient, make_user):
    """Client holding a real cookie pair for a fresh user.

    Returns:
        tuple: (client, user) - the HTTP client with cookies and the user

    """
    user = await make_user()
    response = await client.post(f"{API}/auth/login", json={"email": user.email, "password": TEST_PASSWORD})
    assert response.status_code == 200
    yield client, user
