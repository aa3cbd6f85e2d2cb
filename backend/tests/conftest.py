"""
Pytest configuration and fixtures.

WHY: Fixtures provide reusable test setup/teardown logic, reducing
duplication and ensuring consistent test environments.
"""

import pytest
import pytest_asyncio
from datetime import datetime
from typing import AsyncGenerator
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine, async_sessionmaker
from sqlalchemy.pool import StaticPool
from httpx import AsyncClient

from quote_engine.main import app
from quote_engine.models.base import Base
from quote_engine.db.session import get_db


# WHY: SQLite in memory keeps tests free of external services; the models
# use portable column types (JSON variant, VARCHAR enums) for this.
TEST_ASYNC_DATABASE_URL = "sqlite+aiosqlite:///:memory:"


@pytest_asyncio.fixture(scope="function")
async def db_engine():
    """
    Create a test database engine.

    WHY: Function scope gives each test a fresh schema.
    """
    engine = create_async_engine(
        TEST_ASYNC_DATABASE_URL,
        echo=False,
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)

    await engine.dispose()


@pytest.fixture
def session_factory(db_engine):
    """Session factory bound to the test engine (for background services)."""
    return async_sessionmaker(db_engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    """
    Create a test database session.

    Yields:
        AsyncSession: Database session for the test
    """
    async with session_factory() as session:
        yield session
        await session.rollback()


@pytest_asyncio.fixture
async def client(db_session: AsyncSession) -> AsyncGenerator[AsyncClient, None]:
    """
    Create a test HTTP client.

    WHY: The route handlers share the test session, so tests can arrange
    data with factories and inspect it after a request.

    Yields:
        AsyncClient: HTTP client for making test requests
    """
    from httpx import ASGITransport

    async def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()


@pytest.fixture
def now() -> datetime:
    """Fixed clock reading for service tests."""
    return datetime(2026, 3, 15, 9, 30, 0)


@pytest.fixture
def sample_client_info() -> dict:
    return {
        "name": "Jane Citizen",
        "company": "Citizen Logistics Pty Ltd",
        "email": "jane@citizenlogistics.example",
        "phone": "0400 000 000",
        "address": "12 Depot Rd, Dandenong VIC 3175",
        "abn": "12 345 678 901",
    }


@pytest.fixture
def sample_line_item() -> dict:
    """Line item payload: 2 x 500.00 at 0% markup = 1000.00."""
    return {
        "name": "7kW AC Wallbox",
        "type": "charger",
        "quantity": "2",
        "unit": "each",
        "unit_price": "500.00",
        "markup_percent": "0",
    }
