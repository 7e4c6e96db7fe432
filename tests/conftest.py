"""Pytest configuration and fixtures."""

import os

# Must be set before guestlog reads its settings
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"
os.environ["EXCEL_EXPORT_ENABLED"] = "false"
os.environ["ADMIN_API_TOKEN"] = "test-admin-token"
os.environ["LOCAL_TIMEZONE"] = "UTC"

from datetime import datetime, timedelta, timezone

import httpx
import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from guestlog.database import Base, get_db
from guestlog.models import Customer  # noqa: F401
from guestlog.services.ledger import CustomerRecord

ADMIN_TOKEN = "test-admin-token"


@pytest.fixture
async def db_engine():
    """In-memory SQLite engine shared by every session of one test."""
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        echo=False,
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest.fixture
async def db_session(db_engine):
    """Create a test database session."""
    session_maker = async_sessionmaker(db_engine, class_=AsyncSession, expire_on_commit=False)
    async with session_maker() as session:
        yield session


@pytest.fixture
async def client(db_session):
    """Create an async test client bound to the test session."""
    from guestlog.main import app

    async def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db

    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as test_client:
        yield test_client

    app.dependency_overrides.clear()


@pytest.fixture
def admin_headers() -> dict[str, str]:
    return {"Authorization": f"Bearer {ADMIN_TOKEN}"}


class FakeClock:
    """Deterministic clock that advances one minute per reading."""

    def __init__(self, start: datetime, step: timedelta = timedelta(minutes=1)):
        self.current = start
        self.step = step

    def __call__(self) -> datetime:
        value = self.current
        self.current = self.current + self.step
        return value


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock(datetime(2024, 1, 1, 12, 0, tzinfo=timezone.utc))


def make_record(
    id: int,
    name: str = "Guest",
    contact_number: str = "5550000000",
    visit_count: int = 1,
    created_at: datetime = datetime(2024, 1, 1, 12, 0, tzinfo=timezone.utc),
    updated_at: datetime | None = None,
) -> CustomerRecord:
    """Build a CustomerRecord for query engine tests."""
    return CustomerRecord(
        id=id,
        name=name,
        contact_number=contact_number,
        visit_count=visit_count,
        created_at=created_at,
        updated_at=updated_at or created_at,
    )
