"""
Pytest fixtures for test database, client, clock, mailer and authentication.

Each test gets a fresh schema. By default that is a SQLite file under the
test's tmp_path (through aiosqlite); set TEST_DATABASE_URL to an asyncpg URL
to run the same suite against PostgreSQL.
"""

import os
from datetime import datetime, timedelta
from typing import AsyncGenerator
from zoneinfo import ZoneInfo

import pytest
import pytest_asyncio
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool

from tablebook.main import app
from tablebook.core.clock import Clock, get_clock
from tablebook.core.exceptions import MailError
from tablebook.core.security import create_access_token, hash_password
from tablebook.db.base import Base
from tablebook.db.session import get_db
from tablebook.models.account import Account
from tablebook.services.interfaces.mailer import Mailer
from tablebook.services.mailer_factory import get_mailer
from tablebook.services.reservation_validator import ReservationRules

BUSINESS_TZ = ZoneInfo("Europe/Moscow")
# Midday: the restaurant is closed, tomorrow evening is bookable
NOW = datetime(2030, 6, 1, 12, 0, tzinfo=BUSINESS_TZ)


class FrozenClock(Clock):
    def __init__(self, current: datetime):
        super().__init__(current.tzinfo)
        self.current = current

    def now(self) -> datetime:
        return self.current

    def advance(self, delta: timedelta) -> None:
        self.current = self.current + delta


class RecordingMailer(Mailer):
    """Keeps sent messages in memory; can be told to fail."""

    def __init__(self):
        self.sent: list[dict] = []
        self.fail = False

    async def send(self, to: str, subject: str, body: str) -> None:
        if self.fail:
            raise MailError(detail="relay refused connection")
        self.sent.append({"to": to, "subject": subject, "body": body})

    def last_to(self, email: str) -> dict:
        return [m for m in self.sent if m["to"] == email][-1]


@pytest.fixture
def rules() -> ReservationRules:
    return ReservationRules(
        people_amount=5,
        table_amount=10,
        opening_hour=18,
        closing_hour=6,
        tz=BUSINESS_TZ,
    )


@pytest.fixture
def now() -> datetime:
    return NOW


@pytest.fixture
def clock() -> FrozenClock:
    return FrozenClock(NOW)


@pytest.fixture
def mailer() -> RecordingMailer:
    return RecordingMailer()


@pytest_asyncio.fixture(scope="function")
async def session_factory(tmp_path) -> AsyncGenerator[async_sessionmaker[AsyncSession], None]:
    """Create tables, yield a session factory, then drop tables for isolation."""
    url = os.getenv("TEST_DATABASE_URL") or f"sqlite+aiosqlite:///{tmp_path / 'tablebook.db'}"
    engine = create_async_engine(url, echo=False, poolclass=NullPool)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
        await conn.run_sync(Base.metadata.create_all)

    yield async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


@pytest_asyncio.fixture(scope="function")
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    async with session_factory() as session:
        yield session


@pytest_asyncio.fixture(scope="function")
async def client(session_factory, clock, mailer) -> AsyncGenerator[AsyncClient, None]:
    """HTTP client with the DB, clock and mailer dependencies overridden."""

    async def override_get_db():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_clock] = lambda: clock
    app.dependency_overrides[get_mailer] = lambda: mailer
    app.state.redis = None

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()


async def _create_account(db_session: AsyncSession, username: str, email: str) -> Account:
    account = Account(
        username=username,
        email=email,
        hashed_password=hash_password("testpassword123"),
        is_verified=True,
    )
    db_session.add(account)
    await db_session.commit()
    await db_session.refresh(account)
    return account


@pytest_asyncio.fixture
async def test_account(db_session: AsyncSession) -> Account:
    """A verified account."""
    return await _create_account(db_session, "Test User", "test@example.com")


@pytest_asyncio.fixture
async def other_account(db_session: AsyncSession) -> Account:
    """A second verified account, for cross-account checks."""
    return await _create_account(db_session, "Other Guest", "other@example.com")


@pytest.fixture
def auth_headers(test_account: Account) -> dict:
    token = create_access_token(data={"sub": str(test_account.id)})
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def other_auth_headers(other_account: Account) -> dict:
    token = create_access_token(data={"sub": str(other_account.id)})
    return {"Authorization": f"Bearer {token}"}
