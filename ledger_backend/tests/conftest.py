"""
Centralized Test Configuration.
"""

import datetime as dt
from decimal import Decimal

import pytest
from httpx import AsyncClient, ASGITransport
from sqlalchemy import event
from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker, AsyncSession
from sqlalchemy.pool import StaticPool

from ledger_backend.app.main import app
from ledger_backend.app.db.session import get_db, Base
from ledger_backend.app.core.jwt import create_access_token
from ledger_backend.app.core.redis_client import get_redis
import ledger_backend.app.core.redis_client as redis_client_module
from ledger_backend.app.models.bank_account import BankAccount
from ledger_backend.app.models.cause import Cause
from ledger_backend.app.models.currency import Currency
from ledger_backend.app.models.donor import Donor
from ledger_backend.app.models.ledger_entry import LedgerEntry
from ledger_backend.app.models.ledger_enums import CauseType, LedgerEntryType
from ledger_backend.app.models.volunteer import Volunteer
from ledger_backend.app.services.rate_limiter import SlidingWindowRateLimiter, get_rate_limiter

# Setup In-Memory Test Database
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"

engine = create_async_engine(
    TEST_DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)


@event.listens_for(engine.sync_engine, "connect")
def set_sqlite_pragma(dbapi_conn, connection_record):
    """Enable foreign key constraints for SQLite."""
    cursor = dbapi_conn.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


TestingSessionLocal = async_sessionmaker(
    engine, class_=AsyncSession, expire_on_commit=False
)


# Mock Redis for reliability in CI/CD
class MockRedis:
    def __init__(self):
        self.store = {}
        self.expiry = {}
        self._closed = False

    async def ping(self):
        return not self._closed

    async def get(self, key):
        if self._closed:
            return None
        return self.store.get(key)

    async def set(self, key, value, ex=None):
        if self._closed:
            return False
        self.store[key] = value
        if ex is not None:
            self.expiry[key] = ex
        return True

    async def delete(self, *keys):
        if self._closed:
            return 0
        removed = 0
        for key in keys:
            if key in self.store:
                del self.store[key]
                removed += 1
        return removed

    async def exists(self, key):
        if self._closed:
            return 0
        return 1 if key in self.store else 0

    async def incr(self, key):
        value = int(self.store.get(key, 0)) + 1
        self.store[key] = value
        return value

    async def expire(self, key, seconds):
        self.expiry[key] = seconds
        return key in self.store

    async def flushdb(self):
        if not self._closed:
            self.store = {}
            self.expiry = {}

    async def aclose(self):
        self._closed = True
        self.store = {}


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float):
        self.now += seconds


@pytest.fixture
def mock_redis():
    return MockRedis()


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def rate_limiter(clock):
    return SlidingWindowRateLimiter(max_requests=5, window_seconds=60, clock=clock)


@pytest.fixture(autouse=True)
def apply_overrides(mock_redis, rate_limiter):
    """Swap the Redis client, database and rate limiter for every test."""
    original_client = redis_client_module.redis_client
    redis_client_module.redis_client = mock_redis

    async def override_get_db():
        async with TestingSessionLocal() as session:
            yield session

    async def override_get_redis():
        return mock_redis

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_redis] = override_get_redis
    app.dependency_overrides[get_rate_limiter] = lambda: rate_limiter
    yield

    app.dependency_overrides = {}
    redis_client_module.redis_client = original_client


@pytest.fixture(autouse=True)
async def setup_database():
    """Create tables before each test function and drop after."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)


@pytest.fixture
async def client():
    """Async client for testing."""
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac


# Shared session for fixture data creation
@pytest.fixture
async def db_session():
    async with TestingSessionLocal() as session:
        yield session


# Reference data

async def _add(db, obj):
    db.add(obj)
    await db.commit()
    await db.refresh(obj)
    return obj


@pytest.fixture
async def volunteer(db_session):
    return await _add(db_session, Volunteer(name="Asha", email="asha@example.org"))


@pytest.fixture
async def other_volunteer(db_session):
    return await _add(db_session, Volunteer(name="Bilal", email="bilal@example.org"))


@pytest.fixture
def auth_headers(volunteer):
    token = create_access_token(data={"sub": volunteer.email, "user_id": volunteer.id})
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
async def base_currency(db_session):
    return await _add(
        db_session,
        Currency(code="PKR", name="Pakistani Rupee", symbol="Rs", exchange_rate_to_base=Decimal("1"), is_base=True),
    )


@pytest.fixture
async def foreign_currency(db_session, base_currency):
    return await _add(
        db_session,
        Currency(code="USD", name="US Dollar", symbol="$", exchange_rate_to_base=Decimal("300")),
    )


@pytest.fixture
async def bank_account(db_session, base_currency):
    return await _add(
        db_session,
        BankAccount(
            account_name="Relief Fund",
            bank_name="Meezan",
            currency_id=base_currency.id,
            opening_balance=Decimal("1000"),
        ),
    )


@pytest.fixture
async def donor(db_session):
    return await _add(db_session, Donor(name="Anonymous"))


@pytest.fixture
async def cause(db_session):
    return await _add(
        db_session,
        Cause(name="Flood Drive", type=CauseType.DRIVE, date=dt.date(2024, 9, 1)),
    )


@pytest.fixture
def make_entry(db_session, volunteer, base_currency):
    """Insert a ledger entry directly, bypassing the create workflow."""

    async def _make(entry_type: LedgerEntryType, amount="100", rate="1", **fields):
        amount = Decimal(amount)
        rate = Decimal(rate)
        fields.setdefault("currency_id", base_currency.id)
        fields.setdefault("date", dt.date(2024, 9, 1))
        fields.setdefault("created_by", volunteer.id)
        fields.setdefault("amount_in_base_currency", amount * rate)
        return await _add(
            db_session,
            LedgerEntry(type=entry_type, amount=amount, exchange_rate_to_base=rate, **fields),
        )

    return _make


@pytest.fixture
async def inventory_entry(make_entry, bank_account):
    """Expense for goods not yet attributed to a cause."""
    return await make_entry(
        LedgerEntryType.EXPENSE_BANK,
        amount="500",
        bank_account_id=bank_account.id,
        item_name="Rice Bags",
        quantity=Decimal("10"),
        unit_price=Decimal("50"),
    )
