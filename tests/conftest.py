"""
Sanprinon Lite - Test Configuration

Pytest fixtures and configuration.

Each test gets its own SQLite database file. Connections run in WAL mode so
the scheduler's per-charge sessions can read and write alongside the test's
own session, and pysqlite's implicit transaction handling is replaced with
an explicit BEGIN so SAVEPOINTs work.
"""

from datetime import date
from decimal import Decimal
from typing import AsyncGenerator, Optional

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy import event, func, select
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool

import app.models  # noqa: F401
from app.config import Settings
from app.database import Base, make_session_factory
from app.dependencies import get_app_settings
from app.models.accounting import LedgerEntry
from app.models.expense import ScheduledExpense
from app.models.lease import LateFeeType, Lease, LeaseStatus, ScheduledCharge
from app.models.reconciliation import BankAccount
from app.services.account_registry import seed_default_chart_of_accounts
from app.services.job_trigger import JobTrigger
from main import app


CRON_SECRET = "cron-test-secret"
ADMIN_SECRET = "admin-test-secret"
WEBHOOK_SECRET = "whsec-test-secret"


@pytest.fixture
def database_url(tmp_path) -> str:
    return f"sqlite+aiosqlite:///{tmp_path / 'ledger.db'}"


@pytest.fixture
def settings(database_url: str) -> Settings:
    """Settings for tests; secrets set, no chained jobs."""
    return Settings(
        _env_file=None,
        app_env="testing",
        database_url_async=database_url,
        cron_secret=CRON_SECRET,
        admin_secret=ADMIN_SECRET,
        payment_webhook_secret=WEBHOOK_SECRET,
        chained_job_urls="",
    )


@pytest_asyncio.fixture(scope="function")
async def engine(database_url: str) -> AsyncGenerator[AsyncEngine, None]:
    """Create a fresh database for each test."""
    test_engine = create_async_engine(database_url, poolclass=NullPool)

    @event.listens_for(test_engine.sync_engine, "connect")
    def _on_connect(dbapi_connection, connection_record):
        # Let SQLAlchemy emit BEGIN itself
        dbapi_connection.isolation_level = None
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA journal_mode=WAL")
        cursor.execute("PRAGMA busy_timeout=5000")
        cursor.close()

    @event.listens_for(test_engine.sync_engine, "begin")
    def _on_begin(conn):
        conn.exec_driver_sql("BEGIN")

    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield test_engine

    await test_engine.dispose()


@pytest_asyncio.fixture(scope="function")
async def session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    factory = make_session_factory(engine)
    async with factory() as session:
        await seed_default_chart_of_accounts(session)
        await session.commit()
    return factory


@pytest_asyncio.fixture(scope="function")
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    """Session for arranging data and calling services directly."""
    async with session_factory() as session:
        yield session
        await session.rollback()


@pytest_asyncio.fixture(scope="function")
async def client(session_factory, settings: Settings) -> AsyncGenerator[AsyncClient, None]:
    """Create a test client wired to the test database and settings."""
    app.state.session_factory = session_factory
    app.state.job_trigger = JobTrigger(timeout_seconds=1.0)
    app.dependency_overrides[get_app_settings] = lambda: settings

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()


# ===========================================
# DATA HELPERS
# ===========================================

async def create_lease(
    session: AsyncSession,
    tenant_name: str = "Jordan Tenant",
    status: LeaseStatus = LeaseStatus.ACTIVE,
    start_date: Optional[date] = date(2026, 1, 1),
    late_fee_amount: Optional[str] = None,
    late_fee_type: Optional[LateFeeType] = None,
) -> Lease:
    lease = Lease(
        tenant_name=tenant_name,
        unit_name="Unit 2B",
        property_name="Maple Court",
        status=status,
        start_date=start_date,
        late_fee_amount=Decimal(late_fee_amount) if late_fee_amount else None,
        late_fee_type=late_fee_type,
    )
    session.add(lease)
    await session.commit()
    return lease


async def create_charge(
    session: AsyncSession,
    lease: Lease,
    amount: str = "1200.00",
    description: str = "Monthly Rent",
    account_code: str = "4000",
    charge_day: int = 1,
    last_charged_date: Optional[date] = None,
    active: bool = True,
) -> ScheduledCharge:
    charge = ScheduledCharge(
        lease_id=lease.id,
        description=description,
        amount=Decimal(amount),
        account_code=account_code,
        charge_day=charge_day,
        last_charged_date=last_charged_date,
        active=active,
    )
    session.add(charge)
    await session.commit()
    return charge


async def create_scheduled_expense(
    session: AsyncSession,
    description: str = "Landscaping",
    amount: str = "250.00",
    account_code: str = "5070",
    charge_day: int = 1,
    requires_confirmation: bool = False,
    last_posted_date: Optional[date] = None,
    active: bool = True,
) -> ScheduledExpense:
    expense = ScheduledExpense(
        property_name="Maple Court",
        description=description,
        amount=Decimal(amount),
        account_code=account_code,
        charge_day=charge_day,
        requires_confirmation=requires_confirmation,
        last_posted_date=last_posted_date,
        active=active,
    )
    session.add(expense)
    await session.commit()
    return expense


async def count_entries(session_factory, **filters) -> int:
    """Count ledger rows from a fresh session."""
    async with session_factory() as session:
        query = select(func.count()).select_from(LedgerEntry)
        for name, value in filters.items():
            query = query.where(getattr(LedgerEntry, name) == value)
        return (await session.execute(query)).scalar_one()


# ===========================================
# DATA FIXTURES
# ===========================================

@pytest_asyncio.fixture
async def test_lease(db_session: AsyncSession) -> Lease:
    """An ACTIVE lease that started on 2026-01-01."""
    return await create_lease(db_session)


@pytest_asyncio.fixture
async def rent_charge(db_session: AsyncSession, test_lease: Lease) -> ScheduledCharge:
    """$1,200 rent due on the 1st."""
    return await create_charge(db_session, test_lease)


@pytest_asyncio.fixture
async def bank_account(db_session: AsyncSession) -> BankAccount:
    account = BankAccount(name="Operating Checking", account_code="1000")
    db_session.add(account)
    await db_session.commit()
    return account
