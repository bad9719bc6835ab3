"""
Sanprinon Lite - Void Manager & Append-only Tests
"""

import pytest
from datetime import date
from decimal import Decimal
from uuid import uuid4

from sqlalchemy import delete, update

from app.models.accounting import EntryStatus, LedgerEntry
from app.models.cron import CronLog, CronRunStatus
from app.services.balance_service import BalanceService
from app.services.ledger_service import LedgerService
from app.utils.error_handling import (
    EntryNotFoundException,
    InvalidStateException,
    LedgerImmutableError,
    ValidationException,
)
from tests.conftest import count_entries


async def post_cash(service: LedgerService, amount: str = "250.00", key: str = "cash-1") -> LedgerEntry:
    return await service.post_entry(
        "1000", Decimal(amount), "DR", "Deposit", date(2026, 3, 5), idempotency_key=key
    )


class TestVoidLedgerEntry:
    """Voiding is a status change, never a delete."""

    @pytest.mark.asyncio
    async def test_void_records_reason_actor_and_time(self, db_session, session_factory):
        service = LedgerService(db_session)
        entry = await post_cash(service)

        voided = await service.void_ledger_entry(entry.id, reason="Entered twice", voided_by="manager")

        assert voided.id == entry.id
        assert voided.status == EntryStatus.VOID
        assert voided.void_reason == "Entered twice"
        assert voided.voided_by == "manager"
        assert voided.voided_at is not None
        # Row still exists
        assert await count_entries(session_factory) == 1

    @pytest.mark.asyncio
    async def test_voided_entry_leaves_balances(self, db_session):
        service = LedgerService(db_session)
        keep = await post_cash(service, "100.00", "keep")
        drop = await post_cash(service, "250.00", "drop")

        await service.void_ledger_entry(drop.id, reason="Bounced", voided_by="admin")

        balance = await BalanceService(db_session).get_account_balance("1000")
        assert balance == keep.amount

    @pytest.mark.asyncio
    async def test_voided_entries_hidden_from_default_listing(self, db_session):
        service = LedgerService(db_session)
        entry = await post_cash(service)
        await service.void_ledger_entry(entry.id, reason="Wrong account", voided_by="admin")

        assert await service.list_entries() == []
        listed = await service.list_entries(include_void=True)
        assert [e.id for e in listed] == [entry.id]

    @pytest.mark.asyncio
    async def test_void_twice_is_rejected(self, db_session):
        service = LedgerService(db_session)
        entry = await post_cash(service)
        await service.void_ledger_entry(entry.id, reason="First", voided_by="admin")

        with pytest.raises(InvalidStateException):
            await service.void_ledger_entry(entry.id, reason="Second", voided_by="admin")

        reloaded = await service.store.get(entry.id, refresh=True)
        assert reloaded.void_reason == "First"

    @pytest.mark.asyncio
    async def test_void_unknown_entry(self, db_session):
        service = LedgerService(db_session)

        with pytest.raises(EntryNotFoundException):
            await service.void_ledger_entry(uuid4(), reason="Missing", voided_by="admin")

    @pytest.mark.asyncio
    async def test_void_requires_reason(self, db_session):
        service = LedgerService(db_session)
        entry = await post_cash(service)

        with pytest.raises(ValidationException):
            await service.void_ledger_entry(entry.id, reason="  ", voided_by="admin")


class TestAppendOnlyGuards:
    """Ledger rows and cron logs cannot be deleted or rewritten."""

    @pytest.mark.asyncio
    async def test_store_has_no_delete(self, db_session):
        service = LedgerService(db_session)
        entry = await post_cash(service)

        with pytest.raises(LedgerImmutableError):
            await service.store.delete(entry.id)

    @pytest.mark.asyncio
    async def test_orm_delete_is_refused(self, db_session, session_factory):
        entry = await post_cash(LedgerService(db_session))

        loaded = await db_session.get(LedgerEntry, entry.id)
        await db_session.delete(loaded)
        with pytest.raises(LedgerImmutableError):
            await db_session.flush()
        await db_session.rollback()

        assert await count_entries(session_factory) == 1

    @pytest.mark.asyncio
    async def test_orm_field_change_is_refused(self, db_session):
        entry = await post_cash(LedgerService(db_session))

        loaded = await db_session.get(LedgerEntry, entry.id)
        loaded.amount = Decimal("1.00")
        with pytest.raises(LedgerImmutableError):
            await db_session.flush()
        await db_session.rollback()

    @pytest.mark.asyncio
    async def test_bulk_delete_is_refused(self, db_session, session_factory):
        await post_cash(LedgerService(db_session))

        with pytest.raises(LedgerImmutableError):
            await db_session.execute(delete(LedgerEntry))
        await db_session.rollback()

        assert await count_entries(session_factory) == 1

    @pytest.mark.asyncio
    async def test_bulk_update_outside_void_is_refused(self, db_session):
        await post_cash(LedgerService(db_session))

        with pytest.raises(LedgerImmutableError):
            await db_session.execute(update(LedgerEntry).values(description="rewritten"))
        await db_session.rollback()

    @pytest.mark.asyncio
    async def test_cron_log_is_immutable(self, db_session):
        log = CronLog(job_name="daily-charges", status=CronRunStatus.SUCCESS)
        db_session.add(log)
        await db_session.commit()

        log.status = CronRunStatus.FAILED
        with pytest.raises(LedgerImmutableError):
            await db_session.flush()
        await db_session.rollback()

        await db_session.delete(log)
        with pytest.raises(LedgerImmutableError):
            await db_session.flush()
        await db_session.rollback()
