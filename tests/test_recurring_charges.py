"""
Sanprinon Lite - Recurring Charge Scheduler Tests
"""

import pytest
import httpx
import respx
from datetime import date
from decimal import Decimal

from sqlalchemy import select

from app.config import Settings
from app.models.accounting import EntryDirection, LedgerEntry
from app.models.cron import CronLog, CronRunStatus
from app.models.lease import LeaseStatus, ScheduledCharge
from app.services.balance_service import BalanceService
from app.services.idempotency import scheduled_charge_key
from app.services.job_trigger import JobTrigger
from app.services.ledger_service import EntryParams, LedgerService
from app.services.recurring_charge_service import (
    ALREADY_CHARGED,
    DUPLICATE_PREVENTED,
    JOB_NAME,
    ChargeStatus,
    RecurringChargeScheduler,
    run_status,
)
from tests.conftest import count_entries, create_charge, create_lease

MARCH_1 = date(2026, 3, 1)


async def cron_logs(session_factory):
    async with session_factory() as session:
        result = await session.execute(select(CronLog).order_by(CronLog.created_at))
        return list(result.scalars().all())


class TestRunStatus:

    def test_status_from_counts(self):
        assert run_status(posted=3, errored=0) == CronRunStatus.SUCCESS
        assert run_status(posted=0, errored=0) == CronRunStatus.SUCCESS
        assert run_status(posted=2, errored=1) == CronRunStatus.PARTIAL
        assert run_status(posted=0, errored=2) == CronRunStatus.FAILED


class TestRecurringChargeScheduler:
    """Daily run behaviour."""

    @pytest.mark.asyncio
    async def test_posts_due_rent(self, session_factory, settings: Settings, rent_charge, test_lease):
        scheduler = RecurringChargeScheduler(session_factory, settings)

        result = await scheduler.run(today=MARCH_1)

        assert result.status == CronRunStatus.SUCCESS
        assert result.posted == 1
        assert result.total_amount == Decimal("1200.00")

        async with session_factory() as session:
            entries = (await session.execute(
                select(LedgerEntry).order_by(LedgerEntry.debit_credit.desc())
            )).scalars().all()
            assert [(e.account_code, e.debit_credit) for e in entries] == [
                ("1200", EntryDirection.DR),
                ("4000", EntryDirection.CR),
            ]
            assert all(e.description == "Monthly Rent - March 2026" for e in entries)
            assert all(e.posted_by == "cron-daily" for e in entries)
            assert entries[0].idempotency_key == scheduled_charge_key(rent_charge.id, MARCH_1, "DR")

            charge = await session.get(ScheduledCharge, rent_charge.id)
            assert charge.last_charged_date == MARCH_1

            balances = BalanceService(session)
            assert await balances.get_account_balance("1200") == Decimal("1200.00")
            assert await balances.get_lease_balance(test_lease.id) == Decimal("1200.00")

        logs = await cron_logs(session_factory)
        assert len(logs) == 1
        assert logs[0].job_name == JOB_NAME
        assert logs[0].status == CronRunStatus.SUCCESS
        assert logs[0].charges_posted == 1
        assert logs[0].total_amount == Decimal("1200.00")
        assert logs[0].id == result.cron_log_id

    @pytest.mark.asyncio
    async def test_second_run_same_month_skips(self, session_factory, settings: Settings, rent_charge):
        scheduler = RecurringChargeScheduler(session_factory, settings)
        await scheduler.run(today=MARCH_1)

        again = await scheduler.run(today=date(2026, 3, 2))

        assert again.posted == 0
        assert again.skipped == 1
        assert again.outcomes[0].message == ALREADY_CHARGED
        assert again.status == CronRunStatus.SUCCESS
        assert await count_entries(session_factory) == 2
        assert len(await cron_logs(session_factory)) == 2

    @pytest.mark.asyncio
    async def test_next_month_posts_again(self, session_factory, settings: Settings, rent_charge):
        scheduler = RecurringChargeScheduler(session_factory, settings)
        await scheduler.run(today=MARCH_1)

        april = await scheduler.run(today=date(2026, 4, 1))

        assert april.posted == 1
        assert await count_entries(session_factory) == 4

    @pytest.mark.asyncio
    async def test_duplicate_key_counts_as_skipped(self, db_session, session_factory, settings: Settings, rent_charge):
        # Legs already posted but last_charged_date never stamped
        ledger = LedgerService(db_session)
        await ledger.post_double_entry(
            EntryParams("1200", Decimal("1200.00"), EntryDirection.DR, "Rent", MARCH_1,
                        idempotency_key=scheduled_charge_key(rent_charge.id, MARCH_1, "DR")),
            EntryParams("4000", Decimal("1200.00"), EntryDirection.CR, "Rent", MARCH_1,
                        idempotency_key=scheduled_charge_key(rent_charge.id, MARCH_1, "CR")),
        )

        result = await RecurringChargeScheduler(session_factory, settings).run(today=MARCH_1)

        assert result.skipped == 1
        assert result.outcomes[0].status == ChargeStatus.SKIPPED
        assert result.outcomes[0].message == DUPLICATE_PREVENTED
        assert await count_entries(session_factory) == 2

    @pytest.mark.asyncio
    async def test_only_due_charges_on_started_active_leases(self, db_session, session_factory, settings: Settings):
        active = await create_lease(db_session, tenant_name="Active")
        draft = await create_lease(db_session, tenant_name="Draft", status=LeaseStatus.DRAFT)
        future = await create_lease(db_session, tenant_name="Future", start_date=date(2026, 4, 1))
        unstarted = await create_lease(db_session, tenant_name="No start", start_date=None)
        await create_charge(db_session, active, charge_day=1)
        await create_charge(db_session, active, description="Parking", amount="50.00", account_code="4030", charge_day=15)
        await create_charge(db_session, active, description="Pet Fee", amount="25.00", account_code="4040", active=False)
        await create_charge(db_session, draft)
        await create_charge(db_session, future)
        await create_charge(db_session, unstarted)

        result = await RecurringChargeScheduler(session_factory, settings).run(today=date(2026, 3, 10))

        assert result.posted == 1
        assert [o.lease_id for o in result.outcomes] == [active.id]

    @pytest.mark.asyncio
    async def test_bad_account_gives_partial_run(self, db_session, session_factory, settings: Settings):
        lease = await create_lease(db_session)
        good = await create_charge(db_session, lease)
        bad = await create_charge(db_session, lease, description="Mystery Fee", amount="10.00", account_code="9999")

        result = await RecurringChargeScheduler(session_factory, settings).run(today=MARCH_1)

        assert result.status == CronRunStatus.PARTIAL
        assert result.posted == 1
        assert result.errored == 1
        by_charge = {o.charge_id: o for o in result.outcomes}
        assert by_charge[good.id].status == ChargeStatus.POSTED
        assert by_charge[bad.id].status == ChargeStatus.ERROR
        assert "9999" in by_charge[bad.id].message

        # The failed charge left nothing behind
        assert await count_entries(session_factory) == 2
        async with session_factory() as session:
            assert (await session.get(ScheduledCharge, bad.id)).last_charged_date is None

        log = (await cron_logs(session_factory))[-1]
        assert log.status == CronRunStatus.PARTIAL
        assert "Mystery Fee" in log.error_message
        assert len(log.details["results"]) == 2

    @pytest.mark.asyncio
    async def test_all_errors_gives_failed_run(self, db_session, session_factory, settings: Settings):
        lease = await create_lease(db_session)
        await create_charge(db_session, lease, account_code="9999")

        result = await RecurringChargeScheduler(session_factory, settings).run(today=MARCH_1)

        assert result.status == CronRunStatus.FAILED
        assert (await cron_logs(session_factory))[-1].status == CronRunStatus.FAILED

    @pytest.mark.asyncio
    async def test_run_level_failure_still_logs(self, session_factory, settings: Settings, monkeypatch):
        scheduler = RecurringChargeScheduler(session_factory, settings)

        async def broken(today):
            raise RuntimeError("database went away")

        monkeypatch.setattr(scheduler, "load_due_charges", broken)

        with pytest.raises(RuntimeError):
            await scheduler.run(today=MARCH_1)

        logs = await cron_logs(session_factory)
        assert len(logs) == 1
        assert logs[0].status == CronRunStatus.FAILED
        assert logs[0].error_message == "database went away"
        assert logs[0].details["fatal"] is True

    @pytest.mark.asyncio
    @respx.mock
    async def test_chained_jobs_fire_after_run(self, session_factory, settings: Settings, rent_charge):
        route = respx.post("http://jobs.test/late-fees").mock(return_value=httpx.Response(202))
        settings.chained_job_urls = "http://jobs.test/late-fees"
        trigger = JobTrigger(timeout_seconds=1.0, bearer_token="cron-token")

        result = await RecurringChargeScheduler(session_factory, settings, trigger).run(today=MARCH_1)
        await trigger.drain()

        assert route.called
        request = route.calls.last.request
        assert request.headers["Authorization"] == "Bearer cron-token"
        assert b'"source":"daily-charges"' in request.content.replace(b" ", b"")
        assert result.posted == 1

    @pytest.mark.asyncio
    @respx.mock
    async def test_chained_job_failure_does_not_fail_run(self, session_factory, settings: Settings, rent_charge):
        respx.post("http://jobs.test/down").mock(side_effect=httpx.ConnectError("refused"))
        settings.chained_job_urls = "http://jobs.test/down"
        trigger = JobTrigger(timeout_seconds=1.0)

        result = await RecurringChargeScheduler(session_factory, settings, trigger).run(today=MARCH_1)
        await trigger.drain()

        assert result.status == CronRunStatus.SUCCESS
        assert trigger.pending == 0
