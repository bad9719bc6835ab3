"""
Sanprinon Lite - Recurring Charge Scheduler

Daily batch job that posts scheduled rent and fee charges once per billing
month.

For each active charge whose day of month has arrived on an ACTIVE, started
lease, the scheduler posts DR receivable / CR the charge's income account and
stamps last_charged_date in the same unit. Each charge gets its own session
and unit, so one failure never rolls back another charge. Every run leaves a
CronLog row, including runs that blow up half way.
"""

import logging
import time
import uuid
from dataclasses import asdict, dataclass, field
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Dict, List, Optional
from zoneinfo import ZoneInfo

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.config import Settings
from app.models.accounting import EntryDirection
from app.models.cron import CronLog, CronRunStatus
from app.models.lease import Lease, LeaseStatus, ScheduledCharge
from app.services.idempotency import scheduled_charge_key
from app.services.job_trigger import JobTrigger
from app.services.ledger_service import LedgerService, PostEntry
from app.utils.error_handling import AppException, DuplicateEntryException

logger = logging.getLogger(__name__)

JOB_NAME = "daily-charges"
POSTED_BY = "cron-daily"

ALREADY_CHARGED = "Already charged this month"
DUPLICATE_PREVENTED = "Already posted (duplicate prevented)"


class ChargeStatus:
    POSTED = "posted"
    SKIPPED = "skipped"
    # Parked for confirmation instead of posted
    PENDING = "pending"
    ERROR = "error"


@dataclass
class ChargeOutcome:
    """Result for one scheduled item. Expense runs leave lease_id unset."""

    charge_id: uuid.UUID
    lease_id: Optional[uuid.UUID]
    description: str
    amount: Decimal
    status: str
    message: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["charge_id"] = str(self.charge_id)
        data["lease_id"] = str(self.lease_id) if self.lease_id else None
        data["amount"] = str(self.amount)
        return data


@dataclass
class SchedulerRunResult:
    run_date: date
    status: CronRunStatus = CronRunStatus.SUCCESS
    outcomes: List[ChargeOutcome] = field(default_factory=list)
    duration_ms: int = 0
    cron_log_id: Optional[uuid.UUID] = None

    def _count(self, status: str) -> int:
        return sum(1 for o in self.outcomes if o.status == status)

    @property
    def posted(self) -> int:
        return self._count(ChargeStatus.POSTED)

    @property
    def skipped(self) -> int:
        return self._count(ChargeStatus.SKIPPED)

    @property
    def pending(self) -> int:
        return self._count(ChargeStatus.PENDING)

    @property
    def errored(self) -> int:
        return self._count(ChargeStatus.ERROR)

    @property
    def total_amount(self) -> Decimal:
        return sum(
            (o.amount for o in self.outcomes if o.status == ChargeStatus.POSTED),
            Decimal("0.00"),
        )

    @property
    def error_messages(self) -> List[str]:
        return [
            f"{o.description}: {o.message}"
            for o in self.outcomes
            if o.status == ChargeStatus.ERROR
        ]


def run_status(posted: int, errored: int) -> CronRunStatus:
    """FAILED when nothing posted despite errors, PARTIAL on mixed results."""
    if errored and not posted:
        return CronRunStatus.FAILED
    if errored:
        return CronRunStatus.PARTIAL
    return CronRunStatus.SUCCESS


def billing_period_label(on: date) -> str:
    return on.strftime("%B %Y")


async def _add_log(session_factory: async_sessionmaker[AsyncSession], log: CronLog) -> uuid.UUID:
    async with session_factory() as session:
        async with session.begin():
            session.add(log)
    return log.id


async def record_run(
    session_factory: async_sessionmaker[AsyncSession],
    job_name: str,
    result: SchedulerRunResult,
) -> uuid.UUID:
    """Write the CronLog row for a finished run. Pending items count as skipped."""
    errors = result.error_messages
    return await _add_log(session_factory, CronLog(
        job_name=job_name,
        status=result.status,
        charges_posted=result.posted,
        charges_skipped=result.skipped + result.pending,
        charges_errored=result.errored,
        total_amount=result.total_amount,
        duration_ms=result.duration_ms,
        error_message="; ".join(errors) if errors else None,
        details={
            "run_date": result.run_date.isoformat(),
            "results": [o.to_dict() for o in result.outcomes],
        },
    ))


async def record_failed_run(
    session_factory: async_sessionmaker[AsyncSession],
    job_name: str,
    result: SchedulerRunResult,
    error: Exception,
    duration_ms: int,
) -> None:
    """Best-effort FAILED CronLog for a run that blew up."""
    try:
        await _add_log(session_factory, CronLog(
            job_name=job_name,
            status=CronRunStatus.FAILED,
            charges_posted=result.posted,
            charges_skipped=result.skipped + result.pending,
            charges_errored=result.errored + 1,
            total_amount=result.total_amount,
            duration_ms=duration_ms,
            error_message=str(error) or type(error).__name__,
            details={
                "run_date": result.run_date.isoformat(),
                "fatal": True,
                "results": [o.to_dict() for o in result.outcomes],
            },
        ))
    except Exception as log_error:
        logger.error(f"Could not record failed {job_name} run: {log_error}")


class RecurringChargeScheduler:
    """Posts due scheduled charges. Safe to run any number of times a day."""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        settings: Settings,
        job_trigger: Optional[JobTrigger] = None,
    ):
        self.session_factory = session_factory
        self.settings = settings
        self.job_trigger = job_trigger

    def today(self) -> date:
        return datetime.now(ZoneInfo(self.settings.scheduler_timezone)).date()

    async def run(self, today: Optional[date] = None) -> SchedulerRunResult:
        """
        Evaluate every active charge once and post the eligible ones.

        Per-charge failures are recorded and processing continues. A failure
        of the run itself still attempts a FAILED CronLog before re-raising.
        """
        today = today or self.today()
        started = time.monotonic()
        result = SchedulerRunResult(run_date=today)

        logger.info(f"Starting {JOB_NAME} run for {today.isoformat()}")

        try:
            charges = await self.load_due_charges(today)
            for charge in charges:
                result.outcomes.append(await self.process_charge(charge, today))

            result.status = run_status(result.posted, result.errored)
            result.duration_ms = int((time.monotonic() - started) * 1000)
            result.cron_log_id = await record_run(self.session_factory, JOB_NAME, result)
        except Exception as e:
            duration_ms = int((time.monotonic() - started) * 1000)
            logger.exception(f"{JOB_NAME} run failed: {e}")
            await record_failed_run(self.session_factory, JOB_NAME, result, e, duration_ms)
            raise

        logger.info(
            f"{JOB_NAME} finished with {result.status.value}: "
            f"{result.posted} posted, {result.skipped} skipped, {result.errored} errors, "
            f"total {result.total_amount}"
        )

        self._trigger_chained_jobs(result)
        return result

    async def load_due_charges(self, today: date) -> List[ScheduledCharge]:
        """Active charges whose day has come on ACTIVE leases that have started."""
        async with self.session_factory() as session:
            query = (
                select(ScheduledCharge)
                .join(Lease, ScheduledCharge.lease_id == Lease.id)
                .where(
                    ScheduledCharge.active.is_(True),
                    ScheduledCharge.charge_day <= today.day,
                    Lease.status == LeaseStatus.ACTIVE,
                    Lease.start_date.is_not(None),
                    Lease.start_date <= today,
                )
                .order_by(ScheduledCharge.charge_day, ScheduledCharge.created_at)
            )
            result = await session.execute(query)
            return list(result.unique().scalars().all())

    async def process_charge(self, charge: ScheduledCharge, today: date) -> ChargeOutcome:
        outcome = ChargeOutcome(
            charge_id=charge.id,
            lease_id=charge.lease_id,
            description=charge.description,
            amount=charge.amount,
            status=ChargeStatus.POSTED,
        )

        if charge.charged_in_month(today):
            outcome.status = ChargeStatus.SKIPPED
            outcome.message = ALREADY_CHARGED
            return outcome

        description = f"{charge.description} - {billing_period_label(today)}"
        receivable = self.settings.receivable_account_code

        async def post_charge(db: AsyncSession, post_entry: PostEntry) -> None:
            await post_entry(
                account_code=receivable,
                amount=charge.amount,
                direction=EntryDirection.DR,
                description=description,
                entry_date=today,
                lease_id=charge.lease_id,
                posted_by=POSTED_BY,
                idempotency_key=scheduled_charge_key(charge.id, today, EntryDirection.DR.value),
            )
            await post_entry(
                account_code=charge.account_code,
                amount=charge.amount,
                direction=EntryDirection.CR,
                description=description,
                entry_date=today,
                lease_id=charge.lease_id,
                posted_by=POSTED_BY,
                idempotency_key=scheduled_charge_key(charge.id, today, EntryDirection.CR.value),
            )
            await db.execute(
                update(ScheduledCharge)
                .where(ScheduledCharge.id == charge.id)
                .values(last_charged_date=today)
            )

        try:
            async with self.session_factory() as session:
                await LedgerService(session).with_transaction(post_charge)
        except DuplicateEntryException:
            outcome.status = ChargeStatus.SKIPPED
            outcome.message = DUPLICATE_PREVENTED
            logger.info(f"Charge {charge.id} already posted for {billing_period_label(today)}")
        except AppException as e:
            outcome.status = ChargeStatus.ERROR
            outcome.message = e.message
            logger.warning(f"Charge {charge.id} rejected: {e.message}")
        except Exception as e:
            outcome.status = ChargeStatus.ERROR
            outcome.message = str(e) or type(e).__name__
            logger.exception(f"Charge {charge.id} failed: {e}")
        else:
            charge.last_charged_date = today
            logger.info(f"Posted {charge.amount} for charge {charge.id} ({description})")

        return outcome

    def _trigger_chained_jobs(self, result: SchedulerRunResult) -> None:
        urls = self.settings.chained_job_urls_list
        if not urls or self.job_trigger is None:
            return
        self.job_trigger.fire_all(urls, {
            "source": JOB_NAME,
            "run_date": result.run_date.isoformat(),
            "status": result.status.value,
        })
