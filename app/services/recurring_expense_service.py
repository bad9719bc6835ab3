"""
Sanprinon Lite - Recurring Expense Scheduler

Daily batch job for scheduled property expenses, run alongside the daily
charge run and logged the same way.

Each active expense whose day of month has arrived is handled once per
month. Expenses that need confirmation become a PENDING pending expense;
the rest post DR the expense account / CR cash and stamp last_posted_date
in the same unit.
"""

import logging
import time
from datetime import date, datetime
from typing import List, Optional
from zoneinfo import ZoneInfo

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.config import Settings
from app.models.accounting import AccountType, EntryDirection
from app.models.expense import PendingExpense, PendingExpenseStatus, ScheduledExpense
from app.services.account_registry import AccountRegistry
from app.services.idempotency import billing_period, scheduled_expense_key
from app.services.ledger_service import LedgerService, PostEntry
from app.services.recurring_charge_service import (
    DUPLICATE_PREVENTED,
    ChargeOutcome,
    ChargeStatus,
    SchedulerRunResult,
    billing_period_label,
    record_failed_run,
    record_run,
    run_status,
)
from app.utils.error_handling import AppException, DuplicateEntryException

logger = logging.getLogger(__name__)

JOB_NAME = "daily-expenses"
POSTED_BY = "cron-expense"

ALREADY_POSTED = "Already posted this month"
ALREADY_PENDING = "Pending expense already created this month"
AWAITING_CONFIRMATION = "Awaiting confirmation"


class RecurringExpenseScheduler:
    """Posts or parks due scheduled expenses. Safe to run repeatedly."""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        settings: Settings,
    ):
        self.session_factory = session_factory
        self.settings = settings

    def today(self) -> date:
        return datetime.now(ZoneInfo(self.settings.scheduler_timezone)).date()

    async def run(self, today: Optional[date] = None) -> SchedulerRunResult:
        today = today or self.today()
        started = time.monotonic()
        result = SchedulerRunResult(run_date=today)

        logger.info(f"Starting {JOB_NAME} run for {today.isoformat()}")

        try:
            for expense in await self.load_due_expenses(today):
                result.outcomes.append(await self.process_expense(expense, today))

            # Parking an expense for review counts as progress
            result.status = run_status(result.posted + result.pending, result.errored)
            result.duration_ms = int((time.monotonic() - started) * 1000)
            result.cron_log_id = await record_run(self.session_factory, JOB_NAME, result)
        except Exception as e:
            duration_ms = int((time.monotonic() - started) * 1000)
            logger.exception(f"{JOB_NAME} run failed: {e}")
            await record_failed_run(self.session_factory, JOB_NAME, result, e, duration_ms)
            raise

        logger.info(
            f"{JOB_NAME} finished with {result.status.value}: "
            f"{result.posted} posted, {result.pending} pending, {result.skipped} skipped, "
            f"{result.errored} errors, total {result.total_amount}"
        )
        return result

    async def load_due_expenses(self, today: date) -> List[ScheduledExpense]:
        async with self.session_factory() as session:
            result = await session.execute(
                select(ScheduledExpense)
                .where(
                    ScheduledExpense.active.is_(True),
                    ScheduledExpense.charge_day <= today.day,
                )
                .order_by(ScheduledExpense.charge_day, ScheduledExpense.created_at)
            )
            return list(result.scalars().all())

    async def process_expense(self, expense: ScheduledExpense, today: date) -> ChargeOutcome:
        outcome = ChargeOutcome(
            charge_id=expense.id,
            lease_id=None,
            description=expense.description,
            amount=expense.amount,
            status=ChargeStatus.POSTED,
        )

        if expense.posted_in_month(today):
            outcome.status = ChargeStatus.SKIPPED
            outcome.message = ALREADY_POSTED
            return outcome

        period = billing_period(today)
        try:
            async with self.session_factory() as session:
                existing = await session.execute(
                    select(PendingExpense.id).where(
                        PendingExpense.scheduled_expense_id == expense.id,
                        PendingExpense.period == period,
                    )
                )
                if existing.first() is not None:
                    outcome.status = ChargeStatus.SKIPPED
                    outcome.message = ALREADY_PENDING
                    return outcome

                if expense.requires_confirmation:
                    await self._create_pending(session, expense, today)
                    outcome.status = ChargeStatus.PENDING
                    outcome.message = AWAITING_CONFIRMATION
                    return outcome

                await LedgerService(session).with_transaction(self._poster(expense, today))
        except IntegrityError:
            outcome.status = ChargeStatus.SKIPPED
            outcome.message = ALREADY_PENDING
            logger.info(f"Pending expense for {expense.id} already exists for {period}")
        except DuplicateEntryException:
            outcome.status = ChargeStatus.SKIPPED
            outcome.message = DUPLICATE_PREVENTED
            logger.info(f"Expense {expense.id} already posted for {billing_period_label(today)}")
        except AppException as e:
            outcome.status = ChargeStatus.ERROR
            outcome.message = e.message
            logger.warning(f"Expense {expense.id} rejected: {e.message}")
        except Exception as e:
            outcome.status = ChargeStatus.ERROR
            outcome.message = str(e) or type(e).__name__
            logger.exception(f"Expense {expense.id} failed: {e}")
        else:
            expense.last_posted_date = today
            logger.info(f"Posted {expense.amount} for expense {expense.id} ({expense.description})")

        return outcome

    async def _create_pending(self, session: AsyncSession, expense: ScheduledExpense, today: date) -> None:
        session.add(PendingExpense(
            scheduled_expense_id=expense.id,
            property_name=expense.property_name,
            description=f"{expense.description} - {billing_period_label(today)}",
            amount=expense.amount,
            account_code=expense.account_code,
            due_date=today,
            period=billing_period(today),
            status=PendingExpenseStatus.PENDING,
        ))
        await session.commit()
        logger.info(f"Expense {expense.id} awaiting confirmation for {billing_period_label(today)}")

    def _poster(self, expense: ScheduledExpense, today: date):
        description = f"{expense.description} - {billing_period_label(today)}"
        cash = self.settings.cash_account_code

        async def post_expense(db: AsyncSession, post_entry: PostEntry) -> None:
            await AccountRegistry(db).require_type(expense.account_code, AccountType.EXPENSE)
            for account_code, direction in (
                (expense.account_code, EntryDirection.DR),
                (cash, EntryDirection.CR),
            ):
                await post_entry(
                    account_code=account_code,
                    amount=expense.amount,
                    direction=direction,
                    description=description,
                    entry_date=today,
                    posted_by=POSTED_BY,
                    idempotency_key=scheduled_expense_key(expense.id, today, direction.value),
                )
            await db.execute(
                update(ScheduledExpense)
                .where(ScheduledExpense.id == expense.id)
                .values(last_posted_date=today)
            )

        return post_expense
