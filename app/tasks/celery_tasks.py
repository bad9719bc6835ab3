"""
Sanprinon Lite - Celery Tasks

Background tasks for scheduled operations.
"""

import asyncio
import logging
from datetime import date
from typing import Any, Dict, Optional

from celery import shared_task

from app.config import get_settings

logger = logging.getLogger(__name__)


def run_async(coro):
    """Helper to run async functions in Celery tasks."""
    loop = asyncio.new_event_loop()
    asyncio.set_event_loop(loop)
    try:
        return loop.run_until_complete(coro)
    finally:
        loop.close()


# ===========================================
# BILLING TASKS
# ===========================================

@shared_task(name='sanprinon.daily_charges', bind=True, max_retries=3)
def daily_charges_task(self, run_date: Optional[str] = None) -> Dict[str, Any]:
    """
    Post the day's scheduled charges.

    Re-running is harmless: charges already posted this month are skipped.
    A run that fails outright is retried.
    """
    try:
        return run_async(_run_daily_charges(date.fromisoformat(run_date) if run_date else None))
    except Exception as exc:
        logger.error(f"Daily charges task failed: {exc}")
        raise self.retry(exc=exc)


async def _run_daily_charges(run_date: Optional[date] = None) -> Dict[str, Any]:
    """Async implementation of the daily charge run."""
    from app.database import create_engine_and_session_factory
    from app.services.job_trigger import JobTrigger
    from app.services.recurring_charge_service import RecurringChargeScheduler

    settings = get_settings()
    # Each task owns its event loop, so it also owns its engine
    engine, session_factory = create_engine_and_session_factory(settings)
    job_trigger = JobTrigger(
        timeout_seconds=settings.chained_job_timeout_seconds,
        bearer_token=settings.cron_secret or None,
    )
    try:
        scheduler = RecurringChargeScheduler(session_factory, settings, job_trigger)
        result = await scheduler.run(today=run_date)
        await job_trigger.drain()
    finally:
        await engine.dispose()

    logger.info(
        f"Daily charges complete: {result.posted} posted, "
        f"{result.skipped} skipped, {result.errored} errors"
    )
    return {
        "run_date": result.run_date.isoformat(),
        "status": result.status.value,
        "charges_posted": result.posted,
        "charges_skipped": result.skipped,
        "charges_errored": result.errored,
        "total_amount": str(result.total_amount),
        "cron_log_id": str(result.cron_log_id) if result.cron_log_id else None,
    }


# ===========================================
# EXPENSE TASKS
# ===========================================

@shared_task(name='sanprinon.daily_expenses', bind=True, max_retries=3)
def daily_expenses_task(self, run_date: Optional[str] = None) -> Dict[str, Any]:
    """Post or park the day's scheduled expenses. Re-running is harmless."""
    try:
        return run_async(_run_daily_expenses(date.fromisoformat(run_date) if run_date else None))
    except Exception as exc:
        logger.error(f"Daily expenses task failed: {exc}")
        raise self.retry(exc=exc)


async def _run_daily_expenses(run_date: Optional[date] = None) -> Dict[str, Any]:
    from app.database import create_engine_and_session_factory
    from app.services.recurring_expense_service import RecurringExpenseScheduler

    settings = get_settings()
    engine, session_factory = create_engine_and_session_factory(settings)
    try:
        result = await RecurringExpenseScheduler(session_factory, settings).run(today=run_date)
    finally:
        await engine.dispose()

    logger.info(
        f"Daily expenses complete: {result.posted} posted, {result.pending} pending, "
        f"{result.skipped} skipped, {result.errored} errors"
    )
    return {
        "run_date": result.run_date.isoformat(),
        "status": result.status.value,
        "expenses_posted": result.posted,
        "expenses_pending": result.pending,
        "expenses_skipped": result.skipped,
        "expenses_errored": result.errored,
        "total_amount": str(result.total_amount),
        "cron_log_id": str(result.cron_log_id) if result.cron_log_id else None,
    }
