"""
Sanprinon Lite - Cron Router

HTTP triggers for the daily charge and expense runs and their audit log.
The triggers are guarded by CRON_SECRET and are safe to call repeatedly on
the same day.
"""

from datetime import date
from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.config import Settings
from app.database import get_db, get_session_factory
from app.dependencies import get_app_settings, get_job_trigger, verify_cron_secret
from app.models.cron import CronLog, CronRunStatus
from app.schemas.billing import ChargeOutcomeResponse, CronLogResponse, CronRunResponse
from app.services.job_trigger import JobTrigger
from app.services.recurring_charge_service import (
    JOB_NAME,
    RecurringChargeScheduler,
    SchedulerRunResult,
)
from app.services.recurring_expense_service import JOB_NAME as EXPENSE_JOB_NAME, RecurringExpenseScheduler


router = APIRouter(prefix="/api/v1/cron", tags=["Cron"])


def to_run_response(result: SchedulerRunResult, job_name: str = JOB_NAME) -> CronRunResponse:
    return CronRunResponse(
        job_name=job_name,
        status=result.status,
        run_date=result.run_date,
        charges_posted=result.posted,
        charges_skipped=result.skipped,
        charges_pending=result.pending,
        charges_errored=result.errored,
        total_amount=result.total_amount,
        duration_ms=result.duration_ms,
        cron_log_id=result.cron_log_id,
        results=[
            ChargeOutcomeResponse(
                charge_id=o.charge_id,
                lease_id=o.lease_id,
                description=o.description,
                amount=o.amount,
                status=o.status,
                message=o.message,
            )
            for o in result.outcomes
        ],
    )


@router.api_route(
    "/daily-charges",
    methods=["GET", "POST"],
    response_model=CronRunResponse,
    dependencies=[Depends(verify_cron_secret)],
)
async def run_daily_charges(
    run_date: Optional[date] = Query(None, description="Override the run date (defaults to today)"),
    session_factory: async_sessionmaker[AsyncSession] = Depends(get_session_factory),
    settings: Settings = Depends(get_app_settings),
    job_trigger: Optional[JobTrigger] = Depends(get_job_trigger),
):
    """Post every scheduled charge that is due today."""
    scheduler = RecurringChargeScheduler(session_factory, settings, job_trigger)
    result = await scheduler.run(today=run_date)
    return to_run_response(result)


@router.api_route(
    "/daily-expenses",
    methods=["GET", "POST"],
    response_model=CronRunResponse,
    dependencies=[Depends(verify_cron_secret)],
)
async def run_daily_expenses(
    run_date: Optional[date] = Query(None, description="Override the run date (defaults to today)"),
    session_factory: async_sessionmaker[AsyncSession] = Depends(get_session_factory),
    settings: Settings = Depends(get_app_settings),
):
    """Post or park every scheduled expense that is due today."""
    scheduler = RecurringExpenseScheduler(session_factory, settings)
    result = await scheduler.run(today=run_date)
    return to_run_response(result, EXPENSE_JOB_NAME)


@router.get("/logs", response_model=List[CronLogResponse])
async def list_cron_logs(
    job_name: Optional[str] = Query(None),
    status: Optional[CronRunStatus] = Query(None),
    limit: int = Query(50, ge=1, le=500),
    db: AsyncSession = Depends(get_db),
):
    """Recent scheduler runs, newest first."""
    query = select(CronLog)
    if job_name:
        query = query.where(CronLog.job_name == job_name)
    if status:
        query = query.where(CronLog.status == status)
    query = query.order_by(CronLog.created_at.desc()).limit(limit)

    result = await db.execute(query)
    return list(result.scalars().all())
