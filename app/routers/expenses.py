"""
Sanprinon Lite - Expenses Router

Manual expenses and review of the pending expenses left by the daily
expense run.
"""

import uuid
from datetime import date
from typing import List, Optional

from fastapi import APIRouter, Depends, Path, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import Settings
from app.database import get_db
from app.dependencies import get_app_settings
from app.models.expense import PendingExpenseStatus
from app.schemas.expense import (
    ExpenseCreate,
    ExpensePostingResponse,
    PendingExpenseResolve,
    PendingExpenseResponse,
)
from app.schemas.ledger import LedgerEntryResponse
from app.services.expense_service import ExpenseService


router = APIRouter(prefix="/api/v1", tags=["Expenses"])


@router.get("/expenses", response_model=List[LedgerEntryResponse])
async def list_expenses(
    start_date: Optional[date] = Query(None),
    end_date: Optional[date] = Query(None),
    account_code: Optional[str] = Query(None),
    limit: int = Query(100, ge=1, le=1000),
    offset: int = Query(0, ge=0),
    db: AsyncSession = Depends(get_db),
    settings: Settings = Depends(get_app_settings),
):
    """Expense postings, the current month unless a range is given."""
    service = ExpenseService(db, settings)
    return await service.list_expenses(
        start_date=start_date,
        end_date=end_date,
        account_code=account_code,
        limit=limit,
        offset=offset,
    )


@router.post("/expenses", response_model=ExpensePostingResponse, status_code=status.HTTP_201_CREATED)
async def record_expense(
    data: ExpenseCreate,
    db: AsyncSession = Depends(get_db),
    settings: Settings = Depends(get_app_settings),
):
    """Record a paid bill (DR expense account / CR cash)."""
    service = ExpenseService(db, settings)
    debit, credit = await service.record_expense(
        data.account_code,
        amount=data.amount,
        description=data.description,
        expense_date=data.expense_date,
        reference=data.reference,
        posted_by=data.posted_by,
    )
    return ExpensePostingResponse(
        account_code=debit.account_code,
        amount=debit.amount,
        description=debit.description,
        debit=LedgerEntryResponse.model_validate(debit),
        credit=LedgerEntryResponse.model_validate(credit),
    )


# ===========================================
# PENDING EXPENSES
# ===========================================

@router.get("/pending-expenses", response_model=List[PendingExpenseResponse])
async def list_pending_expenses(
    status: Optional[PendingExpenseStatus] = Query(PendingExpenseStatus.PENDING),
    db: AsyncSession = Depends(get_db),
    settings: Settings = Depends(get_app_settings),
):
    return await ExpenseService(db, settings).list_pending(status)


@router.post("/pending-expenses/{pending_id}/confirm", response_model=PendingExpenseResponse)
async def confirm_pending_expense(
    pending_id: uuid.UUID = Path(..., description="Pending expense ID"),
    data: Optional[PendingExpenseResolve] = None,
    db: AsyncSession = Depends(get_db),
    settings: Settings = Depends(get_app_settings),
):
    """Post a pending expense to the ledger."""
    data = data or PendingExpenseResolve()
    return await ExpenseService(db, settings).confirm_pending(pending_id, confirmed_by=data.resolved_by)


@router.post("/pending-expenses/{pending_id}/skip", response_model=PendingExpenseResponse)
async def skip_pending_expense(
    pending_id: uuid.UUID = Path(..., description="Pending expense ID"),
    data: Optional[PendingExpenseResolve] = None,
    db: AsyncSession = Depends(get_db),
    settings: Settings = Depends(get_app_settings),
):
    """Skip this month's occurrence; nothing is posted."""
    data = data or PendingExpenseResolve()
    return await ExpenseService(db, settings).skip_pending(pending_id, skipped_by=data.resolved_by)
