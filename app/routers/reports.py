"""
Sanprinon Lite - Reports Router

Read-only reports over the ledger. Nothing here writes.
"""

import uuid
from datetime import date
from typing import List, Optional

from fastapi import APIRouter, Depends, Path, Query
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import Settings
from app.database import get_db
from app.dependencies import get_app_settings
from app.schemas.ledger import TenantBalance, TrialBalanceReport
from app.services.balance_service import BalanceService


router = APIRouter(prefix="/api/v1/reports", tags=["Reports"])


@router.get("/trial-balance", response_model=TrialBalanceReport)
async def get_trial_balance(
    as_of: Optional[date] = Query(None, description="Trial balance as of date"),
    include_zero: bool = Query(False, description="Include accounts with no balance"),
    db: AsyncSession = Depends(get_db),
):
    """Generate trial balance report."""
    service = BalanceService(db)
    return await service.get_trial_balance(as_of=as_of, include_zero=include_zero)


@router.get("/tenant-balances", response_model=List[TenantBalance])
async def get_tenant_balances(
    as_of: Optional[date] = Query(None),
    include_zero: bool = Query(False),
    db: AsyncSession = Depends(get_db),
    settings: Settings = Depends(get_app_settings),
):
    """Receivable balance for every lease with ledger activity."""
    service = BalanceService(db, receivable_account_code=settings.receivable_account_code)
    return await service.get_tenant_balances(as_of=as_of, include_zero=include_zero)


@router.get("/tenant-balances/{lease_id}", response_model=TenantBalance)
async def get_tenant_balance(
    lease_id: uuid.UUID = Path(..., description="Lease ID"),
    as_of: Optional[date] = Query(None),
    db: AsyncSession = Depends(get_db),
    settings: Settings = Depends(get_app_settings),
):
    """Receivable balance for one lease."""
    service = BalanceService(db, receivable_account_code=settings.receivable_account_code)
    balance = await service.get_lease_balance(lease_id, as_of=as_of)
    return TenantBalance(lease_id=lease_id, balance=balance)
