"""
Sanprinon Lite - Ledger Router

API endpoints for posting, reading and voiding ledger entries, and for the
chart of accounts and account balances.
"""

import uuid
from dataclasses import asdict
from datetime import date
from typing import List, Optional

from fastapi import APIRouter, Depends, Path, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.database import get_db
from app.dependencies import verify_admin_secret
from app.models.accounting import AccountType, EntryDirection, LedgerEntry
from app.schemas.ledger import (
    AccountBalanceResponse,
    AccountResponse,
    BalancedEntriesCreate,
    DoubleEntryCreate,
    LedgerEntryCreate,
    LedgerEntryResponse,
    PostingResponse,
    VoidRequest,
)
from app.services.account_registry import AccountRegistry
from app.services.balance_service import BalanceService
from app.services.ledger_service import EntryParams, LedgerService


router = APIRouter(prefix="/api/v1/ledger", tags=["Ledger"])


def to_posting_response(entries: List[LedgerEntry]) -> PostingResponse:
    return PostingResponse(
        entries=[LedgerEntryResponse.model_validate(e) for e in entries],
        total_debits=sum((e.amount for e in entries if e.debit_credit == EntryDirection.DR), 0),
        total_credits=sum((e.amount for e in entries if e.debit_credit == EntryDirection.CR), 0),
    )


def to_params(data: LedgerEntryCreate) -> EntryParams:
    return EntryParams(
        account_code=data.account_code,
        amount=data.amount,
        direction=data.direction,
        description=data.description,
        entry_date=data.entry_date,
        lease_id=data.lease_id,
        posted_by=data.posted_by,
        idempotency_key=data.idempotency_key,
    )


# ============================================================================
# ENTRY ENDPOINTS
# ============================================================================

@router.post("/entries", response_model=LedgerEntryResponse, status_code=status.HTTP_201_CREATED)
async def post_entry(
    data: LedgerEntryCreate,
    db: AsyncSession = Depends(get_db),
):
    """Post a single ledger leg."""
    service = LedgerService(db)
    return await service.post_entry(**asdict(to_params(data)))


@router.post("/entries/double", response_model=PostingResponse, status_code=status.HTTP_201_CREATED)
async def post_double_entry(
    data: DoubleEntryCreate,
    db: AsyncSession = Depends(get_db),
):
    """Post a balanced debit/credit pair atomically."""
    service = LedgerService(db)
    common = dict(
        amount=data.amount,
        description=data.description,
        entry_date=data.entry_date,
        lease_id=data.lease_id,
        posted_by=data.posted_by,
    )
    debit, credit = await service.post_double_entry(
        EntryParams(
            account_code=data.debit_account_code,
            direction=EntryDirection.DR,
            idempotency_key=f"{data.idempotency_key}:DR" if data.idempotency_key else None,
            **common,
        ),
        EntryParams(
            account_code=data.credit_account_code,
            direction=EntryDirection.CR,
            idempotency_key=f"{data.idempotency_key}:CR" if data.idempotency_key else None,
            **common,
        ),
    )
    return to_posting_response([debit, credit])


@router.post("/entries/balanced", response_model=PostingResponse, status_code=status.HTTP_201_CREATED)
async def post_balanced_entries(
    data: BalancedEntriesCreate,
    db: AsyncSession = Depends(get_db),
):
    """Post any number of legs whose debits equal their credits."""
    service = LedgerService(db)
    entries = await service.post_balanced_entries([to_params(e) for e in data.entries])
    return to_posting_response(entries)


@router.get("/entries", response_model=List[LedgerEntryResponse])
async def list_entries(
    lease_id: Optional[uuid.UUID] = Query(None, description="Filter by lease"),
    account_code: Optional[str] = Query(None, description="Filter by account code"),
    start_date: Optional[date] = Query(None),
    end_date: Optional[date] = Query(None),
    include_void: bool = Query(False, description="Include VOID entries"),
    limit: int = Query(100, ge=1, le=1000),
    offset: int = Query(0, ge=0),
    db: AsyncSession = Depends(get_db),
):
    """List ledger entries, newest first."""
    service = LedgerService(db)
    return await service.list_entries(
        lease_id=lease_id,
        account_code=account_code,
        start_date=start_date,
        end_date=end_date,
        include_void=include_void,
        limit=limit,
        offset=offset,
    )


@router.get("/entries/{entry_id}", response_model=LedgerEntryResponse)
async def get_entry(
    entry_id: uuid.UUID = Path(..., description="Ledger entry ID"),
    db: AsyncSession = Depends(get_db),
):
    """Get a ledger entry."""
    service = LedgerService(db)
    return await service.get_entry(entry_id)


@router.delete(
    "/entries/{entry_id}",
    response_model=LedgerEntryResponse,
    dependencies=[Depends(verify_admin_secret)],
)
async def void_entry(
    data: VoidRequest,
    entry_id: uuid.UUID = Path(..., description="Ledger entry ID"),
    db: AsyncSession = Depends(get_db),
):
    """
    Void a ledger entry.

    The row is never removed: its status becomes VOID and the reason,
    actor and time are recorded. Requires the admin credential.
    """
    service = LedgerService(db)
    return await service.void_ledger_entry(entry_id, reason=data.reason, voided_by=data.voided_by)


# ============================================================================
# ACCOUNT ENDPOINTS
# ============================================================================

@router.get("/accounts", response_model=List[AccountResponse])
async def list_accounts(
    account_type: Optional[AccountType] = Query(None, description="Filter by account type"),
    active_only: bool = Query(True, description="Only active accounts"),
    db: AsyncSession = Depends(get_db),
):
    """Get the chart of accounts."""
    registry = AccountRegistry(db)
    return await registry.list_accounts(account_type=account_type, active_only=active_only)


@router.get("/accounts/{account_code}/balance", response_model=AccountBalanceResponse)
async def get_account_balance(
    account_code: str = Path(..., description="Account code"),
    as_of: Optional[date] = Query(None, description="Only entries dated on or before"),
    db: AsyncSession = Depends(get_db),
):
    """Get an account's balance derived from its POSTED entries."""
    service = BalanceService(db)
    return await service.get_account_balance_report(account_code, as_of)
