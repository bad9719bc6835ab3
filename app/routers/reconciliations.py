"""
Sanprinon Lite - Reconciliation Router

Bank reconciliation sessions: create with statement lines (auto-matched),
manual match/unmatch, exclude/include and finalize.
"""

import uuid

from fastapi import APIRouter, Depends, Path, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.database import get_db
from app.schemas.reconciliation import (
    ExcludeRequest,
    FinalizeRequest,
    MatchRequest,
    ReconciliationCreate,
    ReconciliationLineResponse,
    ReconciliationResponse,
)
from app.services.reconciliation_service import ReconciliationService


router = APIRouter(prefix="/api/v1/reconciliations", tags=["Reconciliation"])


@router.post("", response_model=ReconciliationResponse, status_code=status.HTTP_201_CREATED)
async def create_reconciliation(
    data: ReconciliationCreate,
    db: AsyncSession = Depends(get_db),
):
    """Start a reconciliation and auto-match its statement lines."""
    service = ReconciliationService(db)
    reconciliation = await service.create_reconciliation(
        bank_account_id=data.bank_account_id,
        start_date=data.start_date,
        end_date=data.end_date,
        statement_balance=data.statement_balance,
        lines=data.lines,
    )
    await db.commit()
    return reconciliation


@router.get("/{reconciliation_id}", response_model=ReconciliationResponse)
async def get_reconciliation(
    reconciliation_id: uuid.UUID = Path(..., description="Reconciliation ID"),
    db: AsyncSession = Depends(get_db),
):
    """Get a reconciliation with its lines."""
    service = ReconciliationService(db)
    return await service.get_reconciliation(reconciliation_id)


@router.post("/{reconciliation_id}/match", response_model=ReconciliationLineResponse)
async def match_line(
    data: MatchRequest,
    reconciliation_id: uuid.UUID = Path(..., description="Reconciliation ID"),
    db: AsyncSession = Depends(get_db),
):
    """Match a line to a ledger entry, or unmatch it when no entry is given."""
    service = ReconciliationService(db)
    if data.ledger_entry_id is None:
        line = await service.unmatch_line(reconciliation_id, data.line_id)
    else:
        line = await service.match_line(reconciliation_id, data.line_id, data.ledger_entry_id)
    await db.commit()
    return line


@router.post("/{reconciliation_id}/exclude", response_model=ReconciliationLineResponse)
async def exclude_line(
    data: ExcludeRequest,
    reconciliation_id: uuid.UUID = Path(..., description="Reconciliation ID"),
    db: AsyncSession = Depends(get_db),
):
    """Exclude a line from matching, or include it again."""
    service = ReconciliationService(db)
    if data.exclude:
        line = await service.exclude_line(reconciliation_id, data.line_id)
    else:
        line = await service.include_line(reconciliation_id, data.line_id)
    await db.commit()
    return line


@router.post("/{reconciliation_id}/finalize", response_model=ReconciliationResponse)
async def finalize_reconciliation(
    data: FinalizeRequest,
    reconciliation_id: uuid.UUID = Path(..., description="Reconciliation ID"),
    db: AsyncSession = Depends(get_db),
):
    """Finalize once no line is left UNMATCHED. The session is then read-only."""
    service = ReconciliationService(db)
    reconciliation = await service.finalize(
        reconciliation_id,
        finalized_by=data.finalized_by,
        notes=data.notes,
    )
    await db.commit()
    return reconciliation
