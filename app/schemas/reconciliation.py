"""
Sanprinon Lite - Reconciliation Schemas
"""

from datetime import date, datetime
from decimal import Decimal
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from app.models.reconciliation import (
    MatchConfidence,
    ReconciliationLineStatus,
    ReconciliationStatus,
)


class StatementLineCreate(BaseModel):
    line_date: date
    description: str = Field(..., min_length=1, max_length=500)
    # Signed: deposits positive, withdrawals negative
    amount: Decimal
    reference: Optional[str] = Field(None, max_length=100)


class ReconciliationCreate(BaseModel):
    bank_account_id: UUID
    start_date: date
    end_date: date
    statement_balance: Decimal
    lines: List[StatementLineCreate] = Field(default_factory=list)


class MatchRequest(BaseModel):
    line_id: UUID
    # None unmatches the line
    ledger_entry_id: Optional[UUID] = None


class ExcludeRequest(BaseModel):
    line_id: UUID
    exclude: bool = True


class FinalizeRequest(BaseModel):
    finalized_by: str = Field(default="admin", max_length=100)
    notes: Optional[str] = None


class ReconciliationLineResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    line_date: date
    description: str
    amount: Decimal
    reference: Optional[str] = None
    status: ReconciliationLineStatus
    ledger_entry_id: Optional[UUID] = None
    matched_at: Optional[datetime] = None
    match_confidence: Optional[MatchConfidence] = None


class ReconciliationResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    bank_account_id: UUID
    start_date: date
    end_date: date
    statement_balance: Decimal
    ledger_balance: Optional[Decimal] = None
    status: ReconciliationStatus
    finalized_at: Optional[datetime] = None
    finalized_by: Optional[str] = None
    notes: Optional[str] = None
    lines: List[ReconciliationLineResponse] = Field(default_factory=list)
