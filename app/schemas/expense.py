"""
Sanprinon Lite - Expense Schemas

Pydantic schemas for manual expenses and pending expense review.
"""

from datetime import date, datetime
from decimal import Decimal
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from app.models.expense import PendingExpenseStatus
from app.schemas.ledger import LedgerEntryResponse


class ExpenseCreate(BaseModel):
    account_code: str = Field(..., max_length=10, description="An EXPENSE account")
    amount: Decimal = Field(..., gt=0)
    description: str = Field(..., min_length=1, max_length=400)
    expense_date: Optional[date] = None
    reference: Optional[str] = Field(None, max_length=100)
    posted_by: str = Field(default="manual", max_length=100)


class ExpensePostingResponse(BaseModel):
    account_code: str
    amount: Decimal
    description: str
    debit: LedgerEntryResponse
    credit: LedgerEntryResponse


class PendingExpenseResolve(BaseModel):
    resolved_by: Optional[str] = Field(None, max_length=100)


class PendingExpenseResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    scheduled_expense_id: UUID
    property_name: str
    description: str
    amount: Decimal
    account_code: str
    due_date: date
    status: PendingExpenseStatus
    resolved_at: Optional[datetime] = None
    resolved_by: Optional[str] = None
    ledger_entry_id: Optional[UUID] = None
    created_at: datetime
