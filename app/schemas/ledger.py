"""
Sanprinon Lite - Ledger Schemas

Pydantic schemas for ledger postings, accounts and balance reports.
"""

from datetime import date, datetime
from decimal import Decimal
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from app.models.accounting import AccountType, EntryDirection, EntryStatus


# =============================================================================
# CHART OF ACCOUNTS
# =============================================================================

class AccountResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    code: str
    name: str
    account_type: AccountType
    normal_balance: EntryDirection
    active: bool


class AccountBalanceResponse(BaseModel):
    account_code: str
    account_name: str
    account_type: AccountType
    normal_balance: EntryDirection
    as_of: Optional[date] = None
    balance: Decimal


# =============================================================================
# LEDGER ENTRIES
# =============================================================================

class LedgerEntryCreate(BaseModel):
    """One ledger leg."""
    account_code: str = Field(..., min_length=1, max_length=10)
    amount: Decimal
    direction: EntryDirection
    description: str = Field(..., min_length=1, max_length=500)
    entry_date: Optional[date] = None
    lease_id: Optional[UUID] = None
    posted_by: str = Field(default="api", max_length=100)
    idempotency_key: Optional[str] = Field(None, max_length=100)


class DoubleEntryCreate(BaseModel):
    """Debit and credit legs for the same amount and description."""
    debit_account_code: str = Field(..., min_length=1, max_length=10)
    credit_account_code: str = Field(..., min_length=1, max_length=10)
    amount: Decimal
    description: str = Field(..., min_length=1, max_length=500)
    entry_date: Optional[date] = None
    lease_id: Optional[UUID] = None
    posted_by: str = Field(default="api", max_length=100)
    # Each leg's key is derived as "<key>:DR" / "<key>:CR"
    idempotency_key: Optional[str] = Field(None, max_length=96)


class BalancedEntriesCreate(BaseModel):
    entries: List[LedgerEntryCreate] = Field(..., min_length=2)


class LedgerEntryResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    entry_date: date
    account_code: str
    amount: Decimal
    debit_credit: EntryDirection
    description: str
    lease_id: Optional[UUID] = None
    posted_by: str
    status: EntryStatus
    idempotency_key: str
    created_at: datetime
    voided_at: Optional[datetime] = None
    voided_by: Optional[str] = None
    void_reason: Optional[str] = None


class PostingResponse(BaseModel):
    """Entries created by one atomic posting."""
    entries: List[LedgerEntryResponse]
    total_debits: Decimal
    total_credits: Decimal


class VoidRequest(BaseModel):
    reason: str = Field(..., min_length=1, max_length=1000)
    voided_by: str = Field(default="admin", max_length=100)


# =============================================================================
# REPORTS
# =============================================================================

class TrialBalanceItem(BaseModel):
    account_code: str
    account_name: str
    account_type: AccountType
    debit_balance: Decimal
    credit_balance: Decimal


class TrialBalanceReport(BaseModel):
    as_of_date: Optional[date] = None
    total_debits: Decimal
    total_credits: Decimal
    is_balanced: bool
    items: List[TrialBalanceItem]


class TenantBalance(BaseModel):
    lease_id: UUID
    tenant_name: Optional[str] = None
    unit_name: Optional[str] = None
    property_name: Optional[str] = None
    balance: Decimal
