"""
Sanprinon Lite - Billing Schemas

Pydantic schemas for rent and late fee charges, payments, security deposits
and the daily charge run.
"""

from datetime import date, datetime
from decimal import Decimal
from typing import Any, Dict, List, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from app.models.cron import CronRunStatus
from app.schemas.ledger import LedgerEntryResponse


class ChargeRentRequest(BaseModel):
    charge_date: Optional[date] = None
    posted_by: str = Field(default="manual", max_length=100)
    # Bypass the once-a-month check
    manual: bool = False


class ChargeLateFeeRequest(BaseModel):
    charge_date: Optional[date] = None
    posted_by: str = Field(default="manual", max_length=100)
    # Charge even when nothing is outstanding
    manual: bool = False


class PaymentCreate(BaseModel):
    lease_id: UUID
    amount: Decimal = Field(..., gt=0)
    description: Optional[str] = Field(None, max_length=500)
    payment_date: Optional[date] = None
    reference: Optional[str] = Field(None, max_length=100)
    posted_by: str = Field(default="manual", max_length=100)


class BillingPostingResponse(BaseModel):
    lease_id: UUID
    amount: Decimal
    description: str
    debit: LedgerEntryResponse
    credit: LedgerEntryResponse


class ChargeOutcomeResponse(BaseModel):
    charge_id: UUID
    lease_id: Optional[UUID] = None
    description: str
    amount: Decimal
    status: str
    message: Optional[str] = None


class CronRunResponse(BaseModel):
    job_name: str
    status: CronRunStatus
    run_date: date
    charges_posted: int
    charges_skipped: int
    charges_pending: int = 0
    charges_errored: int
    total_amount: Decimal
    duration_ms: int
    cron_log_id: Optional[UUID] = None
    results: List[ChargeOutcomeResponse]


class CronLogResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    job_name: str
    status: CronRunStatus
    charges_posted: int
    charges_skipped: int
    charges_errored: int
    total_amount: Decimal
    duration_ms: int
    error_message: Optional[str] = None
    details: Optional[Dict[str, Any]] = None
    created_at: datetime


class DepositReceive(BaseModel):
    lease_id: UUID
    amount: Decimal = Field(..., gt=0)
    description: Optional[str] = Field(None, max_length=500)
    received_date: Optional[date] = None
    reference: Optional[str] = Field(None, max_length=100)
    posted_by: str = Field(default="manual", max_length=100)


class DepositDeductionItem(BaseModel):
    description: str = Field(..., min_length=1, max_length=200)
    amount: Decimal = Field(..., gt=0)
    account_code: Optional[str] = Field(None, max_length=10)


class DepositReturnCreate(BaseModel):
    lease_id: UUID
    amount: Decimal = Field(..., ge=0, description="Refunded to the tenant")
    deductions: List[DepositDeductionItem] = Field(default_factory=list)
    description: Optional[str] = Field(None, max_length=500)
    returned_date: Optional[date] = None
    reference: Optional[str] = Field(None, max_length=100)
    posted_by: str = Field(default="manual", max_length=100)


class DepositReturnResponse(BaseModel):
    lease_id: UUID
    amount_returned: Decimal
    total_deductions: Decimal
    entries: List[LedgerEntryResponse]


class DepositStatusResponse(BaseModel):
    lease_id: UUID
    tenant_name: str
    balance_held: Decimal
