"""
Sanprinon Lite - Billing Router

Manual rent and late fee charges, payment recording and security deposits.
"""

import uuid
from typing import Optional

from fastapi import APIRouter, Depends, Path, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import Settings
from app.database import get_db
from app.dependencies import get_app_settings
from app.models.accounting import LedgerEntry
from app.schemas.billing import (
    BillingPostingResponse,
    ChargeLateFeeRequest,
    ChargeRentRequest,
    DepositReceive,
    DepositReturnCreate,
    DepositReturnResponse,
    DepositStatusResponse,
    PaymentCreate,
)
from app.schemas.ledger import LedgerEntryResponse
from app.services.lease_billing_service import DepositDeduction, LeaseBillingService


router = APIRouter(prefix="/api/v1", tags=["Billing"])


def to_billing_response(lease_id: uuid.UUID, debit: LedgerEntry, credit: LedgerEntry) -> BillingPostingResponse:
    return BillingPostingResponse(
        lease_id=lease_id,
        amount=debit.amount,
        description=debit.description,
        debit=LedgerEntryResponse.model_validate(debit),
        credit=LedgerEntryResponse.model_validate(credit),
    )


@router.post(
    "/leases/{lease_id}/charge-rent",
    response_model=BillingPostingResponse,
    status_code=status.HTTP_201_CREATED,
)
async def charge_rent(
    lease_id: uuid.UUID = Path(..., description="Lease ID"),
    data: Optional[ChargeRentRequest] = None,
    db: AsyncSession = Depends(get_db),
    settings: Settings = Depends(get_app_settings),
):
    """
    Charge this month's rent for a lease now.

    A second charge for the same month returns 409 INVALID_STATE. With
    ``manual`` set the month check is skipped, and the ledger still
    refuses a second manual charge with outcome ``already_done``.
    """
    data = data or ChargeRentRequest()
    service = LeaseBillingService(db, settings)
    debit, credit = await service.charge_rent(
        lease_id,
        charge_date=data.charge_date,
        posted_by=data.posted_by,
        manual=data.manual,
    )
    return to_billing_response(lease_id, debit, credit)


@router.post(
    "/leases/{lease_id}/charge-late-fee",
    response_model=BillingPostingResponse,
    status_code=status.HTTP_201_CREATED,
)
async def charge_late_fee(
    lease_id: uuid.UUID = Path(..., description="Lease ID"),
    data: Optional[ChargeLateFeeRequest] = None,
    db: AsyncSession = Depends(get_db),
    settings: Settings = Depends(get_app_settings),
):
    """Charge the month's late fee (DR receivable / CR late fees)."""
    data = data or ChargeLateFeeRequest()
    service = LeaseBillingService(db, settings)
    debit, credit = await service.charge_late_fee(
        lease_id,
        charge_date=data.charge_date,
        posted_by=data.posted_by,
        manual=data.manual,
    )
    return to_billing_response(lease_id, debit, credit)


@router.post("/payments", response_model=BillingPostingResponse, status_code=status.HTTP_201_CREATED)
async def record_payment(
    data: PaymentCreate,
    db: AsyncSession = Depends(get_db),
    settings: Settings = Depends(get_app_settings),
):
    """Record a tenant payment (DR cash / CR receivable)."""
    service = LeaseBillingService(db, settings)
    debit, credit = await service.record_payment(
        data.lease_id,
        amount=data.amount,
        description=data.description,
        payment_date=data.payment_date,
        reference=data.reference,
        posted_by=data.posted_by,
    )
    return to_billing_response(data.lease_id, debit, credit)


# ===========================================
# SECURITY DEPOSITS
# ===========================================

@router.post("/deposits/receive", response_model=BillingPostingResponse, status_code=status.HTTP_201_CREATED)
async def receive_deposit(
    data: DepositReceive,
    db: AsyncSession = Depends(get_db),
    settings: Settings = Depends(get_app_settings),
):
    """Take a security deposit (DR cash / CR deposits held)."""
    service = LeaseBillingService(db, settings)
    debit, credit = await service.receive_deposit(
        data.lease_id,
        amount=data.amount,
        description=data.description,
        received_date=data.received_date,
        reference=data.reference,
        posted_by=data.posted_by,
    )
    return to_billing_response(data.lease_id, debit, credit)


@router.post("/deposits/return", response_model=DepositReturnResponse, status_code=status.HTTP_201_CREATED)
async def return_deposit(
    data: DepositReturnCreate,
    db: AsyncSession = Depends(get_db),
    settings: Settings = Depends(get_app_settings),
):
    """
    Release a held deposit: the refund goes back to cash and each
    deduction is credited to its account.
    """
    service = LeaseBillingService(db, settings)
    returned = await service.return_deposit(
        data.lease_id,
        amount=data.amount,
        deductions=[
            DepositDeduction(description=d.description, amount=d.amount, account_code=d.account_code)
            for d in data.deductions
        ],
        description=data.description,
        returned_date=data.returned_date,
        reference=data.reference,
        posted_by=data.posted_by,
    )
    return DepositReturnResponse(
        lease_id=returned.lease_id,
        amount_returned=returned.amount_returned,
        total_deductions=returned.total_deductions,
        entries=[LedgerEntryResponse.model_validate(e) for e in returned.entries],
    )


@router.get("/deposits/status/{lease_id}", response_model=DepositStatusResponse)
async def deposit_status(
    lease_id: uuid.UUID = Path(..., description="Lease ID"),
    db: AsyncSession = Depends(get_db),
    settings: Settings = Depends(get_app_settings),
):
    """Deposit currently held for a lease."""
    service = LeaseBillingService(db, settings)
    lease = await service.get_lease(lease_id)
    return DepositStatusResponse(
        lease_id=lease.id,
        tenant_name=lease.tenant_name,
        balance_held=await service.get_deposit_held(lease_id),
    )
