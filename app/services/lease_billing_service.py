"""
Sanprinon Lite - Lease Billing Service

Manual postings against a single lease:
- Charging the month's rent or late fee on demand
- Recording a tenant payment
- Receiving and returning the security deposit

All of them go through the ledger's transaction coordinator.
"""

import logging
import uuid
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import List, Optional, Sequence, Tuple

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import Settings
from app.models.accounting import EntryDirection, LedgerEntry
from app.models.lease import LateFeeType, Lease, LeaseStatus, ScheduledCharge
from app.services.balance_service import BalanceService
from app.services.idempotency import (
    deposit_receipt_key,
    deposit_return_key,
    late_fee_key,
    manual_payment_key,
    rent_charge_key,
)
from app.services.ledger_service import EntryParams, LedgerService
from app.services.recurring_charge_service import billing_period_label
from app.utils.error_handling import (
    InvalidStateException,
    LeaseNotFoundException,
    NotFoundException,
    ValidationException,
    to_cents,
    validate_amount,
)

logger = logging.getLogger(__name__)


@dataclass
class DepositDeduction:
    """Part of a deposit kept back at move-out."""

    description: str
    amount: Decimal
    account_code: Optional[str] = None


@dataclass
class DepositReturn:
    lease_id: uuid.UUID
    amount_returned: Decimal
    total_deductions: Decimal
    entries: List[LedgerEntry]


class LeaseBillingService:
    """Charges, payments and deposits for one lease."""

    def __init__(self, db: AsyncSession, settings: Settings):
        self.db = db
        self.settings = settings
        self.ledger = LedgerService(db)
        self.balances = BalanceService(
            db,
            registry=self.ledger.registry,
            receivable_account_code=settings.receivable_account_code,
        )

    async def get_lease(self, lease_id: uuid.UUID) -> Lease:
        lease = await self.db.get(Lease, lease_id)
        if lease is None:
            raise LeaseNotFoundException(lease_id)
        return lease

    async def get_active_lease(self, lease_id: uuid.UUID, action: str) -> Lease:
        lease = await self.get_lease(lease_id)
        if lease.status != LeaseStatus.ACTIVE:
            raise InvalidStateException(
                f"Cannot {action} on a {lease.status.value} lease",
                resource_type="Lease",
                current_state=lease.status.value,
            )
        return lease

    async def get_rent_charge(self, lease_id: uuid.UUID) -> Optional[ScheduledCharge]:
        """The lease's active rent-income scheduled charge, freshly loaded."""
        result = await self.db.execute(
            select(ScheduledCharge)
            .where(
                ScheduledCharge.lease_id == lease_id,
                ScheduledCharge.active.is_(True),
                ScheduledCharge.account_code == self.settings.rent_income_account_code,
            )
            .order_by(ScheduledCharge.created_at)
            .limit(1)
            # The daily run stamps last_charged_date from its own session
            .execution_options(populate_existing=True)
        )
        return result.scalars().first()

    # =========================================================================
    # CHARGES
    # =========================================================================

    async def charge_rent(
        self,
        lease_id: uuid.UUID,
        charge_date: Optional[date] = None,
        posted_by: str = "manual",
        manual: bool = False,
    ) -> Tuple[LedgerEntry, LedgerEntry]:
        """
        Post this month's rent for a lease now.

        Uses the lease's active rent-income scheduled charge. The charge's
        last_charged_date is stamped in the same unit so the daily run skips
        it for the month. A month the charge was already billed for, by the
        daily run or by hand, is refused unless ``manual`` is set.

        Raises:
            LeaseNotFoundException: unknown lease
            InvalidStateException: lease is not ACTIVE, or rent was already
                charged this month and ``manual`` is not set
            NotFoundException: lease has no active rent charge
            DuplicateEntryException: rent already charged manually this month
        """
        charge_date = charge_date or date.today()
        await self.get_active_lease(lease_id, "charge rent")

        charge = await self.get_rent_charge(lease_id)
        if charge is None:
            raise NotFoundException(
                "ScheduledCharge",
                message=f"Lease {lease_id} has no active rent charge",
            )

        period = billing_period_label(charge_date)
        if charge.charged_in_month(charge_date) and not manual:
            raise InvalidStateException(
                f"Rent already charged for {period}",
                resource_type="Lease",
                details={"last_charged_date": charge.last_charged_date.isoformat()},
            )

        description = f"{charge.description} - {period}"
        rent_code = self.settings.rent_income_account_code

        async with self.ledger.transaction():
            debit, credit = await self.ledger.post_double_entry(
                EntryParams(
                    account_code=self.settings.receivable_account_code,
                    amount=charge.amount,
                    direction=EntryDirection.DR,
                    description=description,
                    entry_date=charge_date,
                    lease_id=lease_id,
                    posted_by=posted_by,
                    idempotency_key=rent_charge_key(lease_id, charge_date, EntryDirection.DR.value),
                ),
                EntryParams(
                    account_code=rent_code,
                    amount=charge.amount,
                    direction=EntryDirection.CR,
                    description=description,
                    entry_date=charge_date,
                    lease_id=lease_id,
                    posted_by=posted_by,
                    idempotency_key=rent_charge_key(lease_id, charge_date, EntryDirection.CR.value),
                ),
            )
            charge.last_charged_date = charge_date

        logger.info(f"Charged rent {charge.amount} to lease {lease_id} ({description})")
        return debit, credit

    async def late_fee_amount(self, lease: Lease) -> Decimal:
        """Price the lease's late fee from its terms."""
        if not lease.late_fee_amount or lease.late_fee_type is None:
            raise InvalidStateException(
                "Lease has no late fee configured",
                resource_type="Lease",
            )
        if lease.late_fee_type == LateFeeType.FLAT:
            return validate_amount(lease.late_fee_amount)

        charge = await self.get_rent_charge(lease.id)
        if charge is None:
            raise NotFoundException(
                "ScheduledCharge",
                message=f"Lease {lease.id} has no active rent charge to base a percentage late fee on",
            )
        return validate_amount(to_cents(charge.amount * lease.late_fee_amount / Decimal("100")))

    async def charge_late_fee(
        self,
        lease_id: uuid.UUID,
        charge_date: Optional[date] = None,
        posted_by: str = "manual",
        manual: bool = False,
    ) -> Tuple[LedgerEntry, LedgerEntry]:
        """
        Post the month's late fee: DR receivable / CR late fee income.

        At most one late fee per lease and month. Unless ``manual`` is set
        the lease must owe something.

        Raises:
            InvalidStateException: lease not ACTIVE, no late fee terms, or
                nothing outstanding
            DuplicateEntryException: a late fee was already charged this month
        """
        charge_date = charge_date or date.today()
        lease = await self.get_active_lease(lease_id, "charge a late fee")
        amount = await self.late_fee_amount(lease)

        if not manual:
            outstanding = await self.balances.get_lease_balance(lease_id)
            if outstanding <= 0:
                raise InvalidStateException(
                    "Lease has no outstanding balance",
                    resource_type="Lease",
                    details={"balance": str(outstanding)},
                )

        description = f"Late fee for {billing_period_label(charge_date)} - {lease.tenant_name}"
        debit, credit = await self.ledger.post_double_entry(
            EntryParams(
                account_code=self.settings.receivable_account_code,
                amount=amount,
                direction=EntryDirection.DR,
                description=description,
                entry_date=charge_date,
                lease_id=lease_id,
                posted_by=posted_by,
                idempotency_key=late_fee_key(lease_id, charge_date, EntryDirection.DR.value),
            ),
            EntryParams(
                account_code=self.settings.late_fee_account_code,
                amount=amount,
                direction=EntryDirection.CR,
                description=description,
                entry_date=charge_date,
                lease_id=lease_id,
                posted_by=posted_by,
                idempotency_key=late_fee_key(lease_id, charge_date, EntryDirection.CR.value),
            ),
        )
        logger.info(f"Charged late fee {amount} to lease {lease_id} ({description})")
        return debit, credit

    # =========================================================================
    # PAYMENTS
    # =========================================================================

    async def record_payment(
        self,
        lease_id: uuid.UUID,
        amount: Decimal,
        description: Optional[str] = None,
        payment_date: Optional[date] = None,
        reference: Optional[str] = None,
        posted_by: str = "manual",
    ) -> Tuple[LedgerEntry, LedgerEntry]:
        """Record a tenant payment: DR cash / CR receivable."""
        payment_date = payment_date or date.today()
        amount = validate_amount(amount)
        lease = await self.get_lease(lease_id)
        description = description or f"Payment received - {lease.tenant_name}"
        if reference:
            description = f"{description} [{reference}]"

        debit, credit = await self.ledger.post_double_entry(
            EntryParams(
                account_code=self.settings.cash_account_code,
                amount=amount,
                direction=EntryDirection.DR,
                description=description,
                entry_date=payment_date,
                lease_id=lease_id,
                posted_by=posted_by,
                idempotency_key=manual_payment_key(lease_id, payment_date, amount, reference, EntryDirection.DR.value),
            ),
            EntryParams(
                account_code=self.settings.receivable_account_code,
                amount=amount,
                direction=EntryDirection.CR,
                description=description,
                entry_date=payment_date,
                lease_id=lease_id,
                posted_by=posted_by,
                idempotency_key=manual_payment_key(lease_id, payment_date, amount, reference, EntryDirection.CR.value),
            ),
        )
        logger.info(f"Recorded payment {amount} for lease {lease_id}")
        return debit, credit

    # =========================================================================
    # SECURITY DEPOSITS
    # =========================================================================

    async def get_deposit_held(self, lease_id: uuid.UUID) -> Decimal:
        """Deposit currently held for a lease (its balance on the deposits account)."""
        await self.get_lease(lease_id)
        return await self.balances.get_lease_balance(
            lease_id, account_code=self.settings.deposits_account_code
        )

    async def receive_deposit(
        self,
        lease_id: uuid.UUID,
        amount: Decimal,
        description: Optional[str] = None,
        received_date: Optional[date] = None,
        reference: Optional[str] = None,
        posted_by: str = "manual",
    ) -> Tuple[LedgerEntry, LedgerEntry]:
        """Take a security deposit: DR cash / CR deposits held."""
        received_date = received_date or date.today()
        amount = validate_amount(amount)
        lease = await self.get_lease(lease_id)
        description = description or f"Security deposit received - {lease.label}"
        if reference:
            description = f"{description} [{reference}]"

        debit, credit = await self.ledger.post_double_entry(
            EntryParams(
                account_code=self.settings.cash_account_code,
                amount=amount,
                direction=EntryDirection.DR,
                description=description,
                entry_date=received_date,
                lease_id=lease_id,
                posted_by=posted_by,
                idempotency_key=deposit_receipt_key(lease_id, received_date, amount, reference, EntryDirection.DR.value),
            ),
            EntryParams(
                account_code=self.settings.deposits_account_code,
                amount=amount,
                direction=EntryDirection.CR,
                description=description,
                entry_date=received_date,
                lease_id=lease_id,
                posted_by=posted_by,
                idempotency_key=deposit_receipt_key(lease_id, received_date, amount, reference, EntryDirection.CR.value),
            ),
        )
        logger.info(f"Received deposit {amount} for lease {lease_id}")
        return debit, credit

    async def return_deposit(
        self,
        lease_id: uuid.UUID,
        amount: Decimal,
        deductions: Sequence[DepositDeduction] = (),
        description: Optional[str] = None,
        returned_date: Optional[date] = None,
        reference: Optional[str] = None,
        posted_by: str = "manual",
    ) -> DepositReturn:
        """
        Release a held deposit at move-out.

        The refund posts DR deposits held / CR cash. Each deduction posts
        DR deposits held / CR its account (repairs by default). Everything
        lands in one balanced unit, and the total released may not exceed
        what is held for the lease.

        Raises:
            ValidationException: nothing to release
            InvalidStateException: more released than held
            DuplicateEntryException: same return already recorded
        """
        returned_date = returned_date or date.today()
        amount = validate_amount(amount, allow_zero=True)
        deductions = [
            DepositDeduction(
                description=(d.description or "").strip(),
                amount=validate_amount(d.amount, field="deductions.amount"),
                account_code=d.account_code or self.settings.deposit_deduction_account_code,
            )
            for d in deductions
        ]
        total_deductions = sum((d.amount for d in deductions), Decimal("0.00"))
        total = amount + total_deductions
        if total == 0:
            raise ValidationException(
                "A deposit return needs a refund amount or at least one deduction",
                field="amount",
            )

        lease = await self.get_lease(lease_id)
        description = description or f"Security deposit returned - {lease.label}"
        if reference:
            description = f"{description} [{reference}]"
        deposits = self.settings.deposits_account_code

        def leg(account_code: str, leg_amount: Decimal, direction: EntryDirection, text: str, tag: str) -> EntryParams:
            return EntryParams(
                account_code=account_code,
                amount=leg_amount,
                direction=direction,
                description=text,
                entry_date=returned_date,
                lease_id=lease_id,
                posted_by=posted_by,
                idempotency_key=deposit_return_key(lease_id, returned_date, reference, tag),
            )

        legs = []
        if amount > 0:
            legs.append(leg(deposits, amount, EntryDirection.DR, description, "refund:DR"))
            legs.append(leg(self.settings.cash_account_code, amount, EntryDirection.CR, description, "refund:CR"))
        for index, deduction in enumerate(deductions):
            text = f"Deposit deduction: {deduction.description or 'unspecified'}"
            legs.append(leg(deposits, deduction.amount, EntryDirection.DR, text, f"deduction:{index}:DR"))
            legs.append(leg(deduction.account_code, deduction.amount, EntryDirection.CR, text, f"deduction:{index}:CR"))

        async with self.ledger.transaction():
            held = await self.balances.get_lease_balance(lease_id, account_code=deposits)
            if total > held:
                raise InvalidStateException(
                    f"Cannot release {total}; only {held} is held for this lease",
                    resource_type="Lease",
                    details={"held": str(held), "requested": str(total)},
                )
            entries = await self.ledger.post_balanced_entries(legs)

        logger.info(
            f"Returned deposit for lease {lease_id}: {amount} refunded, {total_deductions} deducted"
        )
        return DepositReturn(
            lease_id=lease_id,
            amount_returned=amount,
            total_deductions=total_deductions,
            entries=entries,
        )
