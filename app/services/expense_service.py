"""
Sanprinon Lite - Expense Service

Property expenses: recording a bill by hand, listing what was spent, and
resolving the pending expenses the daily expense run parks for review.
"""

import calendar
import logging
import uuid
from datetime import date, datetime, timezone
from decimal import Decimal
from typing import List, Optional, Tuple

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import Settings
from app.models.accounting import AccountType, ChartOfAccounts, EntryDirection, EntryStatus, LedgerEntry
from app.models.expense import PendingExpense, PendingExpenseStatus
from app.services.idempotency import expense_key, scheduled_expense_key
from app.services.ledger_service import EntryParams, LedgerService
from app.utils.error_handling import (
    InvalidDateRangeException,
    InvalidStateException,
    NotFoundException,
    validate_amount,
)

logger = logging.getLogger(__name__)

CONFIRMED_BY = "user-confirmed"


def month_bounds(on: date) -> Tuple[date, date]:
    return on.replace(day=1), on.replace(day=calendar.monthrange(on.year, on.month)[1])


class ExpenseService:
    """Manual expenses and pending expense review."""

    def __init__(self, db: AsyncSession, settings: Settings):
        self.db = db
        self.settings = settings
        self.ledger = LedgerService(db)

    async def record_expense(
        self,
        account_code: str,
        amount: Decimal,
        description: str,
        expense_date: Optional[date] = None,
        reference: Optional[str] = None,
        posted_by: str = "manual",
    ) -> Tuple[LedgerEntry, LedgerEntry]:
        """
        Record a paid bill: DR the expense account / CR cash.

        Raises:
            AccountTypeMismatchException: account is not an EXPENSE account
            DuplicateEntryException: the same bill was already recorded
        """
        expense_date = expense_date or date.today()
        amount = validate_amount(amount)
        await self.ledger.registry.require_type(account_code, AccountType.EXPENSE)
        description = (description or "").strip()
        if reference and description:
            description = f"{description} [{reference}]"

        def leg(code: str, direction: EntryDirection) -> EntryParams:
            return EntryParams(
                account_code=code,
                amount=amount,
                direction=direction,
                description=description,
                entry_date=expense_date,
                posted_by=posted_by,
                idempotency_key=expense_key(
                    account_code, expense_date, amount, description, reference, direction.value
                ),
            )

        debit, credit = await self.ledger.post_double_entry(
            leg(account_code, EntryDirection.DR),
            leg(self.settings.cash_account_code, EntryDirection.CR),
        )
        logger.info(f"Recorded expense {amount} to {account_code} ({description})")
        return debit, credit

    async def list_expenses(
        self,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
        account_code: Optional[str] = None,
        limit: int = 100,
        offset: int = 0,
    ) -> List[LedgerEntry]:
        """POSTED debits on EXPENSE accounts, the current month by default."""
        if start_date is None and end_date is None:
            start_date, end_date = month_bounds(date.today())
        if start_date and end_date and start_date > end_date:
            raise InvalidDateRangeException(start_date.isoformat(), end_date.isoformat())

        query = (
            select(LedgerEntry)
            .join(ChartOfAccounts, ChartOfAccounts.code == LedgerEntry.account_code)
            .where(
                ChartOfAccounts.account_type == AccountType.EXPENSE,
                LedgerEntry.debit_credit == EntryDirection.DR,
                LedgerEntry.status == EntryStatus.POSTED,
            )
        )
        if start_date:
            query = query.where(LedgerEntry.entry_date >= start_date)
        if end_date:
            query = query.where(LedgerEntry.entry_date <= end_date)
        if account_code:
            query = query.where(LedgerEntry.account_code == account_code)
        query = query.order_by(
            LedgerEntry.entry_date.desc(), LedgerEntry.created_at.desc()
        ).offset(offset).limit(limit)

        result = await self.db.execute(query)
        return list(result.scalars().all())

    # =========================================================================
    # PENDING EXPENSES
    # =========================================================================

    async def list_pending(
        self, status: Optional[PendingExpenseStatus] = PendingExpenseStatus.PENDING
    ) -> List[PendingExpense]:
        query = select(PendingExpense)
        if status:
            query = query.where(PendingExpense.status == status)
        query = query.order_by(PendingExpense.due_date, PendingExpense.created_at)
        result = await self.db.execute(query)
        return list(result.unique().scalars().all())

    async def get_pending(self, pending_id: uuid.UUID) -> PendingExpense:
        pending = await self.db.get(PendingExpense, pending_id)
        if pending is None:
            raise NotFoundException("PendingExpense", pending_id)
        return pending

    def _require_open(self, pending: PendingExpense) -> None:
        if pending.status != PendingExpenseStatus.PENDING:
            raise InvalidStateException(
                f"Pending expense {pending.id} is already {pending.status.value}",
                resource_type="PendingExpense",
                current_state=pending.status.value,
            )

    async def confirm_pending(
        self,
        pending_id: uuid.UUID,
        confirmed_by: Optional[str] = None,
    ) -> PendingExpense:
        """
        Post a pending expense and mark it CONFIRMED.

        The ledger legs, the status change and the scheduled expense's
        last_posted_date commit together. The legs use the same keys the
        daily run would have used, so a month is never posted twice.
        """
        pending = await self.get_pending(pending_id)
        self._require_open(pending)
        await self.ledger.registry.require_type(pending.account_code, AccountType.EXPENSE)
        posted_by = confirmed_by or CONFIRMED_BY

        def leg(code: str, direction: EntryDirection) -> EntryParams:
            return EntryParams(
                account_code=code,
                amount=pending.amount,
                direction=direction,
                description=pending.description,
                entry_date=pending.due_date,
                posted_by=posted_by,
                idempotency_key=scheduled_expense_key(
                    pending.scheduled_expense_id, pending.due_date, direction.value
                ),
            )

        async with self.ledger.transaction():
            debit, _ = await self.ledger.post_double_entry(
                leg(pending.account_code, EntryDirection.DR),
                leg(self.settings.cash_account_code, EntryDirection.CR),
            )
            pending.status = PendingExpenseStatus.CONFIRMED
            pending.resolved_at = datetime.now(timezone.utc)
            pending.resolved_by = posted_by
            pending.ledger_entry_id = debit.id
            pending.scheduled_expense.last_posted_date = pending.due_date

        logger.info(f"Confirmed pending expense {pending.id} ({pending.description}) by {posted_by}")
        return pending

    async def skip_pending(self, pending_id: uuid.UUID, skipped_by: Optional[str] = None) -> PendingExpense:
        """Mark a pending expense SKIPPED; nothing is posted for that month."""
        pending = await self.get_pending(pending_id)
        self._require_open(pending)

        pending.status = PendingExpenseStatus.SKIPPED
        pending.resolved_at = datetime.now(timezone.utc)
        pending.resolved_by = skipped_by or "manual"
        await self.db.commit()

        logger.info(f"Skipped pending expense {pending.id} ({pending.description})")
        return pending
