"""
Sanprinon Lite - Bank Reconciliation Service

Matches bank statement lines against POSTED ledger entries on the bank
account's GL code.

Auto-match runs in two passes, each strictly one-to-one:
1. exact amount within +/- 3 days of the statement date
2. exact amount anywhere in the reconciliation period

Ledger amounts are signed from the bank's point of view: DR positive,
CR negative.
"""

import logging
import uuid
from datetime import date, datetime, timezone
from decimal import Decimal
from typing import Iterable, List, Optional, Set

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.accounting import EntryDirection, EntryStatus, LedgerEntry
from app.models.reconciliation import (
    BankAccount,
    MatchConfidence,
    Reconciliation,
    ReconciliationLine,
    ReconciliationLineStatus,
    ReconciliationStatus,
)
from app.schemas.reconciliation import StatementLineCreate
from app.services.balance_service import BalanceService
from app.services.ledger_store import LedgerStore
from app.utils.error_handling import (
    EntryNotFoundException,
    InvalidDateRangeException,
    InvalidStateException,
    NotFoundException,
    ReconciliationNotFoundException,
    to_cents,
)

logger = logging.getLogger(__name__)

AMOUNT_TOLERANCE = Decimal("0.005")
DATE_WINDOW_DAYS = 3


def signed_bank_amount(entry: LedgerEntry) -> Decimal:
    return entry.amount if entry.debit_credit == EntryDirection.DR else -entry.amount


def amounts_match(line_amount: Decimal, entry: LedgerEntry) -> bool:
    return abs(Decimal(line_amount) - signed_bank_amount(entry)) < AMOUNT_TOLERANCE


class ReconciliationService:
    """Bank reconciliation sessions."""

    def __init__(self, db: AsyncSession):
        self.db = db
        self.store = LedgerStore(db)

    # =========================================================================
    # LOOKUPS
    # =========================================================================

    async def get_reconciliation(self, reconciliation_id: uuid.UUID) -> Reconciliation:
        result = await self.db.execute(
            select(Reconciliation)
            .where(Reconciliation.id == reconciliation_id)
            .execution_options(populate_existing=True)
        )
        reconciliation = result.scalar_one_or_none()
        if reconciliation is None:
            raise ReconciliationNotFoundException(reconciliation_id)
        return reconciliation

    async def _get_in_progress(self, reconciliation_id: uuid.UUID) -> Reconciliation:
        reconciliation = await self.get_reconciliation(reconciliation_id)
        if reconciliation.is_finalized:
            raise InvalidStateException(
                "Reconciliation is finalized and can no longer be changed",
                resource_type="Reconciliation",
                current_state=reconciliation.status.value,
            )
        return reconciliation

    @staticmethod
    def _line_of(reconciliation: Reconciliation, line_id: uuid.UUID) -> ReconciliationLine:
        for line in reconciliation.lines:
            if line.id == line_id:
                return line
        raise NotFoundException(
            "ReconciliationLine",
            line_id,
            message=f"Line {line_id} does not belong to reconciliation {reconciliation.id}",
        )

    # =========================================================================
    # SESSION LIFECYCLE
    # =========================================================================

    async def create_reconciliation(
        self,
        bank_account_id: uuid.UUID,
        start_date: date,
        end_date: date,
        statement_balance: Decimal,
        lines: Iterable[StatementLineCreate] = (),
    ) -> Reconciliation:
        """Open an IN_PROGRESS session with UNMATCHED lines, then auto-match."""
        if start_date > end_date:
            raise InvalidDateRangeException(start_date.isoformat(), end_date.isoformat())

        bank_account = await self.db.get(BankAccount, bank_account_id)
        if bank_account is None:
            raise NotFoundException("BankAccount", bank_account_id)

        reconciliation = Reconciliation(
            bank_account_id=bank_account_id,
            start_date=start_date,
            end_date=end_date,
            statement_balance=to_cents(statement_balance),
            status=ReconciliationStatus.IN_PROGRESS,
        )
        self.db.add(reconciliation)
        await self.db.flush()

        for line in lines:
            self.db.add(ReconciliationLine(
                reconciliation_id=reconciliation.id,
                line_date=line.line_date,
                description=line.description,
                amount=to_cents(line.amount),
                reference=line.reference,
                status=ReconciliationLineStatus.UNMATCHED,
            ))
        await self.db.flush()

        reconciliation = await self.get_reconciliation(reconciliation.id)
        matched = await self.auto_match(reconciliation, bank_account.account_code)
        logger.info(
            f"Created reconciliation {reconciliation.id} for {bank_account.name}: "
            f"{len(reconciliation.lines)} lines, {matched} auto-matched"
        )
        return reconciliation

    async def auto_match(self, reconciliation: Reconciliation, account_code: str) -> int:
        """Two-pass one-to-one matching. Returns the number of lines matched."""
        entries = await self.store.list_entries(
            account_code=account_code,
            start_date=reconciliation.start_date,
            end_date=reconciliation.end_date,
            limit=10000,
        )
        used: Set[uuid.UUID] = {
            line.ledger_entry_id for line in reconciliation.lines if line.ledger_entry_id
        }
        # Oldest first so earlier entries pair with earlier lines
        entries.sort(key=lambda e: (e.entry_date, e.created_at))

        matched = 0
        for within_window in (True, False):
            for line in reconciliation.lines:
                if line.status != ReconciliationLineStatus.UNMATCHED:
                    continue
                entry = self._find_candidate(line, entries, used, within_window)
                if entry is None:
                    continue
                self._link(line, entry, MatchConfidence.AUTO)
                used.add(entry.id)
                matched += 1

        await self.db.flush()
        return matched

    @staticmethod
    def _find_candidate(
        line: ReconciliationLine,
        entries: List[LedgerEntry],
        used: Set[uuid.UUID],
        within_window: bool,
    ) -> Optional[LedgerEntry]:
        for entry in entries:
            if entry.id in used or not amounts_match(line.amount, entry):
                continue
            if within_window and abs((entry.entry_date - line.line_date).days) > DATE_WINDOW_DAYS:
                continue
            return entry
        return None

    @staticmethod
    def _link(line: ReconciliationLine, entry: LedgerEntry, confidence: MatchConfidence) -> None:
        line.status = ReconciliationLineStatus.MATCHED
        line.ledger_entry_id = entry.id
        line.matched_at = datetime.now(timezone.utc)
        line.match_confidence = confidence

    @staticmethod
    def _unlink(line: ReconciliationLine, status: ReconciliationLineStatus) -> None:
        line.status = status
        line.ledger_entry_id = None
        line.matched_at = None
        line.match_confidence = None

    # =========================================================================
    # MANUAL MATCHING
    # =========================================================================

    async def match_line(
        self,
        reconciliation_id: uuid.UUID,
        line_id: uuid.UUID,
        ledger_entry_id: uuid.UUID,
    ) -> ReconciliationLine:
        reconciliation = await self._get_in_progress(reconciliation_id)
        line = self._line_of(reconciliation, line_id)

        entry = await self.store.get(ledger_entry_id)
        if entry is None:
            raise EntryNotFoundException(ledger_entry_id)
        if entry.status != EntryStatus.POSTED:
            raise InvalidStateException(
                "Only POSTED entries can be matched",
                resource_type="LedgerEntry",
                current_state=entry.status.value,
            )
        for other in reconciliation.lines:
            if other.id != line.id and other.ledger_entry_id == entry.id:
                raise InvalidStateException(
                    f"Ledger entry {entry.id} is already matched to line {other.id}",
                    resource_type="ReconciliationLine",
                )

        self._link(line, entry, MatchConfidence.MANUAL)
        await self.db.flush()
        return line

    async def unmatch_line(self, reconciliation_id: uuid.UUID, line_id: uuid.UUID) -> ReconciliationLine:
        reconciliation = await self._get_in_progress(reconciliation_id)
        line = self._line_of(reconciliation, line_id)
        self._unlink(line, ReconciliationLineStatus.UNMATCHED)
        await self.db.flush()
        return line

    async def exclude_line(self, reconciliation_id: uuid.UUID, line_id: uuid.UUID) -> ReconciliationLine:
        reconciliation = await self._get_in_progress(reconciliation_id)
        line = self._line_of(reconciliation, line_id)
        self._unlink(line, ReconciliationLineStatus.EXCLUDED)
        await self.db.flush()
        return line

    async def include_line(self, reconciliation_id: uuid.UUID, line_id: uuid.UUID) -> ReconciliationLine:
        reconciliation = await self._get_in_progress(reconciliation_id)
        line = self._line_of(reconciliation, line_id)
        if line.status == ReconciliationLineStatus.EXCLUDED:
            self._unlink(line, ReconciliationLineStatus.UNMATCHED)
            await self.db.flush()
        return line

    # =========================================================================
    # FINALIZE
    # =========================================================================

    async def finalize(
        self,
        reconciliation_id: uuid.UUID,
        finalized_by: str,
        notes: Optional[str] = None,
    ) -> Reconciliation:
        """
        Close the session. Every line must be MATCHED or EXCLUDED.

        Raises:
            InvalidStateException: already finalized, or lines still unmatched
        """
        reconciliation = await self._get_in_progress(reconciliation_id)
        unmatched = sum(
            1 for line in reconciliation.lines
            if line.status == ReconciliationLineStatus.UNMATCHED
        )
        if unmatched:
            raise InvalidStateException(
                f"Cannot finalize: {unmatched} line(s) are still unmatched. "
                f"Match or exclude them first.",
                resource_type="Reconciliation",
                current_state=reconciliation.status.value,
                details={"unmatched_count": unmatched},
            )

        balances = BalanceService(self.db)
        reconciliation.ledger_balance = await balances.get_account_balance(
            reconciliation.bank_account.account_code, as_of=reconciliation.end_date
        )
        reconciliation.status = ReconciliationStatus.FINALIZED
        reconciliation.finalized_at = datetime.now(timezone.utc)
        reconciliation.finalized_by = finalized_by
        if notes:
            reconciliation.notes = notes
        await self.db.flush()

        logger.info(f"Finalized reconciliation {reconciliation.id} by {finalized_by}")
        return reconciliation
