"""
Sanprinon Lite - Bank Reconciliation Tests
"""

import pytest
from datetime import date
from decimal import Decimal
from uuid import uuid4

from app.models.accounting import EntryDirection
from app.models.reconciliation import (
    MatchConfidence,
    ReconciliationLineStatus,
    ReconciliationStatus,
)
from app.schemas.reconciliation import StatementLineCreate
from app.services.ledger_service import EntryParams, LedgerService
from app.services.reconciliation_service import ReconciliationService
from app.utils.error_handling import (
    InvalidDateRangeException,
    InvalidStateException,
    NotFoundException,
    ReconciliationNotFoundException,
)


MARCH_START = date(2026, 3, 1)
MARCH_END = date(2026, 3, 31)


async def post_bank_activity(session):
    """A $500 deposit on the 5th and a $200 withdrawal on the 10th."""
    ledger = LedgerService(session)
    deposit, _ = await ledger.post_double_entry(
        EntryParams("1000", Decimal("500.00"), EntryDirection.DR, "Deposit", date(2026, 3, 5), idempotency_key="bank:1"),
        EntryParams("1200", Decimal("500.00"), EntryDirection.CR, "Deposit", date(2026, 3, 5), idempotency_key="bank:2"),
    )
    _, withdrawal = await ledger.post_double_entry(
        EntryParams("5000", Decimal("200.00"), EntryDirection.DR, "Repair", date(2026, 3, 10), idempotency_key="bank:3"),
        EntryParams("1000", Decimal("200.00"), EntryDirection.CR, "Repair", date(2026, 3, 10), idempotency_key="bank:4"),
    )
    return deposit, withdrawal


def statement_lines():
    return [
        StatementLineCreate(line_date=date(2026, 3, 6), description="DEPOSIT", amount=Decimal("500.00")),
        StatementLineCreate(line_date=date(2026, 3, 20), description="CHECK 1041", amount=Decimal("-200.00")),
        StatementLineCreate(line_date=date(2026, 3, 25), description="SERVICE FEE", amount=Decimal("-9.99")),
    ]


class TestReconciliationService:
    """Matching lifecycle."""

    @pytest.mark.asyncio
    async def test_create_auto_matches_in_two_passes(self, db_session, bank_account):
        deposit, withdrawal = await post_bank_activity(db_session)
        service = ReconciliationService(db_session)

        rec = await service.create_reconciliation(
            bank_account_id=bank_account.id,
            start_date=MARCH_START,
            end_date=MARCH_END,
            statement_balance=Decimal("290.01"),
            lines=statement_lines(),
        )

        assert rec.status == ReconciliationStatus.IN_PROGRESS
        deposit_line, check_line, fee_line = rec.lines
        # Within the 3-day window
        assert deposit_line.status == ReconciliationLineStatus.MATCHED
        assert deposit_line.ledger_entry_id == deposit.id
        assert deposit_line.match_confidence == MatchConfidence.AUTO
        # Outside the window, matched on amount in the second pass
        assert check_line.status == ReconciliationLineStatus.MATCHED
        assert check_line.ledger_entry_id == withdrawal.id
        assert fee_line.status == ReconciliationLineStatus.UNMATCHED

    @pytest.mark.asyncio
    async def test_matching_is_one_to_one(self, db_session, bank_account):
        await post_bank_activity(db_session)
        service = ReconciliationService(db_session)

        rec = await service.create_reconciliation(
            bank_account.id, MARCH_START, MARCH_END, Decimal("1000.00"),
            lines=[
                StatementLineCreate(line_date=date(2026, 3, 5), description="DEP A", amount=Decimal("500.00")),
                StatementLineCreate(line_date=date(2026, 3, 6), description="DEP B", amount=Decimal("500.00")),
            ],
        )

        statuses = sorted(line.status.value for line in rec.lines)
        assert statuses == ["MATCHED", "UNMATCHED"]

    @pytest.mark.asyncio
    async def test_finalize_blocked_by_unmatched_lines(self, db_session, bank_account):
        await post_bank_activity(db_session)
        service = ReconciliationService(db_session)
        rec = await service.create_reconciliation(
            bank_account.id, MARCH_START, MARCH_END, Decimal("290.01"), statement_lines()
        )

        with pytest.raises(InvalidStateException) as exc_info:
            await service.finalize(rec.id, finalized_by="bookkeeper")

        assert exc_info.value.details["unmatched_count"] == 1
        assert "1 line(s) are still unmatched" in exc_info.value.message

    @pytest.mark.asyncio
    async def test_exclude_then_finalize(self, db_session, bank_account):
        await post_bank_activity(db_session)
        service = ReconciliationService(db_session)
        rec = await service.create_reconciliation(
            bank_account.id, MARCH_START, MARCH_END, Decimal("290.01"), statement_lines()
        )
        fee_line = rec.lines[2]

        excluded = await service.exclude_line(rec.id, fee_line.id)
        assert excluded.status == ReconciliationLineStatus.EXCLUDED

        final = await service.finalize(rec.id, finalized_by="bookkeeper", notes="Fee booked next month")

        assert final.status == ReconciliationStatus.FINALIZED
        assert final.finalized_by == "bookkeeper"
        assert final.finalized_at is not None
        assert final.ledger_balance == Decimal("300.00")
        assert final.notes == "Fee booked next month"

    @pytest.mark.asyncio
    async def test_finalized_session_is_read_only(self, db_session, bank_account):
        await post_bank_activity(db_session)
        service = ReconciliationService(db_session)
        rec = await service.create_reconciliation(
            bank_account.id, MARCH_START, MARCH_END, Decimal("290.01"), statement_lines()
        )
        await service.exclude_line(rec.id, rec.lines[2].id)
        await service.finalize(rec.id, finalized_by="bookkeeper")

        with pytest.raises(InvalidStateException):
            await service.unmatch_line(rec.id, rec.lines[0].id)
        with pytest.raises(InvalidStateException):
            await service.include_line(rec.id, rec.lines[2].id)
        with pytest.raises(InvalidStateException):
            await service.finalize(rec.id, finalized_by="bookkeeper")

    @pytest.mark.asyncio
    async def test_manual_match_and_unmatch(self, db_session, bank_account):
        deposit, withdrawal = await post_bank_activity(db_session)
        service = ReconciliationService(db_session)
        rec = await service.create_reconciliation(
            bank_account.id, MARCH_START, MARCH_END, Decimal("290.01"), statement_lines()
        )
        deposit_line, check_line, fee_line = rec.lines

        # The deposit entry is already taken by the deposit line
        with pytest.raises(InvalidStateException):
            await service.match_line(rec.id, fee_line.id, deposit.id)

        await service.unmatch_line(rec.id, check_line.id)
        line = await service.match_line(rec.id, fee_line.id, withdrawal.id)

        assert line.status == ReconciliationLineStatus.MATCHED
        assert line.ledger_entry_id == withdrawal.id
        assert line.match_confidence == MatchConfidence.MANUAL

        unmatched = await service.unmatch_line(rec.id, fee_line.id)
        assert unmatched.status == ReconciliationLineStatus.UNMATCHED
        assert unmatched.ledger_entry_id is None
        assert unmatched.match_confidence is None

    @pytest.mark.asyncio
    async def test_include_restores_excluded_line(self, db_session, bank_account):
        service = ReconciliationService(db_session)
        rec = await service.create_reconciliation(
            bank_account.id, MARCH_START, MARCH_END, Decimal("0"), statement_lines()[2:]
        )
        line_id = rec.lines[0].id

        await service.exclude_line(rec.id, line_id)
        line = await service.include_line(rec.id, line_id)

        assert line.status == ReconciliationLineStatus.UNMATCHED

    @pytest.mark.asyncio
    async def test_invalid_date_range(self, db_session, bank_account):
        service = ReconciliationService(db_session)

        with pytest.raises(InvalidDateRangeException):
            await service.create_reconciliation(bank_account.id, MARCH_END, MARCH_START, Decimal("0"))

    @pytest.mark.asyncio
    async def test_unknown_bank_account_and_session(self, db_session):
        service = ReconciliationService(db_session)

        with pytest.raises(NotFoundException):
            await service.create_reconciliation(uuid4(), MARCH_START, MARCH_END, Decimal("0"))
        with pytest.raises(ReconciliationNotFoundException):
            await service.get_reconciliation(uuid4())

    @pytest.mark.asyncio
    async def test_line_from_another_session(self, db_session, bank_account):
        service = ReconciliationService(db_session)
        rec = await service.create_reconciliation(
            bank_account.id, MARCH_START, MARCH_END, Decimal("0"), statement_lines()[2:]
        )

        with pytest.raises(NotFoundException):
            await service.exclude_line(rec.id, uuid4())
