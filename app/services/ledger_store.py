"""
Sanprinon Lite - Ledger Store

Data access for the append-only ledger_entries table.

Writes are limited to two shapes: insert with a unique idempotency key and
the single POSTED -> VOID status update. There is no delete path.
"""

import uuid
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy import func, select, update
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.accounting import EntryDirection, EntryStatus, LedgerEntry
from app.models.guards import VOID_EXECUTION_OPTION
from app.utils.error_handling import LedgerImmutableError


_INSERTS = {
    "postgresql": pg_insert,
    "sqlite": sqlite_insert,
}

# (account_code, direction) -> summed amount
DirectionTotals = Dict[Tuple[str, EntryDirection], Decimal]


class LedgerStore:
    """Queries and the two permitted writes against ledger_entries."""

    def __init__(self, db: AsyncSession):
        self.db = db

    def _insert_statement(self):
        dialect = self.db.get_bind().dialect.name
        try:
            return _INSERTS[dialect]
        except KeyError:
            raise NotImplementedError(f"Ledger inserts are not supported on '{dialect}'")

    async def insert(self, values: Dict[str, Any]) -> Optional[LedgerEntry]:
        """
        Insert one POSTED entry.

        Returns None when the idempotency key already exists; the existing
        row is left untouched.
        """
        insert = self._insert_statement()
        stmt = (
            insert(LedgerEntry)
            .values(status=EntryStatus.POSTED, **values)
            .on_conflict_do_nothing(index_elements=["idempotency_key"])
            .returning(LedgerEntry)
        )
        result = await self.db.execute(stmt)
        return result.scalar_one_or_none()

    async def mark_void(
        self,
        entry_id: uuid.UUID,
        reason: str,
        voided_by: str,
        voided_at: datetime,
    ) -> int:
        """Conditional POSTED -> VOID update. Returns the number of rows changed."""
        stmt = (
            update(LedgerEntry)
            .where(LedgerEntry.id == entry_id, LedgerEntry.status == EntryStatus.POSTED)
            .values(
                status=EntryStatus.VOID,
                void_reason=reason,
                voided_by=voided_by,
                voided_at=voided_at,
            )
            .execution_options(synchronize_session=False, **{VOID_EXECUTION_OPTION: True})
        )
        result = await self.db.execute(stmt)
        return result.rowcount

    async def delete(self, entry_id: uuid.UUID) -> None:
        raise LedgerImmutableError(f"Ledger entry {entry_id} cannot be deleted; void it instead")

    # =========================================================================
    # POINT QUERIES
    # =========================================================================

    async def get(self, entry_id: uuid.UUID, refresh: bool = False) -> Optional[LedgerEntry]:
        query = select(LedgerEntry).where(LedgerEntry.id == entry_id)
        if refresh:
            query = query.execution_options(populate_existing=True)
        result = await self.db.execute(query)
        return result.scalar_one_or_none()

    async def get_by_key(self, idempotency_key: str) -> Optional[LedgerEntry]:
        result = await self.db.execute(
            select(LedgerEntry).where(LedgerEntry.idempotency_key == idempotency_key)
        )
        return result.scalar_one_or_none()

    async def list_entries(
        self,
        account_code: Optional[str] = None,
        lease_id: Optional[uuid.UUID] = None,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
        include_void: bool = False,
        limit: int = 100,
        offset: int = 0,
    ) -> List[LedgerEntry]:
        query = select(LedgerEntry)
        if account_code:
            query = query.where(LedgerEntry.account_code == account_code)
        if lease_id:
            query = query.where(LedgerEntry.lease_id == lease_id)
        if start_date:
            query = query.where(LedgerEntry.entry_date >= start_date)
        if end_date:
            query = query.where(LedgerEntry.entry_date <= end_date)
        if not include_void:
            query = query.where(LedgerEntry.status == EntryStatus.POSTED)
        query = query.order_by(
            LedgerEntry.entry_date.desc(), LedgerEntry.created_at.desc()
        ).offset(offset).limit(limit)

        result = await self.db.execute(query)
        return list(result.scalars().all())

    # =========================================================================
    # AGGREGATION (POSTED rows only)
    # =========================================================================

    async def sum_by_direction(
        self,
        account_code: Optional[str] = None,
        as_of: Optional[date] = None,
        lease_id: Optional[uuid.UUID] = None,
    ) -> DirectionTotals:
        """POSTED totals grouped by account and direction."""
        query = (
            select(
                LedgerEntry.account_code,
                LedgerEntry.debit_credit,
                func.coalesce(func.sum(LedgerEntry.amount), 0),
            )
            .where(LedgerEntry.status == EntryStatus.POSTED)
            .group_by(LedgerEntry.account_code, LedgerEntry.debit_credit)
        )
        if account_code:
            query = query.where(LedgerEntry.account_code == account_code)
        if as_of:
            query = query.where(LedgerEntry.entry_date <= as_of)
        if lease_id:
            query = query.where(LedgerEntry.lease_id == lease_id)

        result = await self.db.execute(query)
        return {
            (code, direction): Decimal(str(total))
            for code, direction, total in result.all()
        }

    async def sum_by_lease(
        self,
        account_code: str,
        as_of: Optional[date] = None,
    ) -> Dict[uuid.UUID, Dict[EntryDirection, Decimal]]:
        """POSTED totals for one account, grouped by lease and direction."""
        query = (
            select(
                LedgerEntry.lease_id,
                LedgerEntry.debit_credit,
                func.coalesce(func.sum(LedgerEntry.amount), 0),
            )
            .where(
                LedgerEntry.status == EntryStatus.POSTED,
                LedgerEntry.account_code == account_code,
                LedgerEntry.lease_id.is_not(None),
            )
            .group_by(LedgerEntry.lease_id, LedgerEntry.debit_credit)
        )
        if as_of:
            query = query.where(LedgerEntry.entry_date <= as_of)

        totals: Dict[uuid.UUID, Dict[EntryDirection, Decimal]] = {}
        for lease_id, direction, total in (await self.db.execute(query)).all():
            totals.setdefault(lease_id, {})[direction] = Decimal(str(total))
        return totals
