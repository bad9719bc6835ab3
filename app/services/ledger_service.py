"""
Sanprinon Lite - Ledger Service

The posting core of the double-entry ledger:
- Entry posting with validation and idempotency enforcement
- Atomic multi-entry transactions that must balance before they commit
- Voiding as a distinct, audited status transition

Every financial event in the system reaches the ledger through this service.
"""

import logging
import uuid
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from decimal import Decimal
from typing import Any, AsyncIterator, Awaitable, Callable, List, Optional, Sequence, Tuple, TypeVar, Union

from sqlalchemy.ext.asyncio import AsyncSession

from app.models.accounting import EntryDirection, LedgerEntry
from app.models.lease import Lease
from app.services.account_registry import AccountRegistry
from app.services.idempotency import entry_key
from app.services.ledger_store import LedgerStore
from app.utils.error_handling import (
    DuplicateEntryException,
    EntryNotFoundException,
    InvalidDirectionException,
    InvalidStateException,
    LeaseNotFoundException,
    UnbalancedTransactionException,
    ValidationException,
    validate_amount,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")

MAX_DESCRIPTION_LENGTH = 500
MAX_POSTED_BY_LENGTH = 100


@dataclass
class EntryParams:
    """Arguments for a single ledger leg."""

    account_code: str
    amount: Union[Decimal, str, int, float]
    direction: Union[EntryDirection, str]
    description: str
    entry_date: Optional[date] = None
    lease_id: Optional[uuid.UUID] = None
    posted_by: str = "system"
    idempotency_key: Optional[str] = None


@dataclass
class TransactionUnit:
    """Entries posted inside one atomic unit."""

    require_balanced: bool = True
    entries: List[LedgerEntry] = field(default_factory=list)

    @property
    def total_debits(self) -> Decimal:
        return sum(
            (e.amount for e in self.entries if e.debit_credit == EntryDirection.DR),
            Decimal("0.00"),
        )

    @property
    def total_credits(self) -> Decimal:
        return sum(
            (e.amount for e in self.entries if e.debit_credit == EntryDirection.CR),
            Decimal("0.00"),
        )

    def check_balanced(self) -> None:
        if self.require_balanced and self.total_debits != self.total_credits:
            raise UnbalancedTransactionException(self.total_debits, self.total_credits)


PostEntry = Callable[..., Awaitable[LedgerEntry]]


def parse_direction(direction: Any) -> EntryDirection:
    if isinstance(direction, EntryDirection):
        return direction
    try:
        return EntryDirection(str(direction).upper())
    except ValueError:
        raise InvalidDirectionException(direction)


class LedgerService:
    """Service for posting to and voiding entries in the ledger."""

    def __init__(self, db: AsyncSession, registry: Optional[AccountRegistry] = None):
        self.db = db
        self.registry = registry or AccountRegistry(db)
        self.store = LedgerStore(db)
        self._unit: Optional[TransactionUnit] = None

    # =========================================================================
    # TRANSACTION COORDINATOR
    # =========================================================================

    @asynccontextmanager
    async def transaction(self, require_balanced: bool = True) -> AsyncIterator[TransactionUnit]:
        """
        Run everything inside the block as one atomic unit.

        All writes commit together or not at all. Before commit, the debit
        and credit totals of the entries posted in the unit must match.
        Nested calls join the enclosing unit. When the session already has
        a transaction open, the unit runs in a savepoint and the session is
        committed once the savepoint is released.
        """
        if self._unit is not None:
            yield self._unit
            return

        unit = TransactionUnit(require_balanced=require_balanced)
        self._unit = unit
        try:
            if self.db.in_transaction():
                async with self.db.begin_nested():
                    yield unit
                    unit.check_balanced()
                await self.db.commit()
            else:
                async with self.db.begin():
                    yield unit
                    unit.check_balanced()
        finally:
            self._unit = None

        if unit.entries:
            logger.info(
                "Committed ledger unit: %d entries, DR %s / CR %s",
                len(unit.entries), unit.total_debits, unit.total_credits,
            )

    async def with_transaction(self, fn: Callable[[AsyncSession, PostEntry], Awaitable[T]]) -> T:
        """
        Run ``fn(db, post_entry)`` as one atomic unit.

        Auxiliary writes go through ``db``; ledger legs through ``post_entry``.
        """
        async with self.transaction():
            return await fn(self.db, self.post_entry)

    async def post_double_entry(
        self,
        debit: EntryParams,
        credit: EntryParams,
    ) -> Tuple[LedgerEntry, LedgerEntry]:
        """Post a DR leg and a CR leg for the same amount."""
        if parse_direction(debit.direction) != EntryDirection.DR:
            raise InvalidDirectionException(debit.direction, "Debit leg must be DR")
        if parse_direction(credit.direction) != EntryDirection.CR:
            raise InvalidDirectionException(credit.direction, "Credit leg must be CR")

        async with self.transaction():
            debit_entry = await self._post(debit)
            credit_entry = await self._post(credit)
        return debit_entry, credit_entry

    async def post_balanced_entries(self, entries: Sequence[EntryParams]) -> List[LedgerEntry]:
        """Post any number of legs whose debits equal their credits."""
        if len(entries) < 2:
            raise ValidationException(
                "A balanced transaction needs at least two entries",
                field="entries",
            )
        async with self.transaction():
            return [await self._post(params) for params in entries]

    # =========================================================================
    # ENTRY POSTER
    # =========================================================================

    async def post_entry(
        self,
        account_code: str,
        amount: Union[Decimal, str, int, float],
        direction: Union[EntryDirection, str],
        description: str,
        entry_date: Optional[date] = None,
        lease_id: Optional[uuid.UUID] = None,
        posted_by: str = "system",
        idempotency_key: Optional[str] = None,
    ) -> LedgerEntry:
        """
        Validate and insert one POSTED entry.

        Raises:
            ValidationException: bad amount, direction, description or account
            LeaseNotFoundException: lease_id does not name a lease
            DuplicateEntryException: the idempotency key already exists
        """
        params = EntryParams(
            account_code=account_code,
            amount=amount,
            direction=direction,
            description=description,
            entry_date=entry_date,
            lease_id=lease_id,
            posted_by=posted_by,
            idempotency_key=idempotency_key,
        )
        # Standalone single-leg postings are not balance-checked
        async with self.transaction(require_balanced=False):
            return await self._post(params)

    async def _post(self, params: EntryParams) -> LedgerEntry:
        unit = self._unit
        if unit is None:
            raise RuntimeError("Ledger legs must be posted inside a transaction unit")

        amount = validate_amount(params.amount)
        direction = parse_direction(params.direction)
        description = (params.description or "").strip()
        if not description:
            raise ValidationException("Description is required", field="description")
        if len(description) > MAX_DESCRIPTION_LENGTH:
            raise ValidationException(
                f"Description exceeds {MAX_DESCRIPTION_LENGTH} characters",
                field="description",
            )
        posted_by = (params.posted_by or "system")[:MAX_POSTED_BY_LENGTH]
        entry_date = params.entry_date or date.today()

        await self.registry.require_postable(params.account_code)
        if params.lease_id is not None and await self.db.get(Lease, params.lease_id) is None:
            raise LeaseNotFoundException(params.lease_id)

        key = params.idempotency_key or entry_key(
            params.account_code,
            direction.value,
            entry_date,
            amount,
            params.lease_id,
            description,
        )

        entry = await self.store.insert({
            "account_code": params.account_code,
            "amount": amount,
            "debit_credit": direction,
            "description": description,
            "entry_date": entry_date,
            "lease_id": params.lease_id,
            "posted_by": posted_by,
            "idempotency_key": key,
        })
        if entry is None:
            logger.info("Duplicate ledger posting prevented for key %s", key)
            raise DuplicateEntryException("LedgerEntry", "idempotency_key", key)

        unit.entries.append(entry)
        logger.debug(
            "Posted %s %s %s to %s (key=%s)",
            direction.value, amount, description, params.account_code, key,
        )
        return entry

    # =========================================================================
    # VOID MANAGER
    # =========================================================================

    async def void_ledger_entry(
        self,
        entry_id: uuid.UUID,
        reason: str,
        voided_by: str,
    ) -> LedgerEntry:
        """
        Mark a POSTED entry VOID in place, recording reason, actor and time.

        Raises:
            ValidationException: empty reason
            EntryNotFoundException: unknown entry id
            InvalidStateException: the entry is already VOID
        """
        reason = (reason or "").strip()
        if not reason:
            raise ValidationException("A void reason is required", field="reason")
        voided_by = (voided_by or "system")[:MAX_POSTED_BY_LENGTH]

        async with self.transaction(require_balanced=False):
            changed = await self.store.mark_void(
                entry_id,
                reason=reason,
                voided_by=voided_by,
                voided_at=datetime.now(timezone.utc),
            )
            entry = await self.store.get(entry_id, refresh=True)
            if entry is None:
                raise EntryNotFoundException(entry_id)
            if not changed:
                raise InvalidStateException(
                    f"Ledger entry {entry_id} is already void",
                    resource_type="LedgerEntry",
                    current_state=entry.status.value,
                )

        logger.warning(
            "Voided ledger entry %s (%s %s on %s) by %s: %s",
            entry.id, entry.debit_credit.value, entry.amount,
            entry.account_code, voided_by, reason,
        )
        return entry

    # =========================================================================
    # READS
    # =========================================================================

    async def get_entry(self, entry_id: uuid.UUID) -> LedgerEntry:
        entry = await self.store.get(entry_id)
        if entry is None:
            raise EntryNotFoundException(entry_id)
        return entry

    async def list_entries(self, **filters) -> List[LedgerEntry]:
        return await self.store.list_entries(**filters)
