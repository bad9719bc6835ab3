"""
Sanprinon Lite - Balance Service

Balances are derived from POSTED ledger entries on every read; nothing is
cached on the account rows. All reports go through ``signed_amount`` so the
normal-balance sign convention lives in exactly one place.
"""

import uuid
from datetime import date
from decimal import Decimal
from typing import Dict, List, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.accounting import EntryDirection
from app.models.lease import Lease
from app.schemas.ledger import (
    AccountBalanceResponse,
    TenantBalance,
    TrialBalanceItem,
    TrialBalanceReport,
)
from app.services.account_registry import AccountRegistry
from app.services.ledger_store import LedgerStore
from app.utils.error_handling import to_cents

ZERO = Decimal("0.00")


def signed_amount(amount: Decimal, direction: EntryDirection, normal_balance: EntryDirection) -> Decimal:
    """Positive when the entry moves the account in its normal direction."""
    return amount if direction == normal_balance else -amount


def net_balance(totals: Dict[EntryDirection, Decimal], normal_balance: EntryDirection) -> Decimal:
    balance = ZERO
    for direction, amount in totals.items():
        balance += signed_amount(amount, direction, normal_balance)
    return to_cents(balance)


class BalanceService:
    """Read-only balance computations over the ledger."""

    def __init__(
        self,
        db: AsyncSession,
        registry: Optional[AccountRegistry] = None,
        receivable_account_code: str = "1200",
    ):
        self.db = db
        self.registry = registry or AccountRegistry(db)
        self.store = LedgerStore(db)
        self.receivable_account_code = receivable_account_code

    async def get_account_balance(self, account_code: str, as_of: Optional[date] = None) -> Decimal:
        """
        Balance of one account from its POSTED entries.

        Entries in the account's normal direction add, the others subtract.
        VOID entries never count.

        Raises:
            AccountNotFoundException: unknown account code
        """
        account = await self.registry.require(account_code)
        totals = await self.store.sum_by_direction(account_code=account_code, as_of=as_of)
        by_direction = {direction: amount for (_, direction), amount in totals.items()}
        return net_balance(by_direction, account.normal_balance)

    async def get_account_balance_report(
        self, account_code: str, as_of: Optional[date] = None
    ) -> AccountBalanceResponse:
        account = await self.registry.require(account_code)
        balance = await self.get_account_balance(account_code, as_of)
        return AccountBalanceResponse(
            account_code=account.code,
            account_name=account.name,
            account_type=account.account_type,
            normal_balance=account.normal_balance,
            as_of=as_of,
            balance=balance,
        )

    async def get_lease_balance(
        self,
        lease_id: uuid.UUID,
        account_code: Optional[str] = None,
        as_of: Optional[date] = None,
    ) -> Decimal:
        """Balance of one account restricted to a lease (receivable by default)."""
        account_code = account_code or self.receivable_account_code
        account = await self.registry.require(account_code)
        totals = await self.store.sum_by_direction(
            account_code=account_code, as_of=as_of, lease_id=lease_id
        )
        by_direction = {direction: amount for (_, direction), amount in totals.items()}
        return net_balance(by_direction, account.normal_balance)

    async def get_trial_balance(
        self,
        as_of: Optional[date] = None,
        include_zero: bool = False,
    ) -> TrialBalanceReport:
        """Generate trial balance report."""
        accounts = await self.registry.list_accounts(active_only=False)
        totals = await self.store.sum_by_direction(as_of=as_of)

        per_account: Dict[str, Dict[EntryDirection, Decimal]] = {}
        for (code, direction), amount in totals.items():
            per_account.setdefault(code, {})[direction] = amount

        items = []
        total_debits = ZERO
        total_credits = ZERO

        for account in accounts:
            balance = net_balance(per_account.get(account.code, {}), account.normal_balance)

            # Show the balance on its natural side; negative balances flip
            if account.normal_balance == EntryDirection.DR:
                debit_balance = balance if balance >= 0 else ZERO
                credit_balance = -balance if balance < 0 else ZERO
            else:
                credit_balance = balance if balance >= 0 else ZERO
                debit_balance = -balance if balance < 0 else ZERO

            if not include_zero and debit_balance == 0 and credit_balance == 0:
                continue

            items.append(TrialBalanceItem(
                account_code=account.code,
                account_name=account.name,
                account_type=account.account_type,
                debit_balance=debit_balance,
                credit_balance=credit_balance,
            ))
            total_debits += debit_balance
            total_credits += credit_balance

        return TrialBalanceReport(
            as_of_date=as_of,
            total_debits=total_debits,
            total_credits=total_credits,
            is_balanced=total_debits == total_credits,
            items=items,
        )

    async def get_tenant_balances(
        self,
        as_of: Optional[date] = None,
        include_zero: bool = False,
    ) -> List[TenantBalance]:
        """Receivable balance per lease."""
        account = await self.registry.require(self.receivable_account_code)
        totals = await self.store.sum_by_lease(self.receivable_account_code, as_of=as_of)

        leases: Dict[uuid.UUID, Lease] = {}
        if totals:
            result = await self.db.execute(select(Lease).where(Lease.id.in_(list(totals))))
            leases = {lease.id: lease for lease in result.scalars().all()}

        balances = []
        for lease_id, by_direction in totals.items():
            balance = net_balance(by_direction, account.normal_balance)
            if not include_zero and balance == 0:
                continue
            lease = leases.get(lease_id)
            balances.append(TenantBalance(
                lease_id=lease_id,
                tenant_name=lease.tenant_name if lease else None,
                unit_name=lease.unit_name if lease else None,
                property_name=lease.property_name if lease else None,
                balance=balance,
            ))

        balances.sort(key=lambda b: b.balance, reverse=True)
        return balances
