"""
Sanprinon Lite - Account Registry

Chart-of-accounts lookup used by every posting path.
"""

from typing import Dict, List, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.accounting import (
    AccountType, ChartOfAccounts, NORMAL_BALANCES,
)
from app.utils.error_handling import (
    AccountInactiveException,
    AccountNotFoundException,
    AccountTypeMismatchException,
)


DEFAULT_CHART_OF_ACCOUNTS = [
    # ASSETS
    ("1000", "Operating Cash", AccountType.ASSET),
    ("1001", "Cash in Transit", AccountType.ASSET),
    ("1200", "Accounts Receivable", AccountType.ASSET),
    # LIABILITIES
    ("2100", "Security Deposits Held", AccountType.LIABILITY),
    # EQUITY
    ("3000", "Owner Equity", AccountType.EQUITY),
    # INCOME
    ("4000", "Rental Income", AccountType.INCOME),
    ("4010", "Late Fees", AccountType.INCOME),
    ("4020", "Utility Reimbursement", AccountType.INCOME),
    ("4030", "Parking Income", AccountType.INCOME),
    ("4040", "Pet Fees", AccountType.INCOME),
    ("4050", "Storage Income", AccountType.INCOME),
    ("4060", "Application Fees", AccountType.INCOME),
    ("4100", "Other Income", AccountType.INCOME),
    # EXPENSES
    ("5000", "Repairs & Maintenance", AccountType.EXPENSE),
    ("5010", "Utilities", AccountType.EXPENSE),
    ("5020", "Insurance", AccountType.EXPENSE),
    ("5030", "Property Taxes", AccountType.EXPENSE),
    ("5040", "Management Fees", AccountType.EXPENSE),
    ("5050", "Legal & Professional", AccountType.EXPENSE),
    ("5060", "Advertising & Marketing", AccountType.EXPENSE),
    ("5070", "Landscaping", AccountType.EXPENSE),
    ("5080", "Cleaning & Janitorial", AccountType.EXPENSE),
    ("5090", "Supplies", AccountType.EXPENSE),
    ("5100", "Other Expenses", AccountType.EXPENSE),
]


class AccountRegistry:
    """Chart-of-accounts lookups, cached for the lifetime of one session."""

    def __init__(self, db: AsyncSession):
        self.db = db
        self._cache: Dict[str, ChartOfAccounts] = {}

    async def get(self, code: str) -> Optional[ChartOfAccounts]:
        if code in self._cache:
            return self._cache[code]
        account = await self.db.get(ChartOfAccounts, code)
        if account is not None:
            self._cache[code] = account
        return account

    async def require(self, code: str) -> ChartOfAccounts:
        """Resolve an account or raise AccountNotFound."""
        account = await self.get(code)
        if account is None:
            raise AccountNotFoundException(code)
        return account

    async def require_postable(self, code: str) -> ChartOfAccounts:
        """Resolve an account that accepts new postings."""
        account = await self.require(code)
        if not account.active:
            raise AccountInactiveException(code)
        return account

    async def require_type(self, code: str, account_type: AccountType) -> ChartOfAccounts:
        """Resolve a postable account of the given type."""
        account = await self.require_postable(code)
        if account.account_type != account_type:
            raise AccountTypeMismatchException(code, account_type.value, account.account_type.value)
        return account

    async def list_accounts(
        self,
        account_type: Optional[AccountType] = None,
        active_only: bool = True,
    ) -> List[ChartOfAccounts]:
        query = select(ChartOfAccounts)
        if account_type:
            query = query.where(ChartOfAccounts.account_type == account_type)
        if active_only:
            query = query.where(ChartOfAccounts.active.is_(True))
        query = query.order_by(ChartOfAccounts.code)

        result = await self.db.execute(query)
        accounts = list(result.scalars().all())
        for account in accounts:
            self._cache[account.code] = account
        return accounts


async def seed_default_chart_of_accounts(db: AsyncSession) -> List[ChartOfAccounts]:
    """Insert any missing default accounts. Existing rows are left alone."""
    existing = set((await db.execute(select(ChartOfAccounts.code))).scalars().all())
    created = []
    for code, name, account_type in DEFAULT_CHART_OF_ACCOUNTS:
        if code in existing:
            continue
        account = ChartOfAccounts(
            code=code,
            name=name,
            account_type=account_type,
            normal_balance=NORMAL_BALANCES[account_type],
            active=True,
        )
        db.add(account)
        created.append(account)
    await db.flush()
    return created
