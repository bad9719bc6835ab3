"""
Sanprinon Lite - Chart of Accounts & Ledger Models

Double-entry ledger for property management:
- Chart of Accounts (Assets, Liabilities, Equity, Income, Expenses)
- Ledger entries, one row per debit or credit leg

This is the accounting backbone that rent charges, payments, webhooks and
reconciliations post to. Ledger rows are append-only; the only change allowed
after insert is the POSTED -> VOID transition (see app.models.guards).
"""

import uuid
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Optional

from sqlalchemy import (
    Boolean, CheckConstraint, Date, DateTime, ForeignKey, Index, Numeric,
    String, Text, Uuid, Enum as SQLEnum,
)
from sqlalchemy.orm import Mapped, mapped_column

from app.database import Base
from app.models.base import CreatedAtMixin, TimestampMixin


# =============================================================================
# ENUMS
# =============================================================================

class AccountType(str, Enum):
    """Main account types."""
    ASSET = "ASSET"
    LIABILITY = "LIABILITY"
    EQUITY = "EQUITY"
    INCOME = "INCOME"
    EXPENSE = "EXPENSE"


class EntryDirection(str, Enum):
    """Debit or credit leg. Also used as an account's normal balance."""
    DR = "DR"
    CR = "CR"


class EntryStatus(str, Enum):
    """Status of a ledger entry."""
    POSTED = "POSTED"
    VOID = "VOID"


# Normal balance per account type
NORMAL_BALANCES = {
    AccountType.ASSET: EntryDirection.DR,
    AccountType.EXPENSE: EntryDirection.DR,
    AccountType.LIABILITY: EntryDirection.CR,
    AccountType.EQUITY: EntryDirection.CR,
    AccountType.INCOME: EntryDirection.CR,
}


# =============================================================================
# CHART OF ACCOUNTS
# =============================================================================

class ChartOfAccounts(Base, TimestampMixin):
    """
    Chart of Accounts - Master list of all GL accounts.

    Account code ranges:
    - 1000-1999: Assets
    - 2000-2999: Liabilities
    - 3000-3999: Equity
    - 4000-4999: Income
    - 5000-5999: Expenses
    """

    __tablename__ = "chart_of_accounts"

    code: Mapped[str] = mapped_column(String(10), primary_key=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    account_type: Mapped[AccountType] = mapped_column(
        "type", SQLEnum(AccountType, name="accounttype"), nullable=False
    )
    normal_balance: Mapped[EntryDirection] = mapped_column(
        SQLEnum(EntryDirection, name="entrydirection"), nullable=False
    )
    # Controls visibility and postability, never deletability
    active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    def __repr__(self) -> str:
        return f"<Account {self.code} - {self.name}>"


# =============================================================================
# LEDGER ENTRIES
# =============================================================================

class LedgerEntry(Base, CreatedAtMixin):
    """
    One leg of a double-entry posting.

    Balance is a property of the transaction that posted the entry, not of
    a single row. Rows are never physically deleted.
    """

    __tablename__ = "ledger_entries"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    entry_date: Mapped[date] = mapped_column(Date, nullable=False)
    account_code: Mapped[str] = mapped_column(
        String(10), ForeignKey("chart_of_accounts.code"), nullable=False
    )
    amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    debit_credit: Mapped[EntryDirection] = mapped_column(
        SQLEnum(EntryDirection, name="entrydirection"), nullable=False
    )
    description: Mapped[str] = mapped_column(String(500), nullable=False)
    lease_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid, ForeignKey("leases.id"), nullable=True
    )
    posted_by: Mapped[str] = mapped_column(String(100), nullable=False, default="system")
    status: Mapped[EntryStatus] = mapped_column(
        SQLEnum(EntryStatus, name="entrystatus"),
        default=EntryStatus.POSTED,
        nullable=False,
    )
    idempotency_key: Mapped[str] = mapped_column(String(100), unique=True, nullable=False)

    # Void metadata
    voided_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    voided_by: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    void_reason: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    __table_args__ = (
        CheckConstraint("amount > 0", name="positive_amount"),
        Index("ix_ledger_entries_account_date", "account_code", "entry_date"),
        Index("ix_ledger_entries_lease", "lease_id"),
        Index("ix_ledger_entries_status", "status"),
    )

    @property
    def is_void(self) -> bool:
        return self.status == EntryStatus.VOID

    def __repr__(self) -> str:
        return (
            f"<LedgerEntry {self.account_code} {self.debit_credit.value} "
            f"{self.amount} ({self.status.value})>"
        )
