"""
Sanprinon Lite - Scheduled & Pending Expense Models

Recurring property expenses (landscaping, insurance, management fees) are
either posted automatically by the daily expense run or parked as a pending
expense until someone confirms the bill.
"""

import uuid
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Optional

from sqlalchemy import (
    Boolean, CheckConstraint, Date, DateTime, ForeignKey, Integer, Numeric,
    String, UniqueConstraint, Uuid, Enum as SQLEnum,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.models.base import BaseModel


class PendingExpenseStatus(str, Enum):
    """Review state of a pending expense."""
    PENDING = "PENDING"
    CONFIRMED = "CONFIRMED"
    SKIPPED = "SKIPPED"


class ScheduledExpense(BaseModel):
    """Recurring monthly expense for a property."""

    __tablename__ = "scheduled_expenses"

    property_name: Mapped[str] = mapped_column(String(255), nullable=False)
    vendor_name: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    description: Mapped[str] = mapped_column(String(255), nullable=False)
    amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    # Must resolve to an EXPENSE account at posting time
    account_code: Mapped[str] = mapped_column(String(10), nullable=False)
    charge_day: Mapped[int] = mapped_column(Integer, default=1, nullable=False)
    requires_confirmation: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    last_posted_date: Mapped[Optional[date]] = mapped_column(Date, nullable=True)

    __table_args__ = (
        CheckConstraint("charge_day >= 1 AND charge_day <= 28", name="charge_day_range"),
        CheckConstraint("amount > 0", name="positive_amount"),
    )

    def posted_in_month(self, today: date) -> bool:
        last = self.last_posted_date
        return last is not None and last.year == today.year and last.month == today.month


class PendingExpense(BaseModel):
    """A scheduled expense waiting for confirmation before it reaches the ledger."""

    __tablename__ = "pending_expenses"

    scheduled_expense_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("scheduled_expenses.id"), nullable=False, index=True
    )
    property_name: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str] = mapped_column(String(500), nullable=False)
    amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    account_code: Mapped[str] = mapped_column(String(10), nullable=False)
    due_date: Mapped[date] = mapped_column(Date, nullable=False)
    # YYYY-MM; one pending row per scheduled expense and month
    period: Mapped[str] = mapped_column(String(7), nullable=False)
    status: Mapped[PendingExpenseStatus] = mapped_column(
        SQLEnum(PendingExpenseStatus, name="pendingexpensestatus"),
        default=PendingExpenseStatus.PENDING,
        nullable=False,
    )
    resolved_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    resolved_by: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    ledger_entry_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid, ForeignKey("ledger_entries.id"), nullable=True
    )

    scheduled_expense: Mapped["ScheduledExpense"] = relationship(lazy="joined")

    __table_args__ = (
        UniqueConstraint("scheduled_expense_id", "period", name="uq_pending_expense_period"),
        CheckConstraint("amount > 0", name="positive_amount"),
    )
