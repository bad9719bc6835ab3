"""
Sanprinon Lite - SQLAlchemy Models Package

This package contains all database models for the application.
Importing it registers every table on Base.metadata and installs the
append-only guards.
"""

from app.models.base import BaseModel, CreatedAtMixin, TimestampMixin
from app.models.accounting import (
    AccountType,
    ChartOfAccounts,
    EntryDirection,
    EntryStatus,
    LedgerEntry,
    NORMAL_BALANCES,
)
from app.models.lease import LateFeeType, Lease, LeaseStatus, ScheduledCharge
from app.models.expense import PendingExpense, PendingExpenseStatus, ScheduledExpense
from app.models.cron import CronLog, CronRunStatus
from app.models.reconciliation import (
    BankAccount,
    MatchConfidence,
    Reconciliation,
    ReconciliationLine,
    ReconciliationLineStatus,
    ReconciliationStatus,
)
from app.models.webhook import WebhookEvent, WebhookEventStatus
from app.models import guards  # noqa: F401

__all__ = [
    "BaseModel",
    "CreatedAtMixin",
    "TimestampMixin",
    # Accounting
    "AccountType",
    "ChartOfAccounts",
    "EntryDirection",
    "EntryStatus",
    "LedgerEntry",
    "NORMAL_BALANCES",
    # Leases
    "LateFeeType",
    "Lease",
    "LeaseStatus",
    "ScheduledCharge",
    # Expenses
    "PendingExpense",
    "PendingExpenseStatus",
    "ScheduledExpense",
    # Scheduler
    "CronLog",
    "CronRunStatus",
    # Reconciliation
    "BankAccount",
    "MatchConfidence",
    "Reconciliation",
    "ReconciliationLine",
    "ReconciliationLineStatus",
    "ReconciliationStatus",
    # Webhooks
    "WebhookEvent",
    "WebhookEventStatus",
]
