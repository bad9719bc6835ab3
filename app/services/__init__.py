"""
Sanprinon Lite - Services Package

Business logic services.
"""

from app.services.account_registry import AccountRegistry, seed_default_chart_of_accounts
from app.services.ledger_store import LedgerStore
from app.services.ledger_service import EntryParams, LedgerService, TransactionUnit
from app.services.balance_service import BalanceService
from app.services.job_trigger import JobTrigger
from app.services.recurring_charge_service import RecurringChargeScheduler, SchedulerRunResult
from app.services.lease_billing_service import DepositDeduction, LeaseBillingService
from app.services.expense_service import ExpenseService
from app.services.recurring_expense_service import RecurringExpenseScheduler
from app.services.reconciliation_service import ReconciliationService
from app.services.payment_webhook_service import PaymentWebhookService, verify_payment_signature

__all__ = [
    # Ledger core
    "AccountRegistry",
    "seed_default_chart_of_accounts",
    "LedgerStore",
    "EntryParams",
    "LedgerService",
    "TransactionUnit",
    "BalanceService",
    # Billing
    "JobTrigger",
    "RecurringChargeScheduler",
    "SchedulerRunResult",
    "DepositDeduction",
    "LeaseBillingService",
    # Expenses
    "ExpenseService",
    "RecurringExpenseScheduler",
    # Banking
    "ReconciliationService",
    "PaymentWebhookService",
    "verify_payment_signature",
]
