"""
Sanprinon Lite - Routers Package

FastAPI route handlers.

Routers:
- ledger: Entry posting, voids, accounts and balances
- billing: Manual rent and late fee charges, payments and deposits
- expenses: Manual expenses and pending expense review
- reports: Trial balance and tenant balances
- cron: Daily charge and expense triggers and run log
- reconciliations: Bank reconciliation
- webhooks: Payment-processor events
"""

from app.routers import (
    ledger,
    billing,
    expenses,
    reports,
    cron,
    reconciliations,
    webhooks,
)

__all__ = [
    "ledger",
    "billing",
    "expenses",
    "reports",
    "cron",
    "reconciliations",
    "webhooks",
]
