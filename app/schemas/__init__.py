"""
Sanprinon Lite - Schemas Package

Pydantic schemas for request/response validation.
"""

from app.schemas.ledger import (
    AccountBalanceResponse,
    AccountResponse,
    BalancedEntriesCreate,
    DoubleEntryCreate,
    LedgerEntryCreate,
    LedgerEntryResponse,
    PostingResponse,
    TenantBalance,
    TrialBalanceItem,
    TrialBalanceReport,
    VoidRequest,
)
from app.schemas.billing import (
    BillingPostingResponse,
    ChargeLateFeeRequest,
    ChargeOutcomeResponse,
    ChargeRentRequest,
    CronLogResponse,
    CronRunResponse,
    DepositDeductionItem,
    DepositReceive,
    DepositReturnCreate,
    DepositReturnResponse,
    DepositStatusResponse,
    PaymentCreate,
)
from app.schemas.expense import (
    ExpenseCreate,
    ExpensePostingResponse,
    PendingExpenseResolve,
    PendingExpenseResponse,
)
from app.schemas.reconciliation import (
    ExcludeRequest,
    FinalizeRequest,
    MatchRequest,
    ReconciliationCreate,
    ReconciliationLineResponse,
    ReconciliationResponse,
    StatementLineCreate,
)
from app.schemas.webhook import WebhookResult

__all__ = [
    # Ledger
    "AccountBalanceResponse",
    "AccountResponse",
    "BalancedEntriesCreate",
    "DoubleEntryCreate",
    "LedgerEntryCreate",
    "LedgerEntryResponse",
    "PostingResponse",
    "TenantBalance",
    "TrialBalanceItem",
    "TrialBalanceReport",
    "VoidRequest",
    # Billing
    "BillingPostingResponse",
    "ChargeLateFeeRequest",
    "ChargeOutcomeResponse",
    "ChargeRentRequest",
    "CronLogResponse",
    "CronRunResponse",
    "DepositDeductionItem",
    "DepositReceive",
    "DepositReturnCreate",
    "DepositReturnResponse",
    "DepositStatusResponse",
    "PaymentCreate",
    # Expenses
    "ExpenseCreate",
    "ExpensePostingResponse",
    "PendingExpenseResolve",
    "PendingExpenseResponse",
    # Reconciliation
    "ExcludeRequest",
    "FinalizeRequest",
    "MatchRequest",
    "ReconciliationCreate",
    "ReconciliationLineResponse",
    "ReconciliationResponse",
    "StatementLineCreate",
    # Webhooks
    "WebhookResult",
]
