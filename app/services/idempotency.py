"""
Sanprinon Lite - Idempotency Keys

One derivation function per event category. A retried call for the same
logical event must produce the same key so the ledger store rejects the
second insert instead of duplicating it.

Keys fit the 100-character ledger column; anything longer is digested.
"""

import hashlib
import uuid
from datetime import date
from decimal import Decimal
from typing import Optional, Union

MAX_KEY_LENGTH = 100

IdLike = Union[str, uuid.UUID]


def _digest(*parts: object) -> str:
    joined = "|".join("" if p is None else str(p) for p in parts)
    return hashlib.sha256(joined.encode("utf-8")).hexdigest()


def _bounded(key: str, prefix: str) -> str:
    if len(key) <= MAX_KEY_LENGTH:
        return key
    return f"{prefix}:{_digest(key)}"


def billing_period(on: date) -> str:
    """YYYY-MM period token."""
    return f"{on.year:04d}-{on.month:02d}"


def entry_key(
    account_code: str,
    direction: str,
    entry_date: date,
    amount: Decimal,
    lease_id: Optional[IdLike],
    description: str,
) -> str:
    """Fallback key for a single entry posted without one."""
    return "entry:" + _digest(account_code, direction, entry_date.isoformat(), amount, lease_id, description)


def scheduled_charge_key(charge_id: IdLike, on: date, direction: str) -> str:
    """Recurring charge leg: one per charge, billing month and direction."""
    return _bounded(f"charge:{charge_id}:{billing_period(on)}:{direction}", "charge")


def rent_charge_key(lease_id: IdLike, on: date, direction: str) -> str:
    """Manual rent charge leg for a lease and billing month."""
    return _bounded(f"rent:{lease_id}:{billing_period(on)}:{direction}", "rent")


def payment_event_key(event_id: str, leg: str) -> str:
    """Ledger leg posted for an external payment-processor event."""
    return _bounded(f"payment:{event_id}:{leg}", "payment")


def manual_payment_key(
    lease_id: IdLike,
    payment_date: date,
    amount: Decimal,
    reference: Optional[str],
    leg: str,
) -> str:
    """Manually recorded payment leg; the reference disambiguates same-day payments."""
    return "pay:" + _digest(lease_id, payment_date.isoformat(), amount, reference, leg)


def late_fee_key(lease_id: IdLike, on: date, direction: str) -> str:
    """Late fee leg: at most one fee per lease and billing month."""
    return _bounded(f"late-fee:{lease_id}:{billing_period(on)}:{direction}", "late-fee")


def deposit_receipt_key(
    lease_id: IdLike,
    received_on: date,
    amount: Decimal,
    reference: Optional[str],
    leg: str,
) -> str:
    """Security deposit received from a tenant."""
    return "deposit-in:" + _digest(lease_id, received_on.isoformat(), amount, reference, leg)


def deposit_return_key(lease_id: IdLike, returned_on: date, reference: Optional[str], leg: str) -> str:
    """Leg of a deposit return; deductions use one leg name per deduction."""
    return "deposit-out:" + _digest(lease_id, returned_on.isoformat(), reference, leg)


def expense_key(
    account_code: str,
    entry_date: date,
    amount: Decimal,
    description: str,
    reference: Optional[str],
    leg: str,
) -> str:
    """Manually recorded expense leg."""
    return "expense:" + _digest(account_code, entry_date.isoformat(), amount, description, reference, leg)


def scheduled_expense_key(expense_id: IdLike, on: date, direction: str) -> str:
    """Recurring expense leg: one per scheduled expense, month and direction."""
    return _bounded(f"sched-expense:{expense_id}:{billing_period(on)}:{direction}", "sched-expense")
