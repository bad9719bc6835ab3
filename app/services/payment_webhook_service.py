"""
Sanprinon Lite - Payment Webhook Service

Maps payment-processor events to ledger postings.

Events arrive at least once. Each delivery is recorded in webhook_events
keyed by the processor's event id, and every ledger leg carries a key
derived from that id, so a redelivered event posts nothing new.

Supported events:
- payment_intent.succeeded: ACH settlement, DR cash / CR cash in transit
- payment_intent.payment_failed: reversal, DR receivable / CR cash in transit
"""

import hashlib
import hmac
import logging
import uuid
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Dict, List, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import Settings
from app.models.accounting import EntryDirection
from app.models.lease import Lease
from app.models.webhook import WebhookEvent, WebhookEventStatus
from app.schemas.webhook import WebhookResult
from app.services.idempotency import payment_event_key
from app.services.ledger_service import EntryParams, LedgerService
from app.utils.error_handling import (
    DuplicateEntryException,
    LeaseNotFoundException,
    ValidationException,
    to_cents,
)

logger = logging.getLogger(__name__)

PAYMENT_SUCCEEDED = "payment_intent.succeeded"
PAYMENT_FAILED = "payment_intent.payment_failed"

POSTED_BY = "payment-webhook"


def verify_payment_signature(payload: bytes, signature: str, secret: str) -> bool:
    """
    Verify a webhook signature using HMAC-SHA256.

    Args:
        payload: Raw request body bytes
        signature: X-Payment-Signature header value (hex digest)
        secret: Shared webhook secret

    Returns:
        True if signature is valid, False otherwise
    """
    if not signature or not secret:
        return False

    expected = hmac.new(
        secret.encode("utf-8"),
        payload,
        hashlib.sha256,
    ).hexdigest()

    # Constant-time comparison
    return hmac.compare_digest(expected, signature)


def cents_to_amount(cents: Any) -> Decimal:
    return to_cents(Decimal(str(cents)) / 100)


class PaymentWebhookService:
    """Applies payment-processor events to the ledger exactly once."""

    def __init__(self, db: AsyncSession, settings: Settings):
        self.db = db
        self.settings = settings
        self.ledger = LedgerService(db)

    async def handle_event(self, event: Dict[str, Any]) -> WebhookResult:
        event_id = event.get("id")
        event_type = event.get("type")
        if not event_id or not event_type:
            raise ValidationException("Webhook event requires 'id' and 'type'", field="id")

        record = await self._get_record(event_id)
        if record is not None and record.processed:
            logger.info(f"Webhook {event_id} already processed")
            return WebhookResult(event_id=event_id, event_type=event_type, status="already_processed")

        obj = (event.get("data") or {}).get("object") or {}
        metadata = obj.get("metadata") or {}
        lease_ref = metadata.get("leaseId") or metadata.get("lease_id")

        if record is None:
            record = WebhookEvent(event_id=event_id, event_type=event_type, raw_event=event)
            self.db.add(record)
        record.status = WebhookEventStatus.RECEIVED
        record.payment_intent_id = obj.get("id")
        record.amount = cents_to_amount(obj["amount"]) if obj.get("amount") is not None else None
        await self.db.flush()

        if event_type not in (PAYMENT_SUCCEEDED, PAYMENT_FAILED):
            return await self._finish(record, WebhookEventStatus.IGNORED, "Unhandled event type")
        if not lease_ref:
            return await self._finish(record, WebhookEventStatus.IGNORED, "No lease reference")

        try:
            lease_id = self._parse_lease_id(lease_ref)
            record.lease_id = lease_id
            if await self.db.get(Lease, lease_id) is None:
                raise LeaseNotFoundException(lease_id)
            if record.amount is None or record.amount <= 0:
                raise ValidationException("Payment amount is missing", field="amount")

            if event_type == PAYMENT_SUCCEEDED:
                entry_ids = await self._post_settlement(record, lease_id)
            else:
                reason = (obj.get("last_payment_error") or {}).get("message") or "Unknown error"
                entry_ids = await self._post_reversal(record, lease_id, reason)
        except Exception as e:
            logger.error(f"Webhook {event_id} failed: {e}", exc_info=True)
            await self.db.rollback()
            await self._mark_failed(event_id, event_type, event, e)
            raise

        return await self._finish(record, WebhookEventStatus.PROCESSED, entry_ids=entry_ids)

    async def _get_record(self, event_id: str) -> Optional[WebhookEvent]:
        result = await self.db.execute(
            select(WebhookEvent).where(WebhookEvent.event_id == event_id)
        )
        return result.scalar_one_or_none()

    @staticmethod
    def _parse_lease_id(lease_ref: Any) -> uuid.UUID:
        try:
            return uuid.UUID(str(lease_ref))
        except ValueError:
            raise ValidationException(f"Invalid lease reference: {lease_ref}", field="leaseId")

    async def _post_pair(
        self,
        record: WebhookEvent,
        lease_id: uuid.UUID,
        debit_code: str,
        credit_code: str,
        description: str,
    ) -> List[uuid.UUID]:
        legs = []
        for code, direction in ((debit_code, EntryDirection.DR), (credit_code, EntryDirection.CR)):
            legs.append(EntryParams(
                account_code=code,
                amount=record.amount,
                direction=direction,
                description=description,
                lease_id=lease_id,
                posted_by=POSTED_BY,
                idempotency_key=payment_event_key(record.event_id, direction.value),
            ))
        try:
            debit, credit = await self.ledger.post_double_entry(*legs)
        except DuplicateEntryException:
            # Legs from an earlier delivery are already in the ledger
            logger.info(f"Webhook {record.event_id} postings already exist")
            return []
        return [debit.id, credit.id]

    async def _post_settlement(self, record: WebhookEvent, lease_id: uuid.UUID) -> List[uuid.UUID]:
        return await self._post_pair(
            record,
            lease_id,
            debit_code=self.settings.cash_account_code,
            credit_code=self.settings.cash_in_transit_account_code,
            description=f"ACH Settlement Confirmed: {record.payment_intent_id}",
        )

    async def _post_reversal(self, record: WebhookEvent, lease_id: uuid.UUID, reason: str) -> List[uuid.UUID]:
        return await self._post_pair(
            record,
            lease_id,
            debit_code=self.settings.receivable_account_code,
            credit_code=self.settings.cash_in_transit_account_code,
            description=f"REVERSED: Payment failed - {reason} [{record.payment_intent_id}]",
        )

    async def _finish(
        self,
        record: WebhookEvent,
        status: WebhookEventStatus,
        message: Optional[str] = None,
        entry_ids: Optional[List[uuid.UUID]] = None,
    ) -> WebhookResult:
        record.status = status
        record.processed = True
        record.processed_at = datetime.now(timezone.utc)
        record.error_message = None
        await self.db.commit()

        logger.info(f"Webhook {record.event_id} ({record.event_type}) {status.value}")
        return WebhookResult(
            event_id=record.event_id,
            event_type=record.event_type,
            status=status.value,
            message=message,
            entry_ids=entry_ids or [],
        )

    async def _mark_failed(self, event_id: str, event_type: str, event: Dict[str, Any], error: Exception) -> None:
        record = await self._get_record(event_id)
        if record is None:
            record = WebhookEvent(event_id=event_id, event_type=event_type, raw_event=event)
            self.db.add(record)
        record.status = WebhookEventStatus.FAILED
        record.processed = False
        record.error_message = str(error)[:1000]
        await self.db.commit()
