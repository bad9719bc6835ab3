"""
Sanprinon Lite - Webhooks Router

Inbound payment-processor events.
"""

import json
import logging

from fastapi import APIRouter, Depends, HTTPException, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import Settings
from app.database import get_db
from app.dependencies import get_app_settings
from app.schemas.webhook import WebhookResult
from app.services.payment_webhook_service import PaymentWebhookService, verify_payment_signature
from app.utils.error_handling import InvalidSignatureException

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/webhooks", tags=["Webhooks"])

SIGNATURE_HEADER = "X-Payment-Signature"


@router.post("/payments", response_model=WebhookResult, include_in_schema=False)
async def payment_webhook(
    request: Request,
    db: AsyncSession = Depends(get_db),
    settings: Settings = Depends(get_app_settings),
):
    """
    Handle payment-processor events.

    Security:
    - Verifies X-Payment-Signature (HMAC-SHA256 of the raw body) when
      PAYMENT_WEBHOOK_SECRET is set
    - Uses constant-time comparison

    Redelivered events are acknowledged without posting anything. Failures
    return an error so the processor retries.
    """
    body = await request.body()

    webhook_secret = settings.payment_webhook_secret
    if webhook_secret:
        signature = request.headers.get(SIGNATURE_HEADER, "")
        if not verify_payment_signature(body, signature, webhook_secret):
            logger.warning("Payment webhook signature verification failed")
            raise InvalidSignatureException()
    elif settings.is_production:
        logger.warning(
            "SECURITY WARNING: payment webhook secret not configured. "
            "Set PAYMENT_WEBHOOK_SECRET in .env for production!"
        )

    try:
        event = json.loads(body or b"{}")
    except json.JSONDecodeError:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid JSON payload")
    if not isinstance(event, dict):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid JSON payload")

    logger.info(f"Payment webhook received: id={event.get('id')}, type={event.get('type')}")

    service = PaymentWebhookService(db, settings)
    return await service.handle_event(event)
