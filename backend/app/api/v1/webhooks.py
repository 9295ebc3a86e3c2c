"""Razorpay webhook endpoint — receives and processes signed provider events."""

import json
import logging

from fastapi import APIRouter, Depends, HTTPException, Request, status
from razorpay.errors import SignatureVerificationError
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps import get_db
from app.billing.razorpay_client import verify_webhook_signature
from app.billing.webhooks import EVENT_HANDLERS, get_event_entity

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/webhooks", tags=["webhooks"])


@router.post("/razorpay")
async def razorpay_webhook(request: Request, db: AsyncSession = Depends(get_db)) -> dict[str, str]:
    """Receive and process Razorpay webhook events."""
    # 1. Read raw body (MUST be raw bytes for signature verification)
    payload = await request.body()
    signature = request.headers.get("x-razorpay-signature", "")

    # 2. Verify signature before touching the payload
    try:
        verify_webhook_signature(payload, signature)
    except SignatureVerificationError as e:
        logger.warning("Webhook signature verification failed")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid signature",
        ) from e

    try:
        event = json.loads(payload)
    except ValueError as e:
        logger.warning("Invalid webhook payload")
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Invalid payload",
        ) from e
    if not isinstance(event, dict):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Invalid payload",
        )

    # 3. Dispatch to handler
    event_type = event.get("event")
    handler = EVENT_HANDLERS.get(event_type) if isinstance(event_type, str) else None
    if handler is None:
        logger.info("Unhandled webhook event type: %s", event_type)
        return {"status": "ignored"}

    logger.info("Processing webhook event: %s", event_type)

    try:
        await handler(db, get_event_entity(event))
        await db.commit()
    except Exception as e:
        await db.rollback()
        logger.exception("Error processing webhook event %s", event_type)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Webhook processing failed",
        ) from e

    return {"status": "processed"}
