"""Razorpay webhook event handlers — apply subscription and payment events locally."""

import logging
from collections.abc import Awaitable, Callable
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession

from app.billing.status import SubscriptionStatus
from app.database import utcnow
from app.services.profile_service import activate_profile, deactivate_profile
from app.services.subscription_service import (
    get_subscription_by_razorpay_id,
    set_subscription_status,
    upsert_subscription_from_provider,
)

logger = logging.getLogger(__name__)

WebhookHandler = Callable[[AsyncSession, dict[str, Any]], Awaitable[None]]


def get_event_entity(event: dict[str, Any]) -> dict[str, Any]:
    """Return the subscription entity, or the payment entity for payment.* events."""
    payload = event.get("payload") or {}
    # subscription.* payloads may also carry the charging payment
    key = "payment" if str(event.get("event", "")).startswith("payment.") else "subscription"
    wrapper = payload.get(key) or {}
    return wrapper.get("entity") or {}


def _notes(entity: dict[str, Any]) -> dict[str, Any]:
    notes = entity.get("notes")
    return notes if isinstance(notes, dict) else {}


async def handle_subscription_activated(db: AsyncSession, entity: dict[str, Any]) -> None:
    """subscription.activated — upsert as active with a fresh period, grant access."""
    subscription_id = entity.get("id")
    notes = _notes(entity)
    user_id = notes.get("userId")

    if not subscription_id or not user_id:
        logger.error("subscription.activated without subscription id or userId note, skipping")
        return

    subscription = await upsert_subscription_from_provider(
        db,
        razorpay_subscription_id=subscription_id,
        user_id=str(user_id),
        plan_id=entity.get("plan_id", ""),
        plan_type=notes.get("planType"),
        status=SubscriptionStatus.ACTIVE,
        now=utcnow(),
    )
    await activate_profile(db, str(user_id), subscription.plan_type, subscription_id)
    logger.info("Subscription activated: %s (user %s)", subscription_id, user_id)


async def handle_subscription_pending(db: AsyncSession, entity: dict[str, Any]) -> None:
    """subscription.pending — charge is being retried; mirror as pending."""
    subscription_id = entity.get("id")
    user_id = _notes(entity).get("userId")

    if not subscription_id or not user_id:
        logger.info("subscription.pending without subscription id or userId note, skipping")
        return

    await upsert_subscription_from_provider(
        db,
        razorpay_subscription_id=subscription_id,
        user_id=str(user_id),
        plan_id=entity.get("plan_id", ""),
        plan_type=_notes(entity).get("planType"),
        status=SubscriptionStatus.PENDING,
        now=utcnow(),
    )
    logger.info("Subscription pending: %s", subscription_id)


async def _end_subscription(
    db: AsyncSession, entity: dict[str, Any], new_status: SubscriptionStatus
) -> None:
    subscription_id = entity.get("id")
    if not subscription_id:
        logger.warning("%s event without subscription id, skipping", new_status.value)
        return

    subscription = await get_subscription_by_razorpay_id(db, subscription_id)
    if subscription is None:
        logger.warning(
            "No local subscription found for Razorpay subscription %s (%s event)",
            subscription_id,
            new_status.value,
        )
        return

    await set_subscription_status(db, subscription, new_status)
    await deactivate_profile(db, subscription.user_id, subscription.razorpay_subscription_id)


async def handle_subscription_halted(db: AsyncSession, entity: dict[str, Any]) -> None:
    """subscription.halted — retries exhausted; suspend access."""
    await _end_subscription(db, entity, SubscriptionStatus.HALTED)


async def handle_subscription_cancelled(db: AsyncSession, entity: dict[str, Any]) -> None:
    """subscription.cancelled — suspend access."""
    await _end_subscription(db, entity, SubscriptionStatus.CANCELLED)


async def handle_payment_captured(db: AsyncSession, entity: dict[str, Any]) -> None:
    """payment.captured — record the payment and force the subscription active."""
    payment_id = entity.get("id")
    subscription_id = entity.get("subscription_id")

    if not subscription_id:
        logger.info("Payment %s not associated with a subscription, skipping", payment_id)
        return

    subscription = await get_subscription_by_razorpay_id(db, subscription_id)
    if subscription is None:
        logger.warning(
            "No local subscription found for Razorpay subscription %s (payment %s captured)",
            subscription_id,
            payment_id,
        )
        return

    subscription.razorpay_payment_id = payment_id
    await set_subscription_status(db, subscription, SubscriptionStatus.ACTIVE)
    logger.info("Payment %s captured for subscription %s", payment_id, subscription_id)


async def handle_payment_failed(db: AsyncSession, entity: dict[str, Any]) -> None:
    """payment.failed — halt the subscription and suspend access."""
    subscription_id = entity.get("subscription_id")

    if not subscription_id:
        logger.info("Failed payment %s not associated with a subscription, skipping", entity.get("id"))
        return

    subscription = await get_subscription_by_razorpay_id(db, subscription_id)
    if subscription is None:
        logger.warning(
            "No local subscription found for Razorpay subscription %s (payment failed)",
            subscription_id,
        )
        return

    await set_subscription_status(db, subscription, SubscriptionStatus.HALTED)
    await deactivate_profile(db, subscription.user_id, subscription.razorpay_subscription_id)
    logger.info("Payment failed: subscription %s halted", subscription_id)


# Map event types to handler functions
EVENT_HANDLERS: dict[str, WebhookHandler] = {
    "subscription.activated": handle_subscription_activated,
    "subscription.pending": handle_subscription_pending,
    "subscription.halted": handle_subscription_halted,
    "subscription.cancelled": handle_subscription_cancelled,
    "payment.captured": handle_payment_captured,
    "payment.failed": handle_payment_failed,
}
