"""Subscription service — persistence operations for subscription history rows."""

import logging
from datetime import datetime

from sqlalchemy import and_, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.billing.status import (
    DEFAULT_PLAN_TYPE,
    PAID_STATUSES,
    PENDING_STATUSES,
    SubscriptionStatus,
    compute_end_date,
)
from app.models.subscription import Subscription

logger = logging.getLogger(__name__)


async def get_subscription_by_razorpay_id(
    db: AsyncSession, razorpay_subscription_id: str
) -> Subscription | None:
    """Look up a subscription by Razorpay subscription ID (used by webhooks)."""
    result = await db.execute(
        select(Subscription).where(
            Subscription.razorpay_subscription_id == razorpay_subscription_id
        )
    )
    return result.scalar_one_or_none()


async def get_owned_subscription(
    db: AsyncSession, razorpay_subscription_id: str, user_id: str
) -> Subscription | None:
    """Look up a subscription only if it belongs to ``user_id``."""
    result = await db.execute(
        select(Subscription).where(
            Subscription.razorpay_subscription_id == razorpay_subscription_id,
            Subscription.user_id == user_id,
        )
    )
    return result.scalar_one_or_none()


async def get_unexpired_active_subscription(
    db: AsyncSession, user_id: str, now: datetime
) -> Subscription | None:
    """Return an ``active`` subscription whose paid period has not ended yet."""
    result = await db.execute(
        select(Subscription)
        .where(
            Subscription.user_id == user_id,
            Subscription.status == SubscriptionStatus.ACTIVE.value,
            Subscription.end_date >= now,
        )
        .order_by(Subscription.created_at.desc())
        .limit(1)
    )
    return result.scalar_one_or_none()


async def get_current_paid_subscription(
    db: AsyncSession, user_id: str, now: datetime
) -> Subscription | None:
    """Most recent active/completed subscription with an end date in the future."""
    result = await db.execute(
        select(Subscription)
        .where(
            Subscription.user_id == user_id,
            Subscription.status.in_(PAID_STATUSES),
            Subscription.end_date >= now,
        )
        .order_by(Subscription.created_at.desc())
        .limit(1)
    )
    return result.scalar_one_or_none()


async def get_latest_pending_subscription(
    db: AsyncSession, user_id: str
) -> Subscription | None:
    """Most recent subscription still waiting on payment (created/authenticated/pending)."""
    result = await db.execute(
        select(Subscription)
        .where(
            Subscription.user_id == user_id,
            Subscription.status.in_(PENDING_STATUSES),
        )
        .order_by(Subscription.created_at.desc())
        .limit(1)
    )
    return result.scalar_one_or_none()


async def get_display_subscription(
    db: AsyncSession, user_id: str, now: datetime
) -> Subscription | None:
    """Subscription to show on the profile page.

    Active or freshly created rows, plus cancelled rows whose paid period is
    still running.
    """
    result = await db.execute(
        select(Subscription)
        .where(
            Subscription.user_id == user_id,
            or_(
                Subscription.status.in_(
                    (SubscriptionStatus.ACTIVE.value, SubscriptionStatus.CREATED.value)
                ),
                and_(
                    Subscription.status == SubscriptionStatus.CANCELLED.value,
                    Subscription.end_date >= now,
                ),
            ),
        )
        .order_by(Subscription.created_at.desc())
        .limit(1)
    )
    return result.scalar_one_or_none()


async def create_subscription_record(
    db: AsyncSession,
    *,
    user_id: str,
    plan_id: str,
    razorpay_subscription_id: str,
    status: str,
    plan_type: str,
    is_recurring: bool = False,
) -> Subscription:
    """Insert a new subscription history row mirroring a provider subscription."""
    subscription = Subscription(
        user_id=user_id,
        plan_id=plan_id,
        razorpay_subscription_id=razorpay_subscription_id,
        status=status,
        plan_type=plan_type,
        is_recurring=is_recurring,
    )
    db.add(subscription)
    await db.flush()
    logger.info(
        "Recorded subscription %s for user %s (plan_type=%s, status=%s)",
        razorpay_subscription_id,
        user_id,
        plan_type,
        status,
    )
    return subscription


async def activate_subscription(
    db: AsyncSession,
    subscription: Subscription,
    now: datetime,
    razorpay_payment_id: str | None = None,
) -> Subscription:
    """Mark a subscription active and set its paid period.

    A row that is already active keeps its period, so replaying the same
    activation (duplicate webhook, repeated verify) does not extend access.
    """
    already_active = (
        subscription.status == SubscriptionStatus.ACTIVE.value
        and subscription.end_date is not None
    )
    if not already_active:
        subscription.status = SubscriptionStatus.ACTIVE.value
        subscription.start_date = now
        subscription.end_date = compute_end_date(subscription.plan_type, now)
    if razorpay_payment_id:
        subscription.razorpay_payment_id = razorpay_payment_id
    await db.flush()

    if not already_active:
        logger.info(
            "Activated subscription %s until %s",
            subscription.razorpay_subscription_id,
            subscription.end_date,
        )
    return subscription


async def set_subscription_status(
    db: AsyncSession, subscription: Subscription, status: SubscriptionStatus
) -> Subscription:
    """Overwrite the mirrored status without touching the paid period."""
    previous = subscription.status
    subscription.status = status.value
    await db.flush()
    logger.info(
        "Subscription %s status %s → %s",
        subscription.razorpay_subscription_id,
        previous,
        status.value,
    )
    return subscription


async def upsert_subscription_from_provider(
    db: AsyncSession,
    *,
    razorpay_subscription_id: str,
    user_id: str,
    plan_id: str,
    plan_type: str | None,
    status: SubscriptionStatus,
    now: datetime,
    razorpay_payment_id: str | None = None,
) -> Subscription:
    """Create or update the local row for a provider subscription.

    ``active`` goes through :func:`activate_subscription`; any other status
    is mirrored as-is.
    """
    subscription = await get_subscription_by_razorpay_id(db, razorpay_subscription_id)
    if subscription is None:
        subscription = await create_subscription_record(
            db,
            user_id=user_id,
            plan_id=plan_id,
            razorpay_subscription_id=razorpay_subscription_id,
            status=status.value,
            plan_type=plan_type or DEFAULT_PLAN_TYPE,
        )

    if status is SubscriptionStatus.ACTIVE:
        return await activate_subscription(db, subscription, now, razorpay_payment_id)

    if razorpay_payment_id:
        subscription.razorpay_payment_id = razorpay_payment_id
    return await set_subscription_status(db, subscription, status)
