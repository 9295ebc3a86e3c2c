"""Subscription reconciler — keep local Subscription/Profile rows in line with Razorpay.

Razorpay is the source of truth. Every entry point (checkout, status polling,
redirect verification, cancel, resume) reads the provider's view where it
matters and applies it through the same status mapping, so repeated or
out-of-order calls converge on the same local state.
"""

import logging
from typing import Any

from fastapi import HTTPException, status
from razorpay.errors import SignatureVerificationError
from sqlalchemy.ext.asyncio import AsyncSession

from app.billing.plans import get_razorpay_plan_id
from app.billing.razorpay_client import (
    PaymentProviderError,
    cancel_subscription as cancel_provider_subscription,
    create_subscription as create_provider_subscription,
    fetch_subscription,
    verify_payment_signature,
)
from app.billing.status import (
    DEFAULT_PLAN_TYPE,
    PLAN_TYPES,
    StatusFamily,
    SubscriptionStatus,
    UnknownProviderStatus,
    family_of,
    parse_provider_status,
)
from app.config import settings
from app.database import utcnow
from app.schemas.billing import (
    CancelResponse,
    CheckoutResponse,
    ResumeResponse,
    SubscriptionStatusResponse,
    VerifyPaymentResponse,
)
from app.services.profile_service import activate_profile, get_profile, revoke_profile
from app.services.subscription_service import (
    activate_subscription,
    create_subscription_record,
    get_current_paid_subscription,
    get_latest_pending_subscription,
    get_owned_subscription,
    get_subscription_by_razorpay_id,
    get_unexpired_active_subscription,
    set_subscription_status,
    upsert_subscription_from_provider,
)

logger = logging.getLogger(__name__)

# Substrings of Razorpay cancel errors meaning the subscription is already finalized.
_FINALIZED_ERROR_MARKERS = ("completed", "already been processed")

COMPLETED_CANCEL_MESSAGE = "Subscription is completed. Your access will remain until the end date."


def _provider_error(e: PaymentProviderError) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_502_BAD_GATEWAY,
        detail=f"Payment provider error: {e}",
    )


def build_callback_url(subscription_id: str) -> str:
    """URL the frontend returns to after checkout, carrying the subscription ID."""
    return f"{settings.frontend_url.rstrip('/')}/subscribe?sessionId={subscription_id}"


def _notes(provider_sub: dict[str, Any]) -> dict[str, Any]:
    notes = provider_sub.get("notes")
    # Razorpay returns an empty list instead of an object when there are no notes.
    return notes if isinstance(notes, dict) else {}


def _parse_or_none(provider_sub: dict[str, Any]) -> SubscriptionStatus | None:
    try:
        return parse_provider_status(provider_sub.get("status"))
    except UnknownProviderStatus as e:
        logger.warning("Subscription %s: %s", provider_sub.get("id"), e)
        return None


# ---------------------------------------------------------------------------
# Checkout
# ---------------------------------------------------------------------------


async def start_checkout(
    db: AsyncSession, *, plan_type: str, user_id: str, email: str
) -> CheckoutResponse:
    """Create a single-cycle Razorpay subscription and record it locally."""
    if plan_type not in PLAN_TYPES:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Invalid plan type",
        )

    plan_id = get_razorpay_plan_id(plan_type)
    if not plan_id:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Invalid price id",
        )

    if await get_profile(db, user_id) is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Profile not found. Create a profile before subscribing.",
        )

    current = await get_unexpired_active_subscription(db, user_id, utcnow())
    if current is not None:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail={
                "message": (
                    "You already have an active subscription. You cannot subscribe to a "
                    "different plan. Please wait until your current subscription expires."
                ),
                "currentPlan": current.plan_type,
                "endDate": current.end_date.isoformat() if current.end_date else None,
            },
        )

    try:
        provider_sub = await create_provider_subscription(
            plan_id=plan_id,
            total_count=1,
            notes={"userId": user_id, "planType": plan_type, "email": email},
        )
    except PaymentProviderError as e:
        raise _provider_error(e) from e

    await create_subscription_record(
        db,
        user_id=user_id,
        plan_id=provider_sub["plan_id"],
        razorpay_subscription_id=provider_sub["id"],
        status=provider_sub["status"],
        plan_type=plan_type,
        is_recurring=False,
    )

    callback_url = build_callback_url(provider_sub["id"])
    logger.info("Checkout started for user %s: callback %s", user_id, callback_url)
    return CheckoutResponse(
        subscription_id=provider_sub["id"],
        plan_id=provider_sub["plan_id"],
        status=provider_sub["status"],
        url=provider_sub.get("short_url") or "",
        callback_url=callback_url,
    )


# ---------------------------------------------------------------------------
# Status polling
# ---------------------------------------------------------------------------


async def get_subscription_status(db: AsyncSession, user_id: str) -> SubscriptionStatusResponse:
    """Return the user's active / pending / inactive state, healing local rows on the way."""
    now = utcnow()

    paid = await get_current_paid_subscription(db, user_id, now)
    if paid is not None:
        profile = await get_profile(db, user_id)
        if profile is not None and (
            not profile.subscription_active
            or profile.razorpay_subscription_id != paid.razorpay_subscription_id
        ):
            logger.info(
                "Profile %s out of step with paid subscription %s; resyncing",
                user_id,
                paid.razorpay_subscription_id,
            )
            await activate_profile(db, user_id, paid.plan_type, paid.razorpay_subscription_id)
        return SubscriptionStatusResponse(
            is_active=True,
            is_pending=False,
            subscription_tier=paid.plan_type,
            subscription_id=paid.razorpay_subscription_id,
            end_date=paid.end_date,
            is_recurring=paid.is_recurring,
        )

    pending = await get_latest_pending_subscription(db, user_id)
    if pending is not None and pending.razorpay_subscription_id:
        try:
            provider_sub = await fetch_subscription(pending.razorpay_subscription_id)
        except PaymentProviderError:
            # Falls back to local state; a provider outage reads as "inactive".
            logger.warning(
                "Could not refresh subscription %s from Razorpay; using local state",
                pending.razorpay_subscription_id,
            )
        else:
            provider_status = _parse_or_none(provider_sub)
            if provider_status is not None:
                family = family_of(provider_status)
                if family is StatusFamily.PAID:
                    await activate_subscription(db, pending, now)
                    await activate_profile(
                        db, user_id, pending.plan_type, pending.razorpay_subscription_id
                    )
                    return SubscriptionStatusResponse(
                        is_active=True,
                        is_pending=False,
                        subscription_tier=pending.plan_type,
                        subscription_id=pending.razorpay_subscription_id,
                        end_date=pending.end_date,
                        is_recurring=pending.is_recurring,
                    )
                if family is StatusFamily.PENDING:
                    return SubscriptionStatusResponse(
                        is_active=False,
                        is_pending=True,
                        pending_subscription_id=pending.razorpay_subscription_id,
                        pending_plan_type=pending.plan_type,
                    )
                await set_subscription_status(db, pending, provider_status)

    return SubscriptionStatusResponse(is_active=False, is_pending=False)


# ---------------------------------------------------------------------------
# Payment verification
# ---------------------------------------------------------------------------


async def verify_redirect(
    db: AsyncSession, subscription_id: str, caller_id: str
) -> VerifyPaymentResponse:
    """Apply the provider's status after the user returns from the checkout page."""
    try:
        provider_sub = await fetch_subscription(subscription_id)
    except PaymentProviderError as e:
        raise _provider_error(e) from e

    notes = _notes(provider_sub)
    user_id = notes.get("userId")
    if not user_id:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="User ID not found in subscription",
        )
    user_id = str(user_id)
    if user_id != caller_id:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Subscription does not belong to this user",
        )
    plan_type = str(notes.get("planType") or DEFAULT_PLAN_TYPE)

    raw_status = provider_sub.get("status")
    provider_status = _parse_or_none(provider_sub)

    if provider_status in (SubscriptionStatus.CREATED, SubscriptionStatus.AUTHENTICATED):
        return VerifyPaymentResponse(
            success=False,
            pending=True,
            message="Subscription payment is pending",
            pending_subscription_id=provider_sub["id"],
        )

    if provider_status is SubscriptionStatus.CANCELLED:
        return VerifyPaymentResponse(
            success=False,
            message="Payment was not completed",
            pending_subscription_id=provider_sub["id"],
        )

    local = await get_subscription_by_razorpay_id(db, subscription_id)
    locally_cancelled = local is not None and local.status == SubscriptionStatus.CANCELLED.value
    if (
        provider_status is not None
        and family_of(provider_status) is StatusFamily.PAID
        and not locally_cancelled
    ):
        subscription = await upsert_subscription_from_provider(
            db,
            razorpay_subscription_id=provider_sub["id"],
            user_id=user_id,
            plan_id=provider_sub["plan_id"],
            plan_type=plan_type,
            status=SubscriptionStatus.ACTIVE,
            now=utcnow(),
        )
        await activate_profile(db, user_id, subscription.plan_type, provider_sub["id"])
        return VerifyPaymentResponse(success=True, message="Subscription verified and activated")

    return VerifyPaymentResponse(
        success=False,
        message=f"Subscription status: {raw_status}",
        status=str(raw_status) if raw_status is not None else None,
    )


async def verify_checkout_signature(
    db: AsyncSession,
    *,
    payment_id: str,
    subscription_id: str,
    signature: str,
    caller_id: str,
) -> VerifyPaymentResponse:
    """Activate a subscription from the signed fields Razorpay Checkout hands back."""
    try:
        verify_payment_signature(payment_id, subscription_id, signature)
    except SignatureVerificationError as e:
        logger.warning("Invalid checkout signature for subscription %s", subscription_id)
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid signature",
        ) from e

    try:
        provider_sub = await fetch_subscription(subscription_id)
    except PaymentProviderError as e:
        raise _provider_error(e) from e

    notes = _notes(provider_sub)
    if notes.get("userId") and str(notes["userId"]) != caller_id:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Subscription does not belong to this user",
        )
    plan_type = str(notes.get("planType") or DEFAULT_PLAN_TYPE)

    subscription = await upsert_subscription_from_provider(
        db,
        razorpay_subscription_id=subscription_id,
        user_id=caller_id,
        plan_id=provider_sub["plan_id"],
        plan_type=plan_type,
        status=SubscriptionStatus.ACTIVE,
        now=utcnow(),
        razorpay_payment_id=payment_id,
    )
    await activate_profile(db, caller_id, subscription.plan_type, subscription_id)
    return VerifyPaymentResponse(success=True, message="Payment verified and subscription activated")


# ---------------------------------------------------------------------------
# Cancel / resume
# ---------------------------------------------------------------------------


async def _own_or_404(db: AsyncSession, subscription_id: str, user_id: str):
    subscription = await get_owned_subscription(db, subscription_id, user_id)
    if subscription is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Subscription not found or does not belong to this user",
        )
    return subscription


async def cancel(db: AsyncSession, subscription_id: str, user_id: str) -> CancelResponse:
    """Cancel at Razorpay and locally.

    A subscription Razorpay already completed cannot be cancelled there; it is
    marked cancelled locally and access runs until its end date.
    """
    subscription = await _own_or_404(db, subscription_id, user_id)

    try:
        provider_sub = await fetch_subscription(subscription_id)
    except PaymentProviderError:
        logger.warning("Could not fetch subscription %s before cancelling; trying cancel", subscription_id)
    else:
        if provider_sub.get("status") == SubscriptionStatus.COMPLETED.value:
            logger.info("Subscription %s already completed at Razorpay", subscription_id)
            await set_subscription_status(db, subscription, SubscriptionStatus.CANCELLED)
            return CancelResponse(success=True, message=COMPLETED_CANCEL_MESSAGE)

    try:
        await cancel_provider_subscription(subscription_id)
    except PaymentProviderError as e:
        message = str(e).lower()
        if any(marker in message for marker in _FINALIZED_ERROR_MARKERS):
            logger.info("Razorpay reports subscription %s already finalized", subscription_id)
            await set_subscription_status(db, subscription, SubscriptionStatus.CANCELLED)
            return CancelResponse(success=True, message=COMPLETED_CANCEL_MESSAGE)
        raise _provider_error(e) from e

    await set_subscription_status(db, subscription, SubscriptionStatus.CANCELLED)
    await revoke_profile(db, user_id, subscription_id)
    return CancelResponse(success=True, message="Subscription cancelled successfully")


async def resume(db: AsyncSession, subscription_id: str, user_id: str) -> ResumeResponse:
    """Send the user back to payment, starting a fresh subscription if the old one ended."""
    subscription = await _own_or_404(db, subscription_id, user_id)

    try:
        provider_sub = await fetch_subscription(subscription_id)
    except PaymentProviderError as e:
        raise _provider_error(e) from e

    notes = _notes(provider_sub)
    if str(notes.get("userId")) != user_id:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Subscription does not belong to this user",
        )

    raw_status = provider_sub.get("status")
    provider_status = _parse_or_none(provider_sub)

    if provider_status is SubscriptionStatus.ACTIVE:
        await activate_subscription(db, subscription, utcnow())
        await activate_profile(db, user_id, subscription.plan_type, subscription_id)
        return ResumeResponse(message="Subscription is already active", url="/mealplan")

    if provider_status in (SubscriptionStatus.CANCELLED, SubscriptionStatus.EXPIRED):
        plan_type = str(notes.get("planType") or DEFAULT_PLAN_TYPE)
        total_count = provider_sub.get("total_count") or 1
        try:
            new_sub = await create_provider_subscription(
                plan_id=provider_sub["plan_id"],
                total_count=total_count,
                notes={
                    "userId": user_id,
                    "planType": plan_type,
                    "email": notes.get("email") or "",
                },
            )
        except PaymentProviderError as e:
            raise _provider_error(e) from e

        new_total = new_sub.get("total_count", total_count)
        await create_subscription_record(
            db,
            user_id=user_id,
            plan_id=provider_sub["plan_id"],
            razorpay_subscription_id=new_sub["id"],
            status=new_sub["status"],
            plan_type=plan_type,
            is_recurring=new_total == 0 or new_total > 1,
        )
        return ResumeResponse(
            message="New subscription created successfully",
            url=new_sub.get("short_url") or "",
            callback_url=build_callback_url(new_sub["id"]),
            subscription_id=new_sub["id"],
        )

    if provider_status is not None and family_of(provider_status) is StatusFamily.PENDING:
        return ResumeResponse(
            message="Payment URL generated successfully",
            url=provider_sub.get("short_url") or "",
            callback_url=build_callback_url(subscription_id),
        )

    return ResumeResponse(
        message=f"Subscription status is: {raw_status}. Cannot resume payment at this time.",
        status=str(raw_status) if raw_status is not None else None,
    )
