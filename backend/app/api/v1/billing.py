"""Billing API endpoints — plans, Razorpay checkout, status, verification, cancel and resume."""

import logging

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps import ensure_same_user, get_current_identity, get_db
from app.auth.jwt import Identity
from app.billing import reconciler
from app.billing.plans import PLANS
from app.schemas.billing import (
    CancelResponse,
    CheckoutRequest,
    CheckoutResponse,
    PlanResponse,
    PlansListResponse,
    ResumeResponse,
    SubscriptionActionRequest,
    SubscriptionStatusResponse,
    VerifyPaymentRequest,
    VerifyPaymentResponse,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/billing", tags=["billing"])


@router.get("/plans", response_model=PlansListResponse)
async def list_plans() -> PlansListResponse:
    """List available plans (public — no auth required)."""
    return PlansListResponse(
        plans=[
            PlanResponse(
                plan_type=p.plan_type,
                display_name=p.display_name,
                amount=p.amount,
                currency=p.currency,
                description=p.description,
                features=list(p.features),
                is_popular=p.is_popular,
            )
            for p in PLANS.values()
        ]
    )


@router.post("/checkout", response_model=CheckoutResponse)
async def create_checkout(
    body: CheckoutRequest,
    db: AsyncSession = Depends(get_db),
    identity: Identity = Depends(get_current_identity),
) -> CheckoutResponse:
    """Create a Razorpay subscription and return its hosted checkout link."""
    ensure_same_user(identity, body.user_id)
    return await reconciler.start_checkout(
        db, plan_type=body.plan_type, user_id=body.user_id, email=body.email
    )


@router.get(
    "/status",
    response_model=SubscriptionStatusResponse,
    response_model_exclude_none=True,
)
async def get_status(
    user_id: str = Query(alias="userId", min_length=1),
    db: AsyncSession = Depends(get_db),
    identity: Identity = Depends(get_current_identity),
) -> SubscriptionStatusResponse:
    """Active / pending / inactive, refreshed from Razorpay when a checkout is in flight."""
    ensure_same_user(identity, user_id)
    return await reconciler.get_subscription_status(db, user_id)


@router.post(
    "/verify",
    response_model=VerifyPaymentResponse,
    response_model_exclude_none=True,
)
async def verify_payment(
    body: VerifyPaymentRequest,
    db: AsyncSession = Depends(get_db),
    identity: Identity = Depends(get_current_identity),
) -> VerifyPaymentResponse:
    """Verify a payment after checkout.

    Accepts either the signed ``razorpay_*`` fields from Razorpay Checkout or the
    ``sessionId``/``subscriptionId`` the short-URL redirect carries back.
    """
    if body.razorpay_payment_id and body.razorpay_subscription_id and body.razorpay_signature:
        return await reconciler.verify_checkout_signature(
            db,
            payment_id=body.razorpay_payment_id,
            subscription_id=body.razorpay_subscription_id,
            signature=body.razorpay_signature,
            caller_id=identity.user_id,
        )

    subscription_id = body.session_id or body.subscription_id
    if not subscription_id:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Missing subscription ID",
        )
    return await reconciler.verify_redirect(db, subscription_id, identity.user_id)


@router.post("/cancel", response_model=CancelResponse)
async def cancel_subscription(
    body: SubscriptionActionRequest,
    db: AsyncSession = Depends(get_db),
    identity: Identity = Depends(get_current_identity),
) -> CancelResponse:
    """Cancel one of the caller's subscriptions."""
    ensure_same_user(identity, body.user_id)
    return await reconciler.cancel(db, body.subscription_id, body.user_id)


@router.post(
    "/resume",
    response_model=ResumeResponse,
    response_model_exclude_none=True,
)
async def resume_payment(
    body: SubscriptionActionRequest,
    db: AsyncSession = Depends(get_db),
    identity: Identity = Depends(get_current_identity),
) -> ResumeResponse:
    """Return a payment link for an unfinished or ended subscription."""
    ensure_same_user(identity, body.user_id)
    return await reconciler.resume(db, body.subscription_id, body.user_id)
