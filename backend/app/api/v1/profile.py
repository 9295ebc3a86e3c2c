"""Profile endpoints — provisioning on first sign-in and the subscription summary."""

import logging

from fastapi import APIRouter, Depends, HTTPException, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps import get_current_identity, get_db
from app.auth.jwt import Identity
from app.billing.razorpay_client import PaymentProviderError, fetch_plan
from app.database import utcnow
from app.schemas.profile import (
    PlanDetails,
    ProfileMessageResponse,
    ProfileSummary,
    SubscriptionRecord,
    SubscriptionSummaryResponse,
)
from app.services.profile_service import ensure_profile, get_profile
from app.services.subscription_service import get_display_subscription

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/profile", tags=["profile"])


@router.post(
    "",
    response_model=ProfileMessageResponse,
    status_code=status.HTTP_201_CREATED,
    responses={200: {"model": ProfileMessageResponse, "description": "Profile already exists"}},
)
async def create_profile(
    response: Response,
    db: AsyncSession = Depends(get_db),
    identity: Identity = Depends(get_current_identity),
) -> ProfileMessageResponse:
    """Create the caller's profile if it does not exist yet (idempotent)."""
    if not identity.email:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="User does not have an email address.",
        )

    _, created = await ensure_profile(db, identity.user_id, identity.email)
    if not created:
        response.status_code = status.HTTP_200_OK
        return ProfileMessageResponse(message="Profile already exists.")
    return ProfileMessageResponse(message="Profile created successfully.")


async def _plan_details(plan_id: str) -> PlanDetails | None:
    try:
        plan = await fetch_plan(plan_id)
    except PaymentProviderError:
        logger.warning("Could not fetch plan %s from Razorpay", plan_id)
        return None

    item = plan.get("item") or {}
    return PlanDetails(
        id=plan.get("id", plan_id),
        interval=plan.get("period"),
        # Razorpay amounts are in the smallest currency unit
        amount=(item.get("amount") or 0) / 100,
        currency=item.get("currency", ""),
        name=item.get("name"),
    )


@router.get("/subscription", response_model=SubscriptionSummaryResponse)
async def get_subscription_summary(
    db: AsyncSession = Depends(get_db),
    identity: Identity = Depends(get_current_identity),
) -> SubscriptionSummaryResponse:
    """Profile, its current subscription and that subscription's plan details."""
    profile = await get_profile(db, identity.user_id)
    if profile is None:
        return SubscriptionSummaryResponse(subscription=None)

    current = await get_display_subscription(db, identity.user_id, utcnow())
    plan_details = await _plan_details(current.plan_id) if current and current.plan_id else None

    summary = ProfileSummary.model_validate(profile)
    summary.current_subscription = SubscriptionRecord.model_validate(current) if current else None
    summary.plan_details = plan_details
    return SubscriptionSummaryResponse(subscription=summary)
