"""Plan gating dependencies — premium endpoints require a running paid period."""

import logging

from fastapi import Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.auth.dependencies import get_current_identity
from app.auth.jwt import Identity
from app.database import get_db, utcnow
from app.models.profile import Profile
from app.services.profile_service import deactivate_profile, get_profile
from app.services.subscription_service import get_subscription_by_razorpay_id

logger = logging.getLogger(__name__)


def _payment_required(message: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_402_PAYMENT_REQUIRED,
        detail={
            "message": message,
            "upgrade_url": "/api/v1/billing/plans",
        },
    )


async def require_paid_access(
    db: AsyncSession = Depends(get_db),
    identity: Identity = Depends(get_current_identity),
) -> Profile:
    """Return the caller's profile, or raise 402 if they have no paid access.

    Access follows the profile's current-subscription pointer. A pointer whose
    period has run out flips the profile to inactive.
    """
    profile = await get_profile(db, identity.user_id)
    if profile is None or not profile.subscription_active:
        raise _payment_required("An active subscription is required to generate meal plans.")

    current = None
    if profile.razorpay_subscription_id:
        current = await get_subscription_by_razorpay_id(db, profile.razorpay_subscription_id)

    if current is None or current.end_date is None or current.end_date < utcnow():
        logger.info("Subscription period over for user %s; deactivating profile", identity.user_id)
        await deactivate_profile(db, identity.user_id)
        # Commit before raising; get_db rolls back on exceptions.
        await db.commit()
        raise _payment_required("Your subscription has ended. Renew to keep generating meal plans.")

    return profile
