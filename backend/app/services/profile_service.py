"""Profile service — provisioning and subscription summary updates."""

import logging

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.profile import Profile

logger = logging.getLogger(__name__)


async def get_profile(db: AsyncSession, user_id: str) -> Profile | None:
    """Look up a profile by identity-provider user ID."""
    result = await db.execute(select(Profile).where(Profile.user_id == user_id))
    return result.scalar_one_or_none()


async def ensure_profile(db: AsyncSession, user_id: str, email: str) -> tuple[Profile, bool]:
    """Return ``(profile, created)``, creating an inactive profile on first sign-in."""
    profile = await get_profile(db, user_id)
    if profile is not None:
        return profile, False

    profile = Profile(
        user_id=user_id,
        email=email,
        subscription_active=False,
        subscription_tier=None,
        razorpay_subscription_id=None,
    )
    db.add(profile)
    await db.flush()
    logger.info("Created profile for user %s", user_id)
    return profile, True


async def activate_profile(
    db: AsyncSession,
    user_id: str,
    plan_type: str,
    razorpay_subscription_id: str | None,
) -> Profile | None:
    """Grant access: mark active, record tier, point at the granting subscription."""
    profile = await get_profile(db, user_id)
    if profile is None:
        logger.warning("No profile for user %s; cannot activate subscription", user_id)
        return None

    profile.subscription_active = True
    profile.subscription_tier = plan_type
    if razorpay_subscription_id:
        profile.razorpay_subscription_id = razorpay_subscription_id
    await db.flush()
    logger.info("Profile %s active on %s plan", user_id, plan_type)
    return profile


def _holds_access(profile: Profile, razorpay_subscription_id: str | None) -> bool:
    # A profile without a pointer follows any of its subscriptions
    return (
        razorpay_subscription_id is None
        or profile.razorpay_subscription_id is None
        or profile.razorpay_subscription_id == razorpay_subscription_id
    )


async def deactivate_profile(
    db: AsyncSession, user_id: str, razorpay_subscription_id: str | None = None
) -> Profile | None:
    """Suspend access (halted / cancelled by provider / payment failed).

    When ``razorpay_subscription_id`` is given, access is only suspended if that
    subscription is the one the profile points at.
    """
    profile = await get_profile(db, user_id)
    if profile is None:
        logger.warning("No profile for user %s; nothing to deactivate", user_id)
        return None
    if not _holds_access(profile, razorpay_subscription_id):
        logger.info(
            "Profile %s access comes from %s, not %s; left active",
            user_id,
            profile.razorpay_subscription_id,
            razorpay_subscription_id,
        )
        return profile

    profile.subscription_active = False
    await db.flush()
    logger.info("Profile %s deactivated", user_id)
    return profile


async def revoke_profile(
    db: AsyncSession, user_id: str, razorpay_subscription_id: str | None = None
) -> Profile | None:
    """Revoke access and clear the subscription summary (user-initiated cancel)."""
    profile = await get_profile(db, user_id)
    if profile is None:
        logger.warning("No profile for user %s; nothing to revoke", user_id)
        return None
    if not _holds_access(profile, razorpay_subscription_id):
        logger.info(
            "Profile %s access comes from %s, not %s; nothing to revoke",
            user_id,
            profile.razorpay_subscription_id,
            razorpay_subscription_id,
        )
        return profile

    profile.subscription_active = False
    profile.subscription_tier = None
    profile.razorpay_subscription_id = None
    await db.flush()
    logger.info("Profile %s access revoked", user_id)
    return profile
