"""Create the Razorpay plans behind the weekly, monthly and yearly subscriptions.

Run once per Razorpay account (test or live keys from .env):
    python -m app.billing.scripts.create_razorpay_plans

Outputs plan IDs to set in .env:
    RAZORPAY_PLAN_WEEKLY=plan_xxx
    RAZORPAY_PLAN_MONTHLY=plan_xxx
    RAZORPAY_PLAN_YEARLY=plan_xxx
"""

import asyncio

from app.billing.plans import PLANS
from app.billing.razorpay_client import create_plan
from app.config import settings

# Plan type -> (Razorpay billing period, .env key)
PLAN_PERIODS: dict[str, tuple[str, str]] = {
    "week": ("weekly", "RAZORPAY_PLAN_WEEKLY"),
    "month": ("monthly", "RAZORPAY_PLAN_MONTHLY"),
    "year": ("yearly", "RAZORPAY_PLAN_YEARLY"),
}


async def create_all_plans() -> dict[str, str]:
    """Create one Razorpay plan per catalogue entry; return ``{env_key: plan_id}``."""
    env_lines: dict[str, str] = {}
    for plan_type, plan in PLANS.items():
        period, env_key = PLAN_PERIODS[plan_type]
        created = await create_plan(
            period=period,
            # Razorpay amounts are in the smallest currency unit (paise)
            amount_subunits=plan.amount * 100,
            currency=plan.currency,
            name=plan.display_name,
            description=plan.description,
        )
        print(f"Created plan: {plan.display_name} ({created['id']})")
        print(f"  Price: {plan.currency} {plan.amount}/{plan_type}")
        env_lines[env_key] = created["id"]
    return env_lines


async def main() -> None:
    if not settings.razorpay_key_id or not settings.razorpay_key_secret:
        print("ERROR: RAZORPAY_KEY_ID / RAZORPAY_KEY_SECRET are not set in .env")
        return

    env_lines = await create_all_plans()

    print("\n--- Add these to your .env ---")
    for key, plan_id in env_lines.items():
        print(f"{key}={plan_id}")


if __name__ == "__main__":
    asyncio.run(main())
