"""Plan definitions — billing periods, pricing, and Razorpay plan IDs."""

from dataclasses import dataclass

from app.config import settings


@dataclass(frozen=True)
class PlanInfo:
    """A purchasable meal-plan subscription."""

    plan_type: str  # week, month, year
    display_name: str
    amount: int  # in major currency units (e.g., 500 = ₹500)
    currency: str
    description: str
    features: tuple[str, ...]
    is_popular: bool = False


PLANS: dict[str, PlanInfo] = {
    "week": PlanInfo(
        plan_type="week",
        display_name="Weekly Plan",
        amount=100,
        currency="INR",
        description="Great if you want to try the service before committing longer.",
        features=("Unlimited AI meal plans", "AI nutrition insights", "Cancel anytime"),
    ),
    "month": PlanInfo(
        plan_type="month",
        display_name="Monthly Plan",
        amount=500,
        currency="INR",
        description="Perfect for ongoing, month-to-month meal planning and features.",
        features=("Unlimited AI meal plans", "Priority AI support", "Cancel anytime"),
        is_popular=True,
    ),
    "year": PlanInfo(
        plan_type="year",
        display_name="Yearly Plan",
        amount=5000,
        currency="INR",
        description="Best value for those committed to improving their diet long-term.",
        features=("Unlimited AI meal plans", "All premium features", "Cancel anytime"),
    ),
}


def get_razorpay_plan_id(plan_type: str) -> str | None:
    """Plan type -> configured Razorpay plan ID. None if unknown or not configured."""
    return settings.razorpay_plan_ids.get(plan_type) or None
