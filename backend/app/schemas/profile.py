"""Pydantic v2 schemas for profile endpoints."""

from datetime import datetime
from uuid import UUID

from pydantic import ConfigDict

from app.schemas.billing import CamelModel


class ProfileMessageResponse(CamelModel):
    """Result of profile provisioning."""

    message: str


class SubscriptionRecord(CamelModel):
    """A stored subscription row."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    plan_id: str
    razorpay_subscription_id: str | None = None
    razorpay_payment_id: str | None = None
    status: str
    plan_type: str
    start_date: datetime | None = None
    end_date: datetime | None = None
    is_recurring: bool
    created_at: datetime


class PlanDetails(CamelModel):
    """Plan details as reported by Razorpay, amount in major currency units."""

    id: str
    interval: str | None = None
    amount: float
    currency: str
    name: str | None = None


class ProfileSummary(CamelModel):
    """Profile with its current subscription and plan details."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    user_id: str
    email: str
    subscription_active: bool
    subscription_tier: str | None = None
    razorpay_subscription_id: str | None = None
    created_at: datetime
    updated_at: datetime
    current_subscription: SubscriptionRecord | None = None
    plan_details: PlanDetails | None = None


class SubscriptionSummaryResponse(CamelModel):
    """``subscription`` is null when the caller has no profile yet."""

    subscription: ProfileSummary | None = None
