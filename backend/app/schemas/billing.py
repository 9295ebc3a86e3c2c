"""Pydantic v2 request/response schemas for billing endpoints.

Field names are snake_case in Python and camelCase on the wire.
"""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """Base model that reads and writes camelCase JSON (snake_case also accepted)."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# --- Request schemas ---


class CheckoutRequest(CamelModel):
    """Request to start a Razorpay subscription checkout."""

    plan_type: str = Field(min_length=1)  # "week", "month" or "year"
    user_id: str = Field(min_length=1)
    email: str = Field(min_length=1)


class VerifyPaymentRequest(CamelModel):
    """Verify a payment after checkout.

    Either ``sessionId``/``subscriptionId`` (redirect back from the short URL)
    or the three ``razorpay_*`` checkout fields (signature flow).
    """

    session_id: str | None = None
    subscription_id: str | None = None

    razorpay_payment_id: str | None = Field(default=None, alias="razorpay_payment_id")
    razorpay_subscription_id: str | None = Field(default=None, alias="razorpay_subscription_id")
    razorpay_signature: str | None = Field(default=None, alias="razorpay_signature")


class SubscriptionActionRequest(CamelModel):
    """Cancel / resume request for one of the caller's subscriptions."""

    subscription_id: str = Field(min_length=1)
    user_id: str = Field(min_length=1)


# --- Response schemas ---


class PlanResponse(CamelModel):
    """Plan details for display."""

    plan_type: str
    display_name: str
    amount: int
    currency: str
    description: str
    features: list[str]
    is_popular: bool


class PlansListResponse(CamelModel):
    """All available plans."""

    plans: list[PlanResponse]


class CheckoutResponse(CamelModel):
    """Razorpay checkout link plus the URL to return to after paying."""

    subscription_id: str
    plan_id: str
    status: str
    url: str
    callback_url: str


class SubscriptionStatusResponse(CamelModel):
    """Three-state subscription view: active, pending, or neither."""

    is_active: bool
    is_pending: bool
    subscription_tier: str | None = None
    subscription_id: str | None = None
    end_date: datetime | None = None
    is_recurring: bool | None = None
    pending_subscription_id: str | None = None
    pending_plan_type: str | None = None


class VerifyPaymentResponse(CamelModel):
    """Outcome of payment verification."""

    success: bool
    message: str
    pending: bool | None = None
    pending_subscription_id: str | None = None
    status: str | None = None


class CancelResponse(CamelModel):
    """Outcome of a cancellation."""

    success: bool
    message: str


class ResumeResponse(CamelModel):
    """Where to send the user to finish (or skip) payment."""

    message: str
    url: str | None = None
    callback_url: str | None = None
    subscription_id: str | None = None
    status: str | None = None
