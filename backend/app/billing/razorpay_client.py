"""Async wrapper around the Razorpay SDK for MealPlanner AI.

The official SDK is synchronous (``requests`` underneath), so every network
call runs in a worker thread. SDK and transport errors are re-raised as
:class:`PaymentProviderError` so callers only handle one exception type.
"""

import asyncio
import logging
from typing import Any

import razorpay
import requests
from razorpay.errors import BadRequestError, GatewayError, ServerError, SignatureVerificationError

from app.config import settings

logger = logging.getLogger(__name__)

_PROVIDER_ERRORS = (BadRequestError, GatewayError, ServerError, requests.RequestException)


class PaymentProviderError(Exception):
    """A Razorpay API call failed (bad request, gateway/server error, or network)."""


def get_razorpay_client() -> razorpay.Client:
    """Create a Razorpay client authenticated with the configured API key pair."""
    return razorpay.Client(auth=(settings.razorpay_key_id, settings.razorpay_key_secret))


async def _call(operation: str, func, *args, **kwargs) -> dict[str, Any]:
    try:
        return await asyncio.to_thread(func, *args, **kwargs)
    except _PROVIDER_ERRORS as e:
        logger.warning("Razorpay %s failed: %s", operation, e)
        raise PaymentProviderError(str(e)) from e


async def create_subscription(
    plan_id: str,
    total_count: int,
    notes: dict[str, Any],
) -> dict[str, Any]:
    """Create a Razorpay subscription and return the provider object.

    The returned dict carries ``id``, ``plan_id``, ``status``, ``short_url``,
    ``total_count`` and ``notes``.
    """
    client = get_razorpay_client()
    logger.info(
        "Creating Razorpay subscription for user %s, plan %s",
        notes.get("userId"),
        plan_id,
    )
    subscription = await _call(
        "subscription create",
        client.subscription.create,
        {
            "plan_id": plan_id,
            "total_count": total_count,
            "customer_notify": 1,
            "notes": notes,
        },
    )
    logger.info("Created Razorpay subscription %s (status=%s)", subscription["id"], subscription["status"])
    return subscription


async def fetch_subscription(subscription_id: str) -> dict[str, Any]:
    """Retrieve a Razorpay subscription by ID."""
    client = get_razorpay_client()
    return await _call("subscription fetch", client.subscription.fetch, subscription_id)


async def cancel_subscription(subscription_id: str) -> dict[str, Any]:
    """Cancel a Razorpay subscription immediately."""
    client = get_razorpay_client()
    logger.info("Cancelling Razorpay subscription %s", subscription_id)
    return await _call("subscription cancel", client.subscription.cancel, subscription_id)


async def fetch_plan(plan_id: str) -> dict[str, Any]:
    """Retrieve a Razorpay plan (period, amount, currency, item name)."""
    client = get_razorpay_client()
    return await _call("plan fetch", client.plan.fetch, plan_id)


async def create_plan(
    period: str,
    amount_subunits: int,
    currency: str,
    name: str,
    description: str,
) -> dict[str, Any]:
    """Create a Razorpay plan billed once per ``period`` (daily, weekly, monthly, yearly)."""
    client = get_razorpay_client()
    return await _call(
        "plan create",
        client.plan.create,
        {
            "period": period,
            "interval": 1,
            "item": {
                "name": name,
                "amount": amount_subunits,
                "currency": currency,
                "description": description,
            },
        },
    )


def verify_webhook_signature(payload: bytes, signature: str) -> None:
    """Verify the HMAC-SHA256 of a raw webhook body against its signature header.

    Raises:
        razorpay.errors.SignatureVerificationError: If the signature does not match.
    """
    if not signature or not signature.isascii():
        raise SignatureVerificationError("Missing or malformed webhook signature")
    try:
        body = payload.decode("utf-8")
    except UnicodeDecodeError:
        raise SignatureVerificationError("Webhook body is not valid UTF-8") from None

    client = get_razorpay_client()
    client.utility.verify_webhook_signature(body, signature, settings.razorpay_webhook_secret)


def verify_payment_signature(payment_id: str, subscription_id: str, signature: str) -> None:
    """Verify a checkout signature (HMAC-SHA256 of ``payment_id|subscription_id``).

    Raises:
        razorpay.errors.SignatureVerificationError: If the signature does not match.
    """
    if not signature.isascii():
        raise SignatureVerificationError("Malformed payment signature")

    client = get_razorpay_client()
    client.utility.verify_subscription_payment_signature(
        {
            "razorpay_payment_id": payment_id,
            "razorpay_subscription_id": subscription_id,
            "razorpay_signature": signature,
        }
    )
