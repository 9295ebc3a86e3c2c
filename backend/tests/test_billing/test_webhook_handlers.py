"""Tests for Razorpay webhook handler functions and the signed webhook endpoint."""

import hashlib
import hmac
import json
from datetime import timedelta

import pytest
from httpx import AsyncClient
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.billing.status import compute_end_date
from app.billing.webhooks import (
    EVENT_HANDLERS,
    get_event_entity,
    handle_payment_captured,
    handle_payment_failed,
    handle_subscription_activated,
    handle_subscription_cancelled,
    handle_subscription_halted,
    handle_subscription_pending,
)
from app.config import settings
from app.database import utcnow
from app.models.profile import Profile
from app.models.subscription import Subscription
from conftest import create_profile, create_subscription


def _subscription_entity(subscription_id: str, user_id: str | None, plan_type: str = "month", **extra) -> dict:
    notes = {"userId": user_id, "planType": plan_type} if user_id else []
    return {
        "id": subscription_id,
        "entity": "subscription",
        "plan_id": f"plan_test_{plan_type}",
        "status": extra.pop("status", "active"),
        "notes": notes,
        **extra,
    }


def _payment_entity(payment_id: str, subscription_id: str | None) -> dict:
    return {
        "id": payment_id,
        "entity": "payment",
        "amount": 50000,
        "currency": "INR",
        "subscription_id": subscription_id,
    }


def _make_event(event_type: str, entity: dict) -> dict:
    """Build a Razorpay webhook envelope around an entity."""
    key = "payment" if event_type.startswith("payment.") else "subscription"
    return {
        "entity": "event",
        "event": event_type,
        "contains": [key],
        "payload": {key: {"entity": entity}},
        "created_at": 1744300000,
    }


def _sign(body: bytes) -> str:
    return hmac.new(settings.razorpay_webhook_secret.encode(), body, hashlib.sha256).hexdigest()


async def _count_subscriptions(db_session: AsyncSession) -> int:
    result = await db_session.execute(select(func.count()).select_from(Subscription))
    return result.scalar_one()


# ---------------------------------------------------------------------------
# Envelope parsing
# ---------------------------------------------------------------------------


class TestGetEventEntity:
    """Test get_event_entity."""

    def test_subscription_entity(self):
        entity = _subscription_entity("sub_env", "user_env")
        assert get_event_entity(_make_event("subscription.activated", entity)) == entity

    def test_payment_entity(self):
        entity = _payment_entity("pay_env", "sub_env")
        assert get_event_entity(_make_event("payment.captured", entity)) == entity

    def test_subscription_event_with_payment_attached(self):
        entity = _subscription_entity("sub_env", "user_env")
        event = _make_event("subscription.activated", entity)
        event["payload"]["payment"] = {"entity": _payment_entity("pay_env", "sub_env")}
        assert get_event_entity(event) == entity

    def test_missing_payload(self):
        assert get_event_entity({"event": "subscription.activated"}) == {}

    def test_registered_events(self):
        assert set(EVENT_HANDLERS) == {
            "subscription.activated",
            "subscription.pending",
            "subscription.halted",
            "subscription.cancelled",
            "payment.captured",
            "payment.failed",
        }


# ---------------------------------------------------------------------------
# subscription.* handlers
# ---------------------------------------------------------------------------


class TestHandleSubscriptionActivated:
    """Test handle_subscription_activated."""

    @pytest.mark.asyncio
    async def test_activates_existing_row_and_profile(self, db_session: AsyncSession):
        profile = await create_profile(db_session)
        row = await create_subscription(
            db_session, profile.user_id, razorpay_subscription_id="sub_wh_activate", plan_type="year"
        )

        await handle_subscription_activated(
            db_session, _subscription_entity("sub_wh_activate", profile.user_id, plan_type="year")
        )

        assert row.status == "active"
        assert row.end_date == compute_end_date("year", row.start_date)
        assert profile.subscription_active is True
        assert profile.subscription_tier == "year"
        assert profile.razorpay_subscription_id == "sub_wh_activate"

    @pytest.mark.asyncio
    async def test_creates_row_when_missing(self, db_session: AsyncSession):
        """Out-of-order delivery: the webhook can arrive before the checkout row exists."""
        profile = await create_profile(db_session)

        await handle_subscription_activated(
            db_session, _subscription_entity("sub_wh_new", profile.user_id, plan_type="week")
        )

        result = await db_session.execute(
            select(Subscription).where(Subscription.razorpay_subscription_id == "sub_wh_new")
        )
        row = result.scalar_one()
        assert row.status == "active"
        assert row.plan_type == "week"
        assert row.end_date == row.start_date + timedelta(days=7)

    @pytest.mark.asyncio
    async def test_duplicate_delivery_keeps_period(self, db_session: AsyncSession):
        profile = await create_profile(db_session)
        entity = _subscription_entity("sub_wh_dup", profile.user_id)

        await handle_subscription_activated(db_session, entity)
        result = await db_session.execute(
            select(Subscription).where(Subscription.razorpay_subscription_id == "sub_wh_dup")
        )
        row = result.scalar_one()
        first_period = (row.start_date, row.end_date)

        await handle_subscription_activated(db_session, entity)
        assert (row.start_date, row.end_date) == first_period
        assert await _count_subscriptions(db_session) == 1

    @pytest.mark.asyncio
    async def test_missing_user_note_skipped(self, db_session: AsyncSession):
        before = await _count_subscriptions(db_session)
        await handle_subscription_activated(db_session, _subscription_entity("sub_wh_nouser", None))
        assert await _count_subscriptions(db_session) == before


class TestHandleSubscriptionPending:
    """Test handle_subscription_pending."""

    @pytest.mark.asyncio
    async def test_marks_pending(self, db_session: AsyncSession):
        profile = await create_profile(db_session)
        row = await create_subscription(
            db_session, profile.user_id, razorpay_subscription_id="sub_wh_pending", status="authenticated"
        )

        await handle_subscription_pending(
            db_session, _subscription_entity("sub_wh_pending", profile.user_id, status="pending")
        )

        assert row.status == "pending"


class TestHandleSubscriptionEnded:
    """Test handle_subscription_halted and handle_subscription_cancelled."""

    async def _active(self, db_session: AsyncSession, razorpay_id: str) -> tuple[Profile, Subscription]:
        now = utcnow()
        profile = await create_profile(
            db_session, active=True, tier="month", razorpay_subscription_id=razorpay_id
        )
        row = await create_subscription(
            db_session,
            profile.user_id,
            razorpay_subscription_id=razorpay_id,
            status="active",
            start_date=now,
            end_date=now + timedelta(days=30),
        )
        return profile, row

    @pytest.mark.asyncio
    async def test_halted_deactivates(self, db_session: AsyncSession):
        profile, row = await self._active(db_session, "sub_wh_halted")

        await handle_subscription_halted(db_session, _subscription_entity("sub_wh_halted", profile.user_id))

        assert row.status == "halted"
        assert profile.subscription_active is False

    @pytest.mark.asyncio
    async def test_cancelled_deactivates(self, db_session: AsyncSession):
        profile, row = await self._active(db_session, "sub_wh_cancelled")

        await handle_subscription_cancelled(
            db_session, _subscription_entity("sub_wh_cancelled", profile.user_id)
        )

        assert row.status == "cancelled"
        assert profile.subscription_active is False

    @pytest.mark.asyncio
    async def test_cancelled_stale_checkout_keeps_paid_access(self, db_session: AsyncSession):
        profile, _ = await self._active(db_session, "sub_wh_paid")
        stale = await create_subscription(
            db_session, profile.user_id, razorpay_subscription_id="sub_wh_stale"
        )

        await handle_subscription_cancelled(
            db_session, _subscription_entity("sub_wh_stale", profile.user_id, status="cancelled")
        )

        assert stale.status == "cancelled"
        assert profile.subscription_active is True
        assert profile.razorpay_subscription_id == "sub_wh_paid"

    @pytest.mark.asyncio
    async def test_unknown_subscription_is_noop(self, db_session: AsyncSession):
        # Should not raise
        await handle_subscription_halted(db_session, _subscription_entity("sub_wh_unknown", "user_x"))


# ---------------------------------------------------------------------------
# payment.* handlers
# ---------------------------------------------------------------------------


class TestHandlePaymentEvents:
    """Test handle_payment_captured and handle_payment_failed."""

    @pytest.mark.asyncio
    async def test_captured_records_payment(self, db_session: AsyncSession):
        profile = await create_profile(db_session)
        row = await create_subscription(
            db_session, profile.user_id, razorpay_subscription_id="sub_wh_captured", status="pending"
        )

        await handle_payment_captured(db_session, _payment_entity("pay_wh_1", "sub_wh_captured"))

        assert row.razorpay_payment_id == "pay_wh_1"
        assert row.status == "active"

    @pytest.mark.asyncio
    async def test_captured_without_subscription_skipped(self, db_session: AsyncSession):
        # One-time payment; should not raise
        await handle_payment_captured(db_session, _payment_entity("pay_wh_onetime", None))

    @pytest.mark.asyncio
    async def test_failed_halts_and_deactivates(self, db_session: AsyncSession):
        profile = await create_profile(db_session, active=True, tier="week")
        row = await create_subscription(
            db_session, profile.user_id, razorpay_subscription_id="sub_wh_failed", status="active"
        )

        await handle_payment_failed(db_session, _payment_entity("pay_wh_2", "sub_wh_failed"))

        assert row.status == "halted"
        assert profile.subscription_active is False

    @pytest.mark.asyncio
    async def test_failed_on_other_subscription_keeps_access(self, db_session: AsyncSession):
        now = utcnow()
        profile = await create_profile(
            db_session, active=True, tier="month", razorpay_subscription_id="sub_wh_granting"
        )
        await create_subscription(
            db_session,
            profile.user_id,
            razorpay_subscription_id="sub_wh_granting",
            status="active",
            start_date=now,
            end_date=now + timedelta(days=30),
        )
        retry = await create_subscription(
            db_session, profile.user_id, razorpay_subscription_id="sub_wh_retry", status="pending"
        )

        await handle_payment_failed(db_session, _payment_entity("pay_wh_3", "sub_wh_retry"))

        assert retry.status == "halted"
        assert profile.subscription_active is True


# ---------------------------------------------------------------------------
# Endpoint
# ---------------------------------------------------------------------------


class TestRazorpayWebhookEndpoint:
    """Test POST /api/v1/webhooks/razorpay."""

    @pytest.mark.asyncio
    async def test_bad_signature_rejected_without_mutation(
        self, client: AsyncClient, db_session: AsyncSession
    ):
        profile = await create_profile(db_session)
        row = await create_subscription(
            db_session, profile.user_id, razorpay_subscription_id="sub_wh_forged"
        )
        body = json.dumps(
            _make_event("subscription.activated", _subscription_entity("sub_wh_forged", profile.user_id))
        ).encode()

        response = await client.post(
            "/api/v1/webhooks/razorpay",
            content=body,
            headers={"Content-Type": "application/json", "X-Razorpay-Signature": "f" * 64},
        )

        assert response.status_code == 401
        assert row.status == "created"
        assert profile.subscription_active is False

    @pytest.mark.asyncio
    async def test_missing_signature_rejected(self, client: AsyncClient):
        response = await client.post("/api/v1/webhooks/razorpay", content=b"{}")
        assert response.status_code == 401

    @pytest.mark.asyncio
    async def test_valid_event_processed(self, client: AsyncClient, db_session: AsyncSession):
        profile = await create_profile(db_session)
        row = await create_subscription(
            db_session, profile.user_id, razorpay_subscription_id="sub_wh_signed"
        )
        body = json.dumps(
            _make_event("subscription.activated", _subscription_entity("sub_wh_signed", profile.user_id))
        ).encode()

        response = await client.post(
            "/api/v1/webhooks/razorpay",
            content=body,
            headers={"Content-Type": "application/json", "X-Razorpay-Signature": _sign(body)},
        )

        assert response.status_code == 200
        assert response.json() == {"status": "processed"}
        assert row.status == "active"
        assert profile.subscription_active is True

    @pytest.mark.asyncio
    async def test_unhandled_event_ignored(self, client: AsyncClient):
        body = json.dumps(_make_event("subscription.charged", {"id": "sub_wh_charged"})).encode()
        response = await client.post(
            "/api/v1/webhooks/razorpay",
            content=body,
            headers={"X-Razorpay-Signature": _sign(body)},
        )
        assert response.status_code == 200
        assert response.json() == {"status": "ignored"}

    @pytest.mark.asyncio
    async def test_non_string_event_type_ignored(self, client: AsyncClient):
        body = json.dumps({"event": ["subscription.activated"], "payload": {}}).encode()
        response = await client.post(
            "/api/v1/webhooks/razorpay",
            content=body,
            headers={"X-Razorpay-Signature": _sign(body)},
        )
        assert response.status_code == 200
        assert response.json() == {"status": "ignored"}

    @pytest.mark.asyncio
    async def test_malformed_json(self, client: AsyncClient):
        body = b"not json"
        response = await client.post(
            "/api/v1/webhooks/razorpay",
            content=body,
            headers={"X-Razorpay-Signature": _sign(body)},
        )
        assert response.status_code == 400
