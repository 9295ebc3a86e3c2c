"""Shared test configuration and fixtures.

Uses a transactional rollback strategy per test for full isolation:
- Each test gets its own transaction that rolls back after the test.
- SQLite in memory by default; set TEST_DATABASE_URL to run against PostgreSQL.
"""

import os
import uuid
from collections.abc import AsyncGenerator
from datetime import timedelta

# Test credentials must be in place before app.config builds its settings.
os.environ.setdefault("JWT_SECRET_KEY", "test-identity-signing-secret")
os.environ.setdefault("RAZORPAY_KEY_ID", "rzp_test_key")
os.environ.setdefault("RAZORPAY_KEY_SECRET", "rzp_test_secret")
os.environ.setdefault("RAZORPAY_WEBHOOK_SECRET", "rzp_test_webhook_secret")
os.environ.setdefault("RAZORPAY_PLAN_WEEKLY", "plan_test_week")
os.environ.setdefault("RAZORPAY_PLAN_MONTHLY", "plan_test_month")
os.environ.setdefault("RAZORPAY_PLAN_YEARLY", "plan_test_year")

import pytest_asyncio  # noqa: E402
from httpx import ASGITransport, AsyncClient  # noqa: E402
from jose import jwt  # noqa: E402
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

from app.config import settings  # noqa: E402
from app.database import Base, get_db, utcnow  # noqa: E402
from app.main import app  # noqa: E402
from app.models.profile import Profile  # noqa: E402
from app.models.subscription import Subscription  # noqa: E402

_test_db_url = os.getenv("TEST_DATABASE_URL", "sqlite+aiosqlite:///:memory:")


def _make_engine():
    if _test_db_url.startswith("sqlite"):
        # One shared connection so the in-memory database outlives each checkout
        return create_async_engine(
            _test_db_url,
            echo=False,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )
    return create_async_engine(_test_db_url, echo=False, pool_pre_ping=True)


# ---------------------------------------------------------------------------
# Session-scoped: create / drop all tables once per test session
# ---------------------------------------------------------------------------


@pytest_asyncio.fixture(scope="session", loop_scope="session")
async def test_engine():
    """Create a session-scoped engine tied to the session event loop."""
    engine = _make_engine()
    yield engine
    await engine.dispose()


@pytest_asyncio.fixture(scope="session", loop_scope="session")
async def setup_test_db(test_engine):
    """Create all tables at the start of the session and drop them at the end."""
    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield
    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)


# ---------------------------------------------------------------------------
# Per-test: transactional rollback for isolation
# ---------------------------------------------------------------------------


@pytest_asyncio.fixture
async def db_session(test_engine, setup_test_db) -> AsyncGenerator[AsyncSession, None]:
    """Yield an async session wrapped in a transaction that always rolls back."""
    async with test_engine.connect() as connection:
        transaction = await connection.begin()
        session = AsyncSession(bind=connection, expire_on_commit=False)

        try:
            yield session
        finally:
            await session.close()
            if transaction.is_active:
                await transaction.rollback()


@pytest_asyncio.fixture
async def client(db_session: AsyncSession) -> AsyncGenerator[AsyncClient, None]:
    """Provide an httpx AsyncClient wired to use the test DB session."""

    async def override_get_db() -> AsyncGenerator[AsyncSession, None]:
        yield db_session

    app.dependency_overrides[get_db] = override_get_db

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://testserver") as ac:
        yield ac

    app.dependency_overrides.clear()


# ---------------------------------------------------------------------------
# Identity helpers
# ---------------------------------------------------------------------------


def make_token(user_id: str, email: str | None = "user@test.com", expires_in: int = 3600) -> str:
    """Sign a token the way the identity provider would."""
    claims: dict = {"sub": user_id, "exp": utcnow() + timedelta(seconds=expires_in)}
    if email is not None:
        claims["email"] = email
    return jwt.encode(claims, settings.jwt_secret_key, algorithm=settings.jwt_algorithm)


def auth_headers_for(user_id: str, email: str | None = "user@test.com") -> dict[str, str]:
    return {"Authorization": f"Bearer {make_token(user_id, email)}"}


# ---------------------------------------------------------------------------
# Convenience fixtures: signed-in user with a profile
# ---------------------------------------------------------------------------


async def create_profile(
    db_session: AsyncSession,
    user_id: str | None = None,
    *,
    active: bool = False,
    tier: str | None = None,
    razorpay_subscription_id: str | None = None,
) -> Profile:
    """Insert a profile directly in the DB."""
    user_id = user_id or f"user_{uuid.uuid4().hex[:12]}"
    profile = Profile(
        user_id=user_id,
        email=f"{user_id}@test.com",
        subscription_active=active,
        subscription_tier=tier,
        razorpay_subscription_id=razorpay_subscription_id,
    )
    db_session.add(profile)
    await db_session.flush()
    return profile


async def create_subscription(
    db_session: AsyncSession,
    user_id: str,
    *,
    razorpay_subscription_id: str | None = None,
    status: str = "created",
    plan_type: str = "month",
    plan_id: str = "plan_test_month",
    start_date=None,
    end_date=None,
    created_at=None,
) -> Subscription:
    """Insert a subscription row directly in the DB."""
    subscription = Subscription(
        user_id=user_id,
        plan_id=plan_id,
        razorpay_subscription_id=razorpay_subscription_id or f"sub_{uuid.uuid4().hex[:14]}",
        status=status,
        plan_type=plan_type,
        start_date=start_date,
        end_date=end_date,
    )
    if created_at is not None:
        subscription.created_at = created_at
    db_session.add(subscription)
    await db_session.flush()
    return subscription


@pytest_asyncio.fixture
async def test_profile(db_session: AsyncSession) -> Profile:
    """An inactive profile for a fresh user."""
    return await create_profile(db_session)


@pytest_asyncio.fixture
async def auth_headers(test_profile: Profile) -> dict[str, str]:
    """Return Authorization headers for the test profile's user."""
    return auth_headers_for(test_profile.user_id, test_profile.email)
