"""Profile model — one row per identity-provider user."""

from sqlalchemy import Boolean, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.database import Base, TimestampMixin, UUIDPrimaryKeyMixin


class Profile(UUIDPrimaryKeyMixin, TimestampMixin, Base):
    """Subscription summary for a signed-in user.

    ``razorpay_subscription_id`` points at the subscription that currently
    grants access; it is set on activation and cleared on revocation.
    """

    __tablename__ = "profiles"

    # Identity provider user ID (e.g. "user_2abc...")
    user_id: Mapped[str] = mapped_column(String(255), unique=True, index=True, nullable=False)
    email: Mapped[str] = mapped_column(String(255), nullable=False)

    subscription_active: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=False, server_default="false"
    )
    subscription_tier: Mapped[str | None] = mapped_column(String(50), nullable=True)  # week, month, year
    razorpay_subscription_id: Mapped[str | None] = mapped_column(String(255), unique=True, nullable=True)

    # Relationships
    subscriptions: Mapped[list["Subscription"]] = relationship(  # type: ignore[name-defined]  # noqa: F821
        "Subscription",
        back_populates="profile",
        lazy="selectin",
        order_by="Subscription.created_at",
    )

    def __repr__(self) -> str:
        return (
            f"<Profile user_id={self.user_id!r} active={self.subscription_active} "
            f"tier={self.subscription_tier!r}>"
        )
