"""Subscription model — history of Razorpay subscription attempts per user."""

from datetime import datetime

from sqlalchemy import Boolean, ForeignKey, Index, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.database import Base, TimestampMixin, UUIDPrimaryKeyMixin


class Subscription(UUIDPrimaryKeyMixin, TimestampMixin, Base):
    """One Razorpay subscription (checkout attempt or paid period) for a user."""

    __tablename__ = "subscriptions"

    user_id: Mapped[str] = mapped_column(
        ForeignKey("profiles.user_id", onupdate="CASCADE"),
        nullable=False,
        index=True,
    )

    # Razorpay identifiers
    plan_id: Mapped[str] = mapped_column(String(255), nullable=False)
    razorpay_subscription_id: Mapped[str | None] = mapped_column(String(255), unique=True, nullable=True)
    razorpay_payment_id: Mapped[str | None] = mapped_column(String(255), nullable=True)

    # Status mirrors the provider: created, authenticated, pending, active,
    # halted, cancelled, completed, expired
    status: Mapped[str] = mapped_column(String(50), nullable=False)
    plan_type: Mapped[str] = mapped_column(String(20), nullable=False)  # week, month, year

    # Paid period
    start_date: Mapped[datetime | None] = mapped_column(nullable=True)
    end_date: Mapped[datetime | None] = mapped_column(nullable=True)
    is_recurring: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False, server_default="false")

    # Relationships
    profile: Mapped["Profile"] = relationship(back_populates="subscriptions", lazy="selectin")  # type: ignore[name-defined]  # noqa: F821

    __table_args__ = (Index("ix_subscriptions_user_id_created_at", "user_id", "created_at"),)

    def __repr__(self) -> str:
        return (
            f"<Subscription(id={self.id}, user_id={self.user_id!r}, "
            f"razorpay_subscription_id={self.razorpay_subscription_id!r}, status={self.status})>"
        )
