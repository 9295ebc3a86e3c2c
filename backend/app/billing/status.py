"""Subscription status model — closed status enum, provider mapping table, period math."""

import calendar
from datetime import datetime, timedelta
from enum import Enum


class SubscriptionStatus(str, Enum):
    """Every subscription status Razorpay reports that this app understands."""

    CREATED = "created"
    AUTHENTICATED = "authenticated"
    PENDING = "pending"
    ACTIVE = "active"
    HALTED = "halted"
    CANCELLED = "cancelled"
    COMPLETED = "completed"
    EXPIRED = "expired"


class StatusFamily(str, Enum):
    """How a status affects the local three-state view (pending / paid / ended)."""

    PENDING = "pending"
    PAID = "paid"
    ENDED = "ended"


STATUS_FAMILIES: dict[SubscriptionStatus, StatusFamily] = {
    SubscriptionStatus.CREATED: StatusFamily.PENDING,
    SubscriptionStatus.AUTHENTICATED: StatusFamily.PENDING,
    SubscriptionStatus.PENDING: StatusFamily.PENDING,
    SubscriptionStatus.ACTIVE: StatusFamily.PAID,
    SubscriptionStatus.COMPLETED: StatusFamily.PAID,
    SubscriptionStatus.HALTED: StatusFamily.ENDED,
    SubscriptionStatus.CANCELLED: StatusFamily.ENDED,
    SubscriptionStatus.EXPIRED: StatusFamily.ENDED,
}

PENDING_STATUSES: tuple[str, ...] = tuple(
    s.value for s, family in STATUS_FAMILIES.items() if family is StatusFamily.PENDING
)
PAID_STATUSES: tuple[str, ...] = tuple(
    s.value for s, family in STATUS_FAMILIES.items() if family is StatusFamily.PAID
)

PLAN_TYPES: tuple[str, ...] = ("week", "month", "year")
DEFAULT_PLAN_TYPE = "month"


class UnknownProviderStatus(ValueError):
    """Razorpay reported a status outside :class:`SubscriptionStatus`."""

    def __init__(self, raw: object) -> None:
        super().__init__(f"Unknown provider subscription status: {raw!r}")
        self.raw = raw


def parse_provider_status(raw: object) -> SubscriptionStatus:
    """Map a raw provider status string onto :class:`SubscriptionStatus`.

    Raises:
        UnknownProviderStatus: If the value is not one of the known statuses.
    """
    try:
        return SubscriptionStatus(str(raw))
    except ValueError:
        raise UnknownProviderStatus(raw) from None


def family_of(status: SubscriptionStatus) -> StatusFamily:
    """Return the family for a parsed status."""
    return STATUS_FAMILIES[status]


def add_months(start: datetime, months: int) -> datetime:
    """Add calendar months, clamping the day to the target month's length."""
    month_index = start.month - 1 + months
    year = start.year + month_index // 12
    month = month_index % 12 + 1
    day = min(start.day, calendar.monthrange(year, month)[1])
    return start.replace(year=year, month=month, day=day)


def compute_end_date(plan_type: str | None, start: datetime) -> datetime:
    """End of the paid period for a plan type starting at ``start``.

    week → +7 days, month → +1 calendar month, year → +1 calendar year.
    Anything else is treated as a monthly plan.
    """
    if plan_type == "week":
        return start + timedelta(days=7)
    if plan_type == "year":
        return add_months(start, 12)
    return add_months(start, 1)
