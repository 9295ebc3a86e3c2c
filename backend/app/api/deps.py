"""Shared API dependencies — single import point for all routers.

Re-exports database session, identity and access-gating dependencies so that
router modules can import everything they need from one place::

    from app.api.deps import get_db, get_current_identity
"""

from app.auth.dependencies import ensure_same_user, get_current_identity
from app.billing.dependencies import require_paid_access
from app.database import get_db

__all__ = [
    "get_db",
    "get_current_identity",
    "ensure_same_user",
    "require_paid_access",
]
