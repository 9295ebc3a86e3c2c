"""Verification of identity-provider session tokens (JWT)."""

from dataclasses import dataclass

from jose import jwt

from app.config import settings


@dataclass(frozen=True)
class Identity:
    """The signed-in user as asserted by the identity provider."""

    user_id: str
    email: str | None


def decode_token(token: str) -> dict:
    """Decode and verify a JWT issued by the identity provider.

    Args:
        token: Encoded JWT string.

    Returns:
        Decoded payload dictionary.

    Raises:
        jose.JWTError: If the token is invalid, expired, or malformed.
    """
    options = {"verify_aud": settings.jwt_audience is not None}
    return jwt.decode(
        token,
        settings.jwt_secret_key,
        algorithms=[settings.jwt_algorithm],
        audience=settings.jwt_audience,
        options=options,
    )


def identity_from_claims(payload: dict) -> Identity | None:
    """Build an :class:`Identity` from token claims; None if ``sub`` is missing."""
    sub = payload.get("sub")
    if not sub:
        return None
    email = payload.get("email") or payload.get("primary_email") or None
    return Identity(user_id=str(sub), email=email)
