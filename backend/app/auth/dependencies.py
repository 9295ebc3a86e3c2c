"""FastAPI authentication dependencies for route protection."""

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError

from app.auth.jwt import Identity, decode_token, identity_from_claims

# auto_error=False so a missing header yields 401 (not 403) below
_bearer_scheme = HTTPBearer(auto_error=False)


async def get_current_identity(
    credentials: HTTPAuthorizationCredentials | None = Depends(_bearer_scheme),
) -> Identity:
    """Validate the Bearer token and return the signed-in identity.

    Raises:
        HTTPException 401: If the token is missing, invalid, expired, or has no subject.
    """
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )

    if credentials is None:
        raise credentials_exception

    try:
        payload = decode_token(credentials.credentials)
    except JWTError:
        raise credentials_exception from None

    identity = identity_from_claims(payload)
    if identity is None:
        raise credentials_exception
    return identity


def ensure_same_user(identity: Identity, user_id: str) -> None:
    """Reject requests that act on another user's data.

    Raises:
        HTTPException 403: If ``user_id`` is not the signed-in user.
    """
    if identity.user_id != user_id:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="You can only manage your own subscription",
        )
