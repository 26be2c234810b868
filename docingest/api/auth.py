"""
Authentication: bearer JWT validation and current user dependency.

Tokens are issued by an external identity provider; we only verify them.
The "sub" claim identifies the user, "role" carries the role assigned at
issuance. User records are provisioned on the first authenticated request and
looked up on every later one, so a deactivated account is refused even while
its tokens are still valid.
"""

import logging
from typing import Annotated, Any

import jwt
from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from docingest.api.deps import get_context
from docingest.config import Settings, get_settings
from docingest.context import AppContext
from docingest.errors import StorageError
from docingest.models.user import User, UserRole

logger = logging.getLogger(__name__)
security = HTTPBearer(auto_error=True)


def _decode_token(token: str, settings: Settings) -> dict[str, Any]:
    secret = settings.jwt_secret
    if not secret:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Authentication not configured (JWT_SECRET required).",
        )
    try:
        return jwt.decode(
            token,
            secret,
            algorithms=[settings.jwt_algorithm],
            options={"verify_aud": False, "require": ["sub"]},
        )
    except jwt.ExpiredSignatureError:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Token has expired")
    except jwt.InvalidTokenError as e:
        logger.warning("JWT verification failed: %s", e)
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token")


def _role_from_claims(payload: dict[str, Any]) -> UserRole:
    try:
        return UserRole(str(payload.get("role", UserRole.VIEWER.value)).lower())
    except ValueError:
        logger.warning("Unknown role claim %r; defaulting to viewer", payload.get("role"))
        return UserRole.VIEWER


async def get_current_user(
    credentials: Annotated[HTTPAuthorizationCredentials, Depends(security)],
    settings: Annotated[Settings, Depends(get_settings)],
    context: Annotated[AppContext, Depends(get_context)],
) -> User:
    """
    Dependency: validate the bearer JWT and return the corresponding User.
    Unknown subjects are provisioned with the role from the token.
    """
    payload = _decode_token(credentials.credentials, settings)
    user_id = str(payload["sub"])
    email: str | None = payload.get("email")

    try:
        user = await context.users.get(user_id)
        if user is None:
            user = User(id=user_id, email=email, role=_role_from_claims(payload))
            await context.users.create(user)
            logger.info("Provisioned user %s with role %s", user_id, user.role.value)
        elif email and user.email != email:
            user = await context.users.save(user.model_copy(update={"email": email}))
            logger.info("Updated email for user %s", user_id)
    except StorageError as e:
        logger.error("User lookup failed for %s: %s", user_id, e)
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail="User store unavailable")

    if not user.active:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="User account is inactive")
    return user
