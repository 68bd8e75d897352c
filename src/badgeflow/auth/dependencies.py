"""FastAPI authentication dependencies."""

from __future__ import annotations

from typing import Any

import jwt
from fastapi import Depends, Security
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from badgeflow.auth.jwt import verify_token
from badgeflow.auth.service import get_user_by_email
from badgeflow.database import get_session
from badgeflow.db.models import User
from badgeflow.errors import PayloadValidationError, UnauthorizedError
from badgeflow.identity.resolver import Actor, IdentityResolver, get_identity_resolver

# auto_error=False so a missing header surfaces as our own 401 body
_bearer = HTTPBearer(auto_error=False)


def get_token_claims(
    credentials: HTTPAuthorizationCredentials | None = Security(_bearer),
) -> dict[str, Any]:
    """Decode the bearer token or raise 401."""
    if credentials is None:
        raise UnauthorizedError("Missing bearer token")
    try:
        return verify_token(credentials.credentials)
    except jwt.InvalidTokenError as e:
        raise UnauthorizedError(str(e)) from e


async def get_current_user(
    claims: dict[str, Any] = Depends(get_token_claims),
    db: AsyncSession = Depends(get_session),
) -> User:
    """Load the user named by the token."""
    user = await get_user_by_email(db, claims.get("email") or "")
    if user is None or str(user.id) != claims.get("sub"):
        raise UnauthorizedError("User not found")
    return user


async def get_current_actor(
    claims: dict[str, Any] = Depends(get_token_claims),
    user: User = Depends(get_current_user),
    resolver: IdentityResolver = Depends(get_identity_resolver),
) -> Actor:
    """Resolve the caller's effective tier from the token claims.

    The role claim is used as issued; the super-admin email overrides it.
    """
    try:
        identity = resolver.resolve(claims.get("email"), claims.get("role"))
    except PayloadValidationError as e:
        raise UnauthorizedError(e.detail) from e
    return Actor(user_id=user.id, email=identity.normalized_email, tier=identity.tier)
