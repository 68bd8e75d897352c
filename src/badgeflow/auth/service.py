"""Authentication service: credential checks at the login boundary."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import TYPE_CHECKING

import structlog
from sqlalchemy import select

from badgeflow.auth.password import (
    PasswordStrengthError,
    check_needs_rehash,
    hash_password,
    validate_password_strength,
    verify_password,
)
from badgeflow.db.models import User
from badgeflow.errors import IdentityNotFoundError, PayloadValidationError, UnauthorizedError
from badgeflow.identity.resolver import normalize_email, repair_legacy_email

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

logger = structlog.get_logger()

_INVALID_CREDENTIALS = "Invalid email or password"


async def get_user_by_email(db: AsyncSession, email: str) -> User | None:
    """Exact lookup by normalized email."""
    result = await db.execute(select(User).where(User.email == normalize_email(email)))
    return result.scalar_one_or_none()


async def authenticate(db: AsyncSession, email: str, password: str) -> User:
    """
    Authenticate with email + password.

    Legacy records whose stored email differs from the login email only by
    case or surrounding whitespace are repaired here, before the password
    check. No other code path performs that repair.

    Raises:
        UnauthorizedError: Unknown email, ambiguous legacy match, or wrong password.
    """
    try:
        user = await repair_legacy_email(db, email)
    except IdentityNotFoundError:
        logger.info("login_failed", reason="unknown_email")
        raise UnauthorizedError(_INVALID_CREDENTIALS) from None

    if not user.password_hash or not verify_password(password, user.password_hash):
        logger.info("login_failed", user_id=user.id, reason="bad_password")
        raise UnauthorizedError(_INVALID_CREDENTIALS)

    if check_needs_rehash(user.password_hash):
        user.password_hash = hash_password(password)
        user.updated_at = datetime.now(timezone.utc)

    await db.flush()
    logger.info("login_succeeded", user_id=user.id)
    return user


async def change_password(db: AsyncSession, user: User, current_password: str, new_password: str) -> None:
    """
    Change a user's own password and clear ``require_password_change``.

    Raises:
        UnauthorizedError: Current password is wrong.
        PayloadValidationError: New password fails the strength check.
    """
    if not user.password_hash or not verify_password(current_password, user.password_hash):
        raise UnauthorizedError("Current password is incorrect")
    try:
        validate_password_strength(new_password)
    except PasswordStrengthError as e:
        raise PayloadValidationError(str(e)) from e

    user.password_hash = hash_password(new_password)
    user.require_password_change = False
    user.updated_at = datetime.now(timezone.utc)
    await db.flush()
    logger.info("password_changed", user_id=user.id)
