"""User administration: listings, role assignment and credential resets."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import TYPE_CHECKING

import structlog
from sqlalchemy import select

from badgeflow.auth.password import PasswordStrengthError, hash_password, validate_password_strength
from badgeflow.db.models import User, UserRole
from badgeflow.errors import ForbiddenError, NotFoundError, PayloadValidationError
from badgeflow.identity.policy import can_assign_role, can_list_users, can_reset_credential, can_view_user_directory
from badgeflow.identity.resolver import Actor, IdentityResolver

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

logger = structlog.get_logger()


async def _get_target(db: AsyncSession, user_id: int) -> User:
    user = await db.get(User, user_id)
    if user is None:
        raise NotFoundError("User not found")
    return user


async def assign_role(
    db: AsyncSession,
    resolver: IdentityResolver,
    actor: Actor,
    user_id: int,
    new_role: str,
) -> User:
    """
    Change a user's stored role.

    The target's effective tier goes through the resolver, so the configured
    super-admin is protected whatever role is stored for them.

    Raises:
        PayloadValidationError: Unknown role.
        NotFoundError: No such user.
        ForbiddenError: Actor may not make this change.
    """
    new_role = (new_role or "").strip().lower()
    if new_role not in {r.value for r in UserRole}:
        raise PayloadValidationError(f"Invalid role: {new_role!r}")

    target = await _get_target(db, user_id)
    if not can_assign_role(actor, resolver.tier_for(target), new_role):
        raise ForbiddenError("You cannot assign this role")

    previous = target.role
    target.role = new_role
    target.updated_at = datetime.now(timezone.utc)
    await db.flush()
    logger.info("role_assigned", user_id=target.id, previous=previous, role=new_role, by=actor.user_id)
    return target


async def reset_credential(
    db: AsyncSession,
    resolver: IdentityResolver,
    actor: Actor,
    user_id: int,
    new_password: str,
) -> User:
    """
    Set a new password for another user and force a change at next login.

    Raises:
        NotFoundError: No such user.
        ForbiddenError: Actor may not reset this user's credential.
        PayloadValidationError: Password fails the strength check.
    """
    target = await _get_target(db, user_id)
    if not can_reset_credential(actor, resolver.tier_for(target)):
        raise ForbiddenError("You cannot reset this user's password")
    try:
        validate_password_strength(new_password)
    except PasswordStrengthError as e:
        raise PayloadValidationError(str(e)) from e

    target.password_hash = hash_password(new_password)
    target.require_password_change = True
    target.updated_at = datetime.now(timezone.utc)
    await db.flush()
    logger.info("credential_reset", user_id=target.id, by=actor.user_id)
    return target


async def list_users_by_role(db: AsyncSession, actor: Actor, role: str) -> list[User]:
    """Users with the given stored role, ordered by name.

    Raises:
        ForbiddenError: Teachers may list students only; other roles need an admin.
    """
    if not can_list_users(actor, role):
        raise ForbiddenError("You cannot list these users")
    result = await db.execute(select(User).where(User.role == role).order_by(User.name, User.id))
    return list(result.scalars())


async def list_user_directory(db: AsyncSession, actor: Actor, role: str | None = None) -> list[User]:
    """Admin view of all users, optionally filtered by role, ordered by role then name.

    Raises:
        ForbiddenError: Actor is not an admin.
        PayloadValidationError: Unknown role filter.
    """
    if not can_view_user_directory(actor):
        raise ForbiddenError("Only administrators can view the user directory")
    query = select(User)
    if role is not None:
        if role not in {r.value for r in UserRole}:
            raise PayloadValidationError(f"Invalid role: {role!r}")
        query = query.where(User.role == role)
    result = await db.execute(query.order_by(User.role, User.name, User.id))
    return list(result.scalars())
