"""Identity resolution: effective tier and email normalization.

Every tier decision goes through :class:`IdentityResolver`. The super-admin
email is injected from configuration at startup and is never compared inline
anywhere else.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import IntEnum
from typing import TYPE_CHECKING

import structlog
from sqlalchemy import func, select

from badgeflow.config import get_settings
from badgeflow.db.models import User, UserRole
from badgeflow.errors import IdentityNotFoundError, PayloadValidationError, UnauthorizedError

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

logger = structlog.get_logger()


class Tier(IntEnum):
    """Effective permission level. Ordered, so ``tier >= Tier.ADMIN`` reads naturally."""

    STUDENT = 1
    TEACHER = 2
    ADMIN = 3
    SUPER_ADMIN = 4


_ROLE_TIERS = {
    UserRole.STUDENT.value: Tier.STUDENT,
    UserRole.TEACHER.value: Tier.TEACHER,
    UserRole.ADMIN.value: Tier.ADMIN,
}


@dataclass(frozen=True, slots=True)
class ResolvedIdentity:
    normalized_email: str
    tier: Tier


@dataclass(frozen=True, slots=True)
class Actor:
    """A resolved caller, passed explicitly into every policy and state-machine call."""

    user_id: int
    email: str
    tier: Tier


def normalize_email(email: str) -> str:
    """Trim and lowercase an email address."""
    return email.strip().lower()


class IdentityResolver:
    """Computes effective tiers from (email, role claim) pairs."""

    def __init__(self, super_admin_email: str) -> None:
        self._super_admin_email = normalize_email(super_admin_email)

    def is_super_admin(self, email: str) -> bool:
        return normalize_email(email) == self._super_admin_email

    def resolve(self, claimed_email: str | None, claimed_role: str | None) -> ResolvedIdentity:
        """Resolve a claimed identity.

        Raises:
            UnauthorizedError: If no email is claimed.
            PayloadValidationError: If the role claim is not a known role.
        """
        if not claimed_email or not claimed_email.strip():
            raise UnauthorizedError("No verified identity")
        email = normalize_email(claimed_email)
        if email == self._super_admin_email:
            return ResolvedIdentity(normalized_email=email, tier=Tier.SUPER_ADMIN)
        tier = _ROLE_TIERS.get((claimed_role or "").strip().lower())
        if tier is None:
            raise PayloadValidationError(f"Invalid role claim: {claimed_role!r}")
        return ResolvedIdentity(normalized_email=email, tier=tier)

    def tier_for(self, user: User) -> Tier:
        """Effective tier of a stored user (used for policy targets)."""
        return self.resolve(user.email, user.role).tier


def get_identity_resolver() -> IdentityResolver:
    """Build the resolver from settings (FastAPI dependency)."""
    return IdentityResolver(get_settings().super_admin_email)


# ---------------------------------------------------------------------------
# Legacy email repair (authentication boundary only)
# ---------------------------------------------------------------------------


async def repair_legacy_email(db: AsyncSession, login_email: str) -> User:
    """Find the user for a login email, healing a legacy mixed-case record.

    An exact match is returned untouched. Otherwise exactly one record whose
    normalized email equals the normalized login email is rewritten to the
    normalized form. Only the login flow may call this.

    Raises:
        IdentityNotFoundError: If zero or several records match.
    """
    result = await db.execute(select(User).where(User.email == login_email))
    user = result.scalar_one_or_none()
    if user is not None:
        return user

    normalized = normalize_email(login_email)
    result = await db.execute(
        select(User).where(func.lower(func.trim(User.email)) == normalized).limit(2)
    )
    candidates = list(result.scalars())
    if len(candidates) != 1:
        logger.info("legacy_email_repair_failed", candidates=len(candidates))
        raise IdentityNotFoundError()

    user = candidates[0]
    if user.email != normalized:
        previous = user.email
        user.email = normalized
        await db.flush()
        logger.info("legacy_email_repaired", user_id=user.id, previous=previous, email=normalized)
    return user
