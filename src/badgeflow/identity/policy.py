"""Authorization policy: pure decision predicates.

None of these touch the database. Callers resolve the actor (and, where
relevant, the target's tier) through the IdentityResolver first and raise
ForbiddenError on a False answer.
"""

from __future__ import annotations

from badgeflow.db.models import Badge, Submission, UserRole
from badgeflow.errors import ForbiddenError
from badgeflow.identity.resolver import Actor, Tier


def can_review_submission(actor: Actor, submission: Submission) -> bool:
    """Teachers review their own assignments; admins review anything."""
    if actor.tier < Tier.TEACHER:
        return False
    return actor.tier >= Tier.ADMIN or submission.teacher_id == actor.user_id


def review_scope(actor: Actor) -> int | None:
    """Teacher id that bulk queries are pre-filtered to, or None for unrestricted.

    Raises:
        ForbiddenError: For actors who may not review at all.
    """
    if actor.tier < Tier.TEACHER:
        raise ForbiddenError("Only teachers and administrators can update submissions")
    if actor.tier >= Tier.ADMIN:
        return None
    return actor.user_id


def can_assign_role(actor: Actor, target_tier: Tier, new_role: str) -> bool:
    """Admins assign roles; only the super-admin promotes to admin or touches the super-admin."""
    if actor.tier < Tier.ADMIN:
        return False
    if new_role == UserRole.ADMIN.value and actor.tier != Tier.SUPER_ADMIN:
        return False
    return not (target_tier == Tier.SUPER_ADMIN and actor.tier != Tier.SUPER_ADMIN)


def can_reset_credential(actor: Actor, target_tier: Tier) -> bool:
    """Teachers reset students, admins reset non-admins, the super-admin resets admins.

    The super-admin's own credential is never reset through this path.
    """
    if actor.tier < Tier.TEACHER:
        return False
    if target_tier == Tier.SUPER_ADMIN:
        return False
    if actor.tier == Tier.TEACHER:
        return target_tier == Tier.STUDENT
    if target_tier == Tier.ADMIN:
        return actor.tier == Tier.SUPER_ADMIN
    return True


def can_author_badge(actor: Actor) -> bool:
    return actor.tier >= Tier.TEACHER


def can_view_badge(actor: Actor, badge: Badge) -> bool:
    return badge.is_public or can_edit_badge(actor, badge)


def can_edit_badge(actor: Actor, badge: Badge) -> bool:
    """Creators edit or delete their own badges; admins any badge."""
    if actor.tier < Tier.TEACHER:
        return False
    return actor.tier >= Tier.ADMIN or badge.creator_id == actor.user_id


def can_manage_categories(actor: Actor) -> bool:
    return actor.tier >= Tier.ADMIN


def can_delete_category(actor: Actor) -> bool:
    return actor.tier == Tier.SUPER_ADMIN


def can_list_users(actor: Actor, role: str) -> bool:
    """Teachers list students; listing teachers or admins needs admin."""
    if role == UserRole.STUDENT.value:
        return actor.tier >= Tier.TEACHER
    return actor.tier >= Tier.ADMIN


def can_view_user_directory(actor: Actor) -> bool:
    return actor.tier >= Tier.ADMIN
