"""Badge template creation, lookup, editing and deletion."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any

import structlog
from sqlalchemy import delete, func, or_, select

from badgeflow.db.models import Badge, EarnedBadge, Submission, SubmissionComment
from badgeflow.errors import ConflictError, ForbiddenError, NotFoundError, PayloadValidationError
from badgeflow.identity.policy import can_author_badge, can_edit_badge, can_view_badge
from badgeflow.identity.resolver import Actor, Tier

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

logger = structlog.get_logger()

MIN_DIFFICULTY = 1
MAX_DIFFICULTY = 5

_TEXT_FIELDS = ("name", "description", "criteria", "category")
EDITABLE_FIELDS = frozenset({*_TEXT_FIELDS, "difficulty", "image_url", "is_public"})


def _check_difficulty(difficulty: int) -> None:
    if not MIN_DIFFICULTY <= difficulty <= MAX_DIFFICULTY:
        raise PayloadValidationError(f"Difficulty must be between {MIN_DIFFICULTY} and {MAX_DIFFICULTY}")


def _clean_text(label: str, value: str | None) -> str:
    if not value or not value.strip():
        raise PayloadValidationError(f"Badge {label} is required")
    return value.strip()


async def create_badge(
    db: AsyncSession,
    actor: Actor,
    *,
    name: str,
    description: str,
    criteria: str,
    difficulty: int,
    category: str,
    image_url: str | None = None,
    is_public: bool = False,
) -> Badge:
    """Create a badge template owned by the acting teacher or admin.

    Raises:
        ForbiddenError: Students cannot author badges.
        PayloadValidationError: Blank required text or difficulty outside 1-5.
    """
    if not can_author_badge(actor):
        raise ForbiddenError("Only teachers and administrators can create badges")
    _check_difficulty(difficulty)

    now = datetime.now(timezone.utc)
    badge = Badge(
        name=_clean_text("name", name),
        description=_clean_text("description", description),
        criteria=_clean_text("criteria", criteria),
        difficulty=difficulty,
        category=_clean_text("category", category),
        image_url=image_url,
        is_public=is_public,
        creator_id=actor.user_id,
        reactions=[],
        created_at=now,
        updated_at=now,
    )
    db.add(badge)
    await db.flush()
    logger.info("badge_created", badge_id=badge.id, creator_id=actor.user_id)
    return badge


async def list_badges(db: AsyncSession, actor: Actor) -> list[Badge]:
    """Public badges plus the actor's own; admins see all."""
    query = select(Badge)
    if actor.tier < Tier.ADMIN:
        query = query.where(or_(Badge.is_public.is_(True), Badge.creator_id == actor.user_id))
    result = await db.execute(query.order_by(Badge.name))
    return list(result.scalars())


async def get_badge(db: AsyncSession, actor: Actor, badge_id: int) -> Badge:
    """Single badge. A private badge the actor cannot edit reads as not found."""
    badge = await db.get(Badge, badge_id)
    if badge is None or not can_view_badge(actor, badge):
        raise NotFoundError("Badge not found")
    return badge


async def _get_editable(db: AsyncSession, actor: Actor, badge_id: int, verb: str) -> Badge:
    badge = await db.get(Badge, badge_id)
    if badge is None:
        raise NotFoundError("Badge not found")
    if not can_edit_badge(actor, badge):
        raise ForbiddenError(f"You can only {verb} your own badges")
    return badge


async def update_badge(db: AsyncSession, actor: Actor, badge_id: int, changes: dict[str, Any]) -> Badge:
    """
    Apply a partial update to a badge's template fields.

    Only the creator or an admin may edit. Reactions and ownership are not
    editable here.

    Raises:
        NotFoundError: No such badge.
        ForbiddenError: Actor is neither the creator nor an admin.
        PayloadValidationError: Unknown field, blank text or difficulty outside 1-5.
    """
    badge = await _get_editable(db, actor, badge_id, "update")

    unknown = set(changes) - EDITABLE_FIELDS
    if unknown:
        raise PayloadValidationError(f"Unknown badge fields: {', '.join(sorted(unknown))}")

    for label, value in changes.items():
        if label in _TEXT_FIELDS:
            value = _clean_text(label, value)
        elif label == "difficulty":
            if value is None:
                raise PayloadValidationError("Badge difficulty is required")
            _check_difficulty(value)
        elif label == "is_public" and value is None:
            raise PayloadValidationError("Badge visibility is required")
        setattr(badge, label, value)

    badge.updated_at = datetime.now(timezone.utc)
    await db.flush()
    logger.info("badge_updated", badge_id=badge.id, by=actor.user_id, fields=sorted(changes))
    return badge


async def delete_badge(db: AsyncSession, actor: Actor, badge_id: int) -> None:
    """
    Delete a badge template together with its submissions and their comments.

    A badge that any student has earned stays: earned badges are permanent.

    Raises:
        NotFoundError: No such badge.
        ForbiddenError: Actor is neither the creator nor an admin.
        ConflictError: The badge has been earned.
    """
    badge = await _get_editable(db, actor, badge_id, "delete")

    earned_count = await db.scalar(
        select(func.count()).select_from(EarnedBadge).where(EarnedBadge.badge_id == badge_id)
    )
    if earned_count:
        raise ConflictError("Badge has been earned and cannot be deleted")

    submission_ids = select(Submission.id).where(Submission.badge_id == badge_id)
    await db.execute(delete(SubmissionComment).where(SubmissionComment.submission_id.in_(submission_ids)))
    removed = await db.execute(delete(Submission).where(Submission.badge_id == badge_id))
    await db.delete(badge)
    await db.flush()
    logger.info("badge_deleted", badge_id=badge_id, by=actor.user_id, submissions_removed=removed.rowcount)
