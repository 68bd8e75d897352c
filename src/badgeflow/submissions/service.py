"""Submission intake, listing and visibility settings."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import TYPE_CHECKING

import structlog
from sqlalchemy import select

from badgeflow.db.models import Badge, EarnedBadge, Submission, SubmissionStatus
from badgeflow.errors import NotFoundError, PayloadValidationError
from badgeflow.identity.resolver import Actor, Tier

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

logger = structlog.get_logger()


async def create_submission(
    db: AsyncSession,
    actor: Actor,
    badge_id: int,
    evidence: str,
    show_evidence: bool = False,
) -> Submission:
    """Submit evidence for a badge. The submission is routed to the badge's creator.

    A student may hold only one pending submission per badge; after a
    rejection they submit a fresh record.

    Raises:
        PayloadValidationError: Empty evidence or an existing pending submission.
        NotFoundError: Badge does not exist.
    """
    evidence = (evidence or "").strip()
    if not evidence:
        raise PayloadValidationError("Evidence is required")

    badge = await db.get(Badge, badge_id)
    if badge is None:
        raise NotFoundError("Badge not found")

    result = await db.execute(
        select(Submission.id).where(
            Submission.badge_id == badge_id,
            Submission.student_id == actor.user_id,
            Submission.status == SubmissionStatus.PENDING.value,
        )
    )
    if result.first() is not None:
        raise PayloadValidationError("You already have a pending submission for this badge")

    now = datetime.now(timezone.utc)
    submission = Submission(
        badge_id=badge_id,
        student_id=actor.user_id,
        teacher_id=badge.creator_id,
        status=SubmissionStatus.PENDING.value,
        evidence=evidence,
        is_visible=True,
        show_evidence=show_evidence,
        created_at=now,
        updated_at=now,
        comments=[],
    )
    db.add(submission)
    await db.flush()
    logger.info(
        "submission_created",
        submission_id=submission.id,
        badge_id=badge_id,
        student_id=actor.user_id,
        teacher_id=badge.creator_id,
    )
    return submission


async def list_submissions(
    db: AsyncSession,
    actor: Actor,
    status: str | None = None,
    student_id: int | None = None,
) -> list[Submission]:
    """Submissions visible to the actor.

    Teachers see submissions assigned to them, admins see everything (optionally
    filtered by student), students see their own.
    """
    query = select(Submission)
    if actor.tier == Tier.TEACHER:
        query = query.where(Submission.teacher_id == actor.user_id)
    elif actor.tier >= Tier.ADMIN:
        if student_id is not None:
            query = query.where(Submission.student_id == student_id)
    else:
        query = query.where(Submission.student_id == actor.user_id)

    if status is not None:
        if status not in {s.value for s in SubmissionStatus}:
            raise PayloadValidationError(f"Invalid status: {status!r}")
        query = query.where(Submission.status == status)

    result = await db.execute(query.order_by(Submission.created_at.desc(), Submission.id.desc()))
    return list(result.scalars())


async def update_visibility(
    db: AsyncSession,
    actor: Actor,
    submission_id: int,
    is_visible: bool | None = None,
    show_evidence: bool | None = None,
) -> Submission:
    """Owning student toggles portfolio visibility of an approved submission.

    The matching earned badge follows ``is_visible`` so the community feed
    honours it.

    Raises:
        PayloadValidationError: Nothing to update.
        NotFoundError: No approved submission owned by the actor with this id.
    """
    if is_visible is None and show_evidence is None:
        raise PayloadValidationError("Nothing to update")

    result = await db.execute(
        select(Submission).where(
            Submission.id == submission_id,
            Submission.student_id == actor.user_id,
            Submission.status == SubmissionStatus.APPROVED.value,
        )
    )
    submission = result.scalar_one_or_none()
    if submission is None:
        raise NotFoundError("Submission not found")

    if is_visible is not None:
        submission.is_visible = is_visible
        earned = await db.execute(
            select(EarnedBadge).where(
                EarnedBadge.student_id == submission.student_id,
                EarnedBadge.badge_id == submission.badge_id,
            )
        )
        earned_badge = earned.scalar_one_or_none()
        if earned_badge is not None:
            earned_badge.is_visible = is_visible
    if show_evidence is not None:
        submission.show_evidence = show_evidence
    submission.updated_at = datetime.now(timezone.utc)
    await db.flush()
    return submission
