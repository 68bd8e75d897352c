"""Submission review state machine.

States: pending (initial) -> approved | rejected. Both outcomes are terminal
for a Submission record; a rejected student resubmits by creating a new one.

Approval and its earn side effect run inside a single SAVEPOINT, so an earn
failure leaves neither the review comment nor the status change behind.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import TYPE_CHECKING

import structlog
from sqlalchemy import select

from badgeflow.db.models import Submission, SubmissionComment, SubmissionStatus
from badgeflow.earning.service import earn
from badgeflow.errors import ForbiddenError, NotFoundError, PayloadValidationError
from badgeflow.identity.policy import can_review_submission
from badgeflow.identity.resolver import Actor

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

    from badgeflow.db.models import EarnedBadge

logger = structlog.get_logger()

REVIEW_STATUSES = frozenset({SubmissionStatus.APPROVED.value, SubmissionStatus.REJECTED.value})

VALID_TRANSITIONS: dict[str, frozenset[str]] = {
    SubmissionStatus.PENDING.value: REVIEW_STATUSES,
    # Re-approving re-runs earn as a repair guard and changes nothing else.
    SubmissionStatus.APPROVED.value: frozenset({SubmissionStatus.APPROVED.value}),
    SubmissionStatus.REJECTED.value: frozenset(),
}


def validate_review_payload(new_status: str | None, comment: str | None) -> str | None:
    """Validate the requested status and return the trimmed comment (or None).

    Raises:
        PayloadValidationError: Unknown status, or a rejection without a comment.
    """
    if not new_status:
        raise PayloadValidationError("Status is required")
    if new_status not in REVIEW_STATUSES:
        raise PayloadValidationError(f"Invalid status: {new_status!r}")
    trimmed = comment.strip() if comment else ""
    if new_status == SubmissionStatus.REJECTED.value and not trimmed:
        raise PayloadValidationError("Comment is required for rejection")
    return trimmed or None


def validate_transition(current: str, new_status: str) -> None:
    """Raise PayloadValidationError unless current -> new_status is allowed."""
    if new_status not in VALID_TRANSITIONS.get(current, frozenset()):
        msg = f"Invalid transition: {current} -> {new_status}"
        raise PayloadValidationError(msg)


async def get_submission(db: AsyncSession, submission_id: int) -> Submission | None:
    """Fetch a submission with its comments."""
    result = await db.execute(select(Submission).where(Submission.id == submission_id))
    return result.scalar_one_or_none()


async def apply_review(
    db: AsyncSession,
    submission: Submission,
    actor: Actor,
    new_status: str,
    comment: str | None,
) -> EarnedBadge | None:
    """Apply a validated review to an authorized submission.

    Returns the newly created EarnedBadge, if approval created one.

    Raises:
        PayloadValidationError: Invalid transition.
        EarnFailedError | ConflictError: Earn failed; nothing was persisted.
    """
    validate_transition(submission.status, new_status)
    now = datetime.now(timezone.utc)

    created: EarnedBadge | None = None
    async with db.begin_nested():
        if comment:
            submission.comments.append(
                SubmissionComment(author_id=actor.user_id, content=comment, created_at=now)
            )
        submission.status = new_status
        submission.updated_at = now
        if new_status == SubmissionStatus.APPROVED.value:
            earned, was_created = await earn(db, submission.student_id, submission.badge_id)
            if was_created:
                created = earned
        await db.flush()
    return created


async def review_one(
    db: AsyncSession,
    submission_id: int,
    actor: Actor,
    new_status: str,
    comment: str | None = None,
) -> tuple[Submission, EarnedBadge | None]:
    """Review a single submission.

    Returns the submission and the EarnedBadge approval created, if any. The
    caller commits and then announces the new earned badge.

    Raises:
        NotFoundError: Submission does not exist.
        ForbiddenError: Actor may not review it.
        PayloadValidationError: Bad status, missing rejection comment, or invalid transition.
        EarnFailedError | ConflictError: Approval side effect failed; submission unchanged.
    """
    submission = await get_submission(db, submission_id)
    if submission is None:
        raise NotFoundError("Submission not found")

    if not can_review_submission(actor, submission):
        raise ForbiddenError("You can only review submissions assigned to you")

    trimmed = validate_review_payload(new_status, comment)
    created = await apply_review(db, submission, actor, new_status, trimmed)

    logger.info(
        "submission_reviewed",
        submission_id=submission_id,
        status=new_status,
        reviewer_id=actor.user_id,
        earned_badge_created=created is not None,
    )
    return submission, created
