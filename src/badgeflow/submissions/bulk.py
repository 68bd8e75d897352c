"""Bulk submission review.

One authorization decision scopes the batch; each in-scope submission then
goes through the single-review transition independently. A failed item rolls
back only its own SAVEPOINT and is reported in the result.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING

import structlog
from sqlalchemy import select

from badgeflow.db.models import EarnedBadge, Submission
from badgeflow.errors import NotFoundError, PayloadValidationError, PipelineError
from badgeflow.identity.policy import can_review_submission, review_scope
from badgeflow.identity.resolver import Actor
from badgeflow.submissions.state_machine import apply_review, validate_review_payload

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

logger = structlog.get_logger()

OUT_OF_SCOPE_REASON = "not found within scope"


@dataclass
class BulkFailure:
    id: int
    reason: str


@dataclass
class BulkReviewResult:
    updated_count: int = 0
    failures: list[BulkFailure] = field(default_factory=list)
    updated_ids: list[int] = field(default_factory=list)
    earned: list[EarnedBadge] = field(default_factory=list)


async def load_scoped_submissions(
    db: AsyncSession,
    submission_ids: list[int],
    teacher_id: int | None,
) -> list[Submission]:
    """Requested submissions within scope; a teacher id restricts to that teacher's."""
    query = select(Submission).where(Submission.id.in_(submission_ids))
    if teacher_id is not None:
        query = query.where(Submission.teacher_id == teacher_id)
    result = await db.execute(query.order_by(Submission.id))
    return list(result.scalars())


async def review_many(
    db: AsyncSession,
    submission_ids: list[int],
    actor: Actor,
    new_status: str,
    comment: str | None = None,
) -> BulkReviewResult:
    """Review a batch of submissions under a single scope check.

    Raises:
        ForbiddenError: Actor cannot review at all.
        PayloadValidationError: Empty id list, bad status, or rejection without comment.
        NotFoundError: Nothing in the batch is within the actor's scope.
    """
    teacher_id = review_scope(actor)
    if not submission_ids:
        raise PayloadValidationError("No submission IDs provided")
    trimmed = validate_review_payload(new_status, comment)

    requested = list(dict.fromkeys(submission_ids))
    submissions = await load_scoped_submissions(db, requested, teacher_id)
    if not submissions:
        raise NotFoundError("No valid submissions found")

    result = BulkReviewResult()
    in_scope = {s.id for s in submissions}
    for missing_id in requested:
        if missing_id not in in_scope:
            result.failures.append(BulkFailure(id=missing_id, reason=OUT_OF_SCOPE_REASON))

    for submission in submissions:
        submission_id = submission.id
        if not can_review_submission(actor, submission):
            result.failures.append(BulkFailure(id=submission_id, reason=OUT_OF_SCOPE_REASON))
            continue
        try:
            earned = await apply_review(db, submission, actor, new_status, trimmed)
        except PipelineError as e:
            logger.warning("bulk_review_item_failed", submission_id=submission_id, kind=e.kind, error=e.detail)
            result.failures.append(BulkFailure(id=submission_id, reason=f"{e.kind}: {e.detail}"))
            continue
        result.updated_count += 1
        result.updated_ids.append(submission_id)
        if earned is not None:
            result.earned.append(earned)

    logger.info(
        "bulk_review_completed",
        reviewer_id=actor.user_id,
        status=new_status,
        requested=len(requested),
        updated=result.updated_count,
        failed=len(result.failures),
    )
    return result
