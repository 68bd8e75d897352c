"""Submission pipeline endpoints.

Each handler owns the transaction: services flush, the handler commits once.
A PipelineError propagates to the global handler and the session closes
without committing.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query
from redis.asyncio import Redis
from sqlalchemy.ext.asyncio import AsyncSession

from badgeflow.auth.dependencies import get_current_actor
from badgeflow.database import get_session
from badgeflow.dependencies import get_redis_dep
from badgeflow.earning.service import publish_badge_earned
from badgeflow.identity.resolver import Actor
from badgeflow.submissions.bulk import review_many
from badgeflow.submissions.schemas import (
    BulkFailureResponse,
    BulkReviewRequest,
    BulkReviewResponse,
    ReviewRequest,
    ReviewResponse,
    SubmissionCreateRequest,
    SubmissionListResponse,
    SubmissionResponse,
    VisibilityRequest,
)
from badgeflow.submissions.service import create_submission, list_submissions, update_visibility
from badgeflow.submissions.state_machine import review_one

router = APIRouter(prefix="/api/v1", tags=["Submissions"])


@router.post("/submissions", response_model=SubmissionResponse, status_code=201)
async def submit(
    body: SubmissionCreateRequest,
    actor: Actor = Depends(get_current_actor),
    db: AsyncSession = Depends(get_session),
) -> SubmissionResponse:
    submission = await create_submission(db, actor, body.badge_id, body.evidence, body.show_evidence)
    await db.commit()
    return SubmissionResponse.model_validate(submission)


@router.get("/submissions", response_model=SubmissionListResponse)
async def list_all(
    status: str | None = Query(None),
    student_id: int | None = Query(None),
    actor: Actor = Depends(get_current_actor),
    db: AsyncSession = Depends(get_session),
) -> SubmissionListResponse:
    submissions = await list_submissions(db, actor, status=status, student_id=student_id)
    return SubmissionListResponse(submissions=[SubmissionResponse.model_validate(s) for s in submissions])


@router.put("/submissions/{submission_id}", response_model=ReviewResponse)
async def review(
    submission_id: int,
    body: ReviewRequest,
    actor: Actor = Depends(get_current_actor),
    db: AsyncSession = Depends(get_session),
    redis: Redis | None = Depends(get_redis_dep),
) -> ReviewResponse:
    """Approve or reject one submission. Approval also records the earned badge."""
    submission, earned = await review_one(db, submission_id, actor, body.status, body.comment)
    await db.commit()
    if earned is not None:
        await publish_badge_earned(redis, earned)
    return ReviewResponse(
        message=f"Submission {submission.status}",
        submission=SubmissionResponse.model_validate(submission),
    )


@router.post("/submissions/bulk-update", response_model=BulkReviewResponse)
async def bulk_update(
    body: BulkReviewRequest,
    actor: Actor = Depends(get_current_actor),
    db: AsyncSession = Depends(get_session),
    redis: Redis | None = Depends(get_redis_dep),
) -> BulkReviewResponse:
    """Review many submissions; per-item failures are reported, not raised."""
    result = await review_many(db, body.submission_ids, actor, body.status, body.comment)
    await db.commit()
    for earned in result.earned:
        await publish_badge_earned(redis, earned)
    return BulkReviewResponse(
        updated_count=result.updated_count,
        failures=[BulkFailureResponse(id=f.id, reason=f.reason) for f in result.failures],
    )


@router.put("/portfolio/visibility", response_model=SubmissionResponse)
async def portfolio_visibility(
    body: VisibilityRequest,
    actor: Actor = Depends(get_current_actor),
    db: AsyncSession = Depends(get_session),
) -> SubmissionResponse:
    submission = await update_visibility(
        db, actor, body.submission_id, is_visible=body.is_visible, show_evidence=body.show_evidence
    )
    await db.commit()
    return SubmissionResponse.model_validate(submission)
