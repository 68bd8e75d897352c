"""Community feed and earned-badge endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from badgeflow.auth.dependencies import get_current_actor
from badgeflow.database import get_session
from badgeflow.earning.schemas import CommunityResponse, EarnedBadgeCheckResponse, EarnedBadgeResponse
from badgeflow.earning.service import count_earned_badges, list_community
from badgeflow.identity.resolver import Actor
from badgeflow.reactions.aggregator import reaction_counts
from badgeflow.reactions.schemas import ReactionRequest, ReactionsResponse
from badgeflow.reactions.service import toggle_earned_badge_reaction

router = APIRouter(prefix="/api/v1", tags=["Community"])


@router.get("/community", response_model=CommunityResponse)
async def community(
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
    _actor: Actor = Depends(get_current_actor),
    db: AsyncSession = Depends(get_session),
) -> CommunityResponse:
    """Visible earned badges, newest first."""
    earned = await list_community(db, limit=limit, offset=offset)
    return CommunityResponse(
        earned_badges=[EarnedBadgeResponse.model_validate(e) for e in earned],
        limit=limit,
        offset=offset,
    )


@router.post("/community/{earned_badge_id}/react", response_model=ReactionsResponse)
async def react(
    earned_badge_id: int,
    body: ReactionRequest,
    actor: Actor = Depends(get_current_actor),
    db: AsyncSession = Depends(get_session),
) -> ReactionsResponse:
    reactions = await toggle_earned_badge_reaction(db, earned_badge_id, body.type, actor)
    await db.commit()
    return ReactionsResponse(reactions=reactions, counts=reaction_counts(reactions))


@router.get("/earned-badges/check", response_model=EarnedBadgeCheckResponse)
async def check(
    student_id: int,
    badge_id: int,
    _actor: Actor = Depends(get_current_actor),
    db: AsyncSession = Depends(get_session),
) -> EarnedBadgeCheckResponse:
    """Number of earned-badge records for a pair; never more than one."""
    count = await count_earned_badges(db, student_id, badge_id)
    return EarnedBadgeCheckResponse(student_id=student_id, badge_id=badge_id, count=count, earned=count > 0)
