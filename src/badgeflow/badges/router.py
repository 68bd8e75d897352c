"""Badge template endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from badgeflow.auth.dependencies import get_current_actor
from badgeflow.badges.schemas import BadgeCreateRequest, BadgeListResponse, BadgeResponse, BadgeUpdateRequest
from badgeflow.badges.service import create_badge, delete_badge, get_badge, list_badges, update_badge
from badgeflow.database import get_session
from badgeflow.identity.resolver import Actor
from badgeflow.reactions.aggregator import reaction_counts
from badgeflow.reactions.schemas import ReactionRequest, ReactionsResponse
from badgeflow.reactions.service import toggle_badge_reaction

router = APIRouter(prefix="/api/v1/badges", tags=["Badges"])


@router.post("", response_model=BadgeResponse, status_code=201)
async def create(
    body: BadgeCreateRequest,
    actor: Actor = Depends(get_current_actor),
    db: AsyncSession = Depends(get_session),
) -> BadgeResponse:
    badge = await create_badge(db, actor, **body.model_dump())
    await db.commit()
    return BadgeResponse.model_validate(badge)


@router.get("", response_model=BadgeListResponse)
async def list_all(
    actor: Actor = Depends(get_current_actor),
    db: AsyncSession = Depends(get_session),
) -> BadgeListResponse:
    badges = await list_badges(db, actor)
    return BadgeListResponse(badges=[BadgeResponse.model_validate(b) for b in badges])


@router.get("/{badge_id}", response_model=BadgeResponse)
async def get_one(
    badge_id: int,
    actor: Actor = Depends(get_current_actor),
    db: AsyncSession = Depends(get_session),
) -> BadgeResponse:
    return BadgeResponse.model_validate(await get_badge(db, actor, badge_id))


@router.put("/{badge_id}", response_model=BadgeResponse)
async def update(
    badge_id: int,
    body: BadgeUpdateRequest,
    actor: Actor = Depends(get_current_actor),
    db: AsyncSession = Depends(get_session),
) -> BadgeResponse:
    """Partial update; only fields present in the body change."""
    badge = await update_badge(db, actor, badge_id, body.model_dump(exclude_unset=True))
    await db.commit()
    return BadgeResponse.model_validate(badge)


@router.delete("/{badge_id}")
async def delete(
    badge_id: int,
    actor: Actor = Depends(get_current_actor),
    db: AsyncSession = Depends(get_session),
) -> dict[str, str]:
    await delete_badge(db, actor, badge_id)
    await db.commit()
    return {"status": "deleted"}


@router.post("/{badge_id}/react", response_model=ReactionsResponse)
async def react(
    badge_id: int,
    body: ReactionRequest,
    actor: Actor = Depends(get_current_actor),
    db: AsyncSession = Depends(get_session),
) -> ReactionsResponse:
    """Toggle the caller's reaction on a badge template."""
    reactions = await toggle_badge_reaction(db, badge_id, body.type, actor)
    await db.commit()
    return ReactionsResponse(reactions=reactions, counts=reaction_counts(reactions))
