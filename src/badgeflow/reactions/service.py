"""Persisting reaction toggles on badges and earned badges."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

import structlog
from sqlalchemy import select

from badgeflow.db.models import Badge, EarnedBadge
from badgeflow.errors import NotFoundError
from badgeflow.identity.resolver import Actor
from badgeflow.reactions.aggregator import toggle_reaction, validate_reaction_type

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

logger = structlog.get_logger()

ReactionOwner = type[Badge] | type[EarnedBadge]


async def toggle_on(
    db: AsyncSession,
    model: ReactionOwner,
    entity_id: int,
    reaction_type: str,
    actor: Actor,
) -> list[dict[str, Any]]:
    """Toggle the actor's reaction on a Badge or EarnedBadge row.

    The row is re-read with a row lock right before the write so concurrent
    toggles by different users both land.

    Raises:
        InvalidReactionTypeError: Unknown reaction type.
        NotFoundError: No such entity.
    """
    validate_reaction_type(reaction_type)

    result = await db.execute(
        select(model)
        .where(model.id == entity_id)
        .with_for_update()
        .execution_options(populate_existing=True)
    )
    entity = result.scalar_one_or_none()
    if entity is None:
        raise NotFoundError(f"{'Badge' if model is Badge else 'Earned badge'} not found")

    # a fresh list so the JSON column is flagged dirty
    entity.reactions = toggle_reaction(entity.reactions, reaction_type, actor.email)
    await db.flush()

    logger.info(
        "reaction_toggled",
        owner=model.__tablename__,
        entity_id=entity_id,
        reaction=reaction_type,
        user_id=actor.user_id,
    )
    return entity.reactions


async def toggle_badge_reaction(db: AsyncSession, badge_id: int, reaction_type: str, actor: Actor) -> list[dict[str, Any]]:
    return await toggle_on(db, Badge, badge_id, reaction_type, actor)


async def toggle_earned_badge_reaction(
    db: AsyncSession, earned_badge_id: int, reaction_type: str, actor: Actor
) -> list[dict[str, Any]]:
    return await toggle_on(db, EarnedBadge, earned_badge_id, reaction_type, actor)
