"""Earned badge creation with duplicate prevention.

At most one EarnedBadge exists per (student, badge). The existence check is an
optimisation; the UNIQUE constraint on earned_badges is the arbiter, and a
write that loses the race is resolved by re-checking.
"""

from __future__ import annotations

import json
from datetime import datetime, timezone
from typing import TYPE_CHECKING

import structlog
from sqlalchemy import func, insert, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from badgeflow.db.models import EarnedBadge, user_earned_badges
from badgeflow.errors import ConflictError, EarnFailedError

if TYPE_CHECKING:
    from redis.asyncio import Redis
    from sqlalchemy.ext.asyncio import AsyncSession

logger = structlog.get_logger()

# Insert attempts before a unique-constraint clash is surfaced as ConflictError.
MAX_EARN_ATTEMPTS = 2


async def get_earned_badge(db: AsyncSession, student_id: int, badge_id: int) -> EarnedBadge | None:
    """Fetch the earned badge for a (student, badge) pair."""
    result = await db.execute(
        select(EarnedBadge).where(
            EarnedBadge.student_id == student_id,
            EarnedBadge.badge_id == badge_id,
        )
    )
    return result.scalar_one_or_none()


async def count_earned_badges(db: AsyncSession, student_id: int, badge_id: int) -> int:
    result = await db.execute(
        select(func.count())
        .select_from(EarnedBadge)
        .where(EarnedBadge.student_id == student_id, EarnedBadge.badge_id == badge_id)
    )
    return result.scalar_one()


async def get_earned_badge_ids(db: AsyncSession, user_id: int) -> list[int]:
    """Badge ids in a user's earned-badge set."""
    result = await db.execute(
        select(user_earned_badges.c.badge_id).where(user_earned_badges.c.user_id == user_id)
    )
    return list(result.scalars())


async def _insert_earned_badge(db: AsyncSession, student_id: int, badge_id: int) -> EarnedBadge:
    earned = EarnedBadge(
        student_id=student_id,
        badge_id=badge_id,
        reactions=[],
        created_at=datetime.now(timezone.utc),
    )
    db.add(earned)
    await db.flush()
    return earned


async def _add_to_earned_set(db: AsyncSession, user_id: int, badge_id: int) -> None:
    """Add the badge to the user's earned set unless it is already there."""
    result = await db.execute(
        select(user_earned_badges.c.badge_id).where(
            user_earned_badges.c.user_id == user_id,
            user_earned_badges.c.badge_id == badge_id,
        )
    )
    if result.first() is not None:
        return
    try:
        async with db.begin_nested():
            await db.execute(
                insert(user_earned_badges).values(
                    user_id=user_id,
                    badge_id=badge_id,
                    added_at=datetime.now(timezone.utc),
                )
            )
    except IntegrityError:
        # Concurrent writer added it first
        pass


async def earn(db: AsyncSession, student_id: int, badge_id: int) -> tuple[EarnedBadge, bool]:
    """Ensure the student holds the badge.

    Returns:
        Tuple of (earned_badge, created) where created is False when the pair
        already existed (idempotent re-approval or a lost race).

    Raises:
        ConflictError: If the unique constraint keeps rejecting the insert but
            no existing row can be found.
        EarnFailedError: On any other storage failure.
    """
    try:
        for attempt in range(1, MAX_EARN_ATTEMPTS + 1):
            existing = await get_earned_badge(db, student_id, badge_id)
            if existing is not None:
                await _add_to_earned_set(db, student_id, badge_id)
                return existing, False

            try:
                async with db.begin_nested():
                    earned = await _insert_earned_badge(db, student_id, badge_id)
            except IntegrityError:
                logger.info(
                    "earned_badge_conflict",
                    student_id=student_id,
                    badge_id=badge_id,
                    attempt=attempt,
                )
                continue

            await _add_to_earned_set(db, student_id, badge_id)
            logger.info("badge_earned", student_id=student_id, badge_id=badge_id, earned_badge_id=earned.id)
            return earned, True
    except SQLAlchemyError as e:
        logger.error("earn_failed", student_id=student_id, badge_id=badge_id, error=str(e))
        raise EarnFailedError(f"Failed to create earned badge: {e.__class__.__name__}") from e

    raise ConflictError(f"Duplicate earned badge for student {student_id} and badge {badge_id}")


async def publish_badge_earned(redis: Redis | None, earned: EarnedBadge) -> None:
    """Best-effort pub/sub notification of a newly earned badge."""
    if redis is None:
        return
    try:
        await redis.publish(
            "pubsub:badge_earned",
            json.dumps({
                "earned_badge_id": earned.id,
                "student_id": earned.student_id,
                "badge_id": earned.badge_id,
            }),
        )
    except Exception:
        logger.warning("badge_earned_publish_failed", earned_badge_id=earned.id, exc_info=True)


async def list_community(db: AsyncSession, limit: int = 50, offset: int = 0) -> list[EarnedBadge]:
    """Visible earned badges, newest first."""
    result = await db.execute(
        select(EarnedBadge)
        .where(EarnedBadge.is_visible.is_(True))
        .order_by(EarnedBadge.created_at.desc(), EarnedBadge.id.desc())
        .limit(limit)
        .offset(offset)
    )
    return list(result.scalars())
