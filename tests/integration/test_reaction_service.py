"""Reaction toggles persisted on badges and earned badges."""

import asyncio

import pytest
from sqlalchemy import select

from badgeflow.db.models import Badge, EarnedBadge
from badgeflow.earning.service import earn
from badgeflow.errors import InvalidReactionTypeError, NotFoundError
from badgeflow.reactions.service import toggle_badge_reaction, toggle_earned_badge_reaction

CLAP = "\U0001f44f"
STAR = "\U0001f31f"
PARTY = "\U0001f389"


class TestBadgeReactions:
    async def test_toggle_persists(self, make_user, make_badge, db_session, session_factory, actor_for):
        teacher = await make_user(role="teacher")
        student = await make_user(role="student")
        badge = await make_badge(teacher)

        await toggle_badge_reaction(db_session, badge.id, CLAP, actor_for(student))
        await db_session.commit()
        reactions = await toggle_badge_reaction(db_session, badge.id, CLAP, actor_for(teacher))
        await db_session.commit()

        assert reactions == [{"type": CLAP, "users": [student.email, teacher.email]}]
        async with session_factory() as session:
            stored = (await session.execute(select(Badge).where(Badge.id == badge.id))).scalar_one()
            assert stored.reactions == reactions

    async def test_second_toggle_removes(self, make_user, make_badge, db_session, actor_for):
        teacher = await make_user(role="teacher")
        badge = await make_badge(teacher)
        await toggle_badge_reaction(db_session, badge.id, STAR, actor_for(teacher))
        await db_session.commit()
        assert await toggle_badge_reaction(db_session, badge.id, STAR, actor_for(teacher)) == []
        await db_session.commit()

    async def test_unknown_badge(self, make_user, db_session, actor_for):
        user = await make_user()
        with pytest.raises(NotFoundError, match="Badge not found"):
            await toggle_badge_reaction(db_session, 12345, CLAP, actor_for(user))

    async def test_invalid_type(self, make_user, make_badge, db_session, actor_for):
        teacher = await make_user(role="teacher")
        badge = await make_badge(teacher)
        with pytest.raises(InvalidReactionTypeError):
            await toggle_badge_reaction(db_session, badge.id, "+1", actor_for(teacher))


class TestEarnedBadgeReactions:
    async def test_toggle_on_earned_badge(self, make_user, make_badge, db_session, session_factory, actor_for):
        teacher = await make_user(role="teacher")
        student = await make_user(role="student")
        badge = await make_badge(teacher)
        earned, _ = await earn(db_session, student.id, badge.id)
        await db_session.commit()

        reactions = await toggle_earned_badge_reaction(db_session, earned.id, CLAP, actor_for(teacher))
        await db_session.commit()

        assert reactions == [{"type": CLAP, "users": [teacher.email]}]
        async with session_factory() as session:
            stored = await session.get(EarnedBadge, earned.id)
            assert stored.reactions == reactions

    async def test_unknown_earned_badge(self, make_user, db_session, actor_for):
        user = await make_user()
        with pytest.raises(NotFoundError, match="Earned badge not found"):
            await toggle_earned_badge_reaction(db_session, 12345, CLAP, actor_for(user))


class TestConcurrentToggles:
    async def test_parallel_toggles_by_different_users_all_land(
        self, make_user, make_badge, session_factory, actor_for
    ):
        teacher = await make_user(role="teacher")
        badge = await make_badge(teacher)
        students = [await make_user(role="student") for _ in range(6)]
        chosen = {s.email: (CLAP if i % 2 == 0 else PARTY) for i, s in enumerate(students)}

        async def react(student):
            async with session_factory() as session:
                await toggle_badge_reaction(session, badge.id, chosen[student.email], actor_for(student))
                await session.commit()

        await asyncio.gather(*(react(s) for s in students))

        async with session_factory() as session:
            stored = await session.get(Badge, badge.id)
        by_type = {entry["type"]: entry["users"] for entry in stored.reactions}
        assert set(by_type) == {CLAP, PARTY}
        for reaction_type, users in by_type.items():
            assert len(users) == len(set(users))
            assert set(users) == {email for email, t in chosen.items() if t == reaction_type}
