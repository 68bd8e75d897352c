"""Earned badge creation under duplicate and concurrent approvals."""

import asyncio
from unittest.mock import patch

import pytest

from badgeflow.earning import service as earning_service
from badgeflow.earning.service import count_earned_badges, earn, get_earned_badge_ids
from badgeflow.errors import ConflictError
from badgeflow.submissions.state_machine import review_one


@pytest.fixture
async def pair(make_user, make_badge):
    teacher = await make_user(role="teacher")
    student = await make_user(role="student")
    badge = await make_badge(teacher)
    return student, badge


class TestEarn:
    async def test_creates_once(self, pair, db_session):
        student, badge = pair
        first, created = await earn(db_session, student.id, badge.id)
        second, created_again = await earn(db_session, student.id, badge.id)
        await db_session.commit()

        assert created is True
        assert created_again is False
        assert first.id == second.id
        assert await count_earned_badges(db_session, student.id, badge.id) == 1
        assert await get_earned_badge_ids(db_session, student.id) == [badge.id]
        await db_session.commit()

    async def test_lost_race_resolves_to_existing_row(self, pair, db_session):
        """The existence check misses a concurrent insert; the unique constraint catches it."""
        student, badge = pair
        existing, _ = await earn(db_session, student.id, badge.id)
        await db_session.commit()

        real_get = earning_service.get_earned_badge
        calls = {"n": 0}

        async def stale_then_real(db, student_id, badge_id):
            calls["n"] += 1
            if calls["n"] == 1:
                return None
            return await real_get(db, student_id, badge_id)

        with patch("badgeflow.earning.service.get_earned_badge", side_effect=stale_then_real):
            earned, created = await earn(db_session, student.id, badge.id)
        await db_session.commit()

        assert created is False
        assert earned.id == existing.id
        assert await count_earned_badges(db_session, student.id, badge.id) == 1
        await db_session.commit()

    async def test_persistent_conflict_surfaces(self, pair, db_session):
        student, badge = pair
        await earn(db_session, student.id, badge.id)
        await db_session.commit()

        async def always_missing(db, student_id, badge_id):
            return None

        with patch("badgeflow.earning.service.get_earned_badge", side_effect=always_missing):
            with pytest.raises(ConflictError):
                await earn(db_session, student.id, badge.id)
        await db_session.rollback()


class TestConcurrentApproval:
    async def test_parallel_earns_leave_one_row(self, pair, session_factory):
        student, badge = pair

        async def worker() -> bool:
            async with session_factory() as session:
                _, created = await earn(session, student.id, badge.id)
                await session.commit()
                return created

        results = await asyncio.gather(*(worker() for _ in range(5)))

        assert results.count(True) == 1
        async with session_factory() as session:
            assert await count_earned_badges(session, student.id, badge.id) == 1
            assert await get_earned_badge_ids(session, student.id) == [badge.id]

    async def test_admin_and_teacher_approve_same_pair(
        self, make_user, make_badge, make_submission, session_factory, actor_for
    ):
        teacher = await make_user(role="teacher")
        admin = await make_user(role="admin")
        student = await make_user(role="student")
        badge = await make_badge(teacher)
        first = await make_submission(student, badge)
        # a second record for the same pair, e.g. from before duplicate-pending checks
        second = await make_submission(student, badge)

        async def approve(actor, submission_id):
            async with session_factory() as session:
                await review_one(session, submission_id, actor, "approved")
                await session.commit()

        await asyncio.gather(
            approve(actor_for(teacher), first.id),
            approve(actor_for(admin), second.id),
        )

        async with session_factory() as session:
            assert await count_earned_badges(session, student.id, badge.id) == 1
