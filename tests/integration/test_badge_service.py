"""Badge template editing and deletion."""

import pytest
from sqlalchemy import func, select

from badgeflow.badges.service import delete_badge, get_badge, update_badge
from badgeflow.db.models import Badge, Submission, SubmissionComment
from badgeflow.errors import ConflictError, ForbiddenError, NotFoundError, PayloadValidationError
from badgeflow.submissions.state_machine import review_one


@pytest.fixture
async def badges(make_user, make_badge):
    teacher = await make_user(role="teacher")
    other_teacher = await make_user(role="teacher")
    admin = await make_user(role="admin")
    badge = await make_badge(teacher, name="Lab Safety")
    return teacher, other_teacher, admin, badge


class TestUpdateBadge:
    async def test_creator_edits_own_badge(self, badges, db_session, session_factory, actor_for):
        teacher, _, _, badge = badges
        await update_badge(db_session, actor_for(teacher), badge.id, {"name": "  Lab Safety II ", "difficulty": 4})
        await db_session.commit()

        async with session_factory() as session:
            stored = await session.get(Badge, badge.id)
        assert stored.name == "Lab Safety II"
        assert stored.difficulty == 4
        assert stored.criteria == badge.criteria

    async def test_other_teacher_forbidden(self, badges, db_session, session_factory, actor_for):
        _, other_teacher, _, badge = badges
        with pytest.raises(ForbiddenError, match="only update your own"):
            await update_badge(db_session, actor_for(other_teacher), badge.id, {"name": "Mine now"})
        await db_session.rollback()

        async with session_factory() as session:
            assert (await session.get(Badge, badge.id)).name == "Lab Safety"

    async def test_admin_edits_any_badge(self, badges, db_session, session_factory, actor_for):
        _, _, admin, badge = badges
        await update_badge(db_session, actor_for(admin), badge.id, {"is_public": False, "category": "science"})
        await db_session.commit()

        async with session_factory() as session:
            stored = await session.get(Badge, badge.id)
        assert stored.is_public is False
        assert stored.category == "science"

    async def test_student_forbidden(self, badges, make_user, db_session, actor_for):
        student = await make_user()
        with pytest.raises(ForbiddenError):
            await update_badge(db_session, actor_for(student), badges[3].id, {"name": "x"})

    async def test_difficulty_checked(self, badges, db_session, actor_for):
        teacher, _, _, badge = badges
        with pytest.raises(PayloadValidationError, match="Difficulty"):
            await update_badge(db_session, actor_for(teacher), badge.id, {"difficulty": 0})

    async def test_blank_text_rejected(self, badges, db_session, actor_for):
        teacher, _, _, badge = badges
        with pytest.raises(PayloadValidationError, match="criteria"):
            await update_badge(db_session, actor_for(teacher), badge.id, {"criteria": "   "})

    async def test_missing_badge(self, badges, db_session, actor_for):
        with pytest.raises(NotFoundError):
            await update_badge(db_session, actor_for(badges[2]), 9999, {"name": "x"})


class TestGetBadge:
    async def test_private_badge_hidden_from_others(self, make_user, make_badge, db_session, actor_for):
        teacher = await make_user(role="teacher")
        student = await make_user()
        private = await make_badge(teacher, is_public=False)

        assert (await get_badge(db_session, actor_for(teacher), private.id)).id == private.id
        with pytest.raises(NotFoundError):
            await get_badge(db_session, actor_for(student), private.id)


class TestDeleteBadge:
    async def test_removes_submissions_and_comments(
        self, badges, make_user, make_submission, db_session, session_factory, actor_for
    ):
        teacher, _, _, badge = badges
        student = await make_user()
        submission = await make_submission(student, badge)
        await review_one(db_session, submission.id, actor_for(teacher), "rejected", "Missing goggles")
        await db_session.commit()

        await delete_badge(db_session, actor_for(teacher), badge.id)
        await db_session.commit()

        async with session_factory() as session:
            assert await session.get(Badge, badge.id) is None
            assert await session.scalar(select(func.count()).select_from(Submission)) == 0
            assert await session.scalar(select(func.count()).select_from(SubmissionComment)) == 0

    async def test_earned_badge_blocks_delete(
        self, badges, make_user, make_submission, db_session, session_factory, actor_for
    ):
        _, _, admin, badge = badges
        student = await make_user()
        submission = await make_submission(student, badge)
        await review_one(db_session, submission.id, actor_for(admin), "approved")
        await db_session.commit()

        with pytest.raises(ConflictError):
            await delete_badge(db_session, actor_for(admin), badge.id)
        await db_session.rollback()

        async with session_factory() as session:
            assert await session.get(Badge, badge.id) is not None

    async def test_other_teacher_forbidden(self, badges, db_session, actor_for):
        _, other_teacher, _, badge = badges
        with pytest.raises(ForbiddenError, match="only delete your own"):
            await delete_badge(db_session, actor_for(other_teacher), badge.id)
