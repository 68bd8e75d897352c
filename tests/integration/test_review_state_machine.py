"""Single-submission review: transitions, authorization and earn side effect."""

from unittest.mock import patch

import pytest
from sqlalchemy import select
from sqlalchemy.exc import OperationalError

from badgeflow.db.models import Submission
from badgeflow.earning.service import count_earned_badges, get_earned_badge_ids
from badgeflow.errors import EarnFailedError, ForbiddenError, NotFoundError, PayloadValidationError
from badgeflow.submissions.state_machine import review_one


@pytest.fixture
async def setup(make_user, make_badge, make_submission):
    teacher = await make_user(role="teacher")
    student = await make_user(role="student")
    badge = await make_badge(teacher)
    submission = await make_submission(student, badge)
    return teacher, student, badge, submission


async def _reload(session_factory, submission_id: int) -> Submission:
    async with session_factory() as session:
        result = await session.execute(select(Submission).where(Submission.id == submission_id))
        return result.scalar_one()


class TestApprove:
    async def test_approve_creates_earned_badge(self, setup, db_session, session_factory, actor_for):
        teacher, student, badge, submission = setup

        reviewed, earned = await review_one(db_session, submission.id, actor_for(teacher), "approved", "  Nice work ")
        await db_session.commit()

        assert reviewed.status == "approved"
        assert earned is not None
        assert earned.student_id == student.id
        assert earned.badge_id == badge.id

        stored = await _reload(session_factory, submission.id)
        assert stored.status == "approved"
        assert [c.content for c in stored.comments] == ["Nice work"]
        assert stored.comments[0].author_id == teacher.id

        async with session_factory() as session:
            assert await count_earned_badges(session, student.id, badge.id) == 1
            assert await get_earned_badge_ids(session, student.id) == [badge.id]

    async def test_approve_without_comment_adds_no_comment(self, setup, db_session, session_factory, actor_for):
        teacher, _, _, submission = setup
        await review_one(db_session, submission.id, actor_for(teacher), "approved")
        await db_session.commit()
        assert (await _reload(session_factory, submission.id)).comments == []

    async def test_reapproval_is_idempotent(self, setup, db_session, session_factory, actor_for):
        teacher, student, badge, submission = setup
        await review_one(db_session, submission.id, actor_for(teacher), "approved")
        await db_session.commit()

        _, earned = await review_one(db_session, submission.id, actor_for(teacher), "approved")
        await db_session.commit()

        assert earned is None
        async with session_factory() as session:
            assert await count_earned_badges(session, student.id, badge.id) == 1
            assert await get_earned_badge_ids(session, student.id) == [badge.id]

    async def test_admin_reviews_any_submission(self, setup, make_user, db_session, actor_for):
        _, _, _, submission = setup
        admin = await make_user(role="admin")
        reviewed, _ = await review_one(db_session, submission.id, actor_for(admin), "approved")
        assert reviewed.status == "approved"

    async def test_earn_failure_blocks_transition(self, setup, db_session, session_factory, actor_for):
        teacher, student, badge, submission = setup
        boom = OperationalError("INSERT INTO earned_badges", {}, Exception("disk I/O error"))

        with patch("badgeflow.earning.service._insert_earned_badge", side_effect=boom):
            with pytest.raises(EarnFailedError):
                await review_one(db_session, submission.id, actor_for(teacher), "approved", "Great")
        await db_session.commit()

        stored = await _reload(session_factory, submission.id)
        assert stored.status == "pending"
        assert stored.comments == []
        async with session_factory() as session:
            assert await count_earned_badges(session, student.id, badge.id) == 0


class TestReject:
    async def test_reject_with_comment(self, setup, db_session, session_factory, actor_for):
        teacher, student, badge, submission = setup
        reviewed, earned = await review_one(db_session, submission.id, actor_for(teacher), "rejected", "Needs sources")
        await db_session.commit()

        assert reviewed.status == "rejected"
        assert earned is None
        stored = await _reload(session_factory, submission.id)
        assert [c.content for c in stored.comments] == ["Needs sources"]
        async with session_factory() as session:
            assert await count_earned_badges(session, student.id, badge.id) == 0

    @pytest.mark.parametrize("comment", [None, "", "   "])
    async def test_reject_requires_comment(self, setup, db_session, session_factory, actor_for, comment):
        teacher, _, _, submission = setup
        with pytest.raises(PayloadValidationError, match="Comment is required"):
            await review_one(db_session, submission.id, actor_for(teacher), "rejected", comment)
        await db_session.rollback()
        assert (await _reload(session_factory, submission.id)).status == "pending"

    async def test_rejected_is_terminal(self, setup, db_session, actor_for):
        teacher, _, _, submission = setup
        await review_one(db_session, submission.id, actor_for(teacher), "rejected", "No")
        await db_session.commit()
        with pytest.raises(PayloadValidationError, match="Invalid transition"):
            await review_one(db_session, submission.id, actor_for(teacher), "approved")

    async def test_approved_cannot_be_rejected(self, setup, db_session, actor_for):
        teacher, _, _, submission = setup
        await review_one(db_session, submission.id, actor_for(teacher), "approved")
        await db_session.commit()
        with pytest.raises(PayloadValidationError, match="Invalid transition"):
            await review_one(db_session, submission.id, actor_for(teacher), "rejected", "Changed my mind")


class TestGuards:
    async def test_unknown_submission(self, setup, db_session, actor_for):
        teacher = setup[0]
        with pytest.raises(NotFoundError):
            await review_one(db_session, 999_999, actor_for(teacher), "approved")

    async def test_other_teacher_forbidden(self, setup, make_user, db_session, actor_for):
        _, _, _, submission = setup
        other = await make_user(role="teacher")
        with pytest.raises(ForbiddenError):
            await review_one(db_session, submission.id, actor_for(other), "approved")

    async def test_student_forbidden(self, setup, db_session, actor_for):
        _, student, _, submission = setup
        with pytest.raises(ForbiddenError):
            await review_one(db_session, submission.id, actor_for(student), "approved")

    async def test_not_found_checked_before_payload(self, setup, db_session, actor_for):
        teacher = setup[0]
        with pytest.raises(NotFoundError):
            await review_one(db_session, 999_999, actor_for(teacher), "bogus")

    async def test_forbidden_checked_before_payload(self, setup, make_user, db_session, actor_for):
        _, _, _, submission = setup
        other = await make_user(role="teacher")
        with pytest.raises(ForbiddenError):
            await review_one(db_session, submission.id, actor_for(other), "rejected", None)

    @pytest.mark.parametrize("status", [None, "", "pending", "archived"])
    async def test_invalid_status(self, setup, db_session, actor_for, status):
        teacher = setup[0]
        with pytest.raises(PayloadValidationError):
            await review_one(db_session, setup[3].id, actor_for(teacher), status)
