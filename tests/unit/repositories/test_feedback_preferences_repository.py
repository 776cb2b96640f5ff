"""
Unit tests for FeedbackRepository and PreferenceRepository.
"""

from datetime import timedelta

import pytest

from command_center.models.feedback import FeedbackAction
from tests.conftest import FIXED_NOW


async def _feedback(feedback_repo, action, user_id="user-1", comment=None, ms=None, at=FIXED_NOW, **kwargs):
    return await feedback_repo.create(
        draft_id="draft-1",
        user_id=user_id,
        action=action,
        created_at=at,
        user_comment=comment,
        time_to_decide_ms=ms,
        **kwargs,
    )


class TestFeedbackRepository:
    @pytest.mark.asyncio
    async def test_modifications_oldest_first(self, feedback_repo):
        await _feedback(feedback_repo, FeedbackAction.MODIFIED, at=FIXED_NOW + timedelta(minutes=1),
                        modified_draft_json={"title": "second"})
        await _feedback(feedback_repo, FeedbackAction.MODIFIED, modified_draft_json={"title": "first"})
        await _feedback(feedback_repo, FeedbackAction.APPROVED)
        await _feedback(feedback_repo, FeedbackAction.MODIFIED, user_id="user-2")

        records = await feedback_repo.get_modifications("user-1")

        assert [r.modified_draft_json["title"] for r in records] == ["first", "second"]

    @pytest.mark.asyncio
    async def test_count_by_action_respects_window(self, feedback_repo):
        await _feedback(feedback_repo, FeedbackAction.APPROVED)
        await _feedback(feedback_repo, FeedbackAction.APPROVED)
        await _feedback(feedback_repo, FeedbackAction.REJECTED)
        await _feedback(feedback_repo, FeedbackAction.APPROVED, at=FIXED_NOW - timedelta(days=10))

        counts = await feedback_repo.count_by_action(FIXED_NOW - timedelta(days=7))

        assert counts == {"APPROVED": 2, "REJECTED": 1}

    @pytest.mark.asyncio
    async def test_average_decision_time_ignores_missing(self, feedback_repo):
        await _feedback(feedback_repo, FeedbackAction.APPROVED, ms=1000)
        await _feedback(feedback_repo, FeedbackAction.APPROVED, ms=3000)
        await _feedback(feedback_repo, FeedbackAction.APPROVED)

        assert await feedback_repo.average_decision_time(FIXED_NOW - timedelta(days=1)) == pytest.approx(2000.0)

    @pytest.mark.asyncio
    async def test_average_decision_time_empty(self, feedback_repo):
        assert await feedback_repo.average_decision_time(FIXED_NOW) is None

    @pytest.mark.asyncio
    async def test_top_rejection_reasons(self, feedback_repo):
        for _ in range(3):
            await _feedback(feedback_repo, FeedbackAction.REJECTED, comment="duplicate")
        await _feedback(feedback_repo, FeedbackAction.REJECTED, comment="wrong area")
        await _feedback(feedback_repo, FeedbackAction.REJECTED)

        reasons = await feedback_repo.top_rejection_reasons(FIXED_NOW - timedelta(days=1), limit=1)

        assert reasons == [("duplicate", 3)]


class TestPreferenceRepository:
    @pytest.mark.asyncio
    async def test_record_decision_creates_row(self, preference_repo):
        assert await preference_repo.get("user-1") is None

        prefs = await preference_repo.record_decision("user-1", FeedbackAction.APPROVED)

        assert prefs.total_drafts_approved == 1
        assert prefs.total_interactions == 1
        assert prefs.correction_patterns == []

    @pytest.mark.asyncio
    async def test_record_decision_increments(self, preference_repo):
        await preference_repo.record_decision("user-1", FeedbackAction.MODIFIED)
        await preference_repo.record_decision("user-1", FeedbackAction.MODIFIED)
        await preference_repo.record_decision("user-1", FeedbackAction.REJECTED)

        prefs = await preference_repo.get("user-1")

        assert prefs.total_drafts_modified == 2
        assert prefs.total_drafts_rejected == 1
        assert prefs.total_interactions == 3

    @pytest.mark.asyncio
    async def test_update_patterns_requires_row(self, preference_repo):
        patterns = [{"field": "storyPoints", "preferredValue": "5", "count": 3}]

        assert not await preference_repo.update_correction_patterns("user-1", patterns)

        await preference_repo.record_decision("user-1", FeedbackAction.MODIFIED)
        assert await preference_repo.update_correction_patterns("user-1", patterns)
        assert (await preference_repo.get("user-1")).correction_patterns == patterns

    @pytest.mark.asyncio
    async def test_users_with_modifications(self, preference_repo):
        for _ in range(3):
            await preference_repo.record_decision("user-2", FeedbackAction.MODIFIED)
        await preference_repo.record_decision("user-1", FeedbackAction.MODIFIED)

        assert await preference_repo.users_with_modifications(3) == ["user-2"]
        assert await preference_repo.users_with_modifications(1) == ["user-1", "user-2"]

    @pytest.mark.asyncio
    async def test_top_by_interactions(self, preference_repo):
        await preference_repo.record_decision("user-1", FeedbackAction.APPROVED)
        for _ in range(2):
            await preference_repo.record_decision("user-2", FeedbackAction.APPROVED)

        top = await preference_repo.top_by_interactions(limit=1)

        assert [p.user_id for p in top] == ["user-2"]
