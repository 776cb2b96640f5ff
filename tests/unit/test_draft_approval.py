"""
Unit tests for DraftApprovalService.
"""

from datetime import timedelta

import pytest
import pytest_asyncio

from command_center.exceptions import InvalidInputError, NotFoundError
from command_center.memory.feedback import DraftFeedbackCollector
from command_center.models.drafts import DraftType, NoteDraft, TaskDraft, draft_to_json
from command_center.models.feedback import DraftAction, DraftStatus
from command_center.services.draft_approval import DraftApprovalService
from tests.conftest import FIXED_NOW, FakeEntityCreator


@pytest.fixture
def collector(draft_repo, feedback_repo, preference_repo, clock):
    return DraftFeedbackCollector(draft_repo, feedback_repo, preference_repo, clock)


@pytest.fixture
def service(entity_creator, draft_repo, collector, clock):
    return DraftApprovalService(entity_creator, draft_repo, collector, clock)


@pytest_asyncio.fixture
async def pending_draft(draft_repo):
    return await draft_repo.create(
        user_id="user-1",
        draft_type="task",
        draft_content=draft_to_json(TaskDraft(title="Call the dentist")),
        created_at=FIXED_NOW,
        expires_at=FIXED_NOW + timedelta(hours=24),
        confidence_score=0.9,
        session_id="session-1",
    )


class TestApprove:
    @pytest.mark.asyncio
    async def test_creates_entity(self, service, pending_draft, entity_creator, draft_repo, preference_repo):
        result = await service.process_action("user-1", pending_draft.id, DraftAction.APPROVE, time_to_decide_ms=900)

        assert result.success
        assert result.resulting_status == DraftStatus.APPROVED
        assert result.created_entity_id == "task-1"
        assert entity_creator.created[0]["type"] == DraftType.TASK
        assert entity_creator.created[0]["payload"]["title"] == "Call the dentist"

        stored = await draft_repo.get_by_id(pending_draft.id)
        assert stored.status == DraftStatus.APPROVED.value
        assert stored.created_entity_id == "task-1"
        assert stored.processed_at == FIXED_NOW
        assert (await preference_repo.get("user-1")).total_drafts_approved == 1

    @pytest.mark.asyncio
    async def test_second_action_is_rejected(self, service, pending_draft, entity_creator):
        await service.process_action("user-1", pending_draft.id, DraftAction.APPROVE)

        result = await service.process_action("user-1", pending_draft.id, DraftAction.APPROVE)

        assert not result.success
        assert result.resulting_status == DraftStatus.APPROVED
        assert "already processed with status APPROVED" in result.message
        assert len(entity_creator.created) == 1

    @pytest.mark.asyncio
    async def test_entity_failure_leaves_draft_pending(self, draft_repo, collector, clock, pending_draft, feedback_repo):
        service = DraftApprovalService(FakeEntityCreator(fail=True), draft_repo, collector, clock)

        result = await service.process_action("user-1", pending_draft.id, DraftAction.APPROVE)

        assert not result.success
        assert result.resulting_status == DraftStatus.PENDING_APPROVAL
        stored = await draft_repo.get_by_id(pending_draft.id)
        assert stored.status == DraftStatus.PENDING_APPROVAL.value
        assert await feedback_repo.count_by_action(FIXED_NOW - timedelta(days=1)) == {}


class TestModify:
    @pytest.mark.asyncio
    async def test_applies_updates(self, service, pending_draft, entity_creator, draft_repo, feedback_repo):
        result = await service.process_action(
            "user-1", pending_draft.id, DraftAction.MODIFY, {"lifeWheelAreaId": "lw-2", "storyPoints": 5}
        )

        assert result.resulting_status == DraftStatus.MODIFIED
        payload = entity_creator.created[0]["payload"]
        assert payload["lifeWheelAreaId"] == "lw-2"
        assert payload["storyPoints"] == 5

        stored = await draft_repo.get_by_id(pending_draft.id)
        assert stored.status == DraftStatus.MODIFIED.value
        assert stored.draft_content["lifeWheelAreaId"] == "lw-2"

        [feedback] = await feedback_repo.get_modifications("user-1")
        assert feedback.original_draft_json["lifeWheelAreaId"] == "lw-4"
        assert feedback.modified_draft_json["lifeWheelAreaId"] == "lw-2"

    @pytest.mark.asyncio
    async def test_requires_fields(self, service, pending_draft):
        with pytest.raises(InvalidInputError):
            await service.process_action("user-1", pending_draft.id, DraftAction.MODIFY)

    @pytest.mark.asyncio
    async def test_invalid_update(self, service, pending_draft, draft_repo):
        with pytest.raises(InvalidInputError):
            await service.process_action("user-1", pending_draft.id, DraftAction.MODIFY, {"title": " "})
        stored = await draft_repo.get_by_id(pending_draft.id)
        assert stored.status == DraftStatus.PENDING_APPROVAL.value


class TestReject:
    @pytest.mark.asyncio
    async def test_rejects_with_comment(self, service, pending_draft, entity_creator, feedback_repo, draft_repo):
        result = await service.process_action("user-1", pending_draft.id, DraftAction.REJECT, comment="duplicate")

        assert result.success
        assert result.resulting_status == DraftStatus.REJECTED
        assert entity_creator.created == []
        assert (await draft_repo.get_by_id(pending_draft.id)).status == DraftStatus.REJECTED.value
        reasons = await feedback_repo.top_rejection_reasons(FIXED_NOW - timedelta(days=1))
        assert reasons == [("duplicate", 1)]


class TestExpiry:
    @pytest.mark.asyncio
    async def test_missing_draft(self, service):
        with pytest.raises(NotFoundError):
            await service.process_action("user-1", "missing", DraftAction.APPROVE)

    @pytest.mark.asyncio
    async def test_expired_draft_marked_on_touch(self, service, pending_draft, clock, draft_repo, entity_creator):
        clock.advance(hours=24)

        result = await service.process_action("user-1", pending_draft.id, DraftAction.APPROVE)

        assert not result.success
        assert result.resulting_status == DraftStatus.EXPIRED
        assert entity_creator.created == []
        assert (await draft_repo.get_by_id(pending_draft.id)).status == DraftStatus.EXPIRED.value

    @pytest.mark.asyncio
    async def test_list_pending_filters_expired(self, service, pending_draft, draft_repo, clock):
        newer = await draft_repo.create(
            user_id="user-1",
            draft_type="note",
            draft_content={"type": "note", "title": "Idea"},
            created_at=FIXED_NOW + timedelta(hours=12),
            expires_at=FIXED_NOW + timedelta(hours=36),
        )
        clock.advance(hours=25)

        pending = await service.list_pending("user-1")

        assert [d.id for d in pending] == [newer.id]
        assert (await draft_repo.get_by_id(pending_draft.id)).status == DraftStatus.EXPIRED.value


class TestClarification:
    @pytest_asyncio.fixture
    async def note_with_questions(self, draft_repo):
        return await draft_repo.create(
            user_id="user-1",
            draft_type="note",
            draft_content=draft_to_json(
                NoteDraft(content="dentist thing", clarifying_questions=["Is this a task or an event?"])
            ),
            created_at=FIXED_NOW,
            expires_at=FIXED_NOW + timedelta(hours=24),
            confidence_score=0.3,
        )

    @pytest.mark.asyncio
    async def test_answers_merge_and_draft_stays_pending(self, service, pending_draft, draft_repo, entity_creator):
        result = await service.apply_clarification(
            "user-1", pending_draft.id, {"dueDate": "2026-03-12", "storyPoints": 2}
        )

        assert result.success
        assert result.resulting_status == DraftStatus.PENDING_APPROVAL
        stored = await draft_repo.get_by_id(pending_draft.id)
        assert stored.status == DraftStatus.PENDING_APPROVAL.value
        assert stored.draft_content["dueDate"] == "2026-03-12"
        assert stored.draft_content["storyPoints"] == 2
        assert stored.draft_content["title"] == "Call the dentist"
        assert entity_creator.created == []

    @pytest.mark.asyncio
    async def test_answered_questions_are_cleared(self, service, note_with_questions, draft_repo):
        await service.apply_clarification("user-1", note_with_questions.id, {"title": "Dentist follow-up"})

        stored = await draft_repo.get_by_id(note_with_questions.id)
        assert stored.draft_content["title"] == "Dentist follow-up"
        assert stored.draft_content["clarifyingQuestions"] == []

    @pytest.mark.asyncio
    async def test_clarified_draft_can_then_be_approved(self, service, pending_draft, entity_creator):
        await service.apply_clarification("user-1", pending_draft.id, {"storyPoints": 8})

        result = await service.process_action("user-1", pending_draft.id, DraftAction.APPROVE)

        assert result.success
        assert entity_creator.created[0]["payload"]["storyPoints"] == 8

    @pytest.mark.asyncio
    async def test_requires_answers(self, service, pending_draft):
        with pytest.raises(InvalidInputError):
            await service.apply_clarification("user-1", pending_draft.id, {})

    @pytest.mark.asyncio
    async def test_invalid_answer(self, service, pending_draft, draft_repo):
        with pytest.raises(InvalidInputError):
            await service.apply_clarification("user-1", pending_draft.id, {"title": " "})
        stored = await draft_repo.get_by_id(pending_draft.id)
        assert stored.draft_content["title"] == "Call the dentist"

    @pytest.mark.asyncio
    async def test_processed_draft_is_not_updated(self, service, pending_draft, draft_repo):
        await service.process_action("user-1", pending_draft.id, DraftAction.REJECT)

        result = await service.apply_clarification("user-1", pending_draft.id, {"storyPoints": 8})

        assert not result.success
        assert result.resulting_status == DraftStatus.REJECTED
        assert (await draft_repo.get_by_id(pending_draft.id)).draft_content["storyPoints"] == 3

    @pytest.mark.asyncio
    async def test_expired_draft(self, service, pending_draft, clock):
        clock.advance(hours=24)

        result = await service.apply_clarification("user-1", pending_draft.id, {"storyPoints": 8})

        assert not result.success
        assert result.resulting_status == DraftStatus.EXPIRED

    @pytest.mark.asyncio
    async def test_missing_draft(self, service):
        with pytest.raises(NotFoundError):
            await service.apply_clarification("user-1", "missing", {"storyPoints": 8})
