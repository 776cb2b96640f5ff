"""
Unit tests for the end-to-end conversational pipeline.
"""

from datetime import timedelta
from typing import List

import pytest

from command_center.ai.circuit_breaker import CircuitBreaker
from command_center.ai.connector import ConnectorProvider, LlmResponse
from command_center.ai.gateway import GatewayMetrics, LlmGateway
from command_center.ai.mode_detector import ModeDetector
from command_center.ai.prompts import PromptAssembler, SystemPromptService
from command_center.conversation.manager import STANDUP_DENIAL, ConversationManager
from command_center.database.exceptions import DatabaseOperationError
from command_center.database.repositories import DraftRepository
from command_center.exceptions import InvalidInputError, LlmGatewayError, NotFoundError
from command_center.memory.context import ContextAssembler
from command_center.memory.learning import UserPreferenceLearner
from command_center.models.conversation import ChatMode
from command_center.models.feedback import DraftStatus
from command_center.orchestrator import CommandCenterOrchestrator
from tests.conftest import (
    FIXED_NOW,
    FakeCeremonyService,
    FakeSprintService,
    FakeStandupService,
    FakeTaskService,
    FakeVelocityService,
)
from tests.unit.test_draft_extractor import BUY_MILK_OUTPUT


class RecordingConnector:
    def __init__(self, reply: str = BUY_MILK_OUTPUT, error: Exception = None):
        self.reply = reply
        self.error = error
        self.requests: List[tuple] = []

    @property
    def model_name(self) -> str:
        return "fake/recording"

    async def complete(self, system_message: str, user_message: str) -> LlmResponse:
        self.requests.append((system_message, user_message))
        if self.error is not None:
            raise self.error
        return LlmResponse(text=self.reply)


class FailingBillRepository(DraftRepository):
    async def create(self, user_id, draft_type, *args, **kwargs):
        if draft_type == "bill":
            raise DatabaseOperationError("disk full")
        return await super().create(user_id, draft_type, *args, **kwargs)


async def _no_sleep(seconds: float) -> None:
    return None


@pytest.fixture
def connector():
    return RecordingConnector()


@pytest.fixture
def sprints(sample_sprint):
    return FakeSprintService(sample_sprint)


@pytest.fixture
def conversation_manager(session_repo, users, clock):
    return ConversationManager(sessions=session_repo, users=users, clock=clock)


@pytest.fixture
def make_orchestrator(
    connector, sprints, conversation_manager, draft_repo, feedback_repo, preference_repo, prompt_repo, clock
):
    def _make(sprint_service=None, drafts=None):
        sprint_service = sprint_service or sprints
        ceremonies = FakeCeremonyService()
        gateway = LlmGateway(
            provider=ConnectorProvider(connector),
            breaker=CircuitBreaker("test", failure_threshold=5, reset_timeout=60),
            metrics=GatewayMetrics(),
            max_attempts=2,
            initial_backoff=0.01,
            sleep=_no_sleep,
        )
        return CommandCenterOrchestrator(
            mode_detector=ModeDetector(ceremonies, clock=clock),
            conversation_manager=conversation_manager,
            context_assembler=ContextAssembler(
                sprint_service,
                FakeTaskService(),
                FakeVelocityService(),
                FakeStandupService(),
                ceremonies,
                learner=UserPreferenceLearner(feedback_repo, preference_repo),
                preferences=preference_repo,
                clock=clock,
            ),
            sprints=sprint_service,
            prompt_assembler=PromptAssembler(SystemPromptService(prompt_repo, clock)),
            gateway=gateway,
            drafts=drafts or draft_repo,
            clock=clock,
        )
    return _make


class TestProcess:
    @pytest.mark.asyncio
    async def test_capture_turn_saves_draft(self, make_orchestrator, connector, draft_repo, session_repo):
        result = await make_orchestrator().process("user-1", "  add a task to   buy milk ")

        assert not result.denied
        assert result.mode == ChatMode.CAPTURE
        assert result.intent == "CREATE_TASK"
        assert result.conversational_text.startswith("Got it")
        assert len(result.drafts) == 1

        summary = result.drafts[0]
        assert summary.type == "task"
        assert summary.confidence == pytest.approx(0.92)
        assert summary.draft["title"] == "Buy milk"

        stored = await draft_repo.get_by_id(summary.draft_id)
        assert stored.status == DraftStatus.PENDING_APPROVAL.value
        assert stored.session_id == result.session_id
        assert stored.original_input_text == "add a task to buy milk"
        assert stored.expires_at == FIXED_NOW + timedelta(hours=24)

        messages = await session_repo.get_recent_messages(result.session_id)
        assert [m.content for m in messages] == ["add a task to buy milk", result.conversational_text]

    @pytest.mark.asyncio
    async def test_prompt_contents(self, make_orchestrator, connector):
        await make_orchestrator().process("user-1", "add a task to buy milk")

        system_message, user_message = connector.requests[0]
        assert "--- MODE: CAPTURE ---" in system_message
        assert "sprint_name: Week 11 (2026)" in system_message
        assert "today: 2026-03-11" in system_message
        assert "conversation_history" not in system_message
        assert user_message == "add a task to buy milk"

    @pytest.mark.asyncio
    async def test_history_injected_on_next_turn(self, make_orchestrator, connector):
        orchestrator = make_orchestrator()
        first = await orchestrator.process("user-1", "add a task to buy milk")
        second = await orchestrator.process("user-1", "add a task to buy eggs")

        assert second.session_id == first.session_id
        system_message = connector.requests[1][0]
        assert "conversation_history: User: add a task to buy milk" in system_message
        assert "Assistant: Got it" in system_message

    @pytest.mark.asyncio
    async def test_explicit_mode(self, make_orchestrator, connector):
        connector.reply = "Let's look at your week."
        result = await make_orchestrator().process("user-1", "hi", explicit_mode="planning")
        assert result.mode == ChatMode.PLANNING
        assert result.drafts == []

    @pytest.mark.asyncio
    async def test_attachment_info_reaches_model(self, make_orchestrator, connector):
        connector.reply = "Nice photo."
        await make_orchestrator().process("user-1", "receipt", image_base64="aGVsbG8=")
        assert connector.requests[0][1] == "[Attachments: image_base64_length=8]\n\nreceipt"

    @pytest.mark.asyncio
    async def test_sprint_lookup_failure_is_tolerated(self, make_orchestrator, connector):
        result = await make_orchestrator(sprint_service=FakeSprintService(fail=True)).process(
            "user-1", "add a task to buy milk"
        )
        assert len(result.drafts) == 1
        assert "sprint_name" not in connector.requests[0][0]

    @pytest.mark.asyncio
    async def test_unparseable_draft_falls_back_to_note(self, make_orchestrator, connector):
        connector.reply = "Sure!\n>>>DRAFT\n{oops\n<<<DRAFT"

        result = await make_orchestrator().process("user-1", "add a task to buy milk")

        assert [d.type for d in result.drafts] == ["note"]
        assert result.drafts[0].confidence == pytest.approx(0.3)
        assert result.conversational_text == "Sure!"

    @pytest.mark.asyncio
    async def test_failed_save_skips_only_that_draft(self, make_orchestrator, connector, database):
        connector.reply = (
            ">>>DRAFT\n{\"type\": \"task\", \"title\": \"Pay rent\"}\n<<<DRAFT\n"
            ">>>DRAFT\n{\"type\": \"bill\", \"vendorName\": \"Landlord\", \"amount\": 1200}\n<<<DRAFT\n"
            "Added both."
        )

        result = await make_orchestrator(drafts=FailingBillRepository(database)).process(
            "user-1", "add a task to pay rent and log a bill"
        )

        assert [d.type for d in result.drafts] == ["task"]
        assert result.conversational_text == "Added both."


class TestRejections:
    @pytest.mark.asyncio
    @pytest.mark.parametrize("text", [None, "", "   \n"])
    async def test_blank_message(self, make_orchestrator, connector, text):
        with pytest.raises(InvalidInputError):
            await make_orchestrator().process("user-1", text)
        assert connector.requests == []

    @pytest.mark.asyncio
    async def test_second_standup_denied_before_llm(self, make_orchestrator, connector, conversation_manager):
        await conversation_manager.get_or_create_session("user-1", ChatMode.STANDUP)
        await conversation_manager.close_session("user-1", ChatMode.STANDUP)

        result = await make_orchestrator().process("user-1", "yesterday I shipped", explicit_mode="STANDUP")

        assert result.denied
        assert result.denial_reason == STANDUP_DENIAL
        assert result.mode == ChatMode.STANDUP
        assert result.session_id is None
        assert connector.requests == []

    @pytest.mark.asyncio
    async def test_unknown_user(self, make_orchestrator, connector):
        with pytest.raises(NotFoundError):
            await make_orchestrator().process("ghost", "add a task to buy milk")
        assert connector.requests == []

    @pytest.mark.asyncio
    async def test_llm_failure_records_nothing(self, make_orchestrator, connector, session_repo):
        connector.error = RuntimeError("upstream 500")
        orchestrator = make_orchestrator()

        with pytest.raises(LlmGatewayError):
            await orchestrator.process("user-1", "add a task to buy milk")

        session = await session_repo.find_active("user-1", ChatMode.CAPTURE)
        assert session.message_count == 0
        assert len(connector.requests) == 2


class TestCloseSession:
    @pytest.mark.asyncio
    async def test_close(self, make_orchestrator):
        orchestrator = make_orchestrator()
        await orchestrator.process("user-1", "add a task to buy milk")

        assert await orchestrator.close_session("user-1", "capture") == 1
        assert await orchestrator.close_session("user-1", "CAPTURE") == 0

    @pytest.mark.asyncio
    async def test_unknown_mode(self, make_orchestrator):
        with pytest.raises(InvalidInputError):
            await make_orchestrator().close_session("user-1", "party")
