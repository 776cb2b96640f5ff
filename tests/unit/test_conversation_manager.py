"""
Unit tests for ConversationManager (session lifecycle and mode rules).
"""

from datetime import timedelta

import pytest

from command_center.conversation.manager import (
    PLANNING_DENIAL,
    STANDUP_DENIAL,
    ConversationManager,
    format_history,
)
from command_center.database.repositories import SessionRepository
from command_center.exceptions import NotFoundError
from command_center.models.conversation import ChatMode, HistoryEntry, MessageRole, SessionStatus
from tests.conftest import FIXED_NOW


@pytest.fixture
def manager(session_repo, users, clock):
    return ConversationManager(sessions=session_repo, users=users, clock=clock)


async def _add_turns(manager, session, count):
    for i in range(count):
        session = await manager.add_turn(session, f"question {i}", f"answer {i}", "GENERAL_CHAT")
    return session


class TestSessions:
    @pytest.mark.asyncio
    async def test_creates_then_reuses(self, manager):
        first = await manager.get_or_create_session("user-1", ChatMode.CAPTURE)
        second = await manager.get_or_create_session("user-1", ChatMode.CAPTURE)

        assert first.id == second.id
        assert first.status == SessionStatus.ACTIVE.value
        assert first.mode == ChatMode.CAPTURE.value

    @pytest.mark.asyncio
    async def test_one_active_session_per_mode(self, manager):
        capture = await manager.get_or_create_session("user-1", ChatMode.CAPTURE)
        freeform = await manager.get_or_create_session("user-1", ChatMode.FREEFORM)
        assert capture.id != freeform.id

    @pytest.mark.asyncio
    async def test_unknown_user(self, manager):
        with pytest.raises(NotFoundError):
            await manager.get_or_create_session("ghost", ChatMode.FREEFORM)

    @pytest.mark.asyncio
    async def test_freeform_rotates_at_message_ceiling(self, manager, session_repo):
        session = await manager.get_or_create_session("user-1", ChatMode.FREEFORM)
        session = await _add_turns(manager, session, 10)
        assert session.message_count == 20

        rotated = await manager.get_or_create_session("user-1", ChatMode.FREEFORM)

        assert rotated.id != session.id
        assert rotated.message_count == 0
        old = await session_repo.get_by_id(session.id)
        assert old.status == SessionStatus.CLOSED.value

    @pytest.mark.asyncio
    async def test_freeform_below_ceiling_not_rotated(self, manager):
        session = await manager.get_or_create_session("user-1", ChatMode.FREEFORM)
        await _add_turns(manager, session, 9)
        again = await manager.get_or_create_session("user-1", ChatMode.FREEFORM)
        assert again.id == session.id

    @pytest.mark.asyncio
    async def test_other_modes_never_rotate(self, manager):
        session = await manager.get_or_create_session("user-1", ChatMode.CAPTURE)
        await _add_turns(manager, session, 12)
        again = await manager.get_or_create_session("user-1", ChatMode.CAPTURE)
        assert again.id == session.id

    @pytest.mark.asyncio
    async def test_close_session(self, manager):
        await manager.get_or_create_session("user-1", ChatMode.REVIEW)
        assert await manager.close_session("user-1", ChatMode.REVIEW) == 1
        assert await manager.close_session("user-1", ChatMode.REVIEW) == 0


class LateLookupSessionRepository(SessionRepository):
    """Opens a session for another turn right after the first lookup misses."""

    def __init__(self, db):
        super().__init__(db)
        self.competitor = None

    async def find_active(self, user_id, mode):
        found = await super().find_active(user_id, mode)
        if found is None and self.competitor is None:
            self.competitor = await super().create(user_id, mode, FIXED_NOW)
        return found


class TestConcurrentCreation:
    @pytest.mark.asyncio
    async def test_losing_turn_reuses_winner_session(self, database, users, clock):
        sessions = LateLookupSessionRepository(database)
        manager = ConversationManager(sessions=sessions, users=users, clock=clock)

        session = await manager.get_or_create_session("user-1", ChatMode.CAPTURE)

        assert session.id == sessions.competitor.id
        assert (await sessions.find_active("user-1", ChatMode.CAPTURE)).id == session.id


class TestRules:
    @pytest.mark.asyncio
    async def test_second_standup_same_day_denied(self, manager, clock):
        await manager.get_or_create_session("user-1", ChatMode.STANDUP)
        assert await manager.check_session_rules("user-1", ChatMode.STANDUP) is None

        await manager.close_session("user-1", ChatMode.STANDUP)
        clock.advance(hours=5)
        assert await manager.check_session_rules("user-1", ChatMode.STANDUP) == STANDUP_DENIAL

    @pytest.mark.asyncio
    async def test_standup_allowed_next_day(self, manager, clock):
        await manager.get_or_create_session("user-1", ChatMode.STANDUP)
        await manager.close_session("user-1", ChatMode.STANDUP)

        clock.advance(days=1)
        assert await manager.check_session_rules("user-1", ChatMode.STANDUP) is None

    @pytest.mark.asyncio
    async def test_planning_once_per_week(self, manager, clock):
        # Wednesday; the week started on Sunday
        await manager.get_or_create_session("user-1", ChatMode.PLANNING)
        await manager.close_session("user-1", ChatMode.PLANNING)

        clock.advance(days=3)  # Saturday
        assert await manager.check_session_rules("user-1", ChatMode.PLANNING) == PLANNING_DENIAL

        clock.advance(days=1)  # Sunday, new week
        assert await manager.check_session_rules("user-1", ChatMode.PLANNING) is None

    @pytest.mark.asyncio
    async def test_rules_are_per_user(self, manager):
        await manager.get_or_create_session("user-1", ChatMode.STANDUP)
        await manager.close_session("user-1", ChatMode.STANDUP)
        assert await manager.check_session_rules("user-2", ChatMode.STANDUP) is None

    @pytest.mark.asyncio
    async def test_other_modes_unrestricted(self, manager):
        await manager.get_or_create_session("user-1", ChatMode.RETROSPECTIVE)
        await manager.close_session("user-1", ChatMode.RETROSPECTIVE)
        assert await manager.check_session_rules("user-1", ChatMode.RETROSPECTIVE) is None


class TestHistory:
    @pytest.mark.asyncio
    async def test_recent_history_oldest_first(self, manager):
        session = await manager.get_or_create_session("user-1", ChatMode.FREEFORM)
        await _add_turns(manager, session, 3)

        history = await manager.get_recent_history(session.id, limit=3)

        assert [h.content for h in history] == ["answer 1", "question 2", "answer 2"]
        assert [h.sequence_number for h in history] == [4, 5, 6]
        assert history[1].role == MessageRole.USER
        assert history[1].intent == "GENERAL_CHAT"

    def test_format_history(self):
        entries = [
            HistoryEntry(role=MessageRole.USER, content="hi", sequence_number=1),
            HistoryEntry(role=MessageRole.ASSISTANT, content="hello", sequence_number=2),
            HistoryEntry(role=MessageRole.SYSTEM, content="ignored", sequence_number=3),
        ]
        assert format_history(entries) == "User: hi\nAssistant: hello"


class TestIdleExpiry:
    @pytest.mark.asyncio
    async def test_idle_sessions_expire(self, manager, session_repo, clock):
        session = await manager.get_or_create_session("user-1", ChatMode.CAPTURE)

        clock.advance(hours=1)
        assert await manager.expire_idle_sessions() == 0

        clock.advance(hours=1, minutes=1)
        assert await manager.expire_idle_sessions() == 1
        assert await manager.expire_idle_sessions() == 0

        expired = await session_repo.get_by_id(session.id)
        assert expired.status == SessionStatus.EXPIRED.value
        assert expired.ended_at == clock.now

    @pytest.mark.asyncio
    async def test_recent_activity_keeps_session(self, manager, clock):
        session = await manager.get_or_create_session("user-1", ChatMode.CAPTURE)
        clock.advance(hours=1, minutes=30)
        await manager.add_turn(session, "still here", "great")

        clock.advance(hours=1)
        assert await manager.expire_idle_sessions() == 0
