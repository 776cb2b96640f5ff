"""
Conversation session lifecycle and per-mode rules.

Sessions live in the database and are the single system of record:

    ACTIVE --close--> CLOSED
    ACTIVE --sweep--> EXPIRED

At most one ACTIVE session exists per (user, mode). FREEFORM sessions are
rotated once they reach the message ceiling.
"""

import logging
from datetime import datetime, timedelta
from typing import Callable, List, Optional

from config import settings
from ..database.exceptions import DatabaseConstraintError
from ..database.models import ConversationSessionDB
from ..database.repositories.sessions import SessionRepository, get_session_repository
from ..exceptions import NotFoundError
from ..integrations.collaborators import UserDirectory
from ..models.conversation import ChatMode, HistoryEntry, MessageRole
from ..utils.datetime_utils import get_local_now, start_of_day, start_of_week

logger = logging.getLogger(__name__)

STANDUP_DENIAL = "You've already completed today's standup. Come back tomorrow morning!"
PLANNING_DENIAL = "You've already completed this week's planning session."


def format_history(entries: List[HistoryEntry]) -> str:
    """Render messages as ``User: ...`` / ``Assistant: ...`` lines."""
    lines = []
    for entry in entries:
        if entry.role == MessageRole.USER:
            lines.append(f"User: {entry.content}")
        elif entry.role == MessageRole.ASSISTANT:
            lines.append(f"Assistant: {entry.content}")
    return "\n".join(lines)


class ConversationManager:
    """Creates, rotates, closes and expires conversation sessions."""

    def __init__(
        self,
        sessions: Optional[SessionRepository] = None,
        users: Optional[UserDirectory] = None,
        clock: Callable[[], datetime] = get_local_now,
        max_freeform_messages: Optional[int] = None,
        idle_timeout: Optional[timedelta] = None,
    ):
        self.sessions = sessions or get_session_repository()
        self.users = users
        self.clock = clock
        self.max_freeform_messages = max_freeform_messages or settings.freeform_max_messages
        self.idle_timeout = idle_timeout or timedelta(hours=settings.session_idle_hours)

    async def _require_user(self, user_id: str) -> None:
        if self.users is None:
            return
        user = await self.users.get_user_by_id(user_id)
        if user is None:
            raise NotFoundError(f"User {user_id} not found")

    async def get_or_create_session(self, user_id: str, mode: ChatMode) -> ConversationSessionDB:
        """Return the ACTIVE session for (user, mode), opening one if needed."""
        now = self.clock()
        existing = await self.sessions.find_active(user_id, mode)

        if existing is not None:
            if mode == ChatMode.FREEFORM and existing.message_count >= self.max_freeform_messages:
                logger.info(
                    f"Rotating FREEFORM session {existing.id} for {user_id} "
                    f"after {existing.message_count} messages"
                )
                await self.sessions.close(existing.id, now)
            else:
                return existing

        await self._require_user(user_id)
        try:
            return await self.sessions.create(user_id, mode, now)
        except DatabaseConstraintError:
            # A concurrent turn opened the session first
            existing = await self.sessions.find_active(user_id, mode)
            if existing is None:
                raise
            logger.info(f"Reusing concurrently created {mode.value} session {existing.id} for {user_id}")
            return existing

    async def check_session_rules(self, user_id: str, mode: ChatMode) -> Optional[str]:
        """
        Return a denial reason, or None when the turn may proceed.

        STANDUP: one completed standup per local calendar day.
        PLANNING: one completed planning session per week (weeks start on Sunday).
        """
        now = self.clock()

        if mode == ChatMode.STANDUP:
            if await self.sessions.exists_closed_since(user_id, mode, start_of_day(now)):
                logger.info(f"Denied second standup today for {user_id}")
                return STANDUP_DENIAL

        elif mode == ChatMode.PLANNING:
            if await self.sessions.exists_closed_since(user_id, mode, start_of_week(now)):
                logger.info(f"Denied second planning session this week for {user_id}")
                return PLANNING_DENIAL

        return None

    async def close_session(self, user_id: str, mode: ChatMode) -> int:
        """Close the ACTIVE session for (user, mode). Returns how many were closed."""
        closed = await self.sessions.close_active(user_id, mode, self.clock())
        if closed:
            logger.info(f"Closed {closed} {mode.value} session(s) for {user_id}")
        return closed

    async def add_turn(
        self,
        session: ConversationSessionDB,
        user_text: str,
        assistant_text: str,
        intent: Optional[str] = None,
    ) -> ConversationSessionDB:
        """Append the user message and the assistant reply, in that order."""
        return await self.sessions.append_turn(
            session.id, user_text, assistant_text, intent, self.clock()
        )

    async def get_recent_history(self, session_id: str, limit: Optional[int] = None) -> List[HistoryEntry]:
        """Most recent messages, oldest first."""
        messages = await self.sessions.get_recent_messages(session_id, limit or settings.history_limit)
        return [
            HistoryEntry(
                role=MessageRole(message.role),
                content=message.content,
                intent=message.intent,
                sequence_number=message.sequence_number,
                created_at=message.created_at,
            )
            for message in messages
        ]

    async def expire_idle_sessions(self) -> int:
        """Expire ACTIVE sessions idle longer than the timeout. Safe to run repeatedly."""
        now = self.clock()
        expired = await self.sessions.expire_idle(now - self.idle_timeout, now)
        if expired:
            logger.info(f"Expired {expired} idle conversation session(s)")
        return expired
