"""
Conversation session repository.

Stores:
- Sessions per (user, mode) with their lifecycle status
- Ordered messages (user/assistant turns)
"""

import logging
from datetime import datetime
from typing import Optional, List

from sqlalchemy import select, update, func, and_
from sqlalchemy.exc import IntegrityError

from ..connection import Database, get_database
from ..models import ConversationSessionDB, ConversationMessageDB
from ..exceptions import DatabaseConstraintError, DatabaseOperationError, EntityNotFoundError
from ...models.conversation import ChatMode, MessageRole, SessionStatus

logger = logging.getLogger(__name__)


class SessionRepository:
    """Repository for conversation session operations."""

    def __init__(self, db: Optional[Database] = None):
        self.db = db or get_database()

    # ==================== SESSIONS ====================

    async def get_by_id(self, session_id: str) -> Optional[ConversationSessionDB]:
        """Get session by ID."""
        async with self.db.session() as session:
            result = await session.execute(
                select(ConversationSessionDB).where(ConversationSessionDB.id == session_id)
            )
            return result.scalar_one_or_none()

    async def find_active(self, user_id: str, mode: ChatMode) -> Optional[ConversationSessionDB]:
        """Get the ACTIVE session for a (user, mode) pair, newest first."""
        async with self.db.session() as session:
            result = await session.execute(
                select(ConversationSessionDB)
                .where(
                    and_(
                        ConversationSessionDB.user_id == user_id,
                        ConversationSessionDB.mode == mode.value,
                        ConversationSessionDB.status == SessionStatus.ACTIVE.value,
                    )
                )
                .order_by(ConversationSessionDB.started_at.desc())
                .limit(1)
            )
            return result.scalar_one_or_none()

    async def create(self, user_id: str, mode: ChatMode, now: datetime) -> ConversationSessionDB:
        """Create a new ACTIVE session.

        Raises:
            DatabaseConstraintError: If a constraint is violated
            DatabaseOperationError: If database operation fails
        """
        async with self.db.session() as session:
            try:
                conversation = ConversationSessionDB(
                    user_id=user_id,
                    mode=mode.value,
                    status=SessionStatus.ACTIVE.value,
                    message_count=0,
                    started_at=now,
                    last_message_at=now,
                )
                session.add(conversation)
                await session.flush()

                logger.info(f"Created {mode.value} session {conversation.id} for user {user_id}")
                return conversation

            except IntegrityError as e:
                logger.error(f"Constraint violation creating session: {e}", exc_info=True)
                raise DatabaseConstraintError(f"Failed to create session for {user_id}") from e
            except Exception as e:
                logger.error(f"Error creating session: {e}", exc_info=True)
                raise DatabaseOperationError(f"Failed to create session: {e}") from e

    async def close(self, session_id: str, now: datetime) -> ConversationSessionDB:
        """Mark a session CLOSED.

        Raises:
            EntityNotFoundError: If session not found
            DatabaseOperationError: If update fails
        """
        async with self.db.session() as session:
            try:
                result = await session.execute(
                    select(ConversationSessionDB).where(ConversationSessionDB.id == session_id)
                )
                conversation = result.scalar_one_or_none()
                if not conversation:
                    raise EntityNotFoundError(f"Session {session_id} not found")

                conversation.status = SessionStatus.CLOSED.value
                conversation.ended_at = now
                await session.flush()
                logger.info(f"Closed session {session_id}")
                return conversation

            except EntityNotFoundError:
                raise
            except Exception as e:
                logger.error(f"Error closing session {session_id}: {e}", exc_info=True)
                raise DatabaseOperationError(f"Failed to close session: {e}") from e

    async def close_active(self, user_id: str, mode: ChatMode, now: datetime) -> int:
        """Close every ACTIVE session for a (user, mode) pair. Returns the count."""
        async with self.db.session() as session:
            try:
                result = await session.execute(
                    update(ConversationSessionDB)
                    .where(
                        and_(
                            ConversationSessionDB.user_id == user_id,
                            ConversationSessionDB.mode == mode.value,
                            ConversationSessionDB.status == SessionStatus.ACTIVE.value,
                        )
                    )
                    .values(status=SessionStatus.CLOSED.value, ended_at=now)
                )
                return result.rowcount or 0
            except Exception as e:
                logger.error(f"Error closing sessions for {user_id}: {e}", exc_info=True)
                raise DatabaseOperationError(f"Failed to close sessions: {e}") from e

    async def exists_closed_since(self, user_id: str, mode: ChatMode, since: datetime) -> bool:
        """True if a CLOSED session of this mode started on or after ``since``."""
        async with self.db.session() as session:
            result = await session.execute(
                select(func.count(ConversationSessionDB.id)).where(
                    and_(
                        ConversationSessionDB.user_id == user_id,
                        ConversationSessionDB.mode == mode.value,
                        ConversationSessionDB.status == SessionStatus.CLOSED.value,
                        ConversationSessionDB.started_at >= since,
                    )
                )
            )
            return (result.scalar() or 0) > 0

    async def expire_idle(self, cutoff: datetime, now: datetime) -> int:
        """Expire ACTIVE sessions whose last message is older than ``cutoff``."""
        async with self.db.session() as session:
            try:
                result = await session.execute(
                    update(ConversationSessionDB)
                    .where(
                        and_(
                            ConversationSessionDB.status == SessionStatus.ACTIVE.value,
                            ConversationSessionDB.last_message_at < cutoff,
                        )
                    )
                    .values(status=SessionStatus.EXPIRED.value, ended_at=now)
                )
                return result.rowcount or 0
            except Exception as e:
                logger.error(f"Error expiring idle sessions: {e}", exc_info=True)
                raise DatabaseOperationError(f"Failed to expire sessions: {e}") from e

    # ==================== MESSAGES ====================

    async def append_turn(
        self,
        session_id: str,
        user_text: str,
        assistant_text: str,
        intent: Optional[str],
        now: datetime,
    ) -> ConversationSessionDB:
        """Append a user message and an assistant reply with consecutive sequence numbers.

        Raises:
            EntityNotFoundError: If session not found
            DatabaseOperationError: If the insert fails
        """
        async with self.db.session() as session:
            try:
                result = await session.execute(
                    select(ConversationSessionDB).where(ConversationSessionDB.id == session_id)
                )
                conversation = result.scalar_one_or_none()
                if not conversation:
                    raise EntityNotFoundError(f"Session {session_id} not found")

                seq_result = await session.execute(
                    select(func.max(ConversationMessageDB.sequence_number)).where(
                        ConversationMessageDB.session_id == session_id
                    )
                )
                next_seq = (seq_result.scalar() or 0) + 1

                session.add(ConversationMessageDB(
                    session_id=session_id,
                    role=MessageRole.USER.value,
                    content=user_text,
                    intent=intent,
                    sequence_number=next_seq,
                    created_at=now,
                ))
                session.add(ConversationMessageDB(
                    session_id=session_id,
                    role=MessageRole.ASSISTANT.value,
                    content=assistant_text,
                    sequence_number=next_seq + 1,
                    created_at=now,
                ))

                conversation.message_count = (conversation.message_count or 0) + 2
                conversation.last_message_at = now
                await session.flush()
                return conversation

            except EntityNotFoundError:
                raise
            except IntegrityError as e:
                logger.error(f"Sequence conflict appending to {session_id}: {e}", exc_info=True)
                raise DatabaseConstraintError(f"Concurrent write to session {session_id}") from e
            except Exception as e:
                logger.error(f"Error appending turn to {session_id}: {e}", exc_info=True)
                raise DatabaseOperationError(f"Failed to append turn: {e}") from e

    async def get_recent_messages(self, session_id: str, limit: int = 10) -> List[ConversationMessageDB]:
        """Last ``limit`` messages of a session, oldest first."""
        async with self.db.session() as session:
            result = await session.execute(
                select(ConversationMessageDB)
                .where(ConversationMessageDB.session_id == session_id)
                .order_by(ConversationMessageDB.sequence_number.desc())
                .limit(limit)
            )
            return list(reversed(result.scalars().all()))


# Singleton
_session_repository: Optional[SessionRepository] = None


def get_session_repository() -> SessionRepository:
    """Get the session repository singleton."""
    global _session_repository
    if _session_repository is None:
        _session_repository = SessionRepository()
    return _session_repository
