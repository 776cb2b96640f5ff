"""
Draft feedback repository.

Feedback records are append-only; the aggregate queries here feed the
preference learner and the weekly evolution report.
"""

import logging
from datetime import datetime
from typing import Optional, List, Dict, Any, Tuple

from sqlalchemy import select, func, and_

from ..connection import Database, get_database
from ..models import DraftFeedbackDB
from ..exceptions import DatabaseOperationError
from ...models.feedback import FeedbackAction

logger = logging.getLogger(__name__)


class FeedbackRepository:
    """Repository for draft feedback records."""

    def __init__(self, db: Optional[Database] = None):
        self.db = db or get_database()

    async def create(
        self,
        draft_id: str,
        user_id: str,
        action: FeedbackAction,
        created_at: datetime,
        original_draft_json: Optional[Dict[str, Any]] = None,
        modified_draft_json: Optional[Dict[str, Any]] = None,
        user_comment: Optional[str] = None,
        time_to_decide_ms: Optional[int] = None,
        session_id: Optional[str] = None,
    ) -> DraftFeedbackDB:
        """Append a feedback record.

        Raises:
            DatabaseOperationError: If database operation fails
        """
        async with self.db.session() as session:
            try:
                record = DraftFeedbackDB(
                    draft_id=draft_id,
                    user_id=user_id,
                    session_id=session_id,
                    action=action.value,
                    original_draft_json=original_draft_json,
                    modified_draft_json=modified_draft_json,
                    user_comment=user_comment,
                    time_to_decide_ms=time_to_decide_ms,
                    created_at=created_at,
                )
                session.add(record)
                await session.flush()
                return record

            except Exception as e:
                logger.error(f"Error recording feedback for draft {draft_id}: {e}", exc_info=True)
                raise DatabaseOperationError(f"Failed to record feedback: {e}") from e

    async def get_modifications(self, user_id: str) -> List[DraftFeedbackDB]:
        """All MODIFIED records for a user, oldest first."""
        async with self.db.session() as session:
            result = await session.execute(
                select(DraftFeedbackDB)
                .where(
                    and_(
                        DraftFeedbackDB.user_id == user_id,
                        DraftFeedbackDB.action == FeedbackAction.MODIFIED.value,
                    )
                )
                .order_by(DraftFeedbackDB.created_at)
            )
            return list(result.scalars().all())

    async def count_by_action(self, since: datetime) -> Dict[str, int]:
        """Number of feedback records per action since a point in time."""
        async with self.db.session() as session:
            result = await session.execute(
                select(DraftFeedbackDB.action, func.count(DraftFeedbackDB.id))
                .where(DraftFeedbackDB.created_at >= since)
                .group_by(DraftFeedbackDB.action)
            )
            return {action: count for action, count in result.all()}

    async def average_decision_time(self, since: datetime) -> Optional[float]:
        """Mean decision latency in ms, or None when nothing was measured."""
        async with self.db.session() as session:
            result = await session.execute(
                select(func.avg(DraftFeedbackDB.time_to_decide_ms)).where(
                    and_(
                        DraftFeedbackDB.created_at >= since,
                        DraftFeedbackDB.time_to_decide_ms.is_not(None),
                    )
                )
            )
            value = result.scalar()
            return float(value) if value is not None else None

    async def top_rejection_reasons(self, since: datetime, limit: int = 10) -> List[Tuple[str, int]]:
        """Most common rejection comments with their counts."""
        async with self.db.session() as session:
            count = func.count(DraftFeedbackDB.id)
            result = await session.execute(
                select(DraftFeedbackDB.user_comment, count)
                .where(
                    and_(
                        DraftFeedbackDB.created_at >= since,
                        DraftFeedbackDB.action == FeedbackAction.REJECTED.value,
                        DraftFeedbackDB.user_comment.is_not(None),
                        DraftFeedbackDB.user_comment != "",
                    )
                )
                .group_by(DraftFeedbackDB.user_comment)
                .order_by(count.desc())
                .limit(limit)
            )
            return [(comment, total) for comment, total in result.all()]


# Singleton
_feedback_repository: Optional[FeedbackRepository] = None


def get_feedback_repository() -> FeedbackRepository:
    """Get the feedback repository singleton."""
    global _feedback_repository
    if _feedback_repository is None:
        _feedback_repository = FeedbackRepository()
    return _feedback_repository
