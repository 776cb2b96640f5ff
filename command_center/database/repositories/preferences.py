"""
User coach preference repository.

One row per user, created lazily on the first feedback event.
"""

import logging
from typing import Optional, List, Dict, Any

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError

from ..connection import Database, get_database
from ..models import UserCoachPreferenceDB
from ..exceptions import DatabaseConstraintError, DatabaseOperationError
from ...models.feedback import FeedbackAction

logger = logging.getLogger(__name__)


class PreferenceRepository:
    """Repository for per-user coach preferences."""

    def __init__(self, db: Optional[Database] = None):
        self.db = db or get_database()

    async def get(self, user_id: str) -> Optional[UserCoachPreferenceDB]:
        """Get preferences for a user, or None if never created."""
        async with self.db.session() as session:
            result = await session.execute(
                select(UserCoachPreferenceDB).where(UserCoachPreferenceDB.user_id == user_id)
            )
            return result.scalar_one_or_none()

    async def record_decision(self, user_id: str, action: FeedbackAction) -> UserCoachPreferenceDB:
        """Bump the counter for ``action``, creating the row on first use.

        Raises:
            DatabaseConstraintError: If a concurrent writer created the row first
            DatabaseOperationError: If database operation fails
        """
        async with self.db.session() as session:
            try:
                result = await session.execute(
                    select(UserCoachPreferenceDB).where(UserCoachPreferenceDB.user_id == user_id)
                )
                prefs = result.scalar_one_or_none()
                if prefs is None:
                    prefs = UserCoachPreferenceDB(
                        user_id=user_id,
                        correction_patterns=[],
                        total_interactions=0,
                        total_drafts_approved=0,
                        total_drafts_modified=0,
                        total_drafts_rejected=0,
                    )
                    session.add(prefs)
                    logger.info(f"Created coach preferences for user {user_id}")

                if action == FeedbackAction.APPROVED:
                    prefs.record_approval()
                elif action == FeedbackAction.MODIFIED:
                    prefs.record_modification()
                else:
                    prefs.record_rejection()

                await session.flush()
                return prefs

            except IntegrityError as e:
                logger.warning(f"Concurrent preference creation for {user_id}: {e}")
                raise DatabaseConstraintError(f"Preferences for {user_id} already exist") from e
            except Exception as e:
                logger.error(f"Error updating preferences for {user_id}: {e}", exc_info=True)
                raise DatabaseOperationError(f"Failed to update preferences: {e}") from e

    async def update_correction_patterns(self, user_id: str, patterns: List[Dict[str, Any]]) -> bool:
        """Replace the learned correction patterns. Returns False if no row exists."""
        async with self.db.session() as session:
            try:
                result = await session.execute(
                    select(UserCoachPreferenceDB).where(UserCoachPreferenceDB.user_id == user_id)
                )
                prefs = result.scalar_one_or_none()
                if prefs is None:
                    return False

                prefs.correction_patterns = patterns
                await session.flush()
                return True

            except Exception as e:
                logger.error(f"Error saving correction patterns for {user_id}: {e}", exc_info=True)
                raise DatabaseOperationError(f"Failed to save correction patterns: {e}") from e

    async def users_with_modifications(self, min_count: int) -> List[str]:
        """User IDs with at least ``min_count`` modified drafts."""
        async with self.db.session() as session:
            result = await session.execute(
                select(UserCoachPreferenceDB.user_id)
                .where(UserCoachPreferenceDB.total_drafts_modified >= min_count)
                .order_by(UserCoachPreferenceDB.user_id)
            )
            return list(result.scalars().all())

    async def top_by_interactions(self, limit: int = 10) -> List[UserCoachPreferenceDB]:
        """Users ordered by total interactions, most active first."""
        async with self.db.session() as session:
            result = await session.execute(
                select(UserCoachPreferenceDB)
                .order_by(UserCoachPreferenceDB.total_interactions.desc())
                .limit(limit)
            )
            return list(result.scalars().all())


# Singleton
_preference_repository: Optional[PreferenceRepository] = None


def get_preference_repository() -> PreferenceRepository:
    """Get the preference repository singleton."""
    global _preference_repository
    if _preference_repository is None:
        _preference_repository = PreferenceRepository()
    return _preference_repository
