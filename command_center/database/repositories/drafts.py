"""
Pending draft repository.

Drafts are saved one at a time so a failure on one never rolls back
another that was already stored.
"""

import logging
from datetime import datetime
from typing import Optional, List, Dict, Any

from sqlalchemy import select, update, and_

from ..connection import Database, get_database
from ..models import PendingDraftDB
from ..exceptions import DatabaseOperationError, EntityNotFoundError
from ...models.feedback import DraftStatus

logger = logging.getLogger(__name__)


class DraftRepository:
    """Repository for pending draft operations."""

    def __init__(self, db: Optional[Database] = None):
        self.db = db or get_database()

    async def create(
        self,
        user_id: str,
        draft_type: str,
        draft_content: Dict[str, Any],
        created_at: datetime,
        expires_at: datetime,
        confidence_score: float = 0.7,
        ai_reasoning: Optional[str] = None,
        original_input_text: Optional[str] = None,
        session_id: Optional[str] = None,
    ) -> PendingDraftDB:
        """Store a new draft in PENDING_APPROVAL.

        Raises:
            DatabaseOperationError: If database operation fails
        """
        async with self.db.session() as session:
            try:
                draft = PendingDraftDB(
                    user_id=user_id,
                    draft_type=draft_type,
                    draft_content=draft_content,
                    status=DraftStatus.PENDING_APPROVAL.value,
                    confidence_score=confidence_score,
                    ai_reasoning=ai_reasoning,
                    original_input_text=original_input_text,
                    session_id=session_id,
                    created_at=created_at,
                    expires_at=expires_at,
                )
                session.add(draft)
                await session.flush()

                logger.info(f"Saved {draft_type} draft {draft.id} for user {user_id}")
                return draft

            except Exception as e:
                logger.error(f"Error saving draft for {user_id}: {e}", exc_info=True)
                raise DatabaseOperationError(f"Failed to save draft: {e}") from e

    async def get_by_id(self, draft_id: str) -> Optional[PendingDraftDB]:
        """Get draft by ID."""
        async with self.db.session() as session:
            result = await session.execute(
                select(PendingDraftDB).where(PendingDraftDB.id == draft_id)
            )
            return result.scalar_one_or_none()

    async def get_by_user_and_status(self, user_id: str, status: DraftStatus) -> List[PendingDraftDB]:
        """Drafts for a user in the given status, newest first."""
        async with self.db.session() as session:
            result = await session.execute(
                select(PendingDraftDB)
                .where(
                    and_(
                        PendingDraftDB.user_id == user_id,
                        PendingDraftDB.status == status.value,
                    )
                )
                .order_by(PendingDraftDB.created_at.desc())
            )
            return list(result.scalars().all())

    async def update_status(
        self,
        draft_id: str,
        status: DraftStatus,
        processed_at: datetime,
        created_entity_id: Optional[str] = None,
        draft_content: Optional[Dict[str, Any]] = None,
    ) -> PendingDraftDB:
        """Move a draft to a new status.

        Raises:
            EntityNotFoundError: If draft not found
            DatabaseOperationError: If update fails
        """
        async with self.db.session() as session:
            try:
                result = await session.execute(
                    select(PendingDraftDB).where(PendingDraftDB.id == draft_id)
                )
                draft = result.scalar_one_or_none()
                if not draft:
                    raise EntityNotFoundError(f"Draft {draft_id} not found")

                draft.status = status.value
                draft.processed_at = processed_at
                if created_entity_id is not None:
                    draft.created_entity_id = created_entity_id
                if draft_content is not None:
                    draft.draft_content = draft_content

                await session.flush()
                logger.info(f"Draft {draft_id} -> {status.value}")
                return draft

            except EntityNotFoundError:
                raise
            except Exception as e:
                logger.error(f"Error updating draft {draft_id}: {e}", exc_info=True)
                raise DatabaseOperationError(f"Failed to update draft: {e}") from e

    async def update_content(self, draft_id: str, draft_content: Dict[str, Any]) -> PendingDraftDB:
        """Replace the stored payload of a draft without changing its status.

        Raises:
            EntityNotFoundError: If draft not found
            DatabaseOperationError: If update fails
        """
        async with self.db.session() as session:
            try:
                result = await session.execute(
                    select(PendingDraftDB).where(PendingDraftDB.id == draft_id)
                )
                draft = result.scalar_one_or_none()
                if not draft:
                    raise EntityNotFoundError(f"Draft {draft_id} not found")

                draft.draft_content = draft_content
                await session.flush()
                return draft

            except EntityNotFoundError:
                raise
            except Exception as e:
                logger.error(f"Error updating draft content {draft_id}: {e}", exc_info=True)
                raise DatabaseOperationError(f"Failed to update draft: {e}") from e

    async def expire_stale(self, now: datetime) -> int:
        """Mark pending drafts past their expiry as EXPIRED. Returns the count."""
        async with self.db.session() as session:
            try:
                result = await session.execute(
                    update(PendingDraftDB)
                    .where(
                        and_(
                            PendingDraftDB.status == DraftStatus.PENDING_APPROVAL.value,
                            PendingDraftDB.expires_at <= now,
                        )
                    )
                    .values(status=DraftStatus.EXPIRED.value, processed_at=now)
                )
                return result.rowcount or 0
            except Exception as e:
                logger.error(f"Error expiring drafts: {e}", exc_info=True)
                raise DatabaseOperationError(f"Failed to expire drafts: {e}") from e


# Singleton
_draft_repository: Optional[DraftRepository] = None


def get_draft_repository() -> DraftRepository:
    """Get the draft repository singleton."""
    global _draft_repository
    if _draft_repository is None:
        _draft_repository = DraftRepository()
    return _draft_repository
