"""
Draft feedback collection.

Every approve/modify/reject decision is stored as an append-only record
together with a snapshot of the original draft, and bumps the user's
running counters on their coach preferences.
"""

import logging
from datetime import datetime
from typing import Any, Callable, Dict, Optional

from ..database.exceptions import DatabaseConstraintError
from ..database.repositories.drafts import DraftRepository, get_draft_repository
from ..database.repositories.feedback import FeedbackRepository, get_feedback_repository
from ..database.repositories.preferences import PreferenceRepository, get_preference_repository
from ..exceptions import NotFoundError
from ..models.feedback import FeedbackAction
from ..utils.datetime_utils import get_local_now

logger = logging.getLogger(__name__)


class DraftFeedbackCollector:
    """Records user decisions on drafts."""

    def __init__(
        self,
        drafts: Optional[DraftRepository] = None,
        feedback: Optional[FeedbackRepository] = None,
        preferences: Optional[PreferenceRepository] = None,
        clock: Callable[[], datetime] = get_local_now,
    ):
        self.drafts = drafts or get_draft_repository()
        self.feedback = feedback or get_feedback_repository()
        self.preferences = preferences or get_preference_repository()
        self.clock = clock

    async def record_feedback(
        self,
        user_id: str,
        draft_id: str,
        action: FeedbackAction,
        modified_json: Optional[Dict[str, Any]] = None,
        comment: Optional[str] = None,
        time_to_decide_ms: Optional[int] = None,
        session_id: Optional[str] = None,
    ) -> str:
        """
        Store a feedback record and update the user's counters.

        Returns:
            The feedback record ID

        Raises:
            NotFoundError: If the draft does not exist
        """
        draft = await self.drafts.get_by_id(draft_id)
        if draft is None:
            raise NotFoundError(f"Draft {draft_id} not found")

        record = await self.feedback.create(
            draft_id=draft_id,
            user_id=user_id,
            action=action,
            created_at=self.clock(),
            original_draft_json=draft.draft_content,
            modified_draft_json=modified_json,
            user_comment=comment,
            time_to_decide_ms=time_to_decide_ms,
            session_id=session_id or draft.session_id,
        )

        try:
            await self.preferences.record_decision(user_id, action)
        except DatabaseConstraintError:
            # Another turn created the preference row first; the row exists now
            await self.preferences.record_decision(user_id, action)

        logger.info(f"Recorded {action.value} feedback on draft {draft_id} for user {user_id}")
        return record.id

    async def record_approval(
        self, user_id: str, draft_id: str, time_to_decide_ms: Optional[int] = None
    ) -> str:
        return await self.record_feedback(
            user_id, draft_id, FeedbackAction.APPROVED, time_to_decide_ms=time_to_decide_ms
        )

    async def record_modification(
        self,
        user_id: str,
        draft_id: str,
        modified_json: Dict[str, Any],
        comment: Optional[str] = None,
        time_to_decide_ms: Optional[int] = None,
    ) -> str:
        return await self.record_feedback(
            user_id, draft_id, FeedbackAction.MODIFIED, modified_json, comment, time_to_decide_ms
        )

    async def record_rejection(
        self,
        user_id: str,
        draft_id: str,
        reason: Optional[str] = None,
        time_to_decide_ms: Optional[int] = None,
    ) -> str:
        return await self.record_feedback(
            user_id, draft_id, FeedbackAction.REJECTED, comment=reason, time_to_decide_ms=time_to_decide_ms
        )
