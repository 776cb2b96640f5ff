"""
Draft approval.

Turns a pending draft into a real entity (approve / modify) or discards it
(reject). Drafts past their expiry are marked EXPIRED on first touch.
"""

import logging
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional

from pydantic import ValidationError

from ..database.models import PendingDraftDB
from ..database.repositories.drafts import DraftRepository, get_draft_repository
from ..exceptions import InvalidInputError, NotFoundError
from ..integrations.collaborators import EntityCreator
from ..memory.feedback import DraftFeedbackCollector
from ..models.drafts import DraftType, apply_updates, draft_from_json, draft_to_json
from ..models.feedback import DraftAction, DraftActionResult, DraftStatus, FeedbackAction
from ..utils.datetime_utils import get_local_now

logger = logging.getLogger(__name__)

_FEEDBACK_FOR_ACTION = {
    DraftAction.APPROVE: FeedbackAction.APPROVED,
    DraftAction.MODIFY: FeedbackAction.MODIFIED,
    DraftAction.REJECT: FeedbackAction.REJECTED,
}

_STATUS_FOR_ACTION = {
    DraftAction.APPROVE: DraftStatus.APPROVED,
    DraftAction.MODIFY: DraftStatus.MODIFIED,
    DraftAction.REJECT: DraftStatus.REJECTED,
}


class DraftApprovalService:
    """Applies user decisions to pending drafts."""

    def __init__(
        self,
        entity_creator: EntityCreator,
        drafts: Optional[DraftRepository] = None,
        collector: Optional[DraftFeedbackCollector] = None,
        clock: Callable[[], datetime] = get_local_now,
    ):
        self.entity_creator = entity_creator
        self.drafts = drafts or get_draft_repository()
        self.collector = collector or DraftFeedbackCollector(drafts=self.drafts, clock=clock)
        self.clock = clock

    async def process_action(
        self,
        user_id: str,
        draft_id: str,
        action: DraftAction,
        modified_fields: Optional[Dict[str, Any]] = None,
        comment: Optional[str] = None,
        time_to_decide_ms: Optional[int] = None,
    ) -> DraftActionResult:
        """
        Approve, modify or reject a pending draft.

        Returns:
            DraftActionResult; ``success`` is False when the draft was
            already processed, has expired, or entity creation failed.

        Raises:
            NotFoundError: If the draft does not exist
            InvalidInputError: If MODIFY has no usable field updates
        """
        record = await self._get_record(draft_id)
        now = self.clock()
        unavailable = await self._unavailable(record, now, action.value)
        if unavailable is not None:
            return unavailable

        if action == DraftAction.REJECT:
            return await self._reject(user_id, record, comment, time_to_decide_ms, now)

        payload = record.draft_content
        modified_json = None
        if action == DraftAction.MODIFY:
            payload = self._modified_payload(record, modified_fields)
            modified_json = payload

        try:
            entity_id = await self.entity_creator.create_entity(
                user_id, DraftType(record.draft_type), payload
            )
        except Exception as e:
            logger.error(f"Entity creation failed for draft {draft_id}: {e}", exc_info=True)
            return DraftActionResult(
                draft_id=draft_id,
                resulting_status=DraftStatus.PENDING_APPROVAL,
                success=False,
                message=f"Could not create {record.draft_type}: {e}",
            )

        # Feedback snapshots the stored draft, so record it before the content changes
        await self.collector.record_feedback(
            user_id,
            draft_id,
            _FEEDBACK_FOR_ACTION[action],
            modified_json=modified_json,
            comment=comment,
            time_to_decide_ms=time_to_decide_ms,
        )

        status = _STATUS_FOR_ACTION[action]
        await self.drafts.update_status(
            draft_id, status, now, created_entity_id=entity_id, draft_content=modified_json
        )

        return DraftActionResult(
            draft_id=draft_id,
            resulting_status=status,
            created_entity_id=entity_id,
            message=f"{record.draft_type.capitalize()} created",
        )

    async def apply_clarification(
        self, user_id: str, draft_id: str, answers: Dict[str, Any]
    ) -> DraftActionResult:
        """
        Merge clarification answers into a pending draft, keeping it pending.

        Answered questions are cleared from drafts that carry them.

        Raises:
            NotFoundError: If the draft does not exist
            InvalidInputError: If there are no answers or they fail validation
        """
        record = await self._get_record(draft_id)
        now = self.clock()
        unavailable = await self._unavailable(record, now, "CLARIFY")
        if unavailable is not None:
            return unavailable

        if not answers:
            raise InvalidInputError("Clarification requires at least one answer")

        draft = draft_from_json(record.draft_content)
        updates = dict(answers)
        if "clarifying_questions" in type(draft).model_fields and not (
            {"clarifying_questions", "clarifyingQuestions"} & updates.keys()
        ):
            updates["clarifying_questions"] = []

        try:
            updated = apply_updates(draft, updates)
        except ValidationError as e:
            raise InvalidInputError(f"Invalid clarification answer: {e}") from e

        await self.drafts.update_content(draft_id, draft_to_json(updated))
        logger.info(f"Applied {len(answers)} clarification answer(s) to draft {draft_id} for user {user_id}")
        return DraftActionResult(
            draft_id=draft_id,
            resulting_status=DraftStatus.PENDING_APPROVAL,
            message="Draft updated",
        )

    async def list_pending(self, user_id: str) -> List[PendingDraftDB]:
        """Pending drafts for a user, newest first. Expired ones are marked on the way."""
        now = self.clock()
        pending = await self.drafts.get_by_user_and_status(user_id, DraftStatus.PENDING_APPROVAL)

        live = []
        for record in pending:
            if record.is_expired(now):
                await self.drafts.update_status(record.id, DraftStatus.EXPIRED, now)
            else:
                live.append(record)
        return live

    # ── Helpers ──

    async def _get_record(self, draft_id: str) -> PendingDraftDB:
        record = await self.drafts.get_by_id(draft_id)
        if record is None:
            raise NotFoundError(f"Draft {draft_id} not found")
        return record

    async def _unavailable(
        self, record: PendingDraftDB, now: datetime, action: str
    ) -> Optional[DraftActionResult]:
        """Error result for a draft that is no longer pending, marking expiry on touch."""
        if record.status != DraftStatus.PENDING_APPROVAL.value:
            return DraftActionResult(
                draft_id=record.id,
                resulting_status=DraftStatus(record.status),
                created_entity_id=record.created_entity_id,
                success=False,
                message=f"Draft already processed with status {record.status}",
            )

        if record.is_expired(now):
            await self.drafts.update_status(record.id, DraftStatus.EXPIRED, now)
            logger.info(f"Draft {record.id} expired before {action}")
            return DraftActionResult(
                draft_id=record.id,
                resulting_status=DraftStatus.EXPIRED,
                success=False,
                message="Draft has expired",
            )

        return None

    async def _reject(
        self,
        user_id: str,
        record: PendingDraftDB,
        comment: Optional[str],
        time_to_decide_ms: Optional[int],
        now: datetime,
    ) -> DraftActionResult:
        await self.collector.record_feedback(
            user_id,
            record.id,
            FeedbackAction.REJECTED,
            comment=comment,
            time_to_decide_ms=time_to_decide_ms,
        )
        await self.drafts.update_status(record.id, DraftStatus.REJECTED, now)
        return DraftActionResult(
            draft_id=record.id,
            resulting_status=DraftStatus.REJECTED,
            message="Draft rejected",
        )

    @staticmethod
    def _modified_payload(record: PendingDraftDB, modified_fields: Optional[Dict[str, Any]]) -> Dict[str, Any]:
        if not modified_fields:
            raise InvalidInputError("MODIFY requires at least one field update")
        try:
            updated = apply_updates(draft_from_json(record.draft_content), modified_fields)
        except ValidationError as e:
            raise InvalidInputError(f"Invalid draft update: {e}") from e
        return draft_to_json(updated)


# Singleton
_draft_approval_service: Optional[DraftApprovalService] = None


def get_draft_approval_service(entity_creator: Optional[EntityCreator] = None) -> DraftApprovalService:
    """Get the approval service singleton; the first call must supply the entity creator."""
    global _draft_approval_service
    if _draft_approval_service is None:
        if entity_creator is None:
            raise RuntimeError("DraftApprovalService requires an EntityCreator on first use")
        _draft_approval_service = DraftApprovalService(entity_creator)
    return _draft_approval_service
