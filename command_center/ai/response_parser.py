"""
Shared helpers for turning AI JSON output into draft models.

Model output is messy: markdown fences, prose around the JSON, missing or
``"null"`` fields. Everything here degrades to defaults instead of raising,
except draft construction itself, which may still fail validation.
"""

import json
import logging
from datetime import date, time
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, List, Optional

from ..models.drafts import (
    BillDraft,
    ChallengeDraft,
    DraftModel,
    DraftType,
    EpicDraft,
    EventDraft,
    NoteDraft,
    RecurrencePattern,
    TaskDraft,
)

logger = logging.getLogger(__name__)

FALLBACK_QUESTIONS = [
    "What would you like to create?",
    "Can you provide more details?",
]


def _is_missing(value: Any) -> bool:
    return value is None or (isinstance(value, str) and (not value.strip() or value == "null"))


def text_or(node: Dict[str, Any], key: str, default: Optional[str] = None) -> Optional[str]:
    """String value of ``key``, or ``default`` when missing, blank or "null"."""
    value = node.get(key)
    if _is_missing(value):
        return default
    return value if isinstance(value, str) else str(value)


def int_or(node: Dict[str, Any], key: str, default: int) -> int:
    value = node.get(key)
    if isinstance(value, bool):
        return default
    try:
        return int(value)
    except (TypeError, ValueError):
        return default


def bool_or(node: Dict[str, Any], key: str, default: bool = False) -> bool:
    value = node.get(key)
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        return value.strip().lower() == "true"
    return default


def parse_date(value: Any) -> Optional[date]:
    if _is_missing(value):
        return None
    try:
        return date.fromisoformat(str(value))
    except ValueError:
        logger.debug(f"Failed to parse date: {value}")
        return None


def parse_time(value: Any) -> Optional[time]:
    if _is_missing(value):
        return None
    try:
        return time.fromisoformat(str(value))
    except ValueError:
        logger.debug(f"Failed to parse time: {value}")
        return None


def parse_decimal(value: Any) -> Optional[Decimal]:
    if value is None or isinstance(value, bool):
        return None
    try:
        return Decimal(str(value))
    except InvalidOperation:
        return None


def parse_string_list(value: Any) -> List[str]:
    if not isinstance(value, list):
        return []
    return [item if isinstance(item, str) else json.dumps(item) for item in value]


class AIResponseParser:
    """Cleans AI responses and maps JSON objects onto draft variants."""

    def clean_json_response(self, response: Optional[str]) -> str:
        """Strip markdown fences and surrounding prose, leaving the JSON text."""
        if response is None or not response.strip():
            return "{}"

        cleaned = response.strip()

        if cleaned.startswith("```json") or cleaned.startswith("```JSON"):
            cleaned = cleaned[7:]
        elif cleaned.startswith("```"):
            cleaned = cleaned[3:]

        if cleaned.endswith("```"):
            cleaned = cleaned[:-3]

        cleaned = cleaned.strip()

        if not cleaned.startswith("{") and not cleaned.startswith("["):
            start = cleaned.find("{")
            end = cleaned.rfind("}")
            if start >= 0 and end > start:
                cleaned = cleaned[start:end + 1]

        return cleaned.strip()

    def parse_json(self, text: Optional[str]) -> Dict[str, Any]:
        """Parse cleaned JSON into a dict. Returns {} on failure or non-object JSON."""
        try:
            parsed = json.loads(self.clean_json_response(text))
        except json.JSONDecodeError as e:
            logger.warning(f"Failed to parse JSON: {e}")
            return {}
        return parsed if isinstance(parsed, dict) else {}

    def parse_draft_by_type_name(self, type_name: str, node: Dict[str, Any]) -> DraftModel:
        """Build the draft variant named by ``type_name``. Unknown types become notes."""
        parsers = {
            DraftType.TASK.value: self.parse_task_draft,
            DraftType.EPIC.value: self.parse_epic_draft,
            DraftType.CHALLENGE.value: self.parse_challenge_draft,
            DraftType.EVENT.value: self.parse_event_draft,
            DraftType.BILL.value: self.parse_bill_draft,
        }
        parser = parsers.get((type_name or "").strip().lower(), self.parse_note_draft)
        return parser(node)

    def parse_task_draft(self, node: Dict[str, Any]) -> TaskDraft:
        return TaskDraft(
            title=text_or(node, "title", "Untitled Task"),
            description=text_or(node, "description", ""),
            life_wheel_area_id=text_or(node, "lifeWheelAreaId"),
            eisenhower_quadrant_id=text_or(node, "eisenhowerQuadrantId"),
            story_points=int_or(node, "storyPoints", 3),
            suggested_epic_id=text_or(node, "suggestedEpicId"),
            suggested_sprint_id=text_or(node, "suggestedSprintId"),
            due_date=parse_date(node.get("dueDate")),
            is_recurring=bool_or(node, "isRecurring"),
            recurrence_pattern=self.parse_recurrence_pattern(node.get("recurrencePattern")),
        )

    def parse_epic_draft(self, node: Dict[str, Any]) -> EpicDraft:
        tasks = node.get("suggestedTasks")
        suggested = [
            self.parse_task_draft(task) for task in tasks if isinstance(task, dict)
        ] if isinstance(tasks, list) else []

        return EpicDraft(
            title=text_or(node, "title", "Untitled Epic"),
            description=text_or(node, "description", ""),
            life_wheel_area_id=text_or(node, "lifeWheelAreaId"),
            suggested_tasks=suggested,
            color=text_or(node, "color"),
            icon=text_or(node, "icon"),
            start_date=parse_date(node.get("startDate")),
            end_date=parse_date(node.get("endDate")),
        )

    def parse_challenge_draft(self, node: Dict[str, Any]) -> ChallengeDraft:
        return ChallengeDraft(
            name=text_or(node, "name", "Untitled Challenge"),
            description=text_or(node, "description", ""),
            life_wheel_area_id=text_or(node, "lifeWheelAreaId"),
            metric_type=text_or(node, "metricType"),
            target_value=parse_decimal(node.get("targetValue")),
            unit=text_or(node, "unit"),
            duration=int_or(node, "duration", 30),
            recurrence=text_or(node, "recurrence"),
            why_statement=text_or(node, "whyStatement"),
            reward_description=text_or(node, "rewardDescription"),
            grace_days=int_or(node, "graceDays", 2),
            reminder_time=parse_time(node.get("reminderTime")),
        )

    def parse_event_draft(self, node: Dict[str, Any]) -> EventDraft:
        return EventDraft(
            title=text_or(node, "title", "Untitled Event"),
            description=text_or(node, "description", ""),
            life_wheel_area_id=text_or(node, "lifeWheelAreaId"),
            event_date=parse_date(node.get("date")),
            start_time=parse_time(node.get("startTime")),
            end_time=parse_time(node.get("endTime")),
            location=text_or(node, "location"),
            is_all_day=bool_or(node, "isAllDay"),
            recurrence=text_or(node, "recurrence"),
            attendees=parse_string_list(node.get("attendees")),
        )

    def parse_bill_draft(self, node: Dict[str, Any]) -> BillDraft:
        return BillDraft(
            vendor_name=text_or(node, "vendorName", "Unknown Vendor"),
            amount=parse_decimal(node.get("amount")),
            currency=text_or(node, "currency"),
            due_date=parse_date(node.get("dueDate")),
            category=text_or(node, "category"),
            life_wheel_area_id=text_or(node, "lifeWheelAreaId"),
            is_recurring=bool_or(node, "isRecurring"),
            recurrence=text_or(node, "recurrence"),
            notes=text_or(node, "notes"),
        )

    def parse_note_draft(self, node: Dict[str, Any]) -> NoteDraft:
        return NoteDraft(
            title=text_or(node, "title"),
            content=text_or(node, "content", ""),
            life_wheel_area_id=text_or(node, "lifeWheelAreaId"),
            tags=parse_string_list(node.get("tags")),
            clarifying_questions=parse_string_list(node.get("clarifyingQuestions")),
        )

    def parse_recurrence_pattern(self, node: Any) -> Optional[RecurrencePattern]:
        if not isinstance(node, dict):
            return None
        return RecurrencePattern(
            frequency=text_or(node, "frequency"),
            interval=int_or(node, "interval", 1),
            end_date=parse_date(node.get("endDate")),
        )

    def fallback_note(self, raw_input: str, error: Optional[str] = None) -> NoteDraft:
        """Note that preserves the user's input when the AI output is unusable."""
        detail = f" ({error})" if error else ""
        return NoteDraft(
            title="Processing Error",
            content=f"Could not parse AI response{detail}: {raw_input}",
            tags=["error"],
            clarifying_questions=list(FALLBACK_QUESTIONS),
        )
