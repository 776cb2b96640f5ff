"""
Draft entities proposed by the AI and awaiting human approval.

Six closed variants (task, epic, challenge, event, bill, note). The ``type``
discriminant is a fixed literal on each class, so a draft can never claim a
variant it is not. Drafts are frozen; use ``apply_updates`` to derive a
modified copy.
"""

from datetime import date, time
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Annotated, Any, Dict, List, Literal, Optional, Union

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    TypeAdapter,
    ValidationInfo,
    field_validator,
)
from pydantic.alias_generators import to_camel


DEFAULT_LIFE_WHEEL_AREA = "lw-4"
DEFAULT_FINANCE_AREA = "lw-3"
DEFAULT_EISENHOWER_QUADRANT = "eq-2"
DEFAULT_STORY_POINTS = 3
MAX_STORY_POINTS = 13
DEFAULT_EPIC_COLOR = "#3B82F6"
DEFAULT_CHALLENGE_DAYS = 30
DEFAULT_GRACE_DAYS = 2


class DraftType(str, Enum):
    """Closed set of draft variants."""
    TASK = "task"
    EPIC = "epic"
    CHALLENGE = "challenge"
    EVENT = "event"
    BILL = "bill"
    NOTE = "note"


def _is_blank(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


class DraftModel(BaseModel):
    """Common configuration: immutable, camelCase on the wire."""

    model_config = ConfigDict(
        frozen=True,
        alias_generator=to_camel,
        populate_by_name=True,
    )

    @field_validator("life_wheel_area_id", mode="before", check_fields=False)
    @classmethod
    def _default_area(cls, value: Any, info: ValidationInfo) -> Any:
        if _is_blank(value):
            return cls.model_fields[info.field_name].default
        return value


class RecurrencePattern(DraftModel):
    frequency: str = "daily"
    interval: int = 1
    end_date: Optional[date] = None

    @field_validator("frequency", mode="before")
    @classmethod
    def _frequency(cls, value: Any) -> Any:
        return "daily" if _is_blank(value) else value

    @field_validator("interval", mode="before")
    @classmethod
    def _interval(cls, value: Any) -> int:
        try:
            interval = int(value)
        except (TypeError, ValueError):
            return 1
        return max(interval, 1)


class TaskDraft(DraftModel):
    type: Literal["task"] = "task"
    title: str
    description: Optional[str] = None
    life_wheel_area_id: str = DEFAULT_LIFE_WHEEL_AREA
    eisenhower_quadrant_id: str = DEFAULT_EISENHOWER_QUADRANT
    story_points: int = DEFAULT_STORY_POINTS
    suggested_epic_id: Optional[str] = None
    suggested_sprint_id: Optional[str] = None
    due_date: Optional[date] = None
    is_recurring: bool = False
    recurrence_pattern: Optional[RecurrencePattern] = None

    @field_validator("title")
    @classmethod
    def _title_required(cls, value: str) -> str:
        if _is_blank(value):
            raise ValueError("Task title is required")
        return value.strip()

    @field_validator("eisenhower_quadrant_id", mode="before")
    @classmethod
    def _quadrant(cls, value: Any) -> Any:
        return DEFAULT_EISENHOWER_QUADRANT if _is_blank(value) else value

    @field_validator("story_points", mode="before")
    @classmethod
    def _clamp_points(cls, value: Any) -> int:
        try:
            points = int(value)
        except (TypeError, ValueError):
            return DEFAULT_STORY_POINTS
        if points < 1:
            return DEFAULT_STORY_POINTS
        return min(points, MAX_STORY_POINTS)


class EpicDraft(DraftModel):
    type: Literal["epic"] = "epic"
    title: str
    description: Optional[str] = None
    life_wheel_area_id: str = DEFAULT_LIFE_WHEEL_AREA
    color: str = DEFAULT_EPIC_COLOR
    icon: Optional[str] = None
    suggested_tasks: List[TaskDraft] = Field(default_factory=list)
    start_date: Optional[date] = None
    end_date: Optional[date] = None

    @field_validator("title")
    @classmethod
    def _title_required(cls, value: str) -> str:
        if _is_blank(value):
            raise ValueError("Epic title is required")
        return value.strip()

    @field_validator("color", mode="before")
    @classmethod
    def _color(cls, value: Any) -> Any:
        return DEFAULT_EPIC_COLOR if _is_blank(value) else value


class ChallengeDraft(DraftModel):
    type: Literal["challenge"] = "challenge"
    name: str
    description: Optional[str] = None
    life_wheel_area_id: str = DEFAULT_LIFE_WHEEL_AREA
    metric_type: str = "yesno"
    target_value: Optional[Decimal] = None
    unit: Optional[str] = None
    duration: int = DEFAULT_CHALLENGE_DAYS
    recurrence: str = "daily"
    why_statement: Optional[str] = None
    reward_description: Optional[str] = None
    grace_days: int = DEFAULT_GRACE_DAYS
    reminder_time: Optional[time] = None

    @field_validator("name")
    @classmethod
    def _name_required(cls, value: str) -> str:
        if _is_blank(value):
            raise ValueError("Challenge name is required")
        return value.strip()

    @field_validator("metric_type", mode="before")
    @classmethod
    def _metric(cls, value: Any) -> Any:
        return "yesno" if _is_blank(value) else value

    @field_validator("recurrence", mode="before")
    @classmethod
    def _recurrence(cls, value: Any) -> Any:
        return "daily" if _is_blank(value) else value

    @field_validator("duration", mode="before")
    @classmethod
    def _duration(cls, value: Any) -> int:
        try:
            days = int(value)
        except (TypeError, ValueError):
            return DEFAULT_CHALLENGE_DAYS
        return days if days >= 1 else DEFAULT_CHALLENGE_DAYS

    @field_validator("grace_days", mode="before")
    @classmethod
    def _grace(cls, value: Any) -> int:
        try:
            days = int(value)
        except (TypeError, ValueError):
            return DEFAULT_GRACE_DAYS
        return days if days >= 0 else DEFAULT_GRACE_DAYS


class EventDraft(DraftModel):
    type: Literal["event"] = "event"
    title: str
    description: Optional[str] = None
    life_wheel_area_id: str = DEFAULT_LIFE_WHEEL_AREA
    event_date: Optional[date] = Field(default=None, alias="date")
    start_time: Optional[time] = None
    end_time: Optional[time] = None
    location: Optional[str] = None
    is_all_day: bool = False
    recurrence: Optional[str] = None
    attendees: List[str] = Field(default_factory=list)

    @field_validator("title")
    @classmethod
    def _title_required(cls, value: str) -> str:
        if _is_blank(value):
            raise ValueError("Event title is required")
        return value.strip()


class BillDraft(DraftModel):
    type: Literal["bill"] = "bill"
    vendor_name: str
    amount: Decimal = Decimal("0")
    currency: str = "USD"
    due_date: Optional[date] = None
    category: Optional[str] = None
    life_wheel_area_id: str = DEFAULT_FINANCE_AREA
    is_recurring: bool = False
    recurrence: Optional[str] = None
    notes: Optional[str] = None

    @field_validator("vendor_name")
    @classmethod
    def _vendor_required(cls, value: str) -> str:
        if _is_blank(value):
            raise ValueError("Bill vendor name is required")
        return value.strip()

    @field_validator("amount", mode="before")
    @classmethod
    def _amount(cls, value: Any) -> Decimal:
        if _is_blank(value):
            return Decimal("0")
        try:
            return Decimal(str(value))
        except InvalidOperation:
            return Decimal("0")

    @field_validator("currency", mode="before")
    @classmethod
    def _currency(cls, value: Any) -> Any:
        return "USD" if _is_blank(value) else value


class NoteDraft(DraftModel):
    type: Literal["note"] = "note"
    title: str = "Quick Note"
    content: str = ""
    life_wheel_area_id: str = DEFAULT_LIFE_WHEEL_AREA
    tags: List[str] = Field(default_factory=list)
    clarifying_questions: List[str] = Field(default_factory=list)

    @field_validator("title", mode="before")
    @classmethod
    def _title(cls, value: Any) -> Any:
        return "Quick Note" if _is_blank(value) else value

    @field_validator("content", mode="before")
    @classmethod
    def _content(cls, value: Any) -> Any:
        return "" if value is None else value


Draft = Annotated[
    Union[TaskDraft, EpicDraft, ChallengeDraft, EventDraft, BillDraft, NoteDraft],
    Field(discriminator="type"),
]

_draft_adapter: TypeAdapter = TypeAdapter(Draft)


def draft_type_of(draft: DraftModel) -> DraftType:
    """Discriminant of a draft instance."""
    return DraftType(draft.type)


def draft_to_json(draft: DraftModel) -> Dict[str, Any]:
    """JSON-ready dict (camelCase keys) for storage and hand-off."""
    return draft.model_dump(mode="json", by_alias=True)


def draft_from_json(data: Dict[str, Any]) -> DraftModel:
    """Rebuild a stored draft. Raises pydantic.ValidationError on bad data."""
    return _draft_adapter.validate_python(data)


def apply_updates(draft: DraftModel, updates: Dict[str, Any]) -> DraftModel:
    """
    Return a new draft of the same variant with ``updates`` merged in.

    Keys may be given as field names or camelCase aliases. The ``type`` key
    is ignored since a draft cannot change variant.
    """
    fields = type(draft).model_fields
    by_alias = {(info.alias or name): name for name, info in fields.items()}

    data = draft.model_dump()
    for key, value in updates.items():
        name = key if key in fields else by_alias.get(key)
        if name is None or name == "type":
            continue
        data[name] = value

    return type(draft).model_validate(data)
