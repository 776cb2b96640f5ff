"""Data models for Command Center."""

from .conversation import (
    ChatMode,
    SessionStatus,
    MessageRole,
    InputType,
    NormalizedInput,
    ChatMessage,
    DraftSummary,
    TurnResult,
    HistoryEntry,
)
from .drafts import (
    DraftType,
    Draft,
    DraftModel,
    RecurrencePattern,
    TaskDraft,
    EpicDraft,
    ChallengeDraft,
    EventDraft,
    BillDraft,
    NoteDraft,
    draft_type_of,
    draft_to_json,
    draft_from_json,
    apply_updates,
)
from .feedback import (
    DraftStatus,
    DraftAction,
    FeedbackAction,
    CoachTone,
    DraftActionResult,
    CorrectionPattern,
)

__all__ = [
    "ChatMode",
    "SessionStatus",
    "MessageRole",
    "InputType",
    "NormalizedInput",
    "ChatMessage",
    "DraftSummary",
    "TurnResult",
    "HistoryEntry",
    "DraftType",
    "Draft",
    "DraftModel",
    "RecurrencePattern",
    "TaskDraft",
    "EpicDraft",
    "ChallengeDraft",
    "EventDraft",
    "BillDraft",
    "NoteDraft",
    "draft_type_of",
    "draft_to_json",
    "draft_from_json",
    "apply_updates",
    "DraftStatus",
    "DraftAction",
    "FeedbackAction",
    "CoachTone",
    "DraftActionResult",
    "CorrectionPattern",
]
