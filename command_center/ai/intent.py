"""
Intent classification for the conversational pipeline.

Deterministic, no network: a specificity-ordered regex table where the
first match wins.
"""

import logging
import re
from enum import Enum
from typing import List, Optional, Pattern, Tuple

from ..models.conversation import ChatMode
from ..models.drafts import DraftType

logger = logging.getLogger(__name__)


class Intent(str, Enum):
    """Possible user intents detected from messages."""

    # Entity creation
    CREATE_TASK = "CREATE_TASK"              # "add a task to call the dentist"
    CREATE_EPIC = "CREATE_EPIC"              # "create an epic for the house move"
    CREATE_CHALLENGE = "CREATE_CHALLENGE"    # "start a challenge: no sugar"
    CREATE_EVENT = "CREATE_EVENT"            # "schedule an event friday 3pm"
    CREATE_BILL = "CREATE_BILL"              # "log a bill from the electric company"
    CREATE_NOTE = "CREATE_NOTE"              # "jot down the wifi password"

    # Task changes
    UPDATE_TASK = "UPDATE_TASK"
    COMPLETE_TASK = "COMPLETE_TASK"

    # Ceremonies
    START_CEREMONY = "START_CEREMONY"
    END_CEREMONY = "END_CEREMONY"

    # Reporting
    STANDUP_REPORT = "STANDUP_REPORT"
    SPRINT_STATUS = "SPRINT_STATUS"
    VELOCITY_CHECK = "VELOCITY_CHECK"

    # Fallbacks
    ASK_QUESTION = "ASK_QUESTION"
    GENERAL_CHAT = "GENERAL_CHAT"


_CEREMONIES = r"(retro|planning|review|standup|refinement|ceremony)"

# Order matters: creation first, then update/complete, ceremonies,
# reporting and finally the generic question pattern.
_PATTERN_TABLE: List[Tuple[Intent, str]] = [
    (Intent.CREATE_TASK, r"\b(add|create|new|make)\s+(a\s+)?task\b|\btask:\s|\btodo:\s"),
    (Intent.CREATE_EPIC, r"\b(add|create|new|make)\s+(a\s+|an\s+)?epic\b|\bepic:\s"),
    (Intent.CREATE_CHALLENGE, r"\b(add|create|new|start)\s+(a\s+)?challenge\b|\bchallenge:\s"),
    (Intent.CREATE_EVENT, r"\b(add|create|schedule|new)\s+(a\s+|an\s+)?event\b|\bevent:\s|\bmeeting:\s"),
    (Intent.CREATE_BILL, r"\b(add|create|new|log)\s+(a\s+)?bill\b|\bbill:\s|\bexpense:\s"),
    (Intent.CREATE_NOTE, r"\b(add|create|write|new)\s+(a\s+)?note\b|\bnote:\s|\bjot\b"),
    (Intent.UPDATE_TASK, r"\b(update|edit|change|modify|move)\s+(the\s+)?task\b"),
    (Intent.COMPLETE_TASK, r"\b(complete|finish|done|close|check.?off)\s+(the\s+)?task\b|\bmark.*(done|complete)"),
    (Intent.START_CEREMONY, r"\b(start|begin|kick.?off|open)\s+(the\s+)?" + _CEREMONIES + r"\b"),
    (Intent.END_CEREMONY, r"\b(end|finish|close|wrap.?up|complete)\s+(the\s+)?" + _CEREMONIES + r"\b"),
    (Intent.STANDUP_REPORT, r"\b(standup|stand.?up|daily|check.?in)\b|\byesterday.*today|\bwhat.*(did|done)"),
    (Intent.SPRINT_STATUS, r"\b(sprint|iteration)\s+(status|progress|health|report)\b|\bhow.*sprint"),
    (Intent.VELOCITY_CHECK, r"\b(velocity|burndown|throughput|capacity|story.?points?)\b"),
    (Intent.ASK_QUESTION, r"\b(what|how|why|when|where|should|can|could|would|is|are|do|does)\b.*\?"),
]

_EXPLICIT_CREATE = re.compile(r"\b(add|create|new|make|schedule|log|write)\b", re.IGNORECASE)

_INTENT_TO_DRAFT = {
    Intent.CREATE_TASK: DraftType.TASK,
    Intent.CREATE_EPIC: DraftType.EPIC,
    Intent.CREATE_CHALLENGE: DraftType.CHALLENGE,
    Intent.CREATE_EVENT: DraftType.EVENT,
    Intent.CREATE_BILL: DraftType.BILL,
    Intent.CREATE_NOTE: DraftType.NOTE,
}


class IntentClassifier:
    """
    Tags a message with an Intent.

    In STANDUP mode, anything without an explicit creation verb is treated
    as part of the standup report.
    """

    def __init__(self):
        self._patterns: List[Tuple[Intent, Pattern[str]]] = [
            (intent, re.compile(pattern, re.IGNORECASE)) for intent, pattern in _PATTERN_TABLE
        ]

    def classify(self, text: Optional[str], mode: Optional[ChatMode] = None) -> Intent:
        if not text or not text.strip():
            return Intent.GENERAL_CHAT

        if mode == ChatMode.STANDUP and not _EXPLICIT_CREATE.search(text):
            return Intent.STANDUP_REPORT

        for intent, pattern in self._patterns:
            if pattern.search(text):
                logger.debug(f"Classified as {intent.value}")
                return intent

        return Intent.GENERAL_CHAT


def is_creation_intent(intent: Intent) -> bool:
    return intent in _INTENT_TO_DRAFT


def to_draft_type(intent: Intent) -> Optional[DraftType]:
    """Draft variant a creation intent produces, or None."""
    return _INTENT_TO_DRAFT.get(intent)
