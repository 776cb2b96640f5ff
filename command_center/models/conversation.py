"""
Conversation state and per-turn result models.
"""

from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field


class ChatMode(str, Enum):
    """Conversational context that selects prompts and session rules."""
    FREEFORM = "FREEFORM"
    CAPTURE = "CAPTURE"
    PLANNING = "PLANNING"
    STANDUP = "STANDUP"
    RETROSPECTIVE = "RETROSPECTIVE"
    REVIEW = "REVIEW"
    REFINEMENT = "REFINEMENT"

    @classmethod
    def parse(cls, value: Optional[str]) -> Optional["ChatMode"]:
        """Case-insensitive lookup; None for unknown or blank values."""
        if not value or not value.strip():
            return None
        try:
            return cls[value.strip().upper()]
        except KeyError:
            return None


class SessionStatus(str, Enum):
    ACTIVE = "ACTIVE"
    CLOSED = "CLOSED"
    EXPIRED = "EXPIRED"


class MessageRole(str, Enum):
    USER = "USER"
    ASSISTANT = "ASSISTANT"
    SYSTEM = "SYSTEM"


class InputType(str, Enum):
    TEXT = "TEXT"
    VOICE = "VOICE"
    IMAGE = "IMAGE"
    MULTIMODAL = "MULTIMODAL"


class NormalizedInput(BaseModel):
    """Cleaned user input handed to the pipeline."""
    text: str = ""
    source_type: InputType = InputType.TEXT
    attachment_info: Optional[str] = None
    has_voice: bool = False
    has_image: bool = False

    @property
    def is_empty(self) -> bool:
        return not self.text


class ChatMessage(BaseModel):
    """A single message sent to the LLM."""
    role: MessageRole
    content: str

    def to_openai(self) -> Dict[str, str]:
        return {"role": self.role.value.lower(), "content": self.content}


class DraftSummary(BaseModel):
    """A persisted draft as reported back to the caller."""
    draft_id: str
    type: str
    confidence: float
    reasoning: str = ""
    draft: Dict[str, Any] = Field(default_factory=dict)


class TurnResult(BaseModel):
    """Structured outcome of one conversational turn."""
    session_id: Optional[str] = None
    mode: ChatMode
    intent: Optional[str] = None
    conversational_text: str = ""
    drafts: List[DraftSummary] = Field(default_factory=list)
    denied: bool = False
    denial_reason: Optional[str] = None

    @classmethod
    def denial(cls, mode: ChatMode, reason: str) -> "TurnResult":
        return cls(mode=mode, denied=True, denial_reason=reason)


class HistoryEntry(BaseModel):
    """Read model for a stored conversation message."""
    role: MessageRole
    content: str
    intent: Optional[str] = None
    sequence_number: int
    created_at: Optional[datetime] = None
