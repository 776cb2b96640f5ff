"""
Draft approval and feedback models.
"""

from enum import Enum
from typing import Optional

from pydantic import BaseModel


class DraftStatus(str, Enum):
    PENDING_APPROVAL = "PENDING_APPROVAL"
    APPROVED = "APPROVED"
    MODIFIED = "MODIFIED"
    REJECTED = "REJECTED"
    EXPIRED = "EXPIRED"


class DraftAction(str, Enum):
    """Action a user takes on a pending draft."""
    APPROVE = "APPROVE"
    MODIFY = "MODIFY"
    REJECT = "REJECT"


class FeedbackAction(str, Enum):
    APPROVED = "APPROVED"
    MODIFIED = "MODIFIED"
    REJECTED = "REJECTED"


class CoachTone(str, Enum):
    SUPPORTIVE = "SUPPORTIVE"
    DIRECT = "DIRECT"
    CHALLENGING = "CHALLENGING"


class DraftActionResult(BaseModel):
    """Outcome of approving, modifying or rejecting a draft."""
    draft_id: str
    resulting_status: DraftStatus
    created_entity_id: Optional[str] = None
    success: bool = True
    message: Optional[str] = None


class CorrectionPattern(BaseModel):
    """A (field, preferred value) pair a user repeatedly chooses."""
    field: str
    preferred_value: str
    count: int

    def to_record(self) -> dict:
        return {"field": self.field, "preferredValue": self.preferred_value, "count": self.count}

    @classmethod
    def from_record(cls, record: dict) -> "CorrectionPattern":
        return cls(
            field=record["field"],
            preferred_value=str(record.get("preferredValue", "")),
            count=int(record.get("count", 0)),
        )
