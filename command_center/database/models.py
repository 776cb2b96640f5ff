"""
SQLAlchemy models for the conversational pipeline.

Schema includes:
- Conversation sessions and their ordered messages
- Pending drafts awaiting approval (24h TTL)
- Draft feedback records (append-only)
- Per-user coach preferences with learned correction patterns
- Versioned system prompts
"""

import uuid
from datetime import datetime
from typing import Optional, List

from sqlalchemy import (
    String,
    Text,
    Integer,
    Boolean,
    DateTime,
    Float,
    ForeignKey,
    JSON,
    Index,
    UniqueConstraint,
    text,
)
from sqlalchemy.orm import DeclarativeBase, relationship, Mapped, mapped_column

from ..models.conversation import ChatMode, SessionStatus
from ..models.feedback import CoachTone, DraftStatus
from ..utils.datetime_utils import get_local_now


class Base(DeclarativeBase):
    """Base class for all models."""
    pass


def _new_id() -> str:
    return str(uuid.uuid4())


# ==================== CONVERSATIONS ====================

class ConversationSessionDB(Base):
    """One conversation per (user, mode) while ACTIVE."""
    __tablename__ = "conversation_sessions"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    user_id: Mapped[str] = mapped_column(String(100), nullable=False)
    mode: Mapped[str] = mapped_column(String(30), nullable=False, default=ChatMode.FREEFORM.value)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default=SessionStatus.ACTIVE.value)
    message_count: Mapped[int] = mapped_column(Integer, default=0)

    started_at: Mapped[datetime] = mapped_column(DateTime, default=get_local_now)
    last_message_at: Mapped[datetime] = mapped_column(DateTime, default=get_local_now)
    ended_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)

    messages: Mapped[List["ConversationMessageDB"]] = relationship(
        back_populates="session",
        cascade="all, delete-orphan",
        order_by="ConversationMessageDB.sequence_number",
    )

    __table_args__ = (
        Index("idx_sessions_user_mode_status", "user_id", "mode", "status"),
        Index(
            "uq_sessions_one_active",
            "user_id",
            "mode",
            unique=True,
            postgresql_where=text("status = 'ACTIVE'"),
            sqlite_where=text("status = 'ACTIVE'"),
        ),
        Index("idx_sessions_status_last_message", "status", "last_message_at"),
    )


class ConversationMessageDB(Base):
    """Append-only message inside a session."""
    __tablename__ = "conversation_messages"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    session_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("conversation_sessions.id"), nullable=False
    )
    role: Mapped[str] = mapped_column(String(20), nullable=False)
    content: Mapped[str] = mapped_column(Text, nullable=False)
    intent: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    sequence_number: Mapped[int] = mapped_column(Integer, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=get_local_now)

    session: Mapped["ConversationSessionDB"] = relationship(back_populates="messages")

    __table_args__ = (
        UniqueConstraint("session_id", "sequence_number", name="uq_message_sequence"),
    )


# ==================== DRAFTS ====================

class PendingDraftDB(Base):
    """AI-proposed entity awaiting approval."""
    __tablename__ = "pending_drafts"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    user_id: Mapped[str] = mapped_column(String(100), nullable=False)
    draft_type: Mapped[str] = mapped_column(String(20), nullable=False)
    draft_content: Mapped[dict] = mapped_column(JSON, nullable=False)
    status: Mapped[str] = mapped_column(
        String(30), nullable=False, default=DraftStatus.PENDING_APPROVAL.value
    )
    confidence_score: Mapped[float] = mapped_column(Float, default=0.7)
    ai_reasoning: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    original_input_text: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    session_id: Mapped[Optional[str]] = mapped_column(String(36), nullable=True)
    created_entity_id: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime, default=get_local_now)
    expires_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    processed_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)

    __table_args__ = (
        Index("idx_drafts_user_status", "user_id", "status"),
        Index("idx_drafts_status_expires", "status", "expires_at"),
    )

    def is_expired(self, now: datetime) -> bool:
        return now >= self.expires_at


class DraftFeedbackDB(Base):
    """Append-only record of a decision on a draft."""
    __tablename__ = "draft_feedback"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    draft_id: Mapped[str] = mapped_column(String(36), nullable=False)
    user_id: Mapped[str] = mapped_column(String(100), nullable=False)
    session_id: Mapped[Optional[str]] = mapped_column(String(36), nullable=True)
    action: Mapped[str] = mapped_column(String(20), nullable=False)
    original_draft_json: Mapped[Optional[dict]] = mapped_column(JSON, nullable=True)
    modified_draft_json: Mapped[Optional[dict]] = mapped_column(JSON, nullable=True)
    user_comment: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    time_to_decide_ms: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=get_local_now)

    __table_args__ = (
        Index("idx_feedback_user_action", "user_id", "action"),
        Index("idx_feedback_created", "created_at"),
    )


# ==================== PREFERENCES ====================

class UserCoachPreferenceDB(Base):
    """One-per-user aggregate of coaching preferences and decision counters."""
    __tablename__ = "user_coach_preferences"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[str] = mapped_column(String(100), unique=True, nullable=False)

    preferred_tone: Mapped[str] = mapped_column(String(20), default=CoachTone.DIRECT.value)
    default_mode: Mapped[str] = mapped_column(String(30), default=ChatMode.FREEFORM.value)
    correction_patterns: Mapped[list] = mapped_column(JSON, default=list)
    auto_approve_above: Mapped[float] = mapped_column(Float, default=0.95)
    planning_day: Mapped[str] = mapped_column(String(10), default="SUNDAY")

    total_interactions: Mapped[int] = mapped_column(Integer, default=0)
    total_drafts_approved: Mapped[int] = mapped_column(Integer, default=0)
    total_drafts_modified: Mapped[int] = mapped_column(Integer, default=0)
    total_drafts_rejected: Mapped[int] = mapped_column(Integer, default=0)

    created_at: Mapped[datetime] = mapped_column(DateTime, default=get_local_now)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=get_local_now, onupdate=get_local_now)

    def record_approval(self) -> None:
        self.total_drafts_approved = (self.total_drafts_approved or 0) + 1
        self.total_interactions = (self.total_interactions or 0) + 1

    def record_modification(self) -> None:
        self.total_drafts_modified = (self.total_drafts_modified or 0) + 1
        self.total_interactions = (self.total_interactions or 0) + 1

    def record_rejection(self) -> None:
        self.total_drafts_rejected = (self.total_drafts_rejected or 0) + 1
        self.total_interactions = (self.total_interactions or 0) + 1


# ==================== PROMPTS ====================

class SystemPromptDB(Base):
    """Versioned prompt text addressed by key."""
    __tablename__ = "system_prompts"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    prompt_key: Mapped[str] = mapped_column(String(100), unique=True, nullable=False)
    prompt_content: Mapped[str] = mapped_column(Text, nullable=False)
    description: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    version: Mapped[int] = mapped_column(Integer, default=1)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=get_local_now, onupdate=get_local_now)
