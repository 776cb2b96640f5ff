"""
Repository pattern for database operations.

Each repository handles one table and exposes a get_*_repository() accessor.
"""

from .sessions import SessionRepository, get_session_repository
from .drafts import DraftRepository, get_draft_repository
from .feedback import FeedbackRepository, get_feedback_repository
from .preferences import PreferenceRepository, get_preference_repository
from .prompts import PromptRepository, get_prompt_repository

__all__ = [
    "SessionRepository",
    "get_session_repository",
    "DraftRepository",
    "get_draft_repository",
    "FeedbackRepository",
    "get_feedback_repository",
    "PreferenceRepository",
    "get_preference_repository",
    "PromptRepository",
    "get_prompt_repository",
]
