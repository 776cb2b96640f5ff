"""
Persistence for the conversational pipeline.

Handles:
- Conversation sessions and messages
- Pending drafts and their approval lifecycle
- Draft feedback and per-user coach preferences
- Versioned system prompts
"""

from .connection import (
    get_database,
    set_database,
    Database,
    init_database,
    close_database,
)
from .models import (
    Base,
    ConversationSessionDB,
    ConversationMessageDB,
    PendingDraftDB,
    DraftFeedbackDB,
    UserCoachPreferenceDB,
    SystemPromptDB,
)
from .exceptions import (
    DatabaseError,
    DatabaseConnectionError,
    DatabaseConstraintError,
    DatabaseOperationError,
    EntityNotFoundError,
)

__all__ = [
    "get_database",
    "set_database",
    "Database",
    "init_database",
    "close_database",
    "Base",
    "ConversationSessionDB",
    "ConversationMessageDB",
    "PendingDraftDB",
    "DraftFeedbackDB",
    "UserCoachPreferenceDB",
    "SystemPromptDB",
    "DatabaseError",
    "DatabaseConnectionError",
    "DatabaseConstraintError",
    "DatabaseOperationError",
    "EntityNotFoundError",
]
