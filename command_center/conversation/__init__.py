"""Conversation session management."""

from .manager import ConversationManager, format_history, STANDUP_DENIAL, PLANNING_DENIAL

__all__ = ["ConversationManager", "format_history", "STANDUP_DENIAL", "PLANNING_DENIAL"]
