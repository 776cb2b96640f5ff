"""Command Center: conversational capture of tasks, events, bills and notes."""

__version__ = "0.1.0"
