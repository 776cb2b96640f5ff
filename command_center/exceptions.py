"""Exceptions raised by the conversational pipeline."""

from typing import Optional


class CommandCenterError(Exception):
    """Base exception for pipeline errors."""
    pass


class InvalidInputError(CommandCenterError):
    """Blank or otherwise unusable request. Never retried."""
    pass


class NotFoundError(CommandCenterError):
    """Missing user, draft or prompt key."""
    pass


class LlmGatewayError(CommandCenterError):
    """LLM call failed after all retries, or was interrupted."""
    pass


class CircuitOpenError(LlmGatewayError):
    """Circuit breaker is open; no attempt was made."""

    def __init__(self, retry_after_seconds: int, message: Optional[str] = None):
        self.retry_after_seconds = retry_after_seconds
        super().__init__(
            message
            or "Circuit breaker is OPEN. AI service temporarily unavailable. "
            f"Try again in {retry_after_seconds} seconds."
        )
