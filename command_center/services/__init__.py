"""Services acting on stored drafts."""

from .draft_approval import DraftApprovalService, get_draft_approval_service

__all__ = ["DraftApprovalService", "get_draft_approval_service"]
