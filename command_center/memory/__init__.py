"""Context enrichment and the draft feedback loop."""

from .context import ContextAssembler, best_effort
from .feedback import DraftFeedbackCollector
from .learning import UserPreferenceLearner, extract_diffs
from .rule_evolution import (
    RuleEvolutionService,
    FeedbackRates,
    RejectionReason,
    UserFeedbackSummary,
    WeeklyReport,
)

__all__ = [
    "ContextAssembler",
    "best_effort",
    "DraftFeedbackCollector",
    "UserPreferenceLearner",
    "extract_diffs",
    "RuleEvolutionService",
    "FeedbackRates",
    "RejectionReason",
    "UserFeedbackSummary",
    "WeeklyReport",
]
