"""
Feedback trend aggregation.

Pure aggregation over feedback records and preference counters, used for
the weekly evolution report and admin dashboards.
"""

import logging
from datetime import datetime, timedelta
from typing import Callable, List, Optional

from pydantic import BaseModel

from ..database.repositories.feedback import FeedbackRepository, get_feedback_repository
from ..database.repositories.preferences import PreferenceRepository, get_preference_repository
from ..models.feedback import FeedbackAction
from ..utils.datetime_utils import get_local_now

logger = logging.getLogger(__name__)


class FeedbackRates(BaseModel):
    approval_rate: float = 0.0
    modification_rate: float = 0.0
    rejection_rate: float = 0.0
    total_feedback: int = 0


class RejectionReason(BaseModel):
    reason: str
    count: int


class UserFeedbackSummary(BaseModel):
    user_id: str
    total_interactions: int
    approved: int
    modified: int
    rejected: int


class WeeklyReport(BaseModel):
    since: datetime
    rates: FeedbackRates
    avg_decision_ms: float
    top_rejection_reasons: List[RejectionReason]


class RuleEvolutionService:
    """Computes approval, modification and rejection trends."""

    def __init__(
        self,
        feedback: Optional[FeedbackRepository] = None,
        preferences: Optional[PreferenceRepository] = None,
        clock: Callable[[], datetime] = get_local_now,
    ):
        self.feedback = feedback or get_feedback_repository()
        self.preferences = preferences or get_preference_repository()
        self.clock = clock

    async def compute_feedback_rates(self, since: datetime) -> FeedbackRates:
        counts = await self.feedback.count_by_action(since)
        total = sum(counts.values())
        if total == 0:
            return FeedbackRates()

        def rate(action: FeedbackAction) -> float:
            return counts.get(action.value, 0) / total * 100

        return FeedbackRates(
            approval_rate=rate(FeedbackAction.APPROVED),
            modification_rate=rate(FeedbackAction.MODIFIED),
            rejection_rate=rate(FeedbackAction.REJECTED),
            total_feedback=total,
        )

    async def compute_average_decision_time(self, since: datetime) -> float:
        """Average decision latency in ms, 0.0 when nothing was measured."""
        average = await self.feedback.average_decision_time(since)
        return average or 0.0

    async def top_rejection_reasons(self, since: datetime, limit: int = 10) -> List[RejectionReason]:
        rows = await self.feedback.top_rejection_reasons(since, limit)
        return [RejectionReason(reason=reason, count=count) for reason, count in rows]

    async def top_users_by_feedback(self, limit: int = 10) -> List[UserFeedbackSummary]:
        prefs = await self.preferences.top_by_interactions(limit)
        return [
            UserFeedbackSummary(
                user_id=p.user_id,
                total_interactions=p.total_interactions,
                approved=p.total_drafts_approved,
                modified=p.total_drafts_modified,
                rejected=p.total_drafts_rejected,
            )
            for p in prefs
            if p.total_interactions > 0
        ]

    async def weekly_evolution_report(self) -> WeeklyReport:
        """Summarize the last seven days and log it."""
        since = self.clock() - timedelta(days=7)
        rates = await self.compute_feedback_rates(since)
        avg_decision = await self.compute_average_decision_time(since)
        reasons = await self.top_rejection_reasons(since, 5)

        logger.info(
            f"Weekly AI feedback report: total={rates.total_feedback}, "
            f"approvalRate={rates.approval_rate:.1f}%, modRate={rates.modification_rate:.1f}%, "
            f"rejectRate={rates.rejection_rate:.1f}%, avgDecideMs={avg_decision:.0f}"
        )
        return WeeklyReport(
            since=since,
            rates=rates,
            avg_decision_ms=avg_decision,
            top_rejection_reasons=reasons,
        )
