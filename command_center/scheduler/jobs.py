"""
Scheduler manager for background maintenance.

Scheduled jobs:
- Idle session sweep (every 30 minutes)
- Pending draft expiry (hourly)
- Correction pattern learning (daily, 3 AM)
- Weekly feedback report (Monday, 2 AM)

Every job is safe to run again; a failing run is logged and the next run
proceeds normally.
"""

import logging
from datetime import datetime
from typing import Any, Awaitable, Callable, Dict, Optional

import pytz
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger
from apscheduler.triggers.interval import IntervalTrigger

from config import settings
from ..conversation.manager import ConversationManager
from ..database.repositories.drafts import DraftRepository, get_draft_repository
from ..memory.learning import UserPreferenceLearner
from ..memory.rule_evolution import RuleEvolutionService
from ..utils.datetime_utils import get_local_now

logger = logging.getLogger(__name__)

_WEEKDAYS = {
    "monday": "mon",
    "tuesday": "tue",
    "wednesday": "wed",
    "thursday": "thu",
    "friday": "fri",
    "saturday": "sat",
    "sunday": "sun",
}


class SchedulerManager:
    """
    Manages the scheduled maintenance jobs.
    """

    def __init__(
        self,
        conversation_manager: Optional[ConversationManager] = None,
        drafts: Optional[DraftRepository] = None,
        learner: Optional[UserPreferenceLearner] = None,
        rule_evolution: Optional[RuleEvolutionService] = None,
        clock: Callable[[], datetime] = get_local_now,
    ):
        self.scheduler: Optional[AsyncIOScheduler] = None
        self.timezone = pytz.timezone(settings.timezone)
        self.conversations = conversation_manager or ConversationManager(clock=clock)
        self.drafts = drafts or get_draft_repository()
        self.learner = learner or UserPreferenceLearner()
        self.rule_evolution = rule_evolution or RuleEvolutionService(clock=clock)
        self.clock = clock

        self._jobs: Dict[str, Callable[[], Awaitable[Any]]] = {
            "session_sweep": self._session_sweep_job,
            "draft_expiry": self._draft_expiry_job,
            "pattern_learning": self._pattern_learning_job,
            "weekly_report": self._weekly_report_job,
        }

    def start(self) -> None:
        """Start the scheduler with all jobs."""
        self.scheduler = AsyncIOScheduler(timezone=self.timezone)

        # Idle conversation sessions
        self.scheduler.add_job(
            self._session_sweep_job,
            IntervalTrigger(minutes=settings.session_sweep_interval_minutes),
            id="session_sweep",
            name="Idle Session Sweep",
            replace_existing=True
        )

        # Pending drafts past their expiry
        self.scheduler.add_job(
            self._draft_expiry_job,
            IntervalTrigger(minutes=settings.draft_sweep_interval_minutes),
            id="draft_expiry",
            name="Draft Expiry Sweep",
            replace_existing=True
        )

        # Nightly pattern learning
        self.scheduler.add_job(
            self._pattern_learning_job,
            CronTrigger(
                hour=settings.pattern_learning_hour,
                minute=0,
                timezone=self.timezone
            ),
            id="pattern_learning",
            name="Correction Pattern Learning",
            replace_existing=True
        )

        # Weekly report
        self.scheduler.add_job(
            self._weekly_report_job,
            CronTrigger(
                day_of_week=_WEEKDAYS.get(settings.weekly_report_day.lower(), "mon"),
                hour=settings.weekly_report_hour,
                minute=0,
                timezone=self.timezone
            ),
            id="weekly_report",
            name="Weekly Feedback Report",
            replace_existing=True
        )

        self.scheduler.start()
        logger.info(f"Scheduler started with {len(self._jobs)} jobs ({settings.timezone})")

    def stop(self) -> None:
        """Stop the scheduler."""
        if self.scheduler:
            self.scheduler.shutdown()
            self.scheduler = None
            logger.info("Scheduler stopped")

    async def run_job(self, job_id: str) -> Any:
        """Run a job immediately and return its result.

        Raises:
            KeyError: Unknown job ID
        """
        job = self._jobs.get(job_id)
        if job is None:
            raise KeyError(f"Unknown job '{job_id}'")
        return await job()

    def trigger_job(self, job_id: str) -> bool:
        """Move a scheduled job's next run to now."""
        if not self.scheduler:
            return False

        job = self.scheduler.get_job(job_id)
        if job:
            job.modify(next_run_time=datetime.now(self.timezone))
            return True

        return False

    def get_job_status(self) -> dict:
        """Get status of all scheduled jobs."""
        if not self.scheduler:
            return {}

        jobs = {}
        for job in self.scheduler.get_jobs():
            jobs[job.id] = {
                "name": job.name,
                "next_run": job.next_run_time.isoformat() if job.next_run_time else None,
                "trigger": str(job.trigger)
            }

        return jobs

    # ── Jobs ──

    async def _session_sweep_job(self) -> int:
        logger.debug("Sweeping idle conversation sessions")
        try:
            return await self.conversations.expire_idle_sessions()
        except Exception as e:
            logger.error(f"Error in session sweep job: {e}", exc_info=True)
            return 0

    async def _draft_expiry_job(self) -> int:
        logger.debug("Sweeping expired drafts")
        try:
            count = await self.drafts.expire_stale(self.clock())
        except Exception as e:
            logger.error(f"Error in draft expiry job: {e}", exc_info=True)
            return 0
        if count:
            logger.info(f"Expired {count} stale drafts")
        return count

    async def _pattern_learning_job(self) -> Optional[Dict[str, int]]:
        try:
            return await self.learner.daily_pattern_learning()
        except Exception as e:
            logger.error(f"Error in pattern learning job: {e}", exc_info=True)
            return None

    async def _weekly_report_job(self):
        try:
            return await self.rule_evolution.weekly_evolution_report()
        except Exception as e:
            logger.error(f"Error in weekly report job: {e}", exc_info=True)
            return None


# Singleton
_scheduler_manager: Optional[SchedulerManager] = None


def get_scheduler_manager() -> SchedulerManager:
    """Get the scheduler manager instance."""
    global _scheduler_manager
    if _scheduler_manager is None:
        _scheduler_manager = SchedulerManager()
    return _scheduler_manager
