"""
Context assembly for prompts.

Builds the mode-specific key/value facts injected into the system prompt.
Every external lookup is best-effort: a failing service drops its facts
instead of failing the turn.
"""

import logging
from datetime import datetime, timedelta
from typing import Awaitable, Callable, Dict, Optional, TypeVar

from ..database.repositories.preferences import PreferenceRepository, get_preference_repository
from ..integrations.collaborators import (
    CeremonyService,
    SprintService,
    StandupService,
    TaskService,
    VelocityService,
)
from ..models.conversation import ChatMode
from ..utils.datetime_utils import get_local_now
from .learning import UserPreferenceLearner

logger = logging.getLogger(__name__)

T = TypeVar("T")

IN_PROGRESS = "IN_PROGRESS"
MAX_CARRYOVER_TASKS = 10


async def best_effort(description: str, lookup: Callable[[], Awaitable[T]]) -> Optional[T]:
    """Await ``lookup``; log and return None on any failure."""
    try:
        return await lookup()
    except Exception as e:
        logger.warning(f"Could not fetch {description} for context: {e}")
        return None


def _number(value: float) -> str:
    return f"{value:g}"


class ContextAssembler:
    """Builds the context map for one turn."""

    def __init__(
        self,
        sprints: SprintService,
        tasks: TaskService,
        velocity: VelocityService,
        standups: StandupService,
        ceremonies: CeremonyService,
        learner: Optional[UserPreferenceLearner] = None,
        preferences: Optional[PreferenceRepository] = None,
        clock: Callable[[], datetime] = get_local_now,
    ):
        self.sprints = sprints
        self.tasks = tasks
        self.velocity = velocity
        self.standups = standups
        self.ceremonies = ceremonies
        self.preferences = preferences or get_preference_repository()
        self.learner = learner or UserPreferenceLearner(preferences=self.preferences)
        self.clock = clock

        self._builders = {
            ChatMode.CAPTURE: self._assemble_capture,
            ChatMode.PLANNING: self._assemble_planning,
            ChatMode.STANDUP: self._assemble_standup,
            ChatMode.RETROSPECTIVE: self._assemble_retrospective,
            ChatMode.REVIEW: self._assemble_retrospective,
            ChatMode.REFINEMENT: self._assemble_refinement,
            ChatMode.FREEFORM: self._assemble_freeform,
        }

    async def assemble(self, mode: ChatMode, user_id: str, active_sprint_id: Optional[str]) -> Dict[str, str]:
        builder = self._builders.get(mode, self._assemble_freeform)
        ctx = await builder(user_id, active_sprint_id)
        await self._add_user_preferences(ctx, user_id)
        logger.debug(f"Assembled {mode.value} context: {len(ctx)} keys for {user_id}")
        return ctx

    # ── Mode-specific builders ──

    async def _assemble_capture(self, user_id: str, sprint_id: Optional[str]) -> Dict[str, str]:
        ctx = {"today": self.clock().date().isoformat()}
        if sprint_id:
            await self._add_sprint_summary(ctx, sprint_id)
        return ctx

    async def _assemble_planning(self, user_id: str, sprint_id: Optional[str]) -> Dict[str, str]:
        ctx = {"today": self.clock().date().isoformat()}
        if sprint_id:
            await self._add_sprint_summary(ctx, sprint_id)
            await self._add_velocity(ctx, user_id, sprint_id)

        in_progress = await best_effort(
            "in-progress tasks", lambda: self.tasks.get_tasks_by_status(user_id, IN_PROGRESS)
        )
        if in_progress:
            ctx["carryover_tasks"] = "".join(
                f"- {task.title} ({task.story_points} pts)\n"
                for task in in_progress[:MAX_CARRYOVER_TASKS]
            )
        return ctx

    async def _assemble_standup(self, user_id: str, sprint_id: Optional[str]) -> Dict[str, str]:
        today = self.clock().date()
        ctx = {"today": today.isoformat()}
        if sprint_id:
            await self._add_sprint_summary(ctx, sprint_id)
            history = await best_effort(
                "standup history",
                lambda: self.standups.get_standup_history(user_id, today - timedelta(days=7)),
            )
            if history is not None:
                ctx["standup_count"] = str(len(history))
        return ctx

    async def _assemble_retrospective(self, user_id: str, sprint_id: Optional[str]) -> Dict[str, str]:
        ctx: Dict[str, str] = {}
        if sprint_id:
            await self._add_sprint_summary(ctx, sprint_id)
            await self._add_velocity(ctx, user_id, sprint_id)
            review = await best_effort(
                "sprint review data", lambda: self.ceremonies.get_sprint_review_data(user_id, sprint_id)
            )
            if review is not None:
                ctx["completed_tasks"] = str(review.completed_tasks)
                ctx["total_points_done"] = str(review.total_points_done)
                ctx["total_tasks"] = str(review.total_tasks)
        return ctx

    async def _assemble_refinement(self, user_id: str, sprint_id: Optional[str]) -> Dict[str, str]:
        ctx: Dict[str, str] = {}
        if sprint_id:
            await self._add_sprint_summary(ctx, sprint_id)
        return ctx

    async def _assemble_freeform(self, user_id: str, sprint_id: Optional[str]) -> Dict[str, str]:
        ctx = {"today": self.clock().date().isoformat()}
        if sprint_id:
            await self._add_sprint_summary(ctx, sprint_id)
        return ctx

    # ── Shared helpers ──

    async def _add_sprint_summary(self, ctx: Dict[str, str], sprint_id: str) -> None:
        sprint = await best_effort("sprint summary", lambda: self.sprints.get_sprint_by_id(sprint_id))
        if sprint is None:
            return
        ctx["sprint_name"] = sprint.display_name
        ctx["sprint_goal"] = sprint.goal or "No goal set"
        ctx["sprint_dates"] = f"{sprint.start_date.isoformat()} → {sprint.end_date.isoformat()}"

    async def _add_velocity(self, ctx: Dict[str, str], user_id: str, sprint_id: str) -> None:
        metrics = await best_effort(
            "velocity metrics", lambda: self.velocity.get_velocity_metrics(user_id, sprint_id)
        )
        if metrics is None:
            return
        ctx["current_velocity"] = _number(metrics.current_velocity)
        ctx["average_velocity"] = _number(metrics.average_velocity)
        ctx["completion_rate"] = f"{_number(metrics.completion_rate)}%"

    async def _add_user_preferences(self, ctx: Dict[str, str], user_id: str) -> None:
        patterns = await best_effort(
            "correction patterns", lambda: self.learner.get_correction_patterns_text(user_id)
        )
        if patterns:
            ctx["userCorrectionPatterns"] = patterns

        prefs = await best_effort("coach preferences", lambda: self.preferences.get(user_id))
        if prefs is not None:
            ctx["preferredTone"] = prefs.preferred_tone
            ctx["totalInteractions"] = str(prefs.total_interactions)
