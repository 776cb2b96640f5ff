"""
Pytest configuration and shared fixtures.
"""

import os
from datetime import date, datetime, timedelta
from typing import Any, Dict, List, Optional

import pytest
import pytest_asyncio

os.environ.setdefault("ENVIRONMENT", "test")
os.environ.setdefault("DEEPSEEK_API_KEY", "test-key")

from command_center.database.connection import Database
from command_center.database.repositories import (
    DraftRepository,
    FeedbackRepository,
    PreferenceRepository,
    PromptRepository,
    SessionRepository,
)
from command_center.integrations.collaborators import (
    CeremonyInfo,
    SprintInfo,
    SprintReviewData,
    StandupEntry,
    TaskInfo,
    UserInfo,
    VelocityMetrics,
)
from command_center.models.drafts import DraftType

# Wednesday, mid-morning
FIXED_NOW = datetime(2026, 3, 11, 11, 30, 0)


class FixedClock:
    """Settable clock for time-dependent rules."""

    def __init__(self, now: datetime = FIXED_NOW):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now = self.now + timedelta(**kwargs)


class FakeSprintService:
    def __init__(self, sprint: Optional[SprintInfo] = None, fail: bool = False):
        self.sprint = sprint
        self.fail = fail

    async def get_current_sprint(self, user_id: str) -> Optional[SprintInfo]:
        if self.fail:
            raise RuntimeError("sprint service down")
        return self.sprint

    async def get_sprint_by_id(self, sprint_id: str) -> Optional[SprintInfo]:
        if self.fail:
            raise RuntimeError("sprint service down")
        if self.sprint is not None and self.sprint.id == sprint_id:
            return self.sprint
        return None


class FakeTaskService:
    def __init__(self, tasks: Optional[List[TaskInfo]] = None, fail: bool = False):
        self.tasks = tasks or []
        self.fail = fail

    async def get_tasks_by_status(self, user_id: str, status: str, sprint_id: Optional[str] = None):
        if self.fail:
            raise RuntimeError("task service down")
        return [t for t in self.tasks if t.status == status]


class FakeVelocityService:
    def __init__(self, metrics: Optional[VelocityMetrics] = None, fail: bool = False):
        self.metrics = metrics
        self.fail = fail

    async def get_velocity_metrics(self, user_id: str, sprint_id: str) -> Optional[VelocityMetrics]:
        if self.fail:
            raise RuntimeError("velocity service down")
        return self.metrics


class FakeStandupService:
    def __init__(self, entries: Optional[List[StandupEntry]] = None, fail: bool = False):
        self.entries = entries or []
        self.fail = fail

    async def get_standup_history(self, user_id: str, since: date) -> List[StandupEntry]:
        if self.fail:
            raise RuntimeError("standup service down")
        return list(self.entries)


class FakeCeremonyService:
    def __init__(
        self,
        active: Optional[List[CeremonyInfo]] = None,
        review: Optional[SprintReviewData] = None,
        fail: bool = False,
    ):
        self.active = active or []
        self.review = review
        self.fail = fail

    async def get_active_ceremonies(self, user_id: str) -> List[CeremonyInfo]:
        if self.fail:
            raise RuntimeError("ceremony service down")
        return list(self.active)

    async def get_sprint_review_data(self, user_id: str, sprint_id: str) -> Optional[SprintReviewData]:
        if self.fail:
            raise RuntimeError("ceremony service down")
        return self.review


class FakeUserDirectory:
    def __init__(self, user_ids=("user-1",)):
        self.user_ids = set(user_ids)

    async def get_user_by_id(self, user_id: str) -> Optional[UserInfo]:
        if user_id in self.user_ids:
            return UserInfo(id=user_id, name=f"User {user_id}")
        return None


class FakeEntityCreator:
    def __init__(self, fail: bool = False):
        self.created: List[Dict[str, Any]] = []
        self.fail = fail

    async def create_entity(self, user_id: str, draft_type: DraftType, payload: Dict[str, Any]) -> str:
        if self.fail:
            raise RuntimeError("entity service down")
        self.created.append({"user_id": user_id, "type": draft_type, "payload": payload})
        return f"{draft_type.value}-{len(self.created)}"


# ==================== DATABASE ====================

@pytest_asyncio.fixture
async def database():
    """Fresh in-memory SQLite database per test."""
    db = Database("sqlite+aiosqlite:///:memory:")
    assert await db.initialize()
    yield db
    await db.close()


@pytest.fixture
def session_repo(database):
    return SessionRepository(database)


@pytest.fixture
def draft_repo(database):
    return DraftRepository(database)


@pytest.fixture
def feedback_repo(database):
    return FeedbackRepository(database)


@pytest.fixture
def preference_repo(database):
    return PreferenceRepository(database)


@pytest.fixture
def prompt_repo(database):
    return PromptRepository(database)


# ==================== COLLABORATORS ====================

@pytest.fixture
def clock():
    return FixedClock()


@pytest.fixture
def sample_sprint():
    return SprintInfo(
        id="sprint-11",
        week_number=11,
        year=2026,
        goal="Ship the onboarding flow",
        start_date=date(2026, 3, 8),
        end_date=date(2026, 3, 14),
    )


@pytest.fixture
def users():
    return FakeUserDirectory()


@pytest.fixture
def entity_creator():
    return FakeEntityCreator()
