"""
Interfaces of the external services the pipeline reads from.

Sprints, tasks, velocity, standups, ceremonies, users and entity creation
are owned by other services. The pipeline only consumes these read DTOs and
never implements their business rules.
"""

from datetime import date
from typing import Any, Dict, List, Optional, Protocol, runtime_checkable

from pydantic import BaseModel

from ..models.drafts import DraftType


# ==================== READ DTOs ====================

class SprintInfo(BaseModel):
    id: str
    week_number: int
    year: int
    goal: Optional[str] = None
    start_date: date
    end_date: date

    @property
    def display_name(self) -> str:
        return f"Week {self.week_number} ({self.year})"


class TaskInfo(BaseModel):
    id: str
    title: str
    status: str
    story_points: Optional[int] = None


class VelocityMetrics(BaseModel):
    current_velocity: float = 0.0
    average_velocity: float = 0.0
    completion_rate: float = 0.0  # percent, 0-100


class StandupEntry(BaseModel):
    id: str
    standup_date: date


class CeremonyInfo(BaseModel):
    id: str
    ceremony_type: str
    status: str = "IN_PROGRESS"


class SprintReviewData(BaseModel):
    completed_tasks: int = 0
    total_points_done: int = 0
    total_tasks: int = 0


class UserInfo(BaseModel):
    id: str
    name: Optional[str] = None


# ==================== SERVICES ====================

@runtime_checkable
class SprintService(Protocol):
    async def get_current_sprint(self, user_id: str) -> Optional[SprintInfo]: ...

    async def get_sprint_by_id(self, sprint_id: str) -> Optional[SprintInfo]: ...


@runtime_checkable
class TaskService(Protocol):
    async def get_tasks_by_status(
        self, user_id: str, status: str, sprint_id: Optional[str] = None
    ) -> List[TaskInfo]: ...


@runtime_checkable
class VelocityService(Protocol):
    async def get_velocity_metrics(self, user_id: str, sprint_id: Optional[str]) -> Optional[VelocityMetrics]: ...


@runtime_checkable
class StandupService(Protocol):
    async def get_standup_history(self, user_id: str, since: date) -> List[StandupEntry]: ...


@runtime_checkable
class CeremonyService(Protocol):
    async def get_active_ceremonies(self, user_id: str) -> List[CeremonyInfo]: ...

    async def get_sprint_review_data(self, user_id: str, sprint_id: str) -> Optional[SprintReviewData]: ...


@runtime_checkable
class UserDirectory(Protocol):
    async def get_user_by_id(self, user_id: str) -> Optional[UserInfo]: ...


@runtime_checkable
class EntityCreator(Protocol):
    async def create_entity(self, user_id: str, draft_type: DraftType, payload: Dict[str, Any]) -> str:
        """Create the real entity from an approved draft and return its ID."""
        ...
