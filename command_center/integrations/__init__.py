"""External service interfaces consumed by the pipeline."""

from .collaborators import (
    SprintInfo,
    TaskInfo,
    VelocityMetrics,
    StandupEntry,
    CeremonyInfo,
    SprintReviewData,
    UserInfo,
    SprintService,
    TaskService,
    VelocityService,
    StandupService,
    CeremonyService,
    UserDirectory,
    EntityCreator,
)

__all__ = [
    "SprintInfo",
    "TaskInfo",
    "VelocityMetrics",
    "StandupEntry",
    "CeremonyInfo",
    "SprintReviewData",
    "UserInfo",
    "SprintService",
    "TaskService",
    "VelocityService",
    "StandupService",
    "CeremonyService",
    "UserDirectory",
    "EntityCreator",
]
