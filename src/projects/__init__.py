"""Projects advanced through workflows.

This package provides:
- Project records with audit trail, files and schedules
- Repositories with optimistic version checks
- ProjectService, which applies workflow transitions and dispatches notifications
"""

from src.projects.bootstrap import Services, build_services
from src.projects.models import (
    FileEntry,
    Project,
    ScheduleDetails,
    SurveyDetails,
    TransitionOutcome,
    WorkflowHistoryEntry,
)
from src.projects.repository import (
    InMemoryProjectRepository,
    JsonFileProjectRepository,
    ProjectRepository,
)
from src.projects.service import ProjectService

__all__ = [
    "FileEntry",
    "InMemoryProjectRepository",
    "JsonFileProjectRepository",
    "Project",
    "ProjectRepository",
    "ProjectService",
    "ScheduleDetails",
    "Services",
    "SurveyDetails",
    "TransitionOutcome",
    "WorkflowHistoryEntry",
    "build_services",
]
