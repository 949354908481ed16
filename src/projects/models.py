"""Project records advanced by the workflow engine."""

from datetime import datetime, timezone
from typing import List, Optional

from pydantic import BaseModel, Field

from src.workflow.defaults import DEFAULT_WORKFLOW_ID
from src.workflow.models import WorkflowStepTransition
from src.workflow.notifications import ResolvedNotification


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class WorkflowHistoryEntry(BaseModel):
    """One line of a project's audit trail."""

    division: str
    action: str
    timestamp: datetime = Field(default_factory=utc_now)
    note: Optional[str] = None


class FileEntry(BaseModel):
    """An uploaded file attached to a project.

    ``path`` is relative to the project's file folder.
    """

    name: str
    uploaded_by: str
    path: str
    timestamp: datetime = Field(default_factory=utc_now)


class ScheduleDetails(BaseModel):
    """Sidang schedule."""

    date: str  # YYYY-MM-DD
    time: str  # HH:MM
    location: str


class SurveyDetails(BaseModel):
    """Site survey schedule."""

    date: str  # YYYY-MM-DD
    time: str  # HH:MM
    description: str = ""

    def display(self) -> str:
        return f"{self.date} {self.time}".strip()


class Project(BaseModel):
    """A project and its position in a workflow.

    ``(status, progress)`` must name a step of ``workflow_id``.
    ``version`` is bumped on every save and checked against stale writes.
    """

    id: str
    title: str
    status: str
    progress: int = Field(ge=0, le=100)
    assigned_division: str = ""
    next_action: Optional[str] = None
    workflow_id: str = DEFAULT_WORKFLOW_ID
    workflow_history: List[WorkflowHistoryEntry] = Field(default_factory=list)
    files: List[FileEntry] = Field(default_factory=list)
    created_at: datetime = Field(default_factory=utc_now)
    created_by: str
    schedule_details: Optional[ScheduleDetails] = None
    survey_details: Optional[SurveyDetails] = None
    parallel_uploads_completed_by: List[str] = Field(default_factory=list)
    version: int = 0


class TransitionOutcome(BaseModel):
    """Result of a successful project advance."""

    project: Project
    action: str
    transition: WorkflowStepTransition
    notifications: List[ResolvedNotification] = Field(default_factory=list)
