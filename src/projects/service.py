"""Project service: applies workflow transitions to projects.

The workflow engine decides *where* a project may go; this service applies
the move. Advancing a project:

1. resolves the transition for (status, progress, action), raising when it
   does not exist so the project is never silently left unchanged;
2. copies target status, division, progress and next action onto the
   project and appends a history entry;
3. saves under a per-project lock and an optimistic version check;
4. renders the transition's notification and hands it to the notifier.
"""

import threading
import time
import uuid
from datetime import datetime
from typing import Any, Callable, Iterable, Optional, Sequence

from src.projects.history import history_entry
from src.projects.models import (
    FileEntry,
    Project,
    ScheduleDetails,
    SurveyDetails,
    TransitionOutcome,
    WorkflowHistoryEntry,
    utc_now,
)
from src.projects.repository import ProjectRepository
from src.utils.logging_config import get_logger
from src.workflow import resolver
from src.workflow.defaults import DEFAULT_WORKFLOW_ID
from src.workflow.engine import WorkflowEngine
from src.workflow.errors import (
    ConcurrencyConflictError,
    ErrorContext,
    ProjectNotFoundError,
    WorkflowNotFoundError,
)
from src.workflow.notifications import (
    Notifier,
    ResolvedNotification,
    render_template,
    resolve_notification,
)


def _get_logger():
    return get_logger(__name__)


ADMIN_DIVISION = "Admin Proyek"


def generate_project_id() -> str:
    return f"project_{int(time.time() * 1000)}_{uuid.uuid4().hex[:5]}"


class ProjectService:
    """Creates projects and moves them through their workflow.

    Args:
        repository: Project storage
        engine: Workflow engine used for step and transition lookups
        notifier: Delivery collaborator for rendered notifications
        id_factory: Generator for new project ids
        clock: Source of timestamps
    """

    def __init__(
        self,
        repository: ProjectRepository,
        engine: WorkflowEngine,
        notifier: Notifier,
        *,
        id_factory: Callable[[], str] = generate_project_id,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.repository = repository
        self.engine = engine
        self.notifier = notifier
        self._id_factory = id_factory
        self._clock = clock
        self._locks: dict[str, threading.Lock] = {}
        self._locks_guard = threading.Lock()

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def get_project(self, project_id: str) -> Optional[Project]:
        project = self.repository.get(project_id)
        if project is None:
            _get_logger().warning("Project '%s' not found", project_id, extra={"project_id": project_id})
        return project

    def list_projects(self) -> list[Project]:
        """All projects, newest first."""
        return sorted(self.repository.list_all(), key=lambda p: p.created_at, reverse=True)

    def available_actions(self, project_id: str) -> list[str]:
        project = self._require_project(project_id)
        return self.engine.available_actions(project.workflow_id, project.status, project.progress)

    # ------------------------------------------------------------------
    # Commands
    # ------------------------------------------------------------------

    def create_project(
        self,
        title: str,
        created_by: str,
        workflow_id: Optional[str] = None,
        initial_files: Iterable[FileEntry] = (),
    ) -> Project:
        """
        Create a project positioned at the first step of its workflow.

        Raises:
            WorkflowNotFoundError: If the workflow does not exist or has no steps
        """
        workflow_id = workflow_id or DEFAULT_WORKFLOW_ID
        step = self.engine.get_first_step(workflow_id)
        if step is None:
            raise WorkflowNotFoundError(
                f"Workflow '{workflow_id}' not found or has no steps", workflow_id=workflow_id
            )

        now = self._clock()
        files = [f.model_copy(update={"timestamp": now}) for f in initial_files]
        history = [
            WorkflowHistoryEntry(
                division=created_by,
                action=f"Created Project with workflow: {workflow_id}",
                timestamp=now,
                note=f"Initial files: {len(files)}",
            ),
            *(
                WorkflowHistoryEntry(
                    division=f.uploaded_by, action=f"Uploaded initial file: {f.name}", timestamp=now
                )
                for f in files
            ),
            WorkflowHistoryEntry(
                division="System",
                action=f"Assigned to {step.assigned_division} for "
                f"{step.next_action_description or 'initial step'}",
                timestamp=now,
            ),
        ]

        project = self.repository.add(
            Project(
                id=self._id_factory(),
                title=title,
                status=step.status,
                progress=step.progress,
                assigned_division=step.assigned_division,
                next_action=step.next_action_description,
                workflow_id=workflow_id,
                workflow_history=history,
                files=files,
                created_at=now,
                created_by=created_by,
            )
        )
        _get_logger().info(
            "Project '%s' created at '%s' (%d%%), assigned to %s",
            project.title,
            project.status,
            project.progress,
            project.assigned_division,
            extra={"project_id": project.id, "workflow_id": workflow_id},
        )

        if step.assigned_division:
            message = (
                f'Proyek baru "{project.title}" telah dibuat oleh {created_by} dan memerlukan '
                f"tindakan: {step.next_action_description or 'Langkah awal'}."
            )
            self._dispatch(
                [ResolvedNotification(division=step.assigned_division, message=message)], project.id
            )
        return project

    def advance_project(
        self,
        project_id: str,
        action: str,
        actor_role: str,
        actor_username: str,
        *,
        note: Optional[str] = None,
        files: Sequence[FileEntry] = (),
        schedule_details: Optional[ScheduleDetails] = None,
        survey_details: Optional[SurveyDetails] = None,
        expected_version: Optional[int] = None,
    ) -> TransitionOutcome:
        """
        Apply the workflow transition named by ``action`` to a project.

        Args:
            project_id: Project to advance
            action: Action name declared on the project's current step
            actor_role: Division of the user acting
            actor_username: User acting
            note: Free-text note; also fills ``{reasonNote}``
            files: Files uploaded with this action
            schedule_details: Sidang schedule (``scheduled``)
            survey_details: Survey schedule (survey submission / reschedule)
            expected_version: Version the caller last read; stale values are rejected

        Returns:
            TransitionOutcome with the saved project and delivered notifications

        Raises:
            ProjectNotFoundError: Unknown project
            WorkflowNotFoundError: The project's workflow does not exist
            StepNotFoundError: Project state matches no step of its workflow
            InvalidTransitionError: Action not available (TerminalStepError if terminal)
            ConcurrencyConflictError: The project changed since ``expected_version``
        """
        with self._project_lock(project_id), ErrorContext("advance_project") as ctx:
            ctx.add_info("project_id", project_id)
            ctx.add_info("action", action)

            project = self._require_project(project_id)
            ctx.workflow_id = project.workflow_id

            if expected_version is not None and expected_version != project.version:
                raise ConcurrencyConflictError(
                    f"Project '{project_id}' was modified since version {expected_version}",
                    expected_version=expected_version,
                    actual_version=project.version,
                    project_id=project_id,
                )

            transition = self.engine.resolve_transition(
                project.workflow_id, project.status, project.progress, action
            )

            now = self._clock()
            entry = history_entry(
                project,
                action,
                actor_username,
                actor_role,
                note=note,
                schedule_details=schedule_details,
                survey_details=survey_details,
            ).model_copy(update={"timestamp": now})

            updates: dict[str, Any] = {
                "status": transition.target_status,
                "assigned_division": transition.target_assigned_division,
                "progress": transition.target_progress,
                "next_action": transition.target_next_action_description,
                "workflow_history": [*project.workflow_history, entry],
                "files": [*project.files, *(f.model_copy(update={"timestamp": now}) for f in files)],
            }
            if schedule_details is not None:
                updates["schedule_details"] = schedule_details
            if survey_details is not None:
                updates["survey_details"] = survey_details

            saved = self.repository.save(
                project.model_copy(deep=True, update=updates), expected_version=project.version
            )

        _get_logger().info(
            "Project '%s' advanced by '%s': %s (%d%%) -> %s (%d%%), assigned to %s",
            project_id,
            action,
            project.status,
            project.progress,
            saved.status,
            saved.progress,
            saved.assigned_division or "-",
            extra={"project_id": project_id, "workflow_id": saved.workflow_id, "action": action},
        )

        values = self._placeholder_values(saved, actor_username, note, survey_details)
        notifications = resolve_notification(transition.notification, values)
        self._dispatch(notifications, project_id)

        return TransitionOutcome(
            project=saved, action=action, transition=transition, notifications=notifications
        )

    def record_activity(
        self,
        project_id: str,
        actor_role: str,
        actor_username: str,
        description: str,
        *,
        files: Sequence[FileEntry] = (),
        note: Optional[str] = None,
        notify_divisions: Sequence[str] = (),
        message: Optional[str] = None,
    ) -> Project:
        """
        Record in-step work (e.g. reference uploads) without changing state.

        ``message`` may use the same placeholders as transition templates.
        """
        with self._project_lock(project_id):
            project = self._require_project(project_id)
            now = self._clock()
            entry = WorkflowHistoryEntry(
                division=actor_role,
                action=f"{actor_username} ({actor_role}) {description}",
                timestamp=now,
                note=note,
            )
            saved = self.repository.save(
                project.model_copy(
                    deep=True,
                    update={
                        "workflow_history": [*project.workflow_history, entry],
                        "files": [*project.files, *(f.model_copy(update={"timestamp": now}) for f in files)],
                    },
                ),
                expected_version=project.version,
            )

        if notify_divisions and message:
            values = self._placeholder_values(saved, actor_username, note, None)
            rendered = render_template(message, values)
            self._dispatch(
                [ResolvedNotification(division=d, message=rendered) for d in notify_divisions if d],
                project_id,
            )
        return saved

    def mark_parallel_upload_complete(self, project_id: str, division: str, username: str) -> Project:
        """
        Record that a design division finished its parallel uploads.

        Each division is recorded once; repeat calls return the project
        unchanged and send nothing. Admin Proyek is notified on the first call.

        Raises:
            ProjectNotFoundError: Unknown project
        """
        with self._project_lock(project_id):
            project = self._require_project(project_id)
            if division in project.parallel_uploads_completed_by:
                _get_logger().debug(
                    "Division %s already marked parallel uploads complete",
                    division,
                    extra={"project_id": project_id},
                )
                return project

            entry = WorkflowHistoryEntry(
                division=username,
                action="Marked their design/revision phase as complete.",
                timestamp=self._clock(),
                note=f"Divisi {division} telah menyelesaikan tugasnya.",
            )
            saved = self.repository.save(
                project.model_copy(
                    deep=True,
                    update={
                        "parallel_uploads_completed_by": [
                            *project.parallel_uploads_completed_by,
                            division,
                        ],
                        "workflow_history": [*project.workflow_history, entry],
                    },
                ),
                expected_version=project.version,
            )

        _get_logger().info(
            "Division %s completed parallel uploads for project '%s' (%d done)",
            division,
            project_id,
            len(saved.parallel_uploads_completed_by),
            extra={"project_id": project_id, "workflow_id": saved.workflow_id},
        )
        message = (
            f"Divisi {division} telah menyelesaikan unggahan mereka untuk proyek "
            f'"{saved.title}".'
        )
        self._dispatch([ResolvedNotification(division=ADMIN_DIVISION, message=message)], project_id)
        return saved

    def override_project_state(
        self,
        project_id: str,
        admin_username: str,
        status: str,
        progress: int,
        reason: str,
    ) -> Project:
        """
        Move a project to any step of its workflow by hand.

        The target (status, progress) must name a step; its division and
        next action are copied onto the project.

        Raises:
            ProjectNotFoundError: Unknown project
            WorkflowNotFoundError: The project's workflow does not exist
            StepNotFoundError: The pair names no step
        """
        with self._project_lock(project_id):
            project = self._require_project(project_id)
            workflow = self.engine.get_workflow(project.workflow_id)
            step = resolver.locate_step(workflow, status, progress)

            entry = WorkflowHistoryEntry(
                division=admin_username,
                action=(
                    f'Manually changed status to "{step.status}" and assigned to '
                    f'"{step.assigned_division}". Next Action: '
                    f"{step.next_action_description or 'None'}. Progress: {step.progress}%."
                ),
                timestamp=self._clock(),
                note=f"Reason: {reason}",
            )
            saved = self.repository.save(
                project.model_copy(
                    deep=True,
                    update={
                        "status": step.status,
                        "progress": progress,
                        "assigned_division": step.assigned_division,
                        "next_action": step.next_action_description,
                        "workflow_history": [*project.workflow_history, entry],
                    },
                ),
                expected_version=project.version,
            )

        _get_logger().info(
            "Project '%s' manually moved to '%s' (%d%%) by %s",
            project_id,
            saved.status,
            saved.progress,
            admin_username,
            extra={"project_id": project_id, "workflow_id": saved.workflow_id},
        )

        if step.assigned_division and not step.is_terminal:
            message = (
                f'Proyek "{saved.title}" telah diperbarui secara manual oleh {admin_username}. '
                f'Status baru: "{saved.status}", Ditugaskan ke: "{saved.assigned_division}". '
                f"Tindakan berikutnya: {saved.next_action or 'Tinjau proyek'}. Alasan: {reason}"
            )
            self._dispatch([ResolvedNotification(division=step.assigned_division, message=message)], project_id)
        return saved

    def delete_project(self, project_id: str, deleted_by: str) -> str:
        """Delete a project and its notifications; return its title.

        Raises:
            ProjectNotFoundError: Unknown project
        """
        with self._project_lock(project_id):
            project = self._require_project(project_id)
            self.repository.delete(project_id)
        with self._locks_guard:
            self._locks.pop(project_id, None)

        _get_logger().info(
            "Project '%s' (%s) deleted by %s",
            project.title,
            project_id,
            deleted_by,
            extra={"project_id": project_id},
        )
        try:
            self.notifier.discard_project(project_id)
        except Exception:
            _get_logger().exception(
                "Could not discard notifications for deleted project %s",
                project_id,
                extra={"project_id": project_id},
            )
        return project.title

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _require_project(self, project_id: str) -> Project:
        project = self.repository.get(project_id)
        if project is None:
            raise ProjectNotFoundError(f"Project '{project_id}' not found", project_id=project_id)
        return project

    def _project_lock(self, project_id: str) -> threading.Lock:
        with self._locks_guard:
            return self._locks.setdefault(project_id, threading.Lock())

    @staticmethod
    def _placeholder_values(
        project: Project,
        actor_username: str,
        note: Optional[str],
        survey_details: Optional[SurveyDetails],
    ) -> dict[str, Any]:
        survey = survey_details or project.survey_details
        return {
            "projectName": project.title,
            "actorUsername": actor_username,
            "newStatus": project.status,
            "reasonNote": note or "N/A",
            "surveyDate": survey.display() if survey else None,
        }

    def _dispatch(self, notifications: list[ResolvedNotification], project_id: str) -> None:
        # The transition is already saved; a delivery failure must not undo it.
        if not notifications:
            return
        try:
            self.notifier.deliver(notifications, project_id)
        except Exception:
            _get_logger().exception(
                "Notification delivery failed for project %s (%d notification(s))",
                project_id,
                len(notifications),
                extra={"project_id": project_id},
            )
