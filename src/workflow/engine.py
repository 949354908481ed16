"""Workflow engine: resolver operations addressed by workflow id.

Two flavours of every lookup:

- ``get_*`` methods follow the null-returning contract and log why a lookup
  failed; callers must treat None as "cannot advance".
- ``resolve_transition`` raises the typed errors from
  ``src.workflow.errors`` instead, for callers that want the reason.
"""

from typing import Optional

from src.utils.logging_config import get_logger
from src.workflow import resolver
from src.workflow.catalog import WorkflowCatalog
from src.workflow.errors import InvalidTransitionError, StepNotFoundError, TerminalStepError
from src.workflow.models import Workflow, WorkflowStep, WorkflowStepTransition


def _get_logger():
    return get_logger(__name__)


class WorkflowEngine:
    """Read-only view of the catalog for step and transition lookups."""

    def __init__(self, catalog: WorkflowCatalog):
        self.catalog = catalog

    def get_workflow(self, workflow_id: str) -> Workflow:
        """Raises WorkflowNotFoundError for unknown ids."""
        return self.catalog.require_workflow(workflow_id)

    def get_first_step(self, workflow_id: str) -> Optional[WorkflowStep]:
        workflow = self.catalog.get_workflow_by_id(workflow_id)
        step = resolver.first_step(workflow) if workflow else None
        if step is None:
            _get_logger().warning(
                "Workflow '%s' not found or has no steps when getting first step",
                workflow_id,
                extra={"workflow_id": workflow_id},
            )
        return step

    def get_current_step_details(
        self, workflow_id: str, status: str, progress: int
    ) -> Optional[WorkflowStep]:
        workflow = self.catalog.get_workflow_by_id(workflow_id)
        if workflow is None:
            return None
        try:
            return resolver.locate_step(workflow, status, progress)
        except StepNotFoundError as e:
            _get_logger().warning("%s", e, extra={"workflow_id": workflow_id})
            return None

    def get_transition_info(
        self, workflow_id: str, status: str, progress: int, action: str
    ) -> Optional[WorkflowStepTransition]:
        """Transition for ``action`` at (status, progress), or None.

        There is no default action; the caller names it explicitly.
        """
        workflow = self.catalog.get_workflow_by_id(workflow_id)
        if workflow is None:
            return None
        try:
            return resolver.locate_transition(workflow, status, progress, action)
        except TerminalStepError as e:
            _get_logger().info("%s", e, extra={"workflow_id": workflow_id, "action": action})
        except (StepNotFoundError, InvalidTransitionError) as e:
            _get_logger().warning("%s", e, extra={"workflow_id": workflow_id, "action": action})
        return None

    def resolve_transition(
        self, workflow_id: str, status: str, progress: int, action: str
    ) -> WorkflowStepTransition:
        """
        Like ``get_transition_info`` but raising on failure.

        Raises:
            WorkflowNotFoundError: Unknown workflow id
            StepNotFoundError: (status, progress) matches no step
            TerminalStepError: The step is terminal
            InvalidTransitionError: The step does not declare ``action``
        """
        workflow = self.catalog.require_workflow(workflow_id)
        return resolver.locate_transition(workflow, status, progress, action)

    def available_actions(self, workflow_id: str, status: str, progress: int) -> list[str]:
        workflow = self.catalog.get_workflow_by_id(workflow_id)
        if workflow is None:
            return []
        return resolver.available_actions(workflow, status, progress)
