"""Step and transition resolution over a loaded workflow.

Pure functions: no I/O, no catalog access. A step is identified by its
(status, progress) pair. Status alone is not unique ("Pending Approval"
appears at offer approval and at DP-invoice approval), so there is no
status-only fallback: a missing pair is reported with the progress values
the status does exist at, and the lookup fails. Terminal statuses
(Completed, Canceled) are matched at any progress.
"""

import logging
from typing import Optional

from src.workflow.errors import InvalidTransitionError, StepNotFoundError, TerminalStepError
from src.workflow.models import TERMINAL_STATUSES, Workflow, WorkflowStep, WorkflowStepTransition

logger = logging.getLogger(__name__)


def first_step(workflow: Workflow) -> Optional[WorkflowStep]:
    """The entry step of a workflow, or None if it has no steps."""
    return workflow.steps[0] if workflow.steps else None


def find_step(workflow: Workflow, status: str, progress: int) -> Optional[WorkflowStep]:
    """Return the step matching both ``status`` and ``progress``, or None.

    Terminal statuses are the exception: a project canceled at 20% still
    resolves to the terminal "Canceled" step.
    """
    for step in workflow.steps:
        if step.status == status and step.progress == progress:
            return step
    if status in TERMINAL_STATUSES:
        for step in workflow.steps:
            if step.status == status and step.is_terminal:
                return step
    return None


def locate_step(workflow: Workflow, status: str, progress: int) -> WorkflowStep:
    """
    Return the step matching (status, progress).

    Raises:
        StepNotFoundError: If no step matches the pair. When the status
            exists at other progress values they are logged and attached
            to the error as ``candidate_progress``.
    """
    step = find_step(workflow, status, progress)
    if step is not None:
        return step

    candidates = sorted(s.progress for s in workflow.steps if s.status == status)
    if candidates:
        logger.warning(
            "Status '%s' exists in workflow '%s' only at progress %s, not %s; "
            "project state is inconsistent with the workflow definition",
            status,
            workflow.id,
            candidates,
            progress,
            extra={"workflow_id": workflow.id},
        )
    raise StepNotFoundError(
        f"No step with status '{status}' and progress {progress}",
        status=status,
        progress=progress,
        workflow_id=workflow.id,
        candidate_progress=candidates,
    )


def locate_transition(
    workflow: Workflow, status: str, progress: int, action: str
) -> WorkflowStepTransition:
    """
    Resolve the transition for ``action`` from the step at (status, progress).

    Raises:
        StepNotFoundError: If the step cannot be located
        TerminalStepError: If the step has no transitions
        InvalidTransitionError: If the step does not declare ``action``
    """
    step = locate_step(workflow, status, progress)

    if step.is_terminal:
        raise TerminalStepError(
            f"Step '{step.step_name}' is terminal; no action is possible",
            action=action,
            step_name=step.step_name,
            workflow_id=workflow.id,
        )

    transition = step.transitions.get(action)
    if transition is None:
        raise InvalidTransitionError(
            f"Action '{action}' is not available from step '{step.step_name}' "
            f"(status: {status}, progress: {progress})",
            action=action,
            step_name=step.step_name,
            available_actions=step.actions(),
            workflow_id=workflow.id,
        )
    return transition


def available_actions(workflow: Workflow, status: str, progress: int) -> list[str]:
    """Declared action names at a step; empty when terminal or not found."""
    step = find_step(workflow, status, progress)
    return step.actions() if step else []
