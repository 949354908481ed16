"""Validation of workflow definitions before they are written.

Reads are permissive (see the catalog self-heal); writes go through
``validate_workflow`` so malformed definitions never reach the store.
"""

import logging
from collections import Counter

from src.workflow.errors import WorkflowValidationError
from src.workflow.models import TERMINAL_STATUSES, Workflow

logger = logging.getLogger(__name__)


def find_duplicate_step_keys(workflow: Workflow) -> list[tuple[str, int]]:
    """Return (status, progress) pairs used by more than one step."""
    counts = Counter(workflow.step_keys())
    return [key for key, count in counts.items() if count > 1]


def find_dangling_transitions(workflow: Workflow) -> list[tuple[str, str]]:
    """Return (step name, action) pairs whose target is not a known step.

    A target is valid when its (status, progress) pair names a step of the
    same workflow, or when its status is terminal. Terminal targets may carry
    any progress: a cancellation keeps the progress it was canceled at.
    """
    known = set(workflow.step_keys())
    dangling = []
    for step in workflow.steps:
        for action, transition in (step.transitions or {}).items():
            if transition.is_terminal_target:
                continue
            if transition.target_key not in known:
                dangling.append((step.step_name, action))
    return dangling


def validate_workflow(workflow: Workflow) -> Workflow:
    """Check structural invariants of a workflow definition.

    Args:
        workflow: Definition about to be persisted

    Returns:
        The same workflow, for chaining

    Raises:
        WorkflowValidationError: On the first violated invariant
    """
    if not workflow.name.strip():
        raise WorkflowValidationError(
            "Workflow name must not be empty", field="name", workflow_id=workflow.id
        )

    if not workflow.steps:
        raise WorkflowValidationError(
            "Workflow must define at least one step", field="steps", workflow_id=workflow.id
        )

    duplicates = find_duplicate_step_keys(workflow)
    if duplicates:
        raise WorkflowValidationError(
            f"Steps must be unique by (status, progress); duplicated: {duplicates}",
            field="steps",
            workflow_id=workflow.id,
            duplicates=duplicates,
        )

    for step in workflow.steps:
        if step.transitions is not None and not step.transitions:
            raise WorkflowValidationError(
                f"Step '{step.step_name}' declares an empty transitions mapping; "
                "use null for terminal steps",
                field="transitions",
                workflow_id=workflow.id,
                step_name=step.step_name,
            )
        if step.is_terminal and step.assigned_division:
            logger.warning(
                "Terminal step '%s' in workflow '%s' is still assigned to '%s'",
                step.step_name,
                workflow.id,
                step.assigned_division,
            )

    dangling = find_dangling_transitions(workflow)
    if dangling:
        raise WorkflowValidationError(
            f"Transitions point to unknown steps: {dangling}",
            field="transitions",
            workflow_id=workflow.id,
            dangling=dangling,
        )

    terminal_statuses = {step.status for step in workflow.steps if step.is_terminal}
    unexpected = terminal_statuses - TERMINAL_STATUSES
    if unexpected:
        logger.warning(
            "Workflow '%s' has terminal steps with non-standard statuses: %s",
            workflow.id,
            sorted(unexpected),
        )

    return workflow
