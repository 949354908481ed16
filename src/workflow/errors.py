"""Error taxonomy for the workflow engine.

Every error raised by the catalog, resolver and project service derives from
``WorkflowError``. All of them are recoverable at request scope: callers
catch them, abort the attempted operation and report back to the user.

Key Components:
- NotFound family: workflow, step or project does not resolve
- InvalidTransitionError: action not declared on the step, or step is terminal
- ProtectedWorkflowError: deletion of a protected workflow
- PersistenceError: backing store read/write failure
- ConcurrencyConflictError: stale write rejected by a version check (retryable)
- ErrorContext: context manager that logs duration and failures
"""

import logging
import time
from typing import Any, Optional

logger = logging.getLogger(__name__)


class WorkflowError(Exception):
    """Base exception for workflow-related errors."""

    def __init__(self, message: str, workflow_id: Optional[str] = None, **context):
        """Initialize workflow error with context.

        Args:
            message: Error message
            workflow_id: ID of the workflow involved
            **context: Additional context information
        """
        super().__init__(message)
        self.workflow_id = workflow_id
        self.context = context
        self.timestamp = time.time()

    def __str__(self):
        """String representation with workflow ID if available."""
        base = super().__str__()
        if self.workflow_id:
            return f"[{self.workflow_id}] {base}"
        return base


class RecoverableError(WorkflowError):
    """Error that can be resolved by retrying the operation."""

    pass


class UnrecoverableError(WorkflowError):
    """Error that retrying will not fix."""

    pass


class NotFoundError(WorkflowError):
    """A referenced record does not exist."""

    pass


class WorkflowNotFoundError(NotFoundError):
    """Workflow id does not resolve to a catalog entry."""

    pass


class StepNotFoundError(NotFoundError):
    """No step matches the (status, progress) pair."""

    def __init__(
        self,
        message: str,
        status: str,
        progress: int,
        workflow_id: Optional[str] = None,
        **context,
    ):
        super().__init__(message, workflow_id, **context)
        self.status = status
        self.progress = progress


class ProjectNotFoundError(NotFoundError):
    """Project id does not resolve to a stored project."""

    def __init__(self, message: str, project_id: str, **context):
        super().__init__(message, **context)
        self.project_id = project_id


class InvalidTransitionError(WorkflowError):
    """The action is not available from the resolved step."""

    def __init__(
        self,
        message: str,
        action: str,
        step_name: Optional[str] = None,
        available_actions: Optional[list[str]] = None,
        workflow_id: Optional[str] = None,
        **context,
    ):
        """Initialize invalid transition error.

        Args:
            message: Error message
            action: Action name the caller asked for
            step_name: Name of the resolved step
            available_actions: Actions the step does declare
            workflow_id: ID of workflow
            **context: Additional context
        """
        super().__init__(message, workflow_id, **context)
        self.action = action
        self.step_name = step_name
        self.available_actions = available_actions or []


class TerminalStepError(InvalidTransitionError):
    """The resolved step has no outgoing transitions."""

    pass


class ProtectedWorkflowError(UnrecoverableError):
    """Attempted deletion of a protected workflow."""

    pass


class WorkflowValidationError(UnrecoverableError):
    """A workflow definition failed validation before being written."""

    def __init__(
        self,
        message: str,
        field: Optional[str] = None,
        workflow_id: Optional[str] = None,
        **context,
    ):
        super().__init__(message, workflow_id, **context)
        self.field = field


class PersistenceError(UnrecoverableError):
    """The backing store could not be read or written."""

    pass


class ConcurrencyConflictError(RecoverableError):
    """A write was based on a stale version of the record."""

    def __init__(
        self,
        message: str,
        expected_version: int,
        actual_version: int,
        **context,
    ):
        super().__init__(message, **context)
        self.expected_version = expected_version
        self.actual_version = actual_version


class ErrorContext:
    """Context manager for tracking error information during execution.

    Usage:
        with ErrorContext("advance_project", workflow_id="wf-123") as ctx:
            ctx.add_info("action", "approved")
            ...
    """

    def __init__(self, operation: str, workflow_id: Optional[str] = None):
        """Initialize error context.

        Args:
            operation: Name of operation being performed
            workflow_id: ID of workflow
        """
        self.operation = operation
        self.workflow_id = workflow_id
        self.info: dict[str, Any] = {}
        self.start_time = None

    def __enter__(self):
        """Enter context, recording start time."""
        self.start_time = time.time()
        logger.debug(f"Starting operation: {self.operation}")
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        """Exit context, logging duration and any errors."""
        duration = time.time() - self.start_time if self.start_time else 0

        if exc_type is None:
            logger.debug(f"Operation '{self.operation}' completed successfully in {duration:.2f}s")
        elif issubclass(exc_type, WorkflowError):
            # Expected request-scope failures
            logger.warning(
                f"Operation '{self.operation}' rejected after {duration:.2f}s: {exc_val}",
                extra={"workflow_id": self.workflow_id, "context": self.info},
            )
        else:
            logger.error(
                f"Operation '{self.operation}' failed after {duration:.2f}s: {exc_val}",
                extra={"workflow_id": self.workflow_id, "context": self.info},
            )

        return False

    def add_info(self, key: str, value: Any):
        """Add contextual information.

        Args:
            key: Information key
            value: Information value
        """
        self.info[key] = value


__all__ = [
    "WorkflowError",
    "RecoverableError",
    "UnrecoverableError",
    "NotFoundError",
    "WorkflowNotFoundError",
    "StepNotFoundError",
    "ProjectNotFoundError",
    "InvalidTransitionError",
    "TerminalStepError",
    "ProtectedWorkflowError",
    "WorkflowValidationError",
    "PersistenceError",
    "ConcurrencyConflictError",
    "ErrorContext",
]
