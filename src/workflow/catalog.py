"""Workflow catalog: load, seed, repair and edit workflow definitions.

The catalog sits between callers and a ``WorkflowStore``. On every load it
makes sure the default workflow exists and that no workflow is left without
steps (data carried over from the flat-file era has no schema enforcement).
Both repairs are written back once; a healthy catalog is never rewritten by
a read.

Edits (add/update/delete) are validated before they reach the store and
invalidate the in-memory cache.
"""

import threading
import time
import uuid
from typing import Any, Callable, Iterable, Mapping, Optional

from pydantic import ValidationError

from src.utils.logging_config import get_logger
from src.workflow.defaults import DEFAULT_WORKFLOW_ID, build_default_workflow, default_steps
from src.workflow.errors import (
    PersistenceError,
    ProtectedWorkflowError,
    WorkflowNotFoundError,
    WorkflowValidationError,
)
from src.workflow.models import Workflow, WorkflowStep
from src.workflow.store import WorkflowStore
from src.workflow.validation import validate_workflow

UPDATABLE_FIELDS = frozenset({"name", "description", "steps", "protected"})


def _get_logger():
    return get_logger(__name__)


def generate_workflow_id() -> str:
    """New workflow id in the ``wf_<millis>_<suffix>`` form."""
    return f"wf_{int(time.time() * 1000)}_{uuid.uuid4().hex[:5]}"


class WorkflowCatalog:
    """Catalog of workflow definitions over an injected store.

    Args:
        store: Backing store
        protected_ids: Extra workflow ids that can never be deleted
        cache_enabled: Keep the loaded catalog in memory between reads
        id_factory: Generator for new workflow ids
    """

    def __init__(
        self,
        store: WorkflowStore,
        *,
        protected_ids: Iterable[str] = (),
        cache_enabled: bool = True,
        id_factory: Callable[[], str] = generate_workflow_id,
    ):
        self.store = store
        self.protected_ids = frozenset(protected_ids) | {DEFAULT_WORKFLOW_ID}
        self.cache_enabled = cache_enabled
        self._id_factory = id_factory
        self._cache: Optional[list[Workflow]] = None
        self._repair_pending = False
        self._lock = threading.RLock()

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def get_all_workflows(self) -> list[Workflow]:
        """Return all workflows, seeding and repairing the catalog if needed."""
        with self._lock:
            if self._cache is not None and self.cache_enabled:
                workflows = self._cache
            else:
                self._repair_pending = False
                workflows = self._load_and_heal()
                self._cache = None if self._repair_pending else workflows
            return [wf.model_copy(deep=True) for wf in workflows]

    def get_workflow_by_id(self, workflow_id: str) -> Optional[Workflow]:
        """Return one workflow, or None when the id is unknown."""
        for workflow in self.get_all_workflows():
            if workflow.id == workflow_id:
                return workflow
        _get_logger().warning(
            "Workflow '%s' not found in catalog", workflow_id, extra={"workflow_id": workflow_id}
        )
        return None

    def require_workflow(self, workflow_id: str) -> Workflow:
        """Return one workflow or raise WorkflowNotFoundError."""
        workflow = self.get_workflow_by_id(workflow_id)
        if workflow is None:
            raise WorkflowNotFoundError(
                f"Workflow '{workflow_id}' does not exist", workflow_id=workflow_id
            )
        return workflow

    def get_all_unique_statuses(self) -> list[str]:
        """Every distinct step status across the catalog, first-seen order."""
        statuses: dict[str, None] = {}
        for workflow in self.get_all_workflows():
            for status in workflow.statuses():
                statuses.setdefault(status, None)
        return list(statuses)

    def is_protected(self, workflow_id: str, workflow: Optional[Workflow] = None) -> bool:
        """True for the default workflow, configured ids and flagged workflows."""
        if workflow_id in self.protected_ids:
            return True
        return bool(workflow and workflow.protected)

    def invalidate_cache(self) -> None:
        with self._lock:
            self._cache = None

    def _load_and_heal(self) -> list[Workflow]:
        workflows = self.store.list_all()
        _get_logger().debug("Loaded %d workflows from store", len(workflows))

        if not any(wf.id == DEFAULT_WORKFLOW_ID for wf in workflows):
            _get_logger().info(
                "Default workflow '%s' not found; seeding it", DEFAULT_WORKFLOW_ID
            )
            default = build_default_workflow()
            workflows.insert(0, default)
            self._persist_repair(default)

        for workflow in workflows:
            if not workflow.steps:
                _get_logger().warning(
                    "Workflow '%s' has no steps; assigning the default step structure",
                    workflow.id,
                    extra={"workflow_id": workflow.id},
                )
                workflow.steps = default_steps()
                self._persist_repair(workflow)

        return workflows

    def _persist_repair(self, workflow: Workflow) -> None:
        # A failed repair write keeps the in-memory repair and skips caching,
        # so the next read retries the write.
        try:
            self.store.put(workflow)
        except PersistenceError as e:
            _get_logger().error(
                "Could not persist repaired workflow '%s': %s",
                workflow.id,
                e,
                extra={"workflow_id": workflow.id},
            )
            self._repair_pending = True

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def add_workflow(self, name: str, description: str = "") -> Workflow:
        """
        Create a workflow seeded with a fresh copy of the default steps.

        Raises:
            WorkflowValidationError: If the name is empty
            PersistenceError: If the store write fails
        """
        with self._lock:
            existing_ids = {wf.id for wf in self.get_all_workflows()}
            workflow_id = self._id_factory()
            while workflow_id in existing_ids:
                workflow_id = self._id_factory()

            workflow = validate_workflow(
                Workflow(
                    id=workflow_id,
                    name=name,
                    description=description or "",
                    steps=default_steps(),
                )
            )
            self.store.put(workflow)
            self.invalidate_cache()

        _get_logger().info(
            "Workflow '%s' added with id %s using default steps",
            name,
            workflow_id,
            extra={"workflow_id": workflow_id},
        )
        return workflow.model_copy(deep=True)

    def update_workflow(self, workflow_id: str, partial: Mapping[str, Any]) -> Workflow:
        """
        Merge ``partial`` onto a stored workflow. The id never changes.

        Args:
            workflow_id: Workflow to update
            partial: Any of name, description, steps, protected

        Raises:
            WorkflowNotFoundError: If the workflow does not exist
            WorkflowValidationError: On unknown fields or an invalid result
            PersistenceError: If the store write fails
        """
        changes = dict(partial)
        if "id" in changes:
            _get_logger().debug("Ignoring id in update for workflow '%s'", workflow_id)
            changes.pop("id")

        unknown = set(changes) - UPDATABLE_FIELDS
        if unknown:
            raise WorkflowValidationError(
                f"Unknown fields: {sorted(unknown)}", workflow_id=workflow_id
            )

        if "steps" in changes:
            changes["steps"] = [
                step.to_document() if isinstance(step, WorkflowStep) else step
                for step in changes["steps"] or []
            ]

        with self._lock:
            existing = self.require_workflow(workflow_id)
            document = {**existing.to_document(), **changes, "id": existing.id}
            try:
                updated = Workflow.model_validate(document)
            except ValidationError as e:
                raise WorkflowValidationError(
                    f"Invalid workflow definition: {e}", workflow_id=workflow_id
                ) from e

            validate_workflow(updated)
            self.store.put(updated)
            self.invalidate_cache()

        _get_logger().info(
            "Workflow '%s' (%s) updated", updated.name, workflow_id, extra={"workflow_id": workflow_id}
        )
        return updated.model_copy(deep=True)

    def delete_workflow(self, workflow_id: str) -> None:
        """
        Delete a workflow.

        Raises:
            ProtectedWorkflowError: For the default or any protected workflow
            WorkflowNotFoundError: If the workflow does not exist
            PersistenceError: If the store write fails
        """
        with self._lock:
            if workflow_id in self.protected_ids:
                raise ProtectedWorkflowError(
                    f"Workflow '{workflow_id}' is protected and cannot be deleted",
                    workflow_id=workflow_id,
                )

            existing = self.require_workflow(workflow_id)
            if self.is_protected(workflow_id, existing):
                raise ProtectedWorkflowError(
                    f"Workflow '{workflow_id}' is marked non-deletable",
                    workflow_id=workflow_id,
                )

            if not self.store.delete(workflow_id):
                raise WorkflowNotFoundError(
                    f"Workflow '{workflow_id}' disappeared before deletion",
                    workflow_id=workflow_id,
                )
            self.invalidate_cache()

        _get_logger().info("Workflow '%s' deleted", workflow_id, extra={"workflow_id": workflow_id})
