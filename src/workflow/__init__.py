"""Workflow definitions, catalog and transition engine.

This package provides:
- Workflow definition models and the canonical default workflow
- A catalog over a pluggable store, with default seeding and self-repair
- Step and transition resolution by (status, progress) pair
- Notification template resolution
"""

from src.workflow.catalog import WorkflowCatalog
from src.workflow.defaults import DEFAULT_WORKFLOW_ID, build_default_workflow, default_steps
from src.workflow.engine import WorkflowEngine
from src.workflow.models import (
    TransitionNotification,
    Workflow,
    WorkflowStep,
    WorkflowStepTransition,
)
from src.workflow.store import (
    InMemoryWorkflowStore,
    JsonFileWorkflowStore,
    SqlWorkflowStore,
    WorkflowStore,
    create_workflow_store,
)

__all__ = [
    "DEFAULT_WORKFLOW_ID",
    "Workflow",
    "WorkflowStep",
    "WorkflowStepTransition",
    "TransitionNotification",
    "WorkflowCatalog",
    "WorkflowEngine",
    "WorkflowStore",
    "InMemoryWorkflowStore",
    "JsonFileWorkflowStore",
    "SqlWorkflowStore",
    "build_default_workflow",
    "create_workflow_store",
    "default_steps",
]
