"""Fixtures for workflow catalog and engine tests."""

import pytest

from src.workflow.catalog import WorkflowCatalog
from src.workflow.defaults import build_default_workflow
from src.workflow.engine import WorkflowEngine
from src.workflow.models import Workflow
from src.workflow.store import InMemoryWorkflowStore


@pytest.fixture
def default_workflow() -> Workflow:
    return build_default_workflow()


@pytest.fixture
def store() -> InMemoryWorkflowStore:
    return InMemoryWorkflowStore()


@pytest.fixture
def catalog(store: InMemoryWorkflowStore) -> WorkflowCatalog:
    return WorkflowCatalog(store)


@pytest.fixture
def engine(catalog: WorkflowCatalog) -> WorkflowEngine:
    return WorkflowEngine(catalog)


@pytest.fixture
def two_step_document() -> dict:
    """A small custom workflow in persisted (camelCase) form."""
    return {
        "id": "wf_review",
        "name": "Review Only",
        "description": "Single review then done",
        "steps": [
            {
                "stepName": "Review",
                "status": "In Review",
                "assignedDivision": "Owner",
                "progress": 50,
                "nextActionDescription": "Review the document",
                "transitions": {
                    "approved": {
                        "targetStatus": "Completed",
                        "targetAssignedDivision": "",
                        "targetProgress": 100,
                        "notification": {"division": "Admin Proyek", "message": "'{projectName}' done"},
                    }
                },
            },
            {
                "stepName": "Done",
                "status": "Completed",
                "assignedDivision": "",
                "progress": 100,
                "transitions": None,
            },
        ],
    }
