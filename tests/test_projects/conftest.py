"""Fixtures for project service tests."""

from datetime import datetime, timedelta, timezone
from itertools import count

import pytest

from src.projects.repository import InMemoryProjectRepository
from src.projects.service import ProjectService
from src.workflow.catalog import WorkflowCatalog
from src.workflow.engine import WorkflowEngine
from src.workflow.notifications import InMemoryNotifier
from src.workflow.store import InMemoryWorkflowStore


class FakeClock:
    """Deterministic clock advancing one minute per call."""

    def __init__(self):
        self._ticks = count()
        self.start = datetime(2024, 5, 1, 8, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.start + timedelta(minutes=next(self._ticks))


@pytest.fixture
def engine() -> WorkflowEngine:
    return WorkflowEngine(WorkflowCatalog(InMemoryWorkflowStore()))


@pytest.fixture
def repository() -> InMemoryProjectRepository:
    return InMemoryProjectRepository()


@pytest.fixture
def notifier() -> InMemoryNotifier:
    return InMemoryNotifier()


@pytest.fixture
def service(repository, engine, notifier) -> ProjectService:
    ids = count(1)
    return ProjectService(
        repository,
        engine,
        notifier,
        id_factory=lambda: f"project_{next(ids)}",
        clock=FakeClock(),
    )


@pytest.fixture
def project(service):
    """A freshly created project on the default workflow."""
    return service.create_project("Gedung Serbaguna", created_by="admin_proyek_1")
