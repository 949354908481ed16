"""Wiring of the catalog, engine, repository and notifier from settings."""

from dataclasses import dataclass
from typing import Optional

from src.database import db
from src.projects.repository import (
    InMemoryProjectRepository,
    JsonFileProjectRepository,
    ProjectRepository,
)
from src.projects.service import ProjectService
from src.utils.config import Settings, get_settings
from src.utils.logging_config import get_logger
from src.workflow.catalog import WorkflowCatalog
from src.workflow.engine import WorkflowEngine
from src.workflow.notifications import InMemoryNotifier, Notifier
from src.workflow.store import create_workflow_store


@dataclass
class Services:
    catalog: WorkflowCatalog
    engine: WorkflowEngine
    projects: ProjectService


def build_services(
    settings: Optional[Settings] = None,
    notifier: Optional[Notifier] = None,
) -> Services:
    """
    Build the service graph for the configured backend.

    Projects follow the workflow backend: ``memory`` keeps them in memory,
    every other backend stores them in ``PROJECTS_FILE``.
    """
    settings = settings or get_settings()
    logger = get_logger(__name__)

    if settings.WORKFLOW_STORE_BACKEND == "database":
        db.init_db(settings.get_database_url())
        db.create_tables()

    store = create_workflow_store(settings)
    catalog = WorkflowCatalog(
        store,
        protected_ids=settings.PROTECTED_WORKFLOW_IDS,
        cache_enabled=settings.CATALOG_CACHE_ENABLED,
    )
    engine = WorkflowEngine(catalog)

    repository: ProjectRepository
    if settings.WORKFLOW_STORE_BACKEND == "memory":
        repository = InMemoryProjectRepository()
    else:
        repository = JsonFileProjectRepository(settings.projects_path)

    notifier = notifier or InMemoryNotifier(limit=settings.NOTIFICATION_LIMIT)
    logger.info(
        "Services ready (backend=%s, repository=%s, notifier=%s)",
        settings.WORKFLOW_STORE_BACKEND,
        type(repository).__name__,
        type(notifier).__name__,
    )
    return Services(catalog=catalog, engine=engine, projects=ProjectService(repository, engine, notifier))
