"""Project persistence with optimistic version stamps.

``save`` succeeds only when the caller's ``expected_version`` matches the
stored version; otherwise ``ConcurrencyConflictError`` is raised and nothing
is written. A successful save increments the version.
"""

import threading
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Optional

from pydantic import ValidationError

from src.database.json_files import JsonFileError, read_json_list, write_json_list
from src.projects.models import Project
from src.utils.logging_config import get_logger
from src.workflow.errors import ConcurrencyConflictError, PersistenceError, ProjectNotFoundError


def _get_logger():
    return get_logger(__name__)


class ProjectRepository(ABC):
    """Storage for project records."""

    @abstractmethod
    def get(self, project_id: str) -> Optional[Project]:
        """Return a project or None."""

    @abstractmethod
    def list_all(self) -> list[Project]:
        """Return all projects in storage order."""

    @abstractmethod
    def add(self, project: Project) -> Project:
        """Store a new project; raises ValueError on a duplicate id."""

    @abstractmethod
    def save(self, project: Project, expected_version: int) -> Project:
        """Replace a project if its stored version equals ``expected_version``."""

    @abstractmethod
    def delete(self, project_id: str) -> bool:
        """Remove a project; False when it did not exist."""


def _check_version(current: Optional[Project], project_id: str, expected_version: int) -> None:
    if current is None:
        raise ProjectNotFoundError(f"Project '{project_id}' not found", project_id=project_id)
    if current.version != expected_version:
        raise ConcurrencyConflictError(
            f"Project '{project_id}' was modified concurrently "
            f"(expected version {expected_version}, found {current.version})",
            expected_version=expected_version,
            actual_version=current.version,
            project_id=project_id,
        )


class InMemoryProjectRepository(ProjectRepository):
    """Dictionary-backed repository."""

    def __init__(self):
        self._projects: dict[str, Project] = {}
        self._lock = threading.Lock()

    def get(self, project_id):
        project = self._projects.get(project_id)
        return project.model_copy(deep=True) if project else None

    def list_all(self):
        return [p.model_copy(deep=True) for p in self._projects.values()]

    def add(self, project):
        with self._lock:
            if project.id in self._projects:
                raise ValueError(f"Project '{project.id}' already exists")
            self._projects[project.id] = project.model_copy(deep=True)
        return project.model_copy(deep=True)

    def save(self, project, expected_version):
        with self._lock:
            _check_version(self._projects.get(project.id), project.id, expected_version)
            stored = project.model_copy(deep=True, update={"version": expected_version + 1})
            self._projects[project.id] = stored
        return stored.model_copy(deep=True)

    def delete(self, project_id):
        with self._lock:
            return self._projects.pop(project_id, None) is not None


StoredRecord = tuple[Optional[Project], Any]


def _record_id(record: StoredRecord) -> Optional[str]:
    project, raw = record
    if project is not None:
        return project.id
    return raw.get("id") if isinstance(raw, dict) else None


class JsonFileProjectRepository(ProjectRepository):
    """Repository backed by a single ``projects.json`` array.

    The version check and the rewrite happen under one in-process lock; the
    file itself is replaced atomically. Records that fail to parse are
    invisible to reads and written back untouched.
    """

    def __init__(self, path: Path):
        self.path = Path(path)
        self._lock = threading.Lock()

    def _read_records(self) -> list[StoredRecord]:
        try:
            documents = read_json_list(self.path)
        except JsonFileError as e:
            raise PersistenceError(str(e), path=str(self.path)) from e

        records: list[StoredRecord] = []
        for document in documents:
            try:
                records.append((Project.model_validate(document), document))
            except ValidationError as e:
                _get_logger().error("Skipping unreadable project record in %s: %s", self.path, e)
                records.append((None, document))
        return records

    def _read(self) -> list[Project]:
        return [p for p, _ in self._read_records() if p is not None]

    def _write(self, records: list[StoredRecord]) -> None:
        documents = [p.model_dump(mode="json") if p is not None else raw for p, raw in records]
        try:
            write_json_list(self.path, documents)
        except JsonFileError as e:
            raise PersistenceError("Failed to save project data.", path=str(self.path)) from e

    def get(self, project_id):
        return next((p for p in self._read() if p.id == project_id), None)

    def list_all(self):
        return self._read()

    def add(self, project):
        with self._lock:
            records = self._read_records()
            if any(_record_id(r) == project.id for r in records):
                raise ValueError(f"Project '{project.id}' already exists")
            records.append((project, None))
            self._write(records)
        return project.model_copy(deep=True)

    def save(self, project, expected_version):
        with self._lock:
            records = self._read_records()
            index = next(
                (i for i, (p, _) in enumerate(records) if p is not None and p.id == project.id), None
            )
            _check_version(records[index][0] if index is not None else None, project.id, expected_version)
            stored = project.model_copy(deep=True, update={"version": expected_version + 1})
            records[index] = (stored, None)
            self._write(records)
        return stored.model_copy(deep=True)

    def delete(self, project_id):
        with self._lock:
            records = self._read_records()
            remaining = [r for r in records if _record_id(r) != project_id]
            if len(remaining) == len(records):
                return False
            self._write(remaining)
        return True
