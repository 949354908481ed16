"""Storage backends for workflow definitions.

The catalog talks to a ``WorkflowStore``: get/put/delete over whole
workflow records. Swapping the flat file for a database needs no change in
catalog or engine logic.

Backends:
- InMemoryWorkflowStore: tests and ephemeral use
- JsonFileWorkflowStore: the original ``workflows.json`` flat file
- SqlWorkflowStore: SQLAlchemy table with a JSON steps column
"""

import copy
import logging
from abc import ABC, abstractmethod
from contextlib import AbstractContextManager
from pathlib import Path
from typing import Any, Callable, Optional

from pydantic import ValidationError
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from src.database import db
from src.database.json_files import JsonFileError, read_json_list, write_json_list
from src.utils.config import Settings, get_settings
from src.workflow.errors import PersistenceError
from src.workflow.models import Workflow

logger = logging.getLogger(__name__)


class WorkflowStore(ABC):
    """Record-level access to stored workflow definitions."""

    @abstractmethod
    def list_all(self) -> list[Workflow]:
        """Return every stored workflow in catalog order."""

    @abstractmethod
    def get(self, workflow_id: str) -> Optional[Workflow]:
        """Return one workflow or None."""

    @abstractmethod
    def put(self, workflow: Workflow) -> None:
        """Insert or replace a workflow by id."""

    @abstractmethod
    def delete(self, workflow_id: str) -> bool:
        """Remove a workflow; False when it did not exist."""


def document_id(document: Any) -> Optional[str]:
    return document.get("id") if isinstance(document, dict) else None


def parse_workflow_document(document: Any, index: int, source: str) -> Optional[Workflow]:
    """Parse one stored document; None (with an error log) when unreadable."""
    try:
        return Workflow.model_validate(document)
    except ValidationError as e:
        logger.error(
            "Skipping unreadable workflow record #%d (id=%s) in %s: %s",
            index,
            document_id(document),
            source,
            e,
        )
        return None


def parse_workflow_documents(documents: list, source: str) -> list[Workflow]:
    """Parse stored documents, skipping records that cannot be read."""
    parsed = (parse_workflow_document(doc, i, source) for i, doc in enumerate(documents))
    return [wf for wf in parsed if wf is not None]


class InMemoryWorkflowStore(WorkflowStore):
    """Dictionary-backed store. Copies on the way in and out."""

    def __init__(self, workflows: Optional[list[Workflow]] = None):
        self._records: dict[str, Workflow] = {}
        self.write_count = 0
        for workflow in workflows or []:
            self._records[workflow.id] = workflow.model_copy(deep=True)

    def list_all(self) -> list[Workflow]:
        return [wf.model_copy(deep=True) for wf in self._records.values()]

    def get(self, workflow_id: str) -> Optional[Workflow]:
        workflow = self._records.get(workflow_id)
        return workflow.model_copy(deep=True) if workflow else None

    def put(self, workflow: Workflow) -> None:
        self._records[workflow.id] = workflow.model_copy(deep=True)
        self.write_count += 1

    def delete(self, workflow_id: str) -> bool:
        if workflow_id not in self._records:
            return False
        del self._records[workflow_id]
        self.write_count += 1
        return True


StoredRecord = tuple[Optional[Workflow], Any]


class JsonFileWorkflowStore(WorkflowStore):
    """Store backed by a single JSON array file.

    Every write rewrites the whole file; last write wins. Records that
    cannot be parsed are hidden from reads but written back unchanged, so
    an unrelated write never drops them.
    """

    def __init__(self, path: Path):
        self.path = Path(path)

    def _read_records(self) -> list[StoredRecord]:
        try:
            documents = read_json_list(self.path)
        except JsonFileError as e:
            raise PersistenceError(str(e), path=str(self.path)) from e
        return [
            (parse_workflow_document(document, index, str(self.path)), document)
            for index, document in enumerate(documents)
        ]

    def _read(self) -> list[Workflow]:
        return [wf for wf, _ in self._read_records() if wf is not None]

    def _write(self, records: list[StoredRecord]) -> None:
        documents = [wf.to_document() if wf is not None else raw for wf, raw in records]
        try:
            write_json_list(self.path, documents)
        except JsonFileError as e:
            raise PersistenceError("Failed to save workflow data.", path=str(self.path)) from e

        unreadable = sum(1 for wf, _ in records if wf is None)
        if unreadable:
            logger.warning(
                "Kept %d unreadable workflow record(s) unchanged in %s", unreadable, self.path
            )
        logger.info("Workflow catalog written to %s (%d records)", self.path, len(records))

    @staticmethod
    def _record_id(record: StoredRecord) -> Optional[str]:
        workflow, raw = record
        return workflow.id if workflow is not None else document_id(raw)

    def list_all(self) -> list[Workflow]:
        return self._read()

    def get(self, workflow_id: str) -> Optional[Workflow]:
        return next((wf for wf in self._read() if wf.id == workflow_id), None)

    def put(self, workflow: Workflow) -> None:
        records = self._read_records()
        for index, record in enumerate(records):
            if self._record_id(record) == workflow.id:
                records[index] = (workflow, None)
                break
        else:
            records.append((workflow, None))
        self._write(records)

    def delete(self, workflow_id: str) -> bool:
        records = self._read_records()
        remaining = [r for r in records if self._record_id(r) != workflow_id]
        if len(remaining) == len(records):
            return False
        self._write(remaining)
        return True


SessionScope = Callable[[], AbstractContextManager[Session]]


class SqlWorkflowStore(WorkflowStore):
    """Store backed by the ``workflows`` table.

    Args:
        session_scope: Callable returning a transactional session context;
            defaults to ``src.database.db.get_session``
    """

    def __init__(self, session_scope: Optional[SessionScope] = None):
        self._session_scope = session_scope or db.get_session

    @db.retry_on_transient_error()
    def _list_documents(self) -> list[dict]:
        with self._session_scope() as session:
            return [copy.deepcopy(r.to_document()) for r in db.list_workflow_records(session)]

    @db.retry_on_transient_error()
    def _get_document(self, workflow_id: str) -> Optional[dict]:
        with self._session_scope() as session:
            record = db.get_workflow_record(session, workflow_id)
            return copy.deepcopy(record.to_document()) if record else None

    @db.retry_on_transient_error()
    def _put_document(self, document: dict) -> None:
        with self._session_scope() as session:
            db.upsert_workflow_record(session, document)

    @db.retry_on_transient_error()
    def _delete_document(self, workflow_id: str) -> bool:
        with self._session_scope() as session:
            return db.delete_workflow_record(session, workflow_id)

    def list_all(self) -> list[Workflow]:
        try:
            documents = self._list_documents()
        except (SQLAlchemyError, db.DatabaseError) as e:
            raise PersistenceError(f"Failed to load workflows: {e}") from e
        return parse_workflow_documents(documents, "workflows table")

    def get(self, workflow_id: str) -> Optional[Workflow]:
        try:
            document = self._get_document(workflow_id)
        except (SQLAlchemyError, db.DatabaseError) as e:
            raise PersistenceError(f"Failed to load workflow: {e}", workflow_id=workflow_id) from e
        if document is None:
            return None
        parsed = parse_workflow_documents([document], "workflows table")
        return parsed[0] if parsed else None

    def put(self, workflow: Workflow) -> None:
        try:
            self._put_document(workflow.to_document())
        except (SQLAlchemyError, db.DatabaseError) as e:
            raise PersistenceError(
                f"Failed to save workflow: {e}", workflow_id=workflow.id
            ) from e

    def delete(self, workflow_id: str) -> bool:
        try:
            return self._delete_document(workflow_id)
        except (SQLAlchemyError, db.DatabaseError) as e:
            raise PersistenceError(
                f"Failed to delete workflow: {e}", workflow_id=workflow_id
            ) from e


def create_workflow_store(settings: Optional[Settings] = None) -> WorkflowStore:
    """Build the store selected by ``WORKFLOW_STORE_BACKEND``."""
    settings = settings or get_settings()
    backend = settings.WORKFLOW_STORE_BACKEND

    if backend == "memory":
        return InMemoryWorkflowStore()
    if backend == "database":
        return SqlWorkflowStore()
    return JsonFileWorkflowStore(settings.workflows_path)
