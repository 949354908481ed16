"""Tests for workflow store backends."""

import json
from pathlib import Path

import pytest

from src.database.json_files import JsonFileError
from src.workflow.catalog import WorkflowCatalog
from src.workflow.defaults import DEFAULT_WORKFLOW_ID, build_default_workflow
from src.workflow.errors import PersistenceError
from src.workflow.models import Workflow
from src.workflow.store import (
    InMemoryWorkflowStore,
    JsonFileWorkflowStore,
    SqlWorkflowStore,
    create_workflow_store,
    parse_workflow_documents,
)
from src.utils.config import get_settings


def _workflow(workflow_id: str = "wf_1", name: str = "Custom") -> Workflow:
    return Workflow.model_validate(
        {
            "id": workflow_id,
            "name": name,
            "steps": [{"stepName": "Done", "status": "Completed", "progress": 100}],
        }
    )


class TestParseWorkflowDocuments:
    """Test tolerant parsing of stored documents."""

    def test_unreadable_records_are_skipped(self, two_step_document, caplog):
        documents = [two_step_document, {"id": "broken", "steps": "nope"}, "not a dict"]

        workflows = parse_workflow_documents(documents, "test")

        assert [wf.id for wf in workflows] == ["wf_review"]
        assert "broken" in caplog.text


class TestInMemoryWorkflowStore:
    """Test the dictionary-backed store."""

    def test_put_get_delete(self):
        store = InMemoryWorkflowStore()
        store.put(_workflow())

        assert store.get("wf_1").name == "Custom"
        assert store.delete("wf_1") is True
        assert store.delete("wf_1") is False
        assert store.get("wf_1") is None
        assert store.write_count == 2

    def test_copies_on_the_way_in_and_out(self):
        workflow = _workflow()
        store = InMemoryWorkflowStore([workflow])

        workflow.name = "Changed outside"
        loaded = store.get("wf_1")
        loaded.name = "Changed after load"

        assert store.get("wf_1").name == "Custom"
        assert store.write_count == 0

    def test_list_keeps_insertion_order(self):
        store = InMemoryWorkflowStore([_workflow("a"), _workflow("b")])
        store.put(_workflow("c"))
        store.put(_workflow("a", name="Renamed"))

        assert [wf.id for wf in store.list_all()] == ["a", "b", "c"]
        assert store.list_all()[0].name == "Renamed"


class TestJsonFileWorkflowStore:
    """Test the flat-file store."""

    def test_missing_file_reads_empty(self, tmp_path: Path):
        assert JsonFileWorkflowStore(tmp_path / "workflows.json").list_all() == []

    def test_put_writes_camel_case_document(self, tmp_path: Path):
        path = tmp_path / "nested" / "workflows.json"
        store = JsonFileWorkflowStore(path)

        store.put(_workflow())

        data = json.loads(path.read_text(encoding="utf-8"))
        assert data[0]["id"] == "wf_1"
        assert data[0]["steps"][0]["stepName"] == "Done"

    def test_put_replaces_existing_record(self, tmp_path: Path):
        store = JsonFileWorkflowStore(tmp_path / "workflows.json")
        store.put(_workflow("a"))
        store.put(_workflow("b"))
        store.put(_workflow("a", name="Renamed"))

        workflows = store.list_all()
        assert [wf.id for wf in workflows] == ["a", "b"]
        assert workflows[0].name == "Renamed"

    def test_delete(self, tmp_path: Path):
        store = JsonFileWorkflowStore(tmp_path / "workflows.json")
        store.put(_workflow())

        assert store.delete("wf_1") is True
        assert store.delete("wf_1") is False
        assert store.list_all() == []

    def test_corrupt_file_reads_empty_and_is_preserved(self, tmp_path: Path):
        path = tmp_path / "workflows.json"
        path.write_text("{not json", encoding="utf-8")

        assert JsonFileWorkflowStore(path).list_all() == []
        assert list(tmp_path.glob("workflows.json.*.corrupt"))

    def test_non_list_document_reads_empty(self, tmp_path: Path):
        path = tmp_path / "workflows.json"
        path.write_text('{"id": "wf_1"}', encoding="utf-8")

        assert JsonFileWorkflowStore(path).list_all() == []

    def test_unreadable_records_survive_unrelated_writes(self, tmp_path: Path):
        """Test that legacy records the parser rejects are written back as they were."""
        path = tmp_path / "workflows.json"
        legacy = {
            "id": "wf_legacy",
            "name": "Legacy",
            "steps": [{"stepName": "Old", "status": "Old", "progress": 150}],
        }
        path.write_text(json.dumps([legacy]), encoding="utf-8")
        store = JsonFileWorkflowStore(path)

        assert store.list_all() == []
        store.put(_workflow("wf_new"))
        assert store.delete("wf_new") is True
        store.put(_workflow("wf_other"))

        data = json.loads(path.read_text(encoding="utf-8"))
        assert [d["id"] for d in data] == ["wf_legacy", "wf_other"]
        assert data[0] == legacy
        assert [wf.id for wf in store.list_all()] == ["wf_other"]

    def test_catalog_write_keeps_unreadable_records(self, tmp_path: Path):
        path = tmp_path / "workflows.json"
        legacy = {"id": "wf_legacy", "name": "Legacy", "steps": [{"status": "X", "progress": 150}]}
        path.write_text(
            json.dumps([build_default_workflow().to_document(), legacy]), encoding="utf-8"
        )

        created = WorkflowCatalog(JsonFileWorkflowStore(path)).add_workflow("New one")

        ids = [d["id"] for d in json.loads(path.read_text(encoding="utf-8"))]
        assert ids == [DEFAULT_WORKFLOW_ID, "wf_legacy", created.id]

    def test_put_replaces_unreadable_record_with_same_id(self, tmp_path: Path):
        path = tmp_path / "workflows.json"
        path.write_text('[{"id": "wf_1", "steps": "broken"}]', encoding="utf-8")
        store = JsonFileWorkflowStore(path)

        store.put(_workflow("wf_1"))

        data = json.loads(path.read_text(encoding="utf-8"))
        assert len(data) == 1
        assert store.get("wf_1").name == "Custom"

    def test_write_failure_raises_persistence_error(self, tmp_path: Path, monkeypatch):
        def fail(path, records):
            raise JsonFileError("disk full")

        monkeypatch.setattr("src.workflow.store.write_json_list", fail)
        store = JsonFileWorkflowStore(tmp_path / "workflows.json")

        with pytest.raises(PersistenceError):
            store.put(_workflow())

    def test_read_failure_raises_persistence_error(self, tmp_path: Path, monkeypatch):
        def fail(path):
            raise JsonFileError("permission denied")

        monkeypatch.setattr("src.workflow.store.read_json_list", fail)

        with pytest.raises(PersistenceError):
            JsonFileWorkflowStore(tmp_path / "workflows.json").list_all()


class TestSqlWorkflowStore:
    """Test the SQLAlchemy store against in-memory SQLite."""

    def test_round_trip(self, sqlite_db, two_step_document):
        store = SqlWorkflowStore()
        workflow = Workflow.model_validate(two_step_document)

        store.put(workflow)

        assert store.get("wf_review") == workflow
        assert store.get("missing") is None

    def test_list_keeps_insertion_order_on_update(self, sqlite_db):
        store = SqlWorkflowStore()
        store.put(_workflow("b"))
        store.put(_workflow("a"))
        store.put(_workflow("b", name="Renamed"))

        workflows = store.list_all()
        assert [wf.id for wf in workflows] == ["b", "a"]
        assert workflows[0].name == "Renamed"

    def test_delete(self, sqlite_db):
        store = SqlWorkflowStore()
        store.put(_workflow())

        assert store.delete("wf_1") is True
        assert store.delete("wf_1") is False

    def test_uninitialized_database_raises_persistence_error(self):
        with pytest.raises(PersistenceError):
            SqlWorkflowStore().list_all()


class TestCreateWorkflowStore:
    """Test backend selection from settings."""

    @pytest.mark.parametrize(
        "backend,expected",
        [
            ("memory", InMemoryWorkflowStore),
            ("json", JsonFileWorkflowStore),
            ("database", SqlWorkflowStore),
        ],
    )
    def test_backend_selection(self, monkeypatch, backend, expected):
        monkeypatch.setenv("WORKFLOW_STORE_BACKEND", backend)

        assert isinstance(create_workflow_store(), expected)

    def test_json_store_uses_configured_path(self, tmp_path: Path):
        store = create_workflow_store()

        assert store.path == get_settings().workflows_path
        assert store.path.parent == tmp_path / "data"
