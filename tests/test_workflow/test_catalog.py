"""Tests for the workflow catalog: seeding, self-repair and edits."""

import pytest

from src.workflow.catalog import WorkflowCatalog, generate_workflow_id
from src.workflow.defaults import DEFAULT_WORKFLOW_ID, default_steps
from src.workflow.errors import (
    PersistenceError,
    ProtectedWorkflowError,
    WorkflowNotFoundError,
    WorkflowValidationError,
)
from src.workflow.models import Workflow
from src.workflow.store import InMemoryWorkflowStore


class FailingWriteStore(InMemoryWorkflowStore):
    """Store whose writes always fail."""

    def put(self, workflow):
        raise PersistenceError("disk full", workflow_id=workflow.id)


class TestSelfHeal:
    """Test default seeding and empty-step repair on load."""

    def test_empty_store_is_seeded_with_default(self, catalog, store):
        workflows = catalog.get_all_workflows()

        assert [wf.id for wf in workflows] == [DEFAULT_WORKFLOW_ID]
        assert store.get(DEFAULT_WORKFLOW_ID) is not None
        assert store.write_count == 1

    def test_default_is_inserted_first(self, two_step_document):
        store = InMemoryWorkflowStore([Workflow.model_validate(two_step_document)])

        workflows = WorkflowCatalog(store).get_all_workflows()

        assert [wf.id for wf in workflows] == [DEFAULT_WORKFLOW_ID, "wf_review"]

    def test_workflow_without_steps_gets_default_steps(self):
        store = InMemoryWorkflowStore([Workflow(id="wf_empty", name="Empty", steps=[])])

        workflow = WorkflowCatalog(store).get_workflow_by_id("wf_empty")

        assert workflow.steps == default_steps()
        assert store.get("wf_empty").steps == default_steps()

    def test_healthy_catalog_is_never_rewritten(self, catalog, store):
        catalog.get_all_workflows()
        writes_after_seed = store.write_count

        catalog.invalidate_cache()
        catalog.get_all_workflows()
        WorkflowCatalog(store).get_all_workflows()

        assert store.write_count == writes_after_seed

    def test_repeated_reads_are_equal(self, store):
        catalog = WorkflowCatalog(store, cache_enabled=False)

        assert catalog.get_all_workflows() == catalog.get_all_workflows()

    def test_failed_repair_write_is_not_cached(self):
        store = FailingWriteStore()
        catalog = WorkflowCatalog(store)

        first = catalog.get_all_workflows()
        second = catalog.get_all_workflows()

        assert [wf.id for wf in first] == [DEFAULT_WORKFLOW_ID]
        assert second == first
        assert catalog._cache is None  # pylint: disable=protected-access


class TestReads:
    """Test lookups and copy semantics."""

    def test_get_workflow_by_id_unknown_returns_none(self, catalog):
        assert catalog.get_workflow_by_id("does_not_exist") is None

    def test_require_workflow_unknown_raises(self, catalog):
        with pytest.raises(WorkflowNotFoundError) as exc_info:
            catalog.require_workflow("does_not_exist")

        assert exc_info.value.workflow_id == "does_not_exist"

    def test_returned_workflows_are_copies(self, catalog):
        workflow = catalog.get_workflow_by_id(DEFAULT_WORKFLOW_ID)
        workflow.steps[0].status = "Tampered"
        workflow.steps.clear()

        fresh = catalog.get_workflow_by_id(DEFAULT_WORKFLOW_ID)
        assert fresh.steps[0].status == "Pending Offer"

    def test_unique_statuses(self, catalog, store, two_step_document):
        store.put(Workflow.model_validate(two_step_document))

        statuses = catalog.get_all_unique_statuses()

        assert statuses[0] == "Pending Offer"
        assert statuses.count("Completed") == 1
        assert "In Review" in statuses

    def test_cache_disabled_sees_external_writes(self, store, two_step_document):
        catalog = WorkflowCatalog(store, cache_enabled=False)
        catalog.get_all_workflows()

        store.put(Workflow.model_validate(two_step_document))

        assert catalog.get_workflow_by_id("wf_review") is not None


class TestAddWorkflow:
    """Test workflow creation."""

    def test_new_workflow_gets_fresh_default_steps(self, catalog):
        workflow = catalog.add_workflow("Renovation", "Small jobs")

        assert workflow.id.startswith("wf_")
        assert workflow.name == "Renovation"
        assert workflow.protected is False
        assert workflow.steps == default_steps()
        assert catalog.get_workflow_by_id(workflow.id) == workflow

    def test_mutating_returned_steps_does_not_alias(self, catalog):
        first = catalog.add_workflow("First")
        second = catalog.add_workflow("Second")

        first.steps[0].transitions["submitted"].target_progress = 99
        first.steps.pop()

        assert catalog.get_workflow_by_id(first.id).steps == default_steps()
        assert catalog.get_workflow_by_id(second.id).steps == default_steps()
        assert catalog.get_workflow_by_id(DEFAULT_WORKFLOW_ID).steps == default_steps()

    def test_empty_name_rejected(self, catalog, store):
        catalog.get_all_workflows()
        writes = store.write_count

        with pytest.raises(WorkflowValidationError):
            catalog.add_workflow("  ")

        assert store.write_count == writes

    def test_id_collision_retries(self, store):
        ids = iter(["wf_same", "wf_same", "wf_other"])
        catalog = WorkflowCatalog(store, id_factory=lambda: next(ids))

        first = catalog.add_workflow("First")
        second = catalog.add_workflow("Second")

        assert (first.id, second.id) == ("wf_same", "wf_other")

    def test_generated_ids_are_unique(self):
        assert len({generate_workflow_id() for _ in range(50)}) == 50


class TestUpdateWorkflow:
    """Test partial updates."""

    def test_name_and_description_update(self, catalog):
        created = catalog.add_workflow("Before")

        updated = catalog.update_workflow(created.id, {"name": "After", "description": "New"})

        assert updated.name == "After"
        assert updated.description == "New"
        assert updated.steps == created.steps

    def test_id_is_immutable(self, catalog):
        created = catalog.add_workflow("Before")

        updated = catalog.update_workflow(created.id, {"id": "hijacked", "name": "After"})

        assert updated.id == created.id
        assert catalog.get_workflow_by_id("hijacked") is None

    def test_steps_accept_models_and_documents(self, catalog, two_step_document):
        created = catalog.add_workflow("Custom")

        updated = catalog.update_workflow(created.id, {"steps": two_step_document["steps"]})
        assert [step.step_name for step in updated.steps] == ["Review", "Done"]

        again = catalog.update_workflow(created.id, {"steps": updated.steps})
        assert again.steps == updated.steps

    def test_unknown_field_rejected(self, catalog):
        created = catalog.add_workflow("Custom")

        with pytest.raises(WorkflowValidationError):
            catalog.update_workflow(created.id, {"colour": "blue"})

    def test_invalid_steps_rejected_and_not_written(self, catalog, two_step_document):
        created = catalog.add_workflow("Custom")
        two_step_document["steps"][0]["transitions"]["approved"]["targetProgress"] = 70
        two_step_document["steps"][0]["transitions"]["approved"]["targetStatus"] = "Nowhere"

        with pytest.raises(WorkflowValidationError):
            catalog.update_workflow(created.id, {"steps": two_step_document["steps"]})

        assert catalog.get_workflow_by_id(created.id).steps == default_steps()

    def test_malformed_steps_rejected(self, catalog):
        created = catalog.add_workflow("Custom")

        with pytest.raises(WorkflowValidationError):
            catalog.update_workflow(created.id, {"steps": [{"stepName": "No status"}]})

    def test_unknown_workflow_raises(self, catalog):
        with pytest.raises(WorkflowNotFoundError):
            catalog.update_workflow("missing", {"name": "X"})


class TestDeleteWorkflow:
    """Test deletion and protection."""

    def test_delete_custom_workflow(self, catalog):
        created = catalog.add_workflow("Temporary")

        catalog.delete_workflow(created.id)

        assert catalog.get_workflow_by_id(created.id) is None

    def test_default_workflow_cannot_be_deleted(self, catalog):
        before = catalog.get_all_workflows()

        with pytest.raises(ProtectedWorkflowError):
            catalog.delete_workflow(DEFAULT_WORKFLOW_ID)

        assert catalog.get_all_workflows() == before

    def test_configured_protected_id(self, store):
        catalog = WorkflowCatalog(store, protected_ids=["wf_keep"], id_factory=lambda: "wf_keep")
        catalog.add_workflow("Keep me")

        with pytest.raises(ProtectedWorkflowError):
            catalog.delete_workflow("wf_keep")

        assert catalog.is_protected("wf_keep")

    def test_protected_flag(self, catalog):
        created = catalog.add_workflow("Flagged")
        catalog.update_workflow(created.id, {"protected": True})

        with pytest.raises(ProtectedWorkflowError):
            catalog.delete_workflow(created.id)

        assert catalog.get_workflow_by_id(created.id) is not None

    def test_unknown_workflow_raises(self, catalog):
        with pytest.raises(WorkflowNotFoundError):
            catalog.delete_workflow("missing")


class SwitchableWriteStore(InMemoryWorkflowStore):
    """Store whose writes start failing once ``failing`` is set."""

    failing = False

    def put(self, workflow):
        if self.failing:
            raise PersistenceError("disk full", workflow_id=workflow.id)
        super().put(workflow)

    def delete(self, workflow_id):
        if self.failing:
            raise PersistenceError("disk full", workflow_id=workflow_id)
        return super().delete(workflow_id)


class TestFailedWrites:
    """A failed store write reaches the caller and leaves the catalog as it was."""

    @pytest.fixture
    def failing_catalog(self):
        store = SwitchableWriteStore()
        ids = iter(["wf_custom", "wf_second"])
        catalog = WorkflowCatalog(store, id_factory=lambda: next(ids))
        catalog.add_workflow("Custom", "Kept through failures")
        store.failing = True
        return catalog

    @pytest.mark.parametrize(
        "edit",
        [
            lambda catalog: catalog.add_workflow("Another"),
            lambda catalog: catalog.update_workflow("wf_custom", {"name": "Renamed"}),
            lambda catalog: catalog.delete_workflow("wf_custom"),
        ],
        ids=["add", "update", "delete"],
    )
    def test_write_failure_propagates(self, failing_catalog, edit):
        before = failing_catalog.get_all_workflows()

        with pytest.raises(PersistenceError):
            edit(failing_catalog)

        assert failing_catalog.get_all_workflows() == before
        assert failing_catalog.store.list_all() == before
        assert failing_catalog.get_workflow_by_id("wf_custom").name == "Custom"
