"""Tests for step and transition resolution."""

import logging

import pytest

from src.workflow import resolver
from src.workflow.errors import InvalidTransitionError, StepNotFoundError, TerminalStepError
from src.workflow.models import Workflow


class TestLocateStep:
    """Steps are identified by (status, progress)."""

    def test_first_step(self, default_workflow):
        assert resolver.first_step(default_workflow).key == ("Pending Offer", 10)

    def test_first_step_of_empty_workflow(self):
        assert resolver.first_step(Workflow(id="wf", name="Empty")) is None

    @pytest.mark.parametrize(
        "progress,step_name",
        [(20, "Offer Approval"), (30, "DP Invoice Approval")],
    )
    def test_shared_status_resolved_by_progress(self, default_workflow, progress, step_name):
        step = resolver.locate_step(default_workflow, "Pending Approval", progress)
        assert step.step_name == step_name

    def test_no_status_only_fallback(self, default_workflow, caplog):
        with caplog.at_level(logging.WARNING, logger="src.workflow.resolver"):
            with pytest.raises(StepNotFoundError) as exc_info:
                resolver.locate_step(default_workflow, "Pending Approval", 25)

        error = exc_info.value
        assert (error.status, error.progress) == ("Pending Approval", 25)
        assert error.context["candidate_progress"] == [20, 30]
        assert "[20, 30]" in caplog.text

    def test_unknown_status(self, default_workflow):
        with pytest.raises(StepNotFoundError) as exc_info:
            resolver.locate_step(default_workflow, "Bogus Status", 10)

        assert exc_info.value.context["candidate_progress"] == []
        assert resolver.find_step(default_workflow, "Bogus Status", 10) is None

    def test_terminal_status_matches_any_progress(self, default_workflow):
        step = resolver.locate_step(default_workflow, "Canceled", 20)

        assert step.status == "Canceled"
        assert step.is_terminal


class TestLocateTransition:
    """Test transition lookup by action name."""

    def test_offer_submission(self, default_workflow):
        transition = resolver.locate_transition(default_workflow, "Pending Offer", 10, "submitted")

        assert transition.target_status == "Pending Approval"
        assert transition.target_assigned_division == "Owner"
        assert transition.target_progress == 20

    def test_same_action_differs_by_progress(self, default_workflow):
        at_offer = resolver.locate_transition(default_workflow, "Pending Approval", 20, "approved")
        at_dp = resolver.locate_transition(default_workflow, "Pending Approval", 30, "approved")

        assert at_offer.target_key == ("Pending DP Invoice", 25)
        assert at_dp.target_key == ("Pending Admin Files", 40)

    def test_rejection_at_offer_cancels(self, default_workflow):
        transition = resolver.locate_transition(default_workflow, "Pending Approval", 20, "rejected")

        assert transition.target_status == "Canceled"
        assert transition.target_assigned_division == ""
        assert transition.notification.recipients() == ["Admin Proyek"]

    def test_undeclared_action(self, default_workflow):
        with pytest.raises(InvalidTransitionError) as exc_info:
            resolver.locate_transition(default_workflow, "Pending Offer", 10, "approved")

        error = exc_info.value
        assert not isinstance(error, TerminalStepError)
        assert error.action == "approved"
        assert error.step_name == "Offer Submission"
        assert error.available_actions == ["submitted"]

    @pytest.mark.parametrize("status,progress", [("Completed", 100), ("Canceled", 0), ("Canceled", 30)])
    def test_terminal_step(self, default_workflow, status, progress):
        with pytest.raises(TerminalStepError):
            resolver.locate_transition(default_workflow, status, progress, "submitted")

    def test_resolution_is_deterministic(self, default_workflow):
        results = {
            resolver.locate_transition(default_workflow, "Scheduled", 95, "revise_after_sidang").target_key
            for _ in range(10)
        }
        assert results == {("Pending Post-Sidang Revision", 97)}


class TestAvailableActions:
    def test_declared_order(self, default_workflow):
        assert resolver.available_actions(default_workflow, "Pending Approval", 30) == [
            "approved",
            "revise_dp",
            "rejected",
        ]

    def test_terminal_and_unknown_are_empty(self, default_workflow):
        assert resolver.available_actions(default_workflow, "Completed", 100) == []
        assert resolver.available_actions(default_workflow, "Nowhere", 10) == []
