"""Unit tests for the Ledger facade.

This module tests result values, height ordering, commit listeners,
observability events and snapshot restore.
"""

import pytest
from unittest.mock import MagicMock

from ledger.errors import ErrorCode, HeightRegressionError, LedgerError, Result
from ledger.ledger import Ledger
from ledger.ledger_logging import observability_hooks, performance_monitor
from ledger.models import Role, Status, TaskContext

MEMBER = "bob"


class TestResult:
    """Test cases for Result values."""

    def test_success(self):
        result = Result.success(3)
        assert result.ok
        assert result.unwrap() == 3
        assert result.to_dict() == {"success": True, "result": 3}

    def test_failure(self):
        result = Result.failure(ErrorCode.TASK_NOT_FOUND)
        assert not result.ok
        with pytest.raises(LedgerError) as excinfo:
            result.unwrap()
        assert excinfo.value.code is ErrorCode.TASK_NOT_FOUND

        data = result.to_dict()
        assert data["success"] is False
        assert data["error"] == "TASK_NOT_FOUND"
        assert data["error_code"] == 103
        assert data["suggestion"]

    def test_success_serializes_records(self, ledger, project):
        assert Result.success(ledger.get_project(project)).to_dict()["result"]["name"] == "Alpha"

    def test_every_error_code_has_a_suggestion(self):
        for code in ErrorCode:
            assert Result.failure(code).to_dict()["suggestion"]


class TestHeightOrdering:
    """Test cases for the host height contract."""

    def test_height_advances_on_success(self, ledger, ctx):
        ledger.create_project(ctx(height=25), "Alpha", "", 30).unwrap()
        assert ledger.height == 25

    def test_failed_call_does_not_advance_height(self, ledger, ctx):
        ledger.create_project(ctx(height=25), "Alpha", "", 5)
        assert ledger.height == 0

    def test_equal_height_is_allowed(self, ledger, ctx):
        ledger.create_project(ctx(height=25), "Alpha", "", 30).unwrap()
        assert ledger.create_project(ctx(height=25), "Beta", "", 30).ok

    def test_lower_height_is_rejected(self, ledger, ctx):
        ledger.create_project(ctx(height=25), "Alpha", "", 30).unwrap()
        with pytest.raises(HeightRegressionError):
            ledger.create_project(ctx(height=24), "Beta", "", 30)
        assert ledger.get_project_count() == 1


class TestCommitListeners:
    def test_listener_called_after_success_only(self, ledger, ctx):
        listener = MagicMock()
        ledger.add_commit_listener(listener)

        ledger.create_project(ctx(), "Alpha", "", 5)
        listener.assert_not_called()

        ledger.create_project(ctx(), "Alpha", "", 50).unwrap()
        listener.assert_called_once_with(ledger, "create_project")

    def test_failing_listener_rolls_back_the_call(self, ledger, ctx, project, milestone):
        """Nothing the call wrote survives when a listener raises."""
        before = ledger.to_dict()
        ledger.add_commit_listener(MagicMock(side_effect=OSError("disk full")))

        with pytest.raises(OSError):
            ledger.create_task(ctx(height=15), project, milestone, "T1", "", 40)
        with pytest.raises(OSError):
            ledger.post_communication(ctx(height=16), project, TaskContext(milestone, 1), "hi")

        assert ledger.to_dict() == before
        assert ledger.height == 10
        assert ledger.get_milestone(project, milestone).task_count == 0

    def test_ids_are_reused_after_rollback(self, ledger, ctx):
        failing = MagicMock(side_effect=[OSError("disk full"), None])
        ledger.add_commit_listener(failing)

        with pytest.raises(OSError):
            ledger.create_project(ctx(), "Alpha", "", 50)
        assert ledger.create_project(ctx(), "Alpha", "", 50).unwrap() == 1


class TestObservability:
    """Test cases for events emitted by successful mutations."""

    def test_project_created_event(self, ledger, ctx):
        hook = MagicMock()
        observability_hooks.register_hook("project_created", hook)

        project_id = ledger.create_project(ctx(), "Alpha", "", 50).unwrap()

        hook.assert_called_once()
        kwargs = hook.call_args.kwargs
        assert kwargs["project_id"] == project_id
        assert kwargs["caller"] == "alice"
        assert kwargs["height"] == 10
        assert kwargs["result"] == project_id

    def test_status_event_carries_status_value(self, ledger, ctx, project, milestone):
        hook = MagicMock()
        observability_hooks.register_hook("task_status_changed", hook)
        task_id = ledger.create_task(ctx(), project, milestone, "T1", "", 40).unwrap()

        ledger.update_task_status(ctx(), project, milestone, task_id, Status.IN_PROGRESS).unwrap()

        assert hook.call_args.kwargs["result"] == "in_progress"
        assert hook.call_args.kwargs["project_id"] == project

    def test_no_event_on_rejection(self, ledger, ctx, project):
        hook = MagicMock()
        observability_hooks.register_hook("milestone_created", hook)
        ledger.create_milestone(ctx(MEMBER), project, "M1", "", 50)
        hook.assert_not_called()

    def test_performance_metrics_recorded(self, ledger, ctx):
        ledger.create_project(ctx(), "Alpha", "", 50)
        metrics = performance_monitor.get_metrics("create_project_duration")
        assert len(metrics["create_project_duration"]) == 1
        assert metrics["create_project_duration"][0]["tags"]["status"] == "success"

    def test_rejection_is_logged(self, ledger, ctx, project, caplog):
        with caplog.at_level("DEBUG", logger="ledger.operations"):
            ledger.create_milestone(ctx(MEMBER), project, "M1", "", 50)

        messages = [r.getMessage() for r in caplog.records]
        assert "Rejected operation: create_milestone (NOT_AUTHORIZED)" in messages
        assert not any(m.startswith("Completed operation: create_milestone") for m in messages)
        rejected = [r for r in caplog.records if getattr(r, "extra_fields", {}).get("status") == "rejected"]
        assert rejected[0].extra_fields["error_kind"] == "NOT_AUTHORIZED"
        assert rejected[0].extra_fields["caller"] == MEMBER

    def test_rejection_metric_is_tagged_rejected(self, ledger, ctx):
        ledger.create_project(ctx(), "Alpha", "", 5)
        ledger.create_project(ctx(), "Alpha", "", 50)

        samples = performance_monitor.get_metrics("create_project_duration")["create_project_duration"]
        assert [s["tags"] for s in samples] == [
            {"status": "rejected", "error_kind": "INVALID_DEADLINE"},
            {"status": "success"},
        ]


class TestSnapshots:
    """Test cases for to_dict / from_dict."""

    def test_restore_preserves_state_and_counters(self, ledger, ctx, project, milestone):
        task_id = ledger.create_task(ctx(), project, milestone, "T1", "", 40, [2]).unwrap()
        ledger.assign_task(ctx(), project, milestone, task_id, MEMBER).unwrap()
        ledger.post_communication(ctx(height=12), project, TaskContext(milestone, task_id), "started").unwrap()

        restored = Ledger.from_dict(ledger.to_dict())

        assert restored.height == 12
        assert restored.get_project_count() == 1
        assert restored.get_project(project) == ledger.get_project(project)
        assert restored.get_task(project, milestone, task_id) == ledger.get_task(project, milestone, task_id)
        assert restored.get_member_role(project, MEMBER) is Role.MEMBER
        assert restored.get_communications(project) == ledger.get_communications(project)

        # Counters continue where they left off.
        assert restored.create_project(ctx(height=12), "Beta", "", 50).unwrap() == 2
        assert restored.create_task(ctx(height=12), project, milestone, "T2", "", 40).unwrap() == 2

    def test_unknown_version(self):
        with pytest.raises(ValueError, match="Unsupported ledger snapshot version"):
            Ledger.from_dict({"version": 99})
