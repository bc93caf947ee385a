"""Unit tests for ledger models.

This module tests the role and status enumerations, argument bounds,
communication contexts and record serialization.
"""

import pytest

from ledger.errors import ErrorCode, InvalidArgument, LedgerError
from ledger.models import (
    MAX_DEPENDENCIES,
    MAX_NAME_LENGTH,
    CallContext,
    Communication,
    MilestoneContext,
    Project,
    ProjectContext,
    Role,
    Status,
    Task,
    TaskContext,
    build_context,
    require_dependencies,
    require_id,
    require_text,
)


class TestRole:
    """Test cases for Role parsing and ordering."""

    def test_ranks_order_by_privilege(self):
        """Lower rank means more privilege."""
        assert Role.ADMIN < Role.MEMBER < Role.VIEWER
        assert int(Role.ADMIN) == 1
        assert int(Role.VIEWER) == 3

    @pytest.mark.parametrize("value,expected", [
        (1, Role.ADMIN),
        (2, Role.MEMBER),
        ("viewer", Role.VIEWER),
        ("ADMIN", Role.ADMIN),
        ("3", Role.VIEWER),
        (Role.MEMBER, Role.MEMBER),
    ])
    def test_parse_valid(self, value, expected):
        assert Role.parse(value) is expected

    @pytest.mark.parametrize("value", [0, 4, -1, "owner", "", True])
    def test_parse_invalid(self, value):
        """Unknown roles are rejected with INVALID_ROLE."""
        with pytest.raises(LedgerError) as excinfo:
            Role.parse(value)
        assert excinfo.value.code is ErrorCode.INVALID_ROLE


class TestStatus:
    """Test cases for Status parsing."""

    def test_five_statuses(self):
        assert [s.value for s in Status] == ["pending", "in_progress", "completed", "delayed", "cancelled"]

    @pytest.mark.parametrize("value,expected", [
        ("completed", Status.COMPLETED),
        ("IN_PROGRESS", Status.IN_PROGRESS),
        ("in-progress", Status.IN_PROGRESS),
        ("Delayed", Status.DELAYED),
        (Status.CANCELLED, Status.CANCELLED),
    ])
    def test_parse_valid(self, value, expected):
        assert Status.parse(value) is expected

    @pytest.mark.parametrize("value", ["done", "", "blocked", 3, None])
    def test_parse_invalid(self, value):
        with pytest.raises(LedgerError) as excinfo:
            Status.parse(value)
        assert excinfo.value.code is ErrorCode.INVALID_STATUS


class TestCallContext:
    def test_valid_context(self):
        ctx = CallContext("alice", 5)
        assert ctx.caller == "alice"
        assert ctx.height == 5

    @pytest.mark.parametrize("caller,height", [("", 1), ("alice", -1), ("alice", "7"), (None, 1)])
    def test_invalid_context(self, caller, height):
        with pytest.raises(InvalidArgument):
            CallContext(caller, height)


class TestArgumentBounds:
    """Test cases for bounded text, ids and dependency lists."""

    def test_name_at_limit_is_accepted(self):
        assert require_text("x" * MAX_NAME_LENGTH, "name", MAX_NAME_LENGTH)

    def test_name_over_limit_is_rejected(self):
        with pytest.raises(InvalidArgument, match="name exceeds 100"):
            require_text("x" * (MAX_NAME_LENGTH + 1), "name", MAX_NAME_LENGTH)

    def test_ids_must_be_positive(self):
        assert require_id(1, "task_id") == 1
        for bad in (0, -3, "1", 1.0, True):
            with pytest.raises(InvalidArgument):
                require_id(bad, "task_id")

    def test_dependencies_keep_order_and_allow_forward_references(self):
        assert require_dependencies([3, 1, 99]) == [3, 1, 99]
        assert require_dependencies(None) == []

    def test_dependencies_limit(self):
        assert len(require_dependencies(list(range(1, MAX_DEPENDENCIES + 1)))) == MAX_DEPENDENCIES
        with pytest.raises(InvalidArgument, match="at most 10"):
            require_dependencies(list(range(1, MAX_DEPENDENCIES + 2)))


class TestCommunicationContexts:
    def test_build_each_kind(self):
        assert build_context("project") == ProjectContext()
        assert build_context("milestone", milestone_id=2) == MilestoneContext(2)
        assert build_context("Task", milestone_id=2, task_id=5) == TaskContext(2, 5)

    def test_missing_identifiers(self):
        with pytest.raises(InvalidArgument):
            build_context("milestone")
        with pytest.raises(InvalidArgument):
            build_context("task", milestone_id=1)

    def test_unknown_tag(self):
        with pytest.raises(InvalidArgument, match="Unknown context type"):
            build_context("team")

    def test_context_ids(self):
        """The context id is the innermost identifier of the target."""
        entry = Communication(7, 1, "alice", 12, "hello", TaskContext(2, 5))
        assert entry.context_type == "task"
        assert entry.context_id == 5
        project_entry = Communication(7, 2, "alice", 12, "hello", ProjectContext())
        assert project_entry.context_id == 7


class TestRecords:
    def test_project_defaults(self):
        project = Project(1, "Alpha", "desc", "alice", 10, 110)
        assert project.status is Status.PENDING
        assert project.milestone_count == 0
        assert project.communication_count == 0

    def test_task_from_dict_restores_status_and_assignee(self):
        task = Task.from_dict({
            "project_id": 1,
            "milestone_id": 2,
            "task_id": 3,
            "name": "T",
            "deadline": 50,
            "status": "delayed",
            "assignee": "bob",
            "dependencies": [1, 2],
        })
        assert task.status is Status.DELAYED
        assert task.assignee == "bob"
        assert task.dependencies == [1, 2]
        assert task.description == ""

    def test_task_is_open(self):
        task = Task(1, 1, 1, "T", "", 50)
        assert task.is_open()
        task.status = Status.CANCELLED
        assert not task.is_open()

    def test_communication_dict_carries_context_fields(self):
        entry = Communication(1, 4, "bob", 20, "status update", MilestoneContext(3))
        data = entry.to_dict()
        assert data["context_type"] == "milestone"
        assert data["context_id"] == 3
        assert Communication.from_dict(data) == entry
