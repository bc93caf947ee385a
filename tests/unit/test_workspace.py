"""Unit tests for workspace persistence."""

import json

import pytest

from ledger.models import CallContext, ProjectContext, Role
from ledger.workspace import STATE_FILENAME, Workspace


class TestWorkspaceInit:
    """Test cases for Workspace initialization."""

    def test_creates_state_directory(self, tmp_path):
        workspace = Workspace(tmp_path)

        assert workspace.root == tmp_path.resolve()
        assert workspace.state_dir == tmp_path.resolve() / ".ledger" / "state"
        assert workspace.state_dir.is_dir()
        assert workspace.state_path.name == STATE_FILENAME
        assert not workspace.state_path.exists()
        assert workspace.ledger.get_project_count() == 0

    def test_custom_state_dir(self, tmp_path):
        workspace = Workspace(tmp_path, state_dir=".governance")
        assert (tmp_path / ".governance" / "state").is_dir()
        assert workspace.base_dir.name == ".governance"

    def test_missing_root(self, tmp_path):
        with pytest.raises(ValueError, match="does not exist"):
            Workspace(tmp_path / "missing")

    def test_corrupt_state(self, tmp_path):
        state = tmp_path / ".ledger" / "state"
        state.mkdir(parents=True)
        (state / STATE_FILENAME).write_text("{not json", encoding="utf-8")

        with pytest.raises(RuntimeError, match="unreadable"):
            Workspace(tmp_path)


class TestWorkspacePersistence:
    """Test cases for saving and reloading the ledger."""

    def test_mutations_are_written_through(self, tmp_path):
        workspace = Workspace(tmp_path)
        ledger = workspace.ledger

        project_id = ledger.create_project(CallContext("alice", 3), "Alpha", "", 50).unwrap()
        ledger.add_team_member(CallContext("alice", 4), project_id, "bob", Role.MEMBER).unwrap()
        ledger.post_communication(CallContext("bob", 5), project_id, ProjectContext(), "hello").unwrap()

        data = json.loads(workspace.state_path.read_text(encoding="utf-8"))
        assert data["version"] == 1
        assert data["height"] == 5
        assert data["project_count"] == 1
        assert data["communications"][0]["message"] == "hello"

        reopened = Workspace(tmp_path)
        assert reopened.ledger.height == 5
        assert reopened.ledger.get_project(project_id).name == "Alpha"
        assert reopened.ledger.get_member_role(project_id, "bob") is Role.MEMBER
        assert reopened.ledger.get_communication(project_id, 1).sender == "bob"

    def test_rejected_call_is_not_written(self, tmp_path):
        workspace = Workspace(tmp_path)
        result = workspace.ledger.create_project(CallContext("alice", 10), "Alpha", "", 5)

        assert not result.ok
        assert not workspace.state_path.exists()

    def test_failed_save_leaves_no_trace(self, tmp_path, monkeypatch):
        """A write that cannot be persisted is undone in memory as well."""
        workspace = Workspace(tmp_path)
        ledger = workspace.ledger
        ledger.create_project(CallContext("alice", 5), "Alpha", "", 50).unwrap()
        saved = workspace.state_path.read_text(encoding="utf-8")

        def broken_save(self):
            raise OSError("disk full")

        monkeypatch.setattr(Workspace, "save", broken_save)
        with pytest.raises(OSError, match="disk full"):
            ledger.create_project(CallContext("alice", 10), "Beta", "", 100)

        assert ledger.get_project_count() == 1
        assert ledger.get_project(2) is None
        assert ledger.height == 5
        assert workspace.state_path.read_text(encoding="utf-8") == saved

        monkeypatch.undo()
        assert ledger.create_project(CallContext("alice", 10), "Beta", "", 100).unwrap() == 2
        assert Workspace(tmp_path).ledger.get_project(2).name == "Beta"

    def test_save_leaves_no_temp_file(self, tmp_path):
        workspace = Workspace(tmp_path)
        path = workspace.save()

        assert path == workspace.state_path
        assert [p.name for p in workspace.state_dir.iterdir()] == [STATE_FILENAME]
