"""Shared fixtures for ledger tests."""

from types import SimpleNamespace

import pytest

from ledger.ledger import Ledger
from ledger.ledger_logging import observability_hooks, performance_monitor
from ledger.models import CallContext

CREATOR = "alice"
MEMBER = "bob"
VIEWER = "carol"
OUTSIDER = "mallory"


@pytest.fixture(autouse=True)
def reset_observability():
    """Keep global hook and metric state from leaking between tests."""
    saved_hooks = {event: list(callbacks) for event, callbacks in observability_hooks.hooks.items()}
    yield
    observability_hooks.hooks = saved_hooks
    performance_monitor.clear()


@pytest.fixture
def team():
    """Caller names by standing in the shared project."""
    return SimpleNamespace(creator=CREATOR, member=MEMBER, viewer=VIEWER, outsider=OUTSIDER)


@pytest.fixture
def ledger():
    return Ledger()


@pytest.fixture
def ctx():
    """Build a call context; height defaults to 10."""
    def make(caller=CREATOR, height=10):
        return CallContext(caller, height)
    return make


@pytest.fixture
def project(ledger, ctx):
    """A project created by alice at height 10, with bob as member and carol as viewer."""
    project_id = ledger.create_project(ctx(), "Alpha", "First project", 110).unwrap()
    ledger.add_team_member(ctx(), project_id, MEMBER, 2).unwrap()
    ledger.add_team_member(ctx(), project_id, VIEWER, 3).unwrap()
    return project_id


@pytest.fixture
def milestone(ledger, ctx, project):
    """Milestone 1 of the project, deadline 60."""
    return ledger.create_milestone(ctx(), project, "M1", "First milestone", 60).unwrap()
