"""MCP server exposing the project ledger as tools."""

from __future__ import annotations

import threading
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Tuple

from mcp.server.fastmcp import FastMCP

from ledger.config import LedgerSettings
from ledger.ledger import Ledger
from ledger.errors import HeightRegressionError, InvalidArgument, Result
from ledger.ledger_logging import log_error_with_context, setup_logging
from ledger.models import CallContext, build_context
from ledger.workspace import Workspace

mcp = FastMCP("project-ledger")


SERVER_ROOT = Path(__file__).resolve().parent

_WORKSPACES: Dict[Tuple[Path, str], Workspace] = {}
_WORKSPACES_LOCK = threading.Lock()


def _candidate_bases() -> List[Path]:
    cwd = Path.cwd().resolve()
    bases: List[Path] = [cwd]
    bases.extend(cwd.parents)
    if SERVER_ROOT not in bases:
        bases.append(SERVER_ROOT)
    return bases


def _locate_workspace_root(state_dir: str) -> Optional[Path]:
    for base in _candidate_bases():
        if (base / state_dir).is_dir():
            return base
    return None


def _resolve_root(root: Optional[str], settings: LedgerSettings) -> Path:
    if root:
        resolved = Path(root).expanduser().resolve()
        if not resolved.exists():
            raise ValueError(f"Provided root '{root}' does not exist.")
        return resolved

    if settings.root:
        if not settings.root.exists():
            raise ValueError(
                f"Environment variable LEDGER_ROOT points to '{settings.root}', which does not exist."
            )
        return settings.root

    detected_root = _locate_workspace_root(settings.state_dir)
    if detected_root:
        return detected_root

    raise ValueError(
        "Unable to determine ledger root automatically. Provide the 'root' argument when calling the tool "
        "or set the LEDGER_ROOT environment variable."
    )


def _workspace(root: Optional[str]) -> Workspace:
    settings = LedgerSettings.from_env()
    resolved = _resolve_root(root, settings)
    key = (resolved, settings.state_dir)
    with _WORKSPACES_LOCK:
        workspace = _WORKSPACES.get(key)
        if workspace is None:
            workspace = Workspace(resolved, state_dir=settings.state_dir)
            _WORKSPACES[key] = workspace
        return workspace


def _request_error(operation: str, error: ValueError) -> Dict[str, Any]:
    if isinstance(error, (InvalidArgument, HeightRegressionError)):
        return {
            "success": False,
            "error": f"Invalid request for {operation}: {error}",
            "suggestion": "Check argument bounds and that height never decreases",
        }
    log_error_with_context(error, {"operation": operation})
    return {
        "success": False,
        "error": f"Failed to run {operation}: {error}",
        "suggestion": "Provide the 'root' argument or set LEDGER_ROOT",
    }


def _invoke(operation: str, root: Optional[str], call: Callable[[Ledger], Result], **tips: Any) -> Dict[str, Any]:
    """Run a ledger mutation and shape its outcome for the tool response."""
    try:
        result = call(_workspace(root).ledger)
    except ValueError as e:
        return _request_error(operation, e)

    response = result.to_dict()
    if result.ok:
        response.update(tips)
    return response


def _read(operation: str, root: Optional[str], query: Callable[[Ledger], Dict[str, Any]]) -> Dict[str, Any]:
    try:
        return query(_workspace(root).ledger)
    except ValueError as e:
        return _request_error(operation, e)


def _record(value: Any) -> Optional[Dict[str, Any]]:
    return value.to_dict() if value is not None else None


# ----------------------------------------------------------------------
# Projects and team
# ----------------------------------------------------------------------


@mcp.tool()
def create_project(
    caller: str,
    height: int,
    name: str,
    description: str,
    deadline: int,
    root: Optional[str] = None,
) -> Dict[str, Any]:
    """Create a project owned by the caller, who becomes its first admin.
    The deadline must be strictly greater than the current height."""

    return _invoke(
        "create_project",
        root,
        lambda ledger: ledger.create_project(CallContext(caller, height), name, description, deadline),
        next_suggested_action="add_team_member",
        workflow_tip="Add team members, then create milestones",
    )


@mcp.tool()
def add_team_member(
    caller: str,
    height: int,
    project_id: int,
    member: str,
    role: int,
    root: Optional[str] = None,
) -> Dict[str, Any]:
    """Add a member to the project team with role 1 (admin), 2 (member) or 3 (viewer).
    Only the creator or an admin may add members."""

    return _invoke(
        "add_team_member",
        root,
        lambda ledger: ledger.add_team_member(CallContext(caller, height), project_id, member, role),
    )


@mcp.tool()
def update_project_status(
    caller: str,
    height: int,
    project_id: int,
    status: str,
    root: Optional[str] = None,
) -> Dict[str, Any]:
    """Set the project status (admins only). Does not change milestones or tasks."""

    return _invoke(
        "update_project_status",
        root,
        lambda ledger: ledger.update_project_status(CallContext(caller, height), project_id, status),
    )


# ----------------------------------------------------------------------
# Milestones and tasks
# ----------------------------------------------------------------------


@mcp.tool()
def create_milestone(
    caller: str,
    height: int,
    project_id: int,
    name: str,
    description: str,
    deadline: int,
    root: Optional[str] = None,
) -> Dict[str, Any]:
    """Create a milestone in a project (admins only)."""

    return _invoke(
        "create_milestone",
        root,
        lambda ledger: ledger.create_milestone(
            CallContext(caller, height), project_id, name, description, deadline
        ),
        next_suggested_action="create_task",
    )


@mcp.tool()
def update_milestone_status(
    caller: str,
    height: int,
    project_id: int,
    milestone_id: int,
    status: str,
    root: Optional[str] = None,
) -> Dict[str, Any]:
    """Set a milestone status (admins only). Does not change its tasks."""

    return _invoke(
        "update_milestone_status",
        root,
        lambda ledger: ledger.update_milestone_status(
            CallContext(caller, height), project_id, milestone_id, status
        ),
    )


@mcp.tool()
def create_task(
    caller: str,
    height: int,
    project_id: int,
    milestone_id: int,
    name: str,
    description: str,
    deadline: int,
    dependencies: Optional[List[int]] = None,
    root: Optional[str] = None,
) -> Dict[str, Any]:
    """Create a task in a milestone (members and above).
    Dependencies are up to 10 task ids in the same milestone; they are checked when the task is completed."""

    return _invoke(
        "create_task",
        root,
        lambda ledger: ledger.create_task(
            CallContext(caller, height), project_id, milestone_id, name, description, deadline, dependencies
        ),
        next_suggested_action="assign_task",
    )


@mcp.tool()
def assign_task(
    caller: str,
    height: int,
    project_id: int,
    milestone_id: int,
    task_id: int,
    assignee: str,
    root: Optional[str] = None,
) -> Dict[str, Any]:
    """Assign a task to a team member. Admins may assign any task; the current assignee may reassign it."""

    return _invoke(
        "assign_task",
        root,
        lambda ledger: ledger.assign_task(
            CallContext(caller, height), project_id, milestone_id, task_id, assignee
        ),
    )


@mcp.tool()
def update_task_status(
    caller: str,
    height: int,
    project_id: int,
    milestone_id: int,
    task_id: int,
    status: str,
    root: Optional[str] = None,
) -> Dict[str, Any]:
    """Set a task status: pending, in_progress, completed, delayed or cancelled.
    Completing requires every dependency task to be completed."""

    response = _invoke(
        "update_task_status",
        root,
        lambda ledger: ledger.update_task_status(
            CallContext(caller, height), project_id, milestone_id, task_id, status
        ),
    )
    if response.get("error") == "DEPENDENCY_INCOMPLETE":
        response["blocked_by"] = _workspace(root).ledger.get_blocking_dependencies(
            project_id, milestone_id, task_id
        )
    return response


# ----------------------------------------------------------------------
# Communication log
# ----------------------------------------------------------------------


@mcp.tool()
def post_communication(
    caller: str,
    height: int,
    project_id: int,
    context_type: str,
    message: str,
    milestone_id: Optional[int] = None,
    task_id: Optional[int] = None,
    root: Optional[str] = None,
) -> Dict[str, Any]:
    """Append a message to the project log about the project, a milestone or a task.
    Any team member may post; entries can never be edited or removed."""

    return _invoke(
        "post_communication",
        root,
        lambda ledger: ledger.post_communication(
            CallContext(caller, height), project_id, build_context(context_type, milestone_id, task_id), message
        ),
    )


@mcp.tool()
def get_communications(
    project_id: int,
    context_type: Optional[str] = None,
    milestone_id: Optional[int] = None,
    task_id: Optional[int] = None,
    root: Optional[str] = None,
) -> Dict[str, Any]:
    """List the project's communications in order, optionally for one context."""

    def query(ledger: Ledger) -> Dict[str, Any]:
        context = build_context(context_type, milestone_id, task_id) if context_type else None
        entries = ledger.get_communications(project_id, context)
        return {
            "project_id": project_id,
            "communications": [entry.to_dict() for entry in entries],
            "count": len(entries),
        }

    return _read("get_communications", root, query)


# ----------------------------------------------------------------------
# Queries
# ----------------------------------------------------------------------


@mcp.tool()
def get_project(project_id: int, root: Optional[str] = None) -> Dict[str, Any]:
    """Return a project record, or null when it does not exist."""

    return _read("get_project", root, lambda ledger: {"project": _record(ledger.get_project(project_id))})


@mcp.tool()
def get_milestone(project_id: int, milestone_id: int, root: Optional[str] = None) -> Dict[str, Any]:
    """Return a milestone record, or null when it does not exist."""

    return _read(
        "get_milestone",
        root,
        lambda ledger: {"milestone": _record(ledger.get_milestone(project_id, milestone_id))},
    )


@mcp.tool()
def get_task(project_id: int, milestone_id: int, task_id: int, root: Optional[str] = None) -> Dict[str, Any]:
    """Return a task record with the dependencies that currently block it."""

    def query(ledger: Ledger) -> Dict[str, Any]:
        task = ledger.get_task(project_id, milestone_id, task_id)
        return {
            "task": _record(task),
            "blocked_by": ledger.get_blocking_dependencies(project_id, milestone_id, task_id) if task else [],
        }

    return _read("get_task", root, query)


@mcp.tool()
def get_member_role(project_id: int, member: str, root: Optional[str] = None) -> Dict[str, Any]:
    """Return the member's role rank in the project, or null for non-members."""

    def query(ledger: Ledger) -> Dict[str, Any]:
        role = ledger.get_member_role(project_id, member)
        return {
            "project_id": project_id,
            "member": member,
            "role": int(role) if role is not None else None,
            "role_name": role.name.lower() if role is not None else None,
        }

    return _read("get_member_role", root, query)


@mcp.tool()
def get_team(project_id: int, root: Optional[str] = None) -> Dict[str, Any]:
    """List the team members of a project."""

    return _read(
        "get_team",
        root,
        lambda ledger: {
            "project_id": project_id,
            "members": [member.to_dict() for member in ledger.get_team(project_id)],
        },
    )


@mcp.tool()
def get_tasks_by_assignee(project_id: int, assignee: str, root: Optional[str] = None) -> Dict[str, Any]:
    """List every task in the project assigned to ``assignee``."""

    def query(ledger: Ledger) -> Dict[str, Any]:
        tasks = ledger.get_tasks_by_assignee(project_id, assignee)
        return {"tasks": [task.to_dict() for task in tasks], "total_count": len(tasks)}

    return _read("get_tasks_by_assignee", root, query)


@mcp.tool()
def get_upcoming_deadlines(
    project_id: int,
    blocks_window: int,
    height: Optional[int] = None,
    root: Optional[str] = None,
) -> Dict[str, Any]:
    """List project, milestone and task deadlines between height and height + blocks_window."""

    def query(ledger: Ledger) -> Dict[str, Any]:
        entries = ledger.get_upcoming_deadlines(project_id, blocks_window, height)
        return {"deadlines": [entry.to_dict() for entry in entries], "count": len(entries)}

    return _read("get_upcoming_deadlines", root, query)


@mcp.tool()
def get_project_status(project_id: int, height: Optional[int] = None, root: Optional[str] = None) -> Dict[str, Any]:
    """Summarize progress: task counts by status, overdue tasks and tasks blocked by dependencies."""

    def query(ledger: Ledger) -> Dict[str, Any]:
        summary = ledger.get_project_summary(project_id, height)
        if summary is None:
            return {
                "project_status": None,
                "error": f"Project {project_id} not found",
                "suggestion": "Check the project id with get_project",
            }
        return {"project_status": summary.to_dict()}

    return _read("get_project_status", root, query)


@mcp.tool()
def check_permission(project_id: int, caller: str, required_role: int, root: Optional[str] = None) -> Dict[str, Any]:
    """Report whether ``caller`` may act at ``required_role`` rank in the project."""

    return _read(
        "check_permission",
        root,
        lambda ledger: {
            "project_id": project_id,
            "caller": caller,
            "required_role": required_role,
            "authorized": ledger.authorize(project_id, caller, required_role),
        },
    )


if __name__ == "__main__":
    settings = LedgerSettings.from_env()
    setup_logging(settings.log_level, settings.log_file)
    mcp.run(transport="stdio")
