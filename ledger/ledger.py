"""Ledger facade.

Wires the role store, registry, task engine, communication log and query
surface together and is the only entry point the host calls. Every mutating
call runs under one lock, checks all of its preconditions before the first
write, and comes back as a :class:`~ledger.errors.Result`.
"""

from __future__ import annotations

import logging
import threading
from functools import wraps
from typing import Any, Callable, Dict, List, Optional, Union

from .audit import CommunicationLog
from .engine import TaskEngine
from .errors import HeightRegressionError, LedgerError, Result
from .ledger_logging import log_operation, log_performance, observability_hooks
from .models import (
    CallContext,
    Communication,
    CommunicationContext,
    Milestone,
    Project,
    Role,
    Status,
    Task,
    TeamMember,
)
from .queries import DeadlineEntry, LedgerQueries, ProjectSummary
from .registry import Registry

logger = logging.getLogger("ledger.core")

SNAPSHOT_VERSION = 1

CommitListener = Callable[["Ledger", str], None]


def _operation(name: str, event: str):
    """Run a mutating ledger call atomically and report it as a Result."""
    def decorator(func):
        @log_performance(name)
        @wraps(func)
        def wrapper(self: "Ledger", ctx: CallContext, *args, **kwargs) -> Result:
            with self._lock:
                self._check_height(ctx)
                with log_operation(name, caller=ctx.caller, height=ctx.height) as op:
                    before = self._capture() if self._listeners else None
                    try:
                        value = func(self, ctx, *args, **kwargs)
                    except LedgerError as e:
                        op.reject(e.code.name)
                        return Result.failure(e.code)
                    self._commit(name, ctx, before)

                if name == "create_project":
                    project_id = value
                else:
                    project_id = kwargs.get("project_id", args[0] if args else None)
                observability_hooks.log_ledger_event(
                    event,
                    project_id=project_id,
                    caller=ctx.caller,
                    height=ctx.height,
                    result=value.value if isinstance(value, Status) else value,
                )
                return Result.success(value)

        return wrapper
    return decorator


class Ledger:
    """Project governance ledger: projects, milestones, tasks, team and log."""

    def __init__(self):
        self._lock = threading.RLock()
        self.height = 0
        self.registry = Registry()
        self.roles = self.registry.roles
        self.engine = TaskEngine(self.registry)
        self.log = CommunicationLog(self.registry)
        self.queries = LedgerQueries(self.registry, self.engine)
        self._listeners: List[CommitListener] = []

    # ------------------------------------------------------------------
    # Plumbing
    # ------------------------------------------------------------------

    def add_commit_listener(self, listener: CommitListener) -> None:
        """Call ``listener(ledger, operation)`` after every successful mutation."""
        self._listeners.append(listener)

    def _notify(self, operation: str) -> None:
        for listener in self._listeners:
            listener(self, operation)

    def _capture(self) -> Dict[str, Any]:
        return {"height": self.height, **self.registry.snapshot(), "communications": self.log.snapshot()}

    def _rollback(self, state: Dict[str, Any]) -> None:
        self.height = state["height"]
        self.registry.restore(state)
        self.log.restore(state["communications"])

    def _commit(self, operation: str, ctx: CallContext, before: Optional[Dict[str, Any]]) -> None:
        """Advance the height and run commit listeners; undo the call if one fails."""
        self.height = ctx.height
        try:
            self._notify(operation)
        except Exception:
            if before is not None:
                self._rollback(before)
                logger.warning(f"Rolled back {operation} at height {ctx.height} after a commit listener failed")
            raise

    def _check_height(self, ctx: CallContext) -> None:
        if ctx.height < self.height:
            raise HeightRegressionError(
                f"Height {ctx.height} is lower than the last observed height {self.height}"
            )

    # ------------------------------------------------------------------
    # Identity & roles
    # ------------------------------------------------------------------

    def authorize(self, project_id: int, caller: str, required_rank: Union[Role, int]) -> bool:
        with self._lock:
            return self.roles.authorize(project_id, caller, required_rank)

    @_operation("add_team_member", event="team_member_added")
    def add_team_member(self, ctx: CallContext, project_id: int, member: str, role: Union[Role, int, str]) -> bool:
        return self.roles.add_team_member(ctx, project_id, member, role)

    # ------------------------------------------------------------------
    # Hierarchy
    # ------------------------------------------------------------------

    @_operation("create_project", event="project_created")
    def create_project(self, ctx: CallContext, name: str, description: str, deadline: int) -> int:
        return self.registry.create_project(ctx, name, description, deadline)

    @_operation("create_milestone", event="milestone_created")
    def create_milestone(self, ctx: CallContext, project_id: int, name: str, description: str, deadline: int) -> int:
        return self.registry.create_milestone(ctx, project_id, name, description, deadline)

    @_operation("create_task", event="task_created")
    def create_task(
        self,
        ctx: CallContext,
        project_id: int,
        milestone_id: int,
        name: str,
        description: str,
        deadline: int,
        dependencies: Optional[List[int]] = None,
    ) -> int:
        return self.registry.create_task(ctx, project_id, milestone_id, name, description, deadline, dependencies)

    @_operation("update_project_status", event="project_status_changed")
    def update_project_status(self, ctx: CallContext, project_id: int, new_status: Union[Status, str]) -> Status:
        return self.registry.update_project_status(ctx, project_id, new_status)

    @_operation("update_milestone_status", event="milestone_status_changed")
    def update_milestone_status(
        self,
        ctx: CallContext,
        project_id: int,
        milestone_id: int,
        new_status: Union[Status, str],
    ) -> Status:
        return self.registry.update_milestone_status(ctx, project_id, milestone_id, new_status)

    # ------------------------------------------------------------------
    # Tasks
    # ------------------------------------------------------------------

    @_operation("assign_task", event="task_assigned")
    def assign_task(self, ctx: CallContext, project_id: int, milestone_id: int, task_id: int, assignee: str) -> str:
        return self.engine.assign_task(ctx, project_id, milestone_id, task_id, assignee)

    @_operation("update_task_status", event="task_status_changed")
    def update_task_status(
        self,
        ctx: CallContext,
        project_id: int,
        milestone_id: int,
        task_id: int,
        new_status: Union[Status, str],
    ) -> Status:
        return self.engine.update_task_status(ctx, project_id, milestone_id, task_id, new_status)

    # ------------------------------------------------------------------
    # Communication log
    # ------------------------------------------------------------------

    @_operation("post_communication", event="communication_posted")
    def post_communication(
        self,
        ctx: CallContext,
        project_id: int,
        context: CommunicationContext,
        message: str,
    ) -> int:
        return self.log.post_communication(ctx, project_id, context, message)

    def get_communication(self, project_id: int, comm_id: int) -> Optional[Communication]:
        with self._lock:
            return self.log.get_communication(project_id, comm_id)

    def get_communications(
        self,
        project_id: int,
        context: Optional[CommunicationContext] = None,
    ) -> List[Communication]:
        with self._lock:
            return self.log.get_communications(project_id, context)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def get_project(self, project_id: int) -> Optional[Project]:
        with self._lock:
            return self.queries.get_project(project_id)

    def get_milestone(self, project_id: int, milestone_id: int) -> Optional[Milestone]:
        with self._lock:
            return self.queries.get_milestone(project_id, milestone_id)

    def get_task(self, project_id: int, milestone_id: int, task_id: int) -> Optional[Task]:
        with self._lock:
            return self.queries.get_task(project_id, milestone_id, task_id)

    def get_member_role(self, project_id: int, member: str) -> Optional[Role]:
        with self._lock:
            return self.queries.get_member_role(project_id, member)

    def get_team(self, project_id: int) -> List[TeamMember]:
        with self._lock:
            return self.roles.members(project_id)

    def get_project_count(self) -> int:
        with self._lock:
            return self.queries.get_project_count()

    def get_tasks_by_assignee(self, project_id: int, assignee: str) -> List[Task]:
        with self._lock:
            return self.queries.get_tasks_by_assignee(project_id, assignee)

    def get_upcoming_deadlines(
        self,
        project_id: int,
        blocks_window: int,
        height: Optional[int] = None,
    ) -> List[DeadlineEntry]:
        """Deadlines within ``blocks_window`` of ``height`` (default: last observed height)."""
        with self._lock:
            at = self.height if height is None else height
            return self.queries.get_upcoming_deadlines(project_id, blocks_window, at)

    def get_blocking_dependencies(self, project_id: int, milestone_id: int, task_id: int) -> List[int]:
        with self._lock:
            task = self.queries.get_task(project_id, milestone_id, task_id)
            if task is None:
                return []
            return self.engine.blocking_dependencies(task)

    def get_project_summary(self, project_id: int, height: Optional[int] = None) -> Optional[ProjectSummary]:
        with self._lock:
            at = self.height if height is None else height
            return self.queries.get_project_summary(project_id, at)

    # ------------------------------------------------------------------
    # Snapshots
    # ------------------------------------------------------------------

    def to_dict(self) -> Dict[str, Any]:
        """Convert the full ledger state to a JSON-compatible dictionary."""
        with self._lock:
            return {
                "version": SNAPSHOT_VERSION,
                "height": self.height,
                **self.registry.snapshot(),
                "communications": self.log.snapshot(),
            }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Ledger":
        """Rebuild a ledger from :meth:`to_dict` output."""
        version = data.get("version", SNAPSHOT_VERSION)
        if version != SNAPSHOT_VERSION:
            raise ValueError(f"Unsupported ledger snapshot version: {version}")
        ledger = cls()
        ledger.height = data.get("height", 0)
        ledger.registry.restore(data)
        ledger.log.restore(data.get("communications", []))
        logger.debug(f"Restored ledger with {ledger.registry.project_count} projects at height {ledger.height}")
        return ledger
