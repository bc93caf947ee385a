"""Task status and dependency engine.

Applies assignment and status changes to tasks. Completing a task is gated on
every declared dependency (a task id in the same milestone) already being
completed; a dependency that does not exist counts as incomplete.
"""

from __future__ import annotations

from typing import List, Union

from .errors import ErrorCode, LedgerError
from .models import CallContext, Role, Status, Task, require_id
from .registry import Registry


class TaskEngine:
    """Status transitions and assignment for tasks held by a registry."""

    def __init__(self, registry: Registry):
        self.registry = registry

    def _locate(self, project_id: int, milestone_id: int, task_id: int) -> Task:
        require_id(project_id, "project_id")
        require_id(milestone_id, "milestone_id")
        require_id(task_id, "task_id")
        self.registry.require_project(project_id)
        return self.registry.require_task(project_id, milestone_id, task_id)

    def _require_rank_or_assignee(self, ctx: CallContext, task: Task, required: Role) -> None:
        if task.assignee is not None and task.assignee == ctx.caller:
            return
        self.registry.require_authorized(ctx, task.project_id, required)

    def blocking_dependencies(self, task: Task) -> List[int]:
        """Return the dependency ids that keep ``task`` from completing, in declared order."""
        blocking = []
        for dependency_id in task.dependencies:
            dependency = self.registry.get_task(task.project_id, task.milestone_id, dependency_id)
            if dependency is None or dependency.status is not Status.COMPLETED:
                blocking.append(dependency_id)
        return blocking

    def assign_task(self, ctx: CallContext, project_id: int, milestone_id: int, task_id: int, assignee: str) -> str:
        """Set the assignee of a task.

        Admins may assign any task; the current assignee may hand the task on.
        The new assignee must already be on the project team.
        """
        task = self._locate(project_id, milestone_id, task_id)
        self._require_rank_or_assignee(ctx, task, Role.ADMIN)
        if not isinstance(assignee, str) or not self.registry.roles.is_member(project_id, assignee):
            raise LedgerError(ErrorCode.USER_NOT_FOUND)
        task.assignee = assignee
        return assignee

    def update_task_status(
        self,
        ctx: CallContext,
        project_id: int,
        milestone_id: int,
        task_id: int,
        new_status: Union[Status, str],
    ) -> Status:
        """Move a task to ``new_status``; members and the assignee may do this."""
        task = self._locate(project_id, milestone_id, task_id)
        self._require_rank_or_assignee(ctx, task, Role.MEMBER)
        status = Status.parse(new_status)
        if status is Status.COMPLETED and self.blocking_dependencies(task):
            raise LedgerError(ErrorCode.DEPENDENCY_INCOMPLETE)
        task.status = status
        return status
