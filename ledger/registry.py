"""Hierarchical registry of projects, milestones and tasks.

Owns the records and the scope counters that allocate identifiers: a global
project counter, a milestone counter per project and a task counter per
milestone. Each counter starts at zero and the next identifier is always
``count + 1``.
"""

from __future__ import annotations

from typing import Any, Dict, Iterator, List, Optional, Tuple, Union

from .errors import ErrorCode, LedgerError
from .models import (
    MAX_DESCRIPTION_LENGTH,
    MAX_NAME_LENGTH,
    CallContext,
    Milestone,
    Project,
    Role,
    Status,
    Task,
    require_dependencies,
    require_id,
    require_text,
)
from .roles import RoleStore


class Registry:
    """Records of the project hierarchy plus the role store they share."""

    def __init__(self):
        self.project_count = 0
        self._projects: Dict[int, Project] = {}
        self._milestones: Dict[Tuple[int, int], Milestone] = {}
        self._tasks: Dict[Tuple[int, int, int], Task] = {}
        self.roles = RoleStore(self.get_project)

    # ------------------------------------------------------------------
    # Lookups
    # ------------------------------------------------------------------

    def get_project(self, project_id: int) -> Optional[Project]:
        return self._projects.get(project_id)

    def get_milestone(self, project_id: int, milestone_id: int) -> Optional[Milestone]:
        return self._milestones.get((project_id, milestone_id))

    def get_task(self, project_id: int, milestone_id: int, task_id: int) -> Optional[Task]:
        return self._tasks.get((project_id, milestone_id, task_id))

    def milestones_of(self, project_id: int) -> List[Milestone]:
        """Milestones of a project in allocation order."""
        project = self._projects.get(project_id)
        if project is None:
            return []
        milestones = []
        for milestone_id in range(1, project.milestone_count + 1):
            milestone = self._milestones.get((project_id, milestone_id))
            if milestone is not None:
                milestones.append(milestone)
        return milestones

    def tasks_of(self, project_id: int, milestone_id: int) -> List[Task]:
        """Tasks of a milestone in allocation order."""
        milestone = self._milestones.get((project_id, milestone_id))
        if milestone is None:
            return []
        tasks = []
        for task_id in range(1, milestone.task_count + 1):
            task = self._tasks.get((project_id, milestone_id, task_id))
            if task is not None:
                tasks.append(task)
        return tasks

    def iter_project_tasks(self, project_id: int) -> Iterator[Task]:
        for milestone in self.milestones_of(project_id):
            yield from self.tasks_of(project_id, milestone.milestone_id)

    def require_project(self, project_id: int) -> Project:
        project = self._projects.get(project_id)
        if project is None:
            raise LedgerError(ErrorCode.PROJECT_NOT_FOUND)
        return project

    def require_milestone(self, project_id: int, milestone_id: int) -> Milestone:
        milestone = self._milestones.get((project_id, milestone_id))
        if milestone is None:
            raise LedgerError(ErrorCode.MILESTONE_NOT_FOUND)
        return milestone

    def require_task(self, project_id: int, milestone_id: int, task_id: int) -> Task:
        task = self._tasks.get((project_id, milestone_id, task_id))
        if task is None:
            raise LedgerError(ErrorCode.TASK_NOT_FOUND)
        return task

    def require_authorized(self, ctx: CallContext, project_id: int, required: Role) -> None:
        if not self.roles.authorize(project_id, ctx.caller, required):
            raise LedgerError(ErrorCode.NOT_AUTHORIZED)

    @staticmethod
    def require_future(ctx: CallContext, deadline: int) -> int:
        if not isinstance(deadline, int) or isinstance(deadline, bool) or deadline <= ctx.height:
            raise LedgerError(ErrorCode.INVALID_DEADLINE)
        return deadline

    # ------------------------------------------------------------------
    # Creation
    # ------------------------------------------------------------------

    def create_project(self, ctx: CallContext, name: str, description: str, deadline: int) -> int:
        """Create a project owned by the caller and return its id."""
        require_text(name, "name", MAX_NAME_LENGTH)
        require_text(description, "description", MAX_DESCRIPTION_LENGTH)
        self.require_future(ctx, deadline)

        project_id = self.project_count + 1
        self._projects[project_id] = Project(
            project_id=project_id,
            name=name,
            description=description,
            creator=ctx.caller,
            created_at=ctx.height,
            deadline=deadline,
        )
        self.roles.grant(project_id, ctx.caller, Role.ADMIN)
        self.project_count = project_id
        return project_id

    def create_milestone(self, ctx: CallContext, project_id: int, name: str, description: str, deadline: int) -> int:
        """Create a milestone in a project (admins only) and return its id."""
        require_id(project_id, "project_id")
        require_text(name, "name", MAX_NAME_LENGTH)
        require_text(description, "description", MAX_DESCRIPTION_LENGTH)

        project = self.require_project(project_id)
        self.require_authorized(ctx, project_id, Role.ADMIN)
        self.require_future(ctx, deadline)

        milestone_id = project.milestone_count + 1
        self._milestones[(project_id, milestone_id)] = Milestone(
            project_id=project_id,
            milestone_id=milestone_id,
            name=name,
            description=description,
            deadline=deadline,
        )
        project.milestone_count = milestone_id
        return milestone_id

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
        """Create a task in a milestone (members and above) and return its id.

        Dependencies are stored as given. They may name tasks that do not
        exist yet; they are only checked when the task is completed.
        """
        require_id(project_id, "project_id")
        require_id(milestone_id, "milestone_id")
        require_text(name, "name", MAX_NAME_LENGTH)
        require_text(description, "description", MAX_DESCRIPTION_LENGTH)
        deps = require_dependencies(dependencies)

        self.require_project(project_id)
        milestone = self.require_milestone(project_id, milestone_id)
        self.require_authorized(ctx, project_id, Role.MEMBER)
        self.require_future(ctx, deadline)

        task_id = milestone.task_count + 1
        self._tasks[(project_id, milestone_id, task_id)] = Task(
            project_id=project_id,
            milestone_id=milestone_id,
            task_id=task_id,
            name=name,
            description=description,
            deadline=deadline,
            dependencies=deps,
        )
        milestone.task_count = task_id
        return task_id

    # ------------------------------------------------------------------
    # Project and milestone status
    # ------------------------------------------------------------------

    def update_project_status(self, ctx: CallContext, project_id: int, new_status: Union[Status, str]) -> Status:
        require_id(project_id, "project_id")
        project = self.require_project(project_id)
        self.require_authorized(ctx, project_id, Role.ADMIN)
        status = Status.parse(new_status)
        project.status = status
        return status

    def update_milestone_status(
        self,
        ctx: CallContext,
        project_id: int,
        milestone_id: int,
        new_status: Union[Status, str],
    ) -> Status:
        require_id(project_id, "project_id")
        require_id(milestone_id, "milestone_id")
        self.require_project(project_id)
        milestone = self.require_milestone(project_id, milestone_id)
        self.require_authorized(ctx, project_id, Role.ADMIN)
        status = Status.parse(new_status)
        milestone.status = status
        return status

    # ------------------------------------------------------------------
    # Snapshot support
    # ------------------------------------------------------------------

    def snapshot(self) -> Dict[str, Any]:
        return {
            "project_count": self.project_count,
            "projects": [self._projects[key].to_dict() for key in sorted(self._projects)],
            "milestones": [self._milestones[key].to_dict() for key in sorted(self._milestones)],
            "tasks": [self._tasks[key].to_dict() for key in sorted(self._tasks)],
            "members": self.roles.snapshot(),
        }

    def restore(self, data: Dict[str, Any]) -> None:
        self.project_count = data.get("project_count", 0)
        self._projects = {}
        for row in data.get("projects", []):
            project = Project.from_dict(row)
            self._projects[project.project_id] = project
        self._milestones = {}
        for row in data.get("milestones", []):
            milestone = Milestone.from_dict(row)
            self._milestones[(milestone.project_id, milestone.milestone_id)] = milestone
        self._tasks = {}
        for row in data.get("tasks", []):
            task = Task.from_dict(row)
            self._tasks[(task.project_id, task.milestone_id, task.task_id)] = task
        self.roles.restore(data.get("members", []))
