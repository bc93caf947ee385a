"""Read-only projections over the ledger.

Reads are public and never fail on a missing key: they return ``None`` or an
empty list instead.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from .engine import TaskEngine
from .models import Milestone, Project, Role, Status, Task
from .registry import Registry


@dataclass(frozen=True, slots=True)
class DeadlineEntry:
    """A project, milestone or task deadline falling inside a window."""

    kind: str  # 'project', 'milestone', 'task'
    project_id: int
    name: str
    deadline: int
    status: Status
    milestone_id: Optional[int] = None
    task_id: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "kind": self.kind,
            "project_id": self.project_id,
            "milestone_id": self.milestone_id,
            "task_id": self.task_id,
            "name": self.name,
            "deadline": self.deadline,
            "status": self.status.value,
        }


@dataclass(slots=True)
class ProjectSummary:
    """Progress snapshot of one project."""

    project_id: int
    name: str
    status: Status
    height: int
    total_milestones: int = 0
    completed_milestones: int = 0
    total_tasks: int = 0
    tasks_by_status: Dict[str, int] = field(default_factory=dict)
    overdue_tasks: List[Dict[str, int]] = field(default_factory=list)
    blocked_tasks: List[Dict[str, Any]] = field(default_factory=list)
    team_size: int = 0
    communications: int = 0

    @property
    def completed_tasks(self) -> int:
        return self.tasks_by_status.get(Status.COMPLETED.value, 0)

    def get_completion_rate(self) -> float:
        """Get task completion rate as percentage."""
        if self.total_tasks == 0:
            return 0.0
        return (self.completed_tasks / self.total_tasks) * 100

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary representation."""
        return {
            "project_id": self.project_id,
            "name": self.name,
            "status": self.status.value,
            "height": self.height,
            "total_milestones": self.total_milestones,
            "completed_milestones": self.completed_milestones,
            "total_tasks": self.total_tasks,
            "completed_tasks": self.completed_tasks,
            "completion_rate": self.get_completion_rate(),
            "tasks_by_status": dict(self.tasks_by_status),
            "overdue_tasks": list(self.overdue_tasks),
            "blocked_tasks": list(self.blocked_tasks),
            "team_size": self.team_size,
            "communications": self.communications,
        }


def _in_window(deadline: int, start: int, end: int) -> bool:
    return start <= deadline <= end


class LedgerQueries:
    def __init__(self, registry: Registry, engine: TaskEngine):
        self.registry = registry
        self.engine = engine

    def get_project(self, project_id: int) -> Optional[Project]:
        return self.registry.get_project(project_id)

    def get_milestone(self, project_id: int, milestone_id: int) -> Optional[Milestone]:
        return self.registry.get_milestone(project_id, milestone_id)

    def get_task(self, project_id: int, milestone_id: int, task_id: int) -> Optional[Task]:
        return self.registry.get_task(project_id, milestone_id, task_id)

    def get_member_role(self, project_id: int, member: str) -> Optional[Role]:
        return self.registry.roles.role_of(project_id, member)

    def get_project_count(self) -> int:
        return self.registry.project_count

    def get_tasks_by_assignee(self, project_id: int, assignee: str) -> List[Task]:
        """Scan every milestone of the project for tasks assigned to ``assignee``."""
        return [task for task in self.registry.iter_project_tasks(project_id) if task.assignee == assignee]

    def get_upcoming_deadlines(self, project_id: int, blocks_window: int, height: int) -> List[DeadlineEntry]:
        """Deadlines of the project, its milestones and tasks within ``[height, height + blocks_window]``."""
        project = self.registry.get_project(project_id)
        if project is None or blocks_window < 0:
            return []
        end = height + blocks_window

        entries: List[DeadlineEntry] = []
        if _in_window(project.deadline, height, end):
            entries.append(DeadlineEntry("project", project_id, project.name, project.deadline, project.status))
        for milestone in self.registry.milestones_of(project_id):
            if _in_window(milestone.deadline, height, end):
                entries.append(DeadlineEntry(
                    "milestone", project_id, milestone.name, milestone.deadline, milestone.status,
                    milestone_id=milestone.milestone_id,
                ))
            for task in self.registry.tasks_of(project_id, milestone.milestone_id):
                if _in_window(task.deadline, height, end):
                    entries.append(DeadlineEntry(
                        "task", project_id, task.name, task.deadline, task.status,
                        milestone_id=task.milestone_id, task_id=task.task_id,
                    ))
        # Stable sort keeps hierarchy order for equal deadlines.
        entries.sort(key=lambda entry: entry.deadline)
        return entries

    def get_project_summary(self, project_id: int, height: int) -> Optional[ProjectSummary]:
        project = self.registry.get_project(project_id)
        if project is None:
            return None

        milestones = self.registry.milestones_of(project_id)
        summary = ProjectSummary(
            project_id=project_id,
            name=project.name,
            status=project.status,
            height=height,
            total_milestones=len(milestones),
            completed_milestones=sum(1 for m in milestones if m.status is Status.COMPLETED),
            tasks_by_status={status.value: 0 for status in Status},
            team_size=len(self.registry.roles.members(project_id)),
            communications=project.communication_count,
        )

        for task in self.registry.iter_project_tasks(project_id):
            summary.total_tasks += 1
            summary.tasks_by_status[task.status.value] += 1
            ref = {"milestone_id": task.milestone_id, "task_id": task.task_id}
            if task.is_open() and task.deadline < height:
                summary.overdue_tasks.append(ref)
            if task.is_open():
                blocking = self.engine.blocking_dependencies(task)
                if blocking:
                    summary.blocked_tasks.append({**ref, "blocked_by": blocking})

        return summary
