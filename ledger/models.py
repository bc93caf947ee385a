"""Data models for the project ledger.

This module contains the records stored by the ledger (projects, milestones,
tasks, team memberships and communications), the role and status
enumerations, and the per-call context supplied by the host.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum, IntEnum
from typing import Any, Dict, List, Optional, Union

from .errors import ErrorCode, InvalidArgument, LedgerError

MAX_NAME_LENGTH = 100
MAX_DESCRIPTION_LENGTH = 500
MAX_MESSAGE_LENGTH = 1000
MAX_DEPENDENCIES = 10

# Rank of a caller with no membership. Never satisfies an authorization check.
NO_ROLE = 0


class Role(IntEnum):
    """Team roles ordered by privilege; a lower value is more privileged."""

    ADMIN = 1
    MEMBER = 2
    VIEWER = 3

    @classmethod
    def parse(cls, value: Union["Role", int, str]) -> "Role":
        """Resolve a role from its rank or name, raising INVALID_ROLE otherwise."""
        if isinstance(value, bool):
            raise LedgerError(ErrorCode.INVALID_ROLE)
        if isinstance(value, str):
            name = value.strip().upper()
            if name.isdigit():
                value = int(name)
            elif name in cls.__members__:
                return cls[name]
            else:
                raise LedgerError(ErrorCode.INVALID_ROLE)
        try:
            return cls(value)
        except ValueError:
            raise LedgerError(ErrorCode.INVALID_ROLE) from None


class Status(str, Enum):
    """Lifecycle status shared by projects, milestones and tasks."""

    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    DELAYED = "delayed"
    CANCELLED = "cancelled"

    @classmethod
    def parse(cls, value: Union["Status", str]) -> "Status":
        """Resolve a status from its value or name, raising INVALID_STATUS otherwise."""
        if isinstance(value, cls):
            return value
        if isinstance(value, str):
            normalized = value.strip().lower().replace("-", "_").replace(" ", "_")
            for status in cls:
                if status.value == normalized:
                    return status
        raise LedgerError(ErrorCode.INVALID_STATUS)


@dataclass(frozen=True, slots=True)
class CallContext:
    """Per-call envelope from the host: who is calling and at which height."""

    caller: str
    height: int

    def __post_init__(self) -> None:
        if not isinstance(self.caller, str) or not self.caller:
            raise InvalidArgument("caller identity is required")
        if not isinstance(self.height, int) or isinstance(self.height, bool) or self.height < 0:
            raise InvalidArgument(f"height must be a non-negative integer, got {self.height!r}")


# ----------------------------------------------------------------------
# Communication contexts
# ----------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class ProjectContext:
    """A communication about the project as a whole."""

    context_type = "project"

    def context_id(self, project_id: int) -> int:
        return project_id

    def to_dict(self, project_id: int) -> Dict[str, Any]:
        return {"context_type": self.context_type, "context_id": project_id}


@dataclass(frozen=True, slots=True)
class MilestoneContext:
    """A communication about one milestone."""

    milestone_id: int
    context_type = "milestone"

    def context_id(self, project_id: int) -> int:
        return self.milestone_id

    def to_dict(self, project_id: int) -> Dict[str, Any]:
        return {
            "context_type": self.context_type,
            "context_id": self.milestone_id,
            "milestone_id": self.milestone_id,
        }


@dataclass(frozen=True, slots=True)
class TaskContext:
    """A communication about one task."""

    milestone_id: int
    task_id: int
    context_type = "task"

    def context_id(self, project_id: int) -> int:
        return self.task_id

    def to_dict(self, project_id: int) -> Dict[str, Any]:
        return {
            "context_type": self.context_type,
            "context_id": self.task_id,
            "milestone_id": self.milestone_id,
            "task_id": self.task_id,
        }


CommunicationContext = Union[ProjectContext, MilestoneContext, TaskContext]


def build_context(
    context_type: str,
    milestone_id: Optional[int] = None,
    task_id: Optional[int] = None,
) -> CommunicationContext:
    """Build a communication context from its tag and identifiers."""
    tag = (context_type or "").strip().lower()
    if tag == "project":
        return ProjectContext()
    if tag == "milestone":
        if milestone_id is None:
            raise InvalidArgument("milestone context requires milestone_id")
        return MilestoneContext(require_id(milestone_id, "milestone_id"))
    if tag == "task":
        if milestone_id is None or task_id is None:
            raise InvalidArgument("task context requires milestone_id and task_id")
        return TaskContext(require_id(milestone_id, "milestone_id"), require_id(task_id, "task_id"))
    raise InvalidArgument(f"Unknown context type '{context_type}', expected project, milestone or task")


def context_from_dict(data: Dict[str, Any]) -> CommunicationContext:
    return build_context(data["context_type"], data.get("milestone_id"), data.get("task_id"))


# ----------------------------------------------------------------------
# Argument bounds
# ----------------------------------------------------------------------


def require_id(value: Any, label: str) -> int:
    """Validate a strictly positive identifier."""
    if not isinstance(value, int) or isinstance(value, bool) or value < 1:
        raise InvalidArgument(f"{label} must be a positive integer, got {value!r}")
    return value


def require_text(value: Any, label: str, limit: int) -> str:
    """Validate a bounded text field."""
    if not isinstance(value, str):
        raise InvalidArgument(f"{label} must be a string")
    if len(value) > limit:
        raise InvalidArgument(f"{label} exceeds {limit} characters ({len(value)})")
    return value


def require_dependencies(value: Optional[List[int]]) -> List[int]:
    """Validate the dependency list of a task (order preserved, no existence check)."""
    dependencies = list(value or [])
    if len(dependencies) > MAX_DEPENDENCIES:
        raise InvalidArgument(f"A task may declare at most {MAX_DEPENDENCIES} dependencies, got {len(dependencies)}")
    return [require_id(dep, "dependency") for dep in dependencies]


# ----------------------------------------------------------------------
# Records
# ----------------------------------------------------------------------


@dataclass(slots=True)
class Project:
    """Top-level record; owns the milestone and communication counters."""

    project_id: int
    name: str
    description: str
    creator: str
    created_at: int
    deadline: int
    status: Status = Status.PENDING
    milestone_count: int = 0
    communication_count: int = 0

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary representation."""
        return {
            "project_id": self.project_id,
            "name": self.name,
            "description": self.description,
            "creator": self.creator,
            "created_at": self.created_at,
            "deadline": self.deadline,
            "status": self.status.value,
            "milestone_count": self.milestone_count,
            "communication_count": self.communication_count,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Project":
        """Create from dictionary representation."""
        return cls(
            project_id=data["project_id"],
            name=data["name"],
            description=data.get("description", ""),
            creator=data["creator"],
            created_at=data.get("created_at", 0),
            deadline=data["deadline"],
            status=Status(data.get("status", Status.PENDING.value)),
            milestone_count=data.get("milestone_count", 0),
            communication_count=data.get("communication_count", 0),
        )


@dataclass(slots=True)
class Milestone:
    """A milestone within a project; owns the task counter."""

    project_id: int
    milestone_id: int
    name: str
    description: str
    deadline: int
    status: Status = Status.PENDING
    task_count: int = 0

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary representation."""
        return {
            "project_id": self.project_id,
            "milestone_id": self.milestone_id,
            "name": self.name,
            "description": self.description,
            "deadline": self.deadline,
            "status": self.status.value,
            "task_count": self.task_count,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Milestone":
        """Create from dictionary representation."""
        return cls(
            project_id=data["project_id"],
            milestone_id=data["milestone_id"],
            name=data["name"],
            description=data.get("description", ""),
            deadline=data["deadline"],
            status=Status(data.get("status", Status.PENDING.value)),
            task_count=data.get("task_count", 0),
        )


@dataclass(slots=True)
class Task:
    """A unit of work inside a milestone."""

    project_id: int
    milestone_id: int
    task_id: int
    name: str
    description: str
    deadline: int
    status: Status = Status.PENDING
    assignee: Optional[str] = None
    dependencies: List[int] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary representation."""
        return {
            "project_id": self.project_id,
            "milestone_id": self.milestone_id,
            "task_id": self.task_id,
            "name": self.name,
            "description": self.description,
            "deadline": self.deadline,
            "status": self.status.value,
            "assignee": self.assignee,
            "dependencies": list(self.dependencies),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Task":
        """Create from dictionary representation."""
        return cls(
            project_id=data["project_id"],
            milestone_id=data["milestone_id"],
            task_id=data["task_id"],
            name=data["name"],
            description=data.get("description", ""),
            deadline=data["deadline"],
            status=Status(data.get("status", Status.PENDING.value)),
            assignee=data.get("assignee"),
            dependencies=list(data.get("dependencies", [])),
        )

    def is_open(self) -> bool:
        """Check if the task still counts as outstanding work."""
        return self.status not in (Status.COMPLETED, Status.CANCELLED)


@dataclass(frozen=True, slots=True)
class TeamMember:
    project_id: int
    member: str
    role: Role

    def to_dict(self) -> Dict[str, Any]:
        return {"project_id": self.project_id, "member": self.member, "role": int(self.role)}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "TeamMember":
        return cls(project_id=data["project_id"], member=data["member"], role=Role(data["role"]))


@dataclass(frozen=True, slots=True)
class Communication:
    """An immutable entry of a project's communication log."""

    project_id: int
    comm_id: int
    sender: str
    timestamp: int
    message: str
    context: CommunicationContext

    @property
    def context_type(self) -> str:
        return self.context.context_type

    @property
    def context_id(self) -> int:
        return self.context.context_id(self.project_id)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary representation."""
        return {
            "project_id": self.project_id,
            "comm_id": self.comm_id,
            "sender": self.sender,
            "timestamp": self.timestamp,
            "message": self.message,
            **self.context.to_dict(self.project_id),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Communication":
        """Create from dictionary representation."""
        return cls(
            project_id=data["project_id"],
            comm_id=data["comm_id"],
            sender=data["sender"],
            timestamp=data["timestamp"],
            message=data["message"],
            context=context_from_dict(data),
        )
