"""Append-only communication log, one sequence per project."""

from __future__ import annotations

from typing import Any, Dict, List, Optional

from .errors import ErrorCode, LedgerError
from .models import (
    MAX_MESSAGE_LENGTH,
    CallContext,
    Communication,
    CommunicationContext,
    MilestoneContext,
    ProjectContext,
    Role,
    TaskContext,
    require_id,
    require_text,
)
from .registry import Registry


class CommunicationLog:
    def __init__(self, registry: Registry):
        self.registry = registry
        self._entries: Dict[int, List[Communication]] = {}

    def post_communication(
        self,
        ctx: CallContext,
        project_id: int,
        context: CommunicationContext,
        message: str,
    ) -> int:
        """Append a message from the caller and return its comm id.

        Any team role may post. The context target is recorded as given.
        """
        require_id(project_id, "project_id")
        require_text(message, "message", MAX_MESSAGE_LENGTH)
        if not isinstance(context, (ProjectContext, MilestoneContext, TaskContext)):
            raise TypeError(f"Unsupported communication context: {context!r}")

        project = self.registry.require_project(project_id)
        self.registry.require_authorized(ctx, project_id, Role.VIEWER)

        comm_id = project.communication_count + 1
        entry = Communication(
            project_id=project_id,
            comm_id=comm_id,
            sender=ctx.caller,
            timestamp=ctx.height,
            message=message,
            context=context,
        )
        self._entries.setdefault(project_id, []).append(entry)
        project.communication_count = comm_id
        return comm_id

    def get_communication(self, project_id: int, comm_id: int) -> Optional[Communication]:
        entries = self._entries.get(project_id, [])
        # Entries are appended in comm id order starting at 1.
        if isinstance(comm_id, int) and 1 <= comm_id <= len(entries):
            return entries[comm_id - 1]
        return None

    def get_communications(
        self,
        project_id: int,
        context: Optional[CommunicationContext] = None,
    ) -> List[Communication]:
        """Entries of a project in append order, optionally limited to one context."""
        entries = self._entries.get(project_id, [])
        if context is None:
            return list(entries)
        return [entry for entry in entries if entry.context == context]

    def snapshot(self) -> List[Dict[str, Any]]:
        return [entry.to_dict() for project_id in sorted(self._entries) for entry in self._entries[project_id]]

    def restore(self, rows: List[Dict[str, Any]]) -> None:
        self._entries = {}
        for row in rows:
            entry = Communication.from_dict(row)
            self._entries.setdefault(entry.project_id, []).append(entry)
        for entries in self._entries.values():
            entries.sort(key=lambda entry: entry.comm_id)
