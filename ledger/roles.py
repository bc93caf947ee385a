"""Identity and role store.

Holds the per-project membership table and answers the authorization
question every privileged ledger call asks first.
"""

from __future__ import annotations

from typing import Callable, Dict, List, Mapping, Optional, Union

from .errors import ErrorCode, LedgerError
from .models import NO_ROLE, CallContext, Project, Role, TeamMember

ProjectLookup = Callable[[int], Optional[Project]]


def authorize(
    project: Optional[Project],
    memberships: Mapping[str, Role],
    caller: str,
    required_rank: Union[Role, int],
) -> bool:
    """Return True if ``caller`` may act at ``required_rank`` in ``project``.

    The creator is always authorized. Anyone else needs a recorded role whose
    rank is at least as privileged (numerically lower or equal) as the one
    required. A missing project or membership fails closed.
    """
    if project is None:
        return False
    if caller == project.creator:
        return True
    rank = int(memberships.get(caller, NO_ROLE))
    if rank == NO_ROLE:
        return False
    return rank <= int(required_rank)


class RoleStore:
    """Per-project mapping from member identity to role."""

    def __init__(self, project_lookup: ProjectLookup):
        self._project_lookup = project_lookup
        self._memberships: Dict[int, Dict[str, Role]] = {}

    def authorize(self, project_id: int, caller: str, required_rank: Union[Role, int]) -> bool:
        """Evaluate the authorization predicate against current state."""
        return authorize(
            self._project_lookup(project_id),
            self._memberships.get(project_id, {}),
            caller,
            required_rank,
        )

    def role_of(self, project_id: int, member: str) -> Optional[Role]:
        return self._memberships.get(project_id, {}).get(member)

    def is_member(self, project_id: int, member: str) -> bool:
        return self.role_of(project_id, member) is not None

    def members(self, project_id: int) -> List[TeamMember]:
        """List team members of a project in the order they joined."""
        return [
            TeamMember(project_id=project_id, member=member, role=role)
            for member, role in self._memberships.get(project_id, {}).items()
        ]

    def grant(self, project_id: int, member: str, role: Role) -> None:
        """Record a membership without checks; used at project creation and load."""
        self._memberships.setdefault(project_id, {})[member] = role

    def add_team_member(self, ctx: CallContext, project_id: int, member: str, role: Union[Role, int, str]) -> bool:
        """Add ``member`` to the project team with ``role``.

        Only the creator or an existing admin may add members; a member that
        already holds a role cannot be added again.
        """
        if self._project_lookup(project_id) is None:
            raise LedgerError(ErrorCode.PROJECT_NOT_FOUND)
        if not self.authorize(project_id, ctx.caller, Role.ADMIN):
            raise LedgerError(ErrorCode.NOT_AUTHORIZED)
        parsed = Role.parse(role)
        if self.is_member(project_id, member):
            raise LedgerError(ErrorCode.ALREADY_EXISTS)
        self.grant(project_id, member, parsed)
        return True

    # ------------------------------------------------------------------
    # Snapshot support
    # ------------------------------------------------------------------

    def snapshot(self) -> List[Dict[str, object]]:
        return [
            member.to_dict()
            for project_id in sorted(self._memberships)
            for member in self.members(project_id)
        ]

    def restore(self, rows: List[Dict[str, object]]) -> None:
        self._memberships.clear()
        for row in rows:
            member = TeamMember.from_dict(row)
            self.grant(member.project_id, member.member, member.role)
