"""Error taxonomy and result values for ledger operations.

Precondition failures are values: every mutating ledger call returns a
:class:`Result` that carries either the success payload or exactly one
:class:`ErrorCode`. Components signal a failed check by raising
:class:`LedgerError`, which the :class:`~ledger.ledger.Ledger` facade turns
into ``Result.failure`` before anything reaches the caller.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum, IntEnum
from typing import Any, Dict, Generic, Optional, TypeVar

T = TypeVar("T")


class ErrorCode(IntEnum):
    """Closed set of ledger error kinds."""

    NOT_AUTHORIZED = 100
    PROJECT_NOT_FOUND = 101
    MILESTONE_NOT_FOUND = 102
    TASK_NOT_FOUND = 103
    INVALID_DEADLINE = 104
    USER_NOT_FOUND = 105
    ALREADY_EXISTS = 106
    INVALID_STATUS = 107
    INVALID_ROLE = 108
    DEPENDENCY_INCOMPLETE = 109


_SUGGESTIONS: Dict[ErrorCode, str] = {
    ErrorCode.NOT_AUTHORIZED: "Ask a project admin (or the creator) to perform this action or grant you a higher role",
    ErrorCode.PROJECT_NOT_FOUND: "Check the project id with get_project",
    ErrorCode.MILESTONE_NOT_FOUND: "Check the milestone id with get_milestone",
    ErrorCode.TASK_NOT_FOUND: "Check the milestone and task ids with get_task",
    ErrorCode.INVALID_DEADLINE: "Deadlines must be strictly greater than the current height",
    ErrorCode.USER_NOT_FOUND: "Add the user to the project team before assigning work",
    ErrorCode.ALREADY_EXISTS: "The member already holds a role in this project",
    ErrorCode.INVALID_STATUS: "Use one of: pending, in_progress, completed, delayed, cancelled",
    ErrorCode.INVALID_ROLE: "Use one of the roles: 1 (admin), 2 (member), 3 (viewer)",
    ErrorCode.DEPENDENCY_INCOMPLETE: "Complete every dependency task first",
}


class LedgerError(Exception):
    """A precondition of a ledger operation did not hold."""

    def __init__(self, code: ErrorCode, message: Optional[str] = None):
        self.code = ErrorCode(code)
        super().__init__(message or self.code.name)


class InvalidArgument(ValueError):
    """An argument is outside its declared type bounds (length, count, sign)."""


class HeightRegressionError(ValueError):
    """The host supplied a height lower than one already observed."""


@dataclass(frozen=True, slots=True)
class Result(Generic[T]):
    """Outcome of a ledger call: a value or a single error code."""

    value: Optional[T] = None
    error: Optional[ErrorCode] = None

    @classmethod
    def success(cls, value: T) -> "Result[T]":
        return cls(value=value)

    @classmethod
    def failure(cls, code: ErrorCode) -> "Result[T]":
        return cls(error=ErrorCode(code))

    @property
    def ok(self) -> bool:
        return self.error is None

    def unwrap(self) -> T:
        """Return the value or raise :class:`LedgerError` for a failed result."""
        if self.error is not None:
            raise LedgerError(self.error)
        return self.value

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary representation."""
        if self.error is None:
            value = self.value
            if isinstance(value, Enum):
                value = value.value
            elif hasattr(value, "to_dict"):
                value = value.to_dict()
            return {"success": True, "result": value}
        return {
            "success": False,
            "error": self.error.name,
            "error_code": int(self.error),
            "suggestion": _SUGGESTIONS[self.error],
        }
