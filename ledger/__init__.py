"""Project Ledger - hierarchical project governance core."""

from .errors import ErrorCode, InvalidArgument, LedgerError, Result
from .ledger import Ledger
from .models import CallContext, Role, Status, build_context
from .workspace import Workspace

__all__ = [
    "Ledger",
    "Workspace",
    "CallContext",
    "Result",
    "ErrorCode",
    "LedgerError",
    "InvalidArgument",
    "Role",
    "Status",
    "build_context",
]
