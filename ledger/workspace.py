"""Workspace persistence for the ledger.

A workspace keeps one ledger as JSON under ``<root>/<state_dir>/state`` and
writes it back after every successful mutation.
"""

from __future__ import annotations

import json
import logging
import os
from pathlib import Path
from typing import Optional

from .config import DEFAULT_STATE_DIR
from .ledger import Ledger
from .ledger_logging import log_error_with_context, observability_hooks

logger = logging.getLogger("ledger.workspace")

STATE_FILENAME = "ledger.json"


class Workspace:
    """A ledger bound to a directory on disk."""

    def __init__(self, root: Path | str, state_dir: str = DEFAULT_STATE_DIR):
        """Initialize workspace with given root directory."""
        self.root = Path(root).resolve()
        if not self.root.exists():
            raise ValueError(f"Workspace root '{root}' does not exist.")

        self.base_dir = self.root / state_dir
        self.state_dir = self.base_dir / "state"
        try:
            self.state_dir.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            logger.error(f"Failed to create workspace directories: {e}")
            raise RuntimeError(f"Could not initialize workspace at {self.root}: {e}") from e

        self.ledger = self._load()
        self.ledger.add_commit_listener(self._on_commit)

        logger.info(f"Workspace initialized at {self.root}")
        observability_hooks.log_ledger_event("workspace_initialized", root=str(self.root))

    @property
    def state_path(self) -> Path:
        return self.state_dir / STATE_FILENAME

    def _load(self) -> Ledger:
        path = self.state_path
        if not path.exists():
            return Ledger()
        try:
            data = json.loads(path.read_text(encoding="utf-8"))
            return Ledger.from_dict(data)
        except (json.JSONDecodeError, KeyError, TypeError, ValueError) as e:
            log_error_with_context(e, {"operation": "load_ledger", "path": str(path)})
            raise RuntimeError(f"Ledger state at {path} is unreadable: {e}") from e

    def save(self) -> Path:
        """Write the ledger to disk, replacing the previous file in one step."""
        path = self.state_path
        tmp_path = path.with_suffix(".json.tmp")
        tmp_path.write_text(json.dumps(self.ledger.to_dict(), indent=2), encoding="utf-8")
        os.replace(tmp_path, path)
        return path

    def _on_commit(self, ledger: Ledger, operation: str) -> None:
        try:
            self.save()
        except OSError as e:
            log_error_with_context(e, {"operation": operation, "path": str(self.state_path)})
            raise
        logger.debug(f"Persisted ledger after {operation}")
