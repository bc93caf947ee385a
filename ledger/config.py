"""Environment-driven settings for the ledger server."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping, Optional

ROOT_ENV = "LEDGER_ROOT"
STATE_DIR_ENV = "LEDGER_STATE_DIR"
LOG_LEVEL_ENV = "LEDGER_LOG_LEVEL"
LOG_FILE_ENV = "LEDGER_LOG_FILE"

DEFAULT_STATE_DIR = ".ledger"


@dataclass(frozen=True, slots=True)
class LedgerSettings:
    root: Optional[Path] = None
    state_dir: str = DEFAULT_STATE_DIR
    log_level: int = logging.INFO
    log_file: Optional[Path] = None

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "LedgerSettings":
        """Read settings from ``environ`` (defaults to ``os.environ``)."""
        env = os.environ if environ is None else environ

        root = env.get(ROOT_ENV)
        log_file = env.get(LOG_FILE_ENV)
        level_name = env.get(LOG_LEVEL_ENV, "INFO").strip().upper()
        level = logging.getLevelName(level_name)
        if not isinstance(level, int):
            raise ValueError(f"Environment variable {LOG_LEVEL_ENV} has unknown level '{level_name}'.")

        return cls(
            root=Path(root).expanduser().resolve() if root else None,
            state_dir=env.get(STATE_DIR_ENV) or DEFAULT_STATE_DIR,
            log_level=level,
            log_file=Path(log_file).expanduser() if log_file else None,
        )
