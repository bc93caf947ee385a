"""Logging and observability for the project ledger.

All loggers live under the ``ledger`` namespace. A ledger call ends in one of
three outcomes, and both the operation log and the duration metrics are
tagged with it:

* ``success``  the mutation was committed;
* ``rejected`` a precondition failed and the call returned a failed
  :class:`~ledger.errors.Result` carrying an error kind;
* ``error``    an exception escaped the call.
"""

from __future__ import annotations

import json
import logging
import threading
import time
from collections import deque
from contextlib import contextmanager
from datetime import datetime, timezone
from functools import wraps
from pathlib import Path
from typing import Any, Callable, Deque, Dict, Iterator, List, Optional, Union

from .errors import Result

STATUS_SUCCESS = "success"
STATUS_REJECTED = "rejected"
STATUS_ERROR = "error"

_operations_logger = logging.getLogger("ledger.operations")
_performance_logger = logging.getLogger("ledger.performance")
_errors_logger = logging.getLogger("ledger.errors")


def _utcnow() -> str:
    return datetime.now(timezone.utc).isoformat()


def setup_logging(log_level: Union[str, int] = logging.INFO, log_file: Optional[Path] = None) -> None:
    """Attach console (and optional JSON file) handlers to the ``ledger`` logger."""
    root = logging.getLogger("ledger")
    root.setLevel(log_level)
    for handler in list(root.handlers):
        root.removeHandler(handler)
        handler.close()

    console = logging.StreamHandler()
    console.setLevel(log_level)
    console.setFormatter(logging.Formatter(
        fmt="%(asctime)s %(levelname)-7s %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    ))
    root.addHandler(console)

    if log_file:
        file_handler = logging.FileHandler(log_file, encoding="utf-8")
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(JsonFormatter())
        root.addHandler(file_handler)

    root.info("Ledger logging initialized")


class JsonFormatter(logging.Formatter):
    """One JSON object per record; ``extra_fields`` are merged at the top level."""

    def format(self, record: logging.LogRecord) -> str:
        entry: Dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
            "message": record.getMessage(),
        }
        entry.update(getattr(record, "extra_fields", {}))
        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(entry, default=str)


def _extra(**fields: Any) -> Dict[str, Any]:
    return {"extra_fields": fields}


# ----------------------------------------------------------------------
# Metrics
# ----------------------------------------------------------------------


class PerformanceMonitor:
    """Bounded in-memory history of named metrics, safe to share across threads."""

    def __init__(self, max_samples: int = 1000):
        self.max_samples = max_samples
        self._lock = threading.Lock()
        self.metrics: Dict[str, Deque[Dict[str, Any]]] = {}

    def record_metric(self, name: str, value: Any, tags: Optional[Dict[str, str]] = None) -> None:
        sample = {"timestamp": _utcnow(), "name": name, "value": value, "tags": dict(tags or {})}
        with self._lock:
            self.metrics.setdefault(name, deque(maxlen=self.max_samples)).append(sample)
        _performance_logger.debug(f"Metric recorded: {name}={value}", extra=_extra(**sample))

    def get_metrics(self, name: Optional[str] = None) -> Dict[str, List[Dict[str, Any]]]:
        """Copy of the recorded samples, for one metric or all of them."""
        with self._lock:
            if name:
                return {name: list(self.metrics.get(name, ()))}
            return {key: list(samples) for key, samples in self.metrics.items()}

    def count_by_status(self, name: str) -> Dict[str, int]:
        counts: Dict[str, int] = {}
        for sample in self.get_metrics(name)[name]:
            status = sample["tags"].get("status", STATUS_SUCCESS)
            counts[status] = counts.get(status, 0) + 1
        return counts

    def clear(self) -> None:
        with self._lock:
            self.metrics.clear()


performance_monitor = PerformanceMonitor()


def _outcome_tags(value: Any) -> Dict[str, str]:
    if isinstance(value, Result) and not value.ok:
        return {"status": STATUS_REJECTED, "error_kind": value.error.name}
    return {"status": STATUS_SUCCESS}


def log_performance(operation_name: str):
    """Record ``<operation_name>_duration`` tagged with the call's outcome."""
    metric = f"{operation_name}_duration"

    def decorator(func):
        @wraps(func)
        def wrapper(*args, **kwargs):
            started = time.perf_counter()
            try:
                value = func(*args, **kwargs)
            except Exception as e:
                elapsed = time.perf_counter() - started
                performance_monitor.record_metric(
                    metric, elapsed, {"status": STATUS_ERROR, "error_type": type(e).__name__}
                )
                _performance_logger.error(
                    f"{operation_name} raised {type(e).__name__} after {elapsed:.3f}s",
                    extra=_extra(operation=operation_name, duration=elapsed, status=STATUS_ERROR),
                )
                raise
            performance_monitor.record_metric(metric, time.perf_counter() - started, _outcome_tags(value))
            return value

        return wrapper
    return decorator


# ----------------------------------------------------------------------
# Operation log
# ----------------------------------------------------------------------


class OperationRecord:
    """Handle yielded by :func:`log_operation`; mark it rejected to log a refusal."""

    __slots__ = ("name", "fields", "error_kind")

    def __init__(self, name: str, fields: Dict[str, Any]):
        self.name = name
        self.fields = fields
        self.error_kind: Optional[str] = None

    def reject(self, error_kind: str) -> None:
        self.error_kind = error_kind

    @property
    def status(self) -> str:
        return STATUS_REJECTED if self.error_kind else STATUS_SUCCESS


@contextmanager
def log_operation(operation_name: str, **fields) -> Iterator[OperationRecord]:
    """Log the start and the outcome of one ledger operation.

    Success is logged at DEBUG, a rejection at INFO with its error kind, and an
    escaping exception at ERROR with the traceback.
    """
    record = OperationRecord(operation_name, fields)
    started = time.perf_counter()
    _operations_logger.debug(
        f"Starting operation: {operation_name}",
        extra=_extra(operation=operation_name, status="started", **fields),
    )
    try:
        yield record
    except Exception as e:
        elapsed = time.perf_counter() - started
        _operations_logger.error(
            f"Failed operation: {operation_name} after {elapsed:.3f}s - {e}",
            extra=_extra(
                operation=operation_name,
                status=STATUS_ERROR,
                duration=elapsed,
                error_type=type(e).__name__,
                **fields,
            ),
            exc_info=True,
        )
        raise

    elapsed = time.perf_counter() - started
    outcome = _extra(operation=operation_name, status=record.status, duration=elapsed, **fields)
    if record.error_kind:
        outcome["extra_fields"]["error_kind"] = record.error_kind
        _operations_logger.info(f"Rejected operation: {operation_name} ({record.error_kind})", extra=outcome)
    else:
        _operations_logger.debug(f"Completed operation: {operation_name} in {elapsed:.3f}s", extra=outcome)


# ----------------------------------------------------------------------
# Events
# ----------------------------------------------------------------------


class ObservabilityHooks:
    """Named ledger events with subscriber callbacks."""

    def __init__(self):
        self.hooks: Dict[str, List[Callable[..., Any]]] = {}
        self.logger = logging.getLogger("ledger.observability")

    def register_hook(self, event_type: str, callback: Callable[..., Any]) -> None:
        self.hooks.setdefault(event_type, []).append(callback)
        self.logger.debug(f"Registered hook for event: {event_type}")

    def unregister_hook(self, event_type: str, callback: Callable[..., Any]) -> None:
        callbacks = self.hooks.get(event_type, [])
        if callback in callbacks:
            callbacks.remove(callback)

    def trigger_hooks(self, event_type: str, **data) -> None:
        """Call every subscriber; a failing subscriber is logged and skipped."""
        for hook in list(self.hooks.get(event_type, [])):
            try:
                hook(**data)
            except Exception as e:
                # Events fire after the write is committed and cannot undo it.
                self.logger.error(f"Hook failed for event {event_type}: {e}")

    def log_ledger_event(self, event_type: str, project_id: Optional[int] = None, **data) -> None:
        """Log a committed ledger event and pass it to its subscribers."""
        payload = {"timestamp": _utcnow(), "project_id": project_id, **data}
        self.logger.info(f"Ledger event: {event_type}", extra=_extra(event_type=event_type, **payload))
        self.trigger_hooks(event_type, **payload)


observability_hooks = ObservabilityHooks()


def log_error_with_context(error: Exception, context: Dict[str, Any], **extra_fields) -> None:
    """Log ``error`` at ERROR with the operation context that produced it."""
    _errors_logger.error(
        f"Error in {context.get('operation', 'unknown operation')}: {error}",
        extra=_extra(
            timestamp=_utcnow(),
            error_type=type(error).__name__,
            error_message=str(error),
            context=context,
            **extra_fields,
        ),
        exc_info=True,
    )
