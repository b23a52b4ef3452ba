"""
logger.py - Structured Logging for blobtrace
=============================================
Provides consistent, structured logging across tracing, feature
computation and filtering.

Features:
    - Component-tagged log entries with attached data
    - Timed steps (context manager)
    - Optional console, file and JSON-lines output
    - Forwarding to the standard ``logging`` module (``blobtrace.<component>``)
"""

import json
import logging
import threading
import time
from contextlib import contextmanager
from dataclasses import asdict, dataclass, field
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Optional


class LogComponent(Enum):
    """Pipeline component identifiers for structured logging."""
    TRACING = "TRACING"
    FEATURES = "FEATURES"
    FILTERING = "FILTERING"
    REGISTRY = "REGISTRY"
    IO = "IO"
    ERROR = "ERROR"


@dataclass
class LogEntry:
    """Structured log entry with metadata."""
    timestamp: str
    level: str
    component: str
    message: str
    data: Dict[str, Any] = field(default_factory=dict)
    duration_ms: Optional[float] = None

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization."""
        return asdict(self)

    def to_json(self) -> str:
        """Convert to JSON string."""
        return json.dumps(self.to_dict(), default=str)


@dataclass
class PerformanceMetrics:
    """Collected timings for a run."""
    step_durations: Dict[str, float] = field(default_factory=dict)
    tracing_time_ms: float = 0.0
    filtering_time_ms: float = 0.0
    errors: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)


class BlobLogger:
    """
    Centralized logger for blobtrace.

    Usage:
        logger = BlobLogger(verbose=True)
        logger.step(LogComponent.TRACING, "Traced 3 blobs", blobs=3)

        with logger.timed_step(LogComponent.FILTERING, "Filtering by perimeter"):
            ...
    """

    LEVELS = {
        "INFO": logging.INFO,
        "WARNING": logging.WARNING,
        "ERROR": logging.ERROR,
    }

    def __init__(
        self,
        verbose: bool = False,
        log_file: Optional[str] = None,
        json_log: bool = False,
        collect_metrics: bool = True,
        max_entries: int = 10_000,
    ):
        """
        Initialize the logger.

        Args:
            verbose: Print entries to the console
            log_file: Path to log file (optional)
            json_log: Output logs as JSON lines
            collect_metrics: Collect timing metrics
            max_entries: Number of entries kept in memory
        """
        self.verbose = verbose
        self.log_file = Path(log_file) if log_file else None
        self.json_log = json_log
        self.collect_metrics = collect_metrics
        self.max_entries = max_entries

        self.entries: List[LogEntry] = []
        self.metrics = PerformanceMetrics()
        self._lock = threading.Lock()

        if self.log_file:
            self.log_file.parent.mkdir(parents=True, exist_ok=True)

    def step(self, component: LogComponent, message: str, **data) -> None:
        """Log an informational step."""
        self._emit("INFO", component, message, data)

    def warning(self, component: LogComponent, message: str, **data) -> None:
        """Log a warning message."""
        with self._lock:
            self.metrics.warnings.append(message)
        self._emit("WARNING", component, message, data)

    def error(self, component: LogComponent, message: str, exception: Exception = None, **data) -> None:
        """Log an error message."""
        if exception:
            data["exception_type"] = type(exception).__name__
            data["exception_message"] = str(exception)
        with self._lock:
            self.metrics.errors.append(message)
        self._emit("ERROR", component, message, data)

    @contextmanager
    def timed_step(self, component: LogComponent, message: str, **data):
        """
        Context manager for timing a step.

        Usage:
            with logger.timed_step(LogComponent.TRACING, "Tracing contours"):
                tracer.trace(raster)
        """
        start_time = time.perf_counter()
        self.step(component, f"{message}...", **data)
        try:
            yield
        finally:
            duration_ms = (time.perf_counter() - start_time) * 1000
            self._emit("INFO", component, f"{message} completed in {duration_ms:.1f}ms", {}, duration_ms)

            if self.collect_metrics:
                with self._lock:
                    key = component.value.lower()
                    self.metrics.step_durations[key] = self.metrics.step_durations.get(key, 0.0) + duration_ms
                    if component == LogComponent.TRACING:
                        self.metrics.tracing_time_ms += duration_ms
                    elif component == LogComponent.FILTERING:
                        self.metrics.filtering_time_ms += duration_ms

    def _emit(
        self,
        level: str,
        component: LogComponent,
        message: str,
        data: Dict[str, Any],
        duration_ms: Optional[float] = None,
    ) -> None:
        entry = LogEntry(
            timestamp=datetime.now().isoformat(),
            level=level,
            component=component.value,
            message=message,
            data=data,
            duration_ms=duration_ms,
        )
        with self._lock:
            self.entries.append(entry)
            if len(self.entries) > self.max_entries:
                del self.entries[: len(self.entries) - self.max_entries]

        std_logger = logging.getLogger(f"blobtrace.{component.value.lower()}")
        if data:
            std_logger.log(self.LEVELS[level], "%s %s", message, json.dumps(data, default=str))
        else:
            std_logger.log(self.LEVELS[level], "%s", message)

        if self.verbose:
            self._print_entry(entry)
        if self.log_file:
            self._write_to_file(entry)

    def _print_entry(self, entry: LogEntry) -> None:
        """Print a log entry to console."""
        if self.json_log:
            print(entry.to_json())
            return
        component_tag = f"[{entry.component}]"
        print(f"{component_tag:12} {entry.message}")
        for key, value in entry.data.items():
            if not key.startswith("_"):
                print(f"  └─ {key}: {value}")

    def _write_to_file(self, entry: LogEntry) -> None:
        """Write entry to log file."""
        with open(self.log_file, "a", encoding="utf-8") as f:
            if self.json_log:
                f.write(entry.to_json() + "\n")
            else:
                f.write(f"[{entry.timestamp}] [{entry.level}] [{entry.component}] {entry.message}\n")
                if entry.data:
                    f.write(f"  Data: {json.dumps(entry.data, default=str)}\n")

    def entries_for(self, component: LogComponent, level: Optional[str] = None) -> List[LogEntry]:
        """Entries of one component, optionally restricted to a level."""
        with self._lock:
            return [
                e for e in self.entries
                if e.component == component.value and (level is None or e.level == level)
            ]

    def get_metrics_summary(self) -> Dict[str, Any]:
        """Get a summary dictionary of metrics."""
        return {
            "total_entries": len(self.entries),
            "tracing_time_ms": self.metrics.tracing_time_ms,
            "filtering_time_ms": self.metrics.filtering_time_ms,
            "step_durations": dict(self.metrics.step_durations),
            "error_count": len(self.metrics.errors),
            "warning_count": len(self.metrics.warnings),
        }

    def clear(self) -> None:
        """Clear all log entries and reset metrics."""
        with self._lock:
            self.entries.clear()
            self.metrics = PerformanceMetrics()


# Global logger instance
_global_logger: Optional[BlobLogger] = None


def get_logger() -> BlobLogger:
    """Get or create the global logger instance."""
    global _global_logger
    if _global_logger is None:
        _global_logger = BlobLogger()
    return _global_logger


def set_logger(logger: BlobLogger) -> None:
    """Set the global logger instance."""
    global _global_logger
    _global_logger = logger


__all__ = [
    "LogComponent",
    "LogEntry",
    "PerformanceMetrics",
    "BlobLogger",
    "get_logger",
    "set_logger",
]
