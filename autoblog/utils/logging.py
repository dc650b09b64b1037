"""
Centralized logging for Autoblog.

AppLogger writes to the standard ``logging`` hierarchy and also keeps the
most recent entries in an in-memory buffer, so the admin routes can show
recent job failures without an external log aggregator.
"""

import logging
from collections import deque
from datetime import datetime, timezone
from enum import Enum
from threading import Lock
from typing import Any, Dict, List, Optional


class LogLevel(str, Enum):
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class LogEntry:
    """A single buffered log entry."""

    def __init__(
        self,
        level: LogLevel,
        message: str,
        source: str,
        metadata: Optional[Dict[str, Any]] = None
    ):
        self.timestamp = datetime.now(timezone.utc)
        self.level = level
        self.message = message
        self.source = source
        self.metadata = metadata or {}

    @property
    def job_id(self) -> Optional[str]:
        return self.metadata.get("job_id")

    def to_dict(self) -> Dict[str, Any]:
        return {
            "timestamp": self.timestamp.isoformat(),
            "level": self.level.value,
            "source": self.source,
            "message": self.message,
            "metadata": self.metadata
        }


class LogBuffer:
    """Thread-safe ring buffer of recent log entries."""

    def __init__(self, max_size: int = 1000):
        self._entries: deque = deque(maxlen=max_size)
        self._lock = Lock()
        self._counts: Dict[str, int] = {}

    def add(self, entry: LogEntry):
        with self._lock:
            self._entries.append(entry)
            self._counts[entry.level.value] = self._counts.get(entry.level.value, 0) + 1

    def get_recent(
        self,
        limit: int = 100,
        level: Optional[LogLevel] = None,
        source: Optional[str] = None,
        job_id: Optional[str] = None
    ) -> List[Dict[str, Any]]:
        """Most recent entries first, optionally filtered."""
        with self._lock:
            entries = list(self._entries)

        if level:
            entries = [e for e in entries if e.level == level]
        if source:
            entries = [e for e in entries if e.source == source]
        if job_id:
            entries = [e for e in entries if e.job_id == job_id]

        entries.reverse()
        return [e.to_dict() for e in entries[:limit]]

    def get_stats(self) -> Dict[str, Any]:
        with self._lock:
            by_source: Dict[str, int] = {}
            for entry in self._entries:
                by_source[entry.source] = by_source.get(entry.source, 0) + 1
            return {
                "buffered": len(self._entries),
                "by_source": by_source,
                "totals_by_level": dict(self._counts)
            }

    def clear(self):
        with self._lock:
            self._entries.clear()
            self._counts.clear()


_log_buffer = LogBuffer()


def get_log_buffer() -> LogBuffer:
    """Get the process-wide log buffer."""
    return _log_buffer


class AppLogger:
    """
    Logger that records to both Python logging and the in-memory buffer.

    Keyword arguments become structured metadata:

        job_logger.info("Job claimed", job_id=job_id, attempt=2)
    """

    def __init__(self, source: str, buffer: Optional[LogBuffer] = None):
        self.source = source
        self._buffer = buffer or _log_buffer
        self._logger = logging.getLogger(f"autoblog.{source}")

    def _log(self, level: LogLevel, message: str, metadata: Dict[str, Any]):
        self._buffer.add(LogEntry(level, message, self.source, metadata or None))

        suffix = " | " + ", ".join(f"{k}={v}" for k, v in metadata.items()) if metadata else ""
        self._logger.log(getattr(logging, level.value.upper()), f"{message}{suffix}")

    def debug(self, message: str, **metadata):
        self._log(LogLevel.DEBUG, message, metadata)

    def info(self, message: str, **metadata):
        self._log(LogLevel.INFO, message, metadata)

    def warning(self, message: str, **metadata):
        self._log(LogLevel.WARNING, message, metadata)

    def error(self, message: str, **metadata):
        self._log(LogLevel.ERROR, message, metadata)

    def critical(self, message: str, **metadata):
        self._log(LogLevel.CRITICAL, message, metadata)


def get_logger(source: str) -> AppLogger:
    return AppLogger(source)


def configure_logging(level: str = "INFO"):
    """Install a console handler on the ``autoblog`` logger hierarchy."""
    root = logging.getLogger("autoblog")
    root.setLevel(level.upper())
    if not root.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(
            "%(asctime)s [%(levelname)s] %(name)s: %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S"
        ))
        root.addHandler(handler)


# Pre-configured loggers for common sources
job_logger = AppLogger("job_queue")
llm_logger = AppLogger("llm")
wordpress_logger = AppLogger("wordpress")
api_logger = AppLogger("api")
