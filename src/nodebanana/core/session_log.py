"""Structured per-run log sessions.

Each workflow run (or single-node regeneration) records one
:class:`LogSession`: an ordered list of entries with a level, a category,
a message, and an optional context dictionary.  The session is flushed to a
:class:`FileLogSink` when the run completes, pauses, or fails.  Entries are
also forwarded to the standard ``logging`` module so they show up in the
normal application log.

Context values are sanitised before they are stored:

- ``prompt`` strings longer than 200 characters are truncated
- ``image`` / ``images`` data URLs are replaced by a size/format summary
- nested dictionaries are sanitised recursively

Usage
-----
::

    session_log = SessionLogger(FileLogSink(config.logs_dir))
    session_log.start_session()
    session_log.info("workflow.start", "Workflow execution started", {"nodeCount": 3})
    session_log.end_session()   # flushes to logs/<session_id>.json
"""

from __future__ import annotations

import json
import logging
import secrets
import threading
import traceback
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Literal

from nodebanana.core.images import describe_data_url

logger = logging.getLogger(__name__)

LogLevel = Literal["debug", "info", "warn", "error"]

LogCategory = Literal[
    "workflow.start",
    "workflow.end",
    "workflow.error",
    "workflow.validation",
    "node.execution",
    "node.error",
    "api.gemini",
    "api.llm",
    "api.error",
    "file.save",
    "file.load",
    "file.error",
    "state.change",
    "system",
]

_PROMPT_LIMIT = 200

_LEVELS = {
    "debug": logging.DEBUG,
    "info": logging.INFO,
    "warn": logging.WARNING,
    "error": logging.ERROR,
}


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


@dataclass
class LogEntry:
    timestamp: str
    level: LogLevel
    category: LogCategory
    message: str
    context: dict[str, Any] | None = None
    error: dict[str, str | None] | None = None


@dataclass
class LogSession:
    session_id: str
    start_time: str
    end_time: str | None = None
    entries: list[LogEntry] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "sessionId": self.session_id,
            "startTime": self.start_time,
            "endTime": self.end_time,
            "entries": [
                {key: value for key, value in asdict(entry).items() if value is not None}
                for entry in self.entries
            ],
        }


def sanitize_context(context: dict[str, Any]) -> dict[str, Any]:
    """Return a copy of *context* safe to persist (truncated prompts, no image payloads)."""
    sanitized: dict[str, Any] = {}
    for key, value in context.items():
        if key == "prompt" and isinstance(value, str):
            if len(value) > _PROMPT_LIMIT:
                value = value[:_PROMPT_LIMIT] + "...[truncated]"
            sanitized[key] = value
        elif key in ("image", "images"):
            if isinstance(value, str) and value.startswith("data:image"):
                sanitized[key] = describe_data_url(value)
            elif isinstance(value, list):
                sanitized[key] = [
                    describe_data_url(item)
                    if isinstance(item, str) and item.startswith("data:image")
                    else item
                    for item in value
                ]
            else:
                sanitized[key] = value
        elif isinstance(value, dict):
            sanitized[key] = sanitize_context(value)
        else:
            sanitized[key] = value
    return sanitized


def new_session_id() -> str:
    stamp = datetime.now(timezone.utc).strftime("%Y-%m-%dT%H-%M-%S")
    return f"exec-{stamp}-{secrets.token_hex(3)}"


class FileLogSink:
    """Write sessions as ``<logs_dir>/<session_id>.json``, keeping the newest *max_sessions*."""

    def __init__(self, logs_dir: Path, max_sessions: int = 10) -> None:
        self.logs_dir = Path(logs_dir)
        self.max_sessions = max_sessions

    def write(self, session: LogSession) -> Path:
        self.logs_dir.mkdir(parents=True, exist_ok=True)
        path = self.logs_dir / f"{session.session_id}.json"
        with open(path, "w", encoding="utf-8") as handle:
            json.dump(session.to_dict(), handle, indent=2, ensure_ascii=False)
        self.rotate()
        return path

    def rotate(self) -> None:
        files = sorted(
            self.logs_dir.glob("exec-*.json"),
            key=lambda p: p.stat().st_mtime,
            reverse=True,
        )
        for stale in files[self.max_sessions :]:
            try:
                stale.unlink()
            except OSError:
                logger.warning("Could not remove old log session %s", stale)


class SessionLogger:
    """Collects entries for the current run and flushes them to a sink.

    Args:
        sink: Destination for finished sessions.  ``None`` keeps sessions in
            memory only.
    """

    def __init__(self, sink: FileLogSink | None = None) -> None:
        self.sink = sink
        self._lock = threading.Lock()
        self._current: LogSession | None = None
        self.last_session: LogSession | None = None

    @property
    def current_session(self) -> LogSession | None:
        return self._current

    def start_session(self) -> str:
        """Open a new session, flushing any session still open."""
        if self._current is not None:
            self.end_session()
        session = LogSession(session_id=new_session_id(), start_time=_now_iso())
        with self._lock:
            self._current = session
        self.log("info", "system", f"Session started: {session.session_id}")
        return session.session_id

    def end_session(self) -> LogSession | None:
        """Close the current session and flush it to the sink.

        A failing sink is logged and otherwise ignored; log persistence never
        changes the outcome of a run.
        """
        with self._lock:
            session = self._current
        if session is None:
            return None
        self.log("info", "system", f"Session ended: {session.session_id}")
        session.end_time = _now_iso()
        with self._lock:
            self._current = None
            self.last_session = session
        if self.sink is not None:
            try:
                self.sink.write(session)
            except OSError:
                logger.exception("Failed to save log session %s", session.session_id)
        return session

    def log(
        self,
        level: LogLevel,
        category: LogCategory,
        message: str,
        context: dict[str, Any] | None = None,
        error: BaseException | None = None,
    ) -> None:
        entry = LogEntry(timestamp=_now_iso(), level=level, category=category, message=message)
        if context:
            entry.context = sanitize_context(context)
        if error is not None:
            entry.error = {
                "message": str(error),
                "name": type(error).__name__,
                "stack": "".join(
                    traceback.format_exception(type(error), error, error.__traceback__)
                ),
            }
        with self._lock:
            if self._current is not None:
                self._current.entries.append(entry)
        logger.log(_LEVELS[level], "[%s] %s %s", category, message, entry.context or "")

    def info(self, category: LogCategory, message: str, context: dict[str, Any] | None = None):
        self.log("info", category, message, context)

    def warn(self, category: LogCategory, message: str, context: dict[str, Any] | None = None):
        self.log("warn", category, message, context)

    def error(
        self,
        category: LogCategory,
        message: str,
        context: dict[str, Any] | None = None,
        error: BaseException | None = None,
    ):
        self.log("error", category, message, context, error)
