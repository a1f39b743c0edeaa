# equipment_tracker/services/audit.py
"""
Audit sinks - where the store reports what it changed.

The store treats every sink as best effort: a failing sink is logged and
never fails the operation that triggered it.
"""
from __future__ import annotations
import logging
import time
from pathlib import Path
from typing import List, Protocol

from equipment_tracker.backends.base import PersistenceBackend


class AuditSink(Protocol):
    def record(self, action: str) -> None: ...


class FileAuditSink:
    """Appends `[<ctime>] <action>` lines to the audit log file."""

    def __init__(self, path: Path):
        self.path = Path(path)

    def record(self, action: str) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        with open(self.path, "a", encoding="utf-8") as fh:
            fh.write(f"[{time.ctime()}] {action}\n")


class DatabaseAuditSink:
    """Inserts an audit_log row through the database backend."""

    def __init__(self, backend: PersistenceBackend, user_info: str = "system"):
        self.backend = backend
        self.user_info = user_info

    def record(self, action: str) -> None:
        self.backend.record_audit(action, self.user_info)


class CompositeAuditSink:

    def __init__(self, sinks: List[AuditSink]):
        self.sinks = list(sinks)

    def record(self, action: str) -> None:
        for sink in self.sinks:
            try:
                sink.record(action)
            except Exception:
                logging.getLogger(__name__).exception("Audit sink %r failed", sink)


class MemoryAuditSink:
    """Keeps actions in a list. Handy for tests and dry runs."""

    def __init__(self):
        self.actions: List[str] = []

    def record(self, action: str) -> None:
        self.actions.append(action)


def build_audit_sink(settings, backend: PersistenceBackend) -> CompositeAuditSink:
    sinks: List[AuditSink] = [FileAuditSink(settings.data_path(settings.AUDIT_LOG_FILE))]
    if backend.accepts_live_writes:
        sinks.append(DatabaseAuditSink(backend))
    return CompositeAuditSink(sinks)
