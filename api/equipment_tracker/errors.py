# equipment_tracker/errors.py
"""
Error taxonomy for the record store and its persistence backends.
"""
from __future__ import annotations
from typing import Optional


class TrackerError(Exception):
    """Base class for every error the tracker raises on purpose."""


class NotFoundError(TrackerError):
    def __init__(self, kind: str, ident: int):
        self.kind = kind
        self.ident = ident
        super().__init__(f"{kind} {ident} not found")


class CapacityExceededError(TrackerError):
    def __init__(self, kind: str, limit: int):
        self.kind = kind
        self.limit = limit
        super().__init__(f"Maximum {kind} limit reached ({limit})")


class BackendConnectionError(TrackerError):
    """Backend unreachable at startup. Always recovered by falling back to files."""


class RecordValidationError(TrackerError, ValueError):
    def __init__(self, field: str, value, reason: Optional[str] = None):
        self.field = field
        self.value = value
        super().__init__(f"Invalid {field}={value!r}" + (f": {reason}" if reason else ""))


class SnapshotIOError(TrackerError, OSError):
    def __init__(self, path, reason: str):
        self.path = path
        self.reason = reason
        super().__init__(f"Snapshot I/O failed for {path}: {reason}")
