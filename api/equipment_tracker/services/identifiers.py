# equipment_tracker/services/identifiers.py
"""
Identifier Allocator - per-kind monotonically increasing IDs.

Handles:
- Issuing new IDs for equipment and supply requests
- Advancing past IDs loaded from a snapshot or the database
- Re-syncing to IDs assigned by the database on insert
"""
from __future__ import annotations
from typing import Dict, Iterable, Optional

EQUIPMENT = "equipment"
REQUEST = "request"


class IdAllocator:
    """Hands out IDs strictly greater than anything issued or observed per kind."""

    KINDS = (EQUIPMENT, REQUEST)

    def __init__(self, start: Optional[Dict[str, int]] = None):
        self._next: Dict[str, int] = {kind: 1 for kind in self.KINDS}
        for kind, value in (start or {}).items():
            self.advance_to(kind, value)

    def _check_kind(self, kind: str) -> None:
        if kind not in self._next:
            raise KeyError(f"Unknown identifier kind: {kind!r}")

    # =========================================================================
    # Issue
    # =========================================================================

    def next_id(self, kind: str) -> int:
        self._check_kind(kind)
        value = self._next[kind]
        self._next[kind] = value + 1
        return value

    def peek(self, kind: str) -> int:
        """Next value `next_id` would return, without consuming it."""
        self._check_kind(kind)
        return self._next[kind]

    # =========================================================================
    # Re-sync
    # =========================================================================

    def advance_to(self, kind: str, next_value: int) -> None:
        """Move the counter forward to `next_value`. Never moves it backwards."""
        self._check_kind(kind)
        if next_value > self._next[kind]:
            self._next[kind] = next_value

    def observe(self, kind: str, ident: int) -> None:
        """Record an ID that came from elsewhere (load, database insert)."""
        self.advance_to(kind, ident + 1)

    def observe_all(self, kind: str, idents: Iterable[int]) -> None:
        top = max(idents, default=0)
        self.observe(kind, top)

    def snapshot(self) -> Dict[str, int]:
        return dict(self._next)
