# equipment_tracker/backends/base.py
"""
Persistence backend contract shared by the file and database variants.
"""
from __future__ import annotations
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import List, Optional, Sequence

from equipment_tracker.models import Equipment, SupplyRequest
from equipment_tracker.services.identifiers import IdAllocator


@dataclass
class Snapshot:
    """Everything a backend hands back from a bulk load."""
    equipment: List[Equipment] = field(default_factory=list)
    requests: List[SupplyRequest] = field(default_factory=list)
    # Persisted next-ID counters (file snapshots only)
    next_equipment_id: Optional[int] = None
    next_request_id: Optional[int] = None


class PersistenceBackend(ABC):
    """Abstract base class for persistence backends"""

    #: "database" or "offline"
    mode: str = "offline"
    #: True when insert/update calls persist immediately
    accepts_live_writes: bool = False

    @abstractmethod
    def load_all(self, max_items: int, max_requests: int) -> Snapshot:
        ...

    @abstractmethod
    def save_all(
        self,
        equipment: Sequence[Equipment],
        requests: Sequence[SupplyRequest],
        allocator: IdAllocator,
    ) -> None:
        ...

    @abstractmethod
    def insert_equipment(self, item: Equipment) -> Optional[int]:
        """Persist a new item; return the ID it was stored under, or None on failure."""

    @abstractmethod
    def update_equipment(self, item: Equipment) -> bool:
        ...

    @abstractmethod
    def insert_request(self, req: SupplyRequest) -> Optional[int]:
        ...

    def record_audit(self, action: str, user_info: str = "system") -> bool:
        """Write an audit row when the backend has somewhere to put it."""
        return False

    def close(self) -> None:
        pass

    def describe(self) -> str:
        return self.mode
