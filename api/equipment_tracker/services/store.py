# equipment_tracker/services/store.py
"""
Record Store - owns equipment and supply-request records for the process.

Handles:
- Bulk load from the active backend (name index rebuilt, IDs re-synced)
- Creating equipment / supply requests and updating quantities
- Write-through to backends that accept live writes
- Stock status and checksum derivation
- Flushing to the backend and shutdown
"""
from __future__ import annotations
import logging
from datetime import datetime, timezone
from typing import Callable, Dict, Iterator, List, Optional, Set

from equipment_tracker.backends.base import PersistenceBackend, Snapshot
from equipment_tracker.errors import (
    CapacityExceededError, NotFoundError, RecordValidationError, SnapshotIOError,
)
from equipment_tracker.models import (
    Equipment, EquipmentIn, RequestStatus, StockStatus, SupplyRequest, SupplyRequestIn,
)
from equipment_tracker.services.audit import AuditSink
from equipment_tracker.services.identifiers import EQUIPMENT, REQUEST, IdAllocator
from equipment_tracker.services.name_index import NameIndex

logger = logging.getLogger(__name__)

DEFAULT_MAX_ITEMS = 1000
DEFAULT_MAX_REQUESTS = 500


def utcnow() -> datetime:
    # Whole seconds: snapshots store epoch seconds
    return datetime.now(timezone.utc).replace(microsecond=0)


# ============================================================================
# Derived fields
# ============================================================================

def stock_status(item: Equipment) -> StockStatus:
    """LOW at or below threshold, WATCH up to 1.5x threshold, else OK."""
    if item.quantity <= item.min_threshold:
        return StockStatus.LOW
    if item.quantity <= (item.min_threshold * 3) // 2:
        return StockStatus.WATCH
    return StockStatus.OK


def checksum(item: Equipment) -> str:
    """
    Integrity tag stored with every record.

    (id + quantity + min_threshold + sum of name character codes) mod 10000,
    zero padded to four digits. Flags accidental corruption only.
    """
    total = item.id + item.quantity + item.min_threshold + sum(ord(c) for c in item.name)
    return f"{total % 10000:04d}"


class LowStockView:
    """Re-iterable view of LOW items in store order, evaluated on each pass."""

    def __init__(self, store: "RecordStore"):
        self._store = store

    def __iter__(self) -> Iterator[Equipment]:
        for item in self._store.list_all():
            if stock_status(item) == StockStatus.LOW:
                yield item


class RecordStore:
    """Single owner of all in-memory records."""

    def __init__(
        self,
        backend: PersistenceBackend,
        audit: Optional[AuditSink] = None,
        *,
        max_items: int = DEFAULT_MAX_ITEMS,
        max_requests: int = DEFAULT_MAX_REQUESTS,
        autosave: bool = False,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.backend = backend
        self.audit = audit
        self.max_items = max_items
        self.max_requests = max_requests
        self.autosave = autosave
        self._clock = clock

        self.allocator = IdAllocator()
        self.index = NameIndex()
        self._equipment: List[Equipment] = []
        self._equipment_by_id: Dict[int, Equipment] = {}
        self._requests: List[SupplyRequest] = []
        self._requests_by_id: Dict[int, SupplyRequest] = {}
        # IDs whose records never reached a live-write backend
        self._unreplicated: Dict[str, Set[int]] = {EQUIPMENT: set(), REQUEST: set()}
        self._closed = False

    @classmethod
    def from_settings(cls, settings, backend: PersistenceBackend, audit: Optional[AuditSink] = None) -> "RecordStore":
        return cls(
            backend,
            audit,
            max_items=settings.MAX_ITEMS,
            max_requests=settings.MAX_REQUESTS,
            autosave=settings.AUTOSAVE,
        )

    @property
    def mode(self) -> str:
        return self.backend.mode

    # =========================================================================
    # Load
    # =========================================================================

    def load(self) -> None:
        """
        Replace memory with the backend's contents.

        A snapshot that cannot be read counts as "no prior state". The name
        index is rebuilt from scratch and the allocator moves past every
        loaded ID.
        """
        try:
            snap = self.backend.load_all(self.max_items, self.max_requests)
        except SnapshotIOError as e:
            logger.error("%s; starting with empty inventory", e)
            snap = Snapshot()

        self._equipment, self._equipment_by_id = [], {}
        for item in snap.equipment:
            if item.id in self._equipment_by_id:
                logger.warning("Duplicate equipment id %d in stored data; keeping the first", item.id)
                continue
            expected = checksum(item)
            if item.checksum != expected:
                logger.warning(
                    "Checksum mismatch for equipment %d (%r): stored %s, computed %s",
                    item.id, item.name, item.checksum, expected,
                )
            self._equipment.append(item)
            self._equipment_by_id[item.id] = item

        self._requests, self._requests_by_id = [], {}
        for req in snap.requests:
            if req.req_id in self._requests_by_id:
                logger.warning("Duplicate request id %d in stored data; keeping the first", req.req_id)
                continue
            self._requests.append(req)
            self._requests_by_id[req.req_id] = req

        self.index.rebuild(self._equipment)
        self._unreplicated = {EQUIPMENT: set(), REQUEST: set()}

        if snap.next_equipment_id is not None:
            self.allocator.advance_to(EQUIPMENT, snap.next_equipment_id)
        if snap.next_request_id is not None:
            self.allocator.advance_to(REQUEST, snap.next_request_id)
        self.allocator.observe_all(EQUIPMENT, self._equipment_by_id)
        self.allocator.observe_all(REQUEST, self._requests_by_id)

        logger.info(
            "Store ready (%s): %d equipment items, %d requests",
            self.mode, len(self._equipment), len(self._requests),
        )

    # =========================================================================
    # Equipment
    # =========================================================================

    def create_equipment(self, draft: EquipmentIn) -> Equipment:
        if len(self._equipment) >= self.max_items:
            raise CapacityExceededError("equipment", self.max_items)

        item = Equipment(
            **draft.model_dump(),
            id=self.allocator.next_id(EQUIPMENT),
            last_updated=self._clock(),
        )
        item.checksum = checksum(item)

        if self.backend.accepts_live_writes:
            db_id = self.backend.insert_equipment(item)
            if db_id is None:
                logger.warning("Equipment %r kept in memory only under id %d", item.name, item.id)
                self._unreplicated[EQUIPMENT].add(item.id)
            elif db_id != item.id:
                if db_id in self._equipment_by_id:
                    self._move_equipment(db_id)
                item.id = db_id
                self.allocator.observe(EQUIPMENT, db_id)
                # checksum covers the id, so store the corrected tag as well
                item.checksum = checksum(item)
                self.backend.update_equipment(item)

        self._equipment.append(item)
        self._equipment_by_id[item.id] = item
        self.index.insert(item)

        self._after_mutation(f"Added equipment: {item.name} (ID: {item.id})")
        return item

    def update_quantity(self, item_id: int, new_quantity: int) -> Equipment:
        item = self.find_by_id(item_id)
        if new_quantity < 0:
            raise RecordValidationError("quantity", new_quantity, "must not be negative")

        old_qty = item.quantity
        item.quantity = new_quantity
        item.last_updated = self._clock()
        item.checksum = checksum(item)

        if self.backend.accepts_live_writes:
            # a memory-only id may belong to a different row in the database
            if item.id in self._unreplicated[EQUIPMENT] or not self.backend.update_equipment(item):
                logger.warning("Quantity change for equipment %d not replicated", item.id)

        self._after_mutation(f"Updated {item.name} quantity: {old_qty} -> {item.quantity}")
        return item

    def find_by_id(self, item_id: int) -> Equipment:
        try:
            return self._equipment_by_id[item_id]
        except KeyError:
            raise NotFoundError("Equipment", item_id) from None

    def find_by_name(self, query: str) -> List[Equipment]:
        """
        Case-insensitive substring search, results in store order.

        The name index answers first; only when it finds nothing is every
        record scanned.
        """
        needle = (query or "").casefold()
        if not needle:
            return []
        hits = self.index.search(needle)
        if hits:
            wanted = {id(h) for h in hits}
            return [i for i in self._equipment if id(i) in wanted]
        return [i for i in self._equipment if needle in i.name.casefold()]

    def list_all(self) -> List[Equipment]:
        return list(self._equipment)

    def list_low_stock(self) -> LowStockView:
        return LowStockView(self)

    stock_status = staticmethod(stock_status)
    checksum = staticmethod(checksum)

    # =========================================================================
    # Supply requests
    # =========================================================================

    def create_request(self, draft: SupplyRequestIn) -> SupplyRequest:
        if len(self._requests) >= self.max_requests:
            raise CapacityExceededError("request", self.max_requests)
        if draft.equipment_id not in self._equipment_by_id:
            raise NotFoundError("Equipment", draft.equipment_id)

        req = SupplyRequest(
            **draft.model_dump(),
            req_id=self.allocator.next_id(REQUEST),
            request_time=self._clock(),
            status=RequestStatus.PENDING,
        )

        if self.backend.accepts_live_writes:
            db_id = self.backend.insert_request(req)
            if db_id is None:
                logger.warning("Supply request REQ-%d kept in memory only", req.req_id)
                self._unreplicated[REQUEST].add(req.req_id)
            elif db_id != req.req_id:
                if db_id in self._requests_by_id:
                    self._move_request(db_id)
                req.req_id = db_id
                self.allocator.observe(REQUEST, db_id)

        self._requests.append(req)
        self._requests_by_id[req.req_id] = req

        self._after_mutation(f"Supply request created: REQ-{req.req_id} for equipment ID {req.equipment_id}")
        return req

    def find_request(self, req_id: int) -> SupplyRequest:
        try:
            return self._requests_by_id[req_id]
        except KeyError:
            raise NotFoundError("Supply request", req_id) from None

    def list_requests(self) -> List[SupplyRequest]:
        return list(self._requests)

    def pending_request_count(self) -> int:
        return sum(1 for r in self._requests if r.status == RequestStatus.PENDING)

    # =========================================================================
    # ID collisions with memory-only records
    # =========================================================================

    def _fresh_id(self, kind: str, taken: int) -> int:
        self.allocator.observe(kind, taken)
        return self.allocator.next_id(kind)

    def _move_equipment(self, taken: int) -> None:
        """
        Give the record holding `taken` a new ID so a database-assigned ID can
        be adopted. Only records that never reached the database can collide.
        """
        other = self._equipment_by_id.pop(taken)
        if taken not in self._unreplicated[EQUIPMENT]:
            logger.error("Database reissued id %d of replicated equipment %r", taken, other.name)
        self._unreplicated[EQUIPMENT].discard(taken)
        other.id = self._fresh_id(EQUIPMENT, taken)
        other.checksum = checksum(other)
        self._equipment_by_id[other.id] = other
        self._unreplicated[EQUIPMENT].add(other.id)
        for req in self._requests:
            if req.equipment_id == taken:
                req.equipment_id = other.id
        logger.warning("Memory-only equipment %r moved from id %d to %d", other.name, taken, other.id)

    def _move_request(self, taken: int) -> None:
        other = self._requests_by_id.pop(taken)
        if taken not in self._unreplicated[REQUEST]:
            logger.error("Database reissued id %d of a replicated supply request", taken)
        self._unreplicated[REQUEST].discard(taken)
        other.req_id = self._fresh_id(REQUEST, taken)
        self._requests_by_id[other.req_id] = other
        self._unreplicated[REQUEST].add(other.req_id)
        logger.warning("Memory-only supply request moved from REQ-%d to REQ-%d", taken, other.req_id)

    # =========================================================================
    # Audit / persistence
    # =========================================================================

    def record_event(self, action: str) -> None:
        """Forward an action to the audit sink. Never raises."""
        if self.audit is None:
            return
        try:
            self.audit.record(action)
        except Exception:
            logger.exception("Audit sink failed for %r", action)

    def _after_mutation(self, action: str) -> None:
        self.record_event(action)
        if self.autosave and not self.backend.accepts_live_writes:
            try:
                self.flush()
            except SnapshotIOError as e:
                logger.error("Autosave failed: %s", e)

    def flush(self) -> None:
        """Write everything to the backend. Raises SnapshotIOError on failure."""
        self.backend.save_all(self._equipment, self._requests, self.allocator)

    def close(self) -> bool:
        """
        Flush, audit the shutdown and release the backend.

        Returns False when the final save failed; the backend is released
        either way.
        """
        if self._closed:
            return True
        saved = True
        try:
            self.flush()
        except SnapshotIOError as e:
            saved = False
            logger.error("Data NOT saved at shutdown: %s", e)
        self.record_event("System shutdown")
        self.backend.close()
        self._closed = True
        return saved
