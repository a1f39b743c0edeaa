# equipment_tracker/backends/file.py
"""
File backend - length-prefixed binary snapshots ("offline mode").

Layout of each file:

    [int32 count][int32 next_id][count x fixed-size record]

Records use the same little-endian byte layout (including alignment padding)
as the legacy x86-64 `equipment.dat` / `requests.dat` files, so existing
snapshots load unchanged.
"""
from __future__ import annotations
import logging
import os
import struct
from datetime import datetime, timezone
from pathlib import Path
from typing import Callable, List, Optional, Sequence, Set, Tuple, TypeVar

from pydantic import ValidationError

from equipment_tracker.backends.base import PersistenceBackend, Snapshot
from equipment_tracker.errors import SnapshotIOError
from equipment_tracker.models import Equipment, SupplyRequest
from equipment_tracker.services.identifiers import EQUIPMENT, REQUEST, IdAllocator

logger = logging.getLogger(__name__)

T = TypeVar("T")

# ============================================================================
# Binary layout
# ============================================================================

HEADER = struct.Struct("<ii")
# id, name[64], description[256], quantity, min_threshold, unit[32],
# location[64], <pad>, last_updated(time_t), classification, checksum[16], <pad>
EQUIPMENT_RECORD = struct.Struct("<i64s256sii32s64s4xqi16s4x")
# req_id, equipment_id, requested_qty, requesting_unit[32], <pad>,
# request_time(time_t), status, priority
REQUEST_RECORD = struct.Struct("<iii32s4xqii")


def _pack_str(value: str, size: int) -> bytes:
    """UTF-8 encode, cut on a character boundary leaving room for the NUL."""
    raw = (value or "").encode("utf-8")[: size - 1]
    return raw.decode("utf-8", errors="ignore").encode("utf-8")


def _unpack_str(raw: bytes) -> str:
    return raw.split(b"\0", 1)[0].decode("utf-8", errors="ignore")


def _to_epoch(ts: datetime) -> int:
    return int(ts.timestamp())


def _from_epoch(value: int) -> datetime:
    return datetime.fromtimestamp(value, tz=timezone.utc)


def pack_equipment(item: Equipment) -> bytes:
    return EQUIPMENT_RECORD.pack(
        item.id,
        _pack_str(item.name, 64),
        _pack_str(item.description, 256),
        item.quantity,
        item.min_threshold,
        _pack_str(item.unit, 32),
        _pack_str(item.location, 64),
        _to_epoch(item.last_updated),
        int(item.classification),
        _pack_str(item.checksum, 16),
    )


def unpack_equipment(raw: bytes) -> Equipment:
    (ident, name, desc, qty, min_thr, unit, loc,
     updated, classification, checksum) = EQUIPMENT_RECORD.unpack(raw)
    return Equipment(
        id=ident,
        name=_unpack_str(name),
        description=_unpack_str(desc),
        quantity=qty,
        min_threshold=min_thr,
        unit=_unpack_str(unit),
        location=_unpack_str(loc),
        last_updated=_from_epoch(updated),
        classification=classification,
        checksum=_unpack_str(checksum),
    )


def pack_request(req: SupplyRequest) -> bytes:
    return REQUEST_RECORD.pack(
        req.req_id,
        req.equipment_id,
        req.requested_qty,
        _pack_str(req.requesting_unit, 32),
        _to_epoch(req.request_time),
        int(req.status),
        int(req.priority),
    )


def unpack_request(raw: bytes) -> SupplyRequest:
    req_id, eq_id, qty, unit, when, status, priority = REQUEST_RECORD.unpack(raw)
    return SupplyRequest(
        req_id=req_id,
        equipment_id=eq_id,
        requested_qty=qty,
        requesting_unit=_unpack_str(unit),
        request_time=_from_epoch(when),
        status=status,
        priority=priority,
    )


# ============================================================================
# Snapshot files
# ============================================================================

def read_snapshot(
    path: Path,
    record: struct.Struct,
    decode: Callable[[bytes], T],
    limit: int,
) -> Tuple[List[T], Optional[int]]:
    """
    Read one snapshot file.

    Returns ([], None) when the file does not exist. Records that fail
    validation are skipped with a warning; a short or unreadable file raises
    SnapshotIOError.
    """
    if not path.exists():
        return [], None
    try:
        with open(path, "rb") as fh:
            data = fh.read()
    except OSError as e:
        raise SnapshotIOError(path, str(e)) from e

    if len(data) < HEADER.size:
        raise SnapshotIOError(path, "missing header")
    count, next_id = HEADER.unpack_from(data, 0)
    if count < 0:
        raise SnapshotIOError(path, f"negative record count {count}")
    if len(data) < HEADER.size + count * record.size:
        raise SnapshotIOError(
            path, f"truncated: header says {count} records, file holds {(len(data) - HEADER.size) // record.size}"
        )

    if count > limit:
        logger.warning("%s holds %d records, more than the maximum; truncating to %d", path.name, count, limit)
        count = limit

    out: List[T] = []
    for i in range(count):
        offset = HEADER.size + i * record.size
        try:
            out.append(decode(data[offset:offset + record.size]))
        except ValidationError as e:
            logger.warning("Skipping invalid record #%d in %s: %s", i, path.name, e.errors()[0].get("msg"))
    return out, next_id


def write_snapshot(path: Path, next_id: int, payloads: Sequence[bytes]) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp = path.with_suffix(path.suffix + ".tmp")
    try:
        with open(tmp, "wb") as fh:
            fh.write(HEADER.pack(len(payloads), next_id))
            for chunk in payloads:
                fh.write(chunk)
        os.replace(tmp, path)
    except OSError as e:
        raise SnapshotIOError(path, str(e)) from e


class FileBackend(PersistenceBackend):
    """Bulk load at startup, bulk save at shutdown (or on explicit flush)."""

    mode = "offline"
    accepts_live_writes = False

    def __init__(self, equipment_path: Path, request_path: Path):
        self.equipment_path = Path(equipment_path)
        self.request_path = Path(request_path)
        # Snapshots that failed to load and could not be moved aside
        self._unreadable: Set[Path] = set()

    @classmethod
    def connect(cls, settings) -> "FileBackend":
        return cls(
            settings.data_path(settings.EQUIPMENT_FILE),
            settings.data_path(settings.REQUEST_FILE),
        )

    def _read(self, path: Path, record: struct.Struct, decode, limit: int, label: str):
        """Read one file; an unreadable file yields no records and is moved aside."""
        try:
            items, next_id = read_snapshot(path, record, decode, limit)
        except SnapshotIOError as e:
            logger.error("%s; starting with no %s", e, label)
            self._quarantine(path)
            return [], None
        if next_id is not None:
            logger.info("Loaded %d %s from %s", len(items), label, path)
        return items, next_id

    def _quarantine(self, path: Path) -> None:
        target = path.with_name(path.name + ".corrupt")
        try:
            os.replace(path, target)
        except OSError as e:
            logger.error("Cannot move %s aside (%s); it will not be overwritten", path, e)
            self._unreadable.add(path)
            return
        logger.warning("Unreadable snapshot kept as %s", target)

    def load_all(self, max_items: int, max_requests: int) -> Snapshot:
        equipment, next_item = self._read(
            self.equipment_path, EQUIPMENT_RECORD, unpack_equipment, max_items, "equipment items"
        )
        requests, next_req = self._read(
            self.request_path, REQUEST_RECORD, unpack_request, max_requests, "supply requests"
        )
        return Snapshot(
            equipment=equipment,
            requests=requests,
            next_equipment_id=next_item,
            next_request_id=next_req,
        )

    def save_all(
        self,
        equipment: Sequence[Equipment],
        requests: Sequence[SupplyRequest],
        allocator: IdAllocator,
    ) -> None:
        """Write both files. Each is attempted; the first failure is raised afterwards."""
        failure: Optional[SnapshotIOError] = None
        for path, next_id, payloads in (
            (self.equipment_path, allocator.peek(EQUIPMENT), [pack_equipment(i) for i in equipment]),
            (self.request_path, allocator.peek(REQUEST), [pack_request(r) for r in requests]),
        ):
            try:
                if path in self._unreadable:
                    raise SnapshotIOError(path, "refusing to overwrite a snapshot that failed to load")
                write_snapshot(path, next_id, payloads)
            except SnapshotIOError as e:
                failure = failure or e
        if failure is not None:
            raise failure
        logger.info("Saved %d equipment items and %d requests to local files", len(equipment), len(requests))

    # Live writes are held in memory until save_all
    def insert_equipment(self, item: Equipment) -> Optional[int]:
        return item.id

    def update_equipment(self, item: Equipment) -> bool:
        return True

    def insert_request(self, req: SupplyRequest) -> Optional[int]:
        return req.req_id

    def describe(self) -> str:
        return "Local Files"
