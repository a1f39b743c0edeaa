import logging
import struct
from datetime import datetime, timezone

import pytest
from pydantic import ValidationError

from conftest import draft
from equipment_tracker.backends import file as file_backend_module
from equipment_tracker.backends.file import (
    EQUIPMENT_RECORD, HEADER, REQUEST_RECORD, FileBackend, pack_equipment,
)
from equipment_tracker.errors import SnapshotIOError
from equipment_tracker.models import Equipment, Priority, SupplyRequestIn
from equipment_tracker.services.audit import MemoryAuditSink
from equipment_tracker.services.identifiers import EQUIPMENT, REQUEST
from equipment_tracker.services.store import RecordStore

WHEN = datetime(2024, 3, 1, 8, 30, tzinfo=timezone.utc)


def _reopen(tmp_path, **kw) -> RecordStore:
    store = RecordStore(FileBackend(tmp_path / "equipment.dat", tmp_path / "requests.dat"), **kw)
    store.load()
    return store


def test_record_layout_matches_legacy_struct_sizes():
    assert EQUIPMENT_RECORD.size == 464
    assert REQUEST_RECORD.size == 64
    assert HEADER.size == 8


def test_field_offsets_follow_aligned_layout():
    item = Equipment(id=7, name="Rifle", quantity=3, min_threshold=1, unit="ea", location="Armory",
                     classification=2, checksum="0555", last_updated=WHEN)
    raw = pack_equipment(item)
    assert struct.unpack_from("<i", raw, 0)[0] == 7
    assert raw[4:10] == b"Rifle\0"
    assert struct.unpack_from("<ii", raw, 324) == (3, 1)
    assert struct.unpack_from("<q", raw, 432)[0] == int(WHEN.timestamp())
    assert struct.unpack_from("<i", raw, 440)[0] == 2
    assert raw[444:449] == b"0555\0"


def test_missing_files_mean_empty_state(tmp_path):
    store = _reopen(tmp_path)
    assert store.list_all() == []
    assert store.list_requests() == []
    assert store.allocator.peek(EQUIPMENT) == 1


def test_save_then_load_round_trip(tmp_path):
    store = _reopen(tmp_path)
    a = store.create_equipment(draft(name="Rifle", description="Standard issue", unit="ea",
                                     location="Armory B", classification=1))
    b = store.create_equipment(draft(name="Ration Pack", quantity=2, min_threshold=40, unit="case"))
    store.update_quantity(a.id, 12)
    store.create_request(SupplyRequestIn(equipment_id=b.id, requested_qty=60,
                                         requesting_unit="Alpha Coy", priority=Priority.CRITICAL))
    store.flush()
    expected_items = [i.model_dump() for i in store.list_all()]
    expected_reqs = [r.model_dump() for r in store.list_requests()]
    expected_ids = store.allocator.snapshot()

    again = _reopen(tmp_path)

    assert [i.model_dump() for i in again.list_all()] == expected_items
    assert [r.model_dump() for r in again.list_requests()] == expected_reqs
    assert again.allocator.snapshot() == expected_ids
    assert [i.name for i in again.find_by_name("rifle")] == ["Rifle"]


def test_new_ids_never_collide_with_loaded_ones(tmp_path):
    store = _reopen(tmp_path)
    for n in range(3):
        store.create_equipment(draft(name=f"Item {n}"))
    store.flush()

    again = _reopen(tmp_path)
    loaded = {i.id for i in again.list_all()}
    fresh = again.create_equipment(draft(name="New"))
    assert fresh.id not in loaded
    assert fresh.id > max(loaded)


def test_header_counter_behind_records_is_corrected(tmp_path):
    item = Equipment(id=40, name="Old", last_updated=WHEN, checksum="")
    item.checksum = RecordStore.checksum(item)
    (tmp_path / "equipment.dat").write_bytes(HEADER.pack(1, 5) + pack_equipment(item))

    store = _reopen(tmp_path)
    assert store.create_equipment(draft()).id == 41


def test_truncated_snapshot_loads_as_empty(tmp_path, caplog):
    (tmp_path / "equipment.dat").write_bytes(HEADER.pack(5, 6) + b"\0" * 10)
    with caplog.at_level(logging.ERROR):
        store = _reopen(tmp_path)
    assert store.list_all() == []
    assert "truncated" in caplog.text
    assert (tmp_path / "equipment.dat.corrupt").exists()


def test_corrupt_request_file_leaves_equipment_intact(tmp_path):
    store = _reopen(tmp_path)
    for n in range(3):
        store.create_equipment(draft(name=f"Item {n}"))
    assert store.close() is True
    (tmp_path / "requests.dat").write_bytes(HEADER.pack(4, 5) + b"\0" * 3)

    again = _reopen(tmp_path)
    assert len(again.list_all()) == 3
    assert again.list_requests() == []
    assert again.close() is True

    assert len(_reopen(tmp_path).list_all()) == 3
    assert (tmp_path / "requests.dat.corrupt").read_bytes() == HEADER.pack(4, 5) + b"\0" * 3


def test_unmovable_corrupt_file_is_never_overwritten(tmp_path, monkeypatch):
    store = _reopen(tmp_path)
    store.create_equipment(draft())
    store.close()
    broken = HEADER.pack(9, 10) + b"\0" * 3
    (tmp_path / "equipment.dat").write_bytes(broken)

    real_replace = file_backend_module.os.replace

    def no_rename_aside(src, dst):
        if str(dst).endswith(".corrupt"):
            raise PermissionError("read-only directory")
        return real_replace(src, dst)

    monkeypatch.setattr(file_backend_module.os, "replace", no_rename_aside)
    again = _reopen(tmp_path)
    with pytest.raises(SnapshotIOError):
        again.flush()
    assert (tmp_path / "equipment.dat").read_bytes() == broken
    assert again.close() is False


def test_invalid_record_is_skipped(tmp_path, caplog):
    good = Equipment(id=1, name="Good", last_updated=WHEN)
    good.checksum = RecordStore.checksum(good)
    bad = bytearray(pack_equipment(Equipment(id=2, name="Bad", last_updated=WHEN)))
    struct.pack_into("<i", bad, 440, 9)  # classification out of range
    (tmp_path / "equipment.dat").write_bytes(HEADER.pack(2, 3) + pack_equipment(good) + bytes(bad))

    with caplog.at_level(logging.WARNING):
        store = _reopen(tmp_path)
    assert [i.id for i in store.list_all()] == [1]
    assert store.allocator.peek(EQUIPMENT) == 3


def test_checksum_mismatch_is_reported_but_kept(tmp_path, caplog):
    item = Equipment(id=1, name="Rifle", quantity=5, last_updated=WHEN, checksum="9999")
    (tmp_path / "equipment.dat").write_bytes(HEADER.pack(1, 2) + pack_equipment(item))
    with caplog.at_level(logging.WARNING):
        store = _reopen(tmp_path)
    assert store.find_by_id(1).checksum == "9999"
    assert "Checksum mismatch" in caplog.text


def test_oversized_snapshot_is_truncated_to_capacity(tmp_path):
    store = _reopen(tmp_path)
    for n in range(4):
        store.create_equipment(draft(name=f"Item {n}"))
    store.flush()
    small = _reopen(tmp_path, max_items=2)
    assert [i.id for i in small.list_all()] == [1, 2]


def test_text_limits_count_encoded_bytes(tmp_path):
    with pytest.raises(ValidationError):
        draft(name="é" * 40)  # 40 characters, 80 bytes
    with pytest.raises(ValidationError):
        SupplyRequestIn(equipment_id=1, requested_qty=1, requesting_unit="ü" * 16)

    store = _reopen(tmp_path)
    item = store.create_equipment(draft(name="é" * 31, location="Zürich"))
    store.flush()
    again = _reopen(tmp_path)
    assert again.list_all()[0].model_dump() == item.model_dump()


def test_save_failure_is_raised_not_fatal(tmp_path):
    (tmp_path / "equipment.dat").mkdir()
    audit = MemoryAuditSink()
    store = RecordStore(FileBackend(tmp_path / "equipment.dat", tmp_path / "requests.dat"), audit)
    store.create_equipment(draft())
    with pytest.raises(SnapshotIOError):
        store.flush()
    assert store.close() is False
    assert audit.actions[-1] == "System shutdown"


def test_autosave_writes_after_each_mutation(tmp_path):
    store = _reopen(tmp_path, autosave=True)
    store.create_equipment(draft(name="Compass"))
    again = _reopen(tmp_path)
    assert [i.name for i in again.list_all()] == ["Compass"]
    assert again.allocator.peek(REQUEST) == 1
