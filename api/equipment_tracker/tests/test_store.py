from datetime import datetime, timezone

import pytest
from pydantic import ValidationError

from conftest import draft
from equipment_tracker.errors import CapacityExceededError, NotFoundError, RecordValidationError
from equipment_tracker.models import (
    Classification, EquipmentIn, Priority, RequestStatus, StockStatus, SupplyRequestIn,
)
from equipment_tracker.services.identifiers import REQUEST
from equipment_tracker.services.store import RecordStore, checksum, stock_status


def test_created_ids_are_distinct_and_increasing(store):
    ids = [store.create_equipment(draft(name=f"Item {n}")).id for n in range(25)]
    assert ids == sorted(ids)
    assert len(set(ids)) == len(ids)


def test_create_sets_derived_fields_and_audits(store, audit):
    item = store.create_equipment(draft(name="Night Vision", quantity=3, min_threshold=2,
                                        classification=Classification.SECRET))
    assert item.checksum == checksum(item)
    assert item.last_updated.tzinfo is not None
    assert store.find_by_id(item.id) is item
    assert audit.actions == [f"Added equipment: Night Vision (ID: {item.id})"]


def test_capacity_is_checked_before_an_id_is_spent(file_backend):
    store = RecordStore(file_backend, max_items=2)
    store.create_equipment(draft(name="A"))
    store.create_equipment(draft(name="B"))
    with pytest.raises(CapacityExceededError):
        store.create_equipment(draft(name="C"))
    assert store.allocator.peek("equipment") == 3


def test_update_quantity_refreshes_checksum_and_timestamp(store, audit):
    times = iter([datetime(2024, 1, 1, tzinfo=timezone.utc), datetime(2024, 6, 1, 12, tzinfo=timezone.utc)])
    store._clock = lambda: next(times)
    item = store.create_equipment(draft(name="Radio", quantity=10))
    before = (item.checksum, item.last_updated)

    updated = store.update_quantity(item.id, 4)

    assert updated.quantity == 4
    assert updated.checksum == checksum(updated)
    assert (updated.checksum, updated.last_updated) != before
    assert audit.actions[-1] == "Updated Radio quantity: 10 -> 4"


def test_update_quantity_errors(store):
    with pytest.raises(NotFoundError):
        store.update_quantity(99, 1)
    item = store.create_equipment(draft())
    with pytest.raises(RecordValidationError):
        store.update_quantity(item.id, -1)
    assert item.quantity == 10


def test_find_by_id_miss(store):
    with pytest.raises(NotFoundError):
        store.find_by_id(1)


# ============================================================================
# Name lookup
# ============================================================================

def test_find_by_name_returns_every_substring_match_in_store_order(store):
    sling = store.create_equipment(draft(name="Rifle Sling"))
    rifle = store.create_equipment(draft(name="Rifle"))
    store.create_equipment(draft(name="Canteen"))
    scope = store.create_equipment(draft(name="rifle scope"))

    assert store.find_by_name("rifle") == [sling, rifle, scope]
    assert store.find_by_name("RIFLE") == [sling, rifle, scope]
    assert store.find_by_name("tank") == []
    assert store.find_by_name("") == []


def test_find_by_name_falls_back_to_scan_when_index_is_empty(store):
    a = store.create_equipment(draft(name="Medical Kit"))
    b = store.create_equipment(draft(name="Kit Bag"))
    via_index = store.find_by_name("kit")

    store.index.clear()
    via_scan = store.find_by_name("kit")

    assert via_index == via_scan == [a, b]


# ============================================================================
# Derived fields
# ============================================================================

@pytest.mark.parametrize("quantity,expected", [
    (0, StockStatus.LOW),
    (10, StockStatus.LOW),
    (11, StockStatus.WATCH),
    (14, StockStatus.WATCH),
    (15, StockStatus.WATCH),
    (16, StockStatus.OK),
])
def test_stock_status_boundaries(store, quantity, expected):
    item = store.create_equipment(draft(quantity=quantity, min_threshold=10))
    assert stock_status(item) == expected
    assert store.stock_status(item) == expected


def test_stock_status_uses_floor_of_one_and_a_half_threshold(store):
    item = store.create_equipment(draft(quantity=4, min_threshold=3))
    assert stock_status(item) == StockStatus.WATCH
    store.update_quantity(item.id, 5)
    assert stock_status(item) == StockStatus.OK


def test_zero_threshold_only_zero_is_low(store):
    item = store.create_equipment(draft(quantity=0, min_threshold=0))
    assert stock_status(item) == StockStatus.LOW
    store.update_quantity(item.id, 1)
    assert stock_status(item) == StockStatus.OK


def test_checksum_arithmetic(store):
    item = store.create_equipment(draft(name="AB", quantity=5, min_threshold=2))
    # 1 + 5 + 2 + ord("A") + ord("B")
    assert item.checksum == "0139"
    assert checksum(item) == checksum(item)

    store.update_quantity(item.id, 10000 + 5)
    assert item.checksum == "0139"  # wraps modulo 10000
    store.update_quantity(item.id, 6)
    assert item.checksum == "0140"


def test_low_stock_view_is_restartable_and_live(store):
    a = store.create_equipment(draft(name="A", quantity=1, min_threshold=5))
    store.create_equipment(draft(name="B", quantity=50, min_threshold=5))
    c = store.create_equipment(draft(name="C", quantity=5, min_threshold=5))

    view = store.list_low_stock()
    assert list(view) == [a, c]
    assert list(view) == [a, c]

    store.update_quantity(a.id, 100)
    assert list(view) == [c]


# ============================================================================
# Supply requests
# ============================================================================

def test_create_request_starts_pending(store, audit):
    item = store.create_equipment(draft())
    req = store.create_request(SupplyRequestIn(equipment_id=item.id, requested_qty=3,
                                               requesting_unit="2nd Bn", priority=Priority.HIGH))
    assert req.req_id == 1
    assert req.status == RequestStatus.PENDING
    assert store.find_request(1) is req
    assert store.pending_request_count() == 1
    assert audit.actions[-1] == f"Supply request created: REQ-1 for equipment ID {item.id}"


def test_request_for_unknown_equipment_does_not_allocate(store):
    with pytest.raises(NotFoundError):
        store.create_request(SupplyRequestIn(equipment_id=42, requested_qty=1))
    assert store.allocator.peek(REQUEST) == 1
    assert store.list_requests() == []


def test_request_capacity(file_backend):
    store = RecordStore(file_backend, max_requests=1)
    item = store.create_equipment(draft())
    store.create_request(SupplyRequestIn(equipment_id=item.id, requested_qty=1))
    with pytest.raises(CapacityExceededError):
        store.create_request(SupplyRequestIn(equipment_id=item.id, requested_qty=1))


def test_request_drafts_validate_ranges():
    with pytest.raises(ValidationError):
        SupplyRequestIn(equipment_id=1, requested_qty=0)
    with pytest.raises(ValidationError):
        SupplyRequestIn(equipment_id=1, requested_qty=1, priority=5)
    with pytest.raises(ValidationError):
        EquipmentIn(name="X", classification=4)


# ============================================================================
# Audit
# ============================================================================

class _BrokenSink:
    def record(self, action):
        raise RuntimeError("sink down")


def test_failing_audit_sink_never_fails_the_operation(file_backend):
    store = RecordStore(file_backend, _BrokenSink())
    item = store.create_equipment(draft())
    assert store.update_quantity(item.id, 1).quantity == 1


def test_close_audits_shutdown(store, audit):
    assert store.close() is True
    assert audit.actions[-1] == "System shutdown"
