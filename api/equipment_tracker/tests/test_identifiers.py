import pytest

from equipment_tracker.services.identifiers import EQUIPMENT, REQUEST, IdAllocator


def test_ids_start_at_one_and_increase_per_kind():
    alloc = IdAllocator()
    assert [alloc.next_id(EQUIPMENT) for _ in range(3)] == [1, 2, 3]
    assert alloc.next_id(REQUEST) == 1
    assert alloc.peek(EQUIPMENT) == 4


def test_observe_moves_past_loaded_ids_but_never_backwards():
    alloc = IdAllocator()
    alloc.observe_all(EQUIPMENT, [4, 17, 9])
    assert alloc.next_id(EQUIPMENT) == 18

    alloc.observe(EQUIPMENT, 3)
    alloc.advance_to(EQUIPMENT, 2)
    assert alloc.next_id(EQUIPMENT) == 19


def test_observe_all_with_nothing_loaded_keeps_counter():
    alloc = IdAllocator({REQUEST: 7})
    alloc.observe_all(REQUEST, [])
    assert alloc.peek(REQUEST) == 7


def test_unknown_kind_is_rejected():
    with pytest.raises(KeyError):
        IdAllocator().next_id("widget")
