# equipment_tracker/routers/equipment.py
"""
Equipment endpoints - thin wrappers over RecordStore operations.
"""
from __future__ import annotations
from typing import List

from fastapi import APIRouter, Depends, HTTPException, Query

from equipment_tracker.deps import get_store
from equipment_tracker.errors import CapacityExceededError, NotFoundError, RecordValidationError
from equipment_tracker.models import EquipmentIn, EquipmentOut, QuantityUpdate
from equipment_tracker.services.store import RecordStore

router = APIRouter(prefix="/equipment", tags=["equipment"])


def _out(store: RecordStore, item) -> EquipmentOut:
    return EquipmentOut.from_record(item, store.stock_status(item))


@router.get("", response_model=List[EquipmentOut])
def list_equipment(store: RecordStore = Depends(get_store)):
    return [_out(store, i) for i in store.list_all()]


@router.post("", response_model=EquipmentOut, status_code=201)
def create_equipment(payload: EquipmentIn, store: RecordStore = Depends(get_store)):
    try:
        item = store.create_equipment(payload)
    except CapacityExceededError as e:
        raise HTTPException(409, detail=str(e))
    return _out(store, item)


@router.get("/search", response_model=List[EquipmentOut])
def search_equipment(
    q: str = Query(..., min_length=1, max_length=63, description="Case-insensitive part of the name"),
    store: RecordStore = Depends(get_store),
):
    return [_out(store, i) for i in store.find_by_name(q)]


@router.get("/low-stock", response_model=List[EquipmentOut])
def low_stock(store: RecordStore = Depends(get_store)):
    return [_out(store, i) for i in store.list_low_stock()]


@router.get("/{item_id}", response_model=EquipmentOut)
def get_equipment(item_id: int, store: RecordStore = Depends(get_store)):
    try:
        return _out(store, store.find_by_id(item_id))
    except NotFoundError as e:
        raise HTTPException(404, detail=str(e))


@router.patch("/{item_id}/quantity", response_model=EquipmentOut)
def update_quantity(item_id: int, payload: QuantityUpdate, store: RecordStore = Depends(get_store)):
    try:
        item = store.update_quantity(item_id, payload.quantity)
    except NotFoundError as e:
        raise HTTPException(404, detail=str(e))
    except RecordValidationError as e:
        raise HTTPException(422, detail=str(e))
    return _out(store, item)
