# equipment_tracker/routers/requests.py
from __future__ import annotations
from typing import List

from fastapi import APIRouter, Depends, HTTPException

from equipment_tracker.deps import get_store
from equipment_tracker.errors import CapacityExceededError, NotFoundError
from equipment_tracker.models import SupplyRequest, SupplyRequestIn
from equipment_tracker.services.store import RecordStore

router = APIRouter(prefix="/requests", tags=["supply-requests"])


@router.get("", response_model=List[SupplyRequest])
def list_requests(store: RecordStore = Depends(get_store)):
    return store.list_requests()


@router.post("", response_model=SupplyRequest, status_code=201)
def create_request(payload: SupplyRequestIn, store: RecordStore = Depends(get_store)):
    try:
        return store.create_request(payload)
    except NotFoundError as e:
        raise HTTPException(404, detail=str(e))
    except CapacityExceededError as e:
        raise HTTPException(409, detail=str(e))


@router.get("/{req_id}", response_model=SupplyRequest)
def get_request(req_id: int, store: RecordStore = Depends(get_store)):
    try:
        return store.find_request(req_id)
    except NotFoundError as e:
        raise HTTPException(404, detail=str(e))
