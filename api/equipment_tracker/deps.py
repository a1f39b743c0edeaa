from __future__ import annotations
import threading
from typing import Iterator

from fastapi import HTTPException, Request

from equipment_tracker.services.store import RecordStore

# Sync endpoints run in a threadpool; the store expects one caller at a time
_store_lock = threading.Lock()


def get_store(request: Request) -> Iterator[RecordStore]:
    store = getattr(request.app.state, "store", None)
    if store is None:
        raise HTTPException(503, detail="Store not initialised")
    with _store_lock:
        yield store
