# equipment_tracker/routers/reports.py
from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.responses import PlainTextResponse

from equipment_tracker.deps import get_store
from equipment_tracker.errors import SnapshotIOError
from equipment_tracker.services.reports import export_report, render_report
from equipment_tracker.services.store import RecordStore

router = APIRouter(prefix="/reports", tags=["reports"])


@router.get("/inventory", response_class=PlainTextResponse)
def inventory_report(store: RecordStore = Depends(get_store)):
    return render_report(store)


@router.post("/inventory/export")
def inventory_report_export(request: Request, store: RecordStore = Depends(get_store)):
    settings = request.app.state.settings
    target = settings.data_path(settings.REPORT_FILE)
    try:
        path = export_report(store, target)
    except SnapshotIOError as e:
        raise HTTPException(500, detail=f"Error creating report file: {e.reason}")
    return {"path": str(path), "size": path.stat().st_size}
