from __future__ import annotations

import datetime as dt
from pathlib import Path
from typing import Any, Dict

from fastapi import APIRouter, HTTPException, Query, Request

from equipment_tracker.logging_setup import app_log_path

router = APIRouter(prefix="/logs", tags=["logs"])

MAX_READ_BYTES = 2 * 1024 * 1024  # 2 MB hard limit


def _tail(fp: Path, limit: int) -> Dict[str, Any]:
    if not fp.exists() or not fp.is_file():
        raise HTTPException(404, detail="log not found")
    stat = fp.stat()
    with open(fp, "rb") as fh:
        if stat.st_size > MAX_READ_BYTES:
            fh.seek(stat.st_size - MAX_READ_BYTES)
        data = fh.read()
    lines = data.decode("utf-8", errors="replace").splitlines()
    return {
        "filename": fp.name,
        "size": stat.st_size,
        "mtime_iso": dt.datetime.fromtimestamp(stat.st_mtime).isoformat(timespec="seconds"),
        "truncated": stat.st_size > MAX_READ_BYTES or len(lines) > limit,
        "lines": lines[-limit:],
    }


@router.get("/audit")
def read_audit_log(request: Request, limit: int = Query(100, ge=1, le=5000)):
    """
    Last `limit` lines of the audit trail (equipment.log).
    """
    settings = request.app.state.settings
    return _tail(settings.data_path(settings.AUDIT_LOG_FILE), limit)


@router.get("/app")
def read_app_log(request: Request, limit: int = Query(100, ge=1, le=5000)):
    return _tail(app_log_path(request.app.state.settings), limit)
