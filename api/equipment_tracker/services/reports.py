# equipment_tracker/services/reports.py
"""
Plain-text inventory report built from read-only store queries.
"""
from __future__ import annotations
import time
from pathlib import Path
from typing import Optional

from equipment_tracker.errors import SnapshotIOError
from equipment_tracker.models import Classification
from equipment_tracker.services.store import RecordStore, stock_status

RULE = "================================"


def render_report(store: RecordStore, now: Optional[float] = None) -> str:
    items = store.list_all()
    low = sum(1 for _ in store.list_low_stock())
    lines = [
        "EQUIPMENT INVENTORY REPORT",
        f"Generated: {time.ctime(now if now is not None else time.time())}",
        f"Data Source: {store.backend.describe()}",
        RULE,
        "",
        "INVENTORY SUMMARY:",
        f"Total Items: {len(items)}",
        f"Items requiring resupply: {low}",
        "",
        "DETAILED INVENTORY:",
    ]
    for item in items:
        lines.append(
            f"ID: {item.id} | {item.name} | Qty: {item.quantity} {item.unit} | "
            f"Location: {item.location} | Status: {stock_status(item).name} | "
            f"Class: {Classification(item.classification).name}"
        )
    return "\n".join(lines) + "\n"


def export_report(store: RecordStore, path: Path) -> Path:
    """Write the report to `path` and audit it. Raises SnapshotIOError if the file cannot be written."""
    path = Path(path)
    text = render_report(store)
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(text, encoding="utf-8")
    except OSError as e:
        raise SnapshotIOError(path, str(e)) from e
    store.record_event("Inventory report exported")
    return path
