# -*- coding: utf-8 -*-
from __future__ import annotations
import logging, logging.handlers
import os
from pathlib import Path

LOG_NAME = "equipment_tracker.log"
# uvicorn loggers do not propagate to root
_SERVER_LOGGERS = ("uvicorn", "uvicorn.error", "uvicorn.access")


def app_log_path(settings) -> Path:
    return Path(settings.DATA_ROOT).expanduser() / "logs" / LOG_NAME


def _has_handler_for(lg: logging.Logger, path: Path) -> bool:
    target = os.path.abspath(path)
    return any(getattr(h, "baseFilename", None) == target for h in lg.handlers)


def setup_logging(settings) -> Path:
    """
    Diagnostics go to DATA_ROOT/logs/equipment_tracker.log (5 MB x 3).

    Safe to call again for the same DATA_ROOT; a different DATA_ROOT gets
    its own handler. The audit trail is written separately by FileAuditSink.
    """
    log_path = app_log_path(settings)
    log_path.parent.mkdir(parents=True, exist_ok=True)
    level = logging.getLevelName(str(settings.LOG_LEVEL).upper())
    if not isinstance(level, int):
        level = logging.INFO

    handler = logging.handlers.RotatingFileHandler(log_path, maxBytes=5_000_000, backupCount=3, encoding="utf-8")
    handler.setFormatter(logging.Formatter("%(asctime)s %(levelname)s %(name)s: %(message)s"))
    handler.setLevel(level)

    attached = False
    for lg in [logging.getLogger()] + [logging.getLogger(n) for n in _SERVER_LOGGERS]:
        lg.setLevel(level)
        if not _has_handler_for(lg, log_path):
            lg.addHandler(handler)
            attached = True
    if not attached:
        handler.close()

    return log_path
