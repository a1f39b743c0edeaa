# equipment_tracker/main.py
# Equipment Tracker - record store behind a small HTTP surface
from __future__ import annotations
import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import Depends, FastAPI, HTTPException, Request

from equipment_tracker.settings import Settings, settings as default_settings
from equipment_tracker.backends import FileBackend, open_backend
from equipment_tracker.deps import get_store
from equipment_tracker.errors import BackendConnectionError, SnapshotIOError
from equipment_tracker.logging_setup import setup_logging
from equipment_tracker.models import HealthOut
from equipment_tracker.services.audit import build_audit_sink
from equipment_tracker.services.store import RecordStore

from equipment_tracker.routers.equipment import router as equipment_router
from equipment_tracker.routers.requests import router as requests_router
from equipment_tracker.routers.reports import router as reports_router
from equipment_tracker.routers.logs import router as logs_router

logger = logging.getLogger(__name__)


def open_store(settings: Settings) -> RecordStore:
    """
    Select the backend and load the store.

    A database that connects but cannot be read is released and replaced by
    the file backend, once.
    """
    backend = open_backend(settings)
    store = RecordStore.from_settings(settings, backend, build_audit_sink(settings, backend))
    try:
        store.load()
    except BackendConnectionError as e:
        logger.warning("%s", e)
        logger.warning("Falling back to file-based storage for offline operation")
        backend.close()
        backend = FileBackend.connect(settings)
        store = RecordStore.from_settings(settings, backend, build_audit_sink(settings, backend))
        store.load()
    return store


# ---------------------------------------------------------
# Lifespan: backend selection, load, shutdown flush
# ---------------------------------------------------------
@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup and shutdown events."""
    settings: Settings = app.state.settings
    app.state.log_path = setup_logging(settings)

    # Startup: exactly one backend choice per process
    store = open_store(settings)
    app.state.store = store
    logger.info("System ready. %d equipment items and %d requests", len(store.list_all()), len(store.list_requests()))
    try:
        yield
    finally:
        # Shutdown
        if not store.close():
            logger.error("Shutdown completed without saving; recent changes are lost")
        app.state.store = None
        logger.info("Equipment tracker offline")


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    app = FastAPI(
        title="Equipment Tracker API",
        version="1.0.0",
        description="Equipment inventory and supply requests over file or PostgreSQL storage",
        lifespan=lifespan,
    )
    app.state.settings = settings or default_settings
    app.state.store = None

    app.include_router(equipment_router)
    app.include_router(requests_router)
    app.include_router(reports_router)
    app.include_router(logs_router)

    @app.get("/health", response_model=HealthOut)
    def health(request: Request, store: RecordStore = Depends(get_store)):
        log_path = getattr(request.app.state, "log_path", None)
        return HealthOut(
            mode=store.mode,
            equipment_count=len(store.list_all()),
            request_count=len(store.list_requests()),
            pending_requests=store.pending_request_count(),
            autosave=store.autosave,
            log_path=str(log_path) if log_path else None,
        )

    @app.post("/admin/save")
    def save(store: RecordStore = Depends(get_store)):
        try:
            store.flush()
        except SnapshotIOError as e:
            logger.error("Manual save failed: %s", e)
            raise HTTPException(500, detail=f"Save failed, data not written: {e.reason}")
        return {"saved": True, "mode": store.mode}

    return app


app = create_app()
