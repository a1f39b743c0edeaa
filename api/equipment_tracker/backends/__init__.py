# equipment_tracker/backends/__init__.py
"""
Persistence backends and the startup selection policy.
"""
from __future__ import annotations
import logging

from equipment_tracker.backends.base import PersistenceBackend, Snapshot
from equipment_tracker.backends.database import DatabaseBackend
from equipment_tracker.backends.file import FileBackend
from equipment_tracker.config_io import load_db_config
from equipment_tracker.errors import BackendConnectionError

logger = logging.getLogger(__name__)

__all__ = [
    "PersistenceBackend",
    "Snapshot",
    "FileBackend",
    "DatabaseBackend",
    "open_backend",
]


def open_backend(settings) -> PersistenceBackend:
    """
    Pick the backend for this process. Called once at startup.

    Database first when DB_URL is set or db_config.conf parses; any failure
    falls back to local files. There is no retry.
    """
    try:
        if settings.DB_URL:
            url = settings.DB_URL
            return DatabaseBackend.connect(
                url=url,
                echo=settings.DB_ECHO,
                create_schema=url.startswith("sqlite"),
            )
        config = load_db_config(settings.data_path(settings.DB_CONFIG_FILE))
        if config is not None:
            return DatabaseBackend.connect(config, echo=settings.DB_ECHO)
    except BackendConnectionError as e:
        logger.warning("%s", e)
        logger.warning("Falling back to file-based storage for offline operation")

    backend = FileBackend.connect(settings)
    logger.info("Using offline mode (%s, %s)", backend.equipment_path, backend.request_path)
    return backend
