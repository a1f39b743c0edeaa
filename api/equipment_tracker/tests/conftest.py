import logging
from pathlib import Path

import pytest
from fastapi.testclient import TestClient

from equipment_tracker.backends.database import DatabaseBackend
from equipment_tracker.backends.file import FileBackend
from equipment_tracker.database import make_session_factory, session_scope
from equipment_tracker.main import create_app
from equipment_tracker.models import EquipmentIn
from equipment_tracker.services.audit import MemoryAuditSink
from equipment_tracker.services.store import RecordStore
from equipment_tracker.settings import Settings


def make_settings(root: Path, **overrides) -> Settings:
    return Settings(_env_file=None, DATA_ROOT=root, **overrides)


@pytest.fixture
def settings(tmp_path):
    return make_settings(tmp_path)


@pytest.fixture
def file_backend(tmp_path):
    return FileBackend(tmp_path / "equipment.dat", tmp_path / "requests.dat")


@pytest.fixture
def audit():
    return MemoryAuditSink()


@pytest.fixture
def store(file_backend, audit):
    s = RecordStore(file_backend, audit)
    s.load()
    return s


@pytest.fixture
def db_backend():
    backend = DatabaseBackend.connect(url="sqlite://", create_schema=True)
    yield backend
    backend.close()


@pytest.fixture
def db_session(db_backend):
    factory = make_session_factory(db_backend.engine)

    def _open():
        return session_scope(factory)

    return _open


@pytest.fixture
def client(settings):
    app = create_app(settings)
    with TestClient(app) as c:
        yield c
    _drop_file_handlers(Path(settings.DATA_ROOT))


def _drop_file_handlers(root: Path) -> None:
    # setup_logging attaches handlers per DATA_ROOT; detach the test ones
    for name in (None, "uvicorn", "uvicorn.error", "uvicorn.access"):
        lg = logging.getLogger(name)
        for h in list(lg.handlers):
            if str(getattr(h, "baseFilename", "")).startswith(str(root)):
                lg.removeHandler(h)
                h.close()


def draft(name="Rifle", quantity=10, min_threshold=5, **kw) -> EquipmentIn:
    return EquipmentIn(name=name, quantity=quantity, min_threshold=min_threshold, **kw)
