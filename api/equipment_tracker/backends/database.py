# equipment_tracker/backends/database.py
"""
Database backend - every create/update is written through immediately.

All statements go through the ORM, so values are always bound parameters.
"""
from __future__ import annotations
import logging
from typing import Optional, Sequence, Union

from sqlalchemy import select, update, func
from sqlalchemy.engine import Engine, URL
from sqlalchemy.exc import SQLAlchemyError

from equipment_tracker.backends.base import PersistenceBackend, Snapshot
from equipment_tracker.config_io import DBConfig
from equipment_tracker.database import (
    Base, create_db_engine, get_database_url, make_session_factory, ping, session_scope,
)
from equipment_tracker.db_models import AuditLogRow, EquipmentRow, SupplyRequestRow
from equipment_tracker.errors import BackendConnectionError
from equipment_tracker.models import Equipment, SupplyRequest
from equipment_tracker.services.identifiers import IdAllocator

logger = logging.getLogger(__name__)

DESCRIPTIONS = {
    "postgresql": "PostgreSQL Database",
    "sqlite": "SQLite Database",
}


class DatabaseBackend(PersistenceBackend):

    mode = "database"
    accepts_live_writes = True

    def __init__(self, engine: Engine):
        self._engine: Optional[Engine] = engine
        self._factory = make_session_factory(engine)
        self._backend_name = engine.url.get_backend_name()

    @classmethod
    def connect(
        cls,
        config: Optional[DBConfig] = None,
        *,
        url: Union[str, URL, None] = None,
        echo: bool = False,
        create_schema: bool = False,
    ) -> "DatabaseBackend":
        """
        Open the engine and prove the connection works.

        Raises BackendConnectionError on any failure; the engine is disposed
        before raising.
        """
        if url is None:
            if config is None:
                raise BackendConnectionError("No database configuration")
            url = get_database_url(config)

        engine = None
        try:
            engine = create_db_engine(url, echo=echo)
            ping(engine)
            if create_schema:
                Base.metadata.create_all(engine, checkfirst=True)
        except (SQLAlchemyError, ImportError) as e:
            if engine is not None:
                engine.dispose()
            raise BackendConnectionError(f"Database connection failed: {e}") from e

        logger.info("Connected to database %s", engine.url.render_as_string(hide_password=True))
        return cls(engine)

    @property
    def engine(self) -> Engine:
        if self._engine is None:
            raise BackendConnectionError("Database backend is closed")
        return self._engine

    def _session(self):
        if self._engine is None:
            raise BackendConnectionError("Database backend is closed")
        return session_scope(self._factory)

    # =========================================================================
    # Bulk load
    # =========================================================================

    def load_all(self, max_items: int, max_requests: int) -> Snapshot:
        """Raises BackendConnectionError when the tables cannot be read."""
        try:
            with self._session() as db:
                equipment = self._load_rows(db, EquipmentRow, EquipmentRow.id, max_items, "equipment items")
                requests = self._load_rows(db, SupplyRequestRow, SupplyRequestRow.req_id, max_requests, "supply requests")
        except SQLAlchemyError as e:
            raise BackendConnectionError(f"Database load failed: {e}") from e
        logger.info("Loaded %d equipment items and %d supply requests from database", len(equipment), len(requests))
        return Snapshot(equipment=equipment, requests=requests)

    @staticmethod
    def _load_rows(db, model, pk, limit: int, label: str) -> list:
        total = db.execute(select(func.count()).select_from(model)).scalar_one()
        if total > limit:
            logger.warning("Database contains %d %s, more than the maximum; truncating to %d", total, label, limit)
        out = []
        for row in db.execute(select(model).order_by(pk).limit(limit)).scalars():
            try:
                out.append(row.to_record())
            except ValueError as e:
                logger.warning("Skipping invalid %s row %s: %s", model.__tablename__, getattr(row, pk.key), e)
        return out

    def save_all(
        self,
        equipment: Sequence[Equipment],
        requests: Sequence[SupplyRequest],
        allocator: IdAllocator,
    ) -> None:
        # Rows were written as they changed
        return None

    # =========================================================================
    # Per-operation writes
    # =========================================================================

    def insert_equipment(self, item: Equipment) -> Optional[int]:
        try:
            with self._session() as db:
                row = EquipmentRow.from_record(item)
                db.add(row)
                db.flush()
                return row.id
        except SQLAlchemyError as e:
            logger.error("Database insert of equipment %r failed: %s", item.name, e)
            return None

    def update_equipment(self, item: Equipment) -> bool:
        stmt = (
            update(EquipmentRow)
            .where(EquipmentRow.id == item.id)
            .values(
                quantity=item.quantity,
                checksum=item.checksum,
                last_updated=item.last_updated,
            )
        )
        try:
            with self._session() as db:
                result = db.execute(stmt)
                if result.rowcount != 1:
                    logger.warning("Database update of equipment %d touched %d rows", item.id, result.rowcount)
                    return False
                return True
        except SQLAlchemyError as e:
            logger.error("Database update of equipment %d failed: %s", item.id, e)
            return False

    def insert_request(self, req: SupplyRequest) -> Optional[int]:
        try:
            with self._session() as db:
                row = SupplyRequestRow.from_record(req)
                db.add(row)
                db.flush()
                return row.req_id
        except SQLAlchemyError as e:
            logger.error("Database insert of supply request for equipment %d failed: %s", req.equipment_id, e)
            return None

    def record_audit(self, action: str, user_info: str = "system") -> bool:
        try:
            with self._session() as db:
                db.add(AuditLogRow(action=action, user_info=user_info))
            return True
        except SQLAlchemyError as e:
            logger.error("Database audit write failed: %s", e)
            return False

    def close(self) -> None:
        if self._engine is not None:
            self._engine.dispose()
            self._engine = None
            logger.info("Database connection released")

    def describe(self) -> str:
        return DESCRIPTIONS.get(self._backend_name, f"{self._backend_name} database")
