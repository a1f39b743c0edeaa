# equipment_tracker/db_models.py
"""
SQLAlchemy ORM Models for the Equipment Tracker.

Three tables: equipment, supply_requests, audit_log. The schema is owned by
the database administrators; the tracker only reads and writes rows.
"""
from __future__ import annotations
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import (
    String, Integer, Text, DateTime, CheckConstraint, func
)
from sqlalchemy.orm import Mapped, mapped_column

from equipment_tracker.database import Base
from equipment_tracker.models import (
    Equipment, SupplyRequest, Classification, RequestStatus, Priority,
)


def _aware(ts: datetime) -> datetime:
    # SQLite hands back naive values; stored times are always UTC
    return ts if ts.tzinfo is not None else ts.replace(tzinfo=timezone.utc)

# ============================================================================
# 1. EQUIPMENT
# ============================================================================

class EquipmentRow(Base):
    __tablename__ = "equipment"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(64), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text)
    quantity: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    min_threshold: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    unit: Mapped[Optional[str]] = mapped_column(String(32))
    location: Mapped[Optional[str]] = mapped_column(String(64))
    classification: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    checksum: Mapped[Optional[str]] = mapped_column(String(16))
    last_updated: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=func.now(),
        nullable=False,
    )

    __table_args__ = (
        CheckConstraint("quantity >= 0", name="ck_equipment_quantity"),
        CheckConstraint("classification BETWEEN 0 AND 3", name="ck_equipment_classification"),
    )

    @classmethod
    def from_record(cls, item: Equipment) -> "EquipmentRow":
        # id is left to the database sequence
        return cls(
            name=item.name,
            description=item.description,
            quantity=item.quantity,
            min_threshold=item.min_threshold,
            unit=item.unit,
            location=item.location,
            classification=int(item.classification),
            checksum=item.checksum,
            last_updated=item.last_updated,
        )

    def to_record(self) -> Equipment:
        return Equipment(
            id=self.id,
            name=self.name,
            description=self.description or "",
            quantity=self.quantity,
            min_threshold=self.min_threshold,
            unit=self.unit or "",
            location=self.location or "",
            classification=Classification(self.classification),
            checksum=self.checksum or "",
            last_updated=_aware(self.last_updated),
        )


# ============================================================================
# 2. SUPPLY REQUESTS
# ============================================================================

class SupplyRequestRow(Base):
    __tablename__ = "supply_requests"

    req_id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    # Not a foreign key: requests outlive the equipment they reference
    equipment_id: Mapped[int] = mapped_column(Integer, nullable=False)
    requested_qty: Mapped[int] = mapped_column(Integer, nullable=False)
    requesting_unit: Mapped[Optional[str]] = mapped_column(String(32))
    request_time: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=func.now(),
        nullable=False,
    )
    status: Mapped[int] = mapped_column(Integer, default=int(RequestStatus.PENDING), nullable=False)
    priority: Mapped[int] = mapped_column(Integer, default=int(Priority.NORMAL), nullable=False)

    __table_args__ = (
        CheckConstraint("requested_qty > 0", name="ck_supply_requests_qty"),
        CheckConstraint("status BETWEEN 0 AND 3", name="ck_supply_requests_status"),
        CheckConstraint("priority BETWEEN 1 AND 4", name="ck_supply_requests_priority"),
    )

    @classmethod
    def from_record(cls, req: SupplyRequest) -> "SupplyRequestRow":
        return cls(
            equipment_id=req.equipment_id,
            requested_qty=req.requested_qty,
            requesting_unit=req.requesting_unit,
            request_time=req.request_time,
            status=int(req.status),
            priority=int(req.priority),
        )

    def to_record(self) -> SupplyRequest:
        return SupplyRequest(
            req_id=self.req_id,
            equipment_id=self.equipment_id,
            requested_qty=self.requested_qty,
            requesting_unit=self.requesting_unit or "",
            request_time=_aware(self.request_time),
            status=RequestStatus(self.status),
            priority=Priority(self.priority),
        )


# ============================================================================
# 3. AUDIT LOG
# ============================================================================

class AuditLogRow(Base):
    __tablename__ = "audit_log"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    action: Mapped[str] = mapped_column(Text, nullable=False)
    user_info: Mapped[Optional[str]] = mapped_column(String(64))
    timestamp: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=func.now(),
        nullable=False,
    )
