from __future__ import annotations
from datetime import datetime
from enum import IntEnum
from typing import Optional
from pydantic import BaseModel, ConfigDict, Field, ValidationInfo, field_validator

# Field bounds mirror the fixed-size snapshot records (one byte kept for NUL)
NAME_MAX = 63
DESCRIPTION_MAX = 255
UNIT_MAX = 31
LOCATION_MAX = 63
TEXT_LIMITS = {
    "name": NAME_MAX,
    "description": DESCRIPTION_MAX,
    "unit": UNIT_MAX,
    "location": LOCATION_MAX,
}


def _fits_record(value: str, limit: int) -> str:
    # Snapshot fields hold UTF-8 bytes, not characters
    size = len(value.encode("utf-8"))
    if size > limit:
        raise ValueError(f"encodes to {size} bytes, at most {limit} fit")
    return value


class Classification(IntEnum):
    UNCLASSIFIED = 0
    RESTRICTED = 1
    CONFIDENTIAL = 2
    SECRET = 3


class RequestStatus(IntEnum):
    PENDING = 0
    APPROVED = 1
    FULFILLED = 2
    DENIED = 3


class Priority(IntEnum):
    LOW = 1
    NORMAL = 2
    HIGH = 3
    CRITICAL = 4


class StockStatus(IntEnum):
    OK = 0
    WATCH = 1
    LOW = 2


# =========================================================================
# Drafts (what callers hand to the store)
# =========================================================================

class EquipmentIn(BaseModel):
    name: str = Field(max_length=NAME_MAX)
    description: str = Field(default="", max_length=DESCRIPTION_MAX)
    quantity: int = Field(default=0, ge=0)
    min_threshold: int = Field(default=0, ge=0)
    unit: str = Field(default="ea", max_length=UNIT_MAX)
    location: str = Field(default="", max_length=LOCATION_MAX)
    classification: Classification = Classification.UNCLASSIFIED

    @field_validator("name", "description", "unit", "location")
    @classmethod
    def text_fits_record(cls, v: str, info: ValidationInfo) -> str:
        return _fits_record(v, TEXT_LIMITS[info.field_name])


class SupplyRequestIn(BaseModel):
    equipment_id: int = Field(ge=1)
    requested_qty: int = Field(ge=1)
    requesting_unit: str = Field(default="", max_length=UNIT_MAX)
    priority: Priority = Priority.NORMAL

    @field_validator("requesting_unit")
    @classmethod
    def unit_fits_record(cls, v: str) -> str:
        return _fits_record(v, UNIT_MAX)


class QuantityUpdate(BaseModel):
    quantity: int = Field(ge=0)


# =========================================================================
# Records (owned by the store)
# =========================================================================

class Equipment(EquipmentIn):
    model_config = ConfigDict(validate_assignment=True)

    id: int = Field(ge=1)
    last_updated: datetime
    checksum: str = ""


class SupplyRequest(SupplyRequestIn):
    model_config = ConfigDict(validate_assignment=True)

    req_id: int = Field(ge=1)
    request_time: datetime
    status: RequestStatus = RequestStatus.PENDING


# =========================================================================
# API output
# =========================================================================

class EquipmentOut(Equipment):
    stock_status: StockStatus

    @classmethod
    def from_record(cls, item: Equipment, status: StockStatus) -> "EquipmentOut":
        return cls(**item.model_dump(), stock_status=status)


class HealthOut(BaseModel):
    mode: str
    equipment_count: int
    request_count: int
    pending_requests: int
    autosave: bool = False
    log_path: Optional[str] = None
