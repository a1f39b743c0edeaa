# equipment_tracker/settings.py
"""
Equipment Tracker Settings - file snapshots with optional PostgreSQL.
"""
from __future__ import annotations
from pathlib import Path
from typing import Optional
from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field, AliasChoices

class Settings(BaseSettings):
    # =========================================================================
    # File Storage (snapshots, audit log, reports)
    # =========================================================================
    DATA_ROOT: Path = Field(
        default=Path.cwd() / "tracker-data",
        validation_alias=AliasChoices("TRACKER_DATA_ROOT", "DATA_ROOT"),
    )
    EQUIPMENT_FILE: str = Field(default="equipment.dat", validation_alias="TRACKER_EQUIPMENT_FILE")
    REQUEST_FILE: str = Field(default="requests.dat", validation_alias="TRACKER_REQUEST_FILE")
    AUDIT_LOG_FILE: str = Field(default="equipment.log", validation_alias="TRACKER_AUDIT_LOG_FILE")
    REPORT_FILE: str = Field(default="inventory_report.txt", validation_alias="TRACKER_REPORT_FILE")

    # =========================================================================
    # PostgreSQL Database
    # =========================================================================
    DB_CONFIG_FILE: str = Field(default="db_config.conf", validation_alias="TRACKER_DB_CONFIG_FILE")
    # Explicit SQLAlchemy URL, wins over DB_CONFIG_FILE when set
    DB_URL: Optional[str] = Field(default=None, validation_alias="TRACKER_DB_URL")
    DB_ECHO: bool = Field(default=False, validation_alias="TRACKER_DB_ECHO")

    # =========================================================================
    # Store limits / behaviour
    # =========================================================================
    MAX_ITEMS: int = Field(default=1000, ge=1, validation_alias="TRACKER_MAX_ITEMS")
    MAX_REQUESTS: int = Field(default=500, ge=1, validation_alias="TRACKER_MAX_REQUESTS")
    AUTOSAVE: bool = Field(
        default=False,
        validation_alias="TRACKER_AUTOSAVE",
        description="Flush file snapshots after every mutation instead of only at shutdown",
    )

    # =========================================================================
    # Logging
    # =========================================================================
    LOG_LEVEL: str = Field(default="INFO", validation_alias="TRACKER_LOG_LEVEL")

    model_config = SettingsConfigDict(
        env_file=".env",
        env_prefix="",
        case_sensitive=False,
        extra="ignore",
        populate_by_name=True,
    )

    def data_path(self, name: str) -> Path:
        """Resolve a file name relative to DATA_ROOT (absolute names pass through)."""
        p = Path(name).expanduser()
        if p.is_absolute():
            return p
        return Path(self.DATA_ROOT).expanduser() / p

settings = Settings()
