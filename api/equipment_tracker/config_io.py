
from __future__ import annotations
import logging
from pathlib import Path
from typing import Optional

from dotenv import dotenv_values
from pydantic import BaseModel, Field, ValidationError

logger = logging.getLogger(__name__)

REQUIRED_KEYS = ("host", "port", "dbname", "user", "password")


class DBConfig(BaseModel):
    """Connection settings read from db_config.conf (key=value lines)."""
    host: str = Field(min_length=1, max_length=63)
    port: int = Field(ge=1, le=65535)
    dbname: str = Field(min_length=1, max_length=63)
    user: str = Field(min_length=1, max_length=63)
    password: str = Field(max_length=127)


def _read_kv(p: Path) -> dict:
    if not p.is_file():
        return {}
    try:
        raw = dotenv_values(p, encoding="utf-8")
    except (OSError, UnicodeDecodeError) as e:
        logger.warning("Cannot read %s: %s", p, e)
        return {}
    return {k.strip().lower(): (v or "").strip() for k, v in raw.items() if k}


def load_db_config(path: Path) -> Optional[DBConfig]:
    """
    Parse the database config file.

    Returns None (offline mode) when the file is missing, a required key is
    absent, or a value does not parse. Never raises.
    """
    p = Path(path).expanduser()
    values = _read_kv(p)
    if not values:
        logger.warning("Database config %s not found or empty; using offline mode", p)
        return None
    missing = [k for k in REQUIRED_KEYS if k not in values]
    if missing:
        logger.warning("Database config %s lacks %s; using offline mode", p, ", ".join(missing))
        return None
    try:
        return DBConfig(**{k: values[k] for k in REQUIRED_KEYS})
    except ValidationError as e:
        logger.warning("Database config %s is invalid (%s); using offline mode", p, e.errors()[0].get("msg"))
        return None
