from __future__ import annotations

import os
from pathlib import Path
from typing import Optional

DB_ENV = "LISTKEEPER_DB"
LOG_ENV = "LISTKEEPER_LOG"
DATA_DIR = Path.home() / ".listkeeper"


def _env_path(name: str) -> Optional[Path]:
    value = os.getenv(name)
    return Path(value).expanduser().resolve() if value else None


def default_db_path() -> Path:
    """
    Per-user store holding every list, the current-list pointer and the
    key-mapping file setting:
      ~/.listkeeper/listkeeper.db

    LISTKEEPER_DB or the --db CLI option point elsewhere.
    """
    return _env_path(DB_ENV) or (DATA_DIR / "listkeeper.db").resolve()


def default_log_path(db_path: Optional[Path] = None) -> Path:
    """Log file for editor sessions: LISTKEEPER_LOG, else next to the database."""
    return _env_path(LOG_ENV) or (db_path or default_db_path()).with_name("listkeeper.log")
