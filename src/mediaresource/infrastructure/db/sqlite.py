from __future__ import annotations

import logging
import os
import sqlite3
from pathlib import Path
from typing import Callable, TypeVar

from mediaresource.core.errors import ConfigurationError

logger = logging.getLogger(__name__)

SCHEMA_PATH = Path(__file__).resolve().parent / "schema.sql"

# Bumped whenever schema.sql changes shape; stored in PRAGMA user_version.
SCHEMA_VERSION = 2

DEFAULT_SQLITE_CONNECT_TIMEOUT_SECONDS = 30.0
DEFAULT_SQLITE_BUSY_TIMEOUT_MS = 30_000

# Columns added to `resources` after version 1, with the DDL used to backfill them.
_RESOURCE_COLUMNS_SINCE_V2 = {
    "managed_by": "TEXT",
    "redirect_to": "TEXT",
    "extension_configurations_json": "TEXT NOT NULL DEFAULT '{}'",
}

_N = TypeVar("_N", int, float)


def _read_positive_env(name: str, default: _N, cast: Callable[[str], _N]) -> _N:
    raw = os.getenv(name)
    if raw is None:
        return default
    try:
        value = cast(raw)
    except ValueError:
        logger.warning("Ignoring %s=%r: not a number", name, raw)
        return default
    return value if value > 0 else default


def get_connection(db_path: Path) -> sqlite3.Connection:
    timeout = _read_positive_env(
        "MEDIARES_SQLITE_CONNECT_TIMEOUT_SECONDS", DEFAULT_SQLITE_CONNECT_TIMEOUT_SECONDS, float
    )
    busy_ms = _read_positive_env("MEDIARES_SQLITE_BUSY_TIMEOUT_MS", DEFAULT_SQLITE_BUSY_TIMEOUT_MS, int)

    conn = sqlite3.connect(db_path, timeout=timeout)
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA journal_mode = WAL;")
    conn.execute("PRAGMA synchronous = NORMAL;")
    conn.execute(f"PRAGMA busy_timeout = {busy_ms};")
    return conn


def schema_version(conn: sqlite3.Connection) -> int:
    return int(conn.execute("PRAGMA user_version;").fetchone()[0])


def initialize_schema(db_path: Path, schema_path: Path = SCHEMA_PATH) -> int:
    """Create missing tables and bring an older database up to SCHEMA_VERSION.

    Returns the version the database was at before the upgrade (0 for a new file).
    """
    with get_connection(db_path) as conn:
        found = schema_version(conn)
        if found > SCHEMA_VERSION:
            raise ConfigurationError(
                f"Database {db_path} has schema version {found}; "
                f"this build supports up to {SCHEMA_VERSION}"
            )
        conn.executescript(schema_path.read_text(encoding="utf-8"))
        if 0 < found < 2:
            _add_missing_resource_columns(conn)
        if found != SCHEMA_VERSION:
            conn.execute(f"PRAGMA user_version = {SCHEMA_VERSION};")
            if found:
                logger.info("Upgraded %s from schema version %d to %d", db_path, found, SCHEMA_VERSION)
        conn.commit()
    return found


def require_current_schema(db_path: Path) -> None:
    with get_connection(db_path) as conn:
        found = schema_version(conn)
    if found != SCHEMA_VERSION:
        raise ConfigurationError(
            f"Database {db_path} is at schema version {found}, expected {SCHEMA_VERSION}. "
            "Run 'mediares init' to upgrade it."
        )


def _add_missing_resource_columns(conn: sqlite3.Connection) -> None:
    present = {row["name"] for row in conn.execute("PRAGMA table_info(resources);")}
    for name, ddl in _RESOURCE_COLUMNS_SINCE_V2.items():
        if name not in present:
            conn.execute(f"ALTER TABLE resources ADD COLUMN {name} {ddl};")
            logger.debug("Added column resources.%s", name)
