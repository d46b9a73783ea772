"""Database layer package.

Public re-exports so callers can write::

    from llamap.db import get_connection, init_db, open_store
"""

from __future__ import annotations

import sqlite3
from pathlib import Path

from llamap.db.connection import get_connection
from llamap.db.schema import init_db


def open_store(db_path: str | Path) -> sqlite3.Connection:
    """Open the store at *db_path* and make sure its schema exists."""
    conn = get_connection(db_path)
    try:
        init_db(conn)
    except Exception:
        conn.close()
        raise
    return conn


__all__ = ["get_connection", "init_db", "open_store"]
