"""Database initialisation.

``init_db(conn)`` is idempotent and safe to call on an existing store.  The
schema is versionless: there is no migration step.
"""

from __future__ import annotations

import sqlite3

from llamap.config import settings
from llamap.errors import StoreIOError


def init_db(conn: sqlite3.Connection) -> None:
    """Create the ``pages`` and ``page_stages`` tables if they do not exist.

    Args:
        conn: An open, configured SQLite connection.

    Raises:
        StoreIOError: If the schema cannot be applied.
    """
    sql = settings.schema_path.read_text(encoding="utf-8")
    try:
        # executescript() issues an implicit COMMIT before running, which is
        # fine for a DDL-only script.
        conn.executescript(sql)
    except sqlite3.Error as exc:
        raise StoreIOError(f"Unable to initialise store schema: {exc}") from exc
