"""SQLite connection factory.

Usage::

    from contextlib import closing

    from llamap.db.connection import get_connection

    with closing(get_connection("site.db")) as conn:
        cursor = conn.execute("SELECT 1")
"""

from __future__ import annotations

import sqlite3
from pathlib import Path

from llamap.errors import StoreIOError


def get_connection(db_path: str | Path) -> sqlite3.Connection:
    """Open and configure a SQLite connection to the page store.

    Steps performed on every new connection:
    1. Enable ``PRAGMA foreign_keys = ON``.
    2. Switch to WAL journal mode so a crashed run never leaves a torn write.

    Args:
        db_path: Path to the store file, or ``":memory:"``.

    Returns:
        A configured :class:`sqlite3.Connection` with ``row_factory`` set to
        :class:`sqlite3.Row` so columns can be accessed by name.

    Raises:
        StoreIOError: If the file cannot be opened or configured.
    """
    path = str(db_path)

    try:
        # Create parent directory if needed (no-op for `:memory:`)
        if path != ":memory:":
            Path(path).expanduser().resolve().parent.mkdir(parents=True, exist_ok=True)

        conn = sqlite3.connect(path, check_same_thread=False)
        conn.row_factory = sqlite3.Row

        # PRAGMAs
        conn.execute("PRAGMA foreign_keys = ON")
        conn.execute("PRAGMA journal_mode = WAL")
    except (sqlite3.Error, OSError) as exc:
        raise StoreIOError(f"Unable to open store {path!r}: {exc}") from exc

    return conn
