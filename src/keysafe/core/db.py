# Core Module - SQLite connections for the vault database
#
# The vault opens one short-lived connection per operation, from whichever
# API worker thread handles the request. connect() gives each of them the
# same settings:
#
#   - WAL journal, so list/get requests read while an add or import writes
#   - a busy timeout, so two writers queue instead of failing with SQLITE_BUSY
#   - foreign_keys on
#
# The database file may live in a directory that does not exist yet
# (KEYSAFE_DB_PATH defaults to data/vault.db); it is created on first open.

import sqlite3
from pathlib import Path
from typing import Union

BUSY_TIMEOUT_MS = 5000


def connect(
    db_path: Union[str, Path],
    *,
    row_factory: bool = False,
    check_same_thread: bool = True,
) -> sqlite3.Connection:
    """Open the vault database, creating its parent directory if needed.

    Args:
        db_path: Path to the database file.
        row_factory: Return rows as sqlite3.Row (column access by name).
        check_same_thread: False when the connection is handed across
            threads, as the storage layer does.
    """
    db_path = Path(db_path)
    db_path.parent.mkdir(parents=True, exist_ok=True)

    conn = sqlite3.connect(
        str(db_path),
        check_same_thread=check_same_thread,
        timeout=BUSY_TIMEOUT_MS / 1000,
    )
    conn.execute("PRAGMA journal_mode=WAL")
    conn.execute(f"PRAGMA busy_timeout={BUSY_TIMEOUT_MS}")
    conn.execute("PRAGMA foreign_keys=ON")
    if row_factory:
        conn.row_factory = sqlite3.Row
    return conn
