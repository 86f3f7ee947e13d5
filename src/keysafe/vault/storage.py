"""SQLite persistence for the vault configuration row and entries.

Follows the per-operation connection pattern: every call opens a WAL-mode
connection through core.db.connect() and closes it afterwards. Callers that
need several statements to commit together (bulk import) use transaction()
and pass the connection through ``conn=``.

Only ciphertext ever reaches this module for password and notes columns.
"""

import logging
import sqlite3
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, List, Optional, Union

from ..core.db import connect as db_connect
from .errors import StorageError

logger = logging.getLogger(__name__)

# Marker for "leave this column unchanged" in update_entry()
KEEP = object()


def _like_pattern(term: str) -> str:
    """Wrap term in % wildcards, escaping LIKE metacharacters."""
    escaped = term.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
    return f"%{escaped}%"


class VaultStorage:
    """Row-level CRUD over the vault database.

    Args:
        db_path: Path to SQLite database file. Parent directories are created
            on first connect.
    """

    def __init__(self, db_path: Union[str, Path]):
        self.db_path = Path(db_path)
        self._init_database()

    def _connect(self) -> sqlite3.Connection:
        return db_connect(self.db_path, row_factory=True, check_same_thread=False)

    def _init_database(self):
        """Create tables if they do not exist."""
        with self.transaction() as conn:
            conn.execute("""
                CREATE TABLE IF NOT EXISTS vault_config (
                    id          INTEGER PRIMARY KEY CHECK (id = 1),
                    kdf_salt    BLOB NOT NULL,
                    kdf_params  TEXT NOT NULL,
                    key_check   BLOB NOT NULL,
                    created_at  INTEGER NOT NULL
                )
            """)
            conn.execute("""
                CREATE TABLE IF NOT EXISTS entries (
                    id          INTEGER PRIMARY KEY AUTOINCREMENT,
                    site        TEXT NOT NULL,
                    username    TEXT NOT NULL,
                    password_ct BLOB NOT NULL,
                    notes_ct    BLOB,
                    created_at  INTEGER NOT NULL,
                    updated_at  INTEGER NOT NULL
                )
            """)
            conn.execute(
                "CREATE INDEX IF NOT EXISTS idx_entries_updated "
                "ON entries(updated_at DESC, id DESC)"
            )
        logger.debug("Vault storage ready at %s", self.db_path)

    @contextmanager
    def transaction(self) -> Iterator[sqlite3.Connection]:
        """Yield a connection; commit on success, roll back on any exception.

        sqlite3 errors are re-raised as StorageError. Other exceptions
        propagate unchanged after the rollback.
        """
        try:
            conn = self._connect()
        except sqlite3.Error as e:
            raise StorageError(f"Cannot open vault database: {e}") from e
        try:
            with conn:
                yield conn
        except sqlite3.Error as e:
            logger.error("Vault storage failure: %s", e)
            raise StorageError(str(e)) from e
        finally:
            conn.close()

    @contextmanager
    def _use(self, conn: Optional[sqlite3.Connection]) -> Iterator[sqlite3.Connection]:
        if conn is not None:
            yield conn
        else:
            with self.transaction() as own:
                yield own

    # ── Configuration row ──────────────────────────────────────────

    def get_config(self) -> Optional[sqlite3.Row]:
        with self._use(None) as conn:
            return conn.execute(
                "SELECT kdf_salt, kdf_params, key_check, created_at "
                "FROM vault_config WHERE id = 1"
            ).fetchone()

    def insert_config(
        self,
        kdf_salt: bytes,
        kdf_params: str,
        key_check: bytes,
        created_at: int,
    ) -> bool:
        """Insert the singleton config row. Returns False if one already exists."""
        with self._use(None) as conn:
            cur = conn.execute(
                "INSERT OR IGNORE INTO vault_config "
                "(id, kdf_salt, kdf_params, key_check, created_at) "
                "VALUES (1, ?, ?, ?, ?)",
                (kdf_salt, kdf_params, key_check, created_at),
            )
            return cur.rowcount == 1

    # ── Entries ────────────────────────────────────────────────────

    def insert_entry(
        self,
        site: str,
        username: str,
        password_ct: bytes,
        notes_ct: Optional[bytes],
        now: int,
        conn: Optional[sqlite3.Connection] = None,
    ) -> int:
        with self._use(conn) as c:
            cur = c.execute(
                "INSERT INTO entries "
                "(site, username, password_ct, notes_ct, created_at, updated_at) "
                "VALUES (?, ?, ?, ?, ?, ?)",
                (site, username, password_ct, notes_ct, now, now),
            )
            return cur.lastrowid

    def get_entry(self, entry_id: int) -> Optional[sqlite3.Row]:
        with self._use(None) as conn:
            return conn.execute(
                "SELECT id, site, username, password_ct, notes_ct, created_at, updated_at "
                "FROM entries WHERE id = ?",
                (entry_id,),
            ).fetchone()

    def list_entries(self, search: Optional[str] = None) -> List[sqlite3.Row]:
        """Metadata rows, newest update first; ties broken by id descending."""
        query = "SELECT id, site, username, created_at, updated_at FROM entries"
        params: tuple = ()
        if search:
            pattern = _like_pattern(search)
            query += " WHERE site LIKE ? ESCAPE '\\' OR username LIKE ? ESCAPE '\\'"
            params = (pattern, pattern)
        query += " ORDER BY updated_at DESC, id DESC"

        with self._use(None) as conn:
            return conn.execute(query, params).fetchall()

    def all_entries(self, conn: Optional[sqlite3.Connection] = None) -> List[sqlite3.Row]:
        """Full rows (ciphertext included) in id order, for backup export."""
        with self._use(conn) as c:
            return c.execute(
                "SELECT id, site, username, password_ct, notes_ct, created_at, updated_at "
                "FROM entries ORDER BY id"
            ).fetchall()

    def update_entry(
        self,
        entry_id: int,
        site: str,
        username: str,
        now: int,
        password_ct=KEEP,
        notes_ct=KEEP,
    ) -> bool:
        """Overwrite metadata and, unless KEEP, the ciphertext columns.

        Returns False if no row has that id.
        """
        sets = ["site = ?", "username = ?", "updated_at = ?"]
        params: list = [site, username, now]
        if password_ct is not KEEP:
            sets.append("password_ct = ?")
            params.append(password_ct)
        if notes_ct is not KEEP:
            sets.append("notes_ct = ?")
            params.append(notes_ct)
        params.append(entry_id)

        with self._use(None) as conn:
            cur = conn.execute(
                f"UPDATE entries SET {', '.join(sets)} WHERE id = ?",
                params,
            )
            return cur.rowcount > 0

    def delete_entry(self, entry_id: int) -> bool:
        with self._use(None) as conn:
            cur = conn.execute("DELETE FROM entries WHERE id = ?", (entry_id,))
            return cur.rowcount > 0

    def count_entries(self) -> int:
        with self._use(None) as conn:
            return conn.execute("SELECT COUNT(*) FROM entries").fetchone()[0]
