from __future__ import annotations

import sqlite3
from pathlib import Path
from typing import Iterator, Sequence

from .errors import StoreOpenError


class ProfileDB:
    """Read-only handle on one of the profile's SQLite stores.

    Chrome keeps these files locked while it runs; opening them in
    ``mode=ro`` never writes a journal next to the user's data.
    """

    def __init__(self, db_path: Path | str, *, busy_timeout_ms: int = 5000):
        self.db_path = Path(db_path)
        self.busy_timeout_ms = max(0, int(busy_timeout_ms))
        self.conn: sqlite3.Connection | None = None

    def __enter__(self) -> "ProfileDB":
        self.open()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def open(self) -> None:
        if not self.db_path.is_file():
            raise StoreOpenError(f"{self.db_path.name} not found in {self.db_path.parent}")
        # as_uri() percent-encodes "#", "%" and "?" in directory names.
        uri = self.db_path.resolve().as_uri() + "?mode=ro"
        timeout_s = max(0.1, self.busy_timeout_ms / 1000.0) if self.busy_timeout_ms > 0 else 0.1
        try:
            self.conn = sqlite3.connect(uri, uri=True, timeout=timeout_s)
            self.conn.row_factory = sqlite3.Row
            # sqlite3 connects lazily; touching the schema surfaces
            # "file is not a database" here instead of on the first query.
            self.conn.execute("SELECT name FROM sqlite_master LIMIT 1").fetchall()
        except sqlite3.Error as e:
            self.close()
            raise StoreOpenError(f"cannot open {self.db_path}: {e}") from e

    def close(self) -> None:
        if self.conn is not None:
            self.conn.close()
            self.conn = None

    def query(self, sql: str, params: Sequence = ()) -> Iterator[sqlite3.Row]:
        """Yield rows one at a time so callers can stop between rows."""
        cursor = self._cursor().execute(sql, tuple(params))
        try:
            for row in cursor:
                yield row
        finally:
            cursor.close()

    def query_one(self, sql: str, params: Sequence = ()) -> sqlite3.Row | None:
        return self._cursor().execute(sql, tuple(params)).fetchone()

    def has_column(self, table_name: str, column_name: str) -> bool:
        rows = self._cursor().execute(f"PRAGMA table_info({table_name})").fetchall()
        return any(str(r[1]) == column_name for r in rows)

    def _cursor(self) -> sqlite3.Cursor:
        if self.conn is None:
            raise RuntimeError("database is not open")
        return self.conn.cursor()
