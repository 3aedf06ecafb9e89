"""
store.py — read-only handle on the local manifest database
"""

from __future__ import annotations

import logging
import os
import pathlib
import sqlite3

from .errors import OpenError, QueryError

logger = logging.getLogger(__name__)


class ManifestStore:
    """Owns the SQLite connection for one local manifest file.

    The file is opened with ``mode=ro``; nothing here creates tables or
    starts write transactions. ``check_same_thread`` is disabled so that
    read-only queries may come from worker threads (e.g. a web server's
    threadpool).
    """

    def __init__(self, conn: sqlite3.Connection, path: str):
        self._conn = conn
        self._path = path

    @classmethod
    def open(cls, path) -> ManifestStore:
        """Open ``path`` read-only.

        Raises:
            OpenError: If the file is missing, unreadable, or not a database.
        """
        path = os.path.abspath(path)
        if not os.path.isfile(path):
            raise OpenError(f"Manifest database not found: {path}")

        uri = pathlib.Path(path).as_uri() + "?mode=ro"
        try:
            conn = sqlite3.connect(uri, uri=True, check_same_thread=False)
        except sqlite3.Error as e:
            raise OpenError(f"Cannot open manifest database {path}: {e}") from e

        try:
            # sqlite opens lazily; touch the schema so corrupt files fail here
            conn.execute("SELECT name FROM sqlite_master LIMIT 1").fetchall()
        except sqlite3.Error as e:
            conn.close()
            raise OpenError(f"Cannot open manifest database {path}: {e}") from e

        logger.info("Opened manifest database %s", path)
        return cls(conn, path)

    @property
    def path(self) -> str:
        return self._path

    @property
    def closed(self) -> bool:
        return self._conn is None

    @property
    def connection(self) -> sqlite3.Connection:
        """The underlying connection.

        Raises:
            QueryError: If the store has been closed.
        """
        if self._conn is None:
            raise QueryError(f"Manifest store is closed: {self._path}")
        return self._conn

    def close(self):
        if self._conn is not None:
            self._conn.close()
            self._conn = None

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        self.close()
        return False

    def __repr__(self):
        state = "closed" if self.closed else "open"
        return f"<ManifestStore {self._path!r} ({state})>"

    def tables(self) -> list[str]:
        """List entity tables, i.e. tables with ``id`` and ``json`` columns."""
        conn = self.connection
        try:
            names = [r[0] for r in conn.execute(
                "SELECT name FROM sqlite_master WHERE type='table' ORDER BY name")]
            result = []
            for name in names:
                if name.startswith("sqlite_"):
                    continue
                cols = {c[1] for c in conn.execute(
                    "SELECT * FROM pragma_table_info(?)", (name,))}
                if {"id", "json"} <= cols:
                    result.append(name)
        except sqlite3.Error as e:
            raise QueryError(f"Cannot list tables: {e}") from e
        return result

    def count(self, table: str) -> int:
        """Return the number of rows in ``table``."""
        sql = f"SELECT COUNT(*) FROM {quote_table(table)}"
        try:
            return self.connection.execute(sql).fetchone()[0]
        except sqlite3.Error as e:
            raise QueryError(f"Count on {table} failed: {e}") from e


def quote_table(table):
    """Quote a table identifier for interpolation into SQL.

    Raises:
        QueryError: If the name cannot be safely bracket-quoted.
    """
    if not isinstance(table, str) or not table or "]" in table or "\x00" in table:
        raise QueryError(f"Invalid table name: {table!r}")
    return f"[{table}]"
