"""SQLite connection factory and transaction helper.

Usage::

    from crawlstore.db.connection import get_connection, transaction

    conn = get_connection()
    with transaction(conn):
        conn.execute("DELETE FROM items WHERE owner = ?", (owner,))
"""

from __future__ import annotations

import sqlite3
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, Optional

from crawlstore.config import settings
from crawlstore.errors import ConnectivityFailure, StoreError, TransactionFailure


def get_connection(db_path: Optional[Path] = None) -> sqlite3.Connection:
    """Open and configure a SQLite connection.

    Steps performed on every new connection:
    1. Apply ``settings.busy_timeout`` so writers wait on a locked database.
    2. Switch to WAL journal mode for concurrent readers.

    The connection is opened with ``check_same_thread=False``; callers that
    share it between threads must serialise access themselves
    (:class:`~crawlstore.store.FrontierStore` does).

    Args:
        db_path: Override the DB path.  Defaults to ``settings.db_path``.

    Returns:
        A configured :class:`sqlite3.Connection` with ``row_factory`` set to
        :class:`sqlite3.Row` so columns can be accessed by name.

    Raises:
        ConnectivityFailure: If the database file cannot be opened.
    """
    path = db_path or settings.db_path

    # Create parent directory if needed (no-op for `:memory:`)
    if str(path) != ":memory:":
        settings.ensure_workspace()

    try:
        conn = sqlite3.connect(
            str(path), timeout=settings.busy_timeout, check_same_thread=False
        )
    except sqlite3.DatabaseError as exc:
        raise ConnectivityFailure(f"Cannot open database {str(path)!r}: {exc}") from exc

    conn.row_factory = sqlite3.Row
    try:
        # First statement that reads the file; fails here if it is not a database.
        conn.execute("PRAGMA journal_mode = WAL")
    except sqlite3.DatabaseError as exc:
        conn.close()
        raise ConnectivityFailure(f"Cannot open database {str(path)!r}: {exc}") from exc

    return conn


def is_closed_error(exc: sqlite3.Error) -> bool:
    """Return ``True`` if *exc* was raised because the connection is closed."""
    return isinstance(exc, sqlite3.ProgrammingError) and "closed" in str(exc)


@contextmanager
def transaction(conn: sqlite3.Connection) -> Iterator[sqlite3.Connection]:
    """Run the body as one transaction: commit on success, roll back on error.

    Driver errors are re-raised as :class:`TransactionFailure` (or
    :class:`ConnectivityFailure` for a closed connection).  Any other
    exception propagates unchanged after the rollback.
    """
    try:
        with conn:
            yield conn
    except sqlite3.Error as exc:
        if is_closed_error(exc):
            raise ConnectivityFailure(str(exc)) from exc
        raise TransactionFailure(str(exc)) from exc


@contextmanager
def reading(conn: sqlite3.Connection) -> Iterator[sqlite3.Connection]:
    """Wrap a read so driver errors surface as :class:`StoreError` subclasses.

    A closed connection becomes :class:`ConnectivityFailure`; any other driver
    error becomes a plain :class:`StoreError`.
    """
    try:
        yield conn
    except sqlite3.Error as exc:
        if is_closed_error(exc):
            raise ConnectivityFailure(str(exc)) from exc
        raise StoreError(str(exc)) from exc
