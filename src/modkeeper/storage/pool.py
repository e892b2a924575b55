"""Thread-safe SQLite connection pool.

Connections are opened in autocommit mode (``isolation_level=None``) so
that every statement outside :func:`transaction` commits on its own, the
same way single upserts behave against a server database. Multi-statement
atomic work opens an explicit transaction.
"""

from __future__ import annotations

import queue
import sqlite3
import threading
from contextlib import contextmanager
from pathlib import Path
from typing import Generator

from modkeeper.core.exceptions import ConnectionAcquisitionError
from modkeeper.core.logging import get_logger


logger = get_logger(__name__)


class ConnectionPool:
    """Bounded pool of SQLite connections shared across worker threads.

    A connection is owned exclusively by the borrowing operation until it
    is returned; :meth:`connection` returns it on every exit path.
    """

    def __init__(
        self,
        db_path: str | Path,
        size: int = 4,
        acquire_timeout: float | None = None,
    ) -> None:
        """Open ``size`` connections to ``db_path``.

        Args:
            db_path: Path to the database file; parent directories are created.
            size: Number of pooled connections.
            acquire_timeout: Seconds to wait for a free connection; None waits
                indefinitely.

        Raises:
            ConnectionAcquisitionError: If the database cannot be opened.
        """
        self.db_path = Path(db_path)
        self.size = size
        self.acquire_timeout = acquire_timeout
        self._pool: queue.Queue[sqlite3.Connection] = queue.Queue(maxsize=size)
        self._connections: list[sqlite3.Connection] = []
        self._closed = False
        self._lock = threading.Lock()

        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        for _ in range(size):
            conn = self._open()
            self._connections.append(conn)
            self._pool.put(conn)

        logger.info("Connection pool opened", db_path=str(self.db_path), size=size)

    def _open(self) -> sqlite3.Connection:
        try:
            conn = sqlite3.connect(
                str(self.db_path),
                check_same_thread=False,
                isolation_level=None,
                timeout=30.0,
            )
            conn.execute("PRAGMA journal_mode=WAL")
            conn.execute("PRAGMA foreign_keys=ON")
        except sqlite3.Error as exc:
            raise ConnectionAcquisitionError(
                f"Could not open database at {self.db_path}: {exc}",
                details={"db_path": str(self.db_path)},
            ) from exc
        conn.row_factory = sqlite3.Row
        return conn

    @contextmanager
    def connection(self) -> Generator[sqlite3.Connection, None, None]:
        """Borrow a connection for the duration of the block.

        Raises:
            ConnectionAcquisitionError: If the pool is closed or no connection
                frees up within the acquire timeout.
        """
        if self._closed:
            raise ConnectionAcquisitionError("Connection pool is closed")
        try:
            conn = self._pool.get(timeout=self.acquire_timeout)
        except queue.Empty as exc:
            raise ConnectionAcquisitionError(
                f"No connection available after {self.acquire_timeout}s",
                details={"pool_size": self.size},
            ) from exc
        try:
            yield conn
        finally:
            if conn.in_transaction:
                conn.rollback()
            self._pool.put(conn)

    def close(self) -> None:
        """Close every pooled connection. Further borrows fail."""
        with self._lock:
            if self._closed:
                return
            self._closed = True
            for conn in self._connections:
                conn.close()
            self._connections.clear()
        logger.info("Connection pool closed", db_path=str(self.db_path))


@contextmanager
def transaction(conn: sqlite3.Connection) -> Generator[sqlite3.Connection, None, None]:
    """Run the block in one explicit transaction.

    Commits on success; rolls back and re-raises on any exception.
    """
    conn.execute("BEGIN")
    try:
        yield conn
    except BaseException:
        conn.rollback()
        raise
    else:
        conn.commit()


__all__ = ["ConnectionPool", "transaction"]
