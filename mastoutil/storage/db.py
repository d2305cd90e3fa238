from __future__ import annotations

import logging
import sqlite3
import threading
import time
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator

from ..config import get
from .errors import StorageUnavailable

LOG = logging.getLogger(__name__)

MEMORY = ":memory:"


def app_dir() -> Path:
    return Path.home() / get("storage.app_dir", ".mastoutil")


def db_path() -> Path:
    return app_dir() / get("storage.db_name", "masto_acct_data.db")


class Store:
    """Handle over the single SQLite connection used by this process.

    Every storage operation takes a Store explicitly. Use it as a context
    manager so the connection is released on exit.
    """

    def __init__(self, conn: sqlite3.Connection, path: Path | str):
        self._conn: sqlite3.Connection | None = conn
        self.path = path
        # Serializes reconcile/create/drop if a caller ever shares the handle
        self.schema_lock = threading.RLock()
        self._tx_depth = 0

    @property
    def conn(self) -> sqlite3.Connection:
        if self._conn is None:
            raise StorageUnavailable(f"Store at {self.path} is closed")
        return self._conn

    @property
    def closed(self) -> bool:
        return self._conn is None

    def execute(self, sql: str, params=()) -> sqlite3.Cursor:
        return self.conn.execute(sql, params)

    @contextmanager
    def transaction(self) -> Iterator[sqlite3.Connection]:
        """BEGIN/COMMIT around the block, ROLLBACK on any exception.

        Nested blocks join the outermost transaction.
        """
        conn = self.conn
        if self._tx_depth:
            self._tx_depth += 1
            try:
                yield conn
            finally:
                self._tx_depth -= 1
            return

        conn.execute("BEGIN")
        self._tx_depth = 1
        try:
            yield conn
        except BaseException:
            if conn.in_transaction:
                conn.execute("ROLLBACK")
            raise
        else:
            try:
                conn.execute("COMMIT")
            except sqlite3.Error:
                # A failed COMMIT (deferred constraint, busy, disk full) leaves the transaction open
                if conn.in_transaction:
                    conn.execute("ROLLBACK")
                raise
        finally:
            self._tx_depth = 0

    def close(self) -> None:
        if self._conn is not None:
            self._conn.close()
            self._conn = None
            LOG.debug("Closed store %s", self.path)

    def __enter__(self) -> "Store":
        return self

    def __exit__(self, *exc) -> None:
        self.close()


def _connect(path: Path | str) -> sqlite3.Connection:
    # Autocommit: transactions are issued explicitly by Store.transaction()
    conn = sqlite3.connect(str(path), isolation_level=None)
    try:
        conn.row_factory = sqlite3.Row
        # Fails with "file is not a database" on foreign files
        conn.execute("SELECT name FROM sqlite_master LIMIT 1").fetchall()

        conn.execute("PRAGMA journal_mode=WAL;")
        conn.execute(f"PRAGMA busy_timeout={int(get('storage.busy_timeout_ms', 5000))};")
        if get("storage.foreign_keys", False):
            conn.execute("PRAGMA foreign_keys=ON;")
    except sqlite3.Error:
        conn.close()
        raise
    return conn


def open_store(path: Path | str | None = None) -> Store:
    """Open (creating if needed) the data file and return a Store.

    No schema is created here; run schema.reconcile() on the result.
    Raises StorageUnavailable when the directory or file cannot be used.
    """
    if path is None:
        path = db_path()

    if str(path) != MEMORY:
        path = Path(path)
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise StorageUnavailable(f"Unable to create data directory {path.parent}: {e}") from e

    attempts = 1 + max(0, int(get("storage.open_retries", 2)))
    delay = float(get("storage.open_retry_delay", 0.2))

    for attempt in range(1, attempts + 1):
        try:
            conn = _connect(path)
        except sqlite3.OperationalError as e:
            if attempt == attempts:
                raise StorageUnavailable(f"Unable to open SQLite database at {path}: {e}") from e
            LOG.warning("Opening %s failed (%s), retrying (%d/%d)", path, e, attempt, attempts - 1)
            time.sleep(delay)
        except sqlite3.Error as e:
            raise StorageUnavailable(f"{path} is not a usable SQLite database: {e}") from e
        else:
            LOG.info("Opened store %s", path)
            return Store(conn, path)

    raise StorageUnavailable(f"Unable to open SQLite database at {path}")
