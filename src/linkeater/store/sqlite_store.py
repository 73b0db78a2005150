from __future__ import annotations

import fcntl
import logging
import sqlite3
import threading
import time
from contextlib import closing, contextmanager
from pathlib import Path
from typing import IO, Iterator

from .base import (
    PRIMARY_PARTITION,
    LinkStore,
    Partition,
    StoreError,
    StoreOpenError,
    StoreWriteError,
    Transaction,
)

logger = logging.getLogger(__name__)

_LOCK_POLL_SECONDS = 0.05

_SCHEMA = (
    """
    CREATE TABLE IF NOT EXISTS buckets (
        name TEXT PRIMARY KEY
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS entries (
        bucket TEXT NOT NULL,
        key BLOB NOT NULL,
        value BLOB NOT NULL,
        PRIMARY KEY (bucket, key)
    )
    """,
)


class SQLitePartition(Partition):
    def __init__(self, name: str, connection: sqlite3.Connection, *, writable: bool) -> None:
        super().__init__(name)
        self._connection = connection
        self._writable = writable

    def get(self, key: bytes) -> bytes | None:
        try:
            row = self._connection.execute(
                "SELECT value FROM entries WHERE bucket = ? AND key = ?",
                (self.name, key),
            ).fetchone()
        except sqlite3.Error as exc:
            raise _scope_error(self._writable)(
                f"failed to read from partition {self.name!r}: {exc}"
            ) from exc
        if row is None:
            return None
        return bytes(row[0])

    def put(self, key: bytes, value: bytes) -> None:
        if not self._writable:
            raise StoreWriteError(f"partition {self.name!r} was opened in a read scope")

        try:
            self._connection.execute(
                """
                INSERT INTO entries (bucket, key, value)
                VALUES (?, ?, ?)
                ON CONFLICT(bucket, key) DO UPDATE SET
                    value = excluded.value
                """,
                (self.name, key, value),
            )
        except sqlite3.Error as exc:
            raise StoreWriteError(f"failed to write to partition {self.name!r}: {exc}") from exc

    def items(self) -> Iterator[tuple[bytes, bytes]]:
        try:
            cursor = self._connection.execute(
                "SELECT key, value FROM entries WHERE bucket = ? ORDER BY key",
                (self.name,),
            )
            for key, value in cursor:
                yield bytes(key), bytes(value)
        except sqlite3.Error as exc:
            raise _scope_error(self._writable)(
                f"failed to scan partition {self.name!r}: {exc}"
            ) from exc

    def __len__(self) -> int:
        try:
            row = self._connection.execute(
                "SELECT COUNT(*) FROM entries WHERE bucket = ?",
                (self.name,),
            ).fetchone()
        except sqlite3.Error as exc:
            raise _scope_error(self._writable)(
                f"failed to count partition {self.name!r}: {exc}"
            ) from exc
        return int(row[0])


class SQLiteTransaction(Transaction):
    def __init__(self, connection: sqlite3.Connection, *, writable: bool) -> None:
        self._connection = connection
        self.writable = writable

    def partition(self, name: str) -> Partition | None:
        try:
            row = self._connection.execute(
                "SELECT 1 FROM buckets WHERE name = ?",
                (name,),
            ).fetchone()
        except sqlite3.Error as exc:
            raise _scope_error(self.writable)(f"failed to look up partition {name!r}: {exc}") from exc
        if row is None:
            return None
        return SQLitePartition(name, self._connection, writable=self.writable)

    def create_partition_if_missing(self, name: str) -> Partition:
        if not self.writable:
            raise StoreWriteError(f"cannot create partition {name!r} in a read scope")

        try:
            self._connection.execute("INSERT OR IGNORE INTO buckets (name) VALUES (?)", (name,))
        except sqlite3.Error as exc:
            raise StoreWriteError(f"failed to create partition {name!r}: {exc}") from exc
        return SQLitePartition(name, self._connection, writable=True)

    def partition_names(self) -> list[str]:
        try:
            rows = self._connection.execute("SELECT name FROM buckets ORDER BY name").fetchall()
        except sqlite3.Error as exc:
            raise _scope_error(self.writable)(f"failed to list partitions: {exc}") from exc
        return [row[0] for row in rows]


class SQLiteLinkStore(LinkStore):
    """Partitioned key-value store kept in a single SQLite file.

    Write scopes are serialized in-process by a lock and across connections
    by ``BEGIN IMMEDIATE``. Read scopes use their own read-only connection, so
    under WAL journaling they see a snapshot that an in-progress write cannot
    disturb. A sidecar ``<file>.lock`` is held with ``flock`` for as long as
    the store is open, so a second process fails fast instead of sharing it.
    """

    def __init__(self, db_path: str | Path, *, lock_timeout: float = 1.0) -> None:
        self.db_path = Path(db_path)
        self.lock_path = self.db_path.with_name(f"{self.db_path.name}.lock")
        self.lock_timeout = lock_timeout
        self._write_lock = threading.Lock()
        self._connection: sqlite3.Connection | None = None
        self._lock_handle: IO[str] | None = None

    @property
    def is_open(self) -> bool:
        return self._connection is not None

    def open(self) -> None:
        if self._connection is not None:
            return

        try:
            self.db_path.parent.mkdir(parents=True, exist_ok=True)
            self._lock_handle = self._acquire_file_lock()
        except OSError as exc:
            raise StoreOpenError(f"cannot lock link store {self.db_path}: {exc}") from exc

        connection: sqlite3.Connection | None = None
        try:
            connection = sqlite3.connect(
                self.db_path,
                isolation_level=None,
                check_same_thread=False,
            )
            connection.execute("PRAGMA journal_mode=WAL")
            connection.execute("PRAGMA synchronous=FULL")
            for statement in _SCHEMA:
                connection.execute(statement)
            connection.execute(
                "INSERT OR IGNORE INTO buckets (name) VALUES (?)",
                (PRIMARY_PARTITION,),
            )
        except sqlite3.Error as exc:
            if connection is not None:
                connection.close()
            self._release_file_lock()
            raise StoreOpenError(f"cannot open link store {self.db_path}: {exc}") from exc

        self._connection = connection
        logger.info("Opened link store at %s", self.db_path)

    def close(self) -> None:
        with self._write_lock:
            if self._connection is not None:
                self._connection.close()
                self._connection = None
                logger.info("Closed link store at %s", self.db_path)
            self._release_file_lock()

    @contextmanager
    def read(self) -> Iterator[Transaction]:
        self._require_open()
        uri = f"{self.db_path.resolve().as_uri()}?mode=ro"
        try:
            connection = sqlite3.connect(uri, uri=True, isolation_level=None)
        except sqlite3.Error as exc:
            raise StoreError(f"cannot read link store {self.db_path}: {exc}") from exc

        with closing(connection):
            try:
                connection.execute("BEGIN")
            except sqlite3.Error as exc:
                raise StoreError(f"cannot start read on {self.db_path}: {exc}") from exc
            try:
                yield SQLiteTransaction(connection, writable=False)
            finally:
                if connection.in_transaction:
                    connection.execute("ROLLBACK")

    @contextmanager
    def write(self) -> Iterator[Transaction]:
        with self._write_lock:
            connection = self._require_open()
            try:
                connection.execute("BEGIN IMMEDIATE")
            except sqlite3.Error as exc:
                raise StoreWriteError(f"cannot start write on {self.db_path}: {exc}") from exc

            try:
                yield SQLiteTransaction(connection, writable=True)
            except BaseException:
                _rollback(connection)
                raise

            try:
                connection.execute("COMMIT")
            except sqlite3.Error as exc:
                _rollback(connection)
                raise StoreWriteError(f"cannot commit write on {self.db_path}: {exc}") from exc

    def _require_open(self) -> sqlite3.Connection:
        if self._connection is None:
            raise StoreError(f"link store {self.db_path} is not open")
        return self._connection

    def _acquire_file_lock(self) -> IO[str]:
        handle = self.lock_path.open("a+", encoding="utf-8")
        deadline = time.monotonic() + self.lock_timeout
        while True:
            try:
                fcntl.flock(handle.fileno(), fcntl.LOCK_EX | fcntl.LOCK_NB)
                return handle
            except BlockingIOError:
                if time.monotonic() >= deadline:
                    handle.close()
                    raise StoreOpenError(
                        f"link store {self.db_path} is locked by another process"
                    ) from None
                time.sleep(_LOCK_POLL_SECONDS)
            except OSError:
                handle.close()
                raise

    def _release_file_lock(self) -> None:
        if self._lock_handle is None:
            return
        fcntl.flock(self._lock_handle.fileno(), fcntl.LOCK_UN)
        self._lock_handle.close()
        self._lock_handle = None


def open_store(db_path: str | Path, *, lock_timeout: float = 1.0) -> SQLiteLinkStore:
    store = SQLiteLinkStore(db_path, lock_timeout=lock_timeout)
    store.open()
    return store


def _rollback(connection: sqlite3.Connection) -> None:
    if not connection.in_transaction:
        return
    try:
        connection.execute("ROLLBACK")
    except sqlite3.Error:
        logger.exception("Rollback failed")


def _scope_error(writable: bool) -> type[StoreError]:
    return StoreWriteError if writable else StoreError
