# src/offchain_node/storage/sqlite_db.py
from __future__ import annotations

import logging
import os
import random
import sqlite3
import time
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, Optional

from offchain_node.runtime.errors import StoreError
from offchain_node.storage.kv import StoreTransaction

log = logging.getLogger("offchain_node.storage")


def _now_ms() -> int:
    return int(time.time() * 1000)


def _env_int(name: str, default: int) -> int:
    try:
        raw = str(os.environ.get(name, "")).strip()
        return int(raw) if raw else int(default)
    except Exception:
        return int(default)


class SqliteDB:
    """SQLite manager for the node key-value store.

    Design goals:
      - single durable DB file holding every column
      - cross-thread safe by never sharing connections
      - writes go through write_tx() so every commit is atomic

    SQLite allows only one writer at a time. BEGIN IMMEDIATE can transiently
    fail with "database is locked"; write_tx() retries within a deadline.
    """

    SCHEMA_VERSION = 1

    def __init__(self, *, path: str, read_only: bool = False) -> None:
        self.path = str(path)
        self.read_only = bool(read_only)

    @staticmethod
    def _sqlite_synchronous_pragma() -> str:
        """Return a safe PRAGMA synchronous value.

        Defaults:
          - prod        -> FULL
          - dev/testnet -> NORMAL

        Override with OCN_SQLITE_SYNCHRONOUS in {OFF,NORMAL,FULL,EXTRA}.
        """
        mode = (os.environ.get("OCN_MODE") or "prod").strip().lower()
        default = "FULL" if mode == "prod" else "NORMAL"
        raw = (os.environ.get("OCN_SQLITE_SYNCHRONOUS") or default).strip().upper()

        if raw not in {"OFF", "NORMAL", "FULL", "EXTRA"}:
            raw = default
        return raw

    def ensure_parent_dir(self) -> None:
        Path(self.path).parent.mkdir(parents=True, exist_ok=True)

    def _connect(self) -> sqlite3.Connection:
        connect_timeout_s = float(_env_int("OCN_SQLITE_CONNECT_TIMEOUT_MS", 30_000)) / 1000.0

        if self.read_only:
            # mode=ro never creates the file and rejects every write
            con = sqlite3.connect(
                f"{Path(self.path).resolve().as_uri()}?mode=ro",
                uri=True,
                timeout=connect_timeout_s,
                isolation_level=None,
                check_same_thread=False,
            )
            con.row_factory = sqlite3.Row
            return con

        self.ensure_parent_dir()

        con = sqlite3.connect(
            self.path,
            timeout=connect_timeout_s,
            isolation_level=None,  # we manage BEGIN/COMMIT ourselves
            check_same_thread=False,
        )
        con.row_factory = sqlite3.Row

        allow_non_wal = (os.environ.get("OCN_SQLITE_ALLOW_NON_WAL") or "").strip() in {"1", "true", "TRUE"}
        row = con.execute("PRAGMA journal_mode=WAL;").fetchone()
        mode = str(row[0]).strip().lower() if row is not None else ""
        if mode and mode != "wal" and not allow_non_wal:
            con.close()
            raise RuntimeError(f"sqlite journal_mode is '{mode}', expected 'wal'")

        con.execute(f"PRAGMA synchronous={self._sqlite_synchronous_pragma()};")
        con.execute("PRAGMA temp_store=MEMORY;")

        busy_ms = _env_int("OCN_SQLITE_BUSY_TIMEOUT_MS", int(connect_timeout_s * 1000))
        con.execute(f"PRAGMA busy_timeout={max(0, int(busy_ms))};")

        return con

    def init_schema(self) -> None:
        with self.write_tx() as con:
            con.execute(
                """
                CREATE TABLE IF NOT EXISTS meta (
                  key TEXT PRIMARY KEY,
                  value TEXT NOT NULL
                );
                """
            )
            con.execute(
                """
                CREATE TABLE IF NOT EXISTS kv (
                  col INTEGER NOT NULL,
                  key BLOB NOT NULL,
                  value BLOB NOT NULL,
                  PRIMARY KEY (col, key)
                );
                """
            )

            row = con.execute("SELECT value FROM meta WHERE key='schema_version' LIMIT 1;").fetchone()
            if row is None:
                con.execute("INSERT INTO meta(key, value) VALUES('schema_version', ?);", (str(self.SCHEMA_VERSION),))
            else:
                self._check_schema_version(row)

    def verify_schema(self) -> None:
        """Check an existing database without creating or migrating anything."""
        with self.connection() as con:
            row = con.execute("SELECT value FROM meta WHERE key='schema_version' LIMIT 1;").fetchone()
        if row is None:
            raise RuntimeError("sqlite schema_version missing")
        self._check_schema_version(row)

    def _check_schema_version(self, row: sqlite3.Row) -> None:
        try:
            v = int(str(row["value"]))
        except Exception:
            v = 0
        if v != self.SCHEMA_VERSION:
            raise RuntimeError(
                f"sqlite schema_version mismatch: have={v} want={self.SCHEMA_VERSION}. "
                "Refuse to start to avoid corrupting data."
            )

    @contextmanager
    def connection(self) -> Iterator[sqlite3.Connection]:
        con = self._connect()
        try:
            yield con
        finally:
            con.close()

    @staticmethod
    def _is_locked_error(e: Exception) -> bool:
        msg = str(e).lower()
        return ("database is locked" in msg) or ("database is busy" in msg)

    @staticmethod
    def _backoff_sleep(attempt: int, base_sleep: float, max_sleep: float) -> None:
        sleep_s = min(max_sleep, base_sleep * (2.0 ** min(attempt, 8)))
        time.sleep(sleep_s * (0.5 + random.random()))  # jitter in [0.5x, 1.5x]

    @contextmanager
    def write_tx(self) -> Iterator[sqlite3.Connection]:
        """Open a write transaction with bounded retry on writer-lock contention.

        Policy:
          - retry BEGIN IMMEDIATE / COMMIT until a deadline
          - exponential backoff with jitter
          - then raise (fail closed)
        """
        deadline_ms = max(250, _env_int("OCN_SQLITE_WRITE_DEADLINE_MS", 30_000))
        deadline_ts = _now_ms() + deadline_ms

        base_sleep = max(0.001, float(_env_int("OCN_SQLITE_WRITE_BACKOFF_BASE_MS", 5)) / 1000.0)
        max_sleep = max(base_sleep, float(_env_int("OCN_SQLITE_WRITE_BACKOFF_MAX_MS", 250)) / 1000.0)

        with self.connection() as con:
            attempt = 0
            while True:
                try:
                    con.execute("BEGIN IMMEDIATE;")
                    break
                except sqlite3.OperationalError as e:
                    if not self._is_locked_error(e) or _now_ms() >= deadline_ts:
                        raise
                    self._backoff_sleep(attempt, base_sleep, max_sleep)
                    attempt += 1

            try:
                yield con

                c_attempt = 0
                while True:
                    try:
                        con.execute("COMMIT;")
                        break
                    except sqlite3.OperationalError as e:
                        if not self._is_locked_error(e) or _now_ms() >= deadline_ts:
                            raise
                        self._backoff_sleep(c_attempt, base_sleep, max_sleep)
                        c_attempt += 1
            except Exception:
                try:
                    con.execute("ROLLBACK;")
                except sqlite3.Error:
                    log.debug("rollback failed", exc_info=True)
                raise


class SqliteMetaStore:
    """Column-organized key-value store persisted in SQLite.

    Every sqlite3, filesystem or pragma failure surfaces as StoreError.
    A store over a read-only SqliteDB only verifies the schema and refuses
    commits.
    """

    def __init__(self, *, db: SqliteDB) -> None:
        self._db = db
        try:
            if db.read_only:
                self._db.verify_schema()
            else:
                self._db.init_schema()
        except (sqlite3.Error, OSError, RuntimeError) as e:
            raise StoreError(reason=f"failed to open store at {db.path}: {e}") from e

    @property
    def path(self) -> str:
        return self._db.path

    def get(self, column: int, key: bytes) -> Optional[bytes]:
        try:
            with self._db.connection() as con:
                row = con.execute(
                    "SELECT value FROM kv WHERE col=? AND key=?;",
                    (int(column), bytes(key)),
                ).fetchone()
        except (sqlite3.Error, OSError, RuntimeError) as e:
            raise StoreError(reason=f"read failed: {e}", details={"column": int(column)}) from e
        if row is None:
            return None
        return bytes(row["value"])

    def commit(self, tx: StoreTransaction) -> None:
        if not tx.ops:
            return
        if self._db.read_only:
            raise StoreError(reason=f"store at {self._db.path} is read-only", details={"ops": len(tx)})
        try:
            with self._db.write_tx() as con:
                for column, key, value in tx.ops:
                    if value is None:
                        con.execute("DELETE FROM kv WHERE col=? AND key=?;", (column, key))
                    else:
                        con.execute(
                            """
                            INSERT INTO kv(col, key, value) VALUES(?, ?, ?)
                            ON CONFLICT(col, key) DO UPDATE SET value=excluded.value;
                            """,
                            (column, key, value),
                        )
        except (sqlite3.Error, OSError, RuntimeError) as e:
            raise StoreError(reason=f"write failed: {e}", details={"ops": len(tx)}) from e

    def put_in_transaction(self, column: int, key: bytes, value: bytes) -> None:
        tx = StoreTransaction()
        tx.put(column, key, value)
        self.commit(tx)
