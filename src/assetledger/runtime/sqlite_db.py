# src/assetledger/runtime/sqlite_db.py
from __future__ import annotations

import os
import random
import sqlite3
import time
from contextlib import contextmanager
from pathlib import Path
from typing import Dict, Iterator, List, Optional

from assetledger.runtime.errors import StoreError
from assetledger.runtime.store import StateIterator


def _now_ms() -> int:
    return int(time.time() * 1000)


def _env_int(name: str, default: int) -> int:
    try:
        raw = str(os.environ.get(name, "")).strip()
        return int(raw) if raw else int(default)
    except Exception:
        return int(default)


def _key_bytes(key: str) -> bytes:
    if not isinstance(key, str) or not key:
        raise StoreError("bad_key", {"key": repr(key)})
    return key.encode("utf-8")


class SqliteDB:
    """SQLite manager for the asset ledger world state.

    Design goals:
      - single durable DB file
      - cross-process safe (SQLite locks)
      - cross-thread safe by never sharing connections

    SQLite allows only one writer at a time. Under multi-process workloads,
    BEGIN IMMEDIATE can transiently fail with "database is locked", so
    write_tx() runs a bounded retry loop.
    """

    SCHEMA_VERSION = 1

    def __init__(self, *, path: str) -> None:
        self.path = str(path)

    @staticmethod
    def _sqlite_synchronous_pragma() -> str:
        """Return a safe PRAGMA synchronous value.

        Defaults:
          - prod        -> FULL
          - dev/testnet -> NORMAL

        Override with ASSETLEDGER_SQLITE_SYNCHRONOUS in {OFF,NORMAL,FULL,EXTRA}.
        """
        mode = (os.environ.get("ASSETLEDGER_MODE") or "prod").strip().lower()
        default = "FULL" if mode == "prod" else "NORMAL"
        raw = (os.environ.get("ASSETLEDGER_SQLITE_SYNCHRONOUS") or default).strip().upper()

        allowed = {"OFF", "NORMAL", "FULL", "EXTRA"}
        if raw not in allowed:
            raw = default
        return raw

    def ensure_parent_dir(self) -> None:
        p = Path(self.path)
        p.parent.mkdir(parents=True, exist_ok=True)

    def _connect(self) -> sqlite3.Connection:
        self.ensure_parent_dir()

        connect_timeout_s = float(_env_int("ASSETLEDGER_SQLITE_CONNECT_TIMEOUT_MS", 30_000)) / 1000.0

        con = sqlite3.connect(
            self.path,
            timeout=connect_timeout_s,
            isolation_level=None,  # we manage BEGIN/COMMIT ourselves
            check_same_thread=False,
        )
        con.row_factory = sqlite3.Row

        # WAL keeps readers off the writer's back. Fail closed if it cannot be enabled
        # unless explicitly allowed.
        allow_non_wal = (os.environ.get("ASSETLEDGER_SQLITE_ALLOW_NON_WAL") or "").strip() in {"1", "true", "TRUE"}
        try:
            row = con.execute("PRAGMA journal_mode=WAL;").fetchone()
            mode = ""
            if row is not None:
                mode = str(row[0]).strip().lower()
            if mode and mode != "wal" and not allow_non_wal:
                raise RuntimeError(f"sqlite journal_mode is '{mode}', expected 'wal'")
        except Exception:
            if not allow_non_wal:
                con.close()
                raise

        con.execute(f"PRAGMA synchronous={self._sqlite_synchronous_pragma()};")
        con.execute("PRAGMA temp_store=MEMORY;")

        wal_ckpt = max(1, _env_int("ASSETLEDGER_SQLITE_WAL_AUTOCHECKPOINT", 1000))
        con.execute(f"PRAGMA wal_autocheckpoint={wal_ckpt};")

        # Negative means KiB. Default 64 MiB.
        cache_kib = max(0, _env_int("ASSETLEDGER_SQLITE_CACHE_SIZE_KIB", 64 * 1024))
        con.execute(f"PRAGMA cache_size={-cache_kib};")

        busy_ms = max(0, _env_int("ASSETLEDGER_SQLITE_BUSY_TIMEOUT_MS", int(connect_timeout_s * 1000)))
        con.execute(f"PRAGMA busy_timeout={busy_ms};")

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

            # Keys are stored as UTF-8 BLOBs: composite keys embed U+0000 and BLOB
            # comparison (memcmp) preserves code point order for range scans.
            con.execute(
                """
                CREATE TABLE IF NOT EXISTS world_state (
                  k BLOB PRIMARY KEY,
                  v BLOB NOT NULL,
                  version INTEGER NOT NULL,
                  updated_ts_ms INTEGER NOT NULL
                );
                """
            )

            row = con.execute("SELECT value FROM meta WHERE key='schema_version' LIMIT 1;").fetchone()
            if row is None:
                con.execute("INSERT INTO meta(key, value) VALUES('schema_version', ?);", (str(self.SCHEMA_VERSION),))
            else:
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
        return ("database is locked" in msg) or ("database is busy" in msg) or ("locked" in msg and "database" in msg)

    @contextmanager
    def write_tx(self) -> Iterator[sqlite3.Connection]:
        """Open a write transaction with bounded retry on writer-lock contention.

        Policy:
          - retry BEGIN IMMEDIATE until a deadline
          - exponential backoff with jitter
          - then raise (fail closed) if we cannot acquire within deadline
        """
        deadline_ms = max(250, _env_int("ASSETLEDGER_SQLITE_WRITE_DEADLINE_MS", 30_000))
        deadline_ts = _now_ms() + deadline_ms

        base_sleep = max(0.001, float(_env_int("ASSETLEDGER_SQLITE_WRITE_BACKOFF_BASE_MS", 5)) / 1000.0)
        max_sleep = max(base_sleep, float(_env_int("ASSETLEDGER_SQLITE_WRITE_BACKOFF_MAX_MS", 250)) / 1000.0)

        def _backoff(attempt: int) -> None:
            sleep_s = min(max_sleep, base_sleep * (2.0 ** min(attempt, 8)))
            time.sleep(sleep_s * (0.5 + random.random()))  # jitter in [0.5x, 1.5x]

        with self.connection() as con:
            attempt = 0
            while True:
                try:
                    con.execute("BEGIN IMMEDIATE;")
                    break
                except sqlite3.OperationalError as e:
                    if not self._is_locked_error(e) or _now_ms() >= deadline_ts:
                        raise
                    _backoff(attempt)
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
                        _backoff(c_attempt)
                        c_attempt += 1
            except BaseException:
                try:
                    con.execute("ROLLBACK;")
                except sqlite3.Error:
                    pass
                raise

    @contextmanager
    def read_tx(self) -> Iterator[sqlite3.Connection]:
        """Open a deferred read transaction; it is always rolled back.

        Under WAL a reader sees one consistent snapshot and never waits on the writer.
        """
        with self.connection() as con:
            con.execute("BEGIN;")
            try:
                yield con
            finally:
                try:
                    con.execute("ROLLBACK;")
                except sqlite3.Error:
                    pass


class SqliteTransaction:
    """WorldState stub bound to one open transaction (BEGIN IMMEDIATE, or deferred when read-only)."""

    def __init__(self, con: sqlite3.Connection, *, read_only: bool = False) -> None:
        self._con = con
        self.read_only = bool(read_only)
        self._iterators: List[StateIterator] = []
        self._done = False

    def _require_open(self) -> None:
        if self._done:
            raise StoreError("transaction_closed", {})

    def _require_writable(self) -> None:
        self._require_open()
        if self.read_only:
            raise StoreError("read_only_transaction", {})

    def get_state(self, key: str) -> Optional[bytes]:
        self._require_open()
        try:
            row = self._con.execute("SELECT v FROM world_state WHERE k=?;", (_key_bytes(key),)).fetchone()
        except sqlite3.Error as e:
            raise StoreError("sqlite_read_failed", {"error": str(e)}) from e
        return None if row is None else bytes(row["v"])

    def put_state(self, key: str, value: bytes) -> None:
        self._require_writable()
        if not isinstance(value, (bytes, bytearray)):
            raise StoreError("bad_value", {"type": type(value).__name__})
        try:
            self._con.execute(
                """
                INSERT INTO world_state(k, v, version, updated_ts_ms)
                VALUES(?, ?, 1, ?)
                ON CONFLICT(k) DO UPDATE SET
                  v=excluded.v,
                  version=world_state.version + 1,
                  updated_ts_ms=excluded.updated_ts_ms;
                """,
                (_key_bytes(key), bytes(value), _now_ms()),
            )
        except sqlite3.Error as e:
            raise StoreError("sqlite_write_failed", {"error": str(e)}) from e

    def del_state(self, key: str) -> None:
        self._require_writable()
        try:
            self._con.execute("DELETE FROM world_state WHERE k=?;", (_key_bytes(key),))
        except sqlite3.Error as e:
            raise StoreError("sqlite_write_failed", {"error": str(e)}) from e

    def scan_prefix(self, prefix: str) -> StateIterator:
        self._require_open()
        lo = _key_bytes(prefix)
        # 0xFF never occurs in UTF-8, so it bounds every key that starts with `lo`.
        hi = lo + b"\xff"
        try:
            cur = self._con.execute("SELECT k, v FROM world_state WHERE k >= ? AND k < ? ORDER BY k;", (lo, hi))
        except sqlite3.Error as e:
            raise StoreError("sqlite_scan_failed", {"error": str(e)}) from e

        def _rows() -> Iterator[tuple]:
            try:
                for row in cur:
                    yield bytes(row["k"]).decode("utf-8"), bytes(row["v"])
            except sqlite3.Error as e:
                raise StoreError("sqlite_scan_failed", {"error": str(e)}) from e

        def _release() -> None:
            cur.close()
            self._iterators.remove(it)

        it = StateIterator(_rows(), on_close=_release)
        self._iterators.append(it)
        return it

    @property
    def open_iterators(self) -> int:
        return len(self._iterators)

    def close(self) -> None:
        self._done = True
        for it in list(self._iterators):
            it.close()


class SqliteKVStore:
    """Transactional world-state store persisted in SQLite.

    Every unit of work is one BEGIN IMMEDIATE transaction, so writers are
    serialised across threads and processes and lost updates cannot happen.
    """

    backend = "sqlite"

    def __init__(self, *, db: SqliteDB) -> None:
        self._db = db
        self._db.init_schema()

    @contextmanager
    def transaction(self, *, read_only: bool = False) -> Iterator[SqliteTransaction]:
        tx_cm = self._db.read_tx() if read_only else self._db.write_tx()
        try:
            with tx_cm as con:
                tx = SqliteTransaction(con, read_only=read_only)
                try:
                    yield tx
                finally:
                    tx.close()
        except sqlite3.Error as e:
            raise StoreError("sqlite_transaction_failed", {"error": str(e)}) from e

    def snapshot(self) -> Dict[str, bytes]:
        with self._db.connection() as con:
            rows = con.execute("SELECT k, v FROM world_state ORDER BY k;").fetchall()
        return {bytes(r["k"]).decode("utf-8"): bytes(r["v"]) for r in rows}

    def version(self, key: str) -> int:
        with self._db.connection() as con:
            row = con.execute("SELECT version FROM world_state WHERE k=?;", (_key_bytes(key),)).fetchone()
        return 0 if row is None else int(row["version"])


__all__ = ["SqliteDB", "SqliteKVStore", "SqliteTransaction"]
