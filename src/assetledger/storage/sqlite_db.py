# src/assetledger/storage/sqlite_db.py
from __future__ import annotations

import os
import json
import sqlite3
import time
import random
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Callable, Dict, Iterator, Optional, Tuple

from assetledger.storage.kv import Key, normalize_key

Json = Dict[str, Any]


def _now_ms() -> int:
    return int(time.time() * 1000)


def _canon_json(obj: Any) -> str:
    """Canonical JSON encoding.

    Do not coerce unknown types (no default=str): a non-JSON value reaching
    the store is a bug and must fail fast.
    """
    return json.dumps(obj, sort_keys=True, separators=(",", ":"), ensure_ascii=False)


def _env_int(name: str, default: int) -> int:
    try:
        raw = str(os.environ.get(name, "")).strip()
        return int(raw) if raw else int(default)
    except Exception:
        return int(default)


class SqliteDB:
    """SQLite manager for the durable ledger backend.

    Design goals:
      - single durable DB file for all registries
      - cross-process safe (SQLite locks)
      - cross-thread safe by never sharing connections between transactions

    SQLite allows only one writer at a time. Under multi-process workloads,
    BEGIN IMMEDIATE can transiently fail with "database is locked", so
    write_tx() implements a bounded retry loop.
    """

    SCHEMA_VERSION = 1

    def __init__(self, *, path: str, mode: Optional[str] = None) -> None:
        self.path = str(path)
        self.mode = mode

    def _sqlite_synchronous_pragma(self) -> str:
        """Return a safe PRAGMA synchronous value.

        Defaults:
          - prod     -> FULL
          - dev/test -> NORMAL

        Mode comes from the constructor, else ASSETLEDGER_MODE.
        Override with ASSETLEDGER_SQLITE_SYNCHRONOUS in {OFF,NORMAL,FULL,EXTRA}.
        """
        mode = (self.mode or os.environ.get("ASSETLEDGER_MODE") or "prod").strip().lower()
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

        # WAL is required unless explicitly waived.
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
        con.execute("PRAGMA foreign_keys=ON;")
        con.execute("PRAGMA temp_store=MEMORY;")

        wal_ckpt = max(1, _env_int("ASSETLEDGER_SQLITE_WAL_AUTOCHECKPOINT", 1000))
        con.execute(f"PRAGMA wal_autocheckpoint={wal_ckpt};")

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

            con.execute(
                """
                CREATE TABLE IF NOT EXISTS kv (
                  namespace TEXT NOT NULL,
                  key_json TEXT NOT NULL,
                  value_json TEXT NOT NULL,
                  updated_ts_ms INTEGER NOT NULL,
                  PRIMARY KEY (namespace, key_json)
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

    def _backoff(self, attempt: int, base_sleep: float, max_sleep: float) -> None:
        sleep_s = min(max_sleep, base_sleep * (2.0 ** min(attempt, 8)))
        sleep_s = sleep_s * (0.5 + random.random())  # jitter in [0.5x, 1.5x]
        time.sleep(sleep_s)

    @contextmanager
    def write_tx(self) -> Iterator[sqlite3.Connection]:
        """Open a write transaction with bounded retry on writer-lock contention.

        Policy:
          - retry BEGIN IMMEDIATE (and COMMIT) until a deadline
          - exponential backoff with jitter
          - then raise (fail closed)
        Any exception inside the block rolls the transaction back.
        """
        deadline_ms = max(250, _env_int("ASSETLEDGER_SQLITE_WRITE_DEADLINE_MS", 30_000))
        deadline_ts = _now_ms() + deadline_ms

        base_sleep = max(0.001, float(_env_int("ASSETLEDGER_SQLITE_WRITE_BACKOFF_BASE_MS", 5)) / 1000.0)
        max_sleep = max(base_sleep, float(_env_int("ASSETLEDGER_SQLITE_WRITE_BACKOFF_MAX_MS", 250)) / 1000.0)

        with self.connection() as con:
            attempt = 0
            while True:
                try:
                    con.execute("BEGIN IMMEDIATE;")
                    break
                except sqlite3.OperationalError as e:
                    if not self._is_locked_error(e) or _now_ms() >= deadline_ts:
                        raise
                    self._backoff(attempt, base_sleep, max_sleep)
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
                        self._backoff(c_attempt, base_sleep, max_sleep)
                        c_attempt += 1
            except BaseException:
                try:
                    con.execute("ROLLBACK;")
                except sqlite3.Error:
                    pass
                raise


def _encode_key(key: Key) -> str:
    return _canon_json(list(normalize_key(key)))


def _decode_key(raw: str) -> Tuple[Any, ...]:
    return tuple(json.loads(raw))


def _prefix_range(prefix: Key) -> Tuple[str, str]:
    """[lo, hi) bounds on key_json for keys strictly extending `prefix`.

    key_json is canonical JSON of a list, so every such key starts with the
    prefix list minus its closing bracket plus a separator.
    """
    p = normalize_key(prefix)
    lo = _canon_json(list(p))[:-1] + ("," if p else "")
    hi = lo[:-1] + chr(ord(lo[-1]) + 1)
    return lo, hi


class SqliteKVStore:
    """KVStore persisted in a single SQLite table.

    Writes issued inside transaction() share one BEGIN IMMEDIATE transaction;
    writes issued outside one run in their own short transaction. Reads inside
    a transaction observe that transaction's uncommitted writes.

    One store instance serves one writer at a time (the host serializes
    commands); separate processes may each open their own instance.
    """

    def __init__(self, *, db: SqliteDB) -> None:
        self._db = db
        self._db.init_schema()
        self._con: Optional[sqlite3.Connection] = None

    @property
    def db(self) -> SqliteDB:
        return self._db

    @contextmanager
    def transaction(self) -> Iterator["SqliteKVStore"]:
        if self._con is not None:
            yield self
            return
        with self._db.write_tx() as con:
            self._con = con
            try:
                yield self
            finally:
                self._con = None

    @contextmanager
    def _reader(self) -> Iterator[sqlite3.Connection]:
        if self._con is not None:
            yield self._con
            return
        with self._db.connection() as con:
            yield con

    def _read_raw(self, con: sqlite3.Connection, namespace: str, key: Key) -> Optional[str]:
        row = con.execute(
            "SELECT value_json FROM kv WHERE namespace=? AND key_json=?;",
            (str(namespace), _encode_key(key)),
        ).fetchone()
        if row is None:
            return None
        return str(row["value_json"])

    def get(self, namespace: str, key: Key, default: Any = None) -> Any:
        with self._reader() as con:
            raw = self._read_raw(con, namespace, key)
        if raw is None:
            return default
        return json.loads(raw)

    def contains(self, namespace: str, key: Key) -> bool:
        with self._reader() as con:
            return self._read_raw(con, namespace, key) is not None

    def insert(self, namespace: str, key: Key, value: Any) -> None:
        payload = _canon_json(value)
        with self.transaction():
            con = self._con
            if con is None:
                raise RuntimeError("sqlite kv write outside a transaction")
            con.execute(
                """
                INSERT INTO kv(namespace, key_json, value_json, updated_ts_ms)
                VALUES(?, ?, ?, ?)
                ON CONFLICT(namespace, key_json) DO UPDATE SET
                  value_json=excluded.value_json,
                  updated_ts_ms=excluded.updated_ts_ms;
                """,
                (str(namespace), _encode_key(key), payload, _now_ms()),
            )

    def mutate(self, namespace: str, key: Key, fn: Callable[[Any], Any], default: Any = None) -> Any:
        with self.transaction():
            new = fn(self.get(namespace, key, default))
            self.insert(namespace, key, new)
            return new

    def try_mutate(self, namespace: str, key: Key, fn: Callable[[Optional[Any]], Any]) -> Any:
        with self.transaction():
            new = fn(self.get(namespace, key, None))
            self.insert(namespace, key, new)
            return new

    def scan(self, namespace: str) -> Iterator[Tuple[Tuple[Any, ...], Any]]:
        with self._reader() as con:
            rows = con.execute(
                "SELECT key_json, value_json FROM kv WHERE namespace=? ORDER BY key_json;",
                (str(namespace),),
            ).fetchall()
        for row in rows:
            yield _decode_key(str(row["key_json"])), json.loads(str(row["value_json"]))

    def scan_prefix(self, namespace: str, prefix: Key) -> Iterator[Tuple[Tuple[Any, ...], Any]]:
        lo, hi = _prefix_range(prefix)
        with self._reader() as con:
            rows = con.execute(
                """
                SELECT key_json, value_json FROM kv
                WHERE namespace=? AND key_json >= ? AND key_json < ?
                ORDER BY key_json;
                """,
                (str(namespace), lo, hi),
            ).fetchall()
        for row in rows:
            yield _decode_key(str(row["key_json"])), json.loads(str(row["value_json"]))
