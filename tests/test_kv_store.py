from __future__ import annotations

from contextlib import contextmanager
from pathlib import Path

import pytest

from assetledger.ledger.balances import BalanceLedger
from assetledger.storage import KVStore, MemoryKVStore, SqliteDB, SqliteKVStore


def _sqlite_store(tmp_path: Path) -> SqliteKVStore:
    return SqliteKVStore(db=SqliteDB(path=str(tmp_path / "ledger.db"), mode="test"))


@pytest.fixture(params=["memory", "sqlite"])
def store(request, tmp_path: Path) -> KVStore:
    if request.param == "memory":
        return MemoryKVStore()
    return _sqlite_store(tmp_path)


def test_stores_satisfy_protocol(store: KVStore) -> None:
    assert isinstance(store, KVStore)


def test_get_insert_mutate(store: KVStore) -> None:
    assert store.get("ns", 1) is None
    assert store.get("ns", 1, 0) == 0
    assert not store.contains("ns", 1)

    store.insert("ns", 1, {"owner": "alice", "supply": 5})
    assert store.contains("ns", 1)
    assert store.get("ns", 1) == {"owner": "alice", "supply": 5}

    assert store.mutate("ns", (1, "bob"), lambda v: v + 7, default=0) == 7
    assert store.get("ns", (1, "bob")) == 7


def test_try_mutate_failure_writes_nothing(store: KVStore) -> None:
    def _boom(cur):
        raise RuntimeError("nope")

    with pytest.raises(RuntimeError):
        store.try_mutate("ns", 9, _boom)
    assert not store.contains("ns", 9)


def test_transaction_rolls_back_every_write(store: KVStore) -> None:
    store.insert("ns", 1, 1)

    with pytest.raises(RuntimeError):
        with store.transaction():
            store.insert("ns", 1, 100)
            store.insert("ns", 2, 200)
            with store.transaction():
                store.insert("other", "k", "v")
            raise RuntimeError("abort")

    assert store.get("ns", 1) == 1
    assert not store.contains("ns", 2)
    assert not store.contains("other", "k")


def test_reads_inside_transaction_see_pending_writes(store: KVStore) -> None:
    with store.transaction():
        store.insert("ns", "a", 3)
        assert store.get("ns", "a") == 3
    assert store.get("ns", "a") == 3


def test_balance_ledger_is_sparse_and_scans_by_asset(store: KVStore) -> None:
    bl = BalanceLedger(store, namespace="acct")
    assert bl.balance(0, "alice") == 0

    bl.set(0, "alice", 10)
    bl.set(0, "bob", 5)
    bl.set(1, "alice", 99)

    assert bl.credit(0, "bob", 3) == 3
    assert bl.debit(0, "alice", 25) == 10
    assert bl.balance(0, "alice") == 0
    assert bl.snapshot(0) == {"alice": 0, "bob": 8}
    assert bl.total(0) == 8
    assert bl.total(1) == 99


def test_memory_store_returns_copies() -> None:
    store = MemoryKVStore()
    store.insert("ns", 1, {"supply": 1})
    got = store.get("ns", 1)
    got["supply"] = 999
    assert store.get("ns", 1) == {"supply": 1}


def test_sqlite_store_persists_across_reopen(tmp_path: Path) -> None:
    s1 = _sqlite_store(tmp_path)
    s1.insert("asset", 0, {"owner": "alice", "supply": 10})
    s1.insert("asset_account", (0, "alice"), 10)

    s2 = _sqlite_store(tmp_path)
    assert s2.get("asset", 0) == {"owner": "alice", "supply": 10}
    assert list(s2.scan("asset_account")) == [((0, "alice"), 10)]


def test_sqlite_refuses_foreign_schema_version(tmp_path: Path) -> None:
    s = _sqlite_store(tmp_path)
    with s.db.write_tx() as con:
        con.execute("UPDATE meta SET value='99' WHERE key='schema_version';")

    with pytest.raises(RuntimeError):
        _sqlite_store(tmp_path)


def test_scan_prefix_returns_only_matching_keys(store: KVStore) -> None:
    store.insert("acct", (1, "alice"), 1)
    store.insert("acct", (10, "alice"), 10)
    store.insert("acct", (11, "bob"), 11)
    store.insert("acct", (1, "bob"), 2)
    store.insert("acct", 1, "scalar")
    store.insert("acct", ("a%_", "x"), 3)
    store.insert("acct", ("abc", "x"), 4)

    assert sorted(store.scan_prefix("acct", 1)) == [((1, "alice"), 1), ((1, "bob"), 2)]
    assert list(store.scan_prefix("acct", (10,))) == [((10, "alice"), 10)]
    assert list(store.scan_prefix("acct", ("a%_",))) == [(("a%_", "x"), 3)]
    assert list(store.scan_prefix("acct", 2)) == []


def test_sqlite_write_without_transaction_connection_fails(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    s = _sqlite_store(tmp_path)

    @contextmanager
    def _no_tx():
        yield s

    monkeypatch.setattr(s, "transaction", _no_tx)
    with pytest.raises(RuntimeError):
        s.insert("ns", 1, 1)
