"""
assetledger: key-value storage (abstract layer + in-memory backend)

Registries never touch a concrete database. They read and write JSON-like
values through a KVStore keyed by (namespace, key):

  - namespace: a keyspace name such as "asset" or "asset_account"
  - key: a scalar (asset id) or a tuple (asset id, account id)

Atomicity:
  Every command runs inside store.transaction(). If the block raises, none
  of its writes are visible afterwards. Transactions nest by joining the
  outermost one.

Values must be JSON-compatible (dict/list/str/int/bool/None) so that the
memory and SQLite backends behave identically.
"""

from __future__ import annotations

import copy
from contextlib import contextmanager
from typing import Any, Callable, Dict, Hashable, Iterator, Optional, Protocol, Tuple, runtime_checkable

Key = Hashable


def normalize_key(key: Any) -> Tuple[Any, ...]:
    """Scalar keys become 1-tuples; lists become tuples."""
    if isinstance(key, tuple):
        return key
    if isinstance(key, list):
        return tuple(key)
    return (key,)


@runtime_checkable
class KVStore(Protocol):
    def get(self, namespace: str, key: Key, default: Any = None) -> Any: ...

    def contains(self, namespace: str, key: Key) -> bool: ...

    def insert(self, namespace: str, key: Key, value: Any) -> None: ...

    def mutate(self, namespace: str, key: Key, fn: Callable[[Any], Any], default: Any = None) -> Any: ...

    def try_mutate(self, namespace: str, key: Key, fn: Callable[[Optional[Any]], Any]) -> Any: ...

    def scan(self, namespace: str) -> Iterator[Tuple[Tuple[Any, ...], Any]]: ...

    def scan_prefix(self, namespace: str, prefix: Key) -> Iterator[Tuple[Tuple[Any, ...], Any]]: ...

    def transaction(self) -> Any: ...


class MemoryKVStore:
    """
    Dict-backed store used by unit tests and ephemeral ledgers.

    Rollback is implemented by snapshotting the whole keyspace when the
    outermost transaction begins and restoring it if the block raises.
    """

    def __init__(self) -> None:
        self._data: Dict[str, Dict[Tuple[Any, ...], Any]] = {}
        self._depth = 0
        self._snapshot: Optional[Dict[str, Dict[Tuple[Any, ...], Any]]] = None

    def _ns(self, namespace: str) -> Dict[Tuple[Any, ...], Any]:
        ns = self._data.get(namespace)
        if ns is None:
            ns = {}
            self._data[namespace] = ns
        return ns

    def get(self, namespace: str, key: Key, default: Any = None) -> Any:
        k = normalize_key(key)
        ns = self._data.get(namespace) or {}
        if k not in ns:
            return default
        return copy.deepcopy(ns[k])

    def contains(self, namespace: str, key: Key) -> bool:
        return normalize_key(key) in (self._data.get(namespace) or {})

    def insert(self, namespace: str, key: Key, value: Any) -> None:
        self._ns(namespace)[normalize_key(key)] = copy.deepcopy(value)

    def mutate(self, namespace: str, key: Key, fn: Callable[[Any], Any], default: Any = None) -> Any:
        new = fn(self.get(namespace, key, default))
        self.insert(namespace, key, new)
        return new

    def try_mutate(self, namespace: str, key: Key, fn: Callable[[Optional[Any]], Any]) -> Any:
        # fn may raise; in that case nothing is written.
        new = fn(self.get(namespace, key, None))
        self.insert(namespace, key, new)
        return new

    def scan(self, namespace: str) -> Iterator[Tuple[Tuple[Any, ...], Any]]:
        ns = self._data.get(namespace) or {}
        for k in sorted(ns.keys(), key=repr):
            yield k, copy.deepcopy(ns[k])

    def scan_prefix(self, namespace: str, prefix: Key) -> Iterator[Tuple[Tuple[Any, ...], Any]]:
        """Entries whose tuple key strictly extends `prefix`."""
        p = normalize_key(prefix)
        n = len(p)
        ns = self._data.get(namespace) or {}
        for k in sorted((k for k in ns if len(k) > n and k[:n] == p), key=repr):
            yield k, copy.deepcopy(ns[k])

    @contextmanager
    def transaction(self) -> Iterator["MemoryKVStore"]:
        if self._depth > 0:
            self._depth += 1
            try:
                yield self
            finally:
                self._depth -= 1
            return

        self._snapshot = copy.deepcopy(self._data)
        self._depth = 1
        try:
            yield self
        except BaseException:
            self._data = self._snapshot
            raise
        finally:
            self._depth = 0
            self._snapshot = None


__all__ = ["Key", "KVStore", "MemoryKVStore", "normalize_key"]
