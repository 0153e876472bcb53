# src/assetledger/storage/__init__.py
"""
Storage backends for the ledger core.

- kv: the KVStore interface and the in-memory backend (tests, ephemeral use)
- sqlite_db: the durable SQLite backend (production)
"""

from assetledger.storage.kv import KVStore, MemoryKVStore
from assetledger.storage.sqlite_db import SqliteDB, SqliteKVStore

__all__ = ["KVStore", "MemoryKVStore", "SqliteDB", "SqliteKVStore"]
