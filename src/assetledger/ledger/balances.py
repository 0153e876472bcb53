"""Sparse (asset id, account id) -> u128 balance mapping.

Absent entries read as zero. Entries are created lazily on first write and
never removed, even when the value returns to zero.
"""

from __future__ import annotations

from typing import Dict, Iterator, Tuple

from assetledger.ledger.types import AccountId, AssetId
from assetledger.ledger.u128 import as_u128, saturating_add, saturating_sub
from assetledger.storage.kv import KVStore


class BalanceLedger:
    def __init__(self, store: KVStore, *, namespace: str) -> None:
        self._store = store
        self._namespace = str(namespace)

    def balance(self, asset_id: AssetId, account: AccountId) -> int:
        return int(self._store.get(self._namespace, (int(asset_id), account), 0))

    def set(self, asset_id: AssetId, account: AccountId, amount: int) -> None:
        self._store.insert(self._namespace, (int(asset_id), account), as_u128(amount))

    def credit(self, asset_id: AssetId, account: AccountId, amount: int) -> int:
        """Saturating add. Returns the amount actually credited."""
        old = self.balance(asset_id, account)
        new = saturating_add(old, amount)
        self.set(asset_id, account, new)
        return new - old

    def debit(self, asset_id: AssetId, account: AccountId, amount: int) -> int:
        """Saturating subtract. Returns the amount actually debited."""
        old = self.balance(asset_id, account)
        new = saturating_sub(old, amount)
        self.set(asset_id, account, new)
        return old - new

    def holders(self, asset_id: AssetId) -> Iterator[Tuple[AccountId, int]]:
        for key, value in self._store.scan_prefix(self._namespace, (int(asset_id),)):
            if len(key) == 2:
                yield key[1], int(value)

    def total(self, asset_id: AssetId) -> int:
        return sum(v for _, v in self.holders(asset_id))

    def snapshot(self, asset_id: AssetId) -> Dict[AccountId, int]:
        return dict(self.holders(asset_id))
