"""
Sellable resources.

A marketplace collaborator settles trades through this interface without
depending on a concrete registry:

  - amount_owned(resource_id, account) -> units held
  - transfer(resource_id, from_, to, amount) -> units actually moved

UniqueAssetSellable adapts the unique registry. Its transfer is the
registry's clamped transfer with `from_` as the caller, so it raises the
same errors (unknown, not_owned) and emits the same Transferred event.
"""

from __future__ import annotations

from typing import Protocol, runtime_checkable

from assetledger.ledger.types import AccountId, AssetId
from assetledger.runtime.unique_assets import UniqueAssetRegistry


@runtime_checkable
class Sellable(Protocol):
    def amount_owned(self, resource_id: AssetId, account: AccountId) -> int: ...

    def transfer(self, resource_id: AssetId, from_: AccountId, to: AccountId, amount: int) -> int: ...


class UniqueAssetSellable:
    def __init__(self, registry: UniqueAssetRegistry) -> None:
        self._registry = registry

    def amount_owned(self, resource_id: AssetId, account: AccountId) -> int:
        return self._registry.balance(resource_id, account)

    def transfer(self, resource_id: AssetId, from_: AccountId, to: AccountId, amount: int) -> int:
        return self._registry.transfer(from_, resource_id, amount, to)


__all__ = ["Sellable", "UniqueAssetSellable"]
