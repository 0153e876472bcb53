# src/assetledger/runtime/unique_assets.py
from __future__ import annotations

"""
Semi-fungible ("unique") asset registry.

Commands (caller is an already-authenticated AccountId):
- mint(caller, metadata, supply)         -> AssetId; minter receives the whole supply
- burn(caller, asset_id, amount)         holder only, clamped to the caller's balance
- transfer(caller, asset_id, amount, to) holder only, clamped to the caller's balance

Over-requests never fail: the effect is silently reduced to what the caller
holds. Identifier allocation is checked: an exhausted nonce fails the mint
with type_overflow and consumes nothing.

Balance line keying:
  By default burn/transfer check, clamp and move the (asset_id, account) line
  named by the command. With shared_balance_pool=True the ownership check and
  the clamp read line 0 for every asset, while the debit and credit still hit
  the named asset's line. If that line holds less than the clamped amount the
  command fails with type_overflow and nothing moves, so supply == sum of the
  named asset's balances holds in both modes.

Storage keyspaces:
- unique_asset    : asset_id -> UniqueAssetDetails
- unique_account  : (asset_id, account) -> u128
- unique_nonce    : "next" -> u128
"""

from typing import Any, Tuple, Union, Optional

from assetledger.ledger.allocator import CHECKED, IdentifierAllocator
from assetledger.ledger.balances import BalanceLedger
from assetledger.ledger.types import AccountId, AssetId, UniqueAssetDetails
from assetledger.ledger.u128 import as_u128, checked_add, saturating_sub
from assetledger.runtime.atomic import atomic_command
from assetledger.runtime.errors import (
    INVALID_PAYLOAD,
    NO_SUPPLY,
    NOT_OWNED,
    TYPE_OVERFLOW,
    UNKNOWN,
    UniqueAssetApplyError,
)
from assetledger.runtime.events import (
    EventBuffer,
    EventSink,
    UniqueBurned,
    UniqueCreated,
    UniqueTransferred,
    as_event_buffer,
)
from assetledger.storage.kv import KVStore

UNIQUE_ASSET_NS = "unique_asset"
ACCOUNT_NS = "unique_account"
NONCE_NS = "unique_nonce"

SHARED_POOL_LINE: AssetId = 0


def _amount(v: Any, *, field: str = "amount") -> int:
    try:
        return as_u128(v)
    except ValueError as e:
        raise UniqueAssetApplyError(INVALID_PAYLOAD, f"{field}_not_u128", {field: repr(v)}) from e


class UniqueAssetRegistry:
    def __init__(
        self,
        store: KVStore,
        sink: Union[EventSink, EventBuffer, None] = None,
        *,
        shared_balance_pool: bool = False,
    ) -> None:
        self._store = store
        self._events = as_event_buffer(sink)
        self._allocator = IdentifierAllocator(
            store, namespace=NONCE_NS, policy=CHECKED, error_cls=UniqueAssetApplyError
        )
        self._balances = BalanceLedger(store, namespace=ACCOUNT_NS)
        self._shared_balance_pool = bool(shared_balance_pool)

    @property
    def balances(self) -> BalanceLedger:
        return self._balances

    @property
    def shared_balance_pool(self) -> bool:
        return self._shared_balance_pool

    def unique_asset(self, asset_id: AssetId) -> Optional[UniqueAssetDetails]:
        raw = self._store.get(UNIQUE_ASSET_NS, int(asset_id))
        return None if raw is None else UniqueAssetDetails.from_json(raw)

    def balance(self, asset_id: AssetId, account: AccountId) -> int:
        return self._balances.balance(asset_id, account)

    def nonce(self) -> int:
        return self._allocator.peek()

    def _check_line(self, asset_id: AssetId) -> AssetId:
        return SHARED_POOL_LINE if self._shared_balance_pool else int(asset_id)

    def _holding(self, caller: AccountId, asset_id: AssetId, amount: int) -> Tuple[UniqueAssetDetails, int]:
        """Check existence and ownership; return (details, clamped delta)."""
        details = self.unique_asset(asset_id)
        if details is None:
            raise UniqueAssetApplyError(UNKNOWN, "unique_asset_not_found", {"asset_id": asset_id})

        held = self._balances.balance(self._check_line(asset_id), caller)
        if held <= 0:
            raise UniqueAssetApplyError(NOT_OWNED, "caller_holds_none", {"asset_id": asset_id, "caller": caller})

        return details, min(amount, held)

    def _take(self, asset_id: AssetId, caller: AccountId, delta: int) -> None:
        # Only the shared pool can clamp against a line other than the one debited.
        have = self._balances.balance(asset_id, caller)
        if have < delta:
            raise UniqueAssetApplyError(
                TYPE_OVERFLOW,
                "balance_underflow",
                {"asset_id": asset_id, "caller": caller, "balance": have, "amount": delta},
            )
        self._balances.set(asset_id, caller, have - delta)

    def _give(self, asset_id: AssetId, to: AccountId, delta: int) -> None:
        have = self._balances.balance(asset_id, to)
        new = checked_add(have, delta)
        if new is None:
            raise UniqueAssetApplyError(
                TYPE_OVERFLOW,
                "balance_overflow",
                {"asset_id": asset_id, "to": to, "balance": have, "amount": delta},
            )
        self._balances.set(asset_id, to, new)

    # ------------------------------------------------------------------
    # Commands
    # ------------------------------------------------------------------

    def mint(self, caller: AccountId, metadata: bytes, supply: int) -> AssetId:
        if not isinstance(metadata, (bytes, bytearray)):
            raise UniqueAssetApplyError(INVALID_PAYLOAD, "metadata_not_bytes", {"type": type(metadata).__name__})
        supply = _amount(supply, field="supply")
        if supply <= 0:
            raise UniqueAssetApplyError(NO_SUPPLY, "supply_must_be_positive", {"supply": supply})

        with atomic_command(self._store, self._events):
            asset_id = self._allocator.next_id()
            details = UniqueAssetDetails(creator=caller, metadata=bytes(metadata), supply=supply)
            self._store.insert(UNIQUE_ASSET_NS, asset_id, details.to_json())
            self._balances.set(asset_id, caller, supply)
            self._events.emit(UniqueCreated(creator=caller, asset_id=asset_id))
        return asset_id

    def burn(self, caller: AccountId, asset_id: AssetId, amount: int) -> int:
        """Returns the new total supply."""
        amount = _amount(amount)

        with atomic_command(self._store, self._events):
            details, delta = self._holding(caller, asset_id, amount)

            self._take(asset_id, caller, delta)
            total_supply = saturating_sub(details.supply, delta)
            self._store.insert(UNIQUE_ASSET_NS, int(asset_id), details.with_supply(total_supply).to_json())

            self._events.emit(UniqueBurned(asset_id=asset_id, owner=caller, total_supply=total_supply))
        return total_supply

    def transfer(self, caller: AccountId, asset_id: AssetId, amount: int, to: AccountId) -> int:
        """Returns the amount actually moved."""
        amount = _amount(amount)

        with atomic_command(self._store, self._events):
            _, delta = self._holding(caller, asset_id, amount)

            self._take(asset_id, caller, delta)
            self._give(asset_id, to, delta)

            self._events.emit(UniqueTransferred(asset_id=asset_id, from_=caller, to=to, amount=delta))
        return delta
