# src/assetledger/runtime/assets.py
from __future__ import annotations

"""
Fungible asset registry.

Commands (caller is an already-authenticated AccountId):
- create(caller)                            -> AssetId
- set_metadata(caller, asset_id, name, symbol)   owner only
- mint(caller, asset_id, amount, to)             owner only
- burn(caller, asset_id, amount)                 any holder, own balance
- transfer(caller, asset_id, amount, to)         any holder, own balance

Arithmetic is saturating throughout. Whatever a saturating step actually
moved (not the requested amount) is what the paired step applies, which keeps
supply == sum(balances) for every asset.

Storage keyspaces:
- asset           : asset_id -> AssetDetails
- asset_account   : (asset_id, account) -> u128
- asset_metadata  : asset_id -> AssetMetadata
- asset_nonce     : "next" -> u128
"""

import logging
from typing import Any, Optional, Union

from assetledger.ledger.allocator import SATURATING, IdentifierAllocator
from assetledger.ledger.balances import BalanceLedger
from assetledger.ledger.guard import ensure_is_owner
from assetledger.ledger.types import AccountId, AssetDetails, AssetId, AssetMetadata
from assetledger.ledger.u128 import as_u128, saturating_add, saturating_sub
from assetledger.logging_utils import log_event
from assetledger.runtime.atomic import atomic_command
from assetledger.runtime.errors import INVALID_PAYLOAD, UNKNOWN, AssetApplyError
from assetledger.runtime.events import (
    Burned,
    Created,
    EventBuffer,
    EventSink,
    MetadataSet,
    Minted,
    Transferred,
    as_event_buffer,
)
from assetledger.storage.kv import KVStore

ASSET_NS = "asset"
ACCOUNT_NS = "asset_account"
METADATA_NS = "asset_metadata"
NONCE_NS = "asset_nonce"

_log = logging.getLogger("assetledger.assets")


def _amount(v: Any) -> int:
    try:
        return as_u128(v)
    except ValueError as e:
        raise AssetApplyError(INVALID_PAYLOAD, "amount_not_u128", {"amount": repr(v)}) from e


def _opaque_bytes(v: Any, *, field: str) -> bytes:
    if isinstance(v, (bytes, bytearray)):
        return bytes(v)
    raise AssetApplyError(INVALID_PAYLOAD, f"{field}_not_bytes", {"type": type(v).__name__})


class AssetRegistry:
    def __init__(self, store: KVStore, sink: Union[EventSink, EventBuffer, None] = None) -> None:
        self._store = store
        self._events = as_event_buffer(sink)
        self._allocator = IdentifierAllocator(
            store, namespace=NONCE_NS, policy=SATURATING, error_cls=AssetApplyError
        )
        self._balances = BalanceLedger(store, namespace=ACCOUNT_NS)

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    @property
    def balances(self) -> BalanceLedger:
        return self._balances

    def asset(self, asset_id: AssetId) -> Optional[AssetDetails]:
        raw = self._store.get(ASSET_NS, int(asset_id))
        return None if raw is None else AssetDetails.from_json(raw)

    def metadata(self, asset_id: AssetId) -> Optional[AssetMetadata]:
        raw = self._store.get(METADATA_NS, int(asset_id))
        return None if raw is None else AssetMetadata.from_json(raw)

    def balance(self, asset_id: AssetId, account: AccountId) -> int:
        return self._balances.balance(asset_id, account)

    def nonce(self) -> int:
        return self._allocator.peek()

    def _require_asset(self, asset_id: AssetId) -> AssetDetails:
        details = self.asset(asset_id)
        if details is None:
            raise AssetApplyError(UNKNOWN, "asset_not_found", {"asset_id": asset_id})
        return details

    # ------------------------------------------------------------------
    # Commands
    # ------------------------------------------------------------------

    def create(self, caller: AccountId) -> AssetId:
        with atomic_command(self._store, self._events):
            asset_id = self._allocator.next_id()
            self._store.insert(ASSET_NS, asset_id, AssetDetails(owner=caller, supply=0).to_json())
            self._events.emit(Created(owner=caller, asset_id=asset_id))
        return asset_id

    def set_metadata(self, caller: AccountId, asset_id: AssetId, name: bytes, symbol: bytes) -> None:
        name_b = _opaque_bytes(name, field="name")
        symbol_b = _opaque_bytes(symbol, field="symbol")

        with atomic_command(self._store, self._events):
            ensure_is_owner(self.asset(asset_id), caller, asset_id=asset_id, error_cls=AssetApplyError)
            self._store.insert(METADATA_NS, int(asset_id), AssetMetadata(name=name_b, symbol=symbol_b).to_json())
            self._events.emit(MetadataSet(asset_id=asset_id, name=name_b, symbol=symbol_b))

    def mint(self, caller: AccountId, asset_id: AssetId, amount: int, to: AccountId) -> int:
        """Returns the new total supply."""
        amount = _amount(amount)

        with atomic_command(self._store, self._events):
            ensure_is_owner(self.asset(asset_id), caller, asset_id=asset_id, error_cls=AssetApplyError)

            total_supply = 0
            minted = 0

            def _grow(cur: Optional[Any]) -> Any:
                nonlocal total_supply, minted
                if cur is None:
                    raise AssetApplyError(UNKNOWN, "asset_not_found", {"asset_id": asset_id})
                details = AssetDetails.from_json(cur)
                total_supply = saturating_add(details.supply, amount)
                minted = total_supply - details.supply
                return details.with_supply(total_supply).to_json()

            self._store.try_mutate(ASSET_NS, int(asset_id), _grow)
            self._balances.credit(asset_id, to, minted)

            if minted != amount:
                log_event(_log, "mint_saturated", asset_id=asset_id, requested=amount, minted=minted)

            self._events.emit(Minted(asset_id=asset_id, owner=to, total_supply=total_supply))
        return total_supply

    def burn(self, caller: AccountId, asset_id: AssetId, amount: int) -> int:
        """Returns the new total supply."""
        amount = _amount(amount)

        with atomic_command(self._store, self._events):
            details = self._require_asset(asset_id)
            burned = self._balances.debit(asset_id, caller, amount)

            if burned > details.supply:
                # Only reachable when supply and balances already disagree.
                log_event(
                    _log,
                    "burn_supply_clamped",
                    level=logging.WARNING,
                    asset_id=asset_id,
                    supply=details.supply,
                    burned=burned,
                )
            total_supply = saturating_sub(details.supply, burned)
            self._store.insert(ASSET_NS, int(asset_id), details.with_supply(total_supply).to_json())

            self._events.emit(Burned(asset_id=asset_id, owner=caller, total_supply=total_supply))
        return total_supply

    def transfer(self, caller: AccountId, asset_id: AssetId, amount: int, to: AccountId) -> int:
        """Returns the amount actually moved (min(amount, caller balance))."""
        amount = _amount(amount)

        with atomic_command(self._store, self._events):
            self._require_asset(asset_id)
            moved = self._balances.debit(asset_id, caller, amount)
            self._balances.credit(asset_id, to, moved)
            self._events.emit(Transferred(asset_id=asset_id, from_=caller, to=to, amount=moved))
        return moved
