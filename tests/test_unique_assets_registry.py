from __future__ import annotations

import pytest

from assetledger.ledger.sellable import Sellable, UniqueAssetSellable
from assetledger.ledger.u128 import U128_MAX
from assetledger.runtime.errors import UniqueAssetApplyError
from assetledger.runtime.events import MemoryEventSink, UniqueBurned, UniqueCreated, UniqueTransferred
from assetledger.runtime.state_invariants import supply_matches_balances
from assetledger.runtime.unique_assets import NONCE_NS, UniqueAssetRegistry
from assetledger.storage.kv import MemoryKVStore


def _registry(**kw) -> tuple[UniqueAssetRegistry, MemoryEventSink]:
    sink = MemoryEventSink()
    return UniqueAssetRegistry(MemoryKVStore(), sink, **kw), sink


def test_mint_transfer_burn_walkthrough() -> None:
    reg, sink = _registry()

    assert reg.mint("alice", b"meta", 10) == 0
    assert reg.balance(0, "alice") == 10
    assert reg.unique_asset(0).creator == "alice"
    assert reg.unique_asset(0).metadata == b"meta"

    assert reg.transfer("alice", 0, 4, "bob") == 4
    assert reg.balance(0, "alice") == 6
    assert reg.balance(0, "bob") == 4

    assert reg.burn("bob", 0, 100) == 6
    assert reg.balance(0, "bob") == 0
    assert reg.unique_asset(0).supply == 6
    assert supply_matches_balances(reg, 0)

    assert sink.events == [
        UniqueCreated(creator="alice", asset_id=0),
        UniqueTransferred(asset_id=0, from_="alice", to="bob", amount=4),
        UniqueBurned(asset_id=0, owner="bob", total_supply=6),
    ]
    assert sink.events[0].to_json() == {"registry": "unique_assets", "event": "Created", "creator": "alice", "asset_id": 0}


def test_second_asset_balances_are_keyed_by_their_own_id() -> None:
    reg, _ = _registry()
    reg.mint("alice", b"", 5)
    assert reg.mint("bob", b"", 7) == 1

    assert reg.transfer("bob", 1, 2, "carol") == 2
    assert reg.balance(1, "bob") == 5
    assert reg.balance(1, "carol") == 2
    assert reg.balance(0, "alice") == 5
    assert supply_matches_balances(reg, 0)
    assert supply_matches_balances(reg, 1)


def test_zero_supply_mint_is_rejected_before_allocation() -> None:
    reg, sink = _registry()
    with pytest.raises(UniqueAssetApplyError) as e:
        reg.mint("alice", b"", 0)
    assert e.value.code == "no_supply"
    assert reg.nonce() == 0
    assert sink.events == []


def test_exhausted_nonce_fails_with_type_overflow() -> None:
    reg, sink = _registry()
    reg._store.insert(NONCE_NS, "next", U128_MAX - 1)

    assert reg.mint("alice", b"", 1) == U128_MAX - 1
    with pytest.raises(UniqueAssetApplyError) as e:
        reg.mint("alice", b"", 1)
    assert e.value.code == "type_overflow"
    assert reg.nonce() == U128_MAX
    assert reg.unique_asset(U128_MAX) is None
    assert sink.names() == ["Created"]


def test_non_holders_and_unknown_assets_are_rejected() -> None:
    reg, sink = _registry()
    reg.mint("alice", b"", 3)
    sink.clear()

    with pytest.raises(UniqueAssetApplyError) as e:
        reg.transfer("mallory", 0, 1, "mallory")
    assert e.value.code == "not_owned"

    with pytest.raises(UniqueAssetApplyError) as e:
        reg.burn("mallory", 0, 1)
    assert e.value.code == "not_owned"

    with pytest.raises(UniqueAssetApplyError) as e:
        reg.burn("alice", 42, 1)
    assert e.value.code == "unknown"

    assert reg.balance(0, "alice") == 3
    assert sink.events == []


def test_holder_who_burned_everything_no_longer_owns() -> None:
    reg, _ = _registry()
    reg.mint("alice", b"", 3)
    assert reg.burn("alice", 0, 3) == 0
    with pytest.raises(UniqueAssetApplyError) as e:
        reg.transfer("alice", 0, 1, "bob")
    assert e.value.code == "not_owned"


def test_metadata_must_be_bytes() -> None:
    reg, _ = _registry()
    with pytest.raises(UniqueAssetApplyError) as e:
        reg.mint("alice", "not-bytes", 1)
    assert e.value.code == "invalid_payload"


def test_carol_and_dave_mint_and_dave_burns_his_own_line() -> None:
    reg, _ = _registry()

    assert reg.mint("carol", b"meta", 10) == 0
    assert reg.balance(0, "carol") == 10
    assert reg.unique_asset(0).supply == 10

    assert reg.mint("dave", b"meta2", 5) == 1
    assert reg.burn("dave", 1, 2) == 3
    assert reg.balance(1, "dave") == 3
    assert reg.balance(0, "carol") == 10
    assert reg.unique_asset(0).supply == 10

    assert reg.transfer("dave", 1, 1, "carol") == 1
    assert reg.balance(1, "carol") == 1
    assert reg.balance(0, "carol") == 10
    assert supply_matches_balances(reg, 0)
    assert supply_matches_balances(reg, 1)

    # Anyone without an asset-1 line is rejected.
    with pytest.raises(UniqueAssetApplyError) as e:
        reg.burn("eve", 1, 1)
    assert e.value.code == "not_owned"


def test_shared_pool_checks_line_zero_but_moves_named_line() -> None:
    reg, sink = _registry(shared_balance_pool=True)
    reg.mint("carol", b"m", 10)  # id 0
    reg.mint("dave", b"m2", 5)  # id 1
    sink.clear()

    # Dave holds nothing on line 0, so asset 1 looks unowned to him.
    with pytest.raises(UniqueAssetApplyError) as e:
        reg.transfer("dave", 1, 1, "erin")
    assert e.value.code == "not_owned"

    # Carol passes the line-0 check but holds no asset-1 units to debit.
    with pytest.raises(UniqueAssetApplyError) as e:
        reg.burn("carol", 1, 5)
    assert e.value.code == "type_overflow"

    assert reg.unique_asset(1).supply == 5
    assert reg.balance(1, "dave") == 5
    assert reg.balance(0, "carol") == 10
    assert supply_matches_balances(reg, 0)
    assert supply_matches_balances(reg, 1)
    assert sink.events == []


def test_shared_pool_clamps_against_line_zero() -> None:
    reg, _ = _registry(shared_balance_pool=True)
    reg.mint("carol", b"m", 4)  # id 0
    reg.mint("carol", b"m2", 9)  # id 1

    # Clamped to carol's line-0 holding (4), then taken from line 1.
    assert reg.transfer("carol", 1, 100, "dave") == 4
    assert reg.balance(1, "carol") == 5
    assert reg.balance(1, "dave") == 4
    assert reg.balance(0, "carol") == 4

    assert reg.burn("carol", 1, 3) == 6
    assert reg.balance(1, "carol") == 2
    assert supply_matches_balances(reg, 1)


def test_sellable_adapter_settles_through_registry() -> None:
    reg, sink = _registry()
    reg.mint("alice", b"", 10)
    market = UniqueAssetSellable(reg)
    assert isinstance(market, Sellable)

    assert market.amount_owned(0, "alice") == 10
    assert market.amount_owned(0, "bob") == 0
    assert market.transfer(0, "alice", "bob", 25) == 10
    assert market.amount_owned(0, "bob") == 10
    assert sink.events[-1] == UniqueTransferred(asset_id=0, from_="alice", to="bob", amount=10)

    with pytest.raises(UniqueAssetApplyError):
        market.transfer(0, "alice", "bob", 1)
