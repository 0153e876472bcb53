from __future__ import annotations

import pytest

from assetledger.ledger.allocator import CHECKED, SATURATING, IdentifierAllocator
from assetledger.ledger.u128 import U128_MAX, as_u128, checked_add, saturating_add, saturating_sub
from assetledger.runtime.errors import ApplyError, UniqueAssetApplyError
from assetledger.storage.kv import MemoryKVStore


def test_u128_rejects_non_ints_and_out_of_range() -> None:
    assert as_u128(0) == 0
    assert as_u128(U128_MAX) == U128_MAX
    for bad in (-1, U128_MAX + 1, True, 1.0, "1", None):
        with pytest.raises(ValueError):
            as_u128(bad)


def test_saturating_and_checked_bounds() -> None:
    assert saturating_add(U128_MAX, 1) == U128_MAX
    assert saturating_add(U128_MAX - 5, 3) == U128_MAX - 2
    assert saturating_sub(3, 10) == 0
    assert saturating_sub(10, 3) == 7
    assert checked_add(U128_MAX - 1, 1) == U128_MAX
    assert checked_add(U128_MAX, 1) is None


def test_allocator_hands_out_sequential_ids_from_zero() -> None:
    store = MemoryKVStore()
    alloc = IdentifierAllocator(store, namespace="n", policy=SATURATING)
    assert [alloc.next_id() for _ in range(3)] == [0, 1, 2]
    assert alloc.peek() == 3


def test_saturating_allocator_repeats_max() -> None:
    store = MemoryKVStore()
    store.insert("n", "next", U128_MAX)
    alloc = IdentifierAllocator(store, namespace="n", policy=SATURATING)
    assert alloc.next_id() == U128_MAX
    assert alloc.next_id() == U128_MAX
    assert alloc.peek() == U128_MAX


def test_checked_allocator_fails_without_writing() -> None:
    store = MemoryKVStore()
    store.insert("n", "next", U128_MAX - 1)
    alloc = IdentifierAllocator(store, namespace="n", policy=CHECKED, error_cls=UniqueAssetApplyError)
    assert alloc.next_id() == U128_MAX - 1
    assert alloc.peek() == U128_MAX

    with pytest.raises(UniqueAssetApplyError) as e:
        alloc.next_id()
    assert e.value.code == "type_overflow"
    assert alloc.peek() == U128_MAX


def test_allocator_rejects_unknown_policy() -> None:
    with pytest.raises(ValueError):
        IdentifierAllocator(MemoryKVStore(), namespace="n", policy="wrapping")


def test_apply_error_subclasses_share_base() -> None:
    err = UniqueAssetApplyError("not_owned", "caller_holds_none", {"asset_id": 1})
    assert isinstance(err, ApplyError)
    assert err.code == "not_owned"
