# src/assetledger/ledger/allocator.py
from __future__ import annotations

"""Per-registry identifier allocation.

Each registry owns exactly one allocator, and the allocator is the only code
that writes the registry's nonce. The nonce starts at zero and advances by one
per successful allocation; it is never decremented or reset.

Two overflow policies exist:

  - "saturating" (fungible registry): never fails. Once the nonce reaches
    U128_MAX every later call returns U128_MAX again. This starves allocation
    silently and is a known design limit, logged as "allocator_saturated".
  - "checked" (unique registry): raises type_overflow when the nonce is
    already at U128_MAX. Nothing is written on failure.
"""

import logging
from typing import Type

from assetledger.ledger.u128 import U128_MAX, checked_add, saturating_add
from assetledger.logging_utils import log_event
from assetledger.runtime.errors import TYPE_OVERFLOW, ApplyError
from assetledger.storage.kv import KVStore

SATURATING = "saturating"
CHECKED = "checked"

_NONCE_KEY = "next"

_log = logging.getLogger("assetledger.allocator")


class IdentifierAllocator:
    def __init__(
        self,
        store: KVStore,
        *,
        namespace: str,
        policy: str = SATURATING,
        error_cls: Type[ApplyError] = ApplyError,
    ) -> None:
        if policy not in {SATURATING, CHECKED}:
            raise ValueError(f"unknown allocator policy: {policy!r}")
        self._store = store
        self._namespace = str(namespace)
        self._policy = policy
        self._error_cls = error_cls

    def peek(self) -> int:
        return int(self._store.get(self._namespace, _NONCE_KEY, 0))

    def next_id(self) -> int:
        current = self.peek()

        if self._policy == CHECKED:
            nxt = checked_add(current, 1)
            if nxt is None:
                raise self._error_cls(TYPE_OVERFLOW, "nonce_exhausted", {"nonce": current})
            self._store.insert(self._namespace, _NONCE_KEY, nxt)
            return current

        if current == U128_MAX:
            log_event(_log, "allocator_saturated", namespace=self._namespace, nonce=current)
        self._store.insert(self._namespace, _NONCE_KEY, saturating_add(current, 1))
        return current


__all__ = ["CHECKED", "SATURATING", "IdentifierAllocator"]
