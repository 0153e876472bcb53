# src/assetledger/ledger/u128.py
from __future__ import annotations

"""Unsigned 128-bit arithmetic helpers.

Balances, supplies and nonces are Python ints constrained to [0, U128_MAX].
Growth and shrinkage never trap: callers pick saturating helpers, or
checked_add() where silent capping is unacceptable (identifier allocation).
"""

from typing import Any, Optional

U128_MAX = (1 << 128) - 1


def as_u128(v: Any) -> int:
    # bool is an int subclass; reject it explicitly.
    if isinstance(v, bool) or not isinstance(v, int):
        raise ValueError(f"u128 must be int, got {type(v).__name__}")
    if v < 0 or v > U128_MAX:
        raise ValueError(f"u128 out of range: {v}")
    return v


def saturating_add(a: int, b: int) -> int:
    return min(U128_MAX, as_u128(a) + as_u128(b))


def saturating_sub(a: int, b: int) -> int:
    return max(0, as_u128(a) - as_u128(b))


def checked_add(a: int, b: int) -> Optional[int]:
    c = as_u128(a) + as_u128(b)
    if c > U128_MAX:
        return None
    return c


__all__ = ["U128_MAX", "as_u128", "checked_add", "saturating_add", "saturating_sub"]
