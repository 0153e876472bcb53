"""assetledger.ledger.types

Persisted record types for both registries.

Records are frozen dataclasses that round-trip through JSON objects so the
memory and SQLite stores hold identical shapes. Byte fields (names, symbols,
metadata) are opaque and hex-encoded in JSON.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Hashable

from assetledger.ledger.u128 import as_u128

Json = Dict[str, Any]

AssetId = int
AccountId = Hashable


def _coerce_u128(v: Any, *, field: str) -> int:
    try:
        return as_u128(v)
    except ValueError as e:
        raise ValueError(f"record schema error: field '{field}' must be u128 ({e})") from e


def _coerce_bytes(v: Any, *, field: str) -> bytes:
    if isinstance(v, (bytes, bytearray)):
        return bytes(v)
    if isinstance(v, str):
        try:
            return bytes.fromhex(v)
        except ValueError as e:
            raise ValueError(f"record schema error: field '{field}' must be hex") from e
    raise ValueError(f"record schema error: field '{field}' must be bytes or hex (got {type(v).__name__})")


def _require_dict(v: Any, *, what: str) -> Json:
    if not isinstance(v, dict):
        raise ValueError(f"{what} record must be a JSON object (got {type(v).__name__})")
    return v


@dataclass(frozen=True)
class AssetDetails:
    owner: AccountId
    supply: int = 0

    def with_supply(self, supply: int) -> "AssetDetails":
        return AssetDetails(owner=self.owner, supply=_coerce_u128(supply, field="supply"))

    def to_json(self) -> Json:
        return {"owner": self.owner, "supply": int(self.supply)}

    @staticmethod
    def from_json(j: Any) -> "AssetDetails":
        d = _require_dict(j, what="asset")
        return AssetDetails(owner=d.get("owner"), supply=_coerce_u128(d.get("supply", 0), field="supply"))


@dataclass(frozen=True)
class AssetMetadata:
    name: bytes
    symbol: bytes

    def to_json(self) -> Json:
        return {"name": self.name.hex(), "symbol": self.symbol.hex()}

    @staticmethod
    def from_json(j: Any) -> "AssetMetadata":
        d = _require_dict(j, what="metadata")
        return AssetMetadata(
            name=_coerce_bytes(d.get("name", ""), field="name"),
            symbol=_coerce_bytes(d.get("symbol", ""), field="symbol"),
        )


@dataclass(frozen=True)
class UniqueAssetDetails:
    creator: AccountId
    metadata: bytes
    supply: int

    def with_supply(self, supply: int) -> "UniqueAssetDetails":
        return UniqueAssetDetails(
            creator=self.creator,
            metadata=self.metadata,
            supply=_coerce_u128(supply, field="supply"),
        )

    def to_json(self) -> Json:
        return {"creator": self.creator, "metadata": self.metadata.hex(), "supply": int(self.supply)}

    @staticmethod
    def from_json(j: Any) -> "UniqueAssetDetails":
        d = _require_dict(j, what="unique asset")
        return UniqueAssetDetails(
            creator=d.get("creator"),
            metadata=_coerce_bytes(d.get("metadata", ""), field="metadata"),
            supply=_coerce_u128(d.get("supply", 0), field="supply"),
        )


__all__ = ["AccountId", "AssetDetails", "AssetId", "AssetMetadata", "UniqueAssetDetails"]
