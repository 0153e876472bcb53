from __future__ import annotations

"""Command payload schemas.

Strict pydantic models for every command payload: unknown keys are rejected,
amounts must be plain ints inside the u128 range, and opaque byte fields
travel as hex strings. Handlers still enforce the ledger semantics
(existence, ownership, positive supply); these are shape checks only.
"""

from typing import Annotated, Any, Dict, Type

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from assetledger.ledger.u128 import U128_MAX
from assetledger.runtime.errors import INVALID_PAYLOAD, ApplyError

Json = Dict[str, Any]

U128 = Annotated[int, Field(ge=0, le=U128_MAX, strict=True)]
AssetIdField = Annotated[int, Field(ge=0, le=U128_MAX, strict=True)]
AccountField = Annotated[str, Field(min_length=1)]


class _StrictModel(BaseModel):
    """Strict model: reject unknown keys."""

    model_config = ConfigDict(extra="forbid")


def _hex_bytes(v: Any) -> bytes:
    if isinstance(v, (bytes, bytearray)):
        return bytes(v)
    if not isinstance(v, str):
        raise ValueError("must be a hex string")
    s = v[2:] if v.startswith("0x") else v
    try:
        return bytes.fromhex(s)
    except ValueError as e:
        raise ValueError("must be a hex string") from e


# ---------------------------------------------------------------------------
# Fungible registry
# ---------------------------------------------------------------------------


class AssetCreatePayload(_StrictModel):
    pass


class AssetSetMetadataPayload(_StrictModel):
    asset_id: AssetIdField
    name: bytes
    symbol: bytes

    @field_validator("name", "symbol", mode="before")
    @classmethod
    def decode_hex(cls, v: Any) -> bytes:
        return _hex_bytes(v)


class AssetMintPayload(_StrictModel):
    asset_id: AssetIdField
    amount: U128
    to: AccountField


class AssetBurnPayload(_StrictModel):
    asset_id: AssetIdField
    amount: U128


class AssetTransferPayload(_StrictModel):
    asset_id: AssetIdField
    amount: U128
    to: AccountField


# ---------------------------------------------------------------------------
# Unique registry
# ---------------------------------------------------------------------------


class UniqueAssetMintPayload(_StrictModel):
    metadata: bytes = b""
    # Zero passes the shape check; the handler rejects it with no_supply.
    supply: U128

    @field_validator("metadata", mode="before")
    @classmethod
    def decode_hex(cls, v: Any) -> bytes:
        return _hex_bytes(v)


class UniqueAssetBurnPayload(_StrictModel):
    asset_id: AssetIdField
    amount: U128


class UniqueAssetTransferPayload(_StrictModel):
    asset_id: AssetIdField
    amount: U128
    to: AccountField


Schema = Type[_StrictModel]

SCHEMA_BY_COMMAND: Dict[str, Schema] = {
    "ASSET_CREATE": AssetCreatePayload,
    "ASSET_SET_METADATA": AssetSetMetadataPayload,
    "ASSET_MINT": AssetMintPayload,
    "ASSET_BURN": AssetBurnPayload,
    "ASSET_TRANSFER": AssetTransferPayload,
    "UNIQUE_ASSET_MINT": UniqueAssetMintPayload,
    "UNIQUE_ASSET_BURN": UniqueAssetBurnPayload,
    "UNIQUE_ASSET_TRANSFER": UniqueAssetTransferPayload,
}


def validate_payload(*, command: str, payload: Any) -> BaseModel:
    """Parse a payload for `command`.

    Raises ApplyError(invalid_payload) on any shape mismatch. Callers must
    check the command is known first.
    """
    sch = SCHEMA_BY_COMMAND[command]

    if payload is None:
        payload = {}
    if not isinstance(payload, dict):
        raise ApplyError(INVALID_PAYLOAD, "payload_must_be_object", {"command": command})

    try:
        return sch(**payload)
    except ValidationError as ve:
        raise ApplyError(
            INVALID_PAYLOAD,
            "payload_schema_mismatch",
            {"command": command, "errors": ve.errors(include_url=False, include_context=False)},
        ) from ve
