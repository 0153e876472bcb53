# src/assetledger/runtime/dispatch.py
from __future__ import annotations

"""
Command routing.

Covers the full command surface of both registries:
- ASSET_CREATE / ASSET_SET_METADATA / ASSET_MINT / ASSET_BURN / ASSET_TRANSFER
- UNIQUE_ASSET_MINT / UNIQUE_ASSET_BURN / UNIQUE_ASSET_TRANSFER

Each applier validates the payload shape, calls the registry handler with the
envelope's signer as caller, and returns a small result dict. Unknown
commands fail closed.
"""

from typing import Any, Dict, Optional, Set

from assetledger.runtime.assets import AssetRegistry
from assetledger.runtime.command_schema import validate_payload
from assetledger.runtime.command_types import CommandEnvelope
from assetledger.runtime.errors import COMMAND_UNIMPLEMENTED, FORBIDDEN, ApplyError
from assetledger.runtime.unique_assets import UniqueAssetRegistry

Json = Dict[str, Any]


# ---------------------------------------------------------------------------
# Fungible
# ---------------------------------------------------------------------------

def _apply_asset_create(assets: AssetRegistry, env: CommandEnvelope) -> Json:
    validate_payload(command=env.command, payload=env.payload)
    asset_id = assets.create(env.signer)
    return {"applied": "ASSET_CREATE", "asset_id": asset_id}


def _apply_asset_set_metadata(assets: AssetRegistry, env: CommandEnvelope) -> Json:
    p = validate_payload(command=env.command, payload=env.payload)
    assets.set_metadata(env.signer, p.asset_id, p.name, p.symbol)
    return {"applied": "ASSET_SET_METADATA", "asset_id": p.asset_id}


def _apply_asset_mint(assets: AssetRegistry, env: CommandEnvelope) -> Json:
    p = validate_payload(command=env.command, payload=env.payload)
    total = assets.mint(env.signer, p.asset_id, p.amount, p.to)
    return {"applied": "ASSET_MINT", "asset_id": p.asset_id, "to": p.to, "total_supply": total}


def _apply_asset_burn(assets: AssetRegistry, env: CommandEnvelope) -> Json:
    p = validate_payload(command=env.command, payload=env.payload)
    total = assets.burn(env.signer, p.asset_id, p.amount)
    return {"applied": "ASSET_BURN", "asset_id": p.asset_id, "total_supply": total}


def _apply_asset_transfer(assets: AssetRegistry, env: CommandEnvelope) -> Json:
    p = validate_payload(command=env.command, payload=env.payload)
    moved = assets.transfer(env.signer, p.asset_id, p.amount, p.to)
    return {"applied": "ASSET_TRANSFER", "asset_id": p.asset_id, "to": p.to, "amount": moved}


# ---------------------------------------------------------------------------
# Unique
# ---------------------------------------------------------------------------

def _apply_unique_asset_mint(unique: UniqueAssetRegistry, env: CommandEnvelope) -> Json:
    p = validate_payload(command=env.command, payload=env.payload)
    asset_id = unique.mint(env.signer, p.metadata, p.supply)
    return {"applied": "UNIQUE_ASSET_MINT", "asset_id": asset_id, "supply": p.supply}


def _apply_unique_asset_burn(unique: UniqueAssetRegistry, env: CommandEnvelope) -> Json:
    p = validate_payload(command=env.command, payload=env.payload)
    total = unique.burn(env.signer, p.asset_id, p.amount)
    return {"applied": "UNIQUE_ASSET_BURN", "asset_id": p.asset_id, "total_supply": total}


def _apply_unique_asset_transfer(unique: UniqueAssetRegistry, env: CommandEnvelope) -> Json:
    p = validate_payload(command=env.command, payload=env.payload)
    moved = unique.transfer(env.signer, p.asset_id, p.amount, p.to)
    return {"applied": "UNIQUE_ASSET_TRANSFER", "asset_id": p.asset_id, "to": p.to, "amount": moved}


ASSET_COMMANDS: Set[str] = {
    "ASSET_CREATE",
    "ASSET_SET_METADATA",
    "ASSET_MINT",
    "ASSET_BURN",
    "ASSET_TRANSFER",
}

UNIQUE_ASSET_COMMANDS: Set[str] = {
    "UNIQUE_ASSET_MINT",
    "UNIQUE_ASSET_BURN",
    "UNIQUE_ASSET_TRANSFER",
}

SUPPORTED_COMMANDS: Set[str] = ASSET_COMMANDS | UNIQUE_ASSET_COMMANDS


def apply_asset_command(assets: AssetRegistry, env: CommandEnvelope) -> Optional[Json]:
    t = env.command
    if t not in ASSET_COMMANDS:
        return None

    if t == "ASSET_CREATE":
        return _apply_asset_create(assets, env)
    if t == "ASSET_SET_METADATA":
        return _apply_asset_set_metadata(assets, env)
    if t == "ASSET_MINT":
        return _apply_asset_mint(assets, env)
    if t == "ASSET_BURN":
        return _apply_asset_burn(assets, env)
    if t == "ASSET_TRANSFER":
        return _apply_asset_transfer(assets, env)

    return None


def apply_unique_asset_command(unique: UniqueAssetRegistry, env: CommandEnvelope) -> Optional[Json]:
    t = env.command
    if t not in UNIQUE_ASSET_COMMANDS:
        return None

    if t == "UNIQUE_ASSET_MINT":
        return _apply_unique_asset_mint(unique, env)
    if t == "UNIQUE_ASSET_BURN":
        return _apply_unique_asset_burn(unique, env)
    if t == "UNIQUE_ASSET_TRANSFER":
        return _apply_unique_asset_transfer(unique, env)

    return None


def apply_command(assets: AssetRegistry, unique: UniqueAssetRegistry, env: Any) -> Json:
    env = CommandEnvelope.from_json(env)

    if not str(env.signer or "").strip():
        raise ApplyError(FORBIDDEN, "missing_signer", {"command": env.command})

    out = apply_asset_command(assets, env)
    if out is None:
        out = apply_unique_asset_command(unique, env)
    if out is None:
        raise ApplyError(COMMAND_UNIMPLEMENTED, "command_not_implemented", {"command": env.command})
    return out
