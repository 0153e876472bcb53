from __future__ import annotations

import pytest

from assetledger.ledger.u128 import U128_MAX
from assetledger.runtime.assets import AssetRegistry
from assetledger.runtime.command_schema import SCHEMA_BY_COMMAND, validate_payload
from assetledger.runtime.command_types import CommandEnvelope
from assetledger.runtime.dispatch import SUPPORTED_COMMANDS, apply_command
from assetledger.runtime.errors import ApplyError
from assetledger.runtime.events import EventBuffer, MemoryEventSink
from assetledger.runtime.unique_assets import UniqueAssetRegistry
from assetledger.storage.kv import MemoryKVStore


@pytest.fixture
def registries() -> tuple[AssetRegistry, UniqueAssetRegistry, MemoryEventSink]:
    store = MemoryKVStore()
    sink = MemoryEventSink()
    events = EventBuffer(sink)
    return AssetRegistry(store, events), UniqueAssetRegistry(store, events), sink


def _env(command: str, signer: str = "alice", **payload) -> dict:
    return {"command": command, "signer": signer, "payload": payload}


def test_every_supported_command_has_a_schema() -> None:
    assert set(SCHEMA_BY_COMMAND) == SUPPORTED_COMMANDS


def test_envelope_normalizes_command_name() -> None:
    env = CommandEnvelope.from_json({"command": " asset_create ", "signer": "alice"})
    assert env.command == "ASSET_CREATE"
    assert env.payload == {}
    assert CommandEnvelope.from_json(env.to_json()) == env


def test_fungible_commands_route_to_registry(registries) -> None:
    assets, unique, sink = registries

    assert apply_command(assets, unique, _env("ASSET_CREATE")) == {"applied": "ASSET_CREATE", "asset_id": 0}
    out = apply_command(assets, unique, _env("ASSET_MINT", asset_id=0, amount=50, to="bob"))
    assert out["total_supply"] == 50

    out = apply_command(assets, unique, _env("ASSET_TRANSFER", signer="bob", asset_id=0, amount=80, to="carol"))
    assert out["amount"] == 50

    apply_command(assets, unique, _env("ASSET_SET_METADATA", asset_id=0, name="0x476f6c64", symbol="474c44"))
    assert assets.metadata(0).name == b"Gold"
    assert assets.metadata(0).symbol == b"GLD"

    out = apply_command(assets, unique, _env("ASSET_BURN", signer="carol", asset_id=0, amount=20))
    assert out["total_supply"] == 30
    assert sink.names() == ["Created", "Minted", "Transferred", "MetadataSet", "Burned"]


def test_unique_commands_route_to_registry(registries) -> None:
    assets, unique, _ = registries

    out = apply_command(assets, unique, _env("UNIQUE_ASSET_MINT", metadata="cafe", supply=3))
    assert out == {"applied": "UNIQUE_ASSET_MINT", "asset_id": 0, "supply": 3}
    assert unique.unique_asset(0).metadata == b"\xca\xfe"

    out = apply_command(assets, unique, _env("UNIQUE_ASSET_TRANSFER", asset_id=0, amount=1, to="bob"))
    assert out["amount"] == 1
    out = apply_command(assets, unique, _env("UNIQUE_ASSET_BURN", asset_id=0, amount=5))
    assert out["total_supply"] == 1

    # Registries have independent id spaces.
    assert apply_command(assets, unique, _env("ASSET_CREATE"))["asset_id"] == 0


@pytest.mark.parametrize(
    "command,payload",
    [
        ("ASSET_MINT", {"asset_id": 0, "amount": -1, "to": "bob"}),
        ("ASSET_MINT", {"asset_id": 0, "amount": U128_MAX + 1, "to": "bob"}),
        ("ASSET_MINT", {"asset_id": 0, "amount": "10", "to": "bob"}),
        ("ASSET_MINT", {"asset_id": 0, "amount": 1}),
        ("ASSET_BURN", {"asset_id": 0, "amount": 1, "extra": True}),
        ("ASSET_SET_METADATA", {"asset_id": 0, "name": "zz", "symbol": ""}),
        ("UNIQUE_ASSET_MINT", {"metadata": "", "supply": True}),
        ("UNIQUE_ASSET_TRANSFER", {"asset_id": 0, "amount": 1, "to": ""}),
    ],
)
def test_malformed_payloads_are_rejected(command: str, payload: dict) -> None:
    with pytest.raises(ApplyError) as e:
        validate_payload(command=command, payload=payload)
    assert e.value.code == "invalid_payload"
    assert e.value.reason == "payload_schema_mismatch"


def test_non_object_payload_is_rejected() -> None:
    with pytest.raises(ApplyError) as e:
        validate_payload(command="ASSET_CREATE", payload=[1, 2])
    assert e.value.reason == "payload_must_be_object"


def test_unknown_command_fails_closed(registries) -> None:
    assets, unique, sink = registries
    with pytest.raises(ApplyError) as e:
        apply_command(assets, unique, _env("ASSET_FREEZE", asset_id=0))
    assert e.value.code == "command_unimplemented"
    assert sink.events == []


def test_missing_signer_is_forbidden(registries) -> None:
    assets, unique, _ = registries
    with pytest.raises(ApplyError) as e:
        apply_command(assets, unique, _env("ASSET_CREATE", signer=" "))
    assert e.value.code == "forbidden"
    assert assets.nonce() == 0


def test_zero_supply_passes_shape_check_but_not_handler(registries) -> None:
    assets, unique, _ = registries
    p = validate_payload(command="UNIQUE_ASSET_MINT", payload={"supply": 0})
    assert p.supply == 0
    with pytest.raises(ApplyError) as e:
        apply_command(assets, unique, _env("UNIQUE_ASSET_MINT", supply=0))
    assert e.value.code == "no_supply"
