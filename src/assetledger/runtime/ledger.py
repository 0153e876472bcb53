# src/assetledger/runtime/ledger.py
from __future__ import annotations

"""Ledger facade.

Wires one KVStore, both registries and one event sink together and executes
command envelopes with fail-atomic semantics:

  - on success: writes commit, buffered events reach the sink, the result
    dict is returned
  - on ApplyError: nothing persists, nothing is delivered, the error is
    re-raised to the host

The host is responsible for authentication and for serializing calls.
"""

import logging
from typing import Any, Dict, Optional, Union

from assetledger.env import load_dotenv_if_present
from assetledger.ledger.sellable import UniqueAssetSellable
from assetledger.ledger_config import LedgerConfig, default_ledger_config, load_ledger_config, validate_ledger_config
from assetledger.logging_utils import configure_logging, log_event
from assetledger.runtime.atomic import atomic_command
from assetledger.runtime.command_types import CommandEnvelope
from assetledger.runtime.dispatch import ASSET_COMMANDS, apply_command
from assetledger.runtime.errors import ApplyError
from assetledger.runtime.events import EventBuffer, EventSink, LoggingEventSink, as_event_buffer
from assetledger.runtime.metrics import inc_counter, metrics_enabled
from assetledger.runtime.state_invariants import ensure_supply_consistent
from assetledger.runtime.assets import AssetRegistry
from assetledger.runtime.unique_assets import UniqueAssetRegistry
from assetledger.storage.kv import KVStore, MemoryKVStore
from assetledger.storage.sqlite_db import SqliteDB, SqliteKVStore

Json = Dict[str, Any]

_log = logging.getLogger("assetledger.ledger")


class AssetLedger:
    def __init__(
        self,
        store: KVStore,
        sink: Union[EventSink, EventBuffer, None] = None,
        *,
        config: Optional[LedgerConfig] = None,
    ) -> None:
        self.config = config or default_ledger_config()
        self.store = store
        self.events = as_event_buffer(sink)
        self.assets = AssetRegistry(store, self.events)
        self.unique_assets = UniqueAssetRegistry(
            store,
            self.events,
            shared_balance_pool=self.config.unique_shared_balance_pool,
        )

    def sellable(self) -> UniqueAssetSellable:
        return UniqueAssetSellable(self.unique_assets)

    def _verify(self, env: CommandEnvelope, result: Json) -> None:
        asset_id = result.get("asset_id")
        if asset_id is None:
            return
        registry = self.assets if env.command in ASSET_COMMANDS else self.unique_assets
        ensure_supply_consistent(registry, [asset_id])

    def execute(self, env: Any) -> Json:
        env = CommandEnvelope.from_json(env)
        try:
            with atomic_command(self.store, self.events):
                result = apply_command(self.assets, self.unique_assets, env)
                if self.config.verify_invariants:
                    self._verify(env, result)
        except ApplyError as e:
            if metrics_enabled():
                inc_counter("commands_rejected")
            log_event(
                _log,
                "command_rejected",
                command=env.command,
                signer=env.signer,
                code=e.code,
                reason=e.reason,
            )
            raise

        if metrics_enabled():
            inc_counter("commands_applied")
        log_event(_log, "command_applied", command=env.command, signer=env.signer, result=result)
        return result


def open_store(config: LedgerConfig) -> KVStore:
    validate_ledger_config(config)
    if config.storage == "sqlite":
        return SqliteKVStore(db=SqliteDB(path=config.db_path, mode=config.mode))
    return MemoryKVStore()


def open_ledger(
    config: Optional[LedgerConfig] = None,
    sink: Union[EventSink, EventBuffer, None] = None,
) -> AssetLedger:
    cfg = config or default_ledger_config()
    store = open_store(cfg)
    log_event(_log, "ledger_open", mode=cfg.mode, storage=cfg.storage)
    return AssetLedger(store, sink if sink is not None else LoggingEventSink(), config=cfg)


def ledger_from_env(*, config_path: Optional[str] = None) -> AssetLedger:
    """Host entry point: .env, then config file and ASSETLEDGER_* overrides, then logging."""
    load_dotenv_if_present()
    cfg = load_ledger_config(config_path=config_path)
    configure_logging(cfg.log_level)
    return open_ledger(cfg)
