# src/assetledger/ledger_config.py
from __future__ import annotations

import json
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

Json = Dict[str, Any]


def _as_str(v: Any, default: str) -> str:
    if v is None:
        return str(default)
    s = str(v)
    return s if s.strip() else str(default)


def _as_bool(v: Any, default: bool) -> bool:
    if v is None:
        return bool(default)
    if isinstance(v, bool):
        return v
    s = str(v).strip().lower()
    if s in {"1", "true", "yes", "y", "on"}:
        return True
    if s in {"0", "false", "no", "n", "off"}:
        return False
    return bool(default)


@dataclass(frozen=True)
class LedgerConfig:
    mode: str  # "dev" | "test" | "prod"
    storage: str  # "memory" | "sqlite"

    # SQLite DB file path; ignored by the memory backend.
    db_path: str

    log_level: str

    # Check supply == sum(balances) for every touched asset after each command.
    verify_invariants: bool

    # Unique burn/transfer check ownership and clamp against line 0 (asset id 0).
    unique_shared_balance_pool: bool


_ALLOWED_MODES = {"dev", "test", "prod"}
_ALLOWED_STORAGE = {"memory", "sqlite"}
_ALLOWED_LOG_LEVELS = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}


def validate_ledger_config(cfg: LedgerConfig) -> None:
    """Fail-fast validation for operator config."""

    mode = str(cfg.mode or "").strip().lower()
    if mode not in _ALLOWED_MODES:
        raise ValueError(f"mode must be one of {sorted(_ALLOWED_MODES)}; got: {cfg.mode!r}")

    storage = str(cfg.storage or "").strip().lower()
    if storage not in _ALLOWED_STORAGE:
        raise ValueError(f"storage must be one of {sorted(_ALLOWED_STORAGE)}; got: {cfg.storage!r}")

    if storage == "sqlite" and (not isinstance(cfg.db_path, str) or not cfg.db_path.strip()):
        raise ValueError("db_path must be a non-empty string when storage is 'sqlite'")

    if str(cfg.log_level or "").strip().upper() not in _ALLOWED_LOG_LEVELS:
        raise ValueError(f"log_level must be one of {sorted(_ALLOWED_LOG_LEVELS)}; got: {cfg.log_level!r}")

    if mode == "prod" and storage == "memory":
        # A prod ledger that forgets everything on restart is a misconfiguration.
        raise ValueError("storage 'memory' is not allowed in prod mode")


def default_ledger_config() -> LedgerConfig:
    return LedgerConfig(
        mode="dev",
        storage="memory",
        db_path="./data/assetledger.db",
        log_level="INFO",
        verify_invariants=False,
        unique_shared_balance_pool=False,
    )


def _read_raw(path: Path) -> Json:
    text = path.read_text(encoding="utf-8")
    if path.suffix.lower() in {".yaml", ".yml"}:
        raw = yaml.safe_load(text)
    else:
        raw = json.loads(text)
    if raw is None:
        raw = {}
    if not isinstance(raw, dict):
        raise ValueError("ledger config must be a mapping/object")
    return raw


def config_from_mapping(raw: Json, *, base: Optional[LedgerConfig] = None) -> LedgerConfig:
    d = base or default_ledger_config()
    cfg = LedgerConfig(
        mode=_as_str(raw.get("mode"), d.mode).strip().lower(),
        storage=_as_str(raw.get("storage"), d.storage).strip().lower(),
        db_path=_as_str(raw.get("db_path"), d.db_path),
        log_level=_as_str(raw.get("log_level"), d.log_level).strip().upper(),
        verify_invariants=_as_bool(raw.get("verify_invariants"), d.verify_invariants),
        unique_shared_balance_pool=_as_bool(raw.get("unique_shared_balance_pool"), d.unique_shared_balance_pool),
    )
    validate_ledger_config(cfg)
    return cfg


def read_ledger_config_file(path: str) -> LedgerConfig:
    return config_from_mapping(_read_raw(Path(path)))


def _env_overrides() -> Json:
    out: Json = {}
    for key in ("mode", "storage", "db_path", "log_level", "verify_invariants", "unique_shared_balance_pool"):
        v = os.environ.get(f"ASSETLEDGER_{key.upper()}")
        if v is not None and v.strip():
            out[key] = v
    return out


def load_ledger_config(*, config_path: Optional[str] = None) -> LedgerConfig:
    """Defaults, then the config file (if any), then ASSETLEDGER_* env overrides."""
    p = config_path or os.environ.get("ASSETLEDGER_CONFIG_PATH")
    base = read_ledger_config_file(p) if p else default_ledger_config()
    return config_from_mapping(_env_overrides(), base=base)
