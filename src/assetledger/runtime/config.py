# src/assetledger/runtime/config.py
from __future__ import annotations

import json
import os
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Any, Dict, Optional

from assetledger.ledger.constants import COLLECTOR_OWNER

Json = Dict[str, Any]


def _as_int(v: Any, default: int) -> int:
    try:
        return int(v)
    except Exception:
        return int(default)


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
    mode: str  # "dev" | "testnet" | "prod"

    store_backend: str  # "sqlite" | "memory"
    db_path: str

    collector_owner: str
    max_conflict_retries: int
    seed_on_boot: bool

    api_host: str
    api_port: int

    log_level: str


_ALLOWED_MODES = {"dev", "testnet", "prod"}
_ALLOWED_BACKENDS = {"sqlite", "memory"}


def validate_ledger_config(cfg: LedgerConfig) -> None:
    """Fail-fast validation for operator config."""

    mode = str(cfg.mode or "").strip().lower()
    if mode not in _ALLOWED_MODES:
        raise ValueError(f"mode must be one of {_ALLOWED_MODES}; got: {cfg.mode!r}")

    backend = str(cfg.store_backend or "").strip().lower()
    if backend not in _ALLOWED_BACKENDS:
        raise ValueError(f"store_backend must be one of {_ALLOWED_BACKENDS}; got: {cfg.store_backend!r}")

    if backend == "memory" and mode == "prod":
        # Nothing survives a restart.
        raise ValueError("store_backend 'memory' is not allowed in prod mode")

    if backend == "sqlite" and (not isinstance(cfg.db_path, str) or not cfg.db_path.strip()):
        raise ValueError("db_path must be a non-empty string for the sqlite backend")

    owner = str(cfg.collector_owner or "")
    if not owner.strip() or "\x00" in owner:
        raise ValueError(f"collector_owner must be a non-empty identity; got: {cfg.collector_owner!r}")

    if int(cfg.max_conflict_retries) < 0 or int(cfg.max_conflict_retries) > 100:
        raise ValueError(f"max_conflict_retries must be 0..100; got: {cfg.max_conflict_retries}")

    if int(cfg.api_port) <= 0 or int(cfg.api_port) > 65535:
        raise ValueError(f"api_port must be 1..65535; got: {cfg.api_port}")


def default_ledger_config() -> LedgerConfig:
    return LedgerConfig(
        # Production-safe defaults: durable store, no implicit seeding.
        mode="prod",
        store_backend="sqlite",
        db_path="./data/assetledger.db",
        collector_owner=COLLECTOR_OWNER,
        max_conflict_retries=3,
        seed_on_boot=False,
        api_host="127.0.0.1",
        api_port=8080,
        log_level="INFO",
    )


def _from_mapping(raw: Json, base: LedgerConfig) -> LedgerConfig:
    return LedgerConfig(
        mode=_as_str(raw.get("mode"), base.mode).strip().lower(),
        store_backend=_as_str(raw.get("store_backend"), base.store_backend).strip().lower(),
        db_path=_as_str(raw.get("db_path"), base.db_path),
        collector_owner=_as_str(raw.get("collector_owner"), base.collector_owner),
        max_conflict_retries=_as_int(raw.get("max_conflict_retries"), base.max_conflict_retries),
        seed_on_boot=_as_bool(raw.get("seed_on_boot"), base.seed_on_boot),
        api_host=_as_str(raw.get("api_host"), base.api_host),
        api_port=_as_int(raw.get("api_port"), base.api_port),
        log_level=_as_str(raw.get("log_level"), base.log_level).strip().upper(),
    )


def read_ledger_config_file(path: str) -> LedgerConfig:
    p = Path(path)
    raw = json.loads(p.read_text(encoding="utf-8"))
    if not isinstance(raw, dict):
        raise ValueError("ledger config must be a JSON object")
    return _from_mapping(raw, default_ledger_config())


def _env_overrides() -> Json:
    out: Json = {}
    for name in LedgerConfig.__dataclass_fields__:
        v = os.environ.get("ASSETLEDGER_" + name.upper())
        if v is not None and v.strip():
            out[name] = v
    return out


def load_ledger_config(*, config_path: Optional[str] = None) -> LedgerConfig:
    """File (ASSETLEDGER_CONFIG_PATH) first, then per-field ASSETLEDGER_* env overrides."""
    p = config_path or os.environ.get("ASSETLEDGER_CONFIG_PATH")
    cfg = read_ledger_config_file(p) if p else default_ledger_config()

    overrides = _env_overrides()
    if overrides:
        cfg = _from_mapping(overrides, cfg)

    validate_ledger_config(cfg)
    return cfg


def with_overrides(cfg: LedgerConfig, **changes: Any) -> LedgerConfig:
    out = replace(cfg, **changes)
    validate_ledger_config(out)
    return out


__all__ = [
    "LedgerConfig",
    "default_ledger_config",
    "load_ledger_config",
    "read_ledger_config_file",
    "validate_ledger_config",
    "with_overrides",
]
