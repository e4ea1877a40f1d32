# src/rewardpool/runtime/pool_config.py
from __future__ import annotations

import json
import os
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

from rewardpool.ledger.constants import (
    DEFAULT_EMISSION_RATE,
    DEFAULT_LEDGER_ADDRESS,
    DEFAULT_OWNER,
    DEFAULT_REWARD_ASSET_ID,
    DEFAULT_STAKING_ASSET_ID,
)

Json = Dict[str, Any]


def _as_int(v: Any, default: int) -> int:
    try:
        return int(v)
    except (TypeError, ValueError):
        return int(default)


def _as_str(v: Any, default: str) -> str:
    if v is None:
        return str(default)
    s = str(v)
    return s.strip() if s.strip() else str(default)


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
class PoolConfig:
    pool_id: str
    mode: str  # "dev" | "testnet" | "prod"

    # Reward units emitted per second across all stakers.
    emission_rate: int

    staking_asset_id: str
    reward_asset_id: str

    # Identity the ledger holds assets under, and the administrator.
    ledger_address: str
    owner: str

    # Re-check accounting invariants after every operation.
    check_invariants: bool

    log_level: str


_ALLOWED_MODES = {"dev", "testnet", "prod"}

# Modes that re-check accounting invariants unless told otherwise.
_CHECKED_MODES = {"dev", "testnet"}


def validate_pool_config(cfg: PoolConfig) -> None:
    """Fail-fast validation for operator config."""

    for name in ("pool_id", "staking_asset_id", "reward_asset_id", "ledger_address", "owner"):
        v = getattr(cfg, name)
        if not isinstance(v, str) or not v.strip():
            raise ValueError(f"{name} must be a non-empty string")

    mode = str(cfg.mode or "").strip().lower()
    if mode not in _ALLOWED_MODES:
        raise ValueError(f"mode must be one of {_ALLOWED_MODES}; got: {cfg.mode!r}")

    if int(cfg.emission_rate) <= 0:
        raise ValueError(f"emission_rate must be > 0; got: {cfg.emission_rate}")

    if cfg.staking_asset_id == cfg.reward_asset_id:
        # A shared asset would let claims pay out of staked principal.
        raise ValueError("staking_asset_id and reward_asset_id must differ")

    if cfg.ledger_address == cfg.owner:
        raise ValueError("ledger_address must differ from owner")


def default_pool_config() -> PoolConfig:
    return PoolConfig(
        pool_id="rewardpool-dev",
        mode="prod",
        emission_rate=DEFAULT_EMISSION_RATE,
        staking_asset_id=DEFAULT_STAKING_ASSET_ID,
        reward_asset_id=DEFAULT_REWARD_ASSET_ID,
        ledger_address=DEFAULT_LEDGER_ADDRESS,
        owner=DEFAULT_OWNER,
        check_invariants=False,
        log_level="INFO",
    )


def _config_from_mapping(raw: Json, base: PoolConfig) -> PoolConfig:
    mode = _as_str(raw.get("mode"), base.mode).lower()
    return PoolConfig(
        pool_id=_as_str(raw.get("pool_id"), base.pool_id),
        mode=mode,
        emission_rate=_as_int(raw.get("emission_rate"), base.emission_rate),
        staking_asset_id=_as_str(raw.get("staking_asset_id"), base.staking_asset_id),
        reward_asset_id=_as_str(raw.get("reward_asset_id"), base.reward_asset_id),
        ledger_address=_as_str(raw.get("ledger_address"), base.ledger_address),
        owner=_as_str(raw.get("owner"), base.owner),
        check_invariants=_as_bool(raw.get("check_invariants"), base.check_invariants or mode in _CHECKED_MODES),
        log_level=_as_str(raw.get("log_level"), base.log_level).upper(),
    )


def read_pool_config_file(path: str) -> PoolConfig:
    """Read a JSON or YAML (.yaml/.yml) pool config; missing keys fall back to defaults."""
    p = Path(path)
    text = p.read_text(encoding="utf-8")
    if p.suffix.lower() in {".yaml", ".yml"}:
        raw = yaml.safe_load(text)
    else:
        raw = json.loads(text)
    if not isinstance(raw, dict):
        raise ValueError("pool config must be a mapping")

    cfg = _config_from_mapping(raw, default_pool_config())
    validate_pool_config(cfg)
    return cfg


_ENV_KEYS = {
    "pool_id": "REWARDPOOL_POOL_ID",
    "mode": "REWARDPOOL_MODE",
    "emission_rate": "REWARDPOOL_EMISSION_RATE",
    "staking_asset_id": "REWARDPOOL_STAKING_ASSET_ID",
    "reward_asset_id": "REWARDPOOL_REWARD_ASSET_ID",
    "ledger_address": "REWARDPOOL_LEDGER_ADDRESS",
    "owner": "REWARDPOOL_OWNER",
    "check_invariants": "REWARDPOOL_CHECK_INVARIANTS",
    "log_level": "REWARDPOOL_LOG_LEVEL",
}


def apply_env_overrides(cfg: PoolConfig) -> PoolConfig:
    raw = {k: os.environ.get(env_name) for k, env_name in _ENV_KEYS.items()}
    return _config_from_mapping({k: v for k, v in raw.items() if v is not None}, cfg)


def load_pool_config(*, config_path: Optional[str] = None) -> PoolConfig:
    p = config_path or os.environ.get("REWARDPOOL_CONFIG_PATH")
    if p:
        return read_pool_config_file(p)

    cfg = apply_env_overrides(default_pool_config())
    validate_pool_config(cfg)
    return cfg


def with_overrides(cfg: PoolConfig, **changes: Any) -> PoolConfig:
    out = replace(cfg, **changes)
    validate_pool_config(out)
    return out
