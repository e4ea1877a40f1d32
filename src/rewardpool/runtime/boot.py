# src/rewardpool/runtime/boot.py
from __future__ import annotations

import logging
from typing import Iterable, Optional

from rewardpool.env import load_dotenv_if_present
from rewardpool.ledger.access import OwnerAccessControl
from rewardpool.ledger.accrual import AccrualLedger
from rewardpool.ledger.assets import Asset, AssetRegistry, InMemoryAsset
from rewardpool.runtime.clock import Clock, SystemClock
from rewardpool.runtime.pool_config import PoolConfig, load_pool_config
from rewardpool.runtime.structured_logging import configure_structured_logging, log_event

_log = logging.getLogger("rewardpool.boot")


def build_ledger(
    cfg: Optional[PoolConfig] = None,
    *,
    clock: Optional[Clock] = None,
    staking_asset: Optional[Asset] = None,
    reward_asset: Optional[Asset] = None,
    foreign_assets: Iterable[Asset] = (),
) -> AccrualLedger:
    """Build an AccrualLedger from config.

    Assets not supplied by the caller are in-memory assets named after the
    configured ids, which keeps simulations and local runs self-contained.
    """
    if cfg is None:
        load_dotenv_if_present()
        cfg = load_pool_config()

    configure_structured_logging(cfg.log_level)

    stake = staking_asset if staking_asset is not None else InMemoryAsset(cfg.staking_asset_id)
    reward = reward_asset if reward_asset is not None else InMemoryAsset(cfg.reward_asset_id)
    if stake.asset_id != cfg.staking_asset_id or reward.asset_id != cfg.reward_asset_id:
        raise ValueError("supplied assets do not match configured asset ids")

    ledger = AccrualLedger(
        staking_asset=stake,
        reward_asset=reward,
        access=OwnerAccessControl(cfg.owner),
        clock=clock if clock is not None else SystemClock(),
        emission_rate=cfg.emission_rate,
        ledger_address=cfg.ledger_address,
        registry=AssetRegistry(foreign_assets),
        check_invariants=cfg.check_invariants,
    )
    log_event(
        _log,
        "ledger_built",
        pool_id=cfg.pool_id,
        mode=cfg.mode,
        emission_rate=cfg.emission_rate,
        check_invariants=cfg.check_invariants,
    )
    return ledger
