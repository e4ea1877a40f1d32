from __future__ import annotations

import sys
from pathlib import Path
from typing import Callable

import pytest

# Ensure local "src/" takes precedence over any globally-installed "rewardpool" package.
ROOT = Path(__file__).resolve().parents[1]
SRC = ROOT / "src"

src_str = str(SRC)
if src_str not in sys.path:
    sys.path.insert(0, src_str)

from rewardpool.ledger.access import OwnerAccessControl  # noqa: E402
from rewardpool.ledger.accrual import AccrualLedger  # noqa: E402
from rewardpool.ledger.assets import InMemoryAsset  # noqa: E402
from rewardpool.runtime.clock import ManualClock  # noqa: E402

OWNER = "owner"
POOL = "POOL"
RESERVE = 1_000_000_000


@pytest.fixture
def clock() -> ManualClock:
    return ManualClock(0)


@pytest.fixture
def stake() -> InMemoryAsset:
    return InMemoryAsset("STAKE")


@pytest.fixture
def reward() -> InMemoryAsset:
    return InMemoryAsset("REWARD")


@pytest.fixture
def ledger(clock: ManualClock, stake: InMemoryAsset, reward: InMemoryAsset) -> AccrualLedger:
    lg = AccrualLedger(
        staking_asset=stake,
        reward_asset=reward,
        access=OwnerAccessControl(OWNER),
        clock=clock,
        emission_rate=100,
        ledger_address=POOL,
        check_invariants=True,
    )
    reward.mint(POOL, RESERVE)
    return lg


@pytest.fixture
def give(stake: InMemoryAsset) -> Callable[[str, int], None]:
    """Mint staking asset to `account` and approve the pool to pull it."""

    def _give(account: str, amount: int) -> None:
        stake.mint(account, amount)
        stake.approve(account, POOL, stake.allowance_of(account, POOL) + amount)

    return _give
