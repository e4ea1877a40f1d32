from __future__ import annotations

import pytest

from rewardpool.ledger.access import OwnerAccessControl
from rewardpool.ledger.accrual import AccrualLedger
from rewardpool.ledger.constants import SCALE
from rewardpool.ledger.state import AccountState, PoolState
from rewardpool.runtime.clock import ManualClock
from rewardpool.runtime.errors import ClockRegression, InvalidArgument, InvariantViolation
from rewardpool.runtime.state_invariants import assert_pool_invariants, check_pool_state


def _restore(snap, clock, stake, reward) -> AccrualLedger:
    return AccrualLedger.from_snapshot(
        snap,
        staking_asset=stake,
        reward_asset=reward,
        access=OwnerAccessControl("owner"),
        clock=clock,
        ledger_address="POOL",
    )


def test_snapshot_restore_continues_accrual(ledger, clock, give, stake, reward) -> None:
    give("alice", 1000)
    give("bob", 3000)
    ledger.deposit("alice", 1000)
    clock.set(4)
    ledger.deposit("bob", 3000)
    clock.set(8)

    snap = ledger.snapshot()
    assert snap["accounts"]["alice"] == {"deposited": 1000, "checkpoint": 0, "settled_reward": 0}
    assert snap["last_sync_time"] == 4

    restored = _restore(snap, clock, stake, reward)
    assert restored.snapshot() == snap
    assert restored.pending_reward_of("alice") == ledger.pending_reward_of("alice") == 400 + 100
    assert restored.pending_reward_of("bob") == ledger.pending_reward_of("bob") == 300


def test_snapshot_is_detached_from_live_state(ledger, give) -> None:
    give("alice", 10)
    ledger.deposit("alice", 10)
    snap = ledger.snapshot()
    snap["accounts"]["alice"]["deposited"] = 999
    assert ledger.staked_balance_of("alice") == 10

    acct = ledger.account_state("alice")
    acct.deposited = 999
    assert ledger.staked_balance_of("alice") == 10


@pytest.mark.parametrize(
    "snap",
    [
        [],
        {"emission_rate": 0},
        {"emission_rate": 5, "accounts": []},
        {"emission_rate": 5, "total_deposited": -1},
        {"emission_rate": 5, "accounts": {"a": {"deposited": "x"}}},
        {"emission_rate": 5, "accounts": {"a": 3}},
    ],
)
def test_malformed_snapshot_is_rejected(snap) -> None:
    with pytest.raises(InvalidArgument) as e:
        PoolState.from_dict(snap)
    assert e.value.reason == "malformed_snapshot"


def test_inconsistent_snapshot_is_rejected(clock, stake, reward) -> None:
    snap = {
        "emission_rate": 10,
        "total_deposited": 5,
        "accumulator": 0,
        "last_sync_time": 0,
        "accounts": {"a": {"deposited": 4, "checkpoint": 0, "settled_reward": 0}},
    }
    with pytest.raises(InvariantViolation) as e:
        _restore(snap, clock, stake, reward)
    assert "conservation" in e.value.details["violations"]


def test_snapshot_from_future_is_rejected(stake, reward) -> None:
    snap = {"emission_rate": 10, "last_sync_time": 50, "accounts": {}}
    with pytest.raises(ClockRegression) as e:
        _restore(snap, ManualClock(49), stake, reward)
    assert e.value.reason == "snapshot_from_future"


def test_check_pool_state_reports_each_violation() -> None:
    st = PoolState(
        emission_rate=1,
        last_sync_time=5,
        total_deposited=10,
        accumulator=SCALE,
        accounts={
            "a": AccountState(deposited=10, checkpoint=2 * SCALE, settled_reward=0),
            "b": AccountState(deposited=0, checkpoint=0, settled_reward=-1),
        },
    )
    prev = PoolState(emission_rate=1, last_sync_time=6, accumulator=2 * SCALE)

    problems = check_pool_state(st, previous=prev)

    assert "checkpoint_ahead:a" in problems
    assert "settled_reward_negative:b" in problems
    assert "accumulator_decreased" in problems
    assert "last_sync_time_decreased" in problems
    assert "conservation" not in problems

    with pytest.raises(InvariantViolation):
        assert_pool_invariants(st, previous=prev)


def test_check_pool_state_accepts_live_ledger_state(ledger, clock, give) -> None:
    give("alice", 7)
    ledger.deposit("alice", 7)
    clock.set(3)
    ledger.withdraw("alice", 2)
    assert check_pool_state(PoolState.from_dict(ledger.snapshot())) == []
