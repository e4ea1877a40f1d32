# src/rewardpool/runtime/state_invariants.py
from __future__ import annotations

"""Pool state invariants.

A single place that checks the accounting invariants every committed pool state
must satisfy:

  - total_deposited equals the sum of every account's deposit
  - no balance, reward or accumulator value is negative
  - no account checkpoint is ahead of the global accumulator
  - the accumulator never decreases and last_sync_time never moves backwards

The ledger runs these after each operation when `check_invariants` is enabled
(rolling the operation back on failure), and always when restoring from a
snapshot. Tests call `check_pool_state` directly.
"""

from typing import List, Optional

from rewardpool.ledger.state import PoolState
from rewardpool.runtime.errors import InvariantViolation


def check_pool_state(st: PoolState, *, previous: Optional[PoolState] = None) -> List[str]:
    """Return a list of violated invariants (empty when the state is consistent)."""
    problems: List[str] = []

    if st.emission_rate <= 0:
        problems.append("emission_rate_not_positive")
    if st.total_deposited < 0:
        problems.append("total_deposited_negative")
    if st.accumulator < 0:
        problems.append("accumulator_negative")

    total = 0
    for account_id, acct in st.accounts.items():
        if acct.deposited < 0:
            problems.append(f"deposit_negative:{account_id}")
        if acct.settled_reward < 0:
            problems.append(f"settled_reward_negative:{account_id}")
        if acct.checkpoint > st.accumulator:
            problems.append(f"checkpoint_ahead:{account_id}")
        total += acct.deposited

    if total != st.total_deposited:
        problems.append("conservation")

    if previous is not None:
        if st.accumulator < previous.accumulator:
            problems.append("accumulator_decreased")
        if st.last_sync_time < previous.last_sync_time:
            problems.append("last_sync_time_decreased")

    return problems


def assert_pool_invariants(st: PoolState, *, previous: Optional[PoolState] = None) -> None:
    problems = check_pool_state(st, previous=previous)
    if problems:
        raise InvariantViolation("pool_state_inconsistent", {"violations": problems})


__all__ = ["check_pool_state", "assert_pool_invariants"]
