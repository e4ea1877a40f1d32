# src/rewardpool/ledger/fixed_point.py
from __future__ import annotations

"""Scaled-integer helpers for the reward accumulator.

The accumulator is a reward-per-staked-unit ratio stored as an integer scaled by
SCALE (10**18). All arithmetic multiplies before it divides and floors toward
zero, so results are deterministic and never exceed the exact value.
"""

from typing import NewType

from rewardpool.ledger.constants import SCALE, SCALE_DECIMALS

Scaled = NewType("Scaled", int)

ZERO: Scaled = Scaled(0)


def accumulator_growth(elapsed: int, rate: int, total_staked: int) -> Scaled:
    """Accumulator increase for `elapsed` seconds at `rate` over `total_staked`.

    Frozen (zero growth) when nothing is staked.
    """
    if total_staked <= 0 or elapsed <= 0:
        return ZERO
    return Scaled(int(elapsed) * int(rate) * SCALE // int(total_staked))


def accrued(balance: int, acc_now: Scaled, checkpoint: Scaled) -> int:
    """Reward units earned by `balance` since `checkpoint`."""
    delta = int(acc_now) - int(checkpoint)
    if balance <= 0 or delta <= 0:
        return 0
    return int(balance) * delta // SCALE


def to_decimal_str(v: Scaled) -> str:
    """Render a scaled value as a decimal string (for logs and snapshots)."""
    i = int(v)
    sign = "-" if i < 0 else ""
    whole, frac = divmod(abs(i), SCALE)
    if frac == 0:
        return f"{sign}{whole}"
    return f"{sign}{whole}.{str(frac).rjust(SCALE_DECIMALS, '0').rstrip('0')}"


__all__ = ["Scaled", "ZERO", "accumulator_growth", "accrued", "to_decimal_str"]
