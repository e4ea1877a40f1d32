# src/rewardpool/ledger/constants.py
from __future__ import annotations

"""Pool accounting constants.

- Accumulator precision: 18 decimal places (1.0 == 10**18)
- Clock unit: whole seconds; emission rate is reward units per second
"""

# Fixed-point precision for the reward-per-token accumulator
SCALE_DECIMALS: int = 18
SCALE: int = 10**SCALE_DECIMALS

# "No account" sentinel: passing it to the update hook runs the global sync only
ZERO_ACCOUNT: str = ""

# Defaults used by pool_config when nothing is configured
DEFAULT_EMISSION_RATE: int = 100
DEFAULT_STAKING_ASSET_ID: str = "STAKE"
DEFAULT_REWARD_ASSET_ID: str = "REWARD"
DEFAULT_LEDGER_ADDRESS: str = "POOL"
DEFAULT_OWNER: str = "OWNER"
