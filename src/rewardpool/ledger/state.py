from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Tuple

from rewardpool.ledger.fixed_point import ZERO, Scaled
from rewardpool.runtime.errors import InvalidArgument


Json = Dict[str, Any]


def _as_nonneg_int(v: Any, name: str) -> int:
    if isinstance(v, bool) or not isinstance(v, int):
        try:
            v = int(str(v).strip())
        except (TypeError, ValueError):
            raise InvalidArgument("malformed_snapshot", {"field": name, "value": repr(v)}) from None
    if v < 0:
        raise InvalidArgument("malformed_snapshot", {"field": name, "value": v})
    return int(v)


@dataclass(slots=True)
class AccountState:
    """Per-account accrual record. Owned exclusively by a PoolState."""

    deposited: int = 0
    checkpoint: Scaled = ZERO
    settled_reward: int = 0

    def to_dict(self) -> Json:
        return {
            "deposited": int(self.deposited),
            "checkpoint": int(self.checkpoint),
            "settled_reward": int(self.settled_reward),
        }

    def copy(self) -> "AccountState":
        return AccountState(deposited=self.deposited, checkpoint=self.checkpoint, settled_reward=self.settled_reward)

    @classmethod
    def from_dict(cls, raw: Any) -> "AccountState":
        if not isinstance(raw, dict):
            raise InvalidArgument("malformed_snapshot", {"field": "account", "type": str(type(raw))})
        return cls(
            deposited=_as_nonneg_int(raw.get("deposited", 0), "deposited"),
            checkpoint=Scaled(_as_nonneg_int(raw.get("checkpoint", 0), "checkpoint")),
            settled_reward=_as_nonneg_int(raw.get("settled_reward", 0), "settled_reward"),
        )


@dataclass(slots=True)
class PoolState:
    """
    Global emission state plus every account record.

    Mutated only by AccrualLedger while it holds its lock.
    """

    emission_rate: int
    last_sync_time: int
    total_deposited: int = 0
    accumulator: Scaled = ZERO
    accounts: Dict[str, AccountState] = field(default_factory=dict)

    def get_account(self, account_id: str) -> Optional[AccountState]:
        return self.accounts.get(account_id)

    def ensure_account(self, account_id: str) -> AccountState:
        acct = self.accounts.get(account_id)
        if acct is None:
            acct = AccountState(checkpoint=self.accumulator)
            self.accounts[account_id] = acct
        return acct

    def to_dict(self) -> Json:
        return {
            "emission_rate": int(self.emission_rate),
            "total_deposited": int(self.total_deposited),
            "accumulator": int(self.accumulator),
            "last_sync_time": int(self.last_sync_time),
            "accounts": {k: v.to_dict() for k, v in sorted(self.accounts.items())},
        }

    @classmethod
    def from_dict(cls, raw: Any) -> "PoolState":
        if not isinstance(raw, dict):
            raise InvalidArgument("malformed_snapshot", {"type": str(type(raw))})
        accounts_raw = raw.get("accounts", {})
        if not isinstance(accounts_raw, dict):
            raise InvalidArgument("malformed_snapshot", {"field": "accounts", "type": str(type(accounts_raw))})

        rate = _as_nonneg_int(raw.get("emission_rate"), "emission_rate")
        if rate <= 0:
            raise InvalidArgument("malformed_snapshot", {"field": "emission_rate", "value": rate})

        return cls(
            emission_rate=rate,
            last_sync_time=_as_nonneg_int(raw.get("last_sync_time", 0), "last_sync_time"),
            total_deposited=_as_nonneg_int(raw.get("total_deposited", 0), "total_deposited"),
            accumulator=Scaled(_as_nonneg_int(raw.get("accumulator", 0), "accumulator")),
            accounts={str(k): AccountState.from_dict(v) for k, v in accounts_raw.items()},
        )


class StateJournal:
    """
    Undo record for one ledger operation.

    Holds the pool scalars as they were at entry plus the prior value of each
    account record the operation writes (None if the record did not exist yet).
    Saving is proportional to the records touched, never to the pool size.
    """

    __slots__ = ("_scalars", "_accounts")

    def __init__(self, st: PoolState) -> None:
        self._scalars: Tuple[int, int, int, Scaled] = (
            st.emission_rate,
            st.last_sync_time,
            st.total_deposited,
            st.accumulator,
        )
        self._accounts: Dict[str, Optional[AccountState]] = {}

    def touch(self, st: PoolState, account_id: str) -> None:
        """Save `account_id` before its first write in this operation."""
        if account_id in self._accounts:
            return
        acct = st.accounts.get(account_id)
        self._accounts[account_id] = acct.copy() if acct is not None else None

    def entry_view(self) -> PoolState:
        """Pool scalars at entry, without account records (for monotonicity checks)."""
        rate, last_sync, total, acc = self._scalars
        return PoolState(emission_rate=rate, last_sync_time=last_sync, total_deposited=total, accumulator=acc)

    def rollback(self, st: PoolState) -> None:
        """Put every saved value back. Records created by the operation are removed."""
        st.emission_rate, st.last_sync_time, st.total_deposited, st.accumulator = self._scalars
        for account_id, prior in self._accounts.items():
            if prior is None:
                st.accounts.pop(account_id, None)
                continue
            cur = st.accounts.get(account_id)
            if cur is None:
                st.accounts[account_id] = prior
            else:
                # In place, so references held by an enclosing operation stay valid.
                cur.deposited = prior.deposited
                cur.checkpoint = prior.checkpoint
                cur.settled_reward = prior.settled_reward
