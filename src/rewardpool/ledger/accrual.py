# src/rewardpool/ledger/accrual.py
from __future__ import annotations

"""
Index-based reward accrual.

The pool keeps one global accumulator: cumulative reward per staked unit since
inception, scaled by SCALE. An account's entitlement is

    deposited * (accumulator - checkpoint) // SCALE + settled_reward

so no operation ever iterates over accounts. Every mutating operation runs the
same pre-action hook first (`_update_reward`):

  1. sync the global accumulator up to `now`
  2. settle the initiating account (fold accrued reward, advance checkpoint)
  3. apply the operation's own effect

Every public call holds the ledger's re-entrant lock and mutating calls run
inside `_transaction`, which journals the pool scalars and each account record
the operation writes. On any exception the journal is rolled back and the
operation's buffered events are dropped. Internal debits are committed before
any outgoing transfer, so a re-entrant call made from a transfer callback sees
the already-updated balances. A re-entrant call is an operation of its own:
once it commits, a failure of the enclosing operation reverses only the
enclosing operation's effects.
"""

import logging
import threading
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Iterator, List, Optional, Tuple

from rewardpool.ledger.access import AccessControl
from rewardpool.ledger.assets import Asset, AssetRegistry
from rewardpool.ledger.constants import DEFAULT_LEDGER_ADDRESS, ZERO_ACCOUNT
from rewardpool.ledger.events import (
    CLAIMED,
    DEPOSITED,
    EMERGENCY_DRAINED,
    FOREIGN_ASSET_RECOVERED,
    RATE_CHANGED,
    REWARDS_FUNDED,
    WITHDRAWN,
    EventLog,
    LedgerEvent,
)
from rewardpool.ledger.fixed_point import Scaled, accrued, accumulator_growth
from rewardpool.ledger.state import AccountState, PoolState, StateJournal
from rewardpool.runtime import metrics
from rewardpool.runtime.clock import Clock
from rewardpool.runtime.errors import (
    ClockRegression,
    InsufficientAuthorization,
    InsufficientBalance,
    InvalidArgument,
    ProtectedAsset,
    TransferFailed,
)
from rewardpool.runtime.state_invariants import assert_pool_invariants
from rewardpool.runtime.structured_logging import log_event

Json = Dict[str, Any]

_log = logging.getLogger("rewardpool.ledger")


def _require_positive(v: Any, name: str) -> int:
    if isinstance(v, bool) or not isinstance(v, int):
        raise InvalidArgument("amount_not_integer", {"field": name, "value": repr(v)})
    if v <= 0:
        raise InvalidArgument("non_positive_amount", {"field": name, "value": v})
    return int(v)


def _require_identity(v: Any, name: str = "account") -> str:
    s = v.strip() if isinstance(v, str) else ""
    if s == ZERO_ACCOUNT:
        raise InvalidArgument("zero_identity", {"field": name})
    return s


@dataclass
class _Frame:
    """Per-operation bookkeeping while a transaction is open."""

    journal: StateJournal
    # (event, committed by a re-entrant operation)
    events: List[Tuple[LedgerEvent, bool]] = field(default_factory=list)
    # Compensations for this operation's own effects, used once a re-entrant
    # operation has committed inside it.
    undo: List[Callable[[], None]] = field(default_factory=list)
    nested_committed: bool = False


class AccrualLedger:
    """Staking pool that streams `emission_rate` reward units per second to stakers pro rata."""

    def __init__(
        self,
        *,
        staking_asset: Asset,
        reward_asset: Asset,
        access: AccessControl,
        clock: Clock,
        emission_rate: Optional[int] = None,
        ledger_address: str = DEFAULT_LEDGER_ADDRESS,
        registry: Optional[AssetRegistry] = None,
        events: Optional[EventLog] = None,
        check_invariants: bool = False,
        state: Optional[PoolState] = None,
    ) -> None:
        if staking_asset.asset_id == reward_asset.asset_id:
            raise InvalidArgument("assets_must_differ", {"asset_id": staking_asset.asset_id})

        self._address = _require_identity(ledger_address, "ledger_address")
        self._staking = staking_asset
        self._reward = reward_asset
        self._access = access
        self._clock = clock
        self._registry = registry if registry is not None else AssetRegistry()
        self._registry.register(staking_asset)
        self._registry.register(reward_asset)
        self._events = events if events is not None else EventLog()
        self._check_invariants = bool(check_invariants)

        self._lock = threading.RLock()
        self._frames: List[_Frame] = []

        if state is None:
            rate = _require_positive(emission_rate, "emission_rate")
            state = PoolState(emission_rate=rate, last_sync_time=int(clock.now()))
        else:
            now = int(clock.now())
            if state.last_sync_time > now:
                raise ClockRegression("snapshot_from_future", {"last_sync_time": state.last_sync_time, "now": now})
            assert_pool_invariants(state)
        self._state = state

        metrics.set_gauge("emission_rate", self._state.emission_rate)
        metrics.set_gauge("total_staked", self._state.total_deposited)

    @classmethod
    def from_snapshot(cls, snapshot: Json, **kwargs: Any) -> "AccrualLedger":
        """Rebuild a ledger from `snapshot()` output plus its collaborators."""
        return cls(state=PoolState.from_dict(snapshot), **kwargs)

    # ------------------------------------------------------------------
    # Transactions
    # ------------------------------------------------------------------

    def _now(self) -> int:
        now = int(self._clock.now())
        if now < self._state.last_sync_time:
            raise ClockRegression("clock_behind_last_sync", {"now": now, "last_sync_time": self._state.last_sync_time})
        return now

    @contextmanager
    def _transaction(self, op: str) -> Iterator[int]:
        """Run one operation all-or-nothing. Yields the operation timestamp.

        A re-entrant operation commits on its own. Its events are handed to the
        enclosing operation, and survive even if that one fails, in which case
        the enclosing operation is compensated through its undo steps instead
        of its journal.
        """
        with self._lock:
            frame = _Frame(journal=StateJournal(self._state))
            self._frames.append(frame)
            try:
                now = self._now()
                yield now
                if self._check_invariants:
                    assert_pool_invariants(self._state, previous=frame.journal.entry_view())
            except Exception as e:
                self._frames.pop()
                self._abort(frame)
                metrics.inc_counter("ops_failed_total")
                log_event(
                    _log,
                    "op_rolled_back",
                    level=logging.WARNING,
                    op=op,
                    code=getattr(e, "code", type(e).__name__),
                    reason=getattr(e, "reason", str(e)),
                )
                raise

            self._frames.pop()
            metrics.inc_counter("ops_committed_total")
            metrics.inc_counter(f"ops_{op}_total")
            self._hand_over([ev for ev, _ in frame.events])

    def _abort(self, frame: _Frame) -> None:
        if not frame.nested_committed:
            frame.journal.rollback(self._state)
            return
        for undo in reversed(frame.undo):
            undo()
        self._hand_over([ev for ev, committed in frame.events if committed])

    def _hand_over(self, events: List[LedgerEvent]) -> None:
        """Pass committed events to the enclosing operation, or publish them."""
        if self._frames:
            parent = self._frames[-1]
            parent.nested_committed = True
            parent.events.extend((ev, True) for ev in events)
            return
        metrics.set_gauge("total_staked", self._state.total_deposited)
        metrics.set_gauge("emission_rate", self._state.emission_rate)
        self._events.publish(events)

    def _emit(self, kind: str, account: str, amount: int, at: int, **details: Any) -> None:
        ev = LedgerEvent(kind=kind, account=account, amount=int(amount), at=int(at), details=details)
        self._frames[-1].events.append((ev, False))

    def _on_abort(self, undo: Callable[[], None]) -> None:
        self._frames[-1].undo.append(undo)

    def _account_for_write(self, account: str, *, create: bool = False) -> Optional[AccountState]:
        self._frames[-1].journal.touch(self._state, account)
        if create:
            return self._state.ensure_account(account)
        return self._state.get_account(account)

    # ------------------------------------------------------------------
    # Accrual primitives
    # ------------------------------------------------------------------

    def _projected_accumulator(self, now: int) -> Scaled:
        st = self._state
        growth = accumulator_growth(now - st.last_sync_time, st.emission_rate, st.total_deposited)
        return Scaled(st.accumulator + growth)

    def _sync_global(self, now: int) -> None:
        self._state.accumulator = self._projected_accumulator(now)
        self._state.last_sync_time = now

    def _settle(self, acct: AccountState) -> None:
        acc = self._state.accumulator
        acct.settled_reward += accrued(acct.deposited, acc, acct.checkpoint)
        acct.checkpoint = acc

    def _update_reward(self, account: str, now: int) -> None:
        """Sync the global accumulator, then settle `account` (ZERO_ACCOUNT: sync only)."""
        self._sync_global(now)
        if account == ZERO_ACCOUNT:
            return
        acct = self._account_for_write(account)
        if acct is not None:
            self._settle(acct)

    def _shift_deposit(self, account: str, delta: int) -> None:
        self._state.ensure_account(account).deposited += delta
        self._state.total_deposited += delta

    def _restore_reward(self, account: str, amount: int) -> None:
        self._state.ensure_account(account).settled_reward += amount

    # ------------------------------------------------------------------
    # Staker operations
    # ------------------------------------------------------------------

    def deposit(self, account: str, amount: int) -> None:
        with self._transaction("deposit") as now:
            account = _require_identity(account)
            amt = _require_positive(amount, "amount")

            self._update_reward(account, now)
            self._account_for_write(account, create=True)

            allowed = self._staking.allowance_of(account, self._address)
            if allowed < amt:
                raise InsufficientAuthorization("allowance_too_low", {"allowance": allowed, "amount": amt})
            if not self._staking.transfer_from(account, self._address, amt):
                raise TransferFailed("transfer_in_failed", {"asset_id": self._staking.asset_id, "amount": amt})

            self._shift_deposit(account, amt)
            self._on_abort(lambda: self._shift_deposit(account, -amt))
            self._emit(DEPOSITED, account, amt, now)

    def withdraw(self, account: str, amount: int) -> None:
        with self._transaction("withdraw") as now:
            account = _require_identity(account)
            amt = _require_positive(amount, "amount")

            self._update_reward(account, now)
            acct = self._state.get_account(account)
            have = acct.deposited if acct is not None else 0
            if acct is None or have < amt:
                raise InsufficientBalance("exceeds_deposit", {"deposited": have, "amount": amt})

            self._shift_deposit(account, -amt)
            self._on_abort(lambda: self._shift_deposit(account, amt))
            self._emit(WITHDRAWN, account, amt, now)

            if not self._staking.transfer(self._address, account, amt):
                raise TransferFailed("transfer_out_failed", {"asset_id": self._staking.asset_id, "amount": amt})

    def claim_rewards(self, account: str) -> int:
        with self._transaction("claim") as now:
            account = _require_identity(account)

            self._update_reward(account, now)
            acct = self._state.get_account(account)
            owed = acct.settled_reward if acct is not None else 0
            if acct is None or owed <= 0:
                raise InsufficientBalance("nothing_to_claim", {"account": account})

            reserve = self._reward.balance_of(self._address)
            if reserve < owed:
                raise InsufficientBalance("reserve_exhausted", {"reserve": reserve, "owed": owed})

            acct.settled_reward = 0
            self._on_abort(lambda: self._restore_reward(account, owed))
            self._emit(CLAIMED, account, owed, now)

            if not self._reward.transfer(self._address, account, owed):
                raise TransferFailed("transfer_out_failed", {"asset_id": self._reward.asset_id, "amount": owed})
        return owed

    def fund_rewards(self, funder: str, amount: int) -> None:
        """Pull reward asset from `funder` into the claim reserve."""
        with self._transaction("fund") as now:
            funder = _require_identity(funder, "funder")
            amt = _require_positive(amount, "amount")

            allowed = self._reward.allowance_of(funder, self._address)
            if allowed < amt:
                raise InsufficientAuthorization("allowance_too_low", {"allowance": allowed, "amount": amt})
            if not self._reward.transfer_from(funder, self._address, amt):
                raise TransferFailed("transfer_in_failed", {"asset_id": self._reward.asset_id, "amount": amt})
            self._emit(REWARDS_FUNDED, funder, amt, now)

    # ------------------------------------------------------------------
    # Administrative operations
    # ------------------------------------------------------------------

    def set_emission_rate(self, caller: str, new_rate: int) -> None:
        with self._transaction("set_rate") as now:
            self._access.require_administrator(caller)
            rate = _require_positive(new_rate, "rate")

            # Rate changes only affect future accrual: no per-account settlement.
            self._update_reward(ZERO_ACCOUNT, now)
            previous = self._state.emission_rate
            self._state.emission_rate = rate
            self._on_abort(lambda: setattr(self._state, "emission_rate", previous))
            self._emit(RATE_CHANGED, caller, rate, now, previous=previous)

    def emergency_drain(self, caller: str) -> int:
        """Send the entire reward reserve to the administrator."""
        with self._transaction("drain") as now:
            self._access.require_administrator(caller)
            self._update_reward(ZERO_ACCOUNT, now)

            amount = self._reward.balance_of(self._address)
            if amount <= 0:
                raise InsufficientBalance("reserve_empty", {"asset_id": self._reward.asset_id})
            self._emit(EMERGENCY_DRAINED, caller, amount, now, asset_id=self._reward.asset_id)

            if not self._reward.transfer(self._address, caller, amount):
                raise TransferFailed("transfer_out_failed", {"asset_id": self._reward.asset_id, "amount": amount})
        return amount

    def recover_foreign_asset(self, caller: str, asset_id: str, amount: int) -> None:
        """Return an asset sent to the ledger by mistake. Staking and reward assets are refused."""
        with self._transaction("recover") as now:
            self._access.require_administrator(caller)
            aid = str(asset_id or "").strip()
            if aid in (self._staking.asset_id, self._reward.asset_id):
                raise ProtectedAsset("asset_not_recoverable", {"asset_id": aid})
            amt = _require_positive(amount, "amount")

            asset = self._registry.require(aid)
            held = asset.balance_of(self._address)
            if held < amt:
                raise InsufficientBalance("exceeds_holding", {"asset_id": aid, "held": held, "amount": amt})
            self._emit(FOREIGN_ASSET_RECOVERED, caller, amt, now, asset_id=aid)

            if not asset.transfer(self._address, caller, amt):
                raise TransferFailed("transfer_out_failed", {"asset_id": aid, "amount": amt})

    # ------------------------------------------------------------------
    # Queries (no mutation)
    # ------------------------------------------------------------------

    def pending_reward_of(self, account: str) -> int:
        with self._lock:
            acct = self._state.get_account(str(account or "").strip())
            if acct is None:
                return 0
            projected = self._projected_accumulator(self._now())
            return accrued(acct.deposited, projected, acct.checkpoint) + acct.settled_reward

    def reward_per_token(self) -> Scaled:
        with self._lock:
            return self._projected_accumulator(self._now())

    def staked_balance_of(self, account: str) -> int:
        with self._lock:
            acct = self._state.get_account(str(account or "").strip())
            return acct.deposited if acct is not None else 0

    def total_staked(self) -> int:
        with self._lock:
            return self._state.total_deposited

    def current_rate(self) -> int:
        with self._lock:
            return self._state.emission_rate

    def last_sync_time(self) -> int:
        with self._lock:
            return self._state.last_sync_time

    def accumulator(self) -> Scaled:
        """Stored accumulator as of the last sync (see reward_per_token for the live value)."""
        with self._lock:
            return self._state.accumulator

    def reward_reserve(self) -> int:
        with self._lock:
            return self._reward.balance_of(self._address)

    def account_state(self, account: str) -> Optional[AccountState]:
        with self._lock:
            acct = self._state.get_account(str(account or "").strip())
            if acct is None:
                return None
            return AccountState(deposited=acct.deposited, checkpoint=acct.checkpoint, settled_reward=acct.settled_reward)

    def snapshot(self) -> Json:
        with self._lock:
            return self._state.to_dict()

    @property
    def address(self) -> str:
        return self._address

    @property
    def events(self) -> EventLog:
        return self._events

    @property
    def staking_asset(self) -> Asset:
        return self._staking

    @property
    def reward_asset(self) -> Asset:
        return self._reward

    @property
    def registry(self) -> AssetRegistry:
        return self._registry
