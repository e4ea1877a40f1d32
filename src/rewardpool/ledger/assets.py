# src/rewardpool/ledger/assets.py
from __future__ import annotations

"""Asset-transfer collaborators.

The ledger never moves funds itself. It asks an Asset to move them, and an
Asset either moves the whole amount and returns True, or moves nothing and
returns False. InMemoryAsset is the reference implementation used by tests and
simulations; production deployments plug in their own.
"""

import threading
from typing import Callable, Dict, Iterable, Optional, Protocol, Tuple

from rewardpool.runtime.errors import InvalidArgument

ReceiveHook = Callable[[str, str, int], None]


class Asset(Protocol):
    asset_id: str

    def balance_of(self, holder: str) -> int: ...

    def allowance_of(self, owner: str, spender: str) -> int: ...

    def transfer_from(self, owner: str, recipient: str, amount: int) -> bool:
        """Move `amount` from `owner` to `recipient`, spending `owner`'s allowance for `recipient`."""
        ...

    def transfer(self, sender: str, recipient: str, amount: int) -> bool: ...


class InMemoryAsset:
    """Fungible balances with allowances, receive hooks and a failure switch.

    Receive hooks run after the balances have moved and outside the asset's
    lock, so a hook may call back into the ledger (reentrancy). If a hook
    raises, the move is reversed even when the hook already spent the funds, so
    the recipient may be left negative.
    """

    def __init__(self, asset_id: str) -> None:
        a = str(asset_id or "").strip()
        if not a:
            raise InvalidArgument("missing_asset_id")
        self.asset_id = a
        self.fail_transfers = False
        self._lock = threading.Lock()
        self._balances: Dict[str, int] = {}
        self._allowances: Dict[Tuple[str, str], int] = {}
        self._hooks: Dict[str, ReceiveHook] = {}

    # --- setup ---------------------------------------------------------

    def mint(self, holder: str, amount: int) -> None:
        if int(amount) <= 0:
            raise InvalidArgument("non_positive_amount", {"amount": amount})
        with self._lock:
            self._balances[holder] = self._balances.get(holder, 0) + int(amount)

    def approve(self, owner: str, spender: str, amount: int) -> None:
        if int(amount) < 0:
            raise InvalidArgument("negative_allowance", {"amount": amount})
        with self._lock:
            self._allowances[(owner, spender)] = int(amount)

    def on_receive(self, holder: str, hook: Optional[ReceiveHook]) -> None:
        with self._lock:
            if hook is None:
                self._hooks.pop(holder, None)
            else:
                self._hooks[holder] = hook

    # --- Asset protocol ------------------------------------------------

    def balance_of(self, holder: str) -> int:
        with self._lock:
            return int(self._balances.get(holder, 0))

    def allowance_of(self, owner: str, spender: str) -> int:
        with self._lock:
            return int(self._allowances.get((owner, spender), 0))

    def total_supply(self) -> int:
        with self._lock:
            return sum(self._balances.values())

    def transfer_from(self, owner: str, recipient: str, amount: int) -> bool:
        amt = int(amount)
        with self._lock:
            if self.fail_transfers or amt <= 0:
                return False
            allowed = self._allowances.get((owner, recipient), 0)
            if allowed < amt or self._balances.get(owner, 0) < amt:
                return False
            self._allowances[(owner, recipient)] = allowed - amt
            self._move(owner, recipient, amt)
            hook = self._hooks.get(recipient)
        if hook is not None:
            try:
                hook(self.asset_id, owner, amt)
            except Exception:
                with self._lock:
                    self._move(recipient, owner, amt)
                    self._allowances[(owner, recipient)] = self._allowances.get((owner, recipient), 0) + amt
                raise
        return True

    def transfer(self, sender: str, recipient: str, amount: int) -> bool:
        amt = int(amount)
        with self._lock:
            if self.fail_transfers or amt <= 0:
                return False
            if self._balances.get(sender, 0) < amt:
                return False
            self._move(sender, recipient, amt)
            hook = self._hooks.get(recipient)
        if hook is not None:
            try:
                hook(self.asset_id, sender, amt)
            except Exception:
                with self._lock:
                    self._move(recipient, sender, amt)
                raise
        return True

    def _move(self, src: str, dst: str, amt: int) -> None:
        self._balances[src] = self._balances.get(src, 0) - amt
        self._balances[dst] = self._balances.get(dst, 0) + amt


class AssetRegistry:
    """Asset id -> Asset lookup used for foreign-asset recovery."""

    def __init__(self, assets: Iterable[Asset] = ()) -> None:
        self._by_id: Dict[str, Asset] = {}
        for a in assets:
            self.register(a)

    def register(self, asset: Asset) -> None:
        aid = str(getattr(asset, "asset_id", "") or "").strip()
        if not aid:
            raise InvalidArgument("missing_asset_id")
        if aid in self._by_id and self._by_id[aid] is not asset:
            raise InvalidArgument("duplicate_asset_id", {"asset_id": aid})
        self._by_id[aid] = asset

    def get(self, asset_id: str) -> Optional[Asset]:
        return self._by_id.get(str(asset_id or "").strip())

    def require(self, asset_id: str) -> Asset:
        a = self.get(asset_id)
        if a is None:
            raise InvalidArgument("unknown_asset", {"asset_id": asset_id})
        return a

    def ids(self) -> list[str]:
        return sorted(self._by_id)

    def __contains__(self, asset_id: object) -> bool:
        return isinstance(asset_id, str) and asset_id.strip() in self._by_id
