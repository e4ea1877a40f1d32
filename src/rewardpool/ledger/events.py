# src/rewardpool/ledger/events.py
from __future__ import annotations

"""Ledger events.

Each committed mutating operation emits one structured event carrying the
account identity and amount. The EventLog keeps ordered history so an external
indexer can rebuild ledger activity, fans events out to subscribers, and writes
one JSONL log line per event.
"""

import logging
import threading
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List

from rewardpool.runtime import metrics
from rewardpool.runtime.structured_logging import log_event

Json = Dict[str, Any]

DEPOSITED = "Deposited"
WITHDRAWN = "Withdrawn"
CLAIMED = "Claimed"
RATE_CHANGED = "RateChanged"
EMERGENCY_DRAINED = "EmergencyDrained"
FOREIGN_ASSET_RECOVERED = "ForeignAssetRecovered"
REWARDS_FUNDED = "RewardsFunded"

EVENT_KINDS = (
    DEPOSITED,
    WITHDRAWN,
    CLAIMED,
    RATE_CHANGED,
    EMERGENCY_DRAINED,
    FOREIGN_ASSET_RECOVERED,
    REWARDS_FUNDED,
)

Subscriber = Callable[["LedgerEvent"], None]

_log = logging.getLogger("rewardpool.events")


@dataclass(frozen=True)
class LedgerEvent:
    kind: str
    account: str
    amount: int
    at: int
    details: Json = field(default_factory=dict)

    def to_json(self) -> Json:
        return {
            "kind": self.kind,
            "account": self.account,
            "amount": int(self.amount),
            "at": int(self.at),
            "details": dict(self.details),
        }


class EventLog:
    """Ordered, append-only record of committed ledger events."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._events: List[LedgerEvent] = []
        self._subscribers: List[Subscriber] = []

    def subscribe(self, fn: Subscriber) -> None:
        with self._lock:
            self._subscribers.append(fn)

    def publish(self, events: List[LedgerEvent]) -> None:
        if not events:
            return
        with self._lock:
            self._events.extend(events)
            subs = list(self._subscribers)

        for ev in events:
            metrics.inc_counter(f"events_{ev.kind.lower()}_total")
            log_event(_log, "ledger_event", **ev.to_json())
            for fn in subs:
                fn(ev)

    def history(self) -> List[LedgerEvent]:
        with self._lock:
            return list(self._events)

    def of_kind(self, kind: str) -> List[LedgerEvent]:
        return [e for e in self.history() if e.kind == kind]

    def __len__(self) -> int:
        with self._lock:
            return len(self._events)


__all__ = [
    "LedgerEvent",
    "EventLog",
    "EVENT_KINDS",
    "DEPOSITED",
    "WITHDRAWN",
    "CLAIMED",
    "RATE_CHANGED",
    "EMERGENCY_DRAINED",
    "FOREIGN_ASSET_RECOVERED",
    "REWARDS_FUNDED",
]
