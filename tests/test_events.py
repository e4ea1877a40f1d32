from __future__ import annotations

import json
import logging

import pytest

from rewardpool.ledger.events import EVENT_KINDS, EventLog, LedgerEvent
from rewardpool.runtime.errors import InsufficientBalance


def test_one_event_per_committed_operation_in_order(ledger, clock, give, reward) -> None:
    give("alice", 400)
    ledger.deposit("alice", 400)
    clock.set(2)
    ledger.withdraw("alice", 200)
    clock.set(3)
    ledger.claim_rewards("alice")
    reward.mint("owner", 5)
    reward.approve("owner", ledger.address, 5)
    ledger.fund_rewards("owner", 5)
    ledger.set_emission_rate("owner", 9)

    kinds = [(e.kind, e.account, e.amount, e.at) for e in ledger.events.history()]
    assert kinds == [
        ("Deposited", "alice", 400, 0),
        ("Withdrawn", "alice", 200, 2),
        ("Claimed", "alice", 300, 3),
        ("RewardsFunded", "owner", 5, 3),
        ("RateChanged", "owner", 9, 3),
    ]
    assert all(e.kind in EVENT_KINDS for e in ledger.events.history())


def test_rejected_operation_emits_nothing(ledger, give) -> None:
    give("alice", 10)
    with pytest.raises(InsufficientBalance):
        ledger.withdraw("alice", 1)
    with pytest.raises(InsufficientBalance):
        ledger.claim_rewards("alice")
    assert len(ledger.events) == 0


def test_subscribers_receive_committed_events(ledger, give) -> None:
    got = []
    ledger.events.subscribe(got.append)
    give("alice", 50)
    ledger.deposit("alice", 50)

    assert len(got) == 1
    assert got[0].to_json() == {"kind": "Deposited", "account": "alice", "amount": 50, "at": 0, "details": {}}


def test_events_are_logged_as_jsonl(ledger, give, caplog: pytest.LogCaptureFixture) -> None:
    caplog.set_level(logging.INFO, logger="rewardpool.events")
    give("alice", 20)
    ledger.deposit("alice", 20)

    lines = [r.getMessage() for r in caplog.records if r.name == "rewardpool.events"]
    assert len(lines) == 1
    rec = json.loads(lines[0])
    assert rec["event"] == "ledger_event"
    assert rec["kind"] == "Deposited"
    assert rec["account"] == "alice"
    assert rec["amount"] == 20
    assert "ts_ms" in rec


def test_rollback_is_logged_as_warning(ledger, caplog: pytest.LogCaptureFixture) -> None:
    caplog.set_level(logging.WARNING, logger="rewardpool.ledger")
    with pytest.raises(InsufficientBalance):
        ledger.withdraw("alice", 1)

    (rec,) = [r for r in caplog.records if r.name == "rewardpool.ledger"]
    assert rec.levelno == logging.WARNING
    body = json.loads(rec.getMessage())
    assert body["event"] == "op_rolled_back"
    assert body["op"] == "withdraw"
    assert body["code"] == "insufficient_balance"


def test_event_log_filters_by_kind() -> None:
    log = EventLog()
    log.publish([])
    assert len(log) == 0

    log.publish(
        [
            LedgerEvent(kind="Deposited", account="a", amount=1, at=0),
            LedgerEvent(kind="Claimed", account="a", amount=2, at=1),
            LedgerEvent(kind="Deposited", account="b", amount=3, at=1),
        ]
    )
    assert [e.account for e in log.of_kind("Deposited")] == ["a", "b"]
    assert len(log) == 3
