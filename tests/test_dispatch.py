from __future__ import annotations

import pytest

from rewardpool.runtime.dispatch import SUPPORTED_OP_TYPES, OpEnvelope, apply_op, apply_op_verdict
from rewardpool.runtime.errors import InvalidArgument
from rewardpool.runtime.op_schema import OP_SCHEMAS, validate_payload


def test_every_op_type_has_a_schema() -> None:
    assert set(SUPPORTED_OP_TYPES) == set(OP_SCHEMAS)


def test_apply_deposit_and_claim_envelopes(ledger, clock, give) -> None:
    give("alice", 100)
    out = apply_op(ledger, {"op_type": "deposit", "caller": "alice", "payload": {"amount": 100}})
    assert out == {"applied": "DEPOSIT", "account": "alice", "amount": 100, "staked": 100}

    clock.set(2)
    out = apply_op(ledger, OpEnvelope("CLAIM_REWARDS", "alice"))
    assert out == {"applied": "CLAIM_REWARDS", "account": "alice", "amount": 200}


def test_admin_envelope(ledger) -> None:
    out = apply_op(ledger, {"op_type": "SET_EMISSION_RATE", "caller": "owner", "payload": {"rate": 3}})
    assert out == {"applied": "SET_EMISSION_RATE", "rate": 3}


def test_unknown_op_type(ledger) -> None:
    with pytest.raises(InvalidArgument) as e:
        apply_op(ledger, {"op_type": "EXIT_POOL", "caller": "alice", "payload": {}})
    assert e.value.reason == "unknown_op_type"


def test_missing_caller(ledger) -> None:
    with pytest.raises(InvalidArgument) as e:
        apply_op(ledger, {"op_type": "CLAIM_REWARDS", "payload": {}})
    assert e.value.reason == "zero_identity"


def test_envelope_must_be_object(ledger) -> None:
    with pytest.raises(InvalidArgument) as e:
        apply_op(ledger, ["DEPOSIT"])
    assert e.value.reason == "envelope_not_object"


@pytest.mark.parametrize(
    "payload",
    [
        {"amount": "10"},
        {"amount": 0},
        {"amount": 10, "memo": "hi"},
        {},
    ],
)
def test_invalid_payload_is_rejected_before_ledger(ledger, payload) -> None:
    with pytest.raises(InvalidArgument) as e:
        validate_payload("DEPOSIT", payload)
    assert e.value.reason == "invalid_payload"
    assert e.value.details["errors"]


def test_payload_must_be_object() -> None:
    with pytest.raises(InvalidArgument) as e:
        validate_payload("WITHDRAW", [1])
    assert e.value.reason == "payload_not_object"


def test_verdict_applied_unpacks(ledger, give) -> None:
    give("bob", 5)
    ok, result = apply_op_verdict(ledger, {"op_type": "DEPOSIT", "caller": "bob", "payload": {"amount": 5}})
    assert ok is True
    assert result["staked"] == 5


def test_verdict_rejected_carries_error(ledger) -> None:
    v = apply_op_verdict(ledger, {"op_type": "WITHDRAW", "caller": "bob", "payload": {"amount": 5}})
    assert v.ok is False
    assert v.code == "insufficient_balance"
    assert v.reason == "exceeds_deposit"
    assert v.details == {"deposited": 0, "amount": 5}

    ok, verdict = v
    assert ok is False
    assert verdict is v


def test_verdict_for_unauthorized_admin_op(ledger) -> None:
    v = apply_op_verdict(ledger, {"op_type": "EMERGENCY_DRAIN", "caller": "mallory"})
    assert (v.ok, v.code) == (False, "unauthorized")
    assert ledger.reward_reserve() > 0


def test_envelope_json_round_trip() -> None:
    env = OpEnvelope.from_json({"op_type": " recover_foreign_asset ", "caller": " owner ", "payload": {"asset_id": "J", "amount": 1}})
    assert env.op_type == "RECOVER_FOREIGN_ASSET"
    assert env.caller == "owner"
    assert OpEnvelope.from_json(env.to_json()) == env
