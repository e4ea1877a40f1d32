# src/rewardpool/runtime/dispatch.py
from __future__ import annotations

"""Route operation envelopes to the ledger.

`apply_op(ledger, env)` validates the payload against the op schema and calls the
matching AccrualLedger method. The ledger is already all-or-nothing, so a
rejected op leaves no trace. `apply_op_verdict` returns a typed result instead
of raising, for callers that batch operations.
"""

from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Iterator, Optional

from rewardpool.ledger.accrual import AccrualLedger
from rewardpool.runtime.errors import InvalidArgument, LedgerError
from rewardpool.runtime.op_schema import validate_payload

Json = Dict[str, Any]
OpFn = Callable[[AccrualLedger, str, Any], Json]


@dataclass(frozen=True)
class OpEnvelope:
    op_type: str
    caller: str
    payload: Dict[str, Any] = field(default_factory=dict)

    @staticmethod
    def from_json(j: Any) -> "OpEnvelope":
        if isinstance(j, OpEnvelope):
            return j
        if not isinstance(j, dict):
            raise InvalidArgument("envelope_not_object", {"type": str(type(j))})
        payload = j.get("payload")
        return OpEnvelope(
            op_type=str(j.get("op_type", "") or "").strip().upper(),
            caller=str(j.get("caller", "") or "").strip(),
            payload=payload if isinstance(payload, dict) else ({} if payload is None else payload),
        )

    def to_json(self) -> Json:
        return {"op_type": self.op_type, "caller": self.caller, "payload": dict(self.payload)}


@dataclass(frozen=True)
class OpVerdict:
    ok: bool
    code: str
    reason: str
    details: Optional[Json] = None
    result: Optional[Json] = None

    def __iter__(self) -> Iterator[Any]:
        """Allow `ok, result = apply_op_verdict(...)` unpacking."""
        yield self.ok
        yield self.result if self.ok else self

    @staticmethod
    def applied(result: Json) -> "OpVerdict":
        return OpVerdict(True, "ok", "applied", None, result)

    @staticmethod
    def rejected(err: LedgerError) -> "OpVerdict":
        return OpVerdict(False, err.code, err.reason, dict(err.details or {}), None)


def _deposit(ledger: AccrualLedger, caller: str, p: Any) -> Json:
    ledger.deposit(caller, p.amount)
    return {"account": caller, "amount": p.amount, "staked": ledger.staked_balance_of(caller)}


def _withdraw(ledger: AccrualLedger, caller: str, p: Any) -> Json:
    ledger.withdraw(caller, p.amount)
    return {"account": caller, "amount": p.amount, "staked": ledger.staked_balance_of(caller)}


def _claim(ledger: AccrualLedger, caller: str, p: Any) -> Json:
    return {"account": caller, "amount": ledger.claim_rewards(caller)}


def _fund(ledger: AccrualLedger, caller: str, p: Any) -> Json:
    ledger.fund_rewards(caller, p.amount)
    return {"funder": caller, "amount": p.amount, "reserve": ledger.reward_reserve()}


def _set_rate(ledger: AccrualLedger, caller: str, p: Any) -> Json:
    ledger.set_emission_rate(caller, p.rate)
    return {"rate": ledger.current_rate()}


def _drain(ledger: AccrualLedger, caller: str, p: Any) -> Json:
    return {"to": caller, "amount": ledger.emergency_drain(caller)}


def _recover(ledger: AccrualLedger, caller: str, p: Any) -> Json:
    ledger.recover_foreign_asset(caller, p.asset_id, p.amount)
    return {"to": caller, "asset_id": p.asset_id, "amount": p.amount}


_ROUTES: Dict[str, OpFn] = {
    "DEPOSIT": _deposit,
    "WITHDRAW": _withdraw,
    "CLAIM_REWARDS": _claim,
    "FUND_REWARDS": _fund,
    "SET_EMISSION_RATE": _set_rate,
    "EMERGENCY_DRAIN": _drain,
    "RECOVER_FOREIGN_ASSET": _recover,
}

SUPPORTED_OP_TYPES = tuple(sorted(_ROUTES))


def apply_op(ledger: AccrualLedger, env: Any) -> Json:
    """Validate and apply one operation. Raises LedgerError on rejection."""
    e = OpEnvelope.from_json(env)
    fn = _ROUTES.get(e.op_type)
    if fn is None:
        raise InvalidArgument("unknown_op_type", {"op_type": e.op_type})
    if not e.caller:
        raise InvalidArgument("zero_identity", {"field": "caller"})

    payload = validate_payload(e.op_type, e.payload)
    out = fn(ledger, e.caller, payload)
    return {"applied": e.op_type, **out}


def apply_op_verdict(ledger: AccrualLedger, env: Any) -> OpVerdict:
    try:
        return OpVerdict.applied(apply_op(ledger, env))
    except LedgerError as err:
        return OpVerdict.rejected(err)


__all__ = ["OpEnvelope", "OpVerdict", "SUPPORTED_OP_TYPES", "apply_op", "apply_op_verdict"]
