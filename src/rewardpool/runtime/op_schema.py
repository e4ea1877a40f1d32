from __future__ import annotations

"""Operation payload schemas.

Shape checks for the payload of every OpEnvelope routed through
rewardpool.runtime.dispatch. Unknown keys are rejected. The ledger still
enforces every semantic precondition; these models only guarantee types and
positivity before the ledger is touched.
"""

from typing import Any, Dict, Optional, Type

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from rewardpool.runtime.errors import InvalidArgument

Json = Dict[str, Any]


class _StrictModel(BaseModel):
    """Strict model: reject unknown keys and lossy coercions."""

    model_config = ConfigDict(extra="forbid", strict=True)


class DepositPayload(_StrictModel):
    amount: int = Field(..., gt=0)


class WithdrawPayload(_StrictModel):
    amount: int = Field(..., gt=0)


class ClaimPayload(_StrictModel):
    pass


class FundRewardsPayload(_StrictModel):
    amount: int = Field(..., gt=0)


class SetEmissionRatePayload(_StrictModel):
    rate: int = Field(..., gt=0)


class EmergencyDrainPayload(_StrictModel):
    pass


class RecoverForeignAssetPayload(_StrictModel):
    asset_id: str = Field(..., min_length=1)
    amount: int = Field(..., gt=0)


OP_SCHEMAS: Dict[str, Type[BaseModel]] = {
    "DEPOSIT": DepositPayload,
    "WITHDRAW": WithdrawPayload,
    "CLAIM_REWARDS": ClaimPayload,
    "FUND_REWARDS": FundRewardsPayload,
    "SET_EMISSION_RATE": SetEmissionRatePayload,
    "EMERGENCY_DRAIN": EmergencyDrainPayload,
    "RECOVER_FOREIGN_ASSET": RecoverForeignAssetPayload,
}


def schema_for(op_type: str) -> Optional[Type[BaseModel]]:
    return OP_SCHEMAS.get(str(op_type or "").strip().upper())


def validate_payload(op_type: str, payload: Any) -> BaseModel:
    """Validate `payload` for `op_type`, raising InvalidArgument on any mismatch."""
    model = schema_for(op_type)
    if model is None:
        raise InvalidArgument("unknown_op_type", {"op_type": op_type})
    if payload is None:
        payload = {}
    if not isinstance(payload, dict):
        raise InvalidArgument("payload_not_object", {"op_type": op_type, "type": str(type(payload))})
    try:
        return model.model_validate(payload)
    except ValidationError as e:
        errors = [
            {"loc": ".".join(str(p) for p in err.get("loc", ())), "msg": err.get("msg", "")}
            for err in e.errors()
        ]
        raise InvalidArgument("invalid_payload", {"op_type": op_type, "errors": errors})


__all__ = ["OP_SCHEMAS", "schema_for", "validate_payload"]
