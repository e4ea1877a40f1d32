# src/rewardpool/runtime/errors.py
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, ClassVar, Dict, Optional

Json = Dict[str, Any]


@dataclass
class LedgerError(Exception):
    """Canonical error type for ledger operation failures.

    Every failure is raised before the operation commits; the ledger restores
    its pre-operation state before the exception leaves the public call.
    """

    reason: str
    details: Optional[Json] = None

    code: ClassVar[str] = "ledger_error"

    def __str__(self) -> str:
        if not self.details:
            return f"{self.code}:{self.reason}"
        return f"{self.code}:{self.reason}:{self.details}"

    def to_json(self) -> Json:
        return {"code": self.code, "reason": self.reason, "details": dict(self.details or {})}


class InvalidArgument(LedgerError):
    """Zero/negative amount, zero identity, malformed payload or unknown asset."""

    code = "invalid_argument"


class InsufficientBalance(LedgerError):
    """Withdraw exceeds deposit, nothing to claim, or a reserve is short."""

    code = "insufficient_balance"


class InsufficientAuthorization(LedgerError):
    """Transfer into the ledger was not pre-approved."""

    code = "insufficient_authorization"


class TransferFailed(LedgerError):
    code = "transfer_failed"


class Unauthorized(LedgerError):
    code = "unauthorized"


class ProtectedAsset(LedgerError):
    """Recovery attempted on the staking or reward asset."""

    code = "protected_asset"


class ClockRegression(LedgerError):
    code = "clock_regression"


class InvariantViolation(LedgerError):
    """Pool state failed a consistency check; the operation is rolled back."""

    code = "invariant_violation"


__all__ = [
    "LedgerError",
    "InvalidArgument",
    "InsufficientBalance",
    "InsufficientAuthorization",
    "TransferFailed",
    "Unauthorized",
    "ProtectedAsset",
    "ClockRegression",
    "InvariantViolation",
]
