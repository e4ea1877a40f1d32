# src/rewardpool/ledger/access.py
from __future__ import annotations

from typing import Protocol

from rewardpool.runtime.errors import InvalidArgument, Unauthorized


class AccessControl(Protocol):
    def require_administrator(self, caller: str) -> None:
        """Raise Unauthorized unless `caller` may run administrative operations."""
        ...


class OwnerAccessControl:
    """Single-owner gate: only `owner` passes."""

    def __init__(self, owner: str) -> None:
        o = str(owner or "").strip()
        if not o:
            raise InvalidArgument("missing_owner")
        self._owner = o

    @property
    def owner(self) -> str:
        return self._owner

    def require_administrator(self, caller: str) -> None:
        if str(caller or "").strip() != self._owner:
            raise Unauthorized("administrator_required", {"caller": caller})
