# src/rewardpool/runtime/structured_logging.py
from __future__ import annotations

import json
import logging
import os
import time
from typing import Any, Dict

Json = Dict[str, Any]


def _now_ms() -> int:
    return int(time.time() * 1000)


def configure_structured_logging(level_name: str | None = None) -> None:
    """Configure stdlib logging for JSONL output (stdout).

    - Level from the argument, else REWARDPOOL_LOG_LEVEL (default INFO).
    - Safe to call multiple times.
    """
    name = (level_name or os.environ.get("REWARDPOOL_LOG_LEVEL") or "INFO").strip().upper()
    level = getattr(logging, name, logging.INFO)

    root = logging.getLogger()
    if getattr(root, "_rewardpool_configured", False):  # type: ignore[attr-defined]
        root.setLevel(level)
        return

    handler = logging.StreamHandler()
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter("%(message)s"))

    root.handlers = [handler]
    root.setLevel(level)
    setattr(root, "_rewardpool_configured", True)  # type: ignore[attr-defined]


def log_event(logger: logging.Logger, event: str, *, level: int = logging.INFO, **fields: Any) -> None:
    """Emit a single JSONL log event."""
    if not logger.isEnabledFor(level):
        return
    payload: Json = {"ts_ms": _now_ms(), "event": str(event)}
    payload.update(fields)
    try:
        msg = json.dumps(payload, sort_keys=True, separators=(",", ":"), ensure_ascii=False)
    except (TypeError, ValueError):
        msg = " ".join([f"event={event}"] + [f"{k}={fields.get(k)!r}" for k in sorted(fields.keys())])
    logger.log(level, msg)
