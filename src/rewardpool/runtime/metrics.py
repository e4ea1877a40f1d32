# src/rewardpool/runtime/metrics.py
from __future__ import annotations

import os
import threading
import time
from typing import Dict


_lock = threading.Lock()
_counters: Dict[str, int] = {}
_gauges: Dict[str, int] = {}
_started_ms = int(time.time() * 1000)


def metrics_enabled() -> bool:
    v = (os.environ.get("REWARDPOOL_METRICS_ENABLED") or "").strip().lower()
    if not v:
        return False
    return v in {"1", "true", "yes", "y", "on"}


def inc_counter(name: str, value: int = 1) -> None:
    if not metrics_enabled():
        return
    n = str(name or "").strip()
    if not n:
        return
    with _lock:
        _counters[n] = int(_counters.get(n, 0)) + int(value)


def set_gauge(name: str, value: int) -> None:
    if not metrics_enabled():
        return
    n = str(name or "").strip()
    if not n:
        return
    with _lock:
        _gauges[n] = int(value)


def reset() -> None:
    with _lock:
        _counters.clear()
        _gauges.clear()


def snapshot() -> dict:
    with _lock:
        return {
            "ts_ms": int(time.time() * 1000),
            "started_ms": int(_started_ms),
            "uptime_ms": int(time.time() * 1000) - int(_started_ms),
            "counters": dict(_counters),
            "gauges": dict(_gauges),
        }


def format_prometheus(prefix: str = "rewardpool_") -> str:
    """Prometheus exposition text: integer counters/gauges only."""
    pre = str(prefix or "").strip() or "rewardpool_"
    snap = snapshot()
    lines: list[str] = [f"{pre}uptime_ms {int(snap['uptime_ms'])}"]

    for name in sorted(snap["counters"]):
        lines.append(f"{pre}{name} {int(snap['counters'][name])}")
    for name in sorted(snap["gauges"]):
        lines.append(f"{pre}{name} {int(snap['gauges'][name])}")

    return "\n".join(lines) + "\n"
