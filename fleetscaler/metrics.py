"""
Thread-safe in-memory metrics for the autoscaler webhook.

Tracks:
  - Traffic:    requests.scale
  - Decisions:  decisions.<mode>, decisions.scaled, last target replicas
  - Errors:     errors.<kind> (invalid_input, malformed_request)
  - Latency:    /scale handling time over the last MAX_SAMPLES requests

Everything resets on restart; the orchestrator polls us, so nothing here is
needed to make a decision.
"""

import threading
import time
from collections import defaultdict, deque
from typing import Deque, Dict

_lock = threading.Lock()

MAX_SAMPLES = 100

_counters: Dict[str, int] = defaultdict(int)
_gauges: Dict[str, float] = {}
_scale_latency_ms: Deque[float] = deque(maxlen=MAX_SAMPLES)


def mark_started():
    with _lock:
        _gauges["start_time"] = time.time()


def record_request(duration_ms: float):
    """Count one /scale request and keep its handling time."""
    with _lock:
        _counters["requests.scale"] += 1
        _scale_latency_ms.append(duration_ms)


def record_decision(mode: str, scaled: bool, replicas: int):
    with _lock:
        _counters[f"decisions.{mode}"] += 1
        if scaled:
            _counters["decisions.scaled"] += 1
        _gauges["last_target_replicas"] = replicas


def record_error(kind: str):
    """Count a rejected request (e.g. 'invalid_input', 'malformed_request')."""
    with _lock:
        _counters[f"errors.{kind}"] += 1


def reset():
    with _lock:
        _counters.clear()
        _gauges.clear()
        _scale_latency_ms.clear()


def _decision_share() -> Dict[str, float]:
    by_mode = {
        name[len("decisions."):]: count
        for name, count in _counters.items()
        if name.startswith("decisions.") and name != "decisions.scaled"
    }
    total = sum(by_mode.values())
    if not total:
        return {}
    return {mode: round(count / total, 4) for mode, count in by_mode.items()}


def get_snapshot() -> dict:
    """
    Return a complete metrics snapshot for the /metrics endpoint.

    `decision_share` is the fraction of decisions each scaling mode produced.
    """
    now = time.time()
    with _lock:
        latency = {}
        if _scale_latency_ms:
            ordered = sorted(_scale_latency_ms)
            n = len(ordered)
            latency["scale"] = {
                "p50": ordered[n // 2],
                "p95": ordered[min(n - 1, int(n * 0.95))],
                "avg": sum(ordered) / n,
                "count": n,
            }

        return {
            "timestamp": now,
            "counters": dict(_counters),
            "gauges": dict(_gauges),
            "decision_share": _decision_share(),
            "latency": latency,
            "uptime_seconds": now - _gauges.get("start_time", now),
        }
