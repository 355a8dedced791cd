"""
Observability Metrics
---------------------
Lightweight Redis counters/latency samples for the duplicate-check service,
plus one snapshot function consumed by /admin/metrics. Recording is
best-effort: a missing or unreachable Redis must never break a search
session, so every writer swallows its own failure.
"""
from __future__ import annotations
import time
from typing import List, Tuple
from dupcheck.store.redis_conn import get_redis

# Keys (best-effort, stable across restarts)
K_LOOKUP_ISSUED = "dupcheck:metrics:lookup:issued"        # INCR
K_LOOKUP_FAILED = "dupcheck:metrics:lookup:failed"        # INCR
K_LOOKUP_LAT    = "dupcheck:metrics:lookup:latencies"     # LPUSH ms
K_ADVANCE       = "dupcheck:metrics:advance:{source}"     # INCR per trigger source
K_WEBHOOK_FAIL  = "dupcheck:metrics:webhook:failed"       # INCR

ADVANCE_SOURCES = ("countdown", "row_select", "create_new")

_MAX_SAMPLES = 500  # cap to bound percentile computation cost

def _percentile(data: List[float], p: float) -> float:
    """Deterministic percentile (nearest-rank on sorted data)."""
    if not data:
        return 0.0
    d = sorted(data)
    k = max(1, int(round(p * len(d))))
    return float(d[k - 1])

def _incr(key: str) -> None:
    try:
        get_redis().incr(key, 1)
    except Exception:
        pass

def increment_lookup_issued() -> None:
    _incr(K_LOOKUP_ISSUED)

def increment_lookup_failed() -> None:
    _incr(K_LOOKUP_FAILED)

def increment_advance(source: str) -> None:
    _incr(K_ADVANCE.format(source=source or "unknown"))

def increment_webhook_failed() -> None:
    _incr(K_WEBHOOK_FAIL)

def record_lookup_latency(ms: int) -> None:
    try:
        ms = int(ms)
        r = get_redis()
        r.lpush(K_LOOKUP_LAT, ms)
        r.ltrim(K_LOOKUP_LAT, 0, _MAX_SAMPLES - 1)
    except Exception:
        pass

def _read_latency_list(r, key: str) -> List[float]:
    raw = r.lrange(key, 0, _MAX_SAMPLES - 1) or []
    out: List[float] = []
    for x in raw:
        try:
            out.append(float(x) / 1000.0)  # seconds
        except (TypeError, ValueError):
            continue
    return out

def _p50_p95(latencies_s: List[float]) -> Tuple[float, float]:
    if not latencies_s:
        return 0.0, 0.0
    return _percentile(latencies_s, 0.50), _percentile(latencies_s, 0.95)

def get_metrics_snapshot() -> dict:
    """
    Return a dict shaped for /admin/metrics consumers.
    Fields:
      - lookups_issued, lookups_failed, lookup_failure_rate
      - p50_lookup_latency, p95_lookup_latency (seconds, most recent samples)
      - advances: per trigger source
      - webhook_failures
    """
    r = get_redis()

    issued = int(r.get(K_LOOKUP_ISSUED) or 0)
    failed = int(r.get(K_LOOKUP_FAILED) or 0)
    failure_rate = (failed / issued) * 100.0 if issued > 0 else 0.0

    p50, p95 = _p50_p95(_read_latency_list(r, K_LOOKUP_LAT))

    advances = {s: int(r.get(K_ADVANCE.format(source=s)) or 0) for s in ADVANCE_SOURCES}

    return {
        "lookups_issued": issued,
        "lookups_failed": failed,
        "lookup_failure_rate": round(failure_rate, 3),
        "p50_lookup_latency": round(p50, 3),
        "p95_lookup_latency": round(p95, 3),
        "advances": advances,
        "webhook_failures": int(r.get(K_WEBHOOK_FAIL) or 0),
        "snapshot_at": int(time.time()),
    }
