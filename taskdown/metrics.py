from __future__ import annotations

from collections import deque
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from threading import Lock
from time import monotonic

RETENTION = timedelta(hours=24)
RECENT_WINDOW = timedelta(minutes=15)


@dataclass
class RequestSample:
  ts: datetime
  method: str
  status_code: int
  latency_ms: float


def _p95(latencies: list[float]) -> float:
  if not latencies:
    return 0.0
  ordered = sorted(latencies)
  idx = max(0, int(len(ordered) * 0.95) - 1)
  return ordered[idx]


def _window(samples: list[RequestSample]) -> dict:
  total = len(samples)
  errors = sum(1 for s in samples if s.status_code >= 500)
  return {
    "count": total,
    "errors": errors,
    "errorRate": round(errors / total * 100, 2) if total else 0.0,
    "p95LatencyMs": round(_p95([s.latency_ms for s in samples]), 2),
  }


class RuntimeMetrics:
  """In-process request counters kept for the last 24 hours."""

  def __init__(self) -> None:
    self._started_monotonic = monotonic()
    self._started_at = datetime.now(timezone.utc)
    self._samples: deque[RequestSample] = deque()
    self._by_method: dict[str, int] = {}
    self._lock = Lock()

  @property
  def started_at(self) -> datetime:
    return self._started_at

  def uptime_seconds(self) -> int:
    return max(0, int(monotonic() - self._started_monotonic))

  def observe_request(self, method: str, status_code: int, latency_ms: float) -> None:
    now = datetime.now(timezone.utc)
    with self._lock:
      self._samples.append(RequestSample(ts=now, method=method, status_code=status_code, latency_ms=latency_ms))
      self._by_method[method] = self._by_method.get(method, 0) + 1
      self._prune_locked(now)

  def _prune_locked(self, now: datetime) -> None:
    cutoff = now - RETENTION
    while self._samples and self._samples[0].ts < cutoff:
      self._samples.popleft()

  def snapshot(self) -> dict:
    now = datetime.now(timezone.utc)
    with self._lock:
      self._prune_locked(now)
      samples = list(self._samples)
      by_method = dict(self._by_method)

    recent_cutoff = now - RECENT_WINDOW
    return {
      "last15m": _window([s for s in samples if s.ts >= recent_cutoff]),
      "last24h": _window(samples),
      "totalByMethod": by_method,
    }

  def reset(self) -> None:
    with self._lock:
      self._samples.clear()
      self._by_method.clear()


runtime_metrics = RuntimeMetrics()
