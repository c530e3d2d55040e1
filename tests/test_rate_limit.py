from __future__ import annotations

from taskdown.metrics import RuntimeMetrics
from taskdown.rate_limit import RateLimiter


def test_fixed_window_blocks_after_limit() -> None:
  limiter = RateLimiter()
  assert limiter.hit("api:1.2.3.4", limit=2, window_seconds=60) == (True, 0)
  assert limiter.hit("api:1.2.3.4", limit=2, window_seconds=60) == (True, 0)
  allowed, retry = limiter.hit("api:1.2.3.4", limit=2, window_seconds=60)
  assert allowed is False
  assert 1 <= retry <= 60
  # other clients have their own window
  assert limiter.hit("api:5.6.7.8", limit=2, window_seconds=60) == (True, 0)


def test_reset_prefix_clears_matching_buckets() -> None:
  limiter = RateLimiter()
  limiter.hit("api:a", limit=1, window_seconds=60)
  limiter.hit("other:a", limit=1, window_seconds=60)
  limiter.reset_prefix("api:")
  assert limiter.hit("api:a", limit=1, window_seconds=60) == (True, 0)
  assert limiter.hit("other:a", limit=1, window_seconds=60)[0] is False


def test_runtime_metrics_snapshot() -> None:
  metrics = RuntimeMetrics()
  metrics.observe_request("GET", 200, 10.0)
  metrics.observe_request("GET", 500, 30.0)
  metrics.observe_request("POST", 200, 20.0)
  snap = metrics.snapshot()
  assert snap["last15m"]["count"] == 3
  assert snap["last15m"]["errors"] == 1
  assert snap["last24h"]["errorRate"] == 33.33
  assert snap["totalByMethod"] == {"GET": 2, "POST": 1}


def test_expired_buckets_are_pruned() -> None:
  now = [1000.0]
  limiter = RateLimiter(clock=lambda: now[0])
  limiter.hit("api:10.0.0.1", limit=5, window_seconds=60)
  limiter.hit("api:10.0.0.2", limit=5, window_seconds=60)
  assert limiter.bucket_count() == 2

  now[0] += 30
  limiter.hit("api:10.0.0.3", limit=5, window_seconds=60)
  assert limiter.bucket_count() == 3

  # both earlier windows closed; only the fresh hit and the still-open window remain
  now[0] += 45
  limiter.hit("api:10.0.0.4", limit=5, window_seconds=60)
  assert limiter.bucket_count() == 2
  assert limiter.hit("api:10.0.0.1", limit=5, window_seconds=60) == (True, 0)
