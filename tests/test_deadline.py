from __future__ import annotations

import asyncio

import pytest
from httpx import ASGITransport, AsyncClient
from starlette.responses import PlainTextResponse

from taskdown.deadline import DeadlineMiddleware


def _app(delay: float, cancelled: list[bool]):
  async def app(scope, receive, send) -> None:
    try:
      await asyncio.sleep(delay)
    except asyncio.CancelledError:
      cancelled.append(True)
      raise
    await PlainTextResponse("done")(scope, receive, send)

  return app


@pytest.mark.anyio
async def test_slow_request_is_cancelled_with_504() -> None:
  cancelled: list[bool] = []
  app = DeadlineMiddleware(_app(5.0, cancelled), timeout_seconds=0.05)
  async with AsyncClient(transport=ASGITransport(app=app), base_url="http://localhost") as c:
    res = await c.get("/slow")
  assert res.status_code == 504
  assert res.json() == {"success": False, "error": {"code": "TIMEOUT", "message": "Request deadline exceeded"}}
  assert cancelled == [True]


@pytest.mark.anyio
async def test_fast_request_passes_through() -> None:
  cancelled: list[bool] = []
  app = DeadlineMiddleware(_app(0.0, cancelled), timeout_seconds=1.0)
  async with AsyncClient(transport=ASGITransport(app=app), base_url="http://localhost") as c:
    res = await c.get("/fast")
  assert res.status_code == 200
  assert res.text == "done"
  assert cancelled == []
