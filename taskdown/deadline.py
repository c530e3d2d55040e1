from __future__ import annotations

import asyncio

from fastapi.responses import JSONResponse
from starlette.types import ASGIApp, Message, Receive, Scope, Send

from taskdown.logging import get_logger, log_extra

logger = get_logger(__name__)


class DeadlineMiddleware:
  """
  Run each HTTP request under a hard deadline.

  On expiry the handler task is cancelled, so in-flight storage calls are
  abandoned and the request session rolls back when it closes. A 504 is sent
  unless the response had already started.
  """

  def __init__(self, app: ASGIApp, timeout_seconds: float) -> None:
    self.app = app
    self.timeout_seconds = timeout_seconds

  async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
    if scope["type"] != "http":
      await self.app(scope, receive, send)
      return

    started = False

    async def send_tracking(message: Message) -> None:
      nonlocal started
      if message["type"] == "http.response.start":
        started = True
      await send(message)

    try:
      await asyncio.wait_for(self.app(scope, receive, send_tracking), timeout=self.timeout_seconds)
    except asyncio.TimeoutError:
      logger.warning(
        "request deadline exceeded",
        extra=log_extra(path=scope.get("path"), method=scope.get("method"), operation="deadline"),
      )
      if started:
        raise
      response = JSONResponse(
        status_code=504,
        content={"success": False, "error": {"code": "TIMEOUT", "message": "Request deadline exceeded"}},
      )
      await response(scope, receive, send)
