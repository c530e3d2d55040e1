from __future__ import annotations

from collections.abc import AsyncIterator

from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from taskdown.config import settings
from taskdown.db import SessionLocal
from taskdown.errors import RateLimitedError
from taskdown.rate_limit import limiter
from taskdown.workspace.service import get_config

RATE_LIMIT_PREFIX = "api:"


async def get_db() -> AsyncIterator[AsyncSession]:
  async with SessionLocal() as session:
    yield session


def client_ip(request: Request) -> str | None:
  return request.client.host if request.client else None


async def enforce_rate_limit(request: Request, db: AsyncSession = Depends(get_db)) -> None:
  cfg = await get_config(db)
  key = f"{RATE_LIMIT_PREFIX}{client_ip(request) or 'unknown'}"
  allowed, retry_after = limiter.hit(key, limit=cfg.limits.apiRateLimit, window_seconds=settings.rate_limit_window_seconds)
  if not allowed:
    raise RateLimitedError(
      "Too many requests",
      retry_after=retry_after,
      metadata={"limit": cfg.limits.apiRateLimit},
    )
