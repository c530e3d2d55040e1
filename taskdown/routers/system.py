from __future__ import annotations

from time import monotonic

from fastapi import APIRouter, Depends
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from taskdown.config import settings
from taskdown.deps import get_db
from taskdown.logging import get_logger, log_extra
from taskdown.metrics import runtime_metrics
from taskdown.schemas import ApiResponse, DatabaseStatusOut, HealthOut, ok

logger = get_logger(__name__)

router = APIRouter(prefix="/api", tags=["system"])


async def _database_status(db: AsyncSession) -> DatabaseStatusOut:
  start = monotonic()
  try:
    await db.execute(text("select 1"))
    state = "connected"
  except SQLAlchemyError as exc:
    logger.warning("database health probe failed", extra=log_extra(operation="health", error=str(exc)))
    state = "unavailable"
  elapsed_ms = (monotonic() - start) * 1000.0
  return DatabaseStatusOut(status=state, responseTimeMs=round(elapsed_ms, 2))


@router.get("/health", response_model=ApiResponse[HealthOut])
async def health(db: AsyncSession = Depends(get_db)) -> ApiResponse[HealthOut]:
  database = await _database_status(db)
  return ok(
    HealthOut(
      status="healthy" if database.status == "connected" else "degraded",
      version=settings.app_version,
      buildSha=settings.build_sha,
      uptime=runtime_metrics.uptime_seconds(),
      database=database,
      requests=runtime_metrics.snapshot(),
    )
  )
