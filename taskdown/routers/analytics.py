from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from taskdown.analytics.service import sprint_progress, summary
from taskdown.deps import get_db
from taskdown.schemas import AnalyticsSummaryOut, ApiResponse, SprintProgressOut, ok

router = APIRouter(prefix="/api/analytics", tags=["analytics"])


@router.get("/summary", response_model=ApiResponse[AnalyticsSummaryOut])
async def analytics_summary(db: AsyncSession = Depends(get_db)) -> ApiResponse[AnalyticsSummaryOut]:
  return ok(await summary(db))


@router.get("/sprints/{sprint}", response_model=ApiResponse[SprintProgressOut])
async def analytics_sprint(sprint: str, db: AsyncSession = Depends(get_db)) -> ApiResponse[SprintProgressOut]:
  return ok(await sprint_progress(db, sprint))
