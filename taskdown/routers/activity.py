from __future__ import annotations

from fastapi import APIRouter, Depends, Query
from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from taskdown.deps import get_db
from taskdown.errors import StorageError
from taskdown.models import Activity
from taskdown.schemas import ActivityListOut, ActivityOut, ApiResponse, ok

router = APIRouter(prefix="/api/activity", tags=["activity"])


def _activity_out(a: Activity) -> ActivityOut:
  return ActivityOut(
    id=a.id,
    userId=a.user_id,
    userName=a.user_name,
    action=a.action,
    targetType=a.target_type,
    targetId=a.target_id,
    targetName=a.target_name,
    details=a.details,
    timestamp=a.timestamp,
  )


@router.get("", response_model=ApiResponse[ActivityListOut])
async def list_activity(
  limit: int = Query(default=50, ge=1, le=500),
  offset: int = Query(default=0, ge=0),
  targetId: str | None = None,
  db: AsyncSession = Depends(get_db),
) -> ApiResponse[ActivityListOut]:
  q = select(Activity)
  cq = select(func.count()).select_from(Activity)
  if targetId:
    q = q.where(Activity.target_id == targetId)
    cq = cq.where(Activity.target_id == targetId)
  try:
    total = int((await db.execute(cq)).scalar_one())
    res = await db.execute(q.order_by(Activity.timestamp.desc(), Activity.id.desc()).offset(offset).limit(limit))
    rows = res.scalars().all()
  except SQLAlchemyError as exc:
    raise StorageError("Failed to list activity", operation="activity.list") from exc
  return ok(
    ActivityListOut(
      activities=[_activity_out(a) for a in rows],
      totalCount=total,
      hasMore=offset + len(rows) < total,
    )
  )
