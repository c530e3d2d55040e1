from __future__ import annotations

from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import InstrumentedAttribute

from taskdown.errors import StorageError
from taskdown.logging import get_logger, log_extra
from taskdown.models import Task, utcnow
from taskdown.schemas import PRIORITIES, STATUSES, TASK_TYPES, AnalyticsSummaryOut, SprintProgressOut

logger = get_logger(__name__)

DONE_STATUS = "Done"


async def _grouped_counts(db: AsyncSession, column: InstrumentedAttribute, known: tuple[str, ...]) -> dict[str, int]:
  # Every known value is reported, zero when no task carries it.
  counts = {k: 0 for k in known}
  res = await db.execute(select(column, func.count()).group_by(column))
  for value, n in res.all():
    counts[value] = int(n)
  return counts


async def count_by_status(db: AsyncSession) -> dict[str, int]:
  return await _grouped_counts(db, Task.status, STATUSES)


async def count_by_type(db: AsyncSession) -> dict[str, int]:
  return await _grouped_counts(db, Task.task_type, TASK_TYPES)


async def count_by_priority(db: AsyncSession) -> dict[str, int]:
  return await _grouped_counts(db, Task.priority, PRIORITIES)


async def total_tasks(db: AsyncSession) -> int:
  res = await db.execute(select(func.count()).select_from(Task))
  return int(res.scalar_one())


async def average_story_points(db: AsyncSession) -> float:
  # AVG skips NULLs and yields NULL on an empty set.
  res = await db.execute(select(func.avg(Task.story_points)))
  avg = res.scalar_one_or_none()
  return float(avg) if avg is not None else 0.0


async def completion_rate(db: AsyncSession) -> float:
  total = await total_tasks(db)
  if total == 0:
    return 0.0
  res = await db.execute(select(func.count()).select_from(Task).where(Task.status == DONE_STATUS))
  done = int(res.scalar_one())
  return done / total * 100.0


async def active_sprints(db: AsyncSession) -> list[str]:
  res = await db.execute(
    select(Task.sprint)
    .where(Task.sprint.is_not(None), Task.sprint != "", Task.status != DONE_STATUS)
    .distinct()
    .order_by(Task.sprint.asc())
  )
  return [s for s in res.scalars().all() if s and s.strip()]


async def summary(db: AsyncSession) -> AnalyticsSummaryOut:
  try:
    return AnalyticsSummaryOut(
      totalTasks=await total_tasks(db),
      tasksByStatus=await count_by_status(db),
      tasksByType=await count_by_type(db),
      tasksByPriority=await count_by_priority(db),
      averageStoryPoints=await average_story_points(db),
      completionRate=await completion_rate(db),
      activeSprints=await active_sprints(db),
      lastUpdated=utcnow(),
    )
  except SQLAlchemyError as exc:
    logger.error("analytics summary failed", extra=log_extra(operation="analytics.summary", error=str(exc)))
    raise StorageError("Failed to compute analytics summary", operation="analytics.summary") from exc


async def sprint_progress(db: AsyncSession, sprint: str) -> SprintProgressOut:
  """Task and story point totals for one sprint; points on tasks without an estimate count as 0."""
  points = func.coalesce(func.sum(Task.story_points), 0)
  try:
    total_row = (
      await db.execute(select(func.count(), points).select_from(Task).where(Task.sprint == sprint))
    ).one()
    done_row = (
      await db.execute(
        select(func.count(), points).select_from(Task).where(Task.sprint == sprint, Task.status == DONE_STATUS)
      )
    ).one()
  except SQLAlchemyError as exc:
    logger.error("sprint progress failed", extra=log_extra(operation="analytics.sprint", error=str(exc)))
    raise StorageError("Failed to compute sprint progress", operation="analytics.sprint", metadata={"sprint": sprint}) from exc

  total_points = int(total_row[1] or 0)
  done_points = int(done_row[1] or 0)
  return SprintProgressOut(
    sprint=sprint,
    totalTasks=int(total_row[0]),
    completedTasks=int(done_row[0]),
    totalStoryPoints=total_points,
    completedStoryPoints=done_points,
    remainingStoryPoints=total_points - done_points,
  )
