from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from taskdown.deps import get_db
from taskdown.export.markdown import export_filename, render_markdown
from taskdown.models import utcnow
from taskdown.schemas import ApiResponse, ExportOut, TaskFilters, ok
from taskdown.tasks.repository import list_tasks
from taskdown.workspace.service import get_config

router = APIRouter(prefix="/api/export", tags=["export"])


@router.get("/markdown", response_model=ApiResponse[ExportOut])
async def export_markdown(
  epic: str | None = None,
  status: str | None = None,
  db: AsyncSession = Depends(get_db),
) -> ApiResponse[ExportOut]:
  cfg = await get_config(db)
  tasks = await list_tasks(db, TaskFilters(epic=epic or None, status=status or None, sort="created_at:asc"))
  now = utcnow()
  return ok(
    ExportOut(
      markdown=render_markdown(cfg.workspaceName, tasks),
      filename=export_filename(now),
      exportedAt=now,
    )
  )
