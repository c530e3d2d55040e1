from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from taskdown.deps import get_db
from taskdown.schemas import ApiResponse, WorkspaceInfoOut, ok
from taskdown.workspace.service import workspace_info

router = APIRouter(prefix="/api/workspace", tags=["workspace"])


@router.get("", response_model=ApiResponse[WorkspaceInfoOut])
async def get_workspace(db: AsyncSession = Depends(get_db)) -> ApiResponse[WorkspaceInfoOut]:
  return ok(await workspace_info(db))
