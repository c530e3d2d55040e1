from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from taskdown.deps import get_db
from taskdown.schemas import ApiResponse, WorkspaceConfigOut, WorkspaceConfigUpdateIn, ok
from taskdown.workspace.service import get_config, update_config

router = APIRouter(prefix="/api/config", tags=["config"])


@router.get("", response_model=ApiResponse[WorkspaceConfigOut])
async def read_config(db: AsyncSession = Depends(get_db)) -> ApiResponse[WorkspaceConfigOut]:
  return ok(await get_config(db))


@router.put("", response_model=ApiResponse[WorkspaceConfigOut])
@router.patch("", response_model=ApiResponse[WorkspaceConfigOut])
async def write_config(payload: WorkspaceConfigUpdateIn, db: AsyncSession = Depends(get_db)) -> ApiResponse[WorkspaceConfigOut]:
  return ok(await update_config(db, payload))
