from __future__ import annotations

from typing import Any

from fastapi.encoders import jsonable_encoder
from sqlalchemy.ext.asyncio import AsyncSession

from taskdown.models import Activity

SYSTEM_ACTOR_ID = "system"
SYSTEM_ACTOR_NAME = "System"


async def write_activity(
  db: AsyncSession,
  *,
  action: str,
  target_type: str,
  target_id: str,
  target_name: str,
  details: dict[str, Any] | None = None,
  user_id: str = SYSTEM_ACTOR_ID,
  user_name: str = SYSTEM_ACTOR_NAME,
) -> None:
  safe_details = jsonable_encoder(details) if details is not None else None
  db.add(
    Activity(
      user_id=user_id,
      user_name=user_name,
      action=action,
      target_type=target_type,
      target_id=target_id,
      target_name=target_name,
      details=safe_details,
    )
  )
