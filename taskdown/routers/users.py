from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from taskdown.deps import get_db
from taskdown.errors import StorageError
from taskdown.models import User
from taskdown.schemas import ApiResponse, UserListOut, UserOut, ok

router = APIRouter(prefix="/api/users", tags=["users"])


def _user_out(u: User) -> UserOut:
  return UserOut(
    id=u.id,
    username=u.username,
    displayName=u.display_name,
    email=u.email,
    role=u.role,
    avatar=u.avatar,
    isActive=bool(u.is_active),
    lastSeen=u.last_seen,
  )


@router.get("", response_model=ApiResponse[UserListOut])
async def list_users(db: AsyncSession = Depends(get_db)) -> ApiResponse[UserListOut]:
  try:
    res = await db.execute(select(User).order_by(User.username.asc()))
    users = res.scalars().all()
  except SQLAlchemyError as exc:
    raise StorageError("Failed to list users", operation="user.list") from exc
  return ok(UserListOut(users=[_user_out(u) for u in users]))
