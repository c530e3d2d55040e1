from __future__ import annotations

import asyncio

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from taskdown.config import settings
from taskdown.db import SessionLocal, engine, init_models
from taskdown.logging import setup_logging
from taskdown.models import User
from taskdown.security import bootstrap_password, hash_password
from taskdown.workspace.service import ensure_config_row


async def ensure_admin_user(db: AsyncSession) -> tuple[User, str | None]:
  """
  Create the admin account when no user with the configured username exists.

  Returns the user and, when it was just created, its bootstrap password.
  """
  res = await db.execute(select(User).where(User.username == settings.seed_admin_username))
  admin = res.scalar_one_or_none()
  if admin is not None:
    return admin, None

  password, generated = bootstrap_password(settings.seed_admin_password)
  admin = User(
    username=settings.seed_admin_username,
    display_name="Administrator",
    email=settings.seed_admin_email,
    role="admin",
    password_hash=hash_password(password),
  )
  db.add(admin)
  await db.commit()
  return admin, password if generated else None


async def seed() -> None:
  await init_models()
  async with SessionLocal() as db:
    cfg = await ensure_config_row(db)
    admin, generated_password = await ensure_admin_user(db)
  await engine.dispose()

  print(f"Workspace: {cfg.workspace_name}")
  print(f"Admin user: {admin.username} <{admin.email}>")
  if generated_password:
    print(f"  generated password: {generated_password}")


def main() -> None:
  setup_logging(settings.log_level, settings.log_json)
  asyncio.run(seed())


if __name__ == "__main__":
  main()
