from __future__ import annotations

import pytest
from httpx import AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession

from taskdown.config import settings
from taskdown.security import pwd_context
from taskdown.seed import ensure_admin_user


@pytest.mark.anyio
async def test_admin_is_created_once_with_bcrypt_hash(db: AsyncSession, monkeypatch) -> None:
  monkeypatch.setattr(settings, "seed_admin_password", None)
  admin, password = await ensure_admin_user(db)
  assert admin.role == "admin"
  assert password
  assert admin.password_hash != password
  assert pwd_context.verify(password, admin.password_hash)

  again, second_password = await ensure_admin_user(db)
  assert again.id == admin.id
  assert second_password is None


@pytest.mark.anyio
async def test_configured_admin_password_is_not_echoed(db: AsyncSession, monkeypatch) -> None:
  monkeypatch.setattr(settings, "seed_admin_password", "s3cret-pass")
  admin, password = await ensure_admin_user(db)
  assert password is None
  assert pwd_context.verify("s3cret-pass", admin.password_hash)


@pytest.mark.anyio
async def test_seeded_admin_shows_up_in_users(client: AsyncClient, db: AsyncSession, monkeypatch) -> None:
  monkeypatch.setattr(settings, "seed_admin_password", "s3cret-pass")
  await ensure_admin_user(db)
  res = await client.get("/api/users")
  assert res.status_code == 200, res.text
  users = res.json()["data"]["users"]
  assert [u["username"] for u in users] == [settings.seed_admin_username]
  assert "passwordHash" not in users[0]
  assert "password_hash" not in users[0]
