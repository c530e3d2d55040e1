from __future__ import annotations

import secrets

from passlib.context import CryptContext

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")


def hash_password(password: str) -> str:
  return pwd_context.hash(password)


def bootstrap_password(configured: str | None) -> tuple[str, bool]:
  """Return (password, generated); a random one is generated when none is configured."""
  value = (configured or "").strip()
  if value:
    return value, False
  return secrets.token_urlsafe(14), True
