from __future__ import annotations

from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncEngine, async_sessionmaker, create_async_engine

from taskdown.config import settings
from taskdown.models import Base


def _make_engine(url: str) -> AsyncEngine:
  eng = create_async_engine(url, echo=settings.database_echo, pool_pre_ping=not url.startswith("sqlite"))
  if eng.dialect.name == "sqlite":

    @event.listens_for(eng.sync_engine, "connect")
    def _sqlite_pragmas(dbapi_conn, _record) -> None:
      cur = dbapi_conn.cursor()
      cur.execute("PRAGMA foreign_keys=ON")
      cur.execute("PRAGMA busy_timeout=5000")
      cur.close()

  return eng


engine = _make_engine(settings.database_url)
SessionLocal = async_sessionmaker(engine, expire_on_commit=False)


async def init_models() -> None:
  async with engine.begin() as conn:
    await conn.run_sync(Base.metadata.create_all)
